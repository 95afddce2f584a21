import pytest

from evquote.db.sqlite import CatalogStore
from evquote.models import Accessory, Vehicle


class FakeTranslator:
    """Prefixes every name with EN; records what it was asked."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    async def translate(self, items):
        self.calls.append(items)
        if self.fail:
            raise ConnectionError("translator unreachable")
        return [dict(it, name=f"EN {it['name']}") for it in items]


@pytest.fixture
def store(tmp_path):
    s = CatalogStore(str(tmp_path / "catalog.db"))
    s.init_db()
    return s


@pytest.fixture
def catalog(store):
    store.upsert(Vehicle(
        id="v1", model="BB-1", name="电动三轮车", price=10000,
        battery=("60V 20Ah",), motor="1000W", brake_tire="鼓刹/3.00-10",
        colors=("红色", "蓝色"),
    ))
    store.upsert(Vehicle(id="v2", model="BB-2", name="电动观光车", price=3500, colors=("白色",)))
    store.upsert(Vehicle(id="v3", model="BB-3", name="老年代步车", price=2800))
    store.upsert(Accessory(id="b1", category="battery", voltage="60V", capacity="20Ah", price=500))
    store.upsert(Accessory(id="c1", category="charger", voltage="60V", capacity="3A", price=120))
    return store


@pytest.fixture
def translator():
    return FakeTranslator()


@pytest.fixture
def failing_translator():
    return FakeTranslator(fail=True)
