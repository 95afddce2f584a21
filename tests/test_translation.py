import asyncio

import pytest

from conftest import FakeTranslator
from evquote.models import AccessoryLine, VehicleLine
from evquote.services.quote_session import QuoteSession
from evquote.services.translation import (
    OpenAITranslator,
    TranslationError,
    reattach,
    translatable_payload,
)


class ReversingTranslator(FakeTranslator):
    async def translate(self, items):
        out = await super().translate(items)
        return list(reversed(out))


class WrongIdTranslator(FakeTranslator):
    """Keeps positions but echoes the other vehicle's id."""

    def __init__(self, ids):
        super().__init__()
        self.ids = ids

    async def translate(self, items):
        out = await super().translate(items)
        return [dict(it, ref=str(n), id=self.ids[-1 - n]) for n, it in enumerate(out)]


class GatedTranslator(FakeTranslator):
    """First call waits until the gate opens, later calls go straight through."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()

    async def translate(self, items):
        if not self.calls:
            self.calls.append(items)
            await self.gate.wait()
            return [dict(it, name=f"EN {it['name']}") for it in items]
        return await super().translate(items)


def _two_vehicle_session(catalog, translator):
    session = QuoteSession(catalog, translator, default_language="zh")
    session.add_vehicle("v1", "蓝色")
    session.set_quantity(0, 3)
    session.add_accessory("b1")
    session.add_vehicle("v2")
    return session


def test_default_language_needs_no_translation(catalog, translator):
    session = QuoteSession(catalog, translator, default_language="zh")
    assert session.add_vehicle("v1") is None
    assert not session.is_translating
    assert session.display_lines() == list(session.cart.lines)
    assert translator.calls == []


def test_switch_to_english_translates_vehicles_only(catalog, translator):
    session = _two_vehicle_session(catalog, translator)
    token = session.set_language("en")
    assert token is not None
    assert session.is_translating
    assert not session.can_export

    assert asyncio.run(session.sync_translation(token))

    assert not session.is_translating
    assert session.can_export
    shown = session.display_lines()
    assert [line.kind for line in shown] == ["vehicle", "accessory", "vehicle"]
    assert shown[0].vehicle.name == "EN 电动三轮车"
    assert shown[0].vehicle.model == "BB-1"
    assert shown[0].vehicle.price == 10000
    assert shown[0].quantity == 3
    assert shown[0].color == "蓝色"
    assert shown[1] == session.cart.lines[1]
    assert shown[2].vehicle.name == "EN 电动观光车"
    assert len(translator.calls[0]) == 2


def test_reordered_reply_falls_back_instead_of_swapping(catalog):
    session = _two_vehicle_session(catalog, ReversingTranslator())
    token = session.set_language("en")
    asyncio.run(session.sync_translation(token))

    shown = session.display_lines()
    assert shown == list(session.cart.lines)
    assert shown[0].vehicle.id == "v1" and shown[0].quantity == 3 and shown[0].color == "蓝色"
    assert shown[2].vehicle.id == "v2" and shown[2].quantity == 1 and shown[2].color == "白色"


def test_reply_with_swapped_ids_falls_back(catalog):
    session = _two_vehicle_session(catalog, WrongIdTranslator(["v1", "v2"]))
    token = session.set_language("en")
    asyncio.run(session.sync_translation(token))
    assert session.display_lines() == list(session.cart.lines)


def test_failing_translator_shows_original_cart(catalog, failing_translator):
    session = _two_vehicle_session(catalog, failing_translator)
    before = list(session.cart.lines)
    token = session.set_language("en")
    assert not session.can_export

    assert asyncio.run(session.sync_translation(token))

    assert session.display_lines() == before
    assert session.language == "en"
    assert not session.is_translating
    assert session.can_export


def test_stale_result_is_discarded(catalog):
    translator = GatedTranslator()
    session = QuoteSession(catalog, translator, default_language="zh")
    session.add_vehicle("v1")

    async def scenario():
        first_token = session.set_language("en")
        first = asyncio.create_task(session.sync_translation(first_token))
        await asyncio.sleep(0)
        second_token = session.add_vehicle("v2")
        second_ok = await session.sync_translation(second_token)
        translator.gate.set()
        first_ok = await first
        return first_ok, second_ok

    first_ok, second_ok = asyncio.run(scenario())

    assert second_ok is True
    assert first_ok is False
    shown = session.display_lines()
    assert [line.vehicle.id for line in shown] == ["v1", "v2"]
    assert all(line.vehicle.name.startswith("EN ") for line in shown)
    assert not session.is_translating


def test_switching_back_is_immediate(catalog, translator):
    session = _two_vehicle_session(catalog, translator)
    asyncio.run(session.sync_translation(session.set_language("en")))
    assert session.set_language("zh") is None
    assert not session.is_translating
    assert session.display_lines()[0].vehicle.name == "电动三轮车"


def test_language_switch_on_empty_cart(catalog, translator):
    session = QuoteSession(catalog, translator, default_language="zh")
    assert session.set_language("en") is None
    assert session.language == "en"
    assert not session.is_translating
    assert not session.can_export


def test_unknown_language(catalog, translator):
    session = QuoteSession(catalog, translator)
    with pytest.raises(ValueError):
        session.set_language("fr")


def test_payload_never_carries_id_model_or_price(catalog):
    item = translatable_payload(catalog.get_vehicle("v1"), 0)
    assert item["ref"] == "0"
    assert "id" not in item and "model" not in item and "price" not in item
    assert item["colors"] == ["红色", "蓝色"]


def test_reattach_keeps_accessories_and_order(catalog):
    v1 = catalog.get_vehicle("v1")
    lines = [AccessoryLine(catalog.get_accessory("c1")), VehicleLine(v1, "红色", 2)]
    out = reattach(lines, [{"ref": "0", "name": "Tricycle", "colors": ["Red", "Blue"]}])
    assert out[0] == lines[0]
    assert out[1].vehicle.name == "Tricycle"
    assert out[1].vehicle.colors == ("Red", "Blue")
    assert out[1].color == "红色"
    assert out[1].quantity == 2


def test_reattach_rejects_wrong_count(catalog):
    lines = [VehicleLine(catalog.get_vehicle("v1"), "红色")]
    with pytest.raises(TranslationError):
        reattach(lines, [])


def test_openai_translator_without_key():
    t = OpenAITranslator(base_url="http://localhost:1", model="test")
    t.api_key = None
    with pytest.raises(TranslationError):
        asyncio.run(t.translate([{"ref": "0", "name": "车"}]))
