import json

import pytest

from evquote.models import Accessory, Vehicle
from evquote.utils.validators import ValidationError, parse_list, parse_price


def test_upsert_assigns_id_and_roundtrips(store):
    saved = store.upsert(Vehicle(id="", model=" BB-9 ", name="货运三轮", price=6800, colors=("红", "红", " 蓝 ")))
    assert saved.id
    assert saved.model == "BB-9"
    assert store.get_vehicle(saved.id) == saved
    assert saved.colors == ("红", "蓝")


def test_upsert_updates_in_place(store):
    store.upsert(Vehicle(id="v1", model="BB-1", name="a", price=1))
    store.upsert(Vehicle(id="v1", model="BB-1", name="b", price=2))
    assert [v.name for v in store.list_vehicles()] == ["b"]


@pytest.mark.parametrize(
    "record",
    [
        Vehicle(id="", model="", name="x"),
        Vehicle(id="", model="BB", name=" "),
        Vehicle(id="", model="BB", name="x", price=-1),
        Accessory(id="", category="tire", voltage="60V", capacity="20Ah"),
        Accessory(id="", category="battery", voltage="", capacity="20Ah"),
    ],
)
def test_invalid_records_are_not_written(store, record):
    with pytest.raises(ValidationError):
        store.upsert(record)
    assert store.stats() == {"vehicles": 0, "battery": 0, "charger": 0}


def test_search_and_category_filter(catalog):
    assert [v.id for v in catalog.list_vehicles(search="bb-2")] == ["v2"]
    assert [v.id for v in catalog.list_vehicles(search="代步")] == ["v3"]
    assert [a.id for a in catalog.list_accessories(category="charger")] == ["c1"]
    assert [a.id for a in catalog.list_accessories(search="20ah")] == ["b1"]


def test_stats(catalog):
    assert catalog.stats() == {"vehicles": 3, "battery": 1, "charger": 1}


def test_delete(catalog):
    assert catalog.delete("v3", "vehicle")
    assert not catalog.delete("v3", "vehicle")
    assert catalog.get_vehicle("v3") is None
    with pytest.raises(ValidationError):
        catalog.delete("v1", "tire")


def test_legacy_import(store):
    imported, skipped = store.import_json({
        "products": [
            {"id": "1001", "model": "BB-5", "name": "电动车", "colors": "红色, 黑色,", "priceTaxInc": "4200",
             "brakeTire": "碟刹", "battery": "60V 20Ah"},
            {"id": "1002", "model": "", "name": "no model"},
        ],
        "accessories": [
            {"id": "2001", "category": "battery", "voltage": "72V", "capacity": "32Ah", "price": 1300},
            {"id": "2002", "category": "wheel", "voltage": "-", "capacity": "-"},
        ],
    })
    assert (imported, skipped) == (2, 2)
    v = store.get_vehicle("1001")
    assert v.colors == ("红色", "黑色")
    assert v.price == 4200
    assert v.brake_tire == "碟刹"
    assert v.battery == ("60V 20Ah",)


def test_export_then_import_keeps_catalog(catalog, tmp_path):
    from evquote.db.sqlite import CatalogStore

    other = CatalogStore(str(tmp_path / "other.db"))
    other.init_db()
    assert other.import_json(catalog.export_json()) == (5, 0)
    assert other.list_vehicles() == catalog.list_vehicles()


def test_logo_asset(store):
    assert store.get_logo() is None
    store.set_logo("data:image/png;base64,AAAA")
    store.set_logo("data:image/png;base64,BBBB")
    assert store.get_logo() == "data:image/png;base64,BBBB"
    store.clear_logo()
    assert store.get_logo() is None


def test_parsers():
    assert parse_price("12,5") == 12.5
    assert parse_price("") == 0.0
    with pytest.raises(ValidationError):
        parse_price("abc")
    assert parse_list("红色，蓝色; 红色\n白色") == ["红色", "蓝色", "白色"]


@pytest.mark.parametrize("text", ["nan", "NaN", "inf", "-inf", "1e999"])
def test_non_finite_prices_are_rejected(store, text):
    with pytest.raises(ValidationError):
        parse_price(text)
    with pytest.raises(ValidationError):
        store.upsert(Vehicle(id="", model="A", name="B", price=float(text)))
    assert store.stats()["vehicles"] == 0


def test_import_skips_non_finite_prices(store):
    payload = json.loads(
        '{"products": [{"id": "1", "model": "A", "name": "a", "price": NaN},'
        ' {"id": "2", "model": "B", "name": "b", "price": Infinity},'
        ' {"id": "3", "model": "C", "name": "c", "price": 100}]}'
    )
    assert store.import_json(payload) == (1, 2)
    assert [v.id for v in store.list_vehicles()] == ["3"]


def test_import_skips_non_object_entries(store):
    valid = {"id": "1001", "model": "BB-5", "name": "电动车", "price": 4200}
    imported, skipped = store.import_json({
        "products": ["junk", 42, None, valid, ["nested"]],
        "accessories": [{"id": "2001", "category": "battery", "voltage": "72V", "capacity": "32Ah"}, "junk"],
    })
    assert (imported, skipped) == (2, 5)
    assert store.get_vehicle("1001").model == "BB-5"
    assert store.get_accessory("2001") is not None


def test_import_skips_lists_that_are_not_lists(store):
    assert store.import_json({"products": "BB-1,BB-2", "accessories": {"id": "x"}}) == (0, 2)
    assert store.stats() == {"vehicles": 0, "battery": 0, "charger": 0}
