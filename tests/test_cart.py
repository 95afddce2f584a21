from dataclasses import replace

from evquote.models import AccessoryLine, VehicleLine
from evquote.services.cart import Cart, resolve_color


def test_same_vehicle_and_color_merges(catalog):
    cart = Cart(catalog)
    assert cart.add_vehicle("v1", "红色") == 0
    assert cart.add_vehicle("v1", "红色") == 0
    assert len(cart) == 1
    assert cart.lines[0].quantity == 2


def test_different_colors_are_separate_lines(catalog):
    cart = Cart(catalog)
    cart.add_vehicle("v1", "红色")
    cart.add_vehicle("v1", "蓝色")
    assert [line.color for line in cart.lines] == ["红色", "蓝色"]
    assert all(line.quantity == 1 for line in cart.lines)


def test_merge_keeps_line_position(catalog):
    cart = Cart(catalog)
    cart.add_vehicle("v1")
    cart.add_accessory("b1")
    cart.add_vehicle("v2")
    cart.add_accessory("b1")
    assert [line.item_id for line in cart.lines] == ["v1", "b1", "v2"]
    assert cart.lines[1].quantity == 2


def test_default_color_is_first_listed_or_placeholder(catalog):
    cart = Cart(catalog)
    cart.add_vehicle("v1")
    cart.add_vehicle("v3")
    assert cart.lines[0].color == "红色"
    assert cart.lines[1].color == "Standard"


def test_unknown_color_is_rejected(catalog):
    cart = Cart(catalog)
    assert cart.add_vehicle("v1", "绿色") is None
    assert cart.is_empty()
    assert resolve_color(catalog.get_vehicle("v1"), "绿色") is None


def test_unknown_ids_do_nothing(catalog):
    cart = Cart(catalog)
    assert cart.add_vehicle("nope") is None
    assert cart.add_accessory("nope") is None
    assert cart.is_empty()


def test_set_quantity_below_one_keeps_previous(catalog):
    cart = Cart(catalog)
    cart.add_vehicle("v1")
    assert cart.set_quantity(0, 5)
    assert not cart.set_quantity(0, 0)
    assert not cart.set_quantity(0, -3)
    assert cart.lines[0].quantity == 5


def test_bad_index_is_rejected(catalog):
    cart = Cart(catalog)
    cart.add_vehicle("v1")
    assert not cart.remove_line(3)
    assert not cart.remove_line(-1)
    assert not cart.set_quantity(7, 2)
    assert len(cart) == 1


def test_total_matches_lines_after_any_edits(catalog):
    cart = Cart(catalog)
    cart.add_vehicle("v1", "红色")
    cart.add_vehicle("v1", "蓝色")
    cart.add_vehicle("v1", "红色")
    cart.add_accessory("b1")
    cart.add_vehicle("v2")
    cart.set_quantity(1, 4)
    cart.remove_line(3)
    cart.add_accessory("c1")
    assert cart.total() == sum(line.price * line.quantity for line in cart.lines)
    assert cart.total() == 10000 * 2 + 10000 * 4 + 500 + 120


def test_quotation_scenario_total(catalog):
    cart = Cart(catalog)
    cart.add_vehicle("v1")
    cart.add_vehicle("v1")
    cart.add_accessory("b1")
    assert cart.total() == 20500


def test_lines_are_snapshots(catalog):
    cart = Cart(catalog)
    cart.add_vehicle("v2")
    v = catalog.get_vehicle("v2")
    catalog.upsert(replace(v, price=9999))
    assert cart.lines[0].price == 3500


def test_line_kinds(catalog):
    cart = Cart(catalog)
    cart.add_vehicle("v1")
    cart.add_accessory("c1")
    assert isinstance(cart.lines[0], VehicleLine) and cart.lines[0].kind == "vehicle"
    assert isinstance(cart.lines[1], AccessoryLine) and cart.lines[1].kind == "accessory"
