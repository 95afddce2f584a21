from datetime import datetime

import pytest

from evquote.services.cart import Cart
from evquote.services.render import render


ISSUED = datetime(2026, 3, 1, 9, 30)


@pytest.fixture
def cart(catalog):
    c = Cart(catalog)
    c.add_vehicle("v1", "红色")
    c.add_vehicle("v1", "红色")
    c.add_accessory("b1")
    return c


def test_quotation_columns_and_total(cart):
    doc = render(cart.lines, "en", "quotation", issued_at=ISSUED)
    assert doc.column_keys == ("index", "spec", "details", "unit_price", "quantity", "line_total")
    assert doc.grand_total == 20500
    assert doc.grand_total_display() == "¥20,500"
    assert doc.title == "QUOTATION"
    assert doc.date_label == "Date: 2026-03-01"
    assert doc.reference.startswith("Ref: Q-")


def test_price_list_has_no_quantity_or_total(cart):
    doc = render(cart.lines, "zh", "price_list", issued_at=ISSUED)
    assert doc.column_keys == ("index", "spec", "details", "colors", "unit_price")
    assert doc.grand_total is None
    assert doc.title == "价格表"
    assert doc.rows[0].colors == "红色, 蓝色"
    assert doc.rows[1].colors == "-"


def test_vehicle_row_content(cart):
    doc = render(cart.lines, "en", "quotation", issued_at=ISSUED)
    row = doc.rows[0]
    assert row.spec == ("BB-1", "电动三轮车", "Color: 红色")
    assert row.details[0] == "Motor: 1000W"
    assert row.details[2] == "Batt Support: 60V 20Ah"
    assert row.quantity == 2
    assert row.display("line_total") == "¥20,000"


def test_price_list_spec_has_no_selected_color(cart):
    doc = render(cart.lines, "en", "price_list", issued_at=ISSUED)
    assert doc.rows[0].spec == ("BB-1", "电动三轮车")


def test_accessory_row_uses_placeholder_details(cart):
    zh = render(cart.lines, "zh", "quotation", issued_at=ISSUED).rows[1]
    en = render(cart.lines, "en", "quotation", issued_at=ISSUED).rows[1]
    assert zh.spec == ("电池", "60V 20Ah")
    assert zh.details == ("原装配件",)
    assert en.details == ("Original Accessory",)


def test_switching_doc_type_does_not_touch_cart(cart):
    before = cart.lines
    render(cart.lines, "zh", "price_list")
    render(cart.lines, "zh", "quotation")
    render(cart.lines, "en", "price_list")
    assert cart.lines == before
    assert [line.quantity for line in cart.lines] == [2, 1]


def test_unknown_doc_type(cart):
    with pytest.raises(ValueError):
        render(cart.lines, "zh", "invoice")
