import copy
import json
import math
import os
import sys
import importlib.util
from decimal import Decimal

import pytest


def _load_module_by_path(name: str, rel_path: str):
    if name in sys.modules:
        return sys.modules[name]
    path = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", rel_path))
    spec = importlib.util.spec_from_file_location(name, path)
    assert spec and spec.loader
    module = importlib.util.module_from_spec(spec)
    sys.modules[name] = module
    spec.loader.exec_module(module)
    return module


calc = _load_module_by_path("quote_calc", "quote_calc.py")


def _item(**kw):
    it = {"source": "", "description": "", "SR": 0, "LA": 0, "VE": 0, "ME": 0, "quantity": 0, "price": 0}
    it.update(kw)
    return it


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, Decimal(0)),
        ("", Decimal(0)),
        ("   ", Decimal(0)),
        ("12,50", Decimal("12.50")),
        (" 3 ", Decimal(3)),
        ("7.25", Decimal("7.25")),
        (4, Decimal(4)),
        (0.1, Decimal("0.1")),
        ("abc", Decimal(0)),
        ("1,5,0", Decimal(0)),
        (float("nan"), Decimal(0)),
        (float("inf"), Decimal(0)),
        ("NaN", Decimal(0)),
        ("1e999", Decimal(0)),
        (True, Decimal(0)),
        ([1, 2], Decimal(0)),
        ({"a": 1}, Decimal(0)),
    ],
)
def test_to_decimal_coercion(raw, expected):
    assert calc.to_decimal(raw) == expected


def test_item_total_is_quantity_times_price():
    q = calc.recalculate_quote({"items": [_item(quantity="2", price="12,50")]})
    assert q["items"][0]["total"] == 25.0


def test_item_total_malformed_inputs_are_zero():
    q = calc.recalculate_quote(
        {"items": [_item(quantity=None, price=None), {"price": "abc", "quantity": 3}]}
    )
    assert q["items"][0]["total"] == 0.0
    assert q["items"][1]["total"] == 0.0


def test_item_total_rounds_half_up_to_cents():
    q = calc.recalculate_quote({"items": [_item(quantity=3, price="0.335")]})
    assert q["items"][0]["total"] == 1.01


def test_parts_total_aggregates_items():
    q = calc.recalculate_quote(
        {"items": [_item(quantity=2, price=10), _item(quantity="1,5", price=3)]}
    )
    pt = q["complementary"]["partsTotal"]
    assert pt["total"] == 24.5
    assert pt["taxable"] == 24.5
    assert pt["taxAmount"] == 5.39
    assert pt["totalWithTax"] == 29.89


def test_auto_quantities_count_ve_twice():
    q = calc.recalculate_quote(
        {"items": [_item(SR=1, LA=2, VE=3, ME=4), _item(SR=0, LA=0, VE=1, ME=0)]}
    )
    comp = q["complementary"]
    assert comp["bodywork"]["quantity"] == 7
    assert comp["mechanics"]["quantity"] == 4
    assert comp["consumables"]["quantity"] == 4


def test_auto_quantities_overwrite_user_values():
    q = {
        "items": [_item(SR=2)],
        "complementary": {"bodywork": {"quantity": 99, "price": 40, "tax": 22}},
    }
    calc.recalculate_quote(q)
    assert q["complementary"]["bodywork"]["quantity"] == 2
    assert q["complementary"]["bodywork"]["total"] == 80.0


def test_vat_math_on_parts_row():
    q = calc.recalculate_quote({"complementary": {"parts": {"quantity": 2, "price": 40, "tax": 22}}})
    row = q["complementary"]["parts"]
    assert row["total"] == 80.0
    assert row["taxable"] == 80.0
    assert row["taxAmount"] == 17.6
    assert row["totalWithTax"] == 97.6


def test_missing_tax_defaults_to_22_but_explicit_zero_is_kept():
    q = calc.recalculate_quote(
        {
            "complementary": {
                "parts": {"quantity": 1, "price": 100, "tax": ""},
                "mechanics": {"price": 50, "tax": 0},
            },
            "items": [_item(ME=2)],
        }
    )
    comp = q["complementary"]
    assert comp["parts"]["taxAmount"] == 22.0
    assert comp["mechanics"]["total"] == 100.0
    assert comp["mechanics"]["taxAmount"] == 0.0


def test_empty_document_totals_are_zero():
    q = calc.recalculate_quote({})
    assert q["totals"] == {"subtotal": 0.0, "iva": 0.0, "totalWithIva": 0.0}
    assert q["items"] == []


def test_single_item_grand_total():
    q = calc.recalculate_quote({"items": [_item(quantity=1, price=100)]})
    comp = q["complementary"]
    assert comp["partsTotal"]["total"] == 100.0
    for name in ("parts", "bodywork", "mechanics", "consumables"):
        assert comp[name]["total"] == 0.0
    assert q["totals"]["subtotal"] == 100.0
    assert q["totals"]["iva"] == 22.0
    assert q["totals"]["totalWithIva"] == 122.0


def test_missing_complementary_gets_documented_defaults():
    q = calc.recalculate_quote({"items": []})
    comp = q["complementary"]
    assert set(comp) == {"parts", "bodywork", "mechanics", "consumables", "partsTotal"}
    assert comp["parts"]["price"] == 0
    assert comp["bodywork"]["price"] == 40
    assert comp["mechanics"]["price"] == 40
    assert comp["consumables"]["price"] == 24
    assert all(comp[name]["tax"] == 22 for name in comp)


def test_partial_row_is_filled_from_defaults():
    q = calc.recalculate_quote(
        {"items": [_item(SR=2)], "complementary": {"bodywork": {"price": 50}}}
    )
    row = q["complementary"]["bodywork"]
    assert row["tax"] == 22
    assert row["total"] == 100.0
    assert row["totalWithTax"] == 122.0


def test_garbage_structure_does_not_raise():
    q = calc.recalculate_quote(
        {"items": "nope", "complementary": {"parts": "x", "bodywork": None}, "general": 5}
    )
    assert q["items"] == []
    assert q["complementary"]["parts"]["total"] == 0.0
    assert q["general"]["client"] == ""

    q2 = calc.recalculate_quote({"items": [None, 3, _item(quantity=1, price=5)]})
    assert len(q2["items"]) == 1
    assert q2["totals"]["subtotal"] == 5.0

    assert calc.recalculate_quote(None)["totals"]["totalWithIva"] == 0.0


def test_huge_values_are_treated_as_zero():
    q = calc.recalculate_quote({"items": [_item(quantity="1e20", price="9e30")]})
    assert q["items"][0]["total"] == 0.0


def test_negative_zero_is_normalised():
    q = calc.recalculate_quote({"items": [_item(quantity=-1, price=0)]})
    assert math.copysign(1, q["items"][0]["total"]) == 1.0


def test_totals_add_up():
    q = calc.recalculate_quote(
        {
            "items": [_item(quantity=2, price="19,99", SR=1, LA="0,5", VE=1, ME=2)],
            "complementary": {"parts": {"quantity": 1, "price": "15"}},
        }
    )
    comp = q["complementary"]
    rows = [comp[n] for n in ("partsTotal", "parts", "bodywork", "mechanics", "consumables")]
    subtotal = sum(Decimal(str(r["total"])) for r in rows)
    iva = sum(Decimal(str(r["taxAmount"])) for r in rows)
    assert Decimal(str(q["totals"]["subtotal"])) == subtotal
    assert Decimal(str(q["totals"]["iva"])) == iva
    assert Decimal(str(q["totals"]["totalWithIva"])) == subtotal + iva
    for r in rows:
        assert r["taxable"] == r["total"]
        assert Decimal(str(r["totalWithTax"])) == Decimal(str(r["total"])) + Decimal(str(r["taxAmount"]))


def test_recalculation_is_idempotent():
    raw = {
        "general": {"client": "Rossi"},
        "items": [
            _item(quantity="3", price="0,335", SR="1,25", VE=2),
            _item(quantity=7, price=1.1, ME="0.75", LA=1),
        ],
        "complementary": {"parts": {"quantity": "2", "price": "12,345", "tax": "10"}},
    }
    once = calc.recalculate_quote(copy.deepcopy(raw))
    twice = calc.recalculate_quote(copy.deepcopy(once))
    assert json.dumps(once, sort_keys=True) == json.dumps(twice, sort_keys=True)


def test_raw_inputs_are_left_as_typed():
    q = calc.recalculate_quote({"items": [_item(quantity="2", price="12,50")]})
    assert q["items"][0]["price"] == "12,50"


def test_labor_hours():
    q = {"items": [_item(SR=1, LA="0,5", VE=2, ME=1), _item(SR=2, VE="x")]}
    assert calc.labor_hours(q) == {"SR": 3.0, "LA": 0.5, "VE": 2.0, "ME": 1.0}


def test_set_item_field_appends_ghost_row_and_leaves_input_untouched():
    base = calc.recalculate_quote({})
    nxt = calc.set_item_field(base, 0, "price", "10")
    nxt = calc.set_item_field(nxt, 0, "quantity", "3")
    assert base["items"] == []
    assert nxt["items"][0]["total"] == 30.0
    assert nxt["totals"]["totalWithIva"] == 36.6


def test_set_item_field_rejects_bad_targets():
    base = calc.recalculate_quote({})
    with pytest.raises(IndexError):
        calc.set_item_field(base, 3, "price", 1)
    with pytest.raises(ValueError):
        calc.set_item_field(base, 0, "total", 1)


def test_set_complementary_field_only_allows_user_fields():
    base = calc.recalculate_quote({})
    nxt = calc.set_complementary_field(base, "parts", "quantity", "2")
    nxt = calc.set_complementary_field(nxt, "parts", "price", "40")
    assert nxt["complementary"]["parts"]["total"] == 80.0
    nxt = calc.set_complementary_field(nxt, "partsTotal", "tax", 10)
    assert nxt["complementary"]["partsTotal"]["tax"] == 10
    with pytest.raises(ValueError):
        calc.set_complementary_field(base, "bodywork", "quantity", 5)
    with pytest.raises(ValueError):
        calc.set_complementary_field(base, "partsTotal", "price", 5)
    with pytest.raises(ValueError):
        calc.set_complementary_field(base, "parts", "total", 5)


def test_set_general_field():
    base = calc.recalculate_quote({})
    nxt = calc.set_general_field(base, "licensePlate", "AB123CD")
    assert nxt["general"]["licensePlate"] == "AB123CD"
    assert base["general"]["licensePlate"] == ""
    with pytest.raises(ValueError):
        calc.set_general_field(base, "color", "red")


def test_add_remove_and_prune_items():
    q = calc.add_item(calc.recalculate_quote({}), {"description": "Paraurti", "quantity": 1, "price": 200})
    q = calc.add_item(q)
    assert len(q["items"]) == 2
    pruned = calc.prune_empty_items(q)
    assert len(pruned["items"]) == 1
    removed = calc.remove_item(pruned, 0)
    assert removed["items"] == []
    assert removed["totals"]["subtotal"] == 0.0
    with pytest.raises(IndexError):
        calc.remove_item(removed, 0)
