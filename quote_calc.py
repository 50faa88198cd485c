# quote_calc.py
# Recalculation engine for body shop quotes (preventivi)
from __future__ import annotations

import copy
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation, localcontext
from typing import Any, Dict, List, Optional

DEFAULT_TAX = 22
DEFAULT_PRICES = {
    "parts": 0,
    "bodywork": 40,
    "mechanics": 40,
    "consumables": 24,
}

GENERAL_FIELDS = (
    "client",
    "licensePlate",
    "model",
    "year",
    "chassis",
    "insurance",
    "quoteDate",
)
HOUR_FIELDS = ("SR", "LA", "VE", "ME")
ITEM_TEXT_FIELDS = ("source", "description")
ITEM_NUMBER_FIELDS = HOUR_FIELDS + ("quantity", "price")

PRICED_ROWS = ("parts", "bodywork", "mechanics", "consumables")
AUTO_QTY_ROWS = ("bodywork", "mechanics", "consumables")
COMPLEMENTARY_ROWS = PRICED_ROWS + ("partsTotal",)

# Values at or above this magnitude make no sense as money or hours.
_MAX_MAGNITUDE = Decimal("1e15")
_CENTS = Decimal("0.01")
_ZERO = Decimal(0)


def to_decimal(value: Any) -> Decimal:
    """Coerce raw form input to a Decimal. Anything malformed becomes 0."""
    if value is None or isinstance(value, bool):
        return _ZERO
    if isinstance(value, Decimal):
        d = value
    elif isinstance(value, (int, float)):
        try:
            d = Decimal(str(value))
        except InvalidOperation:
            return _ZERO
    elif isinstance(value, str):
        s = value.strip().replace(",", ".", 1)
        if not s:
            return _ZERO
        try:
            d = Decimal(s)
        except InvalidOperation:
            return _ZERO
    else:
        return _ZERO

    if not d.is_finite() or abs(d) >= _MAX_MAGNITUDE:
        return _ZERO
    return d


def round2(value: Decimal) -> Decimal:
    return value.quantize(_CENTS, rounding=ROUND_HALF_UP)


def _out(value: Decimal) -> float:
    # adding 0.0 folds -0.0 into 0.0
    return float(value) + 0.0


def _tax_pct(row: Dict[str, Any]) -> Decimal:
    tax = row.get("tax")
    if tax is None or (isinstance(tax, str) and not tax.strip()):
        return Decimal(DEFAULT_TAX)
    return to_decimal(tax)


def default_row(name: str) -> Dict[str, Any]:
    if name == "partsTotal":
        return {"total": 0, "taxable": 0, "tax": DEFAULT_TAX, "taxAmount": 0, "totalWithTax": 0}
    return {
        "quantity": 0,
        "price": DEFAULT_PRICES[name],
        "tax": DEFAULT_TAX,
        "total": 0,
        "taxable": 0,
        "taxAmount": 0,
        "totalWithTax": 0,
    }


def blank_item() -> Dict[str, Any]:
    return {
        "source": "",
        "description": "",
        "SR": 0,
        "LA": 0,
        "VE": 0,
        "ME": 0,
        "quantity": 0,
        "price": 0,
        "total": 0,
    }


def _normalize(quote: Dict[str, Any]) -> None:
    general = quote.get("general")
    if not isinstance(general, dict):
        general = quote["general"] = {}
    for field in GENERAL_FIELDS:
        general.setdefault(field, "")

    items = quote.get("items")
    if not isinstance(items, list):
        items = []
    items = [it for it in items if isinstance(it, dict)]
    for it in items:
        for key, val in blank_item().items():
            it.setdefault(key, val)
    quote["items"] = items

    comp = quote.get("complementary")
    if not isinstance(comp, dict):
        comp = quote["complementary"] = {}
    for name in COMPLEMENTARY_ROWS:
        row = comp.get(name)
        if not isinstance(row, dict):
            comp[name] = default_row(name)
            continue
        for key, val in default_row(name).items():
            row.setdefault(key, val)

    if not isinstance(quote.get("totals"), dict):
        quote["totals"] = {}


def _apply_tax(row: Dict[str, Any], total: Decimal) -> Decimal:
    """Fill the taxable/VAT fields of a row from its total, return the VAT amount."""
    tax_amount = round2(total * _tax_pct(row) / 100)
    row["total"] = _out(total)
    row["taxable"] = _out(total)
    row["taxAmount"] = _out(tax_amount)
    row["totalWithTax"] = _out(total + tax_amount)
    return tax_amount


def recalculate_quote(quote: Dict[str, Any]) -> Dict[str, Any]:
    """Recompute every derived field of a quote document from its raw inputs.

    The document is updated in place and returned. Derived money fields are
    rounded to cents as soon as they are computed and every sum is built from
    those rounded parts, so running this twice gives the same document.
    Malformed numbers count as zero; this function does not raise for any
    document content.
    """
    if not isinstance(quote, dict):
        quote = {}

    with localcontext() as ctx:
        ctx.prec = 60
        _normalize(quote)
        items: List[Dict[str, Any]] = quote["items"]
        comp = quote["complementary"]

        parts_sum = _ZERO
        body_qty = _ZERO
        mech_qty = _ZERO
        cons_qty = _ZERO
        for it in items:
            total = round2(to_decimal(it.get("quantity")) * to_decimal(it.get("price")))
            it["total"] = _out(total)
            parts_sum += total

            ve = to_decimal(it.get("VE"))
            body_qty += to_decimal(it.get("SR")) + to_decimal(it.get("LA")) + ve
            mech_qty += to_decimal(it.get("ME"))
            # VE is billed both as bodywork labour and as consumables
            cons_qty += ve

        subtotal = parts_sum
        iva = _apply_tax(comp["partsTotal"], parts_sum)

        auto_qty = {"bodywork": body_qty, "mechanics": mech_qty, "consumables": cons_qty}
        for name, qty in auto_qty.items():
            comp[name]["quantity"] = _out(qty)

        for name in PRICED_ROWS:
            row = comp[name]
            qty = auto_qty[name] if name in auto_qty else to_decimal(row.get("quantity"))
            total = round2(qty * to_decimal(row.get("price")))
            subtotal += total
            iva += _apply_tax(row, total)

        totals = quote["totals"]
        totals["subtotal"] = _out(subtotal)
        totals["iva"] = _out(iva)
        totals["totalWithIva"] = _out(subtotal + iva)

    return quote


def labor_hours(quote: Dict[str, Any]) -> Dict[str, float]:
    """Per-category hour totals across all line items."""
    sums = {field: _ZERO for field in HOUR_FIELDS}
    items = quote.get("items") if isinstance(quote, dict) else None
    for it in items if isinstance(items, list) else []:
        if not isinstance(it, dict):
            continue
        for field in HOUR_FIELDS:
            sums[field] += to_decimal(it.get(field))
    return {field: _out(val) for field, val in sums.items()}


def is_blank_item(item: Dict[str, Any]) -> bool:
    for field in ITEM_TEXT_FIELDS:
        if str(item.get(field) or "").strip():
            return False
    return all(to_decimal(item.get(field)) <= 0 for field in ITEM_NUMBER_FIELDS)


# ---------------------------------------------------------------------------
# Edit operations. Each one works on a copy and returns the recalculated copy.
# ---------------------------------------------------------------------------


def set_general_field(quote: Dict[str, Any], field: str, value: Any) -> Dict[str, Any]:
    if field not in GENERAL_FIELDS:
        raise ValueError(f"Unknown general field: {field!r}")
    nxt = recalculate_quote(copy.deepcopy(quote))
    nxt["general"][field] = "" if value is None else str(value)
    return nxt


def set_item_field(quote: Dict[str, Any], index: int, field: str, value: Any) -> Dict[str, Any]:
    if field not in ITEM_TEXT_FIELDS + ITEM_NUMBER_FIELDS:
        raise ValueError(f"Field {field!r} is not editable on a line item")
    nxt = recalculate_quote(copy.deepcopy(quote))
    items = nxt["items"]
    if index == len(items):
        items.append(blank_item())
    elif not 0 <= index < len(items):
        raise IndexError(f"Item index {index} out of range")
    items[index][field] = value
    return recalculate_quote(nxt)


def set_complementary_field(
    quote: Dict[str, Any], group: str, field: str, value: Any
) -> Dict[str, Any]:
    editable = field == "tax" and group in COMPLEMENTARY_ROWS
    editable = editable or (field == "price" and group in PRICED_ROWS)
    editable = editable or (group, field) == ("parts", "quantity")
    if not editable:
        raise ValueError(f"{group}.{field} is computed and cannot be edited")
    nxt = recalculate_quote(copy.deepcopy(quote))
    nxt["complementary"][group][field] = value
    return recalculate_quote(nxt)


def add_item(quote: Dict[str, Any], item: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    nxt = recalculate_quote(copy.deepcopy(quote))
    new_item = blank_item()
    if item:
        new_item.update(copy.deepcopy(item))
    nxt["items"].append(new_item)
    return recalculate_quote(nxt)


def remove_item(quote: Dict[str, Any], index: int) -> Dict[str, Any]:
    nxt = recalculate_quote(copy.deepcopy(quote))
    if not 0 <= index < len(nxt["items"]):
        raise IndexError(f"Item index {index} out of range")
    nxt["items"].pop(index)
    return recalculate_quote(nxt)


def prune_empty_items(quote: Dict[str, Any]) -> Dict[str, Any]:
    nxt = recalculate_quote(copy.deepcopy(quote))
    nxt["items"] = [it for it in nxt["items"] if not is_blank_item(it)]
    return recalculate_quote(nxt)
