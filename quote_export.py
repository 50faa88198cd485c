# quote_export.py
# JSON and PDF export of a recalculated quote
from __future__ import annotations

import logging
import re
from typing import Any, Dict, List
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from officina_labels import ROW_LABELS, get_labels
from officina_utils import atomic_write_json
from quote_calc import GENERAL_FIELDS, HOUR_FIELDS, labor_hours, round2, to_decimal

logger = logging.getLogger("officina.export")

ANONYMIZED_FIELDS = ("client", "licensePlate", "chassis", "insurance")

_PDF_FORBIDDEN = re.compile(r'[<>:"/\\|?*]+')

GRID_STYLE = [
    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
    ("FONTSIZE", (0, 0), (-1, -1), 8),
    ("BACKGROUND", (0, 0), (-1, 0), colors.lightgrey),
    ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
    ("GRID", (0, 0), (-1, -1), 0.25, colors.grey),
]


def format_number(value: Any, lang: str = "it") -> str:
    """Two-decimal display string with thousands grouping, e.g. 1.234,50 in Italian."""
    text = f"{round2(to_decimal(value)):,.2f}"
    if lang == "it":
        text = text.replace(",", "\x00").replace(".", ",").replace("\x00", ".")
    return text


def format_money(value: Any, lang: str = "it") -> str:
    return f"{format_number(value, lang)} €"


def default_pdf_name(quote: Dict[str, Any]) -> str:
    general = quote.get("general") if isinstance(quote, dict) else None
    general = general if isinstance(general, dict) else {}
    parts = [
        str(general.get(k) or "").strip() for k in ("client", "licensePlate", "quoteDate")
    ]
    base = " - ".join(p for p in parts if p).strip() or "quote"
    return _PDF_FORBIDDEN.sub("_", base) + ".pdf"


def export_json(target_path: str, quote: Dict[str, Any]) -> str:
    atomic_write_json(target_path, quote)
    logger.info("Exported quote JSON to %s", target_path)
    return target_path


def _general_table(quote: Dict[str, Any], labels: Dict[str, str], anonymize: bool) -> Table:
    general = quote.get("general") or {}
    rows = []
    for field in GENERAL_FIELDS:
        if anonymize and field in ANONYMIZED_FIELDS:
            continue
        rows.append([labels[field], str(general.get(field) or "")])
    table = Table(rows, colWidths=[45 * mm, 120 * mm])
    table.setStyle(
        TableStyle(
            [
                ("FONTNAME", (0, 0), (0, -1), "Helvetica-Bold"),
                ("FONTSIZE", (0, 0), (-1, -1), 9),
                ("LINEBELOW", (0, 0), (-1, -1), 0.25, colors.lightgrey),
            ]
        )
    )
    return table


def _items_table(quote: Dict[str, Any], labels: Dict[str, str], lang: str, cell_style) -> Table:
    header = [labels[k] for k in ("source", "description") + HOUR_FIELDS + ("quantity", "price", "total")]
    data: List[List[Any]] = [header]
    for it in quote.get("items") or []:
        data.append(
            [
                Paragraph(escape(str(it.get("source") or "")), cell_style),
                Paragraph(escape(str(it.get("description") or "")), cell_style),
                *[format_number(it.get(k), lang) for k in HOUR_FIELDS],
                format_number(it.get("quantity"), lang),
                format_money(it.get("price"), lang),
                format_money(it.get("total"), lang),
            ]
        )
    hours = labor_hours(quote)
    data.append(
        [labels["total_labor_hours"], ""]
        + [format_number(hours[k], lang) for k in HOUR_FIELDS]
        + ["", "", ""]
    )
    col_widths = [22 * mm, 58 * mm] + [11 * mm] * 4 + [13 * mm, 20 * mm, 22 * mm]
    table = Table(data, colWidths=col_widths, repeatRows=1)
    table.setStyle(
        TableStyle(
            GRID_STYLE
            + [
                ("ALIGN", (2, 1), (-1, -1), "RIGHT"),
                ("SPAN", (0, -1), (1, -1)),
                ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
            ]
        )
    )
    return table


def _complementary_table(quote: Dict[str, Any], labels: Dict[str, str], lang: str) -> Table:
    header = [
        labels["comp_voci"],
        labels["quantity"],
        labels["price"],
        labels["imponibile"],
        labels["iva_percentage"],
        labels["imposta"],
        labels["total_with_iva"],
    ]
    data: List[List[Any]] = [header]
    comp = quote.get("complementary") or {}
    for key, label_key in ROW_LABELS:
        row = comp.get(key) or {}
        if key == "partsTotal":
            qty, price = "", ""
        else:
            qty, price = format_number(row.get("quantity"), lang), format_money(row.get("price"), lang)
        data.append(
            [
                labels[label_key],
                qty,
                price,
                format_money(row.get("taxable"), lang),
                format_number(row.get("tax"), lang),
                format_money(row.get("taxAmount"), lang),
                format_money(row.get("totalWithTax"), lang),
            ]
        )
    col_widths = [45 * mm, 14 * mm, 20 * mm, 24 * mm, 14 * mm, 22 * mm, 28 * mm]
    table = Table(data, colWidths=col_widths)
    table.setStyle(TableStyle(GRID_STYLE + [("ALIGN", (1, 1), (-1, -1), "RIGHT")]))
    return table


def _totals_table(quote: Dict[str, Any], labels: Dict[str, str], lang: str) -> Table:
    totals = quote.get("totals") or {}
    data = [
        [labels["subtotal"], format_money(totals.get("subtotal"), lang)],
        [labels["iva"], format_money(totals.get("iva"), lang)],
        [labels["final_total"], format_money(totals.get("totalWithIva"), lang)],
    ]
    table = Table(data, colWidths=[60 * mm, 35 * mm], hAlign="RIGHT")
    table.setStyle(
        TableStyle(
            [
                ("ALIGN", (1, 0), (1, -1), "RIGHT"),
                ("FONTSIZE", (0, 0), (-1, -1), 10),
                ("FONTNAME", (0, -1), (-1, -1), "Helvetica-Bold"),
                ("LINEABOVE", (0, -1), (-1, -1), 0.75, colors.black),
            ]
        )
    )
    return table


def export_pdf(target_path: str, quote: Dict[str, Any], anonymize: bool = False, lang: str = "it") -> str:
    """Render a recalculated quote to a PDF file at ``target_path``.

    With ``anonymize`` the client, plate, chassis and insurance are left out.
    """
    labels = get_labels(lang)
    styles = getSampleStyleSheet()
    cell_style = styles["BodyText"].clone("cell", fontSize=8, leading=10)

    story = [
        Paragraph(escape(labels["quoteTitle"]), styles["Title"]),
        _general_table(quote, labels, anonymize),
        Spacer(1, 6 * mm),
        _items_table(quote, labels, lang, cell_style),
        Spacer(1, 6 * mm),
        _complementary_table(quote, labels, lang),
        Spacer(1, 6 * mm),
        _totals_table(quote, labels, lang),
    ]

    doc = SimpleDocTemplate(
        target_path,
        pagesize=A4,
        leftMargin=12 * mm,
        rightMargin=12 * mm,
        topMargin=15 * mm,
        bottomMargin=15 * mm,
        title=labels["quoteTitle"],
    )
    doc.build(story)
    logger.info("Exported quote PDF to %s (anonymize=%s)", target_path, anonymize)
    return target_path
