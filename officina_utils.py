# officina_utils.py
# Handler utilities for Officina quote data
from __future__ import annotations

import datetime
import json
import os
import re
import sys
import tempfile
from typing import Any, Dict, Optional

from quote_calc import COMPLEMENTARY_ROWS, GENERAL_FIELDS, default_row, recalculate_quote

QUOTES_DIR_ENV = "OFFICINA_QUOTES_DIR"
QUOTES_DIR_NAME = "preventivi-officina"

_FORBIDDEN_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]+')


def get_resource_path(rel_path: str) -> str:
    if getattr(sys, "frozen", False):
        return os.path.join(sys._MEIPASS, rel_path)
    return os.path.join(os.path.dirname(__file__), rel_path)


def user_data_dir() -> str:
    home = os.path.expanduser("~")
    _userDirectory = os.path.join(home, ".officina")
    os.makedirs(_userDirectory, exist_ok=True)
    return _userDirectory


def default_quotes_dir() -> str:
    override = os.environ.get(QUOTES_DIR_ENV)
    if override:
        return os.path.abspath(os.path.expanduser(override))
    return os.path.join(os.path.expanduser("~"), "Documents", QUOTES_DIR_NAME)


def atomic_write_json(path: str, data: Any, indent: int = 2) -> None:
    dirpath = os.path.dirname(os.path.abspath(path))
    os.makedirs(dirpath, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=dirpath, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as tmpf:
            json.dump(data, tmpf, indent=indent, ensure_ascii=False, default=str)
        os.replace(tmp_path, path)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)


def load_json_file(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a quote document")
    return data


def today_iso() -> str:
    return datetime.date.today().isoformat()


def create_quote(quote_date: Optional[str] = None) -> Dict[str, Any]:
    """Fresh quote with default prices and 22% VAT, already recalculated."""
    general = {field: "" for field in GENERAL_FIELDS}
    general["quoteDate"] = quote_date or today_iso()
    quote = {
        "general": general,
        "items": [],
        "complementary": {name: default_row(name) for name in COMPLEMENTARY_ROWS},
        "totals": {"subtotal": 0, "iva": 0, "totalWithIva": 0},
    }
    return recalculate_quote(quote)


def safe_filename(name: str, max_len: int = 120) -> str:
    fname = _FORBIDDEN_CHARS.sub("_", str(name or "")).strip().strip(".")
    return fname[:max_len]


def json_filename(name: str) -> str:
    """Sanitised file name with a single .json suffix."""
    base = str(name or "").strip()
    if base.lower().endswith(".json"):
        base = base[: -len(".json")]
    base = safe_filename(base)
    if not base:
        raise ValueError(f"Invalid quote file name: {name!r}")
    return f"{base}.json"


def _filename_date(date_str: str) -> str:
    if not date_str:
        return today_iso()
    return date_str.strip().replace("/", "-")


def generate_filename(general: Dict[str, Any]) -> str:
    """Build the autosave file name from the quote's general fields."""
    general = general if isinstance(general, dict) else {}
    license_plate = str(general.get("licensePlate") or "").strip()
    model = str(general.get("model") or "").strip()
    client = str(general.get("client") or "").strip()
    date = _filename_date(str(general.get("quoteDate") or ""))

    if license_plate and model:
        stem = f"{license_plate}_{model}_{date}"
    elif client and model:
        stem = f"{client}_{model}_{date}"
    elif license_plate and client:
        stem = f"{license_plate}_{client}_{date}"
    elif client:
        stem = f"{client}_no-model_{date}"
    else:
        stem = f"no-info_{date}"
    return json_filename(stem)


def display_name(preview: Dict[str, Any], fallback: str = "") -> str:
    """Short human label for a stored quote: first two non-empty identifying fields."""
    ordered = [
        preview.get(k)
        for k in ("licensePlate", "model", "client", "chassis", "year", "insurance")
    ]
    ordered = [str(v).strip() for v in ordered if v is not None and str(v).strip()]
    if not ordered:
        return fallback
    return " - ".join(ordered[:2])


def is_iso_date(value: Any) -> bool:
    return isinstance(value, str) and re.fullmatch(r"\d{4}-\d{2}-\d{2}", value) is not None
