# quote_store.py
# Flat directory of quote documents, one pretty-printed JSON file per quote
from __future__ import annotations

import logging
import os
from typing import Any, Dict, List, Optional

from officina_utils import (
    atomic_write_json,
    default_quotes_dir,
    generate_filename,
    is_iso_date,
    json_filename,
    load_json_file,
)
from quote_calc import GENERAL_FIELDS

logger = logging.getLogger("officina.store")

ITEM_SEARCH_FIELDS = ("description", "source")


def _preview(data: Dict[str, Any]) -> Dict[str, Any]:
    general = data.get("general")
    general = general if isinstance(general, dict) else {}
    preview = {field: str(general.get(field) or "") for field in GENERAL_FIELDS}
    totals = data.get("totals")
    total = totals.get("totalWithIva") if isinstance(totals, dict) else None
    preview["totalWithIva"] = total if isinstance(total, (int, float)) else 0
    return preview


def _score(value: str, needle: str) -> int:
    hay = value.casefold()
    if hay == needle:
        return 3
    if hay.startswith(needle):
        return 2
    if needle in hay:
        return 1
    return 0


class QuoteStore:
    """Quote documents stored as ``<name>.json`` files in one directory.

    The store only moves documents to and from disk. It never recalculates,
    so callers hand it documents that are already consistent.
    """

    def __init__(self, base_dir: Optional[str] = None):
        self.base_dir = base_dir or default_quotes_dir()
        os.makedirs(self.base_dir, exist_ok=True)

    def path_for(self, filename: str) -> str:
        return os.path.join(self.base_dir, json_filename(filename))

    def exists(self, filename: str) -> bool:
        return os.path.isfile(self.path_for(filename))

    def read(self, filename: str) -> Dict[str, Any]:
        path = self.path_for(filename)
        if not os.path.isfile(path):
            raise FileNotFoundError(f"Quote not found: {os.path.basename(path)}")
        return load_json_file(path)

    def write(self, filename: str, data: Dict[str, Any]) -> str:
        path = self.path_for(filename)
        atomic_write_json(path, data)
        logger.info("Saved quote %s", path)
        return path

    def autosave(self, data: Dict[str, Any]) -> str:
        return self.write(generate_filename(data.get("general") or {}), data)

    def delete(self, filename: str) -> None:
        path = self.path_for(filename)
        if not os.path.isfile(path):
            raise FileNotFoundError(f"Quote not found: {os.path.basename(path)}")
        os.remove(path)
        logger.info("Deleted quote %s", path)

    def rename(self, old_name: str, new_name: str) -> str:
        src = self.path_for(old_name)
        dst = self.path_for(new_name)
        if not os.path.isfile(src):
            raise FileNotFoundError(f"Quote not found: {os.path.basename(src)}")
        if src == dst:
            return dst
        if os.path.exists(dst):
            raise FileExistsError(f"A quote named {os.path.basename(dst)} already exists")
        os.replace(src, dst)
        logger.info("Renamed quote %s -> %s", src, dst)
        return dst

    def _iter_documents(self):
        for fname in sorted(os.listdir(self.base_dir)):
            if not fname.lower().endswith(".json"):
                continue
            path = os.path.join(self.base_dir, fname)
            if not os.path.isfile(path):
                continue
            try:
                data = load_json_file(path)
            except (OSError, ValueError):
                # json.JSONDecodeError is a ValueError
                logger.warning("Skipping unreadable quote file %s", path, exc_info=True)
                continue
            yield fname, data

    def list_quotes(self) -> List[Dict[str, Any]]:
        """Lightweight listing: file name plus general fields and grand total.

        Newest quote date first; quotes without an ISO date go last.
        """
        entries = [{"file": fname, "preview": _preview(data)} for fname, data in self._iter_documents()]
        dated = [e for e in entries if is_iso_date(e["preview"]["quoteDate"])]
        undated = [e for e in entries if not is_iso_date(e["preview"]["quoteDate"])]
        dated.sort(key=lambda e: e["file"])
        dated.sort(key=lambda e: e["preview"]["quoteDate"], reverse=True)
        return dated + undated

    def search(self, query: str) -> List[Dict[str, Any]]:
        needle = (query or "").strip().casefold()
        if not needle:
            return []

        results = []
        for fname, data in self._iter_documents():
            matched: List[str] = []
            score = 0
            general = data.get("general")
            if isinstance(general, dict):
                for field in GENERAL_FIELDS:
                    points = _score(str(general.get(field) or ""), needle)
                    if points:
                        matched.append(field)
                        score += points
            items = data.get("items")
            for idx, it in enumerate(items if isinstance(items, list) else []):
                if not isinstance(it, dict):
                    continue
                for field in ITEM_SEARCH_FIELDS:
                    if needle in str(it.get(field) or "").casefold():
                        matched.append(f"items[{idx}].{field}")
                        score += 1
            if matched:
                results.append({"file": fname, "data": data, "matchedFields": matched, "score": score})

        results.sort(key=lambda r: r["file"])
        results.sort(key=lambda r: r["score"], reverse=True)
        return results
