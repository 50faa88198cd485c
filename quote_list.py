from __future__ import annotations

import argparse
import json
from typing import Any, Dict, List

from officina_utils import default_quotes_dir
from quote_export import format_money
from quote_store import QuoteStore

# --json: output JSON instead of text table
COLUMNS = [
    ("file", "File"),
    ("licensePlate", "Plate"),
    ("model", "Model"),
    ("client", "Client"),
    ("quoteDate", "Date"),
    ("totalWithIva", "Total"),
]


def _row(entry: Dict[str, Any]) -> Dict[str, str]:
    preview = entry["preview"]
    row = {key: str(preview.get(key) or "") for key, _ in COLUMNS if key != "file"}
    row["file"] = entry["file"]
    row["totalWithIva"] = format_money(preview.get("totalWithIva"), "en")
    return row


def print_table(rows: List[Dict[str, str]]):
    widths = [max(len(title), 8) for _, title in COLUMNS]
    for r in rows:
        for i, (key, _) in enumerate(COLUMNS):
            widths[i] = max(widths[i], len(r[key]))
    fmt = "  ".join(f"{{:<{w}}}" for w in widths[:-1]) + f"  {{:>{widths[-1]}}}"

    print(fmt.format(*[title for _, title in COLUMNS]))
    print("-" * (sum(widths) + 2 * (len(widths) - 1)))
    for r in rows:
        print(fmt.format(*[r[key] for key, _ in COLUMNS]))


def search_entries(store: QuoteStore, query: str) -> List[Dict[str, Any]]:
    entries = []
    for hit in store.search(query):
        data = hit["data"]
        general = data.get("general") if isinstance(data.get("general"), dict) else {}
        totals = data.get("totals") if isinstance(data.get("totals"), dict) else {}
        preview = {key: general.get(key, "") for key, _ in COLUMNS[1:-1]}
        preview["totalWithIva"] = totals.get("totalWithIva", 0)
        entries.append(
            {
                "file": hit["file"],
                "preview": preview,
                "matchedFields": hit["matchedFields"],
                "score": hit["score"],
            }
        )
    return entries


def main(argv=None):
    p = argparse.ArgumentParser(description="List or search saved body shop quotes")
    p.add_argument(
        "--dir", "-d", help="Quotes directory (defaults to the application folder)"
    )
    p.add_argument("--search", "-s", help="Only show quotes matching this text")
    p.add_argument("--json", action="store_true", help="Output JSON instead of a table")
    args = p.parse_args(argv)

    store = QuoteStore(args.dir or default_quotes_dir())
    if args.search:
        entries = search_entries(store, args.search)
    else:
        entries = store.list_quotes()

    if not entries:
        if args.search:
            print(f"No quotes match '{args.search}'.")
        else:
            print(f"No quotes found in {store.base_dir}. Create a quote first.")
        return 2

    if args.json:
        print(json.dumps(entries, indent=2, ensure_ascii=False))
        return 0

    print_table([_row(e) for e in entries])
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
