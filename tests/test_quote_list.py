import json
import os
import sys
import importlib.util

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
utils = _load_module_by_path("officina_utils", "officina_utils.py")
_load_module_by_path("officina_labels", "officina_labels.py")
_load_module_by_path("quote_export", "quote_export.py")
store_mod = _load_module_by_path("quote_store", "quote_store.py")
quote_list = _load_module_by_path("quote_list", "quote_list.py")


@pytest.fixture
def quotes_dir(tmp_path):
    store = store_mod.QuoteStore(str(tmp_path))
    q = utils.create_quote("2025-03-01")
    q["general"].update({"client": "Rossi", "licensePlate": "AB123CD", "model": "Punto"})
    q["items"] = [{"description": "Paraurti", "quantity": 1, "price": 100}]
    store.autosave(calc.recalculate_quote(q))
    other = utils.create_quote("2024-11-20")
    other["general"].update({"client": "Verdi", "licensePlate": "ZZ999ZZ"})
    store.write("verdi", other)
    return str(tmp_path)


def test_main_empty_dir_returns_2(tmp_path, capsys):
    assert quote_list.main(["--dir", str(tmp_path)]) == 2
    assert "No quotes found" in capsys.readouterr().out


def test_main_prints_table(quotes_dir, capsys):
    assert quote_list.main(["--dir", quotes_dir]) == 0
    out = capsys.readouterr().out
    lines = out.splitlines()
    assert lines[0].startswith("File")
    assert "AB123CD" in lines[2]
    assert "122.00 €" in lines[2]
    assert "ZZ999ZZ" in lines[3]


def test_main_json_output(quotes_dir, capsys):
    assert quote_list.main(["--dir", quotes_dir, "--json"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert [e["file"] for e in data] == ["AB123CD_Punto_2025-03-01.json", "verdi.json"]
    assert data[0]["preview"]["totalWithIva"] == 122.0


def test_main_search(quotes_dir, capsys):
    assert quote_list.main(["-d", quotes_dir, "-s", "verdi", "--json"]) == 0
    data = json.loads(capsys.readouterr().out)
    assert len(data) == 1
    assert data[0]["file"] == "verdi.json"
    assert data[0]["matchedFields"] == ["client"]
    assert data[0]["score"] == 3

    assert quote_list.main(["-d", quotes_dir, "-s", "bianchi"]) == 2
    assert "No quotes match" in capsys.readouterr().out
