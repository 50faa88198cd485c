# officina_labels.py
# UI strings, Italian first
from __future__ import annotations

from typing import Dict

DEFAULT_LANG = "it"

LABELS: Dict[str, Dict[str, str]] = {
    "it": {
        "appTitle": "Preventivi Officina",
        "quoteTitle": "Preventivo",
        # general fields
        "client": "Cliente",
        "licensePlate": "Targa",
        "model": "Modello",
        "year": "Anno",
        "chassis": "Telaio",
        "insurance": "Assicurazione",
        "quoteDate": "Data Preventivo",
        # items table
        "source": "Citaz. fonte",
        "description": "Descrizione",
        "SR": "SR",
        "LA": "LA",
        "VE": "VE",
        "ME": "ME",
        "quantity": "Q.tà",
        "price": "Prezzo",
        "total": "Totale",
        "total_labor_hours": "Totale ore manodopera",
        # complementary table
        "comp_voci": "Voci complementari",
        "comp_ricambi": "Ricambi",
        "comp_carrozzeria": "Manodopera Carrozzeria",
        "comp_meccanica": "Manodopera Meccanica",
        "comp_consumo": "Materiale di consumo",
        "comp_totale_ricambi": "Totale ricambi",
        "imponibile": "Imponibile",
        "iva_percentage": "IVA %",
        "imposta": "Imposta",
        "total_with_iva": "Totale IVA inclusa",
        "subtotal": "Totale imponibile",
        "iva": "Totale IVA",
        "final_total": "Totale Preventivo",
        # toolbar / dialogs
        "newQuote": "Nuovo Preventivo",
        "save_quote": "Salva",
        "save_quote_manual": "Salva con nome",
        "open_quote": "Apri",
        "export_pdf": "Esporta PDF",
        "pdf_anonymous_label": "PDF anonimo",
        "language": "English",
        "exit": "Esci",
        "delete": "Elimina",
        "rename": "Rinomina",
        "open": "Apri",
        "close": "Chiudi",
        "search_placeholder": "Cerca...",
        "existingQuotes": "Preventivi esistenti",
        "noQuotes": "Nessun preventivo trovato.",
        "unnamedQuote": "Preventivo senza nome",
        "noDate": "Nessuna data",
        "quote_saved": "Preventivo salvato.",
        "quote_save_error": "Errore durante il salvataggio del preventivo.",
        "pdf_exported": "PDF esportato.",
        "pdf_export_error": "Errore durante l'esportazione PDF:",
        "confirm_delete": "Eliminare il preventivo '{name}'?",
        "new_name": "Nuovo nome:",
        "save_before_exit": "Salvare il preventivo corrente prima di uscire?",
        "open_error": "Impossibile aprire il preventivo:",
    },
    "en": {
        "appTitle": "Body Shop Quotes",
        "quoteTitle": "Quote",
        "client": "Client",
        "licensePlate": "License Plate",
        "model": "Model",
        "year": "Year",
        "chassis": "Chassis",
        "insurance": "Insurance",
        "quoteDate": "Quote Date",
        "source": "Source",
        "description": "Description",
        "SR": "SR",
        "LA": "LA",
        "VE": "VE",
        "ME": "ME",
        "quantity": "Qty",
        "price": "Price",
        "total": "Total",
        "total_labor_hours": "Total labor hours",
        "comp_voci": "Complementary Items",
        "comp_ricambi": "Parts",
        "comp_carrozzeria": "Bodywork Labour",
        "comp_meccanica": "Mechanical Labour",
        "comp_consumo": "Consumable Materials",
        "comp_totale_ricambi": "Parts Total",
        "imponibile": "Taxable Amount",
        "iva_percentage": "VAT %",
        "imposta": "VAT Amount",
        "total_with_iva": "Total incl. VAT",
        "subtotal": "Taxable Total",
        "iva": "VAT Total",
        "final_total": "Final Quote Total",
        "newQuote": "New Quote",
        "save_quote": "Save",
        "save_quote_manual": "Save As",
        "open_quote": "Open",
        "export_pdf": "Export PDF",
        "pdf_anonymous_label": "Anonymous PDF",
        "language": "Italiano",
        "exit": "Exit",
        "delete": "Delete",
        "rename": "Rename",
        "open": "Open",
        "close": "Close",
        "search_placeholder": "Search...",
        "existingQuotes": "Existing Quotes",
        "noQuotes": "No quotes found.",
        "unnamedQuote": "Unnamed Quote",
        "noDate": "No Date",
        "quote_saved": "Quote saved.",
        "quote_save_error": "Error saving quote.",
        "pdf_exported": "PDF exported.",
        "pdf_export_error": "PDF export failed:",
        "confirm_delete": "Delete quote '{name}'?",
        "new_name": "New name:",
        "save_before_exit": "Save current quote before exiting?",
        "open_error": "Could not open quote:",
    },
}

# complementary row key -> label key, in display order
ROW_LABELS = (
    ("partsTotal", "comp_totale_ricambi"),
    ("parts", "comp_ricambi"),
    ("bodywork", "comp_carrozzeria"),
    ("mechanics", "comp_meccanica"),
    ("consumables", "comp_consumo"),
)


def get_labels(lang: str) -> Dict[str, str]:
    return LABELS.get(lang, LABELS[DEFAULT_LANG])
