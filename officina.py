import os
import logging
import webbrowser
from typing import Any, Dict, Optional

from PyQt6 import QtCore, QtGui, QtWidgets

from officina_labels import DEFAULT_LANG, ROW_LABELS, get_labels
from officina_utils import (
    create_quote,
    display_name,
    generate_filename,
    get_resource_path,
    user_data_dir,
)
from quote_calc import (
    AUTO_QTY_ROWS,
    GENERAL_FIELDS,
    HOUR_FIELDS,
    PRICED_ROWS,
    labor_hours,
    prune_empty_items,
    recalculate_quote,
    remove_item,
    set_complementary_field,
    set_general_field,
    set_item_field,
)
from quote_export import default_pdf_name, export_json, export_pdf, format_money, format_number
from quote_store import QuoteStore

VERSION = "v1.2.0"
APP_NAME = "Officina"
APP_TITLE = "Officina - Preventivi Carrozzeria"
MAIN_WINDOW_X = 1400
MAIN_WINDOW_Y = 860

UI_BG = "#1b1d22"
TOOLBAR_BG = "#23262d"
PANEL_BG = "#14161a"
ALT_PANEL_BG = "#1f2a36"
FG = "#f0f0f0"
ACCENT = "#b3541e"
ACCENT2 = "#ffffff"
READONLY_BG = "#2a2d33"

APP_ICON = get_resource_path(os.path.join("data", "app.ico"))
# None means the default documents folder (or $OFFICINA_QUOTES_DIR)
QUOTES_DIR: Optional[str] = None
LOG_FILE = os.path.join(user_data_dir(), "officina.log")
logger = logging.getLogger("officina")


if not logger.handlers:
    logger.setLevel(logging.DEBUG)
    fh = logging.FileHandler(LOG_FILE, encoding="utf-8")
    fh.setLevel(logging.DEBUG)
    fmt = logging.Formatter("%(asctime)s %(levelname)s: %(message)s")
    fh.setFormatter(fmt)
    logger.addHandler(fh)


ITEM_COLUMNS = ("source", "description") + HOUR_FIELDS + ("quantity", "price", "total")
COMP_COLUMNS = ("quantity", "price", "taxable", "tax", "taxAmount", "totalWithTax")
COMP_HEADER_KEYS = ("quantity", "price", "imponibile", "iva_percentage", "imposta", "total_with_iva")


def get_store() -> QuoteStore:
    return QuoteStore(QUOTES_DIR)


def load_quotes():
    try:
        quotes = get_store().list_quotes()
        logger.debug("Listed %d quotes", len(quotes))
        return quotes
    except OSError:
        logger.exception("Failed to list quotes")
        return []


def open_quote(filename: str) -> Dict[str, Any]:
    quote = recalculate_quote(get_store().read(filename))
    logger.info("Opened quote %s", filename)
    return quote


def save_quote(quote: Dict[str, Any], filename: Optional[str] = None) -> str:
    """Save a quote to the quotes folder and return its path.

    Without a filename the name is generated from plate, model, client and date.
    Blank table rows are dropped first.
    """
    store = get_store()
    data = prune_empty_items(quote)
    if filename:
        return store.write(filename, data)
    return store.autosave(data)


def _raw_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _readonly_item(text: str, align_right: bool = True) -> QtWidgets.QTableWidgetItem:
    cell = QtWidgets.QTableWidgetItem(text)
    cell.setFlags(cell.flags() & ~QtCore.Qt.ItemFlag.ItemIsEditable)
    cell.setBackground(QtGui.QColor(READONLY_BG))
    if align_right:
        cell.setTextAlignment(
            QtCore.Qt.AlignmentFlag.AlignRight | QtCore.Qt.AlignmentFlag.AlignVCenter
        )
    return cell


class LoadQuoteDialog(QtWidgets.QDialog):
    def __init__(self, parent=None, lang=DEFAULT_LANG):
        super().__init__(parent)
        self.lang = lang
        self.labels = get_labels(lang)
        self.setWindowTitle(self.labels["existingQuotes"])
        self.setModal(True)
        self.resize(640, 480)
        self.selected = None
        self.entries = []
        layout = QtWidgets.QVBoxLayout(self)

        self.search_edit = QtWidgets.QLineEdit()
        self.search_edit.setPlaceholderText(self.labels["search_placeholder"])
        layout.addWidget(self.search_edit)

        self.list_widget = QtWidgets.QListWidget()
        layout.addWidget(self.list_widget)

        btn_layout = QtWidgets.QHBoxLayout()
        self.load_btn = QtWidgets.QPushButton(self.labels["open"])
        self.rename_button = QtWidgets.QPushButton(self.labels["rename"])
        self.delete_button = QtWidgets.QPushButton(self.labels["delete"])
        btn_layout.addWidget(self.load_btn)
        btn_layout.addWidget(self.rename_button)
        btn_layout.addWidget(self.delete_button)
        btn_layout.addStretch()
        self.close_btn = QtWidgets.QPushButton(self.labels["close"])
        btn_layout.addWidget(self.close_btn)
        layout.addLayout(btn_layout)

        # debounce typing before hitting the disk
        self._search_timer = QtCore.QTimer(self)
        self._search_timer.setSingleShot(True)
        self._search_timer.setInterval(200)
        self._search_timer.timeout.connect(self.refresh)
        self.search_edit.textChanged.connect(lambda _txt: self._search_timer.start())

        self.load_btn.clicked.connect(self._load)
        self.rename_button.clicked.connect(self._rename)
        self.delete_button.clicked.connect(self._delete)
        self.close_btn.clicked.connect(self.reject)
        self.list_widget.itemDoubleClicked.connect(lambda _item: self._load())

        self.refresh()

    def refresh(self):
        query = self.search_edit.text().strip()
        self.list_widget.clear()
        if query:
            try:
                hits = get_store().search(query)
            except OSError:
                logger.exception("Search failed for %r", query)
                hits = []
            self.entries = []
            for hit in hits:
                data = hit["data"]
                general, totals = data.get("general"), data.get("totals")
                preview = dict(general) if isinstance(general, dict) else {}
                preview["totalWithIva"] = totals.get("totalWithIva") if isinstance(totals, dict) else None
                self.entries.append({"file": hit["file"], "preview": preview})
        else:
            self.entries = load_quotes()

        for entry in self.entries:
            preview = entry["preview"]
            name = display_name(preview, fallback=entry["file"]) or self.labels["unnamedQuote"]
            date = preview.get("quoteDate") or self.labels["noDate"]
            label = f"{name}  ({date})"
            total = preview.get("totalWithIva")
            if total is not None:
                label = f"{label}  {format_money(total, self.lang)}"
            self.list_widget.addItem(label)
        if not self.entries and not query:
            self.list_widget.addItem(self.labels["noQuotes"])
            self.list_widget.item(0).setFlags(QtCore.Qt.ItemFlag.NoItemFlags)

    def _current_file(self):
        sel = self.list_widget.currentRow()
        if sel < 0 or sel >= len(self.entries):
            return None
        return self.entries[sel]["file"]

    def _load(self):
        fname = self._current_file()
        if not fname:
            return
        self.selected = fname
        self.accept()

    def _delete(self):
        fname = self._current_file()
        if not fname:
            return
        res = QtWidgets.QMessageBox.question(
            self, self.labels["delete"], self.labels["confirm_delete"].format(name=fname)
        )
        if res != QtWidgets.QMessageBox.StandardButton.Yes:
            return
        try:
            get_store().delete(fname)
        except OSError as e:
            logger.exception("Failed to delete quote %s", fname)
            QtWidgets.QMessageBox.critical(self, self.labels["delete"], str(e))
        self.refresh()

    def _rename(self):
        fname = self._current_file()
        if not fname:
            return
        new_name, ok = QtWidgets.QInputDialog.getText(
            self, self.labels["rename"], self.labels["new_name"], text=fname[: -len(".json")]
        )
        if not ok or not new_name.strip():
            return
        try:
            get_store().rename(fname, new_name)
        except (OSError, ValueError) as e:
            logger.exception("Failed to rename quote %s", fname)
            QtWidgets.QMessageBox.critical(self, self.labels["rename"], str(e))
        self.refresh()


class QuoteWindow(QtWidgets.QMainWindow):
    def __init__(self):
        super().__init__()
        self.resize(MAIN_WINDOW_X, MAIN_WINDOW_Y)
        if APP_ICON and os.path.exists(APP_ICON):
            self.setWindowIcon(QtGui.QIcon(APP_ICON))

        self.lang = DEFAULT_LANG
        self.labels = get_labels(self.lang)
        self.quote = create_quote()
        self.filename = None
        self.dirty = False
        self._refreshing = False

        central = QtWidgets.QWidget()
        self.setCentralWidget(central)
        main_layout = QtWidgets.QVBoxLayout(central)

        self.toolbar = QtWidgets.QToolBar()
        self.addToolBar(self.toolbar)
        self.toolbar.setMovable(False)

        self.btn_new = QtGui.QAction(self)
        self.btn_load = QtGui.QAction(self)
        self.btn_save = QtGui.QAction(self)
        self.btn_save_as = QtGui.QAction(self)
        self.btn_del = QtGui.QAction(self)
        self.btn_pdf = QtGui.QAction(self)
        self.btn_anon = QtGui.QAction(self)
        self.btn_anon.setCheckable(True)
        self.btn_lang = QtGui.QAction(self)
        self.btn_exit = QtGui.QAction(self)
        for act in [
            self.btn_new,
            self.btn_load,
            self.btn_save,
            self.btn_save_as,
            self.btn_del,
        ]:
            self.toolbar.addAction(act)
        self.toolbar.addSeparator()
        self.toolbar.addAction(self.btn_pdf)
        self.toolbar.addAction(self.btn_anon)

        spacer = QtWidgets.QWidget()
        spacer.setSizePolicy(
            QtWidgets.QSizePolicy.Policy.Expanding,
            QtWidgets.QSizePolicy.Policy.Preferred,
        )
        self.toolbar.addWidget(spacer)
        self.toolbar.addAction(self.btn_lang)
        ver_lbl = QtWidgets.QLabel(VERSION)
        ver_lbl.setStyleSheet("margin-left: 8px;")
        self.toolbar.addWidget(ver_lbl)
        self.toolbar.addAction(self.btn_exit)

        # general fields
        self.general_box = QtWidgets.QGroupBox()
        general_form = QtWidgets.QFormLayout(self.general_box)
        self.general_edits: Dict[str, QtWidgets.QLineEdit] = {}
        self.general_labels: Dict[str, QtWidgets.QLabel] = {}
        for field in GENERAL_FIELDS:
            edit = QtWidgets.QLineEdit()
            edit.textEdited.connect(lambda txt, f=field: self._on_general_edited(f, txt))
            lbl = QtWidgets.QLabel()
            general_form.addRow(lbl, edit)
            self.general_edits[field] = edit
            self.general_labels[field] = lbl
        main_layout.addWidget(self.general_box)

        # line items, last row is always blank for typing a new one
        self.items_table = QtWidgets.QTableWidget(0, len(ITEM_COLUMNS))
        self.items_table.horizontalHeader().setSectionResizeMode(
            1, QtWidgets.QHeaderView.ResizeMode.Stretch
        )
        self.items_table.setSelectionBehavior(
            QtWidgets.QAbstractItemView.SelectionBehavior.SelectRows
        )
        self.items_table.setAlternatingRowColors(True)
        self.items_table.cellChanged.connect(self._on_item_changed)
        main_layout.addWidget(self.items_table, 3)

        self.lbl_hours = QtWidgets.QLabel()
        main_layout.addWidget(self.lbl_hours)

        self.comp_table = QtWidgets.QTableWidget(len(ROW_LABELS), len(COMP_COLUMNS))
        self.comp_table.horizontalHeader().setSectionResizeMode(
            QtWidgets.QHeaderView.ResizeMode.Stretch
        )
        self.comp_table.cellChanged.connect(self._on_comp_changed)
        main_layout.addWidget(self.comp_table, 2)

        bottom_layout = QtWidgets.QHBoxLayout()
        bottom_layout.addStretch()
        self.lbl_subtotal = QtWidgets.QLabel()
        self.lbl_iva = QtWidgets.QLabel()
        self.lbl_total = QtWidgets.QLabel()
        self.lbl_total.setStyleSheet("font-weight: bold; font-size: 15px;")
        for lbl in (self.lbl_subtotal, self.lbl_iva, self.lbl_total):
            bottom_layout.addWidget(lbl)
            bottom_layout.addSpacing(24)
        main_layout.addLayout(bottom_layout)

        self.btn_new.triggered.connect(self.new_quote)
        self.btn_load.triggered.connect(self.load_quote)
        self.btn_save.triggered.connect(lambda: self.save_current())
        self.btn_save_as.triggered.connect(self.save_as)
        self.btn_del.triggered.connect(self.delete_item)
        self.btn_pdf.triggered.connect(self.export_pdf)
        self.btn_lang.triggered.connect(self.toggle_language)
        self.btn_exit.triggered.connect(self.close)

        self.apply_labels()
        self.refresh()

    # -- labels -------------------------------------------------------------

    def apply_labels(self):
        lb = self.labels
        self.btn_new.setText(lb["newQuote"])
        self.btn_load.setText(lb["open_quote"])
        self.btn_save.setText(lb["save_quote"])
        self.btn_save_as.setText(lb["save_quote_manual"])
        self.btn_del.setText(lb["delete"])
        self.btn_pdf.setText(lb["export_pdf"])
        self.btn_anon.setText(lb["pdf_anonymous_label"])
        self.btn_lang.setText(lb["language"])
        self.btn_exit.setText(lb["exit"])
        self.general_box.setTitle(lb["quoteTitle"])
        for field, lbl in self.general_labels.items():
            lbl.setText(lb[field])
        self.items_table.setHorizontalHeaderLabels([lb[c] for c in ITEM_COLUMNS])
        self.comp_table.setHorizontalHeaderLabels([lb[k] for k in COMP_HEADER_KEYS])
        self.comp_table.setVerticalHeaderLabels([lb[k] for _, k in ROW_LABELS])
        self._update_title()

    def toggle_language(self):
        self.lang = "en" if self.lang == "it" else "it"
        self.labels = get_labels(self.lang)
        self.apply_labels()
        self.refresh()

    def _update_title(self):
        name = self.filename or self.labels["unnamedQuote"]
        mark = " *" if self.dirty else ""
        self.setWindowTitle(f"{APP_TITLE} - {name}{mark}")

    # -- rendering ----------------------------------------------------------

    def refresh(self):
        self._refreshing = True
        try:
            general = self.quote["general"]
            for field, edit in self.general_edits.items():
                value = str(general.get(field) or "")
                if edit.text() != value:
                    edit.setText(value)
            self._fill_items()
            self._fill_complementary()
            self._fill_totals()
        finally:
            self._refreshing = False
        self._update_title()

    def _fill_items(self):
        items = self.quote["items"]
        self.items_table.setRowCount(len(items) + 1)
        for row in range(len(items) + 1):
            it = items[row] if row < len(items) else {}
            for col, field in enumerate(ITEM_COLUMNS):
                if field == "total":
                    text = format_number(it["total"], self.lang) if it else ""
                    self.items_table.setItem(row, col, _readonly_item(text))
                    continue
                cell = QtWidgets.QTableWidgetItem(_raw_text(it.get(field)) if it else "")
                if field not in ("source", "description"):
                    cell.setTextAlignment(
                        QtCore.Qt.AlignmentFlag.AlignRight | QtCore.Qt.AlignmentFlag.AlignVCenter
                    )
                self.items_table.setItem(row, col, cell)
        hours = labor_hours(self.quote)
        parts = "   ".join(f"{k}: {format_number(hours[k], self.lang)}" for k in HOUR_FIELDS)
        self.lbl_hours.setText(f"{self.labels['total_labor_hours']}:   {parts}")

    def _fill_complementary(self):
        comp = self.quote["complementary"]
        for r, (key, _) in enumerate(ROW_LABELS):
            row = comp[key]
            for c, field in enumerate(COMP_COLUMNS):
                if key == "partsTotal" and field in ("quantity", "price"):
                    self.comp_table.setItem(r, c, _readonly_item(""))
                elif self._comp_editable(key, field):
                    cell = QtWidgets.QTableWidgetItem(_raw_text(row.get(field)))
                    cell.setTextAlignment(
                        QtCore.Qt.AlignmentFlag.AlignRight | QtCore.Qt.AlignmentFlag.AlignVCenter
                    )
                    self.comp_table.setItem(r, c, cell)
                else:
                    self.comp_table.setItem(
                        r, c, _readonly_item(format_number(row.get(field), self.lang))
                    )

    def _fill_totals(self):
        totals = self.quote["totals"]
        lb = self.labels
        self.lbl_subtotal.setText(f"{lb['subtotal']}: {format_money(totals['subtotal'], self.lang)}")
        self.lbl_iva.setText(f"{lb['iva']}: {format_money(totals['iva'], self.lang)}")
        self.lbl_total.setText(
            f"{lb['final_total']}: {format_money(totals['totalWithIva'], self.lang)}"
        )

    @staticmethod
    def _comp_editable(key: str, field: str) -> bool:
        if field == "tax":
            return True
        if field == "price":
            return key in PRICED_ROWS
        if field == "quantity":
            return key in PRICED_ROWS and key not in AUTO_QTY_ROWS
        return False

    # -- edits --------------------------------------------------------------

    def _apply(self, next_quote: Dict[str, Any]):
        self.quote = next_quote
        self.dirty = True
        self.refresh()

    def _on_general_edited(self, field: str, text: str):
        self._apply(set_general_field(self.quote, field, text))

    def _on_item_changed(self, row: int, col: int):
        if self._refreshing:
            return
        field = ITEM_COLUMNS[col]
        if field == "total":
            return
        cell = self.items_table.item(row, col)
        text = cell.text() if cell is not None else ""
        if row == len(self.quote["items"]) and not text.strip():
            return
        # the table rebuild must not run inside the edit that triggered it
        QtCore.QTimer.singleShot(
            0, lambda: self._apply(set_item_field(self.quote, row, field, text))
        )

    def _on_comp_changed(self, row: int, col: int):
        if self._refreshing:
            return
        key = ROW_LABELS[row][0]
        field = COMP_COLUMNS[col]
        if not self._comp_editable(key, field):
            return
        cell = self.comp_table.item(row, col)
        text = cell.text() if cell is not None else ""
        QtCore.QTimer.singleShot(
            0, lambda: self._apply(set_complementary_field(self.quote, key, field, text))
        )

    def _selected_index(self):
        sels = self.items_table.selectionModel().selectedRows()
        if not sels:
            return None
        return sels[0].row()

    def delete_item(self):
        idx = self._selected_index()
        if idx is None or idx >= len(self.quote["items"]):
            return
        self._apply(remove_item(self.quote, idx))

    # -- document actions ---------------------------------------------------

    def _confirm_discard(self) -> bool:
        if not self.dirty:
            return True
        res = QtWidgets.QMessageBox.question(
            self,
            APP_NAME,
            self.labels["save_before_exit"],
            QtWidgets.QMessageBox.StandardButton.Yes
            | QtWidgets.QMessageBox.StandardButton.No
            | QtWidgets.QMessageBox.StandardButton.Cancel,
        )
        if res == QtWidgets.QMessageBox.StandardButton.Cancel:
            return False
        if res == QtWidgets.QMessageBox.StandardButton.Yes:
            return self.save_current(silent=True)
        return True

    def new_quote(self):
        if not self._confirm_discard():
            return
        self.quote = create_quote()
        self.filename = None
        self.dirty = False
        self.refresh()

    def load_quote(self):
        if not self._confirm_discard():
            return
        dlg = LoadQuoteDialog(self, lang=self.lang)
        if dlg.exec() != QtWidgets.QDialog.DialogCode.Accepted or not dlg.selected:
            return
        try:
            self.quote = open_quote(dlg.selected)
        except (OSError, ValueError) as e:
            logger.exception("Failed to open quote %s", dlg.selected)
            QtWidgets.QMessageBox.critical(self, APP_NAME, f"{self.labels['open_error']} {e}")
            return
        self.filename = dlg.selected
        self.dirty = False
        self.refresh()

    def save_current(self, silent=False) -> bool:
        try:
            path = save_quote(self.quote, self.filename)
        except (OSError, ValueError):
            logger.exception("Failed to save quote %s", self.filename)
            QtWidgets.QMessageBox.critical(self, APP_NAME, self.labels["quote_save_error"])
            return False
        self.filename = os.path.basename(path)
        self.quote = prune_empty_items(self.quote)
        self.dirty = False
        self.refresh()
        if not silent:
            QtWidgets.QMessageBox.information(self, APP_NAME, self.labels["quote_saved"])
        return True

    def save_as(self):
        suggested = self.filename or generate_filename(self.quote["general"])
        fn, _ = QtWidgets.QFileDialog.getSaveFileName(
            self,
            self.labels["save_quote_manual"],
            suggested,
            "JSON files (*.json);;All Files (*)",
        )
        if not fn:
            return
        try:
            export_json(fn, prune_empty_items(self.quote))
        except OSError:
            logger.exception("Failed to export quote JSON to %s", fn)
            QtWidgets.QMessageBox.critical(self, APP_NAME, self.labels["quote_save_error"])
            return
        QtWidgets.QMessageBox.information(self, APP_NAME, self.labels["quote_saved"])

    def export_pdf(self):
        fn, _ = QtWidgets.QFileDialog.getSaveFileName(
            self,
            self.labels["export_pdf"],
            default_pdf_name(self.quote),
            "PDF files (*.pdf)",
        )
        if not fn:
            return
        try:
            export_pdf(
                fn,
                prune_empty_items(self.quote),
                anonymize=self.btn_anon.isChecked(),
                lang=self.lang,
            )
        except Exception as e:
            logger.exception("Failed to export PDF to %s", fn)
            QtWidgets.QMessageBox.critical(
                self, APP_NAME, f"{self.labels['pdf_export_error']} {e}"
            )
            return
        webbrowser.open("file://" + os.path.abspath(fn))

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:
        if not self._confirm_discard():
            event.ignore()
            return
        event.accept()


def main():
    app = QtWidgets.QApplication([])
    stylesheet = get_app_stylesheet()
    if stylesheet:
        app.setStyleSheet(stylesheet)

    pal = app.palette()
    pal.setColor(QtGui.QPalette.ColorRole.Window, QtGui.QColor(UI_BG))
    pal.setColor(QtGui.QPalette.ColorRole.Base, QtGui.QColor(PANEL_BG))
    pal.setColor(QtGui.QPalette.ColorRole.AlternateBase, QtGui.QColor(ALT_PANEL_BG))
    pal.setColor(QtGui.QPalette.ColorRole.WindowText, QtGui.QColor(FG))
    pal.setColor(QtGui.QPalette.ColorRole.Text, QtGui.QColor(FG))
    pal.setColor(QtGui.QPalette.ColorRole.Highlight, QtGui.QColor(ACCENT))
    pal.setColor(QtGui.QPalette.ColorRole.HighlightedText, QtGui.QColor(ACCENT2))
    app.setPalette(pal)

    app.setApplicationName(APP_NAME)
    app.setApplicationDisplayName(APP_TITLE)

    logger.info("Starting %s %s", APP_NAME, VERSION)
    win = QuoteWindow()
    win.show()
    app.exec()


def get_app_stylesheet() -> str:
    qss_path = get_resource_path(os.path.join("data", "style.qss"))
    try:
        with open(qss_path, "r", encoding="utf-8") as fh:
            raw = fh.read()
    except OSError:
        logger.debug("Style QSS not found or unreadable: %s", qss_path, exc_info=True)
        return ""

    fmt = {
        "UI_BG": UI_BG,
        "TOOLBAR_BG": TOOLBAR_BG,
        "PANEL_BG": PANEL_BG,
        "ALT_PANEL_BG": ALT_PANEL_BG,
        "FG": FG,
        "ACCENT": ACCENT,
        "ACCENT2": ACCENT2,
    }
    for k, v in fmt.items():
        raw = raw.replace(f"{{{k}}}", v)
    return raw


if __name__ == "__main__":
    main()
