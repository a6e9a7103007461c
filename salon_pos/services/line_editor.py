"""
Построчный редактор (services/products/purchase lines) с навигацией как в таблице.

Состояние интерфейса без I/O и таймеров: строки, курсор фокуса, состояние поиска
в активной ячейке. Слой отрисовки передаёт сюда нажатия клавиш и клики.

Навигация:
    Tab    — следующая редактируемая колонка; после последней — первая колонка
             следующей строки; после последней ячейки последней строки — новая строка.
    Enter  — та же колонка в следующей строке (или новая строка).
             При открытом списке поиска Enter выбирает подсвеченный вариант.
    Escape — закрыть список, сбросить запрос, значение ячейки не меняется.
    ArrowUp/ArrowDown — подсветка в списке, в пределах [0, len − 1].
"""
import enum
import itertools
import re
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Iterable, List, Optional

from salon_pos.core.money import to_money

TAB = "Tab"
ENTER = "Enter"
ESCAPE = "Escape"
ARROW_UP = "ArrowUp"
ARROW_DOWN = "ArrowDown"

_NUMBER_PREFIX = re.compile(r"^\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


class LineEditorError(Exception):
    """Некорректное действие в редакторе (нет строки, колонки и т.п.)."""


class InvalidCandidateError(LineEditorError):
    """Выбран вариант, которого нет (или уже нет) в списке колонки."""


class ColumnKind(str, enum.Enum):
    TEXT = "text"
    NUMBER = "number"
    SEARCH = "search"
    SELECT = "select"


@dataclass(frozen=True)
class SearchCandidate:
    id: Any
    label: str
    sub_label: Optional[str] = None
    payload: Any = field(default=None, compare=False)

    def matches(self, query: str) -> bool:
        q = query.lower()
        if q in self.label.lower():
            return True
        return bool(self.sub_label) and q in self.sub_label.lower()


@dataclass
class ColumnSpec:
    key: str
    kind: ColumnKind = ColumnKind.TEXT
    label: str = ""
    read_only: bool = False
    # min/max/step: подсказки для виджета ввода, при записи не проверяются
    min: Optional[Decimal] = None
    max: Optional[Decimal] = None
    step: Optional[Decimal] = None
    candidates: List[SearchCandidate] = field(default_factory=list)
    options: List[str] = field(default_factory=list)
    default: Any = None
    # on_select(candidate, row_id, editor): может записать несколько производных ячеек
    on_select: Optional[Callable[[SearchCandidate, str, "LineEditor"], None]] = None

    @property
    def editable(self) -> bool:
        return not self.read_only

    def default_value(self):
        if self.default is not None:
            return self.default
        return Decimal("0") if self.kind is ColumnKind.NUMBER else ""


@dataclass
class Row:
    id: str
    values: Dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key):
        return self.values[key]

    def get(self, key, default=None):
        return self.values.get(key, default)


@dataclass(frozen=True)
class FocusCursor:
    row_id: str
    column_key: str


@dataclass
class SearchState:
    """Состояние поиска в ячейке под фокусом."""
    query: str = ""
    dropdown_open: bool = False
    highlighted: int = 0
    pending: Optional[SearchCandidate] = None  # нажатие мыши до blur


def parse_number(raw) -> Decimal:
    """Число из ввода; при ошибке разбора — 0 (как parseFloat(...) || 0)."""
    if isinstance(raw, bool):
        return Decimal(int(raw))
    if isinstance(raw, (int, Decimal)):
        value = Decimal(raw)
    elif isinstance(raw, float):
        value = Decimal(str(raw))
    else:
        m = _NUMBER_PREFIX.match(str(raw or ""))
        if not m:
            return Decimal("0")
        try:
            value = Decimal(m.group(0).strip())
        except InvalidOperation:
            return Decimal("0")
    if not value.is_finite():
        return Decimal("0")
    return value


class LineEditor:
    def __init__(
        self,
        columns: Iterable[ColumnSpec],
        rows: Optional[Iterable[Row]] = None,
        keep_one_row: bool = False,
        after_update: Optional[Callable[[Row, str], None]] = None,
        id_prefix: str = "line",
    ):
        self.columns: List[ColumnSpec] = list(columns)
        if not any(c.editable for c in self.columns):
            raise LineEditorError("Нужна хотя бы одна редактируемая колонка")
        self.rows: List[Row] = list(rows or [])
        self.focus: Optional[FocusCursor] = None
        self.search = SearchState()
        self.keep_one_row = keep_one_row
        self.after_update = after_update
        self._ids = itertools.count(1)
        self._id_prefix = id_prefix

    # --- Доступ ---

    @property
    def editable_columns(self) -> List[ColumnSpec]:
        return [c for c in self.columns if c.editable]

    def column(self, key: str) -> ColumnSpec:
        for col in self.columns:
            if col.key == key:
                return col
        raise LineEditorError(f"Нет колонки {key!r}")

    def row(self, row_id: str) -> Row:
        for r in self.rows:
            if r.id == row_id:
                return r
        raise LineEditorError(f"Нет строки {row_id!r}")

    def _row_index(self, row_id: str) -> int:
        for i, r in enumerate(self.rows):
            if r.id == row_id:
                return i
        raise LineEditorError(f"Нет строки {row_id!r}")

    def _new_row_id(self) -> str:
        existing = {r.id for r in self.rows}
        while True:
            row_id = f"{self._id_prefix}-{next(self._ids)}"
            if row_id not in existing:
                return row_id

    # --- Строки ---

    def add_row(self) -> Row:
        """Пустая строка в конец; фокус — на её первую редактируемую колонку."""
        row = Row(id=self._new_row_id(), values={c.key: c.default_value() for c in self.columns})
        self.rows.append(row)
        self.focus_cell(row.id, self.editable_columns[0].key)
        return row

    def update_cell(self, row_id: str, key: str, raw) -> None:
        col = self.column(key)
        row = self.row(row_id)
        row.values[key] = parse_number(raw) if col.kind is ColumnKind.NUMBER else raw
        if self.after_update:
            self.after_update(row, key)

    def remove_row(self, row_id: str) -> None:
        """Удаление без навигации. Последнюю строку защищает только keep_one_row."""
        idx = self._row_index(row_id)
        del self.rows[idx]
        if self.focus and self.focus.row_id == row_id:
            self.focus = None
            self.search = SearchState()
        if self.keep_one_row and not self.rows:
            self.add_row()

    def set_candidates(self, key: str, candidates: Iterable[SearchCandidate]) -> None:
        """Обновить список вариантов (например, после перезагрузки каталога)."""
        col = self.column(key)
        col.candidates = list(candidates)
        if self.focus and self.focus.column_key == key:
            self.search.highlighted = 0
            self.search.pending = None

    def total(self, key: str = "subtotal") -> Decimal:
        return sum((parse_number(r.get(key, 0)) for r in self.rows), Decimal("0"))

    # --- Фокус и поиск ---

    def focus_cell(self, row_id: str, key: str) -> None:
        row = self.row(row_id)
        col = self.column(key)
        if not col.editable:
            raise LineEditorError(f"Колонка {key!r} только для чтения")
        self.focus = FocusCursor(row_id, key)
        # Пустая ячейка поиска сразу открывает список
        self.search = SearchState(dropdown_open=col.kind is ColumnKind.SEARCH and not row.get(key))

    def _focused_search_column(self) -> Optional[ColumnSpec]:
        if self.focus is None:
            return None
        col = self.column(self.focus.column_key)
        return col if col.kind is ColumnKind.SEARCH else None

    def type_query(self, text: str) -> List[SearchCandidate]:
        """Ввод в ячейку поиска: фильтр пересчитывается сразу, синхронно."""
        col = self._focused_search_column()
        if col is None:
            raise LineEditorError("Поиск доступен только в колонке поиска под фокусом")
        self.search.query = text
        self.search.dropdown_open = True
        self.search.highlighted = 0
        self.search.pending = None
        return self.filtered_candidates(col.key, text)

    def filtered_candidates(self, key: Optional[str] = None, query: Optional[str] = None) -> List[SearchCandidate]:
        if key is None:
            col = self._focused_search_column()
            if col is None:
                return []
        else:
            col = self.column(key)
        if query is None:
            query = self.search.query
        return [c for c in col.candidates if c.matches(query)]

    @property
    def highlighted_candidate(self) -> Optional[SearchCandidate]:
        items = self.filtered_candidates()
        if not self.search.dropdown_open or not items:
            return None
        return items[min(self.search.highlighted, len(items) - 1)]

    def select_candidate(self, row_id: str, key: str, candidate: SearchCandidate) -> None:
        """Выбор варианта: метка в ячейку, on_select колонки, затем переход как по Tab."""
        col = self.column(key)
        if col.kind is not ColumnKind.SEARCH:
            raise InvalidCandidateError(f"Колонка {key!r} не поддерживает поиск")
        try:
            row = self.row(row_id)
        except LineEditorError:
            raise InvalidCandidateError(f"Нет строки {row_id!r}")
        if not any(c.id == candidate.id for c in col.candidates):
            raise InvalidCandidateError(f"Вариант {candidate.id!r} недоступен")
        row.values[key] = candidate.label
        if col.on_select:
            col.on_select(candidate, row_id, self)
        self.focus = FocusCursor(row_id, key)
        self._tab()

    # --- Клавиатура ---

    def handle_key(self, key: str) -> None:
        if self.focus is None:
            return
        dropdown = self.search.dropdown_open and self._focused_search_column() is not None
        if key == TAB:
            self._tab()
        elif key == ENTER:
            candidate = self.highlighted_candidate if dropdown else None
            if candidate is not None:
                self.select_candidate(self.focus.row_id, self.focus.column_key, candidate)
            else:
                self._enter()
        elif key == ESCAPE:
            self.search = SearchState()
        elif key in (ARROW_UP, ARROW_DOWN) and dropdown:
            last = max(len(self.filtered_candidates()) - 1, 0)
            step = 1 if key == ARROW_DOWN else -1
            self.search.highlighted = min(max(self.search.highlighted + step, 0), last)

    def _tab(self) -> None:
        cursor = self.focus
        editable = [c.key for c in self.editable_columns]
        row_idx = self._row_index(cursor.row_id)
        col_idx = editable.index(cursor.column_key)
        if col_idx < len(editable) - 1:
            self.focus_cell(cursor.row_id, editable[col_idx + 1])
        elif row_idx < len(self.rows) - 1:
            self.focus_cell(self.rows[row_idx + 1].id, editable[0])
        else:
            self.add_row()

    def _enter(self) -> None:
        cursor = self.focus
        row_idx = self._row_index(cursor.row_id)
        if row_idx < len(self.rows) - 1:
            self.focus_cell(self.rows[row_idx + 1].id, cursor.column_key)
        else:
            self.add_row()

    # --- Мышь ---

    def press_candidate(self, candidate: SearchCandidate) -> None:
        """Нажатие мыши на вариант. Фиксируется до blur, который придёт следом."""
        if self._focused_search_column() is None or not self.search.dropdown_open:
            raise LineEditorError("Список вариантов закрыт")
        self.search.pending = candidate

    def release_candidate(self) -> None:
        pending = self.search.pending
        if pending is None:
            return
        self.search.pending = None
        self.select_candidate(self.focus.row_id, self.focus.column_key, pending)

    def click_candidate(self, candidate: SearchCandidate) -> None:
        self.press_candidate(candidate)
        self.release_candidate()

    def blur(self) -> None:
        """Потеря фокуса: сначала выбор по нажатию мыши, потом закрытие списка."""
        if self.search.pending is not None:
            self.release_candidate()
            return
        self.focus = None
        self.search = SearchState()


# --- Колонки редактора записи (услуги и товары) ---

def recompute_subtotal(row: Row) -> Decimal:
    price = parse_number(row.get("price", 0))
    quantity = parse_number(row.get("quantity", 1))
    discount = parse_number(row.get("discount", 0))
    subtotal = to_money(price * quantity * (Decimal("1") - discount / Decimal("100")))
    row.values["subtotal"] = subtotal
    return subtotal


def _field(item, name, default=None):
    if isinstance(item, dict):
        return item.get(name, default)
    return getattr(item, name, default)


def _select_service(candidate: SearchCandidate, row_id: str, editor: LineEditor) -> None:
    row = editor.row(row_id)
    service = candidate.payload
    row.values.update(
        service_id=candidate.id,
        service_name=candidate.label,
        duration=int(_field(service, "duration", 0) or 0),
        price=to_money(_field(service, "price", 0)),
    )
    recompute_subtotal(row)


def _select_product(candidate: SearchCandidate, row_id: str, editor: LineEditor) -> None:
    row = editor.row(row_id)
    product = candidate.payload
    row.values.update(
        product_id=candidate.id,
        product_name=candidate.label,
        price=to_money(_field(product, "price", 0)),
        quantity=Decimal("1"),
    )
    recompute_subtotal(row)


def _recompute_on_discount(row: Row, key: str) -> None:
    if key == "discount":
        recompute_subtotal(row)


def _recompute_always(row: Row, key: str) -> None:
    recompute_subtotal(row)


def service_line_editor(services: Iterable, **kwargs) -> LineEditor:
    """Редактор услуг записи: поиск услуги, мин., цена, % скидки, итог."""
    candidates = [
        SearchCandidate(
            id=_field(s, "id"),
            label=_field(s, "name", ""),
            sub_label=f"{_field(s, 'duration', 0)} min | ${_field(s, 'price', 0)}",
            payload=s,
        )
        for s in services
        if _field(s, "active", True)
    ]
    columns = [
        ColumnSpec("service_name", ColumnKind.SEARCH, "Servicio", candidates=candidates, on_select=_select_service),
        ColumnSpec("duration", ColumnKind.NUMBER, "Min", read_only=True),
        ColumnSpec("price", ColumnKind.NUMBER, "Precio", read_only=True),
        ColumnSpec("discount", ColumnKind.NUMBER, "%", min=Decimal("0"), max=Decimal("100")),
        ColumnSpec("subtotal", ColumnKind.NUMBER, "Total", read_only=True),
    ]
    kwargs.setdefault("id_prefix", "sl")
    return LineEditor(columns, after_update=_recompute_on_discount, **kwargs)


def product_line_editor(products: Iterable, **kwargs) -> LineEditor:
    """Редактор товаров записи: только активные товары в наличии."""
    candidates = [
        SearchCandidate(
            id=_field(p, "id"),
            label=_field(p, "name", ""),
            sub_label=f"Stock: {_field(p, 'stock', 0)} | ${_field(p, 'price', 0)}",
            payload=p,
        )
        for p in products
        if _field(p, "active", True) and (_field(p, "stock", 0) or 0) > 0
    ]
    columns = [
        ColumnSpec("product_name", ColumnKind.SEARCH, "Producto", candidates=candidates, on_select=_select_product),
        ColumnSpec("quantity", ColumnKind.NUMBER, "Cant.", min=Decimal("1"), default=Decimal("1")),
        ColumnSpec("price", ColumnKind.NUMBER, "Precio", read_only=True),
        ColumnSpec("discount", ColumnKind.NUMBER, "%", min=Decimal("0"), max=Decimal("100")),
        ColumnSpec("subtotal", ColumnKind.NUMBER, "Total", read_only=True),
    ]
    kwargs.setdefault("id_prefix", "pl")
    return LineEditor(columns, after_update=_recompute_always, **kwargs)
