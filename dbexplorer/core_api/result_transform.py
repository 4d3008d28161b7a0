"""
Result transform utilities.
Shapes one query result into the projection each widget type needs.
All functions are pure: inputs are never modified.
"""
from typing import List, Any, Optional, Union
import logging
import math
from decimal import Decimal
from functools import cmp_to_key

from ..config import settings
from ..models import (
    QueryResult,
    WidgetConfig,
    WidgetProjection,
    WidgetType,
    ChartData,
    ChartDataset,
    TableView,
    SortDirection,
)
from ..utils.json_encoder import compact_json

logger = logging.getLogger(__name__)

KPI_PLACEHOLDER = "-"

Number = Union[int, float]


# ============================================================================
# Cell formatting and coercion
# ============================================================================

def format_cell(value: Any) -> str:
    """
    Format a cell for table display.

    Args:
        value: Raw cell value

    Returns:
        "NULL" for missing values, compact JSON for structured values,
        the natural string form otherwise
    """
    if value is None:
        return "NULL"
    if isinstance(value, (dict, list, tuple)):
        return compact_json(value)
    return display_string(value)


def display_string(value: Any) -> str:
    """
    String form of a scalar.

    Booleans are lower-case like their JSON form and whole-number floats
    drop the trailing ``.0``, so a REAL column holding 1 displays as "1".
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def to_number(value: Any) -> Number:
    """
    Coerce a cell value to a number.

    Booleans count as 1/0, numeric strings are parsed, anything else
    (null, text, structured values, NaN, infinities) becomes 0.
    """
    if value is None:
        return 0
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else 0
    if isinstance(value, Decimal):
        return float(value) if value.is_finite() else 0
    if isinstance(value, str):
        text = value.strip()
        # float() also accepts digit separators and inf/nan spellings
        if not text or "_" in text:
            return 0
        try:
            number = float(text)
        except ValueError:
            return 0
        if not math.isfinite(number):
            return 0
        return int(number) if number.is_integer() and "." not in text and "e" not in text.lower() else number
    return 0


def resolve_column(columns: List[str], name: Optional[str]) -> int:
    """Index of ``name`` in ``columns`` by exact match, -1 when absent"""
    if name is None:
        return -1
    try:
        return columns.index(name)
    except ValueError:
        return -1


def _cell(row: List[Any], index: int) -> Any:
    # -1 means unresolved; never wrap around to the last column
    if index < 0 or index >= len(row):
        return None
    return row[index]


# ============================================================================
# Widget projections
# ============================================================================

def project_table(result: QueryResult) -> QueryResult:
    """
    Table projection: columns and rows pass through unchanged.

    The preview truncation happens at display time (see preview_rows) so
    the full result stays available for export.
    """
    return result


def project_chart(result: QueryResult, config: WidgetConfig) -> ChartData:
    """
    Build chart labels and a numeric series.

    Label column defaults to the first column, value column to the second
    (or the first when there is only one). A configured column missing
    from the result degrades to ""/0 for every row.

    Args:
        result: Query result
        config: Widget configuration

    Returns:
        Chart data with one label and one value per row
    """
    columns = result.columns
    label_col = config.labelColumn or (columns[0] if columns else None)
    value_col = config.valueColumn or (
        columns[1] if len(columns) > 1 else (columns[0] if columns else None)
    )

    label_index = resolve_column(columns, label_col)
    value_index = resolve_column(columns, value_col)

    if label_col is not None and label_index < 0:
        logger.warning(f"Label column '{label_col}' not in result columns {columns}")
    if value_col is not None and value_index < 0:
        logger.warning(f"Value column '{value_col}' not in result columns {columns}")

    labels = []
    values = []
    for row in result.rows:
        label = _cell(row, label_index)
        labels.append("" if label is None else display_string(label))
        values.append(to_number(_cell(row, value_index)))

    return ChartData(
        labels=labels,
        datasets=[ChartDataset(label=value_col or "", data=values)],
    )


def project_kpi(result: QueryResult, config: WidgetConfig) -> Any:
    """
    Single value from the first row.

    Returns:
        Raw cell of row 0 at the value column (default: first column), or
        the "-" placeholder when there is no row, the column is unknown or
        the cell is null
    """
    columns = result.columns
    value_col = config.valueColumn or (columns[0] if columns else None)
    value_index = resolve_column(columns, value_col)

    if not result.rows or value_index < 0:
        return KPI_PLACEHOLDER

    value = _cell(result.rows[0], value_index)
    return KPI_PLACEHOLDER if value is None else value


def project(
    widget_id: str,
    widget_type: WidgetType,
    result: QueryResult,
    config: WidgetConfig
) -> WidgetProjection:
    """
    Dispatch to the projection for a widget type.

    Args:
        widget_id: Widget the projection belongs to
        widget_type: chart, table or kpi
        result: Fresh query result
        config: Widget configuration

    Returns:
        Widget projection carrying the raw columns/rows plus the typed shape
    """
    chart = None
    value = None

    if widget_type == "chart":
        chart = project_chart(result, config)
    elif widget_type == "kpi":
        value = project_kpi(result, config)
    else:
        result = project_table(result)

    return WidgetProjection(
        widget_id=widget_id,
        widget_type=widget_type,
        columns=list(result.columns),
        rows=[list(row) for row in result.rows],
        chart=chart,
        value=value,
    )


def preview_rows(rows: List[List[Any]], limit: Optional[int] = None) -> List[List[Any]]:
    """First ``limit`` rows (default WIDGET_PREVIEW_ROWS) for table widget display"""
    if limit is None:
        limit = settings.WIDGET_PREVIEW_ROWS
    return rows[:max(limit, 0)]


# ============================================================================
# Sorting and pagination
# ============================================================================

def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _compare_values(a: Any, b: Any, direction: SortDirection) -> int:
    ascending = direction == "asc"

    # Nulls go last when ascending, first when descending
    if a is None and b is None:
        return 0
    if a is None:
        return 1 if ascending else -1
    if b is None:
        return -1 if ascending else 1

    if _is_number(a) and _is_number(b):
        left, right = (a, b) if ascending else (b, a)
        return (left > right) - (left < right)

    left, right = (display_string(a), display_string(b))
    if not ascending:
        left, right = right, left
    left_key, right_key = left.casefold(), right.casefold()
    if left_key != right_key:
        return (left_key > right_key) - (left_key < right_key)
    return (left > right) - (left < right)


def sort_rows(
    result: QueryResult,
    column: Optional[str],
    direction: SortDirection
) -> List[List[Any]]:
    """
    Sort result rows by one column.

    Numbers compare numerically, everything else by string form
    (case-insensitive first). Nulls are placed last for ascending and
    first for descending order. Without a resolvable column or direction
    the original order is kept. The sort is stable.

    Args:
        result: Query result
        column: Column name to sort by
        direction: "asc", "desc" or "" for unsorted

    Returns:
        New list of rows
    """
    rows = [list(row) for row in result.rows]
    if not column or not direction:
        return rows

    index = resolve_column(result.columns, column)
    if index < 0:
        logger.warning(f"Sort column '{column}' not in result columns")
        return rows

    return sorted(
        rows,
        key=cmp_to_key(lambda a, b: _compare_values(a[index], b[index], direction)),
    )


def paginate(rows: List[List[Any]], page_index: int, page_size: int) -> List[List[Any]]:
    """Slice one page; out-of-range pages are empty"""
    if page_size <= 0 or page_index < 0:
        return []
    start = page_index * page_size
    return rows[start:start + page_size]


def table_view(
    result: QueryResult,
    sort_column: Optional[str] = None,
    sort_direction: SortDirection = "",
    page_index: int = 0,
    page_size: Optional[int] = None
) -> TableView:
    """
    Sorted, paginated view of a result for the data grid.

    Args:
        result: Query result
        sort_column: Column to sort by
        sort_direction: "asc", "desc" or ""
        page_index: Zero-based page number
        page_size: Rows per page (default TABLE_PAGE_SIZE)

    Returns:
        Table view holding one page of rows
    """
    if page_size is None:
        page_size = settings.TABLE_PAGE_SIZE

    rows = sort_rows(result, sort_column, sort_direction)

    return TableView(
        columns=list(result.columns),
        rows=paginate(rows, page_index, page_size),
        total_rows=result.row_count,
        page_index=page_index,
        page_size=page_size,
        sort_column=sort_column,
        sort_direction=sort_direction,
    )
