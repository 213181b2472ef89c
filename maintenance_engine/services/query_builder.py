"""
Filter/sort/page query construction for the maintenance request list.

Every user-supplied value ends up as a bound parameter on a SQLAlchemy
statement. The only pieces chosen from raw input are the sort column and
direction, and both are looked up in closed allow-lists first; anything not
on the list falls back to created_at / desc instead of erroring.
"""
from dataclasses import dataclass, field
from typing import Any, List, Mapping, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.orm import joinedload
from sqlalchemy.sql import Select

from maintenance_engine.config import DEFAULT_PAGE_LIMIT
from maintenance_engine.core.exceptions import ValidationError
from maintenance_engine.models.domain import MaintenanceRequest
from maintenance_engine.models.enums import SortOrder

ALL_SENTINEL = "all"
DEFAULT_SORT_BY = "createdAt"
DEFAULT_SORT_ORDER = SortOrder.DESC

# Public sort key -> mapped column. snake_case aliases are accepted too.
SORT_COLUMNS = {
    "createdAt": MaintenanceRequest.created_at,
    "updatedAt": MaintenanceRequest.updated_at,
    "scheduledDate": MaintenanceRequest.scheduled_date,
    "priority": MaintenanceRequest.priority,
    "status": MaintenanceRequest.status,
    "title": MaintenanceRequest.title,
}
SORT_ALIASES = {
    "created_at": "createdAt",
    "updated_at": "updatedAt",
    "scheduled_date": "scheduledDate",
}

SEARCH_COLUMNS = (
    MaintenanceRequest.title,
    MaintenanceRequest.description,
    MaintenanceRequest.notes,
)


@dataclass
class FilterParams:
    """The closed set of list-query inputs. All filters are optional and ANDed."""
    status: Optional[str] = None
    priority: Optional[str] = None
    category: Optional[str] = None
    assigned_to: Optional[int] = None
    created_by: Optional[int] = None
    search: Optional[str] = None
    sort_by: Optional[str] = DEFAULT_SORT_BY
    sort_order: Optional[str] = DEFAULT_SORT_ORDER.value
    page: Any = 1
    limit: Any = DEFAULT_PAGE_LIMIT

    @classmethod
    def from_query(cls, query: Mapping[str, Any]) -> "FilterParams":
        """Build from raw query-string values (camelCase or snake_case keys)."""
        def pick(*keys):
            for key in keys:
                if query.get(key) not in (None, ""):
                    return query[key]
            return None

        return cls(
            status=pick("status"),
            priority=pick("priority"),
            category=pick("category"),
            assigned_to=_parse_identifier("assignedTo", pick("assignedTo", "assigned_to")),
            created_by=_parse_identifier("createdBy", pick("createdBy", "created_by")),
            search=pick("search"),
            sort_by=pick("sortBy", "sort_by") or DEFAULT_SORT_BY,
            sort_order=pick("sortOrder", "sort_order") or DEFAULT_SORT_ORDER.value,
            page=pick("page") or 1,
            limit=pick("limit") or DEFAULT_PAGE_LIMIT,
        )


@dataclass
class ListQuery:
    """Paged data statement plus the effective (validated) sort and page values."""
    statement: Select
    sort_by: str
    sort_order: str
    page: int
    limit: int
    offset: int
    conditions: List[Any] = field(default_factory=list)


def _parse_identifier(name: str, value: Any) -> Optional[int]:
    if value is None or value == ALL_SENTINEL:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer", details={name: "not an integer"})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer", details={name: "not an integer"})


def _positive_int(value: Any, default: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def resolve_sort(sort_by: Optional[str], sort_order: Optional[str]) -> Tuple[str, str]:
    """Map raw sort input onto the allow-lists; unknown values become the defaults."""
    key = SORT_ALIASES.get(sort_by, sort_by) if isinstance(sort_by, str) else None
    if key not in SORT_COLUMNS:
        key = DEFAULT_SORT_BY

    order = sort_order.strip().lower() if isinstance(sort_order, str) else None
    if order not in (SortOrder.ASC.value, SortOrder.DESC.value):
        order = DEFAULT_SORT_ORDER.value

    return key, order


def resolve_page(page: Any, limit: Any) -> Tuple[int, int, int]:
    """(page, limit, offset) with non-positive or non-numeric input replaced by defaults."""
    page = _positive_int(page, 1)
    limit = _positive_int(limit, DEFAULT_PAGE_LIMIT)
    return page, limit, (page - 1) * limit


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_conditions(params: FilterParams) -> List[Any]:
    """One predicate per active filter. Values are bound, never interpolated."""
    conditions = []

    for column, value in (
        (MaintenanceRequest.status, params.status),
        (MaintenanceRequest.priority, params.priority),
        (MaintenanceRequest.category, params.category),
    ):
        if value and value != ALL_SENTINEL:
            conditions.append(column == value)

    if params.assigned_to is not None:
        conditions.append(MaintenanceRequest.assigned_engineer_id == params.assigned_to)
    if params.created_by is not None:
        conditions.append(MaintenanceRequest.created_by_id == params.created_by)

    search = params.search.strip() if isinstance(params.search, str) else None
    if search:
        pattern = f"%{_escape_like(search)}%"
        conditions.append(or_(*(column.ilike(pattern, escape="\\") for column in SEARCH_COLUMNS)))

    return conditions


def build_query(params: FilterParams) -> Tuple[ListQuery, Select]:
    """
    Translate filter params into (paged data query, count query).

    Both statements share the same WHERE clause; the count query has no
    ordering or paging so its result is the total for the filter set.
    """
    conditions = build_conditions(params)
    sort_by, sort_order = resolve_sort(params.sort_by, params.sort_order)
    page, limit, offset = resolve_page(params.page, params.limit)

    sort_column = SORT_COLUMNS[sort_by]
    if sort_order == SortOrder.ASC.value:
        ordering = (sort_column.asc(), MaintenanceRequest.id.asc())
    else:
        ordering = (sort_column.desc(), MaintenanceRequest.id.desc())

    statement = (
        select(MaintenanceRequest)
        .options(
            joinedload(MaintenanceRequest.assigned_engineer),
            joinedload(MaintenanceRequest.created_by),
        )
        .where(*conditions)
        .order_by(*ordering)
        .limit(limit)
        .offset(offset)
    )

    count_statement = (
        select(func.count(MaintenanceRequest.id))
        .select_from(MaintenanceRequest)
        .where(*conditions)
    )

    list_query = ListQuery(
        statement=statement,
        sort_by=sort_by,
        sort_order=sort_order,
        page=page,
        limit=limit,
        offset=offset,
        conditions=conditions,
    )
    return list_query, count_statement
