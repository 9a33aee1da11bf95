# evalhub/db/pagination.py
"""
Generic paginated listing over a relational table.

A listing is scoped by *base filters* (e.g. "belongs to project X") and
narrowed by *additional filters* (search, date range, user filter).  Besides
one page of rows and the filtered total, the response carries
``any_in_project``: whether anything matches the base scope at all, so the UI
can tell "no results for these filters" apart from "nothing here yet".

Queries issued per call:

    WITH base AS (SELECT table.*, <additional columns> FROM table
                  WHERE <base filters>)
    SELECT * FROM base WHERE <filters> ORDER BY ... LIMIT ... OFFSET ...

    WITH base AS (...) SELECT count(*) FROM base WHERE <filters>

and, only when that count is zero, a ``LIMIT 1`` probe on the base table
restricted to the base filters.  The page query and the count/probe run
concurrently on separate sessions.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional, Sequence, Union

from sqlalchemy import FromClause, func, literal_column, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.sql import visitors
from sqlalchemy.sql.elements import ColumnClause, ColumnElement
from sqlalchemy.sql.util import ClauseAdapter

from evalhub.schemas.pagination import PaginatedResponse

logger = logging.getLogger(__name__)

BASE_CTE_NAME = "base"

OrderBy = Union[ColumnElement[Any], Sequence[ColumnElement[Any]]]


class InvalidPaginationError(ValueError):
    """Raised for a negative page number or a non-positive page size."""


def resolve_table(table: Any) -> FromClause:
    """Accept a Core ``Table``/``FromClause`` or a mapped ORM class."""
    if isinstance(table, FromClause):
        return table
    mapped = getattr(table, "__table__", None)
    if isinstance(mapped, FromClause):
        return mapped
    raise TypeError(f"Not a table or mapped class: {table!r}")


def _validate_paging(page_number: int, page_size: int) -> None:
    if page_number < 0:
        raise InvalidPaginationError(
            f"page_number must be >= 0, got {page_number}"
        )
    if page_size <= 0:
        raise InvalidPaginationError(f"page_size must be > 0, got {page_size}")


def _order_by_list(order_by: OrderBy) -> list[ColumnElement[Any]]:
    if isinstance(order_by, ColumnElement):
        return [order_by]
    return list(order_by)


def _retarget(
    clauses: Sequence[ColumnElement[Any]],
    source: FromClause,
    target: FromClause,
) -> list[ColumnElement[Any]]:
    """
    Rewrite references to ``source`` columns as references to the same-named
    columns of ``target``. Columns of other tables are left untouched.
    """
    if target is source:
        return list(clauses)

    adapter = ClauseAdapter(
        target,
        include_fn=lambda elem: getattr(elem, "table", None) is source,
        adapt_on_names=True,
    )
    return [adapter.traverse(clause) for clause in clauses]


def _unmapped_columns(
    clauses: Sequence[ColumnElement[Any]], source: FromClause
) -> list[str]:
    """Names of ``source`` columns still referenced by ``clauses``."""
    names = {
        elem.name
        for clause in clauses
        for elem in visitors.iterate(clause)
        if isinstance(elem, ColumnClause) and elem.table is source
    }
    return sorted(names)


async def paginated_get(
    sessionmaker: async_sessionmaker[AsyncSession],
    *,
    table: Any,
    page_number: int,
    page_size: int,
    base_filters: Sequence[ColumnElement[bool]],
    filters: Sequence[ColumnElement[bool]],
    order_by: OrderBy,
    additional_columns: Optional[Mapping[str, ColumnElement[Any]]] = None,
    base_table: Any = None,
) -> PaginatedResponse[dict[str, Any]]:
    """
    Fetch one page of ``table`` rows.

    Args:
        sessionmaker: session factory; each concurrent branch opens its own
            session.
        table: table (or mapped class) being listed.
        page_number: zero-based page index.
        page_size: maximum rows per page.
        base_filters: predicates defining the listing scope, always applied.
        filters: predicates layered on top of ``base_filters`` for the page and
            the count, ignored by the existence probe.
        order_by: ordering expression (or list of them) applied before paging.
        additional_columns: extra ``name -> expression`` projections added to
            every row.
        base_table: table probed for existence when the filtered count is
            zero. Base filters are retargeted onto it by column name.

    Returns:
        PaginatedResponse whose items are plain ``dict`` rows.

    Raises:
        InvalidPaginationError: bad ``page_number`` / ``page_size``.
        ValueError: a base filter names a column ``base_table`` lacks.
    """
    _validate_paging(page_number, page_size)

    source = resolve_table(table)
    probe_table = resolve_table(base_table) if base_table is not None else source

    projection: list[ColumnElement[Any]] = list(source.c)
    for name, expr in (additional_columns or {}).items():
        projection.append(expr.label(name))

    base = (
        select(*projection)
        .select_from(source)
        .where(*base_filters)
        .cte(BASE_CTE_NAME)
    )

    scoped_filters = _retarget(filters, source, base)
    scoped_order_by = _retarget(_order_by_list(order_by), source, base)

    items_stmt = (
        select(base)
        .where(*scoped_filters)
        .order_by(*scoped_order_by)
        .limit(page_size)
        .offset(page_number * page_size)
    )
    count_stmt = select(func.count()).select_from(base).where(*scoped_filters)
    probe_filters = _retarget(base_filters, source, probe_table)
    if probe_table is not source:
        missing = _unmapped_columns(probe_filters, source)
        if missing:
            raise ValueError(
                f"base_table {getattr(probe_table, 'name', probe_table)!r} has no column(s) "
                f"{', '.join(missing)} used by base_filters"
            )
    probe_stmt = (
        select(literal_column("1"))
        .select_from(probe_table)
        .where(*probe_filters)
        .limit(1)
    )

    async def fetch_items() -> list[dict[str, Any]]:
        async with sessionmaker() as session:
            result = await session.execute(items_stmt)
            return [dict(row) for row in result.mappings().all()]

    async def fetch_counts() -> tuple[int, bool]:
        async with sessionmaker() as session:
            total_count = int((await session.execute(count_stmt)).scalar_one())
            # a non-empty filtered count implies a non-empty base scope
            if total_count > 0:
                return total_count, True
            probe = await session.execute(probe_stmt)
            return 0, probe.first() is not None

    items, (total_count, any_in_project) = await asyncio.gather(
        fetch_items(), fetch_counts()
    )

    logger.debug(
        "Paginated %s page=%d size=%d items=%d total=%d any=%s",
        source.name if hasattr(source, "name") else source,
        page_number,
        page_size,
        len(items),
        total_count,
        any_in_project,
    )

    return PaginatedResponse[dict[str, Any]](
        items=items,
        total_count=total_count,
        any_in_project=any_in_project,
    )
