"""
Keyset pagination over ``(created_at, id)``.

Implements relay connection semantics on top of any ``SELECT`` of a model
with ``created_at`` and ``id`` columns. No OFFSET is used, so pages stay
stable while rows are inserted concurrently.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, TypeVar

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement, Select

from madcatalog.models.enums import SortOrder
from madcatalog.models.pagination import (
    Connection,
    ConnectionArgs,
    CursorKey,
    Edge,
    PageInfo,
)

NodeType = TypeVar("NodeType")


def position_clause(
    model: Any,
    key: CursorKey,
    *,
    after: bool,
    order: SortOrder,
    inclusive: bool = False,
) -> ColumnElement[bool]:
    """
    Build the clause selecting rows positioned after/before ``key``.

    "After" and "before" refer to the ordering order, so for a descending
    connection "after" means older rows.
    """
    greater = after == (order == SortOrder.ASC)
    created_at, row_id = model.created_at, model.id
    if greater:
        tie = row_id >= key.id if inclusive else row_id > key.id
        return or_(created_at > key.created_at, and_(created_at == key.created_at, tie))
    tie = row_id <= key.id if inclusive else row_id < key.id
    return or_(created_at < key.created_at, and_(created_at == key.created_at, tie))


def cursor_for(row: Any) -> str:
    """Encode the cursor of one row."""
    return CursorKey(created_at=row.created_at, id=row.id).encode()


async def _any_row(session: AsyncSession, stmt: Select[Any]) -> bool:
    result = await session.execute(select(stmt.order_by(None).exists()))
    return bool(result.scalar())


async def keyset_paginate(
    session: AsyncSession,
    stmt: Select[Any],
    *,
    model: Any,
    args: ConnectionArgs,
    to_node: Callable[[Any], NodeType],
    max_page_size: Optional[int] = None,
) -> Connection[NodeType]:
    """
    Page through ``stmt`` with relay semantics.

    Parameters
    ----------
    session : AsyncSession
        Database session.
    stmt : Select
        Filtered selection of ``model`` rows, without ORDER BY or LIMIT.
    model : Any
        ORM class providing ``created_at`` and ``id`` columns.
    args : ConnectionArgs
        first/after/last/before and ordering direction.
    to_node : Callable
        Converts one ORM row into the node model.
    max_page_size : Optional[int]
        Upper bound for ``first``/``last``.

    Returns
    -------
    Connection
        Edges in ordering order with page info and total count.

    Raises
    ------
    InvalidPaginationError
        If the arguments are invalid or a cursor is malformed.
    """
    args.check(max_page_size)
    after_key = args.after_key
    before_key = args.before_key
    order = args.order

    count_result = await session.execute(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    )
    total_count = count_result.scalar_one()

    bounded = stmt
    if after_key is not None:
        bounded = bounded.where(position_clause(model, after_key, after=True, order=order))
    if before_key is not None:
        bounded = bounded.where(position_clause(model, before_key, after=False, order=order))

    forward = [model.created_at.asc(), model.id.asc()]
    backward = [model.created_at.desc(), model.id.desc()]
    if order == SortOrder.DESC:
        forward, backward = backward, forward

    if args.last is not None:
        result = await session.execute(bounded.order_by(*backward).limit(args.last + 1))
        rows = list(result.scalars().all())
        has_previous_page = len(rows) > args.last
        rows = list(reversed(rows[: args.last]))
        has_next_page = before_key is not None and await _any_row(
            session,
            stmt.where(
                position_clause(model, before_key, after=True, order=order, inclusive=True)
            ),
        )
    else:
        query = bounded.order_by(*forward)
        if args.first is not None:
            query = query.limit(args.first + 1)
        result = await session.execute(query)
        rows = list(result.scalars().all())
        if args.first is not None:
            has_next_page = len(rows) > args.first
            rows = rows[: args.first]
        else:
            has_next_page = before_key is not None and await _any_row(
                session,
                stmt.where(
                    position_clause(
                        model, before_key, after=True, order=order, inclusive=True
                    )
                ),
            )
        has_previous_page = after_key is not None and await _any_row(
            session,
            stmt.where(
                position_clause(model, after_key, after=False, order=order, inclusive=True)
            ),
        )

    edges = [Edge[Any](cursor=cursor_for(row), node=to_node(row)) for row in rows]
    return Connection[Any](
        edges=edges,
        page_info=PageInfo(
            has_next_page=has_next_page,
            has_previous_page=has_previous_page,
            start_cursor=edges[0].cursor if edges else None,
            end_cursor=edges[-1].cursor if edges else None,
        ),
        total_count=total_count,
    )
