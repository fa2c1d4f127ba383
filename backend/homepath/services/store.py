# backend/homepath/services/store.py
from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Generic, Iterator, Mapping, Optional, Sequence, TypeVar

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from ..domain.errors import DependencyFailure

log = logging.getLogger("homepath.store")

T = TypeVar("T")

# (op, column) ; column may be None for a plain row count
Reducer = tuple[str, Optional[ColumnElement]]

_REDUCERS: dict[str, Callable[..., Any]] = {
    "sum": func.sum,
    "avg": func.avg,
    "min": func.min,
    "max": func.max,
    "count": func.count,
}


@dataclass(frozen=True)
class Page(Generic[T]):
    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return -(-self.total // self.limit) if self.limit else 0


@contextmanager
def storage_errors(op: str) -> Iterator[None]:
    """
    Convert any storage-layer failure into DependencyFailure.

    The underlying error is logged here and chained, never surfaced in the
    public message.
    """
    try:
        yield
    except SQLAlchemyError as e:
        log.exception("storage operation failed", extra={"report": op})
        raise DependencyFailure(f"storage failure during {op}") from e


class PortfolioStore:
    """
    Query capability the engine consumes: find / count / aggregate_group,
    plus the single-row reads and writes the mutation paths need.

    Every statement goes through Session.execute so a single seam converts
    storage errors.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---- reads ----

    def find(
        self,
        model: type[T],
        *criteria: ColumnElement,
        order_by: Sequence[Any] = (),
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> list[T]:
        q = select(model).where(*criteria)
        if order_by:
            q = q.order_by(*order_by)
        if offset:
            q = q.offset(int(offset))
        if limit is not None:
            q = q.limit(int(limit))
        with storage_errors(f"find:{model.__name__}"):
            return list(self.db.execute(q).scalars().all())

    def find_one(self, model: type[T], *criteria: ColumnElement) -> Optional[T]:
        rows = self.find(model, *criteria, limit=1)
        return rows[0] if rows else None

    def get(self, model: type[T], row_id: int) -> Optional[T]:
        pk = getattr(model, "id")
        return self.find_one(model, pk == int(row_id))

    def count(self, model: type, *criteria: ColumnElement) -> int:
        q = select(func.count()).select_from(model).where(*criteria)
        with storage_errors(f"count:{model.__name__}"):
            return int(self.db.execute(q).scalar_one() or 0)

    def page(
        self,
        model: type[T],
        *criteria: ColumnElement,
        order_by: Sequence[Any],
        page: int,
        limit: int,
    ) -> Page[T]:
        """
        One 1-based page of `model` rows plus the total match count.
        """
        total = self.count(model, *criteria)
        rows = self.find(model, *criteria, order_by=order_by, offset=(int(page) - 1) * int(limit), limit=int(limit))
        return Page(items=rows, total=total, page=int(page), limit=int(limit))

    def aggregate_group(
        self,
        model: type,
        *criteria: ColumnElement,
        group_by: Sequence[ColumnElement],
        reducers: Mapping[str, Reducer],
    ) -> dict[Any, dict[str, Any]]:
        """
        {group key: {reducer name: value}}.

        A single group_by column gives scalar keys; several give tuples.
        """
        if not group_by:
            raise ValueError("aggregate_group requires at least one group_by column")

        cols = []
        for name, (op, column) in reducers.items():
            fn = _REDUCERS.get(op)
            if fn is None:
                raise ValueError(f"unknown reducer op: {op}")
            expr = fn() if column is None else fn(column)
            cols.append(expr.label(name))

        keys = [g.label(f"_k{i}") for i, g in enumerate(group_by)]
        q = select(*keys, *cols).select_from(model).where(*criteria).group_by(*group_by)

        with storage_errors(f"aggregate:{model.__name__}"):
            rows = self.db.execute(q).all()

        out: dict[Any, dict[str, Any]] = {}
        n = len(keys)
        names = list(reducers.keys())
        for r in rows:
            key = r[0] if n == 1 else tuple(r[:n])
            out[key] = {name: r[n + i] for i, name in enumerate(names)}
        return out

    # ---- writes ----

    def add(self, row: Any) -> Any:
        with storage_errors("add"):
            self.db.add(row)
            self.db.flush()
        return row

    def commit(self) -> None:
        with storage_errors("commit"):
            self.db.commit()

    def refresh(self, row: Any) -> Any:
        with storage_errors("refresh"):
            self.db.refresh(row)
        return row


def gather(report: str, tasks: Mapping[str, Callable[[], Any]]) -> dict[str, Any]:
    """
    Fan-out / fan-in barrier for a report's independent sub-queries.

    Sub-queries share one session (one snapshot) and run back to back; the
    first failure aborts the whole report, so callers never see a partially
    populated result.
    """
    t0 = time.time()
    results: dict[str, Any] = {}
    for name, task in tasks.items():
        results[name] = task()
    log.debug(
        "report sub-queries done",
        extra={"report": report, "duration_ms": int((time.time() - t0) * 1000)},
    )
    return results
