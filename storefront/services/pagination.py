import math
from dataclasses import dataclass, field
from typing import Any, Callable

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session


@dataclass
class Page:
    items: list[Any]
    total: int
    page: int
    per_page: int
    query: dict[str, Any] = field(default_factory=dict)

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page)) if self.per_page else 1

    def map(self, fn: Callable[[Any], Any]) -> "Page":
        return Page([fn(item) for item in self.items], self.total, self.page, self.per_page, self.query)

    def to_props(self) -> dict[str, Any]:
        first = (self.page - 1) * self.per_page + 1 if self.items else None
        last = first + len(self.items) - 1 if first is not None else None
        return {
            "data": self.items,
            "current_page": self.page,
            "last_page": self.last_page,
            "per_page": self.per_page,
            "total": self.total,
            "from": first,
            "to": last,
        }


def paginate(db: Session, stmt: Select, page: int, per_page: int, query: dict | None = None) -> Page:
    total = db.execute(
        select(func.count()).select_from(stmt.order_by(None).subquery())
    ).scalar_one()
    page = max(1, page)
    rows = (
        db.execute(stmt.limit(per_page).offset((page - 1) * per_page))
        .scalars()
        .all()
    )
    return Page(list(rows), total, page, per_page, dict(query or {}))
