"""
Module: sme_kernel.selectors.base
Responsibility: Abstract base class for read-only query selectors and the
    Page DTO shared by paginated queries.
Architecture position: Kernel > Selectors.  May import from db/ and models/.
    MUST NOT import from services/.

Invariants enforced:
    - Read-only access: selectors never add, delete, flush or commit.
    - DTO return convention: selectors return frozen dataclasses, not ORM
      instances.
"""

from abc import ABC
from dataclasses import dataclass
from typing import Generic, TypeVar

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from sme_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)
T = TypeVar("T")


@dataclass(frozen=True)
class Page(Generic[T]):
    """One page of a filtered query (pages are 1-based)."""

    items: tuple[T, ...]
    page: int
    page_size: int
    total_count: int

    @property
    def total_pages(self) -> int:
        if self.total_count == 0:
            return 0
        return (self.total_count + self.page_size - 1) // self.page_size

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session

    def _count(self, stmt: Select) -> int:
        return self.session.scalar(
            select(func.count()).select_from(stmt.order_by(None).subquery())
        ) or 0

    def _paginate(self, stmt: Select, page: int, page_size: int) -> list:
        page = max(1, page)
        return list(
            self.session.scalars(stmt.offset((page - 1) * page_size).limit(page_size))
        )
