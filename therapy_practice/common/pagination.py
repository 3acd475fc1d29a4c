"""
Pagination helpers

Offset pagination over SQLAlchemy queries with 1-based page numbers.
"""

import math
from dataclasses import dataclass, field
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field
from sqlalchemy.orm import Query

from therapy_practice.common.error_handling import ValidationError
from therapy_practice.config import settings

T = TypeVar('T')


@dataclass
class Page(Generic[T]):
    """One page of results plus the total row count."""
    items: List[T] = field(default_factory=list)
    total: int = 0
    page: int = 1
    page_size: int = 10

    @property
    def total_pages(self) -> int:
        if self.total == 0:
            return 0
        return math.ceil(self.total / self.page_size)


class PaginationInfo(BaseModel):
    """Schema for pagination metadata."""

    total_items: int = Field(..., description="Total number of items available.")
    total_pages: int = Field(..., description="Total number of pages.")
    current_page: int = Field(..., description="The current page number (1-based).")
    page_size: int = Field(..., description="Number of items per page.")

    @classmethod
    def from_page(cls, page: Page) -> "PaginationInfo":
        return cls(
            total_items=page.total,
            total_pages=page.total_pages,
            current_page=page.page,
            page_size=page.page_size
        )


def normalize_page(page: int = 1, page_size: Optional[int] = None) -> tuple:
    """
    Validate page arguments and apply the configured defaults and limits.

    Raises:
        ValidationError: If page or page_size is below 1
    """
    if page_size is None:
        page_size = settings.DEFAULT_PAGE_SIZE
    if page < 1:
        raise ValidationError("Page must be 1 or greater", details={"page": page})
    if page_size < 1:
        raise ValidationError("Page size must be 1 or greater", details={"page_size": page_size})
    return page, min(page_size, settings.MAX_PAGE_SIZE)


def paginate(query: Query, page: int = 1, page_size: Optional[int] = None) -> Page:
    """
    Run ``query`` for one page.

    Args:
        query: An ordered query
        page: 1-based page number
        page_size: Rows per page, capped at ``settings.MAX_PAGE_SIZE``

    Returns:
        Page with the rows and the total count of the unpaged query
    """
    page, page_size = normalize_page(page, page_size)
    total = query.order_by(None).count()
    items = query.offset((page - 1) * page_size).limit(page_size).all()
    return Page(items=items, total=total, page=page, page_size=page_size)
