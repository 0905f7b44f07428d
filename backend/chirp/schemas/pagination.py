from __future__ import annotations

from pydantic import BaseModel, Field


class PaginationMeta(BaseModel):
    """Pagination block returned next to a page of items."""

    page: int = Field(description="Current page")
    limit: int = Field(description="Page size")
    total: int = Field(description="Total number of items")
    pages: int = Field(description="Total number of pages")

    @classmethod
    def create(cls, total: int, page: int, limit: int) -> PaginationMeta:
        pages = (total + limit - 1) // limit if total > 0 else 0
        return cls(page=page, limit=limit, total=total, pages=pages)
