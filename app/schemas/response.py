from pydantic import BaseModel, Field
from typing import Any, Optional
import math
import uuid

def _rid():
    return uuid.uuid4().hex

class SuccessResponse(BaseModel):
    """Simple success response wrapper with just data, success, and request_id"""
    success: Optional[bool] = Field(default=True)
    request_id: str = Field(default_factory=_rid)
    data: Optional[Any] = None


class PageMeta(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PageMeta":
        total_pages = math.ceil(total / limit) if limit else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )


class PaginatedResponse(SuccessResponse):
    """Success wrapper for list endpoints."""
    pagination: PageMeta
