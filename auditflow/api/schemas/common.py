"""Shared request/response shapes: paging and the error body."""

from typing import Generic, List, TypeVar

from fastapi import Query
from pydantic import BaseModel, ConfigDict

T = TypeVar("T")


class Page:
    """Query-string paging, injected with ``Depends(Page)``."""

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number, 1-based"),
        per_page: int = Query(20, ge=1, le=100, description="Items per page"),
    ):
        self.page = page
        self.per_page = per_page

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.per_page


class PaginatedResponse(BaseModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    per_page: int
    pages: int

    @classmethod
    def of(cls, items: List[T], total: int, paging: Page):
        pages = -(-total // paging.per_page)
        return cls(items=items, total=total, page=paging.page, per_page=paging.per_page, pages=pages)


class ErrorResponse(BaseModel):
    """Body of every rejected request. Extra keys carry error details."""

    error: str
    detail: str

    model_config = ConfigDict(extra="allow")


ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid input"},
    403: {"model": ErrorResponse, "description": "Not allowed for this principal"},
    404: {"model": ErrorResponse, "description": "Not found or outside scope"},
    409: {"model": ErrorResponse, "description": "Conflicts with current state"},
}
