"""Response envelopes shared by every route."""

from typing import Generic, TypeVar

from pydantic import BaseModel, Field

T = TypeVar("T")


class APIResponse(BaseModel, Generic[T]):
    """``{"code": 0, "message": "success", "data": ...}`` for single results."""

    code: int = 0
    message: str = "success"
    data: T | None = None


class PaginatedResponse(APIResponse[list[T]], Generic[T]):
    """One page of a list plus the size of the whole filtered list."""

    data: list[T] = Field(default_factory=list)
    total: int = Field(default=0, ge=0)
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class PaginationParams(BaseModel):
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def slice(self, items: list[T]) -> list[T]:
        """The items that fall on this page; empty past the last page."""
        return items[self.offset : self.offset + self.page_size]
