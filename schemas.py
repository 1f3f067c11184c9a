from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class BookRequest(BaseModel):
    author_id: int = Field(ge=1)
    title: str = Field(min_length=1, max_length=255)
    stock: int = Field(ge=0)


class BookOut(BaseModel):
    id: int
    author_id: int
    title: str
    stock: int
    publish_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class Pagination(BaseModel):
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=5, gt=0)
    total: int = 0
    total_pages: int = 0

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    def with_total(self, total: int) -> "Pagination":
        total_pages = (total + self.page_size - 1) // self.page_size
        return self.model_copy(update={"total": total, "total_pages": total_pages})


class BookListResponse(BaseModel):
    items: list[BookOut]
    meta: Pagination


class MessageResponse(BaseModel):
    message: str


class StockAdjustmentResponse(BaseModel):
    success: bool
    message: str


class CurrentUser(BaseModel):
    user_id: int
    role: str = "user"
