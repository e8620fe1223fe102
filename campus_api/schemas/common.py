from pydantic import BaseModel, Field
from ..utils.constants import AppConstants


class PaginationInfo(BaseModel):
    """Pagination information"""

    current_page: int
    page_size: int
    total_items: int
    total_pages: int
    has_next: bool
    has_previous: bool


class PaginationParams(BaseModel):
    """Pagination query parameters with constants"""

    page: int = Field(default=AppConstants.DEFAULT_PAGE, ge=1)
    page_size: int = Field(
        default=AppConstants.DEFAULT_PAGE_SIZE, ge=1, le=AppConstants.MAX_PAGE_SIZE
    )

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size

    @property
    def limit(self) -> int:
        return self.page_size
