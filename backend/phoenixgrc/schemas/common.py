"""Shared response envelopes."""
import math
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


class Page(BaseModel, Generic[T]):
    items: list[T]
    total_items: int
    total_pages: int
    page: int
    page_size: int


class MessageOut(BaseModel):
    message: str


def clamp_paging(page: int | None, page_size: int | None) -> tuple[int, int]:
    """Out-of-range paging values fall back to the nearest valid ones."""
    page = page if page and page > 0 else 1
    if not page_size or page_size < 1:
        page_size = DEFAULT_PAGE_SIZE
    return page, min(page_size, MAX_PAGE_SIZE)


def page_count(total_items: int, page_size: int) -> int:
    return math.ceil(total_items / page_size) if total_items else 0
