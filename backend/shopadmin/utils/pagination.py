"""Pagination helpers shared by list endpoints."""

import math
from dataclasses import dataclass

from fastapi import Query

from ..config import settings


@dataclass
class PageParams:
    page: int
    limit: int

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


def page_params(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
) -> PageParams:
    """FastAPI dependency reading `page` and `limit` from the query string."""
    return PageParams(page=page, limit=limit)


def pagination_meta(params: PageParams, total: int) -> dict:
    total_pages = math.ceil(total / params.limit) if params.limit else 0
    return {
        "page": params.page,
        "limit": params.limit,
        "total": total,
        "total_pages": total_pages,
        "has_next": params.page < total_pages,
        "has_prev": params.page > 1,
    }
