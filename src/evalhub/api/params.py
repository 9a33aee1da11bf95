# evalhub/api/params.py
from __future__ import annotations

from dataclasses import dataclass

from fastapi import Query

from evalhub.core.config import settings


@dataclass(frozen=True)
class PageParams:
    page_number: int
    page_size: int


def page_params(
    page_number: int = Query(0, alias="pageNumber", ge=0),
    page_size: int = Query(
        settings.default_page_size,
        alias="pageSize",
        gt=0,
        le=settings.max_page_size,
    ),
) -> PageParams:
    return PageParams(page_number=page_number, page_size=page_size)
