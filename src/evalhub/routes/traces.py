# evalhub/routes/traces.py
from __future__ import annotations

import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from evalhub.api.filters.parser import parse_filter
from evalhub.api.params import PageParams, page_params
from evalhub.db.engine import get_sessionmaker
from evalhub.db.filters import get_date_range_filters
from evalhub.db.models import Trace
from evalhub.db.pagination import paginated_get
from evalhub.schemas.listings import TraceRow
from evalhub.schemas.pagination import PaginatedResponse
from evalhub.security.membership import require_project_member

logger = logging.getLogger(__name__)

router = APIRouter()
tags = ["traces"]


@router.get(
    "/projects/{project_id}/traces",
    response_model=PaginatedResponse[TraceRow],
    dependencies=[Depends(require_project_member)],
    name="List traces",
)
async def list_traces(
    project_id: uuid.UUID,
    page: PageParams = Depends(page_params),
    past_hours: Optional[str] = Query(None, alias="pastHours"),
    start_time: Optional[str] = Query(None, alias="startTime"),
    end_time: Optional[str] = Query(None, alias="endTime"),
    filter: Optional[str] = Query(None, description="WHERE-style row filter"),
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
):
    try:
        filters = get_date_range_filters(start_time, end_time, past_hours)
    except ValueError as exc:
        logger.debug("Rejected date range for project %s: %s", project_id, exc)
        raise HTTPException(400, str(exc)) from None

    user_filter = parse_filter(filter, Trace.__table__)
    if user_filter is not None:
        filters.append(user_filter)

    return await paginated_get(
        sessionmaker,
        table=Trace,
        page_number=page.page_number,
        page_size=page.page_size,
        base_filters=[Trace.project_id == project_id],
        filters=filters,
        order_by=Trace.start_time.desc(),
    )
