# evalhub/routes/evaluations.py
from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from evalhub.api.filters.parser import parse_filter
from evalhub.api.params import PageParams, page_params
from evalhub.db.engine import get_sessionmaker
from evalhub.db.models import Evaluation, EvaluationResult
from evalhub.db.pagination import paginated_get
from evalhub.schemas.listings import EvaluationRow
from evalhub.schemas.pagination import PaginatedResponse
from evalhub.security.membership import require_project_member

router = APIRouter()
tags = ["evaluations"]


@router.get(
    "/projects/{project_id}/evaluations",
    response_model=PaginatedResponse[EvaluationRow],
    dependencies=[Depends(require_project_member)],
    name="List evaluations",
)
async def list_evaluations(
    project_id: uuid.UUID,
    page: PageParams = Depends(page_params),
    filter: Optional[str] = Query(None, description="WHERE-style row filter"),
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
):
    results_count = (
        select(func.count(EvaluationResult.id))
        .where(EvaluationResult.evaluation_id == Evaluation.id)
        .scalar_subquery()
    )
    user_filter = parse_filter(
        filter, Evaluation.__table__, extra_columns=["results_count"]
    )

    return await paginated_get(
        sessionmaker,
        table=Evaluation,
        page_number=page.page_number,
        page_size=page.page_size,
        base_filters=[Evaluation.project_id == project_id],
        filters=[user_filter] if user_filter is not None else [],
        order_by=Evaluation.created_at.desc(),
        additional_columns={"results_count": results_count},
    )
