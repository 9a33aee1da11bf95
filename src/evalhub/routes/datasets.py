# evalhub/routes/datasets.py
from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from evalhub.api.params import PageParams, page_params
from evalhub.datasets.datapoints import (
    Datapoint,
    DatapointFileError,
    insert_datapoints_from_file,
)
from evalhub.db.engine import get_session, get_sessionmaker
from evalhub.db.models import DatapointRecord, Dataset
from evalhub.db.pagination import paginated_get
from evalhub.schemas.listings import DatapointRow, DatasetRow
from evalhub.schemas.pagination import CamelModel, PaginatedResponse
from evalhub.security.membership import require_project_member

logger = logging.getLogger(__name__)

router = APIRouter(dependencies=[Depends(require_project_member)])
tags = ["datasets"]


class DatapointUploadResponse(CamelModel):
    inserted: int
    datapoints: list[Datapoint]


async def _get_dataset(
    db: AsyncSession, project_id: uuid.UUID, dataset_id: uuid.UUID
) -> Dataset:
    stmt = select(Dataset).where(
        Dataset.id == dataset_id, Dataset.project_id == project_id
    )
    res = await db.execute(stmt)
    dataset = res.scalars().first()
    if dataset is None:
        raise HTTPException(status.HTTP_404_NOT_FOUND, "Dataset not found")
    return dataset


@router.get(
    "/projects/{project_id}/datasets",
    response_model=PaginatedResponse[DatasetRow],
    name="List datasets",
)
async def list_datasets(
    project_id: uuid.UUID,
    page: PageParams = Depends(page_params),
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
):
    datapoints_count = (
        select(func.count(DatapointRecord.id))
        .where(DatapointRecord.dataset_id == Dataset.id)
        .scalar_subquery()
    )

    return await paginated_get(
        sessionmaker,
        table=Dataset,
        page_number=page.page_number,
        page_size=page.page_size,
        base_filters=[Dataset.project_id == project_id],
        filters=[],
        order_by=Dataset.created_at.desc(),
        additional_columns={"datapoints_count": datapoints_count},
    )


@router.get(
    "/projects/{project_id}/datasets/{dataset_id}/datapoints",
    response_model=PaginatedResponse[DatapointRow],
    name="List datapoints",
)
async def list_datapoints(
    project_id: uuid.UUID,
    dataset_id: uuid.UUID,
    page: PageParams = Depends(page_params),
    db: AsyncSession = Depends(get_session),
    sessionmaker: async_sessionmaker[AsyncSession] = Depends(get_sessionmaker),
):
    await _get_dataset(db, project_id, dataset_id)

    return await paginated_get(
        sessionmaker,
        table=DatapointRecord,
        page_number=page.page_number,
        page_size=page.page_size,
        base_filters=[DatapointRecord.dataset_id == dataset_id],
        filters=[],
        order_by=[
            DatapointRecord.created_at.desc(),
            DatapointRecord.index_in_batch.asc(),
        ],
    )


@router.post(
    "/projects/{project_id}/datasets/{dataset_id}/file-upload",
    response_model=DatapointUploadResponse,
    status_code=status.HTTP_201_CREATED,
    name="Upload datapoints file",
)
async def upload_datapoints(
    project_id: uuid.UUID,
    dataset_id: uuid.UUID,
    file: UploadFile = File(...),
    db: AsyncSession = Depends(get_session),
):
    await _get_dataset(db, project_id, dataset_id)

    content = await file.read()
    try:
        datapoints = await insert_datapoints_from_file(
            db, content, file.filename or "", dataset_id
        )
    except DatapointFileError as exc:
        logger.info("Rejected upload %s: %s", file.filename, exc)
        raise HTTPException(status.HTTP_400_BAD_REQUEST, str(exc)) from None
    except IntegrityError:
        await db.rollback()
        logger.info("Upload %s collides with existing datapoint ids", file.filename)
        raise HTTPException(
            status.HTTP_409_CONFLICT, "Datapoint ids already exist"
        ) from None

    return DatapointUploadResponse(inserted=len(datapoints), datapoints=datapoints)
