# evalhub/schemas/listings.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from evalhub.schemas.pagination import CamelModel


class EvaluationRow(CamelModel):
    id: uuid.UUID
    project_id: uuid.UUID
    name: str
    group_id: str
    created_at: datetime
    results_count: int = 0


class TraceRow(CamelModel):
    id: uuid.UUID
    project_id: uuid.UUID
    session_id: Optional[str] = None
    name: Optional[str] = None
    start_time: datetime
    end_time: datetime
    total_tokens: int = 0
    cost: float = 0.0
    status: Optional[str] = None


class DatasetRow(CamelModel):
    id: uuid.UUID
    project_id: uuid.UUID
    name: str
    description: Optional[str] = None
    created_at: datetime
    datapoints_count: int = 0


class DatapointRow(CamelModel):
    id: uuid.UUID
    dataset_id: uuid.UUID
    data: Any
    target: Optional[Any] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)
    index_in_batch: int = 0
    created_at: datetime
