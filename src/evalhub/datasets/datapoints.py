# evalhub/datasets/datapoints.py
"""
Parsing of uploaded dataset files into datapoints.

Accepted files are JSON (a top-level array), JSON Lines and CSV (header row
gives the keys).  Every record is turned into a datapoint:

- an object holding ``data`` and nothing but ``data``/``target``/``metadata``/
  ``id`` is taken as an already structured datapoint;
- any other object is stored whole as ``data``;
- scalars and arrays become ``data`` as-is;
- ``null`` records are dropped.
"""
from __future__ import annotations

import csv
import io
import json
import logging
import uuid
from pathlib import PurePath
from typing import Any, Callable, Dict, List, Optional

from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from evalhub.db.models import DatapointRecord, utcnow
from evalhub.schemas.pagination import CamelModel

logger = logging.getLogger(__name__)

STRUCTURED_KEYS = frozenset({"data", "target", "metadata", "id"})


class DatapointFileError(ValueError):
    """An uploaded file could not be parsed."""


class UnsupportedFileError(DatapointFileError):
    """The file extension has no reader."""


class Datapoint(CamelModel):
    id: uuid.UUID
    dataset_id: uuid.UUID
    data: Any
    target: Optional[Any] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_raw_value(cls, dataset_id: uuid.UUID, raw: Any) -> Optional["Datapoint"]:
        if raw is None:
            return None

        if not isinstance(raw, dict):
            return cls(id=uuid.uuid4(), dataset_id=dataset_id, data=raw)

        datapoint_id = _parse_uuid(raw.get("id")) or uuid.uuid4()

        if "data" in raw and set(raw) <= STRUCTURED_KEYS:
            metadata = raw.get("metadata")
            return cls(
                id=datapoint_id,
                dataset_id=dataset_id,
                data=raw["data"],
                target=raw.get("target"),
                metadata=metadata if isinstance(metadata, dict) else {},
            )

        # unstructured object: keep all the fields as data
        return cls(id=datapoint_id, dataset_id=dataset_id, data=raw)


def _parse_uuid(value: Any) -> Optional[uuid.UUID]:
    if not isinstance(value, str):
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        return None


# ---------------------------------------------------------------------------
# Readers
# ---------------------------------------------------------------------------


def _decode(data: bytes) -> str:
    try:
        # utf-8-sig drops the BOM spreadsheet exports like to add
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise DatapointFileError(f"file is not valid UTF-8: {exc}") from exc


def read_bytes_jsonl(data: bytes) -> List[Any]:
    values: List[Any] = []
    for lineno, line in enumerate(_decode(data).splitlines(), start=1):
        if not line.strip():
            continue
        try:
            values.append(json.loads(line))
        except json.JSONDecodeError as exc:
            raise DatapointFileError(
                f"error parsing jsonlines at line {lineno}: {exc}"
            ) from exc
    return values


def read_bytes_json(data: bytes) -> List[Any]:
    try:
        content = json.loads(_decode(data))
    except json.JSONDecodeError as exc:
        raise DatapointFileError(f"error parsing json: {exc}") from exc

    if not isinstance(content, list):
        raise DatapointFileError("the file must contain an array of json objects")
    return content


def read_bytes_csv(data: bytes) -> List[Any]:
    reader = csv.reader(io.StringIO(_decode(data), newline=""))
    try:
        headers = next(reader)
    except StopIteration:
        return []
    except csv.Error as exc:
        raise DatapointFileError(f"can't read CSV header: {exc}") from exc

    rows: List[Any] = []
    while True:
        try:
            record = next(reader)
        except StopIteration:
            break
        except csv.Error as exc:
            logger.error("couldn't read line in CSV, %s", exc)
            continue

        row = {
            header: (record[i] if i < len(record) else "")
            for i, header in enumerate(headers)
        }
        rows.append(row)

    return rows


READERS: Dict[str, Callable[[bytes], List[Any]]] = {
    "jsonl": read_bytes_jsonl,
    "json": read_bytes_json,
    "csv": read_bytes_csv,
}


def read_datapoint_file(
    file_bytes: bytes, filename: str, dataset_id: uuid.UUID
) -> List[Datapoint]:
    extension = PurePath(filename).suffix.lstrip(".").lower()
    reader = READERS.get(extension)
    if reader is None:
        raise UnsupportedFileError(
            f"Unsupported file type '{extension or filename}', "
            f"expected one of: {', '.join(sorted(READERS))}"
        )

    records = reader(file_bytes)
    datapoints = [Datapoint.from_raw_value(dataset_id, raw) for raw in records]
    return [dp for dp in datapoints if dp is not None]


async def insert_datapoints_from_file(
    db: AsyncSession,
    file_bytes: bytes,
    filename: str,
    dataset_id: uuid.UUID,
) -> List[Datapoint]:
    datapoints = read_datapoint_file(file_bytes, filename, dataset_id)
    # one timestamp per batch so index_in_batch orders rows within it
    batch_created_at = utcnow()

    db.add_all(
        [
            DatapointRecord(
                id=dp.id,
                dataset_id=dp.dataset_id,
                data=dp.data,
                target=dp.target,
                metadata_=dp.metadata,
                index_in_batch=index,
                created_at=batch_created_at,
            )
            for index, dp in enumerate(datapoints)
        ]
    )
    await db.commit()

    logger.info(
        "Inserted %d datapoints into dataset %s from %s",
        len(datapoints),
        dataset_id,
        filename,
    )
    return datapoints
