# tests/routes/test_datasets_api.py
import json
import uuid

import pytest

from evalhub.db.models import Dataset


@pytest.fixture
async def dataset(test_session, seeded):
    ds = Dataset(project_id=seeded.project.id, name="golden", description="QA pairs")
    test_session.add(ds)
    await test_session.commit()
    return ds


def upload_url(project_id, dataset_id):
    return f"/projects/{project_id}/datasets/{dataset_id}/file-upload"


@pytest.mark.asyncio
async def test_list_datasets_counts_datapoints(client, seeded, dataset):
    pid, did = seeded.project.id, dataset.id
    content = b'{"data": 1}\n{"data": 2}\n'

    resp = await client.post(
        upload_url(pid, did), files={"file": ("points.jsonl", content)}
    )
    assert resp.status_code == 201

    resp = await client.get(f"/projects/{pid}/datasets")
    assert resp.status_code == 200
    body = resp.json()
    assert body["totalCount"] == 1
    assert body["items"][0]["name"] == "golden"
    assert body["items"][0]["description"] == "QA pairs"
    assert body["items"][0]["datapointsCount"] == 2


@pytest.mark.asyncio
async def test_upload_then_list_datapoints_in_file_order(client, seeded, dataset):
    pid, did = seeded.project.id, dataset.id
    records = [{"question": f"q{i}"} for i in range(4)]
    content = json.dumps(records).encode()

    resp = await client.post(
        upload_url(pid, did), files={"file": ("points.json", content)}
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["inserted"] == 4
    assert body["datapoints"][0]["datasetId"] == str(did)

    resp = await client.get(
        f"/projects/{pid}/datasets/{did}/datapoints",
        params={"pageNumber": 1, "pageSize": 2},
    )
    assert resp.status_code == 200
    page = resp.json()
    assert page["totalCount"] == 4
    assert [item["data"] for item in page["items"]] == records[2:]
    assert [item["indexInBatch"] for item in page["items"]] == [2, 3]


@pytest.mark.asyncio
async def test_upload_rejects_bad_files(client, seeded, dataset):
    pid, did = seeded.project.id, dataset.id

    resp = await client.post(
        upload_url(pid, did), files={"file": ("points.txt", b"hello")}
    )
    assert resp.status_code == 400

    resp = await client.post(
        upload_url(pid, did), files={"file": ("points.json", b"{broken")}
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_upload_duplicate_ids_conflict(client, seeded, dataset):
    pid, did = seeded.project.id, dataset.id
    content = json.dumps([{"id": str(uuid.uuid4()), "data": "x"}]).encode()

    first = await client.post(upload_url(pid, did), files={"file": ("a.json", content)})
    assert first.status_code == 201

    second = await client.post(upload_url(pid, did), files={"file": ("a.json", content)})
    assert second.status_code == 409


@pytest.mark.asyncio
async def test_unknown_dataset_is_404(client, seeded):
    pid = seeded.project.id
    resp = await client.get(f"/projects/{pid}/datasets/{uuid.uuid4()}/datapoints")
    assert resp.status_code == 404

    resp = await client.post(
        upload_url(pid, uuid.uuid4()), files={"file": ("a.json", b"[]")}
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_dataset_of_other_project_is_hidden(client, test_session, seeded):
    foreign = Dataset(project_id=seeded.other_project.id, name="secret")
    test_session.add(foreign)
    await test_session.commit()
    pid, foreign_id = seeded.project.id, foreign.id

    resp = await client.get(f"/projects/{pid}/datasets/{foreign_id}/datapoints")
    assert resp.status_code == 404

    resp = await client.get(f"/projects/{seeded.other_project.id}/datasets")
    assert resp.status_code == 403
