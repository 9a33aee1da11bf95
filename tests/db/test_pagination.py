# tests/db/test_pagination.py
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import Column, Integer, MetaData, String, Table, column, func, select

from evalhub.db.models import Evaluation, EvaluationResult
from evalhub.db.pagination import InvalidPaginationError, paginated_get, resolve_table

T0 = datetime(2026, 1, 1, tzinfo=timezone.utc)


async def add_evaluations(session, project_id, names):
    rows = [
        Evaluation(
            project_id=project_id,
            name=name,
            created_at=T0 + timedelta(minutes=i),
        )
        for i, name in enumerate(names)
    ]
    session.add_all(rows)
    await session.commit()
    return rows


def by_project(project_id):
    return [Evaluation.project_id == project_id]


@pytest.mark.asyncio
async def test_filtered_page_and_total(test_sessionmaker, test_session, seeded):
    pid = seeded.project.id
    await add_evaluations(
        test_session, pid, ["match-1", "other-1", "match-2", "other-2", "other-3"]
    )

    page = await paginated_get(
        test_sessionmaker,
        table=Evaluation,
        page_number=0,
        page_size=10,
        base_filters=by_project(pid),
        filters=[Evaluation.name.like("match%")],
        order_by=Evaluation.name.asc(),
    )

    assert [row["name"] for row in page.items] == ["match-1", "match-2"]
    assert page.total_count == 2
    assert page.any_in_project is True


@pytest.mark.asyncio
async def test_empty_scope(test_sessionmaker, seeded):
    page = await paginated_get(
        test_sessionmaker,
        table=Evaluation,
        page_number=0,
        page_size=10,
        base_filters=by_project(seeded.project.id),
        filters=[],
        order_by=Evaluation.created_at.desc(),
    )

    assert page.items == []
    assert page.total_count == 0
    assert page.any_in_project is False


@pytest.mark.asyncio
async def test_scope_not_empty_but_nothing_matches(test_sessionmaker, test_session, seeded):
    pid = seeded.project.id
    await add_evaluations(test_session, pid, ["a", "b", "c"])

    page = await paginated_get(
        test_sessionmaker,
        table=Evaluation,
        page_number=0,
        page_size=10,
        base_filters=by_project(pid),
        filters=[Evaluation.name == "nope"],
        order_by=Evaluation.created_at.desc(),
    )

    assert page.items == []
    assert page.total_count == 0
    assert page.any_in_project is True


@pytest.mark.asyncio
async def test_base_filters_isolate_projects(test_sessionmaker, test_session, seeded):
    await add_evaluations(test_session, seeded.other_project.id, ["x", "y"])

    page = await paginated_get(
        test_sessionmaker,
        table=Evaluation,
        page_number=0,
        page_size=10,
        base_filters=by_project(seeded.project.id),
        filters=[],
        order_by=Evaluation.created_at.desc(),
    )

    assert page.total_count == 0
    assert page.any_in_project is False


@pytest.mark.asyncio
async def test_pages_cover_ordered_rows(test_sessionmaker, test_session, seeded):
    pid = seeded.project.id
    names = [f"eval-{i}" for i in range(7)]
    await add_evaluations(test_session, pid, names)

    pages = []
    for number in range(4):
        pages.append(
            await paginated_get(
                test_sessionmaker,
                table=Evaluation,
                page_number=number,
                page_size=3,
                base_filters=by_project(pid),
                filters=[],
                order_by=Evaluation.created_at.desc(),
            )
        )

    assert [len(p.items) for p in pages] == [3, 3, 1, 0]
    assert all(p.total_count == 7 for p in pages)
    assert all(p.any_in_project for p in pages)

    seen = [row["name"] for p in pages for row in p.items]
    assert seen == list(reversed(names))


@pytest.mark.asyncio
async def test_order_by_sequence(test_sessionmaker, test_session, seeded):
    pid = seeded.project.id
    test_session.add_all(
        [
            Evaluation(project_id=pid, name="b", group_id="g1", created_at=T0),
            Evaluation(project_id=pid, name="a", group_id="g2", created_at=T0),
            Evaluation(project_id=pid, name="c", group_id="g1", created_at=T0),
        ]
    )
    await test_session.commit()

    page = await paginated_get(
        test_sessionmaker,
        table=Evaluation,
        page_number=0,
        page_size=10,
        base_filters=by_project(pid),
        filters=[],
        order_by=[Evaluation.group_id.asc(), Evaluation.name.desc()],
    )

    assert [(r["group_id"], r["name"]) for r in page.items] == [
        ("g1", "c"),
        ("g1", "b"),
        ("g2", "a"),
    ]


@pytest.mark.asyncio
async def test_additional_columns_are_projected_and_filterable(
    test_sessionmaker, test_session, seeded
):
    pid = seeded.project.id
    with_results, without_results = await add_evaluations(
        test_session, pid, ["with", "without"]
    )
    test_session.add_all(
        [
            EvaluationResult(evaluation_id=with_results.id, data={"q": i}, index=i)
            for i in range(3)
        ]
    )
    await test_session.commit()

    results_count = (
        select(func.count(EvaluationResult.id))
        .where(EvaluationResult.evaluation_id == Evaluation.id)
        .scalar_subquery()
    )

    page = await paginated_get(
        test_sessionmaker,
        table=Evaluation,
        page_number=0,
        page_size=10,
        base_filters=by_project(pid),
        filters=[],
        order_by=Evaluation.name.asc(),
        additional_columns={"results_count": results_count},
    )
    counts = {row["name"]: row["results_count"] for row in page.items}
    assert counts == {"with": 3, "without": 0}

    filtered = await paginated_get(
        test_sessionmaker,
        table=Evaluation,
        page_number=0,
        page_size=10,
        base_filters=by_project(pid),
        filters=[column("results_count") > 0],
        order_by=Evaluation.name.asc(),
        additional_columns={"results_count": results_count},
    )
    assert [row["name"] for row in filtered.items] == ["with"]
    assert filtered.total_count == 1


@pytest.mark.asyncio
async def test_base_table_is_probed_for_existence(test_engine, test_sessionmaker):
    md = MetaData()
    visible = Table(
        "visible_items",
        md,
        Column("id", Integer, primary_key=True),
        Column("owner", String),
    )
    all_items = Table(
        "all_items",
        md,
        Column("id", Integer, primary_key=True),
        Column("owner", String),
        Column("hidden", Integer),
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(md.create_all)
        await conn.execute(all_items.insert().values(id=1, owner="acme", hidden=1))

    page = await paginated_get(
        test_sessionmaker,
        table=visible,
        page_number=0,
        page_size=5,
        base_filters=[visible.c.owner == "acme"],
        filters=[],
        order_by=visible.c.id,
        base_table=all_items,
    )

    assert page.items == []
    assert page.total_count == 0
    assert page.any_in_project is True


@pytest.mark.asyncio
async def test_base_table_missing_filter_column_is_rejected(
    test_engine, test_sessionmaker
):
    md = MetaData()
    visible = Table(
        "visible_things",
        md,
        Column("id", Integer, primary_key=True),
        Column("owner", String),
        Column("kind", String),
    )
    all_things = Table(
        "all_things",
        md,
        Column("id", Integer, primary_key=True),
        Column("owner", String),
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(md.create_all)
        await conn.execute(all_things.insert().values(id=1, owner="acme"))

    with pytest.raises(ValueError, match="kind"):
        await paginated_get(
            test_sessionmaker,
            table=visible,
            page_number=0,
            page_size=5,
            base_filters=[visible.c.owner == "acme", visible.c.kind == "x"],
            filters=[],
            order_by=visible.c.id,
            base_table=all_things,
        )


@pytest.mark.asyncio
async def test_repeated_calls_are_stable(test_sessionmaker, test_session, seeded):
    pid = seeded.project.id
    await add_evaluations(test_session, pid, ["a", "b", "c", "d"])

    kwargs = dict(
        table=Evaluation,
        page_number=1,
        page_size=2,
        base_filters=by_project(pid),
        filters=[Evaluation.name != "a"],
        order_by=Evaluation.name.asc(),
    )
    first = await paginated_get(test_sessionmaker, **kwargs)
    second = await paginated_get(test_sessionmaker, **kwargs)

    assert first == second
    assert [row["name"] for row in first.items] == ["d"]
    assert first.total_count == 3


@pytest.mark.asyncio
async def test_response_serializes_with_camel_case_keys(
    test_sessionmaker, test_session, seeded
):
    await add_evaluations(test_session, seeded.project.id, ["a"])

    page = await paginated_get(
        test_sessionmaker,
        table=Evaluation,
        page_number=0,
        page_size=1,
        base_filters=by_project(seeded.project.id),
        filters=[],
        order_by=Evaluation.name.asc(),
    )
    dumped = page.model_dump(by_alias=True)

    assert set(dumped) == {"items", "totalCount", "anyInProject"}
    assert dumped["totalCount"] == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("page_number,page_size", [(-1, 10), (0, 0), (0, -5)])
async def test_invalid_paging_is_rejected(test_sessionmaker, page_number, page_size):
    with pytest.raises(InvalidPaginationError):
        await paginated_get(
            test_sessionmaker,
            table=Evaluation,
            page_number=page_number,
            page_size=page_size,
            base_filters=by_project(uuid.uuid4()),
            filters=[],
            order_by=Evaluation.created_at.desc(),
        )


def test_resolve_table_accepts_mapped_class_and_table():
    assert resolve_table(Evaluation) is Evaluation.__table__
    assert resolve_table(Evaluation.__table__) is Evaluation.__table__

    with pytest.raises(TypeError):
        resolve_table("evaluations")
