# evalhub/cli/db.py
from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from evalhub.cli.utils import load_yaml_file, setup_cli_logging
from evalhub.db.engine import ASYNC_DATABASE_URL
from evalhub.db.models import Base
from evalhub.db.seed import SeedResult, seed_database
from evalhub.schemas.seed import SeedModel

logger = logging.getLogger(__name__)

db_app = typer.Typer(name="db", help="Database schema and fixtures")

DatabaseUrlOption = typer.Option(
    None,
    "--database-url",
    help="Async SQLAlchemy URL. Defaults to the DATABASE_URL setting.",
)


def _async_url(database_url: Optional[str]) -> str:
    if database_url is None:
        return ASYNC_DATABASE_URL
    return database_url.replace("postgresql+psycopg", "postgresql+asyncpg")


async def _create_schema(url: str, drop: bool) -> None:
    engine = create_async_engine(url, future=True)
    try:
        async with engine.begin() as conn:
            if drop:
                await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
    finally:
        await engine.dispose()


async def _seed(url: str, payload: SeedModel) -> SeedResult:
    engine = create_async_engine(url, future=True)
    try:
        sessionmaker = async_sessionmaker(
            bind=engine, expire_on_commit=False, class_=AsyncSession
        )
        async with sessionmaker() as session:
            return await seed_database(session, payload)
    finally:
        await engine.dispose()


@db_app.command("init")
def init_db(
    drop: bool = typer.Option(
        False, "--drop", help="Drop all tables before creating them."
    ),
    database_url: Optional[str] = DatabaseUrlOption,
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    setup_cli_logging(verbose)
    url = _async_url(database_url)

    try:
        asyncio.run(_create_schema(url, drop))
    except Exception as exc:
        typer.echo(f"Error creating schema: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(f"Created {len(Base.metadata.tables)} tables.")


@db_app.command("seed")
def seed_db(
    input_yaml: Path = typer.Option(
        ..., "--input", "-i", help="YAML file with users and workspaces."
    ),
    database_url: Optional[str] = DatabaseUrlOption,
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    setup_cli_logging(verbose)

    try:
        raw = load_yaml_file(input_yaml)
    except Exception as exc:
        typer.echo(f"Failed to load YAML {input_yaml}: {exc}", err=True)
        raise typer.Exit(code=1)

    try:
        payload = SeedModel.model_validate(raw)
    except ValidationError as exc:
        typer.echo(f"Validation error in {input_yaml}:\n{exc}", err=True)
        raise typer.Exit(code=1)

    try:
        result = asyncio.run(_seed(_async_url(database_url), payload))
    except ValueError as exc:
        typer.echo(f"Seed failed: {exc}", err=True)
        raise typer.Exit(code=1)

    typer.echo(
        f"Seed complete: {result.users} users, {result.workspaces} workspaces, "
        f"{result.members} members, {result.projects} projects created."
    )
