# evalhub/cli/datapoints.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

import httpx
import typer

from evalhub.cli.utils import setup_cli_logging
from evalhub.datasets.datapoints import READERS

logger = logging.getLogger(__name__)

datapoints_app = typer.Typer(
    name="datapoints", help="Manage dataset datapoints through the API"
)


@datapoints_app.command("upload")
def upload_datapoints(
    files: List[Path] = typer.Argument(..., help="JSON, JSONL or CSV files."),
    api_url: str = typer.Option(..., "--api-url", help="Evalhub API base URL"),
    project_id: str = typer.Option(..., "--project", help="Project id"),
    dataset_id: str = typer.Option(..., "--dataset", help="Dataset id"),
    token: Optional[str] = typer.Option(
        None, "--token", envvar="EVALHUB_TOKEN", help="Bearer token"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    setup_cli_logging(verbose)

    for path in files:
        if not path.is_file():
            typer.echo(f"File not found: {path}", err=True)
            raise typer.Exit(code=1)
        if path.suffix.lstrip(".").lower() not in READERS:
            typer.echo(
                f"Unsupported file {path}, expected one of: {', '.join(sorted(READERS))}",
                err=True,
            )
            raise typer.Exit(code=1)

    url = (
        f"{api_url.rstrip('/')}/projects/{project_id}"
        f"/datasets/{dataset_id}/file-upload"
    )
    headers = {"Authorization": f"Bearer {token}"} if token else {}

    total = 0
    with httpx.Client(timeout=60.0, headers=headers) as client:
        for path in files:
            typer.echo(f"Uploading {path} → {url}")
            try:
                with path.open("rb") as fh:
                    resp = client.post(url, files={"file": (path.name, fh)})
                resp.raise_for_status()
            except httpx.HTTPStatusError as exc:
                typer.echo(
                    f"Upload of {path} failed ({exc.response.status_code}): "
                    f"{exc.response.text}",
                    err=True,
                )
                raise typer.Exit(code=1)
            except httpx.HTTPError as exc:
                typer.echo(f"Upload of {path} failed: {exc}", err=True)
                raise typer.Exit(code=1)

            inserted = resp.json().get("inserted", 0)
            logger.debug("Server accepted %d datapoints from %s", inserted, path)
            total += inserted

    typer.echo(f"Uploaded {total} datapoints from {len(files)} file(s).")
