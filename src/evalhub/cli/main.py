# evalhub/cli/main.py
from __future__ import annotations

import typer

from evalhub.cli.datapoints import datapoints_app
from evalhub.cli.db import db_app

app = typer.Typer(help="Evalhub command-line utilities", no_args_is_help=True)

app.add_typer(db_app, name="db")
app.add_typer(datapoints_app, name="datapoints")


def run():
    app()


if __name__ == "__main__":
    run()
