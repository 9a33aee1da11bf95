# evalhub/cli/utils.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml


def setup_cli_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def load_yaml_file(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"YAML file does not exist: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}
