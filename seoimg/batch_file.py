"""Load bulk item field sets from JSON, YAML or CSV files."""

from __future__ import annotations

import csv
import json
from pathlib import Path

import yaml


def _as_fields(row: dict) -> dict[str, str]:
    return {str(k).strip(): "" if v is None else str(v) for k, v in row.items() if k is not None}


def load_batch_file(path: str | Path) -> list[dict[str, str]]:
    """
    One field dict per item. JSON/YAML accept a flat list or ``{"items": [...]}``;
    CSV uses the header row as field names (e.g. title,intro,style,colour).
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Batch file not found: {path}")
    suffix = path.suffix.lower()
    if suffix == ".csv":
        with open(path, newline="", encoding="utf-8") as f:
            return [_as_fields(row) for row in csv.DictReader(f)]

    with open(path, encoding="utf-8") as f:
        data = json.load(f) if suffix == ".json" else yaml.safe_load(f)
    if isinstance(data, dict):
        data = data.get("items", [])
    if not isinstance(data, list):
        raise ValueError(f"Batch file must contain a list of items: {path}")
    return [_as_fields(row) for row in data if isinstance(row, dict)]
