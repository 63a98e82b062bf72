"""Utilities to persist and reload trend snapshots."""
from __future__ import annotations
import json
from pathlib import Path
from typing import Any, Dict

import pandas as pd

METADATA_FILE = "snapshot.json"


def write_table(path: str | Path, df: pd.DataFrame) -> None:
    """Persist one table to a Parquet file."""

    df.to_parquet(path, index=False)


def write_metadata(path: str | Path, metadata: Dict[str, Any]) -> None:
    Path(path).write_text(json.dumps(metadata, indent=2, default=str))


def write_snapshot(
    out_dir: str | Path, tables: Dict[str, pd.DataFrame], metadata: Dict[str, Any]
) -> Path:
    """Write ``<name>.parquet`` for every table plus ``snapshot.json``.

    The metadata file is written after the tables.
    """

    root = Path(out_dir)
    root.mkdir(parents=True, exist_ok=True)
    for name, df in tables.items():
        write_table(root / f"{name}.parquet", df)
    payload = dict(metadata)
    payload["tables"] = sorted(tables)
    write_metadata(root / METADATA_FILE, payload)
    return root


def read_snapshot_metadata(out_dir: str | Path) -> Dict[str, Any]:
    path = Path(out_dir) / METADATA_FILE
    if not path.exists():
        raise FileNotFoundError(f"no snapshot in {out_dir}")
    return json.loads(path.read_text())


def read_snapshot_table(out_dir: str | Path, name: str) -> pd.DataFrame:
    """Load a table written by :func:`write_snapshot`."""

    path = Path(out_dir) / f"{name}.parquet"
    if not path.exists():
        raise FileNotFoundError(f"snapshot table {name!r} not found in {out_dir}")
    return pd.read_parquet(path)


__all__ = [
    "METADATA_FILE",
    "write_table",
    "write_metadata",
    "write_snapshot",
    "read_snapshot_metadata",
    "read_snapshot_table",
]
