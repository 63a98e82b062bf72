"""Command line interface entry points."""
from __future__ import annotations

import json
import logging
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional

import typer

from ..config import get_settings

app = typer.Typer()


class ModelName(str, Enum):
    POSITIVITY = "positivity"
    MORTALITY = "mortality"


def _configure_logging() -> None:
    logging.basicConfig(
        level=get_settings().log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@app.command("run")
def run(
    spec: Path = typer.Option(..., "--spec", exists=True, file_okay=True, dir_okay=False),
    as_of: Optional[datetime] = typer.Option(
        None, "--as-of", formats=["%Y-%m-%d"], help="Evaluation date bounding valid collection dates"
    ),
) -> None:
    """Fit both trend models and write the snapshot."""

    from ..api.schemas import TrendSpec  # local import to keep startup light
    from ..smoothing.runner import run_trends

    _configure_logging()
    settings = get_settings()
    sp = TrendSpec.model_validate_json(Path(spec).read_text())
    if sp.data.tests_source is None and settings.tests_source:
        sp.data.tests_source = settings.tests_source
    if sp.data.mortality_source is None and settings.mortality_source:
        sp.data.mortality_source = settings.mortality_source
    if sp.artifacts.out_dir is None:
        sp.artifacts.out_dir = settings.artifacts_dir
    try:
        result = run_trends(sp, evaluation_date=as_of.date() if as_of else None)
    except (OSError, ValueError, RuntimeError) as exc:
        typer.echo(f"Run failed: {exc}")
        raise typer.Exit(1)
    summary = {
        "stamp": result.stamp.isoformat(),
        "out_dir": str(result.out_dir) if result.out_dir else None,
        "models": result.models,
    }
    typer.echo(json.dumps(summary, separators=(",", ":")))
    if result.failed:
        raise typer.Exit(1)


@app.command("show")
def show(
    model: ModelName = typer.Option(..., "--model"),
    alpha: Optional[float] = typer.Option(None, "--alpha"),
    last: int = typer.Option(14, "--last", min=1),
    out_dir: Optional[Path] = typer.Option(None, "--out-dir"),
) -> None:
    """Print the most recent rows of a fitted trend with its band."""

    import pandas as pd

    from ..api.app import trend_rows

    try:
        rows = trend_rows(model.value, alpha=alpha, out_dir=out_dir)
    except (FileNotFoundError, ValueError) as exc:
        typer.echo(str(exc))
        raise typer.Exit(1)
    df = pd.DataFrame(rows)
    if df.empty:
        typer.echo("No rows in snapshot")
    else:
        typer.echo(df.tail(last).to_string(index=False))


if __name__ == "__main__":
    app()
