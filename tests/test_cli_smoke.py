import json

import pytest

pytest.importorskip("typer")
from typer.testing import CliRunner

from trend_engine.cli.main import app


def test_cli_run_and_show(trend_spec, tmp_path):
    spec_path = tmp_path / "spec.json"
    spec_path.write_text(trend_spec.model_dump_json())
    runner = CliRunner()

    result = runner.invoke(app, ["run", "--spec", str(spec_path), "--as-of", "2020-07-15"])
    assert result.exit_code == 0, result.output
    summary = json.loads(result.output.strip().splitlines()[-1])
    assert summary["models"]["positivity"]["status"] == "ok"
    assert summary["out_dir"] == trend_spec.artifacts.out_dir

    shown = runner.invoke(
        app,
        ["show", "--model", "mortality", "--last", "3", "--out-dir", trend_spec.artifacts.out_dir],
    )
    assert shown.exit_code == 0, shown.output
    assert "estimate" in shown.output
    assert len(shown.output.strip().splitlines()) == 4


def test_cli_run_exits_nonzero_when_every_model_fails(trend_spec, tmp_path):
    spec = trend_spec.model_copy(deep=True)
    spec.positivity.knots_per_30_days = 0.01
    spec.mortality.knots_per_30_days = 0.01
    spec_path = tmp_path / "spec.json"
    spec_path.write_text(spec.model_dump_json())
    result = CliRunner().invoke(app, ["run", "--spec", str(spec_path)])
    assert result.exit_code == 1
    assert '"status":"failed"' in result.output


def test_cli_show_without_snapshot(tmp_path):
    result = CliRunner().invoke(
        app, ["show", "--model", "positivity", "--out-dir", str(tmp_path / "none")]
    )
    assert result.exit_code == 1


def test_cli_run_reports_missing_source(trend_spec, tmp_path):
    spec = trend_spec.model_copy(deep=True)
    spec.data.tests_source = None
    spec.data.mortality_source = str(tmp_path / "missing.csv")
    spec_path = tmp_path / "spec.json"
    spec_path.write_text(spec.model_dump_json())
    result = CliRunner().invoke(app, ["run", "--spec", str(spec_path)])
    assert result.exit_code == 1
    assert "Run failed" in result.output
    assert not isinstance(result.exception, FileNotFoundError)
