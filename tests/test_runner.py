import json
from datetime import datetime, timezone
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from trend_engine.io.artifacts import read_snapshot_metadata, read_snapshot_table
from trend_engine.smoothing.runner import run_trends

from conftest import write_mortality

STAMP = datetime(2020, 7, 15, 12, 0, tzinfo=timezone.utc)


def test_run_trends_writes_snapshot(trend_spec):
    result = run_trends(trend_spec, stamp=STAMP)
    assert not result.failed
    assert result.models["positivity"]["status"] == "ok"
    assert result.models["mortality"]["status"] == "ok"
    assert result.models["mortality"]["n_knots"] == 2

    tests = result.tables["tests"]
    assert len(tests) == 60
    assert tests["date"].is_monotonic_increasing
    assert np.isfinite(tests["fit"]).all()
    assert (tests["se"] > 0).all()
    assert len(result.tables["hosp_mort"]) == 90
    assert {"Fecha", "IncMueSalud", "count", "fit", "se"} <= set(result.tables["hosp_mort"].columns)

    out_dir = Path(trend_spec.artifacts.out_dir)
    meta = read_snapshot_metadata(out_dir)
    assert meta["stamp"] == STAMP.isoformat()
    assert meta["evaluation_date"] == "2020-07-15"
    assert meta["tables"] == ["all_tests", "hosp_mort", "tests", "tests_by_strata"]
    strata = read_snapshot_table(out_dir, "tests_by_strata")
    assert strata["tests"].sum() == 60 * 200
    assert "Loíza" in set(strata["city"].astype(str))


def test_failed_model_does_not_block_the_other(trend_spec, tmp_path):
    short = write_mortality(tmp_path / "short.csv", days=5)
    spec = trend_spec.model_copy(deep=True)
    spec.data.mortality_source = str(short)
    result = run_trends(spec, stamp=STAMP)
    assert result.models["positivity"]["status"] == "ok"
    assert result.models["mortality"]["status"] == "failed"
    assert "insufficient data" in result.models["mortality"]["error"]
    assert result.tables["hosp_mort"]["fit"].isna().all()
    assert not result.failed
    meta = json.loads((Path(spec.artifacts.out_dir) / "snapshot.json").read_text())
    assert meta["models"]["mortality"]["status"] == "failed"


def test_mortality_before_first_day_fails_alone(trend_spec, tmp_path):
    early = tmp_path / "early.csv"
    pd.DataFrame({"Fecha": ["01/05/2020", "01/06/2020"], "IncMueSalud": [1, 2]}).to_csv(
        early, index=False
    )
    spec = trend_spec.model_copy(deep=True)
    spec.data.mortality_source = str(early)
    result = run_trends(spec, stamp=STAMP)
    assert result.models["positivity"]["status"] == "ok"
    assert result.models["mortality"]["status"] == "failed"
    assert result.tables["hosp_mort"].empty
    assert (Path(spec.artifacts.out_dir) / "snapshot.json").exists()


def test_evaluation_date_is_required(trend_spec):
    spec = trend_spec.model_copy(deep=True)
    spec.data.evaluation_date = None
    with pytest.raises(ValueError):
        run_trends(spec)


def test_explicit_evaluation_date_wins(trend_spec):
    spec = trend_spec.model_copy(deep=True)
    spec.artifacts.out_dir = None
    result = run_trends(spec, evaluation_date=datetime(2020, 4, 30).date(), stamp=STAMP)
    # collection dates after the evaluation date are imputed and then dropped
    assert result.tables["tests"]["date"].max().date().isoformat() == "2020-04-30"
    assert result.out_dir is None
