import os
from datetime import datetime, timezone

import pytest

from trend_engine.api import app
from trend_engine.config import reset_settings_cache
from trend_engine.smoothing.runner import run_trends


@pytest.fixture
def snapshot_dir(trend_spec):
    run_trends(trend_spec, stamp=datetime(2020, 7, 15, tzinfo=timezone.utc))
    return trend_spec.artifacts.out_dir


def test_snapshot_info(snapshot_dir):
    meta = app.snapshot_info(snapshot_dir)
    assert meta["band_alpha"] == 0.01
    assert set(meta["models"]) == {"positivity", "mortality"}


def test_trend_rows_band(snapshot_dir):
    rows = app.trend_rows("positivity", out_dir=snapshot_dir)
    assert len(rows) == 60
    first = rows[0]
    assert first["date"] == "2020-04-01"
    assert set(first) == {"date", "observed", "fit", "se", "estimate", "lower", "upper"}
    assert all(r["lower"] < r["estimate"] < r["upper"] for r in rows)
    assert all(0 < r["estimate"] < 1 for r in rows)

    narrow = app.trend_rows("positivity", alpha=0.5, out_dir=snapshot_dir)
    assert narrow[0]["upper"] - narrow[0]["lower"] < first["upper"] - first["lower"]

    window = app.trend_rows("mortality", start="2020-05-01", end="2020-05-10", out_dir=snapshot_dir)
    assert [r["date"] for r in window][0] == "2020-05-01"
    assert len(window) == 10
    assert all(r["estimate"] > 0 for r in window)


def test_trend_rows_rejects_bad_input(snapshot_dir):
    with pytest.raises(ValueError):
        app.trend_rows("hospitalisations", out_dir=snapshot_dir)
    with pytest.raises(ValueError):
        app.trend_rows("positivity", start="yesterday", out_dir=snapshot_dir)
    with pytest.raises(ValueError):
        app.trend_rows("positivity", alpha=2.0, out_dir=snapshot_dir)


def test_strata_rows(snapshot_dir):
    rows = app.strata_rows(city="Ponce", age_range="20 to 29", out_dir=snapshot_dir)
    assert rows
    assert {r["city"] for r in rows} == {"Ponce"}
    assert all(r["tests"] >= r["positives"] for r in rows)


def test_missing_snapshot_uses_settings(tmp_path):
    os.environ["TREND_ARTIFACTS_DIR"] = str(tmp_path / "empty")
    reset_settings_cache()
    try:
        with pytest.raises(FileNotFoundError):
            app.snapshot_info()
        with pytest.raises(FileNotFoundError):
            app.strata_rows()
    finally:
        del os.environ["TREND_ARTIFACTS_DIR"]
        reset_settings_cache()


def test_http_endpoints(snapshot_dir):
    testclient = pytest.importorskip("fastapi.testclient")
    os.environ["TREND_ARTIFACTS_DIR"] = snapshot_dir
    reset_settings_cache()
    try:
        client = testclient.TestClient(app.fastapi_app)
        resp = client.get("/trends/mortality", params={"from": "2020-06-01"})
        assert resp.status_code == 200
        assert resp.json()["rows"][0]["date"] == "2020-06-01"
        assert client.get("/trends/positivity", params={"to": "not-a-date"}).status_code == 400
        assert client.get("/snapshot").status_code == 200
    finally:
        del os.environ["TREND_ARTIFACTS_DIR"]
        reset_settings_cache()
