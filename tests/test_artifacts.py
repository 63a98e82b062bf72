import pandas as pd
import pytest

from trend_engine.io import artifacts


def test_snapshot_round_trip(tmp_path):
    table = pd.DataFrame(
        {"date": pd.date_range("2020-04-01", periods=3, freq="D"), "fit": [0.1, 0.2, None]}
    )
    root = artifacts.write_snapshot(tmp_path / "snap", {"tests": table}, {"stamp": "now"})
    assert (root / "tests.parquet").exists()
    meta = artifacts.read_snapshot_metadata(root)
    assert meta == {"stamp": "now", "tables": ["tests"]}
    loaded = artifacts.read_snapshot_table(root, "tests")
    pd.testing.assert_frame_equal(loaded, table, check_freq=False)


def test_missing_snapshot(tmp_path):
    with pytest.raises(FileNotFoundError):
        artifacts.read_snapshot_metadata(tmp_path)
    with pytest.raises(FileNotFoundError):
        artifacts.read_snapshot_table(tmp_path, "tests")
