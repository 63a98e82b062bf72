from datetime import date

import numpy as np
import pandas as pd
import pytest
from scipy.special import expit

from trend_engine.api.schemas import ArtifactsSpec, TrendDataSpec, TrendSpec

AS_OF = date(2020, 7, 15)
CITIES = ["San Juan", "Ponce", "Loiza"]
AGES = ["20 to 29", "40 to 49", "N/A"]


def write_test_records(path, days=60, per_day=200, start="2020-04-01"):
    """Write a JSON export with ``per_day`` tests on each of ``days`` days."""

    dates = pd.date_range(start, periods=days, freq="D")
    rows = []
    for i, day in enumerate(dates):
        positives = int(round(per_day * expit(-2.0 + 0.02 * i)))
        collected = day.strftime("%m/%d/%Y")
        reported = (day + pd.Timedelta(days=2)).strftime("%m/%d/%Y")
        for j in range(per_day):
            rows.append(
                {
                    "collectedDate": collected,
                    "reportedDate": reported,
                    "createdAt": f"{reported} 09:30",
                    "ageRange": AGES[j % len(AGES)],
                    "patientCity": CITIES[(i + j) % len(CITIES)],
                    "result": "Positive 2019-nCoV" if j < positives else "Negative",
                }
            )
    pd.DataFrame(rows).to_json(path, orient="records")
    return path


def write_mortality(path, days=90, start="2020-04-01"):
    dates = pd.date_range(start, periods=days, freq="D")
    t = np.arange(days)
    counts = np.round(np.exp(np.log(20) + 0.4 * t / max(days - 1, 1))).astype(int)
    pd.DataFrame({"Fecha": dates.strftime("%m/%d/%Y"), "IncMueSalud": counts}).to_csv(
        path, index=False
    )
    return path


@pytest.fixture
def trend_spec(tmp_path):
    tests_path = write_test_records(tmp_path / "tests.json")
    deaths_path = write_mortality(tmp_path / "deaths.csv")
    return TrendSpec(
        data=TrendDataSpec(
            tests_source=str(tests_path),
            mortality_source=str(deaths_path),
            evaluation_date=AS_OF,
        ),
        artifacts=ArtifactsSpec(out_dir=str(tmp_path / "snapshot")),
    )
