"""
Analytics rollup over a set of entries.

Works on plain row mappings so it can be fed from any query. Age is derived
from ``today`` at call time and never stored.
"""
import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

AGE_GROUPS = ("0-18", "19-30", "31-45", "46-60", "61+")
_UPPER_BOUNDS = ((18, "0-18"), (30, "19-30"), (45, "31-45"), (60, "46-60"))

COLUMNS = (
    "id",
    "gender",
    "marital_status",
    "religion",
    "date_of_birth",
    "bp",
    "temp",
    "weight",
    "diagnosis",
    "treatment",
)

_SYSTOLIC = re.compile(r"\s*(\d+)")


def calculate_age(date_of_birth: date, today: date) -> int:
    if isinstance(date_of_birth, datetime):
        date_of_birth = date_of_birth.date()
    had_birthday = (today.month, today.day) >= (date_of_birth.month, date_of_birth.day)
    return today.year - date_of_birth.year - (0 if had_birthday else 1)


def age_group(age: int) -> str:
    for upper, label in _UPPER_BOUNDS:
        if age <= upper:
            return label
    return AGE_GROUPS[-1]


def parse_systolic(bp: Optional[str]) -> Optional[int]:
    """Integer before the '/' of a reading like "120/80"; None if there is none."""
    if not isinstance(bp, str) or not bp:
        return None
    m = _SYSTOLIC.match(bp.split("/", 1)[0])
    return int(m.group(1)) if m else None


def _distribution(series: pd.Series, key: str) -> List[Dict[str, Any]]:
    counts = series.dropna().value_counts().sort_index()
    return [{key: label, "count": int(n)} for label, n in counts.items()]


def _crosstab(frame: pd.DataFrame, row: str, col: str) -> Dict[str, Dict[str, int]]:
    subset = frame[frame[row].notna()]
    if subset.empty:
        return {}
    table = pd.crosstab(subset[row], subset[col])
    return {
        str(label): {str(c): int(n) for c, n in counts.items() if n}
        for label, counts in table.iterrows()
    }


def to_frame(rows: Iterable[Mapping[str, Any]], today: date) -> pd.DataFrame:
    frame = pd.DataFrame.from_records(
        [{c: row.get(c) for c in COLUMNS} for row in rows], columns=list(COLUMNS)
    )
    frame["age"] = [calculate_age(d, today) for d in frame["date_of_birth"]]
    frame["age_group"] = [age_group(a) for a in frame["age"]]
    frame["weight"] = pd.to_numeric(frame["weight"], errors="coerce")
    frame["systolic"] = [parse_systolic(v) for v in frame["bp"]]
    return frame


def build_analytics(rows: Iterable[Mapping[str, Any]], today: date) -> Dict[str, Any]:
    """
    Chart data for the dashboard.

    ``rows`` carry the keys in ``COLUMNS``. Results depend only on the rows
    and ``today``; the rows are not modified.
    """
    frame = to_frame(rows, today)

    age_counts = frame["age_group"].value_counts().reindex(AGE_GROUPS, fill_value=0)

    bp_rows = frame[frame["systolic"].notna()]
    bp_vs_age = [
        {"age": int(r.age), "systolic": int(r.systolic), "bp": r.bp}
        for r in bp_rows.itertuples(index=False)
    ]

    weighed = frame[frame["weight"].notna()]
    weight_vs_age = [
        {"age": int(r.age), "weight": float(r.weight)}
        for r in weighed.itertuples(index=False)
    ]

    weight_by_age_group = []
    for band in AGE_GROUPS:
        weights = [float(w) for w in weighed.loc[weighed["age_group"] == band, "weight"]]
        weight_by_age_group.append({
            "ageGroup": band,
            "weights": weights,
            "average": sum(weights) / len(weights) if weights else 0,
        })

    return {
        "totalEntries": int(len(frame)),
        "ageDistribution": [
            {"ageGroup": band, "count": int(n)} for band, n in age_counts.items()
        ],
        "genderDistribution": _distribution(frame["gender"], "gender"),
        "maritalStatusDistribution": _distribution(frame["marital_status"], "status"),
        "religionDistribution": _distribution(frame["religion"], "religion"),
        "diagnosisDistribution": _distribution(frame["diagnosis"], "diagnosis"),
        "treatmentDistribution": _distribution(frame["treatment"], "treatment"),
        "bpVsAge": bp_vs_age,
        "weightVsAge": weight_vs_age,
        "weightByAgeGroup": weight_by_age_group,
        "crossTabulations": {
            "diagnosisByGender": _crosstab(frame, "diagnosis", "gender"),
            "treatmentByAgeGroup": _crosstab(frame, "treatment", "age_group"),
        },
    }
