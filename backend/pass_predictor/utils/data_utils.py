import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd

from ..errors import DataFormatError, EmptyDatasetError

log = logging.getLogger(__name__)

# header aliases, first match wins
COLUMN_CANDIDATES: Dict[str, List[str]] = {
    "study_hours": ["study_hours", "hours", "study hours", "weekly_study_hours"],
    "attendance": ["attendance", "attendance_pct", "attendance (%)"],
    "passed": ["passed", "pass", "label", "result", "pass_fail"],
}

LABELS = {
    "1": True, "0": False,
    "1.0": True, "0.0": False,
    "true": True, "false": False,
    "yes": True, "no": False,
    "pass": True, "fail": False,
    "passed": True, "failed": False,
}


@dataclass(frozen=True)
class TrainingRecord:
    study_hours: float
    attendance: float
    passed: bool


@dataclass(frozen=True)
class LoadResult:
    records: Tuple[TrainingRecord, ...]
    rejected_rows: int = 0

    def __len__(self):
        return len(self.records)


def detect_columns(columns) -> Dict[str, str]:
    normalized = {str(c).strip().lower(): c for c in columns}
    found, missing = {}, []
    for field, candidates in COLUMN_CANDIDATES.items():
        match = next((normalized[c] for c in candidates if c in normalized), None)
        if match is None:
            missing.append(field)
        else:
            found[field] = match
    if missing:
        log.debug("dataset header was %s", list(columns))
        raise DataFormatError(f"missing columns: {missing}")
    return found


def _row_numbers(mask: pd.Series) -> List[int]:
    # +2: header line plus 1-based numbering, matches what a spreadsheet shows
    return [int(i) + 2 for i in mask[mask].index]


def load_dataset(source) -> LoadResult:
    """Read labeled training rows from a CSV path or file-like object.

    Rows that do not parse raise DataFormatError (all offenders are listed
    in the message). Rows that parse but are out of range are dropped,
    logged and counted in ``rejected_rows``.
    """
    try:
        df = pd.read_csv(source, dtype=str, keep_default_na=False, skipinitialspace=True)
    except pd.errors.EmptyDataError:
        raise EmptyDatasetError("dataset has no rows")
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise DataFormatError(f"could not parse dataset: {e}") from e
    except OSError as e:
        raise DataFormatError(f"could not read dataset: {e}") from e

    cols = detect_columns(df.columns)
    hours_raw = df[cols["study_hours"]].str.strip()
    attendance_raw = df[cols["attendance"]].str.strip()
    label_raw = df[cols["passed"]].str.strip().str.lower()

    hours = pd.to_numeric(hours_raw, errors="coerce")
    attendance = pd.to_numeric(attendance_raw, errors="coerce")
    labels = label_raw.map(LABELS)

    problems = []
    for field, parsed in (("study_hours", hours), ("attendance", attendance), ("passed", labels)):
        bad = parsed.isna()
        if bad.any():
            problems.append(f"{field} unparseable on rows {_row_numbers(bad)}")
    if problems:
        raise DataFormatError("; ".join(problems))

    in_range = np.isfinite(hours) & (hours >= 0) & attendance.between(0, 100)
    rejected = int((~in_range).sum())
    if rejected:
        log.warning("rejected %d out-of-range rows: %s", rejected, _row_numbers(~in_range))

    records = tuple(
        TrainingRecord(study_hours=float(h), attendance=float(a), passed=bool(p))
        for h, a, p in zip(hours[in_range], attendance[in_range], labels[in_range])
    )
    if not records:
        raise EmptyDatasetError(f"no usable rows ({rejected} rejected)")

    log.info("loaded %d training rows (%d rejected)", len(records), rejected)
    return LoadResult(records=records, rejected_rows=rejected)
