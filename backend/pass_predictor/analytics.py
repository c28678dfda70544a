import pandas as pd
from typing import Dict, List, Sequence

from .store import PredictionRecord, TrendRecord
from .utils.model_utils import PredictionResult

MIN_WEEKLY_HOURS = 5.0
MIN_ATTENDANCE = 80.0
TREND_MARGIN = 0.1


def weekly_prediction_summary(records: Sequence[PredictionRecord], limit: int = 10) -> List[Dict]:
    """Per calendar week (%Y-%W) averages of predictions, most recent first."""
    if not records:
        return []
    df = pd.DataFrame([{
        "created_at": r.created_at,
        "study_hours": r.study_hours,
        "attendance": r.attendance,
        "passed": 1.0 if r.predicted_pass else 0.0,
    } for r in records])
    df["week"] = pd.to_datetime(df["created_at"], utc=True).dt.strftime("%Y-%W")
    grouped = df.groupby("week").agg(
        avg_study_hours=("study_hours", "mean"),
        avg_attendance=("attendance", "mean"),
        pass_rate=("passed", "mean"),
        prediction_count=("passed", "size"),
    ).sort_index(ascending=False).head(limit)
    return [
        {
            "week": week,
            "avg_study_hours": float(row.avg_study_hours),
            "avg_attendance": float(row.avg_attendance),
            "pass_rate": float(row.pass_rate),
            "prediction_count": int(row.prediction_count),
        }
        for week, row in grouped.iterrows()
    ]


def improvement_score(trends: Sequence[TrendRecord]) -> float:
    if len(trends) < 2:
        return 0.0
    first, last = trends[0], trends[-1]
    score = (last.study_hours - first.study_hours) * 0.6 + (last.attendance - first.attendance) * 0.4
    return min(10.0, max(0.0, score))


def pass_probability(trend: TrendRecord) -> float:
    # confidence is |p - 0.5| * 2, so the decision gives back the side of 0.5
    half = trend.confidence / 2
    return 0.5 + half if trend.predicted_pass else 0.5 - half


def overall_trend(trends: Sequence[TrendRecord]) -> str:
    if len(trends) < 2:
        return "Stable"
    delta = pass_probability(trends[-1]) - pass_probability(trends[0])
    if delta > TREND_MARGIN:
        return "Improving"
    if delta < -TREND_MARGIN:
        return "Declining"
    return "Stable"


def student_trend_summary(student_name: str, trends: Sequence[TrendRecord]) -> Dict:
    # trajectory order is by week, whatever order the rows were written in
    ordered = sorted(trends, key=lambda t: (t.week, t.id or 0))
    return {
        "student_name": student_name,
        "weekly_data": ordered,
        "overall_trend": overall_trend(ordered),
        "improvement_score": improvement_score(ordered),
    }


def recommendation(study_hours: float, attendance: float, result: PredictionResult) -> str:
    if result.passed and study_hours >= MIN_WEEKLY_HOURS and attendance >= MIN_ATTENDANCE:
        return "On track, keep up the current routine"
    advice = []
    if study_hours < MIN_WEEKLY_HOURS:
        advice.append(f"study at least {MIN_WEEKLY_HOURS:g} hours weekly")
    if attendance < MIN_ATTENDANCE:
        advice.append(f"raise attendance to {MIN_ATTENDANCE:g}%+")
    if not advice:
        advice.append("review class notes and practice past papers")
    return ("At risk: " if not result.passed else "Borderline: ") + " and ".join(advice)


def batch_summary(results: Sequence[PredictionResult]) -> Dict:
    total = len(results)
    pass_count = sum(1 for r in results if r.passed)
    return {
        "pass_count": pass_count,
        "fail_count": total - pass_count,
        "pass_rate": pass_count / total if total else 0.0,
        "avg_confidence": sum(r.confidence for r in results) / total if total else 0.0,
    }
