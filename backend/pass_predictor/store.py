"""Append-only persistence for predictions, weekly trends and model versions.

Each store wraps a SQLAlchemy session factory and writes one row per call in
its own session, so writes only need per-record atomicity. Storage failures
surface as PersistenceError.
"""
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import case, func, select
from sqlalchemy.exc import SQLAlchemyError

from .errors import PersistenceError
from .models_db import StudentPrediction, StudentTrend, ModelVersion

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PredictionRecord:
    name: str
    study_hours: float
    attendance: float
    predicted_pass: bool
    confidence: float
    created_at: Optional[datetime] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class TrendRecord:
    student_name: str
    week: int
    study_hours: float
    attendance: float
    predicted_pass: bool
    confidence: float
    created_at: Optional[datetime] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class ModelVersionRecord:
    version: str
    accuracy: float
    features_used: str
    created_at: Optional[datetime] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class ClassStatistics:
    total_students: int
    pass_rate: float
    avg_study_hours: float
    avg_attendance: float


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    # always UTC; SQLite drops the offset on write and returns naive values
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class _AppendOnlyStore:
    model = None
    record_type = None
    fields: tuple = ()

    def __init__(self, session_factory):
        self._session_factory = session_factory

    def _to_record(self, row):
        values = {f: getattr(row, f) for f in self.fields}
        return self.record_type(id=row.id, created_at=_utc(row.created_at), **values)

    def record(self, rec):
        if rec.created_at is None:
            rec = replace(rec, created_at=datetime.now(timezone.utc))
        row = self.model(created_at=_utc(rec.created_at), **{f: getattr(rec, f) for f in self.fields})
        session = self._session_factory()
        try:
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_record(row)
        except SQLAlchemyError as e:
            session.rollback()
            log.warning("%s insert failed: %s", self.model.__tablename__, e)
            raise PersistenceError(f"could not write to {self.model.__tablename__}: {e}") from e
        finally:
            session.close()

    def _fetch(self, stmt) -> list:
        session = self._session_factory()
        try:
            return [self._to_record(row) for row in session.scalars(stmt).all()]
        except SQLAlchemyError as e:
            raise PersistenceError(f"could not read {self.model.__tablename__}: {e}") from e
        finally:
            session.close()


class PredictionStore(_AppendOnlyStore):
    model = StudentPrediction
    record_type = PredictionRecord
    fields = ("name", "study_hours", "attendance", "predicted_pass", "confidence")

    def list(self, name: Optional[str] = None, since: Optional[datetime] = None,
             until: Optional[datetime] = None, limit: Optional[int] = None) -> List[PredictionRecord]:
        stmt = select(StudentPrediction)
        if name is not None:
            stmt = stmt.where(StudentPrediction.name == name)
        if since is not None:
            stmt = stmt.where(StudentPrediction.created_at >= _utc(since))
        if until is not None:
            stmt = stmt.where(StudentPrediction.created_at <= _utc(until))
        stmt = stmt.order_by(StudentPrediction.created_at.asc(), StudentPrediction.id.asc())
        if limit is not None:
            stmt = stmt.limit(limit)
        return self._fetch(stmt)

    def class_statistics(self) -> ClassStatistics:
        stmt = select(
            func.count(StudentPrediction.id),
            func.avg(case((StudentPrediction.predicted_pass, 1.0), else_=0.0)),
            func.avg(StudentPrediction.study_hours),
            func.avg(StudentPrediction.attendance),
        )
        session = self._session_factory()
        try:
            total, pass_rate, hours, attendance = session.execute(stmt).one()
        except SQLAlchemyError as e:
            raise PersistenceError(f"could not aggregate student_predictions: {e}") from e
        finally:
            session.close()
        return ClassStatistics(
            total_students=int(total or 0),
            pass_rate=float(pass_rate or 0.0),
            avg_study_hours=float(hours or 0.0),
            avg_attendance=float(attendance or 0.0),
        )


class TrendStore(_AppendOnlyStore):
    model = StudentTrend
    record_type = TrendRecord
    fields = ("student_name", "week", "study_hours", "attendance", "predicted_pass", "confidence")

    def list(self, student_name: Optional[str] = None, week_from: Optional[int] = None,
             week_to: Optional[int] = None, order_by_week: bool = False) -> List[TrendRecord]:
        stmt = select(StudentTrend)
        if student_name is not None:
            stmt = stmt.where(StudentTrend.student_name == student_name)
        if week_from is not None:
            stmt = stmt.where(StudentTrend.week >= week_from)
        if week_to is not None:
            stmt = stmt.where(StudentTrend.week <= week_to)
        if order_by_week:
            stmt = stmt.order_by(StudentTrend.student_name, StudentTrend.week, StudentTrend.created_at)
        else:
            stmt = stmt.order_by(StudentTrend.created_at.asc(), StudentTrend.id.asc())
        return self._fetch(stmt)


class ModelVersionLog(_AppendOnlyStore):
    model = ModelVersion
    record_type = ModelVersionRecord
    fields = ("version", "accuracy", "features_used")

    def list(self) -> List[ModelVersionRecord]:
        return self._fetch(select(ModelVersion).order_by(ModelVersion.created_at.asc(), ModelVersion.id.asc()))

    def latest(self) -> Optional[ModelVersionRecord]:
        stmt = select(ModelVersion).order_by(ModelVersion.created_at.desc(), ModelVersion.id.desc()).limit(1)
        rows = self._fetch(stmt)
        return rows[0] if rows else None
