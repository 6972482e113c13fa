"""Evaluation persistence with optimistic concurrency.

Every mutating call carries the version the caller read. The write is a
single `UPDATE ... WHERE id = :id AND version = :expected` that also bumps
the version, so of two writers holding the same version only one can
succeed. A zero rowcount is followed by an existence check to tell a
conflict apart from a missing record.
"""

import asyncio
import json
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Iterable, Literal, Optional, Union

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, sessionmaker

from evalflow.models import Evaluation, InterviewAssignment
from evalflow.models.base import utcnow
from evalflow.schemas import (
    EvaluationRecord,
    EvaluationRoundSnapshot,
    EvaluationWriteModel,
    InterviewAssignmentModel,
    InterviewAssignmentRecord,
    InterviewForm,
    InterviewSlot,
    ProcessStatus,
)

logger = structlog.get_logger()

VERSION_CONFLICT = "version-conflict"

WriteResult = Union[EvaluationRecord, Literal["version-conflict"], None]


class EvaluationStore(ABC):
    """Persistence contract consumed by the workflow engine."""

    @abstractmethod
    async def find_evaluation(self, evaluation_id: str) -> Optional[EvaluationRecord]:
        """Load an evaluation or return None."""
        pass

    @abstractmethod
    async def list_evaluations(self) -> list[EvaluationRecord]:
        """Load all evaluations, newest first."""
        pass

    @abstractmethod
    async def create_evaluation(self, model: EvaluationWriteModel) -> EvaluationRecord:
        """Insert a new evaluation at version 1."""
        pass

    @abstractmethod
    async def update_evaluation(self, model: EvaluationWriteModel, expected_version: int) -> WriteResult:
        """Replace the evaluation if its stored version equals expected_version.

        Returns:
            The stored record with version incremented by one,
            VERSION_CONFLICT if the record exists with another version,
            or None if the record does not exist.
        """
        pass

    @abstractmethod
    async def store_assignments(
        self,
        evaluation_id: str,
        assignments: list[InterviewAssignmentModel],
        *,
        expected_version: int,
        round_number: int,
        status: ProcessStatus,
        refresh_slot_ids: Iterable[str],
        update_started_at: bool,
        now: Optional[datetime] = None,
    ) -> WriteResult:
        """Replace the round's assignment rows and set the process status.

        Rows for slots missing from `assignments` are deleted, the others are
        upserted. `invitation_sent_at` is refreshed only for
        `refresh_slot_ids`. New rows and refreshed invitations are stamped
        with `now` (current time when omitted). The whole change is applied
        atomically together with the version check, or not at all.
        """
        pass

    @abstractmethod
    async def list_assignments_for_evaluation(
        self,
        evaluation_id: str,
        round_number: Optional[int] = None,
    ) -> list[InterviewAssignmentRecord]:
        """Load assignment rows of an evaluation, optionally for one round."""
        pass

    @abstractmethod
    async def list_assignments_by_email(self, email: str) -> list[InterviewAssignmentRecord]:
        """Load every assignment row of an interviewer across all rounds."""
        pass

    @abstractmethod
    async def find_assignment(
        self,
        evaluation_id: str,
        slot_id: str,
        round_number: Optional[int] = None,
    ) -> Optional[InterviewAssignmentRecord]:
        """Load one assignment row; the latest round wins when none is given."""
        pass


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes returned by drivers without tz support."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _dump(items) -> str:
    return json.dumps([item.model_dump(mode="json", by_alias=True) for item in items])


def _load(raw: Optional[str], model):
    if not raw:
        return []
    return [model.model_validate(item) for item in json.loads(raw)]


class SQLEvaluationStore(EvaluationStore):
    """EvaluationStore backed by SQLAlchemy.

    A fresh session is opened for every call and the blocking database work
    runs in a worker thread. Nothing is cached between calls.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    # Mapping

    @staticmethod
    def _to_record(row: Evaluation) -> EvaluationRecord:
        return EvaluationRecord(
            id=row.id,
            candidate_id=row.candidate_id,
            round_number=row.round_number,
            interviews=_load(row.interviews, InterviewSlot),
            forms=_load(row.forms, InterviewForm),
            fit_question_id=row.fit_question_id,
            process_status=row.process_status,
            process_started_at=_as_utc(row.process_started_at),
            round_created_at=_as_utc(row.round_created_at),
            round_history=_load(row.round_history, EvaluationRoundSnapshot),
            version=row.version,
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
        )

    @staticmethod
    def _to_assignment(row: InterviewAssignment) -> InterviewAssignmentRecord:
        return InterviewAssignmentRecord(
            id=row.id,
            evaluation_id=row.evaluation_id,
            slot_id=row.slot_id,
            round_number=row.round_number,
            interviewer_email=row.interviewer_email,
            interviewer_name=row.interviewer_name,
            case_folder_id=row.case_folder_id,
            fit_question_id=row.fit_question_id,
            invitation_sent_at=_as_utc(row.invitation_sent_at),
            created_at=_as_utc(row.created_at),
            updated_at=_as_utc(row.updated_at),
        )

    @staticmethod
    def _write_values(model: EvaluationWriteModel) -> dict:
        return {
            "candidate_id": model.candidate_id,
            "round_number": model.round_number,
            "interviews": _dump(model.interviews),
            "forms": _dump(model.forms),
            "fit_question_id": model.fit_question_id,
            "process_status": model.process_status,
            "process_started_at": model.process_started_at,
            "round_created_at": model.round_created_at,
            "round_history": _dump(model.round_history),
        }

    @staticmethod
    def _conditional_update(db: Session, evaluation_id: str, expected_version: int, values: dict) -> bool:
        """Apply values and bump the version if the stored version matches."""
        result = db.execute(
            update(Evaluation)
            .where(Evaluation.id == evaluation_id, Evaluation.version == expected_version)
            .values(**values, version=Evaluation.version + 1)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    @staticmethod
    def _rejection(db: Session, evaluation_id: str, expected_version: int) -> WriteResult:
        """Roll back a rejected write and report why it was rejected."""
        db.rollback()
        exists = db.scalar(select(Evaluation.id).where(Evaluation.id == evaluation_id))
        logger.info(
            "Evaluation conditional write rejected",
            evaluation_id=evaluation_id,
            expected_version=expected_version,
            exists=exists is not None,
        )
        return VERSION_CONFLICT if exists else None

    # Evaluations

    async def find_evaluation(self, evaluation_id: str) -> Optional[EvaluationRecord]:
        def _query():
            with self.session_factory() as db:
                row = db.get(Evaluation, evaluation_id)
                return self._to_record(row) if row else None

        return await asyncio.to_thread(_query)

    async def list_evaluations(self) -> list[EvaluationRecord]:
        def _query():
            with self.session_factory() as db:
                rows = db.scalars(select(Evaluation).order_by(Evaluation.created_at.desc())).all()
                return [self._to_record(row) for row in rows]

        return await asyncio.to_thread(_query)

    async def create_evaluation(self, model: EvaluationWriteModel) -> EvaluationRecord:
        def _insert():
            with self.session_factory() as db:
                row = Evaluation(id=model.id, version=1, **self._write_values(model))
                db.add(row)
                db.commit()
                db.refresh(row)
                return self._to_record(row)

        return await asyncio.to_thread(_insert)

    async def update_evaluation(self, model: EvaluationWriteModel, expected_version: int) -> WriteResult:
        def _update():
            with self.session_factory() as db:
                if not self._conditional_update(db, model.id, expected_version, self._write_values(model)):
                    return self._rejection(db, model.id, expected_version)
                db.commit()
                return self._to_record(db.get(Evaluation, model.id))

        return await asyncio.to_thread(_update)

    async def store_assignments(
        self,
        evaluation_id: str,
        assignments: list[InterviewAssignmentModel],
        *,
        expected_version: int,
        round_number: int,
        status: ProcessStatus,
        refresh_slot_ids: Iterable[str],
        update_started_at: bool,
        now: Optional[datetime] = None,
    ) -> WriteResult:
        refresh = set(refresh_slot_ids)
        now = now or utcnow()

        def _store():
            with self.session_factory() as db:
                values = {"process_status": status}
                if update_started_at:
                    values["process_started_at"] = func.coalesce(Evaluation.process_started_at, now)

                if not self._conditional_update(db, evaluation_id, expected_version, values):
                    return self._rejection(db, evaluation_id, expected_version)

                existing = {
                    row.slot_id: row
                    for row in db.scalars(
                        select(InterviewAssignment).where(
                            InterviewAssignment.evaluation_id == evaluation_id,
                            InterviewAssignment.round_number == round_number,
                        )
                    )
                }
                target_slot_ids = {item.slot_id for item in assignments}

                for slot_id, row in existing.items():
                    if slot_id not in target_slot_ids:
                        db.delete(row)

                for item in assignments:
                    row = existing.get(item.slot_id)
                    if row is None:
                        db.add(InterviewAssignment(
                            id=str(uuid.uuid4()),
                            evaluation_id=evaluation_id,
                            slot_id=item.slot_id,
                            round_number=round_number,
                            interviewer_email=item.interviewer_email,
                            interviewer_name=item.interviewer_name,
                            case_folder_id=item.case_folder_id,
                            fit_question_id=item.fit_question_id,
                            invitation_sent_at=now,
                            created_at=now,
                        ))
                        continue
                    row.interviewer_email = item.interviewer_email
                    row.interviewer_name = item.interviewer_name
                    row.case_folder_id = item.case_folder_id
                    row.fit_question_id = item.fit_question_id
                    if item.slot_id in refresh:
                        row.invitation_sent_at = now

                db.commit()
                return self._to_record(db.get(Evaluation, evaluation_id))

        return await asyncio.to_thread(_store)

    # Assignments

    async def list_assignments_for_evaluation(
        self,
        evaluation_id: str,
        round_number: Optional[int] = None,
    ) -> list[InterviewAssignmentRecord]:
        def _query():
            with self.session_factory() as db:
                query = select(InterviewAssignment).where(InterviewAssignment.evaluation_id == evaluation_id)
                if round_number is not None:
                    query = query.where(InterviewAssignment.round_number == round_number)
                query = query.order_by(InterviewAssignment.round_number, InterviewAssignment.created_at)
                return [self._to_assignment(row) for row in db.scalars(query)]

        return await asyncio.to_thread(_query)

    async def list_assignments_by_email(self, email: str) -> list[InterviewAssignmentRecord]:
        normalized = email.strip().lower()

        def _query():
            with self.session_factory() as db:
                query = (
                    select(InterviewAssignment)
                    .where(func.lower(InterviewAssignment.interviewer_email) == normalized)
                    .order_by(
                        InterviewAssignment.round_number.desc(),
                        InterviewAssignment.invitation_sent_at.desc(),
                    )
                )
                return [self._to_assignment(row) for row in db.scalars(query)]

        return await asyncio.to_thread(_query)

    async def find_assignment(
        self,
        evaluation_id: str,
        slot_id: str,
        round_number: Optional[int] = None,
    ) -> Optional[InterviewAssignmentRecord]:
        def _query():
            with self.session_factory() as db:
                query = select(InterviewAssignment).where(
                    InterviewAssignment.evaluation_id == evaluation_id,
                    InterviewAssignment.slot_id == slot_id,
                )
                if round_number is not None:
                    query = query.where(InterviewAssignment.round_number == round_number)
                row = db.scalars(
                    query.order_by(InterviewAssignment.round_number.desc()).limit(1)
                ).first()
                return self._to_assignment(row) if row else None

        return await asyncio.to_thread(_query)
