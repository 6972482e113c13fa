"""Round lifecycle: archive the completed round and open the next one."""

import uuid
from datetime import datetime

from evalflow.middleware.error_handler import FormsPendingError
from evalflow.schemas import (
    DEFAULT_INTERVIEWER_NAME,
    EvaluationRecord,
    EvaluationRoundSnapshot,
    EvaluationWriteModel,
    InterviewForm,
    InterviewSlot,
)


def pending_slot_ids(evaluation: EvaluationRecord) -> list[str]:
    """Slot ids of the live round whose form is not submitted yet."""
    return [form.slot_id for form in evaluation.forms if not form.submitted]


def snapshot_round(evaluation: EvaluationRecord, completed_at: datetime) -> EvaluationRoundSnapshot:
    """Freeze the live round."""
    return EvaluationRoundSnapshot(
        round_number=evaluation.round_number,
        interviews=tuple(slot.model_copy(deep=True) for slot in evaluation.interviews),
        forms=tuple(form.model_copy(deep=True) for form in evaluation.forms),
        fit_question_id=evaluation.fit_question_id,
        process_status="completed",
        process_started_at=evaluation.process_started_at,
        completed_at=completed_at,
        created_at=evaluation.round_created_at or evaluation.created_at,
    )


def advance_round(evaluation: EvaluationRecord, now: datetime) -> EvaluationWriteModel:
    """Archive the live round into history and reset the plan for the next one.

    Raises:
        FormsPendingError: The round has no forms or any form is unsubmitted
    """
    pending = pending_slot_ids(evaluation)
    if not evaluation.forms or pending:
        raise FormsPendingError(pending)

    snapshot = snapshot_round(evaluation, completed_at=now)
    history = [
        item for item in evaluation.round_history
        if item.round_number != snapshot.round_number
    ]
    history.append(snapshot)
    history.sort(key=lambda item: item.round_number)

    slot = InterviewSlot(
        id=str(uuid.uuid4()),
        interviewer_name=DEFAULT_INTERVIEWER_NAME,
        interviewer_email="",
    )
    form = InterviewForm(slot_id=slot.id, interviewer_name=slot.interviewer_name)

    return evaluation.to_write_model(
        round_number=evaluation.round_number + 1,
        interviews=[slot],
        forms=[form],
        fit_question_id=None,
        process_status="draft",
        process_started_at=None,
        round_created_at=now,
        round_history=history,
    )
