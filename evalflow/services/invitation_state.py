"""Invitation state of an evaluation, derived from its plan and assignments."""

from typing import Optional

from evalflow.schemas import (
    DEFAULT_INTERVIEWER_NAME,
    EvaluationInvitationState,
    EvaluationRecord,
    InterviewAssignmentModel,
    InterviewAssignmentRecord,
    InterviewSlot,
    SlotInvitationState,
)


def normalize_email(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def interviewer_display_name(value: Optional[str]) -> str:
    """Trimmed interviewer name; assignments store a placeholder for blank names."""
    return (value or "").strip() or DEFAULT_INTERVIEWER_NAME


def assignment_differs(slot: InterviewSlot, assignment: Optional[InterviewAssignmentModel]) -> bool:
    """True when the slot no longer matches what was last sent for it."""
    if assignment is None:
        return True
    return (
        normalize_email(slot.interviewer_email) != normalize_email(assignment.interviewer_email)
        or interviewer_display_name(slot.interviewer_name) != (assignment.interviewer_name or "").strip()
        or (slot.case_folder_id or "") != (assignment.case_folder_id or "")
        or (slot.fit_question_id or "") != (assignment.fit_question_id or "")
    )


def compute_invitation_state(
    evaluation: EvaluationRecord,
    assignments: list[InterviewAssignmentRecord],
) -> EvaluationInvitationState:
    """Compare the live plan with the assignments persisted for its round."""
    current = [item for item in assignments if item.round_number == evaluation.round_number]
    live_slot_ids = {slot.id for slot in evaluation.interviews}
    by_slot = {item.slot_id: item for item in current if item.slot_id in live_slot_ids}

    slots = []
    for slot in evaluation.interviews:
        assignment = by_slot.get(slot.id)
        slots.append(SlotInvitationState(
            slot_id=slot.id,
            interviewer_name=slot.interviewer_name,
            interviewer_email=slot.interviewer_email,
            last_sent_at=assignment.invitation_sent_at if assignment else None,
            has_pending_changes=assignment_differs(slot, assignment),
        ))

    has_invitations = bool(by_slot)
    has_orphans = any(item.slot_id not in live_slot_ids for item in current)
    has_pending_changes = (
        not has_invitations
        or any(slot.has_pending_changes for slot in slots)
        or has_orphans
    )
    last_sent_at = max((item.invitation_sent_at for item in by_slot.values()), default=None)

    return EvaluationInvitationState(
        has_invitations=has_invitations,
        has_pending_changes=has_pending_changes,
        last_sent_at=last_sent_at,
        slots=slots,
    )
