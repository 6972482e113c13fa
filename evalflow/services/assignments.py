"""Assignment reconciliation: which invitations must be (re)sent and stored."""

import re
from dataclasses import dataclass, field

from evalflow.middleware.error_handler import (
    InvalidAssignmentDataError,
    InvalidInputError,
    MissingAssignmentDataError,
)
from evalflow.schemas import (
    EvaluationRecord,
    InterviewAssignmentModel,
    InterviewAssignmentRecord,
    InvitationScope,
)

from .invitation_state import assignment_differs, interviewer_display_name, normalize_email

UUID_PATTERN = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$",
    re.IGNORECASE,
)
EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_uuid(value: str) -> bool:
    """Check whether a string has the UUID shape (surrounding whitespace ignored)."""
    return isinstance(value, str) and bool(UUID_PATTERN.match(value.strip()))


def build_assignments(evaluation: EvaluationRecord) -> list[InterviewAssignmentModel]:
    """Build the desired assignment list from the live plan.

    Raises:
        InvalidInputError: The plan has no interviews
        MissingAssignmentDataError: A slot lacks email, case folder or question
        InvalidAssignmentDataError: A slot reference is malformed
    """
    if not evaluation.interviews:
        raise InvalidInputError("Evaluation has no interviews", field="interviews")

    assignments = []
    for slot in evaluation.interviews:
        email = normalize_email(slot.interviewer_email)
        case_id = (slot.case_folder_id or "").strip()
        question_id = (slot.fit_question_id or "").strip()

        missing = [
            name
            for name, value in (
                ("interviewerEmail", email),
                ("caseFolderId", case_id),
                ("fitQuestionId", question_id),
            )
            if not value
        ]
        if missing:
            raise MissingAssignmentDataError(slot.id, missing)

        if not EMAIL_PATTERN.match(email):
            raise InvalidAssignmentDataError(slot.id, "interviewerEmail")
        if not is_uuid(case_id):
            raise InvalidAssignmentDataError(slot.id, "caseFolderId")
        if not is_uuid(question_id):
            raise InvalidAssignmentDataError(slot.id, "fitQuestionId")

        assignments.append(InterviewAssignmentModel(
            slot_id=slot.id,
            interviewer_email=email,
            interviewer_name=interviewer_display_name(slot.interviewer_name),
            case_folder_id=case_id,
            fit_question_id=question_id,
        ))
    return assignments


@dataclass
class ReconciliationPlan:
    """Outcome of comparing desired assignments with persisted ones."""

    scope: InvitationScope
    targets: list[InterviewAssignmentModel]
    changed_slot_ids: list[str] = field(default_factory=list)
    removed_slot_ids: list[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.changed_slot_ids or self.removed_slot_ids)

    @property
    def is_noop(self) -> bool:
        return self.scope == "updated" and not self.has_changes

    @property
    def to_send(self) -> list[InterviewAssignmentModel]:
        """Assignments whose invitation is delivered in this pass."""
        if self.scope == "all":
            return list(self.targets)
        changed = set(self.changed_slot_ids)
        return [item for item in self.targets if item.slot_id in changed]


def plan_reconciliation(
    evaluation: EvaluationRecord,
    targets: list[InterviewAssignmentModel],
    existing: list[InterviewAssignmentRecord],
    scope: InvitationScope,
) -> ReconciliationPlan:
    """Diff targets against the rows persisted for the evaluation's round.

    A draft evaluation is always sent to everyone.
    """
    if evaluation.process_status == "draft":
        scope = "all"

    current = {
        item.slot_id: item
        for item in existing
        if item.round_number == evaluation.round_number
    }
    slots = {slot.id: slot for slot in evaluation.interviews}
    target_ids = {item.slot_id for item in targets}

    changed = [
        item.slot_id
        for item in targets
        if assignment_differs(slots[item.slot_id], current.get(item.slot_id))
    ]
    removed = [slot_id for slot_id in current if slot_id not in target_ids]

    return ReconciliationPlan(
        scope=scope,
        targets=targets,
        changed_slot_ids=changed,
        removed_slot_ids=removed,
    )
