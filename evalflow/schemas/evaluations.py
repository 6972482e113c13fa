"""Pydantic schemas for evaluations, forms, round history and assignments."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import ConfigDict, Field, field_validator

from .base import CamelModel
from .resources import CandidateSummary, CaseFolderSummary, FitQuestionSummary

ProcessStatus = Literal["draft", "in-progress", "completed"]
OfferRecommendation = Literal["yes_priority", "yes_strong", "yes_keep_warm", "no_offer"]
InvitationScope = Literal["all", "updated"]

DEFAULT_INTERVIEWER_NAME = "Interviewer"


class InterviewSlot(CamelModel):
    """One interview position in the live round plan."""

    id: str
    interviewer_name: str = ""
    interviewer_email: str = ""
    case_folder_id: Optional[str] = None
    fit_question_id: Optional[str] = None


class CriterionScore(CamelModel):
    """Score for one case or fit criterion (0-5 scale)."""

    criterion_id: str
    score: Optional[float] = Field(default=None, ge=0, le=5)
    notes: Optional[str] = None


class InterviewForm(CamelModel):
    """Interviewer's scoring record for one slot.

    `submitted` only ever moves from False to True. Once it is True the
    form is frozen for the rest of the round.
    """

    slot_id: str
    interviewer_name: str = ""
    submitted: bool = False
    submitted_at: Optional[datetime] = None
    notes: Optional[str] = None
    fit_score: Optional[float] = Field(default=None, ge=0, le=5)
    case_score: Optional[float] = Field(default=None, ge=0, le=5)
    fit_notes: Optional[str] = None
    case_notes: Optional[str] = None
    fit_criteria: list[CriterionScore] = []
    case_criteria: list[CriterionScore] = []
    interest_notes: Optional[str] = None
    issues_to_test: Optional[str] = None
    offer_recommendation: Optional[OfferRecommendation] = None


class EvaluationRoundSnapshot(CamelModel):
    """Frozen copy of a completed round. Never modified after creation."""

    model_config = ConfigDict(frozen=True)

    round_number: int
    interviews: tuple[InterviewSlot, ...] = ()
    forms: tuple[InterviewForm, ...] = ()
    fit_question_id: Optional[str] = None
    process_status: Literal["completed"] = "completed"
    process_started_at: Optional[datetime] = None
    completed_at: datetime
    created_at: datetime

    def form_for(self, slot_id: str) -> Optional[InterviewForm]:
        """Return the archived form for a slot, if any."""
        return next((form for form in self.forms if form.slot_id == slot_id), None)


class EvaluationWriteModel(CamelModel):
    """Mutable fields of an evaluation, as written by a conditional update."""

    id: str
    candidate_id: Optional[str] = None
    round_number: int = Field(default=1, ge=1)
    interviews: list[InterviewSlot] = []
    forms: list[InterviewForm] = []
    fit_question_id: Optional[str] = None
    process_status: ProcessStatus = "draft"
    process_started_at: Optional[datetime] = None
    round_created_at: Optional[datetime] = None
    round_history: list[EvaluationRoundSnapshot] = []


class EvaluationRecord(EvaluationWriteModel):
    """Stored evaluation: write model plus version and timestamps."""

    version: int = 1
    created_at: datetime
    updated_at: Optional[datetime] = None

    @property
    def interview_count(self) -> int:
        return len(self.interviews)

    def form_for(self, slot_id: str) -> Optional[InterviewForm]:
        """Return the live form for a slot, if any."""
        return next((form for form in self.forms if form.slot_id == slot_id), None)

    def snapshot_for(self, round_number: int) -> Optional[EvaluationRoundSnapshot]:
        """Return the archived snapshot for a round, if any."""
        return next(
            (item for item in self.round_history if item.round_number == round_number),
            None,
        )

    def to_write_model(self, **changes) -> EvaluationWriteModel:
        """Build a write model from this record, overriding the given fields."""
        data = {name: getattr(self, name) for name in EvaluationWriteModel.model_fields}
        data.update(changes)
        return EvaluationWriteModel(**data)


class InterviewAssignmentModel(CamelModel):
    """Desired assignment for one slot, built from the live plan."""

    slot_id: str
    interviewer_email: str
    interviewer_name: str
    case_folder_id: str
    fit_question_id: str


class InterviewAssignmentRecord(InterviewAssignmentModel):
    """Persisted assignment row."""

    id: str
    evaluation_id: str
    round_number: int
    invitation_sent_at: datetime
    created_at: datetime
    updated_at: Optional[datetime] = None


class SlotInvitationState(CamelModel):
    """Invitation state of one live slot."""

    slot_id: str
    interviewer_name: str
    interviewer_email: str
    last_sent_at: Optional[datetime] = None
    has_pending_changes: bool


class EvaluationInvitationState(CamelModel):
    """Derived on read, never stored."""

    has_invitations: bool
    has_pending_changes: bool
    last_sent_at: Optional[datetime] = None
    slots: list[SlotInvitationState] = []


class EvaluationView(EvaluationRecord):
    """Evaluation as returned to callers, with its invitation state."""

    invitation_state: EvaluationInvitationState


class InterviewerAssignmentView(CamelModel):
    """One assignment as seen by the invited interviewer."""

    assignment_id: str
    evaluation_id: str
    slot_id: str
    round_number: int
    is_active: bool
    interviewer_email: str
    interviewer_name: str
    invitation_sent_at: datetime
    evaluation_updated_at: datetime
    evaluation_process_status: ProcessStatus
    candidate: Optional[CandidateSummary] = None
    case_folder: Optional[CaseFolderSummary] = None
    fit_question: Optional[FitQuestionSummary] = None
    form: Optional[InterviewForm] = None


# Commands (validated request payloads)


def _strip(value):
    return value.strip() if isinstance(value, str) else value


class SlotInput(CamelModel):
    """Slot as supplied when editing the plan. A missing id gets generated."""

    id: Optional[str] = None
    interviewer_name: str = ""
    interviewer_email: str = ""
    case_folder_id: Optional[str] = None
    fit_question_id: Optional[str] = None

    @field_validator("interviewer_name", "interviewer_email", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value) if value is not None else ""

    @field_validator("id", "case_folder_id", "fit_question_id", mode="before")
    @classmethod
    def blank_to_none(cls, value):
        return _strip(value) or None


class EvaluationCreate(CamelModel):
    """Schema for creating an evaluation."""

    candidate_id: Optional[str] = None
    fit_question_id: Optional[str] = None
    interviews: list[SlotInput] = []


class EvaluationUpdate(CamelModel):
    """Schema for replacing the live plan of an evaluation.

    Fields left out of the payload keep their stored value.
    """

    version: int
    candidate_id: Optional[str] = None
    fit_question_id: Optional[str] = None
    interviews: Optional[list[SlotInput]] = None


class SendInvitationsRequest(CamelModel):
    """Request to (re)send interview invitations."""

    scope: InvitationScope = "all"


class AdvanceRoundRequest(CamelModel):
    """Request to archive the live round and open the next one."""

    version: Optional[int] = None


class InterviewFormSubmission(CamelModel):
    """Partial form update from an interviewer.

    Only fields present in the payload replace stored values.
    """

    email: str
    submitted: Optional[bool] = None
    notes: Optional[str] = None
    fit_score: Optional[float] = Field(default=None, ge=0, le=5)
    case_score: Optional[float] = Field(default=None, ge=0, le=5)
    fit_notes: Optional[str] = None
    case_notes: Optional[str] = None
    fit_criteria: Optional[list[CriterionScore]] = None
    case_criteria: Optional[list[CriterionScore]] = None
    interest_notes: Optional[str] = None
    issues_to_test: Optional[str] = None
    offer_recommendation: Optional[OfferRecommendation] = None

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value):
        return value.strip().lower() if isinstance(value, str) else value
