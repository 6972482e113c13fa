"""Pydantic schemas for request/response validation."""

from .base import CamelModel, ErrorDetail, ErrorResponse
from .resources import CandidateSummary, CaseFolderSummary, FitQuestionSummary
from .evaluations import (
    DEFAULT_INTERVIEWER_NAME,
    AdvanceRoundRequest,
    CriterionScore,
    EvaluationCreate,
    EvaluationInvitationState,
    EvaluationRecord,
    EvaluationRoundSnapshot,
    EvaluationUpdate,
    EvaluationView,
    EvaluationWriteModel,
    InterviewAssignmentModel,
    InterviewAssignmentRecord,
    InterviewerAssignmentView,
    InterviewForm,
    InterviewFormSubmission,
    InterviewSlot,
    InvitationScope,
    OfferRecommendation,
    ProcessStatus,
    SendInvitationsRequest,
    SlotInput,
    SlotInvitationState,
)

__all__ = [
    # Base
    "CamelModel",
    "ErrorDetail",
    "ErrorResponse",
    # Resources
    "CandidateSummary",
    "CaseFolderSummary",
    "FitQuestionSummary",
    # Evaluations
    "DEFAULT_INTERVIEWER_NAME",
    "CriterionScore",
    "EvaluationInvitationState",
    "EvaluationRecord",
    "EvaluationRoundSnapshot",
    "EvaluationView",
    "EvaluationWriteModel",
    "InterviewAssignmentModel",
    "InterviewAssignmentRecord",
    "InterviewerAssignmentView",
    "InterviewForm",
    "InterviewSlot",
    "InvitationScope",
    "OfferRecommendation",
    "ProcessStatus",
    "SlotInvitationState",
    # Commands
    "AdvanceRoundRequest",
    "EvaluationCreate",
    "EvaluationUpdate",
    "InterviewFormSubmission",
    "SendInvitationsRequest",
    "SlotInput",
]
