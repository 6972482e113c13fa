"""Business logic services."""

from .accounts import AccountsService
from .evaluation_store import VERSION_CONFLICT, EvaluationStore, SQLEvaluationStore
from .evaluation_workflow import EvaluationWorkflowService
from .invitation_state import compute_invitation_state
from .lookups import CandidatesService, CasesService, QuestionsService

__all__ = [
    "AccountsService",
    "CandidatesService",
    "CasesService",
    "EvaluationStore",
    "EvaluationWorkflowService",
    "QuestionsService",
    "SQLEvaluationStore",
    "VERSION_CONFLICT",
    "compute_invitation_state",
]
