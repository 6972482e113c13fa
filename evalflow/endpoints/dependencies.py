"""FastAPI dependencies wiring the workflow to its collaborators."""

from functools import lru_cache

from evalflow.config.database import SessionLocal
from evalflow.config.settings import settings
from evalflow.integrations.ses import SESService
from evalflow.services import (
    AccountsService,
    CandidatesService,
    CasesService,
    EvaluationWorkflowService,
    QuestionsService,
    SQLEvaluationStore,
)


@lru_cache
def get_workflow_service() -> EvaluationWorkflowService:
    """Build the workflow service.

    The service holds no evaluation state; every call re-reads the store.
    """
    return EvaluationWorkflowService(
        store=SQLEvaluationStore(SessionLocal),
        accounts=AccountsService(SessionLocal),
        candidates=CandidatesService(SessionLocal),
        cases=CasesService(SessionLocal),
        questions=QuestionsService(SessionLocal),
        mailer=SESService(settings),
        portal_url=settings.INTERVIEW_PORTAL_URL,
    )
