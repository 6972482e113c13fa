from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import sessionmaker

from evalflow.config.database import build_engine, init_db
from evalflow.integrations.ses import SESError
from evalflow.models import Candidate, CaseFolder, FitQuestion
from evalflow.schemas import EvaluationCreate, SlotInput
from evalflow.services import (
    AccountsService,
    CandidatesService,
    CasesService,
    EvaluationWorkflowService,
    QuestionsService,
    SQLEvaluationStore,
)

PORTAL_URL = "https://portal.example.com/interviews"
FIXED_NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

CANDIDATE_ID = "0b5a8a4e-8d0e-4c55-9d43-0c1f4a3e9a01"
CASE_A_ID = "5d7f2a10-1c3b-4e6f-8a9b-0c1d2e3f4a51"
CASE_B_ID = "5d7f2a10-1c3b-4e6f-8a9b-0c1d2e3f4a52"
QUESTION_A_ID = "9e8d7c6b-5a49-4838-a726-150f4e3d2c61"
QUESTION_B_ID = "9e8d7c6b-5a49-4838-a726-150f4e3d2c62"
UNKNOWN_ID = "00000000-0000-4000-8000-000000000000"


class RecordingMailer:
    """Mailer fake that records every invitation."""

    def __init__(self):
        self.sent = []
        self.error = None

    async def send_interview_assignment(self, to, content):
        if self.error:
            raise self.error
        self.sent.append((to, content))
        return f"message-{len(self.sent)}"

    @property
    def recipients(self):
        return [to for to, _ in self.sent]

    def fail_with(self, message="SES unreachable"):
        self.error = SESError(message)


@pytest.fixture()
def anyio_backend():
    return "asyncio"


@pytest.fixture()
def engine():
    engine = build_engine("sqlite://")
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    with factory() as db:
        db.add(Candidate(id=CANDIDATE_ID, first_name="Ada", last_name="Lovelace"))
        db.add(CaseFolder(id=CASE_A_ID, name="Market entry"))
        db.add(CaseFolder(id=CASE_B_ID, name="Pricing"))
        db.add(FitQuestion(id=QUESTION_A_ID, short_title="Leadership", content="Tell us about..."))
        db.add(FitQuestion(id=QUESTION_B_ID, short_title="Teamwork", content="Describe a time..."))
        db.commit()
    return factory


@pytest.fixture()
def store(session_factory):
    return SQLEvaluationStore(session_factory)


@pytest.fixture()
def mailer():
    return RecordingMailer()


@pytest.fixture()
def workflow(session_factory, store, mailer):
    return EvaluationWorkflowService(
        store=store,
        accounts=AccountsService(session_factory),
        candidates=CandidatesService(session_factory),
        cases=CasesService(session_factory),
        questions=QuestionsService(session_factory),
        mailer=mailer,
        portal_url=PORTAL_URL,
        clock=lambda: FIXED_NOW,
    )


def two_slot_plan(**overrides) -> EvaluationCreate:
    """Draft plan with two fully specified interviews."""
    data = {
        "candidate_id": CANDIDATE_ID,
        "interviews": [
            SlotInput(
                id="slot-a",
                interviewer_name="Alice",
                interviewer_email="Alice@Example.com",
                case_folder_id=CASE_A_ID,
                fit_question_id=QUESTION_A_ID,
            ),
            SlotInput(
                id="slot-b",
                interviewer_name="Bob",
                interviewer_email="bob@example.com",
                case_folder_id=CASE_B_ID,
                fit_question_id=QUESTION_B_ID,
            ),
        ],
    }
    data.update(overrides)
    return EvaluationCreate(**data)
