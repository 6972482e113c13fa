import pytest

from evalflow.middleware.error_handler import InvalidInputError, NotFoundError
from evalflow.services import CandidatesService, CasesService, QuestionsService
from evalflow.services.lookups import _LookupService

from conftest import CANDIDATE_ID, CASE_A_ID, QUESTION_B_ID, UNKNOWN_ID

pytestmark = pytest.mark.anyio


async def test_lookups_return_summaries(session_factory):
    candidate = await CandidatesService(session_factory).get_candidate(f" {CANDIDATE_ID} ")
    folder = await CasesService(session_factory).get_folder(CASE_A_ID)
    question = await QuestionsService(session_factory).get_question(QUESTION_B_ID)

    assert candidate.display_name == "Lovelace Ada"
    assert folder.name == "Market entry"
    assert question.short_title == "Teamwork"


async def test_lookup_rejects_malformed_id(session_factory):
    with pytest.raises(InvalidInputError):
        await CasesService(session_factory).get_folder("case-1")


async def test_lookup_unknown_id_is_not_found(session_factory):
    with pytest.raises(NotFoundError) as exc_info:
        await QuestionsService(session_factory).get_question(UNKNOWN_ID)

    assert exc_info.value.details == {"resource": "Fit question", "id": UNKNOWN_ID}


def test_lookup_base_requires_summary_mapping(session_factory):
    with pytest.raises(TypeError):
        _LookupService(session_factory)
