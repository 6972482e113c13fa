import asyncio

import pytest
from sqlalchemy.orm import sessionmaker

from evalflow.config.database import build_engine, init_db
from evalflow.schemas import EvaluationRecord, EvaluationWriteModel, InterviewAssignmentModel, InterviewForm, InterviewSlot
from evalflow.services import VERSION_CONFLICT, SQLEvaluationStore

from conftest import CASE_A_ID, QUESTION_A_ID

pytestmark = pytest.mark.anyio


def draft(evaluation_id="evaluation-1"):
    slot = InterviewSlot(id="slot-a", interviewer_name="Alice", interviewer_email="alice@example.com")
    return EvaluationWriteModel(
        id=evaluation_id,
        interviews=[slot],
        forms=[InterviewForm(slot_id="slot-a", interviewer_name="Alice")],
    )


def assignment(email="alice@example.com"):
    return InterviewAssignmentModel(
        slot_id="slot-a",
        interviewer_email=email,
        interviewer_name="Alice",
        case_folder_id=CASE_A_ID,
        fit_question_id=QUESTION_A_ID,
    )


async def test_create_and_find_round_trip(store):
    created = await store.create_evaluation(draft())

    assert created.version == 1
    assert created.created_at.tzinfo is not None

    found = await store.find_evaluation("evaluation-1")
    assert found.interviews[0].interviewer_email == "alice@example.com"
    assert found.forms[0].slot_id == "slot-a"
    assert found.process_status == "draft"
    assert await store.find_evaluation("missing") is None


async def test_update_increments_version(store):
    created = await store.create_evaluation(draft())

    updated = await store.update_evaluation(created.to_write_model(process_status="in-progress"), 1)

    assert updated.version == 2
    assert updated.process_status == "in-progress"


async def test_stale_version_is_rejected_without_change(store):
    created = await store.create_evaluation(draft())
    await store.update_evaluation(created.to_write_model(fit_question_id=QUESTION_A_ID), 1)

    result = await store.update_evaluation(created.to_write_model(process_status="completed"), 1)

    assert result == VERSION_CONFLICT
    current = await store.find_evaluation("evaluation-1")
    assert current.version == 2
    assert current.process_status == "draft"
    assert current.fit_question_id == QUESTION_A_ID


async def test_update_of_missing_record_returns_none(store):
    assert await store.update_evaluation(draft("missing"), 1) is None


async def test_second_writer_with_same_version_loses(store):
    created = await store.create_evaluation(draft())

    first = await store.update_evaluation(created.to_write_model(process_status="in-progress"), created.version)
    second = await store.update_evaluation(created.to_write_model(process_status="completed"), created.version)

    assert first.version == 2
    assert second == VERSION_CONFLICT


async def test_simultaneous_equal_version_writes_on_file_database(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'evaluations.db'}")
    init_db(bind=engine)
    file_store = SQLEvaluationStore(sessionmaker(autocommit=False, autoflush=False, bind=engine))
    created = await file_store.create_evaluation(draft())

    try:
        results = await asyncio.gather(
            file_store.update_evaluation(created.to_write_model(process_status="in-progress"), 1),
            file_store.update_evaluation(created.to_write_model(process_status="completed"), 1),
        )

        winners = [result for result in results if isinstance(result, EvaluationRecord)]
        assert len(winners) == 1
        assert results.count(VERSION_CONFLICT) == 1
        assert winners[0].version == 2

        current = await file_store.find_evaluation("evaluation-1")
        assert current.version == 2
        assert current.process_status == winners[0].process_status
    finally:
        engine.dispose()


async def test_store_assignments_sets_status_and_rows(store):
    await store.create_evaluation(draft())

    record = await store.store_assignments(
        "evaluation-1",
        [assignment()],
        expected_version=1,
        round_number=1,
        status="in-progress",
        refresh_slot_ids=["slot-a"],
        update_started_at=True,
    )

    assert record.version == 2
    assert record.process_status == "in-progress"
    assert record.process_started_at is not None
    [row] = await store.list_assignments_for_evaluation("evaluation-1", 1)
    assert row.interviewer_email == "alice@example.com"
    assert row.round_number == 1


async def test_store_assignments_conflict_leaves_rows_untouched(store):
    await store.create_evaluation(draft())
    await store.store_assignments(
        "evaluation-1",
        [assignment()],
        expected_version=1,
        round_number=1,
        status="in-progress",
        refresh_slot_ids=["slot-a"],
        update_started_at=True,
    )

    result = await store.store_assignments(
        "evaluation-1",
        [assignment("carol@example.com")],
        expected_version=1,
        round_number=1,
        status="in-progress",
        refresh_slot_ids=["slot-a"],
        update_started_at=True,
    )

    assert result == VERSION_CONFLICT
    [row] = await store.list_assignments_for_evaluation("evaluation-1")
    assert row.interviewer_email == "alice@example.com"


async def test_store_assignments_keeps_sent_at_unless_refreshed(store):
    await store.create_evaluation(draft())
    await store.store_assignments(
        "evaluation-1",
        [assignment()],
        expected_version=1,
        round_number=1,
        status="in-progress",
        refresh_slot_ids=["slot-a"],
        update_started_at=True,
    )
    [before] = await store.list_assignments_for_evaluation("evaluation-1")

    record = await store.store_assignments(
        "evaluation-1",
        [assignment()],
        expected_version=2,
        round_number=1,
        status="in-progress",
        refresh_slot_ids=[],
        update_started_at=True,
    )

    [after] = await store.list_assignments_for_evaluation("evaluation-1")
    assert after.id == before.id
    assert after.invitation_sent_at == before.invitation_sent_at
    assert record.version == 3


async def test_find_assignment_prefers_latest_round(store):
    await store.create_evaluation(draft())
    for version, round_number in ((1, 1), (2, 2)):
        await store.store_assignments(
            "evaluation-1",
            [assignment()],
            expected_version=version,
            round_number=round_number,
            status="in-progress",
            refresh_slot_ids=["slot-a"],
            update_started_at=True,
        )

    latest = await store.find_assignment("evaluation-1", "slot-a")
    first = await store.find_assignment("evaluation-1", "slot-a", round_number=1)

    assert latest.round_number == 2
    assert first.round_number == 1
    assert await store.find_assignment("evaluation-1", "slot-x") is None


async def test_list_assignments_by_email_is_case_insensitive(store):
    await store.create_evaluation(draft())
    await store.store_assignments(
        "evaluation-1",
        [assignment()],
        expected_version=1,
        round_number=1,
        status="in-progress",
        refresh_slot_ids=["slot-a"],
        update_started_at=True,
    )

    rows = await store.list_assignments_by_email("  ALICE@example.com ")

    assert [row.slot_id for row in rows] == ["slot-a"]
    assert await store.list_assignments_by_email("bob@example.com") == []
