from urllib.parse import parse_qs, urlsplit

import pytest

from evalflow.integrations.ses import MailerNotConfiguredError
from evalflow.middleware.error_handler import (
    AccessDeniedError,
    FormAlreadySubmittedError,
    FormsPendingError,
    InvalidAssignmentResourcesError,
    InvalidInputError,
    InvalidPortalUrlError,
    MailerUnavailableError,
    MissingAssignmentDataError,
    NotFoundError,
    VersionConflictError,
)
from evalflow.models import Account
from evalflow.schemas import (
    CriterionScore,
    EvaluationCreate,
    EvaluationUpdate,
    InterviewFormSubmission,
    SlotInput,
)

from conftest import CASE_A_ID, FIXED_NOW, QUESTION_A_ID, UNKNOWN_ID, two_slot_plan

pytestmark = pytest.mark.anyio


async def invited(workflow):
    """Create the two-slot evaluation and send its first invitations."""
    created = await workflow.create_evaluation(two_slot_plan())
    return await workflow.send_invitations(created.id)


async def submit_all(workflow, evaluation):
    view = evaluation
    for slot, email in (("slot-a", "alice@example.com"), ("slot-b", "bob@example.com")):
        view = await workflow.submit_interview_form(
            evaluation.id,
            slot,
            InterviewFormSubmission(email=email, fit_score=4, case_score=4, submitted=True),
        )
    return view


def slot_inputs(view, **changes_by_slot):
    inputs = []
    for slot in view.interviews:
        data = slot.model_dump()
        data.update(changes_by_slot.get(slot.id, {}))
        inputs.append(SlotInput(**data))
    return inputs


# Plan management


async def test_create_evaluation_starts_as_draft(workflow):
    view = await workflow.create_evaluation(two_slot_plan())

    assert view.process_status == "draft"
    assert view.round_number == 1
    assert view.version == 1
    assert [form.slot_id for form in view.forms] == ["slot-a", "slot-b"]
    assert view.invitation_state.has_invitations is False
    assert view.invitation_state.has_pending_changes is True


async def test_create_evaluation_without_interviews_gets_placeholder(workflow):
    view = await workflow.create_evaluation(EvaluationCreate())

    [slot] = view.interviews
    assert slot.interviewer_name == "Interviewer"
    assert view.forms[0].slot_id == slot.id


async def test_create_evaluation_rejects_malformed_candidate(workflow):
    with pytest.raises(InvalidInputError):
        await workflow.create_evaluation(EvaluationCreate(candidate_id="candidate-1"))


async def test_update_evaluation_requires_current_version(workflow):
    view = await workflow.create_evaluation(two_slot_plan())
    await workflow.update_evaluation(view.id, EvaluationUpdate(version=1, fit_question_id=QUESTION_A_ID))

    with pytest.raises(VersionConflictError):
        await workflow.update_evaluation(view.id, EvaluationUpdate(version=1, fit_question_id=None))


async def test_update_evaluation_syncs_forms(workflow):
    view = await workflow.create_evaluation(two_slot_plan())

    updated = await workflow.update_evaluation(
        view.id,
        EvaluationUpdate(version=view.version, interviews=[SlotInput(id="slot-a", interviewer_name="Alice")]),
    )

    assert [slot.id for slot in updated.interviews] == ["slot-a"]
    assert [form.slot_id for form in updated.forms] == ["slot-a"]
    assert updated.version == 2


async def test_get_evaluation_unknown_id(workflow):
    with pytest.raises(NotFoundError):
        await workflow.get_evaluation(UNKNOWN_ID)
    with pytest.raises(InvalidInputError):
        await workflow.get_evaluation("  ")


# Invitations


async def test_send_invitations_to_everyone(workflow, mailer, session_factory):
    view = await invited(workflow)

    assert view.process_status == "in-progress"
    assert view.process_started_at is not None
    assert view.version == 2
    assert view.invitation_state.has_invitations is True
    assert view.invitation_state.has_pending_changes is False
    assert sorted(mailer.recipients) == ["alice@example.com", "bob@example.com"]

    to, content = mailer.sent[0]
    query = parse_qs(urlsplit(content.link).query)
    slot_id = "slot-a" if to == "alice@example.com" else "slot-b"
    assert content.link.startswith("https://portal.example.com/interviews?")
    assert query == {"evaluation": [view.id], "slot": [slot_id]}
    assert content.candidate_name == "Lovelace Ada"

    with session_factory() as db:
        emails = sorted(account.email for account in db.query(Account).all())
    assert emails == ["alice@example.com", "bob@example.com"]


async def test_invitation_timestamps_follow_workflow_clock(workflow, store):
    view = await invited(workflow)

    assert view.process_started_at == FIXED_NOW
    assert view.invitation_state.last_sent_at == FIXED_NOW
    rows = await store.list_assignments_for_evaluation(view.id)
    assert {row.invitation_sent_at for row in rows} == {FIXED_NOW}
    assert {row.created_at for row in rows} == {FIXED_NOW}


async def test_resend_all_refreshes_every_slot(workflow, mailer):
    view = await invited(workflow)

    again = await workflow.send_invitations(view.id, scope="all")

    assert len(mailer.sent) == 4
    assert again.version == 3
    assert again.process_status == "in-progress"


async def test_updated_scope_sends_only_changed_slot(workflow, mailer, store):
    view = await invited(workflow)
    before = {row.slot_id: row for row in await store.list_assignments_for_evaluation(view.id)}

    edited = await workflow.update_evaluation(
        view.id,
        EvaluationUpdate(
            version=view.version,
            interviews=slot_inputs(view, **{"slot-b": {"interviewer_email": "carol@example.com"}}),
        ),
    )
    assert edited.invitation_state.has_pending_changes is True
    assert [slot.has_pending_changes for slot in edited.invitation_state.slots] == [False, True]

    result = await workflow.send_invitations(view.id, scope="updated")

    assert mailer.recipients[2:] == ["carol@example.com"]
    after = {row.slot_id: row for row in await store.list_assignments_for_evaluation(view.id)}
    assert after["slot-a"].invitation_sent_at == before["slot-a"].invitation_sent_at
    assert after["slot-b"].interviewer_email == "carol@example.com"
    assert result.invitation_state.has_pending_changes is False


async def test_updated_scope_without_changes_is_noop(workflow, mailer):
    view = await invited(workflow)

    result = await workflow.send_invitations(view.id, scope="updated")

    assert len(mailer.sent) == 2
    assert result.version == view.version


async def test_removed_slot_deletes_its_assignment(workflow, mailer, store):
    view = await invited(workflow)
    await workflow.update_evaluation(
        view.id,
        EvaluationUpdate(version=view.version, interviews=slot_inputs(view)[:1]),
    )

    result = await workflow.send_invitations(view.id, scope="updated")

    assert len(mailer.sent) == 2
    rows = await store.list_assignments_for_evaluation(view.id)
    assert [row.slot_id for row in rows] == ["slot-a"]
    assert result.invitation_state.has_pending_changes is False


async def test_missing_assignment_data_sends_nothing(workflow, mailer, store):
    view = await workflow.create_evaluation(EvaluationCreate(
        interviews=[SlotInput(id="slot-a", interviewer_email="alice@example.com", case_folder_id=CASE_A_ID)],
    ))

    with pytest.raises(MissingAssignmentDataError):
        await workflow.send_invitations(view.id)

    assert mailer.sent == []
    assert await store.list_assignments_for_evaluation(view.id) == []
    assert (await workflow.get_evaluation(view.id)).process_status == "draft"


async def test_unknown_case_folder_is_rejected(workflow, mailer):
    view = await workflow.create_evaluation(EvaluationCreate(
        interviews=[SlotInput(
            id="slot-a",
            interviewer_email="alice@example.com",
            case_folder_id=UNKNOWN_ID,
            fit_question_id=QUESTION_A_ID,
        )],
    ))

    with pytest.raises(InvalidAssignmentResourcesError):
        await workflow.send_invitations(view.id)
    assert mailer.sent == []


async def test_invalid_portal_url_is_rejected(workflow, mailer):
    view = await workflow.create_evaluation(two_slot_plan())
    workflow.portal_url = "/relative/path"

    with pytest.raises(InvalidPortalUrlError):
        await workflow.send_invitations(view.id)
    assert mailer.sent == []


async def test_mailer_failure_leaves_state_unchanged(workflow, mailer, store):
    view = await workflow.create_evaluation(two_slot_plan())
    mailer.fail_with()

    with pytest.raises(MailerUnavailableError):
        await workflow.send_invitations(view.id)

    current = await workflow.get_evaluation(view.id)
    assert current.process_status == "draft"
    assert current.version == 1
    assert await store.list_assignments_for_evaluation(view.id) == []


async def test_unconfigured_mailer_maps_to_unavailable(workflow, mailer):
    view = await workflow.create_evaluation(two_slot_plan())
    mailer.error = MailerNotConfiguredError("SES_FROM_EMAIL is not set")

    with pytest.raises(MailerUnavailableError):
        await workflow.send_invitations(view.id)


async def test_stale_write_after_sending_is_a_conflict(workflow, store, mailer):
    view = await workflow.create_evaluation(two_slot_plan())
    real_find = store.find_evaluation

    async def stale_find(evaluation_id):
        record = await real_find(evaluation_id)
        # Another writer lands between the read and the conditional write
        await store.update_evaluation(record.to_write_model(), record.version)
        return record

    store.find_evaluation = stale_find
    with pytest.raises(VersionConflictError):
        await workflow.send_invitations(view.id)


# Rounds


async def test_advance_round_requires_submitted_forms(workflow):
    view = await invited(workflow)

    with pytest.raises(FormsPendingError) as exc_info:
        await workflow.advance_round(view.id)

    assert exc_info.value.details["pendingSlotIds"] == ["slot-a", "slot-b"]


async def test_advance_round_archives_snapshot(workflow):
    view = await invited(workflow)
    completed = await submit_all(workflow, view)
    assert completed.process_status == "completed"

    advanced = await workflow.advance_round(view.id, expected_version=completed.version)

    assert advanced.round_number == 2
    assert advanced.process_status == "draft"
    assert advanced.process_started_at is None
    assert advanced.fit_question_id is None
    assert advanced.round_created_at == FIXED_NOW
    [slot] = advanced.interviews
    assert slot.interviewer_name == "Interviewer"
    assert slot.interviewer_email == ""
    assert [form.slot_id for form in advanced.forms] == [slot.id]
    assert advanced.invitation_state.has_invitations is False

    [snapshot] = advanced.round_history
    assert snapshot.round_number == 1
    assert snapshot.process_status == "completed"
    assert snapshot.completed_at == FIXED_NOW
    assert [item.id for item in snapshot.interviews] == ["slot-a", "slot-b"]
    assert [form.model_dump() for form in snapshot.forms] == [form.model_dump() for form in completed.forms]
    assert snapshot.process_started_at == completed.process_started_at


async def test_advance_round_with_stale_version(workflow):
    view = await invited(workflow)
    completed = await submit_all(workflow, view)

    with pytest.raises(VersionConflictError):
        await workflow.advance_round(view.id, expected_version=completed.version - 1)


# Forms


async def test_save_draft_form(workflow):
    view = await invited(workflow)

    saved = await workflow.submit_interview_form(
        view.id,
        "slot-a",
        InterviewFormSubmission(
            email=" ALICE@example.com ",
            fit_criteria=[
                CriterionScore(criterion_id="structure", score=4),
                CriterionScore(criterion_id="insight", score=5),
            ],
            case_score=3,
            notes="Strong opener",
        ),
    )

    form = saved.form_for("slot-a")
    assert form.fit_score == 4.5
    assert form.case_score == 3
    assert form.notes == "Strong opener"
    assert form.submitted is False
    assert saved.process_status == "in-progress"
    assert saved.version == view.version + 1


async def test_submitted_form_is_final(workflow):
    view = await invited(workflow)
    submission = InterviewFormSubmission(email="alice@example.com", fit_score=4, submitted=True)

    saved = await workflow.submit_interview_form(view.id, "slot-a", submission)
    assert saved.form_for("slot-a").submitted_at == FIXED_NOW

    with pytest.raises(FormAlreadySubmittedError):
        await workflow.submit_interview_form(
            view.id,
            "slot-a",
            InterviewFormSubmission(email="alice@example.com", submitted=False, notes="changed my mind"),
        )
    current = await workflow.get_evaluation(view.id)
    assert current.form_for("slot-a").submitted is True
    assert current.form_for("slot-a").notes is None


async def test_last_submission_completes_evaluation(workflow):
    view = await invited(workflow)

    completed = await submit_all(workflow, view)

    assert completed.process_status == "completed"
    assert all(form.submitted for form in completed.forms)


async def test_wrong_interviewer_is_denied(workflow):
    view = await invited(workflow)

    with pytest.raises(AccessDeniedError):
        await workflow.submit_interview_form(
            view.id,
            "slot-a",
            InterviewFormSubmission(email="bob@example.com", fit_score=1, submitted=True),
        )

    current = await workflow.get_evaluation(view.id)
    assert current.version == view.version
    assert current.form_for("slot-a").fit_score is None


async def test_uninvited_slot_is_denied(workflow):
    view = await workflow.create_evaluation(two_slot_plan())

    with pytest.raises(AccessDeniedError):
        await workflow.submit_interview_form(
            view.id, "slot-a", InterviewFormSubmission(email="alice@example.com"),
        )


async def test_archived_round_form_cannot_be_resubmitted(workflow):
    view = await invited(workflow)
    completed = await submit_all(workflow, view)
    await workflow.advance_round(view.id, expected_version=completed.version)

    with pytest.raises(FormAlreadySubmittedError):
        await workflow.submit_interview_form(
            view.id, "slot-a", InterviewFormSubmission(email="alice@example.com", notes="late"),
        )


async def test_reused_slot_id_needs_live_round_assignment(workflow):
    view = await invited(workflow)
    completed = await submit_all(workflow, view)
    advanced = await workflow.advance_round(view.id, expected_version=completed.version)
    replanned = await workflow.update_evaluation(
        view.id,
        EvaluationUpdate(
            version=advanced.version,
            interviews=[SlotInput(
                id="slot-a",
                interviewer_name="Carol",
                interviewer_email="carol@example.com",
                case_folder_id=CASE_A_ID,
                fit_question_id=QUESTION_A_ID,
            )],
        ),
    )
    alice_submission = InterviewFormSubmission(email="alice@example.com", fit_score=1, submitted=True)

    with pytest.raises(AccessDeniedError):
        await workflow.submit_interview_form(view.id, "slot-a", alice_submission)

    current = await workflow.get_evaluation(view.id)
    assert current.version == replanned.version
    assert current.process_status == "draft"
    assert current.form_for("slot-a").submitted is False

    await workflow.send_invitations(view.id)
    with pytest.raises(AccessDeniedError):
        await workflow.submit_interview_form(view.id, "slot-a", alice_submission)

    saved = await workflow.submit_interview_form(
        view.id, "slot-a", InterviewFormSubmission(email="carol@example.com", fit_score=3),
    )
    assert saved.form_for("slot-a").fit_score == 3
    assert saved.round_history[0].form_for("slot-a").fit_score == 4


# Interviewer listing


async def test_interviewer_assignments_include_archived_rounds(workflow):
    view = await invited(workflow)
    completed = await submit_all(workflow, view)
    advanced = await workflow.advance_round(view.id, expected_version=completed.version)

    [slot] = advanced.interviews
    replanned = await workflow.update_evaluation(
        view.id,
        EvaluationUpdate(
            version=advanced.version,
            interviews=[SlotInput(
                id=slot.id,
                interviewer_name="Alice",
                interviewer_email="alice@example.com",
                case_folder_id=CASE_A_ID,
                fit_question_id=QUESTION_A_ID,
            )],
        ),
    )
    await workflow.send_invitations(replanned.id)

    items = await workflow.list_assignments_for_interviewer("Alice@Example.com")

    assert [(item.round_number, item.is_active) for item in items] == [(2, True), (1, False)]
    live, archived = items
    assert live.evaluation_process_status == "in-progress"
    assert live.form.submitted is False
    assert archived.evaluation_process_status == "completed"
    assert archived.form.submitted is True
    assert archived.form.fit_score == 4
    assert archived.candidate.display_name == "Lovelace Ada"
    assert archived.case_folder.name == "Market entry"
    assert archived.fit_question.short_title == "Leadership"


async def test_interviewer_without_assignments(workflow):
    assert await workflow.list_assignments_for_interviewer("nobody@example.com") == []
    assert await workflow.list_assignments_for_interviewer("  ") == []
