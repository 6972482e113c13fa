"""Evaluation workflow: invitations, round advancement and form submission.

Every operation re-reads the evaluation, computes the change and writes it
back through the store's conditional update. A stale read surfaces as
VERSION_CONFLICT; nothing is retried here because a retry could resend
invitations.
"""

import uuid
from datetime import datetime
from typing import Callable, Optional

import structlog

from evalflow.integrations.ses import InterviewAssignmentEmail, SESError
from evalflow.middleware.error_handler import (
    AccessDeniedError,
    FormAlreadySubmittedError,
    InvalidAssignmentResourcesError,
    InvalidInputError,
    MailerUnavailableError,
    NotFoundError,
    VersionConflictError,
)
from evalflow.models.base import utcnow
from evalflow.schemas import (
    DEFAULT_INTERVIEWER_NAME,
    CandidateSummary,
    EvaluationCreate,
    EvaluationRecord,
    EvaluationUpdate,
    EvaluationView,
    EvaluationWriteModel,
    InterviewAssignmentModel,
    InterviewAssignmentRecord,
    InterviewerAssignmentView,
    InterviewFormSubmission,
    InterviewSlot,
    InvitationScope,
    SlotInput,
)

from .assignments import build_assignments, is_uuid, plan_reconciliation
from .evaluation_store import VERSION_CONFLICT, EvaluationStore, WriteResult
from .forms import all_submitted, merge_submission, sync_forms
from .invitation_state import compute_invitation_state, normalize_email
from .portal import build_portal_link, read_portal_base_url
from . import rounds

# Lookup failures that only mean "display context is unavailable"
MISSING_RESOURCE_ERRORS = (NotFoundError, InvalidInputError)


class EvaluationWorkflowService:
    """Process-state machine for candidate evaluations."""

    def __init__(
        self,
        store: EvaluationStore,
        accounts,
        candidates,
        cases,
        questions,
        mailer,
        portal_url: str,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the workflow with its collaborators.

        Args:
            store: Evaluation and assignment persistence
            accounts: Provides ensure_user_account(email)
            candidates: Provides get_candidate(id)
            cases: Provides get_folder(id)
            questions: Provides get_question(id)
            mailer: Provides send_interview_assignment(email, content)
            portal_url: Base URL of the interviewer portal
            clock: Source of "now" for timestamps
        """
        self.store = store
        self.accounts = accounts
        self.candidates = candidates
        self.cases = cases
        self.questions = questions
        self.mailer = mailer
        self.portal_url = portal_url
        self.clock = clock
        self.logger = structlog.get_logger().bind(service="evaluation_workflow")

    # Helpers

    async def _load(self, evaluation_id: str) -> EvaluationRecord:
        trimmed = (evaluation_id or "").strip()
        if not trimmed:
            raise InvalidInputError("Evaluation id is required", field="id")
        evaluation = await self.store.find_evaluation(trimmed)
        if not evaluation:
            raise NotFoundError("Evaluation", trimmed)
        return evaluation

    def _ensure_written(self, result: WriteResult, evaluation_id: str, expected_version: int) -> EvaluationRecord:
        if result == VERSION_CONFLICT:
            self.logger.warning(
                "Evaluation version conflict",
                evaluation_id=evaluation_id,
                expected_version=expected_version,
            )
            raise VersionConflictError(evaluation_id, expected_version)
        if result is None:
            raise NotFoundError("Evaluation", evaluation_id)
        return result

    async def _to_view(
        self,
        evaluation: EvaluationRecord,
        assignments: Optional[list[InterviewAssignmentRecord]] = None,
    ) -> EvaluationView:
        if assignments is None:
            assignments = await self.store.list_assignments_for_evaluation(
                evaluation.id, evaluation.round_number
            )
        return EvaluationView(
            **evaluation.model_dump(),
            invitation_state=compute_invitation_state(evaluation, assignments),
        )

    def _build_slots(self, inputs: list[SlotInput]) -> list[InterviewSlot]:
        slots = [
            InterviewSlot(
                id=item.id or str(uuid.uuid4()),
                interviewer_name=item.interviewer_name,
                interviewer_email=item.interviewer_email,
                case_folder_id=item.case_folder_id,
                fit_question_id=item.fit_question_id,
            )
            for item in inputs
        ]
        ids = [slot.id for slot in slots]
        if len(ids) != len(set(ids)):
            raise InvalidInputError("Interview ids must be unique", field="interviews")
        return slots

    @staticmethod
    def _check_optional_uuid(value: Optional[str], field: str) -> Optional[str]:
        value = (value or "").strip() or None
        if value is not None and not is_uuid(value):
            raise InvalidInputError(f"Invalid {field}", field=field)
        return value

    # Plan management

    async def create_evaluation(self, payload: EvaluationCreate) -> EvaluationView:
        """Create a draft evaluation at round 1."""
        slots = self._build_slots(payload.interviews) or [
            InterviewSlot(id=str(uuid.uuid4()), interviewer_name=DEFAULT_INTERVIEWER_NAME)
        ]
        model = EvaluationWriteModel(
            id=str(uuid.uuid4()),
            candidate_id=self._check_optional_uuid(payload.candidate_id, "candidateId"),
            round_number=1,
            interviews=slots,
            forms=sync_forms(slots, []),
            fit_question_id=self._check_optional_uuid(payload.fit_question_id, "fitQuestionId"),
            process_status="draft",
        )
        record = await self.store.create_evaluation(model)
        self.logger.info("Evaluation created", evaluation_id=record.id, interview_count=record.interview_count)
        return await self._to_view(record, [])

    async def update_evaluation(self, evaluation_id: str, payload: EvaluationUpdate) -> EvaluationView:
        """Replace the live plan, keeping one form per slot."""
        evaluation = await self._load(evaluation_id)
        if payload.version != evaluation.version:
            raise VersionConflictError(evaluation.id, payload.version)

        provided = payload.model_fields_set
        changes = {}
        if "candidate_id" in provided:
            changes["candidate_id"] = self._check_optional_uuid(payload.candidate_id, "candidateId")
        if "fit_question_id" in provided:
            changes["fit_question_id"] = self._check_optional_uuid(payload.fit_question_id, "fitQuestionId")
        if payload.interviews is not None:
            slots = self._build_slots(payload.interviews)
            if not slots:
                raise InvalidInputError("At least one interview is required", field="interviews")
            changes["interviews"] = slots
            changes["forms"] = sync_forms(slots, evaluation.forms)

        result = await self.store.update_evaluation(evaluation.to_write_model(**changes), payload.version)
        record = self._ensure_written(result, evaluation.id, payload.version)
        self.logger.info("Evaluation updated", evaluation_id=record.id, version=record.version)
        return await self._to_view(record)

    async def get_evaluation(self, evaluation_id: str) -> EvaluationView:
        return await self._to_view(await self._load(evaluation_id))

    async def list_evaluations(self) -> list[EvaluationView]:
        return [await self._to_view(record) for record in await self.store.list_evaluations()]

    # Invitations

    async def _candidate_name(self, evaluation: EvaluationRecord) -> str:
        if not evaluation.candidate_id:
            return "candidate"
        try:
            candidate = await self.candidates.get_candidate(evaluation.candidate_id)
        except MISSING_RESOURCE_ERRORS as e:
            self.logger.warning("Candidate unavailable", candidate_id=evaluation.candidate_id, error=str(e))
            return "candidate"
        return candidate.display_name

    async def _resolve_resources(self, assignments: list[InterviewAssignmentModel]) -> tuple[dict, dict]:
        """Load every case folder and fit question referenced by the assignments."""
        folders, questions = {}, {}
        for item in assignments:
            if item.case_folder_id not in folders:
                try:
                    folders[item.case_folder_id] = await self.cases.get_folder(item.case_folder_id)
                except MISSING_RESOURCE_ERRORS as e:
                    raise InvalidAssignmentResourcesError("Case folder", item.case_folder_id) from e
            if item.fit_question_id not in questions:
                try:
                    questions[item.fit_question_id] = await self.questions.get_question(item.fit_question_id)
                except MISSING_RESOURCE_ERRORS as e:
                    raise InvalidAssignmentResourcesError("Fit question", item.fit_question_id) from e
        return folders, questions

    async def _deliver(
        self,
        base_url: str,
        evaluation: EvaluationRecord,
        assignments: list[InterviewAssignmentModel],
        folders: dict,
        questions: dict,
    ) -> None:
        candidate_name = await self._candidate_name(evaluation)
        for item in assignments:
            content = InterviewAssignmentEmail(
                candidate_name=candidate_name,
                interviewer_name=item.interviewer_name,
                case_title=folders[item.case_folder_id].name,
                fit_question_title=questions[item.fit_question_id].short_title,
                link=build_portal_link(base_url, evaluation.id, item.slot_id),
            )
            try:
                await self.mailer.send_interview_assignment(item.interviewer_email, content)
            except SESError as e:
                raise MailerUnavailableError(str(e)) from e

    async def send_invitations(self, evaluation_id: str, scope: InvitationScope = "all") -> EvaluationView:
        """Send invitations for the live round and record the new assignments.

        With scope "updated" only slots whose interviewer, case or question
        changed are sent; when nothing changed this is a no-op. A draft
        evaluation is always sent to everyone.
        """
        evaluation = await self._load(evaluation_id)
        targets = build_assignments(evaluation)
        existing = await self.store.list_assignments_for_evaluation(evaluation.id, evaluation.round_number)
        plan = plan_reconciliation(evaluation, targets, existing, scope)

        if plan.is_noop:
            self.logger.info("No invitation changes", evaluation_id=evaluation.id, round_number=evaluation.round_number)
            return await self._to_view(evaluation, existing)

        to_send = plan.to_send
        if to_send:
            base_url = read_portal_base_url(self.portal_url)
            for item in to_send:
                await self.accounts.ensure_user_account(item.interviewer_email)
            folders, questions = await self._resolve_resources(to_send)
            await self._deliver(base_url, evaluation, to_send, folders, questions)

        result = await self.store.store_assignments(
            evaluation.id,
            targets,
            expected_version=evaluation.version,
            round_number=evaluation.round_number,
            status="in-progress",
            refresh_slot_ids=[item.slot_id for item in to_send],
            update_started_at=True,
            now=self.clock(),
        )
        record = self._ensure_written(result, evaluation.id, evaluation.version)

        self.logger.info(
            "Invitations sent",
            evaluation_id=record.id,
            round_number=record.round_number,
            scope=plan.scope,
            sent=len(to_send),
            removed=len(plan.removed_slot_ids),
            version=record.version,
        )
        return await self._to_view(record)

    # Rounds

    async def advance_round(self, evaluation_id: str, expected_version: Optional[int] = None) -> EvaluationView:
        """Archive the completed live round and open the next one as a draft."""
        evaluation = await self._load(evaluation_id)
        version = evaluation.version if expected_version is None else expected_version
        if version != evaluation.version:
            raise VersionConflictError(evaluation.id, version)

        model = rounds.advance_round(evaluation, now=self.clock())
        result = await self.store.update_evaluation(model, version)
        record = self._ensure_written(result, evaluation.id, version)

        self.logger.info(
            "Round advanced",
            evaluation_id=record.id,
            completed_round=evaluation.round_number,
            round_number=record.round_number,
            version=record.version,
        )
        return await self._to_view(record, [])

    # Interviewer side

    async def submit_interview_form(
        self,
        evaluation_id: str,
        slot_id: str,
        submission: InterviewFormSubmission,
    ) -> EvaluationView:
        """Save or submit the caller's form for a slot."""
        evaluation_key = (evaluation_id or "").strip()
        slot_key = (slot_id or "").strip()
        if not evaluation_key or not slot_key:
            raise InvalidInputError("Evaluation and interview ids are required")
        email = normalize_email(submission.email)
        if not email:
            raise InvalidInputError("Email is required", field="email")

        # A live form is only reachable through an assignment of the live round
        evaluation = await self.store.find_evaluation(evaluation_key)
        existing = evaluation.form_for(slot_key) if evaluation else None
        round_number = evaluation.round_number if existing is not None else None

        assignment = await self.store.find_assignment(evaluation_key, slot_key, round_number=round_number)
        if not assignment or normalize_email(assignment.interviewer_email) != email:
            self.logger.warning("Interview form access denied", evaluation_id=evaluation_key, slot_id=slot_key)
            raise AccessDeniedError()

        if evaluation is None:
            raise NotFoundError("Evaluation", evaluation_key)
        if existing is None:
            snapshot = evaluation.snapshot_for(assignment.round_number)
            if snapshot and snapshot.form_for(slot_key):
                raise FormAlreadySubmittedError(slot_key)
            raise NotFoundError("Interview form", slot_key)
        if existing.submitted:
            raise FormAlreadySubmittedError(slot_key)

        merged = merge_submission(existing, submission, assignment.interviewer_name, now=self.clock())
        forms = [merged if form.slot_id == slot_key else form for form in evaluation.forms]
        status = "completed" if all_submitted(evaluation.interviews, forms) else evaluation.process_status

        result = await self.store.update_evaluation(
            evaluation.to_write_model(forms=forms, process_status=status),
            evaluation.version,
        )
        record = self._ensure_written(result, evaluation.id, evaluation.version)

        self.logger.info(
            "Interview form saved",
            evaluation_id=record.id,
            slot_id=slot_key,
            submitted=merged.submitted,
            process_status=record.process_status,
            version=record.version,
        )
        return await self._to_view(record)

    async def list_assignments_for_interviewer(self, email: str) -> list[InterviewerAssignmentView]:
        """All assignments of an interviewer, live and archived, with display context."""
        normalized = normalize_email(email)
        if not normalized:
            return []
        assignments = await self.store.list_assignments_by_email(normalized)
        if not assignments:
            return []

        evaluations: dict[str, EvaluationRecord] = {}
        for item in assignments:
            if item.evaluation_id not in evaluations:
                record = await self.store.find_evaluation(item.evaluation_id)
                if record:
                    evaluations[item.evaluation_id] = record

        candidates: dict[str, Optional[CandidateSummary]] = {}
        folders: dict = {}
        questions: dict = {}
        views = []
        for item in assignments:
            evaluation = evaluations.get(item.evaluation_id)
            if evaluation is None:
                continue

            if evaluation.candidate_id and evaluation.candidate_id not in candidates:
                candidates[evaluation.candidate_id] = await self._optional_lookup(
                    self.candidates.get_candidate, evaluation.candidate_id, "candidate"
                )
            if item.case_folder_id not in folders:
                folders[item.case_folder_id] = await self._optional_lookup(
                    self.cases.get_folder, item.case_folder_id, "case folder"
                )
            if item.fit_question_id not in questions:
                questions[item.fit_question_id] = await self._optional_lookup(
                    self.questions.get_question, item.fit_question_id, "fit question"
                )

            is_active = item.round_number == evaluation.round_number
            if is_active:
                form = evaluation.form_for(item.slot_id)
                status = evaluation.process_status
            else:
                snapshot = evaluation.snapshot_for(item.round_number)
                form = snapshot.form_for(item.slot_id) if snapshot else None
                status = snapshot.process_status if snapshot else "completed"

            views.append(InterviewerAssignmentView(
                assignment_id=item.id,
                evaluation_id=item.evaluation_id,
                slot_id=item.slot_id,
                round_number=item.round_number,
                is_active=is_active,
                interviewer_email=item.interviewer_email,
                interviewer_name=item.interviewer_name,
                invitation_sent_at=item.invitation_sent_at,
                evaluation_updated_at=evaluation.updated_at or item.created_at,
                evaluation_process_status=status,
                candidate=candidates.get(evaluation.candidate_id) if evaluation.candidate_id else None,
                case_folder=folders.get(item.case_folder_id),
                fit_question=questions.get(item.fit_question_id),
                form=form,
            ))
        return views

    async def _optional_lookup(self, getter, identifier: str, resource: str):
        try:
            return await getter(identifier)
        except MISSING_RESOURCE_ERRORS as e:
            self.logger.warning("Display context unavailable", resource=resource, id=identifier, error=str(e))
            return None
