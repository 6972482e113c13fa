"""Interviewer-facing endpoints: assignments and form submission."""

from fastapi import APIRouter, Depends, Query

from evalflow.schemas import EvaluationView, InterviewerAssignmentView, InterviewFormSubmission
from evalflow.services import EvaluationWorkflowService

from .dependencies import get_workflow_service

router = APIRouter()


@router.get("/assignments", response_model=list[InterviewerAssignmentView])
async def list_assignments(
    email: str = Query(..., min_length=1),
    service: EvaluationWorkflowService = Depends(get_workflow_service),
):
    """List the interviews assigned to an email address."""
    return await service.list_assignments_for_interviewer(email)


@router.post("/assignments/{evaluation_id}/{slot_id}", response_model=EvaluationView)
async def submit_form(
    evaluation_id: str,
    slot_id: str,
    payload: InterviewFormSubmission,
    service: EvaluationWorkflowService = Depends(get_workflow_service),
):
    """Save or submit the interviewer's form."""
    return await service.submit_interview_form(evaluation_id, slot_id, payload)
