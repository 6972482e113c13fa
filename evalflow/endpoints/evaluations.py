"""Evaluation workflow endpoints."""

from typing import Optional

import structlog
from fastapi import APIRouter, Body, Depends

from evalflow.schemas import (
    AdvanceRoundRequest,
    EvaluationCreate,
    EvaluationUpdate,
    EvaluationView,
    SendInvitationsRequest,
)
from evalflow.services import EvaluationWorkflowService

from .dependencies import get_workflow_service

logger = structlog.get_logger()
router = APIRouter()


@router.get("", response_model=list[EvaluationView])
async def list_evaluations(
    service: EvaluationWorkflowService = Depends(get_workflow_service),
):
    """List all evaluations with their invitation state."""
    return await service.list_evaluations()


@router.post("", response_model=EvaluationView, status_code=201)
async def create_evaluation(
    payload: EvaluationCreate,
    service: EvaluationWorkflowService = Depends(get_workflow_service),
):
    """Create a draft evaluation."""
    return await service.create_evaluation(payload)


@router.get("/{evaluation_id}", response_model=EvaluationView)
async def get_evaluation(
    evaluation_id: str,
    service: EvaluationWorkflowService = Depends(get_workflow_service),
):
    """Get an evaluation by ID."""
    return await service.get_evaluation(evaluation_id)


@router.put("/{evaluation_id}", response_model=EvaluationView)
async def update_evaluation(
    evaluation_id: str,
    payload: EvaluationUpdate,
    service: EvaluationWorkflowService = Depends(get_workflow_service),
):
    """Replace the live plan of an evaluation (version-checked)."""
    return await service.update_evaluation(evaluation_id, payload)


@router.post("/{evaluation_id}/invitations", response_model=EvaluationView)
async def send_invitations(
    evaluation_id: str,
    payload: Optional[SendInvitationsRequest] = Body(default=None),
    service: EvaluationWorkflowService = Depends(get_workflow_service),
):
    """Send interview invitations for the live round."""
    scope = payload.scope if payload else "all"
    return await service.send_invitations(evaluation_id, scope=scope)


@router.post("/{evaluation_id}/advance-round", response_model=EvaluationView)
async def advance_round(
    evaluation_id: str,
    payload: Optional[AdvanceRoundRequest] = Body(default=None),
    service: EvaluationWorkflowService = Depends(get_workflow_service),
):
    """Archive the completed round and start the next one."""
    expected_version = payload.version if payload else None
    return await service.advance_round(evaluation_id, expected_version=expected_version)
