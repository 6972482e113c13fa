"""API endpoints for the evaluation workflow."""

from fastapi import APIRouter

from evalflow.schemas import ErrorResponse

from .evaluations import router as evaluations_router
from .health import router as health_router
from .interviewer import router as interviewer_router

# Error envelope documented for every workflow route
ERROR_RESPONSES = {
    status_code: {"model": ErrorResponse}
    for status_code in (400, 403, 404, 409, 422, 500, 503)
}

# Create main API router
api_router = APIRouter()

api_router.include_router(health_router, prefix="/health", tags=["Health"])
api_router.include_router(
    evaluations_router,
    prefix="/evaluations",
    tags=["Evaluations"],
    responses=ERROR_RESPONSES,
)
api_router.include_router(
    interviewer_router,
    prefix="/interviewer",
    tags=["Interviewer"],
    responses=ERROR_RESPONSES,
)
