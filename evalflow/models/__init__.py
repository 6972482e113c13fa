"""SQLAlchemy ORM models for the evaluation workflow.

All models are imported here to ensure they're registered with Base.metadata
before any database operations.
"""

# Import base first
from evalflow.config.database import Base

# Core models
from .evaluations import Evaluation
from .interview_assignments import InterviewAssignment

# Collaborator models
from .accounts import Account
from .resources import Candidate, CaseFolder, FitQuestion

__all__ = [
    "Base",
    # Core
    "Evaluation",
    "InterviewAssignment",
    # Collaborators
    "Account",
    "Candidate",
    "CaseFolder",
    "FitQuestion",
]
