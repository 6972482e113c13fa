"""Evaluation model: the live round plan plus archived round history."""

from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.orm import relationship

from .base import BaseModel


class Evaluation(BaseModel):
    """
    One candidate's multi-round interview evaluation.

    Status Values:
    - draft: Plan is being edited, no invitations sent for this round
    - in-progress: Invitations sent, forms being collected
    - completed: Every form of the live round is submitted

    `version` is the optimistic lock. Every successful write increments it
    by exactly one and is only applied when the caller's expected version
    matches the stored value.
    """

    __tablename__ = "evaluations"

    id = Column(String(36), primary_key=True)
    candidate_id = Column(String(36), nullable=True, index=True)

    round_number = Column(Integer, nullable=False, default=1)
    fit_question_id = Column(String(36), nullable=True)

    # Status: draft, in-progress, completed
    process_status = Column(String(20), nullable=False, default="draft")
    process_started_at = Column(DateTime(timezone=True), nullable=True)
    round_created_at = Column(DateTime(timezone=True), nullable=True)

    # Live round and history (stored as JSON strings)
    interviews = Column(Text, nullable=False, default="[]")  # JSON array of slots
    forms = Column(Text, nullable=False, default="[]")  # JSON array of forms
    round_history = Column(Text, nullable=False, default="[]")  # JSON array of snapshots

    version = Column(Integer, nullable=False, default=1)

    # Relationships
    assignments = relationship(
        "InterviewAssignment",
        back_populates="evaluation",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return (
            f"<Evaluation(id={self.id}, round={self.round_number}, "
            f"status={self.process_status}, version={self.version})>"
        )
