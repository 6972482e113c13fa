"""Interview assignment model: who was actually invited for a slot."""

from sqlalchemy import Column, String, DateTime, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from .base import BaseModel, utcnow


class InterviewAssignment(BaseModel):
    """
    Persisted invitation for one slot of one round.

    Rows are partitioned by round_number so earlier rounds keep their
    assignments after the evaluation advances.
    """

    __tablename__ = "interview_assignments"
    __table_args__ = (
        UniqueConstraint(
            "evaluation_id", "slot_id", "round_number",
            name="uq_interview_assignments_slot_round",
        ),
    )

    id = Column(String(36), primary_key=True)
    evaluation_id = Column(
        String(36),
        ForeignKey("evaluations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    slot_id = Column(String(36), nullable=False)
    round_number = Column(Integer, nullable=False, default=1)

    interviewer_email = Column(String(255), nullable=False, index=True)
    interviewer_name = Column(String(255), nullable=False)
    case_folder_id = Column(String(36), nullable=False)
    fit_question_id = Column(String(36), nullable=False)

    invitation_sent_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    # Relationships
    evaluation = relationship("Evaluation", back_populates="assignments")

    def __repr__(self) -> str:
        return (
            f"<InterviewAssignment(evaluation_id={self.evaluation_id}, "
            f"slot_id={self.slot_id}, round={self.round_number})>"
        )
