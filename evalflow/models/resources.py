"""Reference data looked up by the workflow: candidates, cases, fit questions."""

from sqlalchemy import Column, String, Text

from .base import BaseModel


class Candidate(BaseModel):
    """Candidate being evaluated."""

    __tablename__ = "candidates"

    id = Column(String(36), primary_key=True)
    first_name = Column(String(255), nullable=False, default="")
    last_name = Column(String(255), nullable=False, default="")
    email = Column(String(255), nullable=True)


class CaseFolder(BaseModel):
    """Case study material handed to an interviewer."""

    __tablename__ = "case_folders"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)


class FitQuestion(BaseModel):
    """Behavioral fit question."""

    __tablename__ = "fit_questions"

    id = Column(String(36), primary_key=True)
    short_title = Column(String(255), nullable=False)
    content = Column(Text, nullable=False, default="")
