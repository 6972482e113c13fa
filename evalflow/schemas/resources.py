"""Pydantic schemas for reference data shown alongside assignments."""

from .base import CamelModel


class CandidateSummary(CamelModel):
    """Candidate display data."""

    id: str
    first_name: str = ""
    last_name: str = ""

    @property
    def display_name(self) -> str:
        return f"{self.last_name} {self.first_name}".strip() or self.id


class CaseFolderSummary(CamelModel):
    """Case folder display data."""

    id: str
    name: str


class FitQuestionSummary(CamelModel):
    """Fit question display data."""

    id: str
    short_title: str
