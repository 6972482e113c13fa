"""Read-only lookups for candidates, case folders and fit questions."""

import asyncio
from abc import ABC, abstractmethod

from sqlalchemy.orm import sessionmaker

from evalflow.middleware.error_handler import InvalidInputError, NotFoundError
from evalflow.models import Candidate, CaseFolder, FitQuestion
from evalflow.schemas import CandidateSummary, CaseFolderSummary, FitQuestionSummary

from .assignments import is_uuid


class _LookupService(ABC):
    """Loads one reference row by UUID and maps it to its summary schema."""

    model = None
    resource = "Resource"

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    async def _get(self, identifier: str):
        if not is_uuid(identifier):
            raise InvalidInputError(f"Invalid {self.resource.lower()} id", field="id")
        key = identifier.strip()

        def _query():
            with self.session_factory() as db:
                row = db.get(self.model, key)
                return self._to_summary(row) if row else None

        summary = await asyncio.to_thread(_query)
        if summary is None:
            raise NotFoundError(self.resource, key)
        return summary

    @abstractmethod
    def _to_summary(self, row):
        """Map an ORM row to its summary schema."""
        pass


class CandidatesService(_LookupService):
    model = Candidate
    resource = "Candidate"

    async def get_candidate(self, candidate_id: str) -> CandidateSummary:
        return await self._get(candidate_id)

    def _to_summary(self, row: Candidate) -> CandidateSummary:
        return CandidateSummary(id=row.id, first_name=row.first_name, last_name=row.last_name)


class CasesService(_LookupService):
    model = CaseFolder
    resource = "Case folder"

    async def get_folder(self, folder_id: str) -> CaseFolderSummary:
        return await self._get(folder_id)

    def _to_summary(self, row: CaseFolder) -> CaseFolderSummary:
        return CaseFolderSummary(id=row.id, name=row.name)


class QuestionsService(_LookupService):
    model = FitQuestion
    resource = "Fit question"

    async def get_question(self, question_id: str) -> FitQuestionSummary:
        return await self._get(question_id)

    def _to_summary(self, row: FitQuestion) -> FitQuestionSummary:
        return FitQuestionSummary(id=row.id, short_title=row.short_title)
