"""Interview form merging and score derivation."""

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from evalflow.schemas import CriterionScore, InterviewForm, InterviewFormSubmission, InterviewSlot

# Payload fields copied onto the form verbatim when present
TEXT_FIELDS = (
    "notes",
    "fit_notes",
    "case_notes",
    "interest_notes",
    "issues_to_test",
    "offer_recommendation",
)


def average_criteria(criteria: list[CriterionScore]) -> Optional[float]:
    """Mean of the scored criteria rounded half-up to one decimal, or None."""
    scores = [item.score for item in criteria if item.score is not None]
    if not scores:
        return None
    mean = Decimal(str(sum(scores))) / Decimal(len(scores))
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def _derive_score(
    criteria: Optional[list[CriterionScore]],
    direct: Optional[float],
    previous: Optional[float],
) -> Optional[float]:
    if criteria is not None:
        averaged = average_criteria(criteria)
        if averaged is not None:
            return averaged
    if direct is not None:
        return direct
    return previous


def merge_submission(
    existing: InterviewForm,
    submission: InterviewFormSubmission,
    interviewer_name: str,
    now: datetime,
) -> InterviewForm:
    """Apply a partial submission to an unsubmitted form.

    Only fields explicitly present in the submission replace stored values.
    Criteria lists replace the stored lists wholesale and drive the scores.
    """
    provided = submission.model_fields_set
    changes = {"interviewer_name": interviewer_name}

    for name in TEXT_FIELDS:
        if name in provided:
            changes[name] = getattr(submission, name)

    fit_criteria = submission.fit_criteria if "fit_criteria" in provided else None
    case_criteria = submission.case_criteria if "case_criteria" in provided else None
    if fit_criteria is not None:
        changes["fit_criteria"] = fit_criteria
    if case_criteria is not None:
        changes["case_criteria"] = case_criteria

    changes["fit_score"] = _derive_score(fit_criteria, submission.fit_score, existing.fit_score)
    changes["case_score"] = _derive_score(case_criteria, submission.case_score, existing.case_score)

    submitted = bool(submission.submitted)
    changes["submitted"] = submitted
    if submitted:
        changes["submitted_at"] = existing.submitted_at or now

    return existing.model_copy(update=changes, deep=True)


def sync_forms(interviews: list[InterviewSlot], forms: list[InterviewForm]) -> list[InterviewForm]:
    """Return exactly one form per slot, in slot order.

    Existing forms are kept; unsubmitted ones follow the slot's interviewer
    name. Slots without a form get an empty one and forms of removed slots
    are dropped.
    """
    by_slot = {form.slot_id: form for form in forms}
    result = []
    for slot in interviews:
        form = by_slot.get(slot.id)
        if form is None:
            form = InterviewForm(slot_id=slot.id, interviewer_name=slot.interviewer_name)
        elif not form.submitted and form.interviewer_name != slot.interviewer_name:
            form = form.model_copy(update={"interviewer_name": slot.interviewer_name})
        result.append(form)
    return result


def all_submitted(interviews: list[InterviewSlot], forms: list[InterviewForm]) -> bool:
    """True when every live slot has a submitted form."""
    submitted = {form.slot_id for form in forms if form.submitted}
    return bool(interviews) and all(slot.id in submitted for slot in interviews)
