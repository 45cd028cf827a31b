"""Case assessment and simulated submission."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timezone

from .compliance import ComplianceChecker
from .drafting import validate_draft
from .routing import CaseRouter
from .schemas import CaseAssessment, CaseDraft, FrozenCaseDraft, SubmittedCase

logger = logging.getLogger(__name__)


def assess_case(
    checker: ComplianceChecker, router: CaseRouter, draft: CaseDraft
) -> CaseAssessment:
    """Validate, compliance-check and route ``draft`` in one pass.

    A failure inside compliance or routing degrades to the respective
    fallback result instead of propagating.
    """

    validation = validate_draft(draft)
    try:
        compliance = checker.check(draft)
    except Exception as exc:
        logger.exception("Compliance check failed: %s", exc)
        compliance = checker.fallback(draft)
    try:
        routing = router.route(draft, compliance)
    except Exception as exc:
        logger.exception("Case routing failed: %s", exc)
        routing = router.fallback_routing()
    return CaseAssessment(
        draft=draft, validation=validation, compliance=compliance, routing=routing
    )


class CaseValidationError(ValueError):
    """Raised when a draft is submitted with validation errors."""

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors) or "Invalid case draft")
        self.errors = list(errors)


class CaseSubmissionService:
    """Assess drafts against policy and hand them to the (synthetic) case backend."""

    def __init__(
        self,
        checker: ComplianceChecker,
        router: CaseRouter,
        latency_seconds: float = 0.5,
    ):
        self._checker = checker
        self._router = router
        self._latency = latency_seconds

    def assess(self, draft: CaseDraft) -> CaseAssessment:
        return assess_case(self._checker, self._router, draft)

    async def submit(self, draft: CaseDraft) -> SubmittedCase:
        validation = validate_draft(draft)
        if not validation.valid:
            raise CaseValidationError(validation.errors)
        if self._latency > 0:
            await asyncio.sleep(self._latency)
        case_id = f"CASE-{time.time_ns() // 1_000_000}"
        submitted = SubmittedCase(
            case_id=case_id,
            submitted_at=datetime.now(timezone.utc),
            draft=FrozenCaseDraft.model_validate(draft.model_dump()),
        )
        logger.info("Submitted case %s (%s)", case_id, submitted.draft.category)
        return submitted
