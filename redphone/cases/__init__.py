"""Case drafting, policy compliance, routing and submission."""

from .categories import normalise_category
from .compliance import ComplianceChecker
from .drafting import CaseDrafter, validate_draft
from .routing import CaseRouter
from .schemas import (
    CaseAssessment,
    CaseDraft,
    ComplianceResult,
    DraftProposal,
    DraftValidation,
    Priority,
    RoutingDecision,
    RoutingOutcome,
    SubmittedCase,
)
from .submission import CaseSubmissionService, CaseValidationError, assess_case

__all__ = [
    "CaseAssessment",
    "CaseDraft",
    "CaseDrafter",
    "CaseRouter",
    "CaseSubmissionService",
    "CaseValidationError",
    "ComplianceChecker",
    "ComplianceResult",
    "DraftProposal",
    "DraftValidation",
    "Priority",
    "RoutingDecision",
    "RoutingOutcome",
    "SubmittedCase",
    "assess_case",
    "normalise_category",
    "validate_draft",
]
