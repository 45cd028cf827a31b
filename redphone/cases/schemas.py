"""Pydantic models for case drafts, compliance results and routing decisions."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Serialises with camelCase aliases while accepting snake_case input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Priority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


# ---------------------------------------------------------------------------
# Drafts and submissions
# ---------------------------------------------------------------------------


class CaseDraft(CamelModel):
    """Mutable escalation record assembled while the conversation goes on."""

    title: str = ""
    category: str = "general"
    priority: Priority = Priority.MEDIUM
    description: str = ""
    business_justification: str = ""
    deal_value: float = 0
    discount_requested: float = 0
    timeframe: str = ""
    competitor_info: str = ""
    customer_info: str = ""
    segment: str | None = None
    deal_type: str | None = None
    region: str | None = None
    scenario_id: str | None = None
    reason: str | None = None
    required_fields: list[str] = Field(default_factory=list)
    category_fields: dict[str, Any] = Field(default_factory=dict, alias="fields")

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, validate_assignment=True
    )

    @field_validator("deal_value", "discount_requested", mode="before")
    @classmethod
    def _coerce_number(cls, value: Any) -> Any:
        if value is None:
            return 0
        if isinstance(value, str):
            cleaned = value.strip().replace(",", "").lstrip("$").rstrip("%").strip()
            return cleaned or 0
        return value

    @field_validator("priority", mode="before")
    @classmethod
    def _normalise_priority(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower() or Priority.MEDIUM.value
        return value

    @field_validator(
        "title",
        "description",
        "business_justification",
        "timeframe",
        "competitor_info",
        "customer_info",
        mode="before",
    )
    @classmethod
    def _none_to_blank(cls, value: Any) -> Any:
        return "" if value is None else value

    @property
    def has_competitor(self) -> bool:
        return bool(self.competitor_info.strip())


class FrozenCaseDraft(CaseDraft):
    """Snapshot of a draft taken at submission; assignments are rejected."""

    model_config = ConfigDict(frozen=True)


class DraftValidation(CamelModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class DraftNote(CamelModel):
    type: str
    level: Literal["info", "warning"]
    message: str
    suggestion: str | None = None


class DraftProposal(CamelModel):
    """A pre-filled draft plus hints for the person completing it."""

    draft: CaseDraft
    confidence: float = 0.3
    suggestions: list[DraftNote] = Field(default_factory=list)
    warnings: list[DraftNote] = Field(default_factory=list)


class SubmittedCase(CamelModel):
    case_id: str
    status: str = "Submitted"
    submitted_at: datetime
    draft: FrozenCaseDraft

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


# ---------------------------------------------------------------------------
# Compliance
# ---------------------------------------------------------------------------

Severity = Literal["low", "medium", "high"]
OverallCompliance = Literal["compliant", "conditional", "non_compliant", "unknown"]


class Finding(CamelModel):
    """A violation, warning (``severity``/``impact``) or recommendation
    (``priority``/``benefit``) produced by a compliance check."""

    type: str
    message: str
    severity: Severity | None = None
    priority: str | None = None
    impact: str | None = None
    benefit: str | None = None
    details: dict[str, Any] = Field(default_factory=dict)


class CheckResult(CamelModel):
    check: str
    compliant: bool = True
    score: int = 100
    violations: list[Finding] = Field(default_factory=list)
    warnings: list[Finding] = Field(default_factory=list)
    recommendations: list[Finding] = Field(default_factory=list)


class ApprovalRequirements(CamelModel):
    level: str = "manager"
    approvers: list[str] = Field(default_factory=lambda: ["Sales Manager"])
    timeline: str = "24-48 hours"
    conditions: list[str] = Field(default_factory=list)


class PrecedentAnalysis(CamelModel):
    found_similar: bool = False
    case_count: int = 0
    similar_cases: list[dict[str, Any]] = Field(default_factory=list)
    outcomes: dict[str, int] = Field(default_factory=dict)
    success_rate: int | None = None
    recommendations: list[str] = Field(default_factory=list)
    common_success_factors: list[str] = Field(default_factory=list)


class RiskAssessment(CamelModel):
    level: Literal["low", "medium", "high"] = "low"
    score: int = 0
    factors: list[str] = Field(default_factory=list)
    mitigation: list[str] = Field(default_factory=list)


class ComplianceResult(CamelModel):
    overall_compliance: OverallCompliance = "compliant"
    score: int = 100
    violations: list[Finding] = Field(default_factory=list)
    warnings: list[Finding] = Field(default_factory=list)
    recommendations: list[Finding] = Field(default_factory=list)
    checks: list[CheckResult] = Field(default_factory=list)
    approval_requirements: ApprovalRequirements | None = None
    precedent_analysis: PrecedentAnalysis | None = None
    risk_assessment: RiskAssessment | None = None


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------


class RoutingDecision(CamelModel):
    primary_approver: str
    secondary_approver: str | None = None
    team: str
    supporting_teams: list[str] = Field(default_factory=list)
    approval_level: int = Field(ge=1, le=6)
    expected_timeline: str
    urgency: Literal["low", "medium", "high", "critical"] = "medium"
    escalation_path: list[str] = Field(default_factory=list)
    requires_finance_approval: bool = False
    requires_legal_review: bool = False


class CaseAnalysis(CamelModel):
    complexity: Literal["simple", "moderate", "complex", "very_complex"]
    complexity_score: float
    risk_level: Literal["low", "medium", "high"]
    factors: list[str] = Field(default_factory=list)
    auto_approvable: bool = False
    precedent_available: bool = False


class Recommendation(CamelModel):
    type: str
    priority: str
    message: str
    action: str


class RoutingOutcome(CamelModel):
    success: bool = True
    routing: RoutingDecision
    analysis: CaseAnalysis | None = None
    recommendations: list[Recommendation] = Field(default_factory=list)
    rationale: list[str] = Field(default_factory=list)
    message: str | None = None


class CaseAssessment(CamelModel):
    draft: CaseDraft
    validation: DraftValidation
    compliance: ComplianceResult
    routing: RoutingOutcome
