"""Approver, team and urgency routing for case drafts."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from ..policies.rules import format_number
from ..policies.store import PolicyKnowledgeStore
from .categories import normalise_category
from .compliance import infer_segment
from .schemas import (
    CaseAnalysis,
    CaseDraft,
    ComplianceResult,
    Recommendation,
    RoutingDecision,
    RoutingOutcome,
)

logger = logging.getLogger(__name__)

CATEGORY_WEIGHTS = {
    "pricing": 2,
    "dealStructure": 2,
    "technical": 3,
    "legal": 3,
    "competitive": 2,
    "pilotProgram": 2,
    "customerSuccess": 1,
    "systemIssues": 1,
    "general": 1,
}

PRIORITY_MULTIPLIERS = {"low": 1.0, "medium": 1.2, "high": 1.5, "critical": 2.0}
PRIORITY_URGENCY = {"low": 1, "medium": 2, "high": 3, "critical": 4}

TEAMS = {
    "pricing": "Sales Manager",
    "technical": "Solutions Engineer",
    "legal": "Legal Team",
    "competitive": "Sales Manager",
    "customerSuccess": "Customer Success Manager",
}

_CATEGORY_TEAM = {
    "pricing": "pricing",
    "dealStructure": "pricing",
    "technical": "technical",
    "legal": "legal",
    "competitive": "competitive",
    "pilotProgram": "pricing",
    "customerSuccess": "customerSuccess",
    "general": "pricing",
}

_RISK_ORDER = {"low": 0, "medium": 1, "high": 2}
_PRECEDENT_CATEGORIES = ("pricing", "dealStructure", "competitive")


@dataclass(frozen=True)
class _Approval:
    approver: str
    level: int
    timeline: str


class CaseRouter:
    """Derive a routing decision from a draft and, optionally, its compliance result."""

    def __init__(self, policies: PolicyKnowledgeStore):
        self._policies = policies

    def route(
        self, draft: CaseDraft, compliance: ComplianceResult | None = None
    ) -> RoutingOutcome:
        category = normalise_category(draft.category)
        analysis = self.analyse(draft, category, compliance)
        approval = self._approval(draft, category, analysis)
        secondary = self._secondary_approver(draft, category, analysis, approval)
        team, supporting = self._teams(draft, category, analysis)
        routing = RoutingDecision(
            primary_approver=approval.approver,
            secondary_approver=secondary,
            team=team,
            supporting_teams=supporting,
            approval_level=approval.level,
            expected_timeline=approval.timeline,
            urgency=self._urgency(draft),
            escalation_path=self._escalation_path(draft, category, analysis),
            requires_finance_approval="Finance" in approval.approver
            or draft.deal_value > 500_000,
            requires_legal_review=category == "legal" or analysis.risk_level == "high",
        )
        return RoutingOutcome(
            routing=routing,
            analysis=analysis,
            recommendations=self._recommendations(draft, category, analysis),
            rationale=self._rationale(category, analysis, approval, team, supporting),
        )

    def fallback_routing(self) -> RoutingOutcome:
        return RoutingOutcome(
            success=False,
            routing=RoutingDecision(
                primary_approver="Sales Manager",
                team="Sales Manager",
                approval_level=2,
                expected_timeline="48 hours",
                urgency="medium",
            ),
            message="Default routing applied due to analysis error",
        )

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------
    def analyse(
        self,
        draft: CaseDraft,
        category: str | None = None,
        compliance: ComplianceResult | None = None,
    ) -> CaseAnalysis:
        category = category or normalise_category(draft.category)
        score = 0.0
        factors: list[str] = []
        value = draft.deal_value
        if value > 500_000:
            score += 3
            factors.append("Large deal size (>$500k)")
        elif value > 100_000:
            score += 2
            factors.append("Significant deal size (>$100k)")
        elif value > 25_000:
            score += 1
            factors.append("Medium deal size (>$25k)")

        discount = draft.discount_requested
        if discount > 30:
            score += 3
            factors.append("Very high discount request (>30%)")
        elif discount > 20:
            score += 2
            factors.append("High discount request (>20%)")
        elif discount > 10:
            score += 1
            factors.append("Moderate discount request (>10%)")

        score += CATEGORY_WEIGHTS.get(category, 1)
        factors.append(f"Category: {category}")
        priority = draft.priority.value
        score *= PRIORITY_MULTIPLIERS.get(priority, 1.0)
        if priority == "critical":
            factors.append("Critical priority escalation")
        if draft.has_competitor:
            score += 2
            factors.append("Competitive situation")
        if "multi-year" in draft.description.lower():
            score += 1
            factors.append("Multi-year terms requested")
        score = round(score, 2)

        if score >= 8:
            complexity, risk = "very_complex", "high"
        elif score >= 5:
            complexity, risk = "complex", "medium"
        elif score >= 3:
            complexity, risk = "moderate", "medium"
        else:
            complexity, risk = "simple", "low"
        if compliance is not None and compliance.risk_assessment is not None:
            compliance_risk = compliance.risk_assessment.level
            if _RISK_ORDER[compliance_risk] > _RISK_ORDER[risk]:
                risk = compliance_risk

        return CaseAnalysis(
            complexity=complexity,
            complexity_score=score,
            risk_level=risk,
            factors=factors,
            auto_approvable=score <= 2 and discount <= 10,
            precedent_available=category in _PRECEDENT_CATEGORIES,
        )

    # ------------------------------------------------------------------
    # Approvers
    # ------------------------------------------------------------------
    def _level(self, approver: str) -> int:
        level = self._policies.approval_level(approver)
        if level:
            return level
        if "VP" in approver and "Finance" in approver:
            return 5
        if "VP" in approver:
            return 4
        if "Director" in approver:
            return 3
        return 2

    def _approval(
        self, draft: CaseDraft, category: str, analysis: CaseAnalysis
    ) -> _Approval:
        if analysis.auto_approvable:
            return _Approval("Auto-approved", 1, "Immediate")

        discount = draft.discount_requested if draft.discount_requested > 0 else None
        value = draft.deal_value if draft.deal_value > 0 else None
        requirement = self._policies.resolve_approval(discount, value)
        tier = self._policies.strongest_tier(requirement)
        if tier is not None:
            return _Approval(tier.approver, self._level(tier.approver), tier.timeframe)
        return self._category_default(draft, category)

    def _category_default(self, draft: CaseDraft, category: str) -> _Approval:
        value = draft.deal_value
        if category == "technical":
            if value > 250_000:
                return _Approval("VP Engineering", 4, "72 hours")
            return _Approval("Engineering Manager", 3, "48 hours")
        if category == "legal":
            return _Approval("Legal + Sales Director", 4, "1 week")
        if category == "competitive":
            if draft.priority.value == "critical":
                return _Approval("VP Sales", 4, "4 hours")
            if draft.discount_requested > 20:
                return _Approval("Regional Director", 3, "48 hours")
            return _Approval("Sales Manager", 2, "24 hours")
        if category == "customerSuccess":
            return _Approval("CS Director", 3, "48 hours")
        if value > 500_000:
            return _Approval("VP Sales", 4, "72 hours")
        if value > 100_000:
            return _Approval("Regional Director", 3, "48 hours")
        return _Approval("Sales Manager", 2, "24 hours")

    def _secondary_approver(
        self,
        draft: CaseDraft,
        category: str,
        analysis: CaseAnalysis,
        approval: _Approval,
    ) -> str | None:
        if analysis.risk_level != "high" and approval.level < 4:
            return None
        if category == "legal":
            return "General Counsel"
        if draft.deal_value > 500_000:
            return "CEO"
        if "Finance" in approval.approver:
            return "CFO"
        return None

    # ------------------------------------------------------------------
    # Teams, urgency and escalation
    # ------------------------------------------------------------------
    def _teams(
        self, draft: CaseDraft, category: str, analysis: CaseAnalysis
    ) -> tuple[str, list[str]]:
        team = TEAMS[_CATEGORY_TEAM.get(category, "pricing")]
        supporting: list[str] = []
        if analysis.risk_level == "high":
            supporting.append("Legal Team")
        if draft.deal_value > 250_000:
            supporting.append("Finance Team")
        if draft.has_competitor:
            supporting.append("Product Marketing")
        if category == "technical":
            supporting.append("Solutions Engineering")
        return team, list(dict.fromkeys(supporting))

    def _urgency(self, draft: CaseDraft) -> str:
        score = PRIORITY_URGENCY.get(draft.priority.value, 2)
        if draft.deal_value > 500_000:
            score += 2
        elif draft.deal_value > 100_000:
            score += 1
        if draft.has_competitor:
            score += 2
        timeframe = draft.timeframe.lower()
        if any(word in timeframe for word in ("urgent", "asap", "immediate")):
            score += 2
        elif "week" in timeframe or "soon" in timeframe:
            score += 1
        description = draft.description.lower()
        if "renewal" in description and "risk" in description:
            score += 2
        if score >= 7:
            return "critical"
        if score >= 5:
            return "high"
        if score >= 3:
            return "medium"
        return "low"

    def _escalation_path(
        self, draft: CaseDraft, category: str, analysis: CaseAnalysis
    ) -> list[str]:
        value = draft.deal_value
        path = ["Sales Manager"]
        if analysis.complexity == "simple":
            if value > 100_000:
                path.append("Regional Director")
            return path
        path.append("Regional Director")
        if value > 250_000 or analysis.risk_level == "high":
            path.append("VP Sales")
        if value > 500_000 or category == "legal":
            path.append("VP Sales + CEO")
        return path

    # ------------------------------------------------------------------
    # Recommendations and rationale
    # ------------------------------------------------------------------
    def _recommendations(
        self, draft: CaseDraft, category: str, analysis: CaseAnalysis
    ) -> list[Recommendation]:
        recommendations: list[Recommendation] = []
        if analysis.auto_approvable:
            recommendations.append(
                Recommendation(
                    type="auto_approve",
                    priority="high",
                    message="This request meets auto-approval criteria",
                    action="Process immediately without additional approval",
                )
            )
        if category == "pricing":
            segment = infer_segment(draft)
            lookup = self._policies.lookup_discount_policy(
                draft.deal_type or "newBusiness", segment
            )
            if lookup.success and draft.discount_requested > lookup.policy.max_discount:
                recommendations.append(
                    Recommendation(
                        type="policy_violation",
                        priority="high",
                        message=(
                            f"Requested {format_number(draft.discount_requested)}% exceeds "
                            f"policy limit of {format_number(lookup.policy.max_discount)}% "
                            f"for {segment}"
                        ),
                        action="Requires exception approval with strong business justification",
                    )
                )
        if analysis.precedent_available:
            recommendations.append(
                Recommendation(
                    type="precedent_available",
                    priority="medium",
                    message="Similar cases found in historical database",
                    action="Review precedent cases for guidance and consistency",
                )
            )
        if analysis.risk_level == "high":
            recommendations.append(
                Recommendation(
                    type="risk_mitigation",
                    priority="high",
                    message="High-risk case requires additional review",
                    action="Include legal and finance teams in approval process",
                )
            )
        if draft.has_competitor:
            recommendations.append(
                Recommendation(
                    type="competitive_response",
                    priority="high",
                    message="Competitive situation requires rapid response",
                    action="Expedite approval process and involve product marketing",
                )
            )
        if category == "legal" or analysis.risk_level == "high":
            recommendations.append(
                Recommendation(
                    type="documentation",
                    priority="medium",
                    message="Additional documentation required",
                    action="Ensure all contracts and risk assessments are complete",
                )
            )
        return recommendations

    def _rationale(
        self,
        category: str,
        analysis: CaseAnalysis,
        approval: _Approval,
        team: str,
        supporting: list[str],
    ) -> list[str]:
        basis = (
            "discount percentage and deal size"
            if approval.level > 2
            else "standard approval workflow"
        )
        lines = [
            f'Case categorized as "{category}" with {analysis.complexity} complexity',
            f"Risk level: {analysis.risk_level} based on deal size and request type",
            f"Routed to {approval.approver} based on {basis}",
            f"Primary team: {team} for {category} expertise",
        ]
        if supporting:
            lines.append(f"Supporting teams included: {', '.join(supporting)}")
        return lines

    # ------------------------------------------------------------------
    # Quick routing helpers
    # ------------------------------------------------------------------
    def route_for_discount_request(
        self, discount_percent: float, deal_value: float, segment: str = "enterprise"
    ) -> dict[str, Any]:
        lookup = self._policies.lookup_discount_policy("newBusiness", segment)
        requirement = self._policies.resolve_approval(discount_percent, deal_value)
        policy = lookup.policy if lookup.success else None
        tier = requirement.discount
        return {
            "isWithinPolicy": policy is not None and discount_percent <= policy.max_discount,
            "autoApproved": policy is not None
            and discount_percent <= policy.auto_approved_limit,
            "requiredApprover": tier.approver if tier else "Sales Manager",
            "timeline": tier.timeframe if tier else "24 hours",
            "policyLimit": policy.max_discount if policy else None,
        }

    def route_for_deal_size(self, deal_value: float) -> dict[str, Any]:
        requirement = self._policies.resolve_approval(None, deal_value)
        tier = requirement.deal_size
        return {
            "requiredApprover": tier.approver if tier else "Sales Manager",
            "timeline": tier.timeframe if tier else "24 hours",
            "requiresFinance": deal_value > 250_000,
            "requiresExecutive": deal_value > 500_000,
        }
