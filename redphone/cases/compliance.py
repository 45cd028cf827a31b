"""Rules-of-engagement compliance checks for case drafts."""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass

from ..policies.rules import format_amount, format_number
from ..policies.store import PolicyKnowledgeStore
from .categories import normalise_category
from .schemas import (
    ApprovalRequirements,
    CaseDraft,
    CheckResult,
    ComplianceResult,
    Finding,
    PrecedentAnalysis,
    RiskAssessment,
)

logger = logging.getLogger(__name__)

CHECKS = (
    "discount_compliance",
    "minimum_requirements",
    "approval_workflow",
    "deal_structure",
    "competitive_policy",
    "pilot_program_rules",
    "payment_terms",
    "technical_compliance",
    "legal_compliance",
)

_SEAT_PATTERN = re.compile(r"(\d+)\s*seats?")
_EXTENDED_PILOT_PATTERN = re.compile(r"6\s*months?|extended|\blong\b")

_STANDARD_PILOT_DAYS = {
    "smb": 30,
    "midmarket": 30,
    "enterprise": 60,
    "largeEnterprise": 90,
    "globalAccounts": 90,
}


@dataclass(frozen=True)
class DraftFacts:
    """Normalised view of a draft shared by every check."""

    category: str
    description: str
    segment: str
    deal_type: str
    region: str
    discount: float
    deal_value: float
    competitive: bool
    has_competitor: bool
    priority: str


def infer_segment(draft: CaseDraft) -> str:
    """Explicit segment, else description mentions, else deal value buckets."""

    if draft.segment:
        return draft.segment
    description = draft.description.lower()
    customer = draft.customer_info.lower()
    for keyword, segment in (
        ("smb", "smb"),
        ("midmarket", "midmarket"),
        ("enterprise", "enterprise"),
        ("global", "globalAccounts"),
    ):
        if keyword in description or keyword in customer:
            return segment
    value = draft.deal_value
    if value >= 500_000:
        return "globalAccounts"
    if value >= 250_000:
        return "largeEnterprise"
    if value >= 50_000:
        return "enterprise"
    if value >= 15_000:
        return "midmarket"
    return "smb"


def infer_deal_type(draft: CaseDraft) -> str:
    if draft.deal_type:
        return draft.deal_type
    description = draft.description.lower()
    title = draft.title.lower()
    if "renewal" in description or "renewal" in title:
        return "renewal"
    if "add-on" in description or "addon" in description or "add-on" in title:
        return "addon"
    if "upsell" in description or "upsell" in title:
        return "upsell"
    return "newBusiness"


class ComplianceChecker:
    """Run the fixed battery of policy checks against a case draft.

    Checks are independent and side-effect free. A check that raises is
    reported as a system warning and the remaining checks still run.
    """

    def __init__(self, policies: PolicyKnowledgeStore):
        self._policies = policies

    def facts(self, draft: CaseDraft) -> DraftFacts:
        description = draft.description.lower()
        return DraftFacts(
            category=normalise_category(draft.category),
            description=description,
            segment=infer_segment(draft),
            deal_type=infer_deal_type(draft),
            region=draft.region or "namer",
            discount=draft.discount_requested,
            deal_value=draft.deal_value,
            competitive=draft.has_competitor
            or "competitive" in description
            or "competitor" in description,
            has_competitor=draft.has_competitor,
            priority=draft.priority.value,
        )

    def check(self, draft: CaseDraft) -> ComplianceResult:
        facts = self.facts(draft)
        result = ComplianceResult()
        for name in CHECKS:
            try:
                outcome: CheckResult = getattr(self, f"_check_{name}")(facts)
            except Exception:
                logger.exception("Compliance check %s failed", name)
                result.warnings.append(
                    Finding(
                        type="system",
                        severity="medium",
                        message=f"Unable to complete {name} check",
                        impact="May require manual review",
                    )
                )
                continue
            result.checks.append(outcome)
            result.violations.extend(outcome.violations)
            result.warnings.extend(outcome.warnings)
            result.recommendations.extend(outcome.recommendations)
            result.score = min(result.score, outcome.score)
        result.score = min(100, result.score)
        result.overall_compliance = self._overall(result)
        result.approval_requirements = self._approval_requirements(facts, result)
        result.precedent_analysis = self._precedents(facts)
        result.risk_assessment = self._risk(facts, result)
        return result

    def fallback(self, draft: CaseDraft | None = None) -> ComplianceResult:
        """Result used when the checker as a whole cannot run."""

        return ComplianceResult(
            overall_compliance="unknown",
            score=50,
            warnings=[
                Finding(
                    type="system_error",
                    severity="medium",
                    message="Unable to complete compliance check - manual review required",
                    impact="Full compliance verification needed",
                )
            ],
            recommendations=[
                Finding(
                    type="manual_review",
                    priority="high",
                    message="Submit for manual policy compliance review",
                    benefit="Ensures proper approval process",
                )
            ],
        )

    # ------------------------------------------------------------------
    # Individual checks
    # ------------------------------------------------------------------
    def _check_discount_compliance(self, facts: DraftFacts) -> CheckResult:
        result = CheckResult(check="discount_compliance")
        if facts.discount <= 0:
            return result
        lookup = self._policies.lookup_discount_policy(
            facts.deal_type, facts.segment, facts.region
        )
        if not lookup.success:
            result.warnings.append(
                Finding(
                    type="policy_lookup",
                    severity="medium",
                    message="Unable to determine discount policy for this segment/deal type",
                    impact="Manual review required",
                )
            )
            return result
        policy = lookup.policy
        requested = format_number(facts.discount)
        if facts.discount > policy.max_discount:
            result.compliant = False
            result.score = 20
            result.violations.append(
                Finding(
                    type="discount_limit_exceeded",
                    severity="high",
                    message=(
                        f"Requested {requested}% exceeds policy limit of "
                        f"{format_number(policy.max_discount)}% for "
                        f"{facts.segment} {facts.deal_type}"
                    ),
                    impact="Requires exception approval",
                    details={
                        "policyLimit": policy.max_discount,
                        "requestedValue": facts.discount,
                    },
                )
            )
        elif facts.discount > policy.auto_approved_limit:
            result.score = 70
            result.warnings.append(
                Finding(
                    type="approval_required",
                    severity="medium",
                    message=(
                        f"{requested}% discount requires manager approval "
                        f"(auto-approved up to {format_number(policy.auto_approved_limit)}%)"
                    ),
                    impact="Additional approval needed",
                )
            )
        if policy.regional_adjustment > 0:
            result.recommendations.append(
                Finding(
                    type="regional_adjustment",
                    priority="info",
                    message=(
                        f"Regional adjustment of +{format_number(policy.regional_adjustment)}% "
                        f"available (effective limit: {format_number(policy.effective_max)}%)"
                    ),
                    benefit="May allow higher discount within policy",
                )
            )
        return result

    def _check_minimum_requirements(self, facts: DraftFacts) -> CheckResult:
        result = CheckResult(check="minimum_requirements")
        if facts.deal_type == "addon":
            result.recommendations.append(
                Finding(
                    type="addon_exemption",
                    priority="info",
                    message="Add-on deals are exempt from minimum requirements",
                    benefit="No minimum seat or value restrictions",
                )
            )
            return result
        lookup = self._policies.lookup_minimum_requirements(facts.deal_type, facts.segment)
        if not lookup.success:
            return result
        minimums = lookup.policy
        if 0 < facts.deal_value < minimums.minimum_value:
            result.compliant = False
            result.score = 30
            result.violations.append(
                Finding(
                    type="minimum_value",
                    severity="high",
                    message=(
                        f"Deal value ${format_amount(facts.deal_value)} below "
                        f"{facts.segment} minimum of ${format_amount(minimums.minimum_value)}"
                    ),
                    impact="Requires exception approval",
                )
            )
        match = _SEAT_PATTERN.search(facts.description)
        if match:
            seats = int(match.group(1))
            if seats < minimums.minimum_seats:
                result.compliant = False
                result.score = min(result.score, 30)
                result.violations.append(
                    Finding(
                        type="minimum_seats",
                        severity="high",
                        message=(
                            f"Requested {seats} seats below {facts.segment} minimum "
                            f"of {minimums.minimum_seats}"
                        ),
                        impact="Requires exception approval",
                    )
                )
        return result

    def _check_approval_workflow(self, facts: DraftFacts) -> CheckResult:
        result = CheckResult(check="approval_workflow")
        if facts.discount > 0 and facts.deal_value > 0:
            requirement = self._policies.resolve_approval(facts.discount, facts.deal_value)
            if requirement.discount is not None:
                result.recommendations.append(
                    Finding(
                        type="approval_path",
                        priority="high",
                        message=(
                            f"Requires {requirement.discount.approver} approval "
                            f"({requirement.discount.timeframe})"
                        ),
                        benefit="Clear approval path identified",
                    )
                )
            size = requirement.deal_size
            if size is not None and (
                requirement.discount is None
                or size.approver != requirement.discount.approver
            ):
                result.recommendations.append(
                    Finding(
                        type="dual_approval",
                        priority="high",
                        message=f"Deal size also requires {size.approver} approval",
                        benefit="Ensures proper deal size approval",
                    )
                )
        if facts.deal_value > 500_000:
            result.warnings.append(
                Finding(
                    type="high_value_deal",
                    severity="medium",
                    message="Large deals may require executive and finance approval",
                    impact="Extended approval timeline possible",
                )
            )
        return result

    def _check_deal_structure(self, facts: DraftFacts) -> CheckResult:
        result = CheckResult(check="deal_structure")
        text = facts.description
        if "payment terms" in text or "net 60" in text or "net 90" in text:
            result.score = 80
            result.warnings.append(
                Finding(
                    type="payment_terms",
                    severity="medium",
                    message="Non-standard payment terms detected",
                    impact="Finance team review required",
                )
            )
        if "multi-year" in text or "3 year" in text or "multiple years" in text:
            result.recommendations.append(
                Finding(
                    type="multi_year_terms",
                    priority="medium",
                    message="Multi-year deals may qualify for additional discounts",
                    benefit="Potential for better terms due to commitment",
                )
            )
        if "equity" in text or "stock" in text or "barter" in text:
            result.compliant = False
            result.score = 10
            result.violations.append(
                Finding(
                    type="non_cash_payment",
                    severity="high",
                    message="Non-cash payment structures require special approval",
                    impact="May not be permitted under current policy",
                )
            )
        return result

    def _check_competitive_policy(self, facts: DraftFacts) -> CheckResult:
        result = CheckResult(check="competitive_policy")
        if not facts.competitive:
            return result
        bonus = format_number(self._policies.rules.competitive_bonus)
        result.recommendations.append(
            Finding(
                type="competitive_discount",
                priority="high",
                message=f"Competitive situations may qualify for additional {bonus}% discount",
                benefit="ROE allows competitive response pricing",
            )
        )
        result.recommendations.append(
            Finding(
                type="competitive_documentation",
                priority="medium",
                message="Document competitive intelligence and win/loss factors",
                benefit="Required for post-deal analysis",
            )
        )
        if facts.priority == "critical":
            result.recommendations.append(
                Finding(
                    type="expedited_approval",
                    priority="high",
                    message="Critical competitive situations qualify for expedited approval",
                    benefit="Faster response time to competitive threats",
                )
            )
        return result

    def _check_pilot_program_rules(self, facts: DraftFacts) -> CheckResult:
        result = CheckResult(check="pilot_program_rules")
        text = facts.description
        if not ("pilot" in text or "trial" in text or "poc" in text):
            return result
        days = _STANDARD_PILOT_DAYS.get(facts.segment, 30)
        result.recommendations.append(
            Finding(
                type="pilot_duration",
                priority="medium",
                message=f"Standard pilot duration for {facts.segment}: {days} days",
                benefit="Aligns with ROE pilot policies",
            )
        )
        if _EXTENDED_PILOT_PATTERN.search(text):
            result.score = 70
            result.warnings.append(
                Finding(
                    type="extended_pilot",
                    severity="medium",
                    message="Extended pilots (6+ months) require VP approval",
                    impact="Higher approval level needed",
                )
            )
        return result

    def _check_payment_terms(self, facts: DraftFacts) -> CheckResult:
        result = CheckResult(check="payment_terms")
        text = facts.description
        if "net 60" in text:
            result.score = 80
            result.warnings.append(
                Finding(
                    type="extended_terms",
                    severity="medium",
                    message="Net 60 terms require finance approval",
                    impact="Finance team review needed",
                )
            )
        if "net 90" in text or "net 120" in text:
            result.compliant = False
            result.score = 40
            result.violations.append(
                Finding(
                    type="excessive_terms",
                    severity="high",
                    message="Payment terms beyond Net 60 require executive approval",
                    impact="Executive and finance approval required",
                )
            )
        return result

    def _check_technical_compliance(self, facts: DraftFacts) -> CheckResult:
        result = CheckResult(check="technical_compliance")
        if facts.category != "technical":
            return result
        text = facts.description
        if "custom" in text or "integration" in text or "api" in text:
            result.warnings.append(
                Finding(
                    type="custom_development",
                    severity="medium",
                    message="Custom development requests require engineering review",
                    impact="Engineering team assessment needed",
                )
            )
            result.recommendations.append(
                Finding(
                    type="development_premium",
                    priority="medium",
                    message="Custom development typically includes 15-25% premium",
                    benefit="Covers additional development costs",
                )
            )
        if any(word in text for word in ("security", "compliance", "soc", "gdpr")):
            result.recommendations.append(
                Finding(
                    type="security_review",
                    priority="high",
                    message="Security requirements may need certification team review",
                    benefit="Ensures compliance capabilities",
                )
            )
        return result

    def _check_legal_compliance(self, facts: DraftFacts) -> CheckResult:
        result = CheckResult(check="legal_compliance")
        if facts.category != "legal":
            return result
        text = facts.description
        if "contract" in text or "terms" in text or "msa" in text:
            result.score = 60
            result.warnings.append(
                Finding(
                    type="contract_review",
                    severity="high",
                    message="Contract modifications require legal team review",
                    impact="Legal review timeline required",
                )
            )
        if "gdpr" in text or "privacy" in text or "data residency" in text:
            result.recommendations.append(
                Finding(
                    type="privacy_compliance",
                    priority="high",
                    message="Data privacy requirements need compliance team input",
                    benefit="Ensures regulatory compliance",
                )
            )
        return result

    # ------------------------------------------------------------------
    # Aggregates
    # ------------------------------------------------------------------
    def _overall(self, result: ComplianceResult) -> str:
        if any(finding.severity == "high" for finding in result.violations):
            return "non_compliant"
        if result.violations or result.warnings:
            return "conditional"
        return "compliant"

    def _approval_requirements(
        self, facts: DraftFacts, result: ComplianceResult
    ) -> ApprovalRequirements:
        requirements = ApprovalRequirements()
        if facts.deal_value > 500_000:
            requirements.level = "executive"
            requirements.approvers.extend(["VP Sales", "Finance"])
            requirements.timeline = "3-5 days"
        elif facts.deal_value > 100_000:
            requirements.level = "director"
            requirements.approvers.append("Regional Director")
            requirements.timeline = "48-72 hours"
        if result.violations:
            requirements.level = "executive"
            if "VP Sales" not in requirements.approvers:
                requirements.approvers.append("VP Sales")
            requirements.conditions.append("Exception approval required for policy violations")
        if facts.category == "legal":
            requirements.approvers.append("Legal Team")
            requirements.timeline = "5-7 days"
        if facts.category == "technical":
            requirements.approvers.append("Engineering Manager")
        return requirements

    def _precedents(self, facts: DraftFacts) -> PrecedentAnalysis:
        similar = self._policies.cases.similar_cases(
            facts.deal_value or 50_000, facts.deal_type, facts.segment, facts.region
        )[:5]
        analysis = PrecedentAnalysis(
            found_similar=bool(similar),
            case_count=len(similar),
            similar_cases=[case.summary() for case in similar],
        )
        if not similar:
            return analysis
        outcomes: Counter[str] = Counter()
        for case in similar:
            if case.outcome_kind in ("won", "lost", "retained"):
                outcomes[case.outcome_kind] += 1
        analysis.outcomes = dict(outcomes)
        total = sum(outcomes.values())
        if total:
            rate = (outcomes["won"] + outcomes["retained"]) / total
            analysis.success_rate = round(rate * 100)
            if rate > 0.8:
                analysis.recommendations.append(
                    "High success rate for similar cases - good precedent"
                )
            elif rate < 0.5:
                analysis.recommendations.append(
                    "Lower success rate for similar cases - strengthen justification"
                )
        factors: Counter[str] = Counter()
        for case in similar:
            if case.outcome_kind == "won":
                factors.update(case.key_factors)
        analysis.common_success_factors = [factor for factor, _ in factors.most_common(3)]
        return analysis

    def _risk(self, facts: DraftFacts, result: ComplianceResult) -> RiskAssessment:
        score = 0
        factors: list[str] = []
        if result.violations:
            score += 20 * len(result.violations)
            factors.append("Policy violations present")
        if facts.discount > 25:
            score += 15
            factors.append("High discount percentage")
        if facts.deal_value > 500_000:
            score += 10
            factors.append("Large deal size")
        if facts.has_competitor or "competitive" in facts.description:
            score += 5
            factors.append("Competitive situation")
        if facts.category in ("legal", "technical"):
            score += 10
            factors.append("Non-standard terms requested")

        level = "low"
        if score >= 40:
            level = "high"
        elif score >= 20:
            level = "medium"

        mitigation: list[str] = []
        if level == "high":
            mitigation.extend(
                [
                    "Require executive approval",
                    "Include legal and finance review",
                    "Document all risk factors and mitigation strategies",
                ]
            )
        elif level == "medium":
            mitigation.extend(
                [
                    "Require director-level approval",
                    "Document business justification thoroughly",
                ]
            )
        if "Policy violations present" in factors:
            mitigation.append("Provide strong exception justification")
        if "Competitive situation" in factors:
            mitigation.append("Include competitive intelligence and win/loss analysis")
        return RiskAssessment(level=level, score=score, factors=factors, mitigation=mitigation)
