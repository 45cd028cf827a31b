"""Policy knowledge store answering rules-of-engagement questions."""

from __future__ import annotations

import dataclasses
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .precedents import HistoricalCaseIndex
from .rules import (
    ALL_SEGMENTS,
    DEFAULT_RULES,
    ApprovalTier,
    RulesOfEngagement,
    format_amount,
    format_number,
)

logger = logging.getLogger(__name__)

_DISCOUNT_SOURCE = "ROE Discount Policies"
_DEAL_TYPES_SOURCE = "ROE Deal Types"
_APPROVAL_SOURCE = "ROE Approval Workflow"
_PILOT_SOURCE = "ROE Pilot Programs"

_QUESTION_SEGMENTS = (
    ("enterprise", "enterprise"),
    ("midmarket", "midmarket"),
    ("mid-market", "midmarket"),
    ("smb", "smb"),
)


@dataclass(frozen=True)
class PolicyRule:
    deal_type: str
    segment: str
    region: str
    max_discount: float
    typical_discount: float
    auto_approved_limit: float
    regional_adjustment: float = 0
    competitive_bonus: float = 0

    @property
    def effective_max(self) -> float:
        return self.max_discount + self.regional_adjustment + self.competitive_bonus

    def as_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        data["effective_max"] = self.effective_max
        return data


@dataclass(frozen=True)
class MinimumRequirement:
    deal_type: str
    segment: str
    minimum_seats: int
    minimum_value: float


@dataclass(frozen=True)
class ApprovalRequirement:
    """Both approval axes plus the combined sign-off.

    ``highest`` holds one tier when both axes agree (or only one resolved)
    and two tiers when they name different approvers.
    """

    discount_percent: float | None
    deal_value: float | None
    discount: ApprovalTier | None
    deal_size: ApprovalTier | None
    highest: tuple[ApprovalTier, ...]

    @property
    def requires_dual_approval(self) -> bool:
        return len(self.highest) > 1


@dataclass(frozen=True)
class LookupResult:
    success: bool
    message: str | None = None
    policy: Any = None
    guidance: tuple[str, ...] = ()

    def as_dict(self) -> dict[str, Any]:
        policy = self.policy
        if hasattr(policy, "as_dict"):
            policy = policy.as_dict()
        elif dataclasses.is_dataclass(policy):
            policy = dataclasses.asdict(policy)
        return {
            "success": self.success,
            "message": self.message,
            "policy": policy,
            "guidance": list(self.guidance),
        }


@dataclass(frozen=True)
class PolicyAnswer:
    answer: str
    source: str
    details: Any = None
    note: str | None = None


@dataclass
class PolicySummary:
    context: Mapping[str, Any]
    applicable_policies: list[dict[str, Any]] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _miss(message: str) -> LookupResult:
    logger.debug("Policy lookup miss: %s", message)
    return LookupResult(success=False, message=message)


class PolicyKnowledgeStore:
    """Pure table reads over the rules of engagement.

    A miss is returned as ``LookupResult(success=False)``; lookups never raise.
    """

    def __init__(
        self,
        rules: RulesOfEngagement | None = None,
        historical_cases: HistoricalCaseIndex | None = None,
    ):
        self.rules = rules or DEFAULT_RULES
        self.cases = historical_cases or HistoricalCaseIndex(())

    # ------------------------------------------------------------------
    # Discount policies
    # ------------------------------------------------------------------
    def lookup_discount_policy(
        self, deal_type: str | None, segment: str | None, region: str | None = "namer"
    ) -> LookupResult:
        region = region or "namer"
        by_segment = self.rules.discount_policies.get(deal_type or "", {})
        limits = by_segment.get(segment or "") or by_segment.get(ALL_SEGMENTS)
        adjustment = self.rules.regional_adjustments.get(region)
        if limits is None or adjustment is None:
            return _miss(f"No discount policy found for {segment} {deal_type} in {region}")
        rule = PolicyRule(
            deal_type=deal_type,
            segment=segment,
            region=region,
            max_discount=limits.max_discount,
            typical_discount=limits.typical_discount,
            auto_approved_limit=limits.auto_approved_limit,
            regional_adjustment=adjustment.additional_discount,
        )
        return LookupResult(success=True, policy=rule, guidance=self._discount_guidance(rule))

    def is_within_policy(
        self,
        deal_type: str | None,
        segment: str | None,
        discount_percent: float,
        region: str | None = "namer",
    ) -> bool | None:
        """Whether ``discount_percent`` fits the effective maximum; ``None`` without a policy."""

        result = self.lookup_discount_policy(deal_type, segment, region)
        if not result.success:
            return None
        return discount_percent <= result.policy.effective_max

    def _discount_guidance(self, rule: PolicyRule) -> tuple[str, ...]:
        guidance = [
            f"{rule.segment} {rule.deal_type} deals can receive up to "
            f"{format_number(rule.max_discount)}% discount"
        ]
        if rule.auto_approved_limit > 0:
            guidance.append(
                f"Discounts up to {format_number(rule.auto_approved_limit)}% are auto-approved"
            )
        if rule.typical_discount < rule.max_discount:
            guidance.append(f"Typical discount is {format_number(rule.typical_discount)}%")
        if rule.regional_adjustment > 0:
            guidance.append(
                f"Regional adjustment adds {format_number(rule.regional_adjustment)}% to limits"
            )
        return tuple(guidance)

    def regional_note(self, region: str) -> str | None:
        adjustment = self.rules.regional_adjustments.get(region)
        return adjustment.note if adjustment else None

    # ------------------------------------------------------------------
    # Minimum commitments
    # ------------------------------------------------------------------
    def lookup_minimum_requirements(
        self, deal_type: str | None, segment: str | None
    ) -> LookupResult:
        relative = self.rules.relative_minimums.get(deal_type or "")
        if relative is not None:
            return _miss(f"No absolute minimum for {deal_type}: {relative}")
        by_segment = self.rules.minimum_commitments.get(deal_type or "")
        if by_segment is None:
            return _miss(f"No minimum requirements found for {deal_type}")
        commitment = by_segment.get(segment or "")
        if commitment is None:
            return _miss(f"No minimum requirements found for {segment} {deal_type}")
        requirement = MinimumRequirement(
            deal_type=deal_type,
            segment=segment,
            minimum_seats=commitment.seats,
            minimum_value=commitment.value,
        )
        return LookupResult(
            success=True,
            policy=requirement,
            guidance=(
                f"{segment} {deal_type} requires minimum {commitment.seats} seats",
                f"Minimum deal value: ${format_amount(commitment.value)}",
            ),
        )

    # ------------------------------------------------------------------
    # Approval workflow
    # ------------------------------------------------------------------
    def resolve_approval(
        self, discount_percent: float | None, deal_value: float | None
    ) -> ApprovalRequirement:
        discount_tier = None
        if discount_percent is not None:
            discount_tier = next(
                (tier for tier in self.rules.discount_approval if tier.contains(discount_percent)),
                None,
            )
        size_tier = None
        if deal_value is not None:
            size_tier = next(
                (tier for tier in self.rules.deal_size_approval if tier.contains(deal_value)),
                None,
            )
        resolved = [tier for tier in (discount_tier, size_tier) if tier is not None]
        if len(resolved) == 2 and resolved[0].approver == resolved[1].approver:
            resolved = resolved[:1]
        return ApprovalRequirement(
            discount_percent=discount_percent,
            deal_value=deal_value,
            discount=discount_tier,
            deal_size=size_tier,
            highest=tuple(resolved),
        )

    def lookup_approval_requirement(
        self, discount_percent: float | None, deal_value: float | None
    ) -> LookupResult:
        requirement = self.resolve_approval(discount_percent, deal_value)
        if not requirement.highest:
            return _miss("No specific approval requirements found")
        return LookupResult(
            success=True,
            policy=requirement,
            guidance=self._approval_guidance(requirement),
        )

    def _approval_guidance(self, requirement: ApprovalRequirement) -> tuple[str, ...]:
        guidance: list[str] = []
        if requirement.discount is not None:
            guidance.append(
                f"{format_number(requirement.discount_percent)}% discount requires "
                f"{requirement.discount.approver} approval"
            )
            guidance.append(f"Expected timeframe: {requirement.discount.timeframe}")
        size = requirement.deal_size
        if size is not None and (
            requirement.discount is None or size.approver != requirement.discount.approver
        ):
            guidance.append(
                f"${format_amount(requirement.deal_value)} deal size requires "
                f"{size.approver} approval"
            )
        if requirement.requires_dual_approval:
            approvers = " and ".join(tier.approver for tier in requirement.highest)
            guidance.append(f"This deal requires approval from both: {approvers}")
        return tuple(guidance)

    def approval_level(self, approver: str | None) -> int:
        level = self.rules.level_for(approver)
        return level.level if level else 0

    def strongest_tier(self, requirement: ApprovalRequirement) -> ApprovalTier | None:
        """The tier whose approver carries the most authority."""

        if not requirement.highest:
            return None
        return max(requirement.highest, key=lambda tier: self.approval_level(tier.approver))

    # ------------------------------------------------------------------
    # Pilots and contract terms
    # ------------------------------------------------------------------
    def lookup_pilot_policy(self, pilot_type: str | None = "standard") -> LookupResult:
        pilot_type = pilot_type or "standard"
        pilot = self.rules.pilot_programs.get(pilot_type)
        if pilot is None:
            return _miss(f"No pilot policy found for type: {pilot_type}")
        guidance = [f"{pilot_type} pilot duration: {pilot.duration}"]
        if pilot.max_seats:
            guidance.append(f"Maximum seats: {pilot.max_seats}")
        if pilot.approver:
            guidance.append(f"Requires approval from: {pilot.approver}")
        if pilot.conversion_target:
            guidance.append(f"Target conversion rate: {pilot.conversion_target}")
        return LookupResult(success=True, policy=pilot, guidance=tuple(guidance))

    def lookup_contract_terms(self, term_type: str | None = "standard") -> LookupResult:
        term_type = term_type or "standard"
        term = self.rules.contract_terms.get(term_type)
        if term is None:
            return _miss(f"No contract term policy found for {term_type}")
        return LookupResult(
            success=True,
            policy=term,
            guidance=(
                f"{term_type} contract terms require {term.approver} approval",
                f"Expected timeframe: {term.timeframe}",
            ),
        )

    # ------------------------------------------------------------------
    # Question answering
    # ------------------------------------------------------------------
    def quick_lookup(self, question_type: str, **params: Any) -> LookupResult:
        if question_type == "discount_limit":
            return self.lookup_discount_policy(
                params.get("deal_type"), params.get("segment"), params.get("region")
            )
        if question_type == "approval_required":
            return self.lookup_approval_requirement(
                params.get("discount_percent"), params.get("deal_value")
            )
        if question_type == "minimum_seats":
            return self.lookup_minimum_requirements(
                params.get("deal_type"), params.get("segment")
            )
        if question_type == "pilot_duration":
            return self.lookup_pilot_policy(params.get("pilot_type"))
        if question_type == "competitive_discount":
            base = self.lookup_discount_policy(
                params.get("deal_type"), params.get("segment"), params.get("region")
            )
            if not base.success:
                return base
            bonus = self.rules.competitive_bonus
            return LookupResult(
                success=True,
                policy=dataclasses.replace(base.policy, competitive_bonus=bonus),
                guidance=base.guidance
                + (
                    f"Competitive situations may qualify for additional "
                    f"{format_number(bonus)}% discount",
                ),
            )
        return _miss(f"Unknown question type: {question_type}")

    def answer_policy_question(self, question: str | None) -> PolicyAnswer | None:
        """Direct answer for common ROE questions, or ``None`` when none applies."""

        if not isinstance(question, str):
            return None
        lowered = question.lower()
        if "discount" in lowered:
            for keyword, segment in _QUESTION_SEGMENTS:
                if keyword in lowered:
                    return self._discount_answer(segment, renewal="renewal" in lowered)
        if "minimum" in lowered and "seat" in lowered:
            return self._minimum_seat_answer()
        if "approval" in lowered or "approve" in lowered:
            return self._approval_answer()
        if "pilot" in lowered:
            extended = "extend" in lowered
            return self._pilot_answer(extended)
        return None

    def _discount_answer(self, segment: str, *, renewal: bool) -> PolicyAnswer | None:
        deal_type = "renewal" if renewal else "newBusiness"
        limits = self.rules.discount_policies.get(deal_type, {}).get(segment)
        if limits is None:
            return None
        label = "renewals" if renewal else "new business"
        return PolicyAnswer(
            answer=(
                f"For {segment} {label}: Maximum {format_number(limits.max_discount)}%, "
                f"typical {format_number(limits.typical_discount)}%, "
                f"auto-approved up to {format_number(limits.auto_approved_limit)}%"
            ),
            source=_DISCOUNT_SOURCE,
            details=dataclasses.asdict(limits),
        )

    def _minimum_seat_answer(self) -> PolicyAnswer:
        minimums = {
            segment: commitment.seats
            for segment, commitment in self.rules.minimum_commitments.get(
                "newBusiness", {}
            ).items()
        }
        labels = (
            ("smb", "SMB"),
            ("midmarket", "Midmarket"),
            ("enterprise", "Enterprise"),
            ("largeEnterprise", "Large Enterprise"),
            ("globalAccounts", "Global Accounts"),
        )
        parts = [f"{label}: {minimums[key]}" for key, label in labels if key in minimums]
        return PolicyAnswer(
            answer="Minimum seat requirements for new business: " + ", ".join(parts),
            source=_DEAL_TYPES_SOURCE,
            details=minimums,
            note="Add-on deals have no minimum seat requirements",
        )

    def _approval_answer(self) -> PolicyAnswer:
        tiers = self.rules.discount_approval
        parts = [f"{tier.label} ({tier.approver})" for tier in tiers]
        return PolicyAnswer(
            answer="Discount approval requirements: " + ", ".join(parts),
            source=_APPROVAL_SOURCE,
            details={
                tier.approver: tier.timeframe
                for tier in tiers
                if tier.approver != "Auto-approved"
            },
        )

    def _pilot_answer(self, extended: bool) -> PolicyAnswer:
        details = {name: dataclasses.asdict(pilot) for name, pilot in self.rules.pilot_programs.items()}
        if extended:
            answer = (
                "Extended pilots (6+ months) require VP Sales + CEO approval and are "
                "reserved for strategic accounts only. Standard pilots: 30 days (SMB), "
                "60 days (Enterprise), 90 days (Large Enterprise)"
            )
        else:
            answer = (
                "Standard pilot durations: 30 days (Standard), 60 days (Enterprise), "
                "90 days (Large Enterprise). All require respective approvals."
            )
        return PolicyAnswer(answer=answer, source=_PILOT_SOURCE, details=details)

    # ------------------------------------------------------------------
    # Contextual summary
    # ------------------------------------------------------------------
    def policy_summary(self, context: Mapping[str, Any]) -> PolicySummary:
        summary = PolicySummary(context=dict(context))
        deal_type = context.get("deal_type")
        segment = context.get("segment")
        region = context.get("region") or "namer"
        discount = context.get("discount_percent") or 0
        deal_value = context.get("deal_value") or 0

        discount_policy: PolicyRule | None = None
        minimums: MinimumRequirement | None = None
        if deal_type and segment:
            result = self.lookup_discount_policy(deal_type, segment, region)
            if result.success:
                discount_policy = result.policy
                summary.applicable_policies.append(
                    {"type": "discount", "policy": result.policy.as_dict(), "guidance": list(result.guidance)}
                )
            if deal_type != "addon":
                result = self.lookup_minimum_requirements(deal_type, segment)
                if result.success:
                    minimums = result.policy
                    summary.applicable_policies.append(
                        {
                            "type": "minimums",
                            "policy": dataclasses.asdict(result.policy),
                            "guidance": list(result.guidance),
                        }
                    )
        if discount and deal_value:
            result = self.lookup_approval_requirement(discount, deal_value)
            if result.success:
                summary.applicable_policies.append(
                    {
                        "type": "approvals",
                        "policy": dataclasses.asdict(result.policy),
                        "guidance": list(result.guidance),
                    }
                )

        if discount_policy is not None and discount:
            if discount <= discount_policy.auto_approved_limit:
                summary.recommendations.append(
                    "This discount level is auto-approved - no additional approval needed"
                )
            elif discount <= discount_policy.max_discount:
                summary.recommendations.append(
                    "This discount requires approval but is within policy limits"
                )
            else:
                summary.recommendations.append(
                    "This discount exceeds policy limits - consider creating an exception case"
                )
        if deal_value > 250_000:
            summary.recommendations.append(
                "Large deal - ensure all stakeholders are identified and engaged"
            )
        if deal_value > 500_000:
            summary.recommendations.append(
                "Enterprise deal - consider involving executive sponsor"
            )
        if context.get("has_competitive"):
            summary.recommendations.append(
                "Competitive situation - document competitive advantages and customer preferences"
            )
            summary.recommendations.append(
                "Consider expedited approval process for competitive deals"
            )

        if discount > 30:
            summary.warnings.append(
                "High discount percentage - ensure strong business justification"
            )
        seats = context.get("seats")
        if minimums is not None and seats and seats < minimums.minimum_seats:
            summary.warnings.append(
                f"Below minimum seat requirement ({minimums.minimum_seats} required)"
            )
        if context.get("urgency") == "critical":
            summary.warnings.append(
                "Critical timeline - ensure all approvers are notified immediately"
            )
        return summary
