"""Pre-populate case drafts from conversation context."""

from __future__ import annotations

import re
from typing import Any

from ..conversations import ConversationContext, DealSnapshot
from ..nlp import MessageAnalysis
from ..policies.rules import format_amount, format_number
from ..scenarios import Scenario
from .categories import normalise_category
from .schemas import CaseDraft, DraftNote, DraftProposal, DraftValidation

TITLE_MAX_LENGTH = 100
DESCRIPTION_MAX_LENGTH = 1000

KNOWN_COMPETITORS = ("datacorp", "competitora", "mediamax", "analytics pro")

_INTENT_CATEGORIES = {
    "policy_lookup": "pricing",
    "precedent_search": "pricing",
    "escalation_needed": "customerSuccess",
    "case_creation": "general",
    "guidance_request": "general",
}

# Checked in order against the last few messages.
_CATEGORY_KEYWORDS = (
    ("pricing", ("discount", "pricing")),
    ("pilotProgram", ("pilot", "trial")),
    ("technical", ("technical", "integration", "api")),
    ("competitive", ("competitor", "competitive")),
    ("legal", ("legal", "contract", "terms")),
    ("dealStructure", ("structure", "payment")),
    ("customerSuccess", ("support", "success", "retention")),
)

_URGENCY_TIMEFRAMES = {
    "critical": "Immediate",
    "high": "Within 1 week",
    "medium": "Within 2 weeks",
}

_CAMEL_BOUNDARY = re.compile(r"([a-z])([A-Z])")


def _spaced(value: str) -> str:
    return _CAMEL_BOUNDARY.sub(r"\1 \2", value)


def default_draft() -> CaseDraft:
    return CaseDraft(
        title="Sales Exception Request",
        category="general",
        description="Request generated from assistant conversation",
        business_justification="Business justification needed for approval",
    )


class CaseDrafter:
    """Build :class:`CaseDraft` objects from what the session already knows."""

    def from_context(
        self,
        context: ConversationContext | None,
        analysis: MessageAnalysis | None = None,
    ) -> CaseDraft:
        return self.propose(context, analysis).draft

    def from_scenario(
        self,
        scenario: Scenario,
        context: ConversationContext | None = None,
        analysis: MessageAnalysis | None = None,
    ) -> CaseDraft:
        """Seed category, reason and required fields from the scenario's case info."""

        draft = self.from_context(context, analysis)
        info = scenario.case_info
        draft.scenario_id = scenario.id
        if info is None:
            draft.category = normalise_category(scenario.category)
            return draft
        draft.category = normalise_category(info.category)
        draft.reason = info.reason
        draft.title = info.reason[:TITLE_MAX_LENGTH]
        draft.required_fields = list(info.required_fields)
        draft.category_fields = {
            name: draft.category_fields.get(name, "") for name in info.required_fields
        }
        return draft

    def propose(
        self,
        context: ConversationContext | None,
        analysis: MessageAnalysis | None = None,
    ) -> DraftProposal:
        if context is None:
            return DraftProposal(draft=default_draft(), confidence=0.3)

        entities = context.contextual_entities
        deal = context.current_deal or DealSnapshot()
        recent = " ".join(m.content for m in context.recent_messages(3)).lower()

        deal_value = self._deal_value(entities, deal)
        discount = self._discount(entities, deal)
        draft = CaseDraft(
            title=self._title(entities, deal, analysis),
            category=self._category(entities, analysis, recent),
            priority=self._priority(entities, deal_value, discount, analysis),
            description=self._description(context, entities, deal, deal_value, discount),
            business_justification=self._justification(entities, deal, deal_value, analysis),
            customer_info=self._customer_info(entities, deal),
            deal_value=deal_value,
            discount_requested=discount,
            timeframe=self._timeframe(entities, deal),
            competitor_info=self._competitor_info(recent),
            segment=entities.get("segment") or deal.segment,
            deal_type=entities.get("deal_type") or deal.deal_type,
            region=entities.get("region") or deal.region,
        )
        return DraftProposal(
            draft=draft,
            confidence=self._confidence(entities, context.current_deal, analysis),
            suggestions=self._suggestions(draft, analysis),
            warnings=self._warnings(draft),
        )

    # ------------------------------------------------------------------
    # Field builders
    # ------------------------------------------------------------------
    def _title(
        self, entities: dict[str, Any], deal: DealSnapshot, analysis: MessageAnalysis | None
    ) -> str:
        parts: list[str] = []
        segment = entities.get("segment") or deal.segment
        deal_type = entities.get("deal_type") or deal.deal_type
        if segment:
            parts.append(segment)
        if deal_type:
            parts.append(deal_type)
        percentage = entities.get("percentage")
        if percentage:
            parts.append(f"{format_number(percentage)}% discount request")
        elif analysis is not None and analysis.intent.value == "case_creation":
            parts.append("approval request")
        elif analysis is not None and analysis.business_context.has_competitive_element:
            parts.append("competitive situation")
        else:
            parts.append("exception request")
        return _spaced(" - ".join(parts))[:TITLE_MAX_LENGTH]

    def _category(
        self, entities: dict[str, Any], analysis: MessageAnalysis | None, recent: str
    ) -> str:
        mapped = _INTENT_CATEGORIES.get(analysis.intent.value) if analysis else None
        if mapped and mapped != "general":
            return mapped
        if entities.get("percentage"):
            return "pricing"
        for category, keywords in _CATEGORY_KEYWORDS:
            if any(keyword in recent for keyword in keywords):
                return category
        return "general"

    def _priority(
        self,
        entities: dict[str, Any],
        deal_value: float,
        discount: float,
        analysis: MessageAnalysis | None,
    ) -> str:
        urgency = entities.get("urgency")
        if urgency == "critical":
            return "critical"
        score = 1
        if urgency == "high":
            score += 2
        elif urgency == "medium":
            score += 1
        if deal_value > 500_000:
            score += 2
        elif deal_value > 100_000:
            score += 1
        if analysis is not None and analysis.business_context.has_competitive_element:
            score += 2
        if discount > 25:
            score += 1
        if score >= 5:
            return "critical"
        if score >= 3:
            return "high"
        if score >= 2:
            return "medium"
        return "low"

    def _description(
        self,
        context: ConversationContext,
        entities: dict[str, Any],
        deal: DealSnapshot,
        deal_value: float,
        discount: float,
    ) -> str:
        lines: list[str] = []
        segment = entities.get("segment") or deal.segment
        deal_type = entities.get("deal_type") or deal.deal_type
        region = entities.get("region") or deal.region
        if segment:
            lines.append(f"Customer Segment: {segment}")
        if deal_type:
            lines.append(f"Deal Type: {deal_type}")
        if region:
            lines.append(f"Region: {region}")
        if deal_value:
            lines.append(f"Deal Value: ${format_amount(deal_value)}")
        if discount:
            lines.append(f"Discount Requested: {format_number(discount)}%")
        timeframe = self._timeframe(entities, deal)
        if timeframe:
            lines.append(f"Timeframe: {timeframe}")
        recent = "\n\n".join(m.content for m in context.recent_messages(2, role="user"))
        if recent:
            lines.append(f"\nConversation Context:\n{recent}")
        description = "\n".join(lines) or "Exception request based on assistant conversation."
        return description[:DESCRIPTION_MAX_LENGTH]

    def _justification(
        self,
        entities: dict[str, Any],
        deal: DealSnapshot,
        deal_value: float,
        analysis: MessageAnalysis | None,
    ) -> str:
        reasons: list[str] = []
        if analysis is not None and analysis.business_context.has_competitive_element:
            reasons.append("Competitive situation requires urgent response to retain/win business.")
        if deal_value > 100_000:
            reasons.append(
                f"Significant deal size (${format_amount(deal_value)}) justifies special consideration."
            )
        deal_type = entities.get("deal_type") or deal.deal_type
        if deal_type == "renewal":
            reasons.append(
                "Existing customer relationship and retention value support this request."
            )
        if entities.get("segment") in ("largeEnterprise", "globalAccounts"):
            reasons.append(
                "Strategic account classification warrants flexible terms to secure partnership."
            )
        if deal.deal_type == "newBusiness" and entities.get("segment"):
            reasons.append(
                "New business opportunity with potential for long-term growth and expansion."
            )
        if entities.get("urgency") == "critical":
            reasons.append("Time-sensitive opportunity requiring expedited approval process.")
        if not reasons:
            reasons.append(
                "Request aligns with company revenue objectives and customer success initiatives."
            )
        return " ".join(reasons)

    def _customer_info(self, entities: dict[str, Any], deal: DealSnapshot) -> str:
        info: list[str] = []
        segment = entities.get("segment") or deal.segment
        region = entities.get("region") or deal.region
        if segment:
            info.append(f"Segment: {segment}")
        if region:
            info.append(f"Region: {region}")
        if deal.deal_type:
            info.append(f"Deal Type: {deal.deal_type}")
        return " | ".join(info) or "Customer details extracted from conversation context"

    def _deal_value(self, entities: dict[str, Any], deal: DealSnapshot) -> float:
        if deal.deal_value and deal.deal_value > 0:
            return deal.deal_value
        return entities.get("currency") or 0

    def _discount(self, entities: dict[str, Any], deal: DealSnapshot) -> float:
        if deal.discount_percent and deal.discount_percent > 0:
            return deal.discount_percent
        return entities.get("percentage") or 0

    def _timeframe(self, entities: dict[str, Any], deal: DealSnapshot) -> str:
        if deal.timeframe:
            return deal.timeframe
        timeframe = entities.get("timeframe")
        if timeframe is not None:
            return timeframe.describe()
        return _URGENCY_TIMEFRAMES.get(entities.get("urgency") or "", "")

    def _competitor_info(self, recent: str) -> str:
        found = [name for name in KNOWN_COMPETITORS if name in recent]
        if found:
            return f"Competitive situation involving: {', '.join(found)}"
        if "competitor" in recent or "competitive" in recent:
            return "Competitive situation mentioned in conversation"
        return ""

    # ------------------------------------------------------------------
    # Hints
    # ------------------------------------------------------------------
    def _confidence(
        self,
        entities: dict[str, Any],
        deal: DealSnapshot | None,
        analysis: MessageAnalysis | None,
    ) -> float:
        confidence = 0.5 + min(len(entities) * 0.1, 0.3)
        if deal is not None:
            confidence += 0.2
        if analysis is not None:
            confidence += analysis.confidence * 0.2
        for kind in ("percentage", "currency", "segment"):
            if entities.get(kind):
                confidence += 0.1
        return round(min(confidence, 1.0), 2)

    def _suggestions(
        self, draft: CaseDraft, analysis: MessageAnalysis | None
    ) -> list[DraftNote]:
        notes: list[DraftNote] = []
        if draft.category == "pricing" and draft.discount_requested > 30:
            notes.append(
                DraftNote(
                    type="policy",
                    level="warning",
                    message="Discount request exceeds typical policy limits",
                    suggestion="Consider providing strong competitive justification",
                )
            )
        if not draft.deal_value:
            notes.append(
                DraftNote(
                    type="missing_info",
                    level="info",
                    message="Deal value not specified",
                    suggestion="Add deal value for proper approval routing",
                )
            )
        if not draft.timeframe:
            notes.append(
                DraftNote(
                    type="missing_info",
                    level="info",
                    message="Timeframe not specified",
                    suggestion="Include urgency and timeline for faster processing",
                )
            )
        if (
            analysis is not None
            and analysis.business_context.has_competitive_element
            and not draft.has_competitor
        ):
            notes.append(
                DraftNote(
                    type="competitive",
                    level="warning",
                    message="Competitive situation detected",
                    suggestion="Add competitor details for context and urgency",
                )
            )
        return notes

    def _warnings(self, draft: CaseDraft) -> list[DraftNote]:
        notes: list[DraftNote] = []
        if draft.discount_requested > 25:
            notes.append(
                DraftNote(
                    type="high_discount",
                    level="warning",
                    message="High discount percentage may require executive approval",
                )
            )
        if draft.deal_value > 500_000:
            notes.append(
                DraftNote(
                    type="large_deal",
                    level="info",
                    message="Large deal size may require additional approvals",
                )
            )
        if len(draft.business_justification) < 50:
            notes.append(
                DraftNote(
                    type="insufficient_justification",
                    level="warning",
                    message="Business justification may need more detail",
                )
            )
        return notes


def validate_draft(draft: CaseDraft) -> DraftValidation:
    """Check the fields a case needs before it can be submitted."""

    errors: list[str] = []
    warnings: list[str] = []
    title = draft.title.strip()
    description = draft.description.strip()
    if not title:
        errors.append("Title is required")
    elif len(title) > TITLE_MAX_LENGTH:
        errors.append(f"Title must be {TITLE_MAX_LENGTH} characters or less")
    if not description:
        errors.append("Description is required")
    elif len(description) > DESCRIPTION_MAX_LENGTH:
        errors.append(f"Description must be {DESCRIPTION_MAX_LENGTH} characters or less")
    if len(draft.business_justification.strip()) < 20:
        warnings.append("Business justification should be more detailed")
    for name in draft.required_fields:
        value = draft.category_fields.get(name)
        if value is None or (isinstance(value, str) and not value.strip()):
            warnings.append(f"Missing required field: {name}")
    return DraftValidation(valid=not errors, errors=errors, warnings=warnings)
