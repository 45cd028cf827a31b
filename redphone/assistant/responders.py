"""Builders for each kind of assistant turn.

Each function takes already-computed inputs (a matched scenario, a policy
lookup, an assessed draft) and renders the chat text, actions and follow-up
suggestions. None of them touch session state.
"""

from __future__ import annotations

from collections.abc import Sequence
from urllib.parse import quote

from ..cases.schemas import CaseAssessment
from ..nlp import MessageAnalysis
from ..policies import LookupResult, PolicyAnswer
from ..policies.precedents import HistoricalCase
from ..policies.rules import format_amount, format_number
from ..scenarios import CaseCreationStep, Scenario
from .errors import KNOWLEDGE_BASE_FALLBACK, ErrorInfo, Fallback
from .schemas import Action, AssistantResponse

DYNAMICS_BASE_URL = "https://dynamics.microsoft.com/customers"
DEFAULT_CUSTOMER = "Demo Customer"
DEFAULT_OPPORTUNITY_ID = "OPP-2025-001234"

_SCENARIO_SUGGESTIONS_FALLBACK = ("I need more specific guidance", "Help with a different issue")


def _bullets(items: Sequence[str]) -> str:
    return "\n".join(f"• {item}" for item in items)


def _numbered(items: Sequence[str], start: int = 1) -> str:
    return "\n".join(f"{index}. {item}" for index, item in enumerate(items, start))


def dynamics_help(customer: str | None = None) -> AssistantResponse:
    customer = customer or DEFAULT_CUSTOMER
    url = f"{DYNAMICS_BASE_URL}/{quote(customer)}/opportunities/{DEFAULT_OPPORTUNITY_ID}"
    text = (
        "I'll help you access Dynamics for your customer. Here's a direct link to open "
        "the customer account:\n\n"
        f"**Customer:** {customer}\n"
        f"**Opportunity ID:** {DEFAULT_OPPORTUNITY_ID}\n\n"
        f"**Direct Link:** [Open {customer} in Dynamics]({url})\n\n"
        "**Next Steps:**\n"
        + _numbered(
            [
                "Click the link above to open Dynamics",
                "Navigate to the CSP Order section",
                "Look for the Billing Tab",
                "Download the invoice from there",
            ]
        )
    )
    return AssistantResponse(
        response=text,
        response_type="dynamics_access_help",
        confidence=0.95,
        actions=[
            Action(
                type="open_dynamics",
                label="Open Customer in Dynamics",
                data={
                    "url": url,
                    "customerName": customer,
                    "opportunityId": DEFAULT_OPPORTUNITY_ID,
                },
            )
        ],
        follow_up_suggestions=[
            "I still can't find the CSP Order section",
            "The Billing Tab is missing",
            "Help me download the invoice file",
        ],
    )


def scenario_response(scenario: Scenario, analysis: MessageAnalysis) -> AssistantResponse:
    """Canned scenario answer with numbered next steps.

    Scenarios that need a case get a final "Create a ... case" step and a
    ``create_case`` action carrying the scenario's case info.
    """

    text = scenario.agent_response
    if analysis.urgency == "high":
        text = f"I understand this is urgent. {text}"
    if analysis.sentiment == "frustrated":
        text = (
            "I can see you're having trouble with this. Let me help resolve it quickly. "
            f"{text}"
        )

    steps = list(scenario.follow_up_actions)
    actions: list[Action] = []
    suggestions: list[str] = []
    info = scenario.case_info
    if scenario.requires_case and info is not None:
        steps.append(f"Create a {info.category} case for approval")
        actions.append(
            Action(
                type="create_case",
                label="Create Required Case",
                data={
                    "category": info.category,
                    "reason": info.reason,
                    "requiredFields": list(info.required_fields),
                    "scenarioId": scenario.id,
                },
            )
        )
        suggestions.append("Create the required case now")
    if steps:
        text += "\n\n**Next Steps:**\n" + _numbered(steps)
    suggestions.extend(scenario.suggestions or _SCENARIO_SUGGESTIONS_FALLBACK)

    return AssistantResponse(
        response=text,
        response_type="scenario_match",
        confidence=0.9,
        actions=actions,
        follow_up_suggestions=suggestions,
        scenario_id=scenario.id,
        category=scenario.category,
        requires_case=scenario.requires_case,
    )


def policy_answer(
    analysis: MessageAnalysis,
    answer: PolicyAnswer | None = None,
    lookup: LookupResult | None = None,
) -> AssistantResponse:
    """Answer a policy question from a direct answer or a table lookup."""

    entities = analysis.entities
    actions: list[Action] = []
    percentage = entities.first("percentage")
    if percentage is not None:
        actions.append(
            Action(
                type="check_approval",
                label="Check Approval Requirements",
                data={"discountPercent": percentage, "dealValue": entities.first("currency")},
            )
        )
    suggestions = [
        "Check approval requirements",
        "Find similar cases",
        "Get case creation guidance",
    ]

    if answer is not None:
        text = answer.answer
        if answer.note:
            text += f"\n\n*Note: {answer.note}*"
        text += f"\n\n*Source: {answer.source}*"
        confidence = max(analysis.confidence, 0.85)
    elif lookup is not None and lookup.success:
        text = "Here's what the rules of engagement say:\n\n**Guidance:**\n" + _bullets(
            lookup.guidance
        )
        confidence = max(analysis.confidence, 0.8)
    else:
        message = lookup.message if lookup is not None else None
        text = (
            (f"{message}.\n\n" if message else "")
            + "I can help with discount limits, approval requirements, minimum seat "
            "requirements and pilot programs. Tell me the customer segment, deal type "
            "and the discount or deal value you have in mind."
        )
        confidence = min(analysis.confidence, 0.6)
        suggestions = [
            "What's the maximum discount for enterprise new business?",
            "What approval do I need for a 25% discount?",
            "What are the minimum seat requirements?",
        ]

    return AssistantResponse(
        response=text,
        response_type="policy_answer",
        confidence=round(confidence, 2),
        actions=actions,
        follow_up_suggestions=suggestions,
    )


def case_suggestion(assessment: CaseAssessment) -> AssistantResponse:
    draft = assessment.draft
    compliance = assessment.compliance
    routing = assessment.routing.routing
    lines = [
        "Based on your request, this typically requires creating a case for approval.",
        "",
        f"**Compliance:** {compliance.overall_compliance.replace('_', ' ')} "
        f"(score {compliance.score}/100)",
        f"**Approver:** {routing.primary_approver} (expected {routing.expected_timeline})",
        f"**Urgency:** {routing.urgency}",
    ]
    if routing.secondary_approver:
        lines.append(f"**Secondary approver:** {routing.secondary_approver}")
    if compliance.violations:
        lines.append("")
        lines.append("**Policy issues:**")
        lines.append(_bullets([finding.message for finding in compliance.violations]))
    lines.extend(
        [
            "",
            "**Next Steps:**",
            _numbered(
                [
                    "Create a case with your request details",
                    "Submit for manager/team review",
                    "Track progress via email updates",
                ]
            ),
            "",
            "I can help you create a properly formatted case right now.",
        ]
    )
    return AssistantResponse(
        response="\n".join(lines),
        response_type="case_suggestion",
        confidence=0.8,
        actions=[
            Action(
                type="create_case",
                label="Start Case Creation",
                data={
                    "category": draft.category,
                    "reason": draft.reason or "Potential Exception Request",
                    "requiredFields": list(draft.required_fields),
                },
            ),
            Action(
                type="check_approval",
                label="Check Approval Requirements",
                data={
                    "discountPercent": draft.discount_requested,
                    "dealValue": draft.deal_value,
                    "approver": routing.primary_approver,
                },
            ),
        ],
        follow_up_suggestions=[
            "Create the required case now",
            "What information do you need for this case?",
            "Help me understand the approval process",
            "Show me similar situations",
        ],
        requires_case=True,
        category=draft.category,
        case_draft=draft,
        compliance=compliance,
        routing=assessment.routing,
    )


def guidance(categories: Sequence[str], steps: Sequence[CaseCreationStep]) -> AssistantResponse:
    text = "**I can help you with these categories:**\n\n" + _bullets(categories)
    if steps:
        text += "\n\n**How case creation works:**\n" + "\n".join(
            f"**{step.step}.** {step.description}" for step in steps
        )
    text += "\n\nJust describe your situation and I'll provide the specific steps and guidance!"
    return AssistantResponse(
        response=text,
        response_type="guidance",
        confidence=0.9,
        actions=[
            Action(
                type="get_guidance",
                label="Browse Guidance",
                data={"categories": list(categories)},
            )
        ],
        follow_up_suggestions=[
            "Why is my compensation missing?",
            "How do I find an invoice?",
            "My customer wants to do a tear up to an EP",
            "Can you help me with HEP pricing?",
        ],
    )


def precedent_results(cases: Sequence[HistoricalCase]) -> AssistantResponse:
    if not cases:
        text = (
            "I couldn't find similar historical cases. Share the deal value, segment "
            "and deal type and I'll search again."
        )
    else:
        entries = []
        for case in cases:
            entry = f"**{case.title}** ({case.outcome}"
            if case.deal_value:
                entry += f", ${format_amount(case.deal_value)}"
            if case.requested_discount:
                entry += f", {format_number(case.requested_discount)}% requested"
            entry += ")"
            if case.precedent:
                entry += f" - {case.precedent}"
            entries.append(entry)
        won = sum(1 for case in cases if case.successful)
        text = (
            f"I found {len(cases)} similar case{'s' if len(cases) != 1 else ''}:\n\n"
            + _bullets(entries)
            + f"\n\n{won} of {len(cases)} resulted in a positive outcome."
        )
    return AssistantResponse(
        response=text,
        response_type="precedent_results",
        confidence=0.85 if cases else 0.6,
        follow_up_suggestions=[
            "What made these cases successful?",
            "Create a case based on this precedent",
            "Check approval requirements",
        ],
    )


def knowledge_base_fallback() -> AssistantResponse:
    fallback = KNOWLEDGE_BASE_FALLBACK
    return AssistantResponse(
        response=fallback.message,
        response_type="knowledge_base_fallback",
        confidence=0.5,
        follow_up_suggestions=list(fallback.suggestions),
    )


def error_response(info: ErrorInfo, fallback: Fallback) -> AssistantResponse:
    text = f"I'm sorry. {info.user_message}\n\n{fallback.message}"
    return AssistantResponse(
        success=False,
        response=text,
        response_type="error",
        confidence=0,
        actions=[Action(type="retry_message", label="Try Again", data={"errorId": info.id})],
        follow_up_suggestions=list(fallback.suggestions),
        error=info.as_dict(),
    )

