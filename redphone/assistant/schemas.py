"""Response shapes produced by the assistant for each chat turn."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from ..cases.schemas import CamelModel, CaseDraft, ComplianceResult, RoutingOutcome

ActionType = Literal[
    "create_case", "retry_message", "get_guidance", "check_approval", "open_dynamics"
]

ResponseType = Literal[
    "dynamics_access_help",
    "scenario_match",
    "policy_answer",
    "case_suggestion",
    "guidance",
    "precedent_results",
    "knowledge_base_fallback",
    "error",
]


class Action(CamelModel):
    type: ActionType
    label: str
    data: dict[str, Any] = Field(default_factory=dict)


class AssistantResponse(CamelModel):
    """One assistant turn as rendered by the chat client."""

    success: bool = True
    response: str
    response_type: ResponseType
    confidence: float = Field(default=0.8, ge=0, le=1)
    actions: list[Action] = Field(default_factory=list)
    follow_up_suggestions: list[str] = Field(default_factory=list)
    scenario_id: str | None = None
    category: str | None = None
    requires_case: bool | None = None
    case_draft: CaseDraft | None = None
    compliance: ComplianceResult | None = None
    routing: RoutingOutcome | None = None
    error: dict[str, Any] | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
