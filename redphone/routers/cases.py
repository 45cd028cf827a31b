"""Case drafting, assessment and submission API router."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import APIRouter, HTTPException, Request, status
from pydantic import Field

from ..assistant import AssistantService
from ..cases import (
    CaseAssessment,
    CaseDraft,
    CaseValidationError,
    DraftProposal,
    SubmittedCase,
)
from ..cases.schemas import CamelModel
from ..conversations import SessionNotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cases", tags=["cases"])


class DraftRequest(CamelModel):
    session_id: str = Field(min_length=1)
    scenario_id: str | None = None


@contextmanager
def _service_context(request: Request) -> Iterator[AssistantService]:
    try:
        yield request.app.state.assistant
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except CaseValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=exc.errors
        ) from exc


@router.post("/draft", response_model=DraftProposal)
def draft_case(payload: DraftRequest, request: Request) -> DraftProposal:
    """Pre-fill a case draft from what the session has discussed so far."""
    with _service_context(request) as svc:
        context = svc.contexts.require(payload.session_id)
        user_turns = context.recent_messages(1, role="user")
        analysis = user_turns[-1].analysis if user_turns else None
        proposal = svc.drafter.propose(context, analysis)
        if payload.scenario_id is None:
            return proposal
        scenario = svc.catalog.get(payload.scenario_id)
        if scenario is None:
            raise HTTPException(status_code=404, detail="Scenario not found")
        draft = svc.drafter.from_scenario(scenario, context, analysis)
        return proposal.model_copy(update={"draft": draft})


@router.post("/assess", response_model=CaseAssessment)
def assess_case(draft: CaseDraft, request: Request) -> CaseAssessment:
    """Validate, compliance-check and route a draft without submitting it."""
    return request.app.state.cases.assess(draft)


@router.post("", response_model=SubmittedCase, status_code=status.HTTP_201_CREATED)
async def submit_case(draft: CaseDraft, request: Request) -> SubmittedCase:
    with _service_context(request):
        submitted = await request.app.state.cases.submit(draft)
    return submitted
