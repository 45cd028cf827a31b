"""Read-only policy lookup and scenario catalog API routers."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Request

from ..policies import PolicyKnowledgeStore
from ..scenarios import Scenario, ScenarioCatalog

router = APIRouter(prefix="/api/policies", tags=["policies"])
scenarios_router = APIRouter(prefix="/api/scenarios", tags=["scenarios"])


def _store(request: Request) -> PolicyKnowledgeStore:
    return request.app.state.assistant.policies


def _catalog(request: Request) -> ScenarioCatalog:
    return request.app.state.assistant.catalog


@router.get("/discount")
def discount_policy(
    request: Request,
    segment: str,
    deal_type: str = Query("newBusiness", alias="dealType"),
    region: str = "namer",
) -> dict[str, Any]:
    return _store(request).lookup_discount_policy(deal_type, segment, region).as_dict()


@router.get("/minimums")
def minimum_requirements(
    request: Request,
    segment: str,
    deal_type: str = Query("newBusiness", alias="dealType"),
) -> dict[str, Any]:
    return _store(request).lookup_minimum_requirements(deal_type, segment).as_dict()


@router.get("/approval")
def approval_requirement(
    request: Request,
    discount: float | None = Query(None, ge=0, le=100),
    deal_value: float | None = Query(None, ge=0, alias="dealValue"),
) -> dict[str, Any]:
    """Approvers needed for a discount and/or deal size."""
    if discount is None and deal_value is None:
        raise HTTPException(status_code=400, detail="discount or dealValue is required")
    return _store(request).lookup_approval_requirement(discount, deal_value).as_dict()


@router.get("/pilot/{pilot_type}")
def pilot_policy(pilot_type: str, request: Request) -> dict[str, Any]:
    return _store(request).lookup_pilot_policy(pilot_type).as_dict()


def _scenario_payload(scenario: Scenario) -> dict[str, Any]:
    info = scenario.case_info
    return {
        "id": scenario.id,
        "category": scenario.category,
        "keywords": list(scenario.keywords),
        "userPrompt": scenario.user_prompt,
        "requiresCase": scenario.requires_case,
        "caseInfo": (
            {
                "category": info.category,
                "reason": info.reason,
                "requiredFields": list(info.required_fields),
            }
            if info
            else None
        ),
        "suggestions": list(scenario.suggestions),
    }


@scenarios_router.get("")
def list_scenarios(request: Request, category: str | None = None) -> dict[str, Any]:
    catalog = _catalog(request)
    scenarios = catalog.by_category(category) if category else list(catalog)
    return {
        "items": [_scenario_payload(scenario) for scenario in scenarios],
        "total": len(scenarios),
        "categories": catalog.categories(),
    }


@scenarios_router.get("/{scenario_id}")
def get_scenario(scenario_id: str, request: Request) -> dict[str, Any]:
    scenario = _catalog(request).get(scenario_id)
    if scenario is None:
        raise HTTPException(status_code=404, detail="Scenario not found")
    return _scenario_payload(scenario)
