import pytest

from redphone.cases import CaseDraft
from redphone.cases.schemas import ComplianceResult, RiskAssessment


def test_bare_pricing_draft_goes_to_sales_manager(router):
    outcome = router.route(CaseDraft(category="Pricing"))

    assert outcome.success is True
    assert outcome.analysis.complexity_score == 2.4
    assert outcome.analysis.complexity == "simple"
    assert outcome.analysis.risk_level == "low"
    assert outcome.analysis.auto_approvable is False
    routing = outcome.routing
    assert routing.primary_approver == "Sales Manager"
    assert routing.approval_level == 2
    assert routing.expected_timeline == "24 hours"
    assert routing.secondary_approver is None
    assert routing.escalation_path == ["Sales Manager"]
    assert outcome.rationale[0] == 'Case categorized as "pricing" with simple complexity'
    assert outcome.rationale[2] == "Routed to Sales Manager based on standard approval workflow"


def test_small_low_priority_request_is_auto_approved(router):
    outcome = router.route(
        CaseDraft(category="Pricing", priority="low", discount_requested=5, deal_value=20_000)
    )
    assert outcome.analysis.complexity_score == 2.0
    assert outcome.analysis.auto_approvable is True
    assert outcome.routing.primary_approver == "Auto-approved"
    assert outcome.routing.approval_level == 1
    assert outcome.routing.expected_timeline == "Immediate"
    assert outcome.recommendations[0].type == "auto_approve"
    assert outcome.routing.urgency == "low"


def test_large_competitive_exception_goes_to_the_top(router):
    draft = CaseDraft(
        category="Pricing",
        priority="critical",
        discount_requested=35,
        deal_value=600_000,
        competitor_info="DataCorp",
    )
    outcome = router.route(draft)

    analysis = outcome.analysis
    assert analysis.complexity_score == 18
    assert analysis.complexity == "very_complex"
    assert analysis.risk_level == "high"
    routing = outcome.routing
    assert routing.primary_approver == "VP Sales + CEO"
    assert routing.approval_level == 6
    assert routing.expected_timeline == "1 week"
    assert routing.secondary_approver == "CEO"
    assert routing.urgency == "critical"
    assert routing.requires_finance_approval is True
    assert routing.requires_legal_review is True
    assert routing.supporting_teams == ["Legal Team", "Finance Team", "Product Marketing"]
    assert routing.escalation_path == [
        "Sales Manager",
        "Regional Director",
        "VP Sales",
        "VP Sales + CEO",
    ]
    types = [recommendation.type for recommendation in outcome.recommendations]
    assert "policy_violation" in types
    assert "competitive_response" in types


@pytest.mark.parametrize("category", ["Pricing", "Technical", "Competitive", "Deal Structure"])
@pytest.mark.parametrize("value", [500_001, 750_000, 2_000_000])
def test_deals_over_half_a_million_need_the_ceo(router, category, value):
    outcome = router.route(CaseDraft(category=category, deal_value=value))
    assert outcome.routing.approval_level >= 4
    assert outcome.routing.secondary_approver == "CEO"


def test_legal_requests_use_the_legal_default(router):
    outcome = router.route(
        CaseDraft(category="Legal", description="Customer wants custom indemnity terms")
    )
    routing = outcome.routing
    assert routing.primary_approver == "Legal + Sales Director"
    assert routing.approval_level == 4
    assert routing.expected_timeline == "1 week"
    assert routing.secondary_approver == "General Counsel"
    assert routing.team == "Legal Team"
    assert routing.requires_legal_review is True
    assert routing.escalation_path == ["Sales Manager", "Regional Director", "VP Sales + CEO"]


def test_technical_requests_use_engineering(router):
    outcome = router.route(CaseDraft(category="Technical", description="SSO integration"))
    routing = outcome.routing
    assert routing.primary_approver == "Engineering Manager"
    assert routing.approval_level == 3
    assert routing.secondary_approver is None
    assert routing.team == "Solutions Engineer"
    assert routing.supporting_teams == ["Solutions Engineering"]


def test_dual_approval_picks_the_stronger_approver(router):
    outcome = router.route(
        CaseDraft(category="Pricing", discount_requested=25, deal_value=300_000)
    )
    assert outcome.analysis.complexity == "complex"
    assert outcome.routing.primary_approver == "VP Sales"
    assert outcome.routing.approval_level == 4
    assert outcome.routing.expected_timeline == "72 hours"


def test_compliance_risk_can_raise_the_risk_level(router):
    compliance = ComplianceResult(risk_assessment=RiskAssessment(level="high", score=60))
    outcome = router.route(CaseDraft(category="Pricing"), compliance)
    assert outcome.analysis.complexity == "simple"
    assert outcome.analysis.risk_level == "high"
    assert "Legal Team" in outcome.routing.supporting_teams


@pytest.mark.parametrize(
    ("draft", "urgency"),
    [
        (CaseDraft(priority="low"), "low"),
        (CaseDraft(priority="medium", timeframe="ASAP"), "medium"),
        (CaseDraft(priority="high", description="Renewal at risk of churn"), "high"),
        (CaseDraft(priority="high", deal_value=600_000, competitor_info="MediaMax"), "critical"),
    ],
)
def test_urgency_levels(router, draft, urgency):
    assert router.route(draft).routing.urgency == urgency


def test_fallback_routing(router):
    outcome = router.fallback_routing()
    assert outcome.success is False
    assert outcome.routing.primary_approver == "Sales Manager"
    assert outcome.routing.approval_level == 2
    assert outcome.routing.expected_timeline == "48 hours"
    assert outcome.message == "Default routing applied due to analysis error"


def test_quick_routing_helpers(router):
    assert router.route_for_discount_request(15, 80_000) == {
        "isWithinPolicy": True,
        "autoApproved": False,
        "requiredApprover": "Sales Manager",
        "timeline": "24 hours",
        "policyLimit": 20,
    }
    assert router.route_for_deal_size(600_000) == {
        "requiredApprover": "VP Sales + CEO",
        "timeline": "1 week",
        "requiresFinance": True,
        "requiresExecutive": True,
    }
