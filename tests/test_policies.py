import dataclasses

import pytest

from redphone.policies import (
    DEFAULT_RULES,
    DiscountLimits,
    HistoricalCaseIndex,
    PolicyKnowledgeStore,
)
from redphone.policies.rules import ALL_SEGMENTS, ApprovalTier, format_amount, format_number


def _combinations():
    for deal_type, segments in DEFAULT_RULES.discount_policies.items():
        for segment in segments:
            for region in DEFAULT_RULES.regional_adjustments:
                yield deal_type, segment, region


def test_every_discount_policy_is_ordered_and_adjusted(policies):
    for deal_type, segment, region in _combinations():
        result = policies.lookup_discount_policy(deal_type, segment, region)
        assert result.success, (deal_type, segment, region)
        rule = result.policy
        assert rule.auto_approved_limit <= rule.typical_discount <= rule.max_discount
        adjustment = DEFAULT_RULES.regional_adjustments[region].additional_discount
        assert rule.effective_max == rule.max_discount + adjustment


def test_discount_limits_validate_their_ordering():
    with pytest.raises(ValueError):
        DiscountLimits(max_discount=10, typical_discount=15, auto_approved_limit=5)


def test_discount_lookup_guidance(policies):
    result = policies.lookup_discount_policy("newBusiness", "enterprise", "apac")
    assert result.policy.max_discount == 20
    assert result.policy.effective_max == 27
    assert result.guidance == (
        "enterprise newBusiness deals can receive up to 20% discount",
        "Discounts up to 10% are auto-approved",
        "Typical discount is 15%",
        "Regional adjustment adds 7% to limits",
    )


def test_addon_policy_applies_to_every_segment(policies):
    result = policies.lookup_discount_policy("addon", "smb")
    assert result.success
    assert ALL_SEGMENTS in DEFAULT_RULES.discount_policies["addon"]
    assert result.policy.max_discount == 5


@pytest.mark.parametrize(
    ("deal_type", "segment", "region"),
    [("newBusiness", "unknown", "namer"), ("barter", "smb", "namer"), ("renewal", "smb", "mars")],
)
def test_discount_misses_are_values(policies, deal_type, segment, region):
    result = policies.lookup_discount_policy(deal_type, segment, region)
    assert result.success is False
    assert result.message.startswith("No discount policy found")
    assert result.as_dict()["policy"] is None


def test_within_policy(policies):
    assert policies.is_within_policy("newBusiness", "smb", 10) is True
    assert policies.is_within_policy("newBusiness", "smb", 12, "latam") is True
    assert policies.is_within_policy("newBusiness", "smb", 16, "latam") is False
    assert policies.is_within_policy("newBusiness", "nobody", 1) is None


def test_minimum_requirements(policies):
    result = policies.lookup_minimum_requirements("newBusiness", "enterprise")
    assert result.policy.minimum_seats == 100
    assert result.guidance[1] == "Minimum deal value: $50,000"

    addon = policies.lookup_minimum_requirements("addon", "enterprise")
    assert addon.success is False
    assert "No minimum requirement for add-on purchases" in addon.message

    assert policies.lookup_minimum_requirements("newBusiness", "nobody").success is False


def test_approval_axes_and_dual_sign_off(policies):
    result = policies.lookup_approval_requirement(25, 300_000)
    requirement = result.policy
    assert requirement.discount.approver == "Regional Director"
    assert requirement.deal_size.approver == "VP Sales"
    assert requirement.requires_dual_approval
    assert [tier.approver for tier in requirement.highest] == ["Regional Director", "VP Sales"]
    assert result.guidance[-1] == "This deal requires approval from both: Regional Director and VP Sales"
    assert policies.strongest_tier(requirement).approver == "VP Sales"


def test_matching_axes_need_a_single_approver(policies):
    requirement = policies.resolve_approval(15, 30_000)
    assert len(requirement.highest) == 1
    assert requirement.highest[0].approver == "Sales Manager"
    assert not requirement.requires_dual_approval


@pytest.mark.parametrize(
    ("discount", "value", "discount_approver", "size_approver"),
    [
        (10, 49_999, "Auto-approved", "Sales Manager"),
        (10.5, 50_000, "Sales Manager", "Regional Director"),
        (30, 500_000, "Regional Director", "VP Sales"),
        (31, 500_001, "VP Sales + Finance", "VP Sales + CEO"),
    ],
)
def test_approval_bracket_boundaries(policies, discount, value, discount_approver, size_approver):
    requirement = policies.resolve_approval(discount, value)
    assert requirement.discount.approver == discount_approver
    assert requirement.deal_size.approver == size_approver


def test_approval_lookup_without_inputs_misses(policies):
    result = policies.lookup_approval_requirement(None, None)
    assert result.success is False
    assert result.message == "No specific approval requirements found"


def test_bounded_approval_tables_miss_instead_of_raising():
    rules = dataclasses.replace(
        DEFAULT_RULES,
        discount_approval=(
            ApprovalTier("0-10%", "Auto-approved", "Immediate", 10),
            ApprovalTier("11-30%", "Regional Director", "48 hours", 30),
        ),
    )
    store = PolicyKnowledgeStore(rules)

    result = store.lookup_approval_requirement(45, None)
    assert result.success is False
    assert result.message == "No specific approval requirements found"

    requirement = store.resolve_approval(45, 300_000)
    assert requirement.discount is None
    assert requirement.deal_size.approver == "VP Sales"
    assert store.lookup_approval_requirement(45, 300_000).success is True


def test_pilot_and_contract_lookups(policies):
    pilot = policies.lookup_pilot_policy("enterprise")
    assert pilot.policy.duration == "60 days"
    assert "Requires approval from: Regional Director" in pilot.guidance
    assert policies.lookup_pilot_policy(None).policy.duration == "30 days"
    assert policies.lookup_pilot_policy("forever").success is False

    terms = policies.lookup_contract_terms("customTerms")
    assert terms.guidance[0] == "customTerms contract terms require Legal + Sales Director approval"


def test_quick_lookup_competitive_discount(policies):
    result = policies.quick_lookup(
        "competitive_discount", deal_type="newBusiness", segment="enterprise"
    )
    assert result.policy.competitive_bonus == 5
    assert result.policy.effective_max == 25
    assert result.guidance[-1].startswith("Competitive situations may qualify")
    assert policies.quick_lookup("weather").success is False


def test_policy_questions(policies):
    answer = policies.answer_policy_question("What discount can midmarket renewal deals get?")
    assert answer.answer == (
        "For midmarket renewals: Maximum 12%, typical 8%, auto-approved up to 5%"
    )
    seats = policies.answer_policy_question("What are the minimum seat counts?")
    assert seats.answer.startswith("Minimum seat requirements for new business: SMB: 5")
    assert seats.note == "Add-on deals have no minimum seat requirements"
    assert "Extended pilots" in policies.answer_policy_question("Can we extend the pilot?").answer
    assert policies.answer_policy_question("What's for lunch?") is None
    assert policies.answer_policy_question(None) is None


def test_policy_summary(policies):
    summary = policies.policy_summary(
        {
            "deal_type": "newBusiness",
            "segment": "enterprise",
            "discount_percent": 35,
            "deal_value": 600_000,
            "has_competitive": True,
            "seats": 40,
            "urgency": "critical",
        }
    )
    types = [policy["type"] for policy in summary.applicable_policies]
    assert types == ["discount", "minimums", "approvals"]
    assert (
        "This discount exceeds policy limits - consider creating an exception case"
        in summary.recommendations
    )
    assert "Below minimum seat requirement (100 required)" in summary.warnings
    assert "High discount percentage - ensure strong business justification" in summary.warnings


def test_formatting_helpers():
    assert format_number(20.0) == "20"
    assert format_number(12.5) == "12.5"
    assert format_amount(250000) == "250,000"
    assert format_amount(1234.5) == "1,234.50"


# ---------------------------------------------------------------------------
# Historical cases
# ---------------------------------------------------------------------------


def test_similar_cases_by_value_band(policies):
    similar = policies.cases.similar_cases(90_000, "renewal", "enterprise", "namer")
    assert [case.id for case in similar] == ["CASE-2024-001", "CASE-2024-011"]
    assert policies.cases.similar_cases(0, "renewal", "enterprise", "namer") == []


def test_multi_region_cases_match_any_region(policies):
    similar = policies.cases.similar_cases(700_000, "newBusiness", "globalAccounts", "emea")
    assert [case.id for case in similar] == ["CASE-2024-003"]


def test_search_and_metrics(policies):
    index = policies.cases
    assert [c.id for c in index.search(None, deal_type="upsell")] == ["CASE-2024-015"]
    assert all(c.segment == "smb" for c in index.search(None, segment="smb", region="all"))
    metrics = index.metrics()
    assert metrics.total == len(index) == 16
    assert metrics.won + metrics.lost + metrics.pending + metrics.retained <= metrics.total
    assert 0 < metrics.win_rate <= 100


def test_case_outcome_kinds(policies):
    index = policies.cases
    assert index.get("CASE-2024-011").outcome_kind == "retained"
    assert index.get("CASE-2024-011").successful
    assert index.get("CASE-2024-012").outcome_kind == "lost"
    assert not index.get("CASE-2024-013").successful
    assert index.get("CASE-2024-001").resolution_hours() == 36


def test_index_loads_from_path(tmp_path):
    path = tmp_path / "cases.json"
    path.write_text(
        '{"cases": [{"id": "X-1", "title": "t", "category": "c", "deal_type": "addon",'
        ' "segment": "smb", "region": "namer", "deal_value": 10, "outcome": "Won",'
        ' "custom_note": "kept"}]}'
    )
    index = HistoricalCaseIndex.load(path)
    assert len(index) == 1
    assert index.get("X-1").details == {"custom_note": "kept"}
