import json

import pytest

from redphone.scenarios import ScenarioCatalog


def test_hep_prompt_matches_hep_pricing(catalog):
    scenario = catalog.match("Can you help me with my HEP pricing in Solution Builder?")
    assert scenario is not None
    assert scenario.id == "hep-pricing"
    assert scenario.requires_case is True
    assert scenario.case_info.category == "Pricing"
    assert scenario.case_info.required_fields == ("max_first_year_spend", "deal_length")


def test_highest_keyword_count_wins(catalog):
    scenario = catalog.match("I can't download the invoice from billing")
    assert scenario.id == "find-invoice"


def test_ties_go_to_the_earlier_catalog_entry(catalog):
    # "opportunity" is a keyword of compensation-missing and opportunity-stage,
    # "invoice" of find-invoice: one hit each.
    scenario = catalog.match("invoice opportunity")
    assert scenario.id == "compensation-missing"

    tied = ScenarioCatalog.from_mapping(
        {
            "scenarios": [
                {"id": "first", "category": "A", "keywords": ["alpha"], "agent_response": "1"},
                {"id": "second", "category": "B", "keywords": ["alpha"], "agent_response": "2"},
            ]
        }
    )
    assert tied.match("ALPHA please").id == "first"


@pytest.mark.parametrize("text", ["", None, "nothing relevant here"])
def test_no_match(catalog, text):
    assert catalog.match(text) is None


def test_catalog_lookups(catalog):
    assert len(catalog) == 6
    assert catalog.get("legal-terms").category == "Legal"
    assert catalog.get("unknown") is None
    assert catalog.categories() == [
        "Compensation",
        "Billing",
        "Deal Structure",
        "Pricing",
        "Legal",
        "System Issues",
    ]
    assert [step.step for step in catalog.case_creation_steps] == [1, 2, 3]
    assert [s.id for s in catalog.by_category("Pricing")] == ["hep-pricing"]


def test_catalog_can_be_loaded_from_another_file(tmp_path):
    path = tmp_path / "scenarios.json"
    path.write_text(
        json.dumps(
            {
                "scenarios": [
                    {
                        "id": "fixture",
                        "category": "Testing",
                        "keywords": ["Widget"],
                        "agent_response": "Fixture response",
                        "requires_case": True,
                        "case_info": {"category": "Testing", "reason": "Fixture case"},
                    }
                ]
            }
        )
    )
    loaded = ScenarioCatalog.load(path)
    scenario = loaded.match("my widget broke")
    assert scenario.id == "fixture"
    assert scenario.keywords == ("widget",)
    assert scenario.case_info.required_fields == ()


def test_incomplete_entries_are_rejected():
    with pytest.raises(ValueError, match="missing"):
        ScenarioCatalog.from_mapping({"scenarios": [{"id": "broken"}]})
