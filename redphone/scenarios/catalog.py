"""Static catalog of canned sales-support scenarios and keyword matching."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parents[1] / "data" / "scenarios.json"


@dataclass(frozen=True)
class CaseInfo:
    category: str
    reason: str
    required_fields: tuple[str, ...] = ()


@dataclass(frozen=True)
class Scenario:
    id: str
    category: str
    keywords: tuple[str, ...]
    user_prompt: str
    agent_response: str
    follow_up_actions: tuple[str, ...] = ()
    requires_case: bool = False
    case_info: CaseInfo | None = None
    suggestions: tuple[str, ...] = ()

    def keyword_hits(self, lowered: str) -> int:
        """Number of keywords occurring as substrings of ``lowered``."""

        return sum(1 for keyword in self.keywords if keyword in lowered)


@dataclass(frozen=True)
class CaseCreationStep:
    step: int
    description: str
    action: str


def _scenario_from_mapping(data: Mapping[str, Any]) -> Scenario:
    case_info = None
    raw_case = data.get("case_info")
    if raw_case:
        case_info = CaseInfo(
            category=raw_case["category"],
            reason=raw_case["reason"],
            required_fields=tuple(raw_case.get("required_fields", ())),
        )
    return Scenario(
        id=data["id"],
        category=data["category"],
        keywords=tuple(str(keyword).lower() for keyword in data["keywords"]),
        user_prompt=data.get("user_prompt", ""),
        agent_response=data["agent_response"],
        follow_up_actions=tuple(data.get("follow_up_actions", ())),
        requires_case=bool(data.get("requires_case", False)),
        case_info=case_info,
        suggestions=tuple(data.get("suggestions", ())),
    )


class ScenarioCatalog:
    """Immutable, ordered collection of scenarios loaded once at construction."""

    def __init__(
        self,
        scenarios: Iterable[Scenario],
        steps: Iterable[CaseCreationStep] = (),
    ):
        self._scenarios: tuple[Scenario, ...] = tuple(scenarios)
        self._by_id = {scenario.id: scenario for scenario in self._scenarios}
        self._steps: tuple[CaseCreationStep, ...] = tuple(steps)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ScenarioCatalog":
        try:
            scenarios = [_scenario_from_mapping(entry) for entry in data["scenarios"]]
            steps = [
                CaseCreationStep(
                    step=int(entry["step"]),
                    description=entry["description"],
                    action=entry["action"],
                )
                for entry in data.get("case_creation_steps", ())
            ]
        except KeyError as exc:
            raise ValueError(f"Scenario catalog entry is missing {exc}") from exc
        return cls(scenarios, steps)

    @classmethod
    def load(cls, path: str | Path | None = None) -> "ScenarioCatalog":
        source = Path(path) if path is not None else DEFAULT_CATALOG_PATH
        catalog = cls.from_mapping(json.loads(source.read_text(encoding="utf-8")))
        logger.debug("Loaded %d scenarios from %s", len(catalog), source)
        return catalog

    def __len__(self) -> int:
        return len(self._scenarios)

    def __iter__(self):
        return iter(self._scenarios)

    @property
    def scenarios(self) -> tuple[Scenario, ...]:
        return self._scenarios

    @property
    def case_creation_steps(self) -> tuple[CaseCreationStep, ...]:
        return self._steps

    def match(self, text: str | None) -> Scenario | None:
        """Return the scenario with the most keyword hits.

        Ties keep the earlier catalog entry; a scenario needs at least one hit.
        """

        if not isinstance(text, str) or not text:
            return None
        lowered = text.lower()
        best: Scenario | None = None
        best_hits = 0
        for scenario in self._scenarios:
            hits = scenario.keyword_hits(lowered)
            if hits > best_hits:
                best, best_hits = scenario, hits
        return best

    def get(self, scenario_id: str) -> Scenario | None:
        return self._by_id.get(scenario_id)

    def by_category(self, category: str) -> list[Scenario]:
        return [scenario for scenario in self._scenarios if scenario.category == category]

    def categories(self) -> list[str]:
        seen: dict[str, None] = {}
        for scenario in self._scenarios:
            seen.setdefault(scenario.category, None)
        return list(seen)
