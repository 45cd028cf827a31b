"""Historical case index used for precedent lookups."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_CASES_PATH = Path(__file__).resolve().parents[1] / "data" / "historical_cases.json"

MULTI_REGION = "multi-region"

_CORE_FIELDS = {
    "id",
    "title",
    "category",
    "subcategory",
    "priority",
    "deal_type",
    "segment",
    "region",
    "deal_value",
    "requested_discount",
    "description",
    "assigned_to",
    "resolution",
    "outcome",
    "resolution_time",
    "key_factors",
    "precedent",
    "tags",
}

_DURATION_PATTERN = re.compile(r"(\d+)\s*(hour|day)", re.IGNORECASE)


@dataclass(frozen=True)
class HistoricalCase:
    id: str
    title: str
    category: str
    deal_type: str
    segment: str
    region: str
    deal_value: float
    outcome: str
    subcategory: str = ""
    priority: str = "medium"
    requested_discount: float | None = None
    description: str = ""
    assigned_to: str = ""
    resolution: str = ""
    resolution_time: str = ""
    key_factors: tuple[str, ...] = ()
    precedent: str = ""
    tags: tuple[str, ...] = ()
    details: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "HistoricalCase":
        discount = data.get("requested_discount")
        return cls(
            id=data["id"],
            title=data["title"],
            category=data["category"],
            deal_type=data["deal_type"],
            segment=data["segment"],
            region=data["region"],
            deal_value=float(data.get("deal_value") or 0),
            outcome=data.get("outcome", ""),
            subcategory=data.get("subcategory", ""),
            priority=data.get("priority", "medium"),
            requested_discount=float(discount) if discount is not None else None,
            description=data.get("description", ""),
            assigned_to=data.get("assigned_to", ""),
            resolution=data.get("resolution", ""),
            resolution_time=data.get("resolution_time", ""),
            key_factors=tuple(data.get("key_factors", ())),
            precedent=data.get("precedent", ""),
            tags=tuple(data.get("tags", ())),
            details={k: v for k, v in data.items() if k not in _CORE_FIELDS},
        )

    @property
    def outcome_kind(self) -> str:
        """Coarse outcome bucket: won, lost, pending, retained or other."""

        for kind in ("Won", "Lost", "Pending", "Retained"):
            if kind in self.outcome:
                return kind.lower()
        return "other"

    @property
    def successful(self) -> bool:
        return self.outcome_kind in ("won", "retained")

    def resolution_hours(self) -> float | None:
        match = _DURATION_PATTERN.search(self.resolution_time)
        if not match:
            return None
        amount = int(match.group(1))
        return float(amount * 24 if match.group(2).lower() == "day" else amount)

    def summary(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "dealValue": self.deal_value,
            "outcome": self.outcome,
            "resolutionTime": self.resolution_time,
            "assignedTo": self.assigned_to,
        }


@dataclass(frozen=True)
class CaseMetrics:
    total: int
    won: int
    lost: int
    pending: int
    retained: int
    win_rate: float
    avg_resolution_hours: float


class HistoricalCaseIndex:
    """Read-only view over past escalation cases and their outcomes."""

    def __init__(self, cases: Iterable[HistoricalCase]):
        self._cases: tuple[HistoricalCase, ...] = tuple(cases)

    @classmethod
    def load(cls, path: str | Path | None = None) -> "HistoricalCaseIndex":
        source = Path(path) if path is not None else DEFAULT_CASES_PATH
        data = json.loads(source.read_text(encoding="utf-8"))
        index = cls(HistoricalCase.from_mapping(entry) for entry in data["cases"])
        logger.debug("Loaded %d historical cases from %s", len(index), source)
        return index

    def __len__(self) -> int:
        return len(self._cases)

    def __iter__(self):
        return iter(self._cases)

    def get(self, case_id: str) -> HistoricalCase | None:
        for case in self._cases:
            if case.id == case_id:
                return case
        return None

    def similar_cases(
        self,
        deal_value: float,
        deal_type: str,
        segment: str,
        region: str,
    ) -> list[HistoricalCase]:
        """Cases with the same deal type and segment within 50% of ``deal_value``.

        The region must match unless the past case spanned several regions.
        """

        if not deal_value or deal_value <= 0:
            return []
        return [
            case
            for case in self._cases
            if case.deal_type == deal_type
            and case.segment == segment
            and case.region in (region, MULTI_REGION)
            and abs(case.deal_value - deal_value) / deal_value < 0.5
        ]

    def search(self, query: str | None, **filters: Any) -> list[HistoricalCase]:
        results = list(self._cases)
        if query:
            term = query.lower()
            results = [
                case
                for case in results
                if term in case.title.lower()
                or term in case.description.lower()
                or term in case.category.lower()
                or any(term in tag.lower() for tag in case.tags)
            ]
        for key, value in filters.items():
            if value and value != "all":
                results = [case for case in results if getattr(case, key, None) == value]
        return results

    def by_category(self, category: str) -> list[HistoricalCase]:
        return [case for case in self._cases if case.category == category]

    def metrics(self) -> CaseMetrics:
        counts = {"won": 0, "lost": 0, "pending": 0, "retained": 0}
        for case in self._cases:
            kind = case.outcome_kind
            if kind in counts:
                counts[kind] += 1
        total = len(self._cases)
        hours: list[float] = []
        for case in self._cases:
            if "week" in case.resolution_time:
                continue
            resolved = case.resolution_hours()
            if resolved is not None:
                hours.append(resolved)
        win_rate = round((counts["won"] + counts["retained"]) / total * 100, 1) if total else 0.0
        return CaseMetrics(
            total=total,
            won=counts["won"],
            lost=counts["lost"],
            pending=counts["pending"],
            retained=counts["retained"],
            win_rate=win_rate,
            avg_resolution_hours=round(sum(hours) / len(hours), 1) if hours else 0.0,
        )
