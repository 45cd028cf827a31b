"""Regex and keyword entity extraction for sales-support utterances."""

from __future__ import annotations

import re
from dataclasses import dataclass, fields
from typing import Any

_PERCENT_PATTERN = re.compile(r"(\d+(?:\.\d+)?)%")
# Currency needs a "$" prefix or a k/m suffix so seat counts and percentages
# are never read as money.
_CURRENCY_PATTERN = re.compile(
    r"\$\s?(?P<amount>\d[\d,]*(?:\.\d+)?)(?P<suffix>[kKmM])?\b"
    r"|\b(?P<bare>\d[\d,]*(?:\.\d+)?)(?P<bare_suffix>[kKmM])\b"
)
_TIMEFRAME_PATTERN = re.compile(
    r"\b(\d+)[\s-]*(day|week|month|year)s?\b", re.IGNORECASE
)
_SEGMENT_PATTERN = re.compile(
    r"\b(smb|small business(?:es)?|mid-?market|large enterprises?|enterprises?"
    r"|global accounts?|fortune(?:\s\d+)?)\b",
    re.IGNORECASE,
)
_DEAL_TYPE_PATTERN = re.compile(
    r"\b(new business|renewals?|add-ons?|addons?|upsells?|expansions?)\b",
    re.IGNORECASE,
)
_REGION_PATTERN = re.compile(
    r"\b(namer|north america|usa|emea|europe|european|apac|asia|pacific"
    r"|latam|latin america|brazil|mexico)\b",
    re.IGNORECASE,
)
_URGENCY_PATTERN = re.compile(
    r"\b(urgent|urgently|asap|immediately|emergency|critical|soon|rush|deadline)\b",
    re.IGNORECASE,
)

_MULTIPLIERS = {"k": 1_000, "m": 1_000_000}

_URGENCY_MAP = {
    "emergency": "critical",
    "critical": "critical",
    "urgent": "high",
    "urgently": "high",
    "asap": "high",
    "immediately": "high",
    "rush": "high",
    "soon": "medium",
    "deadline": "medium",
}


@dataclass(frozen=True)
class Timeframe:
    value: int
    unit: str

    def describe(self) -> str:
        suffix = "s" if self.value != 1 else ""
        return f"{self.value} {self.unit}{suffix}"


@dataclass(frozen=True)
class ExtractedEntities:
    """Entities found in one utterance, each kind in positional order.

    A kind with no match is an empty tuple; consumers treat it as absent.
    """

    percentage: tuple[float, ...] = ()
    currency: tuple[float, ...] = ()
    timeframe: tuple[Timeframe, ...] = ()
    segment: tuple[str, ...] = ()
    deal_type: tuple[str, ...] = ()
    region: tuple[str, ...] = ()
    urgency: tuple[str, ...] = ()

    def kinds(self) -> list[str]:
        """Names of the entity kinds that matched at least once."""

        return [f.name for f in fields(self) if getattr(self, f.name)]

    def get(self, kind: str) -> tuple[Any, ...]:
        return tuple(getattr(self, kind, ()))

    def first(self, kind: str) -> Any | None:
        values = self.get(kind)
        return values[0] if values else None

    def latest(self, kind: str) -> Any | None:
        values = self.get(kind)
        return values[-1] if values else None

    def __len__(self) -> int:
        return len(self.kinds())

    def as_dict(self) -> dict[str, list[Any]]:
        data: dict[str, list[Any]] = {}
        for kind in self.kinds():
            values = self.get(kind)
            if kind == "timeframe":
                data[kind] = [{"value": tf.value, "unit": tf.unit} for tf in values]
            else:
                data[kind] = list(values)
        return data


def _normalise_segment(raw: str) -> str:
    lower = raw.lower()
    if "smb" in lower or "small" in lower:
        return "smb"
    if "mid" in lower:
        return "midmarket"
    if "large" in lower or "fortune" in lower:
        return "largeEnterprise"
    if "global" in lower:
        return "globalAccounts"
    return "enterprise"


def _normalise_deal_type(raw: str) -> str:
    lower = raw.lower()
    if "renewal" in lower:
        return "renewal"
    if "add" in lower:
        return "addon"
    if "upsell" in lower or "expansion" in lower:
        return "upsell"
    return "newBusiness"


def _normalise_region(raw: str) -> str:
    lower = raw.lower()
    if lower in {"emea", "europe", "european"}:
        return "emea"
    if lower in {"apac", "asia", "pacific"}:
        return "apac"
    if lower in {"latam", "latin america", "brazil", "mexico"}:
        return "latam"
    return "namer"


@dataclass
class EntityExtractor:
    """Deterministic extractor; every entity kind has exactly one rule."""

    def extract(self, text: str | None) -> ExtractedEntities:
        if not isinstance(text, str) or not text.strip():
            return ExtractedEntities()
        return ExtractedEntities(
            percentage=tuple(
                float(match.group(1)) for match in _PERCENT_PATTERN.finditer(text)
            ),
            currency=self._currency(text),
            timeframe=tuple(
                Timeframe(int(match.group(1)), match.group(2).lower())
                for match in _TIMEFRAME_PATTERN.finditer(text)
            ),
            segment=tuple(
                _normalise_segment(match.group(1))
                for match in _SEGMENT_PATTERN.finditer(text)
            ),
            deal_type=tuple(
                _normalise_deal_type(match.group(1))
                for match in _DEAL_TYPE_PATTERN.finditer(text)
            ),
            region=tuple(
                _normalise_region(match.group(1))
                for match in _REGION_PATTERN.finditer(text)
            ),
            urgency=tuple(
                _URGENCY_MAP.get(match.group(1).lower(), "medium")
                for match in _URGENCY_PATTERN.finditer(text)
            ),
        )

    def _currency(self, text: str) -> tuple[float, ...]:
        amounts: list[float] = []
        for match in _CURRENCY_PATTERN.finditer(text):
            raw = match.group("amount") or match.group("bare")
            suffix = match.group("suffix") or match.group("bare_suffix") or ""
            try:
                value = float(raw.replace(",", ""))
            except ValueError:
                continue
            amounts.append(value * _MULTIPLIERS.get(suffix.lower(), 1))
        return tuple(amounts)
