"""Rules-of-engagement tables, lookups and historical precedents."""

from .precedents import CaseMetrics, HistoricalCase, HistoricalCaseIndex
from .rules import DEFAULT_RULES, DiscountLimits, RulesOfEngagement
from .store import (
    ApprovalRequirement,
    LookupResult,
    MinimumRequirement,
    PolicyAnswer,
    PolicyKnowledgeStore,
    PolicyRule,
    PolicySummary,
)

__all__ = [
    "ApprovalRequirement",
    "CaseMetrics",
    "DEFAULT_RULES",
    "DiscountLimits",
    "HistoricalCase",
    "HistoricalCaseIndex",
    "LookupResult",
    "MinimumRequirement",
    "PolicyAnswer",
    "PolicyKnowledgeStore",
    "PolicyRule",
    "PolicySummary",
    "RulesOfEngagement",
]
