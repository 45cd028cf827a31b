"""Rules-of-engagement tables: discount limits, minimums, approvals, pilots."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

ALL_SEGMENTS = "all"

SEGMENTS = ("smb", "midmarket", "enterprise", "largeEnterprise", "globalAccounts")
DEAL_TYPES = ("newBusiness", "renewal", "addon", "upsell")
REGIONS = ("namer", "latam", "emea", "apac")


@dataclass(frozen=True)
class DiscountLimits:
    """Discount percentages for one deal type and segment."""

    max_discount: float
    typical_discount: float
    auto_approved_limit: float

    def __post_init__(self) -> None:
        if not (
            0 <= self.auto_approved_limit <= self.typical_discount <= self.max_discount
        ):
            raise ValueError(
                "Discount limits must satisfy auto_approved <= typical <= max "
                f"(got {self.auto_approved_limit}, {self.typical_discount}, "
                f"{self.max_discount})"
            )


@dataclass(frozen=True)
class RegionalAdjustment:
    additional_discount: float
    note: str


@dataclass(frozen=True)
class MinimumCommitment:
    seats: int
    value: float


@dataclass(frozen=True)
class ApprovalTier:
    """One bracket of an approval axis.

    ``upper`` bounds the bracket (``None`` means open ended); ``inclusive``
    says whether the bound itself belongs to the bracket.
    """

    label: str
    approver: str
    timeframe: str
    upper: float | None = None
    inclusive: bool = True

    def contains(self, amount: float) -> bool:
        if self.upper is None:
            return True
        return amount <= self.upper if self.inclusive else amount < self.upper


@dataclass(frozen=True)
class ContractTerm:
    approver: str
    timeframe: str


@dataclass(frozen=True)
class PilotProgram:
    duration: str
    approver: str
    max_seats: int | None = None
    features: str | None = None
    conversion_target: str | None = None
    conditions: str | None = None
    justification_required: bool = False
    duration_days: int | None = None


@dataclass(frozen=True)
class ApprovalLevel:
    level: int
    title: str
    response: str


def _freeze(data: Mapping) -> Mapping:
    return MappingProxyType(
        {
            key: _freeze(value) if isinstance(value, Mapping) else value
            for key, value in data.items()
        }
    )


@dataclass(frozen=True)
class RulesOfEngagement:
    """Static policy tables; every discount rule is validated on construction."""

    discount_policies: Mapping[str, Mapping[str, DiscountLimits]]
    regional_adjustments: Mapping[str, RegionalAdjustment]
    minimum_commitments: Mapping[str, Mapping[str, MinimumCommitment]]
    relative_minimums: Mapping[str, str]
    discount_approval: tuple[ApprovalTier, ...]
    deal_size_approval: tuple[ApprovalTier, ...]
    contract_terms: Mapping[str, ContractTerm]
    pilot_programs: Mapping[str, PilotProgram]
    approval_levels: tuple[ApprovalLevel, ...]
    competitive_battlecards: tuple[str, ...] = ()
    competitive_bonus: float = 5.0
    data_privacy: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for deal_type, segments in self.discount_policies.items():
            for segment, limits in segments.items():
                if not isinstance(limits, DiscountLimits):
                    raise ValueError(
                        f"Discount policy {deal_type}/{segment} must be DiscountLimits"
                    )
        object.__setattr__(self, "discount_policies", _freeze(self.discount_policies))
        object.__setattr__(
            self, "minimum_commitments", _freeze(self.minimum_commitments)
        )

    def level_for(self, approver: str | None) -> ApprovalLevel | None:
        for level in self.approval_levels:
            if level.title == approver:
                return level
        return None


DEFAULT_RULES = RulesOfEngagement(
    discount_policies={
        "newBusiness": {
            "enterprise": DiscountLimits(20, 15, 10),
            "midmarket": DiscountLimits(15, 10, 7),
            "smb": DiscountLimits(10, 5, 5),
            "largeEnterprise": DiscountLimits(25, 20, 15),
            "globalAccounts": DiscountLimits(30, 25, 20),
        },
        "renewal": {
            "enterprise": DiscountLimits(15, 10, 8),
            "midmarket": DiscountLimits(12, 8, 5),
            "smb": DiscountLimits(8, 3, 3),
            "largeEnterprise": DiscountLimits(20, 15, 12),
            "globalAccounts": DiscountLimits(25, 20, 15),
        },
        "addon": {
            ALL_SEGMENTS: DiscountLimits(5, 5, 5),
        },
    },
    regional_adjustments={
        "namer": RegionalAdjustment(0, "Standard rates apply"),
        "latam": RegionalAdjustment(5, "Market development pricing"),
        "emea": RegionalAdjustment(3, "Competitive market adjustment"),
        "apac": RegionalAdjustment(7, "Growth market incentive"),
    },
    minimum_commitments={
        "newBusiness": {
            "enterprise": MinimumCommitment(100, 50_000),
            "midmarket": MinimumCommitment(25, 15_000),
            "smb": MinimumCommitment(5, 5_000),
            "largeEnterprise": MinimumCommitment(500, 250_000),
            "globalAccounts": MinimumCommitment(1000, 500_000),
        },
        "renewal": {
            "enterprise": MinimumCommitment(75, 40_000),
            "midmarket": MinimumCommitment(20, 12_000),
            "smb": MinimumCommitment(3, 3_000),
            "largeEnterprise": MinimumCommitment(400, 200_000),
            "globalAccounts": MinimumCommitment(800, 400_000),
        },
    },
    relative_minimums={
        "addon": "No minimum requirement for add-on purchases",
        "upsell": "25% increase from current contract value",
    },
    discount_approval=(
        ApprovalTier("0-10%", "Auto-approved", "Immediate", 10),
        ApprovalTier("11-20%", "Sales Manager", "24 hours", 20),
        ApprovalTier("21-30%", "Regional Director", "48 hours", 30),
        ApprovalTier("31%+", "VP Sales + Finance", "72 hours"),
    ),
    deal_size_approval=(
        ApprovalTier("under50k", "Sales Manager", "24 hours", 50_000, inclusive=False),
        ApprovalTier("50k-250k", "Regional Director", "48 hours", 250_000),
        ApprovalTier("250k-500k", "VP Sales", "72 hours", 500_000),
        ApprovalTier("500k+", "VP Sales + CEO", "1 week"),
    ),
    contract_terms={
        "standard": ContractTerm("Auto-approved", "Immediate"),
        "customTerms": ContractTerm("Legal + Sales Director", "1 week"),
        "paymentTerms": ContractTerm("Finance + Sales Manager", "48 hours"),
    },
    pilot_programs={
        "standard": PilotProgram(
            duration="30 days",
            approver="Sales Manager",
            max_seats=10,
            features="Core platform access",
            conversion_target="80%",
            duration_days=30,
        ),
        "enterprise": PilotProgram(
            duration="60 days",
            approver="Regional Director",
            max_seats=50,
            features="Full platform + premium support",
            conversion_target="85%",
            duration_days=60,
        ),
        "largeEnterprise": PilotProgram(
            duration="90 days",
            approver="VP Sales",
            max_seats=100,
            features="Full platform + dedicated CSM",
            conversion_target="90%",
            duration_days=90,
        ),
        "extended": PilotProgram(
            duration="6+ months",
            approver="VP Sales + CEO",
            conditions="Strategic account only",
            justification_required=True,
        ),
    },
    approval_levels=(
        ApprovalLevel(1, "Auto-approved", "Immediate"),
        ApprovalLevel(2, "Sales Manager", "24 hours"),
        ApprovalLevel(3, "Regional Director", "48 hours"),
        ApprovalLevel(4, "VP Sales", "72 hours"),
        ApprovalLevel(5, "VP Sales + Finance", "1 week"),
        ApprovalLevel(6, "VP Sales + CEO", "1 week"),
    ),
    competitive_battlecards=(
        "CompetitorA Analytics",
        "DataCorp Solutions",
        "MediaMax Pro",
    ),
    data_privacy={
        "emea": "GDPR compliance required",
        "namer": "CCPA compliance for CA customers",
        "apac": "Local data residency requirements",
        "latam": "LGPD compliance for Brazil",
    },
)


def format_number(value: float) -> str:
    """Render ``value`` without a trailing ``.0`` for whole numbers."""

    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def format_amount(value: float) -> str:
    """Render a currency amount with thousands separators."""

    if float(value).is_integer():
        return f"{int(value):,}"
    return f"{value:,.2f}"
