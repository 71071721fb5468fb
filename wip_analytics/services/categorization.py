"""Transaction categorization for WIP ledger rows.

Every (type, subtype) pair maps to exactly one Category. Rules are checked
in precedence order:

1. exact (type, subtype) rule
2. subtype-only rule (applies to any type)
3. type-only rule
4. Uncategorized

Codes are compared case-insensitively after stripping whitespace. Unknown
codes fall through to Uncategorized and never raise.
"""

from __future__ import annotations

import enum
from collections.abc import Mapping
from decimal import Decimal


class Category(str, enum.Enum):
    """Financial bucket of a ledger row."""

    PRODUCTION = "production"
    ADJUSTMENT = "adjustment"
    DISBURSEMENT = "disbursement"
    BILLING = "billing"
    PROVISION = "provision"
    UNCATEGORIZED = "uncategorized"


BUCKET_CATEGORIES: tuple[Category, ...] = (
    Category.PRODUCTION,
    Category.ADJUSTMENT,
    Category.DISBURSEMENT,
    Category.BILLING,
    Category.PROVISION,
)

# Billing and provisions are posted as credits; buckets report them as positive amounts.
_CREDIT_CATEGORIES = frozenset({Category.BILLING, Category.PROVISION})

DEFAULT_TYPE_RULES: dict[str, Category] = {
    "T": Category.PRODUCTION,
    "TI": Category.PRODUCTION,
    "TIM": Category.PRODUCTION,
    "TIME": Category.PRODUCTION,
    "D": Category.DISBURSEMENT,
    "DI": Category.DISBURSEMENT,
    "DIS": Category.DISBURSEMENT,
    "DISB": Category.DISBURSEMENT,
    "ADJ": Category.ADJUSTMENT,
    "AT": Category.ADJUSTMENT,
    "ADT": Category.ADJUSTMENT,
    "AD": Category.ADJUSTMENT,
    "ADD": Category.ADJUSTMENT,
    "F": Category.BILLING,
    "FEE": Category.BILLING,
    "P": Category.PROVISION,
    "PRO": Category.PROVISION,
    "PROV": Category.PROVISION,
}

# Keys are (type, subtype); a None type matches any type.
DEFAULT_SUBTYPE_RULES: dict[tuple[str | None, str], Category] = {
    ("ADJ", "WIP PROVISION"): Category.PROVISION,
    (None, "PROVISION"): Category.PROVISION,
    (None, "INVOICE"): Category.BILLING,
    (None, "CREDIT NOTE"): Category.BILLING,
}


def normalize_code(code: str | None) -> str | None:
    if code is None:
        return None
    normalized = code.strip().upper()
    return normalized or None


def bucket_amount(category: Category, amount: Decimal) -> Decimal:
    """Convert a signed ledger amount into the value reported in its bucket."""
    if category in _CREDIT_CATEGORIES:
        return -amount
    return amount


class TransactionCategorizer:
    """Total, side-effect free mapping of ledger codes to categories."""

    def __init__(
        self,
        type_rules: Mapping[str, Category] | None = None,
        subtype_rules: Mapping[tuple[str | None, str], Category] | None = None,
    ) -> None:
        source_types = DEFAULT_TYPE_RULES if type_rules is None else type_rules
        source_subtypes = DEFAULT_SUBTYPE_RULES if subtype_rules is None else subtype_rules

        self._type_rules: dict[str, Category] = {}
        for code, category in source_types.items():
            key = normalize_code(code)
            if key:
                self._type_rules[key] = category

        self._exact_rules: dict[tuple[str, str], Category] = {}
        self._wildcard_rules: dict[str, Category] = {}
        for (type_code, subtype_code), category in source_subtypes.items():
            subtype_key = normalize_code(subtype_code)
            if subtype_key is None:
                continue
            type_key = normalize_code(type_code)
            if type_key is None:
                self._wildcard_rules[subtype_key] = category
            else:
                self._exact_rules[(type_key, subtype_key)] = category

    @property
    def has_subtype_rules(self) -> bool:
        """True when any rule depends on the subtype code."""
        return bool(self._exact_rules or self._wildcard_rules)

    def categorize(self, type_code: str | None, subtype_code: str | None = None) -> Category:
        type_key = normalize_code(type_code)
        subtype_key = normalize_code(subtype_code)

        if subtype_key is not None:
            if type_key is not None:
                exact = self._exact_rules.get((type_key, subtype_key))
                if exact is not None:
                    return exact
            wildcard = self._wildcard_rules.get(subtype_key)
            if wildcard is not None:
                return wildcard

        if type_key is None:
            return Category.UNCATEGORIZED
        return self._type_rules.get(type_key, Category.UNCATEGORIZED)


default_categorizer = TransactionCategorizer()


def categorize(type_code: str | None, subtype_code: str | None = None) -> Category:
    """Categorize with the default rule set."""
    return default_categorizer.categorize(type_code, subtype_code)
