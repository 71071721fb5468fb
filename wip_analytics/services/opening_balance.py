"""Opening balance reconstruction from pre-aggregated ledger sums."""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from wip_analytics.constants.error_ids import ErrorIds
from wip_analytics.logger import get_logger
from wip_analytics.services.aggregation import (
    CANONICAL_PROVISION_SIGN,
    CategoryTotals,
)
from wip_analytics.services.categorization import TransactionCategorizer, default_categorizer
from wip_analytics.services.ledger import TypeTotal

logger = get_logger(__name__)

TotalsInput = TypeTotal | tuple[str, Decimal] | tuple[str, str | None, Decimal]


def _as_type_total(item: TotalsInput) -> TypeTotal:
    if isinstance(item, TypeTotal):
        return item
    if len(item) == 2:
        type_code, total = item
        return TypeTotal(type_code=type_code, total=total)
    type_code, subtype_code, total = item
    return TypeTotal(type_code=type_code, total=total, subtype_code=subtype_code)


class OpeningBalanceReconstructor:
    """Folds (type, subtype) sums before a window start into one balance.

    Work is proportional to the number of distinct codes, not to history
    length. The category and sign rules are the aggregator's, so the result
    equals replaying every earlier transaction through PeriodAggregator.
    """

    def __init__(self, categorizer: TransactionCategorizer | None = None) -> None:
        self.categorizer = categorizer or default_categorizer

    def _fold(self, entity_key: str, totals: Iterable[TypeTotal], provision_sign: int) -> Decimal:
        buckets = CategoryTotals()
        skipped: Counter[str] = Counter()
        for item in totals:
            if not buckets.add(self.categorizer.categorize(item.type_code, item.subtype_code), item.total):
                skipped[item.type_code or ""] += 1

        if skipped:
            logger.warning(
                "Uncategorized ledger groups excluded from opening balance",
                error_id=ErrorIds.WIP_UNCATEGORIZED_TRANSACTIONS,
                entity_key=entity_key,
                count=sum(skipped.values()),
                codes=dict(skipped.most_common(10)),
            )
        return buckets.delta(provision_sign)

    def reconstruct(
        self,
        entity_key: str,
        window_start: date,
        totals: Iterable[TotalsInput],
        provision_sign: int = CANONICAL_PROVISION_SIGN,
    ) -> Decimal:
        normalized = [_as_type_total(item) for item in totals]
        balance = self._fold(entity_key, normalized, provision_sign)
        logger.debug(
            "Opening balance reconstructed",
            entity_key=entity_key,
            window_start=window_start.isoformat(),
            groups=len(normalized),
            balance=str(balance),
        )
        return balance

    def reconstruct_by_key(
        self,
        entity_key: str,
        window_start: date,
        totals: Iterable[TypeTotal],
        key_for,
        provision_sign: int = CANONICAL_PROVISION_SIGN,
    ) -> dict[str, Decimal]:
        """Opening balance per grouping key (e.g. master service line).

        ``key_for`` maps each TypeTotal to its group key.
        """
        grouped: dict[str, list[TypeTotal]] = {}
        for item in totals:
            grouped.setdefault(key_for(item), []).append(item)

        balances = {key: self._fold(entity_key, items, provision_sign) for key, items in grouped.items()}
        logger.debug(
            "Opening balances reconstructed by key",
            entity_key=entity_key,
            window_start=window_start.isoformat(),
            keys=len(balances),
        )
        return balances
