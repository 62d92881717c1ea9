"""
Premium Request Cost Calculator.

Reduces the metered premium request feed into gross/discount/net totals and a
per-model cost breakdown. Amounts arrive already priced by the biller: they are
summed as given, net is always derived as gross - discount, and the model
multiplier is carried as information only.
"""

import logging
from collections import defaultdict
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Union

from config import MetricsConfig
from error_handling import handle_pipeline_phase, MetricsCalculationError
from models import ModelCost, NoDataResult, PremiumMetrics
from validators import validate_premium_items

logger = logging.getLogger(__name__)

_AMOUNT_FIELDS = ("requests", "included_requests", "gross_amount", "discount_amount")

# Keys that identify a bare usage item rather than a billing response.
_ITEM_KEYS = frozenset({
    "model", "modelName", "model_name",
    "grossQuantity", "requestCount", "request_count",
    "grossAmount", "gross_amount",
    "discountQuantity", "includedRequests", "included_requests",
    "discountAmount", "discount_amount",
})


def extract_usage_items(raw_usage: Any) -> List[Any]:
    """
    Accept either a list of items or the billing API response object.

    The premium request usage endpoint wraps its line items in a
    ``usageItems`` list; None and an empty response both yield no items.
    A single item passed on its own is treated as a one-item list.
    """
    if raw_usage is None:
        return []
    if isinstance(raw_usage, dict):
        if "usageItems" in raw_usage or "usage_items" in raw_usage:
            return list(raw_usage.get("usageItems") or raw_usage.get("usage_items") or [])
        if _ITEM_KEYS.intersection(raw_usage):
            logger.info("[PREMIUM] Billing input is a single usage item, wrapping it in a list")
            return [raw_usage]
        logger.warning(
            "[PREMIUM] Billing response has no usageItems list (keys: %s)",
            ", ".join(sorted(str(key) for key in raw_usage)) or "none",
        )
        return []
    return list(raw_usage)


@handle_pipeline_phase(phase_name="PREMIUM", error_cls=MetricsCalculationError)
def calculate_premium_metrics(
    items: Iterable[Any],
    config: Optional[MetricsConfig] = None,
) -> Union[PremiumMetrics, NoDataResult]:
    """
    Calculate premium request totals and the per-model breakdown.

    Args:
        items: Premium usage items (dicts or RawPremiumUsageItem), any order
        config: MetricsConfig with currency and the key for unnamed models

    Returns:
        PremiumMetrics, or NoDataResult when no usable item remains
    """
    config = config or MetricsConfig()
    raw_items = list(items)
    valid_items, invalid_items = validate_premium_items(raw_items)

    if not valid_items:
        logger.warning(
            "[PREMIUM] No premium usage items to calculate (%d received, %d invalid)",
            len(raw_items),
            len(invalid_items),
        )
        return NoDataResult(
            feed="billing",
            message="No premium request data available for this period",
            input_records=len(raw_items),
            skipped_records=len(invalid_items),
        )

    per_model: Dict[str, Dict[str, Decimal]] = defaultdict(lambda: defaultdict(Decimal))
    item_counts: Dict[str, int] = defaultdict(int)

    for item in valid_items:
        model = item.model_name or config.unknown_model_key
        bucket = per_model[model]
        bucket["requests"] += item.request_count
        bucket["included_requests"] += item.included_requests
        bucket["gross_amount"] += item.gross_amount
        bucket["discount_amount"] += item.discount_amount
        item_counts[model] += 1

    breakdown = [
        ModelCost(
            model=model,
            requests=bucket["requests"],
            included_requests=bucket["included_requests"],
            billed_requests=bucket["requests"] - bucket["included_requests"],
            gross_amount=bucket["gross_amount"],
            discount_amount=bucket["discount_amount"],
            net_amount=bucket["gross_amount"] - bucket["discount_amount"],
            item_count=item_counts[model],
        )
        for model, bucket in per_model.items()
    ]
    breakdown.sort(key=lambda row: (-row.gross_amount, row.model))

    totals = {
        field: sum((bucket[field] for bucket in per_model.values()), Decimal("0"))
        for field in _AMOUNT_FIELDS
    }

    metrics = PremiumMetrics(
        currency=config.currency,
        item_count=len(valid_items),
        skipped_records=len(invalid_items),
        total_gross_requests=totals["requests"],
        total_included_requests=totals["included_requests"],
        total_billed_requests=totals["requests"] - totals["included_requests"],
        total_gross_amount=totals["gross_amount"],
        total_discount_amount=totals["discount_amount"],
        total_net_amount=totals["gross_amount"] - totals["discount_amount"],
        model_breakdown=breakdown,
    )

    logger.info(
        "[PREMIUM] %d items across %d models: gross %s, discount %s, net %s %s",
        metrics.item_count,
        len(breakdown),
        metrics.total_gross_amount,
        metrics.total_discount_amount,
        metrics.total_net_amount,
        metrics.currency,
    )
    return metrics
