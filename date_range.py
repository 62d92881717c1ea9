"""
Date Range Resolver.
Derives the inclusive start/end of a snapshot window without assuming order.
"""

import logging
from typing import Iterable, Optional

from config import MetricsConfig
from models import DailySnapshot, DateRange

logger = logging.getLogger(__name__)


def resolve_date_range(
    snapshots: Iterable[DailySnapshot],
    config: Optional[MetricsConfig] = None,
) -> Optional[DateRange]:
    """
    Resolve the date range covered by a window of snapshots.

    Args:
        snapshots: Normalized snapshots, in any order
        config: MetricsConfig providing the label format

    Returns:
        DateRange with min/max date and distinct day count, or None when
        the window is empty
    """
    config = config or MetricsConfig()
    days = {snapshot.date for snapshot in snapshots}
    if not days:
        logger.debug("[DATE_RANGE] Empty window, no date range")
        return None

    start, end = min(days), max(days)
    return DateRange(
        start_date=start,
        end_date=end,
        start_label=start.strftime(config.date_label_format),
        end_label=end.strftime(config.date_label_format),
        day_count=len(days),
    )
