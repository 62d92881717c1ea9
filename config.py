"""
Configuration module for usage metrics aggregation.
Allows injection of ranking size, window statistics and labelling options.
"""

from validators import MetricsConfigInput

WINDOW_USER_STATISTICS = ("max", "latest")


class MetricsConfig:
    """Configuration class for metrics aggregation parameters."""

    def __init__(
        self,
        top_n: int = 5,
        window_user_statistic: str = "max",
        unknown_model_key: str = "unknown",
        currency: str = "USD",
        date_label_format: str = "%Y-%m-%d"
    ):
        """
        Initialize metrics configuration.

        Args:
            top_n: Default number of entities kept in ranked lists
            window_user_statistic: How active/engaged user counts are reported
                for a window: 'max' over all days or the 'latest' day's value
            unknown_model_key: Breakdown key for billing items without a model
            currency: Currency code of the billing feed (e.g., 'USD')
            date_label_format: strftime format for date range labels
        """
        if window_user_statistic not in WINDOW_USER_STATISTICS:
            raise ValueError(
                f"window_user_statistic must be one of {WINDOW_USER_STATISTICS}, "
                f"got {window_user_statistic!r}"
            )
        self.top_n = top_n
        self.window_user_statistic = window_user_statistic
        self.unknown_model_key = unknown_model_key
        self.currency = currency
        self.date_label_format = date_label_format

    @classmethod
    def from_dict(cls, values: dict) -> "MetricsConfig":
        """Build a configuration from a dictionary, validating every value."""
        validated = MetricsConfigInput.model_validate(values)
        return cls(**validated.model_dump())

    def to_dict(self):
        """Convert configuration to dictionary."""
        return {
            'top_n': self.top_n,
            'window_user_statistic': self.window_user_statistic,
            'unknown_model_key': self.unknown_model_key,
            'currency': self.currency,
            'date_label_format': self.date_label_format
        }
