"""
Data validation for asset price panels.
"""

import logging
import numpy as np
import pandas as pd
from typing import List, Tuple

logger = logging.getLogger('data_manager.validator')


class DataValidator:
    """Validates price panels before they enter the pipeline."""

    def __init__(self, min_rows: int = 2, max_price: float = 1e9):
        self.min_rows = min_rows
        self.validation_bounds = {'price': {'min': 0, 'max': max_price}}

    def validate_prices(self, prices: pd.DataFrame) -> Tuple[bool, List[str]]:
        """
        Validates the price DataFrame.

        Args:
            prices: DataFrame of prices indexed by date

        Returns:
            Tuple of (is_valid, list_of_issues)
        """
        issues = []

        if not isinstance(prices.index, pd.DatetimeIndex):
            issues.append("Index is not a DatetimeIndex")
        elif not prices.index.is_monotonic_increasing:
            issues.append("Dates are not sorted in ascending order")
        elif prices.index.has_duplicates:
            issues.append(f"{prices.index.duplicated().sum()} duplicated dates")

        if len(prices) < self.min_rows:
            issues.append(f"Too few rows: {len(prices)} < {self.min_rows}")

        if prices.shape[1] == 0:
            issues.append("No asset columns")

        for col in prices.columns:
            series = prices[col]
            missing_count = series.isna().sum()
            if missing_count > 0:
                issues.append(f"Column {col} has {missing_count} missing values")
            if not np.issubdtype(series.dtype, np.number):
                issues.append(f"Column {col} is not numeric")
                continue
            issues.extend(self._validate_bounds(
                series,
                self.validation_bounds['price']['min'],
                self.validation_bounds['price']['max'],
                f"{col} price"
            ))

        for issue in issues:
            logger.warning(issue)
        return len(issues) == 0, issues

    def _validate_bounds(self, series: pd.Series, min_val: float, max_val: float, name: str) -> List[str]:
        """Validates that values fall strictly above min_val and not above max_val."""
        issues = []

        below_min = series[series <= min_val]
        if not below_min.empty:
            issues.append(
                f"{name}: {len(below_min)} values at or below {min_val} "
                f"(first occurrence at index {below_min.index[0]})"
            )

        above_max = series[series > max_val]
        if not above_max.empty:
            issues.append(
                f"{name}: {len(above_max)} values above maximum of {max_val} "
                f"(first occurrence at index {above_max.index[0]})"
            )

        return issues
