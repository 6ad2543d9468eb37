"""
Prepare price panels for marginal estimation: negative log-returns (losses),
optional weekly aggregation and data quality checks.
"""

import logging
import numpy as np
import pandas as pd

logger = logging.getLogger('garch.data_prep')


class GarchDataPrep:
    """Prepares market data for AR-GARCH estimation."""

    def __init__(self, min_observations: int = 250):
        self.min_observations = min_observations

    def prepare_losses(self, prices: pd.DataFrame, frequency: str = "daily") -> pd.DataFrame:
        """
        Convert a price panel to negative log-returns.

        Args:
            prices: DataFrame of prices indexed by date, one column per asset
            frequency: "daily" or "weekly" (last price of weeks ending Friday)

        Returns:
            DataFrame of losses -log(P_t / P_{t-1}), first row dropped
        """
        if not isinstance(prices.index, pd.DatetimeIndex):
            raise ValueError("Price panel must be indexed by date")
        prices = prices.sort_index()

        if frequency == "weekly":
            prices = prices.resample('W-FRI').last().dropna(how='all')
        elif frequency != "daily":
            raise ValueError("frequency must be either 'daily' or 'weekly'")

        losses = -np.log(prices / prices.shift(1))
        losses = losses.iloc[1:]

        logger.info(
            f"Prepared {frequency} losses: {len(losses)} observations, "
            f"{losses.shape[1]} assets, {losses.index[0]:%Y-%m-%d} to {losses.index[-1]:%Y-%m-%d}"
        )
        return losses

    def verify_data_quality(self, losses: pd.DataFrame) -> bool:
        """
        Verify data quality for estimation.

        Args:
            losses: DataFrame of losses

        Returns:
            bool indicating if data meets quality requirements
        """
        if len(losses) < self.min_observations:
            logger.error(f"Insufficient observations: {len(losses)} < {self.min_observations}")
            return False

        missing = losses.isna().sum()
        if missing.any():
            logger.error(f"Missing values per asset: {missing[missing > 0].to_dict()}")
            return False

        if not np.isfinite(losses.values).all():
            logger.error("Losses contain infinite values (non-positive prices?)")
            return False

        # Long runs of zero losses usually mean stale prices
        zero_share = (losses == 0).mean()
        stale = zero_share[zero_share > 0.1]
        if not stale.empty:
            logger.warning(f"Assets with more than 10% zero losses: {stale.round(3).to_dict()}")

        return True
