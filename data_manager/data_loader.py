"""
Price panel loading for the copula risk forecast.
"""

import logging
import pandas as pd
import yfinance as yf
from pathlib import Path
from typing import List, Optional, Union
from data_manager.data_validator import DataValidator

logger = logging.getLogger('data_manager.loader')


class DataLoader:
    def __init__(self, validator: Optional[DataValidator] = None,
                 drop_incomplete: bool = False):
        """
        Initialize data loader with a price validator.

        Dates with a missing price are kept (and later rejected by the
        validator) unless drop_incomplete is set.
        """
        self.validator = validator or DataValidator()
        self.drop_incomplete = drop_incomplete

    def load_csv(self, file_path: Union[str, Path],
                 assets: Optional[List[str]] = None,
                 start: Optional[str] = None,
                 end: Optional[str] = None,
                 date_column: Optional[str] = None) -> pd.DataFrame:
        """
        Load a wide CSV of prices (one date column, one column per asset).

        The date column defaults to the first column of the file.
        """
        logger.info(f"Reading prices from: {file_path}")
        df = pd.read_csv(file_path)
        date_column = date_column or df.columns[0]
        df.index = pd.to_datetime(df[date_column])
        df.index.name = 'date'
        raw = df.drop(columns=date_column)
        df = raw.apply(pd.to_numeric, errors='coerce')

        corrupt = df.isna() & raw.notna()
        for col in corrupt.columns[corrupt.any()]:
            first = corrupt.index[corrupt[col]][0]
            logger.warning(
                f"Column {col}: {corrupt[col].sum()} unparseable prices "
                f"(first at {first:%Y-%m-%d}: {raw.loc[first, col]!r})"
            )

        return self.select_window(df, assets, start, end)

    def fetch_prices(self, tickers: List[str], start: Optional[str] = None,
                     end: Optional[str] = None) -> pd.DataFrame:
        """Download adjusted close prices with yfinance"""
        logger.info(f"Downloading {tickers} from {start} to {end}")
        raw = yf.download(tickers, start=start, end=end, auto_adjust=True, progress=False)
        if raw is None or raw.empty:
            raise ValueError(f"No price data returned for {tickers}")

        prices = raw['Close']
        if isinstance(prices, pd.Series):
            prices = prices.to_frame(name=tickers[0])
        prices.index = pd.to_datetime(prices.index)
        prices.index.name = 'date'
        return self.select_window(prices, tickers, start, end)

    def select_window(self, prices: pd.DataFrame,
                      assets: Optional[List[str]] = None,
                      start: Optional[str] = None,
                      end: Optional[str] = None) -> pd.DataFrame:
        """Select asset columns and a date window; gaps are dropped only on request"""
        prices = prices.sort_index()
        if assets is not None:
            missing = [a for a in assets if a not in prices.columns]
            if missing:
                raise ValueError(f"Unknown assets: {missing}")
            prices = prices[list(assets)]
        prices = prices.loc[start:end]

        incomplete = prices.isna().any(axis=1)
        if incomplete.any():
            if self.drop_incomplete:
                logger.warning(f"Dropping {incomplete.sum()} dates with missing prices")
                prices = prices[~incomplete]
            else:
                logger.warning(f"{incomplete.sum()} dates have missing prices")

        self._log_summary(prices)
        return prices

    def _log_summary(self, prices: pd.DataFrame):
        """Log summary of the selected panel."""
        if prices.empty:
            logger.warning("Selected price panel is empty")
            return
        logger.info(
            f"Price panel: {len(prices):,} dates, {prices.shape[1]} assets, "
            f"{prices.index[0]:%Y-%m-%d} to {prices.index[-1]:%Y-%m-%d}"
        )
