import sys
import os

# Add project root to Python path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.append(project_root)

import pytest
import numpy as np
import pandas as pd
from data_manager import DataLoader, DataValidator
from data_manager import data_loader
from data_manager.synthetic import simulate_loss_panel, losses_to_prices
from garch.data_prep import GarchDataPrep

@pytest.fixture
def price_panel():
    dates = pd.bdate_range('2020-01-01', periods=60, name='date')
    rng = np.random.default_rng(42)
    values = 100 * np.exp(np.cumsum(rng.normal(0, 0.01, size=(60, 3)), axis=0))
    return pd.DataFrame(values, index=dates, columns=['SPX', 'SX5E', 'UKX'])

@pytest.fixture
def csv_file(price_panel, tmp_path):
    path = tmp_path / "prices.csv"
    price_panel.to_csv(path)
    return path

# Loader

def test_load_csv_selects_assets_and_window(csv_file):
    prices = DataLoader().load_csv(csv_file, assets=['UKX', 'SPX'],
                                   start='2020-01-10', end='2020-02-28')
    assert list(prices.columns) == ['UKX', 'SPX']
    assert prices.index[0] >= pd.Timestamp('2020-01-10')
    assert prices.index[-1] <= pd.Timestamp('2020-02-28')
    assert isinstance(prices.index, pd.DatetimeIndex)

def test_load_csv_unknown_asset(csv_file):
    with pytest.raises(ValueError, match="Unknown assets"):
        DataLoader().load_csv(csv_file, assets=['SPX', 'NKY'])

def test_select_window_keeps_incomplete_dates(price_panel):
    price_panel.iloc[5, 1] = np.nan
    prices = DataLoader().select_window(price_panel)
    assert len(prices) == len(price_panel)
    assert prices.isna().sum().sum() == 1

    is_valid, issues = DataValidator().validate_prices(prices)
    assert not is_valid
    assert any('SX5E has 1 missing' in issue for issue in issues)

def test_select_window_drops_incomplete_dates_on_request(price_panel):
    price_panel.iloc[5, 1] = np.nan
    prices = DataLoader(drop_incomplete=True).select_window(price_panel)
    assert len(prices) == len(price_panel) - 1
    assert not prices.isna().any().any()

def test_load_csv_corrupt_cell_fails_validation(tmp_path, caplog):
    path = tmp_path / "corrupt.csv"
    path.write_text("date,SPX,UKX\n"
                    "2020-01-01,50,50\n"
                    "2020-01-02,abc,51\n"
                    "2020-01-03,52,52\n")
    with caplog.at_level('WARNING', logger='data_manager.loader'):
        prices = DataLoader().load_csv(path)
    assert len(prices) == 3
    assert np.isnan(prices.loc['2020-01-02', 'SPX'])
    assert any('unparseable' in record.message for record in caplog.records)

    is_valid, issues = DataValidator().validate_prices(prices)
    assert not is_valid
    assert any('SPX has 1 missing' in issue for issue in issues)

def test_fetch_prices_uses_yfinance(monkeypatch, price_panel):
    raw = pd.concat({'Close': price_panel[['SPX', 'UKX']]}, axis=1)
    calls = {}

    def fake_download(tickers, **kwargs):
        calls['tickers'] = tickers
        calls.update(kwargs)
        return raw

    monkeypatch.setattr(data_loader.yf, 'download', fake_download)
    prices = DataLoader().fetch_prices(['SPX', 'UKX'], start='2020-01-01', end='2020-03-31')
    assert calls['tickers'] == ['SPX', 'UKX']
    assert calls['auto_adjust'] is True
    assert list(prices.columns) == ['SPX', 'UKX']
    assert len(prices) == len(price_panel)

def test_fetch_prices_empty_download(monkeypatch):
    monkeypatch.setattr(data_loader.yf, 'download', lambda *a, **k: pd.DataFrame())
    with pytest.raises(ValueError, match="No price data"):
        DataLoader().fetch_prices(['XXX'])

# Validator

def test_validator_accepts_clean_panel(price_panel):
    is_valid, issues = DataValidator().validate_prices(price_panel)
    assert is_valid
    assert issues == []

def test_validator_flags_problems(price_panel):
    bad = price_panel.copy()
    bad.iloc[3, 0] = -1.0
    bad.iloc[4, 2] = np.nan
    is_valid, issues = DataValidator().validate_prices(bad)
    assert not is_valid
    assert any('SPX price' in issue for issue in issues)
    assert any('UKX has 1 missing' in issue for issue in issues)

def test_validator_flags_unsorted_and_short(price_panel):
    is_valid, issues = DataValidator().validate_prices(price_panel.iloc[::-1])
    assert not is_valid
    assert any('ascending' in issue for issue in issues)

    is_valid, issues = DataValidator(min_rows=100).validate_prices(price_panel)
    assert not is_valid
    assert any('Too few rows' in issue for issue in issues)

# Synthetic panels

def test_simulate_loss_panel_shape_and_seed():
    first = simulate_loss_panel(n=300, assets=('A', 'B', 'C'), theta=2.0, seed=3)
    second = simulate_loss_panel(n=300, assets=('A', 'B', 'C'), theta=2.0, seed=3)
    assert first.shape == (300, 3)
    assert isinstance(first.index, pd.DatetimeIndex)
    assert (first.index.dayofweek < 5).all()
    pd.testing.assert_frame_equal(first, second)
    assert first.corr(method='kendall').values[0, 1] > 0.2

def test_simulate_loss_panel_rejects_wrong_copula_dimension():
    from copula import GumbelCopula
    with pytest.raises(ValueError):
        simulate_loss_panel(n=10, assets=('A', 'B', 'C'), copula=GumbelCopula(2.0))

def test_losses_to_prices_inverts_prepare_losses():
    losses = simulate_loss_panel(n=50, seed=1)
    prices = losses_to_prices(losses)
    assert len(prices) == 51
    assert (prices.iloc[0] == 100.0).all()
    recovered = GarchDataPrep().prepare_losses(prices)
    np.testing.assert_allclose(recovered.values, losses.values, atol=1e-12)
    assert recovered.index.equals(losses.index)
