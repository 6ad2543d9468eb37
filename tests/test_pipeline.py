import sys
import os

# Add project root to Python path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.append(project_root)

import pytest
import logging
import numpy as np
import pandas as pd
from config import ForecastConfig
from data_manager.synthetic import simulate_loss_panel, losses_to_prices
from run_forecast import initialize_components, run_analysis, main

GUMBEL_THETA = 2.0  # Kendall's tau 0.5

@pytest.fixture(scope='module')
def sample_prices():
    """Two assets, 500 days of losses with Gumbel dependence"""
    losses = simulate_loss_panel(n=500, assets=('SPX', 'SX5E'), theta=GUMBEL_THETA, seed=2024)
    return losses_to_prices(losses)

@pytest.fixture(scope='module')
def result(sample_prices):
    config = ForecastConfig(horizon=5, n_replicates=200, gof_reps=10, random_seed=1)
    components = initialize_components(config)
    return run_analysis(components, sample_prices, logging.getLogger('test'),
                        show_progress=False)

def test_pipeline_recovers_gumbel_tau(result):
    gumbel = result.copulas['gumbel']
    assert gumbel.tau == pytest.approx(1 - 1 / GUMBEL_THETA, abs=0.05)

def test_pipeline_outputs(result):
    assert result.losses.shape == (500, 2)
    assert list(result.marginals) == ['SPX', 'SX5E']
    assert set(result.copulas) == {'gumbel', 't'}
    assert set(result.gof) == {'gumbel', 't'}
    assert result.selected_copula == 't'
    assert result.paths.shape == (200, 5, 2)

    u = result.pseudo_obs
    assert ((u > 0) & (u < 1)).all().all()
    n = len(u)
    np.testing.assert_allclose(np.sort(u['SPX'].values), np.arange(1, n + 1) / (n + 1))

    table = result.summary.table
    assert len(table) == 5
    assert (table['lower'] <= table['upper']).all()
    assert (table['var'] >= table['upper']).all()

def test_t_copula_correlation_valid(result):
    corr = result.copulas['t'].corr
    np.testing.assert_allclose(corr, corr.T)
    np.testing.assert_allclose(np.diag(corr), 1.0)
    assert np.linalg.eigvalsh(corr).min() >= 0

def test_auto_copula_selection(sample_prices):
    config = ForecastConfig(horizon=2, n_replicates=20, gof_reps=0,
                            simulation_copula='auto', random_seed=3)
    result = run_analysis(initialize_components(config), sample_prices,
                          logging.getLogger('test'), show_progress=False)
    aics = {name: cop.aic for name, cop in result.copulas.items()}
    assert result.selected_copula == min(aics, key=aics.get)
    assert result.gof == {}

def test_weekly_frequency_needs_enough_data(sample_prices):
    config = ForecastConfig(frequency='weekly', gof_reps=0)
    with pytest.raises(ValueError, match="Insufficient data"):
        run_analysis(initialize_components(config), sample_prices,
                     logging.getLogger('test'), show_progress=False)

def test_pipeline_insufficient_data(sample_prices):
    config = ForecastConfig(gof_reps=0)
    with pytest.raises(ValueError, match="Invalid price panel"):
        run_analysis(initialize_components(config), sample_prices.iloc[:100],
                     logging.getLogger('test'), show_progress=False)

def test_pipeline_rejects_missing_prices(sample_prices):
    broken = sample_prices.copy()
    broken.iloc[50, 0] = np.nan
    with pytest.raises(ValueError, match="missing"):
        run_analysis(initialize_components(ForecastConfig(gof_reps=0)), broken,
                     logging.getLogger('test'), show_progress=False)

def test_corrupt_csv_cell_stops_pipeline(sample_prices, tmp_path):
    path = tmp_path / "prices.csv"
    corrupted = sample_prices.astype(object)
    corrupted.iloc[120, 1] = 'abc'
    corrupted.to_csv(path)

    components = initialize_components(ForecastConfig(gof_reps=0))
    prices = components['loader'].load_csv(path)
    assert len(prices) == len(sample_prices)
    with pytest.raises(ValueError, match="SX5E has 1 missing"):
        run_analysis(components, prices, logging.getLogger('test'), show_progress=False)

def test_drop_incomplete_is_opt_in(sample_prices, tmp_path):
    path = tmp_path / "prices.csv"
    corrupted = sample_prices.astype(object)
    corrupted.iloc[120, 1] = 'abc'
    corrupted.to_csv(path)

    components = initialize_components(ForecastConfig(gof_reps=0, drop_incomplete=True))
    prices = components['loader'].load_csv(path)
    assert len(prices) == len(sample_prices) - 1
    assert components['validator'].validate_prices(prices)[0]

@pytest.mark.parametrize("kwargs", [
    {'frequency': 'monthly'},
    {'alpha': 1.2},
    {'copula_families': ['clayton']},
    {'copula_families': ['gumbel'], 'simulation_copula': 't'},
])
def test_config_validation(kwargs):
    with pytest.raises(ValueError):
        ForecastConfig(**kwargs)

def test_config_from_dict_ignores_unknown_and_none():
    config = ForecastConfig.from_dict({'horizon': 3, 'alpha': None, 'csv': 'x.csv'})
    assert config.horizon == 3
    assert config.alpha == 0.99

def test_main_with_synthetic_data(tmp_path):
    result = main(['--synthetic', '400', '--horizon', '3', '--replicates', '30',
                   '--gof-reps', '3', '--seed', '11', '--output-dir', str(tmp_path)])
    summary = pd.read_csv(tmp_path / "forecast_summary.csv", index_col='step')
    assert list(summary.columns) == ['mean', 'lower', 'upper', 'var', 'es']
    assert len(summary) == 3
    assert result.paths.shape == (30, 3, 2)
    assert any((tmp_path / "logs").iterdir())
