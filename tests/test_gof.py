import sys
import os

# Add project root to Python path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.append(project_root)

import pytest
import numpy as np
from copula import GumbelCopula, StudentCopula, pseudo_observations, fit_copula
from copula.gof import (snb_statistic, anchisq_statistic, rosenblatt_diagnostic,
                        gof_bootstrap)

@pytest.fixture
def gumbel_sample():
    return pseudo_observations(GumbelCopula(2.0).random(300, np.random.default_rng(21)))

@pytest.fixture
def survival_gumbel_sample():
    """Lower tail dependence: a known bad fit for the Gumbel family"""
    u = GumbelCopula(3.0).random(400, np.random.default_rng(22))
    return pseudo_observations(1.0 - u)

def test_snb_small_for_independent_uniforms():
    rng = np.random.default_rng(0)
    independent = rng.uniform(size=(300, 2))
    dependent = np.column_stack([independent[:, 0], independent[:, 0] ** 2])
    assert snb_statistic(independent) < snb_statistic(dependent)
    assert snb_statistic(independent) < 1.0

def test_snb_block_size_does_not_change_value():
    rng = np.random.default_rng(7)
    e = rng.uniform(size=(103, 3))
    pairwise = np.prod(1.0 - np.maximum(e[:, None, :], e[None, :, :]), axis=2)
    direct = (103 / 27.0 - np.sum(np.prod(1.0 - e ** 2, axis=1)) / 4.0
              + pairwise.sum() / 103)
    for block_size in (1, 7, 50, 103, 1000):
        assert snb_statistic(e, block_size=block_size) == pytest.approx(direct, rel=1e-12)
    assert snb_statistic(e) == pytest.approx(direct, rel=1e-12)

def test_anchisq_small_for_independent_uniforms():
    rng = np.random.default_rng(1)
    independent = rng.uniform(size=(500, 3))
    shifted = independent ** 3
    assert anchisq_statistic(independent) < 6.0
    assert anchisq_statistic(shifted) > anchisq_statistic(independent)

def test_rosenblatt_diagnostic_keys(gumbel_sample):
    cop = fit_copula('gumbel', gumbel_sample)
    result = rosenblatt_diagnostic(cop, gumbel_sample)
    assert result['family'] == 'gumbel'
    assert len(result['cvm_pvalues']) == 2
    assert all(0 <= p <= 1 for p in result['cvm_pvalues'])
    assert result['max_abs_tau'] >= 0
    assert np.isfinite(result['anchisq'])

@pytest.mark.parametrize("statistic", ["SnB", "AnChisq"])
def test_bootstrap_result_structure(gumbel_sample, statistic):
    cop = fit_copula('gumbel', gumbel_sample)
    result = gof_bootstrap(cop, gumbel_sample, n_boot=10, statistic=statistic,
                           seed=3, show_progress=False)
    assert result.family == 'gumbel'
    assert result.statistic_name == statistic
    assert result.boot_statistics.shape == (10,)
    assert 0.5 / 11 <= result.p_value <= 10.5 / 11

def test_bootstrap_is_reproducible(gumbel_sample):
    cop = fit_copula('gumbel', gumbel_sample)
    first = gof_bootstrap(cop, gumbel_sample, n_boot=5, seed=9, show_progress=False)
    second = gof_bootstrap(cop, gumbel_sample, n_boot=5, seed=9, show_progress=False)
    np.testing.assert_array_equal(first.boot_statistics, second.boot_statistics)
    assert first.p_value == second.p_value

def test_t_copula_bootstrap_runs():
    corr = np.array([[1.0, 0.5], [0.5, 1.0]])
    u = pseudo_observations(StudentCopula(corr, df=5.0).random(200, np.random.default_rng(4)))
    cop = fit_copula('t', u)
    result = gof_bootstrap(cop, u, n_boot=5, seed=1, show_progress=False)
    assert result.family == 't'
    assert np.all(np.isfinite(result.boot_statistics))

def test_gumbel_rejected_on_lower_tail_data(survival_gumbel_sample, caplog):
    """Known bad fit: rejection is reported, not raised"""
    cop = fit_copula('gumbel', survival_gumbel_sample)
    with caplog.at_level('WARNING', logger='copula.gof'):
        result = gof_bootstrap(cop, survival_gumbel_sample, n_boot=39, seed=5,
                               show_progress=False)
    assert result.rejected(0.05)
    assert any('rejected' in record.message for record in caplog.records)

def test_bootstrap_argument_errors(gumbel_sample):
    cop = fit_copula('gumbel', gumbel_sample)
    with pytest.raises(ValueError, match="Unknown GoF statistic"):
        gof_bootstrap(cop, gumbel_sample, statistic='Sn')
    with pytest.raises(ValueError, match="estimated"):
        gof_bootstrap(GumbelCopula(2.0), gumbel_sample)
    with pytest.raises(ValueError):
        gof_bootstrap(cop, gumbel_sample, n_boot=0)
