"""
Goodness-of-fit tests for fitted copulas.

Both statistics work on the Rosenblatt transform of the pseudo-observations,
which is a sample of independent uniforms when the copula is correctly
specified:

- SnB: Cramer-von Mises distance between the empirical distribution of the
  Rosenblatt sample and the independence copula (Genest, Remillard and
  Beaudoin, 2009).
- AnChisq: Anderson-Darling statistic of sum_k Phi^{-1}(e_k)^2 against the
  chi-square distribution with d degrees of freedom.

P-values come from a parametric bootstrap that re-estimates the copula on
each simulated sample with the original estimation method.
"""

import logging
from typing import Dict, Optional
import numpy as np
from scipy.stats import chi2, cramervonmises, kendalltau, norm

from models import GofResult
from utils.progress import ProgressMonitor
from .pseudo_obs import pseudo_observations

logger = logging.getLogger('copula.gof')

_EPS = 1e-12
_SNB_BLOCK_CELLS = 2 ** 20  # cells per block of the pairwise term


def rosenblatt(copula, u) -> np.ndarray:
    """Rosenblatt transform of u under the given copula"""
    return copula.rosenblatt(u)


def snb_statistic(e: np.ndarray, block_size: Optional[int] = None) -> float:
    """SnB statistic; the n x n pairwise term is summed in row blocks"""
    e = np.clip(np.asarray(e, dtype=float), 0.0, 1.0)
    n, d = e.shape
    term1 = n / 3.0 ** d
    term2 = np.sum(np.prod(1.0 - e ** 2, axis=1)) / 2.0 ** (d - 1)

    block_size = block_size or max(1, _SNB_BLOCK_CELLS // n)
    pairwise_sum = 0.0
    for start in range(0, n, block_size):
        rows = e[start:start + block_size]
        block = np.ones((len(rows), n))
        for k in range(d):
            block *= 1.0 - np.maximum.outer(rows[:, k], e[:, k])
        pairwise_sum += block.sum()
    term3 = pairwise_sum / n
    return float(term1 - term2 + term3)


def anchisq_statistic(e: np.ndarray) -> float:
    e = np.clip(np.asarray(e, dtype=float), _EPS, 1.0 - _EPS)
    n, d = e.shape
    y = np.sum(norm.ppf(e) ** 2, axis=1)
    z = np.sort(np.clip(chi2.cdf(y, df=d), _EPS, 1.0 - _EPS))
    i = np.arange(1, n + 1)
    return float(-n - np.sum((2 * i - 1) * (np.log(z) + np.log1p(-z[::-1]))) / n)


STATISTICS = {
    'SnB': snb_statistic,
    'AnChisq': anchisq_statistic,
}


def rosenblatt_diagnostic(copula, u) -> Dict[str, object]:
    """
    Quick check of a fitted copula that treats its parameters as known.
    Returns per-column Cramer-von Mises p-values against U(0, 1), the largest
    absolute pairwise Kendall's tau of the Rosenblatt sample and the AnChisq
    statistic.
    """
    e = np.clip(rosenblatt(copula, u), _EPS, 1.0 - _EPS)
    d = e.shape[1]
    pvalues = [float(cramervonmises(e[:, k], 'uniform').pvalue) for k in range(d)]
    taus = [abs(kendalltau(e[:, i], e[:, j])[0]) for i in range(d) for j in range(i + 1, d)]
    result = {
        'family': copula.family,
        'cvm_pvalues': pvalues,
        'max_abs_tau': float(max(taus)),
        'anchisq': anchisq_statistic(e),
    }
    logger.info(
        f"Rosenblatt diagnostic ({copula.family}): "
        f"min CvM p-value={min(pvalues):.4f}, max |tau|={result['max_abs_tau']:.4f}"
    )
    return result


def gof_bootstrap(copula, u, n_boot: int = 100, statistic: str = 'SnB',
                  seed: Optional[int] = None, level: float = 0.05,
                  show_progress: bool = True) -> GofResult:
    """
    Parametric bootstrap goodness-of-fit test.

    Args:
        copula: copula fitted to u (must carry its estimation method)
        u: n x d pseudo-observations the copula was fitted on
        n_boot: number of bootstrap samples
        statistic: 'SnB' or 'AnChisq'
        seed: seed for the bootstrap samples
        level: significance level used only for logging

    Returns:
        GofResult with p-value (#{T_b >= T_0} + 0.5) / (n_boot + 1)
    """
    if statistic not in STATISTICS:
        raise ValueError(f"Unknown GoF statistic {statistic}; choose from {list(STATISTICS)}")
    if copula.method is None:
        raise ValueError("Bootstrap requires a copula estimated from data")
    if n_boot < 1:
        raise ValueError(f"n_boot must be positive, got {n_boot}")

    stat_fn = STATISTICS[statistic]
    u = np.asarray(u, dtype=float)
    n = u.shape[0]
    rng = np.random.default_rng(seed)
    family = type(copula)

    t0 = stat_fn(rosenblatt(copula, u))
    boot = np.empty(n_boot)

    monitor = ProgressMonitor(total=n_boot, desc=f"GoF bootstrap ({copula.family})",
                              logger=logger, disable=not show_progress)
    try:
        for b in range(n_boot):
            u_b = pseudo_observations(copula.random(n, rng))
            fitted_b = family.fit(u_b, method=copula.method)
            boot[b] = stat_fn(rosenblatt(fitted_b, u_b))
            monitor.update()
    finally:
        monitor.close()

    p_value = (np.sum(boot >= t0) + 0.5) / (n_boot + 1)
    result = GofResult(
        family=copula.family,
        statistic_name=statistic,
        statistic=t0,
        p_value=float(p_value),
        n_boot=n_boot,
        boot_statistics=boot,
    )

    if result.rejected(level):
        logger.warning(
            f"{copula.family} copula rejected at {level:.0%}: "
            f"{statistic}={t0:.4f}, p-value={p_value:.4f}"
        )
    else:
        logger.info(f"{copula.family} copula {statistic}={t0:.4f}, p-value={p_value:.4f}")
    return result
