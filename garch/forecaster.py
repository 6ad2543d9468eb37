from typing import Dict, List, Mapping, Optional, Sequence
import numpy as np
import pandas as pd
import logging
from concurrent.futures import ProcessPoolExecutor
from functools import partial
from scipy.stats import t as t_dist

from models import FittedMarginal, ForecastSummary
from utils.progress import ProgressMonitor

logger = logging.getLogger(__name__)


def standardized_t_ppf(u: np.ndarray, nu: float) -> np.ndarray:
    """Quantile function of the Student-t rescaled to unit variance"""
    return t_dist.ppf(u, df=nu) * np.sqrt((nu - 2.0) / nu)


def ar_garch_recursion(params: Mapping[str, float], z: np.ndarray,
                       x_prev: float, eps_prev: float, s2_prev: float) -> np.ndarray:
    """
    Run the AR(1)-GARCH(1,1) recursion forward over innovations z:

        s2_t  = omega + alpha * eps_{t-1}^2 + beta * s2_{t-1}
        eps_t = sqrt(s2_t) * z_t
        x_t   = Const + ar * x_{t-1} + eps_t
    """
    out = np.empty(len(z))
    for i, z_t in enumerate(z):
        s2 = params['omega'] + params['alpha[1]'] * eps_prev ** 2 + params['beta[1]'] * s2_prev
        eps = np.sqrt(s2) * z_t
        x = params['Const'] + params['ar'] * x_prev + eps
        out[i] = x
        x_prev, eps_prev, s2_prev = x, eps, s2
    return out


def simulate_marginal_path(marginal: FittedMarginal, z: np.ndarray) -> np.ndarray:
    """Forward losses for one asset, conditioned on its last observation"""
    scaled = ar_garch_recursion(marginal.params, z, marginal.last_value,
                                marginal.last_resid, marginal.last_variance)
    return scaled / marginal.scale


def simulate_replicate(marginals: Sequence[FittedMarginal], copula, horizon: int,
                       seed) -> np.ndarray:
    """
    One horizon x d scenario. Depends only on the fitted models and the seed.
    """
    rng = np.random.default_rng(seed)
    u = copula.random(horizon, rng)
    path = np.empty((horizon, len(marginals)))
    for j, marginal in enumerate(marginals):
        z = standardized_t_ppf(u[:, j], marginal.nu)
        path[:, j] = simulate_marginal_path(marginal, z)
    return path


def summarize_paths(paths: np.ndarray, alpha: float = 0.99, ci_level: float = 0.95,
                    weights: Optional[Sequence[float]] = None) -> ForecastSummary:
    """
    Aggregate simulated losses per replicate and reduce over replicates.

    Args:
        paths: (B, m, d) simulated losses
        alpha: VaR confidence level
        ci_level: coverage of the two-sided band around the mean
        weights: per-asset weights, defaults to a plain sum

    Returns:
        ForecastSummary with mean, lower, upper, var and es per horizon step
    """
    paths = np.asarray(paths, dtype=float)
    if paths.ndim != 3:
        raise ValueError(f"Expected paths of shape (B, m, d), got {paths.shape}")
    n_rep, horizon, d = paths.shape
    w = np.ones(d) if weights is None else np.asarray(weights, dtype=float)
    if w.shape != (d,):
        raise ValueError(f"Expected {d} weights, got {w.shape}")

    aggregated = paths @ w  # (B, m)
    var = np.quantile(aggregated, alpha, axis=0)
    es = np.array([aggregated[aggregated[:, t] >= var[t], t].mean() for t in range(horizon)])

    table = pd.DataFrame(
        {
            'mean': aggregated.mean(axis=0),
            'lower': np.quantile(aggregated, (1 - ci_level) / 2, axis=0),
            'upper': np.quantile(aggregated, (1 + ci_level) / 2, axis=0),
            'var': var,
            'es': es,
        },
        index=pd.RangeIndex(1, horizon + 1, name='step')
    )
    return ForecastSummary(table=table, alpha=alpha, ci_level=ci_level, n_replicates=n_rep)


class ScenarioForecaster:
    """Monte Carlo forecast of aggregated losses from marginal models and a copula"""

    def __init__(self, marginals: Dict[str, FittedMarginal], copula,
                 horizon: int = 10,
                 n_replicates: int = 1000,
                 random_seed: Optional[int] = None,
                 parallel: bool = False,
                 max_workers: Optional[int] = None,
                 show_progress: bool = True):
        if copula.dim != len(marginals):
            raise ValueError(
                f"Copula dimension {copula.dim} does not match {len(marginals)} marginals"
            )
        if horizon < 1 or n_replicates < 1:
            raise ValueError("horizon and n_replicates must be positive")
        self.assets: List[str] = list(marginals)
        self.marginals: List[FittedMarginal] = [marginals[a] for a in self.assets]
        self.copula = copula
        self.horizon = horizon
        self.n_replicates = n_replicates
        self.random_seed = random_seed
        self.parallel = parallel
        self.max_workers = max_workers
        self.show_progress = show_progress
        self.logger = logging.getLogger('garch.forecaster')

    def replicate_seeds(self) -> List[np.random.SeedSequence]:
        """Child b is the same for every n_replicates >= b + 1"""
        return np.random.SeedSequence(self.random_seed).spawn(self.n_replicates)

    def simulate_paths(self) -> np.ndarray:
        """Simulate (n_replicates, horizon, d) losses"""
        seeds = self.replicate_seeds()
        job = partial(simulate_replicate, self.marginals, self.copula, self.horizon)
        paths = np.empty((self.n_replicates, self.horizon, len(self.marginals)))

        self.logger.info(
            f"Simulating {self.n_replicates} scenarios over {self.horizon} steps "
            f"with a {self.copula.family} copula ({'parallel' if self.parallel else 'serial'})"
        )
        monitor = ProgressMonitor(total=self.n_replicates, desc="Scenario simulation",
                                  logger=self.logger, disable=not self.show_progress)
        try:
            if self.parallel:
                chunksize = max(1, self.n_replicates // (4 * (self.max_workers or 4)))
                with ProcessPoolExecutor(max_workers=self.max_workers) as executor:
                    for b, path in enumerate(executor.map(job, seeds, chunksize=chunksize)):
                        paths[b] = path
                        monitor.update()
            else:
                for b, seed in enumerate(seeds):
                    paths[b] = job(seed)
                    monitor.update()
        finally:
            monitor.close()

        if not np.isfinite(paths).all():
            raise RuntimeError("Simulated paths contain non-finite values")
        return paths

    def summarize(self, paths: np.ndarray, alpha: float = 0.99, ci_level: float = 0.95,
                  weights: Optional[Sequence[float]] = None) -> ForecastSummary:
        summary = summarize_paths(paths, alpha=alpha, ci_level=ci_level, weights=weights)
        last = summary.table.iloc[-1]
        self.logger.info(
            f"Step {self.horizon}: mean={last['mean']:.5f} "
            f"band=[{last['lower']:.5f}, {last['upper']:.5f}] "
            f"VaR{alpha:.0%}={last['var']:.5f} ES={last['es']:.5f}"
        )
        return summary

    def to_dataframe(self, paths: np.ndarray, replicate: int = 0) -> pd.DataFrame:
        """One simulated replicate as a DataFrame of losses per asset"""
        return pd.DataFrame(paths[replicate], columns=self.assets,
                            index=pd.RangeIndex(1, self.horizon + 1, name='step'))
