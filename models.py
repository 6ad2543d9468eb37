"""Common data models used across the project."""

from dataclasses import dataclass, field
import numpy as np
import pandas as pd
from types import MappingProxyType
from typing import Dict, Mapping, Optional


@dataclass(frozen=True, eq=False)
class FittedMarginal:
    """AR(1)-GARCH(1,1)-t fit for one asset, detached from the arch result"""
    asset: str
    params: Mapping[str, float]  # Const, ar, omega, alpha[1], beta[1], nu; read-only
    scale: float  # losses were multiplied by this before estimation
    last_value: float  # last scaled loss
    last_resid: float  # last scaled residual
    last_variance: float  # last conditional variance (scaled units)
    std_resid: pd.Series  # standardized residuals, leading NaNs dropped; private copy
    loglikelihood: float
    aic: float

    def __post_init__(self):
        object.__setattr__(self, 'params', MappingProxyType(dict(self.params)))
        object.__setattr__(self, 'std_resid', self.std_resid.copy())

    def __getstate__(self):
        # mappingproxy does not pickle
        state = self.__dict__.copy()
        state['params'] = dict(self.params)
        return state

    def __setstate__(self, state):
        self.__dict__.update(state)
        self.__dict__['params'] = MappingProxyType(dict(state['params']))

    @property
    def nu(self) -> float:
        return self.params['nu']

    @property
    def persistence(self) -> float:
        return self.params['alpha[1]'] + self.params['beta[1]']

    def next_variance(self) -> float:
        """One-step-ahead conditional variance in scaled units"""
        return (self.params['omega']
                + self.params['alpha[1]'] * self.last_resid ** 2
                + self.params['beta[1]'] * self.last_variance)


@dataclass(frozen=True, eq=False)
class GofResult:
    """Goodness-of-fit test outcome"""
    family: str
    statistic_name: str
    statistic: float
    p_value: float
    n_boot: int
    boot_statistics: np.ndarray = field(repr=False)

    def rejected(self, level: float = 0.05) -> bool:
        return self.p_value < level


@dataclass(frozen=True, eq=False)
class ForecastSummary:
    """Per-horizon statistics of aggregated simulated loss"""
    table: pd.DataFrame  # columns: mean, lower, upper, var, es
    alpha: float
    ci_level: float
    n_replicates: int

    @property
    def var(self) -> pd.Series:
        return self.table['var']

    @property
    def es(self) -> pd.Series:
        return self.table['es']


@dataclass
class ForecastResult:
    """Everything produced by one pipeline run"""
    losses: pd.DataFrame
    marginals: Dict[str, FittedMarginal]
    pseudo_obs: pd.DataFrame
    copulas: Dict[str, object]
    gof: Dict[str, GofResult]
    paths: np.ndarray
    summary: ForecastSummary
    selected_copula: Optional[str] = None
