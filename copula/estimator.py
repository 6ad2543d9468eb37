"""Copula family registry and estimation entry points."""

import logging
from typing import Dict, Optional
import pandas as pd

from .gumbel import GumbelCopula
from .student import StudentCopula

logger = logging.getLogger('copula.estimator')

FAMILIES = {
    'gumbel': GumbelCopula,
    't': StudentCopula,
}

DEFAULT_METHODS = {
    'gumbel': 'mpl',
    't': 'itau.mpl',
}


def fit_copula(family: str, u, method: Optional[str] = None):
    """Fit a copula family to pseudo-observations"""
    if family not in FAMILIES:
        raise ValueError(f"Unknown copula family {family!r}; choose from {list(FAMILIES)}")
    method = method or DEFAULT_METHODS[family]
    logger.info(f"Fitting {family} copula by {method} to {len(u)} observations")
    return FAMILIES[family].fit(u, method=method)


def compare_copulas(fits: Dict[str, object]) -> pd.DataFrame:
    """Log-likelihood and AIC of fitted copulas, best first"""
    rows = [
        {
            'family': name,
            'method': cop.method,
            'n_params': cop.n_params,
            'loglik': cop.loglikelihood,
            'aic': cop.aic,
        }
        for name, cop in fits.items()
    ]
    if not rows:
        raise ValueError("No fitted copulas to compare")
    return pd.DataFrame(rows).set_index('family').sort_values('aic')


def select_copula(fits: Dict[str, object]) -> str:
    """Name of the fitted copula with the lowest AIC"""
    table = compare_copulas(fits)
    best = table.index[0]
    logger.info(f"Selected {best} copula (AIC {table.loc[best, 'aic']:.2f})")
    return best
