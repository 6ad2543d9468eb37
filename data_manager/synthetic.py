"""
Synthetic loss and price panels with known dependence, for tests and demos.
"""

from typing import Dict, Optional, Sequence
import numpy as np
import pandas as pd

from copula.gumbel import GumbelCopula
from garch.forecaster import ar_garch_recursion, standardized_t_ppf

DEFAULT_PARAMS = {
    'Const': 0.02,
    'ar': 0.05,
    'omega': 0.05,
    'alpha[1]': 0.08,
    'beta[1]': 0.88,
    'nu': 6.0,
}


def simulate_loss_panel(n: int = 500,
                        assets: Sequence[str] = ('A', 'B'),
                        theta: float = 2.0,
                        copula=None,
                        params: Optional[Dict[str, float]] = None,
                        scale: float = 100.0,
                        burn_in: int = 250,
                        seed: Optional[int] = None,
                        start: str = '2015-01-02') -> pd.DataFrame:
    """
    Losses from AR(1)-GARCH(1,1) margins whose standardized t innovations are
    coupled by a copula (Gumbel with the given theta unless one is passed).

    Returns:
        DataFrame of n losses per asset on business days
    """
    params = dict(DEFAULT_PARAMS, **(params or {}))
    copula = copula or GumbelCopula(theta, dim=len(assets))
    if copula.dim != len(assets):
        raise ValueError(f"Copula dimension {copula.dim} does not match {len(assets)} assets")

    rng = np.random.default_rng(seed)
    u = copula.random(n + burn_in, rng)
    s2_0 = params['omega'] / max(1e-6, 1.0 - params['alpha[1]'] - params['beta[1]'])

    columns = {}
    for j, asset in enumerate(assets):
        z = standardized_t_ppf(u[:, j], params['nu'])
        x = ar_garch_recursion(params, z, 0.0, 0.0, s2_0)
        columns[asset] = x[burn_in:] / scale

    index = pd.bdate_range(start=start, periods=n, name='date')
    return pd.DataFrame(columns, index=index)


def losses_to_prices(losses: pd.DataFrame, initial: float = 100.0) -> pd.DataFrame:
    """Invert losses = -log(P_t / P_{t-1}), prepending the initial price one business day earlier"""
    first = losses.index[0] - pd.offsets.BDay(1)
    log_prices = np.log(initial) - losses.cumsum()
    prices = np.exp(log_prices)
    start_row = pd.DataFrame([[initial] * losses.shape[1]], columns=losses.columns,
                             index=pd.DatetimeIndex([first], name=losses.index.name))
    return pd.concat([start_row, prices])
