from typing import Dict, Optional
import numpy as np
import pandas as pd
from arch import arch_model
from statsmodels.stats.diagnostic import acorr_ljungbox
import logging

from models import FittedMarginal

logger = logging.getLogger(__name__)

_VOL_AND_DIST_PARAMS = ('omega', 'alpha[1]', 'beta[1]', 'nu')


class MarginalEstimator:
    """
    Fits AR(1)-GARCH(1,1) models with standardized Student-t innovations.

    The mean equation is AR(1) rather than ARMA(1,1): arch offers
    autoregressive means (AR, HAR) but no moving-average terms.
    """

    def __init__(self, min_observations: int = 250,
                 scale: float = 100.0,
                 max_iter: int = 1000):
        """
        Initialize estimator

        Args:
            min_observations: Minimum number of losses required per asset
            scale: Multiplier applied to losses before estimation
            max_iter: Maximum optimizer iterations
        """
        self.min_observations = min_observations
        self.scale = scale
        self.max_iter = max_iter
        self.logger = logging.getLogger('garch.estimator')

    def fit(self, series: pd.Series, asset: Optional[str] = None) -> FittedMarginal:
        """Estimate one marginal model; non-convergence is fatal"""
        asset = asset or str(series.name)

        if series.isna().any():
            raise ValueError(f"{asset}: losses contain {series.isna().sum()} missing values")
        if len(series) < self.min_observations:
            raise ValueError(
                f"{asset}: insufficient observations {len(series)} < {self.min_observations}"
            )

        y = series.astype(float) * self.scale
        model = arch_model(
            y,
            mean='AR',
            lags=1,
            vol='GARCH',
            p=1,
            q=1,
            dist='t',
            rescale=False
        )
        result = model.fit(
            disp='off',
            show_warning=False,
            options={'maxiter': self.max_iter},
            update_freq=0
        )

        if result.convergence_flag != 0:
            raise RuntimeError(
                f"{asset}: AR-GARCH estimation did not converge "
                f"(flag {result.convergence_flag})"
            )

        params = self._extract_params(result.params)
        self._validate_params(params, asset)

        resid = result.resid
        cond_vol = result.conditional_volatility
        std_resid = (resid / cond_vol).dropna()
        std_resid.name = asset

        fitted = FittedMarginal(
            asset=asset,
            params=params,
            scale=self.scale,
            last_value=float(y.iloc[-1]),
            last_resid=float(resid.iloc[-1]),
            last_variance=float(cond_vol.iloc[-1] ** 2),
            std_resid=std_resid,
            loglikelihood=float(result.loglikelihood),
            aic=float(result.aic)
        )

        self.logger.info(
            f"{asset}: Const={params['Const']:.4f} ar={params['ar']:.4f} "
            f"omega={params['omega']:.4f} alpha={params['alpha[1]']:.4f} "
            f"beta={params['beta[1]']:.4f} nu={params['nu']:.2f} "
            f"loglik={fitted.loglikelihood:.1f}"
        )
        return fitted

    def fit_panel(self, losses: pd.DataFrame) -> Dict[str, FittedMarginal]:
        """Fit each column independently"""
        if losses.isna().any().any():
            raise ValueError("Loss panel contains missing values")

        self.logger.info(f"Fitting AR(1)-GARCH(1,1)-t to {losses.shape[1]} assets")
        return {asset: self.fit(losses[asset], asset=asset) for asset in losses.columns}

    def diagnose(self, fitted: FittedMarginal, lags: int = 10) -> Dict[str, float]:
        """Ljung-Box tests on standardized and squared standardized residuals"""
        z = fitted.std_resid
        lb = acorr_ljungbox(z, lags=[lags], return_df=True)
        lb_sq = acorr_ljungbox(z ** 2, lags=[lags], return_df=True)
        diagnostics = {
            'lb_stat': float(lb['lb_stat'].iloc[0]),
            'lb_pvalue': float(lb['lb_pvalue'].iloc[0]),
            'lb_sq_stat': float(lb_sq['lb_stat'].iloc[0]),
            'lb_sq_pvalue': float(lb_sq['lb_pvalue'].iloc[0]),
        }
        if diagnostics['lb_pvalue'] < 0.05:
            self.logger.warning(
                f"{fitted.asset}: standardized residuals autocorrelated "
                f"(Q({lags}) p-value {diagnostics['lb_pvalue']:.4f})"
            )
        if diagnostics['lb_sq_pvalue'] < 0.05:
            self.logger.warning(
                f"{fitted.asset}: remaining ARCH effects "
                f"(Q({lags}) on squares p-value {diagnostics['lb_sq_pvalue']:.4f})"
            )
        return diagnostics

    def _extract_params(self, raw: pd.Series) -> Dict[str, float]:
        """Map arch parameter names to a fixed set; the AR lag name depends on the series name"""
        lag_names = [k for k in raw.index if k != 'Const' and k not in _VOL_AND_DIST_PARAMS]
        if len(lag_names) != 1 or 'Const' not in raw.index:
            raise RuntimeError(f"Unexpected parameter set: {list(raw.index)}")
        params = {'Const': float(raw['Const']), 'ar': float(raw[lag_names[0]])}
        params.update({k: float(raw[k]) for k in _VOL_AND_DIST_PARAMS})
        return params

    def _validate_params(self, params: Dict[str, float], asset: str) -> None:
        """Warn about fits that simulate badly"""
        persistence = params['alpha[1]'] + params['beta[1]']
        if persistence >= 1:
            self.logger.warning(f"{asset}: non-stationary variance, persistence {persistence:.4f}")
        if abs(params['ar']) >= 1:
            self.logger.warning(f"{asset}: explosive AR coefficient {params['ar']:.4f}")
        if params['nu'] <= 2.5:
            self.logger.warning(f"{asset}: very heavy tails, nu={params['nu']:.2f}")


def standardized_residuals(marginals: Dict[str, FittedMarginal]) -> pd.DataFrame:
    """Align standardized residuals of all assets on common dates"""
    frame = pd.concat({asset: m.std_resid for asset, m in marginals.items()}, axis=1)
    aligned = frame.dropna()
    dropped = len(frame) - len(aligned)
    if dropped:
        logger.info(f"Dropped {dropped} rows without residuals for every asset")
    if aligned.empty:
        raise ValueError("No common dates across standardized residuals")
    return aligned
