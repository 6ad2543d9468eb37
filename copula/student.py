"""t copula with an unstructured correlation matrix."""

from dataclasses import dataclass
import logging
from typing import Optional
import numpy as np
from scipy.linalg import cho_factor, cho_solve
from scipy.optimize import minimize_scalar
from scipy.special import gammaln
from scipy.stats import t as t_dist

from .dependence import kendall_tau_matrix, nearest_correlation, validate_correlation, aic
from .pseudo_obs import check_uniform_sample

logger = logging.getLogger('copula.student')

DF_BOUNDS = (1.0, 100.0)


@dataclass(frozen=True, eq=False)
class StudentCopula:
    """t copula c(u; R, nu)"""
    corr: np.ndarray
    df: float
    method: Optional[str] = None
    loglikelihood: Optional[float] = None
    aic: Optional[float] = None

    family = 't'

    def __post_init__(self):
        corr = validate_correlation(self.corr).copy()
        corr.setflags(write=False)
        object.__setattr__(self, 'corr', corr)
        if self.df <= 0:
            raise ValueError(f"Degrees of freedom must be positive, got {self.df}")

    @property
    def dim(self) -> int:
        return self.corr.shape[0]

    @property
    def n_params(self) -> int:
        return self.dim * (self.dim - 1) // 2 + 1

    @property
    def tau_matrix(self) -> np.ndarray:
        return 2.0 / np.pi * np.arcsin(self.corr)

    @property
    def tail_dependence(self) -> np.ndarray:
        """Coefficient of (upper and lower) tail dependence for each pair"""
        nu = self.df
        rho = np.clip(self.corr, -1.0, 1.0 - 1e-12)
        lam = 2.0 * t_dist.cdf(-np.sqrt((nu + 1.0) * (1.0 - rho) / (1.0 + rho)), df=nu + 1.0)
        np.fill_diagonal(lam, 1.0)
        return lam

    def _check(self, u) -> np.ndarray:
        u = check_uniform_sample(u)
        if u.shape[1] != self.dim:
            raise ValueError(f"Expected {self.dim} columns, got {u.shape[1]}")
        return u

    def logpdf(self, u) -> np.ndarray:
        u = self._check(u)
        return _t_copula_logpdf(t_dist.ppf(u, df=self.df), self.corr, self.df)

    def pdf(self, u) -> np.ndarray:
        return np.exp(self.logpdf(u))

    def random(self, n: int, rng: Optional[np.random.Generator] = None) -> np.ndarray:
        """Z = L N / sqrt(W / nu), U = t_nu(Z)"""
        rng = np.random.default_rng(rng)
        chol = np.linalg.cholesky(self.corr)
        z = rng.standard_normal((n, self.dim)) @ chol.T
        w = np.sqrt(rng.chisquare(self.df, size=n) / self.df)
        u = t_dist.cdf(z / w[:, None], df=self.df)
        return np.clip(u, np.finfo(float).tiny, 1.0 - np.finfo(float).eps)

    def rosenblatt(self, u) -> np.ndarray:
        """
        Conditional distribution transform. Given the first k coordinates, the
        (k+1)-th t-quantile is t-distributed with nu + k degrees of freedom.
        """
        u = self._check(u)
        nu = self.df
        x = t_dist.ppf(u, df=nu)
        e = np.empty_like(u)
        e[:, 0] = u[:, 0]
        for k in range(1, self.dim):
            r11 = self.corr[:k, :k]
            r21 = self.corr[k, :k]
            r11_inv = np.linalg.inv(r11)
            beta = r11_inv @ r21
            cond_mean = x[:, :k] @ beta
            cond_var = 1.0 - r21 @ beta
            q = np.einsum('ij,jk,ik->i', x[:, :k], r11_inv, x[:, :k])
            scale = np.sqrt((nu + q) / (nu + k) * cond_var)
            e[:, k] = t_dist.cdf((x[:, k] - cond_mean) / scale, df=nu + k)
        return e

    @classmethod
    def fit(cls, u, method: str = 'itau.mpl') -> 'StudentCopula':
        """
        Estimate the correlation matrix by Kendall's tau inversion,
        R = sin(pi tau / 2), then the degrees of freedom by maximizing the
        pseudo-likelihood with R held fixed.
        """
        if method != 'itau.mpl':
            raise ValueError(f"Unknown t copula estimation method: {method}")
        u = check_uniform_sample(u)
        corr = nearest_correlation(np.sin(np.pi * kendall_tau_matrix(u) / 2.0))

        def neg_loglik(nu):
            ll = _t_copula_logpdf(t_dist.ppf(u, df=nu), corr, nu).sum()
            return -ll if np.isfinite(ll) else 1e10

        result = minimize_scalar(neg_loglik, bounds=DF_BOUNDS, method='bounded',
                                 options={'xatol': 1e-4})
        if not result.success:
            raise RuntimeError(f"t copula estimation failed: {result.message}")
        nu = float(result.x)
        ll = float(-result.fun)
        n_params = u.shape[1] * (u.shape[1] - 1) // 2 + 1

        logger.info(f"t copula ({method}): df={nu:.3f}, loglik={ll:.2f}")
        if nu > DF_BOUNDS[1] - 1:
            logger.warning("t copula degrees of freedom at upper bound; data look Gaussian")
        return cls(corr=corr, df=nu, method=method, loglikelihood=ll, aic=aic(ll, n_params))


def _t_copula_logpdf(x: np.ndarray, corr: np.ndarray, nu: float) -> np.ndarray:
    """Multivariate t log-density over the product of t marginal log-densities"""
    d = corr.shape[0]
    factor = cho_factor(corr, lower=True)
    logdet = 2.0 * np.sum(np.log(np.diag(factor[0])))
    q = np.sum(x * cho_solve(factor, x.T).T, axis=1)
    log_joint = (gammaln((nu + d) / 2.0) - gammaln(nu / 2.0)
                 - 0.5 * d * np.log(nu * np.pi) - 0.5 * logdet
                 - 0.5 * (nu + d) * np.log1p(q / nu))
    log_margins = t_dist.logpdf(x, df=nu).sum(axis=1)
    return log_joint - log_margins
