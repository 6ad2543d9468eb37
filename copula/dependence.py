"""Rank correlation and correlation-matrix helpers shared by the copula families."""

import numpy as np
import pandas as pd
from scipy.stats import kendalltau


def kendall_tau_matrix(u) -> np.ndarray:
    """Pairwise Kendall's tau of the columns of an n x d sample"""
    if isinstance(u, pd.DataFrame):
        return u.corr(method='kendall').values
    u = np.asarray(u, dtype=float)
    d = u.shape[1]
    tau = np.eye(d)
    for i in range(d):
        for j in range(i + 1, d):
            tau[i, j] = tau[j, i] = kendalltau(u[:, i], u[:, j])[0]
    return tau


def nearest_correlation(matrix: np.ndarray, min_eigenvalue: float = 1e-8) -> np.ndarray:
    """
    Project a symmetric matrix onto the positive definite correlation matrices
    by clipping eigenvalues and rescaling to a unit diagonal.
    """
    m = np.asarray(matrix, dtype=float)
    m = (m + m.T) / 2
    eigval, eigvec = np.linalg.eigh(m)
    if eigval.min() >= min_eigenvalue:
        corr = m
    else:
        eigval = np.clip(eigval, min_eigenvalue, None)
        corr = eigvec @ np.diag(eigval) @ eigvec.T
    scale = np.sqrt(np.diag(corr))
    corr = corr / np.outer(scale, scale)
    corr = (corr + corr.T) / 2
    np.fill_diagonal(corr, 1.0)
    return corr


def validate_correlation(corr: np.ndarray, tol: float = 1e-8) -> np.ndarray:
    """Check symmetry, unit diagonal and positive semi-definiteness"""
    corr = np.asarray(corr, dtype=float)
    if corr.ndim != 2 or corr.shape[0] != corr.shape[1] or corr.shape[0] < 2:
        raise ValueError(f"Correlation matrix must be square with d >= 2, got {corr.shape}")
    if not np.allclose(corr, corr.T, atol=tol):
        raise ValueError("Correlation matrix is not symmetric")
    if not np.allclose(np.diag(corr), 1.0, atol=tol):
        raise ValueError("Correlation matrix must have a unit diagonal")
    if np.linalg.eigvalsh(corr).min() < -tol:
        raise ValueError("Correlation matrix is not positive semi-definite")
    return corr


def aic(loglikelihood: float, n_params: int) -> float:
    return 2 * n_params - 2 * loglikelihood
