"""Rank-based pseudo-observations."""

from typing import Union
import numpy as np
import pandas as pd
from copulae import pseudo_obs


def pseudo_observations(x: Union[np.ndarray, pd.DataFrame]) -> Union[np.ndarray, pd.DataFrame]:
    """
    Transform each column to rank / (n + 1), averaging ranks of ties.

    Args:
        x: n x d sample (array or DataFrame)

    Returns:
        Same type and shape as input with values strictly inside (0, 1)
    """
    values = np.asarray(x, dtype=float)
    if values.ndim == 1:
        values = values.reshape(-1, 1)
    if values.ndim != 2 or values.shape[0] == 0:
        raise ValueError(f"Expected a non-empty n x d sample, got shape {values.shape}")
    if np.isnan(values).any():
        raise ValueError("Sample contains missing values")

    u = np.asarray(pseudo_obs(values, ties='average'), dtype=float)

    if isinstance(x, pd.DataFrame):
        return pd.DataFrame(u, index=x.index, columns=x.columns)
    if isinstance(x, pd.Series):
        return pd.Series(u[:, 0], index=x.index, name=x.name)
    if np.ndim(x) == 1:
        return u[:, 0]
    return u


def check_uniform_sample(u) -> np.ndarray:
    """Return u as a 2-d float array, rejecting values outside (0, 1)"""
    u = np.asarray(u, dtype=float)
    if u.ndim == 1:
        u = u.reshape(1, -1)
    if u.ndim != 2:
        raise ValueError(f"Expected an n x d array, got shape {u.shape}")
    if np.isnan(u).any() or np.any(u <= 0) or np.any(u >= 1):
        raise ValueError("Copula arguments must lie strictly inside (0, 1)")
    return u
