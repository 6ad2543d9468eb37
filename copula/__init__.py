"""
Copula package for dependence modelling of standardized residuals.
Implements pseudo-observations, Gumbel and t copulas, and goodness-of-fit tests.
"""

from .pseudo_obs import pseudo_observations
from .dependence import kendall_tau_matrix, nearest_correlation
from .gumbel import GumbelCopula
from .student import StudentCopula
from .estimator import fit_copula, compare_copulas, select_copula
from .gof import rosenblatt, rosenblatt_diagnostic, gof_bootstrap

__all__ = [
    'pseudo_observations', 'kendall_tau_matrix', 'nearest_correlation',
    'GumbelCopula', 'StudentCopula',
    'fit_copula', 'compare_copulas', 'select_copula',
    'rosenblatt', 'rosenblatt_diagnostic', 'gof_bootstrap',
]
