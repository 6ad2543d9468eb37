"""
Marginal modelling package for loss series.
Implements AR-GARCH estimation, data preparation and scenario simulation.
"""

from .estimator import MarginalEstimator, standardized_residuals
from .data_prep import GarchDataPrep
from .forecaster import ScenarioForecaster, simulate_replicate, summarize_paths
from models import FittedMarginal, ForecastSummary

__all__ = ['MarginalEstimator', 'standardized_residuals', 'GarchDataPrep',
           'ScenarioForecaster', 'simulate_replicate', 'summarize_paths',
           'FittedMarginal', 'ForecastSummary']
