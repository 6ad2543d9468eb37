"""
Data management package for the copula risk forecast.
Handles price loading, validation and synthetic panels.
"""

from .data_loader import DataLoader
from .data_validator import DataValidator

__all__ = ['DataLoader', 'DataValidator']
