"""Utility functions and classes for the risk forecast pipeline"""

from .progress import ProgressMonitor

__all__ = ['ProgressMonitor']
