"""
Modelflow: train/evaluate/tune workflows for tabular regression.

This package provides data loading, feature transformation, resampling,
model fitting and grid-search tuning on top of scikit-learn.
"""

from importlib.metadata import version

__version__ = version("modelflow")

__all__ = ["__version__"]
