"""
Configuration management with typed Pydantic models.

Provides YAML loading with environment interpolation and base-file
inheritance.
"""

from modelflow.config.loader import load_config
from modelflow.config.settings import (
    DataConfig,
    FormulaConfig,
    ModelConfig,
    OutputConfig,
    SplitConfig,
    TransformConfig,
    TuningConfig,
    WorkflowConfig,
)

__all__ = [
    "DataConfig",
    "FormulaConfig",
    "ModelConfig",
    "OutputConfig",
    "SplitConfig",
    "TransformConfig",
    "TuningConfig",
    "WorkflowConfig",
    "load_config",
]
