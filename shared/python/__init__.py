"""
Recipe Classifier — Shared Python Package
===========================================
Re-exports the shared base class, exception hierarchy, and validator
utilities so the tool modules can import from a single location::

    from shared.python import GeoTool, Validators
    from shared.python.exceptions import ConfigurationError
"""

from shared.python.base_tool import GeoTool
from shared.python.exceptions import (
    ConfigurationError,
    InputValidationError,
    OutputWriteError,
    RecipeClassifierError,
    UnsupportedClassifierError,
    UnsupportedOutputError,
    UpstreamResolutionError,
)
from shared.python.validators import Validators

__all__ = [
    "GeoTool",
    "Validators",
    "RecipeClassifierError",
    "InputValidationError",
    "ConfigurationError",
    "UnsupportedClassifierError",
    "UnsupportedOutputError",
    "UpstreamResolutionError",
    "OutputWriteError",
]
