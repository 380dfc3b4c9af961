"""
Recipe Classifier — Custom Exception Hierarchy
================================================
Every module raises exceptions from this module so callers can catch
them at the right level of granularity.

Hierarchy::

    RecipeClassifierError                ← catch-all base
    ├── InputValidationError             ← bad files, unreadable recipe documents
    ├── ConfigurationError               ← invalid recipe / request configuration
    │   ├── UnsupportedClassifierError   ← unknown classifier type
    │   └── UnsupportedOutputError       ← output band not available
    ├── UpstreamResolutionError          ← referenced recipe could not be resolved
    └── OutputWriteError                 ← cannot write to output path

Usage::

    from shared.python.exceptions import ConfigurationError

    raise ConfigurationError("Legend values must be unique")
"""

from __future__ import annotations


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


class RecipeClassifierError(Exception):
    """Base exception for the recipe classifier.

    Catch this to handle any classifier-specific error without caring
    about the exact subtype.

    Args:
        message: Human-readable description of the error.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message: str = message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


# ---------------------------------------------------------------------------
# Input validation
# ---------------------------------------------------------------------------


class InputValidationError(RecipeClassifierError):
    """Raised when a tool's inputs fail pre-processing validation."""


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class ConfigurationError(RecipeClassifierError):
    """Raised when a recipe or a request cannot be turned into a graph.

    Configuration errors are raised while expressions are being built,
    before anything is sent to Earth Engine, and are never retried.
    """


class UnsupportedClassifierError(ConfigurationError):
    """Raised when a classifier configuration names an unknown type.

    Args:
        classifier_type: The raw ``type`` value of the configuration.
        supported: The classifier types that ARE supported.

    Example::

        raise UnsupportedClassifierError("KNN", ["RANDOM_FOREST", "CART"])
    """

    def __init__(self, classifier_type: object, supported: list[str]) -> None:
        super().__init__(
            f"Unsupported classifier type: {classifier_type!r}. "
            f"Supported types: {', '.join(supported)}"
        )
        self.classifier_type: object = classifier_type
        self.supported: list[str] = supported


class UnsupportedOutputError(ConfigurationError):
    """Raised when a requested output band cannot be produced.

    Args:
        band: The requested band name (e.g. ``"probability_7"``).
        reason: Short explanation of why the band is unavailable.

    Example::

        raise UnsupportedOutputError("probability_7", "7 is not in the legend")
    """

    def __init__(self, band: str, reason: str) -> None:
        super().__init__(f"Cannot produce band '{band}': {reason}")
        self.band: str = band
        self.reason: str = reason


# ---------------------------------------------------------------------------
# Upstream resolution
# ---------------------------------------------------------------------------


class UpstreamResolutionError(RecipeClassifierError):
    """Raised when a referenced recipe or its training data cannot be resolved.

    Args:
        recipe_id: Id of the recipe that failed to resolve.
        reason: Underlying transport, auth or parse error message.

    Example::

        raise UpstreamResolutionError("a1b2", "HTTP 404")
    """

    def __init__(self, recipe_id: str, reason: str) -> None:
        super().__init__(f"Failed to resolve recipe '{recipe_id}': {reason}")
        self.recipe_id: str = recipe_id
        self.reason: str = reason


# ---------------------------------------------------------------------------
# Output
# ---------------------------------------------------------------------------


class OutputWriteError(RecipeClassifierError):
    """Raised when the tool cannot write its output to disk.

    Args:
        output_path: String representation of the path that failed.
        reason: Underlying OS or library error message.

    Example::

        raise OutputWriteError("/read-only/dir/layer.json", "Permission denied")
    """

    def __init__(self, output_path: str, reason: str) -> None:
        super().__init__(
            f"Failed to write output to '{output_path}': {reason}"
        )
        self.output_path: str = output_path
        self.reason: str = reason
