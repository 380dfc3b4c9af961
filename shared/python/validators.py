"""
Recipe Classifier — Shared Input Validators
=============================================
Static utility methods used to validate common preconditions before
any Earth Engine expression is built.

All methods raise an appropriate exception from
:mod:`shared.python.exceptions` rather than returning booleans — this
keeps ``validate_inputs`` implementations and recipe parsing simple and
readable::

    class MyTool(GeoTool):
        def validate_inputs(self) -> None:
            Validators.assert_file_exists(self.input_path)
            Validators.assert_supported_extension(self.input_path, [".json"])
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, Sequence

from shared.python.exceptions import (
    ConfigurationError,
    InputValidationError,
    OutputWriteError,
    UnsupportedOutputError,
)


class Validators:
    """Collection of static precondition checks.

    All methods are ``@staticmethod`` — this class is never instantiated.
    It exists purely as a logical namespace.
    """

    # ------------------------------------------------------------------
    # File-system checks
    # ------------------------------------------------------------------

    @staticmethod
    def assert_file_exists(path: Path) -> None:
        """Assert that *path* points to an existing regular file.

        Args:
            path: Path object to check.

        Raises:
            InputValidationError: If *path* does not exist or is a
                directory rather than a file.

        Example::

            Validators.assert_file_exists(Path("recipes/forest.json"))
        """
        path = Path(path)
        if not path.exists():
            raise InputValidationError(
                f"Input file not found: '{path}'. "
                "Check that the path is correct and the file exists."
            )
        if path.is_dir():
            raise InputValidationError(
                f"Expected a file but got a directory: '{path}'."
            )

    @staticmethod
    def assert_output_dir_writable(output_path: Path) -> None:
        """Assert that the parent directory of *output_path* is writable.

        Creates the parent directory (and any missing parents) if it does
        not yet exist.

        Args:
            output_path: Intended output file path.

        Raises:
            OutputWriteError: If the parent directory cannot be created.
        """
        parent = Path(output_path).parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise OutputWriteError(str(output_path), str(exc)) from exc

    @staticmethod
    def assert_supported_extension(path: Path, extensions: Sequence[str]) -> None:
        """Assert that *path* has one of the allowed file extensions.

        Args:
            path: File path to check.
            extensions: Sequence of allowed extensions, each starting with
                        a dot (e.g. ``[".json"]``).

        Raises:
            InputValidationError: If the file extension is not in
                *extensions*.
        """
        path = Path(path)
        suffix = path.suffix.lower()
        allowed = [ext.lower() for ext in extensions]
        if suffix not in allowed:
            raise InputValidationError(
                f"Unsupported file extension '{suffix}' for '{path.name}'. "
                f"Accepted extensions: {', '.join(allowed)}"
            )

    # ------------------------------------------------------------------
    # Recipe checks
    # ------------------------------------------------------------------

    @staticmethod
    def assert_unique_values(values: Sequence[int], label: str = "Legend") -> None:
        """Assert that *values* contains no duplicates.

        Raises:
            ConfigurationError: On the first duplicated value.

        Example::

            Validators.assert_unique_values([1, 2, 2])  # raises
        """
        seen: set[int] = set()
        for value in values:
            if value in seen:
                raise ConfigurationError(
                    f"{label} value {value} appears more than once."
                )
            seen.add(value)

    @staticmethod
    def assert_not_empty(items: Sequence[object], label: str) -> None:
        """Assert that *items* has at least one element.

        Raises:
            ConfigurationError: If *items* is empty.
        """
        if not items:
            raise ConfigurationError(f"{label} must not be empty.")

    @staticmethod
    def assert_probability_bands_in_legend(
        bands: Iterable[str],
        legend_values: Iterable[int],
    ) -> None:
        """Assert that every ``probability_<value>`` band names a legend value.

        Args:
            bands: Requested output band names. Names without the
                   ``probability_`` prefix are ignored.
            legend_values: Values defined by the legend.

        Raises:
            UnsupportedOutputError: If a probability band references a
                value that is not part of the legend.
        """
        allowed = {f"probability_{value}" for value in legend_values}
        for band in bands:
            if band.startswith("probability_") and band not in allowed:
                raise UnsupportedOutputError(
                    band, "the value is not part of the legend"
                )

    @staticmethod
    def assert_single_input_image(count: int) -> None:
        """Assert that a recipe has exactly one input image.

        Raises:
            ConfigurationError: If *count* is greater than one.
        """
        if count > 1:
            raise ConfigurationError(
                f"This recipe contains {count} input images. "
                "Only recipes with a single input image can classify "
                "an arbitrary image."
            )
