"""
Recipe Classifier — Shared Base Tool
======================================
Abstract base class for the batch tools that turn a recipe file into an
output artefact (for example a map-layer description).

Design Pattern:
    Template Method — the public ``run()`` method defines a fixed
    pipeline (validate → process → report) that subclasses fill in
    by implementing ``validate_inputs`` and ``process``.

Usage::

    from shared.python.base_tool import GeoTool

    class MyExporter(GeoTool):
        def validate_inputs(self) -> None:
            ...
        def process(self) -> None:
            ...
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path

# Each module logs through a child of this logger, e.g.
#   logging.getLogger("recipe_classifier.training")
logger = logging.getLogger("recipe_classifier")


class GeoTool(ABC):
    """Abstract base class for file-in / file-out tools.

    Attributes:
        input_path: Path to the primary input file (a recipe document).
        output_path: Path where output will be written.
        verbose: When ``True`` the tool logs DEBUG-level messages in
            addition to INFO/WARNING/ERROR.

    Example::

        tool = ClassificationLayerExporter(
            input_path=Path("recipes/forest.json"),
            output_path=Path("output/forest_layer.json"),
            bands=["class"],
        )
        tool.run()
    """

    def __init__(
        self,
        input_path: Path,
        output_path: Path,
        *,
        verbose: bool = False,
    ) -> None:
        self.input_path: Path = Path(input_path)
        self.output_path: Path = Path(output_path)
        self.verbose: bool = verbose

        self._configure_logging()

    # ------------------------------------------------------------------
    # Abstract interface — subclasses MUST implement these
    # ------------------------------------------------------------------

    @abstractmethod
    def validate_inputs(self) -> None:
        """Validate all inputs before processing begins.

        Raises:
            InputValidationError: If the input file is missing or cannot
                be parsed.
            ConfigurationError: If the parsed recipe is inconsistent with
                the request.
        """

    @abstractmethod
    def process(self) -> None:
        """Execute the tool's work.

        Called by :meth:`run` after :meth:`validate_inputs` has
        succeeded.  Any exception raised here propagates through
        :meth:`run`.
        """

    # ------------------------------------------------------------------
    # Template method — the public API callers use
    # ------------------------------------------------------------------

    def run(self) -> None:
        """Execute the full tool pipeline.

        1. :meth:`validate_inputs` — verify all preconditions.
        2. :meth:`process` — build and evaluate the classification.
        3. :meth:`_report_success` — log the elapsed time and output path.
        """
        logger.info("Starting %s", self.__class__.__name__)
        start = time.perf_counter()

        self.validate_inputs()
        self.process()

        elapsed = time.perf_counter() - start
        self._report_success(elapsed)

    # ------------------------------------------------------------------
    # Protected helpers
    # ------------------------------------------------------------------

    def _report_success(self, elapsed: float) -> None:
        logger.info(
            "%s completed in %.2fs → %s",
            self.__class__.__name__,
            elapsed,
            self.output_path,
        )

    def _configure_logging(self) -> None:
        """Attach a console handler to the ``recipe_classifier`` logger.

        Only one handler is ever attached, no matter how many tools are
        created.  Uses DEBUG level when ``self.verbose`` is ``True``,
        otherwise INFO.
        """
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                fmt="[%(asctime)s] %(levelname)-8s %(name)s — %(message)s",
                datefmt="%H:%M:%S",
            )
            handler.setFormatter(formatter)
            logger.addHandler(handler)

        logger.setLevel(logging.DEBUG if self.verbose else logging.INFO)

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"input_path={self.input_path!r}, "
            f"output_path={self.output_path!r})"
        )
