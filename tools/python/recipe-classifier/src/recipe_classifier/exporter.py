"""
Recipe Classifier — Classification Layer Exporter
===================================================
Batch tool that classifies a recipe on Earth Engine and writes a map
layer description as JSON:

    {
      "recipe_id": "a1b2",
      "bands": ["class"],
      "available_bands": ["class", "regression", ...],
      "vis_params": {"bands": "class", "min": 1, "max": 5, "palette": [...]},
      "tile_url": "https://earthengine.googleapis.com/.../{z}/{x}/{y}"
    }

Classes:
    ClassificationLayerExporter   Primary tool class (inherits GeoTool).

Usage::

    exporter = ClassificationLayerExporter(
        input_path=Path("recipes/forest.json"),
        output_path=Path("output/forest_layer.json"),
        bands=["class", "class_probability"],
        project="my-ee-project",
    )
    exporter.run()
"""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Sequence

import ee

from recipe_classifier.classification import ClassificationSession
from recipe_classifier.limiter import Limiter, ee_limiter
from recipe_classifier.models import ClassificationRecipe
from recipe_classifier.outputs import get_vis_params, output_bands
from recipe_classifier.recipes import DirectoryRecipeLoader, RecipeLoader, create_recipe
from shared.python.base_tool import GeoTool
from shared.python.exceptions import (
    ConfigurationError,
    InputValidationError,
    OutputWriteError,
)
from shared.python.validators import Validators

logger = logging.getLogger("recipe_classifier.exporter")


def read_recipe_document(path: Path) -> dict[str, Any]:
    """Read a recipe document from *path*.

    Raises:
        InputValidationError: If the file is not a JSON object.
    """
    try:
        with open(path, encoding="utf-8") as fh:
            document = json.load(fh)
    except (OSError, ValueError) as exc:
        raise InputValidationError(f"Cannot read recipe '{path}': {exc}") from exc
    if not isinstance(document, dict):
        raise InputValidationError(f"Recipe '{path}' is not a JSON object.")
    return document


def list_bands(path: Path) -> list[str]:
    """Output bands the classification recipe at *path* can produce."""
    document = read_recipe_document(path)
    recipe = ClassificationRecipe.from_dict(document.get("model") or {})
    return output_bands(recipe.legend, recipe.classifier.type)


class ClassificationLayerExporter(GeoTool):
    """Classify a recipe and write its map layer description.

    Args:
        input_path: Recipe document (``.json``).
        output_path: Layer description to write (``.json``).
        bands: Output bands to produce.
        loader: Loader for recipes the document references.  Defaults to
            the directory holding *input_path*.
        project: Google Cloud project used to initialise Earth Engine.
        limiter: Admission control for remote round trips.
        verbose: Enable DEBUG-level logging.
    """

    def __init__(
        self,
        input_path: Path,
        output_path: Path,
        bands: Sequence[str] = ("class",),
        *,
        loader: RecipeLoader | None = None,
        project: str | None = None,
        limiter: Limiter = ee_limiter,
        verbose: bool = False,
    ) -> None:
        super().__init__(input_path, output_path, verbose=verbose)
        self.bands = list(bands)
        self.loader = loader or DirectoryRecipeLoader(self.input_path.parent)
        self.project = project
        self.limiter = limiter
        self._session: ClassificationSession | None = None
        self._layer: dict[str, Any] = {}

    # ------------------------------------------------------------------
    # GeoTool abstract method implementations
    # ------------------------------------------------------------------

    def validate_inputs(self) -> None:
        """Parse the recipe and check the band selection.

        Raises:
            InputValidationError: If the recipe file is missing or unreadable.
            ConfigurationError: If the recipe is invalid, is not a
                classification, or cannot produce the selected bands.
            OutputWriteError: If the output directory cannot be created.
        """
        Validators.assert_file_exists(self.input_path)
        Validators.assert_supported_extension(self.input_path, [".json"])
        Validators.assert_output_dir_writable(self.output_path)
        Validators.assert_not_empty(self.bands, "Band selection")

        document = read_recipe_document(self.input_path)
        session = create_recipe(document, self.loader, self.limiter, self.bands)
        if not isinstance(session, ClassificationSession):
            raise ConfigurationError(
                f"Recipe '{self.input_path.name}' is not a classification recipe."
            )
        session.engine.validate(self.bands)
        get_vis_params(session.recipe.legend, self.bands)
        self._session = session
        logger.debug("Inputs validated successfully.")

    def process(self) -> None:
        """Classify on Earth Engine and write the layer description.

        Raises:
            UpstreamResolutionError: If a referenced recipe fails to resolve.
            OutputWriteError: If writing the output file fails.
        """
        logger.info("Initialising Earth Engine (project=%s)", self.project)
        ee.Initialize(project=self.project)
        self._layer = asyncio.run(self.build_layer())
        self._write_layer(self._layer)

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def build_layer(self) -> dict[str, Any]:
        """Resolve the classified image and request its map tiles."""
        session = self._session
        if session is None:
            raise RuntimeError("validate_inputs() must run before build_layer()")
        image = await session.get_image()
        vis_params = await session.get_vis_params()
        available_bands = await session.get_bands()
        map_id = await self.limiter.run(image.getMapId, vis_params)
        logger.info("Requested map tiles for bands %s", self.bands)
        return {
            "recipe_id": session.recipe_id,
            "bands": self.bands,
            "available_bands": available_bands,
            "vis_params": vis_params,
            "tile_url": map_id["tile_fetcher"].url_format,
        }

    def _write_layer(self, layer: dict[str, Any]) -> None:
        try:
            with open(self.output_path, "w", encoding="utf-8") as fh:
                json.dump(layer, fh, indent=2)
        except OSError as exc:
            raise OutputWriteError(str(self.output_path), str(exc)) from exc
        logger.info("Layer description written to %s", self.output_path)

    @property
    def layer(self) -> dict[str, Any]:
        """The layer description from the last run, or ``{}``."""
        return self._layer
