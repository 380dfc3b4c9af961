"""
Recipe Classifier — Classification Session
============================================
Evaluates one classification recipe end to end:

    1. every input image is requested concurrently and turned into a
       feature image by the covariate builder; the feature images are
       stacked into the image to classify
    2. scale-sensitive classifiers get the image normalised
    3. the training data assembler samples and merges training data
       over that image
    4. the output band engine trains the classifier and composes the
       requested bands

Nothing is memoised: every call rebuilds the image to classify.

Usage::

    session = ClassificationSession(recipe, loader, selection=["class"])
    image = await session.get_image()
    vis_params = await session.get_vis_params()
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

import ee

from recipe_classifier.concurrency import join
from recipe_classifier.covariates import build_feature_image
from recipe_classifier.limiter import Limiter, ee_limiter
from recipe_classifier.models import ClassificationRecipe, ImageRecipeRef
from recipe_classifier.outputs import OutputBandEngine, get_vis_params, output_bands
from recipe_classifier.recipes import ImageSource, RecipeLoader, RecipeRef, image_source_for
from recipe_classifier.training import TrainingDataAssembler, TrainingFeatureSet
from shared.python.validators import Validators

logger = logging.getLogger("recipe_classifier.classification")


class ClassificationSession(ImageSource):
    """Image source for a classification recipe.

    Args:
        recipe: The parsed recipe.
        loader: Loader for recipes referenced by input imagery or
            training data.
        limiter: Admission control for remote round trips.
        selection: Output bands to produce.
        recipe_id: Id of the recipe, for log messages.
    """

    def __init__(
        self,
        recipe: ClassificationRecipe,
        loader: RecipeLoader,
        limiter: Limiter = ee_limiter,
        selection: Sequence[str] = (),
        recipe_id: str | None = None,
    ) -> None:
        self.recipe = recipe
        self.loader = loader
        self.limiter = limiter
        self.selection = list(selection)
        self.recipe_id = recipe_id
        self.engine = OutputBandEngine(recipe.legend, recipe.classifier, scale=recipe.scale)
        self.assembler = TrainingDataAssembler(
            recipe.training_data,
            resolve_training_data=self._resolve_training_data,
            scale=recipe.scale,
        )

    async def _resolve_training_data(self, recipe_id: str) -> TrainingFeatureSet:
        return await RecipeRef(recipe_id, self.loader, self.limiter).get_training_data()

    async def _feature_image(self, ref: ImageRecipeRef) -> ee.Image:
        image = await image_source_for(ref, self.loader, self.limiter).get_image()
        return build_feature_image(image, ref.band_set_specs, self.recipe.auxiliary_imagery)

    async def image_to_classify(self) -> ee.Image:
        """Stack the feature images of every input image, normalised if needed."""
        images = await join(self._feature_image(ref) for ref in self.recipe.input_imagery)
        logger.debug("Resolved %d input image(s) for recipe %s", len(images), self.recipe_id)
        return self.engine.prepare(ee.Image(images))

    # ------------------------------------------------------------------
    # Public surface
    # ------------------------------------------------------------------

    async def get_training_data(self, band_order: Any = None) -> TrainingFeatureSet:
        """Training set sampled over the image to classify.

        Args:
            band_order: Band order to tag the set with. Defaults to the
                bands of the image to classify.

        Raises:
            UpstreamResolutionError: If a referenced recipe fails to resolve.
        """
        image = await self.image_to_classify()
        return await self.assembler.assemble(image, band_order)

    async def get_image(self) -> ee.Image:
        """The classified image with the selected output bands.

        Raises:
            UnsupportedOutputError: If a selected band cannot be produced.
            UpstreamResolutionError: If a referenced recipe fails to resolve.
        """
        image = await self.image_to_classify()
        training_set = await self.assembler.assemble(image, image.bandNames())
        logger.info("Classifying recipe %s, bands %s", self.recipe_id, self.selection)
        return self.engine.compute_outputs(image, training_set, self.selection)

    async def get_bands(self) -> list[str]:
        return output_bands(self.recipe.legend, self.recipe.classifier.type)

    async def get_vis_params(self) -> dict[str, Any]:
        return get_vis_params(self.recipe.legend, self.selection)

    async def get_geometry(self) -> ee.Geometry:
        """Footprint of the first input image."""
        Validators.assert_not_empty(self.recipe.input_imagery, "Input imagery")
        ref = self.recipe.input_imagery[0]
        return await image_source_for(ref, self.loader, self.limiter).get_geometry()

    def classify_image(
        self,
        image: ee.Image,
        bands: Sequence[str],
        training_set: TrainingFeatureSet,
    ) -> ee.Image:
        """Classify an arbitrary *image* with this recipe's configuration.

        The recipe's covariates are added to *image* (replacing bands of
        the same name) before classification.

        Raises:
            ConfigurationError: If the recipe has more than one input image.
        """
        Validators.assert_single_input_image(len(self.recipe.input_imagery))
        Validators.assert_not_empty(self.recipe.input_imagery, "Input imagery")
        covariates = build_feature_image(
            image,
            self.recipe.input_imagery[0].band_set_specs,
            self.recipe.auxiliary_imagery,
        )
        with_covariates = self.engine.prepare(image.addBands(covariates, None, True))
        return self.engine.compute_outputs(with_covariates, training_set, bands)

    def __repr__(self) -> str:
        return (
            f"ClassificationSession(recipe_id={self.recipe_id!r}, "
            f"classifier={self.recipe.classifier.type.value}, "
            f"selection={self.selection!r})"
        )
