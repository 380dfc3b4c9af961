"""
Recipe Classifier — Training Data Assembler
=============================================
Merges the training data of a recipe into one labelled feature
collection.

Two kinds of sources feed the collection:

    RECIPE   another recipe's own training data, resolved asynchronously
    DIRECT   reference points, sampled from the image to classify

All RECIPE sources are resolved concurrently and joined; if any of them
fails the whole assembly fails with :class:`UpstreamResolutionError`.
The resulting collection always holds the RECIPE features (in source
declaration order) before the sampled DIRECT features, and carries the
band order it was sampled with.

Usage::

    assembler = TrainingDataAssembler(
        recipe.training_data,
        resolve_training_data=lambda recipe_id: RecipeRef(recipe_id, loader).get_training_data(),
        scale=recipe.scale,
    )
    training_set = await assembler.assemble(image_to_classify)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence

import ee

from recipe_classifier.classifiers import CLASS_PROPERTY
from recipe_classifier.concurrency import concat, join
from recipe_classifier.models import (
    DirectTrainingSource,
    RecipeTrainingSource,
    ReferencePoint,
    TrainingDataSource,
)
from shared.python.exceptions import UpstreamResolutionError

logger = logging.getLogger("recipe_classifier.training")

# Sampling scale when a recipe does not define one.
DEFAULT_SAMPLING_SCALE = 1


@dataclass(frozen=True)
class TrainingFeatureSet:
    """A labelled feature collection and the band order it was sampled with.

    A classifier trained on this set must be applied to an image with
    exactly this band order.

    Attributes:
        collection: Features with a ``class`` property and one property
            per band.
        band_order: Band names, either a list or a server-side ``ee.List``.
    """

    collection: ee.FeatureCollection
    band_order: Any


ResolveTrainingData = Callable[[str], Awaitable[TrainingFeatureSet]]


def to_feature(point: ReferencePoint) -> ee.Feature:
    return ee.Feature(ee.Geometry.Point([point.x, point.y]), {CLASS_PROPERTY: point.class_value})


class TrainingDataAssembler:
    """Assemble a :class:`TrainingFeatureSet` from heterogeneous sources.

    Args:
        sources: Training sources in declaration order.
        resolve_training_data: Coroutine function returning the training
            set of the recipe with the given id.
        scale: Sampling scale in metres for DIRECT points.
    """

    def __init__(
        self,
        sources: Sequence[TrainingDataSource],
        resolve_training_data: ResolveTrainingData,
        scale: float | None = None,
    ) -> None:
        self.recipe_sources = [s for s in sources if isinstance(s, RecipeTrainingSource)]
        self.reference_points = [
            point
            for source in sources
            if isinstance(source, DirectTrainingSource)
            for point in source.points
        ]
        self.resolve_training_data = resolve_training_data
        self.scale = scale or DEFAULT_SAMPLING_SCALE

    async def _resolve(self, source: RecipeTrainingSource) -> ee.FeatureCollection:
        try:
            training_set = await self.resolve_training_data(source.recipe_id)
        except UpstreamResolutionError:
            raise
        except Exception as exc:
            raise UpstreamResolutionError(source.recipe_id, str(exc)) from exc
        logger.debug("Resolved training data of recipe %s", source.recipe_id)
        return training_set.collection

    async def recipe_training_data(self) -> list[ee.FeatureCollection]:
        """Join the training data of every RECIPE source, in declaration order."""
        if not self.recipe_sources:
            return []
        collections = await join(self._resolve(source) for source in self.recipe_sources)
        logger.info("Resolved training data of %d recipe(s)", len(collections))
        return [ee.FeatureCollection(collections).flatten()]

    def reference_collection(self) -> ee.FeatureCollection:
        """All DIRECT reference points as one point collection."""
        return ee.FeatureCollection([to_feature(point) for point in self.reference_points])

    async def sampled_reference_data(self, image: ee.Image) -> ee.FeatureCollection:
        """Sample *image* at the reference points within its footprint."""
        return image.sampleRegions(
            collection=self.reference_collection().filterBounds(image.geometry()),
            properties=[CLASS_PROPERTY],
            scale=self.scale,
        )

    async def assemble(self, image: ee.Image, band_order: Any = None) -> TrainingFeatureSet:
        """Build the training set over *image*.

        Args:
            image: The image to classify; DIRECT points are sampled from it.
            band_order: Band order to tag the set with. Defaults to the
                image's band names.

        Raises:
            UpstreamResolutionError: If any RECIPE source fails to resolve.
        """
        recipe_collections, sampled = await concat(
            self.recipe_training_data(),
            self.sampled_reference_data(image),
        )
        band_order = band_order if band_order is not None else image.bandNames()
        collection = (
            ee.FeatureCollection([*recipe_collections, sampled])
            .flatten()
            .set("band_order", band_order)
        )
        logger.debug(
            "Assembled training data: %d recipe source(s), %d reference point(s)",
            len(self.recipe_sources),
            len(self.reference_points),
        )
        return TrainingFeatureSet(collection=ee.FeatureCollection(collection), band_order=band_order)
