"""
Recipe Classifier — Output Band Engine
========================================
Derives the requested output bands from one classifier configuration:

    class               discrete classification, uint8
    regression          continuous regression, float
    class_probability   probability (0–100) of the class that was predicted
    probability_<v>     probability (0–100) of legend value <v>

Each output mode needs its own trained classifier, so requesting
``class`` and ``regression`` trains twice.  The per-class probability
stack is computed at most once per :meth:`OutputBandEngine.compute_outputs`
call and shared by ``class_probability`` and ``probability_<v>``.

Also provides min-max normalisation for scale-sensitive classifiers,
the list of bands a configuration can produce, and visualisation
parameters for a band selection.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

import ee

from recipe_classifier.classifiers import (
    ClassifierConfig,
    OutputMode,
    needs_normalization,
    supports_probability,
    supports_regression,
)
from recipe_classifier.models import Legend
from recipe_classifier.training import TrainingFeatureSet
from shared.python.exceptions import ConfigurationError, UnsupportedOutputError
from shared.python.validators import Validators

logger = logging.getLogger("recipe_classifier.outputs")

NORMALIZE_MAX_PIXELS = 1e6
DEFAULT_SCALE = 30

CLASS_BAND = "class"
REGRESSION_BAND = "regression"
CLASS_PROBABILITY_BAND = "class_probability"
PROBABILITY_PREFIX = "probability_"

PROBABILITY_PALETTE = [
    "#000000",
    "#480000",
    "#710101",
    "#BA0000",
    "#FF0000",
    "#FFA500",
    "#FFFF00",
    "#79C900",
    "#006400",
]


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------


def unit_scale(image: ee.Image, low: ee.Number, high: ee.Number) -> ee.Image:
    return image.subtract(low).divide(ee.Number(high).subtract(low))


def normalize_image(image: ee.Image, scale: float | None = None) -> ee.Image:
    """Min-max scale every band of *image* over its own footprint.

    Min and max are approximated from at most ``NORMALIZE_MAX_PIXELS``
    pixels.  A constant band (min == max) is divided by its max instead,
    so it becomes 1 rather than a division by zero.  Properties and
    geometry of *image* are preserved.
    """
    min_max = image.reduceRegion(
        reducer=ee.Reducer.minMax(),
        scale=scale or DEFAULT_SCALE,
        bestEffort=True,
        maxPixels=NORMALIZE_MAX_PIXELS,
    )

    def scale_band(band_name: Any, accumulator: Any) -> ee.Image:
        band_name = ee.String(band_name)
        band_min = min_max.getNumber(band_name.cat("_min"))
        band_max = min_max.getNumber(band_name.cat("_max"))
        band = image.select(band_name)
        scaled = ee.Image(ee.Algorithms.If(
            band_min.eq(band_max),
            band.divide(band_max),
            unit_scale(band, band_min, band_max),
        ))
        return ee.Image(accumulator).addBands(scaled)

    normalized = ee.Image(image.bandNames().iterate(scale_band, ee.Image([])))
    return ee.Image(
        normalized.clip(image.geometry()).copyProperties(image, image.propertyNames())
    )


# ---------------------------------------------------------------------------
# Band catalogue and visualisation
# ---------------------------------------------------------------------------


def output_bands(legend: Legend, classifier_type: Any) -> list[str]:
    """Every band a classifier of *classifier_type* can produce.

    ``class`` first, then ``regression`` and ``class_probability`` where
    supported, then one ``probability_<value>`` per legend entry in
    ascending value order.
    """
    bands = [CLASS_BAND]
    if supports_regression(classifier_type):
        bands.append(REGRESSION_BAND)
    if supports_probability(classifier_type):
        bands.append(CLASS_PROBABILITY_BAND)
        bands.extend(legend.probability_band_names(ascending=True))
    return bands


def get_vis_params(legend: Legend, selection: Sequence[str]) -> dict[str, Any]:
    """Visualisation parameters for the first recognised band category.

    Raises:
        ConfigurationError: If *selection* has no recognised band.
    """
    if CLASS_BAND in selection:
        return {"bands": CLASS_BAND, "min": legend.min_value, "max": legend.max_value, "palette": legend.palette}
    if REGRESSION_BAND in selection:
        return {"bands": REGRESSION_BAND, "min": legend.min_value, "max": legend.max_value, "palette": legend.palette}
    if CLASS_PROBABILITY_BAND in selection:
        return {"bands": CLASS_PROBABILITY_BAND, "min": 0, "max": 100, "palette": PROBABILITY_PALETTE}
    probability_bands = [band for band in selection if band.startswith(PROBABILITY_PREFIX)]
    if probability_bands:
        return {"bands": probability_bands[0], "min": 0, "max": 100, "palette": PROBABILITY_PALETTE}
    raise ConfigurationError(
        "Expected selected bands to contain class, regression, "
        f"class_probability, or probability_*: {list(selection)}"
    )


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------


class OutputBandEngine:
    """Compute output bands for one legend and classifier configuration.

    Args:
        legend: The recipe legend.
        classifier: The classifier configuration.
        scale: Scale in metres for normalisation statistics.
    """

    def __init__(self, legend: Legend, classifier: ClassifierConfig, scale: float | None = None) -> None:
        self.legend = legend
        self.classifier = classifier
        self.scale = scale

    def prepare(self, image: ee.Image) -> ee.Image:
        """Normalise *image* when the classifier family is scale sensitive."""
        if needs_normalization(self.classifier.type):
            logger.debug("Normalising image for %s", self.classifier.type.value)
            return normalize_image(image, self.scale)
        return image

    def validate(self, selection: Sequence[str]) -> None:
        """Check that every band in *selection* can be produced.

        Raises:
            UnsupportedOutputError: On the first band that cannot.
        """
        classifier_type = self.classifier.type
        Validators.assert_probability_bands_in_legend(selection, self.legend.values)
        for band in selection:
            if band == CLASS_BAND:
                continue
            if band == REGRESSION_BAND:
                if not supports_regression(classifier_type):
                    raise UnsupportedOutputError(band, f"{classifier_type.value} does not support regression")
            elif band == CLASS_PROBABILITY_BAND or band.startswith(PROBABILITY_PREFIX):
                if not supports_probability(classifier_type):
                    raise UnsupportedOutputError(band, f"{classifier_type.value} does not support probabilities")
            else:
                raise UnsupportedOutputError(band, "unknown output band")

    # -- individual outputs --------------------------------------------

    def classification(self, image: ee.Image, training_set: TrainingFeatureSet) -> ee.Image:
        return (
            self.classifier.apply(image, training_set, OutputMode.CLASSIFICATION)
            .uint8()
            .rename([CLASS_BAND])
        )

    def regression(self, image: ee.Image, training_set: TrainingFeatureSet) -> ee.Image:
        return (
            self.classifier.apply(image, training_set, OutputMode.REGRESSION)
            .float()
            .rename([REGRESSION_BAND])
        )

    def probabilities(self, image: ee.Image, training_set: TrainingFeatureSet) -> ee.Image:
        """One ``probability_<value>`` band (0–100) per legend entry.

        The classifier's resolved class list maps legend values to slots
        of the probability array.  Legend values the classifier never saw
        get a constant zero band, so the result always has one band per
        legend entry, in legend order.
        """
        classifier = self.classifier.train(training_set, OutputMode.MULTIPROBABILITY)
        probability_array = (
            image.select(training_set.band_order)
            .classify(classifier)
            .multiply(100)
            .uint8()
        )
        classes = ee.List(classifier.explain().get("classes"))
        indexes = ee.List.sequence(0, classes.size().subtract(1))

        def add_probability(value_index: Any, accumulator: Any) -> ee.Image:
            value = ee.List(value_index).getNumber(0).int()
            index = ee.List(value_index).getNumber(1).int()
            return ee.Image(accumulator).addBands(
                probability_array.arrayGet(index).rename(
                    ee.String(PROBABILITY_PREFIX).cat(value.format())
                )
            )

        band_names = self.legend.probability_band_names()
        resolved = ee.Image(classes.zip(indexes).iterate(add_probability, ee.Image([])))
        zeros = ee.Image([
            ee.Image(0).clip(image.geometry()).rename(band_name) for band_name in band_names
        ])
        # Bands already present keep their name; the duplicate zeros get
        # renamed by addBands and fall away in the select.
        return resolved.addBands(zeros).select(band_names)

    def class_probability(
        self,
        classification: ee.Image,
        probabilities: ee.Image,
    ) -> ee.Image:
        """Per pixel, the probability of the class that was predicted."""
        indicators = ee.Image([
            ee.Image(1).where(classification.neq(value), 0).rename(f"{PROBABILITY_PREFIX}{value}")
            for value in self.legend.values
        ])
        return (
            probabilities.multiply(indicators)
            .reduce(ee.Reducer.max())
            .rename(CLASS_PROBABILITY_BAND)
        )

    # -- assembly ------------------------------------------------------

    def compute_outputs(
        self,
        image: ee.Image,
        training_set: TrainingFeatureSet,
        selection: Sequence[str],
    ) -> ee.Image:
        """Assemble the requested bands into one image.

        Bands are ordered class, class_probability, regression, then the
        requested probability bands.

        Raises:
            UnsupportedOutputError: If a requested band cannot be produced.
        """
        self.validate(selection)
        logger.info("Computing outputs %s with %s", list(selection), self.classifier.type.value)

        stack: list[ee.Image] = []

        def probabilities() -> ee.Image:
            if not stack:
                stack.append(self.probabilities(image, training_set))
            return stack[0]

        bands: list[ee.Image] = []
        if CLASS_BAND in selection or CLASS_PROBABILITY_BAND in selection:
            classification = self.classification(image, training_set)
            if CLASS_BAND in selection:
                bands.append(classification)
            if CLASS_PROBABILITY_BAND in selection:
                bands.append(self.class_probability(classification, probabilities()))
        if REGRESSION_BAND in selection:
            bands.append(self.regression(image, training_set))
        probability_bands = [band for band in selection if band.startswith(PROBABILITY_PREFIX)]
        if probability_bands:
            bands.append(probabilities().select(probability_bands))
        return ee.Image(bands)
