"""
Recipe Classifier — Covariate Builder
=======================================
Builds the feature image a classifier consumes from an input image, the
image's band set specs, and the requested auxiliary layers.

Band set specs are processed in declaration order, each contributing a
group of bands:

    IMAGE_BANDS           the included bands verbatim, plus any included
                          index name computed over the remaining bands
    PAIR_WISE_EXPRESSION  every pair of included bands combined with an
                          algebraic operation
    INDEXES               the included spectral indexes

Auxiliary layers (latitude, terrain, surface water) are appended after
the groups.  The final image is masked wherever every band of the input
image is masked.
"""

from __future__ import annotations

import itertools
import logging
import math
from typing import Callable, Sequence

import ee

from recipe_classifier.indexes import calculate_indexes, has_bands, when
from recipe_classifier.models import (
    AuxiliaryKind,
    BandSetSpec,
    BandSetType,
    PairwiseOperation,
)

logger = logging.getLogger("recipe_classifier.covariates")

ELEVATION_ASSET = "USGS/SRTMGL1_003"
SURFACE_WATER_ASSET = "JRC/GSW1_4/GlobalSurfaceWater"

SURFACE_WATER_BANDS = ["occurrence", "change_abs", "change_norm", "seasonality", "max_extent"]

# Index i is the transition class code i of the surface water dataset.
WATER_TRANSITIONS = [
    "no_change",
    "permanent",
    "new_permanent",
    "lost_permanent",
    "seasonal",
    "new_seasonal",
    "lost_seasonal",
    "seasonal_to_permanent",
    "permanent_to_seasonal",
    "ephemeral_permanent",
    "ephemeral_seasonal",
]

PAIRWISE_OPERATIONS: dict[PairwiseOperation, Callable[[ee.Image, ee.Image], ee.Image]] = {
    PairwiseOperation.RATIO: lambda b1, b2: b1.divide(b2),
    PairwiseOperation.NORMALIZED_DIFFERENCE: lambda b1, b2: b1.subtract(b2).divide(b1.add(b2)),
    PairwiseOperation.DIFFERENCE: lambda b1, b2: b1.subtract(b2),
    PairwiseOperation.DISTANCE: lambda b1, b2: b1.atan2(b2).divide(math.pi),
    PairwiseOperation.ANGLE: lambda b1, b2: b1.hypot(b2),
}


# ---------------------------------------------------------------------------
# Band groups
# ---------------------------------------------------------------------------


def select_existing(image: ee.Image, bands: Sequence[str]) -> ee.Image:
    """Select the bands of *bands* that *image* actually has."""
    return image.select(image.bandNames().filter(ee.Filter.inList("item", list(bands))))


def image_bands_group(image: ee.Image, included: Sequence[str]) -> ee.Image:
    """Included bands verbatim, plus included index names computed over
    the bands that were not included."""
    remaining = image.select(
        image.bandNames().filter(ee.Filter.inList("item", list(included)).Not())
    )
    return select_existing(image, included).addBands(
        calculate_indexes(remaining, included), None, True
    )


def pairwise_name(band1: str, band2: str, operation: PairwiseOperation) -> str:
    return f"{band1}_{band2}_{operation.value.lower()}"


def combine_pairwise(
    image: ee.Image,
    included: Sequence[str],
    operation: PairwiseOperation,
) -> ee.Image:
    """Combine every pair ``(b1, b2)`` of *included* bands, ``b1`` first.

    A pair whose bands are not both present contributes nothing.
    """
    combine = PAIRWISE_OPERATIONS[operation]
    pairs = []
    for band1, band2 in itertools.combinations(included, 2):
        combined = combine(image.select(band1), image.select(band2)).rename(
            pairwise_name(band1, band2, operation)
        )
        pairs.append(when(has_bands(image, [band1, band2]), combined))
    return ee.Image(pairs)


def band_set_group(image: ee.Image, spec: BandSetSpec) -> ee.Image:
    if spec.type is BandSetType.IMAGE_BANDS:
        return image_bands_group(image, spec.included)
    if spec.type is BandSetType.PAIR_WISE_EXPRESSION:
        return combine_pairwise(image, spec.included, spec.operation)
    return calculate_indexes(image, spec.included)


# ---------------------------------------------------------------------------
# Auxiliary layers
# ---------------------------------------------------------------------------


def latitude_image() -> ee.Image:
    return ee.Image.pixelLonLat().select("latitude").float()


def terrain_image() -> ee.Image:
    """Elevation, slope and aspect, plus eastness and northness."""
    topography = ee.Terrain.products(ee.Image(ELEVATION_ASSET))
    aspect_rad = topography.select(["aspect"]).multiply(math.pi / 180)
    eastness = aspect_rad.sin().rename(["eastness"]).float()
    northness = aspect_rad.cos().rename(["northness"]).float()
    return (
        topography.select(["elevation", "slope", "aspect"])
        .addBands(eastness)
        .addBands(northness)
    )


def surface_water_image() -> ee.Image:
    """Surface water statistics and one indicator band per transition class."""
    water = ee.Image(SURFACE_WATER_ASSET).unmask()
    transition = water.select("transition")
    transition_masks = ee.Image([
        transition.eq(i).rename(f"water_{name}")
        for i, name in enumerate(WATER_TRANSITIONS)
    ])
    return water.select(
        SURFACE_WATER_BANDS,
        [f"water_{band}" for band in SURFACE_WATER_BANDS],
    ).addBands(transition_masks)


AUXILIARY_LAYERS: dict[AuxiliaryKind, Callable[[], ee.Image]] = {
    AuxiliaryKind.LATITUDE: latitude_image,
    AuxiliaryKind.TERRAIN: terrain_image,
    AuxiliaryKind.WATER: surface_water_image,
}


def auxiliary_image(kinds: Sequence[AuxiliaryKind]) -> ee.Image:
    return ee.Image([AUXILIARY_LAYERS[kind]() for kind in kinds])


# ---------------------------------------------------------------------------
# Feature image
# ---------------------------------------------------------------------------


def build_feature_image(
    image: ee.Image,
    band_set_specs: Sequence[BandSetSpec],
    auxiliary_kinds: Sequence[AuxiliaryKind] = (),
) -> ee.Image:
    """Derive the feature image for *image*.

    Args:
        image: The input image.
        band_set_specs: Band groups to derive, in order.
        auxiliary_kinds: Auxiliary layers to append.

    Returns:
        The concatenated band groups and auxiliary layers, masked where
        every band of *image* is masked.
    """
    logger.debug(
        "Building feature image: %s, auxiliary %s",
        [spec.type.value for spec in band_set_specs],
        [kind.value for kind in auxiliary_kinds],
    )
    features = ee.Image([band_set_group(image, spec) for spec in band_set_specs])
    if auxiliary_kinds:
        features = features.addBands(auxiliary_image(auxiliary_kinds))
    return features.updateMask(image.mask().reduce(ee.Reducer.max()))
