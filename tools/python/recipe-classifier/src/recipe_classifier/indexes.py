"""
Recipe Classifier — Spectral Index Library
============================================
Named spectral indexes computed as Earth Engine expressions.

Each index is an :class:`IndexStrategy`: it declares the bands it needs
and how to compute itself from an image holding those bands.  When the
image lacks any required band the strategy yields an empty (bandless)
image instead of failing, so callers can compose indexes over images
with arbitrary band sets.

Input images are reflectance scaled by 10000; :func:`calculate_index`
divides by 10000 before evaluating.

Supported indexes:
    ndvi, ndmi, ndwi, mndwi, evi, evi2, savi, nbr, ui, ndbi, ibi, nbi,
    ebbi, bui, ndfi

Usage::

    from recipe_classifier.indexes import calculate_index, supported_indexes

    ndvi = calculate_index(image, "ndvi")
    supported_indexes()  # ['ndvi', 'ndmi', ...]
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass

import ee

logger = logging.getLogger("recipe_classifier.indexes")

REFLECTANCE_SCALE = 10000


# ---------------------------------------------------------------------------
# Graph helpers
# ---------------------------------------------------------------------------


def empty_image() -> ee.Image:
    """An image without bands."""
    return ee.Image([])


def has_bands(image: ee.Image, bands: list[str]) -> ee.ComputedObject:
    """Server-side boolean: does *image* contain every band in *bands*."""
    return (
        image.bandNames()
        .filter(ee.Filter.inList("item", bands))
        .size()
        .eq(len(bands))
    )


def when(condition: ee.ComputedObject, image: ee.Image) -> ee.Image:
    """*image* when *condition* holds, otherwise an empty image."""
    return ee.Image(ee.Algorithms.If(condition, image, empty_image()))


def select_or_default(image: ee.Image, bands: list[str], default: float = 0) -> ee.Image:
    """Select *bands*, substituting a constant band for each missing one."""
    defaults = ee.Image.constant([default] * len(bands)).rename(bands)
    existing = image.select(image.bandNames().filter(ee.Filter.inList("item", bands)))
    return defaults.addBands(existing, None, True).select(bands)


# ---------------------------------------------------------------------------
# Strategy ABC + concrete implementations
# ---------------------------------------------------------------------------


class IndexStrategy(ABC):
    """Abstract base for a single spectral index.

    Subclasses implement :attr:`required_bands` and :meth:`compute`.
    :meth:`evaluate` wraps ``compute`` so that a missing band yields an
    empty image.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Short lowercase name, also used as the output band name."""

    @property
    @abstractmethod
    def required_bands(self) -> list[str]:
        """Band names this index needs, e.g. ``["red", "nir"]``."""

    @abstractmethod
    def compute(self, image: ee.Image) -> ee.Image:
        """Compute the index from an image that has all required bands."""

    def evaluate(self, image: ee.Image) -> ee.Image:
        """Compute the index, or an empty image when bands are missing."""
        required = self.required_bands
        complete = select_or_default(image, required)
        return when(has_bands(image, required), self.compute(complete))


@dataclass(frozen=True)
class ExpressionIndex(IndexStrategy):
    """An index defined by an ``ee.Image.expression`` over its bands.

    Attributes:
        index_name: Output band name.
        bands: Required bands, referenced by name in *expression*.
        expression: Earth Engine expression, e.g. ``"(nir - red) / (nir + red)"``.
    """

    index_name: str
    bands: tuple[str, ...]
    expression: str

    @property
    def name(self) -> str:
        return self.index_name

    @property
    def required_bands(self) -> list[str]:
        return list(self.bands)

    def compute(self, image: ee.Image) -> ee.Image:
        band_map = {band: image.select(band) for band in self.bands}
        return image.expression(self.expression, band_map).rename(self.index_name)


def evi_index(L: float = 1, C1: float = 6, C2: float = 7.5, G: float = 2.5) -> ExpressionIndex:
    """EVI with configurable canopy background and aerosol coefficients."""
    return ExpressionIndex(
        "evi",
        ("blue", "red", "nir"),
        f"{G} * ((nir - red) / (nir + {C1} * red - {C2} * blue + {L}))",
    )


def savi_index(L: float = 0.5) -> ExpressionIndex:
    """SAVI with soil brightness correction factor ``L``."""
    return ExpressionIndex(
        "savi",
        ("red", "nir"),
        f"(nir - red) * (1 + {L}) / (nir + red + {L})",
    )


NDVI = ExpressionIndex("ndvi", ("red", "nir"), "(nir - red) / (nir + red)")
NDMI = ExpressionIndex("ndmi", ("nir", "swir1"), "(nir - swir1) / (nir + swir1)")
NDWI = ExpressionIndex("ndwi", ("green", "nir"), "(green - nir) / (green + nir)")
MNDWI = ExpressionIndex("mndwi", ("green", "swir1"), "(green - swir1) / (green + swir1)")
EVI2 = ExpressionIndex("evi2", ("blue", "red", "nir"), "2.5 * (nir - red) / (nir + 2.4 * red + 1)")
NBR = ExpressionIndex("nbr", ("nir", "swir2"), "(nir - swir2) / (nir + swir2)")
UI = ExpressionIndex("ui", ("nir", "swir2"), "(swir2 - nir) / (swir2 + nir)")
NDBI = ExpressionIndex("ndbi", ("nir", "swir1"), "(swir1 - nir) / (swir1 + nir)")
NBI = ExpressionIndex("nbi", ("red", "nir", "swir1"), "red * swir1 / nir")
EBBI = ExpressionIndex(
    "ebbi",
    ("nir", "swir1", "swir2", "thermal"),
    "(swir1 - nir) / (10 * sqrt(swir1 + thermal))",
)
BUI = ExpressionIndex(
    "bui",
    ("red", "swir1", "swir2"),
    "(red - swir1) / (red + swir1) + (swir2 - swir1) / (swir2 + swir1)",
)


class IbiIndex(IndexStrategy):
    """IBI — Index-based Built-up Index.

    Formula: ``(ndbi - (savi + mndwi) / 2) / (ndbi + (savi + mndwi) / 2)``

    Combines three other indexes, so it needs every band any of them needs.
    """

    def __init__(self, soil_factor: float = 0.5) -> None:
        self.soil_factor = soil_factor
        self._combined = ExpressionIndex(
            "ibi",
            ("ndbi", "savi", "mndwi"),
            "(ndbi - (savi + mndwi) / 2) / (ndbi + (savi + mndwi) / 2)",
        )

    @property
    def name(self) -> str:
        return "ibi"

    @property
    def required_bands(self) -> list[str]:
        return ["green", "red", "nir", "swir1"]

    def compute(self, image: ee.Image) -> ee.Image:
        components = (
            NDBI.compute(image)
            .addBands(savi_index(self.soil_factor).compute(image))
            .addBands(MNDWI.compute(image))
        )
        return self._combined.compute(components)


class NdfiIndex(IndexStrategy):
    """NDFI — Normalized Difference Fraction Index.

    Unmixes the six optical bands into green vegetation (gv), shade,
    non-photosynthetic vegetation (npv), soil and cloud fractions, with
    fractions summing to one and non-negative, then combines them:

        ``((gv / (1 - shade)) - (npv + soil)) / ((gv / (1 - shade)) + npv + soil)``

    The cloud endmember only absorbs cloud contamination; its fraction
    is not used in the formula.
    """

    BANDS = ["blue", "green", "red", "nir", "swir1", "swir2"]
    # Endmember spectra in reflectance, band order as BANDS.
    GV = [0.05, 0.09, 0.04, 0.61, 0.30, 0.10]
    SHADE = [0.0, 0.0, 0.0, 0.0, 0.0, 0.0]
    NPV = [0.14, 0.17, 0.22, 0.30, 0.55, 0.30]
    SOIL = [0.20, 0.30, 0.34, 0.58, 0.60, 0.58]
    CLOUD = [0.90, 0.96, 0.80, 0.78, 0.72, 0.65]
    FRACTIONS = ["gv", "shade", "npv", "soil", "cloud"]

    @property
    def name(self) -> str:
        return "ndfi"

    @property
    def required_bands(self) -> list[str]:
        return list(self.BANDS)

    @property
    def endmembers(self) -> list[list[float]]:
        return [self.GV, self.SHADE, self.NPV, self.SOIL, self.CLOUD]

    def compute(self, image: ee.Image) -> ee.Image:
        unmixed = (
            image.select(self.BANDS)
            .unmix(self.endmembers, True, True)
            .rename(self.FRACTIONS)
        )
        return (
            unmixed.expression(
                "((i.gv / (1 - i.shade)) - (i.npv + i.soil)) "
                "/ ((i.gv / (1 - i.shade)) + i.npv + i.soil)",
                {"i": unmixed},
            )
            .rename("ndfi")
            .float()
        )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

INDEXES: dict[str, IndexStrategy] = {
    strategy.name: strategy
    for strategy in (
        NDVI,
        NDMI,
        NDWI,
        MNDWI,
        evi_index(),
        EVI2,
        savi_index(),
        NBR,
        UI,
        NDBI,
        IbiIndex(),
        NBI,
        EBBI,
        BUI,
        NdfiIndex(),
    )
}


def supported_indexes() -> list[str]:
    """Names of every supported index, in registry order."""
    return list(INDEXES)


def calculate_index(image: ee.Image, index_name: str) -> ee.Image:
    """Compute *index_name* over *image* (reflectance scaled by 10000).

    Returns an empty image when the index is unknown or the image lacks
    one of its required bands.
    """
    strategy = INDEXES.get(index_name)
    if strategy is None:
        logger.debug("Ignoring unknown index %r", index_name)
        return empty_image()
    return strategy.evaluate(image.divide(REFLECTANCE_SCALE))


def calculate_indexes(image: ee.Image, index_names: list[str] | tuple[str, ...]) -> ee.Image:
    """Concatenate the bands of every index in *index_names*."""
    return ee.Image([calculate_index(image, name) for name in index_names])
