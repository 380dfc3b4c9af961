"""
Recipe Classifier — Recipe Model
==================================
Immutable dataclasses for a classification recipe, parsed from the JSON
document a recipe store returns.

Classes:
    LegendEntry             One class code with its display colour.
    Legend                  Ordered, value-unique set of legend entries.
    ReferencePoint          A labelled reference point in recipe coordinates.
    RecipeTrainingSource    Training data delegated to another recipe.
    DirectTrainingSource    Training data given as reference points.
    BandSetSpec             How a group of covariate bands is derived.
    ImageRecipeRef          One input image (recipe reference or asset).
    ClassificationRecipe    The whole recipe.

Usage::

    recipe = ClassificationRecipe.from_dict(document["model"])
    recipe.legend.probability_band_names()
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Union

from recipe_classifier.classifiers import ClassifierConfig, parse_classifier_config, to_float
from shared.python.exceptions import ConfigurationError
from shared.python.validators import Validators

logger = logging.getLogger("recipe_classifier.models")


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class BandSetType(str, Enum):
    IMAGE_BANDS = "IMAGE_BANDS"
    PAIR_WISE_EXPRESSION = "PAIR_WISE_EXPRESSION"
    INDEXES = "INDEXES"


class PairwiseOperation(str, Enum):
    RATIO = "RATIO"
    NORMALIZED_DIFFERENCE = "NORMALIZED_DIFFERENCE"
    DIFFERENCE = "DIFFERENCE"
    DISTANCE = "DISTANCE"
    ANGLE = "ANGLE"


class AuxiliaryKind(str, Enum):
    LATITUDE = "LATITUDE"
    TERRAIN = "TERRAIN"
    WATER = "WATER"


class ImageRecipeType(str, Enum):
    RECIPE_REF = "RECIPE_REF"
    ASSET = "ASSET"


_BAND_SET_ALIASES = {"PAIRWISE_EXPRESSION": "PAIR_WISE_EXPRESSION"}


def _enum_value(enum_cls: type[Enum], raw: Any, label: str) -> Any:
    """Look up *raw* in *enum_cls*, raising ConfigurationError when unknown."""
    try:
        return enum_cls(raw)
    except ValueError as exc:
        options = ", ".join(member.value for member in enum_cls)
        raise ConfigurationError(
            f"Unknown {label} {raw!r}. Expected one of: {options}"
        ) from exc


# ---------------------------------------------------------------------------
# Legend
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LegendEntry:
    value: int
    color: str
    label: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LegendEntry:
        try:
            value = data["value"]
            if isinstance(value, float) and not value.is_integer():
                raise ConfigurationError(f"Legend value must be an integer, got {value!r}")
            return cls(
                value=int(value),
                color=str(data["color"]),
                label=data.get("label"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid legend entry {data!r}: {exc}") from exc


@dataclass(frozen=True)
class Legend:
    """Ordered set of class codes defining the classification domain.

    The legend also defines the probability band namespace: every entry
    owns a ``probability_<value>`` band.

    Attributes:
        entries: Legend entries in declaration order.
    """

    entries: tuple[LegendEntry, ...]

    def __post_init__(self) -> None:
        Validators.assert_not_empty(self.entries, "Legend")
        Validators.assert_unique_values([entry.value for entry in self.entries])

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Legend:
        return cls(tuple(LegendEntry.from_dict(entry) for entry in data.get("entries", [])))

    @property
    def values(self) -> list[int]:
        return [entry.value for entry in self.entries]

    @property
    def sorted_entries(self) -> list[LegendEntry]:
        return sorted(self.entries, key=lambda entry: entry.value)

    @property
    def min_value(self) -> int:
        return self.sorted_entries[0].value

    @property
    def max_value(self) -> int:
        return self.sorted_entries[-1].value

    @property
    def palette(self) -> list[str]:
        """Entry colours ordered by ascending value."""
        return [entry.color for entry in self.sorted_entries]

    def probability_band_names(self, *, ascending: bool = False) -> list[str]:
        """``probability_<value>`` for every entry.

        Args:
            ascending: Order by value instead of declaration order.
        """
        entries = self.sorted_entries if ascending else self.entries
        return [f"probability_{entry.value}" for entry in entries]


# ---------------------------------------------------------------------------
# Training data sources
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ReferencePoint:
    x: float
    y: float
    class_value: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReferencePoint:
        try:
            return cls(x=float(data["x"]), y=float(data["y"]), class_value=int(data["class"]))
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid reference point {data!r}: {exc}") from exc


@dataclass(frozen=True)
class RecipeTrainingSource:
    """Training data delegated to another recipe's own training data."""

    recipe_id: str


@dataclass(frozen=True)
class DirectTrainingSource:
    """Training data given directly as labelled reference points."""

    points: tuple[ReferencePoint, ...] = ()


TrainingDataSource = Union[RecipeTrainingSource, DirectTrainingSource]


def parse_training_source(data: dict[str, Any]) -> TrainingDataSource:
    """Build a training source from one ``trainingData.dataSets`` entry.

    ``RECIPE`` entries reference another recipe; every other type carries
    its reference points in ``referenceData``.
    """
    if data.get("type") == "RECIPE":
        recipe_id = data.get("recipe")
        if not recipe_id:
            raise ConfigurationError(f"RECIPE training data without a recipe id: {data!r}")
        return RecipeTrainingSource(recipe_id=str(recipe_id))
    points = tuple(ReferencePoint.from_dict(point) for point in data.get("referenceData") or [])
    return DirectTrainingSource(points=points)


# ---------------------------------------------------------------------------
# Input imagery
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class BandSetSpec:
    """How one group of covariate bands is derived from an input image.

    Attributes:
        type: Kind of derivation.
        included: Band or index names the group works on.
        operation: Algebraic form, only for pairwise groups.
    """

    type: BandSetType
    included: tuple[str, ...]
    operation: PairwiseOperation | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BandSetSpec:
        raw_type = _BAND_SET_ALIASES.get(data.get("type"), data.get("type"))
        spec_type = _enum_value(BandSetType, raw_type, "band set type")
        operation = None
        if spec_type is BandSetType.PAIR_WISE_EXPRESSION:
            operation = _enum_value(PairwiseOperation, data.get("operation"), "pairwise operation")
        return cls(
            type=spec_type,
            included=tuple(data.get("included") or []),
            operation=operation,
        )


@dataclass(frozen=True)
class ImageRecipeRef:
    type: ImageRecipeType
    id: str
    band_set_specs: tuple[BandSetSpec, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ImageRecipeRef:
        if not data.get("id"):
            raise ConfigurationError(f"Input image without an id: {data!r}")
        return cls(
            type=_enum_value(ImageRecipeType, data.get("type"), "input image type"),
            id=str(data["id"]),
            band_set_specs=tuple(
                BandSetSpec.from_dict(spec) for spec in data.get("bandSetSpecs") or []
            ),
        )


# ---------------------------------------------------------------------------
# Recipe
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ClassificationRecipe:
    """A classification recipe, read-only once loaded.

    Attributes:
        input_imagery: Images stacked into the image to classify.
        legend: The class legend.
        training_data: Training sources in declaration order.
        auxiliary_imagery: Auxiliary covariate layers to append.
        classifier: Typed classifier configuration.
        scale: Optional scale in metres for sampling and statistics.
    """

    input_imagery: tuple[ImageRecipeRef, ...]
    legend: Legend
    training_data: tuple[TrainingDataSource, ...]
    classifier: ClassifierConfig
    auxiliary_imagery: tuple[AuxiliaryKind, ...] = field(default_factory=tuple)
    scale: float | None = None

    @classmethod
    def from_dict(cls, model: dict[str, Any]) -> ClassificationRecipe:
        """Parse the ``model`` section of a classification recipe document.

        Raises:
            ConfigurationError: If any part of the model is invalid.
        """
        try:
            images = model["inputImagery"]["images"]
            legend = model["legend"]
            classifier = model["classifier"]
        except (KeyError, TypeError) as exc:
            raise ConfigurationError(f"Classification recipe is missing {exc}") from exc

        data_sets = (model.get("trainingData") or {}).get("dataSets") or []
        scale = model.get("scale")
        recipe = cls(
            input_imagery=tuple(ImageRecipeRef.from_dict(image) for image in images),
            legend=Legend.from_dict(legend),
            training_data=tuple(parse_training_source(data_set) for data_set in data_sets),
            classifier=parse_classifier_config(classifier),
            auxiliary_imagery=tuple(
                _enum_value(AuxiliaryKind, kind, "auxiliary imagery")
                for kind in model.get("auxiliaryImagery") or []
            ),
            scale=to_float(scale) or None,
        )
        logger.debug(
            "Parsed recipe: %d image(s), %d legend entries, %d training source(s), %s",
            len(recipe.input_imagery),
            len(recipe.legend.entries),
            len(recipe.training_data),
            recipe.classifier.type.value,
        )
        return recipe
