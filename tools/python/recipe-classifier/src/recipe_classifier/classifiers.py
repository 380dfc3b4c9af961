"""
Recipe Classifier — Classifier Configuration
==============================================
Turns the ``classifier`` section of a recipe into Earth Engine
classifiers.

Every classifier family is a frozen dataclass holding its coerced
parameters.  :func:`parse_classifier_config` dispatches on the ``type``
field; an unknown type is a :class:`UnsupportedClassifierError`.

Classes:
    ClassifierType            Supported classifier families.
    OutputMode                Execution mode a trained classifier is bound to.
    ClassifierConfig          Abstract base for all configurations.
    RandomForestConfig        ``ee.Classifier.smileRandomForest``
    GradientTreeBoostConfig   ``ee.Classifier.smileGradientTreeBoost``
    CartConfig                ``ee.Classifier.smileCart``
    NaiveBayesConfig          ``ee.Classifier.smileNaiveBayes``
    SvmConfig                 ``ee.Classifier.libsvm``
    MinimumDistanceConfig     ``ee.Classifier.minimumDistance``
    DecisionTreeConfig        Pre-trained tree(s), no training.

Numeric parameters go through :func:`to_int` / :func:`to_float`: a value
that does not parse becomes ``None`` and Earth Engine falls back to its
own default for it.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, ClassVar

import ee

from shared.python.exceptions import (
    ConfigurationError,
    UnsupportedClassifierError,
    UnsupportedOutputError,
)

if TYPE_CHECKING:
    from recipe_classifier.training import TrainingFeatureSet

logger = logging.getLogger("recipe_classifier.classifiers")

CLASS_PROPERTY = "class"

_INT_PATTERN = re.compile(r"^\s*[+-]?[0-9]+")
_FLOAT_PATTERN = re.compile(r"^\s*[+-]?([0-9]+\.?[0-9]*|\.[0-9]+)([eE][+-]?[0-9]+)?")


def _camel_case(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


# ---------------------------------------------------------------------------
# Numeric coercion
# ---------------------------------------------------------------------------


def to_int(value: Any) -> int | None:
    """Parse the leading integer of ``str(value)``.

    ``to_int("3.9") == 3``, ``to_int(" 42px") == 42``,
    ``to_int("abc") is None``, ``to_int(None) is None``.
    """
    text = value if isinstance(value, str) else ("" if value is None else str(value))
    match = _INT_PATTERN.match(text)
    return int(match.group(0)) if match else None


def to_float(value: Any) -> float | None:
    """Parse the leading float of ``str(value)``; ``None`` unless finite."""
    text = value if isinstance(value, str) else ("" if value is None else str(value))
    match = _FLOAT_PATTERN.match(text)
    if not match:
        return None
    parsed = float(match.group(0))
    # Overflowing exponents parse to inf
    return parsed if parsed not in (float("inf"), float("-inf")) else None


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class ClassifierType(str, Enum):
    RANDOM_FOREST = "RANDOM_FOREST"
    GRADIENT_TREE_BOOST = "GRADIENT_TREE_BOOST"
    CART = "CART"
    NAIVE_BAYES = "NAIVE_BAYES"
    SVM = "SVM"
    MINIMUM_DISTANCE = "MINIMUM_DISTANCE"
    DECISION_TREE = "DECISION_TREE"


class OutputMode(str, Enum):
    CLASSIFICATION = "CLASSIFICATION"
    REGRESSION = "REGRESSION"
    MULTIPROBABILITY = "MULTIPROBABILITY"


_REGRESSION_TYPES = frozenset({
    ClassifierType.RANDOM_FOREST,
    ClassifierType.GRADIENT_TREE_BOOST,
    ClassifierType.CART,
})
_PROBABILITY_TYPES = frozenset({
    ClassifierType.RANDOM_FOREST,
    ClassifierType.GRADIENT_TREE_BOOST,
    ClassifierType.CART,
    ClassifierType.SVM,
    ClassifierType.NAIVE_BAYES,
})
# Scale-sensitive families get a min-max normalised image.
_NORMALIZED_TYPES = frozenset({
    ClassifierType.GRADIENT_TREE_BOOST,
    ClassifierType.MINIMUM_DISTANCE,
    ClassifierType.SVM,
})


def supports_regression(classifier_type: ClassifierType | str) -> bool:
    return ClassifierType(classifier_type) in _REGRESSION_TYPES


def supports_probability(classifier_type: ClassifierType | str) -> bool:
    return ClassifierType(classifier_type) in _PROBABILITY_TYPES


def needs_normalization(classifier_type: ClassifierType | str) -> bool:
    return ClassifierType(classifier_type) in _NORMALIZED_TYPES


# ---------------------------------------------------------------------------
# Configuration ABC
# ---------------------------------------------------------------------------


class ClassifierConfig(ABC):
    """Abstract base for a classifier family configuration.

    Subclasses declare their :attr:`type`, parse themselves in
    :meth:`from_dict` and build an untrained Earth Engine classifier in
    :meth:`create`.

    A trained classifier is tied to the output mode it was trained in.
    :meth:`train` is therefore called once per mode; asking for a
    regression after a classification trains a second model.
    """

    type: ClassVar[ClassifierType]

    @classmethod
    @abstractmethod
    def from_dict(cls, data: dict[str, Any]) -> ClassifierConfig:
        """Build the configuration from a recipe ``classifier`` dict."""

    @abstractmethod
    def create(self) -> ee.Classifier:
        """Return an untrained ``ee.Classifier`` for this configuration."""

    def parameters(self) -> dict[str, Any]:
        """Keyword arguments passed to the Earth Engine constructor.

        Field names are snake_case; Earth Engine expects camelCase.
        """
        return {_camel_case(name): value for name, value in asdict(self).items()}  # type: ignore[call-overload]

    def train(self, training_set: TrainingFeatureSet, mode: OutputMode) -> ee.Classifier:
        """Train a fresh classifier on *training_set*, bound to *mode*.

        The training set's band order is used as the input properties,
        so the classifier only ever sees the bands it was sampled with.
        """
        logger.debug("Training %s in %s mode", self.type.value, mode.value)
        return (
            self.create()
            .train(
                features=training_set.collection,
                classProperty=CLASS_PROPERTY,
                inputProperties=training_set.band_order,
            )
            .setOutputMode(mode.value)
        )

    def apply(
        self,
        image: ee.Image,
        training_set: TrainingFeatureSet,
        mode: OutputMode,
    ) -> ee.Image:
        """Train in *mode* and classify *image*.

        The image is selected to the training band order first; a band
        missing from the image fails the evaluation instead of silently
        classifying with misaligned inputs.
        """
        classifier = self.train(training_set, mode)
        return image.select(training_set.band_order).classify(classifier)


# ---------------------------------------------------------------------------
# Concrete configurations
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RandomForestConfig(ClassifierConfig):
    type: ClassVar[ClassifierType] = ClassifierType.RANDOM_FOREST

    number_of_trees: int | None = None
    variables_per_split: int | None = None
    min_leaf_population: int | None = None
    bag_fraction: float | None = None
    max_nodes: int | None = None
    seed: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RandomForestConfig:
        return cls(
            number_of_trees=to_int(data.get("numberOfTrees")),
            variables_per_split=to_int(data.get("variablesPerSplit")),
            min_leaf_population=to_int(data.get("minLeafPopulation")),
            bag_fraction=to_float(data.get("bagFraction")),
            max_nodes=to_int(data.get("maxNodes")),
            seed=to_int(data.get("seed")),
        )

    def create(self) -> ee.Classifier:
        return ee.Classifier.smileRandomForest(**self.parameters())


@dataclass(frozen=True)
class GradientTreeBoostConfig(ClassifierConfig):
    type: ClassVar[ClassifierType] = ClassifierType.GRADIENT_TREE_BOOST

    number_of_trees: int | None = None
    shrinkage: float | None = None
    sampling_rate: float | None = None
    max_nodes: int | None = None
    loss: str | None = None
    seed: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> GradientTreeBoostConfig:
        return cls(
            number_of_trees=to_int(data.get("numberOfTrees")),
            shrinkage=to_float(data.get("shrinkage")),
            sampling_rate=to_float(data.get("samplingRate")),
            max_nodes=to_int(data.get("maxNodes")),
            loss=data.get("loss"),
            seed=to_int(data.get("seed")),
        )

    def create(self) -> ee.Classifier:
        return ee.Classifier.smileGradientTreeBoost(**self.parameters())


@dataclass(frozen=True)
class CartConfig(ClassifierConfig):
    type: ClassVar[ClassifierType] = ClassifierType.CART

    min_leaf_population: int | None = None
    max_nodes: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CartConfig:
        return cls(
            min_leaf_population=to_int(data.get("minLeafPopulation")),
            max_nodes=to_int(data.get("maxNodes")),
        )

    def create(self) -> ee.Classifier:
        return ee.Classifier.smileCart(**self.parameters())


@dataclass(frozen=True)
class NaiveBayesConfig(ClassifierConfig):
    type: ClassVar[ClassifierType] = ClassifierType.NAIVE_BAYES

    smoothing: float | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NaiveBayesConfig:
        return cls(smoothing=to_float(data.get("lambda")))

    def parameters(self) -> dict[str, Any]:
        return {"lambda": self.smoothing}

    def create(self) -> ee.Classifier:
        # `lambda` is a Python keyword, so it goes positionally.
        return ee.Classifier.smileNaiveBayes(self.smoothing)


@dataclass(frozen=True)
class SvmConfig(ClassifierConfig):
    """``ee.Classifier.libsvm`` configuration.

    Kernel- and SVM-type-specific parameters are only carried when they
    apply; otherwise they are ``None``:

    ========= ===========================================
    degree    kernel_type POLY
    gamma     kernel_type POLY, RBF, SIGMOID
    coef0     kernel_type POLY, SIGMOID
    cost      svm_type C_SVC
    nu        svm_type NU_SVC
    one_class svm_type ONE_CLASS
    ========= ===========================================
    """

    type: ClassVar[ClassifierType] = ClassifierType.SVM

    decision_procedure: str | None = None
    svm_type: str | None = None
    kernel_type: str | None = None
    shrinking: bool | None = None
    degree: int | None = None
    gamma: float | None = None
    coef0: float | None = None
    cost: float | None = None
    nu: float | None = None
    one_class: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SvmConfig:
        kernel_type = data.get("kernelType")
        svm_type = data.get("svmType")
        return cls(
            decision_procedure=data.get("decisionProcedure"),
            svm_type=svm_type,
            kernel_type=kernel_type,
            shrinking=data.get("shrinking"),
            degree=to_int(data.get("degree")) if kernel_type == "POLY" else None,
            gamma=(
                to_float(data.get("gamma"))
                if kernel_type in ("POLY", "RBF", "SIGMOID")
                else None
            ),
            coef0=to_float(data.get("coef0")) if kernel_type in ("POLY", "SIGMOID") else None,
            cost=to_float(data.get("cost")) if svm_type == "C_SVC" else None,
            nu=to_float(data.get("nu")) if svm_type == "NU_SVC" else None,
            one_class=to_int(data.get("oneClass")) if svm_type == "ONE_CLASS" else None,
        )

    def create(self) -> ee.Classifier:
        return ee.Classifier.libsvm(**self.parameters())


@dataclass(frozen=True)
class MinimumDistanceConfig(ClassifierConfig):
    type: ClassVar[ClassifierType] = ClassifierType.MINIMUM_DISTANCE

    metric: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MinimumDistanceConfig:
        return cls(metric=data.get("metric"))

    def create(self) -> ee.Classifier:
        return ee.Classifier.minimumDistance(**self.parameters())


@dataclass(frozen=True)
class DecisionTreeConfig(ClassifierConfig):
    """A pre-trained decision tree or tree ensemble.

    ``decision_tree`` is either a JSON array of tree strings (an
    ensemble) or a single tree string.  Training data is ignored and
    only ``CLASSIFICATION`` output is available.
    """

    type: ClassVar[ClassifierType] = ClassifierType.DECISION_TREE

    decision_tree: Any = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DecisionTreeConfig:
        return cls(decision_tree=data.get("decisionTree"))

    def trees(self) -> list[str] | str:
        """Parse the payload into a list of tree strings or a single tree.

        Raises:
            ConfigurationError: If the payload is neither.
        """
        payload = self.decision_tree
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError:
                # Not JSON, most likely a single tree string
                return self.decision_tree
        if isinstance(payload, (list, str)):
            return payload
        raise ConfigurationError(
            "Decision tree must either be a JSON array with decision trees "
            "or a single decision tree string"
        )

    def create(self) -> ee.Classifier:
        trees = self.trees()
        if isinstance(trees, list):
            return ee.Classifier.decisionTreeEnsemble(trees)
        return ee.Classifier.decisionTree(trees)

    def train(self, training_set: TrainingFeatureSet, mode: OutputMode) -> ee.Classifier:
        if mode is not OutputMode.CLASSIFICATION:
            raise UnsupportedOutputError(
                mode.value.lower(), "decision tree classifiers only classify"
            )
        return self.create()

    def apply(
        self,
        image: ee.Image,
        training_set: TrainingFeatureSet,
        mode: OutputMode,
    ) -> ee.Image:
        return image.classify(self.train(training_set, mode))


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

CLASSIFIER_CONFIGS: dict[ClassifierType, type[ClassifierConfig]] = {
    config.type: config
    for config in (
        RandomForestConfig,
        GradientTreeBoostConfig,
        CartConfig,
        NaiveBayesConfig,
        SvmConfig,
        MinimumDistanceConfig,
        DecisionTreeConfig,
    )
}


def parse_classifier_config(data: dict[str, Any]) -> ClassifierConfig:
    """Build the typed configuration for a recipe ``classifier`` dict.

    Raises:
        UnsupportedClassifierError: If ``data["type"]`` is not supported.
    """
    raw_type = data.get("type")
    try:
        classifier_type = ClassifierType(raw_type)
    except ValueError as exc:
        raise UnsupportedClassifierError(
            raw_type, [member.value for member in ClassifierType]
        ) from exc
    return CLASSIFIER_CONFIGS[classifier_type].from_dict(data)
