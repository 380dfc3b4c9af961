"""
Tests for the output band engine.

Test classes:
    TestOutputBands         Bands a classifier type can produce.
    TestVisParams           Visualisation category selection.
    TestValidate            Fast-fail checks on a band selection.
    TestComputeOutputs      Assembly order and probability stack reuse.
    TestProbabilities       Per-class stack construction.
    TestNormalization       Min-max scaling graph.
"""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from recipe_classifier.classifiers import (
    CartConfig,
    MinimumDistanceConfig,
    OutputMode,
    RandomForestConfig,
    SvmConfig,
)
from recipe_classifier.models import Legend, LegendEntry
from recipe_classifier.outputs import (
    DEFAULT_SCALE,
    NORMALIZE_MAX_PIXELS,
    PROBABILITY_PALETTE,
    OutputBandEngine,
    get_vis_params,
    normalize_image,
    output_bands,
)
from recipe_classifier.training import TrainingFeatureSet
from shared.python.exceptions import ConfigurationError, UnsupportedOutputError


@pytest.fixture()
def legend() -> Legend:
    return Legend((
        LegendEntry(5, "#0000FF"),
        LegendEntry(1, "#00FF00"),
        LegendEntry(2, "#FF0000"),
    ))


@pytest.fixture()
def training_set() -> TrainingFeatureSet:
    return TrainingFeatureSet(collection="features", band_order=["red", "nir"])


# ---------------------------------------------------------------------------
# Band catalogue and visualisation
# ---------------------------------------------------------------------------

class TestOutputBands:
    def test_random_forest(self, legend: Legend) -> None:
        assert output_bands(legend, "RANDOM_FOREST") == [
            "class",
            "regression",
            "class_probability",
            "probability_1",
            "probability_2",
            "probability_5",
        ]

    def test_svm_has_probabilities_but_no_regression(self, legend: Legend) -> None:
        assert output_bands(legend, "SVM") == [
            "class", "class_probability", "probability_1", "probability_2", "probability_5",
        ]

    @pytest.mark.parametrize("classifier_type", ["MINIMUM_DISTANCE", "DECISION_TREE"])
    def test_class_only(self, legend: Legend, classifier_type: str) -> None:
        assert output_bands(legend, classifier_type) == ["class"]


class TestVisParams:
    def test_class_uses_legend_palette(self, legend: Legend) -> None:
        assert get_vis_params(legend, ["probability_1", "class"]) == {
            "bands": "class",
            "min": 1,
            "max": 5,
            "palette": ["#00FF00", "#FF0000", "#0000FF"],
        }

    def test_regression_uses_legend_palette(self, legend: Legend) -> None:
        params = get_vis_params(legend, ["regression", "class_probability"])
        assert params["bands"] == "regression"
        assert (params["min"], params["max"]) == (1, 5)

    def test_class_probability(self, legend: Legend) -> None:
        assert get_vis_params(legend, ["probability_2", "class_probability"]) == {
            "bands": "class_probability",
            "min": 0,
            "max": 100,
            "palette": PROBABILITY_PALETTE,
        }

    def test_first_probability_band(self, legend: Legend) -> None:
        params = get_vis_params(legend, ["probability_5", "probability_1"])
        assert params["bands"] == "probability_5"
        assert (params["min"], params["max"]) == (0, 100)

    @pytest.mark.parametrize("selection", [["foo"], []])
    def test_unrecognised_selection_raises(self, legend: Legend, selection: list[str]) -> None:
        with pytest.raises(ConfigurationError, match="Expected selected bands"):
            get_vis_params(legend, selection)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------

class TestValidate:
    def test_supported_selection(self, legend: Legend) -> None:
        OutputBandEngine(legend, RandomForestConfig()).validate(
            ["class", "regression", "class_probability", "probability_5"]
        )

    def test_probability_outside_legend(self, legend: Legend) -> None:
        with pytest.raises(UnsupportedOutputError) as exc_info:
            OutputBandEngine(legend, RandomForestConfig()).validate(["probability_3"])
        assert exc_info.value.band == "probability_3"

    def test_regression_unsupported(self, legend: Legend) -> None:
        with pytest.raises(UnsupportedOutputError, match="regression"):
            OutputBandEngine(legend, SvmConfig()).validate(["class", "regression"])

    def test_probability_unsupported(self, legend: Legend) -> None:
        with pytest.raises(UnsupportedOutputError, match="probabilities"):
            OutputBandEngine(legend, MinimumDistanceConfig()).validate(["probability_1"])

    def test_unknown_band(self, legend: Legend) -> None:
        with pytest.raises(ConfigurationError, match="unknown output band"):
            OutputBandEngine(legend, RandomForestConfig()).validate(["ndvi"])


# ---------------------------------------------------------------------------
# Assembly
# ---------------------------------------------------------------------------

class TestComputeOutputs:
    def _engine(self, legend: Legend) -> OutputBandEngine:
        engine = OutputBandEngine(legend, RandomForestConfig())
        engine.classification = MagicMock(return_value="class_band")  # type: ignore[method-assign]
        engine.regression = MagicMock(return_value="regression_band")  # type: ignore[method-assign]
        engine.class_probability = MagicMock(return_value="class_probability_band")  # type: ignore[method-assign]
        stack = MagicMock(name="probabilities")
        stack.select.return_value = "probability_bands"
        engine.probabilities = MagicMock(return_value=stack)  # type: ignore[method-assign]
        return engine

    def test_assembly_order(self, legend: Legend, training_set: TrainingFeatureSet) -> None:
        engine = self._engine(legend)
        with patch("recipe_classifier.outputs.ee") as ee:
            engine.compute_outputs(
                "image",
                training_set,
                ["probability_2", "regression", "class_probability", "class"],
            )
        ee.Image.assert_called_once_with([
            "class_band",
            "class_probability_band",
            "regression_band",
            "probability_bands",
        ])

    def test_probability_stack_computed_once(self, legend: Legend, training_set: TrainingFeatureSet) -> None:
        engine = self._engine(legend)
        with patch("recipe_classifier.outputs.ee"):
            engine.compute_outputs("image", training_set, ["class_probability", "probability_1", "probability_5"])
        engine.probabilities.assert_called_once_with("image", training_set)
        engine.probabilities.return_value.select.assert_called_once_with(["probability_1", "probability_5"])

    def test_class_only_trains_no_probabilities(self, legend: Legend, training_set: TrainingFeatureSet) -> None:
        engine = self._engine(legend)
        with patch("recipe_classifier.outputs.ee") as ee:
            engine.compute_outputs("image", training_set, ["class"])
        engine.probabilities.assert_not_called()
        engine.regression.assert_not_called()
        ee.Image.assert_called_once_with(["class_band"])

    def test_class_probability_without_class_band(self, legend: Legend, training_set: TrainingFeatureSet) -> None:
        engine = self._engine(legend)
        with patch("recipe_classifier.outputs.ee") as ee:
            engine.compute_outputs("image", training_set, ["class_probability"])
        engine.class_probability.assert_called_once_with("class_band", engine.probabilities.return_value)
        ee.Image.assert_called_once_with(["class_probability_band"])

    def test_empty_selection_is_empty_image(self, legend: Legend, training_set: TrainingFeatureSet) -> None:
        engine = self._engine(legend)
        with patch("recipe_classifier.outputs.ee") as ee:
            engine.compute_outputs("image", training_set, [])
        ee.Image.assert_called_once_with([])

    def test_unsupported_selection_fails_before_training(self, legend: Legend, training_set: TrainingFeatureSet) -> None:
        engine = OutputBandEngine(legend, CartConfig())
        with patch("recipe_classifier.outputs.ee"), patch("recipe_classifier.classifiers.ee") as classifier_ee:
            with pytest.raises(UnsupportedOutputError):
                engine.compute_outputs("image", training_set, ["class", "probability_9"])
        classifier_ee.Classifier.smileCart.assert_not_called()

    def test_classification_and_regression_are_cast(self, legend: Legend, training_set: TrainingFeatureSet) -> None:
        engine = OutputBandEngine(legend, CartConfig())
        config = MagicMock()
        engine.classifier = config
        engine.classification("image", training_set)
        engine.regression("image", training_set)
        (class_call, regression_call) = config.apply.call_args_list
        assert class_call.args[2] is OutputMode.CLASSIFICATION
        assert regression_call.args[2] is OutputMode.REGRESSION
        config.apply.return_value.uint8.return_value.rename.assert_called_once_with(["class"])
        config.apply.return_value.float.return_value.rename.assert_called_once_with(["regression"])


class TestProbabilities:
    def test_one_band_per_legend_entry_in_legend_order(
        self, legend: Legend, training_set: TrainingFeatureSet
    ) -> None:
        engine = OutputBandEngine(legend, CartConfig())
        config = MagicMock()
        engine.classifier = config
        image = MagicMock(name="image")
        with patch("recipe_classifier.outputs.ee") as ee:
            result = engine.probabilities(image, training_set)

        config.train.assert_called_once_with(training_set, OutputMode.MULTIPROBABILITY)
        image.select.assert_called_once_with(["red", "nir"])
        zero_names = [c.args[0] for c in ee.Image.return_value.clip.return_value.rename.call_args_list]
        assert zero_names == ["probability_5", "probability_1", "probability_2"]
        resolved = ee.Image.return_value
        resolved.addBands.return_value.select.assert_called_once_with(
            ["probability_5", "probability_1", "probability_2"]
        )
        assert result is resolved.addBands.return_value.select.return_value

    def test_class_probability_masks_each_value(self, legend: Legend) -> None:
        engine = OutputBandEngine(legend, CartConfig())
        classification = MagicMock(name="classification")
        probabilities = MagicMock(name="probabilities")
        with patch("recipe_classifier.outputs.ee") as ee:
            engine.class_probability(classification, probabilities)
        assert [c.args[0] for c in classification.neq.call_args_list] == [5, 1, 2]
        probabilities.multiply.return_value.reduce.assert_called_once_with(ee.Reducer.max.return_value)
        probabilities.multiply.return_value.reduce.return_value.rename.assert_called_once_with(
            "class_probability"
        )


# ---------------------------------------------------------------------------
# Normalisation
# ---------------------------------------------------------------------------

class TestNormalization:
    def test_reduce_region_settings(self) -> None:
        image = MagicMock(name="image")
        with patch("recipe_classifier.outputs.ee") as ee:
            normalize_image(image)
        image.reduceRegion.assert_called_once_with(
            reducer=ee.Reducer.minMax.return_value,
            scale=DEFAULT_SCALE,
            bestEffort=True,
            maxPixels=NORMALIZE_MAX_PIXELS,
        )

    def test_recipe_scale(self) -> None:
        image = MagicMock(name="image")
        with patch("recipe_classifier.outputs.ee"):
            normalize_image(image, 10)
        assert image.reduceRegion.call_args.kwargs["scale"] == 10

    def test_band_scaling_branches(self) -> None:
        image = MagicMock(name="image")
        band_min = MagicMock(name="red_min")
        band_max = MagicMock(name="red_max")
        stats = {"red_min": band_min, "red_max": band_max}
        image.reduceRegion.return_value.getNumber.side_effect = stats.__getitem__
        with patch("recipe_classifier.outputs.ee") as ee:
            ee.String.side_effect = lambda value: MagicMock(cat=lambda suffix: f"{value}{suffix}")
            normalize_image(image)
            scale_band, initial = image.bandNames.return_value.iterate.call_args.args
            scale_band("red", initial)

        condition, constant_branch, unit_branch = ee.Algorithms.If.call_args.args
        band_min.eq.assert_called_once_with(band_max)
        assert condition is band_min.eq.return_value

        # Constant band: v / max, so any positive constant becomes 1
        band = image.select.return_value
        band.divide.assert_called_once_with(band_max)
        assert constant_branch is band.divide.return_value

        # Otherwise: (v - min) / (max - min)
        band.subtract.assert_called_once_with(band_min)
        ee.Number.assert_called_once_with(band_max)
        ee.Number.return_value.subtract.assert_called_once_with(band_min)
        band.subtract.return_value.divide.assert_called_once_with(
            ee.Number.return_value.subtract.return_value
        )
        assert unit_branch is band.subtract.return_value.divide.return_value

    def test_properties_and_footprint_preserved(self) -> None:
        image = MagicMock(name="image")
        with patch("recipe_classifier.outputs.ee") as ee:
            normalize_image(image)
        normalized = ee.Image.return_value
        normalized.clip.assert_called_once_with(image.geometry.return_value)
        normalized.clip.return_value.copyProperties.assert_called_once_with(
            image, image.propertyNames.return_value
        )

    def test_prepare_only_for_scale_sensitive(self, legend: Legend) -> None:
        with patch("recipe_classifier.outputs.normalize_image") as normalize:
            assert OutputBandEngine(legend, RandomForestConfig()).prepare("image") == "image"
            OutputBandEngine(legend, SvmConfig(), scale=20).prepare("image")
        normalize.assert_called_once_with("image", 20)
