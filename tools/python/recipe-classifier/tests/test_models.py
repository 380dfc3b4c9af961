"""
Tests for the recipe model.

Test classes:
    TestLegend               Ordering, palette and probability band names.
    TestTrainingSources      RECIPE / DIRECT source parsing.
    TestBandSetSpec          Band set parsing and aliases.
    TestClassificationRecipe Whole-model parsing and validation errors.
"""

from __future__ import annotations

from typing import Any

import pytest

from conftest import make_model
from recipe_classifier.classifiers import ClassifierType
from recipe_classifier.models import (
    AuxiliaryKind,
    BandSetSpec,
    BandSetType,
    ClassificationRecipe,
    DirectTrainingSource,
    ImageRecipeRef,
    ImageRecipeType,
    Legend,
    LegendEntry,
    PairwiseOperation,
    RecipeTrainingSource,
    ReferencePoint,
    parse_training_source,
)
from shared.python.exceptions import ConfigurationError


class TestLegend:
    def _legend(self, *values: int) -> Legend:
        colors = {1: "#111111", 2: "#222222", 5: "#555555"}
        return Legend(tuple(LegendEntry(value, colors.get(value, "#000000")) for value in values))

    def test_min_max_and_palette_follow_value_order(self) -> None:
        legend = self._legend(5, 1, 2)
        assert legend.min_value == 1
        assert legend.max_value == 5
        assert legend.palette == ["#111111", "#222222", "#555555"]

    def test_probability_band_names_declaration_order(self) -> None:
        legend = self._legend(5, 1, 2)
        assert legend.probability_band_names() == ["probability_5", "probability_1", "probability_2"]

    def test_probability_band_names_ascending(self) -> None:
        legend = self._legend(5, 1, 2)
        assert legend.probability_band_names(ascending=True) == [
            "probability_1", "probability_2", "probability_5",
        ]

    def test_duplicate_values_raise(self) -> None:
        with pytest.raises(ConfigurationError, match="more than once"):
            self._legend(1, 2, 1)

    def test_empty_legend_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="must not be empty"):
            Legend(())

    def test_invalid_entry_raises(self) -> None:
        with pytest.raises(ConfigurationError):
            LegendEntry.from_dict({"value": "forest", "color": "#00FF00"})

    def test_fractional_value_raises(self) -> None:
        with pytest.raises(ConfigurationError, match="must be an integer"):
            LegendEntry.from_dict({"value": 1.5, "color": "#00FF00"})

    def test_integral_float_value_accepted(self) -> None:
        assert LegendEntry.from_dict({"value": 2.0, "color": "#00FF00"}).value == 2


class TestTrainingSources:
    def test_recipe_source(self) -> None:
        source = parse_training_source({"type": "RECIPE", "recipe": "r1"})
        assert source == RecipeTrainingSource(recipe_id="r1")

    def test_recipe_source_without_id_raises(self) -> None:
        with pytest.raises(ConfigurationError):
            parse_training_source({"type": "RECIPE"})

    def test_other_types_carry_reference_points(self) -> None:
        source = parse_training_source({
            "type": "CSV_UPLOAD",
            "referenceData": [{"x": 10.5, "y": -3, "class": 2}, {"x": "11", "y": "4", "class": "1"}],
        })
        assert source == DirectTrainingSource(points=(
            ReferencePoint(x=10.5, y=-3.0, class_value=2),
            ReferencePoint(x=11.0, y=4.0, class_value=1),
        ))

    def test_missing_reference_data_is_empty(self) -> None:
        assert parse_training_source({"type": "SAMPLE_CLASSIFICATION"}) == DirectTrainingSource()


class TestBandSetSpec:
    def test_pairwise_expression(self) -> None:
        spec = BandSetSpec.from_dict({
            "type": "PAIR_WISE_EXPRESSION",
            "operation": "NORMALIZED_DIFFERENCE",
            "included": ["red", "nir"],
        })
        assert spec.type is BandSetType.PAIR_WISE_EXPRESSION
        assert spec.operation is PairwiseOperation.NORMALIZED_DIFFERENCE
        assert spec.included == ("red", "nir")

    def test_pairwise_alias(self) -> None:
        spec = BandSetSpec.from_dict({"type": "PAIRWISE_EXPRESSION", "operation": "RATIO", "included": []})
        assert spec.type is BandSetType.PAIR_WISE_EXPRESSION

    def test_operation_only_for_pairwise(self) -> None:
        spec = BandSetSpec.from_dict({"type": "INDEXES", "operation": "RATIO", "included": ["ndvi"]})
        assert spec.operation is None

    @pytest.mark.parametrize(
        "data",
        [
            {"type": "HISTOGRAM", "included": []},
            {"type": "PAIR_WISE_EXPRESSION", "operation": "PRODUCT", "included": []},
        ],
    )
    def test_unknown_values_raise(self, data: dict[str, Any]) -> None:
        with pytest.raises(ConfigurationError, match="Expected one of"):
            BandSetSpec.from_dict(data)

    def test_image_ref_requires_id(self) -> None:
        with pytest.raises(ConfigurationError):
            ImageRecipeRef.from_dict({"type": "ASSET"})


class TestClassificationRecipe:
    def test_parses_full_model(self) -> None:
        recipe = ClassificationRecipe.from_dict(make_model(
            data_sets=[
                {"type": "RECIPE", "recipe": "r1"},
                {"type": "CSV_UPLOAD", "referenceData": [{"x": 1, "y": 2, "class": 1}]},
            ],
            auxiliary_imagery=["LATITUDE", "WATER"],
            scale=10,
        ))
        assert recipe.input_imagery[0].type is ImageRecipeType.ASSET
        assert len(recipe.input_imagery[0].band_set_specs) == 2
        assert recipe.legend.values == [1, 2, 5]
        assert recipe.classifier.type is ClassifierType.RANDOM_FOREST
        assert recipe.auxiliary_imagery == (AuxiliaryKind.LATITUDE, AuxiliaryKind.WATER)
        assert recipe.scale == 10.0
        assert recipe.training_data[0] == RecipeTrainingSource("r1")
        assert isinstance(recipe.training_data[1], DirectTrainingSource)

    def test_missing_scale_is_none(self) -> None:
        assert ClassificationRecipe.from_dict(make_model()).scale is None

    @pytest.mark.parametrize("scale", ["abc", "", 0])
    def test_unparseable_scale_is_none(self, scale: Any) -> None:
        assert ClassificationRecipe.from_dict(make_model(scale=scale)).scale is None

    def test_numeric_string_scale(self) -> None:
        assert ClassificationRecipe.from_dict(make_model(scale="20")).scale == 20.0

    def test_missing_section_raises(self) -> None:
        model = make_model()
        del model["legend"]
        with pytest.raises(ConfigurationError, match="missing"):
            ClassificationRecipe.from_dict(model)

    def test_unknown_auxiliary_raises(self) -> None:
        with pytest.raises(ConfigurationError):
            ClassificationRecipe.from_dict(make_model(auxiliary_imagery=["CLOUDS"]))
