"""
Recipe Classifier
==================
Supervised classification of remote-sensing imagery on Earth Engine,
driven by declarative classification recipes.
"""

from recipe_classifier.classification import ClassificationSession
from recipe_classifier.classifiers import (
    ClassifierConfig,
    ClassifierType,
    OutputMode,
    parse_classifier_config,
    to_float,
    to_int,
)
from recipe_classifier.concurrency import concat, join
from recipe_classifier.covariates import build_feature_image
from recipe_classifier.exporter import ClassificationLayerExporter
from recipe_classifier.indexes import calculate_index, calculate_indexes, supported_indexes
from recipe_classifier.limiter import Limiter, ee_limiter
from recipe_classifier.models import ClassificationRecipe, Legend, LegendEntry
from recipe_classifier.outputs import OutputBandEngine, get_vis_params, normalize_image, output_bands
from recipe_classifier.recipes import (
    AssetImageSource,
    DirectoryRecipeLoader,
    HttpRecipeLoader,
    RecipeLoader,
    RecipeRef,
    create_recipe,
    image_source_for,
)
from recipe_classifier.training import TrainingDataAssembler, TrainingFeatureSet

__all__ = [
    "ClassificationSession",
    "ClassificationRecipe",
    "Legend",
    "LegendEntry",
    "ClassifierConfig",
    "ClassifierType",
    "OutputMode",
    "parse_classifier_config",
    "to_int",
    "to_float",
    "build_feature_image",
    "calculate_index",
    "calculate_indexes",
    "supported_indexes",
    "TrainingDataAssembler",
    "TrainingFeatureSet",
    "OutputBandEngine",
    "normalize_image",
    "output_bands",
    "get_vis_params",
    "join",
    "concat",
    "Limiter",
    "ee_limiter",
    "RecipeLoader",
    "HttpRecipeLoader",
    "DirectoryRecipeLoader",
    "RecipeRef",
    "AssetImageSource",
    "create_recipe",
    "image_source_for",
    "ClassificationLayerExporter",
]
