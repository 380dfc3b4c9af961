"""
Shared fixtures for the Recipe Classifier tests.

Earth Engine is never contacted: tests that build expressions patch the
module-level ``ee`` of the module under test with a ``MagicMock``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import pytest


def make_model(
    *,
    classifier: dict[str, Any] | None = None,
    legend_values: tuple[int, ...] = (1, 2, 5),
    images: list[dict[str, Any]] | None = None,
    data_sets: list[dict[str, Any]] | None = None,
    auxiliary_imagery: list[str] | None = None,
    scale: float | None = None,
) -> dict[str, Any]:
    """Build the ``model`` section of a classification recipe document."""
    colors = ["#006400", "#FFFF00", "#0000FF", "#FF0000", "#FFFFFF"]
    model: dict[str, Any] = {
        "inputImagery": {
            "images": images if images is not None else [
                {
                    "type": "ASSET",
                    "id": "users/alice/landsat_mosaic",
                    "bandSetSpecs": [
                        {"type": "IMAGE_BANDS", "included": ["red", "nir", "ndvi"]},
                        {"type": "PAIR_WISE_EXPRESSION", "operation": "RATIO", "included": ["red", "nir"]},
                    ],
                }
            ]
        },
        "legend": {
            "entries": [
                {"value": value, "color": colors[i % len(colors)], "label": f"class {value}"}
                for i, value in enumerate(legend_values)
            ]
        },
        "trainingData": {"dataSets": data_sets if data_sets is not None else []},
        "auxiliaryImagery": auxiliary_imagery or [],
        "classifier": classifier or {"type": "RANDOM_FOREST", "numberOfTrees": "25"},
    }
    if scale is not None:
        model["scale"] = scale
    return model


def make_document(recipe_id: str = "a1b2", **kwargs: Any) -> dict[str, Any]:
    return {"id": recipe_id, "type": "CLASSIFICATION", "model": make_model(**kwargs)}


@pytest.fixture()
def model() -> dict[str, Any]:
    return make_model()


@pytest.fixture()
def document() -> dict[str, Any]:
    return make_document()


@pytest.fixture()
def recipe_file(tmp_path: Path, document: dict[str, Any]) -> Path:
    """Write the default classification document to ``a1b2.json``."""
    path = tmp_path / "a1b2.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    return path
