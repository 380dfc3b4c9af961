"""
Recipe Classifier — CLI Entry Point
=====================================
Installed as the ``geo-classify`` command via ``pyproject.toml``.

Usage:
    geo-classify --recipe recipes/forest.json --output output/forest_layer.json \\
                 --bands class,class_probability --project my-ee-project

    geo-classify --recipe recipes/forest.json --list-bands
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from recipe_classifier.exporter import ClassificationLayerExporter, list_bands
from recipe_classifier.limiter import (
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_RATE,
    DEFAULT_RATE_WINDOW_MS,
    Limiter,
)
from recipe_classifier.recipes import DirectoryRecipeLoader, HttpRecipeLoader
from shared.python.exceptions import RecipeClassifierError


@click.command(
    name="geo-classify",
    help="Classify a recipe on Earth Engine and write its map layer description.",
)
@click.option(
    "--recipe", "-r", "recipe_path",
    required=True,
    type=click.Path(exists=True, file_okay=True, dir_okay=False, path_type=Path),
    help="Path to the classification recipe JSON document.",
)
@click.option(
    "--output", "-o", "output_path",
    default=None,
    type=click.Path(file_okay=True, dir_okay=False, path_type=Path),
    help="Path for the output layer JSON file.",
)
@click.option(
    "--bands",
    default="class",
    show_default=True,
    help="Comma-separated list of output bands (class, regression, "
         "class_probability, probability_<value>).",
)
@click.option(
    "--list-bands", "list_bands_only",
    is_flag=True,
    default=False,
    help="Print the bands the recipe can produce and exit.",
)
@click.option(
    "--project",
    default=None,
    envvar="EE_PROJECT",
    help="Google Cloud project for Earth Engine. "
         "Can also be set via the EE_PROJECT environment variable.",
)
@click.option(
    "--recipe-host",
    default=None,
    envvar="RECIPE_HOST",
    help="Host of the recipe store used to resolve referenced recipes. "
         "Without it, referenced recipes are read from the recipe's directory.",
)
@click.option("--recipe-username", default=None, envvar="RECIPE_USERNAME", help="Recipe store user name.")
@click.option("--recipe-password", default=None, envvar="RECIPE_PASSWORD", help="Recipe store password.")
@click.option(
    "--max-rate",
    default=DEFAULT_MAX_RATE,
    show_default=True,
    type=click.IntRange(min=1),
    help="Earth Engine requests started per rate window.",
)
@click.option(
    "--rate-window-ms",
    default=DEFAULT_RATE_WINDOW_MS,
    show_default=True,
    type=click.IntRange(min=1),
    help="Length of the rate window in milliseconds.",
)
@click.option(
    "--max-concurrency",
    default=DEFAULT_MAX_CONCURRENCY,
    show_default=True,
    type=click.IntRange(min=1),
    help="Earth Engine requests in flight at once.",
)
@click.option("--verbose", "-v", is_flag=True, default=False, help="Enable debug logging.")
def main(
    recipe_path: Path,
    output_path: Path | None,
    bands: str,
    list_bands_only: bool,
    project: str | None,
    recipe_host: str | None,
    recipe_username: str | None,
    recipe_password: str | None,
    max_rate: int,
    rate_window_ms: int,
    max_concurrency: int,
    verbose: bool,
) -> None:
    """CLI entry point — wires Click options into ClassificationLayerExporter."""
    try:
        if list_bands_only:
            for band in list_bands(recipe_path):
                click.echo(band)
            return

        if output_path is None:
            click.echo("Error: --output is required unless --list-bands is given", err=True)
            sys.exit(1)

        if recipe_host:
            loader = HttpRecipeLoader(recipe_host, recipe_username, recipe_password)
        else:
            loader = DirectoryRecipeLoader(recipe_path.parent)

        selection = [b.strip() for b in bands.split(",") if b.strip()]
        tool = ClassificationLayerExporter(
            input_path=recipe_path,
            output_path=output_path,
            bands=selection,
            loader=loader,
            project=project,
            limiter=Limiter(
                name="EE",
                rate_window_ms=rate_window_ms,
                max_rate=max_rate,
                max_concurrency=max_concurrency,
            ),
            verbose=verbose,
        )
        tool.run()
        click.echo(f"\nLayer written to: {output_path}")
        click.echo(f"Tile URL: {tool.layer['tile_url']}")
    except RecipeClassifierError as exc:
        click.echo(f"Error: {exc.message}", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
