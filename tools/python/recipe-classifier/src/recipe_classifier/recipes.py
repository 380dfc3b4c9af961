"""
Recipe Classifier — Recipe Resolution
=======================================
Loads recipe documents and turns them, or input imagery references,
into image sources.

Classes:
    RecipeLoader            Strategy ABC for fetching recipe documents.
    HttpRecipeLoader        Fetches documents from a recipe store over HTTPS.
    DirectoryRecipeLoader   Reads ``<recipe id>.json`` files from a directory.
    ImageSource             Common async surface of every image source.
    AssetImageSource        An Earth Engine image asset.
    RecipeRef               A recipe resolved lazily by id.

A recipe document is the JSON object a recipe store returns::

    {"id": "a1b2", "type": "CLASSIFICATION", "model": {...}}

Usage::

    loader = HttpRecipeLoader("recipes.example.org", "alice", "secret")
    source = RecipeRef("a1b2", loader)
    band_names = await source.get_bands()
"""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Sequence

import ee
import requests

from recipe_classifier.limiter import Limiter, ee_limiter
from recipe_classifier.models import ClassificationRecipe, ImageRecipeRef, ImageRecipeType
from shared.python.exceptions import ConfigurationError, UpstreamResolutionError
from shared.python.validators import Validators

logger = logging.getLogger("recipe_classifier.recipes")


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------


class RecipeLoader(ABC):
    """Abstract strategy for fetching recipe documents by id."""

    @abstractmethod
    async def load_recipe(self, recipe_id: str) -> dict[str, Any]:
        """Fetch the recipe document with id *recipe_id*.

        Raises:
            UpstreamResolutionError: If the document cannot be fetched
                or parsed.
        """


class HttpRecipeLoader(RecipeLoader):
    """Recipe loader backed by the recipe store's HTTP API.

    Documents are read from ``https://<host>/api/processing-recipes/<id>``
    with HTTP basic authentication.  The blocking request runs in a
    worker thread.

    Args:
        host: Host name of the recipe store.
        username: Basic-auth user name.
        password: Basic-auth password.
        timeout: HTTP request timeout in seconds.
    """

    def __init__(
        self,
        host: str,
        username: str | None = None,
        password: str | None = None,
        timeout: int = 30,
    ) -> None:
        self.host = host
        self.timeout = timeout
        self._session = requests.Session()
        if username is not None:
            self._session.auth = (username, password or "")

    def url(self, recipe_id: str) -> str:
        return f"https://{self.host}/api/processing-recipes/{recipe_id}"

    def _fetch(self, recipe_id: str) -> dict[str, Any]:
        try:
            response = self._session.get(self.url(recipe_id), timeout=self.timeout)
        except requests.RequestException as exc:
            raise UpstreamResolutionError(recipe_id, str(exc)) from exc

        if not response.ok:
            raise UpstreamResolutionError(recipe_id, f"HTTP {response.status_code}")

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamResolutionError(recipe_id, f"invalid JSON: {exc}") from exc

    async def load_recipe(self, recipe_id: str) -> dict[str, Any]:
        logger.debug("Loading recipe %s from %s", recipe_id, self.host)
        return await asyncio.to_thread(self._fetch, recipe_id)


class DirectoryRecipeLoader(RecipeLoader):
    """Recipe loader reading ``<recipe id>.json`` files from *directory*."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    async def load_recipe(self, recipe_id: str) -> dict[str, Any]:
        path = self.directory / f"{recipe_id}.json"
        try:
            with open(path, encoding="utf-8") as fh:
                return json.load(fh)
        except OSError as exc:
            raise UpstreamResolutionError(recipe_id, f"cannot read '{path}': {exc}") from exc
        except ValueError as exc:
            raise UpstreamResolutionError(recipe_id, f"invalid JSON in '{path}': {exc}") from exc


# ---------------------------------------------------------------------------
# Image sources
# ---------------------------------------------------------------------------


class ImageSource(ABC):
    """Asynchronous surface shared by recipes, references and assets."""

    @abstractmethod
    async def get_image(self) -> ee.Image:
        """The image this source produces."""

    @abstractmethod
    async def get_bands(self) -> list[str]:
        """Names of the bands this source can produce."""

    @abstractmethod
    async def get_geometry(self) -> ee.Geometry:
        """Footprint of the image."""

    async def get_vis_params(self) -> dict[str, Any]:
        raise ConfigurationError(f"{self.__class__.__name__} has no visualization parameters")

    async def get_training_data(self, band_order: Any = None) -> Any:
        raise ConfigurationError(f"{self.__class__.__name__} has no training data")


class AssetImageSource(ImageSource):
    """An Earth Engine image asset used as-is."""

    def __init__(self, asset_id: str, limiter: Limiter = ee_limiter) -> None:
        self.asset_id = asset_id
        self.limiter = limiter

    def image(self) -> ee.Image:
        return ee.Image(self.asset_id)

    async def get_image(self) -> ee.Image:
        return self.image()

    async def get_bands(self) -> list[str]:
        return await self.limiter.evaluate(self.image().bandNames())

    async def get_geometry(self) -> ee.Geometry:
        return self.image().geometry()

    def __repr__(self) -> str:
        return f"AssetImageSource(asset_id={self.asset_id!r})"


class RecipeRef(ImageSource):
    """A recipe referenced by id, loaded on first use.

    The document is fetched through *limiter* and turned into an image
    source with :func:`create_recipe`; every public method then delegates
    to that source.

    Args:
        recipe_id: Id of the referenced recipe.
        loader: Loader used to fetch the document.
        limiter: Admission control for the fetch.
        selection: Output bands requested from the referenced recipe.
    """

    def __init__(
        self,
        recipe_id: str,
        loader: RecipeLoader,
        limiter: Limiter = ee_limiter,
        selection: Sequence[str] = (),
    ) -> None:
        self.recipe_id = recipe_id
        self.loader = loader
        self.limiter = limiter
        self.selection = list(selection)
        self._recipe: ImageSource | None = None
        self._load_lock: asyncio.Lock | None = None
        self._loop: asyncio.AbstractEventLoop | None = None

    def _lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._loop is not loop:
            self._loop = loop
            self._load_lock = asyncio.Lock()
        return self._load_lock  # type: ignore[return-value]

    async def get_recipe(self) -> ImageSource:
        """Load and build the referenced recipe.

        Raises:
            UpstreamResolutionError: If the document cannot be fetched,
                or does not describe a usable recipe.
        """
        if self._recipe is not None:
            return self._recipe
        # Concurrent first callers share one fetch
        async with self._lock():
            if self._recipe is None:
                async with self.limiter:
                    document = await self.loader.load_recipe(self.recipe_id)
                try:
                    self._recipe = create_recipe(document, self.loader, self.limiter, self.selection)
                except ConfigurationError as exc:
                    raise UpstreamResolutionError(self.recipe_id, exc.message) from exc
                logger.debug("Resolved recipe %s", self.recipe_id)
        return self._recipe

    async def get_image(self) -> ee.Image:
        return await (await self.get_recipe()).get_image()

    async def get_bands(self) -> list[str]:
        return await (await self.get_recipe()).get_bands()

    async def get_vis_params(self) -> dict[str, Any]:
        return await (await self.get_recipe()).get_vis_params()

    async def get_geometry(self) -> ee.Geometry:
        return await (await self.get_recipe()).get_geometry()

    async def get_training_data(self, band_order: Any = None) -> Any:
        return await (await self.get_recipe()).get_training_data(band_order)

    def __repr__(self) -> str:
        return f"RecipeRef(recipe_id={self.recipe_id!r})"


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


def image_source_for(
    ref: ImageRecipeRef,
    loader: RecipeLoader,
    limiter: Limiter = ee_limiter,
) -> ImageSource:
    """Image source for one input imagery reference of a recipe."""
    if ref.type is ImageRecipeType.ASSET:
        return AssetImageSource(ref.id, limiter)
    return RecipeRef(ref.id, loader, limiter)


def create_recipe(
    document: dict[str, Any],
    loader: RecipeLoader,
    limiter: Limiter = ee_limiter,
    selection: Sequence[str] = (),
) -> ImageSource:
    """Build the image source a recipe document describes.

    Args:
        document: The recipe document.
        loader: Loader for recipes the document references.
        limiter: Admission control for remote round trips.
        selection: Requested output bands.

    Raises:
        ConfigurationError: If the recipe type is not supported or the
            model is invalid.
    """
    # Imported here: a classification session builds its own sources with
    # this module.
    from recipe_classifier.classification import ClassificationSession

    if not isinstance(document, dict):
        raise ConfigurationError(f"Expected a recipe document object, got {type(document).__name__}")
    recipe_type = document.get("type")
    if recipe_type == "CLASSIFICATION":
        Validators.assert_not_empty(document.get("model") or {}, "Recipe model")
        recipe = ClassificationRecipe.from_dict(document["model"])
        return ClassificationSession(
            recipe,
            loader,
            limiter=limiter,
            selection=selection,
            recipe_id=document.get("id"),
        )
    if recipe_type == ImageRecipeType.ASSET.value:
        asset_id = document.get("id") or (document.get("model") or {}).get("id")
        if not asset_id:
            raise ConfigurationError("ASSET recipe without an asset id")
        return AssetImageSource(str(asset_id), limiter)
    raise ConfigurationError(f"Unsupported recipe type: {recipe_type!r}")
