from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from loguru import logger

from emucloud.api.model import Recipe
from emucloud.providers.genycloud.exec import GenyCloudExec

log = logger.bind(component="recipes")


class RecipeQuerying:
    """Resolves a device query to a single Genymotion recipe.

    Accepts ``{"recipeUUID": ...}``, ``{"recipeName": ...}`` or a bare string
    (treated as a recipe name). Returns None when nothing matches.
    """

    def __init__(self, exec_: GenyCloudExec) -> None:
        self._exec = exec_

    async def find(self, query: Any) -> Recipe | None:
        match query:
            case str() as name:
                return await self._by_name(name)
            case Mapping() if query.get("recipeUUID"):
                return await self._by_uuid(str(query["recipeUUID"]))
            case Mapping() if query.get("recipeName"):
                return await self._by_name(str(query["recipeName"]))
            case _:
                return None

    async def _by_name(self, name: str) -> Recipe | None:
        recipes = await self._list(name)
        exact = [r for r in recipes if r.name == name]
        if exact:
            return exact[0]
        if len(recipes) == 1:
            return recipes[0]
        if recipes:
            log.warning(
                "Query {query!r} matches {n} recipes, none exactly: {names}",
                query=name, n=len(recipes), names=[r.name for r in recipes],
            )
        return None

    async def _by_uuid(self, uuid: str) -> Recipe | None:
        return next((r for r in await self._list() if r.uuid == uuid), None)

    async def _list(self, name: str | None = None) -> list[Recipe]:
        result = await self._exec.get_recipes(name)
        return [Recipe.from_json(item) for item in result.get("recipes", [])]
