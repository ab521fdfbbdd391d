"""Recipe recommendation through the long-running recommendation worker."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any

from pydantic import ValidationError

from app.clients.catalog import IngredientCatalog, InventoryLedger, RecipeCatalog
from app.clients.worker_process import (
    ResponseUnparseable,
    WorkerInvoker,
    WorkerProfile,
    WorkerReportedFailure,
)
from app.schemas import (
    DEFAULT_QUERY_TEXT,
    RecipeSummary,
    RecommendationRequest,
    RecommendationResponse,
)
from app.services.result_projector import ResultProjector, unique_in_order

logger = logging.getLogger(__name__)


class UnknownIngredientsError(ValueError):
    """Raised when none of the selected ingredients exist in the catalog."""


class RecommendationService:
    """Assemble the worker request, run the worker and resolve its ranking."""

    def __init__(
        self,
        *,
        invoker: WorkerInvoker,
        profile: WorkerProfile,
        projector: ResultProjector,
        ingredients: IngredientCatalog,
        recipes: RecipeCatalog,
        inventory: InventoryLedger,
        candidate_limit: int = 200,
    ) -> None:
        self._invoker = invoker
        self._profile = profile
        self._projector = projector
        self._ingredients = ingredients
        self._recipes = recipes
        self._inventory = inventory
        self._candidate_limit = candidate_limit

    async def recommend(
        self, *, user_id: str, request: RecommendationRequest
    ) -> list[RecipeSummary]:
        selected_ids = await asyncio.to_thread(
            self._selected_ingredient_ids, request.query.selected_ingredients
        )
        if not selected_ids:
            raise UnknownIngredientsError(
                "None of the selected ingredients are known to the catalog."
            )

        owned_ids = await asyncio.to_thread(self._inventory.owned_ingredient_ids, user_id)
        candidates = await asyncio.to_thread(
            self._recipes.find_candidates,
            selected_ids,
            require_main=request.require_main,
            limit=self._candidate_limit,
        )
        if not candidates:
            logger.info("No recipe candidates for user %s; skipping worker", user_id)
            return []

        payload: dict[str, Any] = {
            "userId": user_id,
            "ownedIngredientIds": owned_ids,
            "query": {
                "queryText": request.query.query_text.strip() or DEFAULT_QUERY_TEXT,
                "selectedIngredientIds": selected_ids,
            },
            "requireMain": request.require_main,
            "candidates": [
                candidate.model_dump(by_alias=True) for candidate in candidates
            ],
        }
        logger.info(
            "Requesting recommendations: user=%s candidates=%d selected=%d",
            user_id,
            len(candidates),
            len(selected_ids),
        )
        started = time.monotonic()
        document = await self._invoker.invoke(self._profile, payload)

        try:
            response = RecommendationResponse.model_validate(document)
        except ValidationError as exc:
            raise ResponseUnparseable(
                "The recommendation worker response is missing required fields.",
                preview=str(document)[:500],
            ) from exc
        if not response.success:
            raise WorkerReportedFailure(
                response.message or "Recipe recommendation failed."
            )

        recipe_ids = self._projector.recommendation_ids(response.recommendations)
        recipes = await asyncio.to_thread(self._recipes.get_recipes, recipe_ids)
        logger.info(
            "Recommendation finished in %dms with %d recipe(s)",
            int((time.monotonic() - started) * 1000),
            len(recipes),
        )
        return recipes

    def _selected_ingredient_ids(self, selected: list[int | str]) -> list[int]:
        ids: list[int] = []
        names: list[str] = []
        for value in selected:
            if isinstance(value, int):
                ids.append(value)
            elif value.strip().isdigit():
                ids.append(int(value.strip()))
            else:
                names.append(value.strip())
        if names:
            by_name = self._ingredients.lookup_ids(names)
            missing = [name for name in names if name not in by_name]
            if missing:
                logger.info("Ignoring unknown ingredient names: %s", ", ".join(missing))
            ids.extend(by_name[name] for name in names if name in by_name)
        return unique_in_order(ids)


__all__ = ["RecommendationService", "UnknownIngredientsError"]
