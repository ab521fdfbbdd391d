"""
Pydantic models for recipe recommendation requests and the recommendation worker.
"""

from __future__ import annotations

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_QUERY_TEXT = "레시피"


class RecommendationQuery(BaseModel):
    query_text: str = Field(
        "",
        description="Free-text topic for the recommendation; blank uses a default.",
    )
    selected_ingredients: List[Union[int, str]] = Field(
        ...,
        min_length=1,
        description="Ingredient master ids or ingredient names picked by the user.",
    )


class RecommendationRequest(BaseModel):
    """Body of ``POST /api/recipes/recommend``."""

    query: RecommendationQuery
    require_main: bool = Field(
        False,
        description="Only recommend recipes whose main ingredient was selected.",
    )


class RecipeCandidate(BaseModel):
    """Pre-filtered recipe handed to the recommendation worker."""

    recipe_id: int = Field(..., serialization_alias="recipeId")
    title: str
    ingredient_ids: List[int] = Field(default_factory=list, serialization_alias="ingredientIds")
    main_ingredient_ids: List[int] = Field(
        default_factory=list, serialization_alias="mainIngredientIds"
    )


class RecommendationResponse(BaseModel):
    """Document printed on stdout by the recommendation worker."""

    model_config = ConfigDict(extra="allow")

    success: bool
    message: Optional[str] = None
    result_code: Optional[int] = None
    recommendations: List[Any] = Field(default_factory=list)


class RecipeSummary(BaseModel):
    """Recipe row returned to the client."""

    id: int
    title: str
    description: Optional[str] = None
    main_image_url: Optional[str] = None
    required_ingredients: List[str] = Field(default_factory=list)


__all__ = [
    "DEFAULT_QUERY_TEXT",
    "RecipeCandidate",
    "RecipeSummary",
    "RecommendationQuery",
    "RecommendationRequest",
    "RecommendationResponse",
]
