"""
SQLite read contracts for the ingredient catalog, recipe catalog and inventory.

These tables belong to the wider recipe application; the job subsystem only
reads them. The ``add``/``record`` helpers exist for seeding local databases.
"""

from __future__ import annotations

import json
import sqlite3
from pathlib import Path
from typing import Iterable, Sequence

from app.schemas import RecipeCandidate, RecipeSummary, ResolvedIngredient


class _SQLiteTable:
    def __init__(self, db_path: str | Path) -> None:
        self._db_path = Path(db_path)
        if self._db_path.parent and not self._db_path.parent.exists():
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        return conn

    def _ensure_schema(self) -> None:
        raise NotImplementedError


def _placeholders(values: Sequence[object]) -> str:
    return ", ".join("?" for _ in values)


class IngredientCatalog(_SQLiteTable):
    """Ingredient master list: id to display name."""

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS ingredient_master (
                    id INTEGER PRIMARY KEY,
                    name TEXT NOT NULL UNIQUE
                )
                """
            )

    def add(self, ingredient_id: int, name: str) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO ingredient_master (id, name) VALUES (?, ?)
                ON CONFLICT(id) DO UPDATE SET name = excluded.name
                """,
                (ingredient_id, name),
            )

    def resolve(self, ids: Sequence[int]) -> list[ResolvedIngredient]:
        """Return display records in the order of ``ids``; unknown ids are dropped."""
        if not ids:
            return []
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT id, name FROM ingredient_master WHERE id IN ({_placeholders(ids)})",
                tuple(ids),
            ).fetchall()
        names = {row["id"]: row["name"] for row in rows}
        return [
            ResolvedIngredient(id=ingredient_id, display_name=names[ingredient_id])
            for ingredient_id in ids
            if ingredient_id in names
        ]

    def lookup_ids(self, names: Sequence[str]) -> dict[str, int]:
        cleaned = [name.strip() for name in names if name and name.strip()]
        if not cleaned:
            return {}
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT id, name FROM ingredient_master WHERE name IN ({_placeholders(cleaned)})",
                tuple(cleaned),
            ).fetchall()
        return {row["name"]: row["id"] for row in rows}


class RecipeCatalog(_SQLiteTable):
    """Recipes with their ingredient and main-ingredient ids."""

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS recipes (
                    id INTEGER PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT,
                    main_image_url TEXT,
                    ingredient_ids TEXT NOT NULL DEFAULT '[]',
                    main_ingredient_ids TEXT NOT NULL DEFAULT '[]',
                    required_ingredients TEXT NOT NULL DEFAULT '[]'
                )
                """
            )

    def add(
        self,
        *,
        recipe_id: int,
        title: str,
        ingredient_ids: Iterable[int],
        main_ingredient_ids: Iterable[int] = (),
        required_ingredients: Iterable[str] = (),
        description: str | None = None,
        main_image_url: str | None = None,
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO recipes (
                    id, title, description, main_image_url,
                    ingredient_ids, main_ingredient_ids, required_ingredients
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    recipe_id,
                    title,
                    description,
                    main_image_url,
                    json.dumps(list(ingredient_ids)),
                    json.dumps(list(main_ingredient_ids)),
                    json.dumps(list(required_ingredients), ensure_ascii=False),
                ),
            )

    def find_candidates(
        self,
        selected_ids: Sequence[int],
        *,
        require_main: bool,
        limit: int,
    ) -> list[RecipeCandidate]:
        """Recipes sharing an ingredient with the selection, main ingredient optional."""
        selected = set(selected_ids)
        if not selected:
            return []
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT id, title, ingredient_ids, main_ingredient_ids FROM recipes ORDER BY id"
            ).fetchall()

        candidates: list[RecipeCandidate] = []
        for row in rows:
            ingredient_ids = json.loads(row["ingredient_ids"])
            main_ids = json.loads(row["main_ingredient_ids"])
            if not selected.intersection(ingredient_ids):
                continue
            if require_main and not selected.intersection(main_ids):
                continue
            candidates.append(
                RecipeCandidate(
                    recipe_id=row["id"],
                    title=row["title"],
                    ingredient_ids=ingredient_ids,
                    main_ingredient_ids=main_ids,
                )
            )
            if len(candidates) >= limit:
                break
        return candidates

    def get_recipes(self, ids: Sequence[int]) -> list[RecipeSummary]:
        """Return recipe rows in the order of ``ids``; unknown ids are dropped."""
        if not ids:
            return []
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT * FROM recipes WHERE id IN ({_placeholders(ids)})",
                tuple(ids),
            ).fetchall()
        by_id = {
            row["id"]: RecipeSummary(
                id=row["id"],
                title=row["title"],
                description=row["description"],
                main_image_url=row["main_image_url"],
                required_ingredients=json.loads(row["required_ingredients"]),
            )
            for row in rows
        }
        return [by_id[recipe_id] for recipe_id in ids if recipe_id in by_id]


class InventoryLedger(_SQLiteTable):
    """Which ingredient master ids a user currently owns."""

    def _ensure_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS user_ingredients (
                    user_id TEXT NOT NULL,
                    ingredient_master_id INTEGER NOT NULL,
                    PRIMARY KEY (user_id, ingredient_master_id)
                )
                """
            )

    def record(self, user_id: str, ingredient_id: int) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT OR IGNORE INTO user_ingredients (user_id, ingredient_master_id) "
                "VALUES (?, ?)",
                (user_id, ingredient_id),
            )

    def owned_ingredient_ids(self, user_id: str) -> list[int]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT ingredient_master_id FROM user_ingredients "
                "WHERE user_id = ? ORDER BY ingredient_master_id",
                (user_id,),
            ).fetchall()
        return [row["ingredient_master_id"] for row in rows]


__all__ = ["IngredientCatalog", "InventoryLedger", "RecipeCatalog"]
