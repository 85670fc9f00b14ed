import json
import logging
from pathlib import Path
from typing import List, Optional, get_args

from sqlalchemy.orm import Session

from . import conversions, crud, schemas
from .errors import (
    AuthenticationRequired,
    NotFoundOrForbidden,
    ValidationFailure,
    returns_result,
)


logger = logging.getLogger(__name__)

RECIPE_STATUSES = get_args(schemas.RecipeStatus)


def load_recipes(path):
    """Load recipes from a JSON file and return a list of dicts.

    Args:
        path (str or Path): Path to the JSON file.

    Returns:
        list: list of recipe dictionaries, empty if the file is missing.
    """
    p = Path(path)
    if not p.exists():
        return []
    with p.open("r", encoding="utf-8") as f:
        return json.load(f)


def _require_user(user_id):
    if not user_id:
        raise AuthenticationRequired()
    return user_id


@returns_result
def create_recipe(
    db: Session, user_id: Optional[str], data: schemas.RecipeCreate
) -> schemas.Recipe:
    user_id = _require_user(user_id)
    recipe = crud.create_recipe(db, data, owner_id=user_id, status=data.status)
    db.commit()
    db.refresh(recipe)
    logger.info("recipe %s created by %s", recipe.id, user_id)
    return schemas.Recipe.model_validate(recipe)


@returns_result
def get_recipe(
    db: Session,
    recipe_id: str,
    viewer_id: Optional[str] = None,
    servings: Optional[int] = None,
) -> schemas.Recipe:
    recipe = crud.get_recipe(db, recipe_id)
    # unpublished recipes are only shown to their owner
    if recipe is None or (recipe.status != "published" and recipe.created_by != viewer_id):
        raise NotFoundOrForbidden("Recipe not found")
    out = schemas.Recipe.model_validate(recipe)
    if servings and out.servings:
        ratio = servings / out.servings
        for ingredient in out.ingredients:
            ingredient.amount = conversions.scale_amount(ingredient.amount, ratio)
        out.servings = servings
    return out


@returns_result
def list_recipes(db: Session, **filters) -> List[schemas.Recipe]:
    return [schemas.Recipe.model_validate(r) for r in crud.get_recipes(db, **filters)]


@returns_result
def update_recipe(
    db: Session, user_id: Optional[str], recipe_id: str, data: schemas.RecipeCreate
) -> schemas.Recipe:
    user_id = _require_user(user_id)
    recipe = crud.update_recipe(db, recipe_id, user_id, data)
    if recipe is None:
        raise NotFoundOrForbidden("Recipe not found or not permitted")
    db.commit()
    db.refresh(recipe)
    return schemas.Recipe.model_validate(recipe)


@returns_result
def delete_recipe(db: Session, user_id: Optional[str], recipe_id: str) -> None:
    user_id = _require_user(user_id)
    if crud.delete_recipe(db, recipe_id, user_id) == 0:
        raise NotFoundOrForbidden("Recipe not found or not permitted")
    db.commit()
    logger.info("recipe %s deleted by %s", recipe_id, user_id)
    return None


@returns_result
def upsert_profile(
    db: Session, user_id: Optional[str], data: schemas.ProfileUpdate
) -> schemas.Profile:
    user_id = _require_user(user_id)
    profile = crud.upsert_profile(db, user_id, data)
    db.commit()
    db.refresh(profile)
    return schemas.Profile.model_validate(profile)


@returns_result
def update_recipe_status(
    db: Session, user_id: Optional[str], recipe_id: str, status: str
) -> schemas.Recipe:
    user_id = _require_user(user_id)
    if status not in RECIPE_STATUSES:
        raise ValidationFailure("Invalid status")
    if crud.update_recipe_status(db, recipe_id, user_id, status) == 0:
        raise NotFoundOrForbidden("Recipe not found or not permitted")
    db.commit()
    logger.info("recipe %s is now %s", recipe_id, status)
    return schemas.Recipe.model_validate(crud.get_recipe(db, recipe_id))


@returns_result
def list_user_recipes(
    db: Session, profile_id: str, viewer_id: Optional[str] = None
) -> List[schemas.Recipe]:
    # owners also see their drafts and archived recipes
    recipes = crud.get_user_recipes(db, profile_id, published_only=profile_id != viewer_id)
    return [schemas.Recipe.model_validate(r) for r in recipes]


@returns_result
def add_favorite(
    db: Session, user_id: Optional[str], recipe_id: str
) -> schemas.FavoriteRecipe:
    user_id = _require_user(user_id)
    recipe = crud.get_recipe(db, recipe_id)
    if recipe is None or (recipe.status != "published" and recipe.created_by != user_id):
        raise NotFoundOrForbidden("Recipe not found")
    if crud.get_favorite(db, user_id, recipe_id) is not None:
        raise ValidationFailure("Recipe already favorited")
    favorite = crud.insert_favorite(db, user_id, recipe_id)
    db.commit()
    db.refresh(favorite)
    return schemas.FavoriteRecipe.model_validate(favorite)


@returns_result
def remove_favorite(db: Session, user_id: Optional[str], recipe_id: str) -> None:
    user_id = _require_user(user_id)
    if crud.delete_favorite(db, user_id, recipe_id) == 0:
        raise NotFoundOrForbidden("Favorite not found")
    db.commit()
    return None


@returns_result
def list_favorite_recipes(db: Session, user_id: str) -> List[schemas.Recipe]:
    return [
        schemas.Recipe.model_validate(r) for r in crud.list_favorite_recipes(db, user_id)
    ]
