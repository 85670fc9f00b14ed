"""Star ratings on recipes: one rating per user per recipe, plus aggregate stats."""
import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from . import crud, models, schemas
from .errors import (
    AuthenticationRequired,
    NotFoundOrForbidden,
    ValidationFailure,
    returns_result,
)


logger = logging.getLogger(__name__)


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise AuthenticationRequired("Authentication required")
    return user_id


def _check_rating(rating) -> int:
    if not 1 <= int(rating) <= 5:
        raise ValidationFailure("Rating must be between 1 and 5")
    return int(rating)


def _get_ratable_recipe(db: Session, recipe_id: str, user_id: Optional[str]):
    recipe = crud.get_recipe(db, recipe_id)
    if recipe is None or (recipe.status != "published" and recipe.created_by != user_id):
        raise NotFoundOrForbidden("Recipe not found")
    return recipe


def _stats_for(recipes: Iterable[models.Recipe], rows) -> Dict[str, schemas.RecipeRatingStats]:
    stats = {
        r.id: schemas.RecipeRatingStats(recipe_id=r.id, name=r.name, slug=r.slug)
        for r in recipes
    }
    totals: Dict[str, int] = {}
    for recipe_id, rating, count in rows:
        item = stats.get(recipe_id)
        if item is None or not 1 <= rating <= 5:
            continue
        setattr(item, f"rating_{rating}", count)
        item.total_ratings += count
        totals[recipe_id] = totals.get(recipe_id, 0) + rating * count
    for recipe_id, item in stats.items():
        if item.total_ratings:
            item.avg_rating = round(totals[recipe_id] / item.total_ratings, 2)
    return stats


@returns_result
def create_rating(
    db: Session, user_id: Optional[str], recipe_id: str, rating: int
) -> schemas.RecipeRating:
    user_id = _require_user(user_id)
    rating = _check_rating(rating)
    _get_ratable_recipe(db, recipe_id, user_id)
    if crud.get_user_rating(db, recipe_id, user_id) is not None:
        raise ValidationFailure("You have already rated this recipe")
    row = crud.insert_rating(db, recipe_id, user_id, rating)
    db.commit()
    db.refresh(row)
    logger.info("user %s rated recipe %s with %d", user_id, recipe_id, rating)
    return schemas.RecipeRating.model_validate(row)


@returns_result
def update_rating(
    db: Session, user_id: Optional[str], rating_id: str, rating: int
) -> schemas.RecipeRating:
    user_id = _require_user(user_id)
    rating = _check_rating(rating)
    row = crud.update_rating(db, rating_id, user_id, rating)
    if row is None:
        raise NotFoundOrForbidden("Rating not found or not permitted")
    db.commit()
    db.refresh(row)
    return schemas.RecipeRating.model_validate(row)


@returns_result
def delete_rating(db: Session, user_id: Optional[str], rating_id: str) -> None:
    user_id = _require_user(user_id)
    if crud.delete_rating(db, rating_id, user_id) == 0:
        raise NotFoundOrForbidden("Rating not found or not permitted")
    db.commit()
    return None


@returns_result
def get_user_rating(
    db: Session, user_id: Optional[str], recipe_id: str
) -> Optional[schemas.RecipeRating]:
    # anonymous callers simply have no rating
    if not user_id:
        return None
    row = crud.get_user_rating(db, recipe_id, user_id)
    return schemas.RecipeRating.model_validate(row) if row is not None else None


@returns_result
def submit_rating(
    db: Session, user_id: Optional[str], recipe_id: str, rating: int
) -> schemas.RecipeRating:
    """Create the caller's rating for a recipe, or change it if one exists."""
    user_id = _require_user(user_id)
    rating = _check_rating(rating)
    existing = crud.get_user_rating(db, recipe_id, user_id)
    if existing is None:
        _get_ratable_recipe(db, recipe_id, user_id)
        row = crud.insert_rating(db, recipe_id, user_id, rating)
    else:
        row = crud.update_rating(db, existing.id, user_id, rating)
    db.commit()
    db.refresh(row)
    return schemas.RecipeRating.model_validate(row)


@returns_result
def list_ratings(db: Session, recipe_id: str) -> List[schemas.RecipeRating]:
    return [schemas.RecipeRating.model_validate(r) for r in crud.list_ratings(db, recipe_id)]


@returns_result
def get_recipe_rating_stats(db: Session, recipe_id: str) -> schemas.RecipeRatingStats:
    recipe = _get_ratable_recipe(db, recipe_id, None)
    return _stats_for([recipe], crud.rating_counts(db, [recipe_id]))[recipe_id]


@returns_result
def get_multiple_recipe_rating_stats(
    db: Session, recipe_ids: List[str]
) -> List[schemas.RecipeRatingStats]:
    """Stats for each known recipe in `recipe_ids`, in the order given.

    Unknown ids are skipped rather than failing the whole batch.
    """
    if not recipe_ids:
        return []
    recipes = [r for r in crud.get_recipes_by_ids(db, recipe_ids) if r.status == "published"]
    stats = _stats_for(recipes, crud.rating_counts(db, recipe_ids))
    return [stats[i] for i in dict.fromkeys(recipe_ids) if i in stats]
