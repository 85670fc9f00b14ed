from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from . import models, schemas
from .text import slugify


# Writes below only flush; the caller owns the transaction and commits.

SORTABLE_FIELDS = {
    "created_at": models.Recipe.created_at,
    "name": models.Recipe.name,
    "total_time": models.Recipe.total_time,
}


def _dump_items(items):
    return [i.model_dump(exclude_none=True) for i in items or []]


def get_recipe(db: Session, recipe_id: str):
    return db.query(models.Recipe).filter(models.Recipe.id == recipe_id).first()


def get_recipe_by_slug(db: Session, slug: str):
    return db.query(models.Recipe).filter(models.Recipe.slug == slug).first()


def get_recipes(
    db: Session,
    category: Optional[str] = None,
    subcategory: Optional[str] = None,
    difficulty: Optional[int] = None,
    sort_by: str = "created_at",
    sort_direction: str = "desc",
    skip: int = 0,
    limit: int = 100,
):
    q = db.query(models.Recipe).filter(models.Recipe.status == "published")
    if category:
        q = q.filter(models.Recipe.category == category)
    if subcategory:
        q = q.filter(models.Recipe.subcategory == subcategory)
    if difficulty:
        q = q.filter(models.Recipe.difficulty == difficulty)
    col = SORTABLE_FIELDS.get(sort_by, models.Recipe.created_at)
    q = q.order_by(col.asc() if sort_direction == "asc" else col.desc())
    return q.offset(skip).limit(limit).all()


def unique_slug(db: Session, name: str) -> str:
    base = slugify(name) or "recipe"
    slug = base
    n = 2
    while get_recipe_by_slug(db, slug) is not None:
        slug = f"{base}-{n}"
        n += 1
    return slug


def create_recipe(
    db: Session, recipe: schemas.RecipeBase, owner_id: str, status: str = "draft"
):
    db_recipe = models.Recipe(
        name=recipe.name,
        slug=unique_slug(db, recipe.name),
        description=recipe.description,
        category=recipe.category,
        subcategory=recipe.subcategory,
        servings=recipe.servings,
        total_time=recipe.total_time,
        difficulty=int(recipe.difficulty),
        status=status,
        created_by=owner_id,
        image_thumbnail_url=recipe.image_thumbnail_url,
        image_banner_url=recipe.image_banner_url,
        ingredients=_dump_items(recipe.ingredients),
        instructions=_dump_items(recipe.instructions),
    )
    db.add(db_recipe)
    db.flush()
    return db_recipe


def update_recipe(
    db: Session, recipe_id: str, owner_id: str, recipe: schemas.RecipeCreate
):
    db_recipe = (
        db.query(models.Recipe)
        .filter(models.Recipe.id == recipe_id, models.Recipe.created_by == owner_id)
        .first()
    )
    if not db_recipe:
        return None
    if db_recipe.name != recipe.name:
        db_recipe.slug = unique_slug(db, recipe.name)
    db_recipe.name = recipe.name
    db_recipe.description = recipe.description
    db_recipe.category = recipe.category
    db_recipe.subcategory = recipe.subcategory
    db_recipe.servings = recipe.servings
    db_recipe.total_time = recipe.total_time
    db_recipe.difficulty = int(recipe.difficulty)
    db_recipe.status = recipe.status
    db_recipe.image_thumbnail_url = recipe.image_thumbnail_url
    db_recipe.image_banner_url = recipe.image_banner_url
    db_recipe.ingredients = _dump_items(recipe.ingredients)
    db_recipe.instructions = _dump_items(recipe.instructions)
    db.flush()
    return db_recipe


def delete_recipe(db: Session, recipe_id: str, owner_id: str) -> int:
    return (
        db.query(models.Recipe)
        .filter(models.Recipe.id == recipe_id, models.Recipe.created_by == owner_id)
        .delete(synchronize_session="fetch")
    )


def update_recipe_status(db: Session, recipe_id: str, owner_id: str, status: str) -> int:
    return (
        db.query(models.Recipe)
        .filter(models.Recipe.id == recipe_id, models.Recipe.created_by == owner_id)
        .update({models.Recipe.status: status}, synchronize_session="fetch")
    )


def get_user_recipes(db: Session, owner_id: str, published_only: bool = True):
    q = db.query(models.Recipe).filter(models.Recipe.created_by == owner_id)
    if published_only:
        q = q.filter(models.Recipe.status == "published")
    return q.order_by(models.Recipe.created_at.desc()).all()


def upsert_profile(db: Session, user_id: str, profile: schemas.ProfileUpdate):
    db_profile = db.get(models.Profile, user_id)
    if db_profile is None:
        db_profile = models.Profile(id=user_id)
        db.add(db_profile)
    for key, value in profile.model_dump(exclude_unset=True).items():
        setattr(db_profile, key, value)
    db.flush()
    return db_profile


def get_version(db: Session, version_id: str):
    return (
        db.query(models.RecipeVersion)
        .filter(models.RecipeVersion.id == version_id)
        .first()
    )


def get_versions(db: Session, version_ids: Iterable[str]) -> List[models.RecipeVersion]:
    return (
        db.query(models.RecipeVersion)
        .filter(models.RecipeVersion.id.in_(list(version_ids)))
        .all()
    )


def list_versions(db: Session, original_recipe_id: str, newest_first: bool = True):
    col = models.RecipeVersion.created_at
    return (
        db.query(models.RecipeVersion)
        .filter(models.RecipeVersion.original_recipe_id == original_recipe_id)
        .order_by(col.desc() if newest_first else col.asc())
        .all()
    )


def get_root_version(db: Session, original_recipe_id: str):
    return (
        db.query(models.RecipeVersion)
        .filter(
            models.RecipeVersion.original_recipe_id == original_recipe_id,
            models.RecipeVersion.parent_version_id.is_(None),
        )
        .first()
    )


def next_version_number(
    db: Session,
    original_recipe_id: str,
    parent: Optional[models.RecipeVersion] = None,
) -> str:
    """Allocate the next version number in a lineage.

    A root is numbered "1"; the k-th child of version "p" is "p.k".
    """
    if parent is None:
        roots = (
            db.query(func.count(models.RecipeVersion.id))
            .filter(
                models.RecipeVersion.original_recipe_id == original_recipe_id,
                models.RecipeVersion.parent_version_id.is_(None),
            )
            .scalar()
        )
        return str(roots + 1)
    siblings = (
        db.query(func.count(models.RecipeVersion.id))
        .filter(models.RecipeVersion.parent_version_id == parent.id)
        .scalar()
    )
    return f"{parent.version_number}.{siblings + 1}"


def insert_version(
    db: Session,
    *,
    original_recipe_id: str,
    parent_version_id: Optional[str],
    recipe_id: str,
    version_number: str,
    created_by: str,
    change_summary: str,
    is_public: bool = True,
    success_rating: Optional[int] = None,
):
    db_version = models.RecipeVersion(
        original_recipe_id=original_recipe_id,
        parent_version_id=parent_version_id,
        recipe_id=recipe_id,
        version_number=version_number,
        created_by=created_by,
        change_summary=change_summary,
        is_public=is_public,
        fork_count=0,
        success_rating=success_rating,
    )
    db.add(db_version)
    db.flush()
    return db_version


def link_recipe_to_version(db: Session, recipe_id: str, version_id: str) -> int:
    return (
        db.query(models.Recipe)
        .filter(models.Recipe.id == recipe_id)
        .update({models.Recipe.version_id: version_id})
    )


def insert_changes(
    db: Session, version_id: str, changes: Iterable[schemas.RecipeChangeCreate]
):
    rows = [
        models.RecipeChange(recipe_version_id=version_id, **c.model_dump())
        for c in changes
    ]
    db.add_all(rows)
    db.flush()
    return rows


def increment_fork_count(db: Session, version_id: str) -> int:
    # single UPDATE so concurrent forks do not lose increments
    return (
        db.query(models.RecipeVersion)
        .filter(models.RecipeVersion.id == version_id)
        .update(
            {models.RecipeVersion.fork_count: models.RecipeVersion.fork_count + 1},
            synchronize_session="fetch",
        )
    )


def update_version_rating(
    db: Session, version_id: str, owner_id: str, rating: int
) -> int:
    return (
        db.query(models.RecipeVersion)
        .filter(
            models.RecipeVersion.id == version_id,
            models.RecipeVersion.created_by == owner_id,
        )
        .update({models.RecipeVersion.success_rating: rating}, synchronize_session="fetch")
    )


def insert_diary_entry(db: Session, owner_id: str, data: schemas.DiaryEntryCreate):
    entry = models.DiaryEntry(
        recipe_version_id=data.recipe_version_id,
        created_by=owner_id,
        entry_type=data.entry_type,
        content=data.content,
        cooking_date=data.cooking_date,
        images=list(data.images or []),
    )
    db.add(entry)
    db.flush()
    return entry


def get_diary_entry(db: Session, entry_id: str):
    return db.query(models.DiaryEntry).filter(models.DiaryEntry.id == entry_id).first()


def update_diary_entry(db: Session, entry_id: str, owner_id: str, fields: dict):
    """Apply `fields` to the entry if `owner_id` created it.

    Returns the updated entry, or None when the id/owner filter matched
    nothing.
    """
    allowed = {k: v for k, v in fields.items() if k in ("content", "cooking_date", "images")}
    q = db.query(models.DiaryEntry).filter(
        models.DiaryEntry.id == entry_id,
        models.DiaryEntry.created_by == owner_id,
    )
    if allowed:
        rows = q.update(allowed, synchronize_session="fetch")
    else:
        rows = q.count()
    if rows == 0:
        return None
    return get_diary_entry(db, entry_id)


def delete_diary_entry(db: Session, entry_id: str, owner_id: str) -> int:
    return (
        db.query(models.DiaryEntry)
        .filter(
            models.DiaryEntry.id == entry_id,
            models.DiaryEntry.created_by == owner_id,
        )
        .delete(synchronize_session="fetch")
    )


def list_diary_entries(db: Session, version_id: str):
    return (
        db.query(models.DiaryEntry)
        .filter(models.DiaryEntry.recipe_version_id == version_id)
        .order_by(models.DiaryEntry.created_at.desc())
        .all()
    )


def get_rating(db: Session, rating_id: str):
    return db.query(models.RecipeRating).filter(models.RecipeRating.id == rating_id).first()


def get_user_rating(db: Session, recipe_id: str, user_id: str):
    return (
        db.query(models.RecipeRating)
        .filter(
            models.RecipeRating.recipe_id == recipe_id,
            models.RecipeRating.user_id == user_id,
        )
        .first()
    )


def insert_rating(db: Session, recipe_id: str, user_id: str, rating: int):
    db_rating = models.RecipeRating(recipe_id=recipe_id, user_id=user_id, rating=rating)
    db.add(db_rating)
    db.flush()
    return db_rating


def update_rating(db: Session, rating_id: str, user_id: str, rating: int):
    db_rating = (
        db.query(models.RecipeRating)
        .filter(models.RecipeRating.id == rating_id, models.RecipeRating.user_id == user_id)
        .first()
    )
    if not db_rating:
        return None
    db_rating.rating = rating
    db.flush()
    return db_rating


def delete_rating(db: Session, rating_id: str, user_id: str) -> int:
    return (
        db.query(models.RecipeRating)
        .filter(models.RecipeRating.id == rating_id, models.RecipeRating.user_id == user_id)
        .delete(synchronize_session="fetch")
    )


def list_ratings(db: Session, recipe_id: str):
    return (
        db.query(models.RecipeRating)
        .filter(models.RecipeRating.recipe_id == recipe_id)
        .order_by(models.RecipeRating.created_at.desc())
        .all()
    )


def rating_counts(db: Session, recipe_ids: Iterable[str]):
    """Rows of (recipe_id, rating, count) for the given recipes."""
    return (
        db.query(
            models.RecipeRating.recipe_id,
            models.RecipeRating.rating,
            func.count(models.RecipeRating.id),
        )
        .filter(models.RecipeRating.recipe_id.in_(list(recipe_ids)))
        .group_by(models.RecipeRating.recipe_id, models.RecipeRating.rating)
        .all()
    )


def get_recipes_by_ids(db: Session, recipe_ids: Iterable[str]) -> List[models.Recipe]:
    return db.query(models.Recipe).filter(models.Recipe.id.in_(list(recipe_ids))).all()


def get_favorite(db: Session, user_id: str, recipe_id: str):
    return (
        db.query(models.FavoriteRecipe)
        .filter(
            models.FavoriteRecipe.user_id == user_id,
            models.FavoriteRecipe.recipe_id == recipe_id,
        )
        .first()
    )


def insert_favorite(db: Session, user_id: str, recipe_id: str):
    favorite = models.FavoriteRecipe(user_id=user_id, recipe_id=recipe_id)
    db.add(favorite)
    db.flush()
    return favorite


def delete_favorite(db: Session, user_id: str, recipe_id: str) -> int:
    return (
        db.query(models.FavoriteRecipe)
        .filter(
            models.FavoriteRecipe.user_id == user_id,
            models.FavoriteRecipe.recipe_id == recipe_id,
        )
        .delete(synchronize_session="fetch")
    )


def list_favorite_recipes(db: Session, user_id: str):
    return (
        db.query(models.Recipe)
        .join(models.FavoriteRecipe, models.FavoriteRecipe.recipe_id == models.Recipe.id)
        .filter(
            models.FavoriteRecipe.user_id == user_id,
            models.Recipe.status == "published",
        )
        .order_by(models.FavoriteRecipe.created_at.desc())
        .all()
    )
