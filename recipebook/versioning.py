"""Recipe versions: forking, history, comparison, rating and the cooking diary.

Every public function here returns a `Result`; none of them raise. Writes
need an authenticated `user_id`. Private versions are only visible to their
creator.
"""
import logging
from typing import List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud, diff, models, schemas, tree
from .config import settings
from .errors import (
    AuthenticationRequired,
    NotFoundOrForbidden,
    ValidationFailure,
    returns_result,
)


logger = logging.getLogger(__name__)


def _require_user(user_id: Optional[str]) -> str:
    if not user_id:
        raise AuthenticationRequired()
    return user_id


def _visible(version: models.RecipeVersion, viewer_id: Optional[str]) -> bool:
    return bool(version.is_public) or version.created_by == viewer_id


def _version_out(version: models.RecipeVersion) -> schemas.RecipeVersion:
    return schemas.RecipeVersion.model_validate(version)


def _get_visible_version(db: Session, version_id: str, viewer_id: Optional[str]):
    version = crud.get_version(db, version_id)
    if version is None or not _visible(version, viewer_id):
        raise NotFoundOrForbidden("Version not found")
    return version


def _insert_version(
    db: Session,
    user_id: str,
    *,
    original_recipe_id: str,
    parent: Optional[models.RecipeVersion],
    recipe_id: str,
    change_summary: str,
    is_public: bool,
    success_rating: Optional[int],
) -> models.RecipeVersion:
    version = crud.insert_version(
        db,
        original_recipe_id=original_recipe_id,
        parent_version_id=parent.id if parent is not None else None,
        recipe_id=recipe_id,
        version_number=crud.next_version_number(db, original_recipe_id, parent),
        created_by=user_id,
        change_summary=change_summary,
        is_public=is_public,
        success_rating=success_rating,
    )
    crud.link_recipe_to_version(db, recipe_id, version.id)
    return version


def _check_lineage(
    db: Session,
    user_id: str,
    original_recipe_id: str,
    parent_version_id: Optional[str],
) -> Optional[models.RecipeVersion]:
    if crud.get_recipe(db, original_recipe_id) is None:
        raise NotFoundOrForbidden("Original recipe not found")
    if not parent_version_id:
        if crud.get_root_version(db, original_recipe_id) is not None:
            raise ValidationFailure(
                "Recipe already has a root version; fork from one of its versions"
            )
        return None
    parent = crud.get_version(db, parent_version_id)
    if parent is None or not _visible(parent, user_id):
        raise NotFoundOrForbidden("Parent version not found")
    if parent.original_recipe_id != original_recipe_id:
        raise ValidationFailure("Parent version belongs to a different recipe")
    return parent


def _bump_fork_count(db: Session, version_id: str):
    # a lost increment must not undo the fork it counts
    try:
        with db.begin_nested():
            crud.increment_fork_count(db, version_id)
    except SQLAlchemyError:
        logger.warning(
            "fork count increment failed for version %s", version_id, exc_info=True
        )


@returns_result
def create_version(
    db: Session,
    user_id: Optional[str],
    *,
    original_recipe_id: str,
    recipe_id: str,
    parent_version_id: Optional[str] = None,
    change_summary: str = "",
    is_public: bool = True,
    success_rating: Optional[int] = None,
) -> schemas.RecipeVersion:
    """Record an existing recipe row as a version of `original_recipe_id`."""
    user_id = _require_user(user_id)
    parent = _check_lineage(db, user_id, original_recipe_id, parent_version_id)
    if crud.get_recipe(db, recipe_id) is None:
        raise NotFoundOrForbidden("Recipe not found")
    version = _insert_version(
        db,
        user_id,
        original_recipe_id=original_recipe_id,
        parent=parent,
        recipe_id=recipe_id,
        change_summary=change_summary,
        is_public=is_public,
        success_rating=success_rating,
    )
    db.commit()
    return _version_out(version)


@returns_result
def get_version(
    db: Session, version_id: str, viewer_id: Optional[str] = None
) -> schemas.RecipeVersion:
    return _version_out(_get_visible_version(db, version_id, viewer_id))


@returns_result
def list_versions(
    db: Session,
    original_recipe_id: str,
    viewer_id: Optional[str] = None,
    newest_first: bool = True,
) -> List[schemas.RecipeVersion]:
    versions = crud.list_versions(db, original_recipe_id, newest_first=newest_first)
    return [_version_out(v) for v in versions if _visible(v, viewer_id)]


def list_version_history(
    db: Session, original_recipe_id: str, viewer_id: Optional[str] = None
):
    """Flat history of a lineage, newest first."""
    return list_versions(db, original_recipe_id, viewer_id=viewer_id, newest_first=True)


@returns_result
def build_version_tree(
    db: Session, original_recipe_id: str, viewer_id: Optional[str] = None
) -> List[schemas.VersionTreeNode]:
    versions = crud.list_versions(db, original_recipe_id, newest_first=False)
    return tree.build_version_tree(
        [_version_out(v) for v in versions if _visible(v, viewer_id)]
    )


@returns_result
def get_version_details(
    db: Session, version_id: str, viewer_id: Optional[str] = None
) -> schemas.VersionDetails:
    version = _get_visible_version(db, version_id, viewer_id)
    details = schemas.VersionDetails.model_validate(version)
    details.children = [c for c in details.children if c.is_public or c.created_by == viewer_id]
    parent = details.parent_version
    if parent is not None and not (parent.is_public or parent.created_by == viewer_id):
        details.parent_version = None
    # relationship is ordered newest first
    entries = details.diary_entries
    details.total_diary_entries = len(entries)
    details.recent_diary_entries = entries[: settings.RECENT_DIARY_ENTRIES]
    return details


@returns_result
def fork_recipe(
    db: Session, user_id: Optional[str], data: schemas.ForkRequest
) -> schemas.RecipeVersion:
    """Copy a recipe and record the copy as a new version in its lineage.

    The copy, the version row, the back-link and the change records are
    written in one transaction. The parent's fork count is bumped in a
    savepoint; if that fails the fork still goes through.
    """
    user_id = _require_user(user_id)
    parent = _check_lineage(db, user_id, data.original_recipe_id, data.parent_version_id)

    recipe = crud.create_recipe(db, data.recipe_data, owner_id=user_id, status="published")
    version = _insert_version(
        db,
        user_id,
        original_recipe_id=data.original_recipe_id,
        parent=parent,
        recipe_id=recipe.id,
        change_summary=data.change_summary,
        is_public=data.is_public,
        success_rating=data.success_rating,
    )
    if data.changes_made:
        crud.insert_changes(db, version.id, data.changes_made)
    if parent is not None:
        _bump_fork_count(db, parent.id)

    db.commit()
    db.refresh(version)
    logger.info(
        "user %s forked recipe %s as version %s (v%s)",
        user_id,
        data.original_recipe_id,
        version.id,
        version.version_number,
    )
    return _version_out(version)


@returns_result
def compare_versions(
    db: Session,
    original_id: str,
    modified_id: str,
    viewer_id: Optional[str] = None,
    mode: Optional[str] = None,
) -> schemas.VersionComparison:
    rows = {v.id: v for v in crud.get_versions(db, [original_id, modified_id])}
    original = rows.get(original_id)
    modified = rows.get(modified_id)
    if (
        original is None
        or modified is None
        or not _visible(original, viewer_id)
        or not _visible(modified, viewer_id)
    ):
        raise NotFoundOrForbidden("Failed to fetch versions for comparison")
    return diff.generate_version_comparison(
        _version_out(original),
        _version_out(modified),
        mode or settings.DIFF_MATCH_MODE,
    )


@returns_result
def update_version_rating(
    db: Session, user_id: Optional[str], version_id: str, rating: int
) -> schemas.RecipeVersion:
    user_id = _require_user(user_id)
    if not 1 <= int(rating) <= 5:
        raise ValidationFailure("Rating must be between 1 and 5")
    if crud.update_version_rating(db, version_id, user_id, int(rating)) == 0:
        raise NotFoundOrForbidden("Version not found or not permitted")
    db.commit()
    return _version_out(crud.get_version(db, version_id))


@returns_result
def create_diary_entry(
    db: Session, user_id: Optional[str], data: schemas.DiaryEntryCreate
) -> schemas.DiaryEntry:
    user_id = _require_user(user_id)
    _get_visible_version(db, data.recipe_version_id, user_id)
    entry = crud.insert_diary_entry(db, user_id, data)
    db.commit()
    db.refresh(entry)
    logger.info("diary entry %s added to version %s", entry.id, data.recipe_version_id)
    return schemas.DiaryEntry.model_validate(entry)


@returns_result
def update_diary_entry(
    db: Session,
    user_id: Optional[str],
    entry_id: str,
    data: Union[schemas.DiaryEntryUpdate, dict],
) -> schemas.DiaryEntry:
    user_id = _require_user(user_id)
    if isinstance(data, dict):
        data = schemas.DiaryEntryUpdate(**data)
    fields = data.model_dump(exclude_unset=True)
    # content and images are not nullable; an explicit null means "leave as is"
    fields = {
        k: v for k, v in fields.items() if v is not None or k == "cooking_date"
    }
    entry = crud.update_diary_entry(db, entry_id, user_id, fields)
    if entry is None:
        logger.info("diary update on %s by %s matched no rows", entry_id, user_id)
        raise NotFoundOrForbidden("Diary entry not found or not permitted")
    db.commit()
    return schemas.DiaryEntry.model_validate(entry)


@returns_result
def delete_diary_entry(db: Session, user_id: Optional[str], entry_id: str) -> None:
    user_id = _require_user(user_id)
    if crud.delete_diary_entry(db, entry_id, user_id) == 0:
        logger.info("diary delete on %s by %s matched no rows", entry_id, user_id)
        raise NotFoundOrForbidden("Diary entry not found or not permitted")
    db.commit()
    logger.info("diary entry %s deleted", entry_id)
    return None


@returns_result
def list_diary_entries(
    db: Session, version_id: str, viewer_id: Optional[str] = None
) -> List[schemas.DiaryEntry]:
    _get_visible_version(db, version_id, viewer_id)
    return [
        schemas.DiaryEntry.model_validate(e)
        for e in crud.list_diary_entries(db, version_id)
    ]
