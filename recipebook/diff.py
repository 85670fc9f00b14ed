"""Structural comparison of two recipe versions.

Ingredients and instructions are compared as unordered collections. Two
matching modes are supported:

``value``
    Items match only when they are deeply equal. An item whose content
    changed shows up as both removed and added; if it keeps its ``id`` it is
    also listed as modified.

``identity``
    Items carrying an ``id`` are matched by it first, so an edit is reported
    once, as modified. Items without an ``id`` fall back to ``value``
    matching. Reordering never produces a change in either mode.
"""
from typing import Any, Dict, List, Optional

from .errors import ValidationFailure
from .schemas import FieldChange, ListDiff, RecipeVersion, VersionChanges, VersionComparison


GENERAL_FIELDS = (
    "name",
    "description",
    "category",
    "subcategory",
    "difficulty",
    "servings",
    "total_time",
)

MATCH_MODES = ("identity", "value")


def _as_plain(item: Any) -> Any:
    if hasattr(item, "model_dump"):
        return item.model_dump(exclude_none=True)
    return item


def _key(item: Any) -> Optional[Any]:
    if isinstance(item, dict):
        return item.get("id")
    return None


def _contains(items: List[Any], item: Any) -> bool:
    return any(other == item for other in items)


def _compare_by_value(original: List[Any], modified: List[Any]) -> ListDiff:
    added = [item for item in modified if not _contains(original, item)]
    removed = [item for item in original if not _contains(modified, item)]
    changed = []
    for item in modified:
        key = _key(item)
        if key is None:
            continue
        if any(_key(orig) == key and orig != item for orig in original):
            changed.append(item)
    return ListDiff(added=added, removed=removed, modified=changed)


def _compare_by_identity(original: List[Any], modified: List[Any]) -> ListDiff:
    orig_by_key = {}
    for item in original:
        key = _key(item)
        if key is not None:
            orig_by_key.setdefault(key, item)
    mod_keys = {_key(item) for item in modified if _key(item) is not None}

    # items without an id are matched on content
    orig_loose = [item for item in original if _key(item) is None]
    mod_loose = [item for item in modified if _key(item) is None]

    added, changed = [], []
    for item in modified:
        key = _key(item)
        if key is None:
            if not _contains(orig_loose, item):
                added.append(item)
        elif key not in orig_by_key:
            added.append(item)
        elif orig_by_key[key] != item:
            changed.append(item)

    removed = []
    for item in original:
        key = _key(item)
        if key is None:
            if not _contains(mod_loose, item):
                removed.append(item)
        elif key not in mod_keys:
            removed.append(item)

    return ListDiff(added=added, removed=removed, modified=changed)


def compare_lists(original, modified, mode: str = "identity") -> ListDiff:
    if mode not in MATCH_MODES:
        raise ValueError(f"unknown match mode: {mode!r}")
    original = [_as_plain(i) for i in original or []]
    modified = [_as_plain(i) for i in modified or []]
    if mode == "value":
        return _compare_by_value(original, modified)
    return _compare_by_identity(original, modified)


def compare_general(original, modified) -> Dict[str, FieldChange]:
    changes = {}
    for field in GENERAL_FIELDS:
        old = getattr(original, field, None)
        new = getattr(modified, field, None)
        if old != new:
            changes[field] = FieldChange(old=old, new=new)
    return changes


def generate_version_comparison(
    original: RecipeVersion, modified: RecipeVersion, mode: str = "identity"
) -> VersionComparison:
    original_recipe = original.recipe
    modified_recipe = modified.recipe
    if original_recipe is None or modified_recipe is None:
        raise ValidationFailure("Recipe data missing for comparison")

    return VersionComparison(
        original=original,
        modified=modified,
        changes=VersionChanges(
            ingredients=compare_lists(
                original_recipe.ingredients, modified_recipe.ingredients, mode
            ),
            instructions=compare_lists(
                original_recipe.instructions, modified_recipe.instructions, mode
            ),
            general=compare_general(original_recipe, modified_recipe),
        ),
    )
