from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from recipebook import crud, models, schemas, versioning


def fork_request(recipe, parent=None, **overrides):
    data = {
        "original_recipe_id": recipe.id,
        "parent_version_id": parent.id if parent is not None else None,
        "recipe_data": recipe.model_dump(include=set(schemas.RecipeBase.model_fields)),
        "change_summary": "first version",
    }
    data.update(overrides)
    return schemas.ForkRequest(**data)


@pytest.fixture
def original(make_recipe):
    return make_recipe()


@pytest.fixture
def root(db, original):
    result = versioning.fork_recipe(db, "alice", fork_request(original))
    assert result.success, result.error
    return result.data


def test_fork_requires_user(db, original):
    result = versioning.fork_recipe(db, None, fork_request(original))
    assert result.success is False
    assert result.error == "User not authenticated"
    assert result.error_type == "AuthenticationRequired"
    assert db.query(models.RecipeVersion).count() == 0


def test_root_fork_has_no_parent_and_skips_fork_count(db, original):
    with patch.object(crud, "increment_fork_count") as bump:
        result = versioning.fork_recipe(db, "bob", fork_request(original))
    assert result.success, result.error
    version = result.data
    assert version.parent_version_id is None
    assert version.version_number == "1"
    assert version.created_by == "bob"
    assert version.recipe.status == "published"
    assert version.recipe.created_by == "bob"
    assert version.recipe.version_id == version.id
    bump.assert_not_called()


def test_second_root_is_rejected(db, original, root):
    result = versioning.fork_recipe(db, "bob", fork_request(original))
    assert result.success is False
    assert result.error_type == "ValidationFailure"


def test_private_fork_of_a_version(db, original, root):
    data = fork_request(
        original,
        parent=root,
        change_summary="fix salt amount",
        is_public=False,
        success_rating=4,
        changes_made=[
            {
                "change_type": "ingredient_modified",
                "old_value": {"name": "salt", "amount": "18"},
                "new_value": {"name": "salt", "amount": "20"},
                "reason": "too bland",
            }
        ],
    )
    result = versioning.fork_recipe(db, "bob", data)
    assert result.success, result.error
    child = result.data
    assert child.is_public is False
    assert child.id != root.id
    assert child.parent_version_id == root.id
    assert child.version_number == "1.1"
    assert child.change_summary == "fix salt amount"
    assert child.success_rating == 4

    parent = versioning.get_version(db, root.id).data
    assert parent.fork_count == 1

    changes = db.query(models.RecipeChange).filter_by(recipe_version_id=child.id).all()
    assert [c.change_type for c in changes] == ["ingredient_modified"]
    assert changes[0].new_value == {"name": "salt", "amount": "20"}


def test_sibling_and_grandchild_numbers(db, original, root):
    a = versioning.fork_recipe(db, "bob", fork_request(original, parent=root)).data
    b = versioning.fork_recipe(db, "carol", fork_request(original, parent=root)).data
    c = versioning.fork_recipe(db, "dave", fork_request(original, parent=a)).data
    assert (a.version_number, b.version_number, c.version_number) == ("1.1", "1.2", "1.1.1")
    assert versioning.get_version(db, root.id).data.fork_count == 2


def test_duplicate_sibling_number_is_refused(db, original, root):
    first = versioning.fork_recipe(db, "bob", fork_request(original, parent=root)).data
    recipes_before = db.query(models.Recipe).count()

    # two forks that counted the same siblings would both pick "1.1"
    with patch.object(crud, "next_version_number", return_value=first.version_number):
        result = versioning.fork_recipe(db, "carol", fork_request(original, parent=root))
    assert result.success is False
    assert result.error_type == "StoreFailure"
    assert db.query(models.Recipe).count() == recipes_before
    assert [c.id for c in versioning.get_version_details(db, root.id).data.children] == [first.id]


def test_parent_from_another_lineage_is_rejected(db, make_recipe, root):
    other = make_recipe(name="Bagels", subcategory="bagels")
    result = versioning.fork_recipe(db, "bob", fork_request(other, parent=root))
    assert result.success is False
    assert result.error_type == "ValidationFailure"


def test_unknown_parent_is_not_found(db, original, root):
    data = fork_request(original, parent_version_id="missing")
    result = versioning.fork_recipe(db, "bob", data)
    assert result.error_type == "NotFoundOrForbidden"


def test_fork_count_failure_does_not_undo_fork(db, original, root):
    error = OperationalError("UPDATE recipe_versions", {}, Exception("database is locked"))
    with patch.object(crud, "increment_fork_count", side_effect=error):
        result = versioning.fork_recipe(db, "bob", fork_request(original, parent=root))
    assert result.success, result.error
    assert versioning.get_version(db, result.data.id).success
    assert versioning.get_version(db, root.id).data.fork_count == 0


def test_failed_version_insert_leaves_no_recipe_copy(db, original):
    recipes_before = db.query(models.Recipe).count()
    error = OperationalError("INSERT INTO recipe_versions", {}, Exception("disk I/O error"))
    with patch.object(crud, "insert_version", side_effect=error):
        result = versioning.fork_recipe(db, "bob", fork_request(original))
    assert result.success is False
    assert result.error_type == "StoreFailure"
    assert "disk I/O error" in result.error
    assert db.query(models.Recipe).count() == recipes_before


def test_create_version_for_existing_recipe(db, original):
    result = versioning.create_version(
        db, "alice", original_recipe_id=original.id, recipe_id=original.id
    )
    assert result.success, result.error
    assert result.data.recipe.id == original.id
    assert crud.get_recipe(db, original.id).version_id == result.data.id


def test_history_and_tree(db, original, root):
    a = versioning.fork_recipe(db, "bob", fork_request(original, parent=root)).data
    b = versioning.fork_recipe(db, "carol", fork_request(original, parent=a)).data

    history = versioning.list_version_history(db, original.id).data
    assert [v.id for v in history] == [b.id, a.id, root.id]

    forest = versioning.build_version_tree(db, original.id).data
    assert len(forest) == 1
    assert forest[0].version.id == root.id
    assert forest[0].children[0].version.id == a.id
    assert forest[0].children[0].children[0].version.id == b.id
    assert forest[0].children[0].children[0].depth == 2


def test_private_versions_are_hidden_from_others(db, original, root):
    private = versioning.fork_recipe(
        db, "bob", fork_request(original, parent=root, is_public=False)
    ).data

    assert [v.id for v in versioning.list_versions(db, original.id).data] == [root.id]
    assert len(versioning.list_versions(db, original.id, viewer_id="bob").data) == 2
    assert versioning.get_version(db, private.id).error_type == "NotFoundOrForbidden"
    assert versioning.get_version(db, private.id, viewer_id="bob").success


def test_compare_versions(db, original, root):
    recipe_data = original.model_dump(include=set(schemas.RecipeBase.model_fields))
    recipe_data["servings"] = 10
    recipe_data["ingredients"][2]["amount"] = "20"
    recipe_data["ingredients"].append({"id": "seeds", "name": "sesame", "amount": "30"})
    child = versioning.fork_recipe(
        db, "bob", fork_request(original, parent=root, recipe_data=recipe_data)
    ).data

    result = versioning.compare_versions(db, root.id, child.id)
    assert result.success, result.error
    comparison = result.data
    assert comparison.original.id == root.id
    assert comparison.modified.id == child.id
    assert comparison.changes.general == {
        "servings": schemas.FieldChange(old=8, new=10)
    }
    assert [i["id"] for i in comparison.changes.ingredients.added] == ["seeds"]
    assert [i["id"] for i in comparison.changes.ingredients.modified] == ["salt"]
    assert comparison.changes.ingredients.removed == []
    assert comparison.changes.instructions.modified == []

    legacy = versioning.compare_versions(db, root.id, child.id, mode="value").data
    assert [i["id"] for i in legacy.changes.ingredients.removed] == ["salt"]


def test_compare_with_missing_recipe(db, original, root):
    child = versioning.fork_recipe(db, "bob", fork_request(original, parent=root)).data
    db.query(models.Recipe).filter(models.Recipe.id == child.recipe_id).delete()
    db.commit()
    db.expire_all()

    result = versioning.compare_versions(db, root.id, child.id)
    assert result.success is False
    assert result.error == "Recipe data missing for comparison"


def test_compare_unknown_version(db, root):
    result = versioning.compare_versions(db, root.id, "nope")
    assert result.success is False
    assert result.error == "Failed to fetch versions for comparison"


def test_compare_version_with_itself_is_empty(db, root):
    result = versioning.compare_versions(db, root.id, root.id)
    assert result.success, result.error
    changes = result.data.changes
    assert changes.general == {}
    for section in (changes.ingredients, changes.instructions):
        assert section.added == [] and section.removed == [] and section.modified == []



def test_rating_only_by_creator(db, root):
    assert versioning.update_version_rating(db, "bob", root.id, 5).error_type == "NotFoundOrForbidden"
    assert versioning.get_version(db, root.id).data.success_rating is None

    result = versioning.update_version_rating(db, "alice", root.id, 5)
    assert result.success, result.error
    assert result.data.success_rating == 5
    assert versioning.update_version_rating(db, "alice", root.id, 9).error_type == "ValidationFailure"


def diary(version, **overrides):
    data = {
        "recipe_version_id": version.id,
        "entry_type": "post_cooking",
        "content": "Crumb was tight, proof longer",
    }
    data.update(overrides)
    return schemas.DiaryEntryCreate(**data)


def test_diary_lifecycle(db, root):
    created = versioning.create_diary_entry(db, "bob", diary(root, cooking_date="2024-05-02"))
    assert created.success, created.error
    entry = created.data
    assert entry.created_by == "bob"
    assert entry.images == []

    updated = versioning.update_diary_entry(
        db, "bob", entry.id, {"content": "Proofed 2h more, perfect", "images": ["a.jpg"]}
    )
    assert updated.success, updated.error
    assert updated.data.content == "Proofed 2h more, perfect"
    assert updated.data.images == ["a.jpg"]
    assert updated.data.entry_type == "post_cooking"
    assert str(updated.data.cooking_date) == "2024-05-02"

    assert versioning.delete_diary_entry(db, "bob", entry.id).success
    assert versioning.list_diary_entries(db, root.id).data == []


def test_foreign_diary_update_matches_nothing(db, root):
    entry = versioning.create_diary_entry(db, "bob", diary(root)).data

    result = versioning.update_diary_entry(db, "mallory", entry.id, {"content": "hacked"})
    assert result.success is False
    assert result.error == "Diary entry not found or not permitted"
    db.expire_all()
    assert crud.get_diary_entry(db, entry.id).content == "Crumb was tight, proof longer"

    result = versioning.delete_diary_entry(db, "mallory", entry.id)
    assert result.error_type == "NotFoundOrForbidden"
    assert crud.get_diary_entry(db, entry.id) is not None


def test_diary_requires_user_and_version(db, root):
    assert versioning.create_diary_entry(db, None, diary(root)).error_type == "AuthenticationRequired"
    missing = diary(root, recipe_version_id="nope")
    assert versioning.create_diary_entry(db, "bob", missing).error_type == "NotFoundOrForbidden"
    assert versioning.update_diary_entry(db, None, "x", {}).error_type == "AuthenticationRequired"
    assert versioning.delete_diary_entry(db, None, "x").error_type == "AuthenticationRequired"


def test_diary_listing_and_details_newest_first(db, root):
    ids = [
        versioning.create_diary_entry(db, "bob", diary(root, content=f"bake {n}")).data.id
        for n in range(7)
    ]
    listed = versioning.list_diary_entries(db, root.id).data
    assert [e.id for e in listed] == list(reversed(ids))

    details = versioning.get_version_details(db, root.id).data
    assert details.total_diary_entries == 7
    assert [e.id for e in details.recent_diary_entries] == list(reversed(ids))[:5]
    assert details.parent_version is None


def test_private_version_diary_is_hidden_from_others(db, original, root):
    private = versioning.fork_recipe(
        db, "bob", fork_request(original, parent=root, is_public=False)
    ).data

    result = versioning.create_diary_entry(db, "carol", diary(private))
    assert result.error_type == "NotFoundOrForbidden"
    assert db.query(models.DiaryEntry).count() == 0

    assert versioning.create_diary_entry(db, "bob", diary(private)).success
    assert versioning.list_diary_entries(db, private.id).error_type == "NotFoundOrForbidden"
    assert versioning.list_diary_entries(db, private.id, viewer_id="carol").success is False
    assert len(versioning.list_diary_entries(db, private.id, viewer_id="bob").data) == 1


def test_details_hide_a_private_parent(db, original, root):
    private = versioning.fork_recipe(
        db, "alice", fork_request(original, parent=root, is_public=False)
    ).data
    public_child = versioning.fork_recipe(
        db, "alice", fork_request(original, parent=private)
    ).data

    for_bob = versioning.get_version_details(db, public_child.id, viewer_id="bob").data
    assert for_bob.parent_version is None

    for_alice = versioning.get_version_details(db, public_child.id, viewer_id="alice").data
    assert for_alice.parent_version.id == private.id
    assert [c.id for c in versioning.get_version_details(db, root.id).data.children] == []
