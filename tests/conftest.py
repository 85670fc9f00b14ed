# flake8: noqa
import sys
from pathlib import Path

# Ensure project root is on sys.path so `recipebook` can be imported when tests are run
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))  # noqa: E402

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from recipebook import app as app_module
from recipebook import models, recipes, schemas


SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture
def session_factory():
    # Use StaticPool so the same in-memory database is shared across connections
    engine = create_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app_module.app.dependency_overrides[app_module.get_db] = override_get_db
    yield TestClient(app_module.app)
    app_module.app.dependency_overrides.clear()


def recipe_payload(**overrides):
    data = {
        "name": "Country Sourdough",
        "description": "Open crumb, crisp crust",
        "category": "breads",
        "subcategory": "sourdough",
        "servings": 8,
        "total_time": 1440,
        "difficulty": 3,
        "ingredients": [
            {"id": "flour", "name": "bread flour", "amount": "900", "unit": "g", "is_flour": True},
            {"id": "water", "name": "water", "amount": "650", "unit": "g"},
            {"id": "salt", "name": "salt", "amount": "18", "unit": "g"},
        ],
        "instructions": [
            {"id": "s1", "step": 1, "text": "Mix flour and water, rest 1 hour"},
            {"id": "s2", "step": 2, "text": "Add levain and salt"},
            {"id": "s3", "step": 3, "text": "Bake at 250C for 45 minutes"},
        ],
    }
    data.update(overrides)
    return data


@pytest.fixture
def payload():
    return recipe_payload


@pytest.fixture
def make_recipe(db):
    def _make(owner="alice", **overrides):
        data = schemas.RecipeCreate(**recipe_payload(status="published", **overrides))
        result = recipes.create_recipe(db, owner, data)
        assert result.success, result.error
        return result.data

    return _make
