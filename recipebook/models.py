import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship

from .db import Base


def _uuid():
    return str(uuid.uuid4())


def _now():
    return datetime.now(timezone.utc)


class Profile(Base):
    __tablename__ = "profiles"
    # id issued by the external auth provider
    id = Column(String(64), primary_key=True)
    username = Column(String(100), unique=True, index=True, nullable=True)
    name = Column(String(200), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)


class Recipe(Base):
    __tablename__ = "recipes"
    id = Column(String(36), primary_key=True, default=_uuid)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    name = Column(String(200), index=True, nullable=False)
    slug = Column(String(250), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(20), index=True, nullable=False)
    subcategory = Column(String(40), index=True, nullable=True)
    servings = Column(Integer, nullable=True)
    total_time = Column(Integer, nullable=True)  # minutes
    difficulty = Column(Integer, nullable=False, default=1)
    status = Column(String(20), nullable=False, default="draft")
    created_by = Column(String(64), index=True, nullable=False)
    image_thumbnail_url = Column(String(500), nullable=True)
    image_banner_url = Column(String(500), nullable=True)
    ingredients = Column(JSON, nullable=False, default=list)
    instructions = Column(JSON, nullable=False, default=list)
    # no FK: recipe_versions already points at recipes
    version_id = Column(String(36), nullable=True)

    author = relationship(
        "Profile",
        primaryjoin="foreign(Recipe.created_by) == Profile.id",
        viewonly=True,
        lazy="joined",
    )


class RecipeVersion(Base):
    __tablename__ = "recipe_versions"
    __table_args__ = (
        # one root per lineage
        Index(
            "uq_recipe_versions_lineage_root",
            "original_recipe_id",
            unique=True,
            sqlite_where=text("parent_version_id IS NULL"),
            postgresql_where=text("parent_version_id IS NULL"),
        ),
        Index(
            "uq_recipe_versions_sibling_number",
            "parent_version_id",
            "version_number",
            unique=True,
        ),
    )
    id = Column(String(36), primary_key=True, default=_uuid)
    original_recipe_id = Column(
        String(36), ForeignKey("recipes.id"), index=True, nullable=False
    )
    parent_version_id = Column(
        String(36), ForeignKey("recipe_versions.id"), index=True, nullable=True
    )
    recipe_id = Column(String(36), ForeignKey("recipes.id"), nullable=False)
    version_number = Column(String(50), nullable=False)
    created_by = Column(String(64), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    change_summary = Column(Text, nullable=False, default="")
    is_public = Column(Boolean, nullable=False, default=True)
    fork_count = Column(Integer, nullable=False, default=0)
    success_rating = Column(Integer, nullable=True)

    recipe = relationship("Recipe", foreign_keys=[recipe_id], lazy="joined")
    creator = relationship(
        "Profile",
        primaryjoin="foreign(RecipeVersion.created_by) == Profile.id",
        viewonly=True,
        lazy="joined",
    )
    parent_version = relationship(
        "RecipeVersion",
        remote_side=[id],
        back_populates="children",
    )
    children = relationship(
        "RecipeVersion",
        back_populates="parent_version",
        order_by="RecipeVersion.created_at",
    )
    changes_made = relationship(
        "RecipeChange",
        order_by="RecipeChange.created_at",
        cascade="all, delete-orphan",
    )
    diary_entries = relationship(
        "DiaryEntry",
        order_by="DiaryEntry.created_at.desc()",
        cascade="all, delete-orphan",
    )


class RecipeChange(Base):
    __tablename__ = "recipe_changes"
    id = Column(String(36), primary_key=True, default=_uuid)
    recipe_version_id = Column(
        String(36), ForeignKey("recipe_versions.id"), index=True, nullable=False
    )
    change_type = Column(String(40), nullable=False)
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    reason = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)


class DiaryEntry(Base):
    __tablename__ = "recipe_diary_entries"
    id = Column(String(36), primary_key=True, default=_uuid)
    recipe_version_id = Column(
        String(36), ForeignKey("recipe_versions.id"), index=True, nullable=False
    )
    created_by = Column(String(64), index=True, nullable=False)
    entry_type = Column(String(20), nullable=False)
    content = Column(Text, nullable=False)
    cooking_date = Column(Date, nullable=True)
    images = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)

    creator = relationship(
        "Profile",
        primaryjoin="foreign(DiaryEntry.created_by) == Profile.id",
        viewonly=True,
        lazy="joined",
    )


class RecipeRating(Base):
    __tablename__ = "recipe_ratings"
    __table_args__ = (UniqueConstraint("recipe_id", "user_id"),)
    id = Column(String(36), primary_key=True, default=_uuid)
    recipe_id = Column(String(36), ForeignKey("recipes.id"), index=True, nullable=False)
    user_id = Column(String(64), index=True, nullable=False)
    rating = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_now, onupdate=_now, nullable=False)


class FavoriteRecipe(Base):
    __tablename__ = "user_favorite_recipes"
    __table_args__ = (UniqueConstraint("user_id", "recipe_id"),)
    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), index=True, nullable=False)
    recipe_id = Column(String(36), ForeignKey("recipes.id"), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=_now, nullable=False)