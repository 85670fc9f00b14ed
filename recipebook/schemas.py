from datetime import date, datetime
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field


RecipeStatus = Literal["draft", "published", "archived"]
RecipeCategory = Literal["sweets", "breads"]
RecipeSubcategory = Literal[
    # sweets
    "cookies",
    "muffins.cupcakes",
    "roll.cakes",
    "tarts",
    "pies",
    "brownies",
    "donuts",
    "ice.cream",
    "puddings",
    "chocolates",
    "candies",
    "cheesecakes",
    "macarons",
    "traditional.sweets",
    # breads
    "sourdough",
    "flatbreads",
    "sweet.breads",
    "buns.rolls",
    "bagels",
    "croissants",
    "baguettes",
    "natural-yeast",
]
MeasurementUnit = Literal[
    "g", "kg", "ml", "l", "tsp", "tbsp", "cup", "oz", "lb", "pcs", "pinch"
]
DiaryEntryType = Literal["pre_cooking", "during_cooking", "post_cooking", "next_time"]
RecipeChangeType = Literal[
    "ingredient_added",
    "ingredient_removed",
    "ingredient_modified",
    "instruction_added",
    "instruction_removed",
    "instruction_modified",
    "general_info_modified",
]


class Ingredient(BaseModel):
    # older rows may carry extra keys; keep them so diffs see them
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    name: str = Field(..., json_schema_extra={"example": "bread flour"})
    amount: str = Field("", json_schema_extra={"example": "500"})
    unit: MeasurementUnit = "g"
    is_flour: bool = False


class Instruction(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    step: int = Field(..., ge=1)
    text: str
    image_url: Optional[str] = None


class ProfileBase(BaseModel):
    username: Optional[str] = None
    name: Optional[str] = None
    avatar_url: Optional[str] = None


class ProfileUpdate(ProfileBase):
    pass


class Profile(ProfileBase):
    model_config = ConfigDict(from_attributes=True)

    id: str


class RecipeBase(BaseModel):
    name: str = Field(
        ..., min_length=1, json_schema_extra={"example": "Country Sourdough"}
    )
    description: Optional[str] = None
    category: RecipeCategory
    subcategory: Optional[RecipeSubcategory] = None
    servings: Optional[int] = Field(None, ge=1)
    total_time: Optional[int] = Field(None, ge=0)
    difficulty: int = Field(1, ge=1, le=3)
    image_thumbnail_url: Optional[str] = None
    image_banner_url: Optional[str] = None
    ingredients: List[Ingredient] = Field(default_factory=list)
    instructions: List[Instruction] = Field(default_factory=list)


class RecipeCreate(RecipeBase):
    status: RecipeStatus = "draft"


class Recipe(RecipeBase):
    model_config = ConfigDict(from_attributes=True)

    id: str
    slug: str
    status: RecipeStatus
    created_by: str
    created_at: datetime
    version_id: Optional[str] = None
    author: Optional[Profile] = None


class RecipeChangeCreate(BaseModel):
    change_type: RecipeChangeType
    old_value: Any = None
    new_value: Any = None
    reason: str = ""


class RecipeChange(RecipeChangeCreate):
    model_config = ConfigDict(from_attributes=True)

    id: str
    recipe_version_id: str
    created_at: datetime


class ForkRequest(BaseModel):
    original_recipe_id: str
    parent_version_id: Optional[str] = None
    recipe_data: RecipeBase
    change_summary: str = ""
    is_public: bool = True
    success_rating: Optional[int] = Field(None, ge=1, le=5)
    changes_made: List[RecipeChangeCreate] = Field(default_factory=list)


class RecipeVersion(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    original_recipe_id: str
    parent_version_id: Optional[str] = None
    recipe_id: str
    version_number: str
    created_by: str
    created_at: datetime
    change_summary: str
    is_public: bool
    fork_count: int
    success_rating: Optional[int] = None

    recipe: Optional[Recipe] = None
    creator: Optional[Profile] = None


class RatingUpdate(BaseModel):
    rating: int = Field(..., ge=1, le=5)


class RecipeStatusUpdate(BaseModel):
    status: RecipeStatus


class RecipeRating(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    recipe_id: str
    user_id: str
    rating: int
    created_at: datetime
    updated_at: datetime


class RecipeRatingStats(BaseModel):
    recipe_id: str
    name: Optional[str] = None
    slug: Optional[str] = None
    avg_rating: float = 0.0
    total_ratings: int = 0
    rating_5: int = 0
    rating_4: int = 0
    rating_3: int = 0
    rating_2: int = 0
    rating_1: int = 0


class FavoriteRecipe(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    recipe_id: str
    created_at: datetime


class DiaryEntryFields(BaseModel):
    entry_type: DiaryEntryType
    content: str = Field(..., min_length=1)
    cooking_date: Optional[date] = None
    images: List[str] = Field(default_factory=list)


class DiaryEntryCreate(DiaryEntryFields):
    recipe_version_id: str


class DiaryEntryUpdate(BaseModel):
    """Partial update; only fields explicitly sent are written."""
    content: Optional[str] = Field(None, min_length=1)
    cooking_date: Optional[date] = None
    images: Optional[List[str]] = None


class DiaryEntry(DiaryEntryFields):
    model_config = ConfigDict(from_attributes=True)

    id: str
    recipe_version_id: str
    created_by: str
    created_at: datetime
    creator: Optional[Profile] = None


class VersionDetails(RecipeVersion):
    parent_version: Optional[RecipeVersion] = None
    children: List[RecipeVersion] = Field(default_factory=list)
    changes_made: List[RecipeChange] = Field(default_factory=list)
    diary_entries: List[DiaryEntry] = Field(default_factory=list)
    total_diary_entries: int = 0
    recent_diary_entries: List[DiaryEntry] = Field(default_factory=list)


class VersionTreeNode(BaseModel):
    version: RecipeVersion
    children: List["VersionTreeNode"] = Field(default_factory=list)
    depth: int = 0


class ListDiff(BaseModel):
    added: List[Any] = Field(default_factory=list)
    removed: List[Any] = Field(default_factory=list)
    modified: List[Any] = Field(default_factory=list)


class FieldChange(BaseModel):
    old: Any = None
    new: Any = None


class VersionChanges(BaseModel):
    ingredients: ListDiff
    instructions: ListDiff
    general: Dict[str, FieldChange] = Field(default_factory=dict)


class VersionComparison(BaseModel):
    original: RecipeVersion
    modified: RecipeVersion
    changes: VersionChanges


T = TypeVar("T")


class Result(BaseModel, Generic[T]):
    """Envelope returned by every public operation: never raised, always returned."""
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None
    # class name of the error; drives the HTTP status, not serialised
    error_type: Optional[str] = Field(default=None, exclude=True)

    @classmethod
    def ok(cls, data: Any = None) -> "Result":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: str, error_type: Optional[str] = None) -> "Result":
        return cls(success=False, error=error, error_type=error_type)
