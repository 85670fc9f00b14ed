from contextlib import asynccontextmanager
from typing import List, Literal, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import ratings, recipes, schemas, versioning
from .config import configure_logging, settings
from .db import SessionLocal, init_db


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    # Initialize DB once at startup
    init_db()
    yield


app = FastAPI(title=settings.PROJECT_NAME, version=settings.VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


STATUS_CODES = {
    "AuthenticationRequired": 401,
    "NotFoundOrForbidden": 404,
    "ValidationFailure": 422,
    "StoreFailure": 500,
}


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(request: Request) -> Optional[str]:
    # authentication happens upstream; we only read the resulting user id
    return request.headers.get(settings.USER_HEADER) or None


def respond(result: schemas.Result) -> JSONResponse:
    status = 200 if result.success else STATUS_CODES.get(result.error_type, 500)
    return JSONResponse(status_code=status, content=result.model_dump(mode="json"))


@app.get("/health")
def health_check():
    return {"status": "healthy"}


@app.put("/api/profiles/me")
def put_profile(
    payload: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(recipes.upsert_profile(db, user_id, payload))


@app.post("/api/recipes")
def api_create_recipe(
    payload: schemas.RecipeCreate,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(recipes.create_recipe(db, user_id, payload))


@app.get("/api/recipes")
def api_list_recipes(
    category: Optional[schemas.RecipeCategory] = None,
    subcategory: Optional[schemas.RecipeSubcategory] = None,
    difficulty: Optional[int] = Query(None, ge=1, le=3),
    sort_by: Literal["created_at", "name", "total_time"] = "created_at",
    sort_direction: Literal["asc", "desc"] = "desc",
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
):
    return respond(
        recipes.list_recipes(
            db,
            category=category,
            subcategory=subcategory,
            difficulty=difficulty,
            sort_by=sort_by,
            sort_direction=sort_direction,
            skip=(page - 1) * page_size,
            limit=page_size,
        )
    )


@app.get("/api/recipes/{recipe_id}")
def api_get_recipe(
    recipe_id: str,
    servings: Optional[int] = Query(None, ge=1),
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(recipes.get_recipe(db, recipe_id, viewer_id=user_id, servings=servings))


@app.put("/api/recipes/{recipe_id}")
def api_update_recipe(
    recipe_id: str,
    payload: schemas.RecipeCreate,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(recipes.update_recipe(db, user_id, recipe_id, payload))


@app.delete("/api/recipes/{recipe_id}")
def api_delete_recipe(
    recipe_id: str,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(recipes.delete_recipe(db, user_id, recipe_id))


@app.put("/api/recipes/{recipe_id}/status")
def api_update_recipe_status(
    recipe_id: str,
    payload: schemas.RecipeStatusUpdate,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(recipes.update_recipe_status(db, user_id, recipe_id, payload.status))


@app.get("/api/profiles/{profile_id}/recipes")
def api_user_recipes(
    profile_id: str,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(recipes.list_user_recipes(db, profile_id, viewer_id=user_id))


@app.get("/api/profiles/{profile_id}/favorites")
def api_user_favorites(profile_id: str, db: Session = Depends(get_db)):
    return respond(recipes.list_favorite_recipes(db, profile_id))


@app.post("/api/recipes/{recipe_id}/favorite")
def api_add_favorite(
    recipe_id: str,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(recipes.add_favorite(db, user_id, recipe_id))


@app.delete("/api/recipes/{recipe_id}/favorite")
def api_remove_favorite(
    recipe_id: str,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(recipes.remove_favorite(db, user_id, recipe_id))


@app.post("/api/recipes/{recipe_id}/ratings")
def api_create_rating(
    recipe_id: str,
    payload: schemas.RatingUpdate,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(ratings.create_rating(db, user_id, recipe_id, payload.rating))


@app.get("/api/recipes/{recipe_id}/ratings")
def api_list_ratings(recipe_id: str, db: Session = Depends(get_db)):
    return respond(ratings.list_ratings(db, recipe_id))


@app.get("/api/recipes/{recipe_id}/ratings/stats")
def api_recipe_rating_stats(recipe_id: str, db: Session = Depends(get_db)):
    return respond(ratings.get_recipe_rating_stats(db, recipe_id))


@app.get("/api/recipes/{recipe_id}/rating")
def api_my_rating(
    recipe_id: str,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(ratings.get_user_rating(db, user_id, recipe_id))


@app.put("/api/recipes/{recipe_id}/rating")
def api_submit_rating(
    recipe_id: str,
    payload: schemas.RatingUpdate,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(ratings.submit_rating(db, user_id, recipe_id, payload.rating))


@app.get("/api/ratings/stats")
def api_multiple_rating_stats(
    ids: List[str] = Query(default=[]),
    db: Session = Depends(get_db),
):
    return respond(ratings.get_multiple_recipe_rating_stats(db, ids))


@app.patch("/api/ratings/{rating_id}")
def api_update_rating(
    rating_id: str,
    payload: schemas.RatingUpdate,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(ratings.update_rating(db, user_id, rating_id, payload.rating))


@app.delete("/api/ratings/{rating_id}")
def api_delete_rating(
    rating_id: str,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(ratings.delete_rating(db, user_id, rating_id))


@app.get("/api/recipes/{recipe_id}/versions")
def api_version_history(
    recipe_id: str,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(versioning.list_version_history(db, recipe_id, viewer_id=user_id))


@app.get("/api/recipes/{recipe_id}/versions/tree")
def api_version_tree(
    recipe_id: str,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(versioning.build_version_tree(db, recipe_id, viewer_id=user_id))


@app.post("/api/versions")
def api_fork_recipe(
    payload: schemas.ForkRequest,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(versioning.fork_recipe(db, user_id, payload))


# must be registered before /api/versions/{version_id}
@app.get("/api/versions/compare")
def api_compare_versions(
    original: str,
    modified: str,
    mode: Optional[Literal["identity", "value"]] = None,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(
        versioning.compare_versions(db, original, modified, viewer_id=user_id, mode=mode)
    )


@app.get("/api/versions/{version_id}")
def api_get_version(
    version_id: str,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(versioning.get_version_details(db, version_id, viewer_id=user_id))


@app.put("/api/versions/{version_id}/rating")
def api_rate_version(
    version_id: str,
    payload: schemas.RatingUpdate,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(versioning.update_version_rating(db, user_id, version_id, payload.rating))


@app.get("/api/versions/{version_id}/diary")
def api_list_diary(
    version_id: str,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(versioning.list_diary_entries(db, version_id, viewer_id=user_id))


@app.post("/api/versions/{version_id}/diary")
def api_create_diary_entry(
    version_id: str,
    payload: schemas.DiaryEntryFields,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    data = schemas.DiaryEntryCreate(recipe_version_id=version_id, **payload.model_dump())
    return respond(versioning.create_diary_entry(db, user_id, data))


@app.patch("/api/diary/{entry_id}")
def api_update_diary_entry(
    entry_id: str,
    payload: schemas.DiaryEntryUpdate,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(versioning.update_diary_entry(db, user_id, entry_id, payload))


@app.delete("/api/diary/{entry_id}")
def api_delete_diary_entry(
    entry_id: str,
    db: Session = Depends(get_db),
    user_id: Optional[str] = Depends(get_current_user),
):
    return respond(versioning.delete_diary_entry(db, user_id, entry_id))
