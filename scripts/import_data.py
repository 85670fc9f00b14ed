import argparse
import logging
from pathlib import Path

from pydantic import ValidationError

from recipebook import crud, schemas
from recipebook.config import configure_logging
from recipebook.db import SessionLocal, init_db
from recipebook.recipes import load_recipes
from recipebook.text import slugify


logger = logging.getLogger("recipebook.import")


def main():
    parser = argparse.ArgumentParser(description="Seed recipes from a JSON file")
    parser.add_argument(
        "path",
        nargs="?",
        default=str(Path(__file__).resolve().parents[1] / "data" / "recipes.json"),
    )
    parser.add_argument("--owner", default="seed", help="user id recorded as creator")
    args = parser.parse_args()

    configure_logging()
    init_db()
    data = load_recipes(args.path)
    if not data:
        logger.warning("%s not found or empty", args.path)
        return

    db = SessionLocal()
    added = 0
    try:
        for raw in data:
            name = raw.get("name")
            if not name:
                continue
            if crud.get_recipe_by_slug(db, slugify(name)) is not None:
                continue
            try:
                recipe = schemas.RecipeCreate(**{"status": "published", **raw})
            except ValidationError as exc:
                logger.warning("skipping %r: %s", name, exc)
                continue
            crud.create_recipe(db, recipe, owner_id=args.owner, status=recipe.status)
            added += 1
        db.commit()
    finally:
        db.close()
    logger.info("Imported %d recipes", added)


if __name__ == "__main__":
    main()
