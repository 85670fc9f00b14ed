import functools
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .schemas import Result


logger = logging.getLogger(__name__)


class RecipebookError(Exception):
    default_message = "Operation failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationRequired(RecipebookError):
    default_message = "User not authenticated"


class NotFoundOrForbidden(RecipebookError):
    """Row is absent or the owner filter excluded it; the two are not told apart."""
    default_message = "Not found or not permitted"


class ValidationFailure(RecipebookError):
    default_message = "Invalid data"


class StoreFailure(RecipebookError):
    default_message = "Store error"


def _find_session(args, kwargs):
    db = kwargs.get("db")
    if db is None and args and isinstance(args[0], Session):
        db = args[0]
    return db


def returns_result(func):
    """Run `func` and wrap its return value (or any exception) in a Result.

    The wrapped function must take the session as its first argument or as
    `db=`; on failure the session is rolled back before returning.
    """

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return Result.ok(func(*args, **kwargs))
        except RecipebookError as exc:
            _rollback(_find_session(args, kwargs))
            logger.info("%s: %s", func.__name__, exc.message)
            return Result.fail(exc.message, type(exc).__name__)
        except SQLAlchemyError as exc:
            _rollback(_find_session(args, kwargs))
            logger.exception("%s: store error", func.__name__)
            message = str(getattr(exc, "orig", None) or exc)
            return Result.fail(message, StoreFailure.__name__)
        except Exception as exc:
            _rollback(_find_session(args, kwargs))
            logger.exception("%s: unexpected error", func.__name__)
            return Result.fail(str(exc) or type(exc).__name__, StoreFailure.__name__)

    return wrapper


def _rollback(db):
    if db is None:
        return
    try:
        db.rollback()
    except SQLAlchemyError:
        logger.exception("rollback failed")
