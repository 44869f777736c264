import logging
from functools import wraps

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

logger = logging.getLogger(__name__)


class DBException(Exception):
    def __init__(self, message: str, status_code: int = 400):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


def db_exception(func):
    """Translate SQLAlchemy failures on write paths into DBException."""

    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except IntegrityError as e:
            self.db.rollback()
            logger.warning(f"{func.__name__}: integrity error: {e.orig}")
            raise DBException("Duplicate entry: already exists", 409)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"{func.__name__}: database error: {e}")
            raise DBException("Database error occurred", 500)

    return wrapper
