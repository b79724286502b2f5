"""Run a unit of work in one database transaction."""

from __future__ import annotations

from collections.abc import Callable
from typing import TypeVar

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import FlowError, InternalError
from ..extensions import db

T = TypeVar("T")


def run_atomically(action: str, func: Callable[[], T]) -> T:
    """Call ``func`` and commit, or roll everything back on failure.

    Domain errors are re-raised as they are; database errors become
    ``InternalError`` so callers never see a half-applied change.
    """

    try:
        result = func()
        db.session.commit()
        return result
    except FlowError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to %s", action)
        raise InternalError(f"Failed to {action}") from exc
