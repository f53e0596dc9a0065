"""
Translation of ledger errors into HTTP errors

Services wrap each unit of work in ``ledger_errors(db, action)``. Any failure
rolls the session back so a rejected bill is never half-saved.
"""
from contextlib import contextmanager
from fastapi import HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
import logging

from app.modules.ledger.errors import ValidationError, InvariantViolation

logger = logging.getLogger(__name__)


@contextmanager
def ledger_errors(db: Session, action: str):
    try:
        yield
    except HTTPException:
        db.rollback()
        raise
    except ValidationError as e:
        db.rollback()
        logger.warning(f"Rejected {action}: {e.field} - {e.message}")
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=e.to_dict()
        )
    except InvariantViolation as e:
        db.rollback()
        logger.error(f"Invariant violated while {action}: {e.code} - {e.message}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=e.to_dict()
        )
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Integrity error while {action}: {e.orig}")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Conflict while {action}: document number already exists"
        )
    except Exception as e:
        db.rollback()
        logger.exception(f"Unexpected error while {action}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Error {action}: {str(e)}"
        )
