import logging
from contextlib import contextmanager

from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from medbook.scheduling.errors import InvalidTransition, SchedulingError
from medbook.scheduling.providers import Caller, ProviderRef

logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def to_http_exception(exc: SchedulingError) -> HTTPException:
    if isinstance(exc, InvalidTransition):
        return HTTPException(
            status_code=exc.status_code,
            detail={'message': exc.detail, 'current_status': exc.current_status},
        )
    return HTTPException(status_code=exc.status_code, detail=exc.detail)


@contextmanager
def translate_errors(db: Session | None = None):
    try:
        yield
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        if db is not None:
            db.rollback()
        logger.exception('Database error while handling scheduling request')
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def require_provider(caller: Caller) -> ProviderRef:
    provider = caller.provider
    if provider is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only doctors and institutes can manage schedules.',
        )
    return provider
