from contextlib import contextmanager
from typing import Generator, Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session, sessionmaker

from oee_app.config import AppSettings, load_settings
from oee_app.errors import (
    AuthenticationError,
    DuplicateCodeError,
    InUseError,
    InvalidLinkError,
    NotFoundError,
    OrderConflictError,
    OrderStateError,
)
from oee_app.models import Tenant
from oee_app.tenancy import check_admin_token, resolve_tenant

_session_factory: Optional[sessionmaker] = None
_settings: Optional[AppSettings] = None


def init_dependencies(session_factory: sessionmaker, settings: AppSettings) -> None:
    global _session_factory, _settings
    _session_factory = session_factory
    _settings = settings


def get_session() -> Generator[Session, None, None]:
    if _session_factory is None:
        raise RuntimeError("Database is not initialised; import oee_app.main first")
    with _session_factory() as session:
        yield session


def get_settings() -> AppSettings:
    return _settings or load_settings()


@contextmanager
def domain_errors():
    """Translate domain exceptions raised inside a route into HTTP errors."""
    try:
        yield
    except AuthenticationError as exc:
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except (OrderConflictError, OrderStateError, DuplicateCodeError, InUseError) as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except InvalidLinkError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def get_current_tenant(
    authorization: Optional[str] = Header(None),
    session: Session = Depends(get_session),
) -> Tenant:
    with domain_errors():
        return resolve_tenant(session, authorization)


def require_admin(
    x_admin_token: Optional[str] = Header(None),
    settings: AppSettings = Depends(get_settings),
) -> None:
    with domain_errors():
        check_admin_token(settings.admin_token, x_admin_token)
