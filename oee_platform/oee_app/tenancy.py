import hashlib
import secrets

from sqlalchemy import select
from sqlalchemy.orm import Session

from oee_app.errors import AuthenticationError
from oee_app.models import Tenant


def hash_token(token: str) -> str:
    h = hashlib.sha256()
    h.update(token.encode("utf-8"))
    return h.hexdigest()


def create_tenant(session: Session, name: str) -> tuple[Tenant, str]:
    """Create a tenant and return it with its plaintext API token.

    Only the token hash is stored; the plaintext is returned once.
    """
    token = secrets.token_hex(32)
    tenant = Tenant(name=name.strip(), api_token_hash=hash_token(token), is_active=True)
    session.add(tenant)
    session.commit()
    session.refresh(tenant)
    return tenant, token


def parse_bearer(authorization: str | None) -> str:
    if not authorization:
        raise AuthenticationError("Access token required")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Authorization header must be 'Bearer <token>'")
    return token.strip()


def resolve_tenant(session: Session, authorization: str | None) -> Tenant:
    token = parse_bearer(authorization)
    tenant = session.execute(
        select(Tenant).where(Tenant.api_token_hash == hash_token(token))
    ).scalars().first()
    if tenant is None or not tenant.is_active:
        raise AuthenticationError("Invalid token", status_code=403)
    return tenant


def check_admin_token(expected: str | None, provided: str | None) -> None:
    if not expected or not provided or not secrets.compare_digest(expected, provided):
        raise AuthenticationError("Invalid admin token")
