import secrets

from fastapi import Depends, HTTPException, Request, status

from ...domain.models.session import SESSION_CSRF_TOKEN
from ...infrastructure.session_store import MappingSessionStore

CSRF_HEADER = "X-CSRF-Token"


def get_session_store(request: Request) -> MappingSessionStore:
    return MappingSessionStore(request.session)


def issue_csrf_token(session: MappingSessionStore) -> str:
    """Return the session's submission token, creating it on first use."""
    token = session.get(SESSION_CSRF_TOKEN)
    if not token:
        token = secrets.token_urlsafe(32)
        session.set(SESSION_CSRF_TOKEN, token)
    return token


def require_csrf_token(
    request: Request,
    session: MappingSessionStore = Depends(get_session_store),
) -> None:
    expected = session.get(SESSION_CSRF_TOKEN)
    submitted = request.headers.get(CSRF_HEADER)
    if not expected or not submitted or not secrets.compare_digest(expected.encode(), submitted.encode()):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid or missing CSRF token.")
