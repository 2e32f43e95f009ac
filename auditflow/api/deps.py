from typing import Generator, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from auditflow.core.rbac import ScopeFilter, compute_scope_filter
from auditflow.core.security import decode_token
from auditflow.db.models import User

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_db(request: Request) -> Generator:
    """Database session dependency, borrowed from the app's session factory."""
    db = request.app.state.session_factory()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_current_user(
    request: Request,
    db: Session = Depends(get_db),
    token: Optional[str] = Depends(oauth2_scheme),
) -> User:
    """Get current authenticated user from the bearer token."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if token:
        user_id = decode_token(token)
        if user_id:
            user = db.query(User).filter(User.id == user_id).first()
            if user and user.is_active:
                request.state.user = user
                return user

    raise credentials_exception


def get_scope_filter(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> ScopeFilter:
    """Visibility predicate for the current user, recomputed per request."""
    return compute_scope_filter(db, current_user)

