"""Guards shared by the HTML and JSON routers."""

from pathlib import Path

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from socialclaw.db.database import get_db
from socialclaw.db.models import UserModel
from socialclaw.db.repositories import get_user

from .config import Settings
from .sessions import SessionData, get_session


class LoginRequired(Exception):
    """No logged-in user in the session; HTML routes answer with a redirect to /login."""


class RootAccessRequired(Exception):
    """Admin without the root-access flag; answered with a redirect to /root."""


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_upload_root(request: Request) -> Path:
    return Path(request.app.state.settings.UPLOAD_DIR)


def _load_user(session: SessionData, db: Session):
    if session.user_id is None:
        return None
    user = get_user(db, session.user_id)
    if user is None:
        # account was deleted while the session was alive
        session.user_id = None
        session.modified = True
    return user


# PUBLIC_INTERFACE
def get_current_user(session: SessionData = Depends(get_session), db: Session = Depends(get_db)) -> UserModel:
    """Resolve the logged-in user or raise LoginRequired."""
    user = _load_user(session, db)
    if user is None:
        raise LoginRequired()
    return user


# PUBLIC_INTERFACE
def get_api_user(session: SessionData = Depends(get_session), db: Session = Depends(get_db)) -> UserModel:
    """Like get_current_user, but answers JSON clients with 401."""
    user = _load_user(session, db)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not logged in")
    return user


# PUBLIC_INTERFACE
def require_admin(user: UserModel = Depends(get_current_user)) -> UserModel:
    """Allow only users with the admin role."""
    if not user.is_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access Denied: Admin privileges required.")
    return user


# PUBLIC_INTERFACE
def require_root(user: UserModel = Depends(require_admin), session: SessionData = Depends(get_session)) -> UserModel:
    """Admin who has also entered the root access key during this session."""
    if not session.root_access:
        raise RootAccessRequired()
    return user
