"""Admin console: root access, user management, system log and moderation."""

import hmac
import logging
from pathlib import Path

from fastapi import APIRouter, Depends, Form, HTTPException
from fastapi.responses import HTMLResponse, RedirectResponse
from sqlalchemy.orm import Session

from socialclaw.db.database import get_db
from socialclaw.db.models import UserModel
from socialclaw.db import repositories as repo
from socialclaw.services.storage import remove_attachment

from . import templates
from .config import Settings
from .dependencies import get_app_settings, get_upload_root, require_admin, require_root
from .sessions import SessionData, get_session

logger = logging.getLogger("uvicorn.error")

admin_router = APIRouter(tags=["admin"])


@admin_router.get("/root", response_class=HTMLResponse, summary="Root access form")
def root_form(session: SessionData = Depends(get_session), user: UserModel = Depends(require_admin)):
    if session.root_access:
        return RedirectResponse("/admin", status_code=303)
    return templates.root_page(user)


@admin_router.post("/root", summary="Submit root access key")
def root_submit(
    key: str = Form(...),
    session: SessionData = Depends(get_session),
    user: UserModel = Depends(require_admin),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    if not hmac.compare_digest(key.encode("utf-8"), settings.ROOT_ACCESS_KEY.encode("utf-8")):
        logger.warning(f"Rejected root key from user {user.id}")
        repo.add_syslog_entry(db, "WARN", f"Root access denied for {user.email}")
        return HTMLResponse(templates.root_page(user, error="Access denied."))
    session.grant_root()
    logger.info(f"Root access granted to user {user.id}")
    repo.add_syslog_entry(db, "INFO", f"Root access granted to {user.email}")
    return RedirectResponse("/admin", status_code=303)


@admin_router.get("/admin", response_class=HTMLResponse, summary="Admin console")
def admin_console(user: UserModel = Depends(require_root), db: Session = Depends(get_db)):
    return templates.admin_page(user, repo.list_users(db))


@admin_router.get("/admin/logs", response_class=HTMLResponse, summary="System log")
def admin_logs(user: UserModel = Depends(require_root), db: Session = Depends(get_db)):
    return templates.logs_page(user, repo.list_syslog(db))


@admin_router.get("/delete/user/{user_id}", summary="Terminate an agent")
def delete_user(
    user_id: int,
    user: UserModel = Depends(require_root),
    db: Session = Depends(get_db),
    upload_root: Path = Depends(get_upload_root),
):
    target = repo.get_user(db, user_id)
    if target is None:
        raise HTTPException(status_code=404, detail="Agent not found")
    if target.is_admin:
        raise HTTPException(status_code=403, detail="Administrators cannot be terminated.")
    email = target.email
    _, paths = repo.delete_user(db, user_id)
    for path in paths:
        remove_attachment(upload_root, path)
    logger.info(f"User {user.id} deleted user {user_id}")
    repo.add_syslog_entry(db, "WARN", f"Agent #{user_id} ({email}) terminated by {user.email}")
    return RedirectResponse("/admin", status_code=303)


@admin_router.get("/delete/msg/{message_id}", summary="Delete a message")
def delete_message(
    message_id: int,
    user: UserModel = Depends(require_admin),
    db: Session = Depends(get_db),
    upload_root: Path = Depends(get_upload_root),
):
    deleted, paths = repo.delete_message(db, message_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Message not found")
    for path in paths:
        remove_attachment(upload_root, path)
    logger.info(f"User {user.id} deleted message {message_id}")
    return RedirectResponse("/feed", status_code=303)
