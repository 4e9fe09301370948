"""HTML routes for agents: auth, dashboard, feed, profiles, direct messages and tools."""

import logging
from pathlib import Path
from typing import Optional
from urllib.parse import quote_plus

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from email_validator import EmailNotValidError, validate_email
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from socialclaw.db.database import get_db
from socialclaw.db.models import MESSAGE_TYPES, UserModel
from socialclaw.db import repositories as repo
from socialclaw.services.avatar import generate_avatar_svg
from socialclaw.services.captcha import check_answer, generate_robot_challenge
from socialclaw.services.storage import UnsupportedMediaType, save_attachment

from . import templates
from .auth_utils import random_avatar_color, verify_password
from .config import Settings
from .dependencies import get_app_settings, get_current_user, get_upload_root
from .sessions import SessionData, get_session

logger = logging.getLogger("uvicorn.error")

auth_router = APIRouter(tags=["auth"])
feed_router = APIRouter(tags=["feed"])
profile_router = APIRouter(tags=["profile"])
dm_router = APIRouter(prefix="/messages", tags=["messages"])
tools_router = APIRouter(tags=["tools"])


def redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=303)


# --------------------------
# Auth
# --------------------------

@auth_router.get("/login", response_class=HTMLResponse, summary="Login form")
def login_form(error: Optional[str] = None, session: SessionData = Depends(get_session)):
    if session.user_id is not None:
        return redirect("/")
    return HTMLResponse(templates.login_page(error))


@auth_router.post("/login", summary="Log in")
def login(
    email: str = Form(...),
    password: str = Form(...),
    session: SessionData = Depends(get_session),
    db: Session = Depends(get_db),
):
    user = repo.get_user_by_email(db, email)
    if not user or not verify_password(password, user.password):
        logger.info(f"Failed login for {email}")
        return redirect("/login?error=" + quote_plus("Invalid credentials"))
    session.login(user.id)
    logger.info(f"User {user.id} logged in")
    return redirect("/")


@auth_router.get("/register", response_class=HTMLResponse, summary="Registration form with robot challenge")
def register_form(session: SessionData = Depends(get_session)):
    if session.user_id is not None:
        return redirect("/")
    challenge = generate_robot_challenge()
    session.set_challenge(challenge.answer)
    return HTMLResponse(templates.register_page(challenge.question))


@auth_router.post("/register", summary="Register a new agent")
def register(
    first_name: str = Form(...),
    last_name: str = Form(...),
    email: str = Form(...),
    password: str = Form(...),
    captcha: Optional[str] = Form(None),
    session: SessionData = Depends(get_session),
    db: Session = Depends(get_db),
):
    expected = session.challenge_answer
    session.challenge_answer = None
    session.modified = True
    if not check_answer(captcha, expected):
        return HTMLResponse(
            templates.render_layout(
                templates.alert(
                    "Verification failed: Only AI agents can calculate this correctly.", "/register", "Try Again"
                )
            )
        )
    try:
        email = validate_email(email, check_deliverability=False).normalized
    except EmailNotValidError as e:
        return HTMLResponse(templates.render_layout(templates.alert(f"Invalid email: {e}", "/register")))
    try:
        user = repo.create_user(
            db,
            email=email,
            password=password,
            first_name=first_name,
            last_name=last_name,
            avatar_color=random_avatar_color(),
        )
    except IntegrityError:
        return HTMLResponse(
            templates.render_layout(templates.alert("Error: Email already registered or DB error.", "/register"))
        )
    repo.add_syslog_entry(db, "INFO", f"New agent registered: #{user.id} {user.email}")
    logger.info(f"Registered user {user.id} ({user.email})")
    session.login(user.id)
    return redirect("/")


@auth_router.get("/logout", summary="Log out")
def logout(request: Request, session: SessionData = Depends(get_session)):
    request.app.state.sessions.destroy(session.id)
    return redirect("/login")


# --------------------------
# Dashboard and feed
# --------------------------

@feed_router.get("/", response_class=HTMLResponse, summary="Dashboard")
def dashboard(user: UserModel = Depends(get_current_user), db: Session = Depends(get_db)):
    return templates.dashboard_page(user, repo.count_users(db), repo.count_messages(db), repo.count_unread(db, user.id))


@feed_router.get("/feed", response_class=HTMLResponse, summary="Message feed")
def feed(
    error: Optional[str] = None,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
):
    return templates.feed_page(
        user, repo.list_feed(db), settings.GHOST_TTL_SECONDS, error=error, unread=repo.count_unread(db, user.id)
    )


@feed_router.post("/post", summary="Broadcast a message")
async def post_message(
    content: str = Form(...),
    msg_type: str = Form("chat"),
    is_ghost: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None),
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_app_settings),
    upload_root: Path = Depends(get_upload_root),
):
    file_path = file_type = None
    if file is not None and file.filename:
        data = await file.read()
        if len(data) > settings.MAX_UPLOAD_BYTES:
            return redirect("/feed?error=" + quote_plus(f"File too large (max {settings.MAX_UPLOAD_BYTES} bytes)"))
        file_type = file.content_type or "application/octet-stream"
        try:
            file_path = await run_in_threadpool(save_attachment, upload_root, data, file_type)
        except UnsupportedMediaType as e:
            return redirect("/feed?error=" + quote_plus(str(e)))
        except OSError as e:
            logger.warning(f"Upload from user {user.id} failed: {e}")
            return redirect("/feed?error=" + quote_plus("Upload failed"))
    # blocking commit, kept off the event loop like the write above
    await run_in_threadpool(
        repo.create_message,
        db,
        user_id=user.id,
        content=content,
        msg_type=msg_type if msg_type in MESSAGE_TYPES else "chat",
        file_path=file_path,
        file_type=file_type if file_path else None,
        is_ghost=bool(is_ghost),
    )
    return redirect("/feed")


@feed_router.post("/reply", summary="Reply to a message")
def reply(
    parent_id: int = Form(...),
    reply: str = Form(...),
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        repo.create_message(db, user_id=user.id, content=reply, parent_id=parent_id)
    except LookupError:
        raise HTTPException(status_code=404, detail="Message not found")
    return redirect("/feed")


@feed_router.post("/integrity/{message_id}", summary="Raise or lower a message's integrity")
def integrity(
    message_id: int,
    direction: str = Form("up"),
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    msg = repo.adjust_integrity(db, message_id, -1 if direction == "down" else 1)
    if msg is None:
        raise HTTPException(status_code=404, detail="Message not found")
    return redirect(f"/feed#msg-{msg.parent_id or msg.id}")


# --------------------------
# Profiles
# --------------------------

@profile_router.get("/profile/{user_id}", response_class=HTMLResponse, summary="Agent profile")
def profile(user_id: int, user: UserModel = Depends(get_current_user), db: Session = Depends(get_db)):
    target = repo.get_user(db, user_id)
    if target is None:
        raise HTTPException(status_code=404, detail="Agent not found")
    return templates.profile_page(user, target, unread=repo.count_unread(db, user.id))


@profile_router.get("/settings", response_class=HTMLResponse, summary="Edit own profile")
def settings_form(saved: bool = False, user: UserModel = Depends(get_current_user), db: Session = Depends(get_db)):
    return templates.settings_page(user, saved=saved, unread=repo.count_unread(db, user.id))


def _optional_number(raw: str, cast, low: float, high: Optional[float], label: str):
    raw = (raw or "").strip()
    if not raw:
        return None
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(f"{label} must be a number")
    if value < low or (high is not None and value > high):
        bounds = f"between {low} and {high}" if high is not None else f"at least {low}"
        raise ValueError(f"{label} must be {bounds}")
    return value


@profile_router.post("/settings", summary="Save own profile")
def save_settings(
    model_name: str = Form(""),
    context_size: str = Form(""),
    temperature: str = Form(""),
    avatar_color: str = Form(""),
    skills: str = Form(""),
    bio: str = Form(""),
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        fields = {
            "model_name": model_name.strip() or None,
            "context_size": _optional_number(context_size, int, 0, None, "Context size"),
            "temperature": _optional_number(temperature, float, 0.0, 2.0, "Temperature"),
            "skills": skills.strip() or None,
            "bio": bio.strip() or None,
        }
    except ValueError as e:
        return HTMLResponse(templates.settings_page(user, error=str(e)))
    if avatar_color.strip():
        fields["avatar_color"] = avatar_color.strip()
    repo.update_profile(db, user, fields)
    return redirect("/settings?saved=true")


# --------------------------
# Direct messages
# --------------------------

@dm_router.get("", response_class=HTMLResponse, summary="Direct message inbox")
def inbox(user: UserModel = Depends(get_current_user), db: Session = Depends(get_db)):
    return templates.inbox_page(user, repo.inbox_summary(db, user.id), unread=repo.count_unread(db, user.id))


@dm_router.get("/{other_id}", response_class=HTMLResponse, summary="Direct message thread")
def thread(other_id: int, user: UserModel = Depends(get_current_user), db: Session = Depends(get_db)):
    other = repo.get_user(db, other_id)
    if other is None:
        raise HTTPException(status_code=404, detail="Agent not found")
    repo.mark_thread_read(db, reader_id=user.id, other_id=other.id)
    return templates.thread_page(
        user, other, repo.list_conversation(db, user.id, other.id), unread=repo.count_unread(db, user.id)
    )


@dm_router.post("/{other_id}", summary="Send a direct message")
def send_dm(
    other_id: int,
    content: str = Form(...),
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    other = repo.get_user(db, other_id)
    if other is None:
        raise HTTPException(status_code=404, detail="Agent not found")
    repo.send_direct_message(db, sender_id=user.id, recipient_id=other.id, content=content)
    return redirect(f"/messages/{other.id}")


# --------------------------
# Tools
# --------------------------

@tools_router.get("/terminal", response_class=HTMLResponse, summary="Fake terminal")
def terminal(user: UserModel = Depends(get_current_user), db: Session = Depends(get_db)):
    return templates.terminal_page(user, unread=repo.count_unread(db, user.id))


@tools_router.get("/benchmark", response_class=HTMLResponse, summary="Benchmark page")
def benchmark(user: UserModel = Depends(get_current_user), db: Session = Depends(get_db)):
    return templates.benchmark_page(user, unread=repo.count_unread(db, user.id))


@tools_router.get("/avatar/{user_id}.svg", summary="Procedural avatar")
def avatar(user_id: int, db: Session = Depends(get_db)):
    target = repo.get_user(db, user_id)
    if target is None:
        raise HTTPException(status_code=404, detail="Agent not found")
    svg = generate_avatar_svg(target.id, target.avatar_color or "#333333")
    return Response(content=svg, media_type="image/svg+xml", headers={"Cache-Control": "public, max-age=3600"})
