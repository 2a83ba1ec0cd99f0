# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import Depends, FastAPI, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.staticfiles import StaticFiles
from fastapi.templating import Jinja2Templates
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from todosite.auth.passwords import verify_password
from todosite.auth.session import COOKIE_NAME
from todosite.auth.store import SessionStoreError, get_session_store
from todosite.auth.users import (
    EmailTakenError,
    UsernameTakenError,
    authenticate,
    change_password,
    delete_user,
    get_user,
    register_user,
)
from todosite.core.validation import InvalidPasswordError, InvalidTodoError
from todosite.infra.db import get_db, init_db
from todosite.logger import setup_logging
from todosite.permissions import (
    CurrentUser,
    cookie_settings,
    end_session,
    load_user_from_request,
    require_user,
    safe_next,
    start_session,
)
from todosite.services.todo_service import (
    TodoNotFoundError,
    create_todo,
    delete_todo,
    list_todos,
    set_completed,
    toggle_todo,
)

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Initializing database...")
    init_db()
    get_session_store()
    yield
    logger.info("Shutting down application...")


app = FastAPI(title="todosite", lifespan=lifespan)


@app.middleware("http")
async def _auth_middleware(request: Request, call_next):
    request.state.user = await run_in_threadpool(load_user_from_request, request)
    return await call_next(request)


app.mount("/static", StaticFiles(directory=str(BASE_DIR / "static")), name="static")
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))


def _render(request: Request, template_name: str, ctx: dict, *, status_code: int = 200):
    """TemplateResponse wrapper injecting the logged-in user."""
    base_ctx = {
        "current_user": getattr(request.state, "user", None),
    }
    merged = {**base_ctx, **(ctx or {})}
    return templates.TemplateResponse(request, template_name, merged, status_code=status_code)


def _set_session_cookie(resp: Response, token: str) -> Response:
    resp.set_cookie(COOKIE_NAME, token, **cookie_settings())
    return resp


@app.exception_handler(SQLAlchemyError)
async def _db_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
    return _render(
        request,
        "error.html",
        {"title": "Something went wrong", "message": "The request could not be completed. Please try again later."},
        status_code=500,
    )


@app.exception_handler(TodoNotFoundError)
async def _todo_not_found_handler(request: Request, exc: TodoNotFoundError):
    return _render(
        request,
        "error.html",
        {"title": "Not found", "message": "That todo does not exist."},
        status_code=404,
    )


# ------------------ Routes ------------------


@app.get("/health_check")
def health_check():
    return Response(status_code=200)


@app.get("/", response_class=HTMLResponse)
def home(request: Request):
    return _render(request, "index.html", {})


@app.get("/register", response_class=HTMLResponse)
def register_get(request: Request):
    if getattr(request.state, "user", None):
        return RedirectResponse(url="/todo", status_code=303)
    return _render(request, "auth/register.html", {"form": {}, "error": ""})


@app.post("/register")
def register_post(
    request: Request,
    email: str = Form(""),
    username: str = Form(""),
    password: str = Form(""),
    db: Session = Depends(get_db),
):
    form = {"email": email, "username": username}
    try:
        register_user(db, username=username, email=email, password=password)
    except (UsernameTakenError, EmailTakenError) as e:
        return _render(request, "auth/register.html", {"form": form, "error": str(e)}, status_code=409)
    except ValueError as e:
        return _render(request, "auth/register.html", {"form": form, "error": str(e)}, status_code=400)
    return RedirectResponse(url="/login?registered=1", status_code=303)


@app.get("/login", response_class=HTMLResponse)
def login_get(request: Request, next: str = "/todo", registered: int = 0):
    if getattr(request.state, "user", None):
        return RedirectResponse(url=safe_next(next), status_code=303)
    return _render(
        request,
        "auth/login.html",
        {"next": next, "error": "", "username": "", "registered": bool(registered)},
    )


@app.post("/login")
def login_post(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    next: str = Form("/todo"),
    db: Session = Depends(get_db),
):
    u = authenticate(db, username=username, password=password)
    if not u:
        logger.info("Failed login for %r", username)
        return _render(
            request,
            "auth/login.html",
            {"next": next, "error": "Invalid credentials", "username": username, "registered": False},
            status_code=401,
        )
    try:
        token = start_session(u)
    except SessionStoreError:
        logger.exception("Could not create session for %s", u.username)
        return _render(
            request,
            "auth/login.html",
            {"next": next, "error": "Login is temporarily unavailable.", "username": username, "registered": False},
            status_code=503,
        )
    logger.info("User %s logged in", u.username)
    return _set_session_cookie(RedirectResponse(url=safe_next(next), status_code=303), token)


@app.post("/logout")
def logout_post(request: Request):
    user = getattr(request.state, "user", None)
    if user:
        end_session(user.session_id)
        logger.info("User %s logged out", user.username)
    resp = RedirectResponse(url="/login", status_code=303)
    resp.delete_cookie(COOKIE_NAME)
    return resp


def _render_todos(request: Request, db: Session, user: CurrentUser, *, error: str = "", status_code: int = 200):
    todos = list_todos(db, user.user_id)
    return _render(
        request,
        "todo/todos.html",
        {
            "todos": todos,
            "open_count": sum(1 for t in todos if not t.is_completed),
            "error": error,
        },
        status_code=status_code,
    )


@app.get("/todo", response_class=HTMLResponse)
def todo_list(request: Request, user: CurrentUser = Depends(require_user), db: Session = Depends(get_db)):
    return _render_todos(request, db, user)


@app.post("/todo")
def todo_create(
    request: Request,
    todo_content: str = Form(""),
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
):
    try:
        create_todo(db, user.user_id, todo_content)
    except InvalidTodoError as e:
        return _render_todos(request, db, user, error=str(e), status_code=400)
    return RedirectResponse(url="/todo", status_code=303)


@app.post("/todo/{todo_id}/toggle")
def todo_toggle(todo_id: uuid.UUID, user: CurrentUser = Depends(require_user), db: Session = Depends(get_db)):
    toggle_todo(db, user.user_id, todo_id)
    return RedirectResponse(url="/todo", status_code=303)


@app.post("/todo/{todo_id}/delete")
def todo_delete(todo_id: uuid.UUID, user: CurrentUser = Depends(require_user), db: Session = Depends(get_db)):
    delete_todo(db, user.user_id, todo_id)
    return RedirectResponse(url="/todo", status_code=303)


@app.post("/todo/{todo_id}")
def todo_update(
    todo_id: uuid.UUID,
    is_completed: bool = Form(...),
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
):
    set_completed(db, user.user_id, todo_id, is_completed)
    return RedirectResponse(url="/todo", status_code=303)


@app.get("/account", response_class=HTMLResponse)
def account_get(request: Request, changed: int = 0, user: CurrentUser = Depends(require_user)):
    return _render(request, "account.html", {"error": "", "changed": bool(changed)})


@app.post("/account/password")
def account_password(
    request: Request,
    current_password: str = Form(""),
    new_password: str = Form(""),
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
):
    try:
        updated = change_password(
            db, user.user_id, current_password=current_password, new_password=new_password
        )
    except (PermissionError, InvalidPasswordError) as e:
        return _render(request, "account.html", {"error": str(e), "changed": False}, status_code=400)

    # Every other session carries the old auth hash; drop them all and start fresh.
    try:
        get_session_store().delete_for_user(str(user.user_id))
        token = start_session(updated)
    except SessionStoreError:
        logger.exception("Could not rotate sessions for %s", user.username)
        resp = RedirectResponse(url="/login", status_code=303)
        resp.delete_cookie(COOKIE_NAME)
        return resp
    return _set_session_cookie(RedirectResponse(url="/account?changed=1", status_code=303), token)


@app.post("/account/delete")
def account_delete(
    request: Request,
    password: str = Form(""),
    user: CurrentUser = Depends(require_user),
    db: Session = Depends(get_db),
):
    u = get_user(db, user.user_id)
    if not u or not verify_password(u.password_hash, password):
        return _render(
            request, "account.html", {"error": "Password is incorrect.", "changed": False}, status_code=400
        )
    delete_user(db, user.user_id)
    try:
        get_session_store().delete_for_user(str(user.user_id))
    except SessionStoreError:
        logger.exception("Could not drop sessions of deleted user %s", user.username)
    resp = RedirectResponse(url="/login", status_code=303)
    resp.delete_cookie(COOKIE_NAME)
    return resp
