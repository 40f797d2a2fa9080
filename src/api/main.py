"""
FastAPI backend: REST surface over an AccountSession per account.
Run with uvicorn: uvicorn api.main:app --reload
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from repo root (when run from repo root or from Docker)
for path in (
    Path(__file__).resolve().parent.parent.parent / ".env",
    Path.cwd() / ".env",
):
    if path.exists():
        load_dotenv(path)
        break

from contextlib import asynccontextmanager
from typing import Literal

from fastapi import FastAPI, Header, HTTPException, Request
from neo4j import AsyncGraphDatabase
from pydantic import BaseModel

from rapport.application import (
    AccountError,
    AccountSession,
    Authenticator,
    InvalidCredentials,
    NotFound,
    OperationRejected,
    RemovedAccount,
    SessionContext,
    TransportFailure,
)
from rapport.domain import Account, Chat, Profile
from rapport.domain import Request as IncomingRequest
from rapport.infrastructure import (
    InMemoryDirectory,
    InMemoryLocalCache,
    Neo4jLocalCache,
    ensure_cache_constraint,
)

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)
logger = logging.getLogger(__name__)

ACCOUNT_ID_HEADER = "X-Account-Id"
CACHE_MEMORY = "memory"
CACHE_NEO4J = "neo4j"


def _cache_backend() -> str:
    return os.environ.get("RAPPORT_CACHE", CACHE_MEMORY).strip().lower() or CACHE_MEMORY


def _get_driver():
    uri = os.environ.get("NEO4J_URI", "bolt://localhost:7687").strip()
    user = os.environ.get("NEO4J_USER", "neo4j").strip()
    password = os.environ.get("NEO4J_PASSWORD", "password").strip()
    return AsyncGraphDatabase.driver(uri, auth=(user, password))


# Per-account session cache (same account keeps the same live aggregate)
_session_cache: dict[str, AccountSession] = {}


def _get_directory(app: FastAPI) -> InMemoryDirectory:
    if getattr(app.state, "directory", None) is None:
        app.state.directory = InMemoryDirectory()
    return app.state.directory


def _get_cached_driver(app: FastAPI):
    if getattr(app.state, "driver", None) is None:
        app.state.driver = _get_driver()
    return app.state.driver


def _make_cache(account_id: str, app: FastAPI):
    if _cache_backend() == CACHE_NEO4J:
        return Neo4jLocalCache(_get_cached_driver(app), account_id=account_id)
    return InMemoryLocalCache(account_id=account_id)


def get_session(account_id: str, app: FastAPI) -> AccountSession:
    if account_id not in _session_cache:
        directory = _get_directory(app)
        _session_cache[account_id] = AccountSession(
            SessionContext(account_id),
            profiles=directory,
            accounts=directory,
            relationships=directory,
            cache=_make_cache(account_id, app),
            auth=directory,
        )
    return _session_cache[account_id]


def get_authenticator(app: FastAPI) -> Authenticator:
    directory = _get_directory(app)
    return Authenticator(
        directory, profiles=directory, accounts=directory, relationships=directory
    )


def _require_account_id(x_account_id: str | None) -> str:
    account_id = (x_account_id or "").strip()
    if not account_id:
        raise HTTPException(status_code=401, detail=f"{ACCOUNT_ID_HEADER} header is required")
    return account_id


async def _launched_session(
    request: Request, x_account_id: str | None, allow_removed: bool = False
) -> AccountSession:
    """Session for the header's account, launched on first use.

    A removed account stays bound to its session but every call except
    recovery and sign-out answers 404 until it is recovered.
    """
    account_id = _require_account_id(x_account_id)
    session = get_session(account_id, request.app)
    if not session.launched:
        try:
            await session.launch()
        except RemovedAccount:
            logger.info("Account %s is removed", account_id)
        except AccountError as exc:
            raise _http_error(exc) from exc
    if session.account.profile.removed and not allow_removed:
        raise _http_error(RemovedAccount())
    return session


def _http_error(exc: AccountError) -> HTTPException:
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, InvalidCredentials):
        return HTTPException(status_code=401, detail=str(exc))
    if isinstance(exc, OperationRejected):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, TransportFailure):
        logger.warning("Upstream failure: %r", exc.cause)
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.driver = None
    app.state.directory = None
    logger.info("Cache backend: %s", _cache_backend())
    try:
        if _cache_backend() == CACHE_NEO4J:
            await ensure_cache_constraint(_get_cached_driver(app))
        yield
    finally:
        for session in list(_session_cache.values()):
            if session.launched:
                session.feed.close()
        _session_cache.clear()
        if getattr(app.state, "driver", None) is not None:
            await app.state.driver.close()


app = FastAPI(title="Rapport API", lifespan=lifespan)


# --- REST: health ---


@app.get("/health")
def health():
    return {"status": "ok"}


# --- REST: models ---


class ProfileItem(BaseModel):
    id: str
    user_name: str
    info: str
    sex: str
    country: str
    city: str
    birthday: str
    image_url: str
    removed: bool
    online: bool
    last_activity: str | None = None
    posts_count: int


class AccountSnapshot(BaseModel):
    profile: ProfileItem
    blocked_ids: list[str]
    friend_ids: list[str]
    waiting_ids: list[str]
    request_ids: list[str]


class ChatItem(BaseModel):
    friend_id: str
    friend: ProfileItem


class RequestItem(BaseModel):
    sender_id: str
    sender: ProfileItem


class ChatsAndRequests(BaseModel):
    chats: list[ChatItem]
    requests: list[RequestItem]


class CredentialsBody(BaseModel):
    email: str
    password: str


class Registered(BaseModel):
    account_id: str


class LoggedIn(BaseModel):
    account_id: str
    account: AccountSnapshot


class CreateAccountBody(BaseModel):
    user_name: str
    info: str = ""
    sex: str = ""
    country: str = ""
    city: str = ""
    birthday: str = ""
    image_url: str = ""


class EditProfileBody(BaseModel):
    user_name: str | None = None
    info: str | None = None
    sex: str | None = None
    country: str | None = None
    city: str | None = None
    birthday: str | None = None
    image_url: str | None = None


def _profile_item(profile: Profile) -> ProfileItem:
    return ProfileItem(
        id=profile.id,
        user_name=profile.user_name,
        info=profile.info,
        sex=profile.sex,
        country=profile.country,
        city=profile.city,
        birthday=profile.birthday,
        image_url=profile.image_url,
        removed=profile.removed,
        online=profile.online,
        last_activity=profile.last_activity.isoformat() if profile.last_activity else None,
        posts_count=profile.posts_count,
    )


def _snapshot(account: Account) -> AccountSnapshot:
    return AccountSnapshot(
        profile=_profile_item(account.profile),
        blocked_ids=sorted(account.blocked_ids),
        friend_ids=sorted(account.friend_ids),
        waiting_ids=sorted(account.waiting_ids),
        request_ids=sorted(account.request_ids),
    )


def _chats_and_requests(
    chats: list[Chat], requests: list[IncomingRequest]
) -> ChatsAndRequests:
    return ChatsAndRequests(
        chats=[ChatItem(friend_id=c.friend_id, friend=_profile_item(c.friend)) for c in chats],
        requests=[
            RequestItem(sender_id=r.sender_id, sender=_profile_item(r.sender)) for r in requests
        ],
    )


# --- REST: auth ---


@app.post("/auth/register", status_code=201)
async def register(body: CredentialsBody, request: Request) -> Registered:
    try:
        context = await get_authenticator(request.app).register(body.email, body.password)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return Registered(account_id=context.account_id)


@app.post("/auth/login")
async def login(body: CredentialsBody, request: Request) -> LoggedIn:
    try:
        context, account = await get_authenticator(request.app).login(
            body.email, body.password
        )
        session = get_session(context.account_id, request.app)
        await session.launch(account)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return LoggedIn(account_id=context.account_id, account=_snapshot(session.account))


@app.post("/auth/sign-out")
async def sign_out(
    request: Request,
    x_account_id: str | None = Header(None, alias=ACCOUNT_ID_HEADER),
):
    session = await _launched_session(request, x_account_id, allow_removed=True)
    try:
        await session.sign_out()
    except AccountError as exc:
        raise _http_error(exc) from exc
    finally:
        _session_cache.pop(session.context.account_id, None)
    return {"status": "signed_out"}


# --- REST: account ---


@app.post("/account", status_code=201)
async def create_account(
    body: CreateAccountBody,
    request: Request,
    x_account_id: str | None = Header(None, alias=ACCOUNT_ID_HEADER),
):
    account_id = _require_account_id(x_account_id)
    profile = Profile(id=account_id, **body.model_dump())
    try:
        account = await get_authenticator(request.app).create_account(
            SessionContext(account_id), profile
        )
        session = get_session(account_id, request.app)
        await session.launch(account)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return _snapshot(session.account)


@app.delete("/account")
async def remove_account(
    request: Request,
    x_account_id: str | None = Header(None, alias=ACCOUNT_ID_HEADER),
):
    session = await _launched_session(request, x_account_id)
    try:
        await session.remove_account()
    except AccountError as exc:
        raise _http_error(exc) from exc
    _session_cache.pop(session.context.account_id, None)
    return {"status": "removed"}


@app.post("/account/recover")
async def recover_account(
    request: Request,
    x_account_id: str | None = Header(None, alias=ACCOUNT_ID_HEADER),
):
    session = await _launched_session(request, x_account_id, allow_removed=True)
    try:
        await session.recover_account()
    except AccountError as exc:
        raise _http_error(exc) from exc
    return _snapshot(session.account)


@app.get("/account")
async def get_account(
    request: Request,
    x_account_id: str | None = Header(None, alias=ACCOUNT_ID_HEADER),
):
    session = await _launched_session(request, x_account_id)
    return _snapshot(session.account)


@app.post("/account/refresh")
async def refresh_account(
    request: Request,
    x_account_id: str | None = Header(None, alias=ACCOUNT_ID_HEADER),
):
    session = await _launched_session(request, x_account_id)
    try:
        account = await session.refresh()
    except AccountError as exc:
        raise _http_error(exc) from exc
    return _snapshot(account)


@app.patch("/account/profile")
async def edit_profile(
    body: EditProfileBody,
    request: Request,
    x_account_id: str | None = Header(None, alias=ACCOUNT_ID_HEADER),
):
    session = await _launched_session(request, x_account_id)
    fields = {k: v for k, v in body.model_dump().items() if v is not None}
    try:
        profile = await session.edit_profile(**fields)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return _profile_item(profile)


# --- REST: relationships ---


_ACTIONS = {
    "request": "send_request",
    "accept": "accept_request",
    "deny": "deny_request",
    "cancel": "cancel_request",
    "block": "block",
    "unblock": "unblock",
}


@app.post("/users/{user_id}/{action}")
async def relationship_action(
    user_id: str,
    action: str,
    request: Request,
    x_account_id: str | None = Header(None, alias=ACCOUNT_ID_HEADER),
):
    method_name = _ACTIONS.get(action)
    if method_name is None:
        raise HTTPException(status_code=404, detail=f"Unknown action {action!r}")
    session = await _launched_session(request, x_account_id)
    try:
        await getattr(session.gateway, method_name)(user_id)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return _snapshot(session.account)


@app.delete("/friends/{user_id}")
async def remove_friend(
    user_id: str,
    request: Request,
    x_account_id: str | None = Header(None, alias=ACCOUNT_ID_HEADER),
):
    session = await _launched_session(request, x_account_id)
    try:
        await session.gateway.remove_friend(user_id)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return _snapshot(session.account)


@app.get("/blocked")
async def list_blocked(
    request: Request,
    x_account_id: str | None = Header(None, alias=ACCOUNT_ID_HEADER),
):
    session = await _launched_session(request, x_account_id)
    try:
        profiles = await session.gateway.list_blocked()
    except AccountError as exc:
        raise _http_error(exc) from exc
    return [_profile_item(p) for p in profiles]


@app.get("/chats")
async def chats_and_requests(
    request: Request,
    x_account_id: str | None = Header(None, alias=ACCOUNT_ID_HEADER),
):
    session = await _launched_session(request, x_account_id)
    chats, requests = await session.gateway.chats_and_requests()
    return _chats_and_requests(chats, requests)


@app.post("/chats/refresh")
async def refresh_chats_and_requests(
    request: Request,
    x_account_id: str | None = Header(None, alias=ACCOUNT_ID_HEADER),
):
    session = await _launched_session(request, x_account_id)
    chats, requests = await session.gateway.refresh_chats_and_requests()
    return _chats_and_requests(chats, requests)


# --- REST: browsing ---


@app.get("/users")
async def list_users(
    request: Request,
    page: Literal["first", "next"] = "first",
    x_account_id: str | None = Header(None, alias=ACCOUNT_ID_HEADER),
):
    """Pages of other users. page=first restarts; page=next returns [] when exhausted."""
    session = await _launched_session(request, x_account_id)
    try:
        if page == "first":
            profiles = await session.browser.first_page()
        else:
            profiles = await session.browser.next_page()
    except AccountError as exc:
        raise _http_error(exc) from exc
    return [_profile_item(p) for p in profiles]


@app.get("/users/{user_id}")
async def get_user(
    user_id: str,
    request: Request,
    x_account_id: str | None = Header(None, alias=ACCOUNT_ID_HEADER),
):
    session = await _launched_session(request, x_account_id)
    try:
        profile = await session.browser.get_profile(user_id)
    except AccountError as exc:
        raise _http_error(exc) from exc
    return _profile_item(profile)
