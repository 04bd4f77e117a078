from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import Body, Depends, FastAPI, HTTPException, Request
from playwright.async_api import Error as PlaywrightError
from pydantic import BaseModel

from ..agent.browser import BrowserSession
from ..agent.session import AutomationSession
from ..config import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with BrowserSession() as browser:
        if settings.start_url:
            await browser.goto(settings.start_url)
        app.state.browser = browser
        app.state.session_lock = asyncio.Lock()
        yield
        app.state.browser = None


app = FastAPI(lifespan=lifespan)


class NavigateRequest(BaseModel):
    url: str


class NavigateResponse(BaseModel):
    url: str
    title: str


def get_browser(request: Request) -> BrowserSession:
    browser = getattr(request.app.state, "browser", None)
    if browser is None:
        raise HTTPException(status_code=503, detail="Browser is not running")
    return browser


def get_automation_session(browser: BrowserSession = Depends(get_browser)) -> AutomationSession:
    return browser.automation_session()


def get_session_lock(request: Request) -> asyncio.Lock:
    """One lock per app: snapshots and actions on the shared page must not interleave,
    or refs from one generation would be resolved against another.
    """
    lock = getattr(request.app.state, "session_lock", None)
    if lock is None:
        lock = request.app.state.session_lock = asyncio.Lock()
    return lock


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/messages")
async def post_message(
    payload: Any = Body(...),
    session: AutomationSession = Depends(get_automation_session),
    lock: asyncio.Lock = Depends(get_session_lock),
) -> dict[str, Any]:
    async with lock:
        return await session.handle_message(payload)


@app.post("/navigate", response_model=NavigateResponse)
async def navigate(
    payload: NavigateRequest,
    browser: BrowserSession = Depends(get_browser),
    lock: asyncio.Lock = Depends(get_session_lock),
):
    async with lock:
        try:
            await browser.goto(payload.url)
        except PlaywrightError as exc:
            logging.warning("navigate_failed url=%s reason=%s", payload.url, exc)
            raise HTTPException(status_code=502, detail=f"Navigation failed: {exc}") from exc
        page = browser.page
        return NavigateResponse(url=page.url if page else payload.url, title=await browser.title())
