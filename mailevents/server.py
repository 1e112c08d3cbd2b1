from __future__ import annotations
import logging
import os
from pathlib import Path
from typing import Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.responses import HTMLResponse, PlainTextResponse
from fastapi.templating import Jinja2Templates
from starlette.exceptions import HTTPException as StarletteHTTPException

from .helpers import is_web_url, now_ts
from .mailgun import (
    EVENT_CLICKED, EVENT_OPENED, event_data, parse_body, parse_event
)
from .model.events import EventStore, StorageError

logger = logging.getLogger(__name__)

templates = Jinja2Templates(
    directory=str(Path(__file__).resolve().parent / "templates")
)
templates.env.globals["is_web_url"] = is_web_url

# ----------------------------
# Config & Constants
# ----------------------------
DATABASE_URL = os.environ.get(
    "DATABASE_URL",
    "sqlite:////var/data/candlebrain.db"
)
HOST = os.environ.get("HOST", "0.0.0.0")
DEFAULT_PORT = 9000


def env_port() -> int:
    return int(os.environ.get("PORT") or DEFAULT_PORT)


PORT = env_port()

SITE_NAME = "CandleBrain Email Analytics"
DASHBOARD_LIMIT = 50
WEBHOOK_PATH = "/mailgun/events"


router = APIRouter()


def get_store(request: Request) -> EventStore:
    return request.app.state.store


def create_app(database_url: Optional[str] = None,
               store: Optional[EventStore] = None) -> FastAPI:
    if store is None:
        store = EventStore.from_url(database_url or DATABASE_URL)

    app = FastAPI(title="Mail Events")
    app.state.store = store
    # the port main() binds; a bare `uvicorn --port N` run is not visible here
    app.state.port = PORT

    # ---
    # startup / shutdown
    # ---
    @app.on_event("startup")
    async def _db_init():
        try:
            await store.init_schema()
        except Exception:
            logger.critical("Could not initialize event tables; refusing "
                            "to serve")
            raise
        logger.info("Event server running on http://localhost:%s",
                    app.state.port)
        logger.info("Expecting Mailgun webhooks at POST %s", WEBHOOK_PATH)

    @app.on_event("shutdown")
    async def _db_close():
        await store.close()

    # errors go back as short text bodies, not JSON
    @app.exception_handler(StarletteHTTPException)
    async def _http_error(_: Request, exc: StarletteHTTPException):
        return PlainTextResponse(
            str(exc.detail),
            status_code=exc.status_code,
            headers=getattr(exc, "headers", None),
        )

    app.include_router(router)
    return app


# ----------------------------
# Webhook endpoint (mailgun)
# ----------------------------
@router.post(WEBHOOK_PATH, response_class=PlainTextResponse)
async def mailgun_events(
    request: Request,
    store: EventStore = Depends(get_store),
):
    body = await request.body()
    try:
        payload = parse_body(body)
    except HTTPException:
        logger.warning("Webhook body is not valid JSON")
        raise

    data = event_data(payload)
    if data is None:
        logger.warning("No event-data in payload")
        raise HTTPException(400, detail="No event-data")

    event = parse_event(data, received_at=now_ts())

    # Storage failures are logged but still acknowledged with 200 so
    # mailgun does not keep retrying the delivery.
    if event.kind == EVENT_OPENED:
        logger.info("OPENED: %s (%s)", event.email, event.domain)
        try:
            await store.insert_open(
                email=event.email,
                domain=event.domain,
                subject=event.subject,
                ip=event.ip,
                user_agent=event.user_agent,
                timestamp=event.timestamp,
            )
        except StorageError as e:
            logger.error("DB error (opens): %s", e)
    elif event.kind == EVENT_CLICKED:
        logger.info("CLICKED: %s -> %s", event.email, event.url)
        try:
            await store.insert_click(
                email=event.email,
                domain=event.domain,
                subject=event.subject,
                url=event.url,
                ip=event.ip,
                user_agent=event.user_agent,
                timestamp=event.timestamp,
            )
        except StorageError as e:
            logger.error("DB error (clicks): %s", e)
    else:
        logger.info("Unhandled event type: %s", event.kind)

    return "OK"


# ----------------------------
# Dashboard: last opens and clicks
# ----------------------------
@router.get("/", response_class=HTMLResponse)
async def dashboard(
    request: Request,
    store: EventStore = Depends(get_store),
):
    try:
        opens = await store.list_recent_opens(DASHBOARD_LIMIT)
        clicks = await store.list_recent_clicks(DASHBOARD_LIMIT)
    except StorageError:
        logger.exception("DB error while rendering dashboard")
        raise HTTPException(500, detail="DB error")

    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "site_name": SITE_NAME,
            "limit": DASHBOARD_LIMIT,
            "opens": opens,
            "clicks": clicks,
        },
    )


app = create_app()


def main(port: Optional[int] = None):
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app.state.port = port or PORT
    uvicorn.run(app, host=HOST, port=app.state.port)


if __name__ == "__main__":
    main()
