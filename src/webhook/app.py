"""
FastAPI webhook for charting-platform alerts.

POST {path} with JSON {"ticker": ..., "action": "BUY"|"SELL", "test": bool}.
Responses are plain text; the status code comes from the Decision. Other
methods on the trade path get 405. Unexpected errors are logged with the
traceback and answered with "Server error" only.
"""

from __future__ import annotations

import json
import logging

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import PlainTextResponse

from execution.dispatcher import ExecutionDispatcher
from guard_core.errors import GuardFault
from guard_core.signal_validator import MALFORMED_BODY, parse_signal

logger = logging.getLogger("trade_guard.webhook")

SERVER_ERROR = "Server error"
METHOD_NOT_ALLOWED = "Method not allowed"


def create_app(dispatcher: ExecutionDispatcher, path: str = "/api/trade") -> FastAPI:
    app = FastAPI(
        title="trade-guard",
        description="Guarded order execution for charting-platform webhooks.",
        version="0.1.0",
    )

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok"}

    @app.post(path, response_class=PlainTextResponse)
    async def trade(request: Request) -> PlainTextResponse:
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return PlainTextResponse(MALFORMED_BODY, status_code=400)

        try:
            signal = parse_signal(payload)
            decision = await run_in_threadpool(dispatcher.dispatch, signal)
        except GuardFault as fault:
            return PlainTextResponse(fault.reason, status_code=fault.status_code)
        except Exception:
            logger.exception("Unhandled error while dispatching signal")
            return PlainTextResponse(SERVER_ERROR, status_code=500)

        return PlainTextResponse(decision.message, status_code=decision.status_code)

    @app.api_route(path, methods=["GET", "PUT", "PATCH", "DELETE"], include_in_schema=False)
    def not_allowed() -> PlainTextResponse:
        return PlainTextResponse(METHOD_NOT_ALLOWED, status_code=405, headers={"Allow": "POST"})

    return app
