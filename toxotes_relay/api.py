"""HTTP surface for submitting relay commands and reading status."""

from __future__ import annotations

import contextlib
import json
import logging
from typing import Optional

from aiohttp import web

from .engine import InvocationResult, RelayStateEngine
from .errors import NotFoundError, PublishError, ValidationError
from .health import HealthReporter

LOGGER = logging.getLogger(__name__)


def _result_payload(result: InvocationResult) -> dict:
    return {
        "status": result.status.as_dict(),
        "things": [device.unique_id for device in result.devices],
        "published": [action.topic for action in result.published],
        "suppressed": list(result.suppressed),
        "persisted": result.persisted,
        "error": result.error,
    }


def _error_payload(code: str, message: str, reporter: HealthReporter) -> dict:
    display = reporter.display_status
    return {
        "error": {"code": code, "message": message},
        "status": display.as_dict() if display is not None else None,
    }


class RelayApiServer:
    """Minimal HTTP server exposing ``/relay``, ``/status`` and ``/healthz``."""

    def __init__(
        self,
        engine: RelayStateEngine,
        reporter: HealthReporter,
        host: str,
        port: int,
    ) -> None:
        self._engine = engine
        self._reporter = reporter
        self._host = host
        self._port = port
        self._runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/relay", self._handle_relay)
        app.router.add_get("/status", self._handle_status)
        app.router.add_get("/healthz", self._handle_health)
        return app

    async def start(self) -> None:
        self._runner = web.AppRunner(self.build_app())
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self._host, self._port)
        await self._site.start()
        LOGGER.info("Relay API listening on http://%s:%s", self._host, self._port)

    async def stop(self) -> None:
        with contextlib.suppress(Exception):
            if self._site is not None:
                await self._site.stop()
        if self._runner is not None:
            await self._runner.cleanup()
        self._site = None
        self._runner = None

    async def _handle_relay(self, request: web.Request) -> web.Response:
        try:
            message = await request.json()
        except json.JSONDecodeError:
            return web.json_response(
                _error_payload("invalid_json", "Body is not valid JSON", self._reporter),
                status=400,
            )

        try:
            result = await self._engine.handle(message)
        except ValidationError as exc:
            return web.json_response(
                _error_payload(exc.code, str(exc), self._reporter), status=400
            )
        except NotFoundError as exc:
            return web.json_response(
                _error_payload(exc.code, str(exc), self._reporter), status=404
            )
        except PublishError as exc:
            return web.json_response(
                _error_payload(exc.code, str(exc), self._reporter), status=502
            )

        return web.json_response(_result_payload(result))

    async def _handle_status(self, request: web.Request) -> web.Response:
        return web.json_response(await self._reporter.display_snapshot())

    async def _handle_health(self, request: web.Request) -> web.Response:
        snapshot = await self._reporter.snapshot()
        status = 200 if snapshot["status"] == "ok" else 503
        return web.json_response(snapshot, status=status)
