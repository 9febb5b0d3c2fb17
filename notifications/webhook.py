"""Minimal aiohttp server that lets an external scheduler trigger a run."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping

from aiohttp import web

from utils.diag import build_info
from .exceptions import TemplateNotFoundError
from .worker import DirectSendRequest, NotificationRunner, RunSummary

logger = logging.getLogger(__name__)


def summary_payload(summary: RunSummary) -> dict[str, Any]:
    return {
        "success": True,
        "message": "Automatic notifications processed",
        "results": summary.results(),
        "suppressed": summary.suppressed(),
        "errors": summary.errors,
        "dryRun": summary.dry_run,
    }


class NotificationServer:
    def __init__(
        self,
        runner: NotificationRunner,
        *,
        token: str | None = None,
        on_summary: Any = None,
    ) -> None:
        self.runner = runner
        self.token = token
        self.on_summary = on_summary
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/run", self._handle_run)
        app.router.add_post("/run/", self._handle_run)
        app.router.add_post("/send", self._handle_send)
        app.router.add_get("/health", self._handle_health)
        return app

    async def start(self, host: str, port: int) -> None:
        if self._runner:
            return
        app = self.create_app()
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, host, port)
        await self._site.start()
        logger.info("Notification server listening on %s:%s", host, port)

    async def stop(self) -> None:
        if self._site:
            await self._site.stop()
            self._site = None
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
        logger.info("Notification server stopped")

    def _authorized(self, request: web.Request) -> bool:
        if not self.token:
            return True
        provided = request.headers.get("X-Notify-Token") or request.rel_url.query.get("token")
        return provided == self.token

    async def _handle_run(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.json_response({"success": False, "error": "unauthorized"}, status=401)
        dry_run = request.rel_url.query.get("dry_run", "").lower() in {"1", "true", "yes"}
        try:
            summary = await self.runner.run(dry_run=dry_run or None)
        except asyncio.CancelledError:
            raise
        except Exception as exc:  # noqa: BLE001
            logger.exception("Error in automatic notification run")
            return web.json_response({"success": False, "error": str(exc) or "Unknown error"}, status=500)
        if self.on_summary is not None:
            try:
                await self.on_summary(summary)
            except Exception:  # noqa: BLE001
                logger.exception("Run summary callback failed")
        return web.json_response(summary_payload(summary))

    async def _handle_send(self, request: web.Request) -> web.Response:
        if not self._authorized(request):
            return web.json_response({"success": False, "error": "unauthorized"}, status=401)
        try:
            payload: Any = await request.json()
        except ValueError:
            return web.json_response({"success": False, "error": "invalid_json"}, status=400)
        try:
            send_request = parse_send_request(payload)
        except ValueError as exc:
            return web.json_response({"success": False, "error": str(exc)}, status=400)

        try:
            result = await self.runner.send_direct(send_request)
        except TemplateNotFoundError as exc:
            return web.json_response({"success": False, "error": str(exc)}, status=404)
        if not result.ok:
            return web.json_response({"success": False, "error": result.error}, status=502)
        return web.json_response(
            {"success": True, "message": "Email sent successfully", "messageId": result.message_id}
        )

    async def _handle_health(self, request: web.Request) -> web.Response:
        try:
            await self.runner.store.ping()
            database = "ok"
        except Exception as exc:  # noqa: BLE001
            logger.warning("Health check: record store unreachable: %s", exc)
            database = "unreachable"
        status = 200 if database == "ok" else 503
        return web.json_response({"ok": status == 200, "database": database, "build": build_info()}, status=status)


def parse_send_request(payload: Mapping[str, Any] | Any) -> DirectSendRequest:
    if not isinstance(payload, Mapping):
        raise ValueError("payload must be an object")
    email = str(payload.get("customerEmail") or "").strip()
    if not email:
        raise ValueError("customerEmail is required")
    template_id = payload.get("templateId")
    subject = payload.get("subject")
    body = payload.get("body")
    if not template_id and not (subject and body):
        raise ValueError("templateId or subject and body are required")
    variables = payload.get("variables") or {}
    if not isinstance(variables, Mapping):
        raise ValueError("variables must be an object")
    return DirectSendRequest(
        customer_email=email,
        customer_name=str(payload.get("customerName") or ""),
        customer_id=payload.get("customerId"),
        template_id=template_id,
        subject=subject,
        body=body,
        variables={str(key): value for key, value in variables.items()},
        notification_type=str(payload.get("notificationType") or "custom"),
    )


async def start_notification_server(
    runner: NotificationRunner,
    *,
    host: str,
    port: int,
    token: str | None = None,
    on_summary: Any = None,
) -> NotificationServer:
    server = NotificationServer(runner, token=token, on_summary=on_summary)
    await server.start(host, port)
    return server


__all__ = ["NotificationServer", "parse_send_request", "start_notification_server", "summary_payload"]
