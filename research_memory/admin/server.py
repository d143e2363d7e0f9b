"""Management HTTP surface for the memory engine.

Exposes enumerate/search/stats/delete over aiohttp so memories can be
inspected and cleared independently of live query traffic. When
``ADMIN_SECRET`` is set, every route except ``/health`` requires it in the
``X-Admin-Secret`` header.
"""

from __future__ import annotations

import logging
from typing import Any

from aiohttp import web

from research_memory.agent.context import MemoryContext
from research_memory.config import settings
from research_memory.memory.engine import MemoryEngine
from research_memory.memory.errors import InvalidArgument, MemoryEngineError, NotInitialized

logger = logging.getLogger(__name__)

ENGINE_KEY = web.AppKey("engine", MemoryEngine)
CONTEXT_KEY = web.AppKey("context", MemoryContext)

SEARCH_LIMIT = 5


def _error(message: str, code: str, status: int) -> web.Response:
    return web.json_response({"error": message, "code": code}, status=status)


def _ok(data: Any = None, message: str | None = None) -> web.Response:
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    if message is not None:
        body["message"] = message
    return web.json_response(body)


def _authorized(request: web.Request) -> bool:
    if not settings.admin_secret:
        return True
    return request.headers.get("X-Admin-Secret", "") == settings.admin_secret


async def _health(request: web.Request) -> web.Response:
    """GET /health: basic liveness check."""
    return web.json_response({"status": "ok"})


async def _get_memory(request: web.Request) -> web.Response:
    """GET /memory?action=stats|search|recent, or status when no action is given."""
    if not _authorized(request):
        return _error("unauthorized", "UNAUTHORIZED", 401)

    engine = request.app[ENGINE_KEY]
    if not engine.is_ready():
        return _error("Memory system is not available", "MEMORY_NOT_AVAILABLE", 503)

    params = request.query
    action = params.get("action", "")
    user_id = params.get("userId", "")

    try:
        if action == "stats":
            stats = await engine.get_stats(user_id or None)
            return _ok(stats.model_dump())

        if action == "search":
            query = params.get("query", "")
            if not query or not user_id:
                return _error("Query and userId are required for search", "MISSING_PARAMS", 400)
            results = await engine.search(
                query, user_id, SEARCH_LIMIT, params.get("sessionId") or None
            )
            return _ok([r.model_dump(mode="json") for r in results])

        if action == "recent":
            if not user_id:
                return _error("userId is required for recent memories", "MISSING_USER_ID", 400)
            memories = await engine.get_user_memories(user_id)
            return _ok([m.model_dump(mode="json") for m in memories])
    except InvalidArgument as exc:
        return _error(str(exc), "INVALID_ARGUMENT", 400)
    except NotInitialized:
        return _error("Memory system is not available", "MEMORY_NOT_AVAILABLE", 503)
    except MemoryEngineError:
        logger.exception("Memory admin request failed (action=%s)", action)
        return _error("Failed to process memory request", "MEMORY_ERROR", 500)

    return _ok(engine.status())


async def _delete_memory(request: web.Request) -> web.Response:
    """DELETE /memory?id=… | action=clear&userId=… | action=session&sessionId=…"""
    if not _authorized(request):
        return _error("unauthorized", "UNAUTHORIZED", 401)

    engine = request.app[ENGINE_KEY]
    if not engine.is_ready():
        return _error("Memory system is not available", "MEMORY_NOT_AVAILABLE", 503)

    params = request.query
    action = params.get("action", "")

    try:
        if action == "clear":
            user_id = params.get("userId", "")
            if not user_id:
                return _error(
                    "userId is required for clearing memories", "MISSING_USER_ID", 400
                )
            count = await engine.delete_user_memories(user_id)
            return _ok({"deleted": count}, f"Cleared {count} memories for user")

        if action == "session":
            session_id = params.get("sessionId", "")
            if not session_id:
                return _error("sessionId is required", "MISSING_SESSION_ID", 400)
            count = await engine.delete_session_memories(session_id)
            return _ok({"deleted": count}, f"Cleared {count} memories for session")

        memory_id = params.get("id", "")
        if not memory_id:
            return _error("Memory ID is required", "MISSING_MEMORY_ID", 400)
        if not await engine.delete_memory(memory_id):
            return _error("Memory not found", "MEMORY_NOT_FOUND", 404)
        return _ok(message="Memory deleted successfully")
    except InvalidArgument as exc:
        return _error(str(exc), "INVALID_ARGUMENT", 400)
    except NotInitialized:
        return _error("Memory system is not available", "MEMORY_NOT_AVAILABLE", 503)
    except MemoryEngineError:
        logger.exception("Memory deletion failed (action=%s)", action or "id")
        return _error("Failed to delete memory", "DELETE_ERROR", 500)


async def _delete_session(request: web.Request) -> web.Response:
    """DELETE /sessions/{session_id}: chat session plus its memories."""
    if not _authorized(request):
        return _error("unauthorized", "UNAUTHORIZED", 401)

    context = request.app.get(CONTEXT_KEY)
    if context is None:
        return _error("Chat sessions are not available", "CHAT_NOT_AVAILABLE", 503)

    session_id = request.match_info["session_id"]
    try:
        deleted = await context.delete_session(session_id)
    except Exception:
        logger.exception("Chat session deletion failed: %s", session_id)
        return _error("Failed to delete chat session", "DELETE_ERROR", 500)

    if not deleted:
        return _error("Chat session not found", "SESSION_NOT_FOUND", 404)
    return _ok(message="Chat session and associated memories deleted successfully")


def create_admin_app(engine: MemoryEngine, context: MemoryContext | None = None) -> web.Application:
    """Build the aiohttp Application with routes."""
    app = web.Application()
    app[ENGINE_KEY] = engine
    if context is not None:
        app[CONTEXT_KEY] = context
    app.router.add_get("/health", _health)
    app.router.add_get("/memory", _get_memory)
    app.router.add_delete("/memory", _delete_memory)
    app.router.add_delete("/sessions/{session_id}", _delete_session)
    return app


class AdminServer:
    """Manages the aiohttp server lifecycle."""

    def __init__(
        self,
        engine: MemoryEngine,
        context: MemoryContext | None = None,
        port: int | None = None,
    ) -> None:
        self.port = port or settings.admin_port
        self._engine = engine
        self._context = context
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Start listening for management requests."""
        if not settings.admin_secret:
            logger.warning("ADMIN_SECRET empty, management routes are unauthenticated")

        app = create_admin_app(self._engine, self._context)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, "0.0.0.0", self.port)
        await site.start()
        logger.info("Admin server listening on port %d", self.port)

    async def stop(self) -> None:
        """Shut down the server gracefully."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Admin server stopped")
