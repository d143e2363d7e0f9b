"""Research memory service entry point."""

import asyncio
import logging

from research_memory.admin.server import AdminServer
from research_memory.agent.context import MemoryContext
from research_memory.chat.history import ConversationHistory
from research_memory.chat.store import ChatStore
from research_memory.config import settings
from research_memory.memory.engine import MemoryEngine

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


async def serve() -> None:
    """Wire the shared services once and run the admin server until cancelled."""
    engine = MemoryEngine.from_settings(settings)
    ready = await engine.initialize()
    if not ready:
        logger.warning("Memory engine not ready; search will return no memories")

    chat_store = ChatStore()
    context = MemoryContext(
        engine=engine,
        history=ConversationHistory(chat_store),
        chat_store=chat_store,
    )

    server = AdminServer(engine, context)
    await server.start()
    try:
        await asyncio.Event().wait()
    finally:
        await server.stop()


def main() -> None:
    """Start the memory service."""
    logger.info("Starting research memory service (backend=%s)...", settings.vector_backend)
    try:
        asyncio.run(serve())
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
