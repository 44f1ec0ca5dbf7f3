"""Standalone script that keeps a chat session alive against the backend.

Initializes the session manager, prints the persisted session stats and
keeps polling backend health until interrupted:

    python client/run_session_client.py
"""

import asyncio
import logging
import sys
from pathlib import Path

# Add client directory to path
client_dir = Path(__file__).resolve().parent
sys.path.insert(0, str(client_dir))

from session_client.config import configure_logging, get_settings
from session_client.conversation import ConversationController
from session_client.dependencies import get_backend_client, get_lifecycle_manager

configure_logging(get_settings())

logger = logging.getLogger(__name__)


async def main():
    """Mount a conversation and poll until cancelled."""
    settings = get_settings()
    logger.info("=" * 50)
    logger.info("Starting %s against %s", settings.app_name, settings.api_base_url)
    logger.info("=" * 50)

    backend = get_backend_client()
    manager = get_lifecycle_manager()
    try:
        async with ConversationController(manager, backend) as chat:
            stats = manager.get_session_stats()
            logger.info(
                "Session %s: %d stored messages (%d sessions, %d messages total)",
                chat.session_id,
                len(chat.messages),
                stats.total_sessions,
                stats.total_messages,
            )
            while True:
                await asyncio.sleep(3600)
    except asyncio.CancelledError:
        logger.info("Received interrupt signal. Shutting down...")
    finally:
        await backend.close()
        logger.info("Session client shut down cleanly")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
