"""Main application entry point.

Runs the NiceGUI chat interface against the compliance API.
Environment variables are loaded from .env file.
"""

import logging
import os
import sys

from dotenv import load_dotenv

# Load environment variables before any other imports that might need them
load_dotenv()

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


def main() -> None:
    """Application entry point."""
    from nicegui import ui

    from compliance_chat.client.config import get_client_config
    from compliance_chat.ui import chat_page  # noqa: F401 - Registers the pages

    config = get_client_config()
    logger.info(f"Using compliance API at {config.api_base_url}")
    logger.info("Chat UI available at http://localhost:8080/")

    ui.run(
        title="Compliance Assistant",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8080")),
        storage_secret=os.getenv("NICEGUI_STORAGE_SECRET", "compliance-chat-secret"),
        reload=False,
    )


if __name__ in {"__main__", "__mp_main__"}:
    main()
