"""
ASGI entry point.

Used by uvicorn directly (`uvicorn server.asgi:app`) or via main().
"""

import os

import uvicorn
from dotenv import load_dotenv

load_dotenv()

from server.app import create_app  # pylint: disable=wrong-import-position

app = create_app()


def main() -> None:
    """Serve the API on HOST:PORT (defaults 127.0.0.1:8000)."""
    uvicorn.run(
        app,
        host=os.environ.get("HOST", "127.0.0.1"),
        port=int(os.environ.get("PORT", "8000")),
        log_level="warning",
    )


if __name__ == "__main__":
    main()
