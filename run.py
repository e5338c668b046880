"""
Entry point for the pipe viewer backend.

Running this script with ``python run.py`` starts the FastAPI server
that serves the measurement and cross-section API.  The application
defined in ``backend/pipeview/main.py`` is imported after adjusting the
Python path to include the ``backend`` directory.  Host and port can be
overridden with ``PIPEVIEW_HOST`` and ``PIPEVIEW_PORT``.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import logging
import uvicorn

logging.basicConfig(
    level=logging.DEBUG if os.getenv("PIPEVIEW_DEBUG") else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)


def main() -> None:
    """Run the Uvicorn server hosting the pipe viewer API."""
    backend_dir = Path(__file__).resolve().parent / "backend"
    if str(backend_dir) not in sys.path:
        sys.path.append(str(backend_dir))

    # Import inside main() to avoid modifying sys.path at module import time.
    from pipeview.main import app  # type: ignore

    host = os.getenv("PIPEVIEW_HOST", "0.0.0.0")
    port = int(os.getenv("PIPEVIEW_PORT", "8000"))
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
