"""todosite entrypoint.

Run with:
  python -m todosite
"""

import os

import uvicorn
from dotenv import load_dotenv

from todosite.logger import setup_logging


def main() -> None:
    load_dotenv()
    setup_logging()
    host = os.getenv("TODO_HOST", "0.0.0.0")
    port = int(os.getenv("TODO_PORT", "8000"))
    reload = os.getenv("TODO_RELOAD", "false").lower() in {"1", "true", "yes", "y"}
    uvicorn.run("todosite.app:app", host=host, port=port, reload=reload)

if __name__ == "__main__":
    main()
