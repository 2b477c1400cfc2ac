"""Palace entrypoint.

Run with:
  python -m palace
"""

import os

import uvicorn

from palace.logging_config import setup_logging


def main() -> None:
    setup_logging(os.getenv("PALACE_LOG_LEVEL", "INFO"))
    host = os.getenv("PALACE_HOST", "0.0.0.0")
    port = int(os.getenv("PALACE_PORT", "6844"))
    reload = os.getenv("PALACE_RELOAD", "false").lower() in {"1", "true", "yes", "y"}
    uvicorn.run("palace.app:create_app", factory=True, host=host, port=port, reload=reload, log_config=None)

if __name__ == "__main__":
    main()
