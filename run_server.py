"""Run the offline sync service under Uvicorn."""
from __future__ import annotations

import logging
import os

import uvicorn


def main() -> None:
  logging.basicConfig(
    level=os.getenv("FOODIESNAP_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
  )
  host = os.getenv("FOODIESNAP_SERVER_HOST", "0.0.0.0")
  port = int(os.getenv("FOODIESNAP_SERVER_PORT", "8000"))
  # The offline context lives in one process; reload would fork a second one.
  reload = os.getenv("UVICORN_RELOAD", "false").lower() == "true"
  uvicorn.run("foodiesnap.main:app", host=host, port=port, reload=reload, log_config=None)


if __name__ == "__main__":
  main()
