"""Run the host surface with uvicorn: `python -m instant_replay`."""

from __future__ import annotations

import os

import uvicorn

from instant_replay.config.server import ENV_HTTP_HOST, ENV_HTTP_PORT, DEFAULT_HTTP_HOST, DEFAULT_HTTP_PORT


def main() -> None:
    host = (os.getenv(ENV_HTTP_HOST) or DEFAULT_HTTP_HOST).strip()
    port = int(os.getenv(ENV_HTTP_PORT) or DEFAULT_HTTP_PORT)
    uvicorn.run("instant_replay.server:app", host=host, port=port)


if __name__ == "__main__":
    main()
