from __future__ import annotations

import argparse
import os

import uvicorn

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 2456


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Monitor Claude usage limits and alert on thresholds.")
    parser.add_argument("--host", default=os.getenv("HOST", DEFAULT_HOST))
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT", str(DEFAULT_PORT))))
    parser.add_argument("--ssl-certfile", default=os.getenv("SSL_CERTFILE"))
    parser.add_argument("--ssl-keyfile", default=os.getenv("SSL_KEYFILE"))
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    if args.ssl_keyfile and not args.ssl_certfile:
        raise SystemExit("--ssl-keyfile requires --ssl-certfile.")

    uvicorn.run(
        "usage_monitor.main:build_app",
        factory=True,
        host=args.host,
        port=args.port,
        ssl_certfile=args.ssl_certfile,
        ssl_keyfile=args.ssl_keyfile,
        log_config=None,
    )


if __name__ == "__main__":
    main()
