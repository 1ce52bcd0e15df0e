"""CLI entry point for the ReviewHub API server."""

import argparse
import os


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="reviewhub-server",
        description="ReviewHub API server: reviewer nominations and review progress",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Bind port (default: 8080)")
    parser.add_argument(
        "--local",
        action="store_true",
        help="Local dev mode: SQLite database, console logs",
    )
    parser.add_argument("--log-level", default=None, help="Override REVIEWHUB_LOG_LEVEL")
    args = parser.parse_args(argv)

    if args.local:
        os.environ["REVIEWHUB_LOCAL_MODE"] = "1"
    if args.log_level:
        os.environ["REVIEWHUB_LOG_LEVEL"] = args.log_level

    import uvicorn

    uvicorn.run("reviewhub.main:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
