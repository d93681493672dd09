"""CLI entry point for the assessor API server."""

import argparse
import os


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="assessor-server",
        description="Assessor API server: scope documents in, estimated project assessments out",
    )
    parser.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    parser.add_argument("--port", type=int, default=8080, help="Bind port (default: 8080)")
    parser.add_argument(
        "--local",
        action="store_true",
        help="Local dev mode: SQLite database, console logs",
    )
    parser.add_argument(
        "--background",
        action="store_true",
        help="Run jobs on the in-process worker instead of inside the request",
    )
    args = parser.parse_args(argv)

    if args.local:
        os.environ["ASSESSOR_LOCAL_MODE"] = "1"
    if args.background:
        os.environ["ASSESSOR_BACKGROUND_PROCESSING"] = "1"

    import uvicorn

    uvicorn.run("assessor.main:app", host=args.host, port=args.port)


if __name__ == "__main__":
    main()
