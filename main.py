#!/usr/bin/env python3
"""
Interview Call Coach - Main Entry Point.

Usage:
    python main.py                      # Run the FastAPI server
    python main.py --feedback CALL_ID   # Print AI feedback for one call
    python main.py --calls              # List recent calls
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from pathlib import Path


def setup_python_path():
    """Add project root to Python path."""
    project_root = Path(__file__).parent
    if str(project_root) not in sys.path:
        sys.path.insert(0, str(project_root))


def create_data_directories():
    """Ensure required data directories exist."""
    from callcoach.core.config import get_settings

    Path(get_settings().CALL_LOG_DIR).mkdir(parents=True, exist_ok=True)


def run_server(host: str = None, port: int = None, reload: bool = False):
    """Launch the FastAPI server with uvicorn."""
    import uvicorn
    from callcoach.core.config import configure_logging

    configure_logging()

    if host is None:
        host = os.getenv("HOST", "127.0.0.1")
    if port is None:
        port = int(os.getenv("PORT", "8000"))

    print("\n" + "=" * 60)
    print("Interview Call Coach")
    print("=" * 60)
    print(f"\nAPI: http://{host}:{port}")
    print(f"API Docs: http://{host}:{port}/api/docs")
    print("\nPress Ctrl+C to stop the server\n")

    uvicorn.run(
        "callcoach.api.app:app",
        host=host,
        port=port,
        reload=reload,
        reload_dirs=["callcoach"] if reload else None,
        workers=1,
        log_level="info",
        access_log=False,
    )


async def run_feedback(call_id: str) -> int:
    """Generate and print feedback for one call."""
    from callcoach.app.service import FeedbackErrorCondition, create_service
    from callcoach.core.config import configure_logging
    from callcoach.core.exceptions import CallCoachError

    configure_logging()
    logger = logging.getLogger(__name__)

    service = create_service()
    try:
        result = await service.fetch_feedback(call_id)
    except CallCoachError as e:
        logger.error(f"Feedback failed: {e}")
        return 1

    if isinstance(result, FeedbackErrorCondition):
        print(f"Cannot generate feedback ({result.kind.value}): {result.message}")
        return 2

    print(json.dumps(result.to_dict(), indent=2))
    return 0


async def run_list_calls(limit: int) -> int:
    """Print recent calls."""
    from callcoach.app.service import create_service
    from callcoach.core.config import configure_logging

    configure_logging()

    for summary in await create_service().list_calls(limit):
        started = summary.started_at.isoformat() if summary.started_at else "-"
        cost = f"${summary.cost:.4f}" if summary.cost is not None else "-"
        print(f"{summary.call_id}  {summary.status:<12} {started}  {summary.message_count:>3} msgs  {cost}")
    return 0


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Interview Call Coach - voice interview feedback"
    )
    parser.add_argument(
        "--feedback",
        metavar="CALL_ID",
        default=None,
        help="Generate feedback for a call and exit",
    )
    parser.add_argument(
        "--calls",
        action="store_true",
        help="List recent calls and exit",
    )
    parser.add_argument("--limit", type=int, default=20, help="Number of calls to list")
    parser.add_argument("--host", default=None, help="Host to bind the server")
    parser.add_argument("--port", type=int, default=None, help="Port to bind the server")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    # Set debug mode before settings are first read
    if args.debug:
        os.environ["LOG_LEVEL"] = "DEBUG"

    setup_python_path()
    create_data_directories()

    if args.feedback:
        sys.exit(asyncio.run(run_feedback(args.feedback)))
    if args.calls:
        sys.exit(asyncio.run(run_list_calls(args.limit)))

    run_server(host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
