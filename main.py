"""
main.py — Single entry point.

  python main.py                 → run the HTTP API (see server.py)
  python main.py serve           → same
  python main.py analyze PHOTO   → one-shot analysis, JSON on stdout

The one-shot mode prints progress steps to stderr and exits with status 1
when the vision stage fails.
"""
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path

import config

logging.basicConfig(
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    level=getattr(logging, config.LOG_LEVEL, logging.INFO),
    handlers=[logging.StreamHandler(sys.stderr)],
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)

USAGE = "usage: main.py [serve | analyze PHOTO]"


async def serve() -> None:
    from server import start_server

    stop_event = asyncio.Event()

    def _stop(*_):
        logger.info("Shutdown signal received.")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _stop)
        except (NotImplementedError, RuntimeError):
            # Windows doesn't support add_signal_handler for all signals
            pass

    runner = await start_server()
    logger.info("✅ Server is running. Press Ctrl+C to stop.")
    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down…")
        await runner.cleanup()
    logger.info("Goodbye.")


async def analyze(path: Path) -> int:
    from image_analyzer import AnalysisError
    from pipeline import AnalysisOrchestrator

    image_bytes = path.read_bytes()
    orchestrator = AnalysisOrchestrator()
    try:
        result = await orchestrator.run(
            image_bytes,
            None,
            on_progress=lambda step: print(f"… {step}", file=sys.stderr),
        )
    except AnalysisError as exc:
        print(f"❌ {exc.message}", file=sys.stderr)
        return 1

    print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    return 0


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else argv
    command = args[0] if args else "serve"

    try:
        if command == "serve" and len(args) <= 1:
            asyncio.run(serve())
            return 0
        if command == "analyze" and len(args) == 2:
            path = Path(args[1])
            if not path.is_file():
                print(f"No such file: {path}", file=sys.stderr)
                return 2
            return asyncio.run(analyze(path))
    except KeyboardInterrupt:
        return 0

    print(USAGE, file=sys.stderr)
    return 2


if __name__ == "__main__":
    sys.exit(main())
