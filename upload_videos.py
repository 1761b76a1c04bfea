#!/usr/bin/env python3
"""
Upload Videos

Queue one or more recordings for upload and wait until they finish.

Usage:
    python upload_videos.py game1.mp4 game2.mp4
    python upload_videos.py --mock --metadata stage=battlefield game.mp4

Without --mock, UPLOAD_BROKER_URL must be set and a signed-in session
must exist. Exit code is 0 when every upload completed, 1 otherwise.
"""

import argparse
import logging
import logging.handlers
import sys
import threading
from pathlib import Path
from typing import Dict, List

from config.settings import LOG_DIR, LOG_FALLBACK_DIR, LOG_FILE
from upload import TransferStatus, UploadController
from upload.config import UploadConfig
from upload.controllers.upload_queue import QueueEvent
from upload.interfaces.errors import AuthRequiredError

logger = logging.getLogger(__name__)

# Report progress at most every N percent per item
PROGRESS_REPORT_STEP = 10


def setup_logging(verbose: bool = False) -> None:
    """
    Setup logging with rotation.

    Logs to both console and file with rotation:
    - Daily rotation
    - Keep 7 days of logs
    """
    level = logging.DEBUG if verbose else logging.INFO

    root = logging.getLogger()
    root.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter("%(message)s | %(name)s"))
    root.addHandler(console_handler)

    file_format = logging.Formatter(
        "%(asctime)s - %(levelname)s - %(message)s | %(name)s",
    )

    log_file = Path(LOG_DIR) / LOG_FILE
    try:
        file_handler = logging.handlers.TimedRotatingFileHandler(
            str(log_file),
            when="midnight",
            interval=1,
            backupCount=7,
            encoding="utf-8",
        )
    except (PermissionError, FileNotFoundError):
        # Fallback to local logs directory if LOG_DIR not writable
        LOG_FALLBACK_DIR.mkdir(exist_ok=True)
        fallback_log = LOG_FALLBACK_DIR / LOG_FILE
        root.warning(f"Cannot write to {log_file}, using fallback: {fallback_log}")

        file_handler = logging.handlers.TimedRotatingFileHandler(
            str(fallback_log),
            when="midnight",
            interval=1,
            backupCount=7,
            encoding="utf-8",
        )

    file_handler.setLevel(level)
    file_handler.setFormatter(file_format)
    root.addHandler(file_handler)


def parse_metadata(pairs: List[str]) -> Dict[str, str]:
    """
    Turn KEY=VALUE arguments into a dict.

    Raises:
        ValueError: An argument has no '='
    """
    metadata = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Invalid metadata '{pair}', expected KEY=VALUE")
        metadata[key.strip()] = value.strip()
    return metadata


class ProgressPrinter:
    """Logs status changes and coarse progress steps for each item"""

    def __init__(self, step: int = PROGRESS_REPORT_STEP):
        self.step = step
        self._last: Dict[str, tuple] = {}
        self._lock = threading.Lock()

    def __call__(self, event: QueueEvent) -> None:
        item = event.item
        bucket = item.progress // self.step
        with self._lock:
            if self._last.get(item.id) == (item.status, bucket):
                return
            self._last[item.id] = (item.status, bucket)

        name = Path(item.source_path).name
        if item.status == TransferStatus.ERROR:
            logger.info(f"{name}: error - {item.error_message}")
        else:
            logger.info(f"{name}: {item.status.value} {item.progress}%")


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Upload video recordings to cloud storage",
        epilog="""
Examples:
  %(prog)s game.mp4                          # Upload one video
  %(prog)s --concurrency 3 *.mp4             # Three uploads at a time
  %(prog)s --mock --no-compress game.mp4     # Dry run against mock backend
        """,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument("files", nargs="+", help="Video files to upload")

    parser.add_argument(
        "--mock",
        action="store_true",
        help="Use the mock backend (no network, no credentials)",
    )

    parser.add_argument(
        "--no-compress",
        action="store_true",
        help="Upload the original files without FFmpeg compression",
    )

    parser.add_argument(
        "--concurrency",
        type=int,
        default=None,
        help="Maximum simultaneous uploads (default: from config)",
    )

    parser.add_argument(
        "--metadata",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Metadata attached to every upload (repeatable)",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Debug logging",
    )

    args = parser.parse_args()

    try:
        metadata = parse_metadata(args.metadata)
    except ValueError as e:
        parser.error(str(e))

    if args.concurrency is not None and args.concurrency < 1:
        parser.error("--concurrency must be at least 1")

    setup_logging(args.verbose)

    logger.info("=" * 70)
    logger.info("Upload Videos")
    logger.info("=" * 70)

    config = UploadConfig()
    if args.no_compress:
        config.set("compression_enabled", False, save=False)

    try:
        controller = UploadController(
            config=config,
            mode="mock" if args.mock else "http",
            max_concurrent_uploads=args.concurrency,
        )
    except RuntimeError as e:
        logger.error(f"❌ {e}")
        logger.error("Set UPLOAD_BROKER_URL and sign in, or pass --mock for a dry run")
        return 1
    controller.subscribe(ProgressPrinter())

    item_ids = []
    try:
        for file_path in args.files:
            try:
                item_ids.append(controller.upload_video(file_path, metadata))
            except AuthRequiredError as e:
                logger.error(f"❌ {e}")
                controller.cleanup(cancel_active=True)
                return 1

        results = [controller.wait_for(item_id) for item_id in item_ids]

    except KeyboardInterrupt:
        logger.warning("Interrupted, cancelling uploads...")
        controller.cleanup(cancel_active=True)
        return 1

    completed = [r for r in results if r and r.status == TransferStatus.COMPLETED]
    failed = [r for r in results if r is None or r.status != TransferStatus.COMPLETED]

    logger.info("=" * 70)
    logger.info(f"SUMMARY: {len(completed)} uploaded, {len(failed)} failed")
    for snapshot in failed:
        if snapshot is not None:
            logger.info(
                f"  ❌ {Path(snapshot.source_path).name}: {snapshot.error_message}",
            )
    logger.info("=" * 70)

    controller.cleanup(cancel_active=False)
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
