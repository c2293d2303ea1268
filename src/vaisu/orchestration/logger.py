"""
Run log of an orchestration or scaffolding job.

Every line is echoed to the console through loguru and appended to
`orchestration.log` as `[timestamp] message`, with `ERROR:` and `SUCCESS:`
prefixes for the matching levels.
"""

from datetime import datetime, timezone
from pathlib import Path

from vaisu.core.logging import get_logger

LOG_FILE_NAME = "orchestration.log"

logger = get_logger()


class OrchestrationLogger:
    def __init__(self, log_dir: Path | str):
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        self.log_path = log_dir / LOG_FILE_NAME

    def _append(self, line: str) -> None:
        timestamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
        with self.log_path.open("a", encoding="utf-8") as f:
            f.write(f"[{timestamp}] {line}\n")

    def log(self, message: str) -> None:
        logger.info(message)
        self._append(message)

    def error(self, message: str) -> None:
        logger.error(message)
        self._append(f"ERROR: {message}")

    def success(self, message: str) -> None:
        logger.success(message)
        self._append(f"SUCCESS: {message}")
