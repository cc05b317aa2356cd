import logging
import os
import glob
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

_INITIALIZED = False


class TimestampRotatingFileHandler(RotatingFileHandler):
    """Size-based rotation that renames the full log to a timestamped sibling.

    The live log keeps its configured path (e.g. logs/sql_unify.log); a full
    file becomes logs/sql_unify_20260124_153012.log. backupCount=0 keeps every
    rotated file, a positive value keeps only the newest N.
    """

    def doRollover(self) -> None:
        if self.stream:
            try:
                self.stream.close()
            finally:
                self.stream = None

        base_path = Path(self.baseFilename)
        log_dir = base_path.parent
        suffix = base_path.suffix or ".log"

        stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        target = log_dir / f"{base_path.stem}_{stamp}{suffix}"
        n = 1
        while target.exists():
            target = log_dir / f"{base_path.stem}_{stamp}_{n}{suffix}"
            n += 1

        if base_path.exists():
            try:
                os.replace(base_path, target)
            except OSError:
                # Keep logging into the current file if the rename is refused.
                pass

        if self.backupCount and self.backupCount > 0:
            pattern = str(log_dir / f"{base_path.stem}_*{suffix}")
            rotated = sorted(glob.glob(pattern), key=os.path.getmtime, reverse=True)
            for old in rotated[self.backupCount:]:
                try:
                    os.remove(old)
                except OSError:
                    pass

        if not self.delay:
            self.stream = self._open()


def init_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = "logs/sql_unify.log",
    max_bytes: int = 5 * 1024 * 1024,  # 5 MB
    backup_count: int = 0,             # 0 = keep all rotated logs
) -> None:
    """Configure root logging once per process.

    Passing log_file=None (or an empty string) logs to the stream only.
    """
    global _INITIALIZED
    if _INITIALIZED:
        return

    level = getattr(logging, (log_level or "INFO").upper(), logging.INFO)
    fmt = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

    handlers: list = [logging.StreamHandler()]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            TimestampRotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding="utf-8",
            )
        )

    logging.basicConfig(level=level, format=fmt, handlers=handlers)
    _INITIALIZED = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"sql_unify.{name}")
