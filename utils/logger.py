# utils/logger.py
import os
import sys
from datetime import datetime
from pathlib import Path

from loguru import logger

log_dir = Path(os.getenv("RECONCILER_LOG_DIR") or Path(__file__).resolve().parents[1] / "logs")
log_dir.mkdir(parents=True, exist_ok=True)

start_time = datetime.now().strftime("%Y%m%d_%H%M%S")
log_file = log_dir / f"reconciler_{start_time}.log"

logger.remove()

logger.add(
    sys.stdout,
    level=os.getenv("RECONCILER_LOG_LEVEL", "INFO"),
    enqueue=True,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | {level} | {message}",
)

logger.add(
    log_file,
    level="DEBUG",
    rotation="50 MB",
    retention="30 days",
    enqueue=True,
    encoding="utf-8",
    format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}",
)

logger.debug(f"Logger initialized. Writing logs to {log_file}")
