import logging
from pathlib import Path
from datetime import date
from contextvars import ContextVar, Token
from typing import Optional

_request_ip: ContextVar[str] = ContextVar("request_ip", default="-")

LOG_FORMAT = "%(asctime)s %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


class DailyFileHandler(logging.Handler):
    """
    Write records to <log_dir>/YYYY-MM-DD.log.
    A new file is opened when the date changes.
    """
    def __init__(self, log_dir: str = "logs"):
        super().__init__()
        self.log_dir = Path(log_dir)
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.current_date: Optional[str] = None
        self.stream = None

    def _rollover_if_needed(self):
        today = date.today().isoformat()
        if self.current_date != today:
            if self.stream:
                self.stream.close()
            self.current_date = today
            file_path = self.log_dir / f"{today}.log"
            self.stream = open(str(file_path), "a", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self._rollover_if_needed()
            msg = self.format(record)
            self.stream.write(msg + "\n")
            self.stream.flush()
        except Exception:
            self.handleError(record)

    def close(self):
        try:
            if self.stream:
                self.stream.close()
                self.stream = None
        finally:
            super().close()


def set_request_ip(ip: str) -> Token:
    return _request_ip.set((ip or "-").strip() or "-")


def reset_request_ip(token: Token) -> None:
    _request_ip.reset(token)


def get_request_ip() -> str:
    return _request_ip.get()


def setup_app_logger(name: str = "frameflow", log_dir: str = "logs", level: int = logging.INFO) -> logging.Logger:
    """
    Logger writing to <log_dir>/YYYY-MM-DD.log, format: "YYYY-MM-DD HH:MM:SS IP - message".
    Child loggers ("frameflow.engine", ...) propagate into it.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    # no duplicate handlers on re-import
    if not any(isinstance(h, DailyFileHandler) for h in logger.handlers):
        handler = DailyFileHandler(log_dir)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
        logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(component: str) -> logging.Logger:
    return logging.getLogger(f"frameflow.{component}")


def log_event(logger: logging.Logger, event: str, level: int = logging.INFO, **fields) -> None:
    """Emit "IP - EVENT k=v ..." lines, the format every component shares."""
    kv = " ".join(f"{k}={v}" for k, v in fields.items() if v is not None)
    logger.log(level, f"{get_request_ip()} - {event}" + (f" {kv}" if kv else ""))
