import logging
import os
from dataclasses import dataclass

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


@dataclass
class AppSettings:
    admin_token: str | None
    log_level: str = "INFO"
    default_ideal_cycle_time_s: float = 10.0


def load_settings() -> AppSettings:
    return AppSettings(
        admin_token=os.environ.get("ADMIN_TOKEN") or None,
        log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        default_ideal_cycle_time_s=float(os.environ.get("DEFAULT_IDEAL_CYCLE_TIME_S", "10")),
    )


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level, logging.INFO), format=LOG_FORMAT)
