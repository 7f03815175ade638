"""
Load tracker config from config.yaml, with .env / environment overrides, and set up logging.
"""
import os
import sys
from pathlib import Path

import yaml
from dotenv import load_dotenv
from loguru import logger

from providers.factbase import DEFAULT_FEED_URL

PUBLISHERS = ("console", "x")

DEFAULTS: dict = {
    "feed_url": DEFAULT_FEED_URL,
    "host": "0.0.0.0",
    "port": 3000,
    "publisher": "console",
    "log_level": "INFO",
    "log_file": None,
    "request_timeout": 20,
}

# config key -> environment variable
ENV_OVERRIDES = {
    "feed_url": "FEED_URL",
    "host": "HOST",
    "port": "PORT",
    "publisher": "PUBLISHER",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "request_timeout": "REQUEST_TIMEOUT",
}

X_CREDENTIALS = {
    "access_token": "X_ACCESS_TOKEN",
    "refresh_token": "X_REFRESH_TOKEN",
    "client_id": "X_CLIENT_ID",
    "client_secret": "X_CLIENT_SECRET",
}


class ConfigError(Exception):
    pass


def load_config(path: str | Path = "config.yaml", env_file: str | None = ".env") -> dict:
    """Return defaults overlaid with config.yaml (if present) and then the environment."""
    if env_file:
        load_dotenv(env_file)
    cfg = dict(DEFAULTS)
    if os.path.exists(path):
        with open(path) as f:
            cfg.update(yaml.safe_load(f) or {})
    for key, var in ENV_OVERRIDES.items():
        value = os.getenv(var)
        if value is not None and value.strip() != "":
            cfg[key] = value
    cfg["x"] = {key: os.getenv(var) for key, var in X_CREDENTIALS.items()}
    return validate_config(cfg)


def validate_config(cfg: dict) -> dict:
    """Coerce numeric fields and reject values the tracker cannot run with."""
    try:
        cfg["port"] = int(cfg["port"])
        cfg["request_timeout"] = float(cfg["request_timeout"])
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid number in config: {e}") from e
    cfg["publisher"] = str(cfg["publisher"]).lower()
    if cfg["publisher"] not in PUBLISHERS:
        raise ConfigError(f"Unknown publisher: {cfg['publisher']} (expected one of {PUBLISHERS})")
    if cfg["publisher"] == "x" and not cfg.get("x", {}).get("access_token"):
        raise ConfigError("publisher 'x' requires X_ACCESS_TOKEN")
    return cfg


def setup_logging(level: str = "INFO", log_file: str | None = None) -> None:
    """Configure loguru sinks for console and optional file."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        colorize=True,
        backtrace=True,
        diagnose=False,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan> | <level>{message}</level>"
        ),
    )
    if log_file:
        d = os.path.dirname(log_file)
        if d:
            os.makedirs(d, exist_ok=True)
        logger.add(
            log_file,
            level=level,
            rotation="10 MB",
            retention="1 day",
            enqueue=True,
            diagnose=False,
            format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function} | {message}",
        )
