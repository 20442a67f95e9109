import sys
import logging
from typing import Optional, Union

from loguru import logger


# ===========================
# Configuration
# ===========================
LOG_LEVEL = "INFO"


# ===========================
# Log Contexts Configuration
# ===========================
CONTEXTS = {
    "ENGINE": {"color": "green", "icon": "🚀"},
    "API": {"color": "cyan", "icon": "🔗"},
    "PROVIDER": {"color": "blue", "icon": "🌐"},
    "FETCHER": {"color": "magenta", "icon": "📡"},
    "RECONCILE": {"color": "yellow", "icon": "🧩"},
    "PROGRESS": {"color": "green", "icon": "📈"},
    "METADATA": {"color": "white", "icon": "🎭"},
    "CACHE": {"color": "white", "icon": "💾"},
    "DATABASE": {"color": "yellow", "icon": "🗄️"},
}

DEFAULT_CONTEXT = "ENGINE"


# ===========================
# Log Level Icons
# ===========================
LEVEL_ICONS = {
    "DEBUG": "🔍",
    "INFO": "ℹ️ ",
    "WARNING": "⚠️ ",
    "ERROR": "❌",
}


# ===========================
# Log Formatters
# ===========================
def _session_tag(record) -> str:
    media_id = record["extra"].get("media_id")
    return f"[{media_id}] " if media_id is not None else ""


def format_log(record):
    context = record["extra"].setdefault("context", DEFAULT_CONTEXT)
    context_data = CONTEXTS.get(context, {"color": "white", "icon": "📦"})
    color = context_data["color"]
    level_icon = LEVEL_ICONS.get(record["level"].name, "")
    record["extra"]["session"] = _session_tag(record)

    return (
        "<white>{time:YYYY-MM-DD}</white> "
        "<magenta>{time:HH:mm:ss}</magenta> | "
        f"<level>{level_icon} {{level: <8}}</level> | "
        f"<{color}>{context_data['icon']} {{extra[context]: <10}}</{color}> | "
        "<dim>{extra[session]}</dim><level>{message}</level>\n"
    )


def format_plain(record):
    record["extra"].setdefault("context", DEFAULT_CONTEXT)
    record["extra"]["session"] = _session_tag(record)
    return "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[context]: <10} | {extra[session]}{message}\n"


# ===========================
# Logger Setup Function
# ===========================
def setup_logger(level: str = "INFO", log_file: Optional[str] = None):
    global LOG_LEVEL
    LOG_LEVEL = level

    logger.remove()

    logger.add(
        sys.stderr,
        level=LOG_LEVEL,
        format=format_log,
        colorize=True,
        backtrace=True,
        diagnose=False,
    )

    if log_file:
        logger.add(
            log_file,
            level=LOG_LEVEL,
            format=format_plain,
            rotation="10 MB",
            retention=5,
            enqueue=True,
        )


# ===========================
# Logger Factories
# ===========================
def get_logger(context: str):
    return logger.bind(context=context)


def session_logger(media_id: Union[int, str], context: str = DEFAULT_CONTEXT):
    return logger.bind(context=context, media_id=media_id)


# ===========================
# Logger Instances
# ===========================
engine_logger = get_logger("ENGINE")
api_logger = get_logger("API")
provider_logger = get_logger("PROVIDER")
fetcher_logger = get_logger("FETCHER")
reconcile_logger = get_logger("RECONCILE")
progress_logger = get_logger("PROGRESS")
metadata_logger = get_logger("METADATA")
cache_logger = get_logger("CACHE")
database_logger = get_logger("DATABASE")


# ===========================
# External Loggers Suppression
# ===========================
logging.getLogger("uvicorn.access").disabled = True
logging.getLogger("uvicorn.error").setLevel(logging.CRITICAL)
logging.getLogger("fastapi").setLevel(logging.CRITICAL)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("databases").setLevel(logging.WARNING)
