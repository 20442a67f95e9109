import math
import re
import unicodedata
from datetime import datetime, timezone
from typing import Optional, Union, Any

# ===========================
# Storage Keys
# ===========================
PROVIDER_PREFERENCE_KEY = "preferences:provider"
DISPLAY_PREFERENCE_KEY = "preferences:display"


# ===========================
# Text Normalization
# ===========================
def normalize_text(text: str) -> str:
    if not text:
        return ""

    text = text.lower()
    text = "".join(c for c in unicodedata.normalize("NFD", text) if unicodedata.category(c) != "Mn")
    text = "".join(c for c in text if c.isalnum() or c.isspace())
    text = " ".join(text.split())

    return text.strip()


def simplify_title(text: str) -> str:
    return normalize_text(text).replace(" ", "")


# ===========================
# Storage Key Creation
# ===========================
def create_storage_key(namespace: str, media_id: Union[int, str]) -> str:
    return f"{namespace}:{media_id}"


# ===========================
# Episode Number Parsing
# ===========================
def parse_episode_number(value: Any) -> Optional[Union[int, float]]:
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, str):
        value = value.strip()
        if not re.fullmatch(r"\d+(\.\d+)?", value):
            return None

    try:
        number = float(value)
    except (TypeError, ValueError):
        return None

    if math.isnan(number) or math.isinf(number) or number <= 0:
        return None

    if number.is_integer():
        return int(number)
    return number


# ===========================
# Air Date Parsing
# ===========================
def parse_aired(value: Any) -> Optional[datetime]:
    if not value:
        return None

    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, tz=timezone.utc)

    if isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(raw)
        except ValueError:
            return None

    return None


# ===========================
# Duration Parsing
# ===========================
def parse_duration_minutes(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        # Consumet reports seconds for some providers and minutes for others
        return round(value / 60, 2) if value > 300 else float(value)

    if isinstance(value, str):
        match = re.search(r"(\d+(?:\.\d+)?)", value)
        if match:
            return parse_duration_minutes(float(match.group(1)))

    return None


# ===========================
# Number Formatting
# ===========================
def format_number(number: Union[int, float]) -> str:
    if isinstance(number, float) and number.is_integer():
        return str(int(number))
    return str(number)
