import re
import unicodedata
from datetime import date, datetime, timezone
from typing import Any, Iterable, List, Optional
from urllib.parse import urlparse

_MISSING = object()


def now_utc():
    """Returns current datetime in UTC (aware)"""
    return datetime.now(timezone.utc)


def ensure_utc(dt):
    """
    Ensure a datetime object is aware and in UTC.
    Handles ISO strings, None, and naive datetimes (assumed UTC).
    """
    if dt is None:
        return None

    if isinstance(dt, str):
        try:
            dt = datetime.fromisoformat(dt.replace('Z', '+00:00'))
        except (ValueError, TypeError, AttributeError):
            return None

    if not hasattr(dt, 'tzinfo'):
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def parse_date(value) -> Optional[date]:
    """
    Parse a provider date into a ``date``.

    Accepts dates, datetimes, ISO strings (``2023-09-06``, ``2023-09-06T00:00:00Z``,
    ``2023-09-06 00:00:00``) and bare years. Anything else returns None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None

    try:
        return datetime.fromisoformat(text.replace('Z', '+00:00')).date()
    except ValueError:
        pass

    for fmt in ('%Y-%m-%d %H:%M:%S', '%Y/%m/%d', '%d/%m/%Y', '%b %d, %Y', '%B %d, %Y', '%Y-%m', '%Y'):
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    return None


def date_from_parts(year, month=None, day=None) -> Optional[date]:
    """Build a date from ``expected_release_*`` style parts, defaulting month/day to 1"""
    year = to_int(year)
    if not year:
        return None
    try:
        return date(year, to_int(month) or 1, to_int(day) or 1)
    except ValueError:
        return None


def parse_timestamp(value) -> Optional[datetime]:
    """Parse an epoch (int/str) or ISO string into an aware UTC datetime"""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value, timezone.utc)
    if isinstance(value, str) and value.strip().isdigit():
        return datetime.fromtimestamp(int(value.strip()), timezone.utc)
    return ensure_utc(value) if isinstance(value, str) else None


def to_float(value) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def to_int(value) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def is_blank(value) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ''
    if isinstance(value, (list, dict, tuple, set)):
        return len(value) == 0
    return False


def data_get(data, path: str, default=None):
    """
    Read a dotted path from nested dicts/lists without raising.

    ``data_get(payload, "data.games")`` returns ``payload["data"]["games"]``
    or ``default`` when any step is missing or has the wrong type.
    """
    current = data
    for part in path.split('.'):
        if isinstance(current, dict):
            current = current.get(part, _MISSING)
        elif isinstance(current, list) and part.isdigit():
            index = int(part)
            current = current[index] if index < len(current) else _MISSING
        else:
            return default
        if current is _MISSING:
            return default
    return current


def unique(items: Iterable) -> List:
    """Order-preserving dedup"""
    return list(dict.fromkeys(items))


def extract_strings(value) -> List[str]:
    """
    Flatten a provider list field into unique strings.

    Lists may hold plain strings or dicts with ``name``/``title``/``label``;
    plain strings are split on commas, pipes and newlines.
    """
    items = []
    if isinstance(value, list):
        for item in value:
            if isinstance(item, str):
                items.append(item)
            elif isinstance(item, dict):
                items.append(item.get('name') or item.get('title') or item.get('label'))
    elif isinstance(value, str):
        items = re.split(r'[,|\n]', value)

    return unique(item.strip() for item in items if isinstance(item, str) and item.strip())


def pluck(items, path: str) -> List:
    """Collect ``data_get(item, path)`` for each dict item, skipping blanks"""
    if not isinstance(items, list):
        return []
    return unique(v for v in (data_get(item, path) for item in items) if isinstance(v, str) and v.strip())


def ascii_fold(text: str) -> str:
    """Transliterate accented characters to their ASCII base"""
    normalized = unicodedata.normalize('NFKD', text)
    return ''.join(c for c in normalized if not unicodedata.combining(c)).encode('ascii', 'ignore').decode('ascii')


def slugify(value, separator: str = '-') -> str:
    """URL slug: ASCII, lowercase, alphanumerics separated by ``separator``"""
    if value is None:
        return ''
    text = ascii_fold(str(value)).lower()
    text = text.replace('&', ' and ').replace("'", '')
    text = re.sub(r'[^a-z0-9]+', separator, text)
    return text.strip(separator)


def headline(value: str) -> str:
    """``"super-mario_odyssey"`` -> ``"Super Mario Odyssey"``"""
    words = re.split(r'[\s\-_]+', value or '')
    return ' '.join(w.capitalize() for w in words if w)


def is_valid_url(value) -> bool:
    if not isinstance(value, str) or not value:
        return False
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return parsed.scheme in ('http', 'https') and bool(parsed.netloc)


def sanitize_sensitive_data(data, sensitive_keys=None):
    """
    Remove or mask sensitive data before logging.

    Args:
        data: Dictionary, list, or other data to sanitize
        sensitive_keys: List of keys to mask (default: common credential keys)

    Returns:
        Sanitized version of the data
    """
    if sensitive_keys is None:
        sensitive_keys = [
            'password', 'secret', 'api_key', 'apikey',
            'token', 'private_key', 'public_key', 'authorization', 'key', 't',
        ]

    if isinstance(data, dict):
        sanitized = {}
        for k, v in data.items():
            key_lower = str(k).lower()
            is_sensitive = key_lower in sensitive_keys or any(
                sens in key_lower for sens in sensitive_keys if len(sens) > 3
            )

            if is_sensitive and isinstance(v, (str, int)):
                v = str(v)
                sanitized[k] = f"{v[:2]}***{v[-2:]}" if len(v) > 4 else "***"
            elif isinstance(v, (dict, list)):
                sanitized[k] = sanitize_sensitive_data(v, sensitive_keys)
            else:
                sanitized[k] = v
        return sanitized

    if isinstance(data, list):
        return [sanitize_sensitive_data(item, sensitive_keys) if isinstance(item, (dict, list)) else item for item in data]

    return data


def isoformat(value) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def chunked(items: List[Any], size: int):
    """Yield successive ``size``-length chunks"""
    size = max(1, int(size))
    for i in range(0, len(items), size):
        yield items[i:i + size]
