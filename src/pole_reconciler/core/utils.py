import re
import math
import logging

import pandas as pd

from ..models.data_models import UNKNOWN, NOT_AVAILABLE, UNDERGROUND

logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

METERS_TO_INCHES = 39.3701

DEFAULT_POLE_ID_PREFIXES = [
    "POLE NUMBER",
    "POLE NO.",
    "POLE NO",
    "POLE #",
    "POLE#",
    "POLE-",
    "POLE_",
    "POLE:",
    "POLE ",
]

COMPASS_POINTS = ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]

UNIT_FACTORS = {
    "METRE": METERS_TO_INCHES,
    "METER": METERS_TO_INCHES,
    "METRES": METERS_TO_INCHES,
    "METERS": METERS_TO_INCHES,
    "M": METERS_TO_INCHES,
    "FOOT": 12.0,
    "FEET": 12.0,
    "FT": 12.0,
    "INCH": 1.0,
    "INCHES": 1.0,
    "IN": 1.0,
}

# Keys that wrap a field-survey attribute value, in priority order
WRAPPED_VALUE_KEYS = ["-Imported", "assessment", "tagtext", "value", "button_added"]

_CANONICAL_ID = re.compile(r"[A-Za-z]{1,2}\d+")
_EMBEDDED_ID = re.compile(r"(?<![A-Za-z])[A-Za-z]{1,2}\d+(?![A-Za-z0-9])")
_LEADING_JUNK = re.compile(r"^[^A-Za-z0-9]+")
_COLON_HEIGHT = re.compile(r"(\d+(?:\.\d+)?)\s*:\s*(\d+(?:\.\d+)?)")
_FEET_INCHES_HEIGHT = re.compile(r"(\d+(?:\.\d+)?)\s*'\s*-?\s*(?:(\d+(?:\.\d+)?)\s*(?:\"|'')?)?")


class Utils:
    """Utility functions shared across the reconciliation engine"""

    @staticmethod
    def normalize_pole_id(raw, prefixes=None):
        """
        Canonicalize a free-text pole label into a comparable identifier

        Args:
            raw: Pole label from either survey
            prefixes (list, optional): Ordered prefixes to strip, case-insensitive

        When no letter-digit id can be found, the label with prefixes and leading
        punctuation stripped is returned upper-cased; if nothing is left after
        stripping, the trimmed input is returned as-is.

        Returns:
            str: Upper-cased identifier, or "Unknown" for empty input
        """
        if not raw:
            return UNKNOWN
        try:
            text = str(raw).strip()
            if not text:
                return UNKNOWN
            if _CANONICAL_ID.fullmatch(text):
                return text.upper()

            if prefixes is None:
                prefixes = DEFAULT_POLE_ID_PREFIXES

            cleaned = text
            changed = True
            while changed and cleaned:
                changed = False
                for prefix in prefixes:
                    if prefix and cleaned.upper().startswith(prefix.upper()):
                        cleaned = cleaned[len(prefix):]
                        changed = True
                        break
                stripped = _LEADING_JUNK.sub('', cleaned)
                if stripped != cleaned:
                    cleaned = stripped
                    changed = True

            if cleaned.upper() == UNKNOWN.upper():
                return UNKNOWN
            if _CANONICAL_ID.fullmatch(cleaned):
                return cleaned.upper()

            match = _EMBEDDED_ID.search(cleaned)
            if match:
                return match.group(0).upper()

            return cleaned.upper() if cleaned else text
        except Exception as e:
            logging.debug(f"Could not normalize pole id {raw!r}: {e}")
            return str(raw).strip()

    @staticmethod
    def unit_factor(unit):
        """Inches per unit; None when the unit is not recognised"""
        if unit is None:
            return 1.0
        return UNIT_FACTORS.get(str(unit).strip().upper())

    @staticmethod
    def parse_height_to_inches(value, unit=None):
        """
        Convert a height in any supported encoding to inches

        Accepts {"unit", "value"} wrappers, numbers tagged with ``unit``,
        "FT:IN" strings, FT'-IN" strings and plain numeric strings.
        Bare numbers with no unit are taken as inches.

        Returns:
            float or None if the value cannot be parsed
        """
        if value is None:
            return None

        if isinstance(value, dict):
            return Utils.parse_height_to_inches(value.get('value'), value.get('unit', unit))

        if isinstance(value, bool):
            logging.debug(f"Ignoring boolean height value: {value}")
            return None

        if isinstance(value, (int, float)):
            if pd.isna(value):
                return None
            factor = Utils.unit_factor(unit)
            if factor is None:
                logging.warning(f"Unknown height unit '{unit}' for value {value}")
                return None
            return float(value) * factor

        text = str(value).strip()
        if not text:
            return None

        m = _COLON_HEIGHT.fullmatch(text)
        if m:
            return float(m.group(1)) * 12 + float(m.group(2))

        m = _FEET_INCHES_HEIGHT.fullmatch(text)
        if m:
            inches = float(m.group(2)) if m.group(2) else 0.0
            return float(m.group(1)) * 12 + inches

        try:
            number = float(text.rstrip('"').strip())
        except ValueError:
            logging.warning(f"Could not parse height: '{value}'")
            return None
        return Utils.parse_height_to_inches(number, unit)

    @staticmethod
    def format_inches(inches):
        """Render inches as F'-I" rounding to the nearest inch, "N/A" when missing"""
        if inches is None:
            return NOT_AVAILABLE
        try:
            value = float(inches)
        except (TypeError, ValueError):
            return NOT_AVAILABLE
        if pd.isna(value):
            return NOT_AVAILABLE

        total = int(math.floor(abs(value) + 0.5))
        feet, remainder = divmod(total, 12)
        sign = "-" if value < 0 and total else ""
        return f"{sign}{feet}'-{remainder}\""

    @staticmethod
    def format_midspan(value, unmoved=False):
        """Render a mid-span height; unmoved existing heights go in parentheses"""
        if value == UNDERGROUND:
            return UNDERGROUND
        if value is None:
            return NOT_AVAILABLE
        formatted = Utils.format_inches(value)
        if unmoved and formatted != NOT_AVAILABLE:
            return f"({formatted})"
        return formatted

    @staticmethod
    def compass_direction(degrees):
        """Round an angle in degrees to the nearest of 8 compass points"""
        if degrees is None or isinstance(degrees, bool):
            return None
        try:
            value = float(degrees)
        except (TypeError, ValueError):
            return None
        if pd.isna(value):
            return None
        index = int(((value % 360) + 22.5) // 45) % 8
        return COMPASS_POINTS[index]

    @staticmethod
    def to_number(value):
        """Coerce a value to float, None when it is not numeric"""
        if value is None or isinstance(value, bool):
            return None
        number = pd.to_numeric(value, errors='coerce')
        if pd.isna(number):
            return None
        return float(number)

    @staticmethod
    def _loose_key(key):
        return re.sub(r'[\s_\-]', '', str(key)).lower()

    @staticmethod
    def get_key(mapping, key):
        """Dict lookup trying the exact key first, then case and underscore insensitive"""
        if not isinstance(mapping, dict):
            return None
        if key in mapping:
            return mapping[key]
        loose = Utils._loose_key(key)
        for candidate, value in mapping.items():
            if Utils._loose_key(candidate) == loose:
                return value
        return None

    @staticmethod
    def lookup_first(obj, key_paths):
        """
        Return the first present value among candidate key paths

        Args:
            obj (dict): Tree to search
            key_paths (list): Dotted strings or sequences of keys, in priority order

        Returns:
            tuple: (matched path, value) or (None, None)
        """
        for path in key_paths:
            parts = path.split('.') if isinstance(path, str) else list(path)
            current = obj
            for part in parts:
                current = Utils.get_key(current, part)
                if current is None:
                    break
            if current is None:
                continue
            if isinstance(current, str) and not current.strip():
                continue
            label = path if isinstance(path, str) else '.'.join(str(p) for p in path)
            return label, current
        return None, None

    @staticmethod
    def unwrap_value(value):
        """Unwrap field-survey attribute values such as {"-Imported": "PL100"}"""
        if isinstance(value, dict):
            for key in WRAPPED_VALUE_KEYS:
                if key in value and value[key] not in (None, ''):
                    return Utils.unwrap_value(value[key])
            for inner in value.values():
                if inner not in (None, ''):
                    return Utils.unwrap_value(inner)
            return None
        if isinstance(value, list):
            for inner in value:
                unwrapped = Utils.unwrap_value(inner)
                if unwrapped not in (None, ''):
                    return unwrapped
            return None
        return value

    @staticmethod
    def owner_name(owner):
        """Owner names come as plain strings or as {"id": ...} objects"""
        if owner is None:
            return ""
        if isinstance(owner, dict):
            for key in ('id', 'name', 'industry'):
                if owner.get(key):
                    return str(owner[key]).strip()
            return ""
        return str(owner).strip()

    @staticmethod
    def matches_keywords(text, keywords):
        """Case-insensitive substring test against a keyword list"""
        if not text:
            return False
        lowered = str(text).lower()
        return any(k and k.lower() in lowered for k in keywords)

    @staticmethod
    def as_list(collection):
        """Field-survey collections may be keyed dicts or arrays; return (key, item) pairs"""
        if isinstance(collection, dict):
            return [(str(k), v) for k, v in collection.items() if isinstance(v, dict)]
        if isinstance(collection, list):
            pairs = []
            for index, item in enumerate(collection):
                if not isinstance(item, dict):
                    continue
                key = item.get('id') or item.get('node_id') or item.get('connection_id') or index
                pairs.append((str(key), item))
            return pairs
        return []
