"""
bai2_validators.py
Field-level character-class checks for BAI2 records.

Each validate_* function takes a raw field value and returns "" when the value
is acceptable, otherwise a short message fragment such as "ABC is not Numeric".
validate_record() applies a record schema's validators in field order.
"""

import re
from typing import Dict, List

_NUMERIC_RE = re.compile(r"^-?(\d+(\.\d*)?|\.\d+)$")


def is_numeric(value: str) -> bool:
    """Return True if value is empty or an optionally signed integer/decimal.

    A single leading "+" is ignored, as are surrounding blanks.
    """
    if value is None:
        return False
    num = value[1:] if value.startswith("+") else value
    num = num.strip()
    return num == "" or bool(_NUMERIC_RE.match(num))


def validate_numeric(value: str) -> str:
    if is_numeric(value):
        return ""
    return f"{value} is not Numeric"


def validate_alphanumeric(value: str) -> str:
    # Blank sender/receiver ids are not allowed
    if value and value.isascii() and value.isalnum():
        return ""
    return f"{value} is not Alphanumeric"


def validate_ascii_printable(value: str) -> str:
    if value is not None and all(32 <= ord(ch) < 127 for ch in value):
        return ""
    return f"{value} is not ASCII Printable"


def validate_record(field_values: Dict[str, str], schema) -> List[str]:
    """
    Validate field_values against a RecordSchema.
    Returns "{RecordType}: {field}: {message}" strings in schema field order.
    """
    errors = []
    for name, check in schema.fields_with_validators():
        if name not in field_values:
            errors.append(f"{schema.record_type}: {name}: value is missing")
            continue
        if check is None:
            continue
        message = check(field_values[name])
        if message:
            errors.append(f"{schema.record_type}: {name}: {message}")
    return errors
