"""
bai2_schema.py
Static BAI2 record metadata: type codes, field names per record type,
delimiters and the validator assigned to each field.
Built once at import time and never mutated.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Tuple

from bai2_validators import (
    validate_alphanumeric,
    validate_ascii_printable,
    validate_numeric,
)


# ---------------------------------------------------------------------------
# Delimiters
# ---------------------------------------------------------------------------
FIELD_DELIM  = ","
RECORD_DELIM = "/"


# ---------------------------------------------------------------------------
# BAI2 Record Type Constants
# ---------------------------------------------------------------------------
RT_FILE_HEADER       = "01"
RT_GROUP_HEADER      = "02"
RT_ACCOUNT_HEADER    = "03"
RT_TRANSACTION       = "16"
RT_ACCOUNT_TRAILER   = "49"
RT_GROUP_TRAILER     = "98"
RT_FILE_TRAILER      = "99"
RT_CONTINUATION      = "88"


class RecordType(Enum):
    FILE_HEADER     = "File Header"
    GROUP_HEADER    = "Group Header"
    ACCOUNT_HEADER  = "Account Header"
    TRANSACTION     = "Transaction"
    ACCOUNT_TRAILER = "Account Trailer"
    GROUP_TRAILER   = "Group Trailer"
    FILE_TRAILER    = "File Trailer"

    def __str__(self) -> str:
        return self.value

    @property
    def code(self) -> str:
        return _CODES[self]

    @classmethod
    def coerce(cls, value) -> "RecordType":
        """Accept a RecordType, its display name ("Account Header") or its member name."""
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if text == member.value or text.upper().replace(" ", "_") == member.name:
                return member
        raise ValueError(f"Unknown BAI2 record type: {value!r}")


class Level(Enum):
    """Hierarchy levels addressed by filter()."""
    FILE        = "File"
    GROUP       = "Group"
    ACCOUNT     = "Account"
    TRANSACTION = "Transaction"

    def __str__(self) -> str:
        return self.value

    @property
    def depth(self) -> int:
        return _DEPTHS[self]

    def is_below(self, other: "Level") -> bool:
        return self.depth > other.depth

    @classmethod
    def coerce(cls, value) -> "Level":
        if isinstance(value, cls):
            return value
        text = str(value).strip()
        for member in cls:
            if text.lower() == member.value.lower():
                return member
        raise ValueError(f"Unknown BAI2 level: {value!r}")


_CODES = {
    RecordType.FILE_HEADER:     RT_FILE_HEADER,
    RecordType.GROUP_HEADER:    RT_GROUP_HEADER,
    RecordType.ACCOUNT_HEADER:  RT_ACCOUNT_HEADER,
    RecordType.TRANSACTION:     RT_TRANSACTION,
    RecordType.ACCOUNT_TRAILER: RT_ACCOUNT_TRAILER,
    RecordType.GROUP_TRAILER:   RT_GROUP_TRAILER,
    RecordType.FILE_TRAILER:    RT_FILE_TRAILER,
}

_DEPTHS = {
    Level.FILE:        0,
    Level.GROUP:       1,
    Level.ACCOUNT:     2,
    Level.TRANSACTION: 3,
}


# ---------------------------------------------------------------------------
# Record schemas
# ---------------------------------------------------------------------------
Validator = Callable[[str], str]


@dataclass(frozen=True)
class RecordSchema:
    record_type: RecordType
    field_names: Tuple[str, ...]
    validators: Tuple[Optional[Validator], ...]

    @property
    def field_count(self) -> int:
        return len(self.field_names)

    def fields_with_validators(self):
        return zip(self.field_names, self.validators)


def _schema(record_type: RecordType, *fields: Tuple[str, Optional[Validator]]) -> RecordSchema:
    return RecordSchema(
        record_type=record_type,
        field_names=tuple(name for name, _ in fields),
        validators=tuple(check for _, check in fields),
    )


NUM   = validate_numeric
ALNUM = validate_alphanumeric
ASCII = validate_ascii_printable


RECORD_SCHEMAS: Mapping[RecordType, RecordSchema] = MappingProxyType({
    RecordType.FILE_HEADER: _schema(
        RecordType.FILE_HEADER,
        ("Record Code",                NUM),
        ("Sender Identification",      ALNUM),
        ("Receiver Identification",    ALNUM),
        ("File Creation Date",         NUM),
        ("File Creation Time",         NUM),
        ("File Identification Number", NUM),
        ("Physical Record Length",     NUM),
        ("Block Size",                 NUM),
        ("Version Number",             NUM),
    ),
    RecordType.GROUP_HEADER: _schema(
        RecordType.GROUP_HEADER,
        ("Record Code",                      NUM),
        ("Ultimate Receiver Identification", ASCII),
        ("Originator Identification",        ASCII),
        ("Group Status",                     NUM),
        ("As-of-Date",                       NUM),
        ("As-of-Time",                       NUM),
        ("Currency Code",                    ASCII),
        ("As-of-Date Modifier",              None),
    ),
    RecordType.ACCOUNT_HEADER: _schema(
        RecordType.ACCOUNT_HEADER,
        ("Record Code",           NUM),
        ("Bank Customer Account", ASCII),
        ("Currency Code",         ASCII),
        ("Type Code",             NUM),
        ("Amount",                NUM),
        ("Item Count",            NUM),
        ("Funds Type",            ASCII),
    ),
    RecordType.TRANSACTION: _schema(
        RecordType.TRANSACTION,
        ("Record Code",               NUM),
        ("Type Code",                 NUM),
        ("Transaction Amount",        NUM),
        ("Funds Type",                ASCII),
        ("Bank Reference Number",     ASCII),
        ("Customer Reference Number", ASCII),
        ("Detail Text",               ASCII),
    ),
    RecordType.ACCOUNT_TRAILER: _schema(
        RecordType.ACCOUNT_TRAILER,
        ("Record Code",           NUM),
        ("Account Control Total", NUM),
        ("Account Total Records", NUM),
    ),
    RecordType.GROUP_TRAILER: _schema(
        RecordType.GROUP_TRAILER,
        ("Record Code",         NUM),
        ("Group Control Total", NUM),
        ("Number of Accounts",  NUM),
        ("Number of Records",   NUM),
    ),
    RecordType.FILE_TRAILER: _schema(
        RecordType.FILE_TRAILER,
        ("Record Code",        NUM),
        ("File Control Total", NUM),
        ("Number of Groups",   NUM),
        ("Number of Records",  NUM),
    ),
})


# Header / trailer record types owned by each level
LEVEL_RECORDS = MappingProxyType({
    Level.FILE:        (RecordType.FILE_HEADER, RecordType.FILE_TRAILER),
    Level.GROUP:       (RecordType.GROUP_HEADER, RecordType.GROUP_TRAILER),
    Level.ACCOUNT:     (RecordType.ACCOUNT_HEADER, RecordType.ACCOUNT_TRAILER),
    Level.TRANSACTION: (RecordType.TRANSACTION, None),
})


def schema_for(record_type) -> RecordSchema:
    return RECORD_SCHEMAS[RecordType.coerce(record_type)]


def record_code(line: Optional[str]) -> Optional[str]:
    """Return the leading two-character type code of a record line, or None."""
    if not line:
        return None
    return line.lstrip()[:2]


# Level that owns each record type
RECORD_LEVELS = MappingProxyType({
    record_type: level
    for level, owned in LEVEL_RECORDS.items()
    for record_type in owned
    if record_type is not None
})
