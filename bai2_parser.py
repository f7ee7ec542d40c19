"""
bai2_parser.py
Recursive-descent BAI2 parser and query layer.

A document is parsed into a tree of nodes:

    FileNode -> GroupNode -> AccountNode -> TransactionNode

Each section level (file, group, account) reads an optional header, delegates
every following run of child records to the level below, then reads an
optional trailer. All levels share one LineCursor per parse.

Every node exposes:
    field(record_type, name)     raw value, or children's values joined with ","
    filter(level, "name=value")  matching node / pruned copy, or None
    errors()                     validation diagnostics rolled up bottom-up
    to_lines() / to_bai2()       re-serialisation of the parsed records
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple, Union

from bai2_schema import (
    FIELD_DELIM,
    LEVEL_RECORDS,
    RECORD_DELIM,
    RECORD_LEVELS,
    RT_ACCOUNT_HEADER,
    RT_CONTINUATION,
    RT_GROUP_HEADER,
    RT_TRANSACTION,
    Level,
    RecordType,
    record_code,
    schema_for,
)
from bai2_validators import validate_record

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Cursor
# ---------------------------------------------------------------------------
class LineCursor:
    """Front-to-back cursor over an immutable sequence of record lines."""

    def __init__(self, lines: Iterable[str]):
        self._lines: Tuple[str, ...] = tuple(lines)
        self._index = 0

    def peek(self) -> Optional[str]:
        if self._index < len(self._lines):
            return self._lines[self._index]
        return None

    def advance(self) -> str:
        if self._index >= len(self._lines):
            raise IndexError("cursor is exhausted")
        line = self._lines[self._index]
        self._index += 1
        return line

    @property
    def position(self) -> int:
        """1-based number of the next record to be consumed."""
        return self._index + 1

    def remaining(self) -> List[str]:
        return list(self._lines[self._index:])


def split_records(content: str) -> List[str]:
    """Split BAI2 text into non-blank record lines, line endings removed."""
    # Only "\n" ends a record; other control characters stay inside the field
    return [line.rstrip("\r") for line in content.split("\n") if line.strip()]


def _as_cursor(source) -> LineCursor:
    if isinstance(source, LineCursor):
        return source
    if isinstance(source, str):
        return LineCursor(split_records(source))
    return LineCursor(source)


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class SchemaMismatch:
    """A record whose token count differs from its schema's field count."""
    record_type: RecordType
    expected: int
    actual: int

    def __str__(self) -> str:
        return (
            f"{self.record_type}: Record: expected {self.expected} fields, "
            f"found {self.actual}"
        )


@dataclass
class Record:
    """One tokenised BAI2 line (header, trailer or transaction detail)."""
    record_type: RecordType
    raw: str
    fields: Dict[str, str] = field(default_factory=dict)
    mismatch: Optional[SchemaMismatch] = None
    continuations: List[str] = field(default_factory=list)
    diagnostics: List[str] = field(default_factory=list)

    def get(self, name: str) -> Optional[str]:
        return self.fields.get(name)

    def errors(self) -> List[str]:
        return list(self.diagnostics)

    def add_continuation(self, line: str) -> None:
        self.continuations.append(line)
        self.diagnostics.append(
            f"{self.record_type}: Continuation: continuation records are not supported"
        )

    def to_lines(self) -> List[str]:
        return [self.raw] + self.continuations


def _strip_record(line: str) -> str:
    text = line.strip()
    if text.endswith(RECORD_DELIM):
        text = text[: -len(RECORD_DELIM)]
    return text.strip()


def tokenize(line: str, record_type: RecordType) -> List[str]:
    """
    Split a record line into its field values.

    Transaction Detail Text is free text and may itself contain commas, so a
    transaction is split on its first (field count - 1) delimiters only and
    everything after that is kept verbatim as the last field.
    """
    text = _strip_record(line)
    if record_type is RecordType.TRANSACTION:
        return text.split(FIELD_DELIM, schema_for(record_type).field_count - 1)
    return text.split(FIELD_DELIM)


def parse_record(line: str, record_type, position: Optional[int] = None) -> Record:
    """Tokenise and validate one line against the schema of record_type."""
    schema = schema_for(record_type)
    values = tokenize(line, schema.record_type)
    record = Record(record_type=schema.record_type, raw=line.rstrip("\r\n"))

    if len(values) != schema.field_count:
        record.mismatch = SchemaMismatch(schema.record_type, schema.field_count, len(values))
        record.diagnostics.append(str(record.mismatch))
        where = f" (record #{position})" if position is not None else ""
        logger.warning(f"Schema mismatch{where}: {record.mismatch}")
        return record

    record.fields = dict(zip(schema.field_names, values))
    record.diagnostics.extend(validate_record(record.fields, schema))
    return record


def _take_record(cursor: LineCursor, record_type: Optional[RecordType]) -> Optional[Record]:
    """Consume the next line if it is a record_type record, plus any 88 lines after it."""
    if record_type is None or record_code(cursor.peek()) != record_type.code:
        return None
    position = cursor.position
    record = parse_record(cursor.advance(), record_type, position)
    while record_code(cursor.peek()) == RT_CONTINUATION:
        logger.warning(f"Unsupported continuation record #{cursor.position} after {record_type}")
        record.add_continuation(cursor.advance())
    return record


def _parse_condition(condition: str) -> Tuple[str, str]:
    if condition is None or "=" not in condition:
        raise ValueError(f"Filter condition must look like 'field=value', got {condition!r}")
    name, value = condition.split("=", 1)
    return name.strip(), value.strip()


# ---------------------------------------------------------------------------
# Nodes
# ---------------------------------------------------------------------------
@dataclass
class TransactionNode:
    record: Record

    level = Level.TRANSACTION

    @property
    def fields(self) -> Dict[str, str]:
        return dict(self.record.fields)

    def field(self, record_type, name: str) -> Optional[str]:
        if RecordType.coerce(record_type) is RecordType.TRANSACTION:
            return self.record.get(name)
        return None

    def filter(self, level, condition: str) -> Optional["Node"]:
        field_name, value = _parse_condition(condition)
        if Level.coerce(level) is not Level.TRANSACTION:
            return None
        return self if self.record.get(field_name) == value else None

    def errors(self) -> List[str]:
        return self.record.errors()

    def to_lines(self) -> List[str]:
        return self.record.to_lines()

    def to_bai2(self) -> str:
        return _join_lines(self.to_lines())


@dataclass
class _SectionNode:
    """Shared header / children / trailer behaviour of the three section levels."""
    header: Optional[Record] = None
    trailer: Optional[Record] = None

    level = None
    children_attr = ""

    @property
    def children(self) -> list:
        return getattr(self, self.children_attr)

    def _with_children(self, children: list):
        return type(self)(**{self.children_attr: children})

    def field(self, record_type, name: str) -> Optional[str]:
        """
        Return a header/trailer value of this level, or the values of every
        descendant joined with "," when record_type belongs to a lower level.
        None means the record or the field is absent.
        """
        record_type = RecordType.coerce(record_type)
        header_type, trailer_type = LEVEL_RECORDS[self.level]
        if record_type is header_type:
            return self.header.get(name) if self.header else None
        if record_type is trailer_type:
            return self.trailer.get(name) if self.trailer else None
        if not RECORD_LEVELS[record_type].is_below(self.level):
            return None

        values = []
        for child in self.children:
            value = child.field(record_type, name)
            values.append("" if value is None else value)
        return FIELD_DELIM.join(values)

    def filter(self, level, condition: str) -> Optional["Node"]:
        """
        Keep only the nodes at `level` whose `field` equals `value`.

        On this node's own level, returns self or None. On a lower level,
        returns a new node of this type holding only the children that
        matched (no header/trailer), or None when nothing matched.
        """
        level = Level.coerce(level)
        field_name, value = _parse_condition(condition)

        if level is self.level:
            actual = self.header.get(field_name) if self.header else None
            if actual == value:
                logger.debug(f"Matched {self.level} on {field_name}={value}")
                return self
            return None

        if not level.is_below(self.level):
            return None

        matched = []
        for child in self.children:
            result = child.filter(level, condition)
            if result is not None:
                matched.append(result)
        if not matched:
            return None
        return self._with_children(matched)

    def errors(self) -> List[str]:
        errors = []
        if self.header:
            errors.extend(self.header.errors())
        for child in self.children:
            errors.extend(child.errors())
        if self.trailer:
            errors.extend(self.trailer.errors())
        return errors

    def to_lines(self) -> List[str]:
        lines = []
        if self.header:
            lines.extend(self.header.to_lines())
        for child in self.children:
            lines.extend(child.to_lines())
        if self.trailer:
            lines.extend(self.trailer.to_lines())
        return lines

    def to_bai2(self) -> str:
        return _join_lines(self.to_lines())


@dataclass
class AccountNode(_SectionNode):
    transactions: List[TransactionNode] = field(default_factory=list)

    level = Level.ACCOUNT
    children_attr = "transactions"


@dataclass
class GroupNode(_SectionNode):
    accounts: List[AccountNode] = field(default_factory=list)

    level = Level.GROUP
    children_attr = "accounts"


@dataclass
class FileNode(_SectionNode):
    groups: List[GroupNode] = field(default_factory=list)
    # Records left over once the descent stopped; not part of errors()
    unparsed: List[str] = field(default_factory=list)

    level = Level.FILE
    children_attr = "groups"


Node = Union[FileNode, GroupNode, AccountNode, TransactionNode]


def _join_lines(lines: List[str]) -> str:
    return "".join(f"{line}\n" for line in lines)


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------
def parse_transaction(source) -> TransactionNode:
    cursor = _as_cursor(source)
    record = _take_record(cursor, RecordType.TRANSACTION)
    if record is None:
        raise ValueError(f"Expected a {RT_TRANSACTION} record, got {cursor.peek()!r}")
    return TransactionNode(record=record)


def _parse_section(cursor: LineCursor, node_cls, child_code: str, parse_child):
    header_type, trailer_type = LEVEL_RECORDS[node_cls.level]
    header = _take_record(cursor, header_type)

    children = []
    while record_code(cursor.peek()) == child_code:
        children.append(parse_child(cursor))

    trailer = _take_record(cursor, trailer_type)

    node = node_cls(header=header, trailer=trailer)
    node.children.extend(children)
    return node


def parse_account(source) -> AccountNode:
    """Parse an account: optional 03, any run of 16 records, optional 49."""
    return _parse_section(_as_cursor(source), AccountNode, RT_TRANSACTION, parse_transaction)


def parse_group(source) -> GroupNode:
    """Parse a group: optional 02, any run of accounts, optional 98."""
    return _parse_section(_as_cursor(source), GroupNode, RT_ACCOUNT_HEADER, parse_account)


def parse_file(source) -> FileNode:
    """Parse a file: optional 01, any run of groups, optional 99."""
    return _parse_section(_as_cursor(source), FileNode, RT_GROUP_HEADER, parse_group)


def parse_bai2(content: Union[str, Iterable[str]]) -> FileNode:
    """
    Parse a full BAI2 document (text or a sequence of record lines).
    Never raises on malformed content; see FileNode.errors() and
    FileNode.unparsed for what could not be validated or placed.
    """
    cursor = _as_cursor(content)
    file_node = parse_file(cursor)
    leftover = cursor.remaining()
    if leftover:
        logger.warning(
            f"{len(leftover)} record(s) could not be placed, starting at "
            f"record #{cursor.position}: {leftover[0]!r}"
        )
        file_node.unparsed = leftover
    logger.info(
        f"Parsed BAI2 file: {len(file_node.groups)} group(s), "
        f"{len(file_node.errors())} validation error(s)"
    )
    return file_node
