"""Tests for bai2_parser: tokenising, recursive descent, errors and serialisation."""

import logging

import pytest

from bai2_parser import (
    AccountNode,
    FileNode,
    GroupNode,
    LineCursor,
    SchemaMismatch,
    parse_account,
    parse_bai2,
    parse_group,
    parse_record,
    parse_transaction,
    split_records,
    tokenize,
)
from bai2_schema import RecordType


class TestLineCursor:

    def test_peek_does_not_consume(self):
        cursor = LineCursor(["a", "b"])
        assert cursor.peek() == "a"
        assert cursor.peek() == "a"
        assert cursor.advance() == "a"
        assert cursor.peek() == "b"
        assert cursor.position == 2

    def test_exhausted(self):
        cursor = LineCursor([])
        assert cursor.remaining() == []
        assert cursor.peek() is None
        with pytest.raises(IndexError):
            cursor.advance()

    def test_split_records_skips_blank_lines(self):
        assert split_records("01,a/\r\n\n   \n99,b/\n") == ["01,a/", "99,b/"]

    def test_split_records_only_breaks_on_newline(self):
        assert split_records("16,1,2,0,R,,a\x0cb/\n16,1,2,0,R,,c\x1ed/\n") == [
            "16,1,2,0,R,,a\x0cb/",
            "16,1,2,0,R,,c\x1ed/",
        ]


class TestTransaction:

    def test_detail_text_keeps_commas(self):
        txn = parse_transaction(["16,191,500,0,REF1,,Deposit, with comma/"])
        assert txn.fields["Detail Text"] == "Deposit, with comma"
        assert txn.fields["Customer Reference Number"] == ""
        assert txn.errors() == []

    def test_detail_text_with_several_commas(self):
        values = tokenize("16,191,500,0,REF1,CUST,a,b,,c/", RecordType.TRANSACTION)
        assert len(values) == 7
        assert values[-1] == "a,b,,c"

    def test_too_few_tokens_leaves_fields_empty(self, caplog):
        with caplog.at_level(logging.WARNING):
            txn = parse_transaction(["16,191,500/"])
        assert txn.fields == {}
        assert txn.record.mismatch == SchemaMismatch(RecordType.TRANSACTION, 7, 3)
        assert txn.errors() == ["Transaction: Record: expected 7 fields, found 3"]
        assert txn.field(RecordType.TRANSACTION, "Transaction Amount") is None
        assert "Schema mismatch" in caplog.text

    def test_validation_errors(self):
        txn = parse_transaction(["16,ABC,12x,0,REF1,,text/"])
        assert txn.errors() == [
            "Transaction: Type Code: ABC is not Numeric",
            "Transaction: Transaction Amount: 12x is not Numeric",
        ]

    def test_requires_a_transaction_line(self):
        with pytest.raises(ValueError):
            parse_transaction(["49,100,1/"])

    def test_record_delimiter_is_optional(self):
        record = parse_record("49,100,1", RecordType.ACCOUNT_TRAILER)
        assert record.get("Account Total Records") == "1"


class TestAccount:

    def test_control_character_in_detail_text(self):
        account = parse_account("03,1234567,USD,040,100,0,0/\n16,191,1,0,R,,page\x0cbreak/\n49,1,3/\n")
        assert len(account.transactions) == 1
        assert account.transactions[0].fields["Detail Text"] == "page\x0cbreak"
        assert account.trailer is not None
        assert account.errors() == ["Transaction: Detail Text: page\x0cbreak is not ASCII Printable"]

    def test_end_to_end(self, account_lines):
        account = parse_account(account_lines)
        assert account.field(RecordType.ACCOUNT_HEADER, "Bank Customer Account") == "1234567"
        assert len(account.transactions) == 1
        assert account.field(RecordType.TRANSACTION, "Detail Text") == "Deposit, with comma"
        assert account.field(RecordType.ACCOUNT_TRAILER, "Account Total Records") == "1"
        assert account.errors() == []

    def test_header_and_trailer_are_optional(self):
        account = parse_account(["16,191,500,0,REF1,,one/", "16,191,600,0,REF2,,two/"])
        assert account.header is None
        assert account.trailer is None
        assert len(account.transactions) == 2
        assert account.field(RecordType.ACCOUNT_HEADER, "Bank Customer Account") is None

    def test_stops_at_first_unexpected_record(self):
        cursor = LineCursor(["03,1,USD,040,1,0,0/", "02,X/", "16,191,1,0,R,,t/"])
        account = parse_account(cursor)
        assert account.transactions == []
        assert cursor.peek() == "02,X/"

    def test_shared_cursor_between_levels(self):
        cursor = LineCursor([
            "03,111,USD,040,1,0,0/",
            "49,1,2/",
            "03,222,USD,040,2,0,0/",
            "49,2,2/",
        ])
        first = parse_account(cursor)
        second = parse_account(cursor)
        assert first.field(RecordType.ACCOUNT_HEADER, "Bank Customer Account") == "111"
        assert second.field(RecordType.ACCOUNT_HEADER, "Bank Customer Account") == "222"
        assert cursor.peek() is None


class TestGroupAndFile:

    def test_file_structure(self, sample_content):
        file_node = parse_bai2(sample_content)
        assert isinstance(file_node, FileNode)
        assert len(file_node.groups) == 2
        assert [len(g.accounts) for g in file_node.groups] == [2, 1]
        assert [len(a.transactions) for a in file_node.groups[0].accounts] == [2, 1]
        assert file_node.field(RecordType.FILE_TRAILER, "Number of Records") == "15"
        assert file_node.errors() == []
        assert file_node.unparsed == []

    def test_group_without_header(self):
        group = parse_group(["03,1,USD,040,1,0,0/", "49,1,2/", "98,1,1,4/"])
        assert isinstance(group, GroupNode)
        assert group.header is None
        assert len(group.accounts) == 1
        assert group.field(RecordType.GROUP_TRAILER, "Number of Accounts") == "1"

    def test_records_after_trailer_are_reported(self, sample_content, caplog):
        with caplog.at_level(logging.WARNING):
            file_node = parse_bai2(sample_content + "16,191,1,0,R,,stray/\n")
        assert file_node.unparsed == ["16,191,1,0,R,,stray/"]
        assert "could not be placed" in caplog.text

    def test_document_from_lines(self, sample_content):
        by_text = parse_bai2(sample_content)
        by_lines = parse_bai2(split_records(sample_content))
        assert by_text == by_lines

    def test_independent_parses_do_not_interfere(self, sample_content):
        assert parse_bai2(sample_content) == parse_bai2(sample_content)


class TestErrors:

    def test_errors_roll_up_in_order(self):
        file_node = parse_bai2([
            "01,SENDER,RECEIVER,2401x5,0800,1,80,10,2/",
            "02,R,O,1,240114,2359,USD,2/",
            "03,1,USD,04x,1,0,0/",
            "16,191,1x,0,R,,t/",
            "49,1,2/",
            "98,1,1,z/",
            "99,1,1,7/",
        ])
        assert file_node.errors() == [
            "File Header: File Creation Date: 2401x5 is not Numeric",
            "Account Header: Type Code: 04x is not Numeric",
            "Transaction: Transaction Amount: 1x is not Numeric",
            "Group Trailer: Number of Records: z is not Numeric",
        ]

    def test_error_count_is_additive(self):
        account = parse_account([
            "03,1,USD,0x,1,0,0/",
            "16,1x,1,0,R,,t/",
            "16,191/",
            "49,y,2/",
        ])
        own = len(account.header.errors()) + len(account.trailer.errors())
        children = sum(len(t.errors()) for t in account.transactions)
        assert len(account.errors()) == own + children == 4

    def test_header_schema_mismatch(self):
        account = parse_account(["03,1,USD/", "49,1,2/"])
        assert account.header.fields == {}
        assert account.errors() == ["Account Header: Record: expected 7 fields, found 3"]


class TestContinuation:

    def test_continuation_is_flagged_and_consumed(self):
        account = parse_account([
            "03,1,USD,040,1,0,0/",
            "16,191,1,0,R,,first part/",
            "88,second part/",
            "16,191,2,0,R2,,other/",
            "49,3,5/",
        ])
        assert len(account.transactions) == 2
        assert account.trailer is not None
        assert account.errors() == [
            "Transaction: Continuation: continuation records are not supported",
        ]
        assert account.transactions[0].to_lines()[-1] == "88,second part/"


class TestSerialization:

    def test_round_trip(self, sample_content):
        first = parse_bai2(sample_content)
        second = parse_bai2(first.to_bai2())
        assert first.to_bai2() == sample_content
        assert len(second.groups) == len(first.groups)
        for g1, g2 in zip(first.groups, second.groups):
            assert g1.header.fields == g2.header.fields
            assert len(g1.accounts) == len(g2.accounts)
            for a1, a2 in zip(g1.accounts, g2.accounts):
                assert a1.header.fields == a2.header.fields
                assert [t.fields for t in a1.transactions] == [t.fields for t in a2.transactions]

    def test_absent_parts_are_omitted(self):
        account = AccountNode()
        assert account.to_bai2() == ""
        partial = parse_account(["16,191,1,0,R,,t/"])
        assert partial.to_bai2() == "16,191,1,0,R,,t/\n"
