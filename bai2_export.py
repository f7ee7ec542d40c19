"""
bai2_export.py
Flattens a parsed BAI2 FileNode into row dicts and writes them as CSV.

Transaction rows inherit their group/account context (as-of date, originator,
account number, currency) so each row stands on its own in a spreadsheet.
"""

import logging
from pathlib import Path
from typing import List, Optional, Set

import pandas as pd

from bai2_parser import FileNode, GroupNode
from bai2_schema import RecordType

logger = logging.getLogger(__name__)


def _value(record, name: str) -> str:
    if record is None:
        return ""
    return record.get(name) or ""


def _is_credit(type_code: str) -> bool:
    """BAI2 type codes 100-399 are credits (money in), 400-699 are debits."""
    try:
        return 100 <= int(type_code) <= 399
    except (ValueError, TypeError):
        return False


def _matched_ids(matched) -> Set[int]:
    """ids of every node reachable from a filter result."""
    ids = set()
    pending = [matched]
    while pending:
        node = pending.pop()
        ids.add(id(node))
        pending.extend(getattr(node, "children", []))
    return ids


def _iter_accounts(file_node: FileNode, matched_ids: Optional[Set[int]] = None):
    """
    Yield (group, account, transactions) from the parsed tree.
    With matched_ids, only accounts and transactions kept by a filter are
    yielded, still paired with their original group and header records.
    """
    for group in file_node.groups:
        for account in group.accounts:
            if matched_ids is None or id(account) in matched_ids:
                yield group, account, account.transactions
                continue
            transactions = [t for t in account.transactions if id(t) in matched_ids]
            if transactions:
                yield group, account, transactions


def file_to_transaction_rows(file_node: FileNode, matched=None) -> List[dict]:
    """
    One row per transaction, with the enclosing group/account context.
    matched is an optional filter() result of file_node; context is still
    read from file_node, since filtered copies carry no headers.
    """
    matched_ids = None if matched is None else _matched_ids(matched)
    rows = []
    sender = _value(file_node.header, "Sender Identification")
    for group, account, transactions in _iter_accounts(file_node, matched_ids):
        for txn in transactions:
            type_code = txn.field(RecordType.TRANSACTION, "Type Code") or ""
            rows.append({
                "File Sender":           sender,
                "Originator":            _value(group.header, "Originator Identification"),
                "As-of-Date":            _value(group.header, "As-of-Date"),
                "Bank Customer Account": _value(account.header, "Bank Customer Account"),
                "Currency Code":         _currency(group, account),
                "Type Code":             type_code,
                "Direction":             "Credit" if _is_credit(type_code) else "Debit",
                "Transaction Amount":    txn.field(RecordType.TRANSACTION, "Transaction Amount") or "",
                "Funds Type":            txn.field(RecordType.TRANSACTION, "Funds Type") or "",
                "Bank Reference":        txn.field(RecordType.TRANSACTION, "Bank Reference Number") or "",
                "Customer Reference":    txn.field(RecordType.TRANSACTION, "Customer Reference Number") or "",
                "Detail Text":           txn.field(RecordType.TRANSACTION, "Detail Text") or "",
                "Errors":                "; ".join(txn.errors()),
            })
    return rows


def file_to_account_rows(file_node: FileNode, matched=None) -> List[dict]:
    """One row per account: header summary plus trailer control totals."""
    matched_ids = None if matched is None else _matched_ids(matched)
    rows = []
    for group, account, transactions in _iter_accounts(file_node, matched_ids):
        rows.append({
            "Originator":            _value(group.header, "Originator Identification"),
            "As-of-Date":            _value(group.header, "As-of-Date"),
            "Bank Customer Account": _value(account.header, "Bank Customer Account"),
            "Currency Code":         _currency(group, account),
            "Type Code":             _value(account.header, "Type Code"),
            "Amount":                _value(account.header, "Amount"),
            "Item Count":            _value(account.header, "Item Count"),
            "Transactions":          len(transactions),
            "Account Control Total": _value(account.trailer, "Account Control Total"),
            "Account Total Records": _value(account.trailer, "Account Total Records"),
            "Errors":                len(account.errors()),
        })
    return rows


def _currency(group: GroupNode, account) -> str:
    return _value(account.header, "Currency Code") or _value(group.header, "Currency Code")


def write_csv(rows: List[dict], output_path) -> int:
    """Write list-of-dicts to CSV. Returns row count."""
    if not rows:
        logger.warning(f"No rows to write for {output_path}")
        Path(output_path).touch()
        return 0
    df = pd.DataFrame(rows)
    df.to_csv(output_path, index=False, encoding="utf-8")
    logger.info(f"Wrote {len(df)} rows to {output_path}")
    return len(df)
