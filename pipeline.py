"""
pipeline.py
Main entry point. Parses a BAI2 file, reports validation diagnostics,
optionally narrows it with a filter, and exports CSVs.
All config is driven by environment variables.

Required env vars:
    BAI2_INPUT_PATH         BAI2 file to parse

Optional env vars:
    LOCAL_WORK_DIR          output directory for CSVs and the run log, default /tmp/bai2_pipeline
    BAI2_FILTER_LEVEL       File | Group | Account | Transaction
    BAI2_FILTER_CONDITION   "<field name>=<value>", e.g. "Bank Customer Account=1234567"
    BAI2_FAIL_ON_ERRORS     "true" to fail the run when validation errors are found
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from pathlib import Path

from bai2_export import file_to_account_rows, file_to_transaction_rows, write_csv
from bai2_parser import FileNode, parse_bai2

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger("pipeline")

RUN_LOG_FILE = "run_log.json"
RUN_LOG_KEEP = 100


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_config() -> dict:
    required = [
        "BAI2_INPUT_PATH",
    ]
    config = {}
    missing = []
    for key in required:
        val = os.environ.get(key)
        if not val:
            missing.append(key)
        config[key] = val

    if missing:
        raise EnvironmentError(f"Missing required environment variables: {', '.join(missing)}")

    config["LOCAL_WORK_DIR"]        = os.environ.get("LOCAL_WORK_DIR") or "/tmp/bai2_pipeline"
    config["BAI2_FILTER_LEVEL"]     = os.environ.get("BAI2_FILTER_LEVEL") or None
    config["BAI2_FILTER_CONDITION"] = os.environ.get("BAI2_FILTER_CONDITION") or None
    config["BAI2_FAIL_ON_ERRORS"]   = (os.environ.get("BAI2_FAIL_ON_ERRORS") or "false").lower() in ("1", "true", "yes")

    if bool(config["BAI2_FILTER_LEVEL"]) != bool(config["BAI2_FILTER_CONDITION"]):
        raise EnvironmentError("BAI2_FILTER_LEVEL and BAI2_FILTER_CONDITION must be set together")
    return config


def read_bai2(path: str) -> FileNode:
    with open(path, "r", encoding="utf-8", errors="replace") as f:
        content = f.read()
    return parse_bai2(content)


def apply_filter(file_node: FileNode, level: str, condition: str) -> FileNode:
    """
    The filter() result of file_node, or an empty FileNode if nothing matched.
    Pass it to the export as `matched` alongside file_node, which keeps the
    header context.
    """
    matched = file_node.filter(level, condition)
    if matched is None:
        logger.warning(f"No {level} matched '{condition}'")
        return FileNode()
    return matched


def append_run_log(work_dir: str, entry: dict):
    log_path = os.path.join(work_dir, RUN_LOG_FILE)
    history = []
    if os.path.exists(log_path):
        try:
            with open(log_path) as f:
                history = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Run log {log_path} unreadable, starting a new one: {e}")
            history = []
    history.insert(0, entry)
    history = history[:RUN_LOG_KEEP]
    with open(log_path, "w") as f:
        json.dump(history, f, indent=2)


def run():
    started_at = _utcnow()
    config = get_config()
    work_dir = config["LOCAL_WORK_DIR"]
    os.makedirs(work_dir, exist_ok=True)

    log_entry = {
        "started_at":       started_at,
        "status":           "running",
        "bai_file":         os.path.basename(config["BAI2_INPUT_PATH"]),
        "filter":           None,
        "account_rows":     0,
        "transaction_rows": 0,
        "unparsed_records": 0,
        "validation_errors": [],
        "error":            None,
    }

    try:
        logger.info(f"Step 1: Parsing {config['BAI2_INPUT_PATH']}...")
        file_node = read_bai2(config["BAI2_INPUT_PATH"])

        errors = file_node.errors()
        log_entry["validation_errors"] = errors
        log_entry["unparsed_records"] = len(file_node.unparsed)
        for message in errors:
            logger.warning(f"Validation: {message}")
        logger.info(f"{len(errors)} validation error(s), {len(file_node.unparsed)} unplaced record(s)")

        matched = None
        if config["BAI2_FILTER_LEVEL"]:
            level, condition = config["BAI2_FILTER_LEVEL"], config["BAI2_FILTER_CONDITION"]
            logger.info(f"Step 2: Filtering {level} by '{condition}'...")
            log_entry["filter"] = f"{level}: {condition}"
            matched = apply_filter(file_node, level, condition)

        logger.info("Step 3: Writing CSVs...")
        base_name = Path(config["BAI2_INPUT_PATH"]).stem
        accounts_csv     = os.path.join(work_dir, f"{base_name}_accounts.csv")
        transactions_csv = os.path.join(work_dir, f"{base_name}_transactions.csv")

        log_entry["account_rows"]     = write_csv(file_to_account_rows(file_node, matched), accounts_csv)
        log_entry["transaction_rows"] = write_csv(file_to_transaction_rows(file_node, matched), transactions_csv)

        if errors and config["BAI2_FAIL_ON_ERRORS"]:
            raise ValueError(f"{len(errors)} validation error(s) in {log_entry['bai_file']}")

        log_entry["status"] = "success"
        log_entry["finished_at"] = _utcnow()
        logger.info("Pipeline completed successfully.")

    except Exception as e:
        log_entry["status"] = "error"
        log_entry["error"] = str(e)
        log_entry["finished_at"] = _utcnow()
        logger.exception(f"Pipeline failed: {e}")
        sys.exit(1)

    finally:
        append_run_log(work_dir, log_entry)


if __name__ == "__main__":
    run()
