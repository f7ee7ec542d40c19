"""
streamlit_app.py
Dashboard for the BAI2 parse pipeline.

Shows:
  - Run history (status, file parsed, row counts, validation error counts)
  - CSV previews (accounts + transactions) from the latest successful run
  - Query panel: upload a BAI2 file and run field / filter queries against it
"""

import json
import os
from pathlib import Path

import pandas as pd
import streamlit as st

from bai2_export import file_to_account_rows, file_to_transaction_rows
from bai2_parser import parse_bai2
from bai2_schema import Level, RecordType, RECORD_SCHEMAS

WORK_DIR = os.environ.get("LOCAL_WORK_DIR", "/tmp/bai2_pipeline")
RUN_LOG  = os.path.join(WORK_DIR, "run_log.json")

st.set_page_config(
    page_title="BAI2 Pipeline Dashboard",
    page_icon="🏦",
    layout="wide",
)

st.title("BAI2 Parse Pipeline")
st.caption("Bank statement parsing, validation and queries")

tab_history, tab_query = st.tabs(["Run History", "Query"])

with tab_history:
    if not os.path.exists(RUN_LOG):
        st.info("No runs recorded yet. Run pipeline.py with BAI2_INPUT_PATH set.")
    else:
        with open(RUN_LOG) as f:
            history = json.load(f)

        if not history:
            st.info("No runs recorded yet.")
        else:
            df_history = pd.DataFrame(history)
            df_history["validation_errors"] = df_history["validation_errors"].apply(
                lambda errs: len(errs) if isinstance(errs, list) else 0
            )
            display_cols = [
                "started_at", "status", "bai_file", "filter",
                "account_rows", "transaction_rows", "validation_errors", "finished_at", "error",
            ]
            df_history = df_history.reindex(columns=display_cols)
            df_history.columns = [
                "Started (UTC)", "Status", "BAI File", "Filter",
                "Account Rows", "Txn Rows", "Validation Errors", "Finished (UTC)", "Error",
            ]

            def _color_status(val):
                if val == "success":
                    return "background-color: #d4edda; color: #155724"
                elif val == "error":
                    return "background-color: #f8d7da; color: #721c24"
                return ""

            styled = df_history.style.map(_color_status, subset=["Status"])
            st.dataframe(styled, use_container_width=True, height=300)

            successful = [r for r in history if r.get("status") == "success"]
            if successful:
                latest = successful[0]
                base = Path(latest.get("bai_file", "")).stem

                st.divider()
                st.subheader(f"Latest Successful Run - {latest['started_at'][:10]}")

                col1, col2, col3, col4 = st.columns(4)
                col1.metric("BAI File", latest.get("bai_file", "-"))
                col2.metric("Account Rows", latest.get("account_rows", 0))
                col3.metric("Transaction Rows", latest.get("transaction_rows", 0))
                col4.metric("Validation Errors", len(latest.get("validation_errors") or []))

                if latest.get("validation_errors"):
                    with st.expander("Validation errors"):
                        st.code("\n".join(latest["validation_errors"]))

                for label, suffix in (("Accounts", "accounts"), ("Transactions", "transactions")):
                    csv_path = os.path.join(WORK_DIR, f"{base}_{suffix}.csv")
                    st.markdown(f"**{label} CSV**")
                    if os.path.exists(csv_path) and os.path.getsize(csv_path) > 0:
                        st.dataframe(pd.read_csv(csv_path), use_container_width=True)
                        st.download_button(
                            f"Download {label} CSV",
                            data=open(csv_path, "rb").read(),
                            file_name=os.path.basename(csv_path),
                            mime="text/csv",
                        )
                    else:
                        st.warning(f"{label} CSV not found locally.")

with tab_query:
    uploaded = st.file_uploader("BAI2 file", type=["txt", "bai", "bai2"])
    if uploaded is None:
        st.info("Upload a BAI2 file to query it.")
    else:
        file_node = parse_bai2(uploaded.getvalue().decode("utf-8", errors="replace"))

        col1, col2, col3 = st.columns(3)
        col1.metric("Groups", len(file_node.groups))
        col2.metric("Validation Errors", len(file_node.errors()))
        col3.metric("Unplaced Records", len(file_node.unparsed))

        if file_node.errors():
            with st.expander("Validation errors"):
                st.code("\n".join(file_node.errors()))

        st.subheader("Field")
        record_type = st.selectbox("Record type", [str(rt) for rt in RecordType])
        name = st.selectbox("Field name", list(RECORD_SCHEMAS[RecordType.coerce(record_type)].field_names))
        value = file_node.field(record_type, name)
        st.code(value if value is not None else "(not found)")

        st.subheader("Filter")
        level = st.selectbox("Level", [str(lv) for lv in Level])
        condition = st.text_input("Condition", placeholder="Bank Customer Account=1234567")
        if condition:
            try:
                matched = file_node.filter(level, condition)
            except ValueError as e:
                st.error(str(e))
            else:
                if matched is None:
                    st.warning("No match.")
                else:
                    st.dataframe(pd.DataFrame(file_to_transaction_rows(file_node, matched)), use_container_width=True)
                    st.dataframe(pd.DataFrame(file_to_account_rows(file_node, matched)), use_container_width=True)
                    st.code(matched.to_bai2())
