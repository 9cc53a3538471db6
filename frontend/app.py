import streamlit as st
from datetime import date, datetime, time
from decimal import Decimal

from api_client import (
    build_payload,
    delete_expense,
    fetch_categories,
    fetch_expense,
    fetch_expenses,
    fetch_summary,
    format_amount,
    resolve_transaction_date,
    save_expense,
)

FORM_FIELDS = (
    "form_name", "form_amount", "form_category", "form_description", "form_tag",
    "form_date", "form_time", "form_original_tx",
)

st.set_page_config(
    page_title="Expense Tracker",
    page_icon="💸",
    layout="centered",
)

# ── Session state init ─────────────────────────────────────────────────────────
if "flash" not in st.session_state:
    st.session_state.flash = None  # (success: bool, message: str), shown once

if "editing_id" not in st.session_state:
    st.session_state.editing_id = None

if "form_errors" not in st.session_state:
    st.session_state.form_errors = {}

if "form_message" not in st.session_state:
    st.session_state.form_message = None

if "pending_action" not in st.session_state:
    # Widget state can only be written before the widgets render, so buttons
    # queue ("edit", id) or ("reset", None) here and the next run applies it.
    st.session_state.pending_action = None


def reset_form() -> None:
    for key in FORM_FIELDS:
        st.session_state.pop(key, None)
    st.session_state.editing_id = None
    st.session_state.form_errors = {}
    st.session_state.form_message = None


def start_edit(expense_id: int) -> None:
    ok, message, expense = fetch_expense(expense_id)
    if not ok:
        st.session_state.flash = (False, f"Expense not found: {message}")
        return
    tx = datetime.fromisoformat(expense["transactionDate"])
    st.session_state.editing_id = expense_id
    st.session_state.form_name = expense["name"]
    st.session_state.form_amount = str(expense["amount"])
    st.session_state.form_category = expense["category"]
    st.session_state.form_description = expense.get("description") or ""
    st.session_state.form_tag = expense.get("tag") or ""
    st.session_state.form_date = tx.date()
    st.session_state.form_time = tx.time().replace(second=0, microsecond=0)
    st.session_state.form_original_tx = tx
    st.session_state.form_errors = {}
    st.session_state.form_message = None


def field_error(field: str) -> None:
    msg = st.session_state.form_errors.get(field)
    if msg:
        st.caption(f":red[{msg}]")


def queue(action: str, expense_id: int | None = None) -> None:
    st.session_state.pending_action = (action, expense_id)
    st.rerun()


if st.session_state.pending_action is not None:
    action, action_id = st.session_state.pending_action
    st.session_state.pending_action = None
    if action == "edit":
        start_edit(action_id)
    else:
        reset_form()

st.session_state.setdefault("form_date", date.today())
st.session_state.setdefault("form_time", time(0, 0))


# ── Page ───────────────────────────────────────────────────────────────────────
st.title("💸 Expense Tracker")
st.caption("Track your personal expenses.")

if st.session_state.flash is not None:
    ok, msg = st.session_state.flash
    if ok:
        st.success(msg)
    else:
        st.error(msg)
    st.session_state.flash = None

st.divider()

# ── Section 1: Add / Edit Expense ──────────────────────────────────────────────
editing_id = st.session_state.editing_id
form_title = f"✏️ Edit Expense #{editing_id}" if editing_id else "➕ Add New Expense"

with st.expander(form_title, expanded=True):
    with st.form("expense_form", clear_on_submit=False):
        name = st.text_input("Name *", key="form_name", max_chars=255, placeholder="e.g. Groceries")
        field_error("name")

        col1, col2 = st.columns(2)
        with col1:
            amount_str = st.text_input("Amount *", key="form_amount", placeholder="e.g. 499.00",
                                       help="Must be a positive number with at most 2 decimals.")
            field_error("amount")
        with col2:
            category = st.text_input("Category *", key="form_category", max_chars=255,
                                     placeholder="e.g. Food, Transport, Utilities")
            field_error("category")

        col3, col4 = st.columns(2)
        with col3:
            tx_date = st.date_input("Date *", key="form_date", max_value=date.today())
        with col4:
            tx_time = st.time_input("Time", key="form_time")
        field_error("transactionDate")

        description = st.text_area("Description", key="form_description", max_chars=500, height=80,
                                   placeholder="Optional: what was this expense for?")
        field_error("description")

        tag = st.text_input("Tag", key="form_tag", max_chars=100, placeholder="Optional")
        field_error("tag")

        if st.session_state.form_message:
            st.error(st.session_state.form_message)

        c_submit, c_cancel = st.columns(2)
        with c_submit:
            submitted = st.form_submit_button("Save Expense", type="primary", use_container_width=True)
        with c_cancel:
            cancelled = st.form_submit_button("Cancel", use_container_width=True)

    if cancelled:
        queue("reset")

    if submitted:
        payload, errors = build_payload(
            name=name,
            amount_str=amount_str,
            category=category,
            transaction_date=resolve_transaction_date(
                datetime.combine(tx_date, tx_time), st.session_state.get("form_original_tx")
            ),
            description=description,
            tag=tag,
        )
        if errors:
            st.session_state.form_errors = errors
            st.session_state.form_message = None
            st.rerun()

        with st.spinner("Saving..."):
            success, message, data = save_expense(payload, expense_id=editing_id)

        if success:
            # Back to a clean list view
            st.session_state.flash = (True, message)
            queue("reset")
        elif data and data.get("status") == 400:
            # Redisplay the form with the server's messages
            st.session_state.form_errors = data.get("errors", {})
            st.session_state.form_message = None if data.get("errors") else message
        elif editing_id:
            st.session_state.flash = (False, f"Error updating expense: {message}")
            queue("reset")
        else:
            st.session_state.form_errors = {}
            st.session_state.form_message = f"Error creating expense: {message}"
        st.rerun()

st.divider()

# ── Section 2: Filters ─────────────────────────────────────────────────────────
st.subheader("📋 My Expenses")

col_f1, col_f2 = st.columns([2, 1])

with col_f1:
    search = st.text_input("Search by name", placeholder="e.g. coffee")

with col_f2:
    selected_category = st.selectbox("Filter by Category", options=fetch_categories())

# ── Section 3: Expense List ────────────────────────────────────────────────────
with st.spinner("Loading expenses..."):
    ok, err_msg, expenses = fetch_expenses(search=search, category=selected_category)

if not ok:
    st.error(f"⚠️ {err_msg}")
elif not expenses:
    st.info("No expenses found for the selected filter.")
else:
    count = len(expenses)
    total = sum((Decimal(str(e["amount"])) for e in expenses), Decimal("0.00"))
    st.metric(label=f"Total ({count} expense{'s' if count != 1 else ''})", value=format_amount(total))

    if not search.strip() and selected_category == "All":
        with st.expander("📊 Summary by Category"):
            _, _, summary = fetch_summary()
            st.table([
                {"Category": row["category"], "Count": row["count"], "Total": format_amount(row["totalAmount"])}
                for row in sorted(summary, key=lambda r: -Decimal(str(r["totalAmount"])))
            ])

    for exp in expenses:
        with st.container(border=True):
            c1, c2, c3, c4 = st.columns([3, 2, 1, 1])
            with c1:
                st.markdown(f"**{exp['name']}** · {exp['category']}")
                if exp.get("tag"):
                    st.caption(f"🏷️ {exp['tag']}")
                if exp.get("description"):
                    st.caption(exp["description"])
            with c2:
                st.markdown(f"**{format_amount(exp['amount'])}**")
                st.caption(f"📅 {exp['transactionDate'].replace('T', ' ')}")
            with c3:
                if st.button("Edit", key=f"edit_{exp['id']}"):
                    queue("edit", exp["id"])
            with c4:
                if st.button("Delete", key=f"delete_{exp['id']}"):
                    success, message, _ = delete_expense(exp["id"])
                    st.session_state.flash = (success, message)
                    if st.session_state.editing_id == exp["id"]:
                        queue("reset")
                    st.rerun()
