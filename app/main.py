"""
Streamlit Frontend for Finance Tracker

The screens the user works with every day: this month's balance,
recent transactions, categories and split bills.

DESIGN PRINCIPLES:
1. Simple, clear interface
2. Every action reports success or failure
3. The UI only reads the store's snapshot; it never queries the database

The application root owns the one FinanceStore. It lives in
st.cache_resource and is handed to every page function.
"""

import asyncio
import threading
from datetime import date
from decimal import Decimal

import streamlit as st

from finance_tracker.audit import configure_logging
from finance_tracker.config import get_settings
from finance_tracker.models import (
    CategoryCreate,
    CategoryUpdate,
    SplitBillCreate,
    SplitBillMemberCreate,
    TransactionCreate,
    TransactionType,
)
from finance_tracker.orchestrator import create_app_components, format_amount
from finance_tracker.validation import TransactionValidator


# Page configuration
st.set_page_config(
    page_title="Finance Tracker",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)


@st.cache_resource
def get_event_loop() -> asyncio.AbstractEventLoop:
    """
    One long-lived loop for the whole app.

    The database engine's connections belong to the loop that opened
    them, so every coroutine must run on this same loop.
    """
    loop = asyncio.new_event_loop()
    threading.Thread(target=loop.run_forever, daemon=True).start()
    return loop


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    return asyncio.run_coroutine_threadsafe(coro, get_event_loop()).result()


@st.cache_resource
def get_components():
    """Get or create application components (cached)."""
    configure_logging()
    store, flow, _db = run_async(create_app_components())
    run_async(store.initialize())
    return store, flow


def money(amount: Decimal) -> str:
    return f"{get_settings().app.currency_symbol} {format_amount(amount)}"


def report(result, success_message: str) -> None:
    if result.success:
        st.success(success_message)
    else:
        st.error(f"Something went wrong: {result.error_message}")


def show_dashboard(store):
    """This month's totals, category breakdown and recent transactions."""
    st.title("📊 This Month")
    state = store.state

    col1, col2, col3 = st.columns(3)
    col1.metric("Income", money(state.total_income))
    col2.metric("Expense", money(state.total_expense))
    col3.metric("Balance", money(state.balance))

    st.subheader("Spending by category")
    expense_categories = state.categories_of(TransactionType.EXPENSE)
    if not expense_categories:
        st.info("No expense categories yet.")
    for category in expense_categories:
        spent = category.total_spent or Decimal("0")
        st.write(f"{category.name}: {money(spent)} ({category.percentage or 0}%)")
        st.progress((category.percentage or 0) / 100)

    st.subheader("Recent transactions")
    if not state.transactions:
        st.info("No transactions yet.")
    for txn in state.transactions:
        sign = "+" if txn.type == TransactionType.INCOME else "-"
        col1, col2 = st.columns([5, 1])
        col1.write(
            f"**{txn.note or txn.category_name}** · {txn.category_name} · "
            f"{txn.date[:10]} · {sign}{money(txn.amount)}"
        )
        if col2.button("Delete", key=f"del_txn_{txn.id}"):
            report(run_async(store.delete_transaction(txn.id)), "Transaction deleted")
            st.rerun()


def show_add_transaction(store, flow):
    """Manual form plus the one-line smart entry."""
    st.title("➕ Add Transaction")

    if flow is not None:
        st.subheader("✨ Smart entry")
        text = st.text_input("Describe it", placeholder="lunch 50k food")
        if st.button("Add from text"):
            with st.spinner("Reading..."):
                outcome = run_async(flow.submit(text))
            if outcome is None:
                st.warning("Type something first.")
            elif outcome.success:
                st.success(outcome.message)
            else:
                st.error(outcome.message)
        st.markdown("---")

    st.subheader("Manual entry")
    kind = st.radio("Type", ["expense", "income"], horizontal=True)
    transaction_type = TransactionType(kind)
    categories = store.state.categories_of(transaction_type)
    if not categories:
        st.warning(f"Create an {kind} category first.")
        return

    with st.form("add_transaction"):
        category = st.selectbox("Category", categories, format_func=lambda c: c.name)
        amount = st.number_input("Amount", min_value=0.0, step=1000.0)
        txn_date = st.date_input("Date", value=date.today())
        note = st.text_input("Note")
        submitted = st.form_submit_button("Save")

    if submitted:
        if amount <= 0:
            st.error("Amount must be greater than zero")
            return
        result = run_async(store.add_transaction(TransactionCreate(
            category_id=category.id,
            amount=Decimal(str(amount)),
            date=txn_date,
            note=note,
            type=transaction_type,
        )))
        report(result, "Transaction saved")


def show_categories(store):
    st.title("🏷️ Categories")

    with st.expander("Add category"):
        with st.form("add_category"):
            name = st.text_input("Name")
            icon = st.text_input("Icon", value="emoji:📁")
            color = st.color_picker("Color", value="#3B82F6")
            kind = st.selectbox("Type", ["expense", "income"])
            budget = st.number_input("Monthly budget (0 = none)", min_value=0.0, step=10000.0)
            if st.form_submit_button("Add"):
                if not name.strip():
                    st.error("Name is required")
                else:
                    result = run_async(store.add_category(CategoryCreate(
                        name=name,
                        icon=icon,
                        color=color,
                        budget_limit=Decimal(str(budget)),
                        category_type=TransactionType(kind),
                    )))
                    report(result, f"Category '{name}' added")

    for category in store.state.categories:
        with st.expander(f"{category.name} ({category.category_type.value})"):
            with st.form(f"edit_category_{category.id}"):
                name = st.text_input("Name", value=category.name)
                icon = st.text_input("Icon", value=category.icon)
                color = st.text_input("Color", value=category.color)
                if st.form_submit_button("Update"):
                    result = run_async(store.update_category(
                        category.id, CategoryUpdate(name=name, icon=icon, color=color)
                    ))
                    report(result, "Category updated")
            st.caption("Deleting a category also deletes all of its transactions.")
            if st.button("Delete", key=f"del_cat_{category.id}"):
                report(run_async(store.delete_category(category.id)), "Category deleted")
                st.rerun()


def show_split_bills(store):
    st.title("🧾 Split Bills")

    with st.expander("New split bill"):
        name = st.text_input("Bill name")
        bill_date = st.date_input("Date", value=date.today(), key="bill_date")
        total = st.number_input("Total", min_value=0.0, step=1000.0)
        member_count = st.number_input("Members", min_value=1, max_value=20, value=2)
        members = []
        for i in range(int(member_count)):
            col1, col2, col3 = st.columns([3, 2, 1])
            member_name = col1.text_input("Name", key=f"member_name_{i}")
            share = col2.number_input("Share", min_value=0.0, step=1000.0, key=f"member_share_{i}")
            is_me = col3.checkbox("Me", key=f"member_me_{i}")
            if member_name.strip():
                members.append(SplitBillMemberCreate(
                    name=member_name, share_amount=Decimal(str(share)), is_me=is_me
                ))

        if st.button("Save bill"):
            if not name.strip():
                st.error("Bill name is required")
                return
            bill = SplitBillCreate(name=name, date=bill_date, total_amount=Decimal(str(total)))
            validation = TransactionValidator().validate_split_bill(bill, members)
            for warning in validation.warnings:
                st.warning(warning)
            if validation.has_errors:
                for issue in validation.issues:
                    if issue.severity == "error":
                        st.error(issue.message)
                return
            report(run_async(store.add_split_bill(bill, members)), "Split bill saved")

    for bill in store.state.split_bills:
        with st.expander(f"{bill.name} · {bill.date[:10]} · {money(bill.total_amount)}"):
            detail = run_async(store.fetch_split_bill(bill.id))
            if detail is None:
                st.error("Could not load this bill.")
                continue
            for member in detail.members:
                me = " (me)" if member.is_me else ""
                st.write(f"{member.name}{me}: {money(member.share_amount)}")
            if st.button("Delete", key=f"del_bill_{bill.id}"):
                report(run_async(store.delete_split_bill(bill.id)), "Split bill deleted")
                st.rerun()


def main():
    """Main application entry point."""
    store, flow = get_components()

    st.sidebar.title("💰 Finance Tracker")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Dashboard", "➕ Add Transaction", "🏷️ Categories", "🧾 Split Bills"],
        index=0,
    )

    if page == "📊 Dashboard":
        run_async(store.calculate_month_summary())
        show_dashboard(store)
    elif page == "➕ Add Transaction":
        show_add_transaction(store, flow)
    elif page == "🏷️ Categories":
        show_categories(store)
    elif page == "🧾 Split Bills":
        show_split_bills(store)


if __name__ == "__main__":
    main()
