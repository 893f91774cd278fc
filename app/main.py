"""
Streamlit Frontend for the Finance Tracker

DESIGN PRINCIPLES:
1. The grouped view is the home page
2. Totals shown are exactly what the grouping pipeline computed
3. Clear error messages in simple language
4. Nothing is saved without an explicit "Save" action

The grouped view keeps its loaded groups in session state so that
"Load earlier" / "Load later" only fetch the new days and merge them in.
"""

import asyncio
from datetime import date
from decimal import Decimal

import streamlit as st

from finance_tracker.audit import create_correlation_id
from finance_tracker.config import get_settings, validate_all_settings
from finance_tracker.models import (
    EntryDraft,
    EntryGroup,
    EntryType,
    ExtensionDirection,
    GroupBy,
    GroupingRequest,
    PaymentDraft,
)
from finance_tracker.orchestrator import (
    AppComponents,
    LedgerError,
    ValidationFailedError,
    create_app_components,
)
from finance_tracker.services.storage import DuplicateError, StorageError


# Page configuration
st.set_page_config(
    page_title="Finance Tracker",
    page_icon="💰",
    layout="wide",
    initial_sidebar_state="expanded",
)

# Custom CSS for better UX
st.markdown("""
<style>
    .stButton>button {
        width: 100%;
        margin-top: 10px;
    }
    .group-header {
        padding: 10px 15px;
        background-color: #f1f3f5;
        border-radius: 8px;
        border-left: 5px solid #004085;
        margin: 10px 0 5px 0;
    }
    .placeholder {
        color: #868e96;
        font-style: italic;
    }
</style>
""", unsafe_allow_html=True)


def run_async(coro):
    """Helper to run async functions in Streamlit."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@st.cache_resource
def get_components() -> AppComponents:
    """Get or create application components (cached)."""
    try:
        return create_app_components()
    except Exception as e:
        st.error(f"Failed to initialize: {e}")
        return create_app_components(backend="memory")


def money(value: Decimal) -> str:
    return f"{value:,.2f}"


def main():
    """Main application entry point."""
    components = get_components()
    owner_id = get_settings().app.ledger_owner_id

    # Sidebar navigation
    st.sidebar.title("💰 Finance Tracker")
    st.sidebar.markdown("---")

    page = st.sidebar.radio(
        "Navigate to:",
        ["📊 Grouped View", "➕ Add Entry", "💳 Record Payment", "🗂️ Categories", "⚙️ Settings"],
        index=0,
    )

    # Route to appropriate page
    if page == "📊 Grouped View":
        render_grouped_page(components, owner_id)
    elif page == "➕ Add Entry":
        render_entry_page(components, owner_id)
    elif page == "💳 Record Payment":
        render_payment_page(components, owner_id)
    elif page == "🗂️ Categories":
        render_categories_page(components, owner_id)
    elif page == "⚙️ Settings":
        render_settings_page()


def build_request(components: AppComponents, owner_id) -> GroupingRequest:
    """Read the filter sidebar into an explicit request."""
    st.sidebar.markdown("### Filters")

    group_by = st.sidebar.radio(
        "Group by",
        options=list(GroupBy),
        format_func=lambda x: x.value.title(),
        horizontal=True,
    )
    entry_type = st.sidebar.selectbox(
        "Type",
        options=[None] + list(EntryType),
        format_func=lambda x: "All Types" if x is None else x.value.title(),
    )

    summaries = run_async(components.categories.list_categories(owner_id))
    selected = st.sidebar.multiselect(
        "Categories",
        options=[s.category for s in summaries],
        format_func=lambda c: c.name,
    )

    date_range = st.sidebar.date_input(
        "Date range",
        value=[],
        help="Leave empty to show the days around today",
    )
    date_from, date_to = None, None
    if len(date_range) == 2:
        date_from, date_to = date_range

    return GroupingRequest(
        owner_id=owner_id,
        entry_type=entry_type,
        category_ids=[c.id for c in selected],
        date_from=date_from,
        date_to=date_to,
        group_by=group_by,
    )


def render_grouped_page(components: AppComponents, owner_id):
    """Render the grouped entries view."""
    st.title("📊 Entries")

    request = build_request(components, owner_id)
    signature = request.model_dump_json(exclude={"query_id"})

    # A filter change starts a fresh view
    if st.session_state.get("view_signature") != signature:
        result = run_async(components.grouped_view.load(request))
        st.session_state.view_signature = signature
        st.session_state.view_request = request
        st.session_state.view_result = result

    result = st.session_state.view_result
    if not result.success:
        st.error(f"Could not load your entries: {result.error_message}")
        return

    if result.group_by == GroupBy.DATE:
        if st.button("⬆️ Load earlier"):
            extend_view(components, ExtensionDirection.BACKWARD)
            st.rerun()

    if not result.groups:
        st.info("No entries match these filters yet. Use 'Add Entry' to record one.")

    for group in result.groups:
        render_group(group)

    if result.group_by == GroupBy.DATE:
        if st.button("⬇️ Load later"):
            extend_view(components, ExtensionDirection.FORWARD)
            st.rerun()


def extend_view(components: AppComponents, direction: ExtensionDirection):
    request = st.session_state.view_request
    result = st.session_state.view_result
    extended = run_async(
        components.grouped_view.extend(request, result.groups, direction)
    )
    if extended.success:
        st.session_state.view_result = extended
    else:
        st.error(f"Could not load more days: {extended.error_message}")


def render_group(group: EntryGroup):
    st.markdown(f"""
    <div class="group-header">
        <strong>{group.label}</strong>
        &nbsp;·&nbsp; Payable {money(group.total_payable)}
        &nbsp;·&nbsp; Paid {money(group.total_payment)}
        &nbsp;·&nbsp; Remaining {money(group.total_remaining)}
        &nbsp;·&nbsp; Income {money(group.total_income)}
        &nbsp;·&nbsp; Net {money(group.net)}
    </div>
    """, unsafe_allow_html=True)

    if group.is_placeholder:
        st.markdown('<p class="placeholder">No entries</p>', unsafe_allow_html=True)
        return

    rows = [
        {
            "Date": item.date.isoformat(),
            "Type": item.type.value.title(),
            "Category": item.category_label,
            "Description": item.entry.description or "",
            "Amount": money(item.amount),
            "Paid": money(item.total_paid),
            "Remaining": money(item.totals.remaining),
            "Status": "Paid" if item.is_paid else "Partial" if item.totals.is_partially_paid else "Open",
        }
        for item in group.entries
    ]
    st.dataframe(rows, use_container_width=True, hide_index=True)


def render_entry_page(components: AppComponents, owner_id):
    """Render the add-entry form."""
    st.title("➕ Add Entry")

    with st.form("entry_form", clear_on_submit=True):
        col1, col2 = st.columns(2)

        with col1:
            entry_type = st.selectbox(
                "Type *",
                options=list(EntryType),
                format_func=lambda x: x.value.title(),
            )
            amount = st.number_input(
                "Amount *",
                min_value=0.0,
                step=0.01,
                format="%.2f",
            )

        with col2:
            entry_date = st.date_input("Date *", value=date.today())
            category_name = st.text_input(
                "Category (optional)",
                help="Type an existing category or a new one; matching ignores case",
            )

        description = st.text_area("Description (optional)")
        submitted = st.form_submit_button("✅ Save Entry", type="primary")

    if not submitted:
        return

    try:
        draft = EntryDraft(
            type=entry_type,
            amount=Decimal(str(amount)).quantize(Decimal("0.01")),
            date=entry_date,
            description=description or None,
            category_name=category_name or None,
        )
        entry = run_async(components.entries.create_entry(
            owner_id, draft, correlation_id=create_correlation_id()
        ))
    except ValidationFailedError as e:
        st.error(str(e))
        return
    except (LedgerError, StorageError, ValueError) as e:
        st.error(f"Failed to save: {e}")
        return

    st.session_state.pop("view_signature", None)
    st.success(f"Saved {entry.type.value} of {money(entry.amount)} on {entry.date.isoformat()}")


def render_payment_page(components: AppComponents, owner_id):
    """Render the record-payment form."""
    st.title("💳 Record Payment")

    entries = run_async(components.entries.list_entries(owner_id))
    open_entries = [item for item in entries if not item.is_paid]

    if not open_entries:
        st.info("Nothing is waiting for payment.")
        return

    with st.form("payment_form", clear_on_submit=True):
        item = st.selectbox(
            "Entry *",
            options=open_entries,
            format_func=lambda i: (
                f"{i.date.isoformat()} · {i.category_label} · "
                f"{i.entry.description or i.type.value} · remaining {money(i.totals.remaining)}"
            ),
        )
        amount = st.number_input("Amount *", min_value=0.01, step=0.01, format="%.2f")
        payment_date = st.date_input("Payment date *", value=date.today())
        notes = st.text_input("Notes (optional)")
        submitted = st.form_submit_button("✅ Save Payment", type="primary")

    if not submitted:
        return

    try:
        draft = PaymentDraft(
            entry_id=item.entry.id,
            amount=Decimal(str(amount)).quantize(Decimal("0.01")),
            date=payment_date,
            notes=notes or None,
        )
        payment, totals, validation = run_async(components.payments.record_payment(
            owner_id, draft, correlation_id=create_correlation_id()
        ))
    except (LedgerError, StorageError, ValueError) as e:
        st.error(f"Failed to save: {e}")
        return

    st.session_state.pop("view_signature", None)
    for warning in validation.warnings:
        st.warning(warning)
    st.success(
        f"Recorded {money(payment.amount)}. "
        f"Paid so far {money(totals.total_paid)}, remaining {money(totals.remaining)}."
    )


def render_categories_page(components: AppComponents, owner_id):
    """Render the category list, search and timeline."""
    st.title("🗂️ Categories")

    with st.form("category_form", clear_on_submit=True):
        name = st.text_input("New category name *")
        description = st.text_input("Description (optional)")
        if st.form_submit_button("➕ Add Category"):
            try:
                run_async(components.categories.create_category(
                    owner_id, name, description or None
                ))
                st.success(f"Added {name.strip()}")
            except DuplicateError as e:
                st.error(str(e))
            except ValueError:
                st.error("Category name cannot be empty.")

    query = st.text_input("Search", placeholder="At least 3 letters")
    if query:
        matches = run_async(components.categories.search_categories(owner_id, query))
        st.markdown(", ".join(c.name for c in matches) or "_No matches_")

    st.markdown("---")

    summaries = run_async(components.categories.list_categories(owner_id))
    if not summaries:
        st.info("No categories yet.")
        return

    for summary in summaries:
        category = summary.category
        with st.expander(f"{category.name} ({summary.entry_count} entries)"):
            if category.description:
                st.markdown(category.description)

            timeline = run_async(
                components.categories.category_timeline(owner_id, category.id)
            )
            if timeline:
                st.dataframe(
                    [
                        {
                            "Date": item.date.isoformat(),
                            "Kind": item.kind.title(),
                            "Type": item.entry_type.value.title(),
                            "Amount": money(item.amount),
                            "Description": item.description or "",
                            "Notes": item.notes or "",
                        }
                        for item in timeline
                    ],
                    use_container_width=True,
                    hide_index=True,
                )

            if st.button("🗑️ Delete category", key=f"delete-{category.id}"):
                run_async(components.categories.delete_category(owner_id, category.id))
                st.session_state.pop("view_signature", None)
                st.rerun()


def render_settings_page():
    """Render the settings page."""
    st.title("⚙️ Settings")

    st.markdown("### Connection Status")

    status = validate_all_settings()

    services = [
        ("Application settings", "app"),
        ("Google Sheets (Storage)", "google_sheets"),
    ]

    for name, key in services:
        if key not in status:
            continue
        if status[key]:
            st.success(f"✅ {name} - OK")
        else:
            error = status.get(f"{key}_error", "Not configured")
            st.error(f"❌ {name} - {error}")

    st.markdown("---")
    st.markdown("### Configuration")
    st.markdown(
        "Configuration is read from environment variables or a `.env` file. "
        "Set `STORAGE_BACKEND=google_sheets` together with "
        "`GOOGLE_SHEETS_CREDENTIALS_PATH` and `GOOGLE_SHEETS_SPREADSHEET_ID` "
        "to keep your data in a spreadsheet."
    )


if __name__ == "__main__":
    main()
