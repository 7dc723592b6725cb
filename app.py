"""Streamlit entry point for the Finance Tracker client."""

from __future__ import annotations

from contextlib import contextmanager
from datetime import date

import pandas as pd
import streamlit as st
from finance_tracker import config, context, storage, utils, viz
from finance_tracker.errors import FinanceClientError, InvalidCredentials, ValidationError
from finance_tracker.guard import LOGIN_PATH, REGISTER_PATH, GuardState
from finance_tracker.notifications import Severity

TOAST_ICONS = {
    Severity.SUCCESS: "✅",
    Severity.ERROR: "❌",
    Severity.INFO: "ℹ️",
    Severity.WARNING: "⚠️",
}

NAV_ITEMS = [
    ("/dashboard", "Dashboard", "dashboard"),
    ("/transactions", "Transactions", "transactions"),
    ("/savings", "Savings", "savings"),
    ("/profile", "Profile", "profile"),
    ("/settings", "Settings", "settings"),
    ("/users", "Users", "users"),
]
VIEW_BY_PATH = {path: name for path, _, name in NAV_ITEMS}

LIGHT_CSS = """
<style>
[data-testid="stAppViewContainer"] { background: #f8fafc; color: #0f172a; }
div[data-testid="stMetric"] {
    background: #ffffff;
    border-radius: 12px;
    border: 1px solid rgba(226, 232, 240, 0.9);
    padding: 1rem 1.1rem;
}
</style>
"""

DARK_CSS = """
<style>
[data-testid="stAppViewContainer"] { background: #111827; color: #f9fafb; }
[data-testid="stSidebar"] { background: #1f2937 !important; }
[data-testid="stHeader"] { background: transparent; }
div[data-testid="stMetric"] {
    background: #1f2937;
    border-radius: 12px;
    border: 1px solid #374151;
    padding: 1rem 1.1rem;
}
h1, h2, h3, p, label, span { color: #f9fafb; }
</style>
"""


def _client_scope() -> str:
    """Browser id kept in the ``client`` query parameter across reloads."""

    scope = storage.client_scope(st.query_params.get("client"))
    if st.query_params.get("client") != scope:
        st.query_params["client"] = scope
    return scope


def _services() -> context.AppServices:
    if "services" not in st.session_state:
        settings = config.load_settings()
        config.configure_logging(settings.log_level)
        services = context.build_services(settings, client_scope=_client_scope())
        services.start()
        st.session_state["services"] = services
    return st.session_state["services"]


@contextmanager
def _overlay(services: context.AppServices, label: str):
    """Hold the busy counter; only the outermost holder draws the spinner."""

    outermost = not services.busy.active
    with services.busy.busy():
        if outermost:
            with st.spinner(label):
                yield
        else:
            yield


def _navigate(services: context.AppServices, path: str) -> None:
    services.navigator.navigate(path)
    st.rerun()


def _activate(services: context.AppServices, name: str):
    """Mount ``name``'s view, unmounting whichever view was shown before."""

    view = services.view(name)
    if st.session_state.get("mounted_view") != name:
        previous = st.session_state.get("mounted_view")
        if previous:
            services.view(previous).unmount()
        st.session_state["mounted_view"] = name
        with _overlay(services, "Loading…"):
            view.mount()
    return view


def _show_notification(services: context.AppServices) -> None:
    current = services.notifications.current()
    if current is None or st.session_state.get("last_notification") == current.id:
        return
    st.session_state["last_notification"] = current.id
    st.toast(current.message, icon=TOAST_ICONS[current.severity])


def _run(services: context.AppServices, action, *args, **kwargs) -> bool:
    with _overlay(services, "Working…"):
        ok = action(*args, **kwargs)
    if services.sessions.current_session() is None:
        _navigate(services, LOGIN_PATH)
    return ok


def _currency(value: object) -> str:
    return utils.format_currency(utils.to_cents(value))


def render_login(services: context.AppServices) -> None:
    st.title("Sign in")
    with st.form("login"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in", type="primary")

    if submitted:
        try:
            with _overlay(services, "Signing in…"):
                services.sessions.login(email, password)
        except (ValidationError, InvalidCredentials) as exc:
            st.error(exc.message)
        except FinanceClientError as exc:
            services.notifications.error(f"Could not sign in. {exc.message}")
        else:
            services.preferences.reconcile_in_background(services.executor)
            _navigate(services, "/dashboard")

    if st.button("Create an account"):
        _navigate(services, REGISTER_PATH)


def render_register(services: context.AppServices) -> None:
    st.title("Create account")
    with st.form("register"):
        name = st.text_input("Name")
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        confirmation = st.text_input("Confirm password", type="password")
        submitted = st.form_submit_button("Register", type="primary")

    if submitted:
        try:
            with _overlay(services, "Creating account…"):
                services.sessions.register(name, email, password, confirmation)
        except ValidationError as exc:
            st.error(exc.message)
        except FinanceClientError as exc:
            services.notifications.error(f"Could not register. {exc.message}")
        else:
            services.notifications.success("Account created. Please sign in.")
            _navigate(services, LOGIN_PATH)

    if st.button("Back to sign in"):
        _navigate(services, LOGIN_PATH)


def render_dashboard(services: context.AppServices) -> None:
    view = _activate(services, "dashboard")
    st.title("Dashboard")
    if st.button("Refresh"):
        with _overlay(services, "Loading…"):
            view.load()

    if view.error:
        st.error(view.error)
        return
    if view.payload is None:
        return

    totals = view.payload["totals"]
    cols = st.columns(3)
    cols[0].metric("Income", utils.format_currency(totals["total_income"]))
    cols[0].caption(f"This month: {utils.format_currency(totals['monthly_income'])}")
    cols[1].metric("Expenses", utils.format_currency(totals["total_expense"]))
    cols[1].caption(f"This month: {utils.format_currency(totals['monthly_expense'])}")
    cols[2].metric("Balance", utils.format_currency(totals["balance"]))
    cols[2].caption(f"This month: {utils.format_currency(totals['monthly_balance'])}")

    dark = services.preferences.dark_mode
    left, right = st.columns([3, 2], gap="large")
    left.plotly_chart(viz.plot_monthly_summary(view.payload["monthly"], dark=dark), use_container_width=True)
    right.plotly_chart(viz.plot_category_pie(view.payload["categories"], dark=dark), use_container_width=True)


def render_transactions(services: context.AppServices) -> None:
    view = _activate(services, "transactions")
    st.title("Transactions")

    with st.expander("Filters"):
        with st.form("transaction-filters"):
            search = st.text_input("Search", value=view.filters.get("search", ""))
            category = st.text_input("Category", value=view.filters.get("category", ""))
            kind = st.selectbox("Type", ["", "income", "expense"])
            status = st.selectbox("Status", ["", "pendente", "concluida", "cancelada"])
            start = st.date_input("From", value=None)
            end = st.date_input("To", value=None)
            if st.form_submit_button("Apply"):
                with _overlay(services, "Loading…"):
                    view.set_filters(
                        search=search, category=category, type=kind, status=status, startDate=start, endDate=end
                    )

    if view.error:
        st.error(view.error)
    elif view.items:
        table = pd.DataFrame(view.items)
        if "amount" in table:
            table["amount"] = table["amount"].map(_currency)
        st.dataframe(table, use_container_width=True, hide_index=True)
        pages = int(view.meta.get("pages") or 1)
        if pages > 1:
            page = st.number_input("Page", min_value=1, max_value=pages, value=view.page)
            if page != view.page:
                view.set_page(page)
                st.rerun()
    else:
        st.caption("No transactions found.")

    with st.expander("New transaction"):
        with st.form("transaction-create", clear_on_submit=True):
            description = st.text_input("Description")
            amount = st.number_input("Amount", min_value=0.0, step=0.01, format="%.2f")
            kind = st.selectbox("Type", ["expense", "income"], key="create-type")
            category = st.text_input("Category", key="create-category")
            when = st.date_input("Date", value=date.today())
            status = st.selectbox("Status", ["concluida", "pendente", "cancelada"], key="create-status")
            if st.form_submit_button("Save", type="primary"):
                _run(
                    services,
                    view.create,
                    {
                        "description": description,
                        "amount": amount,
                        "type": kind,
                        "category": category,
                        "date": when,
                        "status": status,
                    },
                )
                if view.form_error:
                    st.error(view.form_error)

    if view.items:
        ids = [row.get("id") for row in view.items]
        selected = st.selectbox("Delete transaction", ids, format_func=lambda item: f"#{item}")
        if st.button("Delete", type="secondary"):
            _run(services, view.delete, selected)
            st.rerun()


def render_savings(services: context.AppServices) -> None:
    view = _activate(services, "savings")
    st.title("Savings goals")

    if view.error:
        st.error(view.error)
    for saving in view.items:
        with st.container(border=True):
            st.markdown(f"**{saving.get('name', 'Goal')}** · {saving.get('category', '')}")
            st.progress(view.progress(saving))
            st.caption(
                f"{_currency(saving.get('currentAmount'))} of {_currency(saving.get('targetAmount'))}"
                f" · deadline {str(saving.get('deadline', ''))[:10]}"
            )
            cols = st.columns([2, 1, 1])
            amount = cols[0].number_input(
                "Add amount", min_value=0.0, step=10.0, key=f"add-{saving.get('id')}", label_visibility="collapsed"
            )
            if cols[1].button("Add", key=f"add-btn-{saving.get('id')}"):
                _run(services, view.add_amount, saving.get("id"), amount)
                if view.form_error:
                    st.error(view.form_error)
                else:
                    st.rerun()
            if cols[2].button("Delete", key=f"del-{saving.get('id')}"):
                _run(services, view.delete, saving.get("id"))
                st.rerun()
    if not view.items and not view.error:
        st.caption("No savings goals yet.")

    with st.expander("New goal"):
        with st.form("saving-create", clear_on_submit=True):
            name = st.text_input("Name")
            target = st.number_input("Target amount", min_value=0.0, step=50.0)
            deadline = st.date_input("Deadline", value=date.today())
            category = st.text_input("Category")
            if st.form_submit_button("Create", type="primary"):
                _run(
                    services,
                    view.create,
                    {"name": name, "targetAmount": target, "deadline": deadline, "category": category},
                )
                if view.form_error:
                    st.error(view.form_error)


def render_profile(services: context.AppServices) -> None:
    view = _activate(services, "profile")
    st.title("Profile")
    if view.error:
        st.error(view.error)

    session = services.sessions.current_session()
    if view.photo:
        photo = view.photo
        if not photo.startswith("http"):
            photo = services.settings.api_url.rsplit("/api", 1)[0] + "/" + photo.lstrip("/")
        st.image(photo, width=120)

    upload = st.file_uploader("Change photo", type=["png", "jpg", "jpeg"])
    if upload is not None and st.button("Upload photo"):
        _run(services, view.upload_photo, upload.name, upload.getvalue(), upload.type or "image/jpeg")

    with st.form("profile"):
        name = st.text_input("Name", value=view.profile.get("name") or (session.name if session else ""))
        st.text_input("Email", value=view.profile.get("email") or (session.email if session else ""), disabled=True)
        current_password = st.text_input("Current password", type="password")
        new_password = st.text_input("New password", type="password")
        confirmation = st.text_input("Confirm new password", type="password")
        if st.form_submit_button("Save", type="primary"):
            _run(services, view.update, name, current_password, new_password, confirmation)
            if view.form_error:
                st.error(view.form_error)


def render_settings(services: context.AppServices) -> None:
    view = _activate(services, "settings")
    st.title("Settings")
    if view.error:
        st.error(view.error)

    dark = st.toggle("Dark mode", value=services.preferences.dark_mode)
    if dark != services.preferences.dark_mode:
        view.toggle_dark_mode(services.executor)
        st.rerun()

    with st.form("settings"):
        email_notifications = st.checkbox("Email notifications", value=bool(view.settings.get("emailNotifications")))
        monthly_report = st.checkbox("Monthly report", value=bool(view.settings.get("monthlyReport")))
        languages = ["pt-BR", "en-US", "es-ES"]
        current_language = view.settings.get("language", "pt-BR")
        language = st.selectbox(
            "Language",
            languages,
            index=languages.index(current_language) if current_language in languages else 0,
        )
        if st.form_submit_button("Save", type="primary"):
            _run(
                services,
                view.save,
                emailNotifications=email_notifications,
                monthlyReport=monthly_report,
                language=language,
            )


def render_users(services: context.AppServices) -> None:
    view = _activate(services, "users")
    st.title("Users")
    if view.error:
        st.error(view.error)
    if not view.items:
        st.caption("No users found.")
        return

    st.dataframe(pd.DataFrame(view.items), use_container_width=True, hide_index=True)
    by_id = {row.get("id"): row for row in view.items}
    selected = st.selectbox("Edit user", list(by_id), format_func=lambda item: by_id[item].get("name", item))
    with st.form("user-edit"):
        name = st.text_input("Name", value=by_id[selected].get("name", ""))
        role = st.selectbox(
            "Role", ["visitor", "admin"], index=1 if by_id[selected].get("role") == "admin" else 0
        )
        if st.form_submit_button("Save", type="primary"):
            _run(services, view.update, selected, {"name": name, "role": role})
            if view.form_error:
                st.error(view.form_error)


PAGES = {
    LOGIN_PATH: render_login,
    REGISTER_PATH: render_register,
    "/dashboard": render_dashboard,
    "/transactions": render_transactions,
    "/savings": render_savings,
    "/profile": render_profile,
    "/settings": render_settings,
    "/users": render_users,
}


def _sidebar(services: context.AppServices) -> None:
    session = services.sessions.current_session()
    if session is None:
        return
    sidebar = st.sidebar
    sidebar.markdown(f"### {session.name or session.email}")
    sidebar.caption(session.role.value.title())
    for path, label, _ in NAV_ITEMS:
        if path == "/users" and not session.is_admin:
            continue
        if sidebar.button(label, use_container_width=True, disabled=services.navigator.location == path):
            _navigate(services, path)

    dark = sidebar.toggle("Dark mode", value=services.preferences.dark_mode, key="sidebar-dark")
    if dark != services.preferences.dark_mode:
        services.preferences.toggle(services.executor)
        st.rerun()

    if sidebar.button("Sign out", use_container_width=True):
        services.unmount_views()
        st.session_state.pop("mounted_view", None)
        services.sessions.logout()
        _navigate(services, LOGIN_PATH)


def main() -> None:
    """Render the Finance Tracker Streamlit application."""

    st.set_page_config(page_title="Finance Tracker", page_icon="💰", layout="wide")
    services = _services()

    st.markdown(DARK_CSS if services.preferences.dark_mode else LIGHT_CSS, unsafe_allow_html=True)

    decision = services.guard.resolve()
    if decision.state is GuardState.CHECKING:
        return
    if decision.state is GuardState.REDIRECTING:
        st.session_state.pop("mounted_view", None)
        st.rerun()

    _sidebar(services)
    if decision.state is GuardState.RESTRICTED:
        st.warning(decision.notice)
    else:
        PAGES[decision.path](services)
    _show_notification(services)


if __name__ == "__main__":
    main()
