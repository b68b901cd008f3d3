# streamlit_app.py
import streamlit as st

from spiral_app.client import call_spiral_api
from spiral_app.core.utils import is_blank

# --- Configuration ---
# Make sure the FastAPI backend (spiral_app/main.py) is running!
# Set SPIRAL_API_URL if it runs on a different address or port.
DEFAULT_WIDGET = "daily-checkin"

# --- Initialize Session State ---
if "user_id" not in st.session_state:
    # In a real app, use proper authentication.
    st.session_state.user_id = 1

if "last_result" not in st.session_state:
    st.session_state.last_result = None


def render_field(field: dict):
    """Streamlit input for one schema field. Returns the entered value."""
    name, label, field_type = field["name"], field["label"], field["type"]
    options = {k: v for k, v in (field.get("options") or {}).items() if k != ""}
    default = field.get("default")
    help_text = field.get("description") or None

    if field_type in ("range", "number"):
        low = int(field.get("min") if field.get("min") is not None else 0)
        high = int(field.get("max") if field.get("max") is not None else 100)
        if default is None:
            # Stays empty (None) until the user enters a value
            return st.number_input(
                label, min_value=low, max_value=high, value=None, step=1, key=name, help=help_text
            )
        if field_type == "range":
            return st.slider(label, low, high, int(default), key=name, help=help_text)
        return st.number_input(label, low, high, int(default), key=name, help=help_text)
    if field_type in ("select", "radio"):
        keys = [""] + list(options) if field_type == "select" else list(options)
        index = keys.index(default) if default in keys else 0
        widget = st.selectbox if field_type == "select" else st.radio
        return widget(label, keys, index=index, format_func=lambda k: options.get(k, "Select..."), key=name)
    if field_type == "checkbox":
        return st.multiselect(label, list(options), format_func=options.get, key=name, help=help_text)
    if field_type == "boolean":
        return st.checkbox(label, value=bool(default), key=name, help=help_text)
    if field_type == "date":
        picked = st.date_input(label, value=None, key=name)
        return picked.isoformat() if picked else ""
    if field_type == "time":
        picked = st.time_input(label, value=None, key=name)
        return picked.strftime("%H:%M") if picked else ""
    if field_type == "textarea":
        return st.text_area(label, key=name, height=28 * int(field.get("rows") or 3), help=help_text)
    return st.text_input(label, key=name, placeholder=field.get("placeholder") or "", help=help_text)


# --- App Display ---
st.title("SpiralEngine")

st.session_state.user_id = st.sidebar.number_input(
    "User ID", min_value=1, value=int(st.session_state.user_id), step=1
)
st.caption(f"User ID: {st.session_state.user_id}")

widgets = call_spiral_api("GET", "/widgets", params={"user_id": st.session_state.user_id})
if widgets.get("error"):
    st.error(widgets["error"])
    st.stop()

accessible = {w["id"]: w["name"] for w in widgets.get("widgets", []) if w.get("accessible")}
if not accessible:
    st.info("No widgets are available for your membership tier.")
    st.stop()

ids = list(accessible)
widget_id = st.sidebar.selectbox(
    "Widget",
    ids,
    index=ids.index(DEFAULT_WIDGET) if DEFAULT_WIDGET in ids else 0,
    format_func=accessible.get,
)

schema = call_spiral_api(
    "GET", f"/widgets/{widget_id}/schema", params={"user_id": st.session_state.user_id}
)
if schema.get("error"):
    st.error(schema["error"])
    st.stop()

st.subheader(schema["widget"]["name"])
st.caption(schema["widget"]["description"])

with st.form(key=f"episode-{widget_id}"):
    data = {}
    locked = []
    for field in schema["fields"]:
        if field.get("locked"):
            locked.append(field)
            continue
        value = render_field(field)
        if not is_blank(value):
            data[field["name"]] = value
    submitted = st.form_submit_button("Save")

if locked:
    with st.expander(f"{len(locked)} more fields with an upgrade"):
        for field in locked:
            st.markdown(f"- **{field['label']}** ({field['required_tier'].capitalize()})")

if submitted:
    with st.spinner("Saving..."):
        st.session_state.last_result = call_spiral_api(
            "POST",
            f"/widgets/{widget_id}/episodes",
            payload={"user_id": st.session_state.user_id, "data": data},
        )

result = st.session_state.last_result
if result:
    if result.get("error"):
        st.error(f"⚠️ {result['error']}")
        for name, message in (result.get("errors") or {}).items():
            st.warning(f"{name}: {message}")
    else:
        st.success(f"{result['message']} (severity {result['severity']})")

st.divider()
st.subheader("Recent entries")
history = call_spiral_api(
    "GET",
    f"/widgets/{widget_id}/episodes",
    params={"user_id": st.session_state.user_id, "limit": 5},
)
if history.get("error"):
    st.error(history["error"])
else:
    for episode in history.get("episodes", []):
        st.markdown(f"**{episode['created_at'][:16].replace('T', ' ')}** · severity {episode['severity']}")
    if not history.get("episodes"):
        st.caption("Nothing logged yet.")
