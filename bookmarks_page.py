# --- bookmarks_page.py (bookmark list / add / nearby search) ---
import streamlit as st

from bookmark_client import BookmarkClient
from backend.geo import DEFAULT_RADIUS_KM


def _client() -> BookmarkClient:
    """One client cache per browser session, initialised once"""
    if "bookmark_client" not in st.session_state:
        client = BookmarkClient()
        client.init()
        st.session_state["bookmark_client"] = client
    return st.session_state["bookmark_client"]


def _position_label(bookmark: dict) -> str:
    pos = bookmark.get("position") or {}
    if pos.get("lat") is None or pos.get("lng") is None:
        return "(no position)"
    return f"{pos['lat']:.5f}, {pos['lng']:.5f} · zoom {pos.get('zoom', '-')}"


def _add_form(client: BookmarkClient):
    with st.form("add_bookmark", clear_on_submit=True):
        st.subheader("Add bookmark")
        name = st.text_input("Name")
        notes = st.text_area("Notes")
        c1, c2, c3 = st.columns(3)
        lat = c1.number_input("Latitude", min_value=-90.0, max_value=90.0, value=0.0, format="%.6f")
        lng = c2.number_input("Longitude", min_value=-180.0, max_value=180.0, value=0.0, format="%.6f")
        zoom = c3.number_input("Zoom", min_value=0, max_value=19, value=13, step=1)
        if st.form_submit_button("Save"):
            saved = client.add(client.create_from_map(lat, lng, int(zoom), name.strip(), notes))
            st.success(f"Saved '{saved['name']}'")


def _bookmark_list(client: BookmarkClient):
    bookmarks = client.get_all()
    st.subheader(f"Bookmarks ({len(bookmarks)})")
    if not bookmarks:
        st.info("No bookmarks yet.")
        return

    for bm in list(bookmarks):
        bm_id = bm.get("id", "")
        with st.expander(f"{bm.get('name') or 'Unnamed Location'} — {_position_label(bm)}"):
            new_name = st.text_input("Name", value=bm.get("name", ""), key=f"name_{bm_id}")
            new_notes = st.text_area("Notes", value=bm.get("notes", ""), key=f"notes_{bm_id}")
            st.caption(f"created {bm.get('createdAt', '-')}" + (f" · updated {bm['updatedAt']}" if bm.get("updatedAt") else ""))
            c1, c2 = st.columns(2)
            if c1.button("Update", key=f"update_{bm_id}"):
                client.update(bm_id, {"name": new_name.strip() or bm.get("name"), "notes": new_notes})
                st.rerun()
            if c2.button("Delete", key=f"delete_{bm_id}"):
                client.remove(bm_id)
                st.rerun()

    if st.button("Clear all bookmarks"):
        client.clear()
        st.rerun()


def _nearby_search(client: BookmarkClient):
    st.subheader("Find nearby")
    c1, c2, c3 = st.columns(3)
    lat = c1.number_input("Latitude", min_value=-90.0, max_value=90.0, value=0.0, format="%.6f", key="search_lat")
    lng = c2.number_input("Longitude", min_value=-180.0, max_value=180.0, value=0.0, format="%.6f", key="search_lng")
    radius = c3.number_input("Radius (km)", min_value=0.0, value=DEFAULT_RADIUS_KM, key="search_radius")
    if st.button("Search"):
        results = client.search_by_coordinates(lat, lng, radius)
        if not results:
            st.warning("No bookmarks within that radius.")
        for bm in results:
            st.markdown(f"- **{bm.get('name', 'Unnamed Location')}** ({_position_label(bm)})")


def _name_search(client: BookmarkClient):
    st.subheader("Find by name")
    query = st.text_input("Name or note text", key="name_query")
    if st.button("Find", key="name_find") and query.strip():
        match = client.find_by_name(query)
        if match is None:
            st.warning(f"No bookmark matches '{query}'.")
        else:
            st.success(f"**{match.get('name', 'Unnamed Location')}** ({_position_label(match)})")


def bookmarks_page():
    st.title("Map Bookmarks")
    client = _client()
    _add_form(client)
    _bookmark_list(client)
    _name_search(client)
    _nearby_search(client)
