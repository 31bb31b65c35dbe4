import time
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from typing import Any, Dict, List, Optional

import requests
import streamlit as st
from PIL import Image

from api_client import BACKEND_URL, ProgressListener, call_generate, decode_data_url, open_session

REFRESH_SECONDS = 0.5


def show_previews(events: List[Dict[str, Any]]) -> None:
    previews = [ev for ev in events if ev.get("status") == "succeeded"]
    cols = st.columns(2)
    for i, ev in enumerate(previews):
        with cols[i % 2]:
            st.image(Image.open(BytesIO(decode_data_url(ev["preview"]))), caption=ev["type"], use_container_width=True)


def render_progress(area, events: List[Dict[str, Any]]) -> None:
    """Latest status per mockup type plus the previews received so far."""
    latest: Dict[str, str] = {}
    for ev in events:
        if "type" in ev:
            latest[ev["type"]] = ev.get("provider_status") or ev["status"]
    with area.container():
        for mockup_type, status in latest.items():
            st.markdown(f"- **{mockup_type}**: {status}")
        show_previews(events)


# ==========================
# Page
# ==========================
st.set_page_config(page_title="Mockup Generator", page_icon="🖼️", layout="wide")

st.title("🖼️ Mockup Generator")
st.caption("Upload an artwork, get a ZIP of AI-generated mockups")

with st.sidebar:
    st.header("⚙️ Settings")
    st.write("🔗 Backend:", BACKEND_URL)
    try:
        mockups = requests.get(f"{BACKEND_URL}/mockups", timeout=5).json()
        st.markdown("**Configured mockups**")
        for m in mockups:
            st.markdown(f"- {m['type']} ({m['size'][0]}×{m['size'][1]})")
    except requests.RequestException:
        st.warning("Backend not reachable")

artwork = st.file_uploader("Artwork", type=["png", "jpg", "jpeg", "webp"])
title = st.text_input("Artwork title")
collection = st.text_input("Collection name")

if st.button("Generate mockups", disabled=not (artwork and title and collection)):
    listener: Optional[ProgressListener] = None
    progress_area = st.empty()
    try:
        session_id = open_session()
        listener = ProgressListener(session_id)
        listener.start()
        listener.ready.wait(timeout=10)

        upload = (artwork.name, artwork.getvalue(), artwork.type or "application/octet-stream")
        with st.spinner("🎨 Generating mockups..."), ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(call_generate, upload, title, collection, session_id)
            while not future.done():
                render_progress(progress_area, list(listener.events))
                time.sleep(REFRESH_SECONDS)
            result = future.result()
        listener.join(timeout=5)
        progress_area.empty()

        st.session_state["result"] = result
        st.session_state["events"] = list(listener.events)
        st.session_state["title"] = title
    except Exception as e:
        st.error(f"❌ Error: {e}")
    finally:
        if listener is not None:
            listener.close()

result = st.session_state.get("result")
if result:
    events = st.session_state.get("events", [])
    st.success(f"✅ {len(result['succeeded'])} of {len(result['succeeded']) + len(result['failed'])} mockups generated")

    for ev in events:
        if ev.get("status") == "error":
            st.error(f"{ev['type']}: {ev['error']}")

    show_previews(events)

    st.download_button(
        "⬇️ Download all",
        data=decode_data_url(result["zip"]),
        file_name=f"{st.session_state.get('title', 'mockups')}_mockups.zip",
        mime="application/zip",
    )
