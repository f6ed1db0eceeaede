import base64
import os
from typing import Optional
from io import BytesIO

import requests
import streamlit as st
from PIL import Image

BACKEND_URL = os.getenv("BACKEND_URL", "http://127.0.0.1:8000")


def create_session() -> str:
    """POST /sessions -> session_id"""
    resp = requests.post(f"{BACKEND_URL}/sessions", timeout=10)
    resp.raise_for_status()
    return resp.json()["session_id"]


def get_state(session_id: str) -> Optional[dict]:
    resp = requests.get(f"{BACKEND_URL}/sessions/{session_id}", timeout=10)
    if resp.status_code == 404:
        return None
    resp.raise_for_status()
    return resp.json()


def upload_image(session_id: str, uploaded) -> dict:
    files = {"file": (uploaded.name, uploaded.getvalue(), uploaded.type)}
    resp = requests.post(f"{BACKEND_URL}/sessions/{session_id}/image", files=files, timeout=30)
    resp.raise_for_status()
    return resp.json()


def set_instruction(session_id: str, text: str) -> dict:
    resp = requests.put(
        f"{BACKEND_URL}/sessions/{session_id}/instruction", json={"text": text}, timeout=10
    )
    resp.raise_for_status()
    return resp.json()


def generate(session_id: str) -> dict:
    # No timeout: the edit runs until the model answers
    resp = requests.post(f"{BACKEND_URL}/sessions/{session_id}/generate", timeout=None)
    resp.raise_for_status()
    return resp.json()


def reset(session_id: str) -> dict:
    resp = requests.post(f"{BACKEND_URL}/sessions/{session_id}/reset", timeout=10)
    resp.raise_for_status()
    return resp.json()


def fetch_presets() -> list:
    try:
        resp = requests.get(f"{BACKEND_URL}/presets", timeout=10)
        resp.raise_for_status()
        return resp.json().get("presets", [])
    except requests.RequestException:
        return []


def asset_to_image(asset: dict):
    """Decode an ImageAsset dict into (PIL Image, raw bytes)"""
    raw = base64.b64decode(asset["data"])
    try:
        return Image.open(BytesIO(raw)), raw
    except Exception as e:
        st.error(f"Cannot display image: {e}")
        return None, raw


def use_preset(text: str) -> None:
    st.session_state["instruction"] = text


# ==========================
# Config
# ==========================
st.set_page_config(page_title="Image Edit AI", page_icon="🪼", layout="wide")

st.title("🪼 Image Edit AI")
st.caption("Upload an image, describe a change, keep refining.")

# ==========================
# State
# ==========================
if "session_id" not in st.session_state or get_state(st.session_state["session_id"]) is None:
    # Missing or evicted by the backend: start over with a fresh session
    st.session_state["session_id"] = create_session()
    st.session_state["uploaded_file_id"] = None
if st.session_state.pop("clear_instruction", False):
    st.session_state["instruction"] = ""
st.session_state.setdefault("instruction", "")
st.session_state.setdefault("uploaded_file_id", None)

session_id = st.session_state["session_id"]
state = get_state(session_id)

controls, preview = st.columns([1, 2])

# ==========================
# Controls
# ==========================
with controls:
    st.subheader("Source")
    uploaded = st.file_uploader(
        "Click to upload image",
        type=["jpg", "jpeg", "png", "webp"],
        help="JPG, PNG, JPEG, WEBP (Max 4MB)",
    )
    if uploaded is not None:
        file_id = f"{uploaded.name}_{uploaded.size}"
        if file_id != st.session_state["uploaded_file_id"]:
            try:
                state = upload_image(session_id, uploaded)
                st.session_state["uploaded_file_id"] = file_id
                if not state.get("last_error"):
                    st.session_state["instruction"] = ""
            except requests.RequestException as e:
                st.error(f"Upload failed: {e}")

    st.subheader("Edit Prompt")
    st.text_area(
        "Describe how to change the image",
        key="instruction",
        placeholder="e.g. 'Add glowing edges' or 'Crop to square'",
        height=130,
    )

    preset_cols = st.columns(2)
    for i, preset in enumerate(fetch_presets()):
        preset_cols[i % 2].button(preset, key=f"preset_{i}", on_click=use_preset, args=(preset,))

    instruction = st.session_state["instruction"]
    can_generate = bool(state and state.get("current")) and bool(instruction.strip())
    if st.button("Generate Edit", disabled=not can_generate, use_container_width=True):
        try:
            set_instruction(session_id, instruction)
            with st.spinner("Processing..."):
                state = generate(session_id)
        except requests.RequestException as e:
            st.error(f"Backend error: {e}")

    if state and state.get("last_error"):
        st.error(state["last_error"])

# ==========================
# Preview
# ==========================
with preview:
    st.subheader("Preview")
    current = state.get("current") if state else None

    if current:
        image, img_bytes = asset_to_image(current)
        btn_reset, btn_download = st.columns(2)
        with btn_reset:
            if st.button("🔄 Reset to original", use_container_width=True):
                try:
                    state = reset(session_id)
                    st.session_state["clear_instruction"] = True
                    st.rerun()
                except requests.RequestException as e:
                    st.error(f"Reset failed: {e}")
        with btn_download:
            ext = current["mime_type"].split("/")[-1].replace("jpeg", "jpg")
            st.download_button(
                "⬇️ Download",
                data=img_bytes,
                file_name=f"edited-image.{ext}",
                mime=current["mime_type"],
                use_container_width=True,
            )
        if image:
            st.image(image, caption="Preview", use_container_width=True)
        if state.get("is_edited"):
            st.caption("Image updated successfully. You can continue adding prompts to refine further.")
    else:
        st.info("Upload an image to start editing")

    st.write("🔗 Backend:", BACKEND_URL)
