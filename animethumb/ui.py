"""Streamlit UI for the anime thumbnail generator."""

from __future__ import annotations

import os
import pathlib

import streamlit as st

from animethumb import config
from animethumb.generator import create_generator
from animethumb.prompts import STYLE_KEYS, style_label
from animethumb.session import Display, GenerationSession

SESSION_KEY = "_animethumb_session"
TITLE_KEY = "title_input"
STYLE_KEY = "style_select"


def _ensure_env_loaded(env_path: pathlib.Path) -> None:
    """Load environment variables and logging config once per browser session."""

    if "_ANIMETHUMB_ENV_LOADED" in st.session_state:
        return
    config.load_env_file(env_path)
    st.session_state["_ANIMETHUMB_ENV_LOADED"] = True


def _get_session() -> GenerationSession:
    """Return the generation session stored for this browser session."""

    if SESSION_KEY not in st.session_state:
        settings = config.load_settings()
        config.configure_logging(settings.log_level)
        st.session_state[SESSION_KEY] = GenerationSession(create_generator(settings))
    return st.session_state[SESSION_KEY]


def _sync_inputs(session: GenerationSession) -> None:
    session.update_title(st.session_state.get(TITLE_KEY, session.title))
    session.select_style(st.session_state.get(STYLE_KEY, session.style_key))


def _on_generate(session: GenerationSession) -> None:
    _sync_inputs(session)
    session.handle_generate()


def run() -> None:
    """Execute the Streamlit UI."""

    st.set_page_config(page_title="Anime Thumbnail Generator", layout="wide")

    env_file = os.environ.get(config.ENV_FILE_ENV, config.DEFAULT_ENV_FILE)
    _ensure_env_loaded(pathlib.Path(env_file))

    session = _get_session()
    _sync_inputs(session)
    view = session.view()

    st.title("Anime Thumbnail Generator")
    st.write(
        "Enter a video title, pick a style, and generate a widescreen anime-style "
        "thumbnail."
    )

    controls_col, display_col = st.columns([1, 2])

    with controls_col:
        st.text_input(
            "Video title",
            key=TITLE_KEY,
            placeholder="e.g., My first trip to Kyoto",
            disabled=not view.title_enabled,
        )
        st.selectbox(
            "Style",
            STYLE_KEYS,
            key=STYLE_KEY,
            format_func=style_label,
            disabled=not view.style_enabled,
        )
        st.button(
            view.generate_label,
            type="primary",
            disabled=not view.generate_enabled,
            on_click=_on_generate,
            args=(session,),
        )
        artifact = session.prepare_download()
        st.download_button(
            "Download image",
            data=artifact.data if artifact else b"",
            file_name=artifact.filename if artifact else "thumbnail_image.jpg",
            mime=artifact.mime_type if artifact else "image/jpeg",
            disabled=not view.download_enabled,
            on_click=session.handle_download,
        )

    with display_col:
        if view.display is Display.SPINNER:
            with st.spinner(view.message or ""):
                session.await_completion()
            st.rerun()
        elif view.display is Display.IMAGE and view.image is not None:
            st.image(view.image.data, caption="Generated image")
        elif view.display is Display.ERROR:
            st.error(f"An error occurred:\n\n{view.message}")
        else:
            st.info(view.message or "")


if __name__ == "__main__":
    run()
