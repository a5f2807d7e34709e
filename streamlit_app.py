"""
Main Streamlit application for Schema Studio.
Design a form schema as a tree of fields and preview it as a live, validated form.
"""

import logging

import streamlit as st

from schemastudio.config_loader import get_config, get_config_value


def get_logging_level(level_str):
    """Map string logging level to logging constant."""
    level_map = {
        'DEBUG': logging.DEBUG,
        'INFO': logging.INFO,
        'WARNING': logging.WARNING,
        'ERROR': logging.ERROR,
        'CRITICAL': logging.CRITICAL
    }
    return level_map.get(str(level_str).upper(), logging.INFO)


# Configure logging from config
log_level_str = get_config_value('logging', 'level', 'INFO')
logging.basicConfig(level=get_logging_level(log_level_str))
logger = logging.getLogger(__name__)
logger.info(f"Logging configured to level: {log_level_str}")

config = get_config()
page_title = get_config_value('ui', 'page_title', 'Schema Studio')
logger.info(f"Starting {get_config_value('app', 'name', 'Schema Studio')} "
            f"version {get_config_value('app', 'version', 'Unknown')}")

st.set_page_config(
    page_title=page_title,
    page_icon="🧩",
    layout="wide",
    initial_sidebar_state="expanded"
)


def main():
    """Main application entry point."""
    from schemastudio.error_handler import ErrorHandler, ErrorType
    from schemastudio.schema_exceptions import SchemaStudioError
    from schemastudio.session_manager import SessionManager

    try:
        SessionManager.initialize(config)
    except SchemaStudioError as e:
        ErrorHandler.handle_error(e, "application startup", ErrorType.SYSTEM, show_details=True)
        st.stop()

    render_header()
    render_sidebar()
    render_main_content()


def render_header():
    """Render application header."""
    from schemastudio.session_manager import SessionManager

    app_name = get_config_value('app', 'name', 'Schema Studio')
    st.title(f"🧩 {app_name}")

    store = SessionManager.get_store()
    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Fields", len(store.existing_keys()))
    with col2:
        st.metric("Undo Steps", len(store.history.past))
    with col3:
        st.metric("Current View", SessionManager.get_current_page().title())


def render_sidebar():
    """Render application sidebar."""
    from schemastudio.session_manager import PAGES, SessionManager

    with st.sidebar:
        st.header(get_config_value('ui', 'sidebar_title', 'Navigation'))

        current_page = SessionManager.get_current_page()
        page = st.radio(
            "Select View:",
            options=list(PAGES),
            format_func=lambda x: {
                'designer': '🛠️ Designer',
                'preview': '👀 Preview',
            }[x],
            index=list(PAGES).index(current_page)
        )
        if page != current_page:
            SessionManager.set_current_page(page)
            st.rerun()

        st.divider()
        st.header("Quick Actions")

        if st.button("🔄 Reset Preview", help="Clear all values entered in the preview form"):
            SessionManager.reset_preview()
            st.rerun()

        if st.button("🧹 Restart Session", help="Reload the designer from saved state"):
            SessionManager.reset_session()
            st.rerun()

        if get_config_value('app', 'debug', False):
            with st.expander("🐞 Session"):
                st.json(SessionManager.get_session_info())


def render_main_content():
    """Render main content area based on current page."""
    from schemastudio.session_manager import SessionManager

    page = SessionManager.get_current_page()
    if page == 'designer':
        from schemastudio.designer_view import DesignerView
        DesignerView.render()
    elif page == 'preview':
        from schemastudio.preview_view import PreviewView
        PreviewView.render()
    else:
        st.error(f"Unknown page: {page}")


if __name__ == "__main__":
    main()
