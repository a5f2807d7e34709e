"""
Unit tests for Streamlit session state management.
"""

from unittest.mock import MagicMock, patch

from schemastudio.config_loader import deep_merge, get_default_config
from schemastudio.field_factory import create_field
from schemastudio.session_manager import DEFAULT_PAGE, SessionManager

MEMORY_CONFIG = deep_merge(get_default_config(), {'storage': {'backend': 'memory'}})


class TestSessionManager:
    """Test cases for SessionManager."""

    def setup_method(self):
        self.st_patcher = patch('schemastudio.session_manager.st')
        self.mock_st = self.st_patcher.start()
        self.mock_st.session_state = {}
        self.config_patcher = patch('schemastudio.session_manager.get_config', return_value=MEMORY_CONFIG)
        self.config_patcher.start()
        SessionManager.initialize(MEMORY_CONFIG)

    def teardown_method(self):
        self.config_patcher.stop()
        self.st_patcher.stop()

    @property
    def state(self):
        return self.mock_st.session_state

    def test_initialize_sets_defaults(self):
        assert SessionManager.get_current_page() == DEFAULT_PAGE
        assert SessionManager.get_preview_values() == {}
        assert SessionManager.get_store().schema == {'version': 1, 'fields': []}
        assert self.state['shortcut_binding'].is_attached

    def test_initialize_keeps_existing_state(self):
        store = SessionManager.get_store()
        SessionManager.set_current_page('preview')

        SessionManager.initialize(MEMORY_CONFIG)

        assert SessionManager.get_store() is store
        assert SessionManager.get_current_page() == 'preview'
        assert SessionManager.get_key_events().listener_count == 1

    def test_shortcuts_reach_the_store(self):
        store = SessionManager.get_store()
        store.add_field(create_field('text', 'A'))
        SessionManager.get_key_events().dispatch('ctrl+z')
        assert store.schema['fields'] == []

    def test_set_current_page_ignores_unknown(self):
        SessionManager.set_current_page('settings')
        assert SessionManager.get_current_page() == DEFAULT_PAGE

    def test_preview_values_and_resolution(self):
        store = SessionManager.get_store()
        price = create_field('number', 'Price')
        total = create_field('number', 'Total', [price['key']])
        total['computed'] = f"{price['key']} * 2"
        store.add_field(price)
        store.add_field(total)

        SessionManager.set_preview_value(price['key'], 4)

        assert SessionManager.get_preview_values() == {price['key']: 4}
        assert SessionManager.get_resolved_values()[total['key']] == 8

    def test_reset_preview_clears_widget_state(self):
        SessionManager.set_preview_value('a', 1)
        self.state['preview_abc'] = 'typed'
        self.state['other'] = 'kept'

        SessionManager.reset_preview()

        assert SessionManager.get_preview_values() == {}
        assert 'preview_abc' not in self.state
        assert self.state['other'] == 'kept'

    def test_reset_session_rebuilds_state(self):
        old_binding = self.state['shortcut_binding']
        old_store = SessionManager.get_store()
        self.state['other'] = 'dropped'

        SessionManager.reset_session()

        assert not old_binding.is_attached
        assert SessionManager.get_store() is not old_store
        assert 'other' not in self.state
        assert SessionManager.get_key_events().listener_count == 1

    def test_get_session_info(self):
        SessionManager.get_store().add_field(create_field('text', 'A'))
        info = SessionManager.get_session_info()
        assert info['field_count'] == 1
        assert info['can_undo'] is True
        assert info['clipboard_empty'] is True
        assert info['current_page'] == DEFAULT_PAGE

    def test_store_created_from_config(self):
        self.state.clear()
        with patch('schemastudio.session_manager.DocumentStore') as mock_store_cls:
            mock_store_cls.from_config.return_value = MagicMock()
            SessionManager.initialize(MEMORY_CONFIG)
        mock_store_cls.from_config.assert_called_once_with(MEMORY_CONFIG)
