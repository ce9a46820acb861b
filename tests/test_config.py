import importlib
import os
from unittest.mock import patch

from holdem import config


class TestConfig:
    """Environment-backed settings."""

    def test_dotenv_values_reach_config(self, monkeypatch):
        """Entries loaded from a .env file are read into Config."""
        monkeypatch.delenv('LLM_MODEL', raising=False)

        def fake_load_dotenv(*args, **kwargs):
            os.environ['LLM_MODEL'] = 'openrouter/from-dotenv'
            return True

        try:
            with patch('dotenv.load_dotenv', side_effect=fake_load_dotenv) as mock_load:
                reloaded = importlib.reload(config)
            mock_load.assert_called_once()
            assert reloaded.Config.LLM_MODEL == 'openrouter/from-dotenv'
        finally:
            os.environ.pop('LLM_MODEL', None)
            importlib.reload(config)
