import pytest


@pytest.fixture
def ergon_home(tmp_path, monkeypatch):
    """Point the settings directory at a temporary folder with no API key in the environment."""
    home = tmp_path / "ergon-home"
    monkeypatch.setenv("ERGON_HOME", str(home))
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    # get_api_key() calls load_dotenv(); keep a stray .env in the cwd out of the tests
    monkeypatch.setattr("ergon.config.load_dotenv", lambda *a, **k: False)
    return home
