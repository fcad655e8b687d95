import pytest

from services.google_auth import SCOPES, GoogleAuth


@pytest.fixture
def auth(tmp_path):
    return GoogleAuth(tmp_path / "secrets" / "client_secret.json", tmp_path / "token" / "token.json")


def test_scopes_are_read_only():
    assert SCOPES == ["https://www.googleapis.com/auth/calendar.readonly"]


def test_no_cached_token(auth):
    assert auth.load_cached() is None
    assert auth.get_credentials() is None
    assert auth.get_active_scopes() == []


def test_broken_token_file_is_ignored(auth):
    auth.token_path.write_text("{}", encoding="utf-8")
    assert auth.load_cached() is None


def test_consent_needs_client_secret(auth):
    with pytest.raises(FileNotFoundError):
        auth.ensure_credentials()


def test_reset_removes_token(auth):
    auth.token_path.write_text("{}", encoding="utf-8")
    auth.reset_credentials()
    assert not auth.token_path.exists()
