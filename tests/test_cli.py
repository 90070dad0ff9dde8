"""Tests for the command-line entry point (main.py)."""

import pytest

import main as cli
from auth.keystore import TemporaryKeyStore
from auth.store import UserStore
from core.config import Settings
from core.models import ClientContext


@pytest.fixture
def settings(tmp_path, monkeypatch):
    s = Settings(debug=True, database_url=f"sqlite:///{tmp_path}/cli.db")
    monkeypatch.setattr(cli, "get_settings", lambda: s)
    return s


def test_create_user(settings, capsys):
    rc = cli.main(["create-user", "ann@example.com", "--first-name", "Ann", "--last-name", "<b>Lee</b>", "--password", "Secret123!"])
    assert rc == 0
    assert "created" in capsys.readouterr().out

    store = UserStore(settings.database_url)
    try:
        user_id = store.login("ann@example.com", "Secret123!", ClientContext())
        assert user_id
        assert store.get_by_id(user_id).last_name == "&lt;b&gt;Lee&lt;/b&gt;"
    finally:
        store.close()


def test_create_user_rejects_weak_password(settings, capsys):
    rc = cli.main(["create-user", "ann@example.com", "--first-name", "Ann", "--last-name", "Lee", "--password", "weak"])
    assert rc == 1
    assert "[!]" in capsys.readouterr().out


def test_create_user_rejects_bad_email(settings, capsys):
    rc = cli.main(["create-user", "nope", "--first-name", "Ann", "--last-name", "Lee", "--password", "Secret123!"])
    assert rc == 1


def test_create_user_duplicate(settings, capsys):
    args = ["create-user", "ann@example.com", "--first-name", "Ann", "--last-name", "Lee", "--password", "Secret123!"]
    assert cli.main(args) == 0
    assert cli.main(args) == 1


def test_create_user_prompts(settings, monkeypatch):
    answers = iter(["Secret123!", "Other123!"])
    monkeypatch.setattr(cli.getpass, "getpass", lambda prompt="": next(answers))
    rc = cli.main(["create-user", "ann@example.com", "--first-name", "Ann", "--last-name", "Lee"])
    assert rc == 1


def test_purge_expired(settings, capsys):
    keys = TemporaryKeyStore(settings.database_url)
    keys.set("OLD", "v", -1)
    keys.close()

    assert cli.main(["purge-expired"]) == 0
    assert "Purged 1 expired key(s)" in capsys.readouterr().out


def test_no_command_prints_help(capsys):
    assert cli.main([]) == 0
    assert "usage" in capsys.readouterr().out.lower()
