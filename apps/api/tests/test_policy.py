"""Tests for the persisted app policy."""
from __future__ import annotations

import json

from gamerscream.core.policy import AppPolicyState, PolicyStore

from conftest import make_settings


def test_defaults_come_from_settings(tmp_path):
    settings = make_settings(tmp_path, token_secret="")

    store = PolicyStore.from_settings(settings)

    assert store.app_pin == "1520"
    assert store.signing_secret == "devsecret-gamerscream"


def test_state_file_overrides_settings(tmp_path):
    path = tmp_path / "admin-state.json"
    path.write_text(json.dumps({"appPin": "2468", "signingSecret": "persisted"}), encoding="utf-8")

    store = PolicyStore.from_settings(make_settings(tmp_path, admin_state_path=path))

    assert store.app_pin == "2468"
    assert store.signing_secret == "persisted"


def test_corrupt_state_file_is_ignored(tmp_path):
    path = tmp_path / "admin-state.json"
    path.write_text("{not json", encoding="utf-8")

    store = PolicyStore.from_settings(make_settings(tmp_path, admin_state_path=path))

    assert store.app_pin == "1520"


def test_replace_writes_state_file(tmp_path):
    path = tmp_path / "admin-state.json"
    store = PolicyStore(AppPolicyState(app_pin="1520", signing_secret="s1"), path=path)

    state = store.replace(app_pin="1111")

    saved = json.loads(path.read_text(encoding="utf-8"))
    assert saved == {"appPin": "1111", "signingSecret": state.signing_secret}
    assert state.signing_secret != "s1"


def test_rotate_secret_only(tmp_path):
    store = PolicyStore(AppPolicyState(app_pin="1520", signing_secret="s1"))

    store.replace()

    assert store.app_pin == "1520"
    assert store.signing_secret != "s1"
