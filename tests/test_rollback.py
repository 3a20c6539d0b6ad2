"""Tests for the rollback stores (filesystem and in-memory)."""

import json
from datetime import datetime

import pytest

from plugin_installer import ConfigurationError, CorruptStateError
from plugin_installer.installer import _adapters
from plugin_installer.installer._adapters import (
    LocalFilesystemRollbackAdapter,
    check_label,
    timestamp_label,
)
from plugin_installer.installer._in_memory import InMemoryRollbackAdapter


def test_round_trip_latest(tmp_path):
    store = LocalFilesystemRollbackAdapter(tmp_path)
    labels = store.save({"foo": "abc", "bar": "def"})

    assert labels[0] == "latest"
    assert store.load("latest") == {"foo": "abc", "bar": "def"}
    assert store.load(labels[1]) == {"foo": "abc", "bar": "def"}
    assert (tmp_path / "rollbacks" / "latest" / "rollback.json").exists()


def test_save_overwrites_latest(tmp_path):
    store = LocalFilesystemRollbackAdapter(tmp_path)
    store.save({"foo": "1", "bar": "2"})
    store.save({"foo": "3"})
    assert store.load("latest") == {"foo": "3"}


def test_missing_record_is_empty(tmp_path):
    store = LocalFilesystemRollbackAdapter(tmp_path)
    assert store.load("240101000000") == {}
    assert store.latest_saved_at() is None
    assert store.labels() == []


def test_corrupt_record_raises(tmp_path):
    path = tmp_path / "rollbacks" / "latest" / "rollback.json"
    path.parent.mkdir(parents=True)
    path.write_text("{broken")
    with pytest.raises(CorruptStateError) as exc:
        LocalFilesystemRollbackAdapter(tmp_path).load("latest")
    assert exc.value.path == path


def test_non_object_record_raises(tmp_path):
    path = tmp_path / "rollbacks" / "latest" / "rollback.json"
    path.parent.mkdir(parents=True)
    path.write_text("[]")
    with pytest.raises(CorruptStateError):
        LocalFilesystemRollbackAdapter(tmp_path).load("latest")


def test_unknown_keys_ignored(tmp_path):
    path = tmp_path / "rollbacks" / "latest" / "rollback.json"
    path.parent.mkdir(parents=True)
    path.write_text(json.dumps({"foo": "abc", "meta": {"v": 2}}))
    assert LocalFilesystemRollbackAdapter(tmp_path).load("latest") == {"foo": "abc"}


def test_latest_saved_at_and_labels(tmp_path):
    store = LocalFilesystemRollbackAdapter(tmp_path)
    labels = store.save({})
    assert store.latest_saved_at() is not None
    assert store.labels() == sorted(labels)


@pytest.mark.parametrize("label", ["..", "../etc", "a/b", ""])
def test_label_rejects_paths(label):
    with pytest.raises(ConfigurationError):
        check_label(label)


def test_timestamp_label_fixed_width():
    assert timestamp_label(datetime(2024, 3, 5, 7, 8, 9)) == "240305070809"


def test_in_memory_round_trip():
    store = InMemoryRollbackAdapter()
    assert store.latest_saved_at() is None
    store.save({"foo": "abc"})
    assert store.load("latest") == {"foo": "abc"}
    assert store.latest_saved_at() is not None
    assert store.load("nothing") == {}


@pytest.fixture
def frozen_clock(monkeypatch):
    monkeypatch.setattr(_adapters, "timestamp_label", lambda now=None: "240101000000")


def test_same_second_saves_get_distinct_labels(tmp_path, frozen_clock):
    store = LocalFilesystemRollbackAdapter(tmp_path)
    first = store.save({"foo": "1"})
    second = store.save({"foo": "2"})
    third = store.save({"foo": "3"})

    assert first[1] == "240101000000"
    assert second[1] == "240101000000-1"
    assert third[1] == "240101000000-2"
    assert store.load("240101000000") == {"foo": "1"}
    assert store.load("240101000000-1") == {"foo": "2"}
    assert store.load("latest") == {"foo": "3"}


def test_in_memory_same_second_saves_get_distinct_labels(frozen_clock):
    store = InMemoryRollbackAdapter()
    store.save({"foo": "1"})
    labels = store.save({"foo": "2"})

    assert labels == ["latest", "240101000000-1"]
    assert store.load("240101000000") == {"foo": "1"}
    assert store.load("240101000000-1") == {"foo": "2"}
