"""Unit tests for agent_session_core.storage.memory."""
from __future__ import annotations

import pytest

from agent_session_core.storage.base import StorageBackend
from agent_session_core.storage.memory import InMemoryBackend


class TestInMemoryBackend:
    def test_is_storage_backend(self) -> None:
        assert isinstance(InMemoryBackend(), StorageBackend)

    def test_save_and_load(self) -> None:
        backend = InMemoryBackend()
        backend.save("k", '{"a": 1}')
        assert backend.load("k") == '{"a": 1}'

    def test_overwrite(self) -> None:
        backend = InMemoryBackend()
        backend.save("k", "one")
        backend.save("k", "two")
        assert backend.load("k") == "two"

    def test_load_missing_raises(self) -> None:
        with pytest.raises(KeyError, match="not found"):
            InMemoryBackend().load("missing")

    def test_delete(self) -> None:
        backend = InMemoryBackend()
        backend.save("k", "v")
        backend.delete("k")
        assert not backend.exists("k")

    def test_delete_missing_raises(self) -> None:
        with pytest.raises(KeyError):
            InMemoryBackend().delete("missing")

    def test_keys_filtered_and_sorted(self) -> None:
        backend = InMemoryBackend()
        for key in ("session:app:u2:s1", "session:app:u1:s2", "app_state:app", "session:app:u1:s1"):
            backend.save(key, "{}")
        assert backend.keys("session:app:u1:") == ["session:app:u1:s1", "session:app:u1:s2"]
        assert len(backend.keys()) == 4

    def test_initial_data_copied(self) -> None:
        seed = {"k": "v"}
        backend = InMemoryBackend(seed)
        backend.save("other", "x")
        assert seed == {"k": "v"}
        assert backend.load("k") == "v"

    def test_clear_and_len(self) -> None:
        backend = InMemoryBackend({"a": "1", "b": "2"})
        assert len(backend) == 2
        backend.clear()
        assert len(backend) == 0

    def test_repr(self) -> None:
        assert "records=1" in repr(InMemoryBackend({"a": "1"}))
