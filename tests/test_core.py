"""Tests for hashing, settings and logging helpers."""

from __future__ import annotations

import pytest
import structlog
from pydantic import ValidationError as SettingsValidationError

from controlspine.core.hashing import canonical_json, compute_content_hash
from controlspine.core.logging import LogContext, bind_context, clear_context
from controlspine.core.settings import ControllerSettings


class TestHashing:
    def test_key_order_does_not_matter(self):
        assert canonical_json({"b": 1, "a": {"d": 2, "c": 3}}) == canonical_json({"a": {"c": 3, "d": 2}, "b": 1})

    def test_hash_is_short_hex(self):
        digest = compute_content_hash(canonical_json({"spec": {}}))
        assert len(digest) == 10
        assert int(digest, 16) >= 0

    def test_str_and_bytes_agree(self):
        assert compute_content_hash("abc") == compute_content_hash(b"abc")

    def test_different_content_differs(self):
        assert compute_content_hash(canonical_json({"image": "a"})) != compute_content_hash(canonical_json({"image": "b"}))


class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("REQUEUE_AFTER_SECONDS", "DEFAULT_PARALLELISM", "SYSTEM_NAMESPACE"):
            monkeypatch.delenv(f"CONTROLSPINE_{name}", raising=False)
        settings = ControllerSettings(_env_file=None)
        assert settings.requeue_after_seconds == 10.0
        assert settings.default_parallelism == 20
        assert settings.system_namespace == "controlspine-system"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("CONTROLSPINE_REQUEUE_AFTER_SECONDS", "2.5")
        monkeypatch.setenv("CONTROLSPINE_GC_ON_PASS", "false")
        settings = ControllerSettings(_env_file=None)
        assert settings.requeue_after_seconds == 2.5
        assert settings.gc_on_pass is False

    def test_rejects_zero_parallelism(self):
        with pytest.raises(SettingsValidationError):
            ControllerSettings(_env_file=None, default_parallelism=0)


class TestLogContext:
    def test_binds_and_unbinds(self):
        clear_context()
        with LogContext(execution="run", namespace="ml"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["execution"] == "run"
            assert bound["namespace"] == "ml"
        assert "execution" not in structlog.contextvars.get_contextvars()

    def test_outer_context_survives(self):
        clear_context()
        bind_context(request="r1")
        with LogContext(execution="run"):
            pass
        assert structlog.contextvars.get_contextvars() == {"request": "r1"}
        clear_context()
