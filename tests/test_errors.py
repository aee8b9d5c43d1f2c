"""Tests for the error taxonomy."""

from __future__ import annotations

import pytest

from controlspine.core.errors import (
    AlreadyExistsError,
    ConflictError,
    ControlError,
    DagError,
    DuplicateTaskNameError,
    ErrorCategory,
    ForbiddenError,
    NotFoundError,
    OptionNotFoundError,
    OverlayError,
    StoreError,
    ValidationError,
    categorize_error,
    is_retryable,
)


class TestCategories:
    @pytest.mark.parametrize(
        ("error", "category", "retryable"),
        [
            (NotFoundError("Template", "ns", "t"), ErrorCategory.NOT_FOUND, False),
            (AlreadyExistsError("Revision", "ns", "r"), ErrorCategory.ALREADY_EXISTS, False),
            (ConflictError("Execution", "ns", "e"), ErrorCategory.CONFLICT, True),
            (ForbiddenError("Job", "ns", "j"), ErrorCategory.FORBIDDEN, False),
            (StoreError("disk full"), ErrorCategory.STORE, True),
            (OptionNotFoundError("gpu"), ErrorCategory.VALIDATION, True),
            (DuplicateTaskNameError("t1"), ErrorCategory.VALIDATION, False),
            (DagError("cycle"), ErrorCategory.VALIDATION, True),
            (OverlayError("bad list"), ErrorCategory.OVERLAY, False),
        ],
    )
    def test_defaults(self, error, category, retryable):
        assert error.category is category
        assert error.retryable is retryable
        assert categorize_error(error) is category
        assert is_retryable(error) is retryable

    def test_foreign_exceptions(self):
        assert categorize_error(KeyError("x")) is ErrorCategory.INTERNAL
        assert is_retryable(KeyError("x")) is False

    def test_hierarchy(self):
        assert issubclass(OptionNotFoundError, ValidationError)
        assert issubclass(DagError, ValidationError)
        assert issubclass(NotFoundError, ControlError)


class TestMessages:
    def test_resource_error_message_and_context(self):
        error = NotFoundError("Template", "ml", "jupyter")
        assert str(error) == "Template ml/jupyter not found"
        assert error.context.to_dict() == {"kind": "Template", "namespace": "ml", "name": "jupyter"}

    def test_option_not_found_message(self):
        error = OptionNotFoundError("gpu")
        assert str(error) == "the referenced option was not found in the template spec: gpu"
        assert error.context.option == "gpu"


class TestContext:
    def test_with_context_known_and_extra_keys(self):
        error = ConflictError("Execution", "ml", "run").with_context(operation="update", expected="3")
        assert error.context.operation == "update"
        assert error.context.metadata == {"expected": "3"}

    def test_to_dict(self):
        cause = OSError("boom")
        error = StoreError("write failed", cause=cause).with_context(kind="Revision")
        payload = error.to_dict()
        assert payload["error_type"] == "StoreError"
        assert payload["category"] == "STORE"
        assert payload["retryable"] is True
        assert payload["context"] == {"kind": "Revision"}
        assert payload["cause"] == "boom"
        assert error.__cause__ is cause
