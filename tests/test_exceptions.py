"""Tests for the Blue Carbon Registry exception hierarchy.

Covers:
- Base exception functionality
- HTTP status of each registry exception
- Rich error context
- Exception serialization
- Exception utilities
"""

import json
from datetime import datetime

import pytest

from bluecarbon.exceptions import (
    BlueCarbonException,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
    ValidationError,
    format_exception_chain,
)


# ==============================================================================
# Base Exception Tests
# ==============================================================================

class TestBlueCarbonException:
    """Tests for base BlueCarbonException."""

    def test_create_basic_exception(self):
        """Can create basic exception with message."""
        exc = BlueCarbonException("Something went wrong")

        assert exc.message == "Something went wrong"
        assert exc.error_code == "BC_BLUE_CARBON_EXCEPTION"
        assert exc.context == {}
        assert exc.http_status == 500
        assert isinstance(exc.timestamp, datetime)

    def test_explicit_error_code(self):
        exc = BlueCarbonException("x", error_code="BC_TEST_001", context={"k": 1})
        assert exc.error_code == "BC_TEST_001"
        assert exc.context == {"k": 1}

    def test_str_representation(self):
        exc = NotFoundError("Project not found: p-1")
        assert str(exc) == "[BC_NOT_FOUND_ERROR] - Project not found: p-1"

    def test_to_json_roundtrips(self):
        exc = ForbiddenError("nope", required_role="admin", actor_role="public")
        data = json.loads(exc.to_json())
        assert data["error"] == "nope"
        assert data["error_type"] == "ForbiddenError"
        assert data["context"] == {"required_role": "admin", "actor_role": "public"}


# ==============================================================================
# Registry Exception Tests
# ==============================================================================

class TestRegistryExceptions:
    """Status codes and context of each registry exception."""

    @pytest.mark.parametrize("exc_cls,status", [
        (ValidationError, 400),
        (NotFoundError, 404),
        (ForbiddenError, 403),
        (InvalidTransitionError, 400),
        (StorageError, 500),
    ])
    def test_http_status(self, exc_cls, status):
        assert exc_cls("x").http_status == status
        assert issubclass(exc_cls, BlueCarbonException)

    def test_validation_error_details(self):
        """Field errors are exposed as a details list."""
        exc = ValidationError(
            "Validation failed",
            invalid_fields={"area": "Area must be greater than 0"},
        )

        assert exc.invalid_fields == {"area": "Area must be greater than 0"}
        assert exc.details == [{"field": "area", "message": "Area must be greater than 0"}]
        assert exc.to_dict()["details"] == exc.details
        assert exc.context["invalid_fields"] == exc.invalid_fields

    def test_invalid_transition_names_states(self):
        exc = InvalidTransitionError(
            "MRV data already verified",
            entity_type="mrv_data",
            current_state="verified",
            attempted="verify",
        )

        assert exc.current_state == "verified"
        assert exc.attempted == "verify"
        assert exc.context == {
            "entity_type": "mrv_data",
            "current_state": "verified",
            "attempted": "verify",
        }

    def test_not_found_context(self):
        exc = NotFoundError("missing", entity_type="project", entity_id="p-9")
        assert exc.context == {"entity_type": "project", "entity_id": "p-9"}

    def test_storage_error_records_cause(self):
        cause = OSError("disk full")
        exc = StorageError("write failed", collection="projects", operation="write", cause=cause)

        assert exc.context["collection"] == "projects"
        assert exc.context["operation"] == "write"
        assert exc.context["cause"] == "disk full"
        assert exc.context["cause_type"] == "OSError"


# ==============================================================================
# Utility Tests
# ==============================================================================

class TestFormatExceptionChain:

    def test_chain_includes_cause(self):
        try:
            try:
                raise ValueError("bad json")
            except ValueError as inner:
                raise StorageError("read failed", collection="projects") from inner
        except StorageError as exc:
            text = format_exception_chain(exc)

        assert "[BC_STORAGE_ERROR] - read failed" in text
        assert "ValueError: bad json" in text
