"""Tests for error types and codes."""

import pytest

from actorledger.core.errors import (
    ActorLedgerError,
    ConfigError,
    ErrorCode,
    IngestError,
    StoreError,
)


class TestErrorCode:
    """Error code value tests."""

    @pytest.mark.parametrize(
        ("code", "expected_range"),
        [
            (ErrorCode.CONFIG_PARSE_ERROR, 2000),
            (ErrorCode.CONFIG_INVALID_VALUE, 2000),
            (ErrorCode.STORE_CONFLICT, 3000),
            (ErrorCode.STORE_BUSY, 3000),
            (ErrorCode.INGEST_CANCELLED, 4000),
            (ErrorCode.INGEST_MALFORMED_DIFF, 4000),
        ],
    )
    def test_given_error_code_when_checked_then_in_correct_range(
        self, code: ErrorCode, expected_range: int
    ) -> None:
        """Error codes fall within their designated numeric range."""
        # Given
        error_code = code

        # When
        value = error_code.value

        # Then
        assert expected_range <= value < expected_range + 1000


class TestActorLedgerError:
    """Base error behavior tests."""

    def test_given_error_when_to_dict_then_serializes_all_fields(self) -> None:
        """Error serializes to dict with all required fields."""
        # Given
        error = ActorLedgerError(
            code=ErrorCode.CONFIG_PARSE_ERROR,
            message="Test message",
            retryable=True,
            details={"key": "value"},
        )

        # When
        result = error.to_dict()

        # Then
        assert result == {
            "code": 2001,
            "error": "CONFIG_PARSE_ERROR",
            "message": "Test message",
            "retryable": True,
            "details": {"key": "value"},
        }

    def test_given_error_when_str_then_human_readable(self) -> None:
        """Error string representation is human readable."""
        # Given
        error = StoreError.busy(4)

        # When
        result = str(error)

        # Then
        assert result == "[3003] STORE_BUSY: Database still locked after 4 attempts"

    def test_given_subclass_when_raised_through_context_manager_then_propagates(self) -> None:
        """Structured errors survive contextlib re-raising."""
        from contextlib import contextmanager

        @contextmanager
        def passthrough():
            yield

        # When / Then
        with pytest.raises(IngestError) as exc_info, passthrough():
            raise IngestError.cancelled("store_actor_heads")
        assert exc_info.value.details == {"stage": "store_actor_heads"}


class TestConfigError:
    """ConfigError factory method tests."""

    @pytest.mark.parametrize(
        ("factory", "kwargs", "expected_code"),
        [
            (
                "parse_error",
                {"path": "/foo", "reason": "bad yaml"},
                ErrorCode.CONFIG_PARSE_ERROR,
            ),
            (
                "invalid_value",
                {"field": "database.max_retries", "value": -1, "reason": "negative"},
                ErrorCode.CONFIG_INVALID_VALUE,
            ),
            ("file_not_found", {"path": "/missing"}, ErrorCode.CONFIG_FILE_NOT_FOUND),
        ],
    )
    def test_given_factory_when_called_then_correct_code(
        self, factory: str, kwargs: dict[str, object], expected_code: ErrorCode
    ) -> None:
        """Factory methods produce errors with correct error codes."""
        # Given
        factory_method = getattr(ConfigError, factory)

        # When
        error = factory_method(**kwargs)

        # Then
        assert error.code == expected_code

    def test_given_parse_error_when_created_then_path_in_details(self) -> None:
        """Parse error includes file path in details."""
        # Given
        path = "/config.yaml"
        reason = "invalid syntax"

        # When
        error = ConfigError.parse_error(path, reason)

        # Then
        assert error.details["path"] == path
        assert reason in error.message


class TestStoreError:
    """StoreError factory tests."""

    def test_given_write_failure_then_retryable_with_stage(self) -> None:
        error = StoreError.write_failed("store_actor_heads", "disk I/O error", rows=3)

        assert error.retryable is True
        assert error.details == {
            "stage": "store_actor_heads",
            "reason": "disk I/O error",
            "rows": 3,
        }

    def test_given_conflict_then_not_retryable(self) -> None:
        error = StoreError.conflict("store_actor_addresses", "UNIQUE constraint failed")

        assert error.code == ErrorCode.STORE_CONFLICT
        assert error.retryable is False
        assert "store_actor_addresses" in error.message


class TestIngestError:
    """IngestError factory tests."""

    def test_given_undefined_identifier_then_locates_observation(self) -> None:
        error = IngestError.undefined_identifier("bafycode", "tipset-a", "f09999")

        assert error.details == {
            "actor_code": "bafycode",
            "tipset": "tipset-a",
            "identifier": "f09999",
        }
        assert "'f09999'" in error.message

    def test_given_empty_identifier_then_message_says_so(self) -> None:
        error = IngestError.undefined_identifier("bafycode", "tipset-a")

        assert error.message.endswith("has no identifier")
        assert error.details["identifier"] == ""

    def test_given_cancellation_then_retryable(self) -> None:
        error = IngestError.cancelled("commit")

        assert error.code == ErrorCode.INGEST_CANCELLED
        assert error.retryable is True

    def test_given_malformed_change_set_then_reason_in_message(self) -> None:
        error = IngestError.malformed_change_set("empty side", identifier="")

        assert "empty side" in error.message
        assert error.details["identifier"] == ""

