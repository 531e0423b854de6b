"""
Tests for the error handler and the response envelope.
"""

import logging

import pytest

from restguard import (
    ApiError,
    Envelope,
    ErrorHandler,
    ErrorKind,
    InternalError,
    MemorySink,
    RateLimitExceededError,
    RequestContext,
    ResourceAlreadyExistsError,
    ResourceNotFoundError,
    ResponseTransformer,
    ValidationFailedError,
)
from restguard.envelope import ENVELOPE_KEYS, utc_timestamp
from restguard.exceptions import STATUS_FOR_KIND
from tests.helpers import body_of, make_request


def ctx_for(path="/x"):
    ctx = RequestContext(request=make_request("GET", path))
    ctx.request_id = "req-1"
    return ctx


class TestErrorMapping:
    """Every error kind maps to exactly one status."""

    @pytest.mark.parametrize("kind,status", [
        (ErrorKind.VALIDATION_ERROR, 422),
        (ErrorKind.UNAUTHORIZED, 401),
        (ErrorKind.INVALID_CREDENTIALS, 401),
        (ErrorKind.TOKEN_EXPIRED, 401),
        (ErrorKind.TOKEN_INVALID, 401),
        (ErrorKind.RESOURCE_NOT_FOUND, 404),
        (ErrorKind.RESOURCE_ALREADY_EXISTS, 409),
        (ErrorKind.RATE_LIMIT_EXCEEDED, 429),
        (ErrorKind.INTERNAL_ERROR, 500),
        (ErrorKind.SERVICE_UNAVAILABLE, 503),
    ])
    def test_status_for_kind(self, kind, status):
        assert int(STATUS_FOR_KIND[kind]) == status

    def test_every_kind_is_mapped(self):
        assert set(STATUS_FOR_KIND) == set(ErrorKind)

    def test_validation_details_are_field_errors(self):
        error = ValidationFailedError([{"field": "a", "message": "bad"}, {"field": "b", "message": "worse"}])
        response = ErrorHandler().handle(ctx_for(), error)

        assert response.status_code == 422
        assert body_of(response)["error"] == {
            "code": "VALIDATION_ERROR",
            "message": "Validation failed",
            "details": [{"field": "a", "message": "bad"}, {"field": "b", "message": "worse"}],
        }

    def test_rate_limit_sets_retry_after_header(self):
        response = ErrorHandler().handle(ctx_for(), RateLimitExceededError(12))
        assert response.status_code == 429
        assert response.headers["Retry-After"] == "12"
        assert body_of(response)["error"]["details"] == {"retryAfter": 12}

    def test_content_type_is_json(self):
        response = ErrorHandler().handle(ctx_for(), ResourceNotFoundError())
        assert response.headers["Content-Type"] == "application/json"
        assert response.headers["Content-Length"] == str(len(response.body))


class TestInternalErrors:
    """Unexpected failures never leak internals to the client."""

    def test_generic_message_and_no_details(self):
        try:
            {}["db_password"]
        except KeyError as e:
            response = ErrorHandler().handle(ctx_for(), e)

        body = body_of(response)
        assert response.status_code == 500
        assert body["error"] == {"code": "INTERNAL_ERROR", "message": "Internal server error", "details": None}
        assert b"db_password" not in response.body
        assert b"Traceback" not in response.body
        assert b"KeyError" not in response.body

    def test_explicit_internal_error_message_is_hidden(self):
        response = ErrorHandler().handle(ctx_for(), InternalError("connection string postgres://u:p@db"))
        assert body_of(response)["error"]["message"] == "Internal server error"

    def test_api_error_without_kind_is_internal(self):
        class Gone(ApiError):
            pass

        response = ErrorHandler().handle(ctx_for(), Gone("bye"))
        assert response.status_code == 500
        assert body_of(response)["error"]["message"] == "Internal server error"

    def test_traceback_is_logged_server_side(self, caplog):
        with caplog.at_level(logging.ERROR, logger="restguard.error_handler"):
            ErrorHandler().handle(ctx_for(), RuntimeError("boom"))

        record = caplog.records[-1]
        assert record.exc_info is not None
        assert "req-1" in record.getMessage()

    def test_sink_receives_failure_record(self):
        sink = MemorySink()
        ErrorHandler(sink).handle(ctx_for("/things"), ResourceNotFoundError())

        (record,) = sink.records
        assert record.message == "request failed"
        assert record.request_id == "req-1"
        assert record.level == logging.WARNING
        assert record.fields["code"] == "RESOURCE_NOT_FOUND"
        assert record.fields["status"] == 404

    def test_missing_request_id_is_generated(self):
        ctx = RequestContext(request=make_request("GET", "/x"))
        response = ErrorHandler().handle(ctx, ResourceNotFoundError())
        assert body_of(response)["meta"]["requestId"] == ctx.request_id
        assert ctx.request_id

    def test_unserializable_details_become_internal_error(self, caplog):
        sink = MemorySink()
        error = ResourceAlreadyExistsError("exists", details={"existing": object()})

        with caplog.at_level(logging.ERROR, logger="restguard.error_handler"):
            response = ErrorHandler(sink).handle(ctx_for(), error)

        assert response.status_code == 500
        assert body_of(response)["error"] == {
            "code": "INTERNAL_ERROR", "message": "Internal server error", "details": None,
        }
        assert caplog.records[-1].exc_info is not None
        (record,) = sink.records
        assert record.fields["code"] == "INTERNAL_ERROR"
        assert record.fields["status"] == 500

    def test_malformed_field_errors_become_internal_error(self):
        error = ValidationFailedError([{"field": "age", "message": None}])
        response = ErrorHandler().handle(ctx_for(), error)

        assert response.status_code == 500
        assert body_of(response)["error"]["code"] == "INTERNAL_ERROR"
        assert body_of(response)["meta"]["requestId"] == "req-1"


class TestEnvelope:
    """Success and failure bodies share one shape."""

    def test_success_and_failure_have_same_keys(self):
        ok = ResponseTransformer().transform(ctx_for(), {"id": 1})
        failed = ErrorHandler().handle(ctx_for(), ResourceNotFoundError())

        assert list(body_of(ok)) == ENVELOPE_KEYS
        assert list(body_of(failed)) == ENVELOPE_KEYS
        assert list(body_of(ok)["meta"]) == list(body_of(failed)["meta"]) == ["timestamp", "requestId"]

    def test_success_envelope(self):
        body = body_of(ResponseTransformer().transform(ctx_for(), {"id": 1}))
        assert body["success"] is True
        assert body["data"] == {"id": 1}
        assert body["error"] is None
        assert body["meta"]["requestId"] == "req-1"

    def test_failure_envelope(self):
        body = body_of(ErrorHandler().handle(ctx_for(), ResourceNotFoundError()))
        assert body["success"] is False
        assert body["data"] is None
        assert body["error"]["code"] == "RESOURCE_NOT_FOUND"

    def test_transformer_uses_handler_status(self):
        ctx = ctx_for()
        ctx.response.status_code = 202
        assert ResponseTransformer().transform(ctx, None).status_code == 202

    def test_no_content_has_empty_body(self):
        ctx = ctx_for()
        ctx.response.status_code = 204
        response = ResponseTransformer().transform(ctx, None)
        assert response.body == b""
        assert "Content-Length" not in response.headers

    def test_timestamp_format(self):
        envelope = Envelope.ok([], request_id="r")
        assert envelope.meta.timestamp.endswith("Z")
        assert "T" in envelope.meta.timestamp

    def test_utc_timestamp_milliseconds(self):
        from datetime import datetime, timezone

        moment = datetime(2024, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
        assert utc_timestamp(moment) == "2024-01-02T03:04:05.678Z"
