"""Tests for the single-attempt delivery executor."""

from unittest.mock import patch

import requests

from bruin_webhooks.utils.security import build_payload, verify_signature
from bruin_webhooks.worker.delivery import DeliveryExecutor, MAX_RESPONSE_BODY, Target

from conftest import FakeResponse, FakeSession, unreachable

TARGET = Target(id="wh-1", url="https://x.example/hook", secret="s1")


class TestDeliver:
    def test_posts_signed_canonical_body(self, executor, fake_session, note_created) -> None:
        result = executor.deliver(TARGET, note_created)

        [call] = fake_session.calls
        body = call["data"].decode("utf-8")
        assert call["url"] == TARGET.url
        assert body == build_payload(note_created)
        assert call["headers"]["Content-Type"] == "application/json"
        assert call["headers"]["X-Bruin-Signature"].startswith("sha256=")
        assert verify_signature(body, "s1", call["headers"]["X-Bruin-Signature"])
        assert call["headers"]["X-Bruin-Event"] == "note_created"
        assert call["headers"]["X-Bruin-Webhook-ID"] == "wh-1"
        assert call["timeout"] == 2
        assert result.payload == body

    def test_custom_signature_header(self, fake_session, note_created) -> None:
        executor = DeliveryExecutor(session=fake_session, header_name="X-Test-Signature")
        executor.deliver(TARGET, note_created)
        assert "X-Test-Signature" in fake_session.calls[0]["headers"]

    def test_2xx_is_success(self, note_created) -> None:
        for status in (200, 201, 204, 299):
            session = FakeSession(lambda url: FakeResponse(status, "accepted"))
            result = DeliveryExecutor(session=session).deliver(TARGET, note_created)
            assert result.success, status
            assert result.status_code == status
            assert result.error_message is None

    def test_non_2xx_is_failure(self, note_created) -> None:
        for status in (199, 301, 404, 500):
            session = FakeSession(lambda url: FakeResponse(status, "nope"))
            result = DeliveryExecutor(session=session).deliver(TARGET, note_created)
            assert not result.success, status
            assert result.status_code == status
            assert result.response_body == "nope"
            assert result.error_message == f"HTTP {status}"

    def test_empty_body_is_none(self, note_created) -> None:
        session = FakeSession(lambda url: FakeResponse(500, ""))
        result = DeliveryExecutor(session=session).deliver(TARGET, note_created)
        assert result.response_body is None

    def test_long_body_is_truncated(self, note_created) -> None:
        session = FakeSession(lambda url: FakeResponse(502, "x" * (MAX_RESPONSE_BODY * 2)))
        result = DeliveryExecutor(session=session).deliver(TARGET, note_created)
        assert len(result.response_body) == MAX_RESPONSE_BODY

    def test_connection_error(self, note_created) -> None:
        result = DeliveryExecutor(session=FakeSession(unreachable)).deliver(TARGET, note_created)
        assert not result.success
        assert result.status_code is None
        assert "Failed to establish a new connection" in result.error_message

    def test_timeout(self, note_created) -> None:
        session = FakeSession(lambda url: requests.Timeout())
        result = DeliveryExecutor(session=session).deliver(TARGET, note_created)
        assert not result.success
        assert result.status_code is None
        assert result.error_message == "Timeout"

    def test_single_attempt_only(self, note_created) -> None:
        session = FakeSession(unreachable)
        DeliveryExecutor(session=session).deliver(TARGET, note_created, attempt=3)
        assert len(session.calls) == 1

    def test_default_transport_is_requests_post(self, note_created) -> None:
        executor = DeliveryExecutor(timeout=3)
        with patch("bruin_webhooks.worker.delivery.requests.post",
                   return_value=FakeResponse(202, "queued")) as post:
            result = executor.deliver(TARGET, note_created)

        assert result.success
        post.assert_called_once()
        assert post.call_args.args == (TARGET.url,)
        assert post.call_args.kwargs["timeout"] == 3
        assert executor.session is None
