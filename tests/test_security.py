"""Tests for payload canonicalization and HMAC signing."""

import hashlib
import hmac
import json
from datetime import datetime, timedelta, timezone

from bruin_webhooks.utils.security import (
    build_payload,
    generate_signature,
    signature_header,
    verify_signature,
)


class TestBuildPayload:
    def test_contains_exactly_the_event_fields(self, note_created) -> None:
        body = json.loads(build_payload(note_created))
        assert body == {
            "event_type": "note_created",
            "note_id": "note-1",
            "summary": "Created note 'Groceries'",
            "actor": "user",
            "agent_id": None,
            "timestamp": "2026-01-01T09:30:00+00:00",
        }

    def test_keys_are_sorted_and_compact(self, note_created) -> None:
        payload = build_payload(note_created)
        body = json.loads(payload)
        assert payload == json.dumps(body, sort_keys=True, separators=(",", ":"))
        assert payload.startswith('{"actor":')

    def test_same_event_serializes_identically(self, note_created) -> None:
        assert build_payload(note_created) == build_payload(note_created.model_copy())

    def test_naive_and_aware_utc_serialize_alike(self, note_created) -> None:
        aware = note_created.model_copy(
            update={"timestamp": note_created.timestamp.replace(tzinfo=timezone.utc)}
        )
        assert build_payload(aware) == build_payload(note_created)

    def test_other_offsets_are_converted_to_utc(self, note_created) -> None:
        plus_two = timezone(timedelta(hours=2))
        local = note_created.model_copy(
            update={"timestamp": datetime(2026, 1, 1, 11, 30, 0, tzinfo=plus_two)}
        )
        assert json.loads(build_payload(local))["timestamp"] == "2026-01-01T09:30:00+00:00"


class TestSignature:
    def test_matches_reference_hmac(self) -> None:
        expected = hmac.new(b"s1", b'{"a":1}', hashlib.sha256).hexdigest()
        assert generate_signature("s1", '{"a":1}') == expected

    def test_deterministic(self, note_created) -> None:
        payload = build_payload(note_created)
        assert generate_signature("s1", payload) == generate_signature("s1", payload)

    def test_secret_changes_digest(self, note_created) -> None:
        payload = build_payload(note_created)
        assert generate_signature("s1", payload) != generate_signature("s2", payload)

    def test_every_field_changes_digest(self, note_created) -> None:
        baseline = generate_signature("s1", build_payload(note_created))
        changes = {
            "event_type": "note_updated",
            "note_id": "note-2",
            "summary": "Something else",
            "actor": "agent",
            "agent_id": "agent-7",
            "timestamp": note_created.timestamp.replace(second=1),
        }
        for field, value in changes.items():
            changed = note_created.model_copy(update={field: value})
            assert generate_signature("s1", build_payload(changed)) != baseline, field

    def test_header_form(self) -> None:
        assert signature_header("s1", "{}") == "sha256=" + generate_signature("s1", "{}")

    def test_verify_accepts_both_forms(self) -> None:
        digest = generate_signature("s1", "{}")
        assert verify_signature("{}", "s1", digest)
        assert verify_signature("{}", "s1", f"sha256={digest}")

    def test_verify_rejects_wrong_secret(self) -> None:
        assert not verify_signature("{}", "s2", signature_header("s1", "{}"))
