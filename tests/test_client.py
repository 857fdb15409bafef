"""
Tests for reply parsing and SnapshotClient — canned responses, no network.

Test plan:
- parse_submission: 2xx JSON → SubmissionResult with pass-throughs,
  non-2xx → SubmissionRejected (status code + error field, else raw text),
  2xx empty / non-JSON → EmptyResponse, missing tx_hash left to
  require_transaction_id → NoTransactionId
- parse_status: confirmed / failed matched case-insensitively, confirmations
  only when numeric, failure reason fallbacks, unknown / missing status →
  Pending, non-2xx and undecodable → TransientPollError
- SnapshotClient: URLs, payloads and credential header; key not in repr
"""

from typing import Any

import pytest

from codequill_snapshot.client import (
    DEFAULT_FAILURE_REASON,
    Confirmed,
    Failed,
    Pending,
    SnapshotClient,
    StatusReply,
    SubmitReply,
    parse_status,
    parse_submission,
    require_transaction_id,
)
from codequill_snapshot.errors import (
    EmptyResponse,
    ErrorCode,
    NoTransactionId,
    SubmissionRejected,
    TransientPollError,
)
from codequill_snapshot.request import build_request
from codequill_snapshot.transport import API_KEY_HEADER, HttpResponse

# ---------------------------------------------------------------------------
# Fake transport
# ---------------------------------------------------------------------------


class FakeTransport:
    """Returns one canned response for every call."""

    def __init__(self, response: HttpResponse) -> None:
        self._response = response
        self.calls: list[tuple[str, dict[str, Any], dict[str, str]]] = []

    async def post_json(
        self, url: str, payload: dict[str, Any], headers: dict[str, str]
    ) -> HttpResponse:
        self.calls.append((url, payload, headers))
        return self._response


def _json(status_code: int, text: str, reason: str = "OK") -> HttpResponse:
    return HttpResponse.from_text(status_code, reason, text)


# ---------------------------------------------------------------------------
# Submission parsing
# ---------------------------------------------------------------------------


class TestParseSubmission:
    def test_accepted_with_all_fields(self) -> None:
        result = parse_submission(_json(200, (
            '{"status":"accepted","tx_hash":"0xabc","tx_url":"https://scan/tx/0xabc",'
            '"commit_hash":"deadbeef","manifest_cid":"bafy123","merkle_root":"0xroot"}'
        )))
        assert result.accepted
        assert result.status_label == "accepted"
        assert result.transaction_id == "0xabc"
        assert result.transaction_url == "https://scan/tx/0xabc"
        assert result.commit_hash == "deadbeef"
        assert result.manifest_id == "bafy123"
        assert result.merkle_root == "0xroot"

    def test_partial_fields(self) -> None:
        result = parse_submission(
            _json(200, '{"status":"accepted","tx_hash":"0xabc","commit_hash":"deadbeef"}')
        )
        assert result.transaction_id == "0xabc"
        assert result.commit_hash == "deadbeef"
        assert result.manifest_id is None
        assert result.merkle_root is None

    def test_rejected_with_error_field(self) -> None:
        with pytest.raises(SubmissionRejected) as info:
            parse_submission(
                _json(422, '{"error":"Missing github_id"}', reason="Unprocessable Entity")
            )
        err = info.value
        assert "422" in err.message
        assert "Unprocessable Entity" in err.message
        assert "Missing github_id" in err.message
        assert err.error_code == ErrorCode.SUBMISSION_REJECTED
        assert err.details["status_code"] == 422

    def test_rejected_with_raw_text(self) -> None:
        with pytest.raises(SubmissionRejected) as info:
            parse_submission(_json(502, "<html>bad gateway</html>", reason="Bad Gateway"))
        assert info.value.message == (
            "Code Quill snapshot failed: HTTP 502 Bad Gateway - <html>bad gateway</html>"
        )

    def test_rejected_json_without_error_uses_raw_text(self) -> None:
        with pytest.raises(SubmissionRejected) as info:
            parse_submission(_json(401, '{"detail":"nope"}', reason="Unauthorized"))
        assert '{"detail":"nope"}' in info.value.message

    def test_rejected_empty_body(self) -> None:
        with pytest.raises(SubmissionRejected) as info:
            parse_submission(_json(500, "", reason="Internal Server Error"))
        assert info.value.message == (
            "Code Quill snapshot failed: HTTP 500 Internal Server Error"
        )

    @pytest.mark.parametrize("text", ["", "ok", "[1]"])
    def test_empty_or_non_json(self, text: str) -> None:
        with pytest.raises(EmptyResponse):
            parse_submission(_json(200, text))

    def test_missing_tx_hash(self) -> None:
        result = parse_submission(_json(200, '{"status":"accepted","commit_hash":"deadbeef"}'))
        assert result.transaction_id is None
        with pytest.raises(NoTransactionId) as info:
            require_transaction_id(result)
        assert "tx_hash" in info.value.message

    def test_require_transaction_id_returns_id(self) -> None:
        result = parse_submission(_json(200, '{"tx_hash":"0xabc"}'))
        assert require_transaction_id(result) == "0xabc"

    def test_non_string_fields_dropped(self) -> None:
        reply = SubmitReply.from_dict({"tx_hash": 12, "commit_hash": "", "status": None})
        assert reply.tx_hash is None
        assert reply.commit_hash is None
        assert reply.status is None


# ---------------------------------------------------------------------------
# Status parsing
# ---------------------------------------------------------------------------


class TestParseStatus:
    @pytest.mark.parametrize("label", ["confirmed", "CONFIRMED", "Confirmed"])
    def test_confirmed_case_insensitive(self, label: str) -> None:
        outcome = parse_status(_json(200, f'{{"status":"{label}","confirmations":3}}'))
        assert outcome == Confirmed(confirmations=3)

    def test_confirmed_without_count(self) -> None:
        assert parse_status(_json(200, '{"status":"confirmed"}')) == Confirmed(None)

    @pytest.mark.parametrize("raw", ['"3"', "true", "2.5"])
    def test_non_integer_count_dropped(self, raw: str) -> None:
        outcome = parse_status(_json(200, f'{{"status":"confirmed","confirmations":{raw}}}'))
        assert outcome == Confirmed(None)

    @pytest.mark.parametrize("label", ["failed", "FAILED", "Failed"])
    def test_failed_case_insensitive(self, label: str) -> None:
        outcome = parse_status(_json(200, f'{{"status":"{label}","message":"reverted"}}'))
        assert outcome == Failed(reason="reverted")

    def test_failed_falls_back_to_error(self) -> None:
        outcome = parse_status(_json(200, '{"status":"failed","error":"out of gas"}'))
        assert outcome == Failed(reason="out of gas")

    def test_failed_generic_reason(self) -> None:
        outcome = parse_status(_json(200, '{"status":"failed"}'))
        assert outcome == Failed(reason=DEFAULT_FAILURE_REASON)

    @pytest.mark.parametrize(
        "text",
        ['{"status":"pending"}', '{"status":"mined"}', "{}", '{"status":7}'],
    )
    def test_other_labels_pending(self, text: str) -> None:
        assert isinstance(parse_status(_json(200, text)), Pending)

    def test_pending_keeps_label(self) -> None:
        assert parse_status(_json(200, '{"status":"queued"}')) == Pending("queued")

    def test_error_status_is_transient(self) -> None:
        with pytest.raises(TransientPollError) as info:
            parse_status(_json(503, '{"message":"warming up"}', reason="Service Unavailable"))
        err = info.value
        assert err.message == "HTTP 503 Service Unavailable - warming up"
        assert not err.fatal
        assert err.error_code == ErrorCode.TRANSIENT_POLL

    def test_error_status_prefers_message_over_error(self) -> None:
        with pytest.raises(TransientPollError) as info:
            parse_status(_json(500, '{"message":"m","error":"e"}', reason="Internal Server Error"))
        assert info.value.message.endswith(" - m")

    @pytest.mark.parametrize("text", ["", "<html/>", "[]"])
    def test_undecodable_body_is_transient(self, text: str) -> None:
        with pytest.raises(TransientPollError):
            parse_status(_json(200, text))

    def test_status_reply_ignores_unknown_keys(self) -> None:
        reply = StatusReply.from_dict({"status": "pending", "block": 12, "extra": {}})
        assert reply == StatusReply(status="pending")


# ---------------------------------------------------------------------------
# SnapshotClient
# ---------------------------------------------------------------------------


class TestSnapshotClient:
    def _request(self):
        return build_request(
            endpoint="https://api.codequill.example/v1/snapshot/",
            repository_id="123",
            branch="main",
            confirmations="2",
        )

    @pytest.mark.asyncio
    async def test_submit_call(self) -> None:
        transport = FakeTransport(_json(200, "{}"))
        client = SnapshotClient("repo-key", transport)

        await client.submit(self._request())

        url, payload, headers = transport.calls[0]
        assert url == "https://api.codequill.example/v1/snapshot/"
        assert payload == {"github_id": 123, "branch": "main"}
        assert headers == {API_KEY_HEADER: "repo-key"}

    @pytest.mark.asyncio
    async def test_status_call(self) -> None:
        transport = FakeTransport(_json(200, '{"status":"pending"}'))
        client = SnapshotClient("repo-key", transport)

        await client.check_status(self._request(), "0xabc")

        url, payload, headers = transport.calls[0]
        assert url == "https://api.codequill.example/v1/snapshot/status"
        assert payload == {"tx_hash": "0xabc", "confirmations": 2}
        assert headers == {API_KEY_HEADER: "repo-key"}

    def test_repr_hides_key(self) -> None:
        client = SnapshotClient("super-secret", FakeTransport(_json(200, "{}")))
        assert "super-secret" not in repr(client)
