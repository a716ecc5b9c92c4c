"""Tests for concurrent dispatch, the HTTP transport and the push client."""

import asyncio
import json

import httpx
import pytest

from expo_push.push.chunk import chunk_notifications
from expo_push.push.client import PushClient
from expo_push.push.config import BatchErrorKind, PushConfig
from expo_push.push.dispatch import DispatchEngine, classify_response
from expo_push.push.errors import (
    InvalidArgument,
    ServerError,
    TicketsExpectationFailed,
    TicketsWithErrors,
    TransportError,
)
from expo_push.push.notification import Notification
from expo_push.push.tickets import TicketList
from expo_push.push.transport import HttpxTransport, PushTransport

from conftest import FakeTransport, make_tokens


# ── Helpers ──────────────────────────────────────────────────────────

def _run_async(coro):
    """Run an async coroutine synchronously."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _chunks(*sizes, limit=100):
    """Chunks built from one notification per size."""
    notifications = [
        Notification().to(make_tokens(size, prefix=f"n{i}-")) for i, size in enumerate(sizes)
    ]
    return chunk_notifications(notifications, limit=limit)


def _mock_client(handler, config=None):
    config = config or PushConfig()
    return httpx.AsyncClient(
        base_url=config.base_url,
        transport=httpx.MockTransport(handler),
    )


# ── Classification ───────────────────────────────────────────────────


class TestClassifyResponse:
    """Tests for per-batch outcome classification."""

    def test_ok_tickets_correlate_by_position(self):
        chunk = _chunks(3)[0]
        response = {"data": [{"status": "ok", "id": f"id{i}"} for i in range(3)]}
        outcome = classify_response(chunk, response)
        assert isinstance(outcome, TicketList)
        assert not outcome.is_error
        assert [t.token for t in outcome] == chunk.all_recipients()
        assert [t.id for t in outcome] == ["id0", "id1", "id2"]

    def test_service_errors_take_priority(self):
        chunk = _chunks(2)[0]
        response = {
            "data": [{"status": "ok", "id": "a"}, {"status": "ok", "id": "b"}],
            "errors": [{"code": "PUSH_TOO_MANY_EXPERIENCE_IDS", "message": "mixed projects"}],
        }
        outcome = classify_response(chunk, response)
        assert outcome.is_error
        assert outcome.kind == BatchErrorKind.SERVICE_ERRORS
        assert outcome.errors[0]["message"] == "mixed projects"
        assert outcome.data == response["data"]
        assert "mixed projects" in outcome.message

    def test_empty_errors_list_is_not_an_error(self):
        chunk = _chunks(1)[0]
        outcome = classify_response(chunk, {"data": [{"status": "ok", "id": "a"}], "errors": []})
        assert not outcome.is_error

    def test_count_mismatch(self):
        chunk = _chunks(5)[0]
        response = {"data": [{"status": "ok", "id": str(i)} for i in range(4)]}
        outcome = classify_response(chunk, response)
        assert outcome.kind == BatchErrorKind.COUNT_MISMATCH
        assert outcome.expected_count == 5
        assert len(outcome.data) == 4
        assert isinstance(outcome.to_exception(), TicketsExpectationFailed)

    def test_data_not_a_list(self):
        chunk = _chunks(1)[0]
        outcome = classify_response(chunk, {"data": {"status": "ok"}})
        assert outcome.kind == BatchErrorKind.COUNT_MISMATCH

    def test_body_not_a_mapping(self):
        chunk = _chunks(1)[0]
        outcome = classify_response(chunk, ["unexpected"])
        assert outcome.kind == BatchErrorKind.TRANSPORT


# ── Dispatch engine ──────────────────────────────────────────────────


class TestDispatchEngine:
    """Tests for concurrent dispatch."""

    def test_empty_dispatch(self):
        engine = DispatchEngine(FakeTransport())
        tickets = _run_async(engine.dispatch([]))
        assert len(tickets) == 0
        assert tickets.ids() == []

    def test_fake_transport_satisfies_protocol(self):
        assert isinstance(FakeTransport(), PushTransport)
        assert isinstance(HttpxTransport(), PushTransport)

    def test_results_in_chunk_order(self):
        # Earlier chunks answer slower than later ones.
        class Staggered(FakeTransport):
            async def send_batch(self, payload):
                count = sum(len(m["to"]) for m in payload)
                await asyncio.sleep(0.001 * count)
                return self.ok_tickets(payload)

        chunks = _chunks(40, 30, 20, 10, limit=40)
        assert [c.recipient_count() for c in chunks] == [40, 40, 20]
        engine = DispatchEngine(Staggered())
        tickets = _run_async(engine.dispatch(chunks))
        assert [o.chunk_index for o in tickets] == [c.index for c in chunks]
        expected = [f"receipt-{t}" for c in chunks for t in c.all_recipients()]
        assert tickets.ids() == expected

    def test_count_mismatch_isolated_to_its_batch(self):
        def responder(payload):
            tokens = [t for m in payload for t in m["to"]]
            tickets = [{"status": "ok", "id": f"receipt-{t}"} for t in tokens]
            if len(tokens) == 5:
                return {"data": tickets[:4]}
            return {"data": tickets}

        chunks = _chunks(100, 5)
        assert [c.recipient_count() for c in chunks] == [100, 5]
        tickets = _run_async(DispatchEngine(FakeTransport(responder)).dispatch(chunks))

        first, second = tickets.outcomes
        assert not first.is_error
        assert len(first) == 100
        assert [t.token for t in first] == chunks[0].all_recipients()
        assert second.is_error
        assert second.kind == BatchErrorKind.COUNT_MISMATCH
        assert second.expected_count == 5
        assert second.recipients == tuple(chunks[1].all_recipients())
        assert len(tickets.ids()) == 100

    def test_transport_failure_isolated(self):
        def responder(payload):
            if payload[0]["to"][0].startswith("ExponentPushToken[n1-"):
                return TransportError("connection reset")
            return FakeTransport.ok_tickets(payload)

        chunks = _chunks(100, 100, 100)
        tickets = _run_async(DispatchEngine(FakeTransport(responder)).dispatch(chunks))
        kinds = [o.kind if o.is_error else None for o in tickets]
        assert kinds == [None, BatchErrorKind.TRANSPORT, None]
        assert len(tickets.ids()) == 200
        failed = tickets.batch_errors()[0]
        assert failed.message == "connection reset"
        assert isinstance(failed.to_exception(), TransportError)

    def test_unexpected_exception_isolated(self):
        def responder(payload):
            if len(payload[0]["to"]) == 1:
                return KeyError("bug")
            return FakeTransport.ok_tickets(payload)

        tickets = _run_async(DispatchEngine(FakeTransport(responder)).dispatch(_chunks(100, 1)))
        assert not tickets.outcomes[0].is_error
        assert tickets.outcomes[1].kind == BatchErrorKind.TRANSPORT

    def test_service_errors_isolated(self):
        def responder(payload):
            if len(payload[0]["to"]) == 2:
                return {"errors": [{"code": "VALIDATION_ERROR", "message": "bad"}]}
            return FakeTransport.ok_tickets(payload)

        tickets = _run_async(DispatchEngine(FakeTransport(responder)).dispatch(_chunks(100, 2)))
        assert tickets.outcomes[1].kind == BatchErrorKind.SERVICE_ERRORS
        assert not tickets.outcomes[0].is_error

    def test_concurrency_is_bounded(self):
        transport = FakeTransport(delay=0.01)
        engine = DispatchEngine(transport, PushConfig(concurrency=3))
        chunks = _chunks(*([10] * 12), limit=10)
        assert len(chunks) == 12
        tickets = _run_async(engine.dispatch(chunks))
        assert len(tickets) == 12
        assert len(transport.sent) == 12
        assert engine.peak_active <= 3
        assert engine.peak_active >= 2
        assert engine.active_count == 0

    def test_engine_reused_across_event_loops(self):
        transport = FakeTransport(delay=0.001)
        engine = DispatchEngine(transport, PushConfig(concurrency=2))
        for _ in range(2):
            tickets = _run_async(engine.dispatch(_chunks(*([1] * 8), limit=1)))
            assert len(tickets) == 8
            assert not tickets.has_errors
        assert len(transport.sent) == 16
        assert engine.peak_active <= 2

    def test_slot_released_after_failure(self):
        transport = FakeTransport(responder=lambda payload: TransportError("down"))
        engine = DispatchEngine(transport, PushConfig(concurrency=1))
        tickets = _run_async(engine.dispatch(_chunks(1, 1, 1, limit=1)))
        assert len(tickets.batch_errors()) == 3
        assert engine.active_count == 0

    def test_payload_sent_per_chunk(self):
        transport = FakeTransport()
        notification = Notification().to(make_tokens(150)).with_title("Hi")
        chunks = chunk_notifications([notification])
        _run_async(DispatchEngine(transport).dispatch(chunks))
        assert sorted(len(p[0]["to"]) for p in transport.sent) == [50, 100]
        assert all(p[0]["title"] == "Hi" for p in transport.sent)


# ── HTTP transport ───────────────────────────────────────────────────


class TestHttpxTransport:
    """Tests for the httpx transport."""

    def test_send_batch_posts_json(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": [{"status": "ok", "id": "x"}]})

        transport = HttpxTransport(client=_mock_client(handler))
        body = _run_async(transport.send_batch([{"to": ["ExpoPushToken[a]"]}]))
        assert body == {"data": [{"status": "ok", "id": "x"}]}
        assert seen["path"] == "/--/api/v2/push/send"
        assert seen["body"] == [{"to": ["ExpoPushToken[a]"]}]

    def test_fetch_receipts_posts_ids(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"data": {}})

        transport = HttpxTransport(client=_mock_client(handler))
        _run_async(transport.fetch_receipts(["a", "b"]))
        assert seen["path"] == "/--/api/v2/push/getReceipts"
        assert seen["body"] == {"ids": ["a", "b"]}

    def test_error_status_still_parsed(self):
        def handler(request):
            return httpx.Response(400, json={"errors": [{"code": "VALIDATION_ERROR", "message": "bad"}]})

        transport = HttpxTransport(client=_mock_client(handler))
        body = _run_async(transport.send_batch([]))
        assert body["errors"][0]["code"] == "VALIDATION_ERROR"

    def test_non_json_body_raises(self):
        def handler(request):
            return httpx.Response(502, text="<html>Bad Gateway</html>")

        transport = HttpxTransport(client=_mock_client(handler))
        with pytest.raises(TransportError) as exc_info:
            _run_async(transport.send_batch([]))
        assert exc_info.value.status_code == 502

    def test_network_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        transport = HttpxTransport(client=_mock_client(handler))
        with pytest.raises(TransportError):
            _run_async(transport.fetch_receipts(["a"]))

    def test_headers(self):
        transport = HttpxTransport(PushConfig(access_token="secret"))
        headers = transport._headers()
        assert headers["Authorization"] == "Bearer secret"
        assert headers["Accept"] == "application/json"
        assert "gzip" in headers["Accept-Encoding"]
        assert headers["User-Agent"].startswith("expo-server-sdk-python/")

    def test_no_auth_header_without_token(self):
        assert "Authorization" not in HttpxTransport()._headers()

    def test_builds_pooled_client(self):
        async def run():
            transport = HttpxTransport(PushConfig(concurrency=4, base_url="http://push.test"))
            client = transport._get_client()
            assert client.base_url.host == "push.test"
            assert client.headers["User-Agent"].startswith("expo-server-sdk-python/")
            await transport.aclose()
            assert transport._client is None

        _run_async(run())


# ── Client ───────────────────────────────────────────────────────────


class TestPushClient:
    """Tests for the client facade."""

    def test_send_and_correlate(self):
        transport = FakeTransport()
        client = PushClient(transport=transport)
        recipients = make_tokens(250)
        tickets = _run_async(client.send([Notification().to(recipients).with_body("Hi")]))
        assert len(transport.sent) == 3
        assert len(tickets.ids()) == 250
        mapping = tickets.token_by_receipt_id()
        assert all(mapping[f"receipt-{token}"] == token for token in recipients)

    def test_send_strict_raises_batch_error(self):
        transport = FakeTransport(lambda payload: {"errors": [{"message": "nope"}]})
        client = PushClient(transport=transport)
        with pytest.raises(TicketsWithErrors):
            _run_async(client.send_strict([Notification().to(make_tokens(1))]))

    def test_send_strict_returns_error_tickets(self):
        def responder(payload):
            return {
                "data": [
                    {"status": "ok", "id": "r0"},
                    {
                        "status": "error",
                        "message": "x",
                        "details": {"error": "DeviceNotRegistered"},
                    },
                    {"status": "ok", "id": "r2"},
                ]
            }

        client = PushClient(transport=FakeTransport(responder))
        tickets = _run_async(client.send_strict([Notification().to(make_tokens(3))]))
        assert tickets.ids() == ["r0", "r2"]
        assert [t.token for t in tickets.errors()] == [make_tokens(3)[1]]

    def test_send_strict_passes_clean_result(self):
        client = PushClient(transport=FakeTransport())
        tickets = _run_async(client.send_strict([Notification().to(make_tokens(2))]))
        assert len(tickets.ids()) == 2

    def test_respects_configured_chunk_limit(self):
        transport = FakeTransport()
        client = PushClient(PushConfig(chunk_limit=10), transport=transport)
        _run_async(client.send([Notification().to(make_tokens(25))]))
        assert sorted(len(p[0]["to"]) for p in transport.sent) == [5, 10, 10]

    def test_receipts(self):
        transport = FakeTransport(receipts={"data": {"a": {"status": "ok"}}})
        client = PushClient(transport=transport)
        receipts = _run_async(client.receipts(["a", "b"]))
        assert receipts.unresolved_ids == ["b"]
        assert transport.receipt_requests == [["a", "b"]]

    def test_receipts_rejects_oversized_lookup(self):
        client = PushClient(transport=FakeTransport())
        with pytest.raises(InvalidArgument):
            _run_async(client.receipts([str(i) for i in range(301)]))

    def test_receipts_server_error(self):
        client = PushClient(transport=FakeTransport(receipts=["not", "a", "mapping"]))
        with pytest.raises(ServerError):
            _run_async(client.receipts(["a"]))

    def test_receipts_transport_error_propagates(self):
        client = PushClient(transport=FakeTransport(receipts=TransportError("down")))
        with pytest.raises(TransportError):
            _run_async(client.receipts(["a"]))

    def test_receipts_for_batches_ids(self):
        def receipts(ids):
            return {"data": {i: {"status": "ok"} for i in ids}}

        transport = FakeTransport(receipts=receipts)
        client = PushClient(PushConfig(receipt_chunk_limit=120), transport=transport)

        async def run():
            tickets = await client.send([Notification().to(make_tokens(250))])
            return tickets, await client.receipts_for(tickets)

        tickets, results = _run_async(run())
        assert [len(r) for r in transport.receipt_requests] == [120, 120, 10]
        assert [i for r in transport.receipt_requests for i in r] == tickets.ids()
        assert all(r.resolved for r in results)

    def test_end_to_end_over_http(self):
        def handler(request):
            body = json.loads(request.content)
            if request.url.path.endswith("/push/send"):
                tokens = [t for message in body for t in message["to"]]
                return httpx.Response(
                    200, json={"data": [{"status": "ok", "id": f"id-{t}"} for t in tokens]}
                )
            ids = body["ids"]
            return httpx.Response(200, json={"data": {ids[0]: {"status": "ok"}}})

        config = PushConfig()
        transport = HttpxTransport(config, client=_mock_client(handler, config))

        async def run():
            async with PushClient(config, transport=transport) as client:
                tickets = await client.send([Notification().to(make_tokens(3))])
                receipts = await client.receipts(tickets.ids())
                return tickets, receipts

        tickets, receipts = _run_async(run())
        assert len(tickets.ids()) == 3
        assert receipts.unresolved_ids == tickets.ids()[1:]

    def test_aclose_closes_transport(self):
        transport = FakeTransport()

        async def run():
            async with PushClient(transport=transport):
                pass

        _run_async(run())
        assert transport.closed

    def test_notification_factory(self):
        assert PushClient(transport=FakeTransport()).notification() == Notification()
