# SPDX-License-Identifier: Apache-2.0
from __future__ import annotations

import pytest

from ledgerpipe.errors import RpcRequestError, UnexpectedError
from ledgerpipe.events.filters import EventFilter
from ledgerpipe.streaming.dedup import RecentEventIds
from ledgerpipe.streaming.delivery import EventDelivery
from ledgerpipe.streaming.live import LiveIngestor
from ledgerpipe.streaming.models import LivePollResult, RunControl
from tests.fakes import CONTRACT_B, FakeLedgerSource, RecordingHandler, make_raw_event


def _setup(source, handler, *, filters=(), skip_wait_if_behind=False, page_size=2):
    control = RunControl()
    control.begin()
    ingestor = LiveIngestor(
        source,
        control,
        page_size=page_size,
        paging_interval_ms=0,
        wait_ledger_interval_ms=1,
        skip_wait_if_behind=skip_wait_if_behind,
    )
    delivery = EventDelivery(handler, RecentEventIds(), filters)
    return control, ingestor, delivery


class TestLiveIngestorPaging:
    """One poll walks every page of the requested ledger."""

    @pytest.mark.asyncio
    async def test_all_pages_delivered_in_order(self):
        source = FakeLedgerSource()
        events = [make_raw_event(95_000, tx=n) for n in range(1, 6)]
        source.add_events(95_000, *events)
        handler = RecordingHandler()
        _, ingestor, delivery = _setup(source, handler)

        result = await ingestor.ingest_ledger(95_000, delivery)

        assert handler.ids == [e.id for e in events]
        calls = source.calls_to("getEvents")
        assert len(calls) == 4  # 2 + 2 + 1 + empty page
        assert calls[0]["start_ledger"] == 95_000
        assert calls[0]["end_ledger"] == 95_001
        assert calls[0]["cursor"] is None
        assert all(c["cursor"] for c in calls[1:])
        assert result == LivePollResult(95_001, should_wait=True)

    @pytest.mark.asyncio
    async def test_empty_ledger_is_single_request(self):
        source = FakeLedgerSource()
        handler = RecordingHandler()
        _, ingestor, delivery = _setup(source, handler)

        await ingestor.ingest_ledger(95_000, delivery)

        assert len(source.calls_to("getEvents")) == 1
        assert handler.events == []

    @pytest.mark.asyncio
    async def test_filters_and_page_size_sent_to_source(self):
        source = FakeLedgerSource()
        handler = RecordingHandler()
        flt = EventFilter(contract_ids=[CONTRACT_B])
        _, ingestor, delivery = _setup(source, handler, filters=[flt], page_size=7)

        await ingestor.ingest_ledger(95_000, delivery)

        call = source.calls_to("getEvents")[0]
        assert call["filters"] == [flt]
        assert call["limit"] == 7


class TestLiveIngestorChainState:
    """Next ledger and wait decision against the reported tip."""

    @pytest.mark.asyncio
    async def test_source_behind_requested_ledger_stays_and_waits(self):
        source = FakeLedgerSource(oldest_ledger=90_000, latest_ledger=99_999)
        _, ingestor, delivery = _setup(source, RecordingHandler())

        result = await ingestor.ingest_ledger(100_000, delivery)

        assert result == LivePollResult(100_000, should_wait=True)

    @pytest.mark.asyncio
    async def test_at_tip_advances_and_waits(self):
        source = FakeLedgerSource(oldest_ledger=90_000, latest_ledger=100_000)
        _, ingestor, delivery = _setup(source, RecordingHandler())

        result = await ingestor.ingest_ledger(100_000, delivery)

        assert result == LivePollResult(100_001, should_wait=True)

    @pytest.mark.asyncio
    async def test_behind_tip_waits_by_default(self):
        source = FakeLedgerSource()
        _, ingestor, delivery = _setup(source, RecordingHandler())

        result = await ingestor.ingest_ledger(95_000, delivery)

        assert result == LivePollResult(95_001, should_wait=True)

    @pytest.mark.asyncio
    async def test_behind_tip_skips_wait_when_configured(self):
        source = FakeLedgerSource()
        _, ingestor, delivery = _setup(source, RecordingHandler(), skip_wait_if_behind=True)

        result = await ingestor.ingest_ledger(95_000, delivery)

        assert result == LivePollResult(95_001, should_wait=False)


class TestLiveIngestorDelivery:
    """Stop ledger, dedup and stop checkpoints during a poll."""

    @pytest.mark.asyncio
    async def test_event_past_stop_ledger_ends_without_delivery(self):
        source = FakeLedgerSource()
        inside = make_raw_event(95_000)
        past = make_raw_event(95_001)
        source.add_events(95_000, inside, past)
        handler = RecordingHandler()
        _, ingestor, delivery = _setup(source, handler)

        result = await ingestor.ingest_ledger(95_000, delivery, stop_ledger=95_000)

        assert handler.ids == [inside.id]
        assert result.hit_stop_ledger
        assert result.next_ledger == 95_001
        assert not result.should_wait

    @pytest.mark.asyncio
    async def test_repeated_event_delivered_once(self):
        """The same event on two pages reaches the handler once."""
        source = FakeLedgerSource()
        event = make_raw_event(95_000)
        source.add_events(95_000, event, make_raw_event(95_000, tx=2), event)
        handler = RecordingHandler()
        _, ingestor, delivery = _setup(source, handler)

        await ingestor.ingest_ledger(95_000, delivery)

        assert handler.ids.count(event.id) == 1
        assert len(handler.events) == 2

    @pytest.mark.asyncio
    async def test_local_filter_drops_non_matching_events(self):
        source = FakeLedgerSource()
        source.add_events(95_000, make_raw_event(95_000))
        handler = RecordingHandler()
        _, ingestor, delivery = _setup(
            source, handler, filters=[EventFilter(contract_ids=[CONTRACT_B])]
        )

        await ingestor.ingest_ledger(95_000, delivery)

        assert handler.events == []

    @pytest.mark.asyncio
    async def test_async_handler_is_awaited(self):
        source = FakeLedgerSource()
        source.add_events(95_000, make_raw_event(95_000))
        seen = []

        async def handler(event):
            seen.append(event.id)

        _, ingestor, delivery = _setup(source, handler)
        await ingestor.ingest_ledger(95_000, delivery)

        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_stop_during_poll_returns_same_ledger(self):
        """Stopping mid-poll finishes the page but fetches no further page."""
        source = FakeLedgerSource()
        source.add_events(95_000, *[make_raw_event(95_000, tx=n) for n in range(1, 6)])
        control_box = {}
        handler = RecordingHandler(on_event=lambda _e: control_box["control"].stop())
        control, ingestor, delivery = _setup(source, handler)
        control_box["control"] = control

        result = await ingestor.ingest_ledger(95_000, delivery)

        assert result == LivePollResult(95_000, should_wait=True)
        assert len(handler.events) == 2
        assert len(source.calls_to("getEvents")) == 1


class TestLiveIngestorErrors:
    """Source and handler failures are not retried."""

    @pytest.mark.asyncio
    async def test_source_error_propagates_unchanged(self):
        source = FakeLedgerSource()
        error = RpcRequestError("getEvents", "connection refused")
        source.errors["getEvents"] = error
        _, ingestor, delivery = _setup(source, RecordingHandler())

        with pytest.raises(RpcRequestError) as exc_info:
            await ingestor.ingest_ledger(95_000, delivery)

        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_unclassified_source_error_is_wrapped(self):
        source = FakeLedgerSource()
        source.errors["getEvents"] = KeyError("cursor")
        _, ingestor, delivery = _setup(source, RecordingHandler())

        with pytest.raises(UnexpectedError) as exc_info:
            await ingestor.ingest_ledger(95_000, delivery)

        assert isinstance(exc_info.value.cause, KeyError)
        assert exc_info.value.data["ledger"] == 95_000

    @pytest.mark.asyncio
    async def test_unknown_event_type_is_wrapped(self):
        source = FakeLedgerSource()
        source.add_events(95_000, make_raw_event(95_000).model_copy(update={"type": "bogus"}))
        handler = RecordingHandler()
        _, ingestor, delivery = _setup(source, handler)

        with pytest.raises(UnexpectedError) as exc_info:
            await ingestor.ingest_ledger(95_000, delivery)

        assert isinstance(exc_info.value.cause, ValueError)
        assert exc_info.value.data == {"ledger": 95_000, "method": "getEvents"}
        assert handler.events == []

    @pytest.mark.asyncio
    async def test_handler_error_propagates_and_event_is_not_recorded(self):
        source = FakeLedgerSource()
        event = make_raw_event(95_000)
        source.add_events(95_000, event)

        def handler(_event):
            raise RuntimeError("sink unavailable")

        _, ingestor, delivery = _setup(source, handler)

        with pytest.raises(RuntimeError, match="sink unavailable"):
            await ingestor.ingest_ledger(95_000, delivery)

        assert not delivery.dedup.seen(event.id)


class TestLiveIngestorRun:
    """Continuous loop bounded by a stop ledger."""

    @pytest.mark.asyncio
    async def test_run_until_stop_ledger(self):
        source = FakeLedgerSource(oldest_ledger=90_000, latest_ledger=100_000)
        source.add_events(99_999, make_raw_event(99_999))
        source.add_events(100_000, make_raw_event(100_000))
        handler = RecordingHandler()
        _, ingestor, delivery = _setup(source, handler)

        resume = await ingestor.run(99_999, delivery, stop_ledger=100_000)

        assert resume == 100_001
        assert handler.ledgers == [99_999, 100_000]
        starts = [c["start_ledger"] for c in source.calls_to("getEvents") if not c["cursor"]]
        assert starts == [99_999, 100_000]

    @pytest.mark.asyncio
    async def test_run_exits_when_stopped(self):
        source = FakeLedgerSource(oldest_ledger=90_000, latest_ledger=100_000)
        control, ingestor, delivery = _setup(source, RecordingHandler())
        polls = []

        def on_call(method, params):
            polls.append(params.get("start_ledger"))
            if len(polls) == 3:
                control.stop()

        source.on_call = on_call

        resume = await ingestor.run(100_000, delivery)

        assert len(polls) == 3
        assert resume == 100_001
