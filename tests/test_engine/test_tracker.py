"""Tests for the chain head tracker."""

from __future__ import annotations

import pytest

from chainmon.chain.models import Header
from chainmon.engine.tracker import ChainHeadTracker, TrackerState
from chainmon.errors.chain_errors import ChainError, SubscriptionError
from chainmon.metrics.collector import MonitorMetrics
from chainmon.reports.models import NotificationReport
from tests.fakes import (
    ALICE,
    BOB,
    CHARLIE,
    FakeChainClient,
    RecordingReporter,
    block_hash,
    make_config,
    transfer,
    transfer_event,
)

ALICE_POLKADOT = "15oF4uVJwmo4TdGW7VfQxNLavjCXviqxT9S1MgbjMNHr6Sp5"


def _busy_blocks(*numbers: int) -> dict:
    return {
        n: ([transfer(0, ALICE, BOB, n)], [transfer_event(ALICE, BOB, n)]) for n in numbers
    }


async def _run_to_end(tracker: ChainHeadTracker) -> None:
    with pytest.raises(SubscriptionError, match="ended"):
        await tracker.run()


class TestHeaderSequencing:
    async def test_consecutive_heads(self) -> None:
        client = FakeChainClient(heads=[1, 2, 3])
        tracker = ChainHeadTracker(client, make_config(), [], finalized=True)
        await _run_to_end(tracker)
        assert client.processed_hashes == [block_hash(n) for n in (1, 2, 3)]
        assert client.fetched_headers == []
        assert tracker.last_block == 3

    async def test_gap_is_filled_in_order(self) -> None:
        client = FakeChainClient(heads=[5, 9])
        tracker = ChainHeadTracker(client, make_config(), [], finalized=True)
        await _run_to_end(tracker)
        assert client.processed_hashes == [block_hash(n) for n in (5, 6, 7, 8, 9)]
        assert client.fetched_headers == [6, 7, 8]
        assert tracker.last_block == 9

    async def test_first_header_is_not_gap_filled(self) -> None:
        client = FakeChainClient(heads=[100])
        tracker = ChainHeadTracker(client, make_config(), [], finalized=False)
        await _run_to_end(tracker)
        assert client.processed_hashes == [block_hash(100)]
        assert client.fetched_headers == []

    async def test_regression_is_discarded(self) -> None:
        client = FakeChainClient(heads=[5, 6, 4, 6, 7])
        tracker = ChainHeadTracker(client, make_config(), [], finalized=True)
        await _run_to_end(tracker)
        assert client.processed_hashes == [block_hash(n) for n in (5, 6, 7)]
        assert tracker.last_block == 7

    async def test_backfill_metrics(self) -> None:
        metrics = MonitorMetrics()
        client = FakeChainClient(heads=[1, 4])
        tracker = ChainHeadTracker(client, make_config(), [], finalized=True, metrics=metrics)
        await _run_to_end(tracker)
        backfilled = metrics.registry.get_sample_value(
            "chainmon_blocks_backfilled_total", {"chain": "Polkadot"}
        )
        assert backfilled == 2.0


class TestReports:
    async def test_wildcard_finalized_scenario(self) -> None:
        """Heads 10 then 13 yield one report per block 10..13, in order."""
        reporter = RecordingReporter()
        client = FakeChainClient(heads=[10, 13], blocks=_busy_blocks(10, 11, 12, 13))
        config = make_config(accounts=[], method_subscription={"type": "all"})
        tracker = ChainHeadTracker(client, config, [reporter], finalized=True)
        await _run_to_end(tracker)

        reports = reporter.reports
        assert all(isinstance(r, NotificationReport) for r in reports)
        assert [r.block_number for r in reports] == [10, 11, 12, 13]
        for r in reports:
            assert len(r.items) == 2
            assert r.items[0].payload[1]["value"] == r.block_number
            assert all(item.is_wildcard for item in r.items)

    async def test_only_watched_accounts(self) -> None:
        reporter = RecordingReporter()
        blocks = {
            1: ([transfer(0, ALICE, BOB)], []),
            2: ([transfer(0, BOB, CHARLIE)], []),
        }
        client = FakeChainClient(heads=[1, 2], blocks=blocks)
        config = make_config(accounts=[{"address": ALICE, "label": "alice"}])
        tracker = ChainHeadTracker(client, config, [reporter], finalized=True)
        await _run_to_end(tracker)
        assert [r.block_number for r in reporter.reports] == [1]

    async def test_accounts_resolved_to_chain_format(self) -> None:
        reporter = RecordingReporter()
        blocks = {1: ([transfer(0, ALICE_POLKADOT, BOB)], [])}
        client = FakeChainClient(heads=[1], blocks=blocks, ss58_format=0)
        config = make_config(accounts=[{"address": ALICE, "label": "alice"}])
        tracker = ChainHeadTracker(client, config, [reporter], finalized=True)
        await _run_to_end(tracker)

        (report,) = reporter.reports
        assert report.items[0].account.address == ALICE_POLKADOT
        # config is left untouched
        assert config.accounts[0].address == ALICE


class TestLifecycle:
    async def test_states(self) -> None:
        client = FakeChainClient(heads=[1])
        tracker = ChainHeadTracker(client, make_config(), [], finalized=True)
        assert tracker.state is TrackerState.IDLE
        await _run_to_end(tracker)
        assert tracker.state is TrackerState.FAILED
        assert tracker.chain == "Polkadot"
        assert client.connected
        assert client.closed

    async def test_connect_failure(self) -> None:
        client = FakeChainClient(connect_error=ChainError("refused"))
        tracker = ChainHeadTracker(client, make_config(), [], finalized=True)
        with pytest.raises(ChainError, match="refused"):
            await tracker.run()
        assert tracker.state is TrackerState.FAILED

    async def test_on_header_requires_connection(self) -> None:
        tracker = ChainHeadTracker(FakeChainClient(), make_config(), [], finalized=True)
        with pytest.raises(RuntimeError, match="not connected"):
            await tracker.on_header(Header(number=1, hash=block_hash(1)))

    async def test_startup_log_describes_filters(self, caplog: pytest.LogCaptureFixture) -> None:
        config = make_config(
            accounts=[{"address": ALICE, "label": "alice"}],
            method_subscription={"type": "only", "only": [{"pallet": "Balances"}]},
        )
        tracker = ChainHeadTracker(FakeChainClient(heads=[1]), config, [], finalized=True)
        with caplog.at_level("INFO", logger="chainmon.engine.tracker"):
            await _run_to_end(tracker)
        assert "(1 accounts, filtered methods)" in caplog.text

    async def test_startup_log_wildcard(self, caplog: pytest.LogCaptureFixture) -> None:
        tracker = ChainHeadTracker(FakeChainClient(heads=[1]), make_config(), [], finalized=True)
        with caplog.at_level("INFO", logger="chainmon.engine.tracker"):
            await _run_to_end(tracker)
        assert "(all accounts, all methods)" in caplog.text
