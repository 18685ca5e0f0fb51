"""
Position Stream Tests
=====================

Tests for primary → fallback selection, validation, throttling and
subscription teardown.
"""

import asyncio

import pytest

from guided_delivery.errors import ProviderUnavailable
from guided_delivery.models.position import PositionSource
from guided_delivery.positioning import (
    FloorEstimator,
    PositionStream,
    ScriptedPositionProvider,
)


def fix(timestamp: int, **overrides) -> dict:
    data = {
        "latitude": 51.50135,
        "longitude": -0.14189,
        "floor": 2,
        "accuracy": 2.0,
        "timestamp": timestamp,
    }
    data.update(overrides)
    return data


def fixes(count: int, start: int = 0, step: int = 1000) -> list:
    return [fix(start + i * step) for i in range(count)]


def make_stream(primary, fallback, **kwargs) -> PositionStream:
    kwargs.setdefault("min_sample_interval_millis", 0)
    kwargs.setdefault("init_timeout_seconds", 1.0)
    return PositionStream(primary=primary, fallback=fallback, **kwargs)


async def collect(stream: PositionStream, wait: float = 0.05):
    samples, errors = [], []
    unsubscribe = await stream.subscribe(samples.append, errors.append)
    await asyncio.sleep(wait)
    return samples, errors, unsubscribe


class TestProviderSelection:
    """Tests for primary/fallback selection."""

    def test_primary_used_when_available(self):
        primary = ScriptedPositionProvider(name="indoor", fixes=fixes(3))
        fallback = ScriptedPositionProvider(name="satellite", fixes=fixes(3))

        async def scenario():
            stream = make_stream(primary, fallback)
            samples, errors, unsubscribe = await collect(stream)
            assert stream.active_source == PositionSource.PRIMARY_INDOOR
            unsubscribe()
            return samples, errors

        samples, errors = asyncio.run(scenario())

        assert len(samples) == 3
        assert all(s.source == PositionSource.PRIMARY_INDOOR for s in samples)
        assert errors == []
        assert fallback.watch_calls == 0

    def test_fallback_on_primary_init_failure(self):
        """Indoor failing to start is silent; samples come from satellite."""
        primary = ScriptedPositionProvider(
            name="indoor", fixes=fixes(3), fail_on_start=RuntimeError("no venue data")
        )
        fallback = ScriptedPositionProvider(name="satellite", fixes=fixes(3))

        async def scenario():
            stream = make_stream(primary, fallback)
            samples, errors, unsubscribe = await collect(stream)
            unsubscribe()
            return stream, samples, errors

        stream, samples, errors = asyncio.run(scenario())

        assert len(samples) == 3
        assert all(s.source == PositionSource.FALLBACK_SATELLITE for s in samples)
        assert errors == []
        assert stream.fallback_engaged
        assert stream.metrics.fallback_hops == 1
        assert primary.active_watches == 0

    def test_fallback_on_primary_init_timeout(self):
        primary = ScriptedPositionProvider(
            name="indoor", fixes=fixes(3), start_delay_seconds=1.0
        )
        fallback = ScriptedPositionProvider(name="satellite", fixes=fixes(2))

        async def scenario():
            stream = make_stream(primary, fallback, init_timeout_seconds=0.05)
            samples, errors, unsubscribe = await collect(stream)
            unsubscribe()
            return samples, errors

        samples, errors = asyncio.run(scenario())

        assert [s.source for s in samples] == [PositionSource.FALLBACK_SATELLITE] * 2
        assert errors == []
        assert primary.active_watches == 0

    def test_both_providers_failing_reports_once(self):
        primary = ScriptedPositionProvider(
            name="indoor", fixes=[], fail_on_start=RuntimeError("no credentials")
        )
        fallback = ScriptedPositionProvider(
            name="satellite", fixes=[], fail_on_start=PermissionError("denied")
        )

        async def scenario():
            stream = make_stream(primary, fallback)
            samples, errors, unsubscribe = await collect(stream)
            unsubscribe()
            return stream, samples, errors

        stream, samples, errors = asyncio.run(scenario())

        assert samples == []
        assert len(errors) == 1
        assert isinstance(errors[0], ProviderUnavailable)
        assert [name for name, _ in errors[0].failures] == ["indoor", "satellite"]
        assert not stream.active

    def test_primary_lost_mid_session_hops_once(self):
        primary = ScriptedPositionProvider(name="indoor", fixes=fixes(5), fail_after=2)
        fallback = ScriptedPositionProvider(
            name="satellite", fixes=fixes(3, start=10_000)
        )

        async def scenario():
            stream = make_stream(primary, fallback)
            samples, errors, unsubscribe = await collect(stream, wait=0.1)
            assert primary.active_watches == 0
            assert fallback.active_watches == 1
            unsubscribe()
            return stream, samples, errors

        stream, samples, errors = asyncio.run(scenario())

        assert [s.source for s in samples] == (
            [PositionSource.PRIMARY_INDOOR] * 2 + [PositionSource.FALLBACK_SATELLITE] * 3
        )
        assert errors == []
        assert stream.metrics.fallback_hops == 1
        assert fallback.active_watches == 0

    def test_fallback_lost_is_terminal(self):
        primary = ScriptedPositionProvider(
            name="indoor", fixes=[], fail_on_start=RuntimeError("no venue data")
        )
        fallback = ScriptedPositionProvider(name="satellite", fixes=fixes(3), fail_after=1)

        async def scenario():
            stream = make_stream(primary, fallback)
            samples, errors, unsubscribe = await collect(stream, wait=0.1)
            unsubscribe()
            return stream, samples, errors

        stream, samples, errors = asyncio.run(scenario())

        assert len(samples) == 1
        assert len(errors) == 1
        assert isinstance(errors[0], ProviderUnavailable)
        assert not stream.active
        assert fallback.active_watches == 0

    def test_double_subscribe_rejected(self):
        primary = ScriptedPositionProvider(name="indoor", fixes=fixes(1))
        fallback = ScriptedPositionProvider(name="satellite", fixes=fixes(1))

        async def scenario():
            stream = make_stream(primary, fallback)
            await stream.subscribe(lambda s: None, lambda e: None)
            try:
                with pytest.raises(RuntimeError):
                    await stream.subscribe(lambda s: None, lambda e: None)
            finally:
                stream.unsubscribe()

        asyncio.run(scenario())


class TestUnsubscribe:
    """Tests for teardown guarantees."""

    def test_no_callbacks_after_unsubscribe(self):
        primary = ScriptedPositionProvider(
            name="indoor", fixes=fixes(100), interval_seconds=0.01
        )
        fallback = ScriptedPositionProvider(name="satellite", fixes=fixes(1))

        async def scenario():
            stream = make_stream(primary, fallback)
            samples, errors, unsubscribe = await collect(stream, wait=0.035)
            unsubscribe()
            seen = len(samples)
            await asyncio.sleep(0.05)
            return samples, seen

        samples, seen = asyncio.run(scenario())

        assert 0 < seen < 100
        assert len(samples) == seen
        assert primary.active_watches == 0

    def test_unsubscribe_is_idempotent(self):
        primary = ScriptedPositionProvider(name="indoor", fixes=fixes(2))
        fallback = ScriptedPositionProvider(name="satellite", fixes=fixes(1))

        async def scenario():
            stream = make_stream(primary, fallback)
            _, _, unsubscribe = await collect(stream)
            unsubscribe()
            unsubscribe()
            stream.unsubscribe()

        asyncio.run(scenario())

        assert primary.stop_calls == 1
        assert primary.active_watches == 0

    def test_unsubscribe_while_primary_starting(self):
        """A provider that finishes starting after teardown is stopped at once."""
        primary = ScriptedPositionProvider(
            name="indoor", fixes=fixes(5), start_delay_seconds=0.05
        )
        fallback = ScriptedPositionProvider(name="satellite", fixes=fixes(5))

        async def scenario():
            stream = make_stream(primary, fallback)
            samples = []
            task = asyncio.get_running_loop().create_task(
                stream.subscribe(samples.append, lambda e: None)
            )
            await asyncio.sleep(0.01)
            stream.unsubscribe()
            await task
            await asyncio.sleep(0.05)
            return samples

        samples = asyncio.run(scenario())

        assert samples == []
        assert primary.watch_calls == 1
        assert primary.active_watches == 0
        assert fallback.watch_calls == 0


class TestSampleHandling:
    """Tests for validation, throttling and floor estimation."""

    def test_invalid_fixes_dropped_silently(self):
        raw = [
            fix(0),
            fix(100, latitude=float("nan")),
            fix(200, latitude=100.0),
            fix(300, accuracy=-1.0),
            {"latitude": 51.5, "longitude": -0.14, "accuracy": 1.0},
            fix(500, longitude=float("inf")),
            fix(600),
        ]
        primary = ScriptedPositionProvider(name="indoor", fixes=raw)
        fallback = ScriptedPositionProvider(name="satellite", fixes=[])

        async def scenario():
            stream = make_stream(primary, fallback)
            samples, errors, unsubscribe = await collect(stream)
            unsubscribe()
            return stream, samples, errors

        stream, samples, errors = asyncio.run(scenario())

        assert [s.captured_at_millis for s in samples] == [0, 600]
        assert errors == []
        assert stream.metrics.invalid_dropped == 5

    def test_rate_bound(self):
        raw = [fix(t) for t in (0, 50, 100, 120, 250)]
        primary = ScriptedPositionProvider(name="indoor", fixes=raw)
        fallback = ScriptedPositionProvider(name="satellite", fixes=[])

        async def scenario():
            stream = make_stream(primary, fallback, min_sample_interval_millis=100)
            samples, _, unsubscribe = await collect(stream)
            unsubscribe()
            return stream, samples

        stream, samples = asyncio.run(scenario())

        assert [s.captured_at_millis for s in samples] == [0, 100, 250]
        assert stream.metrics.throttled == 2

    def test_backwards_timestamp_warns_but_emits(self):
        raw = [fix(1000), fix(500)]
        primary = ScriptedPositionProvider(name="indoor", fixes=raw)
        fallback = ScriptedPositionProvider(name="satellite", fixes=[])

        async def scenario():
            stream = make_stream(primary, fallback, min_sample_interval_millis=100)
            samples, _, unsubscribe = await collect(stream)
            unsubscribe()
            return stream, samples

        stream, samples = asyncio.run(scenario())

        assert len(samples) == 2
        assert stream.metrics.validation_warnings == 1

    def test_floor_estimated_from_altitude(self):
        raw = [
            fix(0, floor=None, altitude=38.2),
            fix(1000, floor=5, altitude=38.2),
            fix(2000, floor=None),
        ]
        primary = ScriptedPositionProvider(name="indoor", fixes=raw)
        fallback = ScriptedPositionProvider(name="satellite", fixes=[])
        estimator = FloorEstimator(floor_height_meters=4.0, ground_altitude=30.0)

        async def scenario():
            stream = make_stream(primary, fallback, floor_estimator=estimator)
            samples, _, unsubscribe = await collect(stream)
            unsubscribe()
            return samples

        samples = asyncio.run(scenario())

        assert [s.floor_level for s in samples] == [2, 5, None]

    def test_sample_callback_failure_does_not_stop_stream(self):
        primary = ScriptedPositionProvider(name="indoor", fixes=fixes(3))
        fallback = ScriptedPositionProvider(name="satellite", fixes=[])
        seen = []

        def on_sample(sample):
            seen.append(sample)
            raise RuntimeError("render failed")

        async def scenario():
            stream = make_stream(primary, fallback)
            unsubscribe = await stream.subscribe(on_sample, lambda e: None)
            await asyncio.sleep(0.05)
            unsubscribe()

        asyncio.run(scenario())

        assert len(seen) == 3


class TestSnapshot:
    """Tests for one-shot reads."""

    def test_snapshot_from_primary(self):
        primary = ScriptedPositionProvider(name="indoor", fixes=fixes(2))
        fallback = ScriptedPositionProvider(name="satellite", fixes=fixes(2))

        sample = asyncio.run(make_stream(primary, fallback).get_snapshot())

        assert sample.source == PositionSource.PRIMARY_INDOOR
        assert sample.floor_level == 2

    def test_snapshot_falls_back(self):
        primary = ScriptedPositionProvider(
            name="indoor", fixes=[], fail_on_start=RuntimeError("no venue data")
        )
        fallback = ScriptedPositionProvider(name="satellite", fixes=fixes(1))

        sample = asyncio.run(make_stream(primary, fallback).get_snapshot())

        assert sample.source == PositionSource.FALLBACK_SATELLITE

    def test_snapshot_invalid_primary_fix_falls_back(self):
        primary = ScriptedPositionProvider(name="indoor", fixes=[fix(0, latitude=123.0)])
        fallback = ScriptedPositionProvider(name="satellite", fixes=fixes(1))

        sample = asyncio.run(make_stream(primary, fallback).get_snapshot())

        assert sample.source == PositionSource.FALLBACK_SATELLITE

    def test_snapshot_both_failing(self):
        primary = ScriptedPositionProvider(
            name="indoor", fixes=[], fail_on_start=RuntimeError("no venue data")
        )
        fallback = ScriptedPositionProvider(name="satellite", fixes=[])

        with pytest.raises(ProviderUnavailable) as exc_info:
            asyncio.run(make_stream(primary, fallback).get_snapshot())

        assert len(exc_info.value.failures) == 2


class TestScriptedProvider:
    """Tests for the scripted provider's watch bookkeeping."""

    def test_repeated_watch_cycles_leave_nothing_running(self):
        provider = ScriptedPositionProvider(
            name="indoor", fixes=fixes(50), interval_seconds=0.01
        )
        received = []

        async def scenario():
            for _ in range(5):
                stop = await provider.watch(received.append, lambda exc: None)
                await asyncio.sleep(0.015)
                stop()
                stop()
            seen = len(received)
            await asyncio.sleep(0.05)
            return seen

        seen = asyncio.run(scenario())

        assert len(received) == seen
        assert provider.watch_calls == 5
        assert provider.stop_calls == 5
        assert provider.active_watches == 0
