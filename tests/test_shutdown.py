"""Tests for bounded-time closing of backend handles."""

from __future__ import annotations

import asyncio
import time

import pytest

from datastore_mcp.connectors.shutdown import pending_closes, safe_close


async def _drain_pending() -> None:
    tasks = pending_closes()
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)


@pytest.mark.asyncio
async def test_primary_success() -> None:
    calls: list[str] = []

    async def close() -> None:
        calls.append("close")

    def fallback() -> None:
        calls.append("fallback")

    assert await safe_close(close, fallback, timeout_s=0.5)
    assert calls == ["close"]


@pytest.mark.asyncio
async def test_sync_primary_success() -> None:
    calls: list[str] = []
    assert await safe_close(lambda: calls.append("close"), timeout_s=0.5)
    assert calls == ["close"]


@pytest.mark.asyncio
async def test_hanging_primary_returns_within_timeout() -> None:
    calls: list[str] = []

    async def close() -> None:
        await asyncio.Event().wait()

    def fallback() -> None:
        calls.append("fallback")

    start = time.monotonic()
    result = await safe_close(close, fallback, timeout_s=0.1, label="hung")
    elapsed = time.monotonic() - start

    try:
        assert result is False
        assert calls == ["fallback"]
        assert elapsed < 0.5
        assert len(pending_closes()) == 1
    finally:
        await _drain_pending()


@pytest.mark.asyncio
async def test_failing_primary_runs_fallback() -> None:
    calls: list[str] = []

    async def close() -> None:
        raise RuntimeError("socket already gone")

    async def fallback() -> None:
        calls.append("fallback")

    assert await safe_close(close, fallback, timeout_s=0.5) is False
    assert calls == ["fallback"]
    assert not pending_closes()


@pytest.mark.asyncio
async def test_failing_fallback_is_swallowed() -> None:
    def close() -> None:
        raise OSError("boom")

    def fallback() -> None:
        raise OSError("boom again")

    assert await safe_close(close, fallback, timeout_s=0.5) is False


@pytest.mark.asyncio
async def test_hanging_fallback_is_bounded() -> None:
    async def hang() -> None:
        await asyncio.Event().wait()

    start = time.monotonic()
    try:
        assert await safe_close(hang, hang, timeout_s=0.3) is False
        assert time.monotonic() - start < 0.5
        assert len(pending_closes()) == 2
    finally:
        await _drain_pending()


@pytest.mark.asyncio
async def test_slow_failure_leaves_fallback_only_the_remaining_window() -> None:
    started: list[str] = []

    async def close() -> None:
        await asyncio.sleep(0.2)
        raise RuntimeError("reset by peer")

    async def fallback() -> None:
        started.append("fallback")
        await asyncio.Event().wait()

    start = time.monotonic()
    try:
        assert await safe_close(close, fallback, timeout_s=0.3) is False
        assert time.monotonic() - start < 0.5
        assert started == ["fallback"]
        assert len(pending_closes()) == 1
    finally:
        await _drain_pending()
