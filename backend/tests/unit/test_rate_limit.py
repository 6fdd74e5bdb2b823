import pytest

from errands.infra.rate_limit import allow


@pytest.mark.asyncio
async def test_rate_limit_allows_within_budget():
	assert await allow("chat_send", "u5", limit=2, window_seconds=60, now=1_000.0)
	assert await allow("chat_send", "u5", limit=2, window_seconds=60, now=1_001.0)


@pytest.mark.asyncio
async def test_rate_limit_blocks_when_budget_exhausted():
	await allow("chat_send", "u6", limit=1, window_seconds=60, now=1_000.0)
	assert not await allow("chat_send", "u6", limit=1, window_seconds=60, now=1_010.0)


@pytest.mark.asyncio
async def test_rate_limit_resets_in_next_window():
	await allow("chat_send", "u7", limit=1, window_seconds=60, now=1_000.0)
	assert await allow("chat_send", "u7", limit=1, window_seconds=60, now=1_080.0)


@pytest.mark.asyncio
async def test_budgets_are_per_actor():
	await allow("chat_send", "u8", limit=1, window_seconds=60, now=1_000.0)
	assert await allow("chat_send", "u9", limit=1, window_seconds=60, now=1_000.0)


@pytest.mark.asyncio
async def test_zero_limit_always_blocks():
	assert not await allow("chat_send", "u10", limit=0)
