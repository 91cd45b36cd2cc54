import pytest

from contact_form_analyzer.polling import poll_until


def _fetcher(values):
    calls = []

    async def fetch():
        calls.append(len(calls))
        return values[min(len(calls) - 1, len(values) - 1)]

    return fetch, calls


@pytest.mark.asyncio
async def test_returns_on_first_truthy_value():
    fetch, calls = _fetcher([[], [], ["a"]])

    result = await poll_until(fetch, max_attempts=3, delay=0)

    assert result.ok is True
    assert result.value == ["a"]
    assert result.attempts == 3
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_gives_up_with_last_value():
    fetch, calls = _fetcher([1, 2, 3, 4])

    result = await poll_until(fetch, predicate=lambda n: n > 10, max_attempts=3, delay=0)

    assert result.ok is False
    assert result.value == 3
    assert result.attempts == 3
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_at_least_one_attempt():
    fetch, calls = _fetcher([0])

    result = await poll_until(fetch, max_attempts=0, delay=0)

    assert result.attempts == 1
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_timeout_budget_stops_early():
    fetch, calls = _fetcher([0])

    # 次の待機が予算を超えるので2回目は呼ばれない
    result = await poll_until(fetch, max_attempts=5, delay=10, timeout=1)

    assert result.ok is False
    assert result.attempts == 1
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_fetch_errors_propagate():
    async def fetch():
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError, match="boom"):
        await poll_until(fetch, delay=0)
