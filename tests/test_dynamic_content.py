import pytest
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from contact_form_analyzer import dynamic_content
from contact_form_analyzer.dynamic_content import (
    detect_spa_framework,
    scroll_to_load_content,
    settle_page,
    wait_for_dynamic_content,
    wait_for_forms,
    wait_for_selectors,
)
from fake_browser import FakePage


@pytest.fixture(autouse=True)
def no_poll_delay(monkeypatch):
    monkeypatch.setattr(dynamic_content, "CONTENT_POLL_DELAY_SEC", 0)


@pytest.mark.asyncio
async def test_settle_page_order():
    page = FakePage()

    await settle_page(page, 30000)

    assert page.load_states == ["domcontentloaded", "networkidle"]
    assert page.waits == [dynamic_content.SETTLE_DELAY_MS]


@pytest.mark.asyncio
async def test_content_loaded():
    page = FakePage(body_lengths=[500])

    result = await wait_for_dynamic_content(page)

    assert result.loaded is True
    assert result.error is None
    assert page.body_checks == 1


@pytest.mark.asyncio
async def test_network_idle_timeout_is_tolerated():
    page = FakePage(body_lengths=[500])
    page.load_state_errors["networkidle"] = PlaywrightTimeoutError("Timeout 15000ms exceeded")

    result = await wait_for_dynamic_content(page)

    assert result.loaded is True
    assert page.waits == [dynamic_content.SETTLE_DELAY_MS]


@pytest.mark.asyncio
async def test_dom_ready_timeout_is_reported():
    page = FakePage()
    page.load_state_errors["domcontentloaded"] = PlaywrightTimeoutError("Timeout 10000ms exceeded")

    result = await wait_for_dynamic_content(page)

    assert result.loaded is False
    assert "10000ms" in result.error
    assert page.body_checks == 0


@pytest.mark.asyncio
async def test_late_content_is_picked_up_by_polling():
    page = FakePage(body_lengths=[40, 80, 300])

    result = await wait_for_dynamic_content(page)

    assert result.loaded is True
    assert page.body_checks == 3


@pytest.mark.asyncio
async def test_thin_content_gives_up_after_three_polls():
    page = FakePage(body_lengths=[10, 20, 30, 500])

    result = await wait_for_dynamic_content(page)

    assert result.loaded is False
    assert result.error == "Page loaded but no content found"
    assert page.body_checks == 3


@pytest.mark.asyncio
async def test_exactly_min_length_is_not_enough(monkeypatch):
    monkeypatch.setattr(dynamic_content, "CONTENT_POLL_ATTEMPTS", 1)
    page = FakePage(body_lengths=[dynamic_content.MIN_CONTENT_LENGTH])

    result = await wait_for_dynamic_content(page)

    assert result.loaded is False


@pytest.mark.asyncio
async def test_scroll_never_raises():
    page = FakePage()
    await scroll_to_load_content(page)
    assert page.scrolled == 1

    broken = FakePage()
    broken.evaluate_error = RuntimeError("Execution context was destroyed")
    await scroll_to_load_content(broken)
    assert broken.scrolled == 0


@pytest.mark.asyncio
async def test_detect_spa_framework():
    assert await detect_spa_framework(FakePage(framework="React")) == "React"
    assert await detect_spa_framework(FakePage()) is None

    broken = FakePage(framework="Vue")
    broken.evaluate_error = RuntimeError("boom")
    assert await detect_spa_framework(broken) is None


@pytest.mark.asyncio
async def test_wait_for_selectors_any_visible():
    page = FakePage(visible_selectors=["a"])

    assert await wait_for_selectors(page, ["nav", "header", "a"], 100) is True
    assert await wait_for_selectors(page, ["nav", "header"], 100) is False
    assert await wait_for_selectors(page, [], 100) is False


@pytest.mark.asyncio
async def test_wait_for_forms():
    assert await wait_for_forms(FakePage(visible_selectors=["form"])) is True
    assert await wait_for_forms(FakePage(visible_selectors=[])) is False
