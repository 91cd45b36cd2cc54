from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional

from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from .models import DynamicContentResult
from .polling import poll_until

log = logging.getLogger(__name__)

# 待機時間（ms）。SPA の描画遅延を吸収するための固定値
DOM_READY_TIMEOUT_MS = 10000
NETWORK_IDLE_TIMEOUT_MS = 15000
SETTLE_DELAY_MS = 3000
# 本文がこの文字数を超えたら「描画済み」とみなす
MIN_CONTENT_LENGTH = 100
CONTENT_POLL_ATTEMPTS = 3
CONTENT_POLL_DELAY_SEC = 2.0

BODY_TEXT_LENGTH_JS = """
() => {
    const body = document.body;
    if (!body) return 0;
    const text = body.innerText || body.textContent || "";
    return text.trim().length;
}
"""

# viewport 単位で最大5ステップ下へスクロール → 最下部 → 先頭へ戻す
SCROLL_JS = """
async () => {
    const sleep = (ms) => new Promise((resolve) => setTimeout(resolve, ms));
    const scrollHeight = document.documentElement.scrollHeight;
    const viewportHeight = window.innerHeight || 800;
    const steps = Math.min(Math.ceil(scrollHeight / viewportHeight), 5);
    for (let i = 0; i <= steps; i++) {
        window.scrollTo(0, viewportHeight * i);
        await sleep(1000);
    }
    window.scrollTo(0, document.documentElement.scrollHeight);
    await sleep(1000);
    window.scrollTo(0, 0);
    await sleep(500);
}
"""

SPA_FRAMEWORK_JS = """
() => {
    if (window.__REACT_DEVTOOLS_GLOBAL_HOOK__ ||
        document.querySelector("[data-reactroot]") ||
        document.querySelector("[data-reactid]")) {
        return "React";
    }
    if (window.__VUE__ || document.querySelector("[data-v-app]")) {
        return "Vue";
    }
    if (window.ng || window.getAllAngularRootElements || document.querySelector("[ng-version]")) {
        return "Angular";
    }
    if (window.__NEXT_DATA__) {
        return "Next.js";
    }
    if (window.__NUXT__) {
        return "Nuxt";
    }
    return null;
}
"""


async def settle_page(page: Page, timeout_ms: int = 30000) -> None:
    """
    DOM 構築完了 → networkidle（タイムアウトしても続行）→ 固定待ち。
    domcontentloaded のタイムアウトは呼び出し側へ伝播する。
    """
    await page.wait_for_load_state("domcontentloaded", timeout=min(DOM_READY_TIMEOUT_MS, timeout_ms))
    try:
        await page.wait_for_load_state("networkidle", timeout=min(NETWORK_IDLE_TIMEOUT_MS, timeout_ms))
    except PlaywrightTimeoutError:
        # 常時通信しているサイトでは networkidle に到達しない
        log.debug("[ready] networkidle timeout (ignored) url=%s", getattr(page, "url", ""))
    await page.wait_for_timeout(SETTLE_DELAY_MS)


async def wait_for_dynamic_content(page: Page, timeout_ms: int = 30000) -> DynamicContentResult:
    """描画済みの本文が取れるまで待つ。例外は投げず loaded=False で返す。"""
    try:
        await settle_page(page, timeout_ms)

        async def body_length() -> int:
            return int(await page.evaluate(BODY_TEXT_LENGTH_JS) or 0)

        polled = await poll_until(
            body_length,
            predicate=lambda n: n > MIN_CONTENT_LENGTH,
            max_attempts=CONTENT_POLL_ATTEMPTS,
            delay=CONTENT_POLL_DELAY_SEC,
            timeout=timeout_ms / 1000,
            label="ready",
        )
        if not polled.ok:
            log.info("[ready] thin content (%s chars) url=%s", polled.value, getattr(page, "url", ""))
            return DynamicContentResult(loaded=False, error="Page loaded but no content found")
        return DynamicContentResult(loaded=True)
    except Exception as e:
        log.info("[ready] wait failed url=%s: %s", getattr(page, "url", ""), e)
        return DynamicContentResult(loaded=False, error=str(e) or e.__class__.__name__)


async def scroll_to_load_content(page: Page) -> None:
    try:
        await page.evaluate(SCROLL_JS)
    except Exception:
        log.debug("[ready] scroll failed (ignored) url=%s", getattr(page, "url", ""), exc_info=True)


async def detect_spa_framework(page: Page) -> Optional[str]:
    try:
        return await page.evaluate(SPA_FRAMEWORK_JS)
    except Exception:
        log.debug("[ready] framework detection failed", exc_info=True)
        return None


async def wait_for_selectors(page: Page, selectors: Iterable[str], timeout_ms: int = 10000) -> bool:
    """いずれかのセレクタが表示されたら True。全て失敗/タイムアウトなら False。"""
    tasks = [
        asyncio.ensure_future(page.wait_for_selector(sel, timeout=timeout_ms, state="visible"))
        for sel in selectors
    ]
    if not tasks:
        return False
    try:
        for fut in asyncio.as_completed(tasks):
            try:
                await fut
                return True
            except Exception:
                continue
        return False
    finally:
        for task in tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


async def wait_for_forms(page: Page, timeout_ms: int = 10000) -> bool:
    try:
        await page.wait_for_selector("form", timeout=timeout_ms, state="attached")
        return True
    except Exception:
        return False
