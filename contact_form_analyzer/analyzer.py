from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, List, Optional, Tuple

from playwright.async_api import (
    async_playwright, Browser, BrowserContext, Page,
    TimeoutError as PlaywrightTimeoutError, Route
)

from .config import DEFAULT_CONFIG, AnalyzerConfig
from .contact_page_finder import ContactPageFinder, has_contact_form, is_japanese_preference
from .dynamic_content import scroll_to_load_content, wait_for_dynamic_content
from .fillability_assessor import assess_fillability
from .form_extractor import extract_contact_form
from .models import AnalysisResult, CompanyInput, ExtractionError, FillabilityStatus, NavigationError
from .polling import poll_until

log = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], Any]

# スクロール後、遅延描画のフォームを待つ
POST_SCROLL_SETTLE_MS = 2000
RETRY_DELAY_SEC = 1.5

LAUNCH_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",  # /dev/shm不足でのクラッシュ回避
    "--disable-gpu",
    "--no-first-run",
    "--no-default-browser-check",
    "--disable-background-networking",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
    "--disable-features=TranslateUI",
    "--disable-extensions",
]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _terminal_result(company: CompanyInput, error: str, **kwargs: Any) -> AnalysisResult:
    return AnalysisResult(
        company_name=company.name,
        company_url=company.url,
        form_page_found=kwargs.pop("form_page_found", False),
        dynamic_content_loaded=kwargs.pop("dynamic_content_loaded", False),
        fillability_status=FillabilityStatus.NO_FORM,
        timestamp=_now_iso(),
        error_message=error,
        **kwargs,
    )


class ContactFormAnalyzer:
    """
    1回の実行で共有するブラウザ/コンテキストを保持し、
    会社ごとに新しいタブでパイプラインを実行する。
    """

    def __init__(self, config: Optional[AnalyzerConfig] = None):
        self.config = config or DEFAULT_CONFIG
        self._pw = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.finder = ContactPageFinder(
            extra_keywords=self.config.contact_page_keywords,
            preferred_language=self.config.preferred_language,
            timeout_ms=self.config.timeout_ms,
        )

    async def __aenter__(self) -> "ContactFormAnalyzer":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ===== ブラウザは1回だけ起動して使い回す =====
    async def start(self) -> None:
        if self.browser:
            return
        self._pw = await async_playwright().start()
        self.browser = await self._pw.chromium.launch(headless=self.config.headless, args=LAUNCH_ARGS)
        context_kwargs: dict[str, Any] = {}
        if self.config.user_agent:
            context_kwargs["user_agent"] = self.config.user_agent
        if is_japanese_preference(self.config.preferred_language):
            context_kwargs["locale"] = "ja-JP"
        self.context = await self.browser.new_context(**context_kwargs)
        # 軽量化：画像/フォント/メディアをブロック（CSS はスクロール量に影響するので通す）
        await self.context.route("**/*", self._handle_route)
        log.info("[browser] started headless=%s", self.config.headless)

    async def close(self) -> None:
        """開いているタブ → コンテキスト → ブラウザ → playwright の順に閉じる。失敗はログのみ。"""
        if self.context:
            for page in list(self.context.pages):
                try:
                    await page.close()
                except Exception:
                    log.debug("[browser] page close failed", exc_info=True)
        for label, closer in (
            ("context", self.context.close if self.context else None),
            ("browser", self.browser.close if self.browser else None),
            ("playwright", self._pw.stop if self._pw else None),
        ):
            if closer is None:
                continue
            try:
                await closer()
            except Exception:
                log.warning("[browser] %s close failed (ignored)", label, exc_info=True)
        self._pw = None
        self.browser = None
        self.context = None

    async def _handle_route(self, route: Route) -> None:
        if route.request.resource_type in {"image", "media", "font"}:
            await route.abort()
        else:
            await route.continue_()

    async def new_page(self) -> Page:
        if not self.context:
            raise RuntimeError("browser is not started")
        page = await self.context.new_page()
        page.set_default_timeout(self.config.timeout_ms)
        return page

    async def analyze(self, company: CompanyInput) -> AnalysisResult:
        """1社分を解析する。例外は投げず、失敗は error_message 付きの結果で返す。"""
        polled = await poll_until(
            lambda: self._analyze_once(company),
            predicate=lambda outcome: not outcome[1],
            max_attempts=self.config.max_retries + 1,
            delay=RETRY_DELAY_SEC,
            label=f"company:{company.name}",
        )
        result, _ = polled.value
        if polled.attempts > 1:
            log.info("[%s] finished after %s attempt(s)", company.name, polled.attempts)
        return result

    async def _analyze_once(self, company: CompanyInput) -> Tuple[AnalysisResult, bool]:
        """(結果, 再試行すべきか) を返す。"""
        page: Optional[Page] = None
        try:
            page = await self.new_page()
            return await self._run_pipeline(page, company)
        except (NavigationError, PlaywrightTimeoutError) as e:
            log.info("[%s] navigation failure: %s", company.name, e)
            return _terminal_result(company, str(e) or "Navigation timeout"), True
        except Exception as e:
            log.warning("[%s] pipeline error: %s", company.name, e, exc_info=True)
            return _terminal_result(company, str(e) or e.__class__.__name__), False
        finally:
            if page:
                try:
                    await page.close()
                except Exception:
                    log.debug("[%s] page close failed", company.name, exc_info=True)

    async def _run_pipeline(self, page: Page, company: CompanyInput) -> Tuple[AnalysisResult, bool]:
        timeout_ms = self.config.timeout_ms
        log.info("[%s] locating contact page: %s", company.name, company.url)
        contact = await self.finder.find_contact_page(page, company.url, return_all_matches=True)
        if not contact.found or not contact.url:
            return _terminal_result(
                company,
                contact.error or "Contact page not found",
                candidate_urls=contact.all_candidate_urls,
            ), contact.navigation_failed

        log.info("[%s] contact page: %s", company.name, contact.url)
        try:
            await page.goto(contact.url, wait_until="domcontentloaded", timeout=timeout_ms)
        except PlaywrightTimeoutError as e:
            raise NavigationError(f"Navigation timeout: {contact.url}") from e

        dynamic = await wait_for_dynamic_content(page, timeout_ms)
        await scroll_to_load_content(page)
        await page.wait_for_timeout(POST_SCROLL_SETTLE_MS)

        found = {
            "form_page_found": True,
            "form_page_url": contact.url,
            "dynamic_content_loaded": dynamic.loaded,
            "candidate_urls": contact.all_candidate_urls,
        }
        if not await has_contact_form(page):
            return _terminal_result(company, "No form found on contact page", **found), False

        # お問い合わせページ自体は見つかっているので、以降の失敗でも form_page_found は残す
        try:
            form = await extract_contact_form(page)
            if form is None:
                raise ExtractionError("Could not extract form structure")
        except ExtractionError as e:
            log.info("[%s] %s", company.name, e)
            return _terminal_result(company, str(e), **found), False
        except Exception as e:
            log.warning("[%s] extraction error: %s", company.name, e, exc_info=True)
            return _terminal_result(company, str(e) or e.__class__.__name__, **found), False

        assessment = assess_fillability(form)
        log.info(
            "[%s] fillability=%s fields=%s mapped=%s",
            company.name, assessment.status.value, len(form.fields), sorted(assessment.mapped_fields),
        )
        return AnalysisResult(
            company_name=company.name,
            company_url=company.url,
            form_page_found=True,
            form_page_url=contact.url,
            dynamic_content_loaded=dynamic.loaded,
            fillability_status=assessment.status,
            form_structure=form,
            mapped_fields=assessment.mapped_fields,
            unmapped_required_fields=assessment.unmapped_required_fields,
            candidate_mappings=assessment.candidate_mappings,
            candidate_urls=contact.all_candidate_urls,
            timestamp=_now_iso(),
        ), False


async def analyze_company(
    company: CompanyInput,
    config: Optional[AnalyzerConfig] = None,
    analyzer: Optional[ContactFormAnalyzer] = None,
) -> AnalysisResult:
    if analyzer is not None:
        return await analyzer.analyze(company)
    async with ContactFormAnalyzer(config) as own:
        return await own.analyze(company)


async def _notify(on_progress: Optional[ProgressCallback], completed: int, total: int, name: str) -> None:
    if on_progress is None:
        return
    try:
        ret = on_progress(completed, total, name)
        if inspect.isawaitable(ret):
            await ret
    except Exception:
        log.warning("[batch] progress callback failed (ignored)", exc_info=True)


async def analyze_companies(
    companies: Iterable[CompanyInput],
    config: Optional[AnalyzerConfig] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> List[AnalysisResult]:
    """
    concurrency 社ずつのバッチで並列に解析する。
    結果は入力順。ブラウザ起動の失敗だけが呼び出し側へ伝播する。
    """
    config = config or DEFAULT_CONFIG
    targets = list(companies)
    total = len(targets)
    analyzer = ContactFormAnalyzer(config)
    try:
        await analyzer.start()
    except Exception:
        await analyzer.close()
        raise

    completed = 0
    results: List[AnalysisResult] = []

    async def run_one(company: CompanyInput) -> AnalysisResult:
        nonlocal completed
        result = await analyzer.analyze(company)
        completed += 1
        await _notify(on_progress, completed, total, company.name)
        return result

    try:
        for offset in range(0, total, config.concurrency):
            batch = targets[offset:offset + config.concurrency]
            log.info("[batch] %s-%s / %s", offset + 1, offset + len(batch), total)
            results.extend(await asyncio.gather(*(run_one(c) for c in batch)))
        return results
    finally:
        await analyzer.close()
