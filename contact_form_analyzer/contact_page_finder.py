from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup
from playwright.async_api import Page, TimeoutError as PlaywrightTimeoutError

from .dynamic_content import settle_page, wait_for_selectors
from .models import ContactPageResult, DiscoveryError, NavigationError
from .polling import poll_until
from .text_normalizer import normalize_space

log = logging.getLogger(__name__)

# お問い合わせ導線のキーワード（英語＋日本語）
CONTACT_KEYWORDS: Tuple[str, ...] = (
    "contact",
    "contact us",
    "get in touch",
    "inquiry",
    "inquiries",
    "reach us",
    "support",
    "help",
    "お問い合わせ",
    "お問合せ",
    "問い合わせ",
    "問合せ",
    "コンタクト",
    "連絡",
    "ご相談",
)

# キーワードが無くても URL パスで拾う（/jp/contact/ など）
CONTACT_URL_RE = re.compile(r"/(contact|inquiry|support|toiawase|otoiawase)(/|$|-)", re.IGNORECASE)
JAPANESE_PATH_RE = re.compile(r"/(ja|jp|jp-ja|ja-jp|ja_jp|jp_ja|japanese)(/|$)", re.IGNORECASE)
OTHER_LANGUAGE_PATH_RE = re.compile(r"/(de|fr|es|it|cn|kr|tw|en|us|uk|gb|zh)([-_/]|$)", re.IGNORECASE)

JAPANESE_LANGUAGE_CODES = ("ja", "jp", "jp-ja", "ja-jp")

# 完全一致テキストの加点（日本語を優先）
EXACT_TEXT_BONUS: Tuple[Tuple[Tuple[str, ...], int], ...] = (
    (("お問い合わせ", "問い合わせ"), 200),
    (("お問合せ", "問合せ"), 200),
    (("コンタクト",), 150),
    (("連絡", "ご相談"), 150),
    (("contact", "contact us"), 100),
    (("inquiry", "inquiries"), 90),
)
# URL 部分一致の加点（具体的なものほど高い）
URL_BONUS: Tuple[Tuple[Tuple[str, ...], int], ...] = (
    (("/contact-us",), 80),
    (("/contact",), 70),
    (("/inquiry", "/toiawase"), 70),
    (("/support",), 60),
)
JAPANESE_PATH_BONUS = 500
OTHER_LANGUAGE_SCORE = -1000
ARIA_CONTACT_BONUS = 20
PATH_SEGMENT_PENALTY = 2

NON_NAVIGABLE_SCHEMES = ("mailto:", "tel:", "javascript:", "data:")

LINK_COLLECT_ATTEMPTS = 3
LINK_COLLECT_DELAY_SEC = 2.0
NAV_WAIT_TIMEOUT_MS = 5000

LINKS_JS = """
(anchors) => anchors.map((a) => ({
    href: a.href || "",
    text: (a.textContent || "").trim(),
    ariaLabel: a.getAttribute("aria-label") || "",
}))
"""


@dataclass(frozen=True)
class LinkCandidate:
    href: str
    text: str = ""
    aria_label: str = ""


@dataclass(frozen=True)
class ScoredLink:
    link: LinkCandidate
    url: str
    score: int


def get_contact_keywords(extra: Iterable[str] = ()) -> Tuple[str, ...]:
    merged: List[str] = []
    seen: set[str] = set()
    for kw in (*CONTACT_KEYWORDS, *extra):
        kw = (kw or "").strip()
        if kw and kw.lower() not in seen:
            merged.append(kw)
            seen.add(kw.lower())
    return tuple(merged)


def is_japanese_preference(language: Optional[str]) -> bool:
    return (language or "").strip().lower() in JAPANESE_LANGUAGE_CODES


def links_from_html(base_url: str, html: str) -> List[LinkCandidate]:
    soup = BeautifulSoup(html or "", "html.parser")
    links: List[LinkCandidate] = []
    for anchor in soup.find_all("a"):
        href = anchor.get("href")
        links.append(
            LinkCandidate(
                href=urljoin(base_url, href) if href else "",
                text=normalize_space(anchor.get_text(separator=" ")),
                aria_label=anchor.get("aria-label") or "",
            )
        )
    return links


def _path_segments(url: str) -> int:
    # "/ja/contact" -> ["", "ja", "contact"] で3
    return len((urlparse(url).path or "").split("/"))


class ContactPageFinder:
    """
    ホームページのリンクを採点し、最もお問い合わせページらしい URL を返す。
    キーワードはインスタンス生成時に確定し、実行中に書き換えない。
    """

    def __init__(
        self,
        extra_keywords: Iterable[str] = (),
        preferred_language: str = "ja",
        timeout_ms: int = 30000,
    ):
        self.keywords: Tuple[str, ...] = get_contact_keywords(extra_keywords)
        self._keywords_lower = tuple(k.lower() for k in self.keywords)
        self.preferred_language = (preferred_language or "auto").strip().lower()
        self.timeout_ms = timeout_ms

    @property
    def japanese_only(self) -> bool:
        return is_japanese_preference(self.preferred_language)

    def is_contact_candidate(self, link: LinkCandidate) -> bool:
        href = link.href or ""
        if not href or href.lower().startswith(NON_NAVIGABLE_SCHEMES):
            return False
        search_text = f"{link.text} {link.aria_label} {href}".lower()
        if any(kw in search_text for kw in self._keywords_lower):
            return True
        return bool(CONTACT_URL_RE.search(urlparse(href).path or ""))

    def score_link(self, link: LinkCandidate, base_url: str) -> ScoredLink:
        url = urljoin(base_url, link.href)
        href = url.lower()
        path = (urlparse(url).path or "").lower()
        text = link.text.strip().lower()
        aria = link.aria_label.lower()

        score = 0
        if self.japanese_only:
            # 日本語以外の言語パスは候補から外す
            if OTHER_LANGUAGE_PATH_RE.search(path):
                return ScoredLink(link=link, url=url, score=OTHER_LANGUAGE_SCORE)
            if JAPANESE_PATH_RE.search(path):
                score += JAPANESE_PATH_BONUS

        for phrases, bonus in EXACT_TEXT_BONUS:
            if text in phrases:
                score += bonus
        for markers, bonus in URL_BONUS:
            if any(m in href for m in markers):
                score += bonus

        score -= _path_segments(url) * PATH_SEGMENT_PENALTY
        if "contact" in aria:
            score += ARIA_CONTACT_BONUS
        return ScoredLink(link=link, url=url, score=score)

    def score_links(self, links: Sequence[LinkCandidate], base_url: str) -> List[ScoredLink]:
        """候補の絞り込み＋採点＋降順ソート（同点は DOM 順を維持）。ブラウザ不要。"""
        candidates = [link for link in links if self.is_contact_candidate(link)]
        scored = [self.score_link(link, base_url) for link in candidates]
        scored.sort(key=lambda s: -s.score)
        if self.japanese_only:
            scored = [s for s in scored if s.score > 0]
        return scored

    def choose(
        self,
        links: Sequence[LinkCandidate],
        base_url: str,
        return_all_matches: bool = False,
    ) -> ContactPageResult:
        if not links:
            return ContactPageResult(found=False, error="No links found on page")
        if not any(self.is_contact_candidate(link) for link in links):
            return ContactPageResult(found=False, error="No contact page link found")

        ranked = self.score_links(links, base_url)
        log.info("[contact] %s ranked candidates from %s links base=%s", len(ranked), len(links), base_url)
        for idx, s in enumerate(ranked[:10], start=1):
            log.debug("[contact]  %s. score=%s url=%s text=%r", idx, s.score, s.url, s.link.text)

        if not ranked:
            if self.japanese_only:
                return ContactPageResult(
                    found=False,
                    error="No Japanese contact page found. Only non-Japanese language pages are available.",
                )
            return ContactPageResult(found=False, error="No contact page found")

        all_urls: Optional[List[str]] = None
        if return_all_matches:
            all_urls = []
            for s in ranked:
                if s.url not in all_urls:
                    all_urls.append(s.url)
        return ContactPageResult(found=True, url=ranked[0].url, all_candidate_urls=all_urls)

    async def collect_links(self, page: Page) -> List[LinkCandidate]:
        try:
            raw = await page.eval_on_selector_all("a", LINKS_JS)
        except PlaywrightTimeoutError:
            raise
        except Exception:
            # 評価中の遷移などで失敗したら HTML から拾い直す
            log.debug("[contact] eval failed, fallback to html parse", exc_info=True)
            return links_from_html(page.url, await page.content())
        return [
            LinkCandidate(
                href=item.get("href") or "",
                text=normalize_space(item.get("text")),
                aria_label=item.get("ariaLabel") or "",
            )
            for item in raw or []
        ]

    async def _open_homepage(self, page: Page, base_url: str) -> None:
        try:
            await page.goto(base_url, wait_until="domcontentloaded", timeout=self.timeout_ms)
            await settle_page(page, self.timeout_ms)
        except PlaywrightTimeoutError as e:
            # タイムアウトだけを再試行の対象にする（DNS/証明書エラーは再試行しても同じ）
            raise NavigationError(f"Navigation timeout: {base_url}") from e
        await wait_for_selectors(page, ["nav", "header", "a"], NAV_WAIT_TIMEOUT_MS)

    async def find_contact_page(
        self,
        page: Page,
        base_url: str,
        return_all_matches: bool = False,
    ) -> ContactPageResult:
        try:
            await self._open_homepage(page, base_url)
            polled = await poll_until(
                lambda: self.collect_links(page),
                max_attempts=LINK_COLLECT_ATTEMPTS,
                delay=LINK_COLLECT_DELAY_SEC,
                timeout=self.timeout_ms / 1000,
                label="contact-links",
            )
            links = polled.value or []
            if not links:
                raise DiscoveryError("No links found on page")
            # リダイレクト後の URL を基準に正規化する
            return self.choose(links, page.url or base_url, return_all_matches=return_all_matches)
        except NavigationError as e:
            log.info("[contact] navigation failed %s: %s", base_url, e)
            return ContactPageResult(found=False, error=str(e), navigation_failed=True)
        except DiscoveryError as e:
            return ContactPageResult(found=False, error=str(e))
        except PlaywrightTimeoutError as e:
            return ContactPageResult(found=False, error=str(e) or "Timeout", navigation_failed=True)
        except Exception as e:
            log.warning("[contact] unexpected failure %s", base_url, exc_info=True)
            return ContactPageResult(found=False, error=str(e) or e.__class__.__name__)


async def has_contact_form(page: Page) -> bool:
    try:
        forms = await page.query_selector_all("form")
        return len(forms) > 0
    except Exception:
        log.debug("[contact] form lookup failed", exc_info=True)
        return False
