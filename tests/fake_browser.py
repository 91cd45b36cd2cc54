# tests/fake_browser.py
# Playwright の Page を最小限まねるテスト用フェイク（ブラウザ不要）
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from contact_form_analyzer.dynamic_content import BODY_TEXT_LENGTH_JS, SCROLL_JS, SPA_FRAMEWORK_JS


class FakePage:
    def __init__(
        self,
        html="",
        url="about:blank",
        pages=None,
        body_lengths=None,
        visible_selectors=("a", "form"),
        framework=None,
    ):
        self.html = html
        self.url = url
        self.pages = dict(pages or {})
        self.body_lengths = list(body_lengths or [500])
        self.visible_selectors = set(visible_selectors)
        self.framework = framework
        self.redirects = {}

        # 失敗を注入する
        self.goto_error = None
        self.load_state_errors = {}
        self.eval_links_error = None
        self.evaluate_error = None
        self.query_error = None
        self.content_error = None

        self.visited = []
        self.load_states = []
        self.waits = []
        self.scrolled = 0
        self.body_checks = 0
        # content() が読まれた時点の scrolled 回数
        self.scrolled_at_content = []
        self.closed = False
        self.default_timeout = None

    async def goto(self, url, wait_until=None, timeout=None):
        self.visited.append(url)
        if self.goto_error:
            raise self.goto_error
        self.url = self.redirects.get(url, url)
        if self.url in self.pages:
            self.html = self.pages[self.url]
        return None

    async def wait_for_load_state(self, state="load", timeout=None):
        self.load_states.append(state)
        err = self.load_state_errors.get(state)
        if err:
            raise err

    async def wait_for_timeout(self, ms):
        self.waits.append(ms)

    async def wait_for_selector(self, selector, timeout=None, state=None):
        if selector in self.visible_selectors:
            return object()
        raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for {selector}")

    async def eval_on_selector_all(self, selector, script):
        if self.eval_links_error:
            raise self.eval_links_error
        soup = BeautifulSoup(self.html, "html.parser")
        out = []
        for a in soup.find_all(selector):
            href = a.get("href")
            out.append({
                "href": urljoin(self.url, href) if href else "",
                "text": a.get_text().strip(),
                "ariaLabel": a.get("aria-label") or "",
            })
        return out

    async def evaluate(self, script):
        if self.evaluate_error:
            raise self.evaluate_error
        if script == BODY_TEXT_LENGTH_JS:
            self.body_checks += 1
            if len(self.body_lengths) > 1:
                return self.body_lengths.pop(0)
            return self.body_lengths[0]
        if script == SCROLL_JS:
            self.scrolled += 1
            return None
        if script == SPA_FRAMEWORK_JS:
            return self.framework
        return None

    async def content(self):
        if self.content_error:
            raise self.content_error
        self.scrolled_at_content.append(self.scrolled)
        return self.html

    async def query_selector_all(self, selector):
        if self.query_error:
            raise self.query_error
        soup = BeautifulSoup(self.html, "html.parser")
        return soup.select(selector)

    def set_default_timeout(self, timeout):
        self.default_timeout = timeout

    async def close(self):
        self.closed = True
