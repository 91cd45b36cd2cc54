from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from dotenv import load_dotenv

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/122.0.0.0 Safari/537.36"
)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() == "true"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class AnalyzerConfig:
    timeout_ms: int = 30000
    headless: bool = True
    max_retries: int = 2
    contact_page_keywords: Tuple[str, ...] = field(default_factory=tuple)
    concurrency: int = 3
    preferred_language: str = "ja"
    user_agent: Optional[str] = DEFAULT_USER_AGENT

    def __post_init__(self) -> None:
        # frozen なので object.__setattr__ で正規化する
        object.__setattr__(self, "contact_page_keywords", tuple(self.contact_page_keywords or ()))
        object.__setattr__(self, "concurrency", max(1, int(self.concurrency or 1)))
        object.__setattr__(self, "max_retries", max(0, int(self.max_retries or 0)))

    def with_overrides(self, **changes) -> "AnalyzerConfig":
        return replace(self, **changes)

    @classmethod
    def from_env(cls, env_file: Optional[str] = None) -> "AnalyzerConfig":
        """
        .env と環境変数から設定を組み立てる。
        未設定の項目はデフォルト値のまま。
        """
        load_dotenv(env_file)
        keywords = tuple(
            k.strip() for k in os.getenv("CONTACT_PAGE_KEYWORDS", "").split(",") if k.strip()
        )
        return cls(
            timeout_ms=_env_int("ANALYZER_TIMEOUT_MS", 30000),
            headless=_env_bool("HEADLESS", True),
            max_retries=_env_int("MAX_RETRIES", 2),
            contact_page_keywords=keywords,
            concurrency=_env_int("CONCURRENCY", 3),
            preferred_language=(os.getenv("PREFERRED_LANGUAGE") or "ja").strip().lower(),
            user_agent=os.getenv("USER_AGENT") or DEFAULT_USER_AGENT,
        )


DEFAULT_CONFIG = AnalyzerConfig()
