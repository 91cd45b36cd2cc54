from __future__ import annotations

import re
import unicodedata
from typing import Any

_SPACE_RE = re.compile(r"\s+")


def normalize_space(value: Any) -> str:
    """
    表示用のテキスト整形。
    - 全角スペース/改行/タブを半角スペース1つに圧縮
    - 前後の空白を除去
    """
    text = str(value or "").replace("　", " ")
    return _SPACE_RE.sub(" ", text).strip()


def fold(value: Any) -> str:
    """
    キーワード照合用の正規化。
    - NFKC（全角英数・半角カナを寄せる）
    - lowercase
    """
    text = unicodedata.normalize("NFKC", str(value or ""))
    return normalize_space(text).lower()
