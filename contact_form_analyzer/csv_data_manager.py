import csv
import logging
from typing import Dict, List, Optional

from .models import CompanyInput

log = logging.getLogger(__name__)

NAME_COLUMNS = ("name", "company_name", "会社名", "企業名")
URL_COLUMNS = ("url", "homepage", "website", "URL", "ホームページ", "HP")


def first_non_empty(row: Dict[str, Optional[str]], *keys: str) -> str:
    for k in keys:
        if k in row and row[k] is not None:
            s = str(row[k]).strip()
            if s != "":
                return s
    return ""


def _normalize_url(url: str) -> str:
    url = url.strip()
    if url and "://" not in url:
        url = "https://" + url.lstrip("/")
    return url


def load_companies_csv(path: str) -> List[CompanyInput]:
    companies: List[CompanyInput] = []
    # Excel 由来の BOM 付き CSV も読めるように utf-8-sig
    with open(path, newline="", encoding="utf-8-sig") as f:
        for idx, row in enumerate(csv.DictReader(f), start=2):
            url = _normalize_url(first_non_empty(row, *URL_COLUMNS))
            if not url:
                log.info("[input] line %s: url missing -> skipped", idx)
                continue
            name = first_non_empty(row, *NAME_COLUMNS) or url
            companies.append(CompanyInput(name=name, url=url))
    return companies


def parse_company_lines(text: str) -> List[CompanyInput]:
    """
    1行1社のテキストを読む。
    - "会社名,URL" または "会社名<TAB>URL"
    - URL のみの行は URL を会社名として扱う
    - 空行と # で始まる行は無視
    """
    companies: List[CompanyInput] = []
    for raw in (text or "").splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        sep = "\t" if "\t" in line else ","
        if sep in line:
            name, _, url = line.rpartition(sep)
            name, url = name.strip(), _normalize_url(url)
        else:
            name, url = "", _normalize_url(line)
        if not url:
            continue
        companies.append(CompanyInput(name=name or url, url=url))
    return companies


def load_companies_text(path: str) -> List[CompanyInput]:
    with open(path, encoding="utf-8-sig") as f:
        return parse_company_lines(f.read())


def load_companies(path: str) -> List[CompanyInput]:
    """拡張子 .csv はヘッダ付き CSV、それ以外は1行1社のテキストとして読む。"""
    if path.lower().endswith(".csv"):
        return load_companies_csv(path)
    return load_companies_text(path)
