#!/usr/bin/env python3
"""Extract the contact form structure from a page and print it as JSON."""
import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from contact_form_analyzer.analyzer import ContactFormAnalyzer  # noqa: E402
from contact_form_analyzer.config import AnalyzerConfig  # noqa: E402
from contact_form_analyzer.dynamic_content import (  # noqa: E402
    detect_spa_framework, scroll_to_load_content, wait_for_dynamic_content, wait_for_forms,
)
from contact_form_analyzer.fillability_assessor import get_field_mapping_report  # noqa: E402
from contact_form_analyzer.form_extractor import extract_contact_form  # noqa: E402


async def run(url: str, headless: bool) -> int:
    config = AnalyzerConfig.from_env().with_overrides(headless=headless)
    async with ContactFormAnalyzer(config) as analyzer:
        page = await analyzer.new_page()
        await page.goto(url, wait_until="domcontentloaded", timeout=config.timeout_ms)
        ready = await wait_for_dynamic_content(page, config.timeout_ms)
        framework = await detect_spa_framework(page)
        await scroll_to_load_content(page)
        has_form = await wait_for_forms(page)
        form = await extract_contact_form(page) if has_form else None

    payload = {
        "url": url,
        "dynamic_content_loaded": ready.loaded,
        "framework": framework,
        "form_structure": form.to_dict() if form else None,
        "mapping": get_field_mapping_report(form) if form else None,
    }
    print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0 if form else 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Extract the contact form of a page")
    parser.add_argument("url", help="Contact page URL")
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    try:
        return asyncio.run(run(args.url, headless=not args.headed))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
