#!/usr/bin/env python3
"""Find the contact page URL of a single company website."""
import argparse
import asyncio
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from contact_form_analyzer.analyzer import ContactFormAnalyzer  # noqa: E402
from contact_form_analyzer.config import AnalyzerConfig  # noqa: E402


async def run(url: str, language: str, headless: bool) -> int:
    config = AnalyzerConfig.from_env().with_overrides(preferred_language=language, headless=headless)
    async with ContactFormAnalyzer(config) as analyzer:
        page = await analyzer.new_page()
        result = await analyzer.finder.find_contact_page(page, url, return_all_matches=True)

    if result.found and result.url:
        print("Contact page found!")
        print(f"URL: {result.url}")
        for idx, candidate in enumerate(result.all_candidate_urls or [], start=1):
            print(f"  {idx}. {candidate}")
        return 0
    print("Contact page not found")
    if result.error:
        print(f"Error: {result.error}")
    return 1


def main() -> int:
    parser = argparse.ArgumentParser(description="Find the contact page of a company website")
    parser.add_argument("url", help="Company homepage URL")
    parser.add_argument("--lang", default="ja", help="Preferred language (ja / auto)")
    parser.add_argument("--headed", action="store_true", help="Show the browser window")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")
    print(f"Searching for contact page on: {args.url}")
    try:
        return asyncio.run(run(args.url, args.lang, headless=not args.headed))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
