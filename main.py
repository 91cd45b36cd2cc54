# main.py
import asyncio
import logging
import os
import time

from dotenv import load_dotenv

from contact_form_analyzer.analyzer import analyze_companies
from contact_form_analyzer.config import AnalyzerConfig
from contact_form_analyzer.csv_data_manager import load_companies
from contact_form_analyzer.models import CompanyInput
from contact_form_analyzer.report_generator import generate_summary, save_all_reports, save_report

# --------------------------------------------------
# ロギング設定
# --------------------------------------------------
os.makedirs("logs", exist_ok=True)
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    handlers=[
        logging.FileHandler("logs/app.log", encoding="utf-8"),
        logging.StreamHandler(),
    ],
)
log = logging.getLogger(__name__)

# .env 読み込み
load_dotenv()

# --------------------------------------------------
# 実行オプション（.env）
# --------------------------------------------------
# .csv 以外は "会社名,URL" または URL のみの1行1社テキスト
INPUT_FILE = os.getenv("INPUT_FILE") or os.getenv("INPUT_CSV", "")
OUTPUT_DIR = os.getenv("OUTPUT_DIR", "results")
REPORT_FORMAT = os.getenv("REPORT_FORMAT", "both").strip().lower()
MAX_ROWS = int(os.getenv("MAX_ROWS", "0"))

# INPUT_FILE 未指定時の動作確認用
SAMPLE_COMPANIES = [
    CompanyInput(name="Mozilla", url="https://www.mozilla.org"),
    CompanyInput(name="WordPress", url="https://wordpress.org"),
    CompanyInput(name="GitHub", url="https://github.com"),
]


def load_targets() -> list[CompanyInput]:
    if INPUT_FILE:
        companies = load_companies(INPUT_FILE)
        log.info("Company list loaded: %s rows (%s)", len(companies), INPUT_FILE)
    else:
        companies = list(SAMPLE_COMPANIES)
        log.info("INPUT_FILE 未指定のためサンプル %s 社で実行", len(companies))
    if MAX_ROWS:
        companies = companies[:MAX_ROWS]
    return companies


def log_progress(completed: int, total: int, company_name: str) -> None:
    log.info("[progress] %s/%s (%d%%) %s", completed, total, round(completed / total * 100), company_name)


def save_reports(results) -> dict[str, str]:
    if REPORT_FORMAT in ("csv", "json"):
        return {REPORT_FORMAT: save_report(results, REPORT_FORMAT, OUTPUT_DIR)}
    return save_all_reports(results, OUTPUT_DIR)


async def process() -> int:
    config = AnalyzerConfig.from_env()
    log.info(
        "=== Runner started === HEADLESS=%s TIMEOUT_MS=%s CONCURRENCY=%s MAX_RETRIES=%s LANG=%s",
        config.headless, config.timeout_ms, config.concurrency, config.max_retries, config.preferred_language,
    )

    companies = load_targets()
    if not companies:
        log.error("解析対象の会社がありません。INPUT_FILE を確認してください。")
        return 1

    started = time.monotonic()
    results = await analyze_companies(companies, config, on_progress=log_progress)
    log.info("解析完了 elapsed=%.1fs", time.monotonic() - started)

    summary = generate_summary(results)
    breakdown = summary.fillability_breakdown
    log.info("Total Companies: %s", summary.total_companies)
    log.info("Form Discovery Success Rate: %.1f%%", summary.form_discovery_success_rate)
    log.info("Dynamic Content Success Rate: %.1f%%", summary.dynamic_content_success_rate)
    log.info(
        "Fillability: full=%s partial=%s none=%s no_form=%s",
        breakdown.full, breakdown.partial, breakdown.none, breakdown.no_form,
    )

    for fmt, path in save_reports(results).items():
        log.info("%s report: %s", fmt.upper(), path)
    log.info("全処理終了")
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(process()))
