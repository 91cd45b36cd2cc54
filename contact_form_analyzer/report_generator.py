from __future__ import annotations

import csv
import io
import json
import logging
import os
from datetime import datetime, timezone
from typing import Dict, List, Sequence

from .models import AnalysisResult, FillabilityBreakdown, FillabilityStatus, ReportSummary

log = logging.getLogger(__name__)

CSV_HEADERS = [
    "Company Name",
    "Company URL",
    "Form Page Found",
    "Form Page URL",
    "Dynamic Content Loaded",
    "Fillability Status",
    "Mapped Fields",
    "Unmapped Required Fields",
    "Total Fields",
    "Error Message",
    "Timestamp",
]
REPORT_FORMATS = ("csv", "json")


def _rate(count: int, total: int) -> float:
    return (count / total) * 100 if total > 0 else 0.0


def generate_summary(results: Sequence[AnalysisResult]) -> ReportSummary:
    results = list(results)
    total = len(results)

    def count(status: FillabilityStatus) -> int:
        return sum(1 for r in results if r.fillability_status == status)

    return ReportSummary(
        total_companies=total,
        form_discovery_success_rate=_rate(sum(1 for r in results if r.form_page_found), total),
        dynamic_content_success_rate=_rate(sum(1 for r in results if r.dynamic_content_loaded), total),
        fillability_breakdown=FillabilityBreakdown(
            full=count(FillabilityStatus.FULL),
            partial=count(FillabilityStatus.PARTIAL),
            none=count(FillabilityStatus.NONE),
            no_form=count(FillabilityStatus.NO_FORM),
        ),
        results=results,
        generated_at=datetime.now(timezone.utc).isoformat(),
    )


def _csv_row(result: AnalysisResult) -> List[str]:
    mapped = "; ".join(f"{k}:{v}" for k, v in (result.mapped_fields or {}).items())
    unmapped = "; ".join(result.unmapped_required_fields or [])
    total_fields = len(result.form_structure.fields) if result.form_structure else 0
    return [
        result.company_name,
        result.company_url,
        "Yes" if result.form_page_found else "No",
        result.form_page_url or "",
        "Yes" if result.dynamic_content_loaded else "No",
        result.fillability_status.value,
        mapped,
        unmapped,
        str(total_fields),
        result.error_message or "",
        result.timestamp,
    ]


def generate_csv(results: Sequence[AnalysisResult]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerow(CSV_HEADERS)
    for result in results:
        writer.writerow(_csv_row(result))
    return buf.getvalue().rstrip("\n")


def generate_json(results: Sequence[AnalysisResult]) -> str:
    return json.dumps(generate_summary(results).to_dict(), ensure_ascii=False, indent=2)


def save_report(results: Sequence[AnalysisResult], fmt: str = "csv", output_dir: str = "results") -> str:
    if fmt not in REPORT_FORMATS:
        raise ValueError(f"unsupported report format: {fmt}")
    os.makedirs(output_dir, exist_ok=True)
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%f")
    path = os.path.join(output_dir, f"contact-form-analysis-{stamp}.{fmt}")
    content = generate_csv(results) if fmt == "csv" else generate_json(results)
    with open(path, "w", encoding="utf-8", newline="") as f:
        f.write(content)
    log.info("report saved -> %s", path)
    return path


def save_all_reports(results: Sequence[AnalysisResult], output_dir: str = "results") -> Dict[str, str]:
    return {fmt: save_report(results, fmt, output_dir) for fmt in REPORT_FORMATS}
