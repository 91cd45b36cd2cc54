import csv
import io
import json
import os

import pytest

from contact_form_analyzer.models import AnalysisResult, FieldKind, FillabilityStatus, FormField, FormStructure
from contact_form_analyzer.report_generator import (
    CSV_HEADERS,
    generate_csv,
    generate_json,
    generate_summary,
    save_all_reports,
    save_report,
)

TS = "2024-04-01T00:00:00+00:00"


@pytest.fixture
def results():
    form = FormStructure(
        fields=[
            FormField(name="email", type=FieldKind.EMAIL, required=True),
            FormField(name="msg", type=FieldKind.TEXTAREA, required=True),
        ],
        action="/send",
        method="post",
    )
    return [
        AnalysisResult(
            company_name="株式会社サンプル",
            company_url="https://sample.co.jp/",
            form_page_found=True,
            form_page_url="https://sample.co.jp/contact",
            dynamic_content_loaded=True,
            fillability_status=FillabilityStatus.FULL,
            form_structure=form,
            mapped_fields={"email": "email", "message": "msg"},
            unmapped_required_fields=[],
            timestamp=TS,
        ),
        AnalysisResult(
            company_name="Partial, Inc.",
            company_url="https://partial.example.com/",
            form_page_found=True,
            form_page_url="https://partial.example.com/contact",
            dynamic_content_loaded=False,
            fillability_status=FillabilityStatus.PARTIAL,
            form_structure=FormStructure(fields=[FormField(name="q1", required=True)]),
            mapped_fields={},
            unmapped_required_fields=["ご予算", "導入時期"],
            timestamp=TS,
        ),
        AnalysisResult(
            company_name="NoForm",
            company_url="https://noform.example.com/",
            form_page_found=False,
            dynamic_content_loaded=False,
            fillability_status=FillabilityStatus.NO_FORM,
            error_message="No contact page link found",
            timestamp=TS,
        ),
    ]


def test_summary_rates_and_breakdown(results):
    summary = generate_summary(results)

    assert summary.total_companies == 3
    assert summary.form_discovery_success_rate == pytest.approx(200 / 3)
    assert summary.dynamic_content_success_rate == pytest.approx(100 / 3)
    assert summary.fillability_breakdown.full == 1
    assert summary.fillability_breakdown.partial == 1
    assert summary.fillability_breakdown.none == 0
    assert summary.fillability_breakdown.no_form == 1
    assert summary.results == results


def test_summary_of_empty_batch():
    summary = generate_summary([])

    assert summary.total_companies == 0
    assert summary.form_discovery_success_rate == 0
    assert summary.dynamic_content_success_rate == 0


def test_csv_rows(results):
    text = generate_csv(results)
    rows = list(csv.reader(io.StringIO(text)))

    assert rows[0] == CSV_HEADERS
    assert len(rows) == 4
    assert not text.endswith("\n")
    assert rows[1] == [
        "株式会社サンプル",
        "https://sample.co.jp/",
        "Yes",
        "https://sample.co.jp/contact",
        "Yes",
        "Full",
        "email:email; message:msg",
        "",
        "2",
        "",
        TS,
    ]
    # カンマを含む会社名はクォートされる
    assert rows[2][0] == "Partial, Inc."
    assert rows[2][4] == "No"
    assert rows[2][7] == "ご予算; 導入時期"
    assert rows[3][5] == "No Form Found"
    assert rows[3][8] == "0"
    assert rows[3][9] == "No contact page link found"


def test_json_report(results):
    data = json.loads(generate_json(results))

    assert data["total_companies"] == 3
    assert data["fillability_breakdown"] == {"full": 1, "partial": 1, "none": 0, "no_form": 1}
    first = data["results"][0]
    assert first["fillability_status"] == "Full"
    assert first["form_structure"]["fields"][0] == {
        "name": "email",
        "type": "email",
        "label": None,
        "placeholder": None,
        "required": True,
        "options": None,
    }
    assert data["results"][2]["form_structure"] is None


def test_save_report_writes_file(results, tmp_path):
    path = save_report(results, "csv", str(tmp_path / "out"))

    assert os.path.basename(path).startswith("contact-form-analysis-")
    assert path.endswith(".csv")
    with open(path, encoding="utf-8") as f:
        assert f.readline().startswith("Company Name,Company URL")


def test_save_report_rejects_unknown_format(results, tmp_path):
    with pytest.raises(ValueError):
        save_report(results, "xlsx", str(tmp_path))


def test_save_all_reports(results, tmp_path):
    paths = save_all_reports(results, str(tmp_path))

    assert set(paths) == {"csv", "json"}
    with open(paths["json"], encoding="utf-8") as f:
        assert json.load(f)["total_companies"] == 3
