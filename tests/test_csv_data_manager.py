# tests/test_csv_data_manager.py
import pytest

from contact_form_analyzer.csv_data_manager import (
    first_non_empty,
    load_companies,
    load_companies_csv,
    parse_company_lines,
)
from contact_form_analyzer.models import CompanyInput


@pytest.fixture
def sample_csv(tmp_path):
    data = tmp_path / "in.csv"
    # Excel 出力の BOM 付き・日本語ヘッダ
    data.write_text(
        "\ufeff会社名,ホームページ,住所\n"
        "株式会社エー,https://a.co.jp/,東京都\n"
        ",b.example.com,大阪府\n"
        "URLなし,,福岡県\n",
        encoding="utf-8",
    )
    return str(data)


def test_load_companies_csv(sample_csv):
    companies = load_companies_csv(sample_csv)

    assert companies == [
        CompanyInput(name="株式会社エー", url="https://a.co.jp/"),
        # 会社名が空なら URL を名前にする
        CompanyInput(name="https://b.example.com", url="https://b.example.com"),
    ]


def test_load_companies_csv_english_headers(tmp_path):
    data = tmp_path / "in.csv"
    data.write_text("company_name,url\nACME,https://acme.example.com\n", encoding="utf-8")

    assert load_companies_csv(str(data)) == [CompanyInput(name="ACME", url="https://acme.example.com")]


def test_parse_company_lines():
    text = """
    # コメント行
    株式会社エー,https://a.co.jp/
    Tab Corp\thttps://tab.example.com

    plain.example.com
    """

    assert parse_company_lines(text) == [
        CompanyInput(name="株式会社エー", url="https://a.co.jp/"),
        CompanyInput(name="Tab Corp", url="https://tab.example.com"),
        CompanyInput(name="https://plain.example.com", url="https://plain.example.com"),
    ]


def test_first_non_empty():
    row = {"name": "  ", "company_name": None, "会社名": " テスト "}

    assert first_non_empty(row, "name", "company_name", "会社名") == "テスト"
    assert first_non_empty(row, "missing") == ""


def test_load_companies_dispatches_on_suffix(sample_csv, tmp_path):
    listing = tmp_path / "companies.txt"
    listing.write_text("# 今週分\n株式会社エー,https://a.co.jp/\nb.example.com\n", encoding="utf-8")

    assert load_companies(str(listing)) == [
        CompanyInput(name="株式会社エー", url="https://a.co.jp/"),
        CompanyInput(name="https://b.example.com", url="https://b.example.com"),
    ]
    assert load_companies(sample_csv) == load_companies_csv(sample_csv)
