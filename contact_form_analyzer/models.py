from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class AnalyzerError(Exception):
    """1社分のパイプライン内で発生する失敗の基底クラス。"""


class NavigationError(AnalyzerError):
    """ページ遷移がタイムアウト内に完了しなかった（再試行の対象）。"""


class DiscoveryError(AnalyzerError):
    """お問い合わせページへのリンクが見つからなかった。"""


class ExtractionError(AnalyzerError):
    """フォーム構造を取得できなかった。"""


class FillabilityStatus(str, Enum):
    FULL = "Full"
    PARTIAL = "Partial"
    NONE = "None"
    NO_FORM = "No Form Found"


class FieldKind(str, Enum):
    TEXT = "text"
    EMAIL = "email"
    TEL = "tel"
    TEXTAREA = "textarea"
    SELECT = "select"
    CHECKBOX = "checkbox"
    RADIO = "radio"
    NUMBER = "number"
    URL = "url"
    DATE = "date"
    PASSWORD = "password"
    FILE = "file"
    SEARCH = "search"
    UNKNOWN = "unknown"

    @classmethod
    def from_control(cls, value: Optional[str]) -> "FieldKind":
        # 未知の type 属性 (datetime-local, color など) は UNKNOWN に寄せる
        try:
            return cls((value or "text").strip().lower())
        except ValueError:
            return cls.UNKNOWN


@dataclass(frozen=True)
class CompanyInput:
    name: str
    url: str


@dataclass(frozen=True)
class ContactPageResult:
    found: bool
    url: Optional[str] = None
    error: Optional[str] = None
    all_candidate_urls: Optional[List[str]] = None
    # ホームページ自体を開けなかった（リトライ対象）
    navigation_failed: bool = False


@dataclass(frozen=True)
class DynamicContentResult:
    loaded: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class FormField:
    name: str
    type: FieldKind = FieldKind.TEXT
    label: Optional[str] = None
    placeholder: Optional[str] = None
    required: bool = False
    options: Optional[List[str]] = None

    @property
    def display_name(self) -> str:
        return self.label or self.name or self.placeholder or "Unknown field"


@dataclass(frozen=True)
class FormStructure:
    fields: List[FormField] = field(default_factory=list)
    action: Optional[str] = None
    method: Optional[str] = None
    submit_button: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(asdict(self))


@dataclass(frozen=True)
class FillabilityResult:
    status: FillabilityStatus
    mapped_fields: Dict[str, str] = field(default_factory=dict)
    unmapped_required_fields: List[str] = field(default_factory=list)
    # 同じ概念にマッチした全フィールド（文書順）
    candidate_mappings: Dict[str, List[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class AnalysisResult:
    company_name: str
    company_url: str
    form_page_found: bool
    dynamic_content_loaded: bool
    fillability_status: FillabilityStatus
    timestamp: str
    form_page_url: Optional[str] = None
    form_structure: Optional[FormStructure] = None
    mapped_fields: Optional[Dict[str, str]] = None
    unmapped_required_fields: Optional[List[str]] = None
    # 同じ概念にマッチした全フィールド（mapped_fields は最後のものだけ）
    candidate_mappings: Optional[Dict[str, List[str]]] = None
    candidate_urls: Optional[List[str]] = None
    error_message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(asdict(self))


@dataclass(frozen=True)
class FillabilityBreakdown:
    full: int = 0
    partial: int = 0
    none: int = 0
    no_form: int = 0


@dataclass(frozen=True)
class ReportSummary:
    total_companies: int
    form_discovery_success_rate: float
    dynamic_content_success_rate: float
    fillability_breakdown: FillabilityBreakdown
    results: List[AnalysisResult]
    generated_at: str

    def to_dict(self) -> Dict[str, Any]:
        return to_jsonable(asdict(self))


def to_jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value
