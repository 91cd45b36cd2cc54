from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from .models import FieldKind, FillabilityResult, FillabilityStatus, FormField, FormStructure
from .text_normalizer import fold

# 入力できる標準項目。宣言順に照合し、最初にマッチした概念を採用する
STANDARD_CONTACT_FIELDS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("name", ("name", "fullname", "full_name", "your_name", "氏名", "お名前")),
    ("email", ("email", "mail", "e-mail", "メール", "メールアドレス")),
    ("phone", ("phone", "tel", "telephone", "mobile", "電話", "電話番号")),
    ("company", ("company", "organization", "会社", "会社名", "企業名")),
    ("message", ("message", "inquiry", "comment", "content", "お問い合わせ内容", "メッセージ")),
    ("subject", ("subject", "title", "件名", "タイトル")),
)

# キーワードで決まらなかったときの type による推定
TYPE_FALLBACK = {
    FieldKind.EMAIL: "email",
    FieldKind.TEL: "phone",
    FieldKind.TEXTAREA: "message",
}

_FOLDED_KEYWORDS = tuple(
    (concept, tuple(fold(k) for k in keywords)) for concept, keywords in STANDARD_CONTACT_FIELDS
)


def map_field_to_contact_data(field: FormField) -> Optional[str]:
    identifier = fold(f"{field.name} {field.label or ''} {field.placeholder or ''}")
    for concept, keywords in _FOLDED_KEYWORDS:
        if any(k in identifier for k in keywords):
            return concept
    return TYPE_FALLBACK.get(field.type)


def assess_fillability(form: FormStructure) -> FillabilityResult:
    mapped: Dict[str, str] = {}
    candidates: Dict[str, List[str]] = {}
    unmapped_required: List[str] = []
    required_count = 0

    for field in form.fields:
        if field.required:
            required_count += 1
        concept = map_field_to_contact_data(field)
        if concept:
            # 同じ概念が複数あれば文書順で後のフィールドが残る
            mapped[concept] = field.name
            candidates.setdefault(concept, []).append(field.name)
        elif field.required:
            unmapped_required.append(field.display_name)

    if required_count == 0 or not unmapped_required:
        status = FillabilityStatus.FULL
    elif mapped:
        status = FillabilityStatus.PARTIAL
    else:
        status = FillabilityStatus.NONE

    return FillabilityResult(
        status=status,
        mapped_fields=mapped,
        unmapped_required_fields=unmapped_required,
        candidate_mappings=candidates,
    )


def get_fillability_percentage(form: FormStructure) -> int:
    required = [f for f in form.fields if f.required]
    if not required:
        return 100
    mapped = sum(1 for f in required if map_field_to_contact_data(f) is not None)
    # 四捨五入（.5 は切り上げ）
    return int(mapped * 100 / len(required) + 0.5)


def get_field_mapping_report(form: FormStructure) -> Dict[str, Any]:
    details = []
    for field in form.fields:
        concept = map_field_to_contact_data(field)
        details.append({
            "field": field.label or field.name or field.placeholder or "Unknown",
            "type": field.type.value,
            "required": field.required,
            "mapped": concept is not None,
            "mapped_to": concept,
        })
    mapped_count = sum(1 for d in details if d["mapped"])
    return {
        "total_fields": len(form.fields),
        "required_fields": sum(1 for f in form.fields if f.required),
        "mapped_fields": mapped_count,
        "unmapped_fields": len(form.fields) - mapped_count,
        "mapping_details": details,
    }
