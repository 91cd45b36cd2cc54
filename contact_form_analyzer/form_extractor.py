from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup, Comment, Tag
from playwright.async_api import Page

from .models import FieldKind, FormField, FormStructure
from .text_normalizer import normalize_space

log = logging.getLogger(__name__)

CONTROL_TAGS = ["input", "textarea", "select"]
SKIP_INPUT_TYPES = {"hidden", "submit", "button", "image"}
GROUPABLE_TYPES = {"radio", "checkbox"}
# ラベル候補として拾う兄弟要素（表組み/dl 形式の日本語フォームも含む）
TEXT_BEARING_TAGS = {"label", "span", "div", "p", "h1", "h2", "h3", "h4", "h5", "h6", "th", "dt", "legend"}
LABEL_MIN_LEN = 1
LABEL_MAX_LEN = 199


def _control_type(el: Tag) -> str:
    if el.name == "textarea":
        return "textarea"
    if el.name == "select":
        return "select"
    return (el.get("type") or "text").strip().lower()


def _is_required(el: Tag) -> bool:
    return el.has_attr("required") or (el.get("aria-required") or "").strip().lower() == "true"


def _text_without_controls(tag: Tag) -> str:
    """select の option や textarea の中身を除いたテキスト。"""
    parts: List[str] = []
    for s in tag.find_all(string=True):
        if isinstance(s, Comment) or s.find_parent(["option", "textarea", "script", "style"]):
            continue
        parts.append(str(s))
    return normalize_space(" ".join(parts))


def _acceptable(text: Optional[str]) -> Optional[str]:
    text = normalize_space(text)
    if LABEL_MIN_LEN <= len(text) <= LABEL_MAX_LEN:
        return text
    return None


def _contains_control(tag: Tag) -> bool:
    if tag.name in CONTROL_TAGS:
        return True
    return tag.find(CONTROL_TAGS) is not None


class _LabelResolver:
    def __init__(self, form: Tag, root: Tag):
        self.form = form
        self.root = root
        self._for_cache: Dict[str, Optional[str]] = {}

    def explicit(self, el: Tag) -> Optional[str]:
        el_id = el.get("id")
        if not el_id:
            return None
        if el_id not in self._for_cache:
            label = self.form.find("label", attrs={"for": el_id}) or self.root.find("label", attrs={"for": el_id})
            self._for_cache[el_id] = _text_without_controls(label) if label else None
        return self._for_cache[el_id] or None

    @staticmethod
    def wrapping(el: Tag) -> Optional[str]:
        parent = el.find_parent("label")
        if parent is None:
            return None
        return _text_without_controls(parent) or None

    @staticmethod
    def legend(el: Tag) -> Optional[str]:
        fieldset = el.find_parent("fieldset")
        if fieldset is None:
            return None
        legend = fieldset.find("legend")
        return _acceptable(legend.get_text(" ")) if legend else None

    @staticmethod
    def preceding_sibling(anchor: Tag) -> Optional[str]:
        for sib in anchor.previous_siblings:
            if not isinstance(sib, Tag):
                continue
            if _contains_control(sib):
                # 直前の別フィールドに到達したら打ち切り
                return None
            if sib.name not in TEXT_BEARING_TAGS:
                continue
            text = normalize_space(sib.get_text(" "))
            if not text:
                continue
            return _acceptable(text)
        return None

    def nearby(self, anchor: Tag) -> Optional[str]:
        text = self.preceding_sibling(anchor)
        if text:
            return text
        parent = anchor.parent
        if parent is None or parent is self.form:
            return None
        return self.preceding_sibling(parent)

    def for_control(self, el: Tag) -> Optional[str]:
        label = self.explicit(el) or self.wrapping(el)
        if label:
            return label
        return self.nearby(el)

    def for_group(self, first: Tag) -> Optional[str]:
        label = self.legend(first)
        if label:
            return label
        anchor = first.find_parent("label") or first
        return self.nearby(anchor)

    def option_label(self, el: Tag) -> str:
        wrapper = el.find_parent("label")
        # 設問文ごと全選択肢を包む label は選択肢のラベルにならない
        if wrapper is not None and len(wrapper.find_all(CONTROL_TAGS)) > 1:
            return self.explicit(el) or (el.get("value") or "")
        return self.explicit(el) or self.wrapping(el) or (el.get("value") or "")


def _select_options(el: Tag) -> List[str]:
    options: List[str] = []
    for opt in el.find_all("option"):
        value = opt.get("value")
        options.append(value if value else normalize_space(opt.get_text(" ")))
    return options


def _submit_text(form: Tag) -> Optional[str]:
    for el in form.find_all(["button", "input"]):
        if (el.get("type") or "").strip().lower() != "submit":
            continue
        if el.name == "button":
            text = normalize_space(el.get_text(" "))
        else:
            text = normalize_space(el.get("value") or "")
        return text or None
    return None


def _build_form(form: Tag, root: Tag) -> FormStructure:
    resolver = _LabelResolver(form, root)
    controls = [
        el for el in form.find_all(CONTROL_TAGS)
        if _control_type(el) not in SKIP_INPUT_TYPES
    ]

    # 同名の radio/checkbox が2つ以上ならグループ化する
    group_members: Dict[str, List[Tag]] = {}
    for el in controls:
        name = el.get("name") or ""
        if name and _control_type(el) in GROUPABLE_TYPES:
            group_members.setdefault(name, []).append(el)
    grouped = {name for name, members in group_members.items() if len(members) > 1}

    fields: List[FormField] = []
    emitted: set[str] = set()
    for el in controls:
        ctype = _control_type(el)
        name = el.get("name") or ""
        if name in grouped and ctype in GROUPABLE_TYPES:
            if name in emitted:
                continue
            emitted.add(name)
            members = group_members[name]
            fields.append(
                FormField(
                    name=name,
                    type=FieldKind.from_control(ctype),
                    label=resolver.for_group(members[0]),
                    placeholder=None,
                    required=any(_is_required(m) for m in members),
                    options=[resolver.option_label(m) for m in members],
                )
            )
            continue

        fields.append(
            FormField(
                name=name or el.get("id") or "",
                type=FieldKind.from_control(ctype),
                label=resolver.for_control(el),
                placeholder=el.get("placeholder") or None,
                required=_is_required(el),
                options=_select_options(el) if el.name == "select" else None,
            )
        )

    return FormStructure(
        fields=fields,
        action=form.get("action") or None,
        method=form.get("method") or None,
        submit_button=_submit_text(form),
    )


def parse_forms(html: str) -> List[FormStructure]:
    """HTML スナップショットから <form> ごとの構造を文書順に返す。"""
    soup = BeautifulSoup(html or "", "html.parser")
    return [_build_form(form, soup) for form in soup.find_all("form")]


def score_form(form: FormStructure) -> int:
    score = 0
    names = [(f.name or "").lower() for f in form.fields]
    if any(f.type == FieldKind.EMAIL for f in form.fields) or any("email" in n for n in names):
        score += 10
    if any(f.type == FieldKind.TEXTAREA for f in form.fields):
        score += 10
    if any("name" in n for n in names):
        score += 5
    if any(f.type == FieldKind.TEL for f in form.fields) or any("phone" in n for n in names):
        score += 3
    if 3 <= len(form.fields) <= 10:
        score += 5
    return score


def select_contact_form(forms: List[FormStructure]) -> Optional[FormStructure]:
    if not forms:
        return None
    if len(forms) == 1:
        return forms[0]
    scored: List[Tuple[int, FormStructure]] = [(score_form(f), f) for f in forms]
    # 同点は先に現れたフォームを優先（安定ソート）
    scored.sort(key=lambda x: -x[0])
    log.debug("[form] scores=%s", [s for s, _ in scored])
    return scored[0][1]


async def extract_forms(page: Page) -> List[FormStructure]:
    try:
        html = await page.content()
        return parse_forms(html)
    except Exception:
        log.warning("[form] extraction failed url=%s", getattr(page, "url", ""), exc_info=True)
        return []


async def extract_contact_form(page: Page) -> Optional[FormStructure]:
    return select_contact_form(await extract_forms(page))
