# Copyright 2026 Justin Cook
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Ordered pattern rules from normalized step text to IR primitives.

Rules run against glossary-normalized text, but the groups they capture are
read back from the author's wording. Lower rank is more specific; the
best-ranked matches decide the primitive and list order breaks ties between
rules that agree on it.
"""

import difflib
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Pattern, Tuple

from artk_autogen.ir.types import IRPrimitive, ModuleCall, TargetRef, ValueSpec
from artk_autogen.mapping.glossary import Normalized

TEMPLATE_PLACEHOLDER = re.compile(r"\{\{\s*([\w.]+)\s*\}\}")

_USER = r"^(?:(?:the\s+)?user\s+)?"
_SHOULD = r"(?:should\s+)?"
_Q = r"[\"']"
_OPT_Q = r"[\"']?"

_CLICK_KINDS = r"button|link|tab|menu\s+item|menuitem|checkbox|radio\s+button|radio|option|icon"
_FIELD_KINDS = r"field|input|box|text\s+box|textbox|textarea|search\s+box"
_SELECT_KINDS = r"dropdown|select|list|combobox"
_ELEMENT_KINDS = r"heading|button|link|dialog|modal|message|alert|form|table|tab|checkbox|field"


@dataclass(frozen=True)
class Extraction:
    primitive: IRPrimitive
    target: Optional[TargetRef] = None
    value: Optional[ValueSpec] = None
    module_call: Optional[ModuleCall] = None


@dataclass(frozen=True)
class PatternRule:
    name: str
    rank: int
    primitive: IRPrimitive
    regex: Pattern[str]
    extract: Callable[["re.Match[str]"], Extraction]

    def match(self, text: str, source: Optional[Normalized] = None) -> Optional[Extraction]:
        m = self.regex.match(text)
        if m is None:
            return None
        return self.extract(SourceMatch(m, source) if source is not None else m)


class SourceMatch:
    """A match over normalized text whose groups read from the original."""

    def __init__(self, match: "re.Match[str]", source: Normalized):
        self._match = match
        self._source = source

    def group(self, index: int = 0) -> Optional[str]:
        if self._match.group(index) is None:
            return None
        return self._source.source(*self._match.span(index))


def value_spec(raw: str) -> ValueSpec:
    if TEMPLATE_PLACEHOLDER.search(raw):
        return ValueSpec.template(raw)
    return ValueSpec.literal(raw)


def _kind(raw: Optional[str], default: Optional[str] = None) -> Optional[str]:
    return " ".join(raw.lower().split()) if raw else default


def _page_path(name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return f"/{slug}"


def _split_args(raw: Optional[str]) -> Tuple[str, ...]:
    if not raw:
        return ()
    parts = re.findall(r"\s*(?:\"([^\"]*)\"|'([^']*)'|([^,]+))", raw)
    return tuple(next(p for p in group if p).strip() for group in parts if any(group))


def _rule(name: str, rank: int, primitive: IRPrimitive, pattern: str, extract) -> PatternRule:
    return PatternRule(name, rank, primitive, re.compile(pattern, re.IGNORECASE), extract)


PATTERN_RULES: Tuple[PatternRule, ...] = (
    # Navigation and waits
    _rule(
        "navigate-url", 10, IRPrimitive.NAVIGATE,
        _USER + r"navigates?\s+to\s+(?:the\s+)?" + _OPT_Q + r"((?:https?://|/)[^\s\"']*)" + _OPT_Q + r"(?:\s+page)?$",
        lambda m: Extraction(IRPrimitive.NAVIGATE, value=ValueSpec.literal(m.group(1))),
    ),
    _rule(
        "navigate-page", 10, IRPrimitive.NAVIGATE,
        _USER + r"navigates?\s+to\s+(?:the\s+)?" + _OPT_Q + r"(.+?)" + _OPT_Q + r"\s+page$",
        lambda m: Extraction(IRPrimitive.NAVIGATE, value=ValueSpec.literal(_page_path(m.group(1)))),
    ),
    # "User is on the login page" is a precondition, so the test goes there.
    _rule(
        "on-url", 10, IRPrimitive.NAVIGATE,
        _USER + r"(?:is|starts?)\s+(?:on|at|from)\s+(?:the\s+)?" + _OPT_Q + r"((?:https?://|/)[^\s\"']*)" + _OPT_Q
        + r"(?:\s+page)?$",
        lambda m: Extraction(IRPrimitive.NAVIGATE, value=ValueSpec.literal(m.group(1))),
    ),
    _rule(
        "on-page", 10, IRPrimitive.NAVIGATE,
        _USER + r"(?:is|starts?)\s+(?:on|at|from)\s+(?:the\s+)?" + _OPT_Q + r"(.+?)" + _OPT_Q + r"\s+(?:page|screen)$",
        lambda m: Extraction(IRPrimitive.NAVIGATE, value=ValueSpec.literal(_page_path(m.group(1)))),
    ),
    _rule(
        "redirected-url", 10, IRPrimitive.WAIT_FOR_STATE,
        _USER + r"(?:is\s+|should\s+be\s+)?redirected\s+to\s+(?:the\s+)?" + _OPT_Q + r"((?:https?://|/)[^\s\"']*)"
        + _OPT_Q + r"$",
        lambda m: Extraction(IRPrimitive.WAIT_FOR_STATE, value=ValueSpec.literal(m.group(1))),
    ),
    _rule(
        "redirected-page", 10, IRPrimitive.WAIT_FOR_STATE,
        _USER + r"(?:is\s+|should\s+be\s+)?redirected\s+to\s+(?:the\s+)?" + _OPT_Q + r"(.+?)" + _OPT_Q
        + r"\s+(?:page|screen)$",
        lambda m: Extraction(IRPrimitive.WAIT_FOR_STATE, value=ValueSpec.literal(_page_path(m.group(1)))),
    ),
    _rule(
        "page-shown", 10, IRPrimitive.WAIT_FOR_STATE,
        r"^(?:the\s+)?" + _OPT_Q + r"(.+?)" + _OPT_Q + r"\s+(?:page|screen)\s+(?:is|should\s+be)\s+(?:visible|loaded|open)$",
        lambda m: Extraction(IRPrimitive.WAIT_FOR_STATE, value=ValueSpec.literal(_page_path(m.group(1)))),
    ),
    _rule(
        "wait-load-state", 10, IRPrimitive.WAIT_FOR_STATE,
        _USER + r"waits?\s+for\s+(?:the\s+)?(?:page\s+)?(?:to\s+)?(?:finish\s+)?"
        r"(load|loading|domcontentloaded|networkidle|network\s+(?:to\s+be\s+)?idle)$",
        lambda m: Extraction(
            IRPrimitive.WAIT_FOR_STATE,
            value=ValueSpec.literal(
                "networkidle" if "idle" in m.group(1).lower()
                else "domcontentloaded" if m.group(1).lower() == "domcontentloaded"
                else "load"
            ),
        ),
    ),
    _rule(
        "wait-url", 10, IRPrimitive.WAIT_FOR_STATE,
        _USER + r"waits?\s+for\s+(?:navigation|the\s+url)\s+to\s+" + _OPT_Q + r"([^\s\"']+)" + _OPT_Q + r"$",
        lambda m: Extraction(IRPrimitive.WAIT_FOR_STATE, value=ValueSpec.literal(m.group(1))),
    ),
    _rule(
        "url-should-be", 10, IRPrimitive.WAIT_FOR_STATE,
        r"^(?:the\s+)?(?:url|page)\s+should\s+(?:be|contain|change\s+to)\s+" + _OPT_Q + r"([^\s\"']+)" + _OPT_Q + r"$",
        lambda m: Extraction(IRPrimitive.WAIT_FOR_STATE, value=ValueSpec.literal(m.group(1))),
    ),
    # Interactions
    _rule(
        "module-call", 20, IRPrimitive.CUSTOM_MODULE_CALL,
        _USER + r"(?:calls?|runs?|uses?)\s+([a-z_]\w*)\.([a-z_]\w*)(?:\s+with\s+(.+))?$",
        lambda m: Extraction(
            IRPrimitive.CUSTOM_MODULE_CALL,
            module_call=ModuleCall(m.group(1).lower(), m.group(2), _split_args(m.group(3))),
        ),
    ),
    _rule(
        "click-kind", 20, IRPrimitive.CLICK,
        _USER + r"clicks?\s+(?:on\s+)?(?:the\s+)?" + _OPT_Q + r"(.+?)" + _OPT_Q + rf"\s+({_CLICK_KINDS})$",
        lambda m: Extraction(IRPrimitive.CLICK, target=TargetRef(m.group(1), _kind(m.group(2)))),
    ),
    _rule(
        "click-quoted", 20, IRPrimitive.CLICK,
        _USER + r"clicks?\s+(?:on\s+)?(?:the\s+)?" + _Q + r"([^\"']+)" + _Q + r"$",
        lambda m: Extraction(IRPrimitive.CLICK, target=TargetRef(m.group(1))),
    ),
    # Checking and unchecking are both a click on the checkbox.
    _rule(
        "check-quoted", 20, IRPrimitive.CLICK,
        _USER + r"(?:un)?(?:check|tick)s?\s+(?:the\s+)?" + _Q + r"([^\"']+)" + _Q
        + r"(?:\s+(?:checkbox|check\s+box|box|option))?$",
        lambda m: Extraction(IRPrimitive.CLICK, target=TargetRef(m.group(1), "checkbox")),
    ),
    _rule(
        "check-kind", 20, IRPrimitive.CLICK,
        _USER + r"(?:(?:un)?(?:check|tick)s?|enables?|disables?)\s+(?:the\s+)?(.+?)\s+(?:checkbox|check\s+box)$",
        lambda m: Extraction(IRPrimitive.CLICK, target=TargetRef(m.group(1), "checkbox")),
    ),
    _rule(
        "fill-template", 20, IRPrimitive.FILL,
        _USER + r"enters?\s+" + _OPT_Q + r"(\{\{\s*[\w.]+\s*\}\})" + _OPT_Q + r"\s+(?:in|into)\s+(?:the\s+)?"
        + _OPT_Q + r"(.+?)" + _OPT_Q + rf"(?:\s+({_FIELD_KINDS}))?$",
        lambda m: Extraction(
            IRPrimitive.FILL,
            target=TargetRef(m.group(2), _kind(m.group(3), "field")),
            value=ValueSpec.template(m.group(1)),
        ),
    ),
    _rule(
        "fill-unique", 20, IRPrimitive.FILL,
        _USER + r"enters?\s+(?:a\s+)?unique\s+(.+?)\s+(?:in|into)\s+(?:the\s+)?"
        + _OPT_Q + r"(.+?)" + _OPT_Q + rf"(?:\s+({_FIELD_KINDS}))?$",
        lambda m: Extraction(
            IRPrimitive.FILL,
            target=TargetRef(m.group(2), _kind(m.group(3), "field")),
            value=ValueSpec.variable(m.group(1)),
        ),
    ),
    _rule(
        "fill-quoted", 20, IRPrimitive.FILL,
        _USER + r"enters?\s+" + _Q + r"([^\"']*)" + _Q + r"\s+(?:in|into)\s+(?:the\s+)?"
        + _OPT_Q + r"(.+?)" + _OPT_Q + rf"(?:\s+({_FIELD_KINDS}))?$",
        lambda m: Extraction(
            IRPrimitive.FILL,
            target=TargetRef(m.group(2), _kind(m.group(3), "field")),
            value=value_spec(m.group(1)),
        ),
    ),
    _rule(
        "fill-with", 20, IRPrimitive.FILL,
        _USER + r"(?:enters?|sets?|fills?)\s+(?:in\s+)?(?:the\s+)?" + _OPT_Q + r"(.+?)" + _OPT_Q
        + rf"(?:\s+({_FIELD_KINDS}))?\s+(?:with|to)\s+" + _Q + r"([^\"']*)" + _Q + r"$",
        lambda m: Extraction(
            IRPrimitive.FILL,
            target=TargetRef(m.group(1), _kind(m.group(2), "field")),
            value=value_spec(m.group(3)),
        ),
    ),
    _rule(
        "select-option", 20, IRPrimitive.SELECT,
        _USER + r"selects?\s+" + _Q + r"([^\"']+)" + _Q + r"\s+(?:from|in)\s+(?:the\s+)?"
        + _OPT_Q + r"(.+?)" + _OPT_Q + rf"(?:\s+({_SELECT_KINDS}))?$",
        lambda m: Extraction(
            IRPrimitive.SELECT,
            target=TargetRef(m.group(2), _kind(m.group(3), "dropdown")),
            value=value_spec(m.group(1)),
        ),
    ),
    # Assertions
    _rule(
        "see-text-in", 30, IRPrimitive.ASSERT_TEXT,
        _USER + _SHOULD + r"sees?\s+" + _Q + r"([^\"']+)" + _Q + r"\s+in\s+(?:the\s+)?"
        + _OPT_Q + r"(.+?)" + _OPT_Q + rf"(?:\s+({_ELEMENT_KINDS}))?$",
        lambda m: Extraction(
            IRPrimitive.ASSERT_TEXT,
            target=TargetRef(m.group(2), _kind(m.group(3))),
            value=value_spec(m.group(1)),
        ),
    ),
    _rule(
        "contains-text", 30, IRPrimitive.ASSERT_TEXT,
        r"^(?:the\s+)?" + _OPT_Q + r"(.+?)" + _OPT_Q + rf"(?:\s+({_ELEMENT_KINDS}|text))?\s+" + _SHOULD
        + r"(?:contains?|shows?|displays?|reads?|has\s+text)\s+" + _Q + r"([^\"']+)" + _Q + r"$",
        lambda m: Extraction(
            IRPrimitive.ASSERT_TEXT,
            target=TargetRef(m.group(1), _kind(m.group(2))),
            value=value_spec(m.group(3)),
        ),
    ),
    _rule(
        "see-kind", 30, IRPrimitive.ASSERT_VISIBLE,
        _USER + _SHOULD + r"sees?\s+(?:the\s+|a\s+|an\s+)?" + _OPT_Q + r"(.+?)" + _OPT_Q + rf"\s+({_ELEMENT_KINDS})$",
        lambda m: Extraction(IRPrimitive.ASSERT_VISIBLE, target=TargetRef(m.group(1), _kind(m.group(2)))),
    ),
    _rule(
        "see-quoted", 30, IRPrimitive.ASSERT_VISIBLE,
        _USER + _SHOULD + r"sees?\s+(?:the\s+)?" + _Q + r"([^\"']+)" + _Q + r"$",
        lambda m: Extraction(IRPrimitive.ASSERT_VISIBLE, target=TargetRef(m.group(1))),
    ),
    _rule(
        "is-visible", 30, IRPrimitive.ASSERT_VISIBLE,
        r"^(?:the\s+)?" + _OPT_Q + r"(.+?)" + _OPT_Q + rf"(?:\s+({_ELEMENT_KINDS}))?\s+"
        r"(?:is|should\s+be|becomes)\s+visible$",
        lambda m: Extraction(IRPrimitive.ASSERT_VISIBLE, target=TargetRef(m.group(1), _kind(m.group(2)))),
    ),
    # Generic fallbacks. A "choose"/"pick" step matching both is ambiguous.
    _rule(
        "click-generic", 90, IRPrimitive.CLICK,
        _USER + r"(?:click|choose|pick)s?\s+(?:on\s+)?(?:the\s+)?" + _OPT_Q + r"(.+?)" + _OPT_Q + r"$",
        lambda m: Extraction(IRPrimitive.CLICK, target=TargetRef(m.group(1))),
    ),
    _rule(
        "select-generic", 90, IRPrimitive.SELECT,
        _USER + r"(?:choose|pick)s?\s+" + _Q + r"([^\"']+)" + _Q + r"\s+(?:from|in|for)\s+(?:the\s+)?"
        + _OPT_Q + r"(.+?)" + _OPT_Q + rf"(?:\s+({_SELECT_KINDS}))?$",
        lambda m: Extraction(
            IRPrimitive.SELECT,
            target=TargetRef(m.group(2), _kind(m.group(3), "dropdown")),
            value=value_spec(m.group(1)),
        ),
    ),
)


def match_rules(
    text: str,
    rules: Tuple[PatternRule, ...] = PATTERN_RULES,
    source: Optional[Normalized] = None,
) -> List[Tuple[PatternRule, Extraction]]:
    """All rules matching ``text``, in rule order."""
    matches = []
    for rule in rules:
        extraction = rule.match(text, source)
        if extraction is not None:
            matches.append((rule, extraction))
    return matches


@dataclass(frozen=True)
class UnsupportedAction:
    name: str
    regex: Pattern[str]
    reason: str
    suggestion: str


_KEYS = (
    r"enter|return|tab|escape|esc|space|spacebar|backspace|delete|home|end|page\s*up|page\s*down"
    r"|(?:arrow\s*)?(?:up|down|left|right)(?:\s+arrow)?|f\d{1,2}"
    r"|(?:ctrl|control|shift|alt|option|meta|cmd|command)\s*\+\s*\S+"
)

# Actions outside the primitive set. Matched on the author's wording, before
# synonyms turn "Press Enter" into a click.
UNSUPPORTED_ACTIONS: Tuple[UnsupportedAction, ...] = (
    UnsupportedAction(
        "hover",
        re.compile(_USER + r"(?:hovers?|mouses?\s+over|moves?\s+the\s+(?:mouse|pointer)\s+over)\b", re.IGNORECASE),
        "hovering has no test primitive",
        "wrap it in a harness module and add a hint such as (module=ui.hover)",
    ),
    UnsupportedAction(
        "key-press",
        re.compile(
            _USER + r"(?:press(?:es)?|hits?)\s+(?:the\s+)?" + _OPT_Q + rf"(?:{_KEYS})" + _OPT_Q + r"(?:\s+key)?$",
            re.IGNORECASE,
        ),
        "key presses have no test primitive",
        "wrap it in a harness module and add a hint such as (module=keyboard.press)",
    ),
    UnsupportedAction(
        "drag",
        re.compile(_USER + r"drags?\s+.+\s+(?:to|onto|into)\s+", re.IGNORECASE),
        "drag and drop has no test primitive",
        "wrap it in a harness module and add a hint such as (module=ui.drag)",
    ),
)


def unsupported_action(text: str) -> Optional[UnsupportedAction]:
    for action in UNSUPPORTED_ACTIONS:
        if action.regex.match(text):
            return action
    return None


VERBS = (
    "click", "enter", "fill", "set", "select", "choose", "pick", "navigate",
    "see", "wait", "check", "uncheck", "tick", "untick", "call", "run", "use",
)
_VOCABULARY = VERBS + tuple(f"{verb}s" for verb in VERBS)
_LEADING_WORD = re.compile(r"^((?:the\s+)?(?:user\s+)?(?:should\s+)?)([a-z]{4,})\b", re.IGNORECASE)


def repair_verb(text: str, cutoff: float = 0.85) -> Optional[str]:
    """``text`` with a misspelled leading verb replaced, or None.

    Only close matches are taken ("Clik" reads as "click"); a known verb or a
    word with no close match leaves nothing to repair.
    """
    match = _LEADING_WORD.match(text)
    if not match:
        return None
    word = match.group(2).lower()
    if word in _VOCABULARY:
        return None
    close = difflib.get_close_matches(word, _VOCABULARY, n=1, cutoff=cutoff)
    if not close:
        return None
    return f"{match.group(1)}{close[0]}{text[match.end(2):]}"
