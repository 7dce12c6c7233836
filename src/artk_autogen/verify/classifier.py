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

"""Ordered heuristics mapping a raw failure signature to a category.

Every rule is scored by how many of its patterns match; the highest score
decides the category and rule order breaks ties. Infrastructure signatures come
first so that, for example, a refused connection during ``page.goto`` is not
mistaken for a navigation problem, and selector signatures outrank the
auth, navigation and data words a locator name may contain. Anything unmatched
is ``environment`` and is never healed.
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from artk_autogen.core.policy import HEALABLE_CATEGORIES


@dataclass(frozen=True)
class ClassificationRule:
    category: str
    patterns: Tuple[str, ...]
    explanation: str
    suggestion: str


@dataclass(frozen=True)
class Classification:
    category: str
    confidence: float
    explanation: str
    suggestion: str
    matched: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def healable(self) -> bool:
        return self.category in HEALABLE_CATEGORIES

    def to_dict(self) -> dict:
        return {
            "category": self.category,
            "confidence": round(self.confidence, 2),
            "explanation": self.explanation,
            "suggestion": self.suggestion,
            "matched": list(self.matched),
        }


RULES: List[ClassificationRule] = [
    ClassificationRule(
        "environment",
        (
            r"ECONNREFUSED",
            r"ENOTFOUND",
            r"net::ERR_(?:CONNECTION|NAME_NOT_RESOLVED|INTERNET_DISCONNECTED)",
            r"connection\s+refused",
            r"browser\s+has\s+been\s+closed",
            r"Target\s+page,\s+context\s+or\s+browser\s+has\s+been\s+closed",
            r"50[234]\s+(?:Bad\s+Gateway|Service\s+Unavailable|Gateway\s+Timeout)",
            r"Executable\s+doesn't\s+exist",
        ),
        "The application or browser was unreachable",
        "Check that the application under test is running and the browser is installed",
    ),
    ClassificationRule(
        "selector",
        (
            r"strict\s+mode\s+violation",
            r"resolved\s+to\s+\d+\s+elements",
            r"waiting\s+for\s+(?:locator|get_by_\w+)",
            r"element\s+(?:is\s+)?not\s+(?:found|visible|attached|enabled)",
            r"No\s+element\s+matches\s+selector",
            r"element\s+is\s+outside\s+of\s+the\s+viewport",
        ),
        "The locator did not identify exactly one usable element",
        "Prefer a role, label or test-id locator for this target",
    ),
    ClassificationRule(
        "auth",
        (
            r"401\s+Unauthorized",
            r"403\s+Forbidden",
            r"authentication",
            r"login\s+failed",
            r"session\s+expired",
            r"invalid\s+credentials",
            r"not\s+authenticated",
            r"access\s+denied",
        ),
        "Authentication or authorization failed",
        "Check the test account credentials and stored session state",
    ),
    ClassificationRule(
        "navigation",
        (
            r"waiting\s+for\s+navigation",
            r"navigation\s+(?:failed|was\s+interrupted)",
            r"Page\.goto:",
            r"Page\.wait_for_url:",
            r"to_have_url",
            r"expected\s+url",
        ),
        "The page did not reach the expected URL or load state",
        "Wait for the navigation to settle before the next step",
    ),
    ClassificationRule(
        "data",
        (
            r"duplicate",
            r"already\s+exists",
            r"unique\s+constraint",
            r"expected\s+(?:.*\s+)?to\s+(?:have|contain)\s+text",
            r"Locator\s+expected\s+to\s+(?:have|contain)\s+text",
        ),
        "Test data did not match the application state",
        "Namespace data created by the test so repeated runs do not collide",
    ),
    ClassificationRule(
        "timing",
        (
            r"was\s+never\s+awaited",
            r"Timeout\s+\d+ms\s+exceeded",
            r"exceeded\s+while\s+waiting",
            r"timed\s+out",
            r"TimeoutError",
        ),
        "An operation finished before the page was ready",
        "Await asynchronous calls and wait for an explicit state",
    ),
]

FALLBACK = Classification(
    category="environment",
    confidence=0.0,
    explanation="Unable to classify the failure",
    suggestion="Review the error and captured evidence manually",
)

_COMPILED = [(rule, [re.compile(p, re.IGNORECASE) for p in rule.patterns]) for rule in RULES]


def classify(signature: Optional[str]) -> Classification:
    """Classify a raw error signature (message plus traceback)."""
    text = signature or ""
    best: Optional[ClassificationRule] = None
    best_matched: Tuple[str, ...] = ()
    for rule, patterns in _COMPILED:
        matched = tuple(p.pattern for p in patterns if p.search(text))
        if len(matched) > len(best_matched):
            best, best_matched = rule, matched
    if best is None:
        return FALLBACK
    return Classification(
        category=best.category,
        confidence=min(len(best_matched) / 3, 1.0),
        explanation=best.explanation,
        suggestion=best.suggestion,
        matched=best_matched,
    )
