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

"""Compiled, read-only view of the policy glossary."""

import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Pattern, Tuple

from artk_autogen.core.policy import Glossary, ModuleMethod

# Double quotes always quote; single quotes only when not inside a word
# ("user's" is not a quote).
QUOTED = re.compile(r"(\"[^\"]*\"|(?<!\w)'[^']*'(?!\w))")


def _phrase_regex(phrase: str) -> str:
    return r"\s+".join(re.escape(word) for word in phrase.split())


@dataclass(frozen=True)
class ModuleMethodRule:
    method: ModuleMethod
    regex: Pattern[str]


@dataclass(frozen=True)
class Piece:
    start: int
    end: int
    source_start: int
    source_end: int
    replaced: bool


@dataclass(frozen=True)
class Normalized:
    """Glossary-normalized text that remembers where each piece came from.

    Rules match ``text``; ``source`` returns what the author actually wrote
    for a span of it, so a synonym inside a target name ("Sign in button")
    is never rewritten into the name.
    """

    text: str
    original: str
    pieces: Tuple[Piece, ...]

    def _source_offset(self, offset: int, end: bool) -> int:
        for piece in self.pieces:
            inside = piece.start < offset <= piece.end if end else piece.start <= offset < piece.end
            if inside:
                if piece.replaced:
                    return piece.source_end if end else piece.source_start
                return piece.source_start + (offset - piece.start)
        return len(self.original) if end else 0

    def source(self, start: int, end: int) -> str:
        if start >= end:
            return ""
        return self.original[self._source_offset(start, False):self._source_offset(end, True)]


class GlossaryIndex:
    """Synonym substitution, module-method phrases and label aliases."""

    def __init__(self, glossary: Glossary):
        self._canonical: Dict[str, str] = {}
        for canonical, variants in glossary.synonyms.items():
            for variant in variants:
                self._canonical[" ".join(variant.lower().split())] = canonical

        variants = sorted(self._canonical, key=lambda v: (-len(v), v))
        self._synonym_regex: Optional[Pattern[str]] = None
        if variants:
            alternation = "|".join(_phrase_regex(v) for v in variants)
            self._synonym_regex = re.compile(rf"(?<![\w-])(?:{alternation})(?![\w-])", re.IGNORECASE)

        self._module_rules: Tuple[ModuleMethodRule, ...] = tuple(
            ModuleMethodRule(
                method=m,
                regex=re.compile(
                    rf"^(?:the\s+)?(?:user\s+)?{_phrase_regex(m.phrase)}"
                    r"(?:\s+as\s+(?:an?\s+|the\s+)?[\"']?(.+?)[\"']?)?$",
                    re.IGNORECASE,
                ),
            )
            for m in glossary.module_methods
        )
        self._label_aliases = {k.lower(): v for k, v in glossary.label_aliases.items()}

    def normalize(self, text: str) -> str:
        """Replace synonyms with their canonical form outside quoted literals."""
        return self.normalize_spans(text).text.strip()

    def normalize_spans(self, text: str) -> Normalized:
        if self._synonym_regex is None:
            return Normalized(text, text, (Piece(0, len(text), 0, len(text), False),))

        quoted = [m.span() for m in QUOTED.finditer(text)]
        parts: List[str] = []
        pieces: List[Piece] = []
        position = 0
        cursor = 0

        def keep(upto: int) -> None:
            nonlocal position, cursor
            if upto > cursor:
                length = upto - cursor
                parts.append(text[cursor:upto])
                pieces.append(Piece(position, position + length, cursor, upto, False))
                position += length
                cursor = upto

        for match in self._synonym_regex.finditer(text):
            start, end = match.span()
            if any(q_start <= start and end <= q_end for q_start, q_end in quoted):
                continue
            keep(start)
            canonical = self._canonical[" ".join(match.group(0).lower().split())]
            parts.append(canonical)
            pieces.append(Piece(position, position + len(canonical), start, end, True))
            position += len(canonical)
            cursor = end
        keep(len(text))
        return Normalized("".join(parts), text, tuple(pieces))

    def match_module_method(self, text: str) -> Optional[Tuple[ModuleMethod, Tuple[str, ...]]]:
        for rule in self._module_rules:
            match = rule.regex.match(text)
            if match:
                args = (match.group(1),) if match.group(1) else ()
                return rule.method, args
        return None

    def label_alias(self, target: str) -> str:
        return self._label_aliases.get(target.lower(), target)
