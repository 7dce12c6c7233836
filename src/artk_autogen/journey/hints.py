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

"""Machine hints embedded in Journey step text.

A hint is a parenthetical group of ``key=value`` pairs, for example::

    Click the Save button (role=button, exact=true)
    Enter "x" in the Search field (testid="search-input")

Hints are removed from the visible step text and always win over inference.
"""

import re
from dataclasses import dataclass, fields
from typing import Dict, Optional, Tuple

from artk_autogen.ir.types import IRPrimitive

_VALUE = r"(?:\"[^\"]*\"|'[^']*'|[^,)\s]+)"
HINT_GROUP = re.compile(
    rf"\(\s*[a-z]+\s*=\s*{_VALUE}(?:\s*,\s*[a-z]+\s*=\s*{_VALUE})*\s*\)"
)
HINT_PAIR = re.compile(r"([a-z]+)\s*=\s*(?:\"([^\"]*)\"|'([^']*)'|([^,)\s]+))")

VALID_ROLES = frozenset({
    "alert", "banner", "button", "cell", "checkbox", "combobox", "dialog",
    "form", "grid", "heading", "img", "link", "list", "listbox", "listitem",
    "main", "menu", "menuitem", "navigation", "option", "progressbar", "radio",
    "region", "row", "searchbox", "slider", "spinbutton", "status", "switch",
    "tab", "table", "tabpanel", "textbox",
})

LOAD_STATES = ("load", "domcontentloaded", "networkidle")


@dataclass(frozen=True)
class StepHint:
    action: Optional[IRPrimitive] = None
    role: Optional[str] = None
    name: Optional[str] = None
    testid: Optional[str] = None
    label: Optional[str] = None
    text: Optional[str] = None
    css: Optional[str] = None
    exact: Optional[bool] = None
    level: Optional[int] = None
    module: Optional[str] = None
    wait: Optional[str] = None
    timeout: Optional[int] = None

    @property
    def pins_locator(self) -> bool:
        return any((self.role, self.testid, self.label, self.text, self.css))

    def to_dict(self) -> Dict[str, object]:
        out = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None:
                out[f.name] = value.value if isinstance(value, IRPrimitive) else value
        return out


HINT_KEYS = frozenset(f.name for f in fields(StepHint))


def _coerce(key: str, value: str) -> object:
    if key == "action":
        try:
            return IRPrimitive(value)
        except ValueError:
            allowed = ", ".join(p.value for p in IRPrimitive)
            raise ValueError(f"unknown action {value!r} (expected one of: {allowed})")
    if key == "role":
        if value not in VALID_ROLES:
            raise ValueError(f"invalid ARIA role {value!r}")
        return value
    if key == "exact":
        if value.lower() not in ("true", "false"):
            raise ValueError(f"exact must be true or false, got {value!r}")
        return value.lower() == "true"
    if key in ("level", "timeout"):
        if not value.isdigit():
            raise ValueError(f"{key} must be an integer, got {value!r}")
        return int(value)
    if key == "module":
        if not re.fullmatch(r"[a-z_][a-z0-9_]*\.[a-z_][a-z0-9_]*", value):
            raise ValueError(f"module hint must look like 'module.method', got {value!r}")
        return value
    if key == "wait":
        if value not in LOAD_STATES:
            raise ValueError(f"wait must be one of {', '.join(LOAD_STATES)}, got {value!r}")
        return value
    return value


def parse_hints(text: str) -> Tuple[str, Optional[StepHint]]:
    """Split step text into visible text and an optional hint.

    Raises:
        ValueError: on unknown keys, invalid roles or malformed values.
    """
    values: Dict[str, object] = {}
    for group in HINT_GROUP.finditer(text):
        for match in HINT_PAIR.finditer(group.group(0)):
            key = match.group(1)
            raw = next(v for v in match.groups()[1:] if v is not None)
            if key not in HINT_KEYS:
                raise ValueError(f"unknown hint key {key!r}")
            values[key] = _coerce(key, raw)

    if not values:
        return text.strip(), None

    clean = HINT_GROUP.sub("", text)
    clean = re.sub(r"\s{2,}", " ", clean).strip()
    return clean, StepHint(**values)
