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

"""Repo-local selector catalog.

Layout of ``.artk/selectors/catalog.json``::

    {
      "testIds": ["submit-button", "email-input"],
      "entries": {
        "email": {"role": "textbox", "name": "Email", "testid": "email-input"},
        "save": {"testid": "save-button", "css": ".btn-save"}
      }
    }

The catalog is loaded once per invocation and never mutated during a run.
"""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from artk_autogen.core.errors import ConfigError
from artk_autogen.core.logger import get_logger

logger = get_logger(__name__)

_ENTRY_FIELDS = ("role", "name", "label", "testid", "text", "css")


def catalog_key(text: str) -> str:
    """Normalize a target description into a catalog lookup key."""
    return re.sub(r"\s+", " ", text.strip().strip("\"'").lower())


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


@dataclass(frozen=True)
class CatalogEntry:
    key: str
    role: Optional[str] = None
    name: Optional[str] = None
    label: Optional[str] = None
    testid: Optional[str] = None
    text: Optional[str] = None
    css: Optional[str] = None


class SelectorCatalog:
    def __init__(self, test_ids: Iterable[str] = (), entries: Optional[Dict[str, CatalogEntry]] = None):
        self._test_ids: FrozenSet[str] = frozenset(test_ids)
        indexed = {catalog_key(k): v for k, v in (entries or {}).items()}
        self._entries: Mapping[str, CatalogEntry] = MappingProxyType(indexed)
        self._by_css: Mapping[str, CatalogEntry] = MappingProxyType(
            {e.css: e for e in indexed.values() if e.css}
        )

    @classmethod
    def empty(cls) -> "SelectorCatalog":
        return cls()

    @classmethod
    def from_dict(cls, data: Dict) -> "SelectorCatalog":
        if not isinstance(data, dict):
            raise ConfigError("selector catalog must be a JSON object")
        test_ids = data.get("testIds", [])
        raw_entries = data.get("entries", {})
        if not isinstance(test_ids, list) or not isinstance(raw_entries, dict):
            raise ConfigError("selector catalog needs a 'testIds' list and an 'entries' object")
        entries = {}
        for key, raw in raw_entries.items():
            if not isinstance(raw, dict):
                raise ConfigError(f"catalog entry {key!r} must be an object")
            unknown = set(raw) - set(_ENTRY_FIELDS)
            if unknown:
                raise ConfigError(f"catalog entry {key!r} has unknown fields: {', '.join(sorted(unknown))}")
            entries[key] = CatalogEntry(key=catalog_key(key), **{f: raw.get(f) for f in _ENTRY_FIELDS})
        # Entry test ids count as known test ids.
        known = set(test_ids) | {e.testid for e in entries.values() if e.testid}
        return cls(known, entries)

    @classmethod
    def load(cls, path: Path) -> "SelectorCatalog":
        if not path.exists():
            logger.debug(f"No selector catalog at {path}; using an empty catalog")
            return cls.empty()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid selector catalog {path}: {e}") from e
        catalog = cls.from_dict(data)
        logger.debug(f"Loaded {len(catalog)} catalog entries from {path}")
        return catalog

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, target: str) -> Optional[CatalogEntry]:
        return self._entries.get(catalog_key(target)) or self._by_css.get(target.strip())

    def has_test_id(self, test_id: str) -> bool:
        return test_id in self._test_ids

    def find_test_id(self, target: str, kind: Optional[str] = None) -> Optional[str]:
        """Return a known test id for the target, by entry or by slug convention."""
        entry = self.lookup(target)
        if entry and entry.testid:
            return entry.testid
        slug = slugify(target)
        if not slug:
            return None
        candidates = [slug]
        if kind:
            candidates.append(f"{slug}-{slugify(kind)}")
        for candidate in candidates:
            if candidate in self._test_ids:
                return candidate
        return None
