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

"""Marker-anchored structural editing of generated files.

A file is parsed into an arena of nodes: free text (hand-written, never
touched) and generated blocks delimited by::

    # artk:begin <key>
    ...
    # artk:end <key>

Edits address blocks by key, mutate the node list and re-serialize. Parsing
then rendering an unchanged document reproduces it byte for byte.
"""

import ast
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from artk_autogen.core.errors import GenerationError

BEGIN = re.compile(r"^(?P<indent>[ \t]*)# artk:begin (?P<key>\S+)[ \t]*$")
END = re.compile(r"^(?P<indent>[ \t]*)# artk:end (?P<key>\S+)[ \t]*$")


@dataclass
class TextNode:
    lines: List[str] = field(default_factory=list)


@dataclass
class BlockNode:
    key: str
    indent: str
    body: List[str] = field(default_factory=list)

    def lines(self) -> List[str]:
        return [f"{self.indent}# artk:begin {self.key}", *self.body, f"{self.indent}# artk:end {self.key}"]


Node = Union[TextNode, BlockNode]


class BlockDocument:
    def __init__(self, path: Path):
        self.path = path
        self._arena: List[Node] = []
        self._order: List[int] = []
        self._index: Dict[str, int] = {}

    def _add(self, node: Node) -> int:
        self._arena.append(node)
        return len(self._arena) - 1

    @classmethod
    def parse(cls, text: str, path: Path) -> "BlockDocument":
        """Build the node arena.

        Raises:
            GenerationError: unmatched, nested or duplicated markers.
        """
        doc = cls(path)
        text_lines: List[str] = []
        open_block: Optional[BlockNode] = None

        for number, line in enumerate(text.split("\n"), start=1):
            begin = BEGIN.match(line)
            end = END.match(line)
            if begin:
                if open_block is not None:
                    raise GenerationError(path, f"line {number}: block opened inside {open_block.key!r}", begin["key"])
                if begin["key"] in doc._index:
                    raise GenerationError(path, f"line {number}: duplicate block", begin["key"])
                if text_lines:
                    doc._order.append(doc._add(TextNode(text_lines)))
                    text_lines = []
                open_block = BlockNode(begin["key"], begin["indent"])
            elif end:
                if open_block is None or end["key"] != open_block.key:
                    raise GenerationError(path, f"line {number}: end marker without matching begin", end["key"])
                node_id = doc._add(open_block)
                doc._order.append(node_id)
                doc._index[open_block.key] = node_id
                open_block = None
            elif open_block is not None:
                open_block.body.append(line)
            else:
                text_lines.append(line)

        if open_block is not None:
            raise GenerationError(path, "block is never closed", open_block.key)
        if text_lines:
            doc._order.append(doc._add(TextNode(text_lines)))
        return doc

    def keys(self) -> List[str]:
        return [n.key for n in (self._arena[i] for i in self._order) if isinstance(n, BlockNode)]

    def has(self, key: str) -> bool:
        return key in self._index

    def _block(self, key: str) -> BlockNode:
        if key not in self._index:
            raise GenerationError(self.path, "anchor not found", key)
        return self._arena[self._index[key]]

    def body(self, key: str) -> List[str]:
        return list(self._block(key).body)

    def replace(self, key: str, body: List[str]) -> None:
        self._block(key).body = list(body)

    def _insert_at(self, position: int, key: str, indent: str, body: List[str], separator: List[str]) -> None:
        if key in self._index:
            raise GenerationError(self.path, "block already exists", key)
        new_ids = []
        if separator:
            new_ids.append(self._add(TextNode(list(separator))))
        block_id = self._add(BlockNode(key, indent, list(body)))
        new_ids.append(block_id)
        self._order[position:position] = new_ids
        self._index[key] = block_id

    def insert_after(self, anchor: str, key: str, indent: str, body: List[str], separator: Optional[List[str]] = None) -> None:
        self._block(anchor)
        position = self._order.index(self._index[anchor]) + 1
        self._insert_at(position, key, indent, body, separator or [])

    def insert_before(self, anchor: str, key: str, indent: str, body: List[str]) -> None:
        self._block(anchor)
        position = self._order.index(self._index[anchor])
        self._insert_at(position, key, indent, body, [])

    def append(self, key: str, indent: str, body: List[str], separator: Optional[List[str]] = None) -> None:
        """Add a block at the end, before the trailing newline."""
        position = len(self._order)
        last = self._arena[self._order[-1]] if self._order else None
        if isinstance(last, TextNode) and last.lines and last.lines[-1] == "":
            if len(last.lines) == 1:
                position -= 1
            else:
                last.lines.pop()
                self._order.append(self._add(TextNode([""])))
                position = len(self._order) - 1
        self._insert_at(position, key, indent, body, separator or [])

    def remove(self, key: str) -> None:
        """Drop a block and the blank separator directly before it."""
        node_id = self._index.pop(key, None)
        if node_id is None:
            raise GenerationError(self.path, "anchor not found", key)
        position = self._order.index(node_id)
        del self._order[position]
        if position > 0:
            previous = self._arena[self._order[position - 1]]
            if isinstance(previous, TextNode) and previous.lines and all(not line.strip() for line in previous.lines):
                del self._order[position - 1]

    def render(self) -> str:
        lines: List[str] = []
        for node_id in self._order:
            node = self._arena[node_id]
            lines.extend(node.lines() if isinstance(node, BlockNode) else node.lines)
        return "\n".join(lines)

    def validated(self) -> str:
        """Render and confirm the result is still valid Python."""
        text = self.render()
        try:
            ast.parse(text, filename=str(self.path))
        except SyntaxError as e:
            raise GenerationError(self.path, f"edit produced invalid Python at line {e.lineno}: {e.msg}") from e
        return text
