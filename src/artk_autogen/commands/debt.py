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

import typer
from rich.markup import escape
from rich.table import Table

from artk_autogen.commands.common import console
from artk_autogen.core.config import Config
from artk_autogen.selectors.debt import load_debt_report


def debt(
    limit: int = typer.Option(20, "--limit", "-n", min=1, help="Show the top N entries."),
):
    """
    Show css selector fallbacks, most frequent first.
    """
    cfg = Config()
    entries = load_debt_report(cfg.debt_file)
    if not entries:
        console.print("[green]✅ No selector debt recorded.[/green]")
        return

    table = Table(title="🧾 Selector debt")
    table.add_column("Count", style="magenta", justify="right")
    table.add_column("Target", style="cyan")
    table.add_column("Selector", style="white")
    table.add_column("Journey", style="white")
    table.add_column("Location", style="dim")
    for entry in entries[:limit]:
        table.add_row(
            str(entry["count"]),
            escape(entry["target"]),
            escape(entry.get("selector", "")),
            ", ".join(entry.get("journeys", [])),
            escape(f"{entry['file']}:{entry['line']}"),
        )
    console.print(table)
    if len(entries) > limit:
        console.print(f"[dim]… {len(entries) - limit} more in {cfg.debt_file}[/dim]")
