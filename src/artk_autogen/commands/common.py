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

"""Shared helpers for the CLI commands."""

from contextlib import contextmanager
from typing import Iterator

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from artk_autogen.core.config import Config
from artk_autogen.core.errors import AutoGenError, MappingError
from artk_autogen.core.logger import get_logger
from artk_autogen.pipeline import AutoGenPipeline
from artk_autogen.validate.validator import ValidationResult
from artk_autogen.verify.report import VerificationResult

console = Console()
logger = get_logger("commands")


def build_pipeline() -> AutoGenPipeline:
    """A pipeline for the project around the current directory (or ARTK_ROOT)."""
    return AutoGenPipeline.from_config(Config())


@contextmanager
def reported_errors() -> Iterator[None]:
    """Print pipeline errors and exit 1 instead of showing a traceback."""
    try:
        yield
    except MappingError as e:
        console.print(f"[red]❌ Mapping failed: {escape(e.reason)}[/red]")
        console.print(f"   Step {e.step_index}: {escape(e.step_text)}")
        if e.suggestion:
            console.print(f"[yellow]   Hint: {escape(e.suggestion)}[/yellow]")
        raise typer.Exit(code=1)
    except AutoGenError as e:
        console.print(f"[red]❌ {type(e).__name__}: {escape(str(e))}[/red]")
        logger.error(str(e))
        raise typer.Exit(code=1)


def render_validation(result: ValidationResult) -> None:
    if result.issues:
        table = Table(title=f"Validation issues: {result.journey_id}")
        table.add_column("Severity", style="magenta")
        table.add_column("Rule", style="cyan", no_wrap=True)
        table.add_column("Location", style="white")
        table.add_column("Message", style="white")
        for issue in result.issues:
            colour = "red" if issue.severity == "error" else "yellow"
            location = f"{issue.file}:{issue.line}" if issue.line else issue.file
            table.add_row(f"[{colour}]{issue.severity}[/{colour}]", issue.rule, escape(location), escape(issue.message))
        console.print(table)
    if result.passed:
        console.print(f"[green]✅ {result.journey_id}: validation passed ({len(result.warnings)} warnings)[/green]")
    else:
        console.print(f"[red]❌ {result.journey_id}: validation failed with {len(result.errors)} error(s)[/red]")


def render_verification(result: VerificationResult) -> None:
    if result.blocked:
        console.print(f"[red]❌ {result.journey_id}: verification blocked by validation errors[/red]")
        return
    for scenario in result.scenarios:
        colour = {"passed": "green", "failed": "red"}.get(scenario.status, "yellow")
        console.print(f"  [{colour}]{scenario.status:<8}[/{colour}] {escape(scenario.name)}")
    for failure, classification in zip(result.failures, result.classifications):
        console.print(f"[red]  {escape(failure.scenario)} ({failure.category})[/red] {classification.explanation}")
        console.print(f"  [dim]{classification.suggestion}[/dim]")
    if result.heal_outcome:
        console.print(f"  Healing: {result.heal_outcome} after {result.heal_attempts} attempt(s)")
    if result.passed:
        console.print(f"[green]✅ {result.journey_id}: verification passed[/green]")
    else:
        console.print(f"[red]❌ {result.journey_id}: verification failed[/red]")
