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

import asyncio
from typing import List, Optional

import typer
from rich.table import Table

from artk_autogen.commands.common import (
    build_pipeline,
    console,
    render_validation,
    render_verification,
    reported_errors,
)
from artk_autogen.core.logger import get_logger

logger = get_logger("commands.check")


def validate(
    journey_id: str = typer.Argument(..., help="Journey id, e.g. JRN-0001."),
):
    """
    Statically check a Journey's generated code.
    """
    with reported_errors():
        result = build_pipeline().validate(journey_id)
    render_validation(result)
    if not result.passed:
        raise typer.Exit(code=1)


def verify(
    journey_id: str = typer.Argument(..., help="Journey id, e.g. JRN-0001."),
    heal: bool = typer.Option(False, "--heal", help="Apply allow-listed fixes to failures and re-verify."),
    max_heal_attempts: Optional[int] = typer.Option(
        None, "--max-heal-attempts", min=0, help="Override the policy's healing attempt bound."
    ),
):
    """
    Run a Journey's generated test through the execution host.
    """
    with reported_errors():
        result = build_pipeline().verify(journey_id, heal=heal, max_heal_attempts=max_heal_attempts)
    render_verification(result)
    if not result.passed:
        raise typer.Exit(code=1)


def run(
    journey_ids: List[str] = typer.Argument(..., help="Journey ids to process concurrently."),
    verify: bool = typer.Option(False, "--verify", help="Also run the generated tests."),
    heal: bool = typer.Option(False, "--heal", help="Heal verification failures."),
    concurrency: int = typer.Option(4, "--concurrency", "-j", min=1, help="Journeys processed at once."),
):
    """
    Generate, validate and optionally verify several Journeys in parallel.
    """
    with reported_errors():
        pipeline = build_pipeline()
    outcomes = asyncio.run(pipeline.run_many(journey_ids, verify=verify, heal=heal, concurrency=concurrency))

    table = Table(title="Journeys")
    table.add_column("Journey", style="cyan", no_wrap=True)
    table.add_column("Stages", style="white")
    table.add_column("Result", style="white")
    for journey_id in journey_ids:
        outcome = outcomes[journey_id]
        if outcome.error is not None:
            status = f"[red]{type(outcome.error).__name__}[/red]"
        elif outcome.passed:
            status = "[green]passed[/green]"
        else:
            status = "[red]failed[/red]"
        table.add_row(journey_id, " → ".join(outcome.stages) or "-", status)
    console.print(table)
    logger.info(f"Processed {len(outcomes)} journeys")
    if not all(o.passed for o in outcomes.values()):
        raise typer.Exit(code=1)
