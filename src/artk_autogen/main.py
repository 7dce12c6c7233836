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

from artk_autogen import __version__
from artk_autogen.commands import check, debt, generate
from artk_autogen.core.logger import configure_logging

app = typer.Typer(
    name="artk-autogen",
    help="Generate, validate, verify and heal Playwright tests from Journeys",
    add_completion=False,
    pretty_exceptions_enable=False,  # Disable stack traces for users
)

app.command(name="generate")(generate.generate)
app.command(name="ir")(generate.ir)

app.command(name="validate")(check.validate)
app.command(name="verify")(check.verify)
app.command(name="run")(check.run)

app.command(name="debt")(debt.debt)


@app.callback(invoke_without_command=True)
def main(
    version: bool = typer.Option(
        None, "--version", help="Show version and exit"
    ),
    verbose: int = typer.Option(
        0, "--verbose", "-v", count=True, help="Increase log verbosity (-v, -vv, -vvv)"
    ),
):
    """
    ARTK AutoGen - Journey to verified Playwright tests
    """
    configure_logging(verbose)

    if version:
        typer.echo(f"artk-autogen {__version__}")
        raise typer.Exit()


if __name__ == "__main__":
    app()
