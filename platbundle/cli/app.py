from __future__ import annotations

import typer

from platbundle.cli.commands.bundle_cmd import bundle


app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command()(bundle)


def main() -> None:
    app()
