import logging

import typer

from bicepforge_cli import __version__
from bicepforge_cli.commands.assemble import assemble
from bicepforge_cli.commands.convert import convert
from bicepforge_cli.commands.enhance_cmd import enhance
from bicepforge_cli.commands.generate import generate
from bicepforge_cli.commands.new_cmd import new
from bicepforge_cli.commands.registry_cmd import registry_app
from bicepforge_cli.commands.serve_cmd import serve
from bicepforge_cli.commands.validate import validate


def _version_callback(value: bool) -> None:
    if value:
        print(f"bicepforge {__version__}")
        raise typer.Exit()


app = typer.Typer(
    name="bicepforge",
    help="Validate, generate and convert Azure Bicep infrastructure code",
    no_args_is_help=True,
)


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        False, "--version", "-V", help="Show version", callback=_version_callback, is_eager=True
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["json"] = json_output
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")


app.command()(validate)
app.command()(generate)
app.command()(convert)
app.command()(assemble)
app.command()(new)
app.command()(enhance)
app.command()(serve)
app.add_typer(registry_app, name="registry")
