"""Arbor CLI - browse, search and export tree files.

Entry point for the `arbor` command. Requires ``pip install arbor[cli]``.

Commands:
    show      Render one page of a tree file, optionally filtered
    find      List nodes whose display value matches a term
    stats     Node, level and paging counts
    export    Write the tree (or the filtered tree) as JSON or CSV
"""


def _require_typer():
    """Check that typer is available."""
    try:
        import typer  # noqa: F401
    except ImportError:
        import sys

        print("Error: typer is required for the CLI. Install with: pip install arbor[cli]", file=sys.stderr)
        raise SystemExit(1) from None


def create_app():
    """Create the Typer app with all commands."""
    _require_typer()

    import logging
    from typing import Annotated

    import typer

    from arbor.cli.tree_cmd import register_commands

    app = typer.Typer(
        name="arbor",
        help="Browse, search and export hierarchical JSON data.",
        no_args_is_help=True,
    )

    @app.callback()
    def _configure(
        verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Log tree operations to stderr")] = False,
    ):
        if verbose:
            logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    register_commands(app)
    return app


def main():
    """CLI entry point."""
    app = create_app()
    app()
