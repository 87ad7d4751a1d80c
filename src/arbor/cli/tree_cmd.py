"""Tree CLI commands: show, find, stats, export.

Each command loads a JSON tree file into a TreeModel, applies the
requested search and paging, and renders the result.
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.tree import Tree

from arbor.cli._config import load_config
from arbor.cli._format import print_ctas, print_json, print_lines, print_table, truncate_value, write_output
from arbor.exceptions import InvalidArgumentError, TreeConfigError
from arbor.query import display_value, natural_key, node_matches
from arbor.serializers import export_records, parse_records, to_csv
from arbor.tree._helpers import Node, children_of
from arbor.tree.core import TreeModel

# Common options
FileArgument = Annotated[Path, typer.Argument(help="JSON file holding a list of root records")]
SearchOption = Annotated[str | None, typer.Option("--search", "-s", help="Filter by display value")]
DisplayFieldOption = Annotated[str | None, typer.Option("--display-field", help="Record field used as label")]
PageSizeOption = Annotated[int | None, typer.Option("--page-size", help="Root items per page")]
JsonFlag = Annotated[bool, typer.Option("--json", help="Output as JSON")]
OutputOption = Annotated[str | None, typer.Option("--output", help="Write output to file")]


def load_model(
    path: Path,
    *,
    display_field: str | None = None,
    page_size: int | None = None,
    search: str | None = None,
) -> TreeModel:
    """Read a tree file into a TreeModel, exiting with code 1 on bad input.

    Settings fall back to [tool.arbor] in pyproject.toml, then to defaults.
    """
    config = load_config()
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        print(f"Error: Could not read '{path}': {e}")
        raise typer.Exit(1) from e

    try:
        records = parse_records(text)
        model = TreeModel(
            records,
            display_field=display_field or config.display_field,
            page_size=page_size if page_size is not None else config.page_size,
        )
    except (InvalidArgumentError, TreeConfigError) as e:
        message = e.message if isinstance(e, InvalidArgumentError) else str(e)
        print(f"Error: {message}")
        raise typer.Exit(1) from e

    if search:
        model.search(search)
    return model


def _label(node: Node, display_field: str, show_keys: bool) -> str:
    label = escape(display_value(node, display_field)) or "[dim](unnamed)[/dim]"
    if show_keys:
        label += f" [dim]({escape(natural_key(node))})[/dim]"
    return label


def build_rich_tree(model: TreeModel, *, show_keys: bool = False) -> Tree:
    """Render the model's current page as a rich Tree.

    Children are shown for expanded nodes only; collapsed parents get a
    ``(+N)`` marker with their child count.
    """
    root = Tree(f"[bold]{len(model)} nodes[/bold]", guide_style="dim")
    stack = [(node, root) for node in reversed(model.page())]
    while stack:
        node, branch_parent = stack.pop()
        children = children_of(node)
        label = _label(node, model.display_field, show_keys)
        if children and not model.is_expanded(natural_key(node)):
            label += f" [dim](+{len(children)})[/dim]"
            children = []
        branch = branch_parent.add(label)
        stack.extend((child, branch) for child in reversed(children))
    return root


def show(
    file: FileArgument,
    search: SearchOption = None,
    page: Annotated[int, typer.Option("--page", "-p", help="Page to show (clamped)")] = 1,
    page_size: PageSizeOption = None,
    display_field: DisplayFieldOption = None,
    expand: Annotated[bool, typer.Option("--expand", help="Expand every node on the page")] = False,
    keys: Annotated[bool, typer.Option("--keys", help="Show natural keys")] = False,
    as_json: JsonFlag = False,
    output: OutputOption = None,
):
    """Render one page of a tree file."""
    model = load_model(file, display_field=display_field, page_size=page_size, search=search)
    model.go_to_page(page)
    if expand:
        model.expand_all()

    info = model.page_info()
    if as_json:
        data = {
            "search": model.search_term,
            "page": info.to_dict(),
            "items": _strip_ids(model.page()),
        }
        print_json("show", data, output)
        return

    console = Console()
    console.print(build_rich_tree(model, show_keys=keys))
    console.print(
        f"\n  Page {info.current_page} of {info.total_pages} "
        f"(items {info.start_item}-{info.end_item} of {info.total_items})"
    )
    if info.current_page < info.total_pages:
        print_ctas([f"arbor show {file} --page {info.current_page + 1}   for the next page"])


def find(
    file: FileArgument,
    term: Annotated[str, typer.Argument(help="Case-insensitive substring to look for")],
    display_field: DisplayFieldOption = None,
    as_json: JsonFlag = False,
    output: OutputOption = None,
):
    """List nodes whose display value contains TERM."""
    model = load_model(file, display_field=display_field)
    needle = term.lower()
    matches = model.find_nodes(lambda node, _: node_matches(node, needle, model.display_field))

    if as_json:
        data = {
            "term": term,
            "count": len(matches),
            "matches": [
                {
                    "internal_id": m.internal_id,
                    "natural_key": natural_key(m.node),
                    "level": model.node_level(m.node),
                    "display_value": display_value(m.node, model.display_field),
                }
                for m in matches
            ],
        }
        print_json("find", data, output)
        return

    if not matches:
        print(f"\n  No nodes match '{term}'.")
        return

    headers = ["Level", "Key", "Name", "Children"]
    rows = [
        [
            str(model.node_level(m.node)),
            truncate_value(natural_key(m.node), 30),
            truncate_value(display_value(m.node, model.display_field)),
            str(len(children_of(m.node))),
        ]
        for m in matches
    ]
    print(f"\n  {len(matches)} nodes match '{term}':\n")
    print_lines(print_table(headers, rows))


def stats(
    file: FileArgument,
    search: SearchOption = None,
    page_size: PageSizeOption = None,
    display_field: DisplayFieldOption = None,
    as_json: JsonFlag = False,
    output: OutputOption = None,
):
    """Show node, level and paging counts."""
    model = load_model(file, display_field=display_field, page_size=page_size, search=search)
    result = model.stats()

    if as_json:
        print_json("stats", result.to_dict(), output)
        return

    headers = ["Metric", "Count"]
    rows = [[name.replace("_", " "), str(value)] for name, value in result.to_dict().items()]
    print(f"\n  {file}\n")
    print_lines(print_table(headers, rows))


def export(
    file: FileArgument,
    fmt: Annotated[str, typer.Option("--format", "-f", help="json or csv")] = "json",
    include_ids: Annotated[bool, typer.Option("--include-ids", help="Keep _internal_id fields")] = False,
    search: SearchOption = None,
    display_field: DisplayFieldOption = None,
    output: OutputOption = None,
):
    """Export the tree (filtered with --search) as JSON or CSV."""
    model = load_model(file, display_field=display_field, search=search)
    fmt = fmt.lower()
    if fmt == "json":
        text = model.to_json(include_internal_ids=include_ids, only_visible=bool(search))
    elif fmt == "csv":
        text = to_csv(model.filtered_data, model.display_field).rstrip("\n")
    else:
        print(f"Error: Unknown format '{fmt}'. Use 'json' or 'csv'.")
        raise typer.Exit(1)
    write_output(text, output, f"{fmt.upper()} export")


def _strip_ids(nodes: list[Node]) -> list[Node]:
    return export_records(nodes, include_internal_ids=False)


def register_commands(app: typer.Typer) -> None:
    """Register tree commands on the main app."""
    app.command("show")(show)
    app.command("find")(find)
    app.command("stats")(stats)
    app.command("export")(export)

