"""Tests for CLI show, find, stats and export commands."""

from __future__ import annotations

import json

import pytest

typer = pytest.importorskip("typer")

from typer.testing import CliRunner  # noqa: E402

from arbor.cli import create_app  # noqa: E402
from arbor.cli._config import ArborConfig, find_pyproject, load_config  # noqa: E402
from arbor.cli.tree_cmd import build_rich_tree, load_model  # noqa: E402

runner_cli = CliRunner()

FOREST = [
    {
        "id": "fruit",
        "name": "Fruit",
        "children": [{"id": "apple", "name": "Apple"}, {"id": "banana", "name": "Banana"}],
    },
    {"id": "greens", "name": "Greens", "children": [{"id": "kale", "name": "Kale"}]},
    {"id": "bread", "name": "Bread"},
]


@pytest.fixture
def tree_file(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    path = tmp_path / "tree.json"
    path.write_text(json.dumps(FOREST))
    return path


def invoke(*args):
    return runner_cli.invoke(create_app(), [str(a) for a in args])


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


class TestConfig:
    def test_find_pyproject_walks_up(self, tmp_path):
        pyproject = tmp_path / "pyproject.toml"
        pyproject.write_text("[project]\nname = 'test'\n")
        child = tmp_path / "a" / "b"
        child.mkdir(parents=True)
        assert find_pyproject(child) == pyproject

    def test_load_config_section(self, tmp_path):
        pyproject = tmp_path / "pyproject.toml"
        pyproject.write_text('[tool.arbor]\ndisplay_field = "title"\npage_size = 3\n')
        assert load_config(tmp_path) == ArborConfig(display_field="title", page_size=3)

    def test_load_config_empty_section(self, tmp_path):
        pyproject = tmp_path / "pyproject.toml"
        pyproject.write_text("[project]\nname = 'test'\n")
        assert load_config(tmp_path) == ArborConfig()

    def test_load_config_skips_invalid_values(self, tmp_path):
        pyproject = tmp_path / "pyproject.toml"
        pyproject.write_text('[tool.arbor]\ndisplay_field = "title"\npage_size = 0\n')
        assert load_config(tmp_path) == ArborConfig(display_field="title")

    def test_load_config_unreadable_toml(self, tmp_path):
        pyproject = tmp_path / "pyproject.toml"
        pyproject.write_text("[tool.arbor\n")
        assert load_config(tmp_path) == ArborConfig()


# ---------------------------------------------------------------------------
# Model loading and rendering
# ---------------------------------------------------------------------------


class TestLoadModel:
    def test_loads_and_searches(self, tree_file):
        model = load_model(tree_file, search="kale")
        assert [n["id"] for n in model.filtered_data] == ["greens"]

    def test_missing_file_exits(self, tmp_path):
        with pytest.raises(typer.Exit):
            load_model(tmp_path / "missing.json")

    def test_malformed_file_exits(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text('{"id": "a"}')
        with pytest.raises(typer.Exit):
            load_model(path)

    def test_pyproject_defaults_apply(self, tree_file):
        (tree_file.parent / "pyproject.toml").write_text("[tool.arbor]\npage_size = 1\n")
        model = load_model(tree_file)
        assert model.total_pages == 3

    def test_rich_tree_marks_collapsed_parents(self, tree_file):
        model = load_model(tree_file)
        root = build_rich_tree(model)
        labels = [str(child.label) for child in root.children]
        assert labels[0].endswith("[dim](+2)[/dim]")
        assert root.children[0].children == []

    def test_rich_tree_shows_expanded_children(self, tree_file):
        model = load_model(tree_file)
        model.expand("fruit")
        root = build_rich_tree(model)
        assert [str(c.label) for c in root.children[0].children] == ["Apple", "Banana"]


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class TestShow:
    def test_renders_page(self, tree_file):
        result = invoke("show", tree_file, "--page-size", "2")
        assert result.exit_code == 0
        assert "Fruit" in result.output
        assert "Bread" not in result.output
        assert "Page 1 of 2" in result.output
        assert "--page 2" in result.output

    def test_page_is_clamped(self, tree_file):
        result = invoke("show", tree_file, "--page-size", "2", "--page", "9")
        assert result.exit_code == 0
        assert "Bread" in result.output
        assert "Page 2 of 2" in result.output

    def test_search_expands_matches(self, tree_file):
        result = invoke("show", tree_file, "--search", "kale")
        assert result.exit_code == 0
        assert "Kale" in result.output
        assert "Fruit" not in result.output

    def test_json(self, tree_file):
        result = invoke("show", tree_file, "--json", "--page-size", "1")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["command"] == "show"
        assert data["data"]["page"]["total_pages"] == 3
        assert data["data"]["items"][0]["id"] == "fruit"
        assert "_internal_id" not in data["data"]["items"][0]

    def test_bad_file_exits_with_error(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = invoke("show", tmp_path / "missing.json")
        assert result.exit_code == 1
        assert "Error" in result.output


class TestFind:
    def test_table(self, tree_file):
        result = invoke("find", tree_file, "AN")
        assert result.exit_code == 0
        assert "1 nodes match 'AN'" in result.output
        assert "banana" in result.output

    def test_no_matches(self, tree_file):
        result = invoke("find", tree_file, "zzz")
        assert result.exit_code == 0
        assert "No nodes match" in result.output

    def test_json(self, tree_file):
        result = invoke("find", tree_file, "a", "--json")
        data = json.loads(result.output)["data"]
        keys = {m["natural_key"] for m in data["matches"]}
        assert keys == {"apple", "banana", "kale", "bread"}
        assert data["count"] == 4


class TestStats:
    def test_table(self, tree_file):
        result = invoke("stats", tree_file)
        assert result.exit_code == 0
        assert "total nodes" in result.output

    def test_json(self, tree_file):
        result = invoke("stats", tree_file, "--json", "--search", "kale")
        data = json.loads(result.output)["data"]
        assert data["total_nodes"] == 6
        assert data["filtered_nodes"] == 1


class TestExport:
    def test_json(self, tree_file):
        result = invoke("export", tree_file)
        assert result.exit_code == 0
        assert json.loads(result.output) == FOREST

    def test_json_filtered(self, tree_file):
        result = invoke("export", tree_file, "--search", "kale")
        assert [n["id"] for n in json.loads(result.output)] == ["greens"]

    def test_include_ids(self, tree_file):
        result = invoke("export", tree_file, "--include-ids")
        assert "_internal_id" in json.loads(result.output)[0]

    def test_csv(self, tree_file):
        result = invoke("export", tree_file, "--format", "csv")
        assert result.exit_code == 0
        assert result.output.splitlines()[:2] == [
            "Level,Parent,Name,HasChildren,Children Count",
            '0,"","Fruit",true,2',
        ]

    def test_output_file(self, tree_file):
        out = tree_file.parent / "out.csv"
        result = invoke("export", tree_file, "-f", "csv", "--output", out)
        assert result.exit_code == 0
        assert "Wrote CSV export" in result.output
        assert out.read_text().startswith("Level,Parent")

    def test_unknown_format(self, tree_file):
        result = invoke("export", tree_file, "--format", "xml")
        assert result.exit_code == 1
        assert "Unknown format" in result.output
