"""
Tests for the pyworkbench command-line interface.
"""

import json

from pyworkbench.cli.main import build_parser, load_workspace, main


class TestSchemas:
    def test_schemas(self, capsys) -> None:
        assert main(["schemas"]) == 0
        schemas = json.loads(capsys.readouterr().out)
        assert len(schemas) == 19
        assert schemas[0]["name"] == "read_directory"

    def test_openai_schemas_by_category(self, capsys) -> None:
        assert main(["schemas", "--openai", "--category", "packages"]) == 0
        schemas = json.loads(capsys.readouterr().out)
        assert [s["function"]["name"] for s in schemas] == ["install_package", "list_packages"]
        assert all(s["type"] == "function" for s in schemas)


class TestCall:
    """Test running single tools against workspace files."""

    def test_call_and_save(self, tmp_path, capsys) -> None:
        workspace = tmp_path / "workspace.json"
        workspace.write_text("[]", encoding="utf-8")

        code = main([
            "call", "create_item",
            "--args", json.dumps({"path": "app.py", "type": "file", "content": "print(1)\n"}),
            "--workspace", str(workspace),
            "--save",
        ])
        assert code == 0
        assert json.loads(capsys.readouterr().out)["success"] is True

        saved = json.loads(workspace.read_text(encoding="utf-8"))
        assert saved[0]["name"] == "app.py"
        assert saved[0]["content"] == "print(1)\n"

        assert main(["call", "read_file", "--args", '{"path": "app.py"}', "--workspace", str(workspace)]) == 0
        assert json.loads(capsys.readouterr().out)["data"]["content"] == "print(1)\n"

    def test_failed_call_is_not_saved(self, tmp_path, capsys) -> None:
        workspace = tmp_path / "workspace.json"
        workspace.write_text(json.dumps({"tree": []}), encoding="utf-8")
        code = main(["call", "delete_item", "--args", '{"path": "ghost"}', "--workspace", str(workspace), "--save"])
        assert code == 1
        assert json.loads(capsys.readouterr().out)["success"] is False
        assert json.loads(workspace.read_text(encoding="utf-8")) == {"tree": []}

    def test_bad_args(self, capsys) -> None:
        assert main(["call", "read_file", "--args", "{nope"]) == 2
        assert "Invalid --args JSON" in capsys.readouterr().err
        assert main(["call", "read_file", "--args", "[1]"]) == 2

    def test_bad_workspace(self, tmp_path) -> None:
        workspace = tmp_path / "workspace.json"
        workspace.write_text('"just a string"', encoding="utf-8")
        assert main(["call", "read_file", "--args", "{}", "--workspace", str(workspace)]) == 2


class TestHelpers:
    def test_load_missing_workspace(self, tmp_path) -> None:
        assert load_workspace(tmp_path / "absent.json") == ()
        assert load_workspace(None) == ()

    def test_parser(self) -> None:
        args = build_parser().parse_args(["run", "-", "--timeout", "500"])
        assert args.file == "-"
        assert args.timeout == 500.0

    def test_no_command_prints_help(self, capsys) -> None:
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out
