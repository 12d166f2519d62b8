"""
Tests for the built-in tools, driven through a WorkbenchSession.
"""

import pytest

from pyworkbench.channel import ChannelState
from pyworkbench.paths import resolve
from pyworkbench.session import WorkbenchSession


def _names(entries):
    return [e["name"] for e in entries]


class TestFilesystemTools:
    """Test read_directory, read_file and write_file."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("root", ["", "/", "./", "//"])
    async def test_read_root(self, session, root) -> None:
        result = await session.execute("read_directory", {"path": root})
        assert result.success
        assert result.data["path"] == "/"
        assert _names(result.data["entries"]) == ["main.py", "src", "README.md"]
        assert result.data["totalCount"] == 3

    @pytest.mark.asyncio
    async def test_read_directory_recursive(self, session) -> None:
        """Recursive listing reaches every depth."""
        result = await session.execute("read_directory", {"path": "src", "recursive": True})
        assert result.success
        pkg = next(e for e in result.data["entries"] if e["name"] == "pkg")
        assert pkg["path"] == "src/pkg"
        assert pkg["children"][0]["path"] == "src/pkg/mod.py"
        assert "content" not in pkg["children"][0]

    @pytest.mark.asyncio
    async def test_read_directory_with_content(self, session) -> None:
        result = await session.execute("read_directory", {"path": "/", "includeContent": True})
        main = result.data["entries"][0]
        assert main["content"] == "print('hello')\n"
        assert main["size"] == len("print('hello')\n")

    @pytest.mark.asyncio
    async def test_read_directory_errors(self, session) -> None:
        missing = await session.execute("read_directory", {"path": "nope"})
        assert not missing.success
        assert missing.error == "Directory not found: nope"
        assert missing.metadata["errorType"] == "not_found"

        on_file = await session.execute("read_directory", {"path": "main.py"})
        assert not on_file.success
        assert on_file.metadata["errorType"] == "validation"

    @pytest.mark.asyncio
    async def test_read_file(self, session) -> None:
        result = await session.execute("read_file", {"path": "/src/pkg/mod.py"})
        assert result.success
        assert result.data == {"path": "src/pkg/mod.py", "content": "X = 1\n", "size": 6}

    @pytest.mark.asyncio
    async def test_read_file_errors(self, session) -> None:
        missing = await session.execute("read_file", {"path": "ghost.py"})
        assert missing.error == "File not found: ghost.py"
        folder = await session.execute("read_file", {"path": "src"})
        assert folder.error == "Path is not a file: src"

    @pytest.mark.asyncio
    async def test_write_file_creates_and_overwrites(self, session) -> None:
        created = await session.execute("write_file", {"path": "src/new.py", "content": "a"})
        assert created.success
        assert created.data["created"] is True
        node_id = created.data["id"]

        updated = await session.execute("write_file", {"path": "src/new.py", "content": "bb"})
        assert updated.data["created"] is False
        assert updated.data["id"] == node_id
        assert resolve(session.tree, "src/new.py").content == "bb"

    @pytest.mark.asyncio
    async def test_write_file_missing_parent(self, session) -> None:
        before = session.tree
        result = await session.execute("write_file", {"path": "nowhere/x.py", "content": ""})
        assert not result.success
        assert session.tree is before


class TestEditingTools:
    """Test the targeted editing tools."""

    @pytest.mark.asyncio
    async def test_find_replace_twice(self) -> None:
        """The second identical replace fails because the text is gone."""
        session = WorkbenchSession(enable_execution=False)
        await session.execute("create_item", {"path": "test.txt", "type": "file", "content": "A"})

        first = await session.execute(
            "modify_text", {"filePath": "test.txt", "findText": "A", "replaceText": "B"}
        )
        assert first.success
        assert first.data["replacementCount"] == 1
        assert resolve(session.tree, "test.txt").content == "B"

        second = await session.execute(
            "modify_text", {"filePath": "test.txt", "findText": "A", "replaceText": "B"}
        )
        assert not second.success
        assert "Text not found in file" in second.error
        assert resolve(session.tree, "test.txt").content == "B"

    @pytest.mark.asyncio
    async def test_modify_text_replace_content(self, session) -> None:
        result = await session.execute(
            "modify_text", {"filePath": "main.py", "newContent": "print('bye')\n"}
        )
        assert result.data["mode"] == "replace_content"
        assert resolve(session.tree, "main.py").content == "print('bye')\n"

    @pytest.mark.asyncio
    async def test_insert_and_delete_lines(self, session) -> None:
        inserted = await session.execute(
            "insert_text_at_line",
            {"filePath": "src/utils.py", "lineNumber": 1, "content": "import os"},
        )
        assert inserted.success
        content = resolve(session.tree, "src/utils.py").content
        assert content.splitlines()[0] == "import os"

        deleted = await session.execute("delete_lines", {"filePath": "src/utils.py", "startLine": 1})
        assert deleted.success
        assert resolve(session.tree, "src/utils.py").content == "def helper():\n    return 1\n"

    @pytest.mark.asyncio
    async def test_line_number_type_is_checked(self, session) -> None:
        result = await session.execute(
            "insert_text_at_line", {"filePath": "main.py", "lineNumber": "1", "content": "x"}
        )
        assert not result.success
        assert "Parameter 'lineNumber' must be of type integer" in result.error

    @pytest.mark.asyncio
    async def test_append_and_prepend(self, session) -> None:
        await session.execute("append_text", {"filePath": "README.md", "content": "tail"})
        await session.execute("prepend_text", {"filePath": "README.md", "content": "head"})
        content = resolve(session.tree, "README.md").content
        assert content.startswith("head\n")
        assert content.rstrip().endswith("tail")

    @pytest.mark.asyncio
    async def test_editing_a_folder_fails(self, session) -> None:
        result = await session.execute("append_text", {"filePath": "src", "content": "x"})
        assert not result.success
        assert result.error == "Path is not a file: src"


class TestWorkspaceTools:
    """Test create, delete, rename, move and copy."""

    @pytest.mark.asyncio
    async def test_create_folder_and_file(self, session) -> None:
        folder = await session.execute("create_item", {"path": "docs", "type": "folder"})
        assert folder.success
        assert folder.data["parentPath"] == "/"
        nested = await session.execute("create_item", {"path": "docs/a.md", "type": "file"})
        assert nested.data["parentPath"] == "docs"
        assert resolve(session.tree, "docs/a.md").content == ""

    @pytest.mark.asyncio
    async def test_create_rejects_bad_type(self, session) -> None:
        result = await session.execute("create_item", {"path": "x", "type": "symlink"})
        assert not result.success

    @pytest.mark.asyncio
    async def test_create_existing(self, session) -> None:
        result = await session.execute("create_item", {"path": "main.py", "type": "file"})
        assert result.error == "Item already exists at path: main.py"
        assert result.metadata["errorType"] == "conflict"

    @pytest.mark.asyncio
    async def test_delete_folder(self, session) -> None:
        result = await session.execute("delete_item", {"path": "src"})
        assert result.success
        assert len(result.data["removedIds"]) == 4
        assert resolve(session.tree, "src/utils.py") is None

    @pytest.mark.asyncio
    async def test_rename(self, session) -> None:
        result = await session.execute("rename_item", {"path": "src/utils.py", "newName": "helpers.py"})
        assert result.data["newPath"] == "src/helpers.py"
        assert resolve(session.tree, "src/helpers.py") is not None

        clash = await session.execute("rename_item", {"path": "main.py", "newName": "README.md"})
        assert not clash.success
        assert "already exists in the same directory" in clash.error

    @pytest.mark.asyncio
    async def test_move_keeps_ids(self, session) -> None:
        node_id = resolve(session.tree, "main.py").id
        result = await session.execute("move_item", {"sourcePath": "main.py", "targetPath": "src/pkg"})
        assert result.success
        assert result.data["newPath"] == "src/pkg/main.py"
        assert resolve(session.tree, "src/pkg/main.py").id == node_id

    @pytest.mark.asyncio
    async def test_move_into_descendant(self, session) -> None:
        before = session.tree
        result = await session.execute("move_item", {"sourcePath": "src", "targetPath": "src/pkg"})
        assert not result.success
        assert result.error == "Cannot move a folder into itself or its descendants"
        assert session.tree is before

    @pytest.mark.asyncio
    async def test_copy_gets_new_ids(self, session) -> None:
        result = await session.execute(
            "copy_item", {"sourcePath": "src", "targetPath": "/", "newName": "src_copy"}
        )
        assert result.success
        assert result.data["nodesCopied"] == 4
        original = resolve(session.tree, "src/pkg/mod.py")
        copy = resolve(session.tree, "src_copy/pkg/mod.py")
        assert copy.content == original.content
        assert copy.id != original.id


class TestRegistryBoundary:
    """Test behaviour at the registry boundary."""

    @pytest.mark.asyncio
    async def test_unknown_tool_leaves_tree(self, session) -> None:
        before = session.tree
        result = await session.execute("no_such_tool", {"path": "main.py"})
        assert not result.success
        assert result.metadata["errorType"] == "not_found"
        assert session.tree is before

    @pytest.mark.asyncio
    async def test_missing_required_argument(self, session) -> None:
        result = await session.execute("read_file", {})
        assert not result.success
        assert "Missing required parameter: path" in result.error


class TestExecutionTools:
    """Test the execution tools against the in-memory transport."""

    @pytest.mark.asyncio
    async def test_execute_python(self, session, fake_transport) -> None:
        fake_transport.handlers["run"] = lambda m: {
            "type": "result", "stdout": "2\n", "stderr": "", "executionTime": 4.0,
        }
        result = await session.execute(
            "execute_python",
            {"code": "print(1 + 1)", "files": [{"path": "data.txt", "content": "x"}]},
        )
        assert result.success
        assert result.data["stdout"] == "2\n"
        assert result.metadata["codeLength"] == len("print(1 + 1)")
        assert result.metadata["filesIncluded"] == 1
        assert session.channel.state == ChannelState.READY
        assert len(fake_transport.sent_of_type("init")) == 1

    @pytest.mark.asyncio
    async def test_execute_python_bad_files(self, session) -> None:
        result = await session.execute("execute_python", {"code": "x", "files": [{"path": "a"}]})
        assert not result.success
        assert result.metadata["errorType"] == "validation"

    @pytest.mark.asyncio
    async def test_runtime_error_reply(self, session, fake_transport) -> None:
        fake_transport.handlers["run"] = lambda m: {"type": "error", "error": "boom"}
        result = await session.execute("execute_python", {"code": "x"})
        assert not result.success
        assert result.error == "boom"
        assert result.metadata["errorType"] == "runtime_fault"

    @pytest.mark.asyncio
    async def test_timeout_in_milliseconds(self, session, fake_transport) -> None:
        fake_transport.handlers["run"] = lambda m: None
        result = await session.execute("execute_python", {"code": "x", "timeout": 50})
        assert not result.success
        assert result.error == "Code execution timed out after 50ms"
        assert result.metadata["errorType"] == "timeout"
        assert session.channel.state == ChannelState.READY

    @pytest.mark.asyncio
    async def test_non_positive_timeout(self, session) -> None:
        result = await session.execute("execute_python", {"code": "x", "timeout": 0})
        assert not result.success
        assert result.metadata["errorType"] == "validation"

    @pytest.mark.asyncio
    async def test_execute_with_workspace_sends_all_files(self, session, fake_transport) -> None:
        result = await session.execute("execute_with_workspace", {"code": "import main"})
        assert result.success
        assert result.metadata["workspaceFilesIncluded"] == 4
        paths = {f["path"] for f in fake_transport.sent_of_type("run")[0]["files"]}
        assert paths == {"main.py", "src/utils.py", "src/pkg/mod.py", "README.md"}

    @pytest.mark.asyncio
    async def test_run_main_script(self, session, fake_transport) -> None:
        result = await session.execute("run_main_script", {})
        assert result.success
        assert result.metadata["executedMainPy"] is True
        assert result.metadata["usedFallback"] is False
        assert fake_transport.sent_of_type("run")[0]["entryPoint"] == "main.py"

    @pytest.mark.asyncio
    async def test_run_main_script_fallback(self, fake_transport, config) -> None:
        session = WorkbenchSession(config=config, transport=fake_transport)
        result = await session.execute("run_main_script", {"fallbackCode": "print(3)"})
        assert result.success
        assert result.metadata["usedFallback"] is True
        request = fake_transport.sent_of_type("run")[0]
        assert request["code"] == "print(3)"
        assert "entryPoint" not in request

    @pytest.mark.asyncio
    async def test_run_main_script_without_main(self, fake_transport, config) -> None:
        session = WorkbenchSession(config=config, transport=fake_transport)
        result = await session.execute("run_main_script", {})
        assert not result.success
        assert result.error == "No main.py file found and no fallback code provided"
        assert fake_transport.sent == []

    @pytest.mark.asyncio
    async def test_test_code_reports_stderr(self, session, fake_transport) -> None:
        fake_transport.handlers["run"] = lambda m: {
            "type": "result", "stdout": "1\n", "stderr": "DeprecationWarning: old\n",
        }
        result = await session.execute("test_code", {"code": "print(1)"})
        assert result.success
        assert result.data["hasErrors"] is True
        assert result.data["testPassed"] is True
        assert result.metadata["outputValidated"] is False

        fake_transport.handlers["run"] = lambda m: {"type": "result", "stdout": "1\n", "stderr": "  \n"}
        clean = await session.execute("test_code", {"code": "print(1)"})
        assert clean.data["hasErrors"] is False

    @pytest.mark.asyncio
    async def test_test_code_validation(self, session, fake_transport) -> None:
        fake_transport.handlers["run"] = lambda m: {"type": "result", "stdout": "42\n", "stderr": ""}
        passed = await session.execute("test_code", {"code": "print(42)", "expectedOutput": "42"})
        assert passed.data["testPassed"] is True
        assert passed.data["validationMessage"] == "Output matches expected result"
        assert passed.metadata["outputValidated"] is True

        failed = await session.execute("test_code", {"code": "print(42)", "expectedOutput": "41"})
        assert failed.success
        assert failed.data["testPassed"] is False
        assert failed.data["validationMessage"] == 'Expected: "41", Got: "42"'

    @pytest.mark.asyncio
    async def test_execution_disabled(self) -> None:
        session = WorkbenchSession(enable_execution=False)
        result = await session.execute("execute_python", {"code": "print(1)"})
        assert not result.success
        assert result.error == "Execution channel not available"


class TestPackageTools:
    """Test install_package and list_packages."""

    @pytest.mark.asyncio
    async def test_install_twice(self, session, fake_transport) -> None:
        first = await session.execute("install_package", {"packageName": "numpy"})
        second = await session.execute("install_package", {"packageName": "numpy"})
        assert first.success and second.success
        assert first.data["alreadyInstalled"] is False
        assert second.data["alreadyInstalled"] is True
        assert len(fake_transport.sent_of_type("install")) == 1

    @pytest.mark.asyncio
    async def test_install_failure(self, session, fake_transport) -> None:
        fake_transport.handlers["install"] = lambda m: {"type": "error", "error": "not found"}
        result = await session.execute("install_package", {"packageName": "nosuch"})
        assert not result.success
        assert result.metadata["packageName"] == "nosuch"

    @pytest.mark.asyncio
    async def test_list_packages(self, session) -> None:
        await session.execute("install_package", {"packageName": "Requests"})
        await session.execute("install_package", {"packageName": "attrs"})
        result = await session.execute("list_packages", {})
        assert result.data == {"packages": ["attrs", "requests"], "count": 2}
