"""
Execution worker - the isolated runtime behind the execution channel.

Run as `python -m pyworkbench.worker`. The worker reads one JSON request
per line from stdin and answers each with one JSON reply per line,
echoing the request's requestId. Requests are handled strictly one at a
time.

Requests are read from a private duplicate of the original stdin and
replies go to a private duplicate of the original stdout. File descriptor
0 is then pointed at the null device and descriptor 1 at stderr, so user
code can neither consume requests nor corrupt replies.

Request types:
- init: create a fresh scratch directory, reply ready
- run: seed files into the scratch directory and execute code (or the
  entry point), reply result with captured stdout/stderr
- install: pip install a package into this interpreter, reply success
"""

import contextlib
import importlib
import io
import json
import logging
import os
import shutil
import subprocess
import sys
import tempfile
import time
import traceback
from pathlib import Path, PurePosixPath
from typing import Any, TextIO

logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "<workbench>"


class WorkerError(Exception):
    """A request that cannot be carried out; reported as an error reply."""
    pass


class Worker:
    """State of one runtime instance."""

    def __init__(self, output: TextIO) -> None:
        self._output = output
        self.scratch_dir: Path | None = None

    def reply(self, message: dict[str, Any]) -> None:
        self._output.write(json.dumps(message, ensure_ascii=False, default=str) + "\n")
        self._output.flush()

    def handle_line(self, line: str) -> None:
        try:
            request = json.loads(line)
        except json.JSONDecodeError as e:
            self.reply({"type": "error", "requestId": None, "error": f"Malformed request: {e}"})
            return
        if not isinstance(request, dict):
            self.reply({"type": "error", "requestId": None, "error": "Request must be a JSON object"})
            return

        request_id = request.get("requestId")
        handler = {
            "init": self.handle_init,
            "run": self.handle_run,
            "install": self.handle_install,
        }.get(request.get("type"))
        if handler is None:
            reply: dict[str, Any] = {
                "type": "error",
                "error": f"Unknown request type: {request.get('type')!r}",
            }
        else:
            try:
                reply = handler(request)
            except WorkerError as e:
                reply = {"type": "error", "error": str(e)}
            except Exception as e:
                logger.exception(f"Unexpected failure handling {request.get('type')!r} request")
                reply = {"type": "error", "error": f"Internal worker error: {type(e).__name__}: {e}"}
        reply["requestId"] = request_id
        self.reply(reply)

    # ------------------------------------------------------------------
    # init
    # ------------------------------------------------------------------

    def handle_init(self, request: dict[str, Any]) -> dict[str, Any]:
        self.cleanup()
        try:
            self.scratch_dir = Path(tempfile.mkdtemp(prefix="pyworkbench-"))
        except OSError as e:
            raise WorkerError(f"Failed to create scratch directory: {e}") from e
        return {"type": "ready"}

    def cleanup(self) -> None:
        if self.scratch_dir is not None:
            shutil.rmtree(self.scratch_dir, ignore_errors=True)
            self.scratch_dir = None

    # ------------------------------------------------------------------
    # run
    # ------------------------------------------------------------------

    def handle_run(self, request: dict[str, Any]) -> dict[str, Any]:
        if self.scratch_dir is None:
            raise WorkerError("Runtime not initialized")
        code = request.get("code")
        if not isinstance(code, str):
            raise WorkerError("Run request requires a 'code' string")

        seeded = self._seed_files(request.get("files") or [])
        entry_point = request.get("entryPoint")
        filename = DEFAULT_FILENAME
        source = code
        if isinstance(entry_point, str):
            entry = _normalize_relative(entry_point)
            if entry in seeded:
                filename = str(self.scratch_dir / entry)
                source = seeded[entry]

        stdout, stderr, elapsed = self._execute(source, filename)
        return {
            "type": "result",
            "stdout": stdout,
            "stderr": stderr,
            "executionTime": elapsed,
        }

    def _seed_files(self, files: list[Any]) -> dict[str, str]:
        """Replace the scratch directory contents with the given files."""
        assert self.scratch_dir is not None
        for child in self.scratch_dir.iterdir():
            if child.is_dir():
                shutil.rmtree(child, ignore_errors=True)
            else:
                child.unlink(missing_ok=True)

        seeded: dict[str, str] = {}
        for item in files:
            if not isinstance(item, dict) or not isinstance(item.get("path"), str):
                raise WorkerError("Each file must be an object with a 'path' string")
            relative = _normalize_relative(item["path"])
            if not relative:
                raise WorkerError(f"Invalid file path: {item['path']!r}")
            content = item.get("content") or ""
            target = self.scratch_dir / relative
            try:
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_text(str(content), encoding="utf-8")
            except OSError as e:
                raise WorkerError(f"Cannot write {relative}: {e}") from e
            seeded[relative] = str(content)
        return seeded

    def _execute(self, source: str, filename: str) -> tuple[str, str, float]:
        assert self.scratch_dir is not None
        scratch = str(self.scratch_dir)
        stdout = io.StringIO()
        stderr = io.StringIO()
        namespace: dict[str, Any] = {"__name__": "__main__", "__builtins__": __builtins__}
        if filename != DEFAULT_FILENAME:
            namespace["__file__"] = filename

        previous_cwd = os.getcwd()
        previous_path = list(sys.path)
        previous_stdin = sys.stdin
        previous_modules = set(sys.modules)
        start = time.perf_counter()
        os.chdir(scratch)
        sys.path.insert(0, scratch)
        # User code gets an empty stdin; input() raises EOFError.
        sys.stdin = io.StringIO("")
        try:
            with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
                try:
                    exec(compile(source, filename, "exec"), namespace)
                except SystemExit as e:
                    if e.code not in (None, 0):
                        stderr.write(f"SystemExit: {e.code}\n")
                except Exception:
                    stderr.write(traceback.format_exc())
        finally:
            elapsed = (time.perf_counter() - start) * 1000
            os.chdir(previous_cwd)
            sys.path[:] = previous_path
            sys.stdin = previous_stdin
            self._forget_scratch_modules(previous_modules, scratch)
        return stdout.getvalue(), stderr.getvalue(), elapsed

    @staticmethod
    def _forget_scratch_modules(previous: set[str], scratch: str) -> None:
        """Drop modules loaded from the scratch directory so edits are seen next run."""
        for name in set(sys.modules) - previous:
            module_file = getattr(sys.modules[name], "__file__", None) or ""
            if module_file.startswith(scratch):
                del sys.modules[name]

    # ------------------------------------------------------------------
    # install
    # ------------------------------------------------------------------

    def handle_install(self, request: dict[str, Any]) -> dict[str, Any]:
        name = request.get("packageName")
        if not isinstance(name, str) or not name.strip():
            raise WorkerError("Install request requires a 'packageName' string")
        name = name.strip()
        completed = subprocess.run(
            [sys.executable, "-m", "pip", "install", "--quiet", "--disable-pip-version-check", name],
            capture_output=True,
            text=True,
        )
        if completed.returncode != 0:
            detail = (completed.stderr or completed.stdout).strip().splitlines()
            raise WorkerError(
                f"Failed to install {name}: " + (detail[-1] if detail else f"pip exited with {completed.returncode}")
            )
        importlib.invalidate_caches()
        return {"type": "success", "message": f"Successfully installed {name}"}


def _normalize_relative(path: str) -> str:
    """Normalize a workspace path, refusing anything that leaves the scratch dir."""
    parts = [p for p in PurePosixPath(path).parts if p not in ("/", ".", "")]
    if any(p == ".." for p in parts):
        raise WorkerError(f"Path escapes the workspace: {path!r}")
    return "/".join(parts)


def main() -> None:
    """Entry point: serve requests from the original stdin until it closes."""
    logging.basicConfig(
        level=os.getenv("WORKBENCH_LOG_LEVEL", "WARNING").upper(),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s worker: %(message)s",
    )
    protocol_in = os.fdopen(os.dup(sys.stdin.fileno()), "r", encoding="utf-8")
    protocol_out = os.fdopen(os.dup(sys.stdout.fileno()), "w", encoding="utf-8")
    null_fd = os.open(os.devnull, os.O_RDONLY)
    os.dup2(null_fd, sys.stdin.fileno())
    os.close(null_fd)
    os.dup2(sys.stderr.fileno(), sys.stdout.fileno())

    worker = Worker(protocol_out)
    try:
        for line in protocol_in:
            line = line.strip()
            if line:
                worker.handle_line(line)
    finally:
        worker.cleanup()
        protocol_in.close()
        protocol_out.close()


if __name__ == "__main__":
    main()
