"""External asset pipelines for Folio.

An external pipeline is a command (``gulp`` by default) that writes assets
into a directory of its own. The build starts it before loading content,
lets it run while pages render, waits for it, and merges its output into
the staging directory. A command that cannot be found or exits non-zero
fails the build.

Key classes:
- ExternalPipeline: Build extension that runs one external command.

Functions:
    find_executable: Locate an executable in PATH or node_modules.
"""

from __future__ import annotations

import shlex
import shutil
import subprocess
import tempfile
from pathlib import Path
from typing import IO

from .config import ExternalPipelineSettings
from .errors import BuildError
from .extensions import BaseExtension, BuildContext


def find_executable(name: str, project_root: Path | None = None) -> str | None:
    """Find an executable in PATH or the project's node_modules.

    Names containing a path separator are resolved against the project
    root instead.

    Args:
        name: Executable name (e.g. ``gulp``) or relative path.
        project_root: Project root used for local lookups.

    Returns:
        Full path to the executable if found, None otherwise.
    """
    if "/" in name:
        candidate = Path(name)
        if not candidate.is_absolute() and project_root is not None:
            candidate = project_root / candidate
        return str(candidate) if candidate.exists() else None

    found = shutil.which(name)
    if found:
        return found

    if project_root is not None:
        local = project_root / "node_modules" / ".bin" / name
        if local.exists():
            return str(local)

    return None


class ExternalPipeline(BaseExtension):
    """Runs an external asset command alongside the build.

    Attributes:
        settings: Command, name and output directory.
        project_root: Working directory of the command.
    """

    def __init__(self, settings: ExternalPipelineSettings, project_root: Path):
        self.settings = settings
        self.project_root = project_root
        self.name = f"external:{settings.name}"
        self._process: subprocess.Popen | None = None
        self._stdout: IO[bytes] | None = None
        self._stderr: IO[bytes] | None = None

    @property
    def source_dir(self) -> Path:
        return self.project_root / self.settings.source

    def command(self) -> list[str]:
        """Return the command line with the executable resolved.

        Raises:
            BuildError: If the command is empty or the executable is missing.
        """
        args = shlex.split(self.settings.command)
        if not args:
            raise BuildError(self.project_root, f"External pipeline '{self.settings.name}' has no command")
        executable = find_executable(args[0], self.project_root)
        if executable is None:
            raise BuildError(
                self.project_root,
                f"External pipeline '{self.settings.name}': command '{args[0]}' not found",
            )
        return [executable, *args[1:]]

    def before_build(self, context: BuildContext) -> None:
        command = self.command()
        self._stdout = tempfile.TemporaryFile()
        self._stderr = tempfile.TemporaryFile()
        try:
            self._process = subprocess.Popen(
                command,
                cwd=self.project_root,
                stdout=self._stdout,
                stderr=self._stderr,
            )
        except OSError as exc:
            self._close()
            raise BuildError(
                self.project_root,
                f"External pipeline '{self.settings.name}' failed to start: {exc}",
                exc,
            ) from exc

    def after_build(self, context: BuildContext) -> None:
        returncode = self.wait()
        stdout, stderr = self._read_output()
        context.logs[self.settings.name] = stdout
        if returncode != 0:
            detail = stderr.strip() or stdout.strip()
            message = f"External pipeline '{self.settings.name}' exited with status {returncode}"
            raise BuildError(self.project_root, f"{message}: {detail}" if detail else message)
        if not self.source_dir.is_dir():
            raise BuildError(
                self.source_dir,
                f"External pipeline '{self.settings.name}' produced no output directory",
            )
        self._merge(context)

    def wait(self) -> int:
        """Wait for the command to exit and return its status."""
        if self._process is None:
            raise RuntimeError(f"External pipeline '{self.settings.name}' was not started")
        return self._process.wait()

    def abort(self, context: BuildContext) -> None:
        if self._process is not None and self._process.poll() is None:
            self._process.terminate()
            try:
                self._process.wait(timeout=10)
            except subprocess.TimeoutExpired:
                self._process.kill()
                self._process.wait()
        self._close()

    def _merge(self, context: BuildContext) -> None:
        """Copy the command's output into staging, refusing to overwrite rendered files."""
        for item in sorted(self.source_dir.rglob("*")):
            if item.is_dir():
                continue
            rel = item.relative_to(self.source_dir).as_posix()
            if rel in context.written:
                raise BuildError(
                    item,
                    f"External pipeline '{self.settings.name}' output collides with {rel}",
                )
            dest = context.staging_dir / rel
            dest.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(item, dest)
            context.written.add(rel)

    def _read_output(self) -> tuple[str, str]:
        output = []
        for stream in (self._stdout, self._stderr):
            if stream is None:
                output.append("")
                continue
            stream.seek(0)
            output.append(stream.read().decode("utf-8", errors="replace"))
        self._close()
        return output[0], output[1]

    def _close(self) -> None:
        for stream in (self._stdout, self._stderr):
            if stream is not None:
                stream.close()
        self._stdout = None
        self._stderr = None
