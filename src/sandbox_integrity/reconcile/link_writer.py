"""Shortcut creation behind a small capability interface.

Each :class:`LinkWriter` knows one platform mechanism and answers
``is_available(link_path)`` at call time. The repair stage walks the preferred
writers in order and drops to :class:`PointerFileLinkWriter`, which only needs
a writable directory, when none is available or the chosen one fails.
"""

from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from sandbox_integrity.reconcile.errors import LinkWriterError
from sandbox_integrity.utils.fs import atomic_write

if TYPE_CHECKING:
    from collections.abc import Sequence


@dataclass(frozen=True, slots=True)
class LinkSpec:
    """Everything a writer needs to materialize one shortcut."""

    link_path: Path
    target: Path
    working_directory: Path
    description: str = ""
    icon: str | None = None
    icon_index: int = 0
    arguments: str | None = None


@dataclass(frozen=True, slots=True)
class CommandExecutionResult:
    """Normalized subprocess execution result."""

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str


class CommandRunner(Protocol):
    """Injectable command runner used for deterministic/offline testing."""

    def run(
        self,
        command: Sequence[str],
        *,
        timeout_seconds: float,
    ) -> CommandExecutionResult: ...


class SubprocessCommandRunner:
    """Default command runner backed by ``subprocess.run``."""

    def run(
        self,
        command: Sequence[str],
        *,
        timeout_seconds: float,
    ) -> CommandExecutionResult:
        try:
            completed = subprocess.run(
                list(command),
                check=False,
                capture_output=True,
                text=True,
                timeout=timeout_seconds,
            )
        except subprocess.TimeoutExpired as exc:
            raise LinkWriterError(
                f"command timed out after {timeout_seconds} seconds: {command[0]}"
            ) from exc
        except OSError as exc:
            raise LinkWriterError(f"unable to start {command[0]}: {exc}") from exc

        return CommandExecutionResult(
            command=tuple(command),
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
        )


class LinkWriter(Protocol):
    """Capability interface for one shortcut mechanism."""

    name: str

    def is_available(self, link_path: Path) -> bool: ...

    def write(self, spec: LinkSpec) -> None: ...


class WindowsShellLinkWriter:
    """Create ``.lnk`` files through the ``WScript.Shell`` COM object via PowerShell."""

    name = "windows-shell"

    def __init__(
        self,
        *,
        runner: CommandRunner | None = None,
        executable: str | None = None,
        platform_name: str | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._runner = runner or SubprocessCommandRunner()
        self._executable = executable
        self._platform_name = platform_name if platform_name is not None else os.name
        self._timeout_seconds = timeout_seconds

    def is_available(self, link_path: Path) -> bool:
        if self._platform_name != "nt":
            return False
        if link_path.suffix.lower() != ".lnk":
            return False
        return self._powershell() is not None

    def write(self, spec: LinkSpec) -> None:
        powershell = self._powershell()
        if powershell is None:
            raise LinkWriterError("PowerShell is not available")

        result = self._runner.run(
            [powershell, "-NoProfile", "-NonInteractive", "-Command", _shell_link_script(spec)],
            timeout_seconds=self._timeout_seconds,
        )
        if result.returncode != 0:
            detail = result.stderr.strip() or result.stdout.strip()
            message = f"WScript.Shell failed ({result.returncode})"
            if detail:
                message = f"{message}: {detail}"
            raise LinkWriterError(message)
        if not spec.link_path.is_file():
            raise LinkWriterError(f"shortcut was not created: {spec.link_path}")

    def _powershell(self) -> str | None:
        if self._executable is not None:
            return self._executable
        return shutil.which("powershell") or shutil.which("pwsh")


class DesktopEntryLinkWriter:
    """Write freedesktop ``.desktop`` launchers."""

    name = "desktop-entry"

    def is_available(self, link_path: Path) -> bool:
        return link_path.suffix.lower() == ".desktop"

    def write(self, spec: LinkSpec) -> None:
        exec_line = _desktop_quote(str(spec.target))
        if spec.arguments:
            exec_line = f"{exec_line} {spec.arguments}"
        lines = [
            "[Desktop Entry]",
            "Type=Application",
            f"Name={spec.link_path.stem}",
            f"Exec={exec_line}",
            f"Path={spec.working_directory}",
        ]
        if spec.description:
            lines.append(f"Comment={spec.description}")
        if spec.icon:
            lines.append(f"Icon={spec.icon}")
        lines.append("Terminal=false")
        atomic_write(spec.link_path, "\n".join(lines) + "\n", create_parents=True)
        try:
            spec.link_path.chmod(0o755)
        except OSError as exc:
            raise LinkWriterError(f"unable to mark launcher executable: {exc}") from exc


class PointerFileLinkWriter:
    """Plain-text ``[InternetShortcut]`` pointer written at the declared path.

    Shells that do not understand the format still show a readable file whose
    ``URL=`` line names the executable.
    """

    name = "pointer-file"

    def is_available(self, link_path: Path) -> bool:
        return True

    def write(self, spec: LinkSpec) -> None:
        lines = [
            "[InternetShortcut]",
            f"URL={spec.target.as_uri()}",
            f"WorkingDirectory={spec.working_directory}",
        ]
        if spec.icon:
            lines.append(f"IconFile={spec.icon}")
            lines.append(f"IconIndex={spec.icon_index}")
        if spec.arguments:
            lines.append(f"Arguments={spec.arguments}")
        atomic_write(spec.link_path, "\r\n".join(lines) + "\r\n", create_parents=True)


def default_link_writers() -> tuple[LinkWriter, ...]:
    """Preferred writers in probe order; the pointer fallback is not included."""

    return (WindowsShellLinkWriter(), DesktopEntryLinkWriter())


def _shell_link_script(spec: LinkSpec) -> str:
    statements = [
        "$ErrorActionPreference = 'Stop'",
        "$shell = New-Object -ComObject WScript.Shell",
        f"$link = $shell.CreateShortcut({_ps_quote(str(spec.link_path))})",
        f"$link.TargetPath = {_ps_quote(str(spec.target))}",
        f"$link.WorkingDirectory = {_ps_quote(str(spec.working_directory))}",
    ]
    if spec.description:
        statements.append(f"$link.Description = {_ps_quote(spec.description)}")
    if spec.arguments:
        statements.append(f"$link.Arguments = {_ps_quote(spec.arguments)}")
    if spec.icon:
        statements.append(f"$link.IconLocation = {_ps_quote(f'{spec.icon},{spec.icon_index}')}")
    statements.append("$link.Save()")
    return "; ".join(statements)


def _ps_quote(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _desktop_quote(value: str) -> str:
    if any(char in value for char in ' \t"\\$`'):
        escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("$", "\\$")
        escaped = escaped.replace("`", "\\`")
        return f'"{escaped}"'
    return value


__all__ = [
    "CommandExecutionResult",
    "CommandRunner",
    "DesktopEntryLinkWriter",
    "LinkSpec",
    "LinkWriter",
    "PointerFileLinkWriter",
    "SubprocessCommandRunner",
    "WindowsShellLinkWriter",
    "default_link_writers",
]
