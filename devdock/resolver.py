from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path

from .db import log_event
from .errors import HostFileError
from .settings import Settings, settings as default_settings


MARKER = "# added by devdock"


class HostResolverConfig:
    """The single nameserver line devdock owns in the host resolver file.

    The file is shared with the OS and other tools. Only lines that equal the
    managed line exactly (ignoring surrounding whitespace) are ever touched.
    All writes replace the file atomically.
    """

    def __init__(self, path: str | Path, address: str, manage_file: bool = False, settings: Settings = default_settings):
        self.path = Path(path)
        self.address = address
        self.manage_file = manage_file
        self.settings = settings

    @classmethod
    def from_settings(cls, settings: Settings = default_settings) -> HostResolverConfig:
        return cls(settings.resolv_path, settings.dns_address, manage_file=settings.resolv_manage_file, settings=settings)

    def file_nameserver_line(self) -> str:
        return f"nameserver {self.address}    {MARKER}"

    def _is_ours(self, line: str) -> bool:
        return line.strip() == self.file_nameserver_line()

    def _read_lines(self) -> list[str] | None:
        """Current lines (with endings), or None when the file does not exist.

        Bytes that are not UTF-8 survive as surrogates and are written back unchanged.
        """
        try:
            return self.path.read_text(encoding="utf-8", errors="surrogateescape").splitlines(keepends=True)
        except FileNotFoundError:
            return None
        except OSError as e:
            raise HostFileError(f"Cannot read {self.path}: {e.strerror or e}") from e

    def _write_lines(self, lines: list[str]) -> None:
        target = self.path.resolve()
        try:
            if self.manage_file:
                target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.")
        except OSError as e:
            raise HostFileError(f"Cannot write {self.path}: {e.strerror or e}") from e
        try:
            with os.fdopen(fd, "w", encoding="utf-8", errors="surrogateescape") as f:
                f.writelines(lines)
            if target.exists():
                shutil.copymode(target, tmp)
            else:
                os.chmod(tmp, 0o644)
            os.replace(tmp, target)
        except OSError as e:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise HostFileError(f"Cannot write {self.path}: {e.strerror or e}") from e

    def has_our_nameserver(self) -> bool:
        lines = self._read_lines()
        return bool(lines) and any(self._is_ours(x) for x in lines)

    def configure(self) -> bool:
        lines = self._read_lines()
        if lines is None:
            if not self.manage_file:
                raise HostFileError(f"{self.path} not found.")
            lines = []

        ours = [i for i, x in enumerate(lines) if self._is_ours(x)]
        if len(ours) == 1:
            return True

        if ours:
            keep = ours[0]
            lines = [x for i, x in enumerate(lines) if i == keep or not self._is_ours(x)]
        else:
            if lines and not lines[-1].endswith("\n"):
                lines[-1] += "\n"
            lines.append(self.file_nameserver_line() + "\n")

        self._write_lines(lines)
        log_event("INFO", f"Nameserver {self.address} configured in {self.path}", step="configure", cfg=self.settings)
        return True

    def clean(self) -> bool:
        lines = self._read_lines()
        if not lines or not any(self._is_ours(x) for x in lines):
            return True

        remaining = [x for x in lines if not self._is_ours(x)]
        if self.manage_file and not "".join(remaining).strip():
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
            except OSError as e:
                raise HostFileError(f"Cannot remove {self.path}: {e.strerror or e}") from e
        else:
            self._write_lines(remaining)
        log_event("INFO", f"Nameserver {self.address} removed from {self.path}", step="clean", cfg=self.settings)
        return True
