"""Reading the tail of the VPN client's diagnostic log."""

import os
from pathlib import Path
from typing import List

from .exceptions import LogUnavailableError
from ..logging_utility import logger

DEFAULT_MAX_BYTES = 256 * 1024


class LogTailReader:
    """
    Reads the most recent lines of a log file that another process appends to.

    The file is opened read-only and without locking on every call. Only the
    last ``max_bytes`` of the file are read, so the cost of a call does not
    grow with the log.
    """

    def __init__(self, log_path: Path, max_bytes: int = DEFAULT_MAX_BYTES):
        self.log_path = Path(log_path)
        self.max_bytes = max_bytes

    def _read(self) -> bytes:
        """Bytes of the trailing window, starting at a line boundary."""
        try:
            with open(self.log_path, "rb") as f:
                size = f.seek(0, os.SEEK_END)
                start = max(0, size - self.max_bytes)
                if start == 0:
                    f.seek(0)
                    return f.read(size)

                # Include the byte before the window to tell whether it opens mid-line
                f.seek(start - 1)
                data = f.read(size - start + 1)
        except FileNotFoundError:
            return b""
        except OSError as e:
            raise LogUnavailableError(f"Cannot read {self.log_path}: {str(e)}")

        newline = data.find(b"\n")
        return data[newline + 1:] if newline >= 0 else b""

    def tail(self, max_lines: int) -> List[str]:
        """
        Get the last lines of the log.

        Args:
            max_lines: Maximum number of lines to return

        Returns:
            Lines oldest first, without line terminators. Empty if the log
            does not exist yet or cannot be read.
        """
        if max_lines <= 0:
            return []
        try:
            data = self._read()
        except LogUnavailableError as e:
            logger.warning(f"Treating tunnel log as empty: {str(e)}")
            return []

        lines = data.decode("utf-8", errors="replace").split("\n")
        if lines[-1] == "":
            lines.pop()
        return [line.rstrip("\r") for line in lines[-max_lines:]]
