"""
Operator-facing progress reporting.

Orchestrators never print directly: they push step updates into a
ProgressReporter. The console implementation rewrites a single line per
step and closes it with ok / ko.
"""

import sys
from contextlib import contextmanager
from enum import Enum
from typing import Iterator, List, Optional, TextIO, Tuple

from provisioner.core.exceptions import ProvisionerError


class Section(str, Enum):
    """Steps reported to the operator."""

    COMMAND_LINE = "Command line parameters"
    OCI_CONFIGURATION = "Oracle Cloud Infrastructure configuration"
    OCI_CONNECTION = "OCI API endpoints"
    DATABASE_TERMINATION = "Database termination"
    DATABASE_CREATION = "Database creation"
    WALLET_DOWNLOAD = "Database wallet download"
    DATABASE_CONFIGURATION = "Database configuration"
    OBJECT_STORAGE_CONFIGURATION = "Object storage configuration"
    DATA_LOADING = "Data loading"
    LOCAL_CONFIGURATION = "Local configuration"

    @property
    def label(self) -> str:
        return self.value


class ProgressReporter:
    """Sink for step status updates. The base class discards everything."""

    def update(self, section: Section, message: str) -> None:
        pass

    def ok(self, section: Section, detail: Optional[str] = None) -> None:
        pass

    def ko(self, section: Section, detail: Optional[str] = None) -> None:
        pass


class RecordingProgressReporter(ProgressReporter):
    """Keeps every event in memory, used for dry inspection and tests."""

    def __init__(self):
        self.events: List[Tuple[str, Section, Optional[str]]] = []

    def update(self, section: Section, message: str) -> None:
        self.events.append(("update", section, message))

    def ok(self, section: Section, detail: Optional[str] = None) -> None:
        self.events.append(("ok", section, detail))

    def ko(self, section: Section, detail: Optional[str] = None) -> None:
        self.events.append(("ko", section, detail))

    def messages(self, section: Section) -> List[Optional[str]]:
        return [msg for _, sec, msg in self.events if sec == section]

    def closed(self, section: Section) -> Optional[str]:
        """Return "ok" or "ko" for the last closing event of a section."""
        for kind, sec, _ in reversed(self.events):
            if sec == section and kind in ("ok", "ko"):
                return kind
        return None


# ANSI color codes
class Colors:
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BLUE = "\033[94m"
    BOLD = "\033[1m"
    END = "\033[0m"


class ConsoleProgressReporter(ProgressReporter):
    """Writes one rewritable line per section to a terminal."""

    LABEL_WIDTH = 45
    LINE_WIDTH = 100

    def __init__(self, colors_enabled: bool = True, stream: Optional[TextIO] = None):
        self.colors_enabled = colors_enabled
        self.stream = stream or sys.stdout

    def _colored(self, text: str, color: str) -> str:
        if not self.colors_enabled:
            return text
        return f"{color}{text}{Colors.END}"

    def _bounded(self, section: Section, message: str) -> str:
        line = f"{section.label} ".ljust(self.LABEL_WIDTH, ".") + f" {message}"
        return line.ljust(self.LINE_WIDTH)

    def update(self, section: Section, message: str) -> None:
        self.stream.write("\r" + self._bounded(section, message))
        self.stream.flush()

    def ok(self, section: Section, detail: Optional[str] = None) -> None:
        status = f"ok [{detail}]" if detail else "ok"
        line = self._bounded(section, status)
        self.stream.write("\r" + self._colored(line, Colors.GREEN) + "\n")
        self.stream.flush()

    def ko(self, section: Section, detail: Optional[str] = None) -> None:
        status = f"ko [{detail}]" if detail else "ko"
        line = self._bounded(section, status)
        self.stream.write("\r" + self._colored(line, Colors.RED) + "\n")
        self.stream.flush()

    def banner(self, text: str) -> None:
        self.stream.write(self._colored(text, Colors.YELLOW) + "\n\n")
        self.stream.flush()

    def println(self, text: str = "") -> None:
        self.stream.write(text + "\n")
        self.stream.flush()


@contextmanager
def reported_step(reporter: ProgressReporter, section: Section) -> Iterator[None]:
    """Close the section with ko when an exception escapes the block."""
    try:
        yield
    except ProvisionerError as e:
        reporter.ko(section, e.error_code.lower().replace("_", " "))
        raise
    except Exception:
        reporter.ko(section, "unexpected error")
        raise
