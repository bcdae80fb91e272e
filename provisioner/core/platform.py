"""
Runtime environment detection.

Computed once at process start and handed to the components that care
(console colours, informational display) instead of living in globals.
"""

import os
import platform as _platform
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from provisioner.core.exceptions import UnsupportedPlatformError

CLOUD_SHELL_MARKERS = ("CLOUD_SHELL_TOOL_SET", "OCI_REGION", "OCI_TENANCY")


class Platform(str, Enum):
    WINDOWS = "windows"
    LINUX = "linux"
    MACOS = "macos"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class RuntimeEnvironment:
    platform: Platform
    system_name: str
    cloud_shell: bool = False

    @property
    def colors_enabled(self) -> bool:
        return self.platform != Platform.WINDOWS

    def ensure_supported(self) -> None:
        if self.platform == Platform.UNSUPPORTED:
            raise UnsupportedPlatformError(self.system_name)


def detect_runtime_environment(
    system_name: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> RuntimeEnvironment:
    """Detect the operating system and whether we run inside OCI Cloud Shell."""
    system_name = system_name if system_name is not None else _platform.system()
    environ = environ if environ is not None else os.environ

    lowered = system_name.lower()
    if lowered.startswith("windows"):
        detected = Platform.WINDOWS
    elif lowered.startswith("linux"):
        detected = Platform.LINUX
    elif lowered.startswith("darwin") or lowered.startswith("mac os"):
        detected = Platform.MACOS
    else:
        detected = Platform.UNSUPPORTED

    cloud_shell = detected == Platform.LINUX and all(
        environ.get(marker) for marker in CLOUD_SHELL_MARKERS
    )

    return RuntimeEnvironment(
        platform=detected, system_name=system_name, cloud_shell=cloud_shell
    )
