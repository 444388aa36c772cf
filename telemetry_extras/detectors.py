"""Resource detectors for host, Kubernetes, operating system and process."""

from __future__ import annotations

import os
import platform
import re
import subprocess
import sys
from pathlib import Path
from typing import Callable, Optional, Sequence

from .resource import Resource, ResourceDetector

HOST_ID = "host.id"
HOST_ARCH = "host.arch"
K8S_POD_NAME = "k8s.pod.name"
K8S_NAMESPACE_NAME = "k8s.namespace.name"
OS_TYPE = "os.type"
PROCESS_COMMAND_ARGS = "process.command_args"
PROCESS_PID = "process.pid"

K8S_NAMESPACE_PATH = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"

_MACHINE_ID_PATHS: Sequence[str] = ("/etc/machine-id", "/var/lib/dbus/machine-id")

_ARCH_ALIASES = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
    "i386": "x86",
    "i486": "x86",
    "i586": "x86",
    "i686": "x86",
    "armv7l": "arm",
    "armv6l": "arm",
    "ppc64le": "powerpc64",
    "ppc64": "powerpc64",
}

_OS_ALIASES = {
    "darwin": "macos",
    "win32": "windows",
    "cygwin": "windows",
}


def _host_arch() -> str:
    machine = platform.machine()
    return _ARCH_ALIASES.get(machine.lower(), machine.lower())


def _os_type() -> str:
    name = sys.platform
    if name in _OS_ALIASES:
        return _OS_ALIASES[name]
    # e.g. "freebsd13" -> "freebsd"
    return re.sub(r"\d+$", "", name)


def _read_machine_id() -> Optional[str]:
    for path in _MACHINE_ID_PATHS:
        try:
            return Path(path).read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError):
            continue
    return None


def _read_ioreg_uuid() -> Optional[str]:
    try:
        completed = subprocess.run(
            ["ioreg", "-rd1", "-c", "IOPlatformExpertDevice"],
            capture_output=True,
            check=False,
        )
    except OSError:
        return None
    try:
        output = completed.stdout.decode("utf-8")
    except UnicodeDecodeError:
        return None
    line = next((line for line in output.splitlines() if "IOPlatformUUID" in line), None)
    if line is None or "=" not in line:
        return None
    _, value = line.split("=", 1)
    return value.strip().strip('"')


def detect_host_id() -> Optional[str]:
    """Return the unique host id of this machine, or None if unknown."""
    system = _os_type()
    if system == "linux":
        return _read_machine_id()
    if system == "macos":
        return _read_ioreg_uuid()
    return None


class HostResourceDetector(ResourceDetector):
    """Detects ``host.id`` (when available) and ``host.arch``."""

    def __init__(self, host_id_detect: Optional[Callable[[], Optional[str]]] = None) -> None:
        self._host_id_detect = host_id_detect if host_id_detect is not None else detect_host_id

    def detect(self) -> Resource:
        attributes = []
        host_id = self._host_id_detect()
        if host_id is not None:
            attributes.append((HOST_ID, host_id))
        attributes.append((HOST_ARCH, _host_arch()))
        return Resource(attributes)


class K8sResourceDetector(ResourceDetector):
    """Detects the Kubernetes pod name and namespace."""

    def __init__(self, namespace_path: str = K8S_NAMESPACE_PATH) -> None:
        self._namespace_path = namespace_path

    def detect(self) -> Resource:
        attributes = []
        pod_name = os.environ.get("HOSTNAME")
        if pod_name is not None:
            attributes.append((K8S_POD_NAME, pod_name))
        try:
            namespace = Path(self._namespace_path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            namespace = None
        if namespace is not None:
            attributes.append((K8S_NAMESPACE_NAME, namespace))
        return Resource(attributes)


class OsResourceDetector(ResourceDetector):
    """Detects the operating system type as ``os.type``."""

    def detect(self) -> Resource:
        return Resource([(OS_TYPE, _os_type())])


class ProcessResourceDetector(ResourceDetector):
    """Detects the process command line arguments and pid."""

    def detect(self) -> Resource:
        command_args = tuple(str(arg) for arg in sys.orig_argv)
        return Resource(
            [
                (PROCESS_COMMAND_ARGS, command_args),
                (PROCESS_PID, os.getpid()),
            ]
        )