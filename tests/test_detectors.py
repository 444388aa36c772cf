import os
import subprocess
import sys
from unittest import mock

import pytest

from telemetry_extras import detectors
from telemetry_extras.detectors import (
    HostResourceDetector,
    K8sResourceDetector,
    OsResourceDetector,
    ProcessResourceDetector,
    detect_host_id,
)


def test_host_detector_with_id_has_two_attributes():
    resource = HostResourceDetector(lambda: "made-up-host-id").detect()
    assert len(resource) == 2
    assert resource.get("host.id") == "made-up-host-id"
    assert "host.arch" in resource


def test_host_detector_without_id_has_only_arch():
    resource = HostResourceDetector(lambda: None).detect()
    assert len(resource) == 1
    assert "host.arch" in resource
    assert resource.get("host.id") is None


@pytest.mark.parametrize(
    "machine, expected",
    [("x86_64", "x86_64"), ("AMD64", "x86_64"), ("aarch64", "aarch64"), ("arm64", "aarch64")],
)
def test_resource_host_arch_value(machine, expected):
    with mock.patch("platform.machine", return_value=machine):
        resource = HostResourceDetector(lambda: None).detect()
    assert resource.get("host.arch") == expected


def test_host_id_linux_reads_machine_id(tmp_path, monkeypatch):
    first = tmp_path / "machine-id"
    first.write_text("  0123456789abcdef\n")
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.setattr(detectors, "_MACHINE_ID_PATHS", (str(first), str(tmp_path / "none")))
    assert detect_host_id() == "0123456789abcdef"


def test_host_id_linux_falls_back_to_dbus(tmp_path, monkeypatch):
    second = tmp_path / "dbus-machine-id"
    second.write_text("fedcba9876543210\n")
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.setattr(
        detectors, "_MACHINE_ID_PATHS", (str(tmp_path / "missing"), str(second))
    )
    assert detect_host_id() == "fedcba9876543210"


def test_host_id_linux_none_when_no_files(tmp_path, monkeypatch):
    monkeypatch.setattr(sys, "platform", "linux")
    monkeypatch.setattr(
        detectors, "_MACHINE_ID_PATHS", (str(tmp_path / "a"), str(tmp_path / "b"))
    )
    assert detect_host_id() is None


def test_host_id_macos_parses_ioreg(monkeypatch):
    output = (
        b'+-o J000AP  <class IOPlatformExpertDevice>\n'
        b'    "IOPlatformUUID" = "00000000-0000-0000-0000-000000000000"\n'
    )
    monkeypatch.setattr(sys, "platform", "darwin")
    completed = subprocess.CompletedProcess(args=[], returncode=0, stdout=output, stderr=b"")
    with mock.patch("subprocess.run", return_value=completed) as run:
        host_id = detect_host_id()
    assert host_id == "00000000-0000-0000-0000-000000000000"
    assert run.call_args.args[0] == ["ioreg", "-rd1", "-c", "IOPlatformExpertDevice"]


def test_host_id_macos_missing_line(monkeypatch):
    monkeypatch.setattr(sys, "platform", "darwin")
    completed = subprocess.CompletedProcess(args=[], returncode=0, stdout=b"nothing\n", stderr=b"")
    with mock.patch("subprocess.run", return_value=completed):
        assert detect_host_id() is None


def test_host_id_macos_command_missing(monkeypatch):
    monkeypatch.setattr(sys, "platform", "darwin")
    with mock.patch("subprocess.run", side_effect=FileNotFoundError):
        assert detect_host_id() is None


def test_host_id_other_platform_is_none(monkeypatch):
    monkeypatch.setattr(sys, "platform", "win32")
    assert detect_host_id() is None


def test_k8s_resource_detector_with_env_vars(tmp_path, monkeypatch):
    monkeypatch.setenv("HOSTNAME", "test-pod")
    resource = K8sResourceDetector(str(tmp_path / "missing")).detect()
    assert len(resource) == 1
    assert resource.get("k8s.pod.name") == "test-pod"


def test_k8s_resource_detector_with_missing_env_vars(tmp_path, monkeypatch):
    monkeypatch.delenv("HOSTNAME", raising=False)
    resource = K8sResourceDetector(str(tmp_path / "missing")).detect()
    assert len(resource) == 0


def test_k8s_resource_detector_reads_namespace(tmp_path, monkeypatch):
    namespace_file = tmp_path / "namespace"
    namespace_file.write_text("default\n")
    monkeypatch.delenv("HOSTNAME", raising=False)
    resource = K8sResourceDetector(str(namespace_file)).detect()
    assert len(resource) == 1
    assert resource.get("k8s.namespace.name") == "default\n"


def test_os_resource_detector(monkeypatch):
    monkeypatch.setattr(sys, "platform", "linux")
    resource = OsResourceDetector().detect()
    assert len(resource) == 1
    assert resource.get("os.type") == "linux"


@pytest.mark.parametrize(
    "platform_name, expected",
    [("darwin", "macos"), ("win32", "windows"), ("freebsd13", "freebsd")],
)
def test_os_type_mapping(monkeypatch, platform_name, expected):
    monkeypatch.setattr(sys, "platform", platform_name)
    assert OsResourceDetector().detect().get("os.type") == expected


def test_processor_resource_detector():
    resource = ProcessResourceDetector().detect()
    assert len(resource) == 2
    assert resource.get("process.pid") == os.getpid()
    args = resource.get("process.command_args")
    assert all(isinstance(arg, str) for arg in args)
    assert len(args) == len(sys.orig_argv)