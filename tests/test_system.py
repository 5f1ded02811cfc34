"""Tier 1: Tests for LinuxSystem command construction and privilege handling."""

from __future__ import annotations

import subprocess
import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from tomcat_setup import PrivilegeError
from tomcat_setup.system import (
    LinuxSystem,
    _keepalive_loop,
    ensure_privileges,
    parse_java_alternatives,
)

ALTERNATIVES = """\
java-1.17.0-openjdk-amd64      1711       /usr/lib/jvm/java-1.17.0-openjdk-amd64
java-1.21.0-openjdk-amd64      2111       /usr/lib/jvm/java-1.21.0-openjdk-amd64
"""


def _done(returncode: int = 0, stdout: str = "") -> subprocess.CompletedProcess:
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr="")


def _commands(mock_run) -> list[list[str]]:
    return [c.args[0] for c in mock_run.call_args_list]


class TestParseJavaAlternatives:
    def test_picks_requested_version(self) -> None:
        assert parse_java_alternatives(ALTERNATIVES, "21") == "/usr/lib/jvm/java-1.21.0-openjdk-amd64"
        assert parse_java_alternatives(ALTERNATIVES, "17") == "/usr/lib/jvm/java-1.17.0-openjdk-amd64"

    def test_missing_version(self) -> None:
        assert parse_java_alternatives(ALTERNATIVES, "11") is None
        assert parse_java_alternatives("", "21") is None


class TestLinuxSystemCommands:
    def test_sudo_prefix(self) -> None:
        with patch("tomcat_setup.system.run_cmd", return_value=_done()) as mock_run:
            LinuxSystem(sudo=True).create_group("tomcat")
        assert _commands(mock_run) == [["sudo", "groupadd", "--system", "--force", "tomcat"]]

    def test_no_prefix_as_root(self) -> None:
        with patch("tomcat_setup.system.run_cmd", return_value=_done()) as mock_run:
            LinuxSystem().remove_tree("/opt/tomcat10")
        assert _commands(mock_run) == [["rm", "-rf", "/opt/tomcat10"]]

    def test_create_user_has_no_login_shell(self) -> None:
        with patch("tomcat_setup.system.run_cmd", return_value=_done()) as mock_run:
            LinuxSystem().create_user("tomcat", "tomcat", Path("/opt/tomcat10"))
        cmd = _commands(mock_run)[0]
        assert cmd[0] == "useradd"
        assert cmd[cmd.index("-s") + 1] == "/bin/false"
        assert cmd[cmd.index("-d") + 1] == "/opt/tomcat10"
        assert cmd[-1] == "tomcat"

    def test_install_packages_upgrade_optional(self) -> None:
        with patch("tomcat_setup.system.run_cmd", return_value=_done()) as mock_run:
            LinuxSystem().install_packages(["acl", "jq"], upgrade=False)
        assert _commands(mock_run) == [
            ["apt-get", "update"],
            ["apt-get", "install", "-y", "acl", "jq"],
        ]

    def test_default_acl_applied_to_existing_and_new_files(self) -> None:
        with patch("tomcat_setup.system.run_cmd", return_value=_done()) as mock_run:
            LinuxSystem().apply_default_acl("/opt/webtemp", "tomcat")
        assert _commands(mock_run) == [
            ["setfacl", "-R", "-m", "g:tomcat:rwx", "/opt/webtemp"],
            ["setfacl", "-Rdm", "g:tomcat:rwx", "/opt/webtemp"],
        ]

    def test_install_file_octal_mode(self) -> None:
        with patch("tomcat_setup.system.run_cmd", return_value=_done()) as mock_run:
            LinuxSystem().install_file("/tmp/x.jar", "/opt/tomcat10/lib/x.jar", "tomcat", "tomcat", 0o644)
        assert _commands(mock_run) == [[
            "install", "-o", "tomcat", "-g", "tomcat", "-m", "644",
            "/tmp/x.jar", "/opt/tomcat10/lib/x.jar",
        ]]

    def test_write_file_stages_and_removes(self) -> None:
        staged: list[tuple[str, str]] = []

        def capture(cmd: list[str], **kwargs) -> subprocess.CompletedProcess:
            src = cmd[-2]
            staged.append((src, Path(src).read_text()))
            return _done()

        with patch("tomcat_setup.system.run_cmd", side_effect=capture):
            LinuxSystem().write_file("/opt/tomcat10/bin/setenv.sh", "export X=1\n", "tomcat", "tomcat", 0o755)

        src, content = staged[0]
        assert content == "export X=1\n"
        assert not Path(src).exists()

    def test_user_in_group_parses_group_list(self) -> None:
        with patch("tomcat_setup.system.run_cmd", return_value=_done(stdout="alice sudo tomcat\n")):
            assert LinuxSystem().user_in_group("alice", "tomcat")
            assert not LinuxSystem().user_in_group("alice", "tom")

    def test_user_in_group_unknown_user(self) -> None:
        with patch("tomcat_setup.system.run_cmd", return_value=_done(returncode=1)):
            assert not LinuxSystem().user_in_group("ghost", "tomcat")

    def test_java_home_uses_alternatives(self) -> None:
        with patch("tomcat_setup.system.run_cmd", return_value=_done(stdout=ALTERNATIVES)):
            assert LinuxSystem().java_home("21") == "/usr/lib/jvm/java-1.21.0-openjdk-amd64"

    def test_java_home_without_tooling(self) -> None:
        with patch("tomcat_setup.system.run_cmd", side_effect=FileNotFoundError):
            assert LinuxSystem().java_home("21") is None

    def test_failed_command_propagates(self) -> None:
        with patch("tomcat_setup.system.run_cmd",
                   side_effect=subprocess.CalledProcessError(1, "systemctl")):
            with pytest.raises(subprocess.CalledProcessError):
                LinuxSystem().start_service("tomcat10.service")

    def test_list_dir_missing_root(self, tmp_path: Path) -> None:
        assert LinuxSystem().list_dir(tmp_path / "nope") == []
        (tmp_path / "tomcat9").mkdir()
        assert LinuxSystem().list_dir(tmp_path) == ["tomcat9"]


class TestEnsurePrivileges:
    def test_root_needs_no_sudo(self) -> None:
        with patch("tomcat_setup.system.os.geteuid", return_value=0), \
             patch("tomcat_setup.system.run_cmd") as mock_run:
            assert ensure_privileges() is False
        mock_run.assert_not_called()

    def test_cached_sudo(self) -> None:
        with patch("tomcat_setup.system.os.geteuid", return_value=1000), \
             patch("tomcat_setup.system.run_cmd", return_value=_done()) as mock_run:
            assert ensure_privileges() is True
        assert _commands(mock_run) == [["sudo", "-n", "true"]]

    def test_password_prompt_succeeds(self) -> None:
        with patch("tomcat_setup.system.os.geteuid", return_value=1000), \
             patch("tomcat_setup.system.run_cmd", side_effect=[_done(1), _done(0)]) as mock_run:
            assert ensure_privileges() is True
        assert _commands(mock_run)[1] == ["sudo", "-v"]

    def test_no_privileges_raises(self) -> None:
        with patch("tomcat_setup.system.os.geteuid", return_value=1000), \
             patch("tomcat_setup.system.run_cmd", return_value=_done(1)):
            with pytest.raises(PrivilegeError):
                ensure_privileges()

    def test_keepalive_stops_when_sudo_expires(self) -> None:
        with patch("tomcat_setup.system.run_cmd", return_value=_done(1)) as mock_run:
            _keepalive_loop(0.0, threading.Event())
        mock_run.assert_called_once()
