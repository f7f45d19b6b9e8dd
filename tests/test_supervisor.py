"""Tests for backend launch and the setup-complete sentinel."""

import http.client
import os
from unittest.mock import MagicMock, patch

import pytest

from claudin_desktop.exceptions import LaunchError, SetupStateError, SpawnFailedError
from claudin_desktop.models import BackendState
from claudin_desktop.supervisor import ProcessSupervisor, clean_env, inject_dotenv


def _fake_process(pid=4242, alive=True):
    proc = MagicMock()
    proc.pid = pid
    proc.poll.return_value = None if alive else 0
    return proc


def _supervisor(spawner=None, which=lambda name: f"/usr/bin/{name}", **kwargs):
    return ProcessSupervisor(
        ["npx", "tsx"],
        spawner=spawner or MagicMock(return_value=_fake_process()),
        which=which,
        platform="linux",
        **kwargs,
    )


# ---------------------------------------------------------------------------
# launch_backend
# ---------------------------------------------------------------------------


class TestLaunchBackend:
    def test_initial_state(self):
        assert _supervisor().handle.state is BackendState.NOT_STARTED

    def test_command_line(self, paths):
        spawner = MagicMock(return_value=_fake_process(pid=101))
        supervisor = _supervisor(spawner=spawner)

        handle = supervisor.launch_backend(paths)

        argv = spawner.call_args.args[0]
        assert argv == ["/usr/bin/npx", "tsx", str(paths.backend_entry)]
        assert handle.command == ["npx", "tsx", str(paths.backend_entry)]
        assert handle.state is BackendState.RUNNING
        assert handle.pid == 101
        assert handle.started_at is not None

    def test_spawns_detached_without_waiting(self, paths):
        proc = _fake_process()
        spawner = MagicMock(return_value=proc)

        _supervisor(spawner=spawner).launch_backend(paths)

        kwargs = spawner.call_args.kwargs
        assert kwargs["start_new_session"] is True
        assert kwargs["stdout"] is not None and kwargs["stderr"] is not None
        proc.wait.assert_not_called()
        proc.communicate.assert_not_called()

    def test_missing_interpreter_is_reported(self, paths):
        spawner = MagicMock()
        supervisor = _supervisor(spawner=spawner, which=lambda name: None)

        with pytest.raises(SpawnFailedError) as exc_info:
            supervisor.launch_backend(paths)

        assert isinstance(exc_info.value, LaunchError)
        assert "npx" in str(exc_info.value)
        assert supervisor.handle.state is BackendState.FAILED
        assert supervisor.handle.error == str(exc_info.value)
        spawner.assert_not_called()

    def test_spawn_denied_is_reported(self, paths):
        spawner = MagicMock(side_effect=PermissionError(13, "Permission denied"))
        supervisor = _supervisor(spawner=spawner)

        with pytest.raises(SpawnFailedError, match="Permission denied"):
            supervisor.launch_backend(paths)

        assert supervisor.handle.state is BackendState.FAILED
        assert supervisor.handle.pid is None

    def test_real_missing_runtime_does_not_block(self, paths):
        supervisor = ProcessSupervisor(["claudin-no-such-runtime-xyz"])

        with pytest.raises(SpawnFailedError):
            supervisor.launch_backend(paths)

        assert supervisor.handle.state is BackendState.FAILED

    def test_running_backend_is_not_launched_twice(self, paths):
        spawner = MagicMock(return_value=_fake_process())
        supervisor = _supervisor(spawner=spawner)

        first = supervisor.launch_backend(paths)
        second = supervisor.launch_backend(paths)

        assert first is second
        assert spawner.call_count == 1

    def test_exited_backend_can_be_relaunched(self, paths):
        spawner = MagicMock(side_effect=[_fake_process(pid=1, alive=False), _fake_process(pid=2)])
        supervisor = _supervisor(spawner=spawner)

        supervisor.launch_backend(paths)
        assert not supervisor.is_alive()
        handle = supervisor.launch_backend(paths)

        assert handle.pid == 2
        assert spawner.call_count == 2

    def test_failed_launch_can_be_retried(self, paths):
        spawner = MagicMock(side_effect=[OSError("boom"), _fake_process(pid=7)])
        supervisor = _supervisor(spawner=spawner)

        with pytest.raises(SpawnFailedError):
            supervisor.launch_backend(paths)
        handle = supervisor.launch_backend(paths)

        assert handle.state is BackendState.RUNNING
        assert handle.pid == 7

    def test_cwd_is_entry_directory_when_present(self, paths):
        paths.backend_entry.parent.mkdir(parents=True)
        spawner = MagicMock(return_value=_fake_process())

        _supervisor(spawner=spawner).launch_backend(paths)

        assert spawner.call_args.kwargs["cwd"] == str(paths.backend_entry.parent)


# ---------------------------------------------------------------------------
# Environment
# ---------------------------------------------------------------------------


class TestEnvironment:
    def test_clean_env_strips_dyld(self):
        env = clean_env({"PATH": "/bin", "DYLD_LIBRARY_PATH": "/bundle", "HOME": "/h"})
        assert env == {"PATH": "/bin", "HOME": "/h"}

    def test_dotenv_does_not_override(self, tmp_path):
        dotenv = tmp_path / ".env"
        dotenv.write_text('ANTHROPIC_API_KEY="sk-test"\nPATH=/evil\n# comment\n')
        env = {"PATH": "/usr/bin"}

        added = inject_dotenv(env, dotenv)

        assert added == 1
        assert env == {"PATH": "/usr/bin", "ANTHROPIC_API_KEY": "sk-test"}

    def test_missing_dotenv_is_ignored(self, tmp_path):
        env = {}
        assert inject_dotenv(env, tmp_path / ".env") == 0
        assert env == {}

    def test_undecodable_dotenv_is_skipped(self, tmp_path):
        dotenv = tmp_path / ".env"
        dotenv.write_bytes(b"KEY=\xff\xfe\n")
        env = {"PATH": "/usr/bin"}

        assert inject_dotenv(env, dotenv) == 0
        assert env == {"PATH": "/usr/bin"}

    def test_backend_env(self, tmp_path, paths):
        primary = tmp_path / "primary.env"
        fallback = tmp_path / "fallback.env"
        primary.write_text("TOKEN=primary\n")
        fallback.write_text("TOKEN=fallback\nOTHER=1\n")
        spawner = MagicMock(return_value=_fake_process())
        supervisor = _supervisor(
            spawner=spawner, env_files=[primary, fallback], extra_env={"PORT": "3847"}
        )

        with patch.dict(os.environ, {"DYLD_FRAMEWORK_PATH": "/x"}, clear=False):
            os.environ.pop("TOKEN", None)
            os.environ.pop("OTHER", None)
            supervisor.launch_backend(paths)

        env = spawner.call_args.kwargs["env"]
        assert env["TOKEN"] == "primary"
        assert env["OTHER"] == "1"
        assert env["PORT"] == "3847"
        assert "DYLD_FRAMEWORK_PATH" not in env


# ---------------------------------------------------------------------------
# Setup marker
# ---------------------------------------------------------------------------


class TestSetupMarker:
    def test_false_before_marking(self, paths):
        assert _supervisor().is_setup_complete(paths) is False

    def test_true_after_marking(self, paths):
        supervisor = _supervisor()
        marker = supervisor.mark_setup_complete(paths)

        assert marker == paths.config_dir / ".setup_complete"
        assert marker.is_file()
        assert supervisor.is_setup_complete(paths) is True

    def test_persists_across_restart(self, paths):
        _supervisor().mark_setup_complete(paths)

        # A fresh supervisor stands in for the next application launch.
        assert _supervisor().is_setup_complete(paths) is True

    def test_marking_twice_is_harmless(self, paths):
        supervisor = _supervisor()
        supervisor.mark_setup_complete(paths)
        supervisor.mark_setup_complete(paths)
        assert supervisor.is_setup_complete(paths)

    def test_write_failure_is_reported(self, paths):
        paths.config_dir.parent.mkdir(parents=True, exist_ok=True)
        paths.config_dir.write_text("a file, not a directory")

        with pytest.raises(SetupStateError, match="Failed to mark setup complete"):
            _supervisor().mark_setup_complete(paths)


# ---------------------------------------------------------------------------
# Readiness probe
# ---------------------------------------------------------------------------


class TestWaitUntilReady:
    def test_ready(self):
        response = MagicMock(status=200)
        response.__enter__.return_value = response
        with patch("claudin_desktop.supervisor.urllib.request.urlopen", return_value=response):
            assert ProcessSupervisor.wait_until_ready("http://localhost:3847/api/stats", timeout=1)

    def test_non_http_listener_is_not_ready(self):
        with patch(
            "claudin_desktop.supervisor.urllib.request.urlopen",
            side_effect=http.client.BadStatusLine("SSH-2.0-OpenSSH"),
        ), patch("claudin_desktop.supervisor.time.sleep"):
            assert not ProcessSupervisor.wait_until_ready(
                "http://localhost:3847/api/stats", timeout=0.05
            )

    def test_timeout(self):
        with patch(
            "claudin_desktop.supervisor.urllib.request.urlopen",
            side_effect=ConnectionRefusedError(),
        ), patch("claudin_desktop.supervisor.time.sleep"):
            assert not ProcessSupervisor.wait_until_ready(
                "http://localhost:3847/api/stats", timeout=0.05
            )
