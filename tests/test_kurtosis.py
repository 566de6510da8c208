"""
Tests for the kurtosis CLI orchestration adapter
"""
import io
import os
import subprocess
import pytest
import yaml
from unittest.mock import Mock, patch

from devnet_chaos.models import BuildEventKind, NetworkConfig, Participant
from devnet_chaos.errors import PlatformUnavailable
from devnet_chaos.enclave.kurtosis import (
    KurtosisCliPlatform, KurtosisRunStream, classify_run_line,
    parse_enclave_names, parse_running_services, ENGINE_HINT
)

ENCLAVE_LS = """UUID           Name           Status     Creation Time
3f1c2a9b7d10   test-enclave   RUNNING    Mon, 07 Oct 2024 10:00:00 UTC
8e2d4c6a1b3f   other          STOPPED    Mon, 07 Oct 2024 09:00:00 UTC
"""

ENCLAVE_INSPECT = """Name:            test-enclave
UUID:            3f1c2a9b7d10
Status:          RUNNING

========================================= Files Artifacts =========================================
UUID           Name
a1b2c3d4e5f6   el_cl_genesis_data

========================================== User Services ==========================================
UUID           Name                   Ports                                    Status
0a1b2c3d4e5f   cl-1-lighthouse-geth   http: 4000/tcp -> http://127.0.0.1:4000  RUNNING
1b2c3d4e5f6a   el-1-geth-lighthouse   rpc: 8545/tcp -> 127.0.0.1:8545          RUNNING
2c3d4e5f6a7b   el-2-geth-lighthouse   rpc: 8545/tcp                            STOPPED
"""


def completed(stdout="", stderr="", returncode=0):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout, stderr=stderr)


def run_process(output, returncode=0):
    process = Mock()
    process.stdout = io.StringIO(output)
    process.wait.return_value = returncode
    process.poll.return_value = returncode
    return process


class TestOutputParsing:
    """Test parsing kurtosis CLI output"""

    def test_enclave_names(self):
        """Test reading the name column of enclave ls"""
        assert parse_enclave_names(ENCLAVE_LS) == ["test-enclave", "other"]

    def test_running_services(self):
        """Test reading running user services from enclave inspect"""
        assert parse_running_services(ENCLAVE_INSPECT) == ["cl-1-lighthouse-geth", "el-1-geth-lighthouse"]

    @pytest.mark.parametrize("line,kind", [
        ("Starlark code successfully run. Output was:", BuildEventKind.COMPLETED),
        ("Error encountered running Starlark code.", BuildEventKind.ERROR),
        ("WARNING: the image is outdated", BuildEventKind.WARNING),
        ("> add_service name=\"el-1-geth-lighthouse\"", BuildEventKind.PROGRESS),
        ("Service 'el-1-geth-lighthouse' added", BuildEventKind.INFO),
    ])
    def test_classify_run_line(self, line, kind):
        """Test mapping run output lines to build events"""
        assert classify_run_line(line + "\n").kind == kind


class TestKurtosisRunStream:
    """Test streaming build events from kurtosis run"""

    def test_events_in_order(self, tmp_path):
        """Test that each output line becomes one event"""
        args_file = tmp_path / "args.yaml"
        args_file.write_text("participants: []\n")
        stream = KurtosisRunStream(run_process("> upload\n\nadded\nStarlark code successfully run\n"), str(args_file))

        events = list(stream)

        assert [e.kind for e in events] == [BuildEventKind.PROGRESS, BuildEventKind.INFO, BuildEventKind.COMPLETED]
        assert events[-1].successful

    def test_exit_code_decides_without_terminal_line(self, tmp_path):
        """Test that a missing terminal line falls back to the exit code"""
        stream = KurtosisRunStream(run_process("added\n", returncode=1), str(tmp_path / "args.yaml"))

        events = list(stream)

        assert events[-1].kind == BuildEventKind.COMPLETED
        assert events[-1].successful is False

    def test_connection_refused(self, tmp_path):
        """Test that an unreachable engine is reported as platform unavailable"""
        stream = KurtosisRunStream(run_process("dial tcp 127.0.0.1:9710: connection refused\n"), str(tmp_path / "a"))

        with pytest.raises(PlatformUnavailable, match="kurtosis engine start"):
            list(stream)

    def test_close_removes_args_file(self, tmp_path):
        """Test that closing a finished stream removes the args file"""
        args_file = tmp_path / "args.yaml"
        args_file.write_text("participants: []\n")
        process = run_process("")
        stream = KurtosisRunStream(process, str(args_file))

        stream.close()

        assert not args_file.exists()
        process.terminate.assert_not_called()

    def test_close_terminates_running_process(self, tmp_path):
        """Test that an unfinished run is terminated on close"""
        process = run_process("")
        process.poll.return_value = None

        KurtosisRunStream(process, str(tmp_path / "missing.yaml")).close()

        process.terminate.assert_called_once()


class TestKurtosisCliPlatform:
    """Test the CLI-backed platform"""

    @patch('devnet_chaos.enclave.kurtosis.subprocess.run')
    def test_enclave_exists(self, mock_run):
        """Test enclave lookup through enclave ls"""
        mock_run.return_value = completed(stdout=ENCLAVE_LS)
        platform = KurtosisCliPlatform()

        assert platform.enclave_exists("test-enclave")
        assert not platform.enclave_exists("missing")
        assert mock_run.call_args[0][0] == ["kurtosis", "enclave", "ls"]

    @patch('devnet_chaos.enclave.kurtosis.subprocess.run')
    def test_create_and_destroy(self, mock_run):
        """Test the enclave add and rm commands"""
        mock_run.return_value = completed()
        platform = KurtosisCliPlatform()

        platform.create_enclave("test-enclave")
        platform.destroy_enclave("test-enclave")

        commands = [call[0][0] for call in mock_run.call_args_list]
        assert commands == [
            ["kurtosis", "enclave", "add", "--name", "test-enclave"],
            ["kurtosis", "enclave", "rm", "-f", "test-enclave"],
        ]

    @patch('devnet_chaos.enclave.kurtosis.subprocess.run')
    def test_missing_binary(self, mock_run):
        """Test that a missing CLI is reported as platform unavailable"""
        mock_run.side_effect = FileNotFoundError()

        with pytest.raises(PlatformUnavailable, match="not found on PATH"):
            KurtosisCliPlatform().enclave_exists("test-enclave")

    @patch('devnet_chaos.enclave.kurtosis.subprocess.run')
    def test_engine_not_running(self, mock_run):
        """Test that a refused connection carries the engine hint"""
        mock_run.return_value = completed(stderr="dial tcp: connection refused", returncode=1)

        with pytest.raises(PlatformUnavailable) as exc_info:
            KurtosisCliPlatform().get_running_service_names("test-enclave")
        assert str(exc_info.value) == ENGINE_HINT

    @patch('devnet_chaos.enclave.kurtosis.subprocess.run')
    def test_timeout(self, mock_run):
        """Test that a hung command is reported as platform unavailable"""
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="kurtosis", timeout=1)

        with pytest.raises(PlatformUnavailable):
            KurtosisCliPlatform(timeout=1).create_enclave("test-enclave")

    @patch('devnet_chaos.enclave.kurtosis.subprocess.Popen')
    def test_build_network_writes_args_file(self, mock_popen):
        """Test that the network config is handed to kurtosis run as an args file"""
        mock_popen.return_value = run_process("Starlark code successfully run\n")
        config = NetworkConfig(participants=[Participant(el_type="geth", cl_type="teku", count=2)],
                               network_params={'seconds_per_slot': 6})

        stream = KurtosisCliPlatform().build_network("test-enclave", "github.com/example/package", config)
        cmd = mock_popen.call_args[0][0]
        args_file = cmd[cmd.index("--args-file") + 1]

        assert cmd[:5] == ["kurtosis", "run", "--enclave", "test-enclave", "github.com/example/package"]
        with open(args_file) as f:
            written = yaml.safe_load(f)
        assert written['participants'] == [{'el_type': 'geth', 'cl_type': 'teku', 'count': 2}]
        assert written['network_params'] == {'seconds_per_slot': 6}

        stream.close()
        assert not os.path.exists(args_file)
