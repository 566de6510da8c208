"""
Kurtosis Platform - orchestration adapter driving the `kurtosis` CLI
"""
import os
import re
import logging
import subprocess
import tempfile
import yaml
from typing import Iterator, List, Optional
from ..models import BuildEvent, BuildEventKind, NetworkConfig
from ..errors import PlatformUnavailable
from ..interfaces import IBuildEventStream, IOrchestrationPlatform
from ..network.participants import network_config_to_dict

logging.basicConfig(format='%(levelname)-5s | %(filename)s:%(lineno)-3d | %(message)s', level=logging.INFO, force=True)
logger = logging.getLogger(__name__)

ENGINE_HINT = (
    "could not connect to the Kurtosis engine. Be sure the engine is running using "
    "`kurtosis engine status` or `kurtosis engine start`. You might also need to start the gateway "
    "using `kurtosis gateway` when the engine runs on Kubernetes"
)

_SERVICE_ROW = re.compile(r'^[0-9a-f]{12}\s+(\S+)\s')
_RUN_SUCCEEDED = "Starlark code successfully run"
_RUN_FAILED = ("Error encountered running Starlark code", "There was an error interpreting Starlark code",
               "There was an error validating Starlark code")


def classify_run_line(line: str) -> BuildEvent:
    """Map one line of `kurtosis run` output to a build event"""
    text = line.rstrip()
    if text.startswith(_RUN_SUCCEEDED):
        return BuildEvent(BuildEventKind.COMPLETED, text, successful=True)
    if text.startswith(_RUN_FAILED):
        return BuildEvent(BuildEventKind.ERROR, text)
    if text.lower().startswith("warning"):
        return BuildEvent(BuildEventKind.WARNING, text)
    if text.startswith(">"):
        return BuildEvent(BuildEventKind.PROGRESS, text)
    return BuildEvent(BuildEventKind.INFO, text)


def parse_enclave_names(output: str) -> List[str]:
    """Names column of `kurtosis enclave ls`"""
    names = []
    for line in output.splitlines()[1:]:
        columns = line.split()
        if len(columns) >= 2:
            names.append(columns[1])
    return names


def parse_running_services(output: str) -> List[str]:
    """Running service names from the user services table of `kurtosis enclave inspect`"""
    names = []
    in_services = False
    for line in output.splitlines():
        if 'User Services' in line:
            in_services = True
            continue
        if not in_services:
            continue
        match = _SERVICE_ROW.match(line)
        if match and 'RUNNING' in line:
            names.append(match.group(1))
    return names


class KurtosisRunStream(IBuildEventStream):
    """Build events read line by line from a running `kurtosis run` process"""

    def __init__(self, process: subprocess.Popen, args_file: str):
        self.process = process
        self.args_file = args_file

    def __iter__(self) -> Iterator[BuildEvent]:
        terminal_seen = False
        for line in self.process.stdout:
            if not line.strip():
                continue
            if "connection refused" in line.lower():
                raise PlatformUnavailable(ENGINE_HINT)
            event = classify_run_line(line)
            terminal_seen = terminal_seen or event.kind in (BuildEventKind.COMPLETED, BuildEventKind.ERROR)
            yield event

        returncode = self.process.wait()
        if terminal_seen:
            return
        yield BuildEvent(BuildEventKind.COMPLETED, f"kurtosis run exited with code {returncode}",
                         successful=returncode == 0)

    def close(self) -> None:
        if self.process.poll() is None:
            logger.warning("Stopping unfinished kurtosis run")
            self.process.terminate()
            try:
                self.process.wait(timeout=10)
            except subprocess.TimeoutExpired:
                self.process.kill()
                self.process.wait()
        if self.process.stdout is not None:
            self.process.stdout.close()
        if os.path.exists(self.args_file):
            os.remove(self.args_file)


class KurtosisCliPlatform(IOrchestrationPlatform):
    """Orchestration platform backed by the kurtosis command line"""

    def __init__(self, kurtosis_binary: str = "kurtosis", timeout: float = 300.0):
        self.kurtosis_binary = kurtosis_binary
        self.timeout = timeout

    def _run(self, *args: str) -> str:
        cmd = [self.kurtosis_binary, *args]
        logger.debug(f"Running {' '.join(cmd)}")
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except FileNotFoundError:
            raise PlatformUnavailable(f"'{self.kurtosis_binary}' was not found on PATH; install the Kurtosis CLI")
        except subprocess.TimeoutExpired:
            raise PlatformUnavailable(f"'{' '.join(cmd)}' did not finish within {self.timeout:.0f}s")

        if result.returncode != 0:
            output = f"{result.stderr}{result.stdout}"
            if 'connection refused' in output.lower():
                raise PlatformUnavailable(ENGINE_HINT)
            raise PlatformUnavailable(f"'{' '.join(cmd)}' failed with code {result.returncode}: {output.strip()}")
        return result.stdout

    def enclave_exists(self, enclave_name: str) -> bool:
        return enclave_name in parse_enclave_names(self._run("enclave", "ls"))

    def create_enclave(self, enclave_name: str) -> None:
        self._run("enclave", "add", "--name", enclave_name)

    def destroy_enclave(self, enclave_name: str) -> None:
        self._run("enclave", "rm", "-f", enclave_name)

    def get_running_service_names(self, enclave_name: str) -> List[str]:
        return parse_running_services(self._run("enclave", "inspect", enclave_name))

    def build_network(self, enclave_name: str, package_id: str, network_config: NetworkConfig) -> IBuildEventStream:
        args_file = self._write_args_file(network_config)
        cmd = [self.kurtosis_binary, "run", "--enclave", enclave_name, package_id, "--args-file", args_file]
        logger.info(f"Running {' '.join(cmd)}")
        try:
            process = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True)
        except FileNotFoundError:
            os.remove(args_file)
            raise PlatformUnavailable(f"'{self.kurtosis_binary}' was not found on PATH; install the Kurtosis CLI")
        return KurtosisRunStream(process, args_file)

    @staticmethod
    def _write_args_file(network_config: NetworkConfig, directory: Optional[str] = None) -> str:
        fd, path = tempfile.mkstemp(prefix="devnet-chaos-args-", suffix=".yaml", dir=directory)
        with os.fdopen(fd, 'w') as f:
            yaml.dump(network_config_to_dict(network_config), f, default_flow_style=False, sort_keys=False)
        return path
