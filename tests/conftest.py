"""
Shared fixtures: in-memory fakes for the orchestration, fault-injection,
cluster-inspection and artifact collaborators
"""
import pytest
from typing import Dict, List, Optional

from devnet_chaos.models import (
    BuildEvent, BuildEventKind, FaultHandle, FaultStatus, PodRef,
    ChaosExpressionSelector, ChaosTargetSelector
)
from devnet_chaos.errors import FaultInjectionError
from devnet_chaos.interfaces import (
    IBuildEventStream, IOrchestrationPlatform, IFaultInjector, IClusterInspector, IArtifactSink
)
from devnet_chaos.network.clients import ID_LABEL, SERVICE_TYPE_LABEL, CLIENT_TYPE_LABEL
from devnet_chaos.planner.target_selector import custom_label


class FakeBuildStream(IBuildEventStream):
    def __init__(self, events: List[BuildEvent]):
        self.events = list(events)
        self.consumed: List[BuildEvent] = []
        self.closed = False

    def __iter__(self):
        for event in self.events:
            self.consumed.append(event)
            yield event

    def close(self) -> None:
        self.closed = True


class FakeOrchestrator(IOrchestrationPlatform):
    def __init__(self, exists: bool = False, services: Optional[List[str]] = None,
                 build_events: Optional[List[BuildEvent]] = None):
        self.exists = exists
        self.services = list(services or [])
        self.build_events = build_events or [BuildEvent(BuildEventKind.COMPLETED, "done", successful=True)]
        self.calls: List[tuple] = []
        self.streams: List[FakeBuildStream] = []

    def enclave_exists(self, enclave_name: str) -> bool:
        self.calls.append(('exists', enclave_name))
        return self.exists

    def create_enclave(self, enclave_name: str) -> None:
        self.calls.append(('create', enclave_name))
        self.exists = True

    def destroy_enclave(self, enclave_name: str) -> None:
        self.calls.append(('destroy', enclave_name))
        self.exists = False
        self.services = []

    def get_running_service_names(self, enclave_name: str) -> List[str]:
        self.calls.append(('services', enclave_name))
        return list(self.services)

    def build_network(self, enclave_name, package_id, network_config) -> IBuildEventStream:
        self.calls.append(('build', enclave_name, package_id))
        stream = FakeBuildStream(self.build_events)
        self.streams.append(stream)
        return stream

    def actions(self) -> List[str]:
        return [call[0] for call in self.calls if call[0] in ('create', 'destroy', 'build')]


class FakeFaultInjector(IFaultInjector):
    """Accepts every fault; statuses are scripted per submission number"""

    def __init__(self, statuses: Optional[Dict[int, List[FaultStatus]]] = None, fail_on: Optional[int] = None):
        self.statuses = statuses or {}
        self.fail_on = fail_on
        self.submitted = []
        self.queries: List[FaultHandle] = []

    def submit_fault(self, payload) -> FaultHandle:
        number = len(self.submitted) + 1
        if self.fail_on == number:
            raise FaultInjectionError(f"submission {number} rejected")
        self.submitted.append(payload)
        return FaultHandle(name=f"fault-{number}", kind=payload.kind, namespace="kt-test")

    def query_fault_status(self, handle: FaultHandle) -> FaultStatus:
        self.queries.append(handle)
        number = int(handle.name.split('-')[1])
        script = self.statuses.get(number)
        if not script:
            return FaultStatus.COMPLETE
        return script.pop(0) if len(script) > 1 else script[0]


class FakeClusterInspector(IClusterInspector):
    def __init__(self, pods: Optional[List[PodRef]] = None):
        self.pods: Dict[str, PodRef] = {pod.name: pod for pod in pods or []}

    def list_pods_matching_label(self, key: str, value: str) -> List[PodRef]:
        return [pod for pod in self.pods.values() if pod.labels.get(key) == value]

    def get_pod(self, name: str) -> Optional[PodRef]:
        return self.pods.get(name)

    def set_phase(self, name: str, phase: str) -> None:
        self.pods[name].phase = phase


class RecordingSink(IArtifactSink):
    def __init__(self):
        self.persisted = []

    def persist(self, artifacts) -> None:
        self.persisted.append(list(artifacts))


def pod(name: str, service_type: str, client_type: str, phase: str = "Running") -> PodRef:
    """A pod labelled the way the platform labels node services"""
    return PodRef(
        name=name,
        labels={
            ID_LABEL: name,
            custom_label(SERVICE_TYPE_LABEL): service_type,
            custom_label(CLIENT_TYPE_LABEL): client_type,
        },
        phase=phase,
    )


def id_target(*names: str) -> ChaosTargetSelector:
    return ChaosTargetSelector(
        description=", ".join(names),
        selectors=(ChaosExpressionSelector(ID_LABEL, "In", tuple(names)),),
    )


@pytest.fixture
def make_pod():
    return pod


@pytest.fixture
def make_id_target():
    return id_target


@pytest.fixture
def devnet_pods():
    """Two geth/lighthouse nodes, all running"""
    return [
        pod("el-1-geth-lighthouse", "execution-client", "geth"),
        pod("cl-1-lighthouse-geth", "consensus-client", "lighthouse"),
        pod("el-2-geth-lighthouse", "execution-client", "geth"),
        pod("cl-2-lighthouse-geth", "consensus-client", "lighthouse"),
    ]


@pytest.fixture
def orchestrator():
    return FakeOrchestrator()


@pytest.fixture
def injector():
    return FakeFaultInjector()


@pytest.fixture
def inspector(devnet_pods):
    return FakeClusterInspector(devnet_pods)


@pytest.fixture
def sink():
    return RecordingSink()


class SleepRecorder:
    """Injected sleep that records requested delays instead of waiting"""

    def __init__(self):
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleeper():
    return SleepRecorder()
