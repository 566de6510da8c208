"""
Base interfaces for the external collaborators the planner and runner depend on
"""
from abc import ABC, abstractmethod
from typing import Iterator, List, Optional
from .models import (
    BuildEvent, FaultHandle, FaultStatus, NetworkConfig, PodRef, TestArtifact
)


class IBuildEventStream(ABC):
    """Closeable subscription to network build events"""

    @abstractmethod
    def __iter__(self) -> Iterator[BuildEvent]:
        """Yield build events in the order the platform emits them"""
        pass

    @abstractmethod
    def close(self) -> None:
        """Release the subscription"""
        pass


class IOrchestrationPlatform(ABC):
    """Interface for the enclave orchestration platform"""

    @abstractmethod
    def enclave_exists(self, enclave_name: str) -> bool:
        """Check whether an enclave with this name exists"""
        pass

    @abstractmethod
    def create_enclave(self, enclave_name: str) -> None:
        """Create an empty enclave"""
        pass

    @abstractmethod
    def destroy_enclave(self, enclave_name: str) -> None:
        """Destroy the enclave and everything running in it"""
        pass

    @abstractmethod
    def get_running_service_names(self, enclave_name: str) -> List[str]:
        """Return identifiers of services currently running in the enclave"""
        pass

    @abstractmethod
    def build_network(self, enclave_name: str, package_id: str, network_config: NetworkConfig) -> IBuildEventStream:
        """Start building the network and return its event stream"""
        pass


class IFaultInjector(ABC):
    """Interface for the fault-injection backend"""

    @abstractmethod
    def submit_fault(self, payload) -> FaultHandle:
        """Submit a fault payload, returning a handle for status queries"""
        pass

    @abstractmethod
    def query_fault_status(self, handle: FaultHandle) -> FaultStatus:
        """Report whether a submitted fault is still running, finished or errored"""
        pass


class IClusterInspector(ABC):
    """Interface for read-only pod inspection"""

    @abstractmethod
    def list_pods_matching_label(self, key: str, value: str) -> List[PodRef]:
        """List pods whose label `key` equals `value`"""
        pass

    @abstractmethod
    def get_pod(self, name: str) -> Optional[PodRef]:
        """Fetch one pod by name, or None when it does not exist"""
        pass


class IArtifactSink(ABC):
    """Interface for persisting test artifacts"""

    @abstractmethod
    def persist(self, artifacts: List[TestArtifact]) -> None:
        """Persist the artifacts of a run"""
        pass
