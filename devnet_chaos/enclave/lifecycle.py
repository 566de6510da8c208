"""
Enclave Lifecycle Manager - brings the target enclave into the configured state
"""
import logging
from typing import Callable, Optional
from ..models import EnclaveState, NetworkConfig
from ..errors import ConfigTopologyMismatch
from ..interfaces import IOrchestrationPlatform
from ..network.clients import ClientDefaults
from ..network.service_names import filter_node_service_names
from ..network.topology import Topology
from ..experiment.cancellation import CancellationToken, cancellable_sleep
from .build_events import drain_build_events

logging.basicConfig(format='%(levelname)-5s | %(filename)s:%(lineno)-3d | %(message)s', level=logging.INFO, force=True)
logger = logging.getLogger(__name__)

DEFAULT_SETTLE_DELAY = 60.0


class EnclaveLifecycleManager:
    """
    Deterministic enclave preparation.

    The enclave is in one of four states (see EnclaveState). A running
    network is only reused when its observed topology equals the one built
    from the network config; otherwise the caller must ask for a restart.
    """

    def __init__(self, platform: IOrchestrationPlatform, enclave_name: str, package_id: str,
                 network_config: NetworkConfig, defaults: Optional[ClientDefaults] = None,
                 settle_delay: float = DEFAULT_SETTLE_DELAY,
                 cancellation: Optional[CancellationToken] = None,
                 sleep: Optional[Callable[[float], None]] = None):
        self.platform = platform
        self.enclave_name = enclave_name
        self.package_id = package_id
        self.network_config = network_config
        self.defaults = defaults or ClientDefaults.standard()
        self.settle_delay = settle_delay
        self.cancellation = cancellation or CancellationToken()
        self._sleep = cancellable_sleep(self.cancellation, sleep)
        self.observed_topology: Optional[Topology] = None

    @property
    def expected_topology(self) -> Topology:
        return Topology.build_from_config(self.network_config, self.defaults)

    def inspect_enclave(self) -> EnclaveState:
        self.observed_topology = None
        if not self.platform.enclave_exists(self.enclave_name):
            return EnclaveState.NOT_EXIST

        service_names = filter_node_service_names(self.platform.get_running_service_names(self.enclave_name))
        if not service_names:
            return EnclaveState.EXISTS_EMPTY

        self.observed_topology = Topology.build_from_observed_state(service_names)
        if self.observed_topology == self.expected_topology:
            return EnclaveState.EXISTS_RUNNING_MATCH
        return EnclaveState.EXISTS_RUNNING_MISMATCH

    def prepare_enclave(self, restart: bool = False) -> None:
        """Prepare the enclave for an experiment, rebuilding it from scratch when `restart` is set"""
        if restart:
            logger.info(f"Restart requested for enclave {self.enclave_name}")
            self.force_restart_devnet()
            return

        state = self.inspect_enclave()
        logger.info(f"Enclave {self.enclave_name} state: {state.value}")

        if state == EnclaveState.EXISTS_RUNNING_MATCH:
            logger.info(f"Attaching to running network in {self.enclave_name}")
        elif state == EnclaveState.EXISTS_RUNNING_MISMATCH:
            expected = self.expected_topology
            raise ConfigTopologyMismatch(
                f"Enclave {self.enclave_name} runs a network that does not match the configuration "
                f"(expected {expected.describe()}, observed {self.observed_topology.describe()}); "
                f"rerun with a restart to rebuild it",
                expected=expected,
                observed=self.observed_topology,
            )
        elif state == EnclaveState.EXISTS_EMPTY:
            logger.info(f"Enclave {self.enclave_name} has no running network, building one")
            self._build_network()
        else:
            self.platform.create_enclave(self.enclave_name)
            logger.info(f"Created enclave {self.enclave_name}")
            self._build_network()

    def force_restart_devnet(self) -> None:
        """Destroy the enclave when present, wait for it to settle, then create and build anew"""
        if self.platform.enclave_exists(self.enclave_name):
            logger.info(f"Destroying enclave {self.enclave_name}")
            self.platform.destroy_enclave(self.enclave_name)
            logger.info(f"Waiting {self.settle_delay:.0f}s for the enclave to settle")
            self._sleep(self.settle_delay)

        self.platform.create_enclave(self.enclave_name)
        logger.info(f"Created enclave {self.enclave_name}")
        self._build_network()

    def _build_network(self) -> None:
        self.cancellation.raise_if_cancelled("building the network")
        logger.info(f"Building network from {self.package_id} in {self.enclave_name}")
        stream = self.platform.build_network(self.enclave_name, self.package_id, self.network_config)
        drain_build_events(stream)
