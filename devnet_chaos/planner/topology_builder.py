"""
Topology Builder - sizes, pairs and pads the network generated for a fault campaign
"""
import math
import random
import logging
from fractions import Fraction
from typing import List, Optional
from ..models import (
    ClientRole, Node, ExecutionClient, ConsensusClient, ValidatorClient,
    ExecutionClientVersion, ConsensusClientVersion, PlannerConfig
)
from ..errors import ConfigurationInvalid
from ..network.clients import (
    ClientDefaults, with_execution_defaults, with_consensus_defaults, is_execution_client_type
)
from ..network.topology import Topology

logging.basicConfig(format='%(levelname)-5s | %(filename)s:%(lineno)-3d | %(message)s', level=logging.INFO, force=True)
logger = logging.getLogger(__name__)


def execution_client_from_version(version: ExecutionClientVersion, defaults: ClientDefaults) -> ExecutionClient:
    return with_execution_defaults(ExecutionClient(type=version.type, image=version.image), defaults)


def consensus_client_from_version(version: ConsensusClientVersion, defaults: ClientDefaults) -> ConsensusClient:
    validator = None
    if version.has_sidecar or version.validator_type or version.validator_image:
        validator = ValidatorClient(type=version.validator_type or version.type, image=version.validator_image)
    client = ConsensusClient(
        type=version.type,
        image=version.beacon_image,
        has_validator_sidecar=version.has_sidecar,
        validator_client=validator,
    )
    return with_consensus_defaults(client, defaults)


def calculate_target_network_size(base_size: int, target_percent: Optional[float]) -> int:
    """
    Smallest network in which `base_size` target nodes make up at most `target_percent`.

    A percentage of None or 0 means no constraint. Anything outside [0, 1) is rejected.
    """
    if target_percent is None:
        return base_size
    if isinstance(target_percent, bool) or not isinstance(target_percent, (int, float)):
        raise ConfigurationInvalid(f"invalid value: ({target_percent}) for target_as_percent_of_network, must be a number")
    if not (0 <= target_percent < 1):
        raise ConfigurationInvalid(f"invalid value: ({target_percent}) for target_as_percent_of_network, must be >= 0 and < 1")
    if target_percent == 0:
        return base_size

    # exact arithmetic: 6 / 0.3 must give 20, not 21
    return math.ceil(Fraction(base_size) / Fraction(str(target_percent)))


class TopologyBuilder:
    """Builds the network topology for a planner configuration"""

    def __init__(self, config: PlannerConfig, defaults: Optional[ClientDefaults] = None,
                 rng: Optional[random.Random] = None):
        self.config = config
        self.defaults = defaults or ClientDefaults.standard()
        self.rng = rng or random.Random(config.seed)
        self.target_client = config.fault_config.target_client
        self.execution_clients = [execution_client_from_version(v, self.defaults) for v in config.execution_clients]
        self.consensus_clients = [consensus_client_from_version(v, self.defaults) for v in config.consensus_clients]
        self.consensus_votes = int(config.network_params.get('num_validator_keys_per_node', 0) or 0)
        self.nodes: List[Node] = []

    @property
    def target_role(self) -> ClientRole:
        if is_execution_client_type(self.target_client):
            return ClientRole.EXECUTION
        return ClientRole.CONSENSUS

    def _counterpart_clients(self) -> list:
        if self.target_role == ClientRole.EXECUTION:
            return self.consensus_clients
        return self.execution_clients

    def _target_role_clients(self) -> list:
        if self.target_role == ClientRole.EXECUTION:
            return self.execution_clients
        return self.consensus_clients

    def base_size(self) -> int:
        return self.config.target_topology.target_node_multiplier * len(self._counterpart_clients())

    def target_network_size(self) -> int:
        """Number of test nodes to generate (the bootnode is not counted)"""
        return calculate_target_network_size(
            self.base_size(), self.config.target_topology.target_as_percent_of_network
        )

    def _add_node(self, execution: ExecutionClient, consensus: ConsensusClient) -> None:
        self.nodes.append(Node(
            index=len(self.nodes) + 1,
            execution=execution,
            consensus=consensus,
            consensus_votes=self.consensus_votes,
        ))

    def _find_execution(self, client_type: str) -> ExecutionClient:
        for client in self.execution_clients:
            if client.type == client_type:
                return client
        raise ConfigurationInvalid(f"no version found for execution client type: {client_type}")

    def _find_consensus(self, client_type: str) -> ConsensusClient:
        for client in self.consensus_clients:
            if client.type == client_type:
                return client
        raise ConfigurationInvalid(f"no version found for consensus client type: {client_type}")

    def _add_bootnode(self) -> None:
        bootnode = self.config.bootnode
        logger.debug(f"Adding bootnode {bootnode.execution}/{bootnode.consensus} at index 1")
        self._add_node(self._find_execution(bootnode.execution), self._find_consensus(bootnode.consensus))

    def _add_pairings(self) -> None:
        """Target client against each declared opposite-role client, repeated `multiplier` times in a row"""
        multiplier = self.config.target_topology.target_node_multiplier
        if self.target_role == ClientRole.EXECUTION:
            target = self._find_execution(self.target_client)
            for consensus in self.consensus_clients:
                for _ in range(multiplier):
                    self._add_node(target, consensus)
        else:
            target = self._find_consensus(self.target_client)
            for execution in self.execution_clients:
                for _ in range(multiplier):
                    self._add_node(execution, target)

    def _add_padding(self, count: int) -> None:
        """Random nodes whose target-role client is anything but the target client"""
        eligible = [client for client in self._target_role_clients() if client.type != self.target_client]
        if not eligible:
            raise ConfigurationInvalid(
                f"Cannot pad the network with {count} nodes: no {self.target_role.value} clients "
                f"other than {self.target_client} are declared"
            )
        counterparts = self._counterpart_clients()

        for _ in range(count):
            padded = self.rng.choice(eligible)
            counterpart = self.rng.choice(counterparts)
            if self.target_role == ClientRole.EXECUTION:
                self._add_node(padded, counterpart)
            else:
                self._add_node(counterpart, padded)

    def compose(self) -> Topology:
        """Bootnode (optional), then full pairings, then padding up to the target size"""
        if self.nodes:
            raise ConfigurationInvalid(f"compose() called on a builder that already has {len(self.nodes)} nodes")
        if not self._counterpart_clients():
            raise ConfigurationInvalid(f"No clients declared opposite the {self.target_role.value} target {self.target_client}")

        target_size = self.target_network_size()

        if self.config.bootnode is not None:
            self._add_bootnode()
        offset = len(self.nodes)

        logger.debug(f"Creating all pairings against the target client: {self.target_client}")
        self._add_pairings()

        missing = target_size - (len(self.nodes) - offset)
        if missing > 0:
            logger.debug(f"Padding network with {missing} random nodes")
            self._add_padding(missing)

        logger.info(f"Composed network of {len(self.nodes)} nodes ({len(self.nodes) - offset} under test)")
        return Topology.of(self.nodes)
