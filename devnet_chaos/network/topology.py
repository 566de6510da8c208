"""
Topology - Immutable ordered set of devnet nodes, built from configuration or observed services
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional, Tuple
from ..models import (
    ClientRole, Node, ExecutionClient, ConsensusClient, ValidatorClient,
    NetworkConfig, Participant
)
from ..errors import TopologyInconsistent
from .clients import (
    ClientDefaults, with_execution_defaults, with_consensus_defaults,
    SERVICE_TYPE_LABEL, CLIENT_TYPE_LABEL
)
from .service_names import ServiceName

logging.basicConfig(format='%(levelname)-5s | %(filename)s:%(lineno)-3d | %(message)s', level=logging.INFO, force=True)
logger = logging.getLogger(__name__)


def _first_set(*values: Optional[int]) -> Optional[int]:
    for value in values:
        if value:
            return value
    return None


@dataclass(frozen=True, eq=False)
class Topology:
    """
    Ordered, immutable collection of nodes.

    Two topologies are equal when they have the same number of nodes and every
    node of one matches a node of the other by (index, execution type,
    consensus type). Images and resource sizing are not compared.
    """
    nodes: Tuple[Node, ...] = ()

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self.nodes)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Topology):
            return NotImplemented
        return self.equal(other)

    def __hash__(self) -> int:
        return hash(frozenset(self.fingerprints()))

    @classmethod
    def of(cls, nodes: Iterable[Node]) -> "Topology":
        return cls(tuple(nodes))

    @classmethod
    def build_from_config(cls, network_config: NetworkConfig,
                          defaults: Optional[ClientDefaults] = None) -> "Topology":
        """Expand participant groups into nodes, in declaration order, indexed from 1"""
        defaults = defaults or ClientDefaults.standard()
        votes = network_config.validator_keys_per_node
        nodes: List[Node] = []

        for participant in network_config.participants:
            if participant.count < 1:
                logger.warning(f"Skipping participant {participant.el_type}/{participant.cl_type} with count {participant.count}")
                continue
            for _ in range(participant.count):
                nodes.append(cls._node_from_participant(len(nodes) + 1, participant, votes, defaults))

        logger.debug(f"Built topology of {len(nodes)} nodes from {len(network_config.participants)} participants")
        return cls(tuple(nodes))

    @staticmethod
    def _node_from_participant(index: int, participant: Participant, votes: int,
                               defaults: ClientDefaults) -> Node:
        execution = ExecutionClient(
            type=participant.el_type,
            image=participant.el_image,
            cpu_required=_first_set(participant.el_min_cpu, participant.el_max_cpu),
            memory_required=_first_set(participant.el_min_mem, participant.el_max_mem),
            extra_labels=dict(participant.el_extra_labels),
        )

        validator = None
        if participant.use_separate_vc or participant.vc_type or participant.vc_image:
            validator = ValidatorClient(
                type=participant.vc_type or participant.cl_type,
                image=participant.vc_image,
                cpu_required=_first_set(participant.vc_min_cpu, participant.vc_max_cpu),
                memory_required=_first_set(participant.vc_min_mem, participant.vc_max_mem),
                extra_labels=dict(participant.vc_extra_labels),
            )

        consensus = ConsensusClient(
            type=participant.cl_type,
            image=participant.cl_image,
            has_validator_sidecar=participant.use_separate_vc,
            validator_client=validator,
            cpu_required=_first_set(participant.cl_min_cpu, participant.cl_max_cpu),
            memory_required=_first_set(participant.cl_min_mem, participant.cl_max_mem),
            extra_labels=dict(participant.cl_extra_labels),
        )

        return Node(
            index=index,
            execution=with_execution_defaults(execution, defaults),
            consensus=with_consensus_defaults(consensus, defaults),
            consensus_votes=votes,
        )

    @classmethod
    def build_from_observed_state(cls, service_names: Iterable[str]) -> "Topology":
        """
        Reconstruct a topology from the service identifiers of a running enclave.

        Raises UnrecognizedServiceName for identifiers outside the naming grammar
        and TopologyInconsistent when services cannot be grouped into whole nodes.
        """
        by_index: Dict[int, Dict[ClientRole, ServiceName]] = {}
        for raw_name in service_names:
            name = ServiceName.parse(raw_name)
            roles = by_index.setdefault(name.index, {})
            if name.role in roles:
                raise TopologyInconsistent(
                    f"Duplicate {name.role.value} service for node {name.index}: "
                    f"'{roles[name.role]}' and '{raw_name}'"
                )
            roles[name.role] = name

        nodes: List[Node] = []
        for index in sorted(by_index):
            roles = by_index[index]
            el_name = roles.get(ClientRole.EXECUTION)
            cl_name = roles.get(ClientRole.CONSENSUS)
            vc_name = roles.get(ClientRole.VALIDATOR)

            if el_name is not None and cl_name is None:
                raise TopologyInconsistent(f"Execution service '{el_name}' has no consensus service at index {index}")
            if cl_name is not None and el_name is None:
                raise TopologyInconsistent(f"Consensus service '{cl_name}' has no execution service at index {index}")
            if cl_name is None:
                raise TopologyInconsistent(f"Validator service '{vc_name}' has no consensus service at index {index}")

            if el_name.paired_type != cl_name.client_type:
                logger.warning(f"Service '{el_name}' names paired client {el_name.paired_type} "
                               f"but node {index} runs {cl_name.client_type}")

            validator = ValidatorClient(type=vc_name.client_type) if vc_name is not None else None
            nodes.append(Node(
                index=index,
                execution=ExecutionClient(type=el_name.client_type),
                consensus=ConsensusClient(
                    type=cl_name.client_type,
                    has_validator_sidecar=validator is not None,
                    validator_client=validator,
                ),
            ))

        return cls(tuple(nodes))

    def fingerprints(self) -> List[str]:
        return [node.fingerprint() for node in self.nodes]

    def equal(self, other: "Topology") -> bool:
        if len(self.nodes) != len(other.nodes):
            return False
        theirs = set(other.fingerprints())
        return all(fingerprint in theirs for fingerprint in self.fingerprints())

    def describe(self) -> str:
        return ", ".join(self.fingerprints())

    def to_participants(self) -> List[Participant]:
        """One participant (count 1) per node, carrying images, resources and user labels"""
        return [_participant_from_node(node) for node in self.nodes]


def _user_labels(labels) -> Dict[str, str]:
    return {
        key: value for key, value in (labels or {}).items()
        if key not in (SERVICE_TYPE_LABEL, CLIENT_TYPE_LABEL)
    }


def _participant_from_node(node: Node) -> Participant:
    execution = node.execution
    consensus = node.consensus
    participant = Participant(
        el_type=execution.type,
        cl_type=consensus.type,
        el_image=execution.image,
        cl_image=consensus.image,
        el_min_cpu=execution.cpu_required,
        el_max_cpu=execution.cpu_required,
        el_min_mem=execution.memory_required,
        el_max_mem=execution.memory_required,
        cl_min_cpu=consensus.cpu_required,
        cl_max_cpu=consensus.cpu_required,
        cl_min_mem=consensus.memory_required,
        cl_max_mem=consensus.memory_required,
        el_extra_labels=_user_labels(execution.extra_labels),
        cl_extra_labels=_user_labels(consensus.extra_labels),
        count=1,
    )

    validator = consensus.validator_client
    if consensus.has_validator_sidecar and validator is not None:
        participant.use_separate_vc = True
        participant.vc_type = validator.type
        participant.vc_image = validator.image
        participant.vc_min_cpu = validator.cpu_required
        participant.vc_max_cpu = validator.cpu_required
        participant.vc_min_mem = validator.memory_required
        participant.vc_max_mem = validator.memory_required
        participant.vc_extra_labels = _user_labels(validator.extra_labels)

    return participant
