"""
Chaos Target Selector - map abstract target descriptions onto platform label selectors

Everything here is pure: given a topology it always returns the same selectors
and never talks to the cluster.
"""
import logging
from typing import Iterable, List, Sequence
from ..models import ClientRole, Node, ChaosExpressionSelector, ChaosTargetSelector
from ..errors import ConfigurationInvalid
from ..network.clients import (
    ID_LABEL, CUSTOM_LABEL_PREFIX, SERVICE_TYPE_LABEL, CLIENT_TYPE_LABEL,
    EXECUTION_SERVICE_TYPE, CONSENSUS_SERVICE_TYPE, VALIDATOR_SERVICE_TYPE,
    is_execution_client_type
)
from ..network.service_names import ServiceName

logging.basicConfig(format='%(levelname)-5s | %(filename)s:%(lineno)-3d | %(message)s', level=logging.INFO, force=True)
logger = logging.getLogger(__name__)


MATCHING_NODE = "MatchingNode"
MATCHING_CLIENT = "MatchingClient"
TARGETING_SPECS = (MATCHING_NODE, MATCHING_CLIENT)

ATTACK_ONE = "AttackOneMatching"
ATTACK_ALL = "AttackAllMatching"
ATTACK_MINORITY = "AttackMinorityMatching"
ATTACK_SUPERMINORITY = "AttackSuperminorityMatching"
ATTACK_MAJORITY = "AttackMajorityMatching"
ATTACK_SUPERMAJORITY = "AttackSupermajorityMatching"
ATTACK_SIZES = (
    ATTACK_ONE,
    ATTACK_ALL,
    ATTACK_MINORITY,
    ATTACK_SUPERMINORITY,
    ATTACK_MAJORITY,
    ATTACK_SUPERMAJORITY,
)

SERVICE_TYPES = {
    ClientRole.EXECUTION: EXECUTION_SERVICE_TYPE,
    ClientRole.CONSENSUS: CONSENSUS_SERVICE_TYPE,
    ClientRole.VALIDATOR: VALIDATOR_SERVICE_TYPE,
}


def custom_label(label: str) -> str:
    """Pod label key under which the platform exposes a service's custom label"""
    return f"{CUSTOM_LABEL_PREFIX}{label}"


def select_node_targets(nodes: Sequence[Node], roles: Iterable[ClientRole], network_size: int,
                        description: str = "") -> ChaosTargetSelector:
    """Select the given roles' services of specific nodes by pod id"""
    roles = list(roles)
    pod_ids: List[str] = []
    for node in nodes:
        for role in roles:
            if role == ClientRole.VALIDATOR and not node.consensus.has_validator_sidecar:
                continue
            pod_ids.append(ServiceName.for_node(node, role, network_size))

    if not pod_ids:
        raise ConfigurationInvalid(f"No services selected for target '{description}'")

    if not description:
        description = ", ".join(pod_ids)
    return ChaosTargetSelector(
        description=description,
        selectors=(ChaosExpressionSelector(ID_LABEL, "In", tuple(pod_ids)),),
    )


def select_client_type(client_type: str, role: ClientRole) -> ChaosTargetSelector:
    """Select every service of a client type in a role"""
    return ChaosTargetSelector(
        description=f"all {client_type} {role.value} clients",
        selectors=(
            ChaosExpressionSelector(custom_label(CLIENT_TYPE_LABEL), "In", (client_type,)),
            ChaosExpressionSelector(custom_label(SERVICE_TYPE_LABEL), "In", (SERVICE_TYPES[role],)),
        ),
    )


def select_role(role: ClientRole) -> ChaosTargetSelector:
    """Select every service of a role"""
    return ChaosTargetSelector(
        description=f"all {role.value} clients",
        selectors=(ChaosExpressionSelector(custom_label(SERVICE_TYPE_LABEL), "In", (SERVICE_TYPES[role],)),),
    )


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def attack_size_node_count(attack_size: str, network_size: int, matching: int) -> int:
    """
    Number of nodes an attack size covers.

    `network_size` counts the nodes eligible for targeting (bootnode excluded)
    and `matching` the nodes among them running the target client.
    """
    if attack_size == ATTACK_ONE:
        return 1
    if attack_size == ATTACK_ALL:
        return matching
    if attack_size == ATTACK_MINORITY:
        # largest share strictly below one third
        return max(1, _ceil_div(network_size, 3) - 1)
    if attack_size == ATTACK_SUPERMINORITY:
        return _ceil_div(network_size, 3)
    if attack_size == ATTACK_MAJORITY:
        return network_size // 2 + 1
    if attack_size == ATTACK_SUPERMAJORITY:
        return _ceil_div(2 * network_size, 3)
    raise ConfigurationInvalid(f"The attack size dimension {attack_size} is not supported. Supported dimensions: {list(ATTACK_SIZES)}")


def target_roles(targeting: str, target_client: str) -> List[ClientRole]:
    """Roles hit on each selected node for a targeting dimension"""
    if targeting == MATCHING_NODE:
        return [ClientRole.EXECUTION, ClientRole.CONSENSUS, ClientRole.VALIDATOR]
    if targeting == MATCHING_CLIENT:
        if is_execution_client_type(target_client):
            return [ClientRole.EXECUTION]
        return [ClientRole.CONSENSUS, ClientRole.VALIDATOR]
    raise ConfigurationInvalid(f"The fault targeting dimension {targeting} is not supported. Supported dimensions: {list(TARGETING_SPECS)}")


def nodes_running_client(nodes: Sequence[Node], target_client: str) -> List[Node]:
    if is_execution_client_type(target_client):
        return [node for node in nodes if node.execution.type == target_client]
    return [node for node in nodes if node.consensus.type == target_client]


def resolve_attack_targets(nodes_under_test: Sequence[Node], target_client: str, targeting: str,
                           attack_size: str, network_size: int) -> List[ChaosTargetSelector]:
    """
    One target selector per node chosen for a targeting x attack-size combination.

    Nodes running the target client are taken in index order. Raises
    ConfigurationInvalid when the attack needs more nodes than run the client.
    """
    roles = target_roles(targeting, target_client)
    matching = nodes_running_client(nodes_under_test, target_client)
    needed = attack_size_node_count(attack_size, len(nodes_under_test), len(matching))

    if needed > len(matching):
        raise ConfigurationInvalid(
            f"{attack_size} needs {needed} of {len(nodes_under_test)} nodes but only "
            f"{len(matching)} run {target_client}"
        )
    if needed == 0:
        raise ConfigurationInvalid(f"No nodes run the target client {target_client}")

    targets = []
    for node in matching[:needed]:
        description = f"{targeting} node #{node.index} ({node.execution.type}/{node.consensus.type})"
        targets.append(select_node_targets([node], roles, network_size, description))

    logger.debug(f"{targeting}/{attack_size} selected {len(targets)} of {len(matching)} {target_client} nodes")
    return targets
