"""
Service names - parse and render the orchestration platform's per-client service identifiers

Identifiers look like ``<role>-<index>-<clientType>-<pairedClientType>``, e.g.
``el-1-geth-lighthouse`` or ``consensus-03-nimbus-nimbus-eth1``. Client types may
themselves contain hyphens, so the remainder is split against the known client
vocabularies.
"""
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple
from ..models import ClientRole, Node
from ..errors import UnrecognizedServiceName
from .clients import EXECUTION_CLIENT_TYPES, CONSENSUS_CLIENT_TYPES

ROLE_PREFIXES = {
    'el': ClientRole.EXECUTION,
    'execution': ClientRole.EXECUTION,
    'cl': ClientRole.CONSENSUS,
    'consensus': ClientRole.CONSENSUS,
    'vc': ClientRole.VALIDATOR,
    'validator': ClientRole.VALIDATOR,
}

SHORT_PREFIXES = {
    ClientRole.EXECUTION: 'el',
    ClientRole.CONSENSUS: 'cl',
    ClientRole.VALIDATOR: 'vc',
}

_NODE_SERVICE = re.compile(r'^(execution|consensus|validator|el|cl|vc)-(\d+)-(.+)$')
_NODE_SERVICE_PREFIX = re.compile(r'^(execution|consensus|validator|el|cl|vc)-\d+-')
_PLAIN_PAIR = re.compile(r'^(\w+)-(\w+)$')


def _vocabularies(role: ClientRole) -> Tuple[Tuple[str, ...], Tuple[str, ...]]:
    """(client vocabulary, paired vocabulary) for a role"""
    if role == ClientRole.EXECUTION:
        return EXECUTION_CLIENT_TYPES, CONSENSUS_CLIENT_TYPES
    return CONSENSUS_CLIENT_TYPES, EXECUTION_CLIENT_TYPES


def _split_client_types(remainder: str, role: ClientRole) -> Optional[Tuple[str, str]]:
    client_vocab, paired_vocab = _vocabularies(role)
    parts = remainder.split('-')
    for cut in range(1, len(parts)):
        client_type = '-'.join(parts[:cut])
        paired_type = '-'.join(parts[cut:])
        if client_type in client_vocab and paired_type in paired_vocab:
            return client_type, paired_type

    # Unknown client types are accepted only when the split is unambiguous
    match = _PLAIN_PAIR.match(remainder)
    if match:
        return match.group(1), match.group(2)
    return None


@dataclass(frozen=True)
class ServiceName:
    """A validated node service identifier"""
    role: ClientRole
    index: int
    client_type: str
    paired_type: str

    @classmethod
    def parse(cls, service_name: str) -> "ServiceName":
        match = _NODE_SERVICE.match(service_name or '')
        if match is None:
            raise UnrecognizedServiceName(service_name, "expected <role>-<index>-<clientType>-<pairedClientType>")

        role = ROLE_PREFIXES[match.group(1)]
        index = int(match.group(2))
        if index < 1:
            raise UnrecognizedServiceName(service_name, "node index must be 1 or greater")

        types = _split_client_types(match.group(3), role)
        if types is None:
            raise UnrecognizedServiceName(service_name, "could not resolve client types")

        return cls(role=role, index=index, client_type=types[0], paired_type=types[1])

    @classmethod
    def for_node(cls, node: Node, role: ClientRole, network_size: int = 1) -> str:
        """Render the identifier the platform assigns to one of a node's services"""
        if role == ClientRole.EXECUTION:
            name = cls(role, node.index, node.execution.type, node.consensus.type)
        elif role == ClientRole.CONSENSUS:
            name = cls(role, node.index, node.consensus.type, node.execution.type)
        else:
            validator = node.consensus.validator_client
            validator_type = validator.type if validator is not None else node.consensus.type
            name = cls(role, node.index, validator_type, node.execution.type)
        return name.render(len(str(max(network_size, 1))))

    def render(self, index_width: int = 1) -> str:
        index = str(self.index).zfill(index_width)
        return f"{SHORT_PREFIXES[self.role]}-{index}-{self.client_type}-{self.paired_type}"

    def __str__(self) -> str:
        return self.render()


def looks_like_node_service(service_name: str) -> bool:
    return bool(_NODE_SERVICE_PREFIX.match(service_name or ''))


def filter_node_service_names(service_names: Iterable[str]) -> List[str]:
    """Drop auxiliary services (prometheus, grafana, ...) that are not part of any node"""
    return [name for name in service_names if looks_like_node_service(name)]
