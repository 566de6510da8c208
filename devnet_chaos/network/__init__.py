"""
Network topology model: client vocabularies, service naming and topology reconciliation
"""
from .clients import (
    ClientDefaults, EXECUTION_CLIENT_TYPES, CONSENSUS_CLIENT_TYPES,
    with_execution_defaults, with_consensus_defaults, with_validator_defaults
)
from .service_names import ServiceName, filter_node_service_names
from .topology import Topology

__all__ = [
    'ClientDefaults',
    'EXECUTION_CLIENT_TYPES',
    'CONSENSUS_CLIENT_TYPES',
    'with_execution_defaults',
    'with_consensus_defaults',
    'with_validator_defaults',
    'ServiceName',
    'filter_node_service_names',
    'Topology',
]
