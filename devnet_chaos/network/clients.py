"""
Client vocabularies and default back-fill for execution, consensus and validator clients
"""
import logging
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Mapping, Dict, Optional
from ..models import ExecutionClient, ConsensusClient, ValidatorClient
from ..errors import ConfigurationInvalid, TopologyInvariantError

logging.basicConfig(format='%(levelname)-5s | %(filename)s:%(lineno)-3d | %(message)s', level=logging.INFO, force=True)
logger = logging.getLogger(__name__)


EXECUTION_CLIENT_TYPES = (
    "geth",
    "erigon",
    "nethermind",
    "besu",
    "reth",
    "ethereumjs",
    "nimbus-eth1",
)

CONSENSUS_CLIENT_TYPES = (
    "lighthouse",
    "teku",
    "nimbus",
    "prysm",
    "lodestar",
    "grandine",
)

SERVICE_TYPE_LABEL = "ethereum-package.service-type"
CLIENT_TYPE_LABEL = "ethereum-package.client-type"

# Labels the orchestration platform puts on every service pod
ID_LABEL = "kurtosistech.com/id"
CUSTOM_LABEL_PREFIX = "kurtosistech.com.custom/"

EXECUTION_SERVICE_TYPE = "execution-client"
CONSENSUS_SERVICE_TYPE = "consensus-client"
VALIDATOR_SERVICE_TYPE = "validator-client"

_EXECUTION_IMAGES = {
    "geth": "ethereum/client-go:latest",
    "erigon": "ethpandaops/erigon:devel",
    "nethermind": "nethermindeth/nethermind:master",
    "besu": "hyperledger/besu:latest",
    "reth": "ghcr.io/paradigmxyz/reth",
    "ethereumjs": "ethpandaops/ethereumjs:master",
    "nimbus-eth1": "ethpandaops/nimbus-eth1:master",
}

_BEACON_IMAGES = {
    "lighthouse": "sigp/lighthouse:latest",
    "teku": "consensys/teku:latest",
    "nimbus": "statusim/nimbus-eth2:multiarch-latest",
    "prysm": "gcr.io/prysmaticlabs/prysm/beacon-chain:latest",
    "lodestar": "chainsafe/lodestar:latest",
    "grandine": "ethpandaops/grandine:master",
}

_VALIDATOR_IMAGES = {
    "lighthouse": "sigp/lighthouse:latest",
    "teku": "consensys/teku:latest",
    "nimbus": "statusim/nimbus-validator-client:multiarch-latest",
    "prysm": "gcr.io/prysmaticlabs/prysm/validator:latest",
    "lodestar": "chainsafe/lodestar:latest",
    "grandine": "ethpandaops/grandine:master",
}

DEFAULT_CPU = 1000  # millicores
DEFAULT_MEMORY = 1024  # MB


def is_execution_client_type(client_type: Optional[str]) -> bool:
    return client_type in EXECUTION_CLIENT_TYPES


def is_consensus_client_type(client_type: Optional[str]) -> bool:
    return client_type in CONSENSUS_CLIENT_TYPES


@dataclass(frozen=True)
class ClientDefaults:
    """
    Read-only table of per-client default images and resource sizing.

    Pass an instance explicitly to the back-fill helpers; tests can build
    their own table instead of relying on the stock one.
    """
    execution_images: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    beacon_images: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    validator_images: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    cpu: int = DEFAULT_CPU
    memory: int = DEFAULT_MEMORY

    @classmethod
    def standard(cls) -> "ClientDefaults":
        return cls(
            execution_images=MappingProxyType(dict(_EXECUTION_IMAGES)),
            beacon_images=MappingProxyType(dict(_BEACON_IMAGES)),
            validator_images=MappingProxyType(dict(_VALIDATOR_IMAGES)),
        )

    def execution_image(self, client_type: str) -> str:
        return self._lookup(self.execution_images, client_type, "execution")

    def beacon_image(self, client_type: str) -> str:
        return self._lookup(self.beacon_images, client_type, "beacon")

    def validator_image(self, client_type: str) -> str:
        return self._lookup(self.validator_images, client_type, "validator")

    @staticmethod
    def _lookup(images: Mapping[str, str], client_type: str, kind: str) -> str:
        image = images.get(client_type)
        if image is None:
            raise ConfigurationInvalid(f"No default image for the specified {kind} type: {client_type}")
        return image


def _with_default_labels(labels: Mapping[str, str], service_type: str, client_type: str) -> Dict[str, str]:
    """Add the role/type labels without overriding keys the user already set"""
    merged = dict(labels or {})
    merged.setdefault(SERVICE_TYPE_LABEL, service_type)
    merged.setdefault(CLIENT_TYPE_LABEL, client_type)
    return merged


def with_execution_defaults(client: ExecutionClient, defaults: ClientDefaults) -> ExecutionClient:
    """Return a copy of the execution client with image, resources and labels filled in"""
    return replace(
        client,
        image=client.image or defaults.execution_image(client.type),
        cpu_required=client.cpu_required if client.cpu_required is not None else defaults.cpu,
        memory_required=client.memory_required if client.memory_required is not None else defaults.memory,
        extra_labels=_with_default_labels(client.extra_labels, EXECUTION_SERVICE_TYPE, client.type),
    )


def with_validator_defaults(validator: ValidatorClient, consensus_type: str,
                            defaults: ClientDefaults) -> ValidatorClient:
    # Validator labels carry the consensus client's type
    validator_type = validator.type or consensus_type
    return replace(
        validator,
        type=validator_type,
        image=validator.image or defaults.validator_image(validator_type),
        cpu_required=validator.cpu_required if validator.cpu_required is not None else defaults.cpu,
        memory_required=validator.memory_required if validator.memory_required is not None else defaults.memory,
        extra_labels=_with_default_labels(validator.extra_labels, VALIDATOR_SERVICE_TYPE, consensus_type),
    )


def with_consensus_defaults(client: ConsensusClient, defaults: ClientDefaults) -> ConsensusClient:
    """
    Return a copy of the consensus client with defaults filled in.

    A client with a validator sidecar always ends up with a ValidatorClient
    (created from the consensus type when absent). A ValidatorClient on a
    client without a sidecar is rejected.
    """
    if not client.has_validator_sidecar and client.validator_client is not None:
        raise TopologyInvariantError(
            f"Consensus client '{client.type}' has a validator client but has_validator_sidecar is false"
        )

    validator = client.validator_client
    if client.has_validator_sidecar:
        if validator is None:
            logger.debug(f"Creating validator sidecar for consensus client {client.type}")
            validator = ValidatorClient(type=client.type)
        validator = with_validator_defaults(validator, client.type, defaults)

    return replace(
        client,
        image=client.image or defaults.beacon_image(client.type),
        validator_client=validator,
        cpu_required=client.cpu_required if client.cpu_required is not None else defaults.cpu,
        memory_required=client.memory_required if client.memory_required is not None else defaults.memory,
        extra_labels=_with_default_labels(client.extra_labels, CONSENSUS_SERVICE_TYPE, client.type),
    )
