"""
Core data models for the devnet chaos planner and runner
"""
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional, Mapping, Tuple
from enum import Enum


class ClientRole(Enum):
    """Role a client plays inside a node"""
    EXECUTION = "execution"
    CONSENSUS = "consensus"
    VALIDATOR = "validator"


@dataclass(frozen=True)
class ValidatorClient:
    """Validator sidecar attached to a consensus client"""
    type: str
    image: Optional[str] = None
    cpu_required: Optional[int] = None
    memory_required: Optional[int] = None
    extra_labels: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ExecutionClient:
    """Execution-layer client of a node"""
    type: str
    image: Optional[str] = None
    cpu_required: Optional[int] = None
    memory_required: Optional[int] = None
    extra_labels: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ConsensusClient:
    """Consensus-layer (beacon) client of a node, optionally with a validator sidecar"""
    type: str
    image: Optional[str] = None
    has_validator_sidecar: bool = False
    validator_client: Optional[ValidatorClient] = None
    cpu_required: Optional[int] = None
    memory_required: Optional[int] = None
    extra_labels: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Node:
    """One devnet participant: a paired execution and consensus client"""
    index: int
    execution: ExecutionClient
    consensus: ConsensusClient
    consensus_votes: int = 0

    def fingerprint(self) -> str:
        """Identity used for topology comparison (images and sizing excluded)"""
        return f"#{self.index} {self.execution.type}/{self.consensus.type}"


# Planner inputs

@dataclass
class ExecutionClientVersion:
    """Declared execution client in a planner catalog"""
    type: str
    image: Optional[str] = None


@dataclass
class ConsensusClientVersion:
    """Declared consensus client in a planner catalog"""
    type: str
    beacon_image: Optional[str] = None
    validator_type: Optional[str] = None
    validator_image: Optional[str] = None
    has_sidecar: bool = False


@dataclass
class TargetNetworkTopology:
    """Sizing policy for generated networks"""
    target_node_multiplier: int = 1
    target_as_percent_of_network: Optional[float] = None


@dataclass
class FaultConfig:
    """Declarative description of the fault suite to compile"""
    fault_type: str
    target_client: str
    targeting_dimensions: List[str] = field(default_factory=list)
    attack_size_dimensions: List[str] = field(default_factory=list)
    config_dimensions: List[Dict[str, Any]] = field(default_factory=list)
    wait_before_first_test: float = 0.0


@dataclass
class BootnodeConfig:
    """Client pair used for the reserved bootnode at index 1"""
    execution: str
    consensus: str


@dataclass
class PlannerConfig:
    """Complete planner input"""
    execution_clients: List[ExecutionClientVersion]
    consensus_clients: List[ConsensusClientVersion]
    fault_config: FaultConfig
    target_topology: TargetNetworkTopology = field(default_factory=TargetNetworkTopology)
    network_params: Dict[str, Any] = field(default_factory=dict)
    kurtosis_package: str = "github.com/kurtosis-tech/ethereum-package"
    kubernetes_namespace: str = "kt-test-plan"
    enclave_name: str = "test-plan"
    bootnode: Optional[BootnodeConfig] = None
    seed: Optional[int] = None


# Network build configuration

@dataclass
class Participant:
    """One participant group of the network build configuration"""
    el_type: str
    cl_type: str
    el_image: Optional[str] = None
    cl_image: Optional[str] = None
    use_separate_vc: bool = False
    vc_type: Optional[str] = None
    vc_image: Optional[str] = None
    el_min_cpu: Optional[int] = None
    el_max_cpu: Optional[int] = None
    el_min_mem: Optional[int] = None
    el_max_mem: Optional[int] = None
    cl_min_cpu: Optional[int] = None
    cl_max_cpu: Optional[int] = None
    cl_min_mem: Optional[int] = None
    cl_max_mem: Optional[int] = None
    vc_min_cpu: Optional[int] = None
    vc_max_cpu: Optional[int] = None
    vc_min_mem: Optional[int] = None
    vc_max_mem: Optional[int] = None
    el_extra_labels: Dict[str, str] = field(default_factory=dict)
    cl_extra_labels: Dict[str, str] = field(default_factory=dict)
    vc_extra_labels: Dict[str, str] = field(default_factory=dict)
    count: int = 1


@dataclass
class NetworkConfig:
    """Network definition handed to the orchestration platform"""
    participants: List[Participant]
    network_params: Dict[str, Any] = field(default_factory=dict)
    additional_services: List[str] = field(default_factory=list)
    parallel_keystore_generation: bool = False
    persistent: bool = False
    disable_peer_scoring: bool = True

    @property
    def validator_keys_per_node(self) -> int:
        return int(self.network_params.get('num_validator_keys_per_node', 0) or 0)


# Chaos plan

class StepType(Enum):
    """Kinds of plan steps"""
    INJECT_FAULT = "injectFault"
    WAIT_FOR_FAULT_COMPLETION = "waitForFaultCompletion"
    WAIT_FOR_DURATION = "waitForDuration"


@dataclass(frozen=True)
class ChaosExpressionSelector:
    """Single label-selector expression (key, operator, values)"""
    key: str
    operator: str
    values: Tuple[str, ...] = ()


@dataclass(frozen=True)
class ChaosTargetSelector:
    """Group of selector expressions describing one fault target"""
    description: str
    selectors: Tuple[ChaosExpressionSelector, ...]


@dataclass(frozen=True)
class DurationPayload:
    """Payload of a WaitForDuration step"""
    duration: float


@dataclass
class PlanStep:
    """One step of a suite test; payload type is keyed by step_type"""
    step_type: StepType
    description: str
    payload: Optional[Any] = None


@dataclass
class HealthCheckConfig:
    """Post-fault health checking policy"""
    enable_checks: bool = False
    grace_period: float = 0.0


@dataclass
class SuiteTest:
    """Named, ordered list of plan steps with a health policy"""
    name: str
    plan_steps: List[PlanStep]
    health: HealthCheckConfig = field(default_factory=HealthCheckConfig)


@dataclass
class ChaosConfig:
    """Ordered test suite plus run options"""
    tests: List[SuiteTest] = field(default_factory=list)
    start_new_devnet: bool = False
    wait_before_first_test: float = 0.0


@dataclass
class ExperimentConfig:
    """Everything needed to run an experiment against an enclave"""
    enclave_name: str
    enclave_namespace: str
    kurtosis_package_id: str
    network_config: NetworkConfig
    chaos_config: ChaosConfig


# Runtime collaborator values

class FaultStatus(Enum):
    """Progress of a submitted fault"""
    PENDING = "pending"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class FaultHandle:
    """Reference to a submitted fault"""
    name: str
    kind: str
    namespace: Optional[str] = None


@dataclass
class PodRef:
    """Observed pod with its labels and lifecycle phase"""
    name: str
    labels: Dict[str, str] = field(default_factory=dict)
    phase: str = "Unknown"
    expect_death: bool = False


class BuildEventKind(Enum):
    """Kinds of events emitted while the platform builds a network"""
    PROGRESS = "progress"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    COMPLETED = "completed"


@dataclass(frozen=True)
class BuildEvent:
    """One network build event; `successful` is set on COMPLETED events"""
    kind: BuildEventKind
    message: str = ""
    successful: Optional[bool] = None


class EnclaveState(Enum):
    """Observed state of the target enclave"""
    NOT_EXIST = "not_exist"
    EXISTS_EMPTY = "exists_empty"
    EXISTS_RUNNING_MATCH = "exists_running_match"
    EXISTS_RUNNING_MISMATCH = "exists_running_mismatch"


# Results

class ExecutionState(Enum):
    """Per-test execution state"""
    PENDING = "pending"
    INJECTING = "injecting"
    WAITING = "waiting"
    HEALTH_CHECKING = "health_checking"
    PASSED = "passed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ExecutionState.PASSED, ExecutionState.FAILED)


@dataclass
class PodHealthResult:
    """Health outcome of a single pod"""
    pod_name: str
    healthy: bool
    phase: str
    under_test: bool = False
    message: Optional[str] = None


@dataclass
class TestArtifact:
    """Outcome of one executed suite test"""
    __test__ = False

    test_name: str
    passed: bool
    health_results: List[PodHealthResult] = field(default_factory=list)
    pods_under_test: List[str] = field(default_factory=list)
    checks_enabled: bool = True
    start_time: Optional[float] = None
    end_time: Optional[float] = None
