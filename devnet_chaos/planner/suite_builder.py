"""
Suite Builder - compiles a fault configuration into an ordered list of suite tests
"""
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence
from ..models import (
    ClientRole, Node, FaultConfig, PlanStep, StepType, SuiteTest,
    HealthCheckConfig, ChaosTargetSelector, ChaosExpressionSelector, DurationPayload
)
from ..errors import ConfigurationInvalid, UnsupportedSelector, UnrecognizedServiceName
from ..network.clients import ID_LABEL
from ..network.service_names import ServiceName
from ..chaos_engine.faults import (
    ClockSkewFault, PodRestartFault, IOLatencyFault, NetworkLatencyFault,
    PacketLossFault, PACKET_LOSS_DIRECTIONS
)
from ..utils.durations import parse_duration
from .target_selector import resolve_attack_targets

logging.basicConfig(format='%(levelname)-5s | %(filename)s:%(lineno)-3d | %(message)s', level=logging.INFO, force=True)
logger = logging.getLogger(__name__)


CLOCK_SKEW = "ClockSkew"
RESTART_CONTAINERS = "RestartContainers"
IO_LATENCY = "IOLatency"
NETWORK_LATENCY = "NetworkLatency"
PACKET_LOSS = "PacketLoss"

WAIT_FOR_FAULTS_DESCRIPTION = "wait for faults to terminate"


@dataclass(frozen=True)
class FaultParameter:
    """One parameter a fault type accepts"""
    name: str
    kind: str  # "duration", "percent", "int" or "direction"
    required: bool = True
    default: Any = None


FAULT_PARAMETERS: Dict[str, List[FaultParameter]] = {
    CLOCK_SKEW: [
        FaultParameter('skew', 'duration'),
        FaultParameter('duration', 'duration'),
        FaultParameter('grace_period', 'duration', required=False, default=0.0),
    ],
    RESTART_CONTAINERS: [
        FaultParameter('grace_period', 'duration', required=False, default=0.0),
    ],
    IO_LATENCY: [
        FaultParameter('delay', 'duration'),
        FaultParameter('percent', 'percent', required=False, default=100),
        FaultParameter('duration', 'duration'),
        FaultParameter('grace_period', 'duration', required=False, default=0.0),
    ],
    NETWORK_LATENCY: [
        FaultParameter('delay', 'duration'),
        FaultParameter('jitter', 'duration', required=False, default=0.0),
        FaultParameter('correlation', 'percent', required=False, default=0),
        FaultParameter('duration', 'duration'),
        FaultParameter('grace_period', 'duration', required=False, default=0.0),
    ],
    PACKET_LOSS: [
        FaultParameter('percent', 'percent'),
        FaultParameter('direction', 'direction', required=False, default='to'),
        FaultParameter('duration', 'duration'),
        FaultParameter('grace_period', 'duration', required=False, default=0.0),
    ],
}

FAULT_TYPES = tuple(FAULT_PARAMETERS)

# Data volume mounted by each client role, relative to /data/<clientType>
_ROLE_DATA_DIRS = {
    ClientRole.EXECUTION: "execution-data",
    ClientRole.CONSENSUS: "beacon-data",
    ClientRole.VALIDATOR: "validator-data",
}


def _coerce_parameter(fault_type: str, spec: FaultParameter, value: Any) -> Any:
    location = f"{fault_type}.{spec.name}"
    if spec.kind == 'duration':
        try:
            seconds = parse_duration(value)
        except ValueError as e:
            raise ConfigurationInvalid(f"{location}: {e}")
        # Only clock skew may be negative
        if seconds < 0 and spec.name != 'skew':
            raise ConfigurationInvalid(f"{location}: must not be negative, got {value}")
        if spec.name == 'duration' and seconds <= 0:
            raise ConfigurationInvalid(f"{location}: must be positive, got {value}")
        return seconds
    if spec.kind in ('percent', 'int'):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigurationInvalid(f"{location}: must be an integer, got {value!r}")
        if spec.kind == 'percent' and not (0 <= value <= 100):
            raise ConfigurationInvalid(f"{location}: must be between 0 and 100, got {value}")
        return value
    if spec.kind == 'direction':
        if value not in PACKET_LOSS_DIRECTIONS:
            raise ConfigurationInvalid(f"{location}: must be one of {list(PACKET_LOSS_DIRECTIONS)}, got {value!r}")
        return value
    raise ConfigurationInvalid(f"{location}: unknown parameter kind {spec.kind}")


def parse_fault_parameters(fault_type: str, params: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Validate and normalize one fault parameter set (durations become seconds)"""
    if fault_type not in FAULT_PARAMETERS:
        raise ConfigurationInvalid(f"The fault type '{fault_type}' is not supported. Supported faults: {list(FAULT_TYPES)}")
    params = params or {}
    if not isinstance(params, dict):
        raise ConfigurationInvalid(f"{fault_type}: fault parameters must be a mapping")

    specs = FAULT_PARAMETERS[fault_type]
    known = {spec.name for spec in specs}
    unknown = sorted(set(params) - known)
    if unknown:
        raise ConfigurationInvalid(f"{fault_type}: unsupported parameters {unknown}, expected {sorted(known)}")

    parsed = {}
    for spec in specs:
        if spec.name in params:
            parsed[spec.name] = _coerce_parameter(fault_type, spec, params[spec.name])
        elif spec.required:
            raise ConfigurationInvalid(f"{fault_type}: missing required parameter '{spec.name}'")
        else:
            parsed[spec.name] = spec.default
    return parsed


def wait_for_fault_completion_step() -> PlanStep:
    return PlanStep(step_type=StepType.WAIT_FOR_FAULT_COMPLETION, description=WAIT_FOR_FAULTS_DESCRIPTION)


def wait_for_duration_step(seconds: float, description: Optional[str] = None) -> PlanStep:
    return PlanStep(
        step_type=StepType.WAIT_FOR_DURATION,
        description=description or f"wait {seconds:g} seconds",
        payload=DurationPayload(duration=seconds),
    )


def _inject_step(description: str, payload) -> PlanStep:
    return PlanStep(step_type=StepType.INJECT_FAULT, description=description, payload=payload)


def require_id_in_selectors(target: ChaosTargetSelector) -> None:
    """I/O faults need to know each pod's data path, so only `id In [...]` selectors are accepted"""
    for expression in target.selectors:
        if expression.key != ID_LABEL:
            raise UnsupportedSelector(f"i/o latency faults can only be targeted using pod id: {expression.key}")
        if expression.operator != "In":
            raise UnsupportedSelector(f"i/o latency faults can only be targeted using the 'In' operator: {expression.operator}")


def data_volume_path(pod_id: str) -> str:
    try:
        service = ServiceName.parse(pod_id)
    except UnrecognizedServiceName as e:
        raise UnsupportedSelector(f"cannot derive a data volume for pod '{pod_id}': {e}")
    return f"/data/{service.client_type}/{_ROLE_DATA_DIRS[service.role]}"


def compose_fault_steps(fault_type: str, targets: Sequence[ChaosTargetSelector],
                        params: Dict[str, Any]) -> List[PlanStep]:
    """InjectFault steps for every target; I/O faults get one step per pod"""
    steps: List[PlanStep] = []
    for target in targets:
        if fault_type == CLOCK_SKEW:
            steps.append(_inject_step(
                f"Inject clock skew on target {target.description}",
                ClockSkewFault(target=target, time_offset=params['skew'], duration=params['duration']),
            ))
        elif fault_type == RESTART_CONTAINERS:
            steps.append(_inject_step(
                f"Restart target {target.description}",
                PodRestartFault(target=target),
            ))
        elif fault_type == IO_LATENCY:
            require_id_in_selectors(target)
            description = f"Inject i/o latency on target {target.description}"
            for expression in target.selectors:
                for pod_id in expression.values:
                    pod_target = ChaosTargetSelector(
                        description=pod_id,
                        selectors=(ChaosExpressionSelector(ID_LABEL, "In", (pod_id,)),),
                    )
                    steps.append(_inject_step(description, IOLatencyFault(
                        target=pod_target,
                        volume_path=data_volume_path(pod_id),
                        delay=params['delay'],
                        percent=params['percent'],
                        duration=params['duration'],
                    )))
        elif fault_type == NETWORK_LATENCY:
            steps.append(_inject_step(
                f"Inject network latency on target {target.description}",
                NetworkLatencyFault(
                    target=target,
                    delay=params['delay'],
                    jitter=params['jitter'],
                    correlation=params['correlation'],
                    duration=params['duration'],
                ),
            ))
        elif fault_type == PACKET_LOSS:
            steps.append(_inject_step(
                f"Inject packet loss on target {target.description}",
                PacketLossFault(
                    target=target,
                    percent=params['percent'],
                    direction=params['direction'],
                    duration=params['duration'],
                ),
            ))
        else:
            raise ConfigurationInvalid(f"The fault type '{fault_type}' is not supported. Supported faults: {list(FAULT_TYPES)}")
    return steps


def compose_fault_test(fault_type: str, name: str, targets: Sequence[ChaosTargetSelector],
                       params: Dict[str, Any]) -> SuiteTest:
    """One health-checked test: inject on every target, then wait for the faults to finish"""
    steps = compose_fault_steps(fault_type, targets, params)
    steps.append(wait_for_fault_completion_step())
    return SuiteTest(
        name=name,
        plan_steps=steps,
        health=HealthCheckConfig(enable_checks=True, grace_period=params.get('grace_period') or 0.0),
    )


def _describe_parameters(raw_params: Dict[str, Any]) -> str:
    return " ".join(f"{key}={value}" for key, value in raw_params.items() if key != 'grace_period')


def compose_test_suite(fault_config: FaultConfig, nodes_under_test: Sequence[Node],
                       network_size: int) -> List[SuiteTest]:
    """
    Build one test per (parameter set x targeting dimension x attack size).

    `nodes_under_test` must already exclude the bootnode; `network_size` is the
    total node count and only affects pod id formatting.
    """
    if not nodes_under_test:
        raise ConfigurationInvalid("No nodes available for fault targeting")

    parameter_sets = fault_config.config_dimensions or [{}]
    tests: List[SuiteTest] = []
    for raw_params in parameter_sets:
        params = parse_fault_parameters(fault_config.fault_type, raw_params)
        for targeting in fault_config.targeting_dimensions:
            for attack_size in fault_config.attack_size_dimensions:
                targets = resolve_attack_targets(
                    nodes_under_test, fault_config.target_client, targeting, attack_size, network_size
                )
                name = f"{fault_config.fault_type} {targeting} {attack_size} {fault_config.target_client}"
                described = _describe_parameters(raw_params or {})
                if described:
                    name = f"{name} ({described})"
                tests.append(compose_fault_test(fault_config.fault_type, name, targets, params))

    logger.info(f"Composed {len(tests)} tests for fault {fault_config.fault_type} against {fault_config.target_client}")
    return tests
