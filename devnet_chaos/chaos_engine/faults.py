"""
Fault payloads - typed descriptions of injectable faults and their Chaos Mesh manifests

Each payload is built by the planner, carried by an InjectFault plan step and
only turned into a Chaos Mesh custom resource when it is submitted or written
to an experiment file.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional
from ..models import ChaosExpressionSelector, ChaosTargetSelector
from ..errors import ConfigurationInvalid
from ..utils.durations import format_duration, parse_duration

CHAOS_MESH_GROUP = "chaos-mesh.org"
CHAOS_MESH_VERSION = "v1alpha1"
CHAOS_MESH_API_VERSION = f"{CHAOS_MESH_GROUP}/{CHAOS_MESH_VERSION}"

# Chaos Mesh resource plurals used by the custom objects API
CHAOS_KIND_PLURALS = {
    "TimeChaos": "timechaos",
    "PodChaos": "podchaos",
    "IOChaos": "iochaos",
    "NetworkChaos": "networkchaos",
}

PACKET_LOSS_DIRECTIONS = ("to", "from", "both")


def selector_to_manifest(target: ChaosTargetSelector) -> Dict[str, Any]:
    expressions = []
    for expression in target.selectors:
        entry: Dict[str, Any] = {'key': expression.key, 'operator': expression.operator}
        if expression.values:
            entry['values'] = list(expression.values)
        expressions.append(entry)
    return {'expressionSelectors': expressions}


def selector_from_manifest(selector: Dict[str, Any], description: str) -> ChaosTargetSelector:
    if selector is not None and not isinstance(selector, dict):
        raise ConfigurationInvalid(f"Fault '{description}' selector must be a mapping")
    raw = (selector or {}).get('expressionSelectors') or []
    if not isinstance(raw, list) or not raw:
        raise ConfigurationInvalid(f"Fault '{description}' has no expressionSelectors")

    expressions = []
    for item in raw:
        if not isinstance(item, dict) or 'key' not in item or 'operator' not in item:
            raise ConfigurationInvalid(f"Fault '{description}' has a malformed expression selector: {item!r}")
        values = item.get('values') or ()
        if not isinstance(values, (list, tuple)):
            raise ConfigurationInvalid(f"Fault '{description}' selector values for {item['key']} must be a list")
        expressions.append(ChaosExpressionSelector(key=item['key'], operator=item['operator'], values=tuple(values)))
    return ChaosTargetSelector(description=description, selectors=tuple(expressions))


class FaultPayload(ABC):
    """Base class for fault payloads"""
    kind: str = ""
    expect_death: bool = False

    target: ChaosTargetSelector

    @abstractmethod
    def spec(self) -> Dict[str, Any]:
        """Chaos Mesh spec section for this fault"""
        pass

    @property
    def plural(self) -> str:
        return CHAOS_KIND_PLURALS[self.kind]

    def to_manifest(self, name: Optional[str] = None, namespace: Optional[str] = None) -> Dict[str, Any]:
        manifest: Dict[str, Any] = {
            'apiVersion': CHAOS_MESH_API_VERSION,
            'kind': self.kind,
        }
        metadata = {}
        if name:
            metadata['name'] = name
        if namespace:
            metadata['namespace'] = namespace
        if metadata:
            manifest['metadata'] = metadata

        spec = self.spec()
        spec['selector'] = selector_to_manifest(self.target)
        if namespace:
            spec['selector']['namespaces'] = [namespace]
        manifest['spec'] = spec
        return manifest


@dataclass(frozen=True)
class ClockSkewFault(FaultPayload):
    """Shift the wall clock of matching pods (TimeChaos)"""
    target: ChaosTargetSelector
    time_offset: float
    duration: float
    kind = "TimeChaos"

    def spec(self) -> Dict[str, Any]:
        return {
            'mode': 'all',
            'timeOffset': format_duration(self.time_offset),
            'duration': format_duration(self.duration),
        }


@dataclass(frozen=True)
class PodRestartFault(FaultPayload):
    """Kill matching pods so the platform restarts them (PodChaos)"""
    target: ChaosTargetSelector
    kind = "PodChaos"
    expect_death = True

    def spec(self) -> Dict[str, Any]:
        return {'action': 'pod-kill', 'mode': 'all'}


@dataclass(frozen=True)
class IOLatencyFault(FaultPayload):
    """Delay filesystem operations on one pod's data volume (IOChaos)"""
    target: ChaosTargetSelector
    volume_path: str
    delay: float
    percent: int
    duration: float
    kind = "IOChaos"

    def spec(self) -> Dict[str, Any]:
        return {
            'action': 'latency',
            'mode': 'all',
            'volumePath': self.volume_path,
            'path': f"{self.volume_path}/**/*",
            'delay': format_duration(self.delay),
            'percent': self.percent,
            'duration': format_duration(self.duration),
        }


@dataclass(frozen=True)
class NetworkLatencyFault(FaultPayload):
    """Add latency to matching pods' network traffic (NetworkChaos delay)"""
    target: ChaosTargetSelector
    delay: float
    jitter: float
    correlation: int
    duration: float
    kind = "NetworkChaos"

    def spec(self) -> Dict[str, Any]:
        return {
            'action': 'delay',
            'mode': 'all',
            'delay': {
                'latency': format_duration(self.delay),
                'jitter': format_duration(self.jitter),
                'correlation': str(self.correlation),
            },
            'duration': format_duration(self.duration),
        }


@dataclass(frozen=True)
class PacketLossFault(FaultPayload):
    """Drop a share of matching pods' packets (NetworkChaos loss)"""
    target: ChaosTargetSelector
    percent: int
    direction: str
    duration: float
    kind = "NetworkChaos"

    def spec(self) -> Dict[str, Any]:
        return {
            'action': 'loss',
            'mode': 'all',
            'loss': {'loss': str(self.percent), 'correlation': '0'},
            'direction': self.direction,
            'duration': format_duration(self.duration),
        }


def _require(spec: Dict[str, Any], key: str, kind: str) -> Any:
    if not isinstance(spec, dict):
        raise ConfigurationInvalid(f"{kind} spec section holding '{key}' must be a mapping, got {spec!r}")
    if key not in spec:
        raise ConfigurationInvalid(f"{kind} spec is missing '{key}'")
    return spec[key]


def _int(value: Any, key: str, kind: str) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationInvalid(f"{kind} field '{key}' must be an integer, got {value!r}")


def fault_from_manifest(manifest: Dict[str, Any], description: str) -> FaultPayload:
    """Rebuild a typed payload from a Chaos Mesh manifest"""
    if not isinstance(manifest, dict):
        raise ConfigurationInvalid(f"Fault spec for '{description}' must be a mapping")

    kind = manifest.get('kind')
    spec = manifest.get('spec') or {}
    if not isinstance(spec, dict):
        raise ConfigurationInvalid(f"Fault spec for '{description}' must contain a 'spec' mapping")
    target = selector_from_manifest(spec.get('selector'), description)

    if kind == "TimeChaos":
        return ClockSkewFault(
            target=target,
            time_offset=parse_duration(_require(spec, 'timeOffset', kind)),
            duration=parse_duration(_require(spec, 'duration', kind)),
        )

    if kind == "PodChaos":
        action = spec.get('action', 'pod-kill')
        if action != 'pod-kill':
            raise ConfigurationInvalid(f"PodChaos action '{action}' is not supported")
        return PodRestartFault(target=target)

    if kind == "IOChaos":
        return IOLatencyFault(
            target=target,
            volume_path=_require(spec, 'volumePath', kind),
            delay=parse_duration(_require(spec, 'delay', kind)),
            percent=_int(spec.get('percent', 100), 'percent', kind),
            duration=parse_duration(_require(spec, 'duration', kind)),
        )

    if kind == "NetworkChaos":
        action = spec.get('action')
        if action == 'delay':
            delay = _require(spec, 'delay', kind)
            return NetworkLatencyFault(
                target=target,
                delay=parse_duration(_require(delay, 'latency', kind)),
                jitter=parse_duration(delay.get('jitter', 0)),
                correlation=_int(delay.get('correlation', 0), 'correlation', kind),
                duration=parse_duration(_require(spec, 'duration', kind)),
            )
        if action == 'loss':
            loss = _require(spec, 'loss', kind)
            return PacketLossFault(
                target=target,
                percent=_int(_require(loss, 'loss', kind), 'loss', kind),
                direction=spec.get('direction', 'to'),
                duration=parse_duration(_require(spec, 'duration', kind)),
            )
        raise ConfigurationInvalid(f"NetworkChaos action '{action}' is not supported")

    raise ConfigurationInvalid(f"Unsupported fault kind '{kind}' in step '{description}'")

