"""
Chaos Engine - fault payloads and the Kubernetes / Chaos Mesh adapters that apply them

Components:
- FaultPayload and its subclasses: typed faults with Chaos Mesh manifests
- ChaosMeshFaultInjector: submits faults and reports their progress
- KubernetesClusterInspector: read-only pod lookups for health checks
"""
from .faults import (
    FaultPayload,
    ClockSkewFault,
    PodRestartFault,
    IOLatencyFault,
    NetworkLatencyFault,
    PacketLossFault,
    fault_from_manifest,
)
from .chaos_mesh import ChaosMeshFaultInjector
from .kube import KubernetesClusterInspector

__all__ = [
    'FaultPayload',
    'ClockSkewFault',
    'PodRestartFault',
    'IOLatencyFault',
    'NetworkLatencyFault',
    'PacketLossFault',
    'fault_from_manifest',
    'ChaosMeshFaultInjector',
    'KubernetesClusterInspector',
]
