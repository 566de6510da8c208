"""
Chaos Mesh injector - submits fault payloads as Chaos Mesh custom resources and tracks them
"""
import uuid
import logging
from typing import Any, Dict
from kubernetes import client as k8s_client
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError as TransportError
from ..models import FaultHandle, FaultStatus
from ..errors import FaultInjectionError, PlatformUnavailable
from ..interfaces import IFaultInjector
from .faults import FaultPayload, CHAOS_MESH_GROUP, CHAOS_MESH_VERSION, CHAOS_KIND_PLURALS
from .kube import load_kube_config

logging.basicConfig(format='%(levelname)-5s | %(filename)s:%(lineno)-3d | %(message)s', level=logging.INFO, force=True)
logger = logging.getLogger(__name__)


def _conditions(status: Dict[str, Any]) -> Dict[str, bool]:
    return {
        condition.get('type'): condition.get('status') == 'True'
        for condition in status.get('conditions') or []
    }


def _has_failed_records(status: Dict[str, Any]) -> bool:
    records = (status.get('experiment') or {}).get('containerRecords') or []
    for record in records:
        for event in record.get('events') or []:
            if event.get('type') == 'Failed':
                return True
    return False


def fault_status_from_resource(kind: str, resource: Dict[str, Any]) -> FaultStatus:
    """Interpret the status block of a Chaos Mesh resource"""
    status = resource.get('status') or {}
    conditions = _conditions(status)
    desired_phase = (status.get('experiment') or {}).get('desiredPhase')

    if _has_failed_records(status):
        return FaultStatus.ERROR
    if conditions.get('AllRecovered') and desired_phase == 'Stop':
        return FaultStatus.COMPLETE
    # pod-kill is one-shot: once every pod was killed there is nothing to recover
    if kind == 'PodChaos' and conditions.get('AllInjected'):
        return FaultStatus.COMPLETE
    if desired_phase == 'Stop' and conditions.get('Selected') is False:
        return FaultStatus.ERROR
    return FaultStatus.PENDING


class ChaosMeshFaultInjector(IFaultInjector):
    """Creates chaos-mesh.org/v1alpha1 resources in the enclave namespace"""

    def __init__(self, namespace: str, custom_api=None, name_prefix: str = "devnet-chaos"):
        self.namespace = namespace
        self.name_prefix = name_prefix
        if custom_api is None:
            load_kube_config()
            custom_api = k8s_client.CustomObjectsApi()
        self.custom_api = custom_api

    def _resource_name(self, payload: FaultPayload) -> str:
        return f"{self.name_prefix}-{payload.kind.lower()}-{uuid.uuid4().hex[:8]}"

    def submit_fault(self, payload: FaultPayload) -> FaultHandle:
        name = self._resource_name(payload)
        manifest = payload.to_manifest(name=name, namespace=self.namespace)
        try:
            self.custom_api.create_namespaced_custom_object(
                group=CHAOS_MESH_GROUP,
                version=CHAOS_MESH_VERSION,
                namespace=self.namespace,
                plural=payload.plural,
                body=manifest,
            )
        except ApiException as e:
            raise FaultInjectionError(f"Chaos Mesh rejected {payload.kind} {name}: {e.status} {e.reason}")
        except TransportError as e:
            raise PlatformUnavailable(f"Kubernetes API unreachable while submitting {name}: {e}")

        logger.info(f"Submitted {payload.kind} {name} in {self.namespace}")
        return FaultHandle(name=name, kind=payload.kind, namespace=self.namespace)

    def query_fault_status(self, handle: FaultHandle) -> FaultStatus:
        try:
            resource = self.custom_api.get_namespaced_custom_object(
                group=CHAOS_MESH_GROUP,
                version=CHAOS_MESH_VERSION,
                namespace=handle.namespace or self.namespace,
                plural=CHAOS_KIND_PLURALS[handle.kind],
                name=handle.name,
            )
        except ApiException as e:
            if e.status == 404:
                logger.error(f"{handle.kind} {handle.name} no longer exists")
                return FaultStatus.ERROR
            raise PlatformUnavailable(f"Failed to read {handle.kind} {handle.name}: {e.status} {e.reason}")
        except TransportError as e:
            raise PlatformUnavailable(f"Kubernetes API unreachable while reading {handle.name}: {e}")

        return fault_status_from_resource(handle.kind, resource)
