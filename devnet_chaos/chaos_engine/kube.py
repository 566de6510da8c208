"""
Kubernetes access - client loading and read-only pod inspection
"""
import logging
from typing import List, Optional
from kubernetes import client as k8s_client, config as k8s_config
from kubernetes.client.rest import ApiException
from kubernetes.config import ConfigException
from urllib3.exceptions import HTTPError as TransportError
from ..models import PodRef
from ..errors import PlatformUnavailable
from ..interfaces import IClusterInspector

logging.basicConfig(format='%(levelname)-5s | %(filename)s:%(lineno)-3d | %(message)s', level=logging.INFO, force=True)
logger = logging.getLogger(__name__)


def load_kube_config() -> None:
    """In-cluster service account first, then the local kubeconfig"""
    try:
        k8s_config.load_incluster_config()
        logger.debug("Loaded in-cluster Kubernetes config")
        return
    except ConfigException:
        pass

    try:
        k8s_config.load_kube_config()
        logger.debug("Loaded Kubernetes config from kubeconfig")
    except (ConfigException, OSError) as e:
        raise PlatformUnavailable(f"Could not load a Kubernetes configuration: {e}")


def pod_ref_from_api(pod) -> PodRef:
    metadata = pod.metadata
    status = pod.status
    return PodRef(
        name=metadata.name,
        labels=dict(metadata.labels or {}),
        phase=(status.phase if status is not None and status.phase else "Unknown"),
    )


class KubernetesClusterInspector(IClusterInspector):
    """Reads pods of one namespace through the Kubernetes core API"""

    def __init__(self, namespace: str, core_api=None):
        self.namespace = namespace
        if core_api is None:
            load_kube_config()
            core_api = k8s_client.CoreV1Api()
        self.core_api = core_api

    def list_pods_matching_label(self, key: str, value: str) -> List[PodRef]:
        selector = f"{key}={value}"
        try:
            pods = self.core_api.list_namespaced_pod(namespace=self.namespace, label_selector=selector).items
        except ApiException as e:
            raise PlatformUnavailable(f"Failed to list pods matching {selector} in {self.namespace}: {e.reason}")
        except TransportError as e:
            raise PlatformUnavailable(f"Kubernetes API unreachable: {e}")
        return [pod_ref_from_api(pod) for pod in pods]

    def get_pod(self, name: str) -> Optional[PodRef]:
        try:
            pod = self.core_api.read_namespaced_pod(name=name, namespace=self.namespace)
        except ApiException as e:
            if e.status == 404:
                return None
            raise PlatformUnavailable(f"Failed to read pod {name} in {self.namespace}: {e.reason}")
        except TransportError as e:
            raise PlatformUnavailable(f"Kubernetes API unreachable: {e}")
        return pod_ref_from_api(pod)
