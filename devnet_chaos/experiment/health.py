"""
Health Checker - resolves pods under test and checks them and their bystanders after a fault
"""
import logging
from typing import Dict, List, Optional, Sequence
from ..models import ChaosTargetSelector, PodHealthResult, PodRef
from ..errors import UnsupportedSelector
from ..interfaces import IClusterInspector
from ..network.clients import ID_LABEL, SERVICE_TYPE_LABEL, CLIENT_TYPE_LABEL
from ..chaos_engine.faults import FaultPayload
from ..planner.target_selector import custom_label

logging.basicConfig(format='%(levelname)-5s | %(filename)s:%(lineno)-3d | %(message)s', level=logging.INFO, force=True)
logger = logging.getLogger(__name__)

HEALTHY_PHASE = "Running"
BYSTANDER_LABELS = (custom_label(SERVICE_TYPE_LABEL), custom_label(CLIENT_TYPE_LABEL))


class HealthChecker:
    """Pod-phase health checks driven through cluster inspection"""

    def __init__(self, inspector: IClusterInspector):
        self.inspector = inspector

    @staticmethod
    def require_resolvable(target: ChaosTargetSelector) -> None:
        """Only In expressions can be turned into pod lookups"""
        for expression in target.selectors:
            if expression.operator != "In":
                raise UnsupportedSelector(
                    f"Cannot resolve pods for '{target.description}': operator {expression.operator} on {expression.key}"
                )

    def resolve_target(self, target: ChaosTargetSelector) -> List[PodRef]:
        """
        Pods currently matched by a target.

        Id selectors fetch each named pod directly. Label selectors list the pods
        for each accepted value and the expressions are intersected.
        """
        self.require_resolvable(target)
        matched: Optional[Dict[str, PodRef]] = None
        for expression in target.selectors:
            found: Dict[str, PodRef] = {}
            if expression.key == ID_LABEL:
                for name in expression.values:
                    pod = self.inspector.get_pod(name)
                    if pod is None:
                        logger.warning(f"Pod {name} targeted by '{target.description}' does not exist")
                        continue
                    found[pod.name] = pod
            else:
                for value in expression.values:
                    for pod in self.inspector.list_pods_matching_label(expression.key, value):
                        found[pod.name] = pod

            if matched is None:
                matched = found
            else:
                matched = {name: pod for name, pod in matched.items() if name in found}

        return list((matched or {}).values())

    def resolve_pods_under_test(self, payloads: Sequence[FaultPayload]) -> List[PodRef]:
        """Pods targeted by any of the payloads; a pod expected to die by one payload stays expected to die"""
        pods: Dict[str, PodRef] = {}
        for payload in payloads:
            for pod in self.resolve_target(payload.target):
                expect_death = payload.expect_death or (pod.name in pods and pods[pod.name].expect_death)
                pods[pod.name] = PodRef(pod.name, dict(pod.labels), pod.phase, expect_death)
        return list(pods.values())

    def _bystanders(self, pods_under_test: Sequence[PodRef]) -> List[PodRef]:
        under_test = {pod.name for pod in pods_under_test}
        bystanders: Dict[str, PodRef] = {}
        dimensions = {
            (key, pod.labels[key])
            for pod in pods_under_test
            for key in BYSTANDER_LABELS
            if key in pod.labels
        }
        for key, value in sorted(dimensions):
            for pod in self.inspector.list_pods_matching_label(key, value):
                if pod.name not in under_test:
                    bystanders[pod.name] = pod
        return list(bystanders.values())

    def check(self, pods_under_test: Sequence[PodRef]) -> List[PodHealthResult]:
        """Check surviving pods under test plus bystanders sharing their role or client type"""
        results: List[PodHealthResult] = []

        for pod in pods_under_test:
            if pod.expect_death:
                logger.debug(f"Skipping {pod.name}, the fault is expected to kill it")
                continue
            current = self.inspector.get_pod(pod.name)
            if current is None:
                results.append(PodHealthResult(pod.name, False, "Missing", under_test=True, message="pod not found"))
                continue
            results.append(self._result(current, under_test=True))

        for pod in self._bystanders(pods_under_test):
            results.append(self._result(pod, under_test=False))

        unhealthy = [r.pod_name for r in results if not r.healthy]
        if unhealthy:
            logger.warning(f"{len(unhealthy)}/{len(results)} pods unhealthy: {', '.join(unhealthy)}")
        else:
            logger.info(f"All {len(results)} checked pods are healthy")
        return results

    @staticmethod
    def _result(pod: PodRef, under_test: bool) -> PodHealthResult:
        healthy = pod.phase == HEALTHY_PHASE
        message = None if healthy else f"pod phase is {pod.phase}"
        return PodHealthResult(pod.name, healthy, pod.phase, under_test=under_test, message=message)
