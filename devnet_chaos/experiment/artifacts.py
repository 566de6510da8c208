"""
Artifacts - persistence and reporting of per-test outcomes
"""
import logging
import threading
import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional
from datetime import datetime
from ..models import TestArtifact, PodHealthResult
from ..interfaces import IArtifactSink

logging.basicConfig(format='%(levelname)-5s | %(filename)s:%(lineno)-3d | %(message)s', level=logging.INFO, force=True)
logger = logging.getLogger(__name__)

DEFAULT_ARTIFACT_DIR = "/tmp/devnet-chaos/artifacts"


def _timestamp(value: Optional[float]) -> Optional[str]:
    return datetime.fromtimestamp(value).isoformat() if value is not None else None


def health_result_to_dict(result: PodHealthResult) -> Dict[str, Any]:
    data = {
        'pod': result.pod_name,
        'healthy': result.healthy,
        'phase': result.phase,
        'under_test': result.under_test,
    }
    if result.message:
        data['message'] = result.message
    return data


def artifact_to_dict(artifact: TestArtifact) -> Dict[str, Any]:
    duration = None
    if artifact.start_time is not None and artifact.end_time is not None:
        duration = round(artifact.end_time - artifact.start_time, 3)
    return {
        'test_name': artifact.test_name,
        'passed': artifact.passed,
        'checks_enabled': artifact.checks_enabled,
        'start_timestamp': _timestamp(artifact.start_time),
        'end_timestamp': _timestamp(artifact.end_time),
        'duration': duration,
        'pods_under_test': list(artifact.pods_under_test),
        'health_results': [health_result_to_dict(r) for r in artifact.health_results],
    }


def generate_report(artifacts: List[TestArtifact]) -> str:
    """Human-readable summary of a run"""
    if not artifacts:
        return "No test artifacts to report"

    total_tests = len(artifacts)
    passed_tests = sum(1 for artifact in artifacts if artifact.passed)
    failed_tests = total_tests - passed_tests

    report_lines = [
        "=" * 80,
        "DEVNET CHAOS - EXPERIMENT REPORT",
        "=" * 80,
        "",
        f"Tests Executed:     {total_tests}",
        f"Passed:             {passed_tests} ({passed_tests/total_tests*100:.1f}%)",
        f"Failed:             {failed_tests} ({failed_tests/total_tests*100:.1f}%)",
        "",
        "=" * 80,
        "TEST DETAILS",
        "=" * 80,
        "",
    ]

    for artifact in artifacts:
        status = "PASS" if artifact.passed else "FAIL"
        report_lines.append(f"{status} | {artifact.test_name}")
        if not artifact.checks_enabled:
            report_lines.append("     Health checks disabled")
        else:
            healthy = sum(1 for r in artifact.health_results if r.healthy)
            report_lines.append(
                f"     Pods under test: {len(artifact.pods_under_test)} | "
                f"Healthy: {healthy}/{len(artifact.health_results)}"
            )
        for result in artifact.health_results:
            if not result.healthy:
                role = "under test" if result.under_test else "bystander"
                report_lines.append(f"     Unhealthy: {result.pod_name} ({role}, phase {result.phase})")
        report_lines.append("")

    report_lines.append("=" * 80)
    return "\n".join(report_lines)


class YamlArtifactSink(IArtifactSink):
    """Writes each run's artifacts to a YAML file plus a text report"""

    def __init__(self, output_dir: str = DEFAULT_ARTIFACT_DIR):
        self.output_dir = Path(output_dir)
        self.written: List[Path] = []
        self._lock = threading.Lock()

    def persist(self, artifacts: List[TestArtifact]) -> None:
        with self._lock:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now().strftime('%Y%m%d_%H%M%S')

            artifact_file = self.output_dir / f"artifacts_{stamp}.yaml"
            with open(artifact_file, 'w') as f:
                yaml.dump({'tests': [artifact_to_dict(a) for a in artifacts]}, f,
                          default_flow_style=False, sort_keys=False)

            report_file = self.output_dir / f"report_{stamp}.txt"
            report_file.write_text(generate_report(artifacts))

            self.written.extend([artifact_file, report_file])
            logger.info(f"Persisted {len(artifacts)} test artifacts to {artifact_file}")
