"""
Experiment Sequencer - runs a chaos suite test by test with health-gated fail-fast semantics
"""
import time
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional
from ..models import (
    ChaosConfig, SuiteTest, PlanStep, StepType, ExecutionState, FaultHandle, FaultStatus,
    PodRef, PodHealthResult, TestArtifact
)
from ..errors import FaultExecutionError
from ..interfaces import IArtifactSink, IClusterInspector, IFaultInjector
from ..chaos_engine.faults import IOLatencyFault
from ..planner.suite_builder import require_id_in_selectors
from .cancellation import CancellationToken, cancellable_sleep
from .error_handler import ErrorHandler, ErrorContext, ErrorCategory, ErrorSeverity, get_error_handler
from .health import HealthChecker

logging.basicConfig(format='%(levelname)-5s | %(filename)s:%(lineno)-3d | %(message)s', level=logging.INFO, force=True)
logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 10.0


@dataclass
class TestExecution:
    """Mutable execution record of one suite test"""
    __test__ = False

    test: SuiteTest
    state: ExecutionState = ExecutionState.PENDING
    handles: List[FaultHandle] = field(default_factory=list)
    pods_under_test: List[PodRef] = field(default_factory=list)
    health_results: List[PodHealthResult] = field(default_factory=list)
    start_time: Optional[float] = None
    end_time: Optional[float] = None

    def transition(self, state: ExecutionState) -> None:
        if self.state.is_terminal:
            raise RuntimeError(f"Test '{self.test.name}' already finished as {self.state.value}")
        if state != self.state:
            logger.debug(f"{self.test.name}: {self.state.value} -> {state.value}")
        self.state = state

    def to_artifact(self) -> TestArtifact:
        return TestArtifact(
            test_name=self.test.name,
            passed=self.state == ExecutionState.PASSED,
            health_results=list(self.health_results),
            pods_under_test=[pod.name for pod in self.pods_under_test],
            checks_enabled=self.test.health.enable_checks,
            start_time=self.start_time,
            end_time=self.end_time,
        )


class ExperimentSequencer:
    """
    Drives suite tests strictly in order.

    Each test moves PENDING -> INJECTING -> WAITING -> HEALTH_CHECKING and ends
    PASSED or FAILED. The first FAILED test stops the suite. Errors raised by
    the injection backend abort the suite without rolling anything back.
    Artifacts of finished tests are persisted however the run ends.
    """

    def __init__(self, injector: IFaultInjector, inspector: IClusterInspector, sink: IArtifactSink,
                 cancellation: Optional[CancellationToken] = None,
                 sleep: Optional[Callable[[float], None]] = None,
                 clock: Callable[[], float] = time.time,
                 poll_interval: float = DEFAULT_POLL_INTERVAL,
                 error_handler: Optional[ErrorHandler] = None):
        self.injector = injector
        self.health_checker = HealthChecker(inspector)
        self.sink = sink
        self.cancellation = cancellation or CancellationToken()
        self._sleep = cancellable_sleep(self.cancellation, sleep)
        self._clock = clock
        self.poll_interval = poll_interval
        self.error_handler = error_handler or get_error_handler()
        self.executions: List[TestExecution] = []

    def run(self, chaos_config: ChaosConfig) -> List[TestArtifact]:
        """Run the suite and return the artifact of every test that finished"""
        self.executions = []
        artifacts: List[TestArtifact] = []
        self._check_selectors(chaos_config.tests)

        try:
            if chaos_config.wait_before_first_test > 0:
                logger.info(f"Waiting {chaos_config.wait_before_first_test:g}s before the first test")
                self._sleep(chaos_config.wait_before_first_test)

            for position, test in enumerate(chaos_config.tests, 1):
                logger.info(f"Running test {position}/{len(chaos_config.tests)}: {test.name}")
                execution = TestExecution(test)
                self.executions.append(execution)
                self._run_test(execution)
                artifacts.append(execution.to_artifact())

                if execution.state == ExecutionState.FAILED:
                    self._record_health_failure(execution)
                    logger.error("Some health checks failed. Stopping test suite.")
                    break
                logger.info(f"Test {test.name} passed")
        except Exception as e:
            current = self.executions[-1].test.name if self.executions else None
            self.error_handler.record_exception(e, component="sequencer", test_name=current)
            raise
        finally:
            self.sink.persist(artifacts)

        return artifacts

    def _record_health_failure(self, execution: TestExecution) -> None:
        unhealthy = [r.pod_name for r in execution.health_results if not r.healthy]
        self.error_handler.handle_error(ErrorContext(
            category=ErrorCategory.HEALTH_CHECK,
            severity=ErrorSeverity.MEDIUM,
            message=f"Unhealthy pods: {', '.join(unhealthy)}",
            component="sequencer",
            test_name=execution.test.name,
        ))

    @staticmethod
    def _check_selectors(tests: List[SuiteTest]) -> None:
        for test in tests:
            for step in test.plan_steps:
                if step.step_type != StepType.INJECT_FAULT:
                    continue
                if isinstance(step.payload, IOLatencyFault):
                    require_id_in_selectors(step.payload.target)
                if test.health.enable_checks:
                    HealthChecker.require_resolvable(step.payload.target)

    def _run_test(self, execution: TestExecution) -> None:
        execution.start_time = self._clock()
        for step in execution.test.plan_steps:
            self.cancellation.raise_if_cancelled(f"running '{execution.test.name}'")
            if step.step_type == StepType.INJECT_FAULT:
                execution.transition(ExecutionState.INJECTING)
                self._inject(execution, step)
            elif step.step_type == StepType.WAIT_FOR_FAULT_COMPLETION:
                execution.transition(ExecutionState.WAITING)
                self._wait_for_faults(execution.handles)
            elif step.step_type == StepType.WAIT_FOR_DURATION:
                execution.transition(ExecutionState.WAITING)
                logger.info(f"{step.description}")
                self._sleep(step.payload.duration)

        health = execution.test.health
        if health.enable_checks:
            execution.transition(ExecutionState.HEALTH_CHECKING)
            if health.grace_period > 0:
                logger.info(f"Waiting {health.grace_period:g}s grace period before health checks")
                self._sleep(health.grace_period)
            execution.health_results = self.health_checker.check(execution.pods_under_test)
            healthy = all(result.healthy for result in execution.health_results)
        else:
            logger.info(f"Health checks disabled for {execution.test.name}")
            healthy = True

        execution.end_time = self._clock()
        execution.transition(ExecutionState.PASSED if healthy else ExecutionState.FAILED)

    def _inject(self, execution: TestExecution, step: PlanStep) -> None:
        payload = step.payload
        if execution.test.health.enable_checks:
            self._track_pods_under_test(execution, payload)

        logger.info(f"{step.description}")
        execution.handles.append(self.injector.submit_fault(payload))

    def _track_pods_under_test(self, execution: TestExecution, payload) -> None:
        pods = self.health_checker.resolve_pods_under_test([payload])
        known = {pod.name: i for i, pod in enumerate(execution.pods_under_test)}
        for pod in pods:
            if pod.name in known:
                previous = execution.pods_under_test[known[pod.name]]
                pod.expect_death = pod.expect_death or previous.expect_death
                execution.pods_under_test[known[pod.name]] = pod
            else:
                execution.pods_under_test.append(pod)

    def _wait_for_faults(self, handles: List[FaultHandle]) -> None:
        pending = list(handles)
        logger.info(f"Waiting for {len(pending)} faults to terminate")
        while pending:
            still_running = []
            for handle in pending:
                status = self.injector.query_fault_status(handle)
                if status == FaultStatus.ERROR:
                    raise FaultExecutionError(f"Fault {handle.kind} {handle.name} reported an error")
                if status == FaultStatus.PENDING:
                    still_running.append(handle)
            pending = still_running
            if pending:
                logger.debug(f"{len(pending)} faults still running")
                self._sleep(self.poll_interval)
        logger.info("All faults terminated")
