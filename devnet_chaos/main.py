"""
Main entry point for devnet-chaos
"""
import logging
from typing import Callable, List, Optional
from .models import PlannerConfig, ExperimentConfig, TestArtifact
from .interfaces import IOrchestrationPlatform, IFaultInjector, IClusterInspector, IArtifactSink
from .network.clients import ClientDefaults
from .planner import PlanBuilder, Plan
from .enclave import EnclaveLifecycleManager, KurtosisCliPlatform, DEFAULT_SETTLE_DELAY
from .chaos_engine import ChaosMeshFaultInjector, KubernetesClusterInspector
from .experiment import ExperimentSequencer, YamlArtifactSink, CancellationToken
from .experiment.artifacts import DEFAULT_ARTIFACT_DIR
from .experiment.sequencer import DEFAULT_POLL_INTERVAL

logging.basicConfig(format='%(levelname)-5s | %(filename)s:%(lineno)-3d | %(message)s', level=logging.INFO, force=True)
logger = logging.getLogger(__name__)


class DevnetChaos:
    """Wires the planner, the enclave lifecycle manager and the experiment sequencer together"""

    def __init__(self, platform: Optional[IOrchestrationPlatform] = None,
                 injector_factory: Optional[Callable[[str], IFaultInjector]] = None,
                 inspector_factory: Optional[Callable[[str], IClusterInspector]] = None,
                 sink: Optional[IArtifactSink] = None,
                 defaults: Optional[ClientDefaults] = None,
                 cancellation: Optional[CancellationToken] = None,
                 settle_delay: float = DEFAULT_SETTLE_DELAY,
                 poll_interval: float = DEFAULT_POLL_INTERVAL,
                 artifact_dir: str = DEFAULT_ARTIFACT_DIR,
                 sleep: Optional[Callable[[float], None]] = None):
        """
        Every collaborator may be injected; the defaults talk to the kurtosis
        CLI, Chaos Mesh and the Kubernetes API. Kubernetes clients are only
        created when an experiment actually runs.
        """
        self.platform = platform or KurtosisCliPlatform()
        self.injector_factory = injector_factory or ChaosMeshFaultInjector
        self.inspector_factory = inspector_factory or KubernetesClusterInspector
        self.sink = sink or YamlArtifactSink(artifact_dir)
        self.defaults = defaults or ClientDefaults.standard()
        self.cancellation = cancellation or CancellationToken()
        self.settle_delay = settle_delay
        self.poll_interval = poll_interval
        self.sleep = sleep

    def plan(self, config: PlannerConfig) -> Plan:
        """Compose a topology and test suite from a planner config"""
        return PlanBuilder(config, self.defaults).build_plan()

    def prepare_enclave(self, experiment: ExperimentConfig, restart: bool = False) -> None:
        lifecycle = EnclaveLifecycleManager(
            self.platform,
            experiment.enclave_name,
            experiment.kurtosis_package_id,
            experiment.network_config,
            defaults=self.defaults,
            settle_delay=self.settle_delay,
            cancellation=self.cancellation,
            sleep=self.sleep,
        )
        lifecycle.prepare_enclave(restart=restart or experiment.chaos_config.start_new_devnet)

    def run_experiment(self, experiment: ExperimentConfig, restart: bool = False) -> List[TestArtifact]:
        """Prepare the enclave, then run the chaos suite against it"""
        logger.info(f"Starting experiment in enclave {experiment.enclave_name} "
                    f"({len(experiment.chaos_config.tests)} tests)")
        self.prepare_enclave(experiment, restart)

        sequencer = ExperimentSequencer(
            self.injector_factory(experiment.enclave_namespace),
            self.inspector_factory(experiment.enclave_namespace),
            self.sink,
            cancellation=self.cancellation,
            sleep=self.sleep,
            poll_interval=self.poll_interval,
        )
        return sequencer.run(experiment.chaos_config)
