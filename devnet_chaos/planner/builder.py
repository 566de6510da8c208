"""
Plan Builder - turns a planner config into a runnable experiment
"""
import logging
from dataclasses import dataclass
from typing import List, Optional
from ..models import (
    PlannerConfig, ExperimentConfig, ChaosConfig, NetworkConfig, Node, SuiteTest
)
from ..network.clients import ClientDefaults
from ..network.participants import DEFAULT_ADDITIONAL_SERVICES
from ..network.topology import Topology
from .config import validate_planner_config
from .topology_builder import TopologyBuilder
from .suite_builder import compose_test_suite

logging.basicConfig(format='%(levelname)-5s | %(filename)s:%(lineno)-3d | %(message)s', level=logging.INFO, force=True)
logger = logging.getLogger(__name__)


@dataclass
class Plan:
    """Generated topology, the nodes faults may target, and the compiled suite"""
    topology: Topology
    nodes_under_test: List[Node]
    tests: List[SuiteTest]
    experiment: ExperimentConfig


class PlanBuilder:
    """Validates a planner config, composes its topology and compiles its test suite"""

    def __init__(self, config: PlannerConfig, defaults: Optional[ClientDefaults] = None):
        self.config = config
        self.defaults = defaults or ClientDefaults.standard()

    def build_plan(self) -> Plan:
        validate_planner_config(self.config)

        topology = TopologyBuilder(self.config, self.defaults).compose()

        # the bootnode never receives faults
        nodes = list(topology.nodes)
        nodes_under_test = nodes[1:] if self.config.bootnode is not None else nodes

        tests = compose_test_suite(self.config.fault_config, nodes_under_test, len(topology))

        network_config = NetworkConfig(
            participants=topology.to_participants(),
            network_params=dict(self.config.network_params),
            additional_services=list(DEFAULT_ADDITIONAL_SERVICES),
            parallel_keystore_generation=False,
            persistent=False,
            disable_peer_scoring=True,
        )
        chaos_config = ChaosConfig(
            tests=tests,
            start_new_devnet=False,
            wait_before_first_test=self.config.fault_config.wait_before_first_test,
        )
        experiment = ExperimentConfig(
            enclave_name=self.config.enclave_name,
            enclave_namespace=self.config.kubernetes_namespace,
            kurtosis_package_id=self.config.kurtosis_package,
            network_config=network_config,
            chaos_config=chaos_config,
        )

        logger.info(f"Plan ready: {len(topology)} nodes, {len(tests)} tests")
        return Plan(topology=topology, nodes_under_test=nodes_under_test, tests=tests, experiment=experiment)
