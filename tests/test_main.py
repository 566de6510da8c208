"""
Tests for the DevnetChaos facade
"""
import pytest
from pathlib import Path
from unittest.mock import Mock

from devnet_chaos.main import DevnetChaos
from devnet_chaos.models import (
    ExperimentConfig, NetworkConfig, Participant, ChaosConfig, SuiteTest, PlanStep, StepType,
    HealthCheckConfig, BuildEvent, BuildEventKind
)
from devnet_chaos.errors import NetworkBuildError
from devnet_chaos.chaos_engine.faults import ClockSkewFault
from devnet_chaos.planner.config import PlannerConfigLoader

from conftest import FakeOrchestrator, FakeFaultInjector, FakeClusterInspector, id_target

EXAMPLES = Path(__file__).parent.parent / "examples"


def make_experiment(start_new_devnet=False):
    payload = ClockSkewFault(target=id_target("el-1-geth-lighthouse"), time_offset=-60.0, duration=30.0)
    test = SuiteTest(
        name="skew el-1",
        plan_steps=[
            PlanStep(StepType.INJECT_FAULT, "skew el-1", payload),
            PlanStep(StepType.WAIT_FOR_FAULT_COMPLETION, "wait for faults to terminate"),
        ],
        health=HealthCheckConfig(enable_checks=True),
    )
    return ExperimentConfig(
        enclave_name="test-enclave",
        enclave_namespace="kt-test-enclave",
        kurtosis_package_id="github.com/example/package",
        network_config=NetworkConfig(participants=[Participant(el_type="geth", cl_type="lighthouse", count=2)]),
        chaos_config=ChaosConfig(tests=[test], start_new_devnet=start_new_devnet),
    )


@pytest.fixture
def wiring(devnet_pods, sink, sleeper):
    platform = FakeOrchestrator()
    injector = FakeFaultInjector()
    injector_factory = Mock(return_value=injector)
    inspector_factory = Mock(return_value=FakeClusterInspector(devnet_pods))
    chaos = DevnetChaos(
        platform=platform,
        injector_factory=injector_factory,
        inspector_factory=inspector_factory,
        sink=sink,
        sleep=sleeper,
    )
    return chaos, platform, injector, injector_factory, inspector_factory


class TestDevnetChaos:
    """Test wiring planner, lifecycle and sequencer together"""

    def test_plan(self):
        """Test planning through the facade"""
        config = PlannerConfigLoader.load_from_file(EXAMPLES / "restart_lighthouse.yaml")
        plan = DevnetChaos(platform=FakeOrchestrator()).plan(config)

        assert len(plan.tests) == 3

    def test_run_experiment(self, wiring, sink):
        """Test that the enclave is prepared and the suite runs in its namespace"""
        chaos, platform, injector, injector_factory, inspector_factory = wiring

        artifacts = chaos.run_experiment(make_experiment())

        assert platform.actions() == ['create', 'build']
        injector_factory.assert_called_once_with("kt-test-enclave")
        inspector_factory.assert_called_once_with("kt-test-enclave")
        assert len(injector.submitted) == 1
        assert [a.passed for a in artifacts] == [True]
        assert sink.persisted == [artifacts]

    def test_start_new_devnet_restarts(self, wiring, sleeper):
        """Test that an experiment asking for a new devnet rebuilds an existing enclave"""
        chaos, platform, *_ = wiring
        platform.exists = True

        chaos.run_experiment(make_experiment(start_new_devnet=True))

        assert platform.actions() == ['destroy', 'create', 'build']
        assert sleeper.calls[0] == chaos.settle_delay

    def test_build_failure_skips_suite(self, wiring, sink):
        """Test that no faults are injected when the network fails to build"""
        chaos, platform, injector, injector_factory, _ = wiring
        platform.build_events = [BuildEvent(BuildEventKind.ERROR, "package failed")]

        with pytest.raises(NetworkBuildError):
            chaos.run_experiment(make_experiment())

        injector_factory.assert_not_called()
        assert sink.persisted == []
