"""
Tests for the Chaos Mesh fault injector
"""
import pytest
from unittest.mock import Mock
from kubernetes.client.rest import ApiException
from urllib3.exceptions import MaxRetryError

from devnet_chaos.models import FaultHandle, FaultStatus
from devnet_chaos.errors import FaultInjectionError, PlatformUnavailable
from devnet_chaos.chaos_engine.chaos_mesh import ChaosMeshFaultInjector, fault_status_from_resource
from devnet_chaos.chaos_engine.faults import ClockSkewFault, PodRestartFault, CHAOS_MESH_GROUP, CHAOS_MESH_VERSION

from conftest import id_target


def resource(conditions=None, desired_phase=None, records=None):
    status = {'conditions': [{'type': k, 'status': 'True' if v else 'False'} for k, v in (conditions or {}).items()]}
    experiment = {}
    if desired_phase:
        experiment['desiredPhase'] = desired_phase
    if records:
        experiment['containerRecords'] = records
    status['experiment'] = experiment
    return {'status': status}


@pytest.fixture
def custom_api():
    return Mock()


@pytest.fixture
def chaos_injector(custom_api):
    return ChaosMeshFaultInjector("kt-test", custom_api=custom_api)


class TestFaultStatusFromResource:
    """Test interpreting Chaos Mesh status blocks"""

    def test_no_status_is_pending(self):
        """Test that a fresh resource is pending"""
        assert fault_status_from_resource("TimeChaos", {}) == FaultStatus.PENDING

    def test_injected_time_chaos_is_pending(self):
        """Test that a running time chaos is still pending"""
        res = resource({'Selected': True, 'AllInjected': True}, desired_phase='Run')
        assert fault_status_from_resource("TimeChaos", res) == FaultStatus.PENDING

    def test_recovered_and_stopped_is_complete(self):
        """Test that a recovered, stopped fault is complete"""
        res = resource({'Selected': True, 'AllInjected': False, 'AllRecovered': True}, desired_phase='Stop')
        assert fault_status_from_resource("NetworkChaos", res) == FaultStatus.COMPLETE

    def test_pod_kill_complete_once_injected(self):
        """Test that pod kills complete as soon as every pod was killed"""
        res = resource({'Selected': True, 'AllInjected': True}, desired_phase='Run')
        assert fault_status_from_resource("PodChaos", res) == FaultStatus.COMPLETE

    def test_failed_record_is_error(self):
        """Test that a failed container record is an error"""
        records = [{'id': 'kt-test/el-1-geth-teku', 'events': [{'type': 'Failed', 'operation': 'Apply'}]}]
        res = resource({'Selected': True}, desired_phase='Run', records=records)
        assert fault_status_from_resource("IOChaos", res) == FaultStatus.ERROR

    def test_stopped_without_selection_is_error(self):
        """Test that a stopped fault that never selected pods is an error"""
        res = resource({'Selected': False}, desired_phase='Stop')
        assert fault_status_from_resource("TimeChaos", res) == FaultStatus.ERROR


class TestSubmitFault:
    """Test submitting faults"""

    def test_creates_custom_object(self, chaos_injector, custom_api):
        """Test that the manifest is created in the enclave namespace"""
        payload = ClockSkewFault(target=id_target("el-1-geth-teku"), time_offset=-60.0, duration=120.0)

        handle = chaos_injector.submit_fault(payload)

        kwargs = custom_api.create_namespaced_custom_object.call_args.kwargs
        assert kwargs['group'] == CHAOS_MESH_GROUP
        assert kwargs['version'] == CHAOS_MESH_VERSION
        assert kwargs['namespace'] == "kt-test"
        assert kwargs['plural'] == "timechaos"
        assert kwargs['body']['metadata']['name'] == handle.name
        assert kwargs['body']['spec']['timeOffset'] == "-1m0s"
        assert handle.name.startswith("devnet-chaos-timechaos-")
        assert handle.kind == "TimeChaos"
        assert handle.namespace == "kt-test"

    def test_unique_names(self, chaos_injector):
        """Test that every submission gets its own resource name"""
        payload = PodRestartFault(target=id_target("cl-1-teku-geth"))
        assert chaos_injector.submit_fault(payload).name != chaos_injector.submit_fault(payload).name

    def test_rejected_by_api(self, chaos_injector, custom_api):
        """Test that API rejections become injection errors"""
        custom_api.create_namespaced_custom_object.side_effect = ApiException(status=422, reason="Unprocessable Entity")

        with pytest.raises(FaultInjectionError, match="422"):
            chaos_injector.submit_fault(PodRestartFault(target=id_target("cl-1-teku-geth")))

    def test_api_unreachable(self, chaos_injector, custom_api):
        """Test that transport failures mean the platform is unavailable"""
        custom_api.create_namespaced_custom_object.side_effect = MaxRetryError(None, "/apis", "connection refused")

        with pytest.raises(PlatformUnavailable):
            chaos_injector.submit_fault(PodRestartFault(target=id_target("cl-1-teku-geth")))


class TestQueryFaultStatus:
    """Test polling submitted faults"""

    def test_reads_resource(self, chaos_injector, custom_api):
        """Test that the resource is read by kind plural and name"""
        custom_api.get_namespaced_custom_object.return_value = resource(
            {'AllRecovered': True}, desired_phase='Stop')

        status = chaos_injector.query_fault_status(FaultHandle("fault-a", "NetworkChaos", "kt-test"))

        assert status == FaultStatus.COMPLETE
        kwargs = custom_api.get_namespaced_custom_object.call_args.kwargs
        assert kwargs['plural'] == "networkchaos"
        assert kwargs['name'] == "fault-a"

    def test_deleted_resource_is_error(self, chaos_injector, custom_api):
        """Test that a vanished resource is reported as an error"""
        custom_api.get_namespaced_custom_object.side_effect = ApiException(status=404, reason="Not Found")

        assert chaos_injector.query_fault_status(FaultHandle("fault-a", "TimeChaos")) == FaultStatus.ERROR

    def test_server_error(self, chaos_injector, custom_api):
        """Test that other API failures mean the platform is unavailable"""
        custom_api.get_namespaced_custom_object.side_effect = ApiException(status=500, reason="Internal Server Error")

        with pytest.raises(PlatformUnavailable):
            chaos_injector.query_fault_status(FaultHandle("fault-a", "TimeChaos"))
