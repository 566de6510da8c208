"""
Tests for Kubernetes pod inspection and client loading
"""
import pytest
from types import SimpleNamespace
from unittest.mock import Mock, patch
from kubernetes.client.rest import ApiException
from kubernetes.config import ConfigException

from devnet_chaos.errors import PlatformUnavailable
from devnet_chaos.chaos_engine.kube import KubernetesClusterInspector, load_kube_config, pod_ref_from_api


def api_pod(name, labels=None, phase="Running"):
    return SimpleNamespace(
        metadata=SimpleNamespace(name=name, labels=labels),
        status=SimpleNamespace(phase=phase),
    )


@pytest.fixture
def core_api():
    return Mock()


class TestPodRefFromApi:
    """Test converting API pods"""

    def test_fields(self):
        """Test name, labels and phase are copied"""
        ref = pod_ref_from_api(api_pod("el-1-geth-teku", {"app": "geth"}, "Pending"))

        assert ref.name == "el-1-geth-teku"
        assert ref.labels == {"app": "geth"}
        assert ref.phase == "Pending"

    def test_missing_status(self):
        """Test that pods without status report Unknown"""
        pod = SimpleNamespace(metadata=SimpleNamespace(name="p", labels=None), status=None)
        ref = pod_ref_from_api(pod)

        assert ref.phase == "Unknown"
        assert ref.labels == {}


class TestKubernetesClusterInspector:
    """Test reading pods through the core API"""

    def test_list_by_label(self, core_api):
        """Test listing pods with an equality label selector"""
        core_api.list_namespaced_pod.return_value = SimpleNamespace(items=[api_pod("el-1-geth-teku")])
        inspector = KubernetesClusterInspector("kt-test", core_api=core_api)

        pods = inspector.list_pods_matching_label("app", "geth")

        assert [p.name for p in pods] == ["el-1-geth-teku"]
        core_api.list_namespaced_pod.assert_called_once_with(namespace="kt-test", label_selector="app=geth")

    def test_get_pod(self, core_api):
        """Test reading a single pod"""
        core_api.read_namespaced_pod.return_value = api_pod("cl-1-teku-geth", phase="Failed")
        pod = KubernetesClusterInspector("kt-test", core_api=core_api).get_pod("cl-1-teku-geth")

        assert pod.phase == "Failed"

    def test_get_missing_pod(self, core_api):
        """Test that a missing pod yields None"""
        core_api.read_namespaced_pod.side_effect = ApiException(status=404, reason="Not Found")

        assert KubernetesClusterInspector("kt-test", core_api=core_api).get_pod("gone") is None

    def test_api_errors(self, core_api):
        """Test that other API errors mean the platform is unavailable"""
        core_api.list_namespaced_pod.side_effect = ApiException(status=403, reason="Forbidden")

        with pytest.raises(PlatformUnavailable, match="Forbidden"):
            KubernetesClusterInspector("kt-test", core_api=core_api).list_pods_matching_label("app", "geth")


class TestLoadKubeConfig:
    """Test Kubernetes client configuration"""

    @patch('devnet_chaos.chaos_engine.kube.k8s_config')
    def test_prefers_in_cluster(self, mock_config):
        """Test that in-cluster configuration is tried first"""
        load_kube_config()

        mock_config.load_incluster_config.assert_called_once()
        mock_config.load_kube_config.assert_not_called()

    @patch('devnet_chaos.chaos_engine.kube.k8s_config')
    def test_falls_back_to_kubeconfig(self, mock_config):
        """Test the kubeconfig fallback outside a cluster"""
        mock_config.load_incluster_config.side_effect = ConfigException("not in cluster")

        load_kube_config()

        mock_config.load_kube_config.assert_called_once()

    @patch('devnet_chaos.chaos_engine.kube.k8s_config')
    def test_no_configuration(self, mock_config):
        """Test that no usable configuration means the platform is unavailable"""
        mock_config.load_incluster_config.side_effect = ConfigException("not in cluster")
        mock_config.load_kube_config.side_effect = ConfigException("no kubeconfig")

        with pytest.raises(PlatformUnavailable):
            load_kube_config()
