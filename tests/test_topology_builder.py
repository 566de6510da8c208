"""
Tests for network sizing, pairing and padding
"""
import pytest
from fractions import Fraction

from devnet_chaos.models import (
    PlannerConfig, ExecutionClientVersion, ConsensusClientVersion, FaultConfig,
    TargetNetworkTopology, BootnodeConfig
)
from devnet_chaos.errors import ConfigurationInvalid
from devnet_chaos.planner.topology_builder import TopologyBuilder, calculate_target_network_size


def make_config(target_client="geth", multiplier=1, percent=None, bootnode=None, seed=7,
                execution=("geth", "reth", "nethermind"), consensus=("lighthouse", "prysm", "teku")):
    return PlannerConfig(
        execution_clients=[ExecutionClientVersion(type=t) for t in execution],
        consensus_clients=[ConsensusClientVersion(type=t, has_sidecar=(t == "prysm")) for t in consensus],
        fault_config=FaultConfig(fault_type="ClockSkew", target_client=target_client),
        target_topology=TargetNetworkTopology(target_node_multiplier=multiplier,
                                              target_as_percent_of_network=percent),
        network_params={'num_validator_keys_per_node': 16},
        bootnode=bootnode,
        seed=seed,
    )


class TestCalculateTargetNetworkSize:
    """Test the sizing rule"""

    def test_unconstrained(self):
        """Test that None and 0 keep the base size"""
        assert calculate_target_network_size(6, None) == 6
        assert calculate_target_network_size(6, 0) == 6

    def test_exact_division(self):
        """Test that exact ratios do not round up"""
        assert calculate_target_network_size(6, 0.3) == 20
        assert calculate_target_network_size(6, 0.25) == 24
        assert calculate_target_network_size(3, 0.5) == 6

    @pytest.mark.parametrize("percent", [1, 1.0, 1.5, -0.1])
    def test_out_of_range_rejected(self, percent):
        """Test that percentages outside [0, 1) are rejected"""
        with pytest.raises(ConfigurationInvalid):
            calculate_target_network_size(6, percent)

    def test_non_numeric_rejected(self):
        """Test that non-numeric percentages are rejected"""
        with pytest.raises(ConfigurationInvalid):
            calculate_target_network_size(6, "half")

    @pytest.mark.parametrize("percent", [0.1, 0.25, 0.3, 0.33, 0.5, 0.66, 0.9])
    def test_smallest_size_within_share(self, percent):
        """Test that the result is the smallest size keeping the target share at or below the percentage"""
        limit = Fraction(str(percent))
        for base in range(1, 31):
            size = calculate_target_network_size(base, percent)
            assert Fraction(base, size) <= limit
            assert size == base or Fraction(base, size - 1) > limit


class TestTopologyBuilder:
    """Test composing planner topologies"""

    def test_pairs_target_with_every_consensus_client(self):
        """Test a geth target with three consensus clients and multiplier 2"""
        topology = TopologyBuilder(make_config(multiplier=2)).compose()

        assert topology.fingerprints() == [
            "#1 geth/lighthouse", "#2 geth/lighthouse", "#3 geth/prysm",
            "#4 geth/prysm", "#5 geth/teku", "#6 geth/teku",
        ]
        assert all(node.consensus_votes == 16 for node in topology)

    def test_consensus_target_pairs_with_execution_clients(self):
        """Test that a consensus target is paired with each execution client"""
        topology = TopologyBuilder(make_config(target_client="teku")).compose()

        assert [node.execution.type for node in topology] == ["geth", "reth", "nethermind"]
        assert all(node.consensus.type == "teku" for node in topology)

    def test_multiplier_repeats_each_counterpart_consecutively(self):
        """Test that each execution client is repeated before moving to the next"""
        topology = TopologyBuilder(make_config(target_client="teku", multiplier=2)).compose()

        assert [node.execution.type for node in topology] == [
            "geth", "geth", "reth", "reth", "nethermind", "nethermind",
        ]

    def test_padding_excludes_target_client(self):
        """Test that padding nodes never run the target client"""
        topology = TopologyBuilder(make_config(multiplier=2, percent=0.25)).compose()

        assert len(topology) == 24
        padding = topology.nodes[6:]
        assert all(node.execution.type != "geth" for node in padding)
        geth_nodes = [node for node in topology if node.execution.type == "geth"]
        assert Fraction(len(geth_nodes), len(topology)) <= Fraction(1, 4)

    def test_seed_is_deterministic(self):
        """Test that the same seed yields the same padding"""
        first = TopologyBuilder(make_config(percent=0.2, seed=11)).compose()
        second = TopologyBuilder(make_config(percent=0.2, seed=11)).compose()

        assert first.fingerprints() == second.fingerprints()

    def test_bootnode_comes_first_and_is_not_counted(self):
        """Test that the bootnode takes index 1 outside the sized network"""
        config = make_config(bootnode=BootnodeConfig(execution="reth", consensus="lighthouse"))
        topology = TopologyBuilder(config).compose()

        assert len(topology) == 4
        assert topology.nodes[0].fingerprint() == "#1 reth/lighthouse"
        assert [node.index for node in topology] == [1, 2, 3, 4]

    def test_sidecar_consensus_gets_validator(self):
        """Test that sidecar consensus versions produce validator clients"""
        topology = TopologyBuilder(make_config()).compose()
        prysm = topology.nodes[1]

        assert prysm.consensus.has_validator_sidecar
        assert prysm.consensus.validator_client.type == "prysm"

    def test_padding_without_alternatives_rejected(self):
        """Test that padding fails when only the target client is declared"""
        config = make_config(percent=0.5, execution=("geth",))

        with pytest.raises(ConfigurationInvalid):
            TopologyBuilder(config).compose()

    def test_unknown_target_client_rejected(self):
        """Test that a target client missing from the catalog is rejected"""
        with pytest.raises(ConfigurationInvalid):
            TopologyBuilder(make_config(target_client="besu")).compose()
