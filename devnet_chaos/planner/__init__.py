"""
Planner - composes devnet topologies and compiles fault campaigns into test suites
"""
from .config import PlannerConfigLoader, PlannerConfigValidator, validate_planner_config
from .topology_builder import TopologyBuilder, calculate_target_network_size
from .suite_builder import compose_test_suite, FAULT_TYPES
from .target_selector import (
    select_node_targets, select_client_type, select_role, resolve_attack_targets,
    TARGETING_SPECS, ATTACK_SIZES
)
from .builder import PlanBuilder, Plan

__all__ = [
    'PlannerConfigLoader',
    'PlannerConfigValidator',
    'validate_planner_config',
    'TopologyBuilder',
    'calculate_target_network_size',
    'compose_test_suite',
    'FAULT_TYPES',
    'select_node_targets',
    'select_client_type',
    'select_role',
    'resolve_attack_targets',
    'TARGETING_SPECS',
    'ATTACK_SIZES',
    'PlanBuilder',
    'Plan',
]
