"""
Planner configuration - load, structurally validate and semantically check planner YAML
"""
import yaml
from pathlib import Path
from typing import Any, Dict, List, Union
from ..models import (
    PlannerConfig, ExecutionClientVersion, ConsensusClientVersion,
    TargetNetworkTopology, FaultConfig, BootnodeConfig
)
from ..errors import ConfigurationInvalid
from ..network.clients import is_execution_client_type, is_consensus_client_type
from ..utils.durations import parse_duration
from .suite_builder import FAULT_TYPES, parse_fault_parameters
from .target_selector import TARGETING_SPECS, ATTACK_SIZES
from .topology_builder import calculate_target_network_size

DEFAULT_KURTOSIS_PACKAGE = "github.com/kurtosis-tech/ethereum-package"
DEFAULT_NAMESPACE = "kt-test-plan"
DEFAULT_ENCLAVE_NAME = "test-plan"


class PlannerConfigValidator:
    """Structural validator for planner documents, reporting every problem at once"""

    @staticmethod
    def validate_structure(config_dict: dict) -> list:
        errors = []

        if not isinstance(config_dict, dict):
            return ["Planner config must be a mapping"]

        for field in ('execution', 'consensus', 'fault_config'):
            if field not in config_dict:
                errors.append(f"Missing required field: {field}")

        if 'execution' in config_dict:
            errors.extend(PlannerConfigValidator._validate_catalog(
                config_dict['execution'], 'execution', ('type', 'el_image')))
        if 'consensus' in config_dict:
            errors.extend(PlannerConfigValidator._validate_catalog(
                config_dict['consensus'], 'consensus', ('type', 'cl_image', 'vc_type', 'vc_image', 'has_sidecar')))
        if 'target_network_topology' in config_dict:
            errors.extend(PlannerConfigValidator._validate_topology(config_dict['target_network_topology']))
        if 'fault_config' in config_dict:
            errors.extend(PlannerConfigValidator._validate_fault_config(config_dict['fault_config']))
        if 'network_params' in config_dict and not isinstance(config_dict['network_params'], dict):
            errors.append("network_params: Must be a mapping")
        if 'bootnode' in config_dict and config_dict['bootnode'] is not None:
            bootnode = config_dict['bootnode']
            if not isinstance(bootnode, dict) or not bootnode.get('execution') or not bootnode.get('consensus'):
                errors.append("bootnode: Must be a mapping with 'execution' and 'consensus'")
        if 'seed' in config_dict and config_dict['seed'] is not None and not isinstance(config_dict['seed'], int):
            errors.append(f"seed: Must be an integer, got {config_dict['seed']!r}")

        return errors

    @staticmethod
    def _validate_catalog(entries, name: str, allowed: tuple) -> list:
        errors = []
        if not isinstance(entries, list) or not entries:
            return [f"{name}: Must be a non-empty list"]

        seen = set()
        for i, entry in enumerate(entries):
            if not isinstance(entry, dict):
                errors.append(f"{name}[{i}]: Must be a dictionary")
                continue
            if not entry.get('type'):
                errors.append(f"{name}[{i}]: Missing required field 'type'")
            elif entry['type'] in seen:
                errors.append(f"{name}[{i}]: Duplicate client type '{entry['type']}'")
            else:
                seen.add(entry['type'])
            unknown = sorted(set(entry) - set(allowed))
            if unknown:
                errors.append(f"{name}[{i}]: Unknown fields {unknown}")
        return errors

    @staticmethod
    def _validate_topology(topology) -> list:
        errors = []
        if not isinstance(topology, dict):
            return ["target_network_topology: Must be a mapping"]

        multiplier = topology.get('target_node_multiplier')
        if multiplier is not None and (isinstance(multiplier, bool) or not isinstance(multiplier, int) or multiplier < 1):
            errors.append(f"target_network_topology.target_node_multiplier: Must be a positive integer, got {multiplier}")

        percent = topology.get('target_as_percent_of_network')
        if percent is not None and (isinstance(percent, bool) or not isinstance(percent, (int, float))):
            errors.append(f"target_network_topology.target_as_percent_of_network: Must be a number, got {percent!r}")
        return errors

    @staticmethod
    def _validate_fault_config(fault) -> list:
        errors = []
        if not isinstance(fault, dict):
            return ["fault_config: Must be a mapping"]

        for field in ('fault_type', 'target_client', 'fault_targeting_dimensions', 'fault_attack_size_dimensions'):
            if field not in fault:
                errors.append(f"fault_config: Missing required field '{field}'")

        for field in ('fault_targeting_dimensions', 'fault_attack_size_dimensions', 'fault_config_dimensions'):
            if field in fault and not isinstance(fault[field], list):
                errors.append(f"fault_config.{field}: Must be a list")

        if 'wait_before_first_test' in fault:
            try:
                if parse_duration(fault['wait_before_first_test']) < 0:
                    errors.append("fault_config.wait_before_first_test: Must not be negative")
            except ValueError as e:
                errors.append(f"fault_config.wait_before_first_test: {e}")
        return errors


def validate_planner_config(config: PlannerConfig) -> None:
    """Reject unsupported fault settings before any topology is built"""
    fault = config.fault_config

    if fault.fault_type not in FAULT_TYPES:
        raise ConfigurationInvalid(f"the fault type '{fault.fault_type}' is not supported. Supported faults: {list(FAULT_TYPES)}")

    if not fault.targeting_dimensions:
        raise ConfigurationInvalid("at least one fault targeting dimension is required")
    for spec in fault.targeting_dimensions:
        if spec not in TARGETING_SPECS:
            raise ConfigurationInvalid(f"the fault targeting dimension {spec} is not supported. Supported dimensions: {list(TARGETING_SPECS)}")

    if not fault.attack_size_dimensions:
        raise ConfigurationInvalid("at least one attack size dimension is required")
    for attack_size in fault.attack_size_dimensions:
        if attack_size not in ATTACK_SIZES:
            raise ConfigurationInvalid(f"the attack size dimension {attack_size} is not supported. Supported dimensions: {list(ATTACK_SIZES)}")

    is_execution = is_execution_client_type(fault.target_client)
    is_consensus = is_consensus_client_type(fault.target_client)
    if is_execution == is_consensus:
        raise ConfigurationInvalid(f"the target client '{fault.target_client}' is not a valid execution or consensus client type")

    catalog = config.execution_clients if is_execution else config.consensus_clients
    if not any(version.type == fault.target_client for version in catalog):
        role = "execution" if is_execution else "consensus"
        raise ConfigurationInvalid(f"no version found for {role} client type: {fault.target_client}")

    if config.target_topology.target_node_multiplier < 1:
        raise ConfigurationInvalid("target_node_multiplier must be at least 1")
    counterparts = config.consensus_clients if is_execution else config.execution_clients
    calculate_target_network_size(
        config.target_topology.target_node_multiplier * len(counterparts),
        config.target_topology.target_as_percent_of_network,
    )

    for params in fault.config_dimensions or [{}]:
        parse_fault_parameters(fault.fault_type, params)

    if config.bootnode is not None:
        if not any(v.type == config.bootnode.execution for v in config.execution_clients):
            raise ConfigurationInvalid(f"bootnode execution client {config.bootnode.execution} is not declared")
        if not any(v.type == config.bootnode.consensus for v in config.consensus_clients):
            raise ConfigurationInvalid(f"bootnode consensus client {config.bootnode.consensus} is not declared")


class PlannerConfigLoader:
    """Loads planner YAML into a PlannerConfig"""

    @staticmethod
    def load_from_file(file_path: Union[str, Path]) -> PlannerConfig:
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"Planner config not found: {file_path}")

        with open(file_path, 'r') as f:
            text = f.read()
        return PlannerConfigLoader.load_from_string(text, source=str(file_path))

    @staticmethod
    def load_from_string(config_text: str, source: str = "<string>") -> PlannerConfig:
        try:
            data = yaml.safe_load(config_text)
        except yaml.YAMLError as e:
            raise ConfigurationInvalid(f"Invalid YAML syntax in {source}: {e}")
        return PlannerConfigLoader.from_dict(data)

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> PlannerConfig:
        errors = PlannerConfigValidator.validate_structure(data)
        if errors:
            raise ConfigurationInvalid("Invalid planner config:\n  " + "\n  ".join(errors))

        execution = [
            ExecutionClientVersion(type=entry['type'], image=entry.get('el_image'))
            for entry in data['execution']
        ]
        consensus = [
            ConsensusClientVersion(
                type=entry['type'],
                beacon_image=entry.get('cl_image'),
                validator_type=entry.get('vc_type'),
                validator_image=entry.get('vc_image'),
                has_sidecar=bool(entry.get('has_sidecar', False)),
            )
            for entry in data['consensus']
        ]

        topology_dict = data.get('target_network_topology') or {}
        multiplier = topology_dict.get('target_node_multiplier')
        topology = TargetNetworkTopology(
            target_node_multiplier=1 if multiplier is None else multiplier,
            target_as_percent_of_network=topology_dict.get('target_as_percent_of_network'),
        )

        fault_dict = data['fault_config']
        fault = FaultConfig(
            fault_type=fault_dict['fault_type'],
            target_client=fault_dict['target_client'],
            targeting_dimensions=list(fault_dict.get('fault_targeting_dimensions') or []),
            attack_size_dimensions=list(fault_dict.get('fault_attack_size_dimensions') or []),
            config_dimensions=[dict(d or {}) for d in fault_dict.get('fault_config_dimensions') or []],
            wait_before_first_test=parse_duration(fault_dict.get('wait_before_first_test', 0)),
        )

        bootnode = None
        if data.get('bootnode'):
            bootnode = BootnodeConfig(execution=data['bootnode']['execution'], consensus=data['bootnode']['consensus'])

        return PlannerConfig(
            execution_clients=execution,
            consensus_clients=consensus,
            fault_config=fault,
            target_topology=topology,
            network_params=dict(data.get('network_params') or {}),
            kurtosis_package=data.get('kurtosis_package') or DEFAULT_KURTOSIS_PACKAGE,
            kubernetes_namespace=data.get('kubernetes_namespace') or DEFAULT_NAMESPACE,
            enclave_name=data.get('enclave_name') or DEFAULT_ENCLAVE_NAME,
            bootnode=bootnode,
            seed=data.get('seed'),
        )

    @staticmethod
    def list_errors(config: PlannerConfig) -> List[str]:
        """Semantic check as a list, for the validate command"""
        try:
            validate_planner_config(config)
        except ConfigurationInvalid as e:
            return [str(e)]
        return []
