"""
Experiment configuration - YAML (de)serialization of experiments and their chaos suites
"""
import json
import yaml
from pathlib import Path
from typing import Any, Dict, List, Union
from ..models import (
    ExperimentConfig, ChaosConfig, SuiteTest, PlanStep, StepType,
    HealthCheckConfig, DurationPayload
)
from ..errors import ConfigurationInvalid
from ..chaos_engine.faults import FaultPayload, fault_from_manifest
from ..network.participants import network_config_to_dict, network_config_from_dict
from ..utils.durations import format_duration, parse_duration

FAULT_SPEC_KEY = "chaosFaultSpec"


def plan_step_to_dict(step: PlanStep) -> Dict[str, Any]:
    data: Dict[str, Any] = {'stepType': step.step_type.value, 'description': step.description}
    if step.step_type == StepType.INJECT_FAULT:
        data[FAULT_SPEC_KEY] = step.payload.to_manifest()
    elif step.step_type == StepType.WAIT_FOR_DURATION:
        data['duration'] = format_duration(step.payload.duration)
    return data


def plan_step_from_dict(data: Dict[str, Any], location: str) -> PlanStep:
    if not isinstance(data, dict):
        raise ConfigurationInvalid(f"{location}: Must be a mapping")
    try:
        step_type = StepType(data.get('stepType'))
    except ValueError:
        valid = [t.value for t in StepType]
        raise ConfigurationInvalid(f"{location}.stepType: Must be one of {valid}, got {data.get('stepType')!r}")

    description = data.get('description') or step_type.value
    if step_type == StepType.INJECT_FAULT:
        if FAULT_SPEC_KEY not in data:
            raise ConfigurationInvalid(f"{location}: injectFault steps require '{FAULT_SPEC_KEY}'")
        try:
            payload = fault_from_manifest(data[FAULT_SPEC_KEY], description)
        except ValueError as e:
            raise ConfigurationInvalid(f"{location}.{FAULT_SPEC_KEY}: {e}")
        return PlanStep(step_type, description, payload)

    if step_type == StepType.WAIT_FOR_DURATION:
        try:
            seconds = parse_duration(data.get('duration'))
        except ValueError as e:
            raise ConfigurationInvalid(f"{location}.duration: {e}")
        return PlanStep(step_type, description, DurationPayload(duration=seconds))

    return PlanStep(step_type, description)


def suite_test_to_dict(test: SuiteTest) -> Dict[str, Any]:
    return {
        'testName': test.name,
        'health': {
            'enableChecks': test.health.enable_checks,
            'gracePeriod': format_duration(test.health.grace_period),
        },
        'planSteps': [plan_step_to_dict(step) for step in test.plan_steps],
    }


def suite_test_from_dict(data: Dict[str, Any], position: int) -> SuiteTest:
    location = f"chaos_config.tests[{position}]"
    if not isinstance(data, dict):
        raise ConfigurationInvalid(f"{location}: Must be a mapping")
    if not data.get('testName'):
        raise ConfigurationInvalid(f"{location}: Missing required field 'testName'")

    raw_steps = data.get('planSteps')
    if not isinstance(raw_steps, list) or not raw_steps:
        raise ConfigurationInvalid(f"{location}.planSteps: Must be a non-empty list")

    health_dict = data.get('health') or {}
    try:
        grace_period = parse_duration(health_dict.get('gracePeriod') or 0)
    except ValueError as e:
        raise ConfigurationInvalid(f"{location}.health.gracePeriod: {e}")

    return SuiteTest(
        name=data['testName'],
        plan_steps=[plan_step_from_dict(step, f"{location}.planSteps[{i}]") for i, step in enumerate(raw_steps)],
        health=HealthCheckConfig(
            enable_checks=bool(health_dict.get('enableChecks', False)),
            grace_period=grace_period,
        ),
    )


def chaos_config_to_dict(config: ChaosConfig) -> Dict[str, Any]:
    return {
        'start_new_devnet': config.start_new_devnet,
        'wait_before_first_test': format_duration(config.wait_before_first_test),
        'tests': [suite_test_to_dict(test) for test in config.tests],
    }


def chaos_config_from_dict(data: Dict[str, Any]) -> ChaosConfig:
    if not isinstance(data, dict):
        raise ConfigurationInvalid("chaos_config: Must be a mapping")
    raw_tests = data.get('tests')
    if not isinstance(raw_tests, list):
        raise ConfigurationInvalid("chaos_config.tests: Must be a list")

    try:
        wait = parse_duration(data.get('wait_before_first_test') or 0)
    except ValueError as e:
        raise ConfigurationInvalid(f"chaos_config.wait_before_first_test: {e}")

    return ChaosConfig(
        tests=[suite_test_from_dict(test, i) for i, test in enumerate(raw_tests)],
        start_new_devnet=bool(data.get('start_new_devnet', False)),
        wait_before_first_test=wait,
    )


def experiment_to_dict(config: ExperimentConfig) -> Dict[str, Any]:
    return {
        'enclave_name': config.enclave_name,
        'enclave_namespace': config.enclave_namespace,
        'kurtosis_package_id': config.kurtosis_package_id,
        'network_config': network_config_to_dict(config.network_config),
        'chaos_config': chaos_config_to_dict(config.chaos_config),
    }


def experiment_from_dict(data: Dict[str, Any]) -> ExperimentConfig:
    if not isinstance(data, dict):
        raise ConfigurationInvalid("Experiment config must be a mapping")

    missing = [key for key in ('enclave_name', 'enclave_namespace', 'kurtosis_package_id',
                               'network_config', 'chaos_config') if key not in data]
    if missing:
        raise ConfigurationInvalid(f"Experiment config is missing required fields: {missing}")

    return ExperimentConfig(
        enclave_name=data['enclave_name'],
        enclave_namespace=data['enclave_namespace'],
        kurtosis_package_id=data['kurtosis_package_id'],
        network_config=network_config_from_dict(data['network_config']),
        chaos_config=chaos_config_from_dict(data['chaos_config']),
    )


class ExperimentConfigLoader:
    """Reads and writes experiment files (YAML, or JSON by suffix)"""

    @staticmethod
    def load_from_file(file_path: Union[str, Path]) -> ExperimentConfig:
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Experiment file not found: {file_path}")

        with open(path, 'r') as f:
            try:
                if path.suffix == '.json':
                    data = json.load(f)
                else:
                    data = yaml.safe_load(f)
            except (yaml.YAMLError, json.JSONDecodeError) as e:
                raise ConfigurationInvalid(f"Invalid syntax in {file_path}: {e}")
        return experiment_from_dict(data)

    @staticmethod
    def save(config: ExperimentConfig, file_path: Union[str, Path]) -> Path:
        path = Path(file_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            if path.suffix == '.json':
                json.dump(experiment_to_dict(config), f, indent=2)
            else:
                yaml.dump(experiment_to_dict(config), f, default_flow_style=False, sort_keys=False)
        return path

    @staticmethod
    def fault_payloads(config: ExperimentConfig) -> List[FaultPayload]:
        """Every fault payload in the suite, in execution order"""
        return [
            step.payload
            for test in config.chaos_config.tests
            for step in test.plan_steps
            if step.step_type == StepType.INJECT_FAULT
        ]
