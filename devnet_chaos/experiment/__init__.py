"""
Experiment - experiment files and sequential, health-gated execution of chaos suites

Components:
- ExperimentConfigLoader: reads and writes experiment YAML/JSON
- ExperimentSequencer: runs suite tests with fail-fast semantics
- HealthChecker: pod-phase health checks of targets and bystanders
- YamlArtifactSink: persists test artifacts and a text report
- ErrorHandler: error categorization and bookkeeping
"""
from .config import ExperimentConfigLoader, experiment_to_dict, experiment_from_dict
from .cancellation import CancellationToken
from .health import HealthChecker
from .artifacts import YamlArtifactSink, generate_report
from .error_handler import ErrorHandler, ErrorCategory, ErrorSeverity, categorize, get_error_handler
from .sequencer import ExperimentSequencer, TestExecution

__all__ = [
    'ExperimentConfigLoader',
    'experiment_to_dict',
    'experiment_from_dict',
    'CancellationToken',
    'HealthChecker',
    'YamlArtifactSink',
    'generate_report',
    'ErrorHandler',
    'ErrorCategory',
    'ErrorSeverity',
    'categorize',
    'get_error_handler',
    'ExperimentSequencer',
    'TestExecution',
]
