"""
Errors - Exception hierarchy for planning, enclave management and experiment execution
"""
from typing import Optional


class DevnetChaosError(Exception):
    """Base class for every error raised by devnet-chaos"""


class ConfigurationInvalid(DevnetChaosError):
    """A planner or experiment configuration was rejected before touching the platform"""


class TopologyInvariantError(ConfigurationInvalid):
    """A client definition violates a structural invariant (e.g. sidecar without validator flag)"""


class UnrecognizedServiceName(DevnetChaosError):
    """An observed service identifier does not follow the node naming grammar"""

    def __init__(self, service_name: str, reason: Optional[str] = None):
        self.service_name = service_name
        self.reason = reason
        message = f"Unrecognized service name '{service_name}'"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class TopologyInconsistent(DevnetChaosError):
    """Observed services cannot be assembled into complete nodes"""


class ConfigTopologyMismatch(DevnetChaosError):
    """The running network does not match the configured topology"""

    def __init__(self, message: str, expected=None, observed=None):
        self.expected = expected
        self.observed = observed
        super().__init__(message)


class PlatformUnavailable(DevnetChaosError):
    """The orchestration platform or cluster API could not be reached"""


class UnsupportedSelector(DevnetChaosError):
    """A fault kind cannot be targeted with the requested selector"""


class NetworkBuildError(DevnetChaosError):
    """The orchestration platform reported a failed network build"""


class FaultInjectionError(DevnetChaosError):
    """A fault could not be submitted to the injection backend"""


class FaultExecutionError(DevnetChaosError):
    """A submitted fault reported an error while running"""


class ExperimentCancelled(DevnetChaosError):
    """The run was cancelled while waiting"""
