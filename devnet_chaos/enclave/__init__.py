"""
Enclave - lifecycle management of the enclave hosting the devnet
"""
from .build_events import drain_build_events
from .lifecycle import EnclaveLifecycleManager, DEFAULT_SETTLE_DELAY
from .kurtosis import KurtosisCliPlatform

__all__ = [
    'drain_build_events',
    'EnclaveLifecycleManager',
    'DEFAULT_SETTLE_DELAY',
    'KurtosisCliPlatform',
]
