"""
Network config serialization - convert NetworkConfig to and from the platform's YAML shape
"""
from dataclasses import fields
from typing import Any, Dict, List
from ..models import NetworkConfig, Participant
from ..errors import ConfigurationInvalid

DEFAULT_ADDITIONAL_SERVICES = ["prometheus_grafana", "dora"]

_PARTICIPANT_FIELDS = [f.name for f in fields(Participant)]
_LABEL_FIELDS = ('el_extra_labels', 'cl_extra_labels', 'vc_extra_labels')


def participant_to_dict(participant: Participant) -> Dict[str, Any]:
    """Serialize a participant, omitting unset optional fields"""
    data: Dict[str, Any] = {}
    for name in _PARTICIPANT_FIELDS:
        value = getattr(participant, name)
        if name in _LABEL_FIELDS:
            if value:
                data[name] = dict(value)
            continue
        if name == 'use_separate_vc':
            if value:
                data[name] = True
            continue
        if value is not None:
            data[name] = value
    return data


def participant_from_dict(data: Dict[str, Any], position: int = 0) -> Participant:
    if not isinstance(data, dict):
        raise ConfigurationInvalid(f"participants[{position}]: must be a mapping")
    for required in ('el_type', 'cl_type'):
        if not data.get(required):
            raise ConfigurationInvalid(f"participants[{position}]: '{required}' is required")

    unknown = set(data) - set(_PARTICIPANT_FIELDS)
    if unknown:
        raise ConfigurationInvalid(f"participants[{position}]: unknown keys {sorted(unknown)}")

    count = data.get('count', 1)
    if not isinstance(count, int) or count < 1:
        raise ConfigurationInvalid(f"participants[{position}]: count must be a positive integer")

    kwargs = {name: data[name] for name in _PARTICIPANT_FIELDS if name in data}
    for name in _LABEL_FIELDS:
        kwargs[name] = dict(kwargs.get(name) or {})
    kwargs['use_separate_vc'] = bool(kwargs.get('use_separate_vc', False))
    return Participant(**kwargs)


def network_config_to_dict(config: NetworkConfig) -> Dict[str, Any]:
    return {
        'participants': [participant_to_dict(p) for p in config.participants],
        'network_params': dict(config.network_params),
        'additional_services': list(config.additional_services),
        'parallel_keystore_generation': config.parallel_keystore_generation,
        'persistent': config.persistent,
        'disable_peer_scoring': config.disable_peer_scoring,
    }


def network_config_from_dict(data: Dict[str, Any]) -> NetworkConfig:
    if not isinstance(data, dict):
        raise ConfigurationInvalid("network_config: must be a mapping")

    raw_participants = data.get('participants')
    if not isinstance(raw_participants, list) or not raw_participants:
        raise ConfigurationInvalid("network_config.participants: must be a non-empty list")

    participants: List[Participant] = [
        participant_from_dict(item, position) for position, item in enumerate(raw_participants)
    ]

    return NetworkConfig(
        participants=participants,
        network_params=dict(data.get('network_params') or {}),
        additional_services=list(data.get('additional_services') or []),
        parallel_keystore_generation=bool(data.get('parallel_keystore_generation', False)),
        persistent=bool(data.get('persistent', False)),
        disable_peer_scoring=bool(data.get('disable_peer_scoring', True)),
    )
