"""
Utilities - shared helpers
"""
from .durations import parse_duration, format_duration

__all__ = ['parse_duration', 'format_duration']
