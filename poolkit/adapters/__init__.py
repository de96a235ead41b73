"""
Factory and validator adapters for poolkit.
"""

from .callable import CallableFactory, CallableValidator
from .mysql import MySqlFactory, MySqlPingValidator, MySqlQueryValidator, parse_endpoint

__all__ = [
    'CallableFactory',
    'CallableValidator',
    'MySqlFactory',
    'MySqlPingValidator',
    'MySqlQueryValidator',
    'parse_endpoint',
]
