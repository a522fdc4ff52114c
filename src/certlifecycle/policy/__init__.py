"""
Zone policy: backend policy documents, the policy compiler and zone defaults.
"""

from .document import ServerPolicy, CheckPolicyResponse
from .compiler import (
    ALL_ALLOWED_REGEX,
    AllowedKeyConfiguration,
    CompiledPolicy,
    compile_policy,
    compile_key_configurations,
)
from .zone import ZoneConfiguration, to_zone_configuration

__all__ = [
    "ServerPolicy",
    "CheckPolicyResponse",
    "ALL_ALLOWED_REGEX",
    "AllowedKeyConfiguration",
    "CompiledPolicy",
    "compile_policy",
    "compile_key_configurations",
    "ZoneConfiguration",
    "to_zone_configuration",
]
