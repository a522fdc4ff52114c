"""
certlifecycle - Certificate lifecycle client.

Requests, retrieves, renews, revokes and resets X.509 certificates against a
certificate management backend, and compiles the backend's zone policy into
an offline validation grammar.
"""

__version__ = "1.0.0"

from .errors import CertLifecycleError
from .certificate import CertificateRequest, ChainOption, CsrOrigin, Subject
from .policy import CompiledPolicy, ServerPolicy, ZoneConfiguration, compile_policy
from .tpp import Connector, RetrieveStatus, RevocationOutcome, TokenManager, configure_tls

__all__ = [
    "__version__",
    "CertLifecycleError",
    "CertificateRequest",
    "ChainOption",
    "CsrOrigin",
    "Subject",
    "CompiledPolicy",
    "ServerPolicy",
    "ZoneConfiguration",
    "compile_policy",
    "Connector",
    "RetrieveStatus",
    "RevocationOutcome",
    "TokenManager",
    "configure_tls",
]
