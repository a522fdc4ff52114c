"""
Backend connector: lifecycle operations, token management and TLS transport.
"""

from .auth import AccessToken, APIKey, TokenManager
from .connector import Connector, LifecycleOperation, LifecycleSession, RevocationOutcome
from .retrieval import CertificateRetrieval, RetrieveResult, RetrieveStatus
from .tls import ClientCertificate, Renegotiation, TLSConfig, TLSConfigAdapter, configure_tls

__all__ = [
    "AccessToken",
    "APIKey",
    "TokenManager",
    "Connector",
    "LifecycleOperation",
    "LifecycleSession",
    "RevocationOutcome",
    "CertificateRetrieval",
    "RetrieveResult",
    "RetrieveStatus",
    "ClientCertificate",
    "Renegotiation",
    "TLSConfig",
    "TLSConfigAdapter",
    "configure_tls",
]
