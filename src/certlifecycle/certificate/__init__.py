"""
Certificate domain model: requests, key/curve enumerations and PEM bundles.
"""

from .types import (
    KeyType,
    EllipticCurve,
    CsrOrigin,
    ChainOption,
    SanType,
    RevocationReason,
)
from .request import (
    Subject,
    CustomField,
    Location,
    CertificateRequest,
    RevocationRequest,
    RenewalRequest,
    ImportRequest,
)
from .pem import PEMCollection, pem_collection_from_bytes, pem_collection_from_base64

__all__ = [
    "KeyType",
    "EllipticCurve",
    "CsrOrigin",
    "ChainOption",
    "SanType",
    "RevocationReason",
    "Subject",
    "CustomField",
    "Location",
    "CertificateRequest",
    "RevocationRequest",
    "RenewalRequest",
    "ImportRequest",
    "PEMCollection",
    "pem_collection_from_bytes",
    "pem_collection_from_base64",
]
