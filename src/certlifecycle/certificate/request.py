"""
Certificate request domain objects.

These are owned by the caller. Zone defaults mutate a CertificateRequest in
place before it is serialized for the backend.
"""

from dataclasses import dataclass, field
from typing import Optional, List, Dict

from .types import (
    ChainOption,
    CsrOrigin,
    EllipticCurve,
    KeyType,
)


@dataclass
class Subject:
    """X.509 subject fields."""
    common_name: str = ""
    organization: str = ""
    organizational_units: List[str] = field(default_factory=list)
    locality: str = ""
    province: str = ""
    country: str = ""


@dataclass
class CustomField:
    """Backend custom field; values are sent as a list."""
    name: str
    values: List[str] = field(default_factory=list)


@dataclass
class Location:
    """Device/application association for the issued certificate."""
    instance: str
    workload: str = ""
    tls_address: str = ""
    zone: str = ""
    replace: bool = False


@dataclass
class CertificateRequest:
    """
    A certificate request as built by the caller.

    Attributes:
        subject: Subject fields
        dns_names / ip_addresses / email_addresses / uris / upns: typed SANs
        key_type / key_length / key_curve: key parameters
        csr_origin: who produces the CSR
        csr: PEM CSR bytes (user provided, or filled by local generation)
        pickup_id: backend object path, set after a successful request
    """
    subject: Subject = field(default_factory=Subject)
    dns_names: List[str] = field(default_factory=list)
    ip_addresses: List[str] = field(default_factory=list)
    email_addresses: List[str] = field(default_factory=list)
    uris: List[str] = field(default_factory=list)
    upns: List[str] = field(default_factory=list)

    key_type: Optional[KeyType] = None
    key_length: int = 0
    key_curve: Optional[EllipticCurve] = None
    key_password: Optional[str] = None

    csr_origin: CsrOrigin = CsrOrigin.LOCAL_GENERATED
    csr: bytes = b""
    private_key_pem: Optional[bytes] = None

    friendly_name: str = ""
    ca_dn: str = ""
    custom_fields: List[CustomField] = field(default_factory=list)
    contacts: List[str] = field(default_factory=list)
    ca_attributes: Dict[str, str] = field(default_factory=dict)
    location: Optional[Location] = None
    disable_automatic_renewal: bool = False

    # Seconds; 0 means "do not wait for issuance"
    timeout: float = 0
    chain_option: ChainOption = ChainOption.ROOT_LAST
    pickup_id: str = ""
    thumbprint: str = ""

    def get_csr(self) -> bytes:
        return self.csr or b""

    def set_csr(self, csr: bytes) -> None:
        self.csr = csr if isinstance(csr, bytes) else csr.encode()


@dataclass
class RevocationRequest:
    """Revocation of a certificate identified by object path or thumbprint."""
    certificate_dn: str = ""
    thumbprint: str = ""
    reason: str = ""
    comments: str = ""
    disable: bool = False


@dataclass
class RenewalRequest:
    """Renewal of an issued certificate, optionally with a new CSR."""
    certificate_dn: str = ""
    thumbprint: str = ""
    csr: bytes = b""


@dataclass
class ImportRequest:
    """Import of an externally issued certificate into a policy folder."""
    policy_dn: str
    certificate_pem: str
    object_name: str = ""
    private_key_pem: str = ""
    password: str = ""
    reconcile: bool = False
