"""
Backend Policy Document Schemas

The backend describes a zone's enrollment policy as a JSON document where
each attribute carries its value(s) and a ``Locked`` flag. These models parse
that document; compilation into validation regexes lives in ``compiler``.
"""

import json
from typing import Any, Dict, List, Union

from pydantic import Field, ValidationError as PydanticValidationError

from ..errors import DecodeError
from ..utils.serialization import WireModel as _WireModel


class LockedString(_WireModel):
    """A single string value with its lock flag."""
    locked: bool = Field(default=False, alias="Locked")
    value: str = Field(default="", alias="Value")


class LockedStrings(_WireModel):
    """A multi-valued string attribute with its lock flag."""
    locked: bool = Field(default=False, alias="Locked")
    values: List[str] = Field(default_factory=list, alias="Values")


class LockedInt(_WireModel):
    locked: bool = Field(default=False, alias="Locked")
    value: int = Field(default=0, alias="Value")


class KeyPairPolicy(_WireModel):
    key_algorithm: LockedString = Field(default_factory=LockedString, alias="KeyAlgorithm")
    key_size: LockedInt = Field(default_factory=LockedInt, alias="KeySize")
    elliptic_curve: LockedString = Field(default_factory=LockedString, alias="EllipticCurve")


class SubjectPolicy(_WireModel):
    city: LockedString = Field(default_factory=LockedString, alias="City")
    country: LockedString = Field(default_factory=LockedString, alias="Country")
    organization: LockedString = Field(default_factory=LockedString, alias="Organization")
    organizational_unit: LockedStrings = Field(default_factory=LockedStrings, alias="OrganizationalUnit")
    state: LockedString = Field(default_factory=LockedString, alias="State")


class ServerPolicy(_WireModel):
    """Policy document as returned by the certificate check-policy call."""
    certificate_authority: LockedString = Field(default_factory=LockedString, alias="CertificateAuthority")
    csr_generation: LockedString = Field(default_factory=LockedString, alias="CsrGeneration")
    key_generation: LockedString = Field(default_factory=LockedString, alias="KeyGeneration")
    key_pair: KeyPairPolicy = Field(default_factory=KeyPairPolicy, alias="KeyPair")
    management_type: LockedString = Field(default_factory=LockedString, alias="ManagementType")

    private_key_reuse_allowed: bool = Field(default=False, alias="PrivateKeyReuseAllowed")
    san_dns_allowed: bool = Field(default=False, alias="SubjAltNameDnsAllowed")
    san_email_allowed: bool = Field(default=False, alias="SubjAltNameEmailAllowed")
    san_ip_allowed: bool = Field(default=False, alias="SubjAltNameIpAllowed")
    san_upn_allowed: bool = Field(default=False, alias="SubjAltNameUpnAllowed")
    san_uri_allowed: bool = Field(default=False, alias="SubjAltNameUriAllowed")
    subject: SubjectPolicy = Field(default_factory=SubjectPolicy, alias="Subject")
    unique_subject_enforced: bool = Field(default=False, alias="UniqueSubjectEnforced")
    whitelisted_domains: List[str] = Field(default_factory=list, alias="WhitelistedDomains")
    wildcards_allowed: bool = Field(default=False, alias="WildcardsAllowed")

    @classmethod
    def from_wire(cls, data: Union[bytes, str, Dict[str, Any]]) -> "ServerPolicy":
        """
        Parse a policy document from raw JSON or an already decoded dict.

        Raises:
            DecodeError: for malformed JSON or wrongly typed attributes
        """
        if isinstance(data, (bytes, str)):
            try:
                data = json.loads(data)
            except ValueError as e:
                raise DecodeError(f"policy document is not valid JSON: {e}", "read zone") from e
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise DecodeError(f"malformed policy document: {e.error_count()} invalid field(s)", "read zone") from e


class CheckPolicyResponse(_WireModel):
    """Envelope of the check-policy call."""
    error: str = Field(default="", alias="Error")
    policy: ServerPolicy = Field(default_factory=ServerPolicy, alias="Policy")
