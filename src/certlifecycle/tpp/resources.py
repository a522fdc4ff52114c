"""
Backend Web SDK Resources and Wire Schemas

Resource paths, response envelopes and the helpers that turn an HTTPResult
into a typed response or a typed error.

Status contract:
- 200/201 = success for mutating operations
- 200/202 = success for retrieve and revoke (202 on retrieve = still pending)
- anything else = UnexpectedStatusError carrying status text and raw body
"""

import re
from enum import Enum
from typing import Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from ..errors import DecodeError, UnexpectedStatusError
from ..utils.http import HTTPResult
from ..utils.serialization import WireModel


class UrlResource(str, Enum):
    """Backend resource paths, relative to the base URL."""
    AUTHORIZE = "vedsdk/authorize/"
    AUTHORIZE_CERTIFICATE = "vedauth/authorize/certificate"
    AUTHORIZE_OAUTH = "vedauth/authorize/oauth"
    AUTHORIZE_VERIFY = "vedauth/authorize/verify"
    REFRESH_ACCESS_TOKEN = "vedauth/authorize/token"  # nosec
    REVOKE_ACCESS_TOKEN = "vedauth/revoke/token"  # nosec
    CERTIFICATE_IMPORT = "vedsdk/certificates/import"
    CERTIFICATE_POLICY = "vedsdk/certificates/checkpolicy"
    CERTIFICATE_RENEW = "vedsdk/certificates/renew"
    CERTIFICATE_REQUEST = "vedsdk/certificates/request"
    CERTIFICATE_RETRIEVE = "vedsdk/certificates/retrieve"
    CERTIFICATE_REVOKE = "vedsdk/certificates/revoke"
    CERTIFICATE_RESET = "vedsdk/certificates/reset"
    CERTIFICATE_SEARCH = "vedsdk/certificates/"
    METADATA_SET = "vedsdk/metadata/set"
    METADATA_GET_ITEMS = "vedsdk/metadata/getitems"
    METADATA_GET = "vedsdk/metadata/get"
    SYSTEM_STATUS_VERSION = "vedsdk/systemstatus/version"
    READ_POLICY = "vedsdk/Config/ReadPolicy"
    WRITE_POLICY = "vedsdk/Config/WritePolicy"
    BROWSE_IDENTITIES = "vedsdk/Identity/Browse"
    VALIDATE_IDENTITY = "vedsdk/Identity/Validate"
    DN_TO_GUID = "vedsdk/Config/DnToGuid"
    LOG = "vedsdk/Log"


POLICY_ROOT = "\\VED\\Policy"
X509_CERTIFICATE_CLASS = "X509 Certificate"

_MODEL = TypeVar("_MODEL", bound=BaseModel)


# =============================================================================
# Certificate lifecycle envelopes
# =============================================================================


class CertificateRequestResponse(WireModel):
    certificate_dn: str = Field(default="", alias="CertificateDN")
    error: str = Field(default="", alias="Error")


class CertificateRetrieveResponse(WireModel):
    certificate_data: str = Field(default="", alias="CertificateData")
    format: str = Field(default="", alias="Format")
    filename: str = Field(default="", alias="Filename")
    status: str = Field(default="", alias="Status")
    stage: int = Field(default=0, alias="Stage")


class CertificateRevokeResponse(WireModel):
    requested: bool = Field(default=False, alias="Requested")
    success: bool = Field(default=False, alias="Success")
    error: str = Field(default="", alias="Error")


class CertificateRenewResponse(WireModel):
    success: bool = Field(default=False, alias="Success")
    error: str = Field(default="", alias="Error")


class CertificateResetResponse(WireModel):
    error: str = Field(default="", alias="Error")


class ImportResponse(WireModel):
    certificate_dn: str = Field(default="", alias="CertificateDN")
    certificate_vault_id: int = Field(default=0, alias="CertificateVaultId")
    guid: str = Field(default="", alias="Guid")
    private_key_vault_id: int = Field(default=0, alias="PrivateKeyVaultId")


class CertificateSearchEntry(WireModel):
    dn: str = Field(default="", alias="DN")
    guid: str = Field(default="", alias="Guid")
    name: str = Field(default="", alias="Name")


class CertificateSearchResponse(WireModel):
    certificates: List[CertificateSearchEntry] = Field(default_factory=list, alias="Certificates")
    total_count: int = Field(default=0, alias="TotalCount")


# =============================================================================
# Authorization envelopes
# =============================================================================


class AuthorizeResponse(WireModel):
    api_key: str = Field(default="", alias="APIKey")
    valid_until: str = Field(default="", alias="ValidUntil")


class OAuthTokenResponse(WireModel):
    access_token: str = ""
    expires: int = 0
    expires_in: int = 0
    identity: str = ""
    refresh_token: str = ""
    refresh_until: int = 0
    scope: str = ""
    token_type: str = ""


class VerifyTokenResponse(WireModel):
    access_issued_on: str = Field(default="", alias="access_issued_on_ISO8601")
    client_id: str = Field(default="", alias="application")
    expires: str = Field(default="", alias="expires_ISO8601")
    grant_issued_on: str = Field(default="", alias="grant_issued_on_ISO8601")
    identity: str = ""
    scope: str = ""
    valid_for: int = 0


# =============================================================================
# Identity, policy attribute and metadata envelopes
# =============================================================================


class IdentityEntry(WireModel):
    full_name: str = Field(default="", alias="FullName")
    name: str = Field(default="", alias="Name")
    prefix: str = Field(default="", alias="Prefix")
    prefixed_name: str = Field(default="", alias="PrefixedName")
    prefixed_universal: str = Field(default="", alias="PrefixedUniversal")
    type: int = Field(default=0, alias="Type")
    universal: str = Field(default="", alias="Universal")


class BrowseIdentitiesResponse(WireModel):
    identities: List[IdentityEntry] = Field(default_factory=list, alias="Identities")


class ValidateIdentityResponse(WireModel):
    id: IdentityEntry = Field(default_factory=IdentityEntry, alias="ID")


class PolicyAttributeResponse(WireModel):
    error: str = Field(default="", alias="Error")
    result: int = Field(default=0, alias="Result")
    values: List[str] = Field(default_factory=list, alias="Values")
    locked: bool = Field(default=False, alias="Locked")


class MetadataItem(WireModel):
    allowed_values: List[str] = Field(default_factory=list, alias="AllowedValues")
    config_attribute: str = Field(default="", alias="ConfigAttribute")
    default_values: List[str] = Field(default_factory=list, alias="DefaultValues")
    dn: str = Field(default="", alias="DN")
    guid: str = Field(default="", alias="Guid")
    label: str = Field(default="", alias="Label")
    name: str = Field(default="", alias="Name")
    type: int = Field(default=0, alias="Type")


class MetadataKeyValueSet(WireModel):
    key: MetadataItem = Field(default_factory=MetadataItem, alias="Key")
    value: List[str] = Field(default_factory=list, alias="Value")


class MetadataGetResponse(WireModel):
    data: List[MetadataKeyValueSet] = Field(default_factory=list, alias="Data")
    locked: bool = Field(default=False, alias="Locked")


class MetadataGetItemsResponse(WireModel):
    items: List[MetadataItem] = Field(default_factory=list, alias="Items")
    locked: bool = Field(default=False, alias="Locked")


class MetadataSetResponse(WireModel):
    locked: bool = Field(default=False, alias="Locked")
    result: int = Field(default=0, alias="Result")


class DNToGUIDResponse(WireModel):
    class_name: str = Field(default="", alias="ClassName")
    guid: str = Field(default="", alias="GUID")
    hierarchical_guid: str = Field(default="", alias="HierarchicalGUID")
    result: int = Field(default=0, alias="Result")
    revision: int = Field(default=0, alias="Revision")


class LogPostResponse(WireModel):
    log_result: int = Field(default=0, alias="LogResult")


# =============================================================================
# Helpers
# =============================================================================


def expect_status(
    result: HTTPResult,
    operation: str,
    accepted: Iterable[int],
    object_path: Optional[str] = None,
) -> None:
    """Raise UnexpectedStatusError unless the status is in the accepted set."""
    if result.status_code not in tuple(accepted):
        raise UnexpectedStatusError(
            operation,
            result.status_code,
            result.status_text,
            result.body,
            object_path=object_path,
        )


def decode(model: Type[_MODEL], result: HTTPResult, operation: str) -> _MODEL:
    """Decode an accepted response body into a wire model."""
    data = result.json(operation)
    if data is None:
        data = {}
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise DecodeError(f"unexpected {model.__name__} body: {e.error_count()} invalid field(s)", operation) from e


_LEADING_ROOT = re.compile(r"^\\VED\\Policy")
_REPEATED_SEPARATORS = re.compile(r"\\+")


def get_policy_dn(zone: str) -> str:
    """Absolute policy DN for a zone path, prefixing ``\\VED\\Policy`` when missing."""
    modified = zone
    if not _LEADING_ROOT.match(modified):
        if not modified.startswith("\\"):
            modified = "\\" + modified
        modified = POLICY_ROOT + modified
    return modified


def strip_back_slashes(path: str) -> str:
    """Collapse repeated separators."""
    return _REPEATED_SEPARATORS.sub(r"\\", path)


def get_certificate_dn(zone: str, friendly_name: str, common_name: str) -> str:
    """Object path of a certificate: zone + friendly name, or CN if no friendly name."""
    name = friendly_name or common_name
    return strip_back_slashes(get_policy_dn(zone + "\\" + name))
