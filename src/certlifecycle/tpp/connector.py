"""
Certificate Lifecycle Connector

Drives request / retrieve / renew / revoke / reset against the backend's
Web SDK, plus the supporting zone, policy attribute, identity, metadata and
logging calls.

Flow for a new certificate:
1. read_zone_configuration()   - compile the zone policy, derive defaults
2. generate_request(req)       - apply defaults, check CSR origin, make CSR
3. request_certificate(req)    - submit; req.pickup_id = object path
4. retrieve_certificate(req)   - poll until ISSUED / REJECTED / timeout

Every call goes through one connection-private session carrying this
connection's TLS configuration and credentials.
"""

from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type

import requests

from ..certificate.csr import generate_key_and_csr
from ..certificate.request import CertificateRequest, ImportRequest, RenewalRequest, RevocationRequest
from ..certificate.types import (
    ChainOption,
    CsrOrigin,
    EllipticCurve,
    KeyType,
    RevocationReason,
    SanType,
)
from ..errors import (
    CertificateRequestError,
    CertLifecycleError,
    ConfigurationError,
    LifecycleError,
    PolicyViolationError,
    RenewalError,
    ResetError,
    RevocationError,
    UnsupportedOperationError,
    ValidationError,
)
from ..logging import get_logger
from ..policy.document import CheckPolicyResponse, ServerPolicy
from ..policy.zone import (
    ATTRIBUTE_MANUAL_CSR,
    NON_ENROLLING_MANAGEMENT_TYPES,
    ZoneConfiguration,
    to_zone_configuration,
)
from ..utils.config import DEFAULT_CLIENT_ID, DEFAULT_SCOPE, ConnectorSettings
from ..utils.http import DEFAULT_TIMEOUT_SECONDS, BackendClient, HTTPResult, build_session
from ..utils.serialization import omit_empty
from .auth import TokenManager
from .resources import (
    X509_CERTIFICATE_CLASS,
    BrowseIdentitiesResponse,
    CertificateRenewResponse,
    CertificateRequestResponse,
    CertificateResetResponse,
    CertificateRevokeResponse,
    CertificateSearchEntry,
    CertificateSearchResponse,
    DNToGUIDResponse,
    IdentityEntry,
    ImportResponse,
    LogPostResponse,
    MetadataGetItemsResponse,
    MetadataGetResponse,
    MetadataSetResponse,
    PolicyAttributeResponse,
    UrlResource,
    ValidateIdentityResponse,
    decode,
    expect_status,
    get_certificate_dn,
    get_policy_dn,
)
from .retrieval import Backoff, CertificateRetrieval, RetrieveResult
from .tls import ClientCertificate, TLSConfig, TLSConfigAdapter, configure_tls

logger = get_logger(__name__)

REQUEST_ORIGIN = "certlifecycle-py"
DEFAULT_WORKLOAD = "Default"

# Identity types accepted by identity browse (user | security group | distribution group)
ALL_IDENTITY_TYPES = 1 | 2 | 8

# Web SDK result code for successful Config writes
CONFIG_RESULT_SUCCESS = 1

_KEY_ALGORITHMS = {
    KeyType.RSA: "RSA",
    KeyType.ECDSA: "ECC",
}

_CURVE_NAMES = {
    EllipticCurve.P256: "P256",
    EllipticCurve.P384: "P384",
    EllipticCurve.P521: "P521",
}


class LifecycleOperation(str, Enum):
    REQUEST = "request"
    RETRIEVE = "retrieve"
    RENEW = "renew"
    REVOKE = "revoke"
    RESET = "reset"
    IMPORT = "import"


class RevocationOutcome(str, Enum):
    """Non-error results of a revoke call."""
    REVOKED = "revoked"
    ALREADY_REVOKED = "already-revoked"


@dataclass
class LifecycleSession:
    """Per-call state of one lifecycle operation."""
    operation: LifecycleOperation
    object_path: str = ""
    outcome: str = ""


class Connector:
    """
    Backend connector bound to one zone, one set of credentials and one
    TLS configuration.

    Usage:
        connector = Connector("https://tpp.example.com", zone="DevOps\\Web",
                              access_token="...")
        req = CertificateRequest(subject=Subject(common_name="web.example.com"))
        connector.generate_request(req)
        connector.request_certificate(req)
        result = connector.retrieve_certificate(req)
    """

    def __init__(
        self,
        base_url: str,
        zone: str = "",
        tls_config: Optional[TLSConfig] = None,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        api_key: Optional[str] = None,
        client_id: str = DEFAULT_CLIENT_ID,
        scope: str = DEFAULT_SCOPE,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        poll_interval: float = 2.0,
        refresh_leeway: float = 60,
        retrieve_timeout: float = 0,
        session: Optional[requests.Session] = None,
    ):
        if not base_url:
            raise ConfigurationError("base URL is required", "base_url")

        self.zone = zone
        self.tls_config = tls_config or configure_tls()
        self.poll_interval = poll_interval
        self.retrieve_timeout = retrieve_timeout

        if session is None:
            session = build_session(
                adapter_factory=partial(TLSConfigAdapter, self.tls_config),
                verify=not self.tls_config.insecure_skip_verify,
            )
        self.client = BackendClient(base_url, session, timeout)
        self.tokens = TokenManager(
            self.client,
            client_id=client_id,
            scope=scope,
            access_token=access_token,
            refresh_token=refresh_token,
            api_key=api_key,
            refresh_leeway=refresh_leeway,
        )

    @classmethod
    def from_settings(cls, settings: ConnectorSettings, authenticate: bool = True) -> "Connector":
        """
        Build a connector from CL_* settings.

        With ``authenticate`` set and no token configured, a password grant
        (USERNAME/PASSWORD) or a client-certificate grant (CLIENT_P12) is
        performed immediately.

        Raises:
            ConfigurationError: when the settings report a critical problem
        """
        for issue in settings.validate_connection_config():
            if issue.startswith("CRITICAL"):
                raise ConfigurationError(issue)
            logger.warning(issue)

        client_certificate = None
        if settings.CLIENT_P12:
            client_certificate = ClientCertificate(settings.CLIENT_P12, settings.CLIENT_P12_PASSWORD)

        tls_config = configure_tls(
            client_certificate=client_certificate,
            trust_bundle=settings.TRUST_BUNDLE,
            insecure=settings.INSECURE,
        )
        connector = cls(
            settings.BASE_URL,
            zone=settings.ZONE,
            tls_config=tls_config,
            access_token=settings.ACCESS_TOKEN,
            refresh_token=settings.REFRESH_TOKEN,
            api_key=settings.API_KEY,
            client_id=settings.CLIENT_ID,
            scope=settings.SCOPE,
            timeout=settings.HTTP_TIMEOUT_SECONDS,
            poll_interval=settings.POLL_INTERVAL_SECONDS,
            retrieve_timeout=settings.RETRIEVE_TIMEOUT_SECONDS,
            refresh_leeway=settings.TOKEN_REFRESH_LEEWAY_SECONDS,
        )

        if authenticate and not (settings.ACCESS_TOKEN or settings.REFRESH_TOKEN or settings.API_KEY):
            if settings.USERNAME and settings.PASSWORD:
                connector.tokens.get_token_by_password(settings.USERNAME, settings.PASSWORD)
            elif tls_config.has_client_certificate:
                connector.tokens.get_token_by_certificate()
        return connector

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "Connector":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    # =========================================================================
    # Transport helpers
    # =========================================================================

    def post(self, resource: UrlResource, payload: Any) -> HTTPResult:
        return self.client.request("POST", resource.value, payload, headers=self.tokens.auth_headers())

    def get(self, resource: UrlResource, params: Optional[Dict[str, Any]] = None) -> HTTPResult:
        return self.client.request("GET", resource.value, params=params, headers=self.tokens.auth_headers())

    @contextmanager
    def _lifecycle(self, operation: LifecycleOperation, object_path: str = "") -> Iterator[LifecycleSession]:
        session = LifecycleSession(operation, object_path)
        logger.debug(f"Starting {operation.value}", extra={"object_path": object_path or None})
        yield session
        logger.info(
            f"Certificate {operation.value}: {session.outcome or 'done'}",
            extra={"object_path": session.object_path or None},
        )

    def _require_zone(self, zone: Optional[str]) -> str:
        zone = zone if zone is not None else self.zone
        if not zone:
            raise ConfigurationError("zone is not set", "zone")
        return zone

    # =========================================================================
    # Zone and policy
    # =========================================================================

    def read_server_policy(self, zone: Optional[str] = None) -> ServerPolicy:
        """Fetch the zone's policy document (certificate check-policy)."""
        zone = self._require_zone(zone)
        result = self.post(UrlResource.CERTIFICATE_POLICY, {"PolicyDN": get_policy_dn(zone)})
        expect_status(result, "read zone", (200,), get_policy_dn(zone))
        response = decode(CheckPolicyResponse, result, "read zone")
        if response.error:
            raise ConfigurationError(f"unable to read zone {zone!r}: {response.error}", "zone")
        return response.policy

    def read_zone_configuration(self, zone: Optional[str] = None) -> ZoneConfiguration:
        """
        Read and compile the zone policy.

        Raises:
            InvalidPolicyError: when the backend policy carries malformed
                key algorithm or curve identifiers
        """
        zone = self._require_zone(zone)
        zone_config = to_zone_configuration(self.read_server_policy(zone))
        manual_csr = self._read_manual_csr(zone)
        if manual_csr is not None:
            zone_config.custom_attribute_values[ATTRIBUTE_MANUAL_CSR] = manual_csr
        return zone_config

    def _read_manual_csr(self, zone: str) -> Optional[str]:
        # Zones without the attribute answer with a body Error
        try:
            values, _ = self.read_policy_attribute(zone, ATTRIBUTE_MANUAL_CSR)
        except LifecycleError as e:
            logger.debug(f"No {ATTRIBUTE_MANUAL_CSR!r} attribute on zone: {e.message}")
            return None
        return values[0] if values else None

    def read_policy_attribute(
        self,
        object_dn: str,
        attribute: str,
        class_name: str = X509_CERTIFICATE_CLASS,
    ) -> Tuple[List[str], bool]:
        """Return the values of a policy attribute and whether it is locked."""
        payload = {"ObjectDN": get_policy_dn(object_dn), "Class": class_name, "AttributeName": attribute}
        result = self.post(UrlResource.READ_POLICY, payload)
        expect_status(result, "read policy attribute", (200,), payload["ObjectDN"])
        response = decode(PolicyAttributeResponse, result, "read policy attribute")
        if response.error:
            raise LifecycleError(
                f"Unable to read {attribute!r}: {response.error}",
                code="CL_LIFECYCLE_POLICY_READ_FAILED",
                object_path=payload["ObjectDN"],
            )
        return response.values, response.locked

    def write_policy_attribute(
        self,
        object_dn: str,
        attribute: str,
        values: List[str],
        locked: bool = False,
        class_name: str = X509_CERTIFICATE_CLASS,
    ) -> None:
        payload = {
            "ObjectDN": get_policy_dn(object_dn),
            "Class": class_name,
            "AttributeName": attribute,
            "Values": list(values),
            "Locked": locked,
        }
        result = self.post(UrlResource.WRITE_POLICY, payload)
        expect_status(result, "write policy attribute", (200,), payload["ObjectDN"])
        response = decode(PolicyAttributeResponse, result, "write policy attribute")
        if response.error or response.result != CONFIG_RESULT_SUCCESS:
            raise LifecycleError(
                f"Unable to write {attribute!r}: {response.error or f'result {response.result}'}",
                code="CL_LIFECYCLE_POLICY_WRITE_FAILED",
                object_path=payload["ObjectDN"],
            )

    # =========================================================================
    # Request
    # =========================================================================

    def generate_request(self, req: CertificateRequest, zone_config: Optional[ZoneConfiguration] = None) -> None:
        """
        Prepare a request for submission: apply zone defaults, check the
        CSR origin against the zone and generate key + CSR when local.

        Raises:
            UnsupportedOperationError: ED25519 keys, or a zone that does not enroll
            PolicyViolationError: CSR origin forbidden, missing user CSR, or a
                locally generated request that violates the zone policy
        """
        if req.key_type is KeyType.ED25519 or req.key_curve is EllipticCurve.ED25519:
            raise UnsupportedOperationError("ED25519 keys are not supported by this backend")

        if zone_config is None:
            zone_config = self.read_zone_configuration()

        if zone_config.management_type in NON_ENROLLING_MANAGEMENT_TYPES:
            raise UnsupportedOperationError(
                f"zone management type {zone_config.management_type!r} does not allow enrollment"
            )

        zone_config.update_certificate_request(req)

        if req.csr_origin is CsrOrigin.LOCAL_GENERATED:
            if not zone_config.manual_csr_allowed:
                raise PolicyViolationError("local CSR generation is not allowed by the zone")
            zone_config.policy.validate_request(req)
            generate_key_and_csr(req)
        elif req.csr_origin is CsrOrigin.USER_PROVIDED:
            if not zone_config.manual_csr_allowed:
                raise PolicyViolationError("user provided CSRs are not allowed by the zone")
            if not req.get_csr():
                raise PolicyViolationError("CSR was supposed to be provided by the user, but it is empty")
        # Service generated: the backend builds the key and CSR

    def request_certificate(self, req: CertificateRequest) -> str:
        """
        Submit a certificate request.

        Returns:
            The backend object path, also stored as ``req.pickup_id``
        """
        zone = self._require_zone(None)
        if req.csr_origin is not CsrOrigin.SERVICE_GENERATED and not req.get_csr():
            raise PolicyViolationError("request has no CSR; call generate_request first")

        payload = self._request_payload(req, zone)
        object_path = get_certificate_dn(zone, req.friendly_name, req.subject.common_name)

        with self._lifecycle(LifecycleOperation.REQUEST, object_path) as session:
            result = self.post(UrlResource.CERTIFICATE_REQUEST, payload)
            expect_status(result, "certificate request", (200, 201), object_path)
            response = decode(CertificateRequestResponse, result, "certificate request")
            if response.error:
                raise CertificateRequestError(response.error, object_path)
            req.pickup_id = response.certificate_dn or object_path
            session.object_path = req.pickup_id
            session.outcome = "requested"
        return req.pickup_id

    def _request_payload(self, req: CertificateRequest, zone: str) -> Dict[str, Any]:
        subject = req.subject
        payload: Dict[str, Any] = {
            "PolicyDN": get_policy_dn(zone),
            "CADN": req.ca_dn,
            "ObjectName": req.friendly_name or subject.common_name,
            "Origin": REQUEST_ORIGIN,
            "DisableAutomaticRenewal": req.disable_automatic_renewal,
        }

        if req.csr_origin is CsrOrigin.SERVICE_GENERATED:
            payload.update({
                "Subject": subject.common_name,
                "OrganizationalUnit": subject.organizational_units[0] if subject.organizational_units else "",
                "Organization": subject.organization,
                "City": subject.locality,
                "State": subject.province,
                "Country": subject.country,
                "SubjectAltNames": _san_items(req),
            })
            payload.update(_key_parameters(req))
        else:
            payload["PKCS10"] = req.get_csr().decode()

        payload["CustomFields"] = [{"Name": f.name, "Values": list(f.values)} for f in req.custom_fields]
        payload["CASpecificAttributes"] = [{"Name": k, "Value": v} for k, v in req.ca_attributes.items()]
        payload["Contacts"] = [{"PrefixedUniversal": c} for c in self._resolve_contacts(req.contacts)]
        if req.location is not None:
            payload["Devices"] = [_device(req, zone)]
        if req.timeout > 0:
            payload["WorkToDoTimeout"] = str(int(req.timeout))

        return omit_empty(payload)

    def _resolve_contacts(self, contacts: List[str]) -> List[str]:
        """Map contact names to prefixed universal identities; prefixed values pass through."""
        resolved = []
        for contact in contacts:
            if ":" in contact:
                resolved.append(contact)
                continue
            matches = [i for i in self.browse_identities(contact) if i.name.lower() == contact.lower()]
            if not matches:
                raise CertificateRequestError(f"contact {contact!r} not found")
            resolved.append(matches[0].prefixed_universal)
        return resolved

    # =========================================================================
    # Retrieve
    # =========================================================================

    def start_retrieval(
        self,
        object_path: str,
        chain_option: ChainOption = ChainOption.ROOT_LAST,
        key_password: Optional[str] = None,
        **kwargs,
    ) -> CertificateRetrieval:
        """Create a retrieval state object; ``kwargs`` may inject clock/sleep."""
        return CertificateRetrieval(self, object_path, chain_option, key_password, **kwargs)

    def retrieve_certificate(self, req: CertificateRequest, backoff: Optional[Backoff] = None) -> RetrieveResult:
        """
        Retrieve the certificate for ``req.pickup_id`` (or ``req.thumbprint``).

        ``req.timeout`` (or the connector's ``retrieve_timeout`` when the
        request has none) > 0 polls until issued, rejected or timed out; 0
        performs one attempt and may return PENDING.
        """
        object_path = req.pickup_id
        if not object_path:
            if not req.thumbprint:
                raise ValidationError("pickup id or thumbprint is required", code="CL_VALIDATION_FAILED")
            object_path = self._resolve_thumbprint(req.thumbprint, CertificateRequestError)

        key_password = req.key_password if req.csr_origin is CsrOrigin.SERVICE_GENERATED else None

        with self._lifecycle(LifecycleOperation.RETRIEVE, object_path) as session:
            timeout = req.timeout or self.retrieve_timeout
            if timeout > 0:
                self.tokens.ensure_fresh(min_validity=timeout)
            retrieval = self.start_retrieval(object_path, req.chain_option, key_password)
            result = retrieval.wait(timeout, self.poll_interval if backoff is None else backoff)
            session.outcome = result.status.value

        if result.pem is not None and result.pem.private_key is None and req.private_key_pem:
            result.pem.private_key = req.private_key_pem.decode()
        return result

    # =========================================================================
    # Revoke / Renew / Reset
    # =========================================================================

    def revoke_certificate(self, revocation: RevocationRequest) -> RevocationOutcome:
        """
        Revoke by object path or thumbprint.

        Returns:
            REVOKED or ALREADY_REVOKED

        Raises:
            RevocationError: when the backend reports failure
        """
        if not revocation.certificate_dn and not revocation.thumbprint:
            raise ValidationError("certificate DN or thumbprint is required", code="CL_VALIDATION_FAILED")

        payload = omit_empty({
            "CertificateDN": revocation.certificate_dn,
            "Thumbprint": revocation.thumbprint if not revocation.certificate_dn else "",
            "Reason": int(RevocationReason.from_string(revocation.reason)),
            "Comments": revocation.comments,
            "Disable": revocation.disable,
        })
        object_path = revocation.certificate_dn or revocation.thumbprint

        with self._lifecycle(LifecycleOperation.REVOKE, object_path) as session:
            result = self.post(UrlResource.CERTIFICATE_REVOKE, payload)
            expect_status(result, "certificate revocation", (200, 202), object_path)
            response = decode(CertificateRevokeResponse, result, "certificate revocation")
            if not response.success:
                raise RevocationError(response.error or "backend reported failure", object_path)
            outcome = RevocationOutcome.REVOKED if response.requested else RevocationOutcome.ALREADY_REVOKED
            session.outcome = outcome.value
        return outcome

    def renew_certificate(self, renewal: RenewalRequest) -> str:
        """
        Renew an issued certificate, optionally with a new CSR.

        Only HTTP 200 is accepted, whatever the body says.
        """
        object_path = renewal.certificate_dn
        if not object_path:
            if not renewal.thumbprint:
                raise ValidationError("certificate DN or thumbprint is required", code="CL_VALIDATION_FAILED")
            object_path = self._resolve_thumbprint(renewal.thumbprint, RenewalError)

        payload = {"CertificateDN": object_path}
        if renewal.csr:
            payload["PKCS10"] = renewal.csr.decode() if isinstance(renewal.csr, bytes) else renewal.csr

        with self._lifecycle(LifecycleOperation.RENEW, object_path) as session:
            result = self.post(UrlResource.CERTIFICATE_RENEW, payload)
            expect_status(result, "certificate renewal", (200,), object_path)
            response = decode(CertificateRenewResponse, result, "certificate renewal")
            if not response.success:
                raise RenewalError(response.error or "backend reported failure", object_path)
            session.outcome = "renewal requested"
        return object_path

    def reset_certificate(self, object_path: str, restart: bool = True) -> None:
        """Clear a stuck work item; ``restart`` resubmits the request."""
        payload = omit_empty({"CertificateDN": object_path, "Restart": restart})
        with self._lifecycle(LifecycleOperation.RESET, object_path) as session:
            result = self.post(UrlResource.CERTIFICATE_RESET, payload)
            expect_status(result, "certificate reset", (200,), object_path)
            response = decode(CertificateResetResponse, result, "certificate reset")
            if response.error:
                raise ResetError(response.error, object_path)
            session.outcome = "reset"

    # =========================================================================
    # Import and search
    # =========================================================================

    def import_certificate(self, request: ImportRequest) -> ImportResponse:
        payload = omit_empty({
            "PolicyDN": get_policy_dn(request.policy_dn),
            "ObjectName": request.object_name,
            "CertificateData": request.certificate_pem,
            "PrivateKeyData": request.private_key_pem,
            "Password": request.password,
            "Reconcile": request.reconcile,
        })
        with self._lifecycle(LifecycleOperation.IMPORT, payload["PolicyDN"]) as session:
            result = self.post(UrlResource.CERTIFICATE_IMPORT, payload)
            expect_status(result, "certificate import", (200,), payload["PolicyDN"])
            response = decode(ImportResponse, result, "certificate import")
            session.object_path = response.certificate_dn or session.object_path
            session.outcome = "imported"
        return response

    def search_by_thumbprint(self, thumbprint: str) -> List[CertificateSearchEntry]:
        """Find certificates by SHA-1 thumbprint."""
        result = self.get(UrlResource.CERTIFICATE_SEARCH, params={"Thumbprint": _normalize_thumbprint(thumbprint)})
        expect_status(result, "certificate search", (200,))
        return decode(CertificateSearchResponse, result, "certificate search").certificates

    def _resolve_thumbprint(self, thumbprint: str, error: Type[LifecycleError]) -> str:
        found = self.search_by_thumbprint(thumbprint)
        if not found:
            raise error(f"no certificate with thumbprint {thumbprint}")
        if len(found) > 1:
            raise error(f"more than one certificate with thumbprint {thumbprint}")
        return found[0].dn

    # =========================================================================
    # Identities
    # =========================================================================

    def browse_identities(self, filter: str, limit: int = 2, identity_type: int = ALL_IDENTITY_TYPES) -> List[IdentityEntry]:
        payload = {"Filter": filter, "Limit": limit, "IdentityType": identity_type}
        result = self.post(UrlResource.BROWSE_IDENTITIES, payload)
        expect_status(result, "browse identities", (200, 202))
        return decode(BrowseIdentitiesResponse, result, "browse identities").identities

    def validate_identity(self, prefixed_universal: str) -> IdentityEntry:
        payload = {"ID": {"PrefixedUniversal": prefixed_universal}}
        result = self.post(UrlResource.VALIDATE_IDENTITY, payload)
        expect_status(result, "validate identity", (200, 202))
        return decode(ValidateIdentityResponse, result, "validate identity").id

    # =========================================================================
    # Metadata, config lookups, logging
    # =========================================================================

    def get_metadata(self, object_dn: str) -> MetadataGetResponse:
        """Custom field values set on an object."""
        result = self.post(UrlResource.METADATA_GET, {"DN": object_dn})
        expect_status(result, "get metadata", (200,), object_dn)
        return decode(MetadataGetResponse, result, "get metadata")

    def get_metadata_items(self, object_dn: str) -> MetadataGetItemsResponse:
        """Custom field definitions applicable to an object."""
        result = self.post(UrlResource.METADATA_GET_ITEMS, {"DN": object_dn})
        expect_status(result, "get metadata items", (200,), object_dn)
        return decode(MetadataGetItemsResponse, result, "get metadata items")

    def set_metadata(self, object_dn: str, values: Dict[str, List[str]], keep_existing: bool = True) -> None:
        """Set custom field values, keyed by custom field GUID."""
        payload = {
            "DN": object_dn,
            "GuidData": [{"ItemGuid": guid, "List": list(v)} for guid, v in values.items()],
            "KeepExisting": keep_existing,
        }
        result = self.post(UrlResource.METADATA_SET, payload)
        expect_status(result, "set metadata", (200,), object_dn)
        response = decode(MetadataSetResponse, result, "set metadata")
        if response.locked:
            raise LifecycleError(
                "Metadata is locked by policy",
                code="CL_LIFECYCLE_METADATA_LOCKED",
                object_path=object_dn,
            )
        if response.result != 0:
            raise LifecycleError(
                f"Setting metadata failed with result {response.result}",
                code="CL_LIFECYCLE_METADATA_FAILED",
                object_path=object_dn,
            )

    def dn_to_guid(self, object_dn: str) -> DNToGUIDResponse:
        result = self.post(UrlResource.DN_TO_GUID, {"ObjectDN": object_dn})
        expect_status(result, "DN to GUID", (200,), object_dn)
        return decode(DNToGUIDResponse, result, "DN to GUID")

    def log_event(
        self,
        event_id: str,
        component: str,
        text1: str = "",
        text2: str = "",
        value1: str = "",
        value2: str = "",
    ) -> int:
        """Write an event to the backend log; returns the backend LogResult."""
        payload = omit_empty({
            "ID": event_id,
            "Component": component,
            "Text1": text1,
            "Text2": text2,
            "Value1": value1,
            "Value2": value2,
        })
        result = self.post(UrlResource.LOG, payload)
        expect_status(result, "log event", (200,))
        response = decode(LogPostResponse, result, "log event")
        if response.log_result != 0:
            raise CertLifecycleError(
                f"Backend rejected log event with result {response.log_result}",
                code="CL_LOG_REJECTED",
            )
        return response.log_result

    def ping(self) -> str:
        """Return the backend version; fails with a typed error when unreachable."""
        result = self.get(UrlResource.SYSTEM_STATUS_VERSION)
        expect_status(result, "ping", (200,))
        data = result.json("ping")
        if isinstance(data, dict):
            return str(data.get("Version", ""))
        return "" if data is None else str(data)


# =============================================================================
# Payload helpers
# =============================================================================


def _san_items(req: CertificateRequest) -> List[Dict[str, Any]]:
    items = []
    items.extend({"Type": int(SanType.DNS), "Name": n} for n in req.dns_names)
    items.extend({"Type": int(SanType.IP), "Name": n} for n in req.ip_addresses)
    items.extend({"Type": int(SanType.EMAIL), "Name": n} for n in req.email_addresses)
    items.extend({"Type": int(SanType.URI), "Name": n} for n in req.uris)
    items.extend({"Type": int(SanType.UPN), "Name": n} for n in req.upns)
    return items


def _key_parameters(req: CertificateRequest) -> Dict[str, Any]:
    key_type = req.key_type or KeyType.RSA
    if key_type is KeyType.RSA:
        return {"KeyAlgorithm": _KEY_ALGORITHMS[KeyType.RSA], "KeyBitSize": req.key_length}
    curve = _CURVE_NAMES.get(req.key_curve) if req.key_curve else ""
    return {"KeyAlgorithm": _KEY_ALGORITHMS[KeyType.ECDSA], "EllipticCurve": curve}


def _device(req: CertificateRequest, zone: str) -> Dict[str, Any]:
    location = req.location
    host, _, port = location.tls_address.partition(":")
    application = omit_empty({
        "ObjectName": location.workload or DEFAULT_WORKLOAD,
        "Class": "Basic",
        "DriverName": "appbasic",
        "ValidationHost": host,
        "ValidationPort": port,
    })
    return {
        "PolicyDN": get_policy_dn(location.zone or zone),
        "ObjectName": location.instance,
        "Host": location.instance,
        "Applications": [application],
    }


def _normalize_thumbprint(thumbprint: str) -> str:
    return thumbprint.replace(":", "").replace(" ", "").upper()
