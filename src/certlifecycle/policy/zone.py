"""
Zone configuration: request defaults derived from a zone's policy document.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..certificate.request import CertificateRequest
from ..certificate.types import DEFAULT_RSA_KEY_SIZE, EllipticCurve, KeyType
from ..errors import InvalidPolicyError
from .compiler import AllowedKeyConfiguration, CompiledPolicy, compile_policy
from .document import ServerPolicy

ATTRIBUTE_MANAGEMENT_TYPE = "Management Type"
ATTRIBUTE_MANUAL_CSR = "Manual Csr"

# Management types under which the backend will not enroll certificates
NON_ENROLLING_MANAGEMENT_TYPES = frozenset({"Monitoring", "Unassigned"})


@dataclass
class ZoneConfiguration:
    """Defaults used to pre-fill a CertificateRequest, plus the compiled policy."""
    country: str = ""
    organization: str = ""
    organizational_units: List[str] = field(default_factory=list)
    province: str = ""
    locality: str = ""
    key_configuration: Optional[AllowedKeyConfiguration] = None
    custom_attribute_values: Dict[str, str] = field(default_factory=dict)
    policy: CompiledPolicy = field(default_factory=CompiledPolicy)

    @property
    def management_type(self) -> str:
        return self.custom_attribute_values.get(ATTRIBUTE_MANAGEMENT_TYPE, "")

    @property
    def manual_csr_allowed(self) -> bool:
        if self.custom_attribute_values.get(ATTRIBUTE_MANUAL_CSR) == "0":
            return False
        return self.policy.manual_csr_allowed

    def update_certificate_request(self, req: CertificateRequest) -> None:
        """Fill empty request fields from zone defaults, in place."""
        subject = req.subject
        if not subject.organization and self.organization:
            subject.organization = self.organization
        if not subject.organizational_units and self.organizational_units:
            subject.organizational_units = list(self.organizational_units)
        if not subject.country and self.country:
            subject.country = self.country
        if not subject.province and self.province:
            subject.province = self.province
        if not subject.locality and self.locality:
            subject.locality = self.locality

        key = self.key_configuration
        if key is not None:
            if req.key_type is None:
                req.key_type = key.key_type
            if key.key_sizes and req.key_length == 0 and req.key_type is KeyType.RSA:
                req.key_length = key.key_sizes[0]
            if key.key_curves and req.key_curve is None and req.key_type.is_elliptic:
                req.key_curve = key.key_curves[0]
        if (req.key_type is None or req.key_type is KeyType.RSA) and req.key_length == 0:
            req.key_length = DEFAULT_RSA_KEY_SIZE


def zone_key_configuration(policy: ServerPolicy) -> Optional[AllowedKeyConfiguration]:
    """Default key configuration; None when the algorithm is unset or unknown."""
    key_pair = policy.key_pair
    try:
        key_type = KeyType.parse(key_pair.key_algorithm.value, key_pair.elliptic_curve.value)
    except InvalidPolicyError:
        return None

    sizes = (key_pair.key_size.value,) if key_pair.key_size.value else ()
    curves = ()
    if key_pair.elliptic_curve.value:
        try:
            curves = (EllipticCurve.parse(key_pair.elliptic_curve.value),)
        except InvalidPolicyError:
            curves = ()
    return AllowedKeyConfiguration(key_type, key_sizes=sizes, key_curves=curves)


def to_zone_configuration(policy: ServerPolicy) -> ZoneConfiguration:
    """
    Derive the zone configuration from a policy document.

    Raises:
        InvalidPolicyError: when the policy cannot be compiled
    """
    subject = policy.subject
    return ZoneConfiguration(
        country=subject.country.value,
        organization=subject.organization.value,
        organizational_units=list(subject.organizational_unit.values),
        province=subject.state.value,
        locality=subject.city.value,
        key_configuration=zone_key_configuration(policy),
        custom_attribute_values={ATTRIBUTE_MANAGEMENT_TYPE: policy.management_type.value},
        policy=compile_policy(policy),
    )
