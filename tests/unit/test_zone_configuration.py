import pytest

from certlifecycle.certificate import CertificateRequest, KeyType, Subject
from certlifecycle.certificate.types import EllipticCurve
from certlifecycle.errors import DecodeError
from certlifecycle.policy import ServerPolicy, to_zone_configuration
from certlifecycle.policy.document import CheckPolicyResponse
from certlifecycle.policy.zone import ATTRIBUTE_MANUAL_CSR

POLICY = {
    "CertificateAuthority": {"Locked": False, "Value": "\\VED\\Policy\\CA Templates\\Issuing"},
    "CsrGeneration": {"Locked": False, "Value": "UserProvided"},
    "KeyGeneration": {"Locked": False, "Value": "Central"},
    "KeyPair": {
        "KeyAlgorithm": {"Locked": False, "Value": "RSA"},
        "KeySize": {"Locked": False, "Value": 3072},
        "EllipticCurve": None,
    },
    "ManagementType": {"Locked": False, "Value": "Enrollment"},
    "PrivateKeyReuseAllowed": False,
    "SubjAltNameDnsAllowed": True,
    "SubjAltNameEmailAllowed": False,
    "SubjAltNameIpAllowed": True,
    "SubjAltNameUpnAllowed": False,
    "SubjAltNameUriAllowed": False,
    "Subject": {
        "City": {"Locked": False, "Value": "Salt Lake City"},
        "Country": {"Locked": True, "Value": "US"},
        "Organization": {"Locked": False, "Value": "Acme"},
        "OrganizationalUnit": {"Locked": False, "Values": ["Web", "Ops"]},
        "State": {"Locked": False, "Value": "Utah"},
    },
    "UniqueSubjectEnforced": False,
    "WhitelistedDomains": [],
    "WildcardsAllowed": True,
}


def test_policy_document_parses_nulls_as_defaults():
    policy = ServerPolicy.from_wire(POLICY)
    assert policy.key_pair.elliptic_curve.value == ""
    assert policy.subject.organizational_unit.values == ["Web", "Ops"]
    assert policy.whitelisted_domains == []


def test_policy_document_from_raw_json():
    envelope = CheckPolicyResponse.model_validate({"Error": None, "Policy": POLICY})
    assert envelope.error == ""
    assert envelope.policy.subject.country.locked


def test_malformed_policy_document_is_decode_error():
    with pytest.raises(DecodeError):
        ServerPolicy.from_wire(b"{not json")
    with pytest.raises(DecodeError):
        ServerPolicy.from_wire({"WhitelistedDomains": "example.com"})


def test_zone_configuration_defaults():
    zone = to_zone_configuration(ServerPolicy.from_wire(POLICY))
    assert zone.country == "US"
    assert zone.organization == "Acme"
    assert zone.organizational_units == ["Web", "Ops"]
    assert zone.province == "Utah"
    assert zone.locality == "Salt Lake City"
    assert zone.key_configuration.key_type is KeyType.RSA
    assert zone.key_configuration.key_sizes == (3072,)
    assert zone.management_type == "Enrollment"
    assert zone.manual_csr_allowed


def test_update_fills_only_empty_fields():
    zone = to_zone_configuration(ServerPolicy.from_wire(POLICY))
    req = CertificateRequest(subject=Subject(common_name="web.example.com", organization="Caller Org"))
    zone.update_certificate_request(req)

    assert req.subject.organization == "Caller Org"
    assert req.subject.organizational_units == ["Web", "Ops"]
    assert req.subject.country == "US"
    assert req.subject.province == "Utah"
    assert req.subject.locality == "Salt Lake City"
    assert req.key_type is KeyType.RSA
    assert req.key_length == 3072


def test_update_keeps_caller_key_type():
    zone = to_zone_configuration(ServerPolicy.from_wire(POLICY))
    req = CertificateRequest(key_type=KeyType.ECDSA, key_curve=EllipticCurve.P384)
    zone.update_certificate_request(req)
    assert req.key_type is KeyType.ECDSA
    assert req.key_curve is EllipticCurve.P384


def test_rsa_key_length_defaults_to_2048():
    zone = to_zone_configuration(ServerPolicy.from_wire({}))
    assert zone.key_configuration is None

    req = CertificateRequest()
    zone.update_certificate_request(req)
    assert req.key_length == 2048


def test_unknown_algorithm_leaves_key_configuration_unset():
    zone = to_zone_configuration(ServerPolicy.from_wire({
        "KeyPair": {"KeyAlgorithm": {"Locked": False, "Value": "quantum"}},
    }))
    assert zone.key_configuration is None


def test_manual_csr_flag_from_policy_and_attribute():
    locked = dict(POLICY, CsrGeneration={"Locked": True, "Value": "ServiceGenerated"})
    assert not to_zone_configuration(ServerPolicy.from_wire(locked)).manual_csr_allowed

    zone = to_zone_configuration(ServerPolicy.from_wire(POLICY))
    zone.custom_attribute_values[ATTRIBUTE_MANUAL_CSR] = "0"
    assert not zone.manual_csr_allowed
