"""
Local key pair and CSR generation.

Used when a request's CSR origin is LOCAL_GENERATED. Thin wrapper over the
``cryptography`` primitives; the resulting PEM bytes are stored on the request.
"""

import ipaddress
from typing import Optional, Union

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa
from cryptography.x509.oid import NameOID

from ..errors import UnsupportedOperationError
from ..logging import get_logger
from .request import CertificateRequest
from .types import DEFAULT_CURVE, DEFAULT_RSA_KEY_SIZE, EllipticCurve, KeyType

logger = get_logger(__name__)

PrivateKey = Union[rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey, ed25519.Ed25519PrivateKey]

_CURVES = {
    EllipticCurve.P256: ec.SECP256R1,
    EllipticCurve.P384: ec.SECP384R1,
    EllipticCurve.P521: ec.SECP521R1,
}


def generate_private_key(req: CertificateRequest) -> PrivateKey:
    """Generate a private key matching the request's key parameters."""
    key_type = req.key_type or KeyType.RSA

    if key_type is KeyType.RSA:
        key_size = req.key_length or DEFAULT_RSA_KEY_SIZE
        return rsa.generate_private_key(public_exponent=65537, key_size=key_size)

    curve = req.key_curve or DEFAULT_CURVE
    if key_type is KeyType.ED25519 or curve is EllipticCurve.ED25519:
        return ed25519.Ed25519PrivateKey.generate()
    return ec.generate_private_key(_CURVES[curve]())


def build_csr(req: CertificateRequest, private_key: PrivateKey) -> bytes:
    """Build and sign a PEM CSR from the request subject and SANs."""
    attributes = []
    subject = req.subject
    if subject.common_name:
        attributes.append(x509.NameAttribute(NameOID.COMMON_NAME, subject.common_name))
    if subject.organization:
        attributes.append(x509.NameAttribute(NameOID.ORGANIZATION_NAME, subject.organization))
    for ou in subject.organizational_units:
        attributes.append(x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, ou))
    if subject.locality:
        attributes.append(x509.NameAttribute(NameOID.LOCALITY_NAME, subject.locality))
    if subject.province:
        attributes.append(x509.NameAttribute(NameOID.STATE_OR_PROVINCE_NAME, subject.province))
    if subject.country:
        attributes.append(x509.NameAttribute(NameOID.COUNTRY_NAME, subject.country))

    builder = x509.CertificateSigningRequestBuilder().subject_name(x509.Name(attributes))

    names = []
    names.extend(x509.DNSName(name) for name in req.dns_names)
    names.extend(x509.IPAddress(ipaddress.ip_address(ip)) for ip in req.ip_addresses)
    names.extend(x509.RFC822Name(email) for email in req.email_addresses)
    names.extend(x509.UniformResourceIdentifier(uri) for uri in req.uris)
    if names:
        builder = builder.add_extension(x509.SubjectAlternativeName(names), critical=False)

    algorithm: Optional[hashes.HashAlgorithm] = hashes.SHA256()
    if isinstance(private_key, ed25519.Ed25519PrivateKey):
        algorithm = None

    csr = builder.sign(private_key, algorithm)
    return csr.public_bytes(serialization.Encoding.PEM)


def generate_key_and_csr(req: CertificateRequest) -> None:
    """Generate a key pair and CSR and store both on the request."""
    if req.upns:
        raise UnsupportedOperationError("UPN subject alternative names require a service generated CSR")

    private_key = generate_private_key(req)
    if req.key_password:
        encryption = serialization.BestAvailableEncryption(req.key_password.encode())
    else:
        encryption = serialization.NoEncryption()
    req.private_key_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encryption,
    )
    req.set_csr(build_csr(req, private_key))
    logger.debug(f"Generated {(req.key_type or KeyType.RSA).value} key and CSR for {req.subject.common_name!r}")
