"""
Pytest configuration and fixtures.

This file ensures proper path setup for imports.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID

# Add src directory to Python path
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))


def _issue(subject_cn, public_key, issuer_cn, issuer_key, is_ca):
    now = datetime.now(timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, subject_cn)]))
        .issuer_name(x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, issuer_cn)]))
        .public_key(public_key)
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
        .sign(issuer_key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def cert_chain():
    """Root -> intermediate -> leaf chain with EC keys."""
    root_key = ec.generate_private_key(ec.SECP256R1())
    intermediate_key = ec.generate_private_key(ec.SECP256R1())
    leaf_key = ec.generate_private_key(ec.SECP256R1())

    root = _issue("Test Root CA", root_key.public_key(), "Test Root CA", root_key, True)
    intermediate = _issue("Test Issuing CA", intermediate_key.public_key(), "Test Root CA", root_key, True)
    leaf = _issue("web.example.com", leaf_key.public_key(), "Test Issuing CA", intermediate_key, False)

    return {
        "root": root,
        "intermediate": intermediate,
        "leaf": leaf,
        "leaf_key": leaf_key,
    }


def pem(cert) -> str:
    return cert.public_bytes(serialization.Encoding.PEM).decode()


@pytest.fixture(scope="session")
def chain_pem(cert_chain):
    """Leaf, intermediate and root PEM strings."""
    return pem(cert_chain["leaf"]), pem(cert_chain["intermediate"]), pem(cert_chain["root"])
