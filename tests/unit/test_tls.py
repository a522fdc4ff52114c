import logging
import ssl
from dataclasses import FrozenInstanceError

import pytest
from cryptography.hazmat.primitives.serialization import BestAvailableEncryption, pkcs12

from certlifecycle.errors import ConfigurationError
from certlifecycle.tpp import Connector
from certlifecycle.tpp.tls import (
    ClientCertificate,
    Renegotiation,
    TLSConfig,
    TLSConfigAdapter,
    configure_tls,
    load_trust_bundle,
)


@pytest.fixture(scope="module")
def p12_bundle(cert_chain):
    return pkcs12.serialize_key_and_certificates(
        b"client",
        cert_chain["leaf_key"],
        cert_chain["leaf"],
        [cert_chain["intermediate"]],
        BestAvailableEncryption(b"s3cret"),
    )


def test_valid_bundle_attaches_chain_and_roots(p12_bundle, chain_pem):
    _, _, root_pem = chain_pem
    config = configure_tls(
        client_certificate=ClientCertificate(p12_bundle, "s3cret"),
        trust_bundle=root_pem,
    )

    assert config.renegotiation is Renegotiation.FREELY
    assert len(config.certificates) == 2
    assert config.has_client_certificate
    assert config.root_cas
    assert not config.insecure_skip_verify


def test_wrong_password_degrades_to_no_client_certificate(p12_bundle, caplog):
    with caplog.at_level(logging.WARNING, logger="certlifecycle"):
        config = configure_tls(client_certificate=ClientCertificate(p12_bundle, "wrong"))

    assert config.certificates == ()
    assert not config.has_client_certificate
    assert config.root_cas is None
    assert any("unable to read PKCS#12 bundle" in r.getMessage() for r in caplog.records)


def test_unreadable_bundle_path_degrades(tmp_path, caplog):
    with caplog.at_level(logging.WARNING, logger="certlifecycle"):
        config = configure_tls(client_certificate=ClientCertificate(tmp_path / "missing.p12", "x"))
    assert not config.has_client_certificate
    assert caplog.records


def test_bundle_from_file(tmp_path, p12_bundle):
    path = tmp_path / "client.p12"
    path.write_bytes(p12_bundle)
    config = configure_tls(client_certificate=ClientCertificate(str(path), "s3cret"))
    assert config.has_client_certificate


def test_insecure_ignores_trust_bundle(chain_pem):
    config = configure_tls(trust_bundle=chain_pem[2], insecure=True)
    assert config.insecure_skip_verify
    assert config.root_cas is None
    assert config.renegotiation is Renegotiation.FREELY


def test_trust_bundle_from_path(tmp_path, chain_pem):
    path = tmp_path / "roots.pem"
    path.write_text(chain_pem[2] + chain_pem[1])
    assert len(load_trust_bundle(str(path))) == 2
    assert len(load_trust_bundle(path)) == 2


def test_ssl_context_modes(p12_bundle, chain_pem):
    insecure = configure_tls(insecure=True).build_ssl_context()
    assert insecure.verify_mode == ssl.CERT_NONE
    assert not insecure.check_hostname

    secure = configure_tls(
        client_certificate=ClientCertificate(p12_bundle, "s3cret"),
        trust_bundle=chain_pem[2],
    ).build_ssl_context()
    assert secure.verify_mode == ssl.CERT_REQUIRED
    assert secure.minimum_version == ssl.TLSVersion.TLSv1_2


def test_adapter_pins_context_on_pool():
    config = configure_tls(insecure=True)
    adapter = TLSConfigAdapter(config)
    assert adapter.poolmanager.connection_pool_kw["ssl_context"] is adapter._ssl_context


def test_tls_config_is_per_connection(p12_bundle):
    first = Connector("https://a.example.com", tls_config=configure_tls(insecure=True))
    second = Connector(
        "https://b.example.com",
        tls_config=configure_tls(client_certificate=ClientCertificate(p12_bundle, "s3cret")),
    )

    first_adapter = first.client.session.get_adapter("https://a.example.com/")
    second_adapter = second.client.session.get_adapter("https://b.example.com/")

    assert first_adapter is not second_adapter
    assert not first_adapter.tls_config.has_client_certificate
    assert second_adapter.tls_config.has_client_certificate
    assert first.client.session.verify is False
    assert second.client.session.verify is True


def test_tls_config_is_immutable():
    config = TLSConfig()
    with pytest.raises(FrozenInstanceError):
        config.insecure_skip_verify = True


@pytest.mark.parametrize(
    "bundle",
    [
        b"-----BEGIN CERTIFICATE-----\nnotbase64\n-----END CERTIFICATE-----\n",
        b"no certificates here",
    ],
)
def test_malformed_trust_bundle_is_configuration_error(bundle):
    with pytest.raises(ConfigurationError) as exc:
        configure_tls(trust_bundle=bundle)
    assert exc.value.details == {"key": "trust_bundle"}


def test_missing_trust_bundle_file_is_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError):
        configure_tls(trust_bundle=str(tmp_path / "roots.pem"))


@pytest.mark.skipif(not hasattr(ssl, "OP_NO_RENEGOTIATION"), reason="OpenSSL without renegotiation control")
def test_renegotiation_option_follows_config():
    freely = configure_tls(insecure=True).build_ssl_context()
    never = TLSConfig(insecure_skip_verify=True).build_ssl_context()

    assert not freely.options & ssl.OP_NO_RENEGOTIATION
    assert never.options & ssl.OP_NO_RENEGOTIATION
