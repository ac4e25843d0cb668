"""Trust hierarchy generation for the federation control plane.

One self-signed CA per bootstrap run, plus three leaves signed by it:
the API server's serving certificate and client certificates for the
controller manager and the admin user.
"""

from __future__ import annotations

import ipaddress
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey
from cryptography.x509.oid import ExtendedKeyUsageOID, NameOID

from ..shared.logging import get_logger
from .errors import CertificateError

logger = get_logger(__name__)

APISERVER_CN = "federation-apiserver"
CONTROLLER_MANAGER_CN = "federation-controller-manager"
ADMIN_CN = "admin"
HOST_CLUSTER_LOCAL_DNS_ZONE = "cluster.local."

RSA_KEY_SIZE = 2048
CA_VALIDITY = timedelta(days=365 * 10)
LEAF_VALIDITY = timedelta(days=365)


@dataclass
class KeyPair:
    """A private key and the certificate issued for it."""

    key: RSAPrivateKey
    cert: x509.Certificate

    @property
    def cert_pem(self) -> bytes:
        return self.cert.public_bytes(serialization.Encoding.PEM)

    @property
    def key_pem(self) -> bytes:
        # PKCS#1 "RSA PRIVATE KEY", which is what kube components expect
        return self.key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.TraditionalOpenSSL,
            encryption_algorithm=serialization.NoEncryption(),
        )


@dataclass
class TrustHierarchy:
    """CA plus the leaves issued for one federation."""

    ca: KeyPair
    server: KeyPair
    controller_manager: KeyPair
    admin: KeyPair

    def leaves(self) -> dict[str, KeyPair]:
        return {
            "server": self.server,
            "controller_manager": self.controller_manager,
            "admin": self.admin,
        }


def generate_private_key(key_size: int = RSA_KEY_SIZE) -> RSAPrivateKey:
    """Generate RSA private key with specified size."""
    return rsa.generate_private_key(public_exponent=65537, key_size=key_size)


def generate_serial_number() -> int:
    """Random 128-bit serial number."""
    return uuid.uuid4().int


def _name(common_name: str, organizations: list[str] | None = None) -> x509.Name:
    attributes = [x509.NameAttribute(NameOID.COMMON_NAME, common_name)]
    for org in organizations or []:
        attributes.append(x509.NameAttribute(NameOID.ORGANIZATION_NAME, org))
    return x509.Name(attributes)


def new_ca(name: str) -> KeyPair:
    """Create a self-signed CA keyed to the federation name."""
    key = generate_private_key()
    subject = _name(name)
    not_before = datetime.now(timezone.utc)

    cert = (
        x509.CertificateBuilder()
        .subject_name(subject)
        .issuer_name(subject)
        .public_key(key.public_key())
        .serial_number(generate_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_before + CA_VALIDITY)
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=True,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=True,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
        .sign(key, hashes.SHA256())
    )
    return KeyPair(key=key, cert=cert)


def _new_signed_key_pair(
    ca: KeyPair,
    common_name: str,
    usage: x509.ObjectIdentifier,
    dns_names: list[str] | None = None,
    ips: list[ipaddress.IPv4Address | ipaddress.IPv6Address] | None = None,
    organizations: list[str] | None = None,
) -> KeyPair:
    key = generate_private_key()
    not_before = datetime.now(timezone.utc)

    builder = (
        x509.CertificateBuilder()
        .subject_name(_name(common_name, organizations))
        .issuer_name(ca.cert.subject)
        .public_key(key.public_key())
        .serial_number(generate_serial_number())
        .not_valid_before(not_before)
        .not_valid_after(not_before + LEAF_VALIDITY)
        .add_extension(x509.BasicConstraints(ca=False, path_length=None), critical=True)
        .add_extension(
            x509.KeyUsage(
                digital_signature=True,
                content_commitment=False,
                key_encipherment=True,
                data_encipherment=False,
                key_agreement=False,
                key_cert_sign=False,
                crl_sign=False,
                encipher_only=False,
                decipher_only=False,
            ),
            critical=True,
        )
        .add_extension(x509.ExtendedKeyUsage([usage]), critical=False)
        .add_extension(
            x509.AuthorityKeyIdentifier.from_issuer_public_key(ca.key.public_key()),
            critical=False,
        )
    )

    alt_names: list[x509.GeneralName] = [x509.DNSName(n) for n in dns_names or []]
    alt_names.extend(x509.IPAddress(ip) for ip in ips or [])
    if alt_names:
        builder = builder.add_extension(x509.SubjectAlternativeName(alt_names), critical=False)

    return KeyPair(key=key, cert=builder.sign(ca.key, hashes.SHA256()))


def server_dns_names(
    service_name: str, namespace: str, dns_domain: str, hostnames: list[str]
) -> list[str]:
    """DNS subject alternative names for the API server certificate.

    Discovered hostnames first, then the in-cluster names of the service.
    """
    namespaced = f"{service_name}.{namespace}"
    names = list(hostnames)
    names.extend(
        [
            service_name,
            namespaced,
            f"{namespaced}.svc",
            f"{namespaced}.svc.{dns_domain.rstrip('.')}",
        ]
    )
    return names


def _parse_ips(ips: list[str]) -> list[ipaddress.IPv4Address | ipaddress.IPv6Address]:
    parsed = []
    for value in ips:
        try:
            parsed.append(ipaddress.ip_address(value))
        except ValueError:
            logger.warning("skipping_unparseable_ip", ip=value)
    return parsed


def new_server_key_pair(
    ca: KeyPair,
    common_name: str,
    service_name: str,
    namespace: str,
    dns_domain: str,
    ips: list[str],
    hostnames: list[str],
) -> KeyPair:
    """Issue the API server's serving certificate."""
    return _new_signed_key_pair(
        ca,
        common_name,
        ExtendedKeyUsageOID.SERVER_AUTH,
        dns_names=server_dns_names(service_name, namespace, dns_domain, hostnames),
        ips=_parse_ips(ips),
    )


def new_client_key_pair(
    ca: KeyPair, common_name: str, organizations: list[str] | None = None
) -> KeyPair:
    """Issue a client certificate with no subject alternative names."""
    return _new_signed_key_pair(
        ca, common_name, ExtendedKeyUsageOID.CLIENT_AUTH, organizations=organizations
    )


def generate_trust(
    name: str,
    service_name: str,
    namespace: str,
    dns_zone: str,
    ips: list[str],
    hostnames: list[str],
) -> TrustHierarchy:
    """Generate the CA and all leaf certificates for a federation.

    Raises:
        CertificateError: Naming the certificate that could not be created.
    """
    try:
        ca = new_ca(name)
    except Exception as e:
        raise CertificateError(f"failed to create CA key and certificate: {e}") from e

    try:
        server = new_server_key_pair(
            ca, APISERVER_CN, service_name, namespace, dns_zone, ips, hostnames
        )
    except Exception as e:
        raise CertificateError(
            f"failed to create federation API server key and certificate: {e}"
        ) from e

    try:
        controller_manager = new_client_key_pair(ca, CONTROLLER_MANAGER_CN)
    except Exception as e:
        raise CertificateError(
            f"failed to create federation controller manager client key and certificate: {e}"
        ) from e

    try:
        admin = new_client_key_pair(ca, ADMIN_CN)
    except Exception as e:
        raise CertificateError(
            f"failed to create client key and certificate for an admin: {e}"
        ) from e

    logger.info(
        "trust_hierarchy_generated",
        federation=name,
        ca_serial=f"{ca.cert.serial_number:X}",
        server_ips=ips,
        server_hostnames=hostnames,
    )
    return TrustHierarchy(ca=ca, server=server, controller_manager=controller_manager, admin=admin)


def verify_issued_by(cert: x509.Certificate, ca_cert: x509.Certificate) -> bool:
    """Return True if `cert` carries a valid signature from `ca_cert`."""
    try:
        cert.verify_directly_issued_by(ca_cert)
        return True
    except (ValueError, TypeError, InvalidSignature):
        return False
