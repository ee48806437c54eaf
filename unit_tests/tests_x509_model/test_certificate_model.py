# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

import unittest
from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import NameOID

from certkit.convertutils import certificate_from_cryptography, certificate_to_cryptography
from certkit.exceptions import MalformedEncoding, UnknownOID
from certkit.x509certificate import VERSION_V3, Certificate

from unit_tests.utils_for_test import build_certificate_chain, flip_serial_number_byte, get_test_key


def _build_cryptography_cert(critical_unknown_extension=None) -> x509.Certificate:
    """Build a self-signed CA certificate with the `cryptography` library."""
    key = get_test_key(0)
    name = x509.Name(
        [
            x509.NameAttribute(NameOID.COUNTRY_NAME, "DE"),
            x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Siemens"),
            x509.NameAttribute(NameOID.COMMON_NAME, "Interop Root"),
        ]
    )
    now = datetime.now(timezone.utc)
    builder = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(0x8000000000000001)
        .not_valid_before(now)
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=1), critical=True)
        .add_extension(x509.SubjectKeyIdentifier.from_public_key(key.public_key()), critical=False)
    )
    if critical_unknown_extension is not None:
        builder = builder.add_extension(
            x509.UnrecognizedExtension(x509.ObjectIdentifier("1.2.3.4"), b"\x05\x00"),
            critical=critical_unknown_extension,
        )
    return builder.sign(key, hashes.SHA256())


class TestCertificateModel(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cert_chain, keys = build_certificate_chain()
        cls.root_cert, cls.intermediate_cert, cls.ee_cert = cert_chain
        cls.root_key = keys[0]

    def test_decode_own_certificate(self):
        """
        GIVEN a certificate built by this library
        WHEN it is encoded and decoded again,
        THEN the bytes are identical and the fields are restored.
        """
        der_data = self.ee_cert.encode()
        decoded = Certificate.from_der(der_data)
        self.assertEqual(decoded.encode(), der_data)
        self.assertEqual(decoded, self.ee_cert)
        self.assertEqual(decoded.tbs_certificate.version, VERSION_V3)
        self.assertEqual(decoded.subject.common_name, "End Entity")
        self.assertEqual(decoded.issuer.common_name, "Intermediate CA 1")
        self.assertFalse(decoded.is_ca)
        self.assertEqual(decoded.key_usage.get_names(), ["digitalSignature"])

    def test_self_signed(self):
        """
        GIVEN a root, an intermediate and an end-entity certificate
        WHEN the self-signed check is performed,
        THEN only the root certificate is self-signed.
        """
        self.assertTrue(self.root_cert.self_signed())
        self.assertFalse(self.intermediate_cert.self_signed())
        self.assertFalse(self.ee_cert.self_signed())

    def test_certified_by(self):
        """
        GIVEN a certificate chain
        WHEN `certified_by` is checked against the issuer and against other certificates,
        THEN only the issuer certified the certificate.
        """
        self.assertTrue(self.intermediate_cert.certified_by(self.root_cert))
        self.assertTrue(self.ee_cert.certified_by(self.intermediate_cert))
        self.assertFalse(self.ee_cert.certified_by(self.root_cert))
        self.assertFalse(self.root_cert.certified_by(self.intermediate_cert))

    def test_flipped_serial_number(self):
        """
        GIVEN a certificate with one flipped byte inside the serial number
        WHEN it is decoded and checked against its issuer,
        THEN decoding succeeds, but the issuer no longer certifies it.
        """
        tampered = Certificate.from_der(flip_serial_number_byte(self.intermediate_cert))
        self.assertNotEqual(tampered.serial_number, self.intermediate_cert.serial_number)
        self.assertFalse(tampered.certified_by(self.root_cert))

    def test_reject_trailing_data(self):
        """
        GIVEN a DER encoded certificate followed by a zero byte
        WHEN it is decoded,
        THEN a MalformedEncoding is raised.
        """
        with self.assertRaises(MalformedEncoding):
            Certificate.from_der(self.root_cert.encode() + b"\x00")

    def test_reject_signature_unused_bits(self):
        """
        GIVEN a certificate whose signature BIT STRING declares one unused bit
        WHEN it is decoded,
        THEN a MalformedEncoding is raised.
        """
        der_data = bytearray(self.root_cert.encode())
        der_data[-len(self.root_cert.signature) - 1] = 0x01
        with self.assertRaises(MalformedEncoding):
            Certificate.from_der(bytes(der_data))

    def test_decode_cryptography_certificate(self):
        """
        GIVEN a certificate built by the `cryptography` library
        WHEN it is decoded,
        THEN the names, the serial number and the BasicConstraints are read, the unknown non-critical
        SubjectKeyIdentifier is ignored and the certificate is self-signed.
        """
        crypto_cert = _build_cryptography_cert()
        cert = certificate_from_cryptography(crypto_cert)
        self.assertEqual(str(cert.subject), "CN=Interop Root,C=DE,O=Siemens")
        self.assertEqual(cert.serial_number, 0x8000000000000001)
        self.assertTrue(cert.is_ca)
        self.assertEqual(cert.basic_constraints.path_length, 1)
        self.assertTrue(cert.self_signed())
        self.assertEqual(cert.fingerprint(), crypto_cert.fingerprint(hashes.SHA256()))

    def test_cryptography_accepts_own_certificate(self):
        """
        GIVEN a certificate built by this library
        WHEN it is loaded with the `cryptography` library,
        THEN the library reads the same subject and verifies the issuer signature.
        """
        crypto_cert = certificate_to_cryptography(self.intermediate_cert)
        self.assertEqual(crypto_cert.subject.rfc4514_string(), "CN=Intermediate CA 1")
        self.assertEqual(crypto_cert.serial_number, self.intermediate_cert.serial_number)
        crypto_cert.verify_directly_issued_by(certificate_to_cryptography(self.root_cert))

    def test_unknown_critical_extension(self):
        """
        GIVEN a certificate with an unknown critical extension
        WHEN it is decoded,
        THEN an UnknownOID is raised, while the same extension marked non-critical is accepted.
        """
        with self.assertRaises(UnknownOID):
            certificate_from_cryptography(_build_cryptography_cert(critical_unknown_extension=True))

        cert = certificate_from_cryptography(_build_cryptography_cert(critical_unknown_extension=False))
        self.assertTrue(cert.is_ca)
