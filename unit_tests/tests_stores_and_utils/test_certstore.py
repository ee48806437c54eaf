# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

import os
import tempfile
import unittest

from certkit.certstore import CertificateStore, load_certificates_from_dir, load_os_truststore, load_truststore
from certkit.utils import der_to_pem
from certkit.x509certificate import Certificate

from unit_tests.utils_for_test import build_certificate_chain


class TestCertificateStore(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cert_chain, _ = build_certificate_chain()
        cls.root_cert, cls.intermediate_cert, cls.ee_cert = cert_chain

    def test_add_ignores_duplicates(self):
        """
        GIVEN a store with the root certificate
        WHEN the root certificate is added again, also as decoded copy,
        THEN the store still contains a single certificate.
        """
        store = CertificateStore([self.root_cert])
        self.assertFalse(store.add_certificate(self.root_cert))
        self.assertFalse(store.add_certificate(Certificate.from_der(self.root_cert.encode())))
        self.assertTrue(store.add_certificate(self.intermediate_cert))
        self.assertEqual(len(store), 2)
        self.assertIn(self.root_cert, store)
        self.assertNotIn(self.ee_cert, store)

    def test_find_by_subject_common_name(self):
        """
        GIVEN a store with the full chain
        WHEN certificates are looked up by their common name,
        THEN the matching certificate is found and an unknown name returns an empty list.
        """
        store = CertificateStore([self.ee_cert, self.intermediate_cert, self.root_cert])
        self.assertEqual(store.find_by_subject_common_name("Intermediate CA 1"), [self.intermediate_cert])
        self.assertEqual(store.find_by_subject_common_name("Root CA"), [self.root_cert])
        self.assertEqual(store.find_by_subject_common_name("Unknown CA"), [])

    def test_find_root_certificates(self):
        """
        GIVEN a store with the full chain
        WHEN the root certificates are requested,
        THEN only the self-signed root is returned.
        """
        store = CertificateStore([self.ee_cert, self.intermediate_cert, self.root_cert])
        self.assertEqual(store.find_root_certificates(), [self.root_cert])
        self.assertEqual(list(store), [self.ee_cert, self.intermediate_cert, self.root_cert])


class TestLoadFromDirectory(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cert_chain, _ = build_certificate_chain()
        cls.root_cert, cls.intermediate_cert, cls.ee_cert = cert_chain

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        directory = self.temp_dir.name

        with open(os.path.join(directory, "root.pem"), "w", encoding="ascii") as f:
            f.write(der_to_pem(self.root_cert.encode()))
        with open(os.path.join(directory, "ee.der"), "wb") as f:
            f.write(self.ee_cert.encode())
        with open(os.path.join(directory, "ee.key"), "w", encoding="ascii") as f:
            f.write("not a certificate")

    def test_load_pem_and_der(self):
        """
        GIVEN a directory with a PEM certificate, a DER certificate and a key file
        WHEN the certificates are loaded,
        THEN both certificates are returned and the key file is skipped.
        """
        certs = load_certificates_from_dir(self.temp_dir.name)
        self.assertEqual(certs, [self.ee_cert, self.root_cert])

        store = CertificateStore([self.root_cert])
        self.assertEqual(store.load_certificates_from_dir(self.temp_dir.name), 1)
        self.assertEqual(len(store), 2)

    def test_missing_directory(self):
        """
        GIVEN a path which does not exist
        WHEN the certificates are loaded,
        THEN a FileNotFoundError is raised.
        """
        with self.assertRaises(FileNotFoundError):
            load_certificates_from_dir(os.path.join(self.temp_dir.name, "missing"))

    def test_load_truststore(self):
        """
        GIVEN a directory with the root certificate and an end-entity certificate
        WHEN the truststore is loaded,
        THEN only the CA certificate is trusted, unless the CA requirement is disabled.
        """
        trust_store = load_truststore(self.temp_dir.name)
        self.assertEqual(trust_store.certificates, [self.root_cert])

        lax_store = load_truststore(self.temp_dir.name, require_ca=False)
        self.assertEqual(len(lax_store), 2)

    def test_load_os_truststore(self):
        """
        GIVEN the certificate bundle of the certifi package
        WHEN the OS truststore is loaded,
        THEN the decodable anchors are returned as certificates.
        """
        certs = load_os_truststore()
        self.assertGreater(len(certs), 0)
        for cert in certs:
            self.assertIsInstance(cert, Certificate)
