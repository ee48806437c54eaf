# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

import os
import tempfile
import unittest

from certkit.exceptions import MalformedEncoding
from certkit.utils import (
    decode_pem_string,
    der_to_pem,
    load_and_decode_pem_file,
    load_certificate_chain,
    load_certificate_from_file,
    log_cert_chain_subject_and_issuer,
    log_certificates,
    split_pem_blocks,
    write_certs_to_dir,
)

from unit_tests.utils_for_test import build_certificate_chain


class TestPemUtils(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.cert_chain, _ = build_certificate_chain()
        cls.root_cert = cls.cert_chain[0]

    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)

    def test_der_to_pem(self):
        """
        GIVEN a DER encoded certificate
        WHEN the PEM armour is added and decoded again,
        THEN the lines have at most 64 characters and the DER bytes are restored.
        """
        der_data = self.root_cert.encode()
        pem_data = der_to_pem(der_data)
        lines = pem_data.splitlines()
        self.assertEqual(lines[0], "-----BEGIN CERTIFICATE-----")
        self.assertEqual(lines[-1], "-----END CERTIFICATE-----")
        self.assertTrue(all(len(line) <= 64 for line in lines[1:-1]))
        self.assertEqual(decode_pem_string(pem_data), der_data)
        self.assertEqual(decode_pem_string(pem_data.encode("ascii")), der_data)

    def test_decode_with_comments_and_without_armour(self):
        """
        GIVEN PEM data with comment lines, blank lines and without armour
        WHEN it is decoded,
        THEN the comments are ignored and the data is decoded.
        """
        self.assertEqual(decode_pem_string("# a comment\n\nAAEC\n"), b"\x00\x01\x02")

        path = os.path.join(self.temp_dir.name, "commented.pem")
        with open(path, "w", encoding="ascii") as f:
            f.write("# Root certificate for the tests\n" + der_to_pem(self.root_cert.encode()))
        self.assertEqual(load_and_decode_pem_file(path), self.root_cert.encode())

        with self.assertRaises(ValueError):
            decode_pem_string("# only a comment\n")

    def test_split_pem_blocks(self):
        """
        GIVEN a PEM bundle with two certificates and a private key block
        WHEN the certificate blocks are split,
        THEN only the two certificates are returned in bundle order.
        """
        bundle = (
            der_to_pem(self.cert_chain[2].encode())
            + der_to_pem(b"\x30\x00", label="PRIVATE KEY")
            + der_to_pem(self.cert_chain[1].encode())
        )
        blocks = split_pem_blocks(bundle)
        self.assertEqual(blocks, [self.cert_chain[2].encode(), self.cert_chain[1].encode()])
        self.assertEqual(split_pem_blocks(bundle, label="PRIVATE KEY"), [b"\x30\x00"])

    def test_load_certificate_chain(self):
        """
        GIVEN a chain file with the end-entity and the intermediate certificate
        WHEN the chain is loaded,
        THEN the certificates are returned in file order; a file without certificates is rejected.
        """
        path = os.path.join(self.temp_dir.name, "chain.pem")
        with open(path, "w", encoding="ascii") as f:
            f.write(der_to_pem(self.cert_chain[2].encode()) + der_to_pem(self.cert_chain[1].encode()))
        self.assertEqual(load_certificate_chain(path), [self.cert_chain[2], self.cert_chain[1]])

        empty_path = os.path.join(self.temp_dir.name, "empty.pem")
        with open(empty_path, "w", encoding="ascii") as f:
            f.write("# nothing here\n")
        with self.assertRaises(MalformedEncoding):
            load_certificate_chain(empty_path)

    def test_write_and_load_certificates(self):
        """
        GIVEN a certificate chain
        WHEN it is written to a directory with and without a name prefix,
        THEN the files are named accordingly and each file loads the original certificate.
        """
        directory = os.path.join(self.temp_dir.name, "cert_logs")
        write_certs_to_dir(self.cert_chain, directory=directory)
        self.assertEqual(
            sorted(os.listdir(directory)), ["End_Entity.pem", "Intermediate_CA_1.pem", "Root_CA.pem"]
        )
        self.assertEqual(load_certificate_from_file(os.path.join(directory, "Root_CA.pem")), self.root_cert)

        write_certs_to_dir(self.cert_chain, name_prefix="cert_", directory=directory)
        self.assertEqual(load_certificate_from_file(os.path.join(directory, "cert_2.pem")), self.cert_chain[2])

        der_path = os.path.join(self.temp_dir.name, "root.der")
        with open(der_path, "wb") as f:
            f.write(self.root_cert.encode())
        self.assertEqual(load_certificate_from_file(der_path), self.root_cert)

    def test_log_certificates(self):
        """
        GIVEN a certificate chain
        WHEN the certificates are logged,
        THEN the pretty printed structures and the subjects and issuers are logged at INFO level.
        """
        with self.assertLogs(level="INFO") as logs:
            log_certificates(self.cert_chain[:1], msg_suffix="Root: ")
        self.assertEqual(len(logs.records), 1)
        self.assertTrue(logs.output[0].startswith("INFO:root:Root: "))
        self.assertIn("tbsCertificate", logs.output[0])

        with self.assertLogs(level="INFO") as logs:
            log_cert_chain_subject_and_issuer(self.cert_chain)
        self.assertEqual(len(logs.records), 3)
        self.assertIn("subject=`CN=End Entity`", logs.output[2])
        self.assertIn("issuer=`CN=Intermediate CA 1`", logs.output[2])
