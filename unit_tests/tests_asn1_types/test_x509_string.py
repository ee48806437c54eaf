# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

import unittest

from certkit.asn1types import X509String
from certkit.exceptions import MalformedEncoding, UnsupportedValue
from certkit.suiteenums import StringType


class TestX509String(unittest.TestCase):
    def test_remember_decoded_string_type(self):
        """
        GIVEN a PrintableString, an IA5String and a UTF8String
        WHEN they are decoded and encoded again,
        THEN the observed string type is kept and the bytes are identical.
        """
        for der_hex, string_type in (
            ("130448616e73", StringType.PRINTABLE),
            ("160448616e73", StringType.IA5),
            ("0c0448616e73", StringType.UTF8),
        ):
            with self.subTest(string_type=string_type):
                value = X509String.from_der(bytes.fromhex(der_hex))
                self.assertEqual(value.string_type, string_type)
                self.assertEqual(value.value, "Hans")
                self.assertEqual(value.encode().hex(), der_hex)

    def test_equality_ignores_string_type(self):
        """
        GIVEN the same text as PrintableString and as UTF8String
        WHEN the values are compared,
        THEN they are equal, also to the plain text, and share the hash.
        """
        printable = X509String("Root CA", StringType.PRINTABLE)
        utf8 = X509String("Root CA")
        self.assertEqual(printable, utf8)
        self.assertEqual(printable, "Root CA")
        self.assertEqual(len({printable, utf8}), 1)
        self.assertNotEqual(printable, X509String("Other CA"))

    def test_encode_utf8(self):
        """
        GIVEN a text with a non-ASCII character
        WHEN it is encoded as UTF8String,
        THEN the content is the UTF-8 encoding.
        """
        self.assertEqual(X509String("Müller").encode(), bytes.fromhex("0c074dc3bc6c6c6572"))

    def test_printable_character_set(self):
        """
        GIVEN a text with a character outside the PrintableString set
        WHEN a PrintableString is created or decoded with it,
        THEN a ValueError or MalformedEncoding is raised.
        """
        with self.assertRaises(ValueError):
            X509String("hans@example.com", StringType.PRINTABLE)
        with self.assertRaises(ValueError):
            X509String("Müller", StringType.IA5)
        with self.assertRaises(MalformedEncoding):
            X509String.from_der(bytes.fromhex("130140"))

    def test_reject_unsupported_string_tag(self):
        """
        GIVEN a BMPString
        WHEN it is decoded,
        THEN an UnsupportedValue is raised.
        """
        with self.assertRaises(UnsupportedValue):
            X509String.from_der(bytes.fromhex("1e020041"))

    def test_string_type_by_name(self):
        """
        GIVEN the string type as lowercase name
        WHEN the string is created,
        THEN the name is resolved to the enum member.
        """
        self.assertEqual(X509String("DE", "printable").string_type, StringType.PRINTABLE)
        with self.assertRaises(ValueError):
            StringType.get("bmp")
