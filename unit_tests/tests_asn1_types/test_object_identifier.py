# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

import unittest

from certkit.asn1types import ObjectIdentifier, to_oid
from certkit.dercoder import decode_object_identifier_content
from certkit.exceptions import MalformedEncoding
from certkit.oidutils import id_at_commonName, sha256WithRSAEncryption


class TestObjectIdentifier(unittest.TestCase):
    def test_encode_common_name(self):
        """
        GIVEN the OID 2.5.4.3 in dotted notation
        WHEN it is parsed and encoded,
        THEN the result is `06 03 55 04 03` and equals the commonName constant.
        """
        oid = ObjectIdentifier.from_string("2.5.4.3")
        self.assertEqual(oid.encode(), bytes.fromhex("0603550403"))
        self.assertEqual(oid, id_at_commonName)

    def test_decode_multi_byte_arcs(self):
        """
        GIVEN the DER encoding of sha256WithRSAEncryption
        WHEN it is decoded,
        THEN the arcs with multi-byte sub-identifiers are restored.
        """
        oid = ObjectIdentifier.from_der(bytes.fromhex("06092a864886f70d01010b"))
        self.assertEqual(oid.dotted_string, "1.2.840.113549.1.1.11")
        self.assertEqual(str(oid), "1.2.840.113549.1.1.11")
        self.assertEqual(oid, sha256WithRSAEncryption)

    def test_large_first_sub_identifier(self):
        """
        GIVEN an OID below arc 2 with a second arc larger than 39
        WHEN it is encoded and decoded,
        THEN the first sub-identifier needs two bytes and is decoded back correctly.
        """
        oid = ObjectIdentifier((2, 999, 3))
        self.assertEqual(oid.encode(), bytes.fromhex("0603883703"))
        self.assertEqual(ObjectIdentifier.from_der(oid.encode()), oid)

    def test_reject_padded_sub_identifier(self):
        """
        GIVEN OID content with a sub-identifier starting with 0x80
        WHEN it is decoded,
        THEN a MalformedEncoding is raised, because the encoding is not minimal.
        """
        with self.assertRaises(MalformedEncoding):
            decode_object_identifier_content(bytes.fromhex("2a8001"))

    def test_reject_truncated_sub_identifier(self):
        """
        GIVEN OID content whose last byte has the continuation bit set
        WHEN it is decoded,
        THEN a MalformedEncoding is raised.
        """
        with self.assertRaises(MalformedEncoding):
            decode_object_identifier_content(bytes.fromhex("2a86"))
        with self.assertRaises(MalformedEncoding):
            decode_object_identifier_content(b"")

    def test_reject_invalid_arcs(self):
        """
        GIVEN arcs which do not form a valid OID
        WHEN an `ObjectIdentifier` is created,
        THEN a ValueError is raised.
        """
        with self.assertRaises(ValueError):
            ObjectIdentifier((3, 1))
        with self.assertRaises(ValueError):
            ObjectIdentifier((1, 40))
        with self.assertRaises(ValueError):
            ObjectIdentifier((2,))
        with self.assertRaises(ValueError):
            ObjectIdentifier.from_string("1.2.abc")

    def test_reject_trailing_data(self):
        """
        GIVEN an encoded OID followed by a NULL
        WHEN it is decoded as single structure,
        THEN a MalformedEncoding is raised.
        """
        with self.assertRaises(MalformedEncoding):
            ObjectIdentifier.from_der(bytes.fromhex("06035504030500"))

    def test_to_oid(self):
        """
        GIVEN an OID as object, dotted string and arcs
        WHEN they are converted with `to_oid`,
        THEN all results are equal.
        """
        oid = ObjectIdentifier((1, 3, 6, 1, 5, 5, 7, 3, 1))
        self.assertEqual(to_oid(oid), oid)
        self.assertEqual(to_oid("1.3.6.1.5.5.7.3.1"), oid)
        self.assertEqual(to_oid([1, 3, 6, 1, 5, 5, 7, 3, 1]), oid)
