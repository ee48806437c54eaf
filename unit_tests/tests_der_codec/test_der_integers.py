# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

import unittest

from certkit.dercoder import (
    DERDecoder,
    encode_integer,
    encode_unsigned_integer,
    encode_unsigned_integer_bytes,
)
from certkit.exceptions import MalformedEncoding, UnsupportedValue


class TestDerIntegers(unittest.TestCase):
    def test_prepend_zero_for_high_bit(self):
        """
        GIVEN unsigned integers whose first content byte has the high bit set
        WHEN they are encoded,
        THEN a single 0x00 byte is prepended.
        """
        self.assertEqual(encode_unsigned_integer(0x80), bytes.fromhex("02020080"))
        self.assertEqual(encode_unsigned_integer(0xFF01), bytes.fromhex("020300ff01"))
        self.assertEqual(encode_unsigned_integer_bytes(b"\x80\x01"), bytes.fromhex("0203008001"))

    def test_no_zero_without_high_bit(self):
        """
        GIVEN unsigned integers whose first content byte has the high bit cleared
        WHEN they are encoded,
        THEN the minimal encoding without a leading zero is used.
        """
        self.assertEqual(encode_unsigned_integer(0), bytes.fromhex("020100"))
        self.assertEqual(encode_unsigned_integer(0x7F), bytes.fromhex("02017f"))
        self.assertEqual(encode_unsigned_integer(0x0100), bytes.fromhex("02020100"))
        self.assertEqual(encode_unsigned_integer_bytes(b"\x00\x00\x7f"), bytes.fromhex("02017f"))

    def test_strip_single_leading_zero(self):
        """
        GIVEN INTEGERs with and without a sign-disambiguation zero byte
        WHEN the magnitude bytes are decoded,
        THEN exactly one leading 0x00 is stripped when present.
        """
        self.assertEqual(DERDecoder(bytes.fromhex("02020080")).decode_unsigned_integer_bytes(), b"\x80")
        self.assertEqual(DERDecoder(bytes.fromhex("02017f")).decode_unsigned_integer_bytes(), b"\x7f")
        self.assertEqual(DERDecoder(bytes.fromhex("020300ff01")).decode_unsigned_integer(), 0xFF01)

    def test_unsigned_round_trip(self):
        """
        GIVEN a range of non-negative values
        WHEN they are encoded and decoded again,
        THEN the original values are returned.
        """
        for value in (0, 1, 127, 128, 255, 256, 65535, 2**64 + 1, 2**159 - 1):
            with self.subTest(value=value):
                self.assertEqual(DERDecoder(encode_unsigned_integer(value)).decode_unsigned_integer(), value)

    def test_negative_values(self):
        """
        GIVEN negative values
        WHEN they are encoded as signed or unsigned INTEGER,
        THEN the signed encoding is two's complement and the unsigned paths reject them.
        """
        self.assertEqual(encode_integer(-1), bytes.fromhex("0201ff"))
        self.assertEqual(encode_integer(-129), bytes.fromhex("0202ff7f"))
        self.assertEqual(DERDecoder(bytes.fromhex("0202ff7f")).decode_integer(), -129)

        with self.assertRaises(ValueError):
            encode_unsigned_integer(-1)
        with self.assertRaises(UnsupportedValue):
            DERDecoder(bytes.fromhex("020180")).decode_unsigned_integer()

    def test_reject_empty_integer(self):
        """
        GIVEN an INTEGER without content bytes
        WHEN it is decoded,
        THEN a MalformedEncoding is raised.
        """
        with self.assertRaises(MalformedEncoding):
            DERDecoder(bytes.fromhex("0200")).decode_integer()
