# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

import unittest

from certkit.dercoder import TAG_INTEGER, TAG_OCTET_STRING, DERDecoder, decode_tlv
from certkit.exceptions import MalformedEncoding


class TestDerDecoder(unittest.TestCase):
    def test_reject_indefinite_length(self):
        """
        GIVEN an OCTET STRING with the indefinite length octet 0x80
        WHEN the TLV is decoded,
        THEN a MalformedEncoding is raised.
        """
        with self.assertRaises(MalformedEncoding):
            decode_tlv(TAG_OCTET_STRING, bytes.fromhex("04800000"))

    def test_reject_length_above_maximum(self):
        """
        GIVEN an OCTET STRING declaring 0x8000 content bytes, with all bytes present
        WHEN the TLV is decoded,
        THEN a MalformedEncoding is raised, because the length is not supported.
        """
        der_data = bytes.fromhex("04828000") + b"\x00" * 0x8000
        with self.assertRaises(MalformedEncoding):
            decode_tlv(TAG_OCTET_STRING, der_data)

    def test_reject_three_length_bytes(self):
        """
        GIVEN a length encoded with three bytes
        WHEN the TLV is decoded,
        THEN a MalformedEncoding is raised.
        """
        with self.assertRaises(MalformedEncoding):
            decode_tlv(TAG_OCTET_STRING, bytes.fromhex("0483000001") + b"\x00")

    def test_reject_non_minimal_length(self):
        """
        GIVEN a length of 5 in the long form `81 05`
        WHEN the TLV is decoded,
        THEN a MalformedEncoding is raised, because DER requires the short form.
        """
        with self.assertRaises(MalformedEncoding):
            decode_tlv(TAG_OCTET_STRING, bytes.fromhex("0481050102030405"))

    def test_reject_truncated_content(self):
        """
        GIVEN a TLV declaring more content bytes than available
        WHEN the TLV is decoded,
        THEN a MalformedEncoding is raised instead of returning truncated content.
        """
        with self.assertRaises(MalformedEncoding):
            decode_tlv(TAG_OCTET_STRING, bytes.fromhex("040501020304"))

    def test_reject_tag_mismatch(self):
        """
        GIVEN an INTEGER
        WHEN it is decoded as OCTET STRING,
        THEN a MalformedEncoding is raised.
        """
        with self.assertRaises(MalformedEncoding):
            decode_tlv(TAG_OCTET_STRING, bytes.fromhex("020105"))

    def test_reject_high_tag_number(self):
        """
        GIVEN a TLV using the high tag number form
        WHEN the next TLV is decoded,
        THEN a MalformedEncoding is raised.
        """
        with self.assertRaises(MalformedEncoding):
            DERDecoder(bytes.fromhex("1f0100")).decode_raw()

    def test_decode_tlv_with_offset(self):
        """
        GIVEN two INTEGERs after each other
        WHEN they are decoded with the returned offsets,
        THEN both values are read and the final offset is the end of the data.
        """
        der_data = bytes.fromhex("020105020106")
        first, offset = decode_tlv(TAG_INTEGER, der_data)
        second, offset = decode_tlv(TAG_INTEGER, der_data, offset)
        self.assertEqual(first, b"\x05")
        self.assertEqual(second, b"\x06")
        self.assertEqual(offset, len(der_data))

    def test_scoped_sub_decoder(self):
        """
        GIVEN a SEQUENCE with an INTEGER and an OCTET STRING, followed by NULL
        WHEN a sub-decoder is created for the SEQUENCE,
        THEN `raw` returns the whole SEQUENCE TLV, the cursor covers only the content
        and the outer decoder continues after the SEQUENCE.
        """
        der_data = bytes.fromhex("3006020105" "0401aa" "0500")
        decoder = DERDecoder(der_data)
        sub = decoder.decoder_from_sequence()

        self.assertEqual(sub.raw, der_data[:8])
        self.assertEqual(sub.decode_integer(), 5)
        self.assertEqual(sub.decode_octet_string(), b"\xaa")
        self.assertTrue(sub.at_end)
        sub.assert_at_end("test")

        decoder.decode_null()
        decoder.assert_at_end()

    def test_sub_decoder_is_bounded(self):
        """
        GIVEN a SEQUENCE with one INTEGER, followed by another INTEGER outside the SEQUENCE
        WHEN the sub-decoder reads a second INTEGER,
        THEN a MalformedEncoding is raised, because the sub-decoder must not read beyond its region.
        """
        decoder = DERDecoder(bytes.fromhex("3003020105" "020106"))
        sub = decoder.decoder_from_sequence()
        self.assertEqual(sub.decode_integer(), 5)
        with self.assertRaises(MalformedEncoding):
            sub.decode_integer()

    def test_assert_at_end_with_trailing_data(self):
        """
        GIVEN two NULL values
        WHEN only one is decoded and the end is asserted,
        THEN a MalformedEncoding is raised, naming the structure in the error details.
        """
        decoder = DERDecoder(bytes.fromhex("05000500"))
        decoder.decode_null()
        self.assertEqual(decoder.remaining, 2)
        with self.assertRaises(MalformedEncoding) as context:
            decoder.assert_at_end("Dummy")
        self.assertEqual(context.exception.get_error_details(), ["Dummy"])

    def test_peek_and_next_tag(self):
        """
        GIVEN an INTEGER
        WHEN the next tag is peeked,
        THEN the tag is returned without consuming the TLV.
        """
        decoder = DERDecoder(bytes.fromhex("020105"))
        self.assertEqual(decoder.peek_tag(), TAG_INTEGER)
        self.assertTrue(decoder.next_tag_is(TAG_INTEGER))
        self.assertFalse(decoder.next_tag_is(TAG_OCTET_STRING))
        self.assertEqual(decoder.decode_integer(), 5)
        self.assertFalse(decoder.next_tag_is(TAG_INTEGER))
        with self.assertRaises(MalformedEncoding):
            decoder.peek_tag()

    def test_decode_boolean(self):
        """
        GIVEN BOOLEAN encodings with the values 0xFF, 0x00 and 0x01
        WHEN they are decoded,
        THEN 0xFF is True, 0x00 is False and 0x01 is rejected.
        """
        self.assertTrue(DERDecoder(bytes.fromhex("0101ff")).decode_boolean())
        self.assertFalse(DERDecoder(bytes.fromhex("010100")).decode_boolean())
        with self.assertRaises(MalformedEncoding):
            DERDecoder(bytes.fromhex("010101")).decode_boolean()
        with self.assertRaises(MalformedEncoding):
            DERDecoder(bytes.fromhex("0102ffff")).decode_boolean()

    def test_decode_null_with_content(self):
        """
        GIVEN a NULL with one content byte
        WHEN it is decoded,
        THEN a MalformedEncoding is raised.
        """
        with self.assertRaises(MalformedEncoding):
            DERDecoder(bytes.fromhex("050100")).decode_null()
