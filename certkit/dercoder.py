# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

"""ASN.1 Distinguished Encoding Rules (DER) Tag-Length-Value codec.

The encoder functions are pure transforms from Python values to DER bytes. The decoder is a forward-only
cursor (`DERDecoder`) over an immutable byte view. `DERDecoder.decoder_from_tag` returns a scoped sub-decoder,
bounded to exactly the content of one TLV, so nested structures are parsed without copying and every
structure can check with `assert_at_end` that it consumed exactly its declared bytes.

Supported length forms:

| Length           | Encoding            |
|------------------|---------------------|
| 0x00 - 0x7F      | one byte            |
| 0x80 - 0xFF      | 0x81 + one byte     |
| 0x100 - 0x7FFF   | 0x82 + two bytes    |

Longer lengths and the BER indefinite form (0x80) are rejected.
"""

from typing import Iterable, Optional, Sequence, Tuple, Union

from certkit.exceptions import MalformedEncoding, UnsupportedValue
from certkit.typingutils import DerInput

TAG_BOOLEAN = 0x01
TAG_INTEGER = 0x02
TAG_BIT_STRING = 0x03
TAG_OCTET_STRING = 0x04
TAG_NULL = 0x05
TAG_OBJECT_IDENTIFIER = 0x06
TAG_UTF8_STRING = 0x0C
TAG_PRINTABLE_STRING = 0x13
TAG_IA5_STRING = 0x16
TAG_UTC_TIME = 0x17
TAG_GENERALIZED_TIME = 0x18
TAG_SEQUENCE = 0x30
TAG_SET = 0x31

CLASS_CONTEXT = 0x80
CONSTRUCTED = 0x20

MAX_LENGTH = 0x7FFF


def make_context_tag(number: int, constructed: bool = True) -> int:
    """Build a context-specific tag byte, e.g. `[0]` constructed is 0xA0.

    :param number: The tag number (0-30).
    :param constructed: Whether the constructed bit is set.
    :return: The tag byte.
    """
    if not 0 <= number <= 30:
        raise ValueError(f"Context tag number must be between 0 and 30, got: {number}")

    tag = CLASS_CONTEXT | number
    if constructed:
        tag |= CONSTRUCTED
    return tag


##########################
# Encoders
##########################


def encode_length(length: int) -> bytes:
    """Encode a DER length field.

    :param length: The number of content bytes.
    :return: The encoded length.
    :raises MalformedEncoding: If the length is negative or larger than 0x7FFF.
    """
    if length < 0:
        raise MalformedEncoding(f"A length can not be negative: {length}")
    if length < 0x80:
        return bytes([length])
    if length < 0x100:
        return bytes([0x81, length])
    if length <= MAX_LENGTH:
        return bytes([0x82, length >> 8, length & 0xFF])

    raise MalformedEncoding(f"Length {length} exceeds the supported maximum of {MAX_LENGTH} bytes.")


def encode_tlv(tag: int, content: Union[DerInput, Iterable[int]]) -> bytes:
    """Encode a single Tag-Length-Value unit.

    :param tag: The tag byte, including the class and constructed bits.
    :param content: The content bytes.
    :return: The encoded TLV.
    """
    if not 0 <= tag <= 0xFF:
        raise ValueError(f"A tag must fit into a single byte, got: {tag}")

    content = bytes(content)
    return bytes([tag]) + encode_length(len(content)) + content


def encode_boolean(value: bool) -> bytes:
    """Encode a BOOLEAN as 0xFF (True) or 0x00 (False)."""
    return encode_tlv(TAG_BOOLEAN, b"\xff" if value else b"\x00")


def encode_integer(value: int) -> bytes:
    """Encode a (signed) INTEGER in minimal two's complement form."""
    magnitude = value if value >= 0 else ~value
    size = magnitude.bit_length() // 8 + 1
    return encode_tlv(TAG_INTEGER, value.to_bytes(size, "big", signed=True))


def encode_unsigned_integer(value: int) -> bytes:
    """Encode a non-negative INTEGER.

    A single leading zero byte is prepended when the most significant bit of the first content byte is set.

    :param value: The value to encode.
    :raises ValueError: If the value is negative.
    """
    if value < 0:
        raise ValueError(f"An unsigned integer can not be negative: {value}")
    return encode_integer(value)


def encode_unsigned_integer_bytes(data: DerInput) -> bytes:
    """Encode a big-endian unsigned magnitude (e.g., an RSA modulus) as INTEGER.

    :param data: The magnitude bytes.
    :return: The encoded INTEGER.
    """
    data = bytes(data).lstrip(b"\x00") or b"\x00"
    if data[0] & 0x80:
        data = b"\x00" + data
    return encode_tlv(TAG_INTEGER, data)


def encode_null() -> bytes:
    """Encode NULL."""
    return bytes([TAG_NULL, 0x00])


def encode_octet_string(data: DerInput) -> bytes:
    """Encode an OCTET STRING."""
    return encode_tlv(TAG_OCTET_STRING, data)


def encode_bit_string(data: DerInput, unused_bits: int = 0) -> bytes:
    """Encode a BIT STRING, prefixing the content with the unused-bits byte.

    :param data: The bit string bytes.
    :param unused_bits: Number of unused bits in the last byte.
    """
    return encode_tlv(TAG_BIT_STRING, bytes([unused_bits]) + bytes(data))


def _encode_base128(value: int) -> bytes:
    """Encode one OID sub-identifier in base-128, with the continuation bit on all but the last byte."""
    fragment = [value & 0x7F]
    value >>= 7
    while value:
        fragment.append((value & 0x7F) | 0x80)
        value >>= 7
    return bytes(reversed(fragment))


def encode_object_identifier_content(arcs: Sequence[int]) -> bytes:
    """Encode the content octets of an OBJECT IDENTIFIER.

    The first two arcs are packed into one sub-identifier as `40 * arc0 + arc1`.

    :param arcs: The arcs of the OID.
    :return: The content bytes (without tag and length).
    :raises ValueError: If the arcs do not form a valid OID.
    """
    if len(arcs) < 2:
        raise ValueError(f"An OID needs at least two arcs, got: {list(arcs)}")
    if arcs[0] > 2 or (arcs[0] < 2 and arcs[1] >= 40):
        raise ValueError(f"Invalid first arcs for an OID: {arcs[0]}.{arcs[1]}")
    if any(arc < 0 for arc in arcs):
        raise ValueError(f"OID arcs can not be negative: {list(arcs)}")

    content = _encode_base128(40 * arcs[0] + arcs[1])
    for arc in arcs[2:]:
        content += _encode_base128(arc)
    return content


def encode_object_identifier(arcs: Sequence[int]) -> bytes:
    """Encode an OBJECT IDENTIFIER, e.g. `[2, 5, 4, 3]` becomes `06 03 55 04 03`."""
    return encode_tlv(TAG_OBJECT_IDENTIFIER, encode_object_identifier_content(arcs))


def decode_object_identifier_content(content: DerInput) -> Tuple[int, ...]:
    """Decode the content octets of an OBJECT IDENTIFIER into its arcs.

    :param content: The content bytes.
    :return: The arcs.
    :raises MalformedEncoding: If the content is empty, a sub-identifier is padded or truncated.
    """
    content = bytes(content)
    if not content:
        raise MalformedEncoding("An OBJECT IDENTIFIER must have at least one content byte.")
    if content[-1] & 0x80:
        raise MalformedEncoding("The last OBJECT IDENTIFIER sub-identifier is truncated.")

    sub_ids = []
    value = 0
    start = True
    for byte in content:
        if start and byte == 0x80:
            raise MalformedEncoding("An OBJECT IDENTIFIER sub-identifier is not minimally encoded.")
        value = (value << 7) | (byte & 0x7F)
        start = not byte & 0x80
        if start:
            sub_ids.append(value)
            value = 0

    first = sub_ids[0]
    if first < 40:
        arcs = [0, first]
    elif first < 80:
        arcs = [1, first - 40]
    else:
        arcs = [2, first - 80]

    return tuple(arcs + sub_ids[1:])


def encode_sequence(content: Union[DerInput, Iterable[int]]) -> bytes:
    """Wrap already encoded elements into a SEQUENCE, e.g. `01 02 03` becomes `30 03 01 02 03`."""
    return encode_tlv(TAG_SEQUENCE, content)


def encode_set(content: Union[DerInput, Iterable[int]]) -> bytes:
    """Wrap already encoded elements into a SET."""
    return encode_tlv(TAG_SET, content)


def encode_context(number: int, content: DerInput, constructed: bool = True) -> bytes:
    """Encode a context-specific TLV, e.g. `[3] EXPLICIT` for the certificate extensions."""
    return encode_tlv(make_context_tag(number, constructed), content)


##########################
# Decoders
##########################


def _read_header(view: memoryview, offset: int, end: int) -> Tuple[int, int, int]:
    """Read tag and length at `offset`.

    :return: The tag, the offset of the first content byte and the content length.
    """
    if offset >= end:
        raise MalformedEncoding("Unexpected end of data while reading a tag.")

    tag = view[offset]
    offset += 1
    if tag & 0x1F == 0x1F:
        raise MalformedEncoding(f"High tag numbers are not supported, got tag: 0x{tag:02X}")

    if offset >= end:
        raise MalformedEncoding("Unexpected end of data while reading a length.")

    first = view[offset]
    offset += 1
    if first == 0x80:
        raise MalformedEncoding("The indefinite length form is not allowed in DER.")

    if first < 0x80:
        length = first
    else:
        count = first & 0x7F
        if count > 2:
            raise MalformedEncoding(f"Lengths encoded with {count} bytes are not supported.")
        if offset + count > end:
            raise MalformedEncoding("Unexpected end of data while reading a long form length.")

        length = int.from_bytes(view[offset : offset + count], "big")
        offset += count

        if length > MAX_LENGTH:
            raise MalformedEncoding(f"Length {length} exceeds the supported maximum of {MAX_LENGTH} bytes.")
        if length < 0x80 or (count == 2 and length < 0x100):
            raise MalformedEncoding(f"The length {length} is not minimally encoded.")

    if offset + length > end:
        raise MalformedEncoding(f"Declared length {length} exceeds the {end - offset} remaining bytes.")

    return tag, offset, length


def decode_tlv(expected_tag: int, data: DerInput, offset: int = 0) -> Tuple[bytes, int]:
    """Decode one TLV with the expected tag.

    :param expected_tag: The tag the TLV must have.
    :param data: The encoded data.
    :param offset: The cursor position to start at.
    :return: The content bytes and the new cursor position.
    :raises MalformedEncoding: If the tag mismatches or the length is malformed, unsupported or too large.
    """
    view = memoryview(data)
    tag, start, length = _read_header(view, offset, len(view))
    if tag != expected_tag:
        raise MalformedEncoding(f"Expected tag 0x{expected_tag:02X}, but got: 0x{tag:02X}")

    return bytes(view[start : start + length]), start + length


class DERDecoder:
    """Forward-only cursor over DER encoded data.

    A scoped sub-decoder (see `decoder_from_tag`) covers exactly one TLV: `raw` returns the full TLV
    (tag, length and content) while the cursor iterates over the content only.
    """

    def __init__(self, data: DerInput, start: int = 0, end: Optional[int] = None, index: Optional[int] = None):
        """Initialize the decoder.

        :param data: The data to decode.
        :param start: Start of the region covered by this decoder.
        :param end: End of the region covered by this decoder. Defaults to the end of `data`.
        :param index: Initial cursor position. Defaults to `start`.
        """
        self._view = data if isinstance(data, memoryview) else memoryview(bytes(data))
        self._start = start
        self._end = len(self._view) if end is None else end
        self._index = start if index is None else index

    @property
    def raw(self) -> bytes:
        """Return all bytes of the region this decoder covers."""
        return bytes(self._view[self._start : self._end])

    @property
    def more(self) -> bool:
        """Return `True` if unread bytes remain."""
        return self._index < self._end

    @property
    def at_end(self) -> bool:
        """Return `True` if all bytes were consumed."""
        return self._index == self._end

    @property
    def remaining(self) -> int:
        """Return the number of unread bytes."""
        return self._end - self._index

    def expect(self, condition: bool, message: str) -> None:
        """Raise `MalformedEncoding` with `message`, if `condition` does not hold."""
        if not condition:
            raise MalformedEncoding(message)

    def assert_at_end(self, structure: str = "structure") -> None:
        """Ensure the structure consumed exactly its declared bytes.

        :param structure: Name of the decoded structure, used inside the error message.
        :raises MalformedEncoding: If unread bytes remain.
        """
        if not self.at_end:
            trailing = bytes(self._view[self._index : self._end])
            raise MalformedEncoding(
                f"Decoding the `{structure}` structure had a remainder: {trailing.hex()}", error_details=structure
            )

    def peek_tag(self) -> int:
        """Return the next tag without consuming it."""
        if not self.more:
            raise MalformedEncoding("Unexpected end of data while peeking a tag.")
        return self._view[self._index]

    def next_tag_is(self, tag: int) -> bool:
        """Return `True` if data is left and the next tag equals `tag`."""
        return self.more and self._view[self._index] == tag

    def _next(self, expected_tag: Optional[int]) -> Tuple[int, int, int]:
        tag, content_start, length = _read_header(self._view, self._index, self._end)
        if expected_tag is not None and tag != expected_tag:
            raise MalformedEncoding(f"Expected tag 0x{expected_tag:02X}, but got: 0x{tag:02X}")
        return tag, content_start, length

    def decode(self, tag: int) -> bytes:
        """Decode the next TLV, which must have the tag `tag`, and return its content."""
        _, content_start, length = self._next(tag)
        self._index = content_start + length
        return bytes(self._view[content_start : self._index])

    def decode_raw(self) -> bytes:
        """Decode the next TLV with any tag and return it completely (tag, length and content)."""
        start = self._index
        _, content_start, length = self._next(None)
        self._index = content_start + length
        return bytes(self._view[start : self._index])

    def decoder_from_tag(self, tag: int) -> "DERDecoder":
        """Return a sub-decoder scoped to the next TLV, which must have the tag `tag`."""
        start = self._index
        _, content_start, length = self._next(tag)
        self._index = content_start + length
        return DERDecoder(self._view, start=start, end=self._index, index=content_start)

    def decoder_from_sequence(self) -> "DERDecoder":
        """Return a sub-decoder scoped to the next SEQUENCE."""
        return self.decoder_from_tag(TAG_SEQUENCE)

    def decoder_from_set(self) -> "DERDecoder":
        """Return a sub-decoder scoped to the next SET."""
        return self.decoder_from_tag(TAG_SET)

    def decode_boolean(self) -> bool:
        """Decode a BOOLEAN, which must be exactly one byte, 0xFF or 0x00."""
        content = self.decode(TAG_BOOLEAN)
        self.expect(len(content) == 1, f"A BOOLEAN must have exactly one content byte, got: {len(content)}")
        self.expect(content[0] in (0x00, 0xFF), f"Invalid BOOLEAN value: 0x{content[0]:02X}")
        return content[0] == 0xFF

    def decode_integer(self) -> int:
        """Decode a signed INTEGER."""
        content = self.decode(TAG_INTEGER)
        self.expect(len(content) > 0, "An INTEGER must have at least one content byte.")
        return int.from_bytes(content, "big", signed=True)

    def decode_unsigned_integer_bytes(self) -> bytes:
        """Decode a non-negative INTEGER and return its magnitude bytes.

        A single leading zero byte, present for sign disambiguation, is stripped.

        :raises UnsupportedValue: If the INTEGER is negative.
        """
        content = self.decode(TAG_INTEGER)
        self.expect(len(content) > 0, "An INTEGER must have at least one content byte.")
        if content[0] & 0x80:
            raise UnsupportedValue("Expected an unsigned INTEGER, but the value is negative.")
        if content[0] == 0x00:
            return content[1:]
        return content

    def decode_unsigned_integer(self) -> int:
        """Decode a non-negative INTEGER."""
        return int.from_bytes(self.decode_unsigned_integer_bytes(), "big")

    def decode_null(self) -> None:
        """Decode NULL."""
        content = self.decode(TAG_NULL)
        self.expect(len(content) == 0, "NULL must not have content.")

    def decode_object_identifier(self) -> Tuple[int, ...]:
        """Decode an OBJECT IDENTIFIER into its arcs."""
        return decode_object_identifier_content(self.decode(TAG_OBJECT_IDENTIFIER))

    def decode_octet_string(self) -> bytes:
        """Decode an OCTET STRING."""
        return self.decode(TAG_OCTET_STRING)

    def decode_bit_string(self) -> bytes:
        """Decode a BIT STRING and return the content, including the leading unused-bits byte."""
        return self.decode(TAG_BIT_STRING)
