# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

"""ASN.1 value types built on top of the DER codec.

Every type offers an `encode` method returning its DER bytes and a `decode` classmethod (or function)
reading exactly one value from a `DERDecoder`.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, List, Sequence, Tuple, Union

from certkit.dercoder import (
    TAG_BIT_STRING,
    TAG_GENERALIZED_TIME,
    TAG_UTC_TIME,
    DERDecoder,
    encode_object_identifier,
    encode_object_identifier_content,
    encode_tlv,
)
from certkit.exceptions import MalformedEncoding
from certkit.suiteenums import StringType

# RFC 5280 4.1.2.5: UTCTime for dates through 2049, GeneralizedTime from 2050 on.
UTC_TIME_CUTOFF_YEAR = 2050

_PRINTABLE_CHARS = frozenset("ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789 '()+,-./:=?")
_UTC_TIME_PATTERN = re.compile(r"^(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})Z$")
_GENERALIZED_TIME_PATTERN = re.compile(r"^(\d{4})(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})Z$")


class DERStructure:
    """Mixin for structures with `encode` and `decode`, adding whole-buffer helpers."""

    def encode(self) -> bytes:  # pragma: no cover
        """Return the DER encoding."""
        raise NotImplementedError

    @classmethod
    def decode(cls, decoder: DERDecoder):  # pragma: no cover
        """Decode the structure at the current position of the decoder."""
        raise NotImplementedError

    @classmethod
    def from_der(cls, data: bytes):
        """Decode the structure from `data`, which must not contain trailing bytes.

        :param data: The DER encoded structure.
        :return: The decoded structure.
        :raises MalformedEncoding: If the data is malformed or has a remainder.
        """
        decoder = DERDecoder(data)
        structure = cls.decode(decoder)
        decoder.assert_at_end(cls.__name__)
        return structure


@dataclass(frozen=True)
class ObjectIdentifier(DERStructure):
    """An OBJECT IDENTIFIER, stored as its arcs.

    Example:
    -------
        >>> str(ObjectIdentifier((2, 5, 4, 3)))
        '2.5.4.3'

    """

    arcs: Tuple[int, ...]

    def __post_init__(self):
        """Normalize the arcs to a tuple of ints and validate them."""
        arcs = tuple(int(arc) for arc in self.arcs)
        encode_object_identifier_content(arcs)
        object.__setattr__(self, "arcs", arcs)

    @classmethod
    def from_string(cls, dotted_string: str) -> "ObjectIdentifier":
        """Parse an OID in dotted notation, e.g. "1.2.840.113549.1.1.11".

        :param dotted_string: The dotted string.
        :return: The parsed OID.
        :raises ValueError: If the string is not a valid OID.
        """
        try:
            arcs = tuple(int(arc) for arc in dotted_string.strip().split("."))
        except ValueError as err:
            raise ValueError(f"Invalid OID string: {dotted_string!r}") from err
        return cls(arcs)

    @property
    def dotted_string(self) -> str:
        """Return the OID in dotted notation."""
        return ".".join(str(arc) for arc in self.arcs)

    def __str__(self) -> str:
        """Return the OID in dotted notation."""
        return self.dotted_string

    def encode(self) -> bytes:
        """Return the DER encoding."""
        return encode_object_identifier(self.arcs)

    @classmethod
    def decode(cls, decoder: DERDecoder) -> "ObjectIdentifier":
        """Decode the next OID from the decoder."""
        return cls(decoder.decode_object_identifier())


@dataclass(frozen=True, eq=False)
class X509String(DERStructure):
    """A directory string, which remembers the DER string type it was decoded from.

    Two strings are equal if their text is equal, regardless of the string type.
    """

    value: str
    string_type: StringType = StringType.UTF8

    def __post_init__(self):
        """Validate the character set for the string type."""
        if not isinstance(self.string_type, StringType):
            object.__setattr__(self, "string_type", StringType.get(str(self.string_type)))

        if self.string_type == StringType.UTF8:
            return

        if not self.value.isascii():
            raise ValueError(f"A {self.string_type.name} string must be ASCII, got: {self.value!r}")

        if self.string_type == StringType.PRINTABLE:
            invalid = set(self.value) - _PRINTABLE_CHARS
            if invalid:
                raise ValueError(
                    f"Characters not allowed in a PrintableString: {''.join(sorted(invalid))!r} in {self.value!r}"
                )

    def __eq__(self, other) -> bool:
        """Compare the text of two strings."""
        if isinstance(other, X509String):
            return self.value == other.value
        if isinstance(other, str):
            return self.value == other
        return NotImplemented

    def __hash__(self) -> int:
        """Hash the text only, to stay consistent with `__eq__`."""
        return hash(self.value)

    def __str__(self) -> str:
        """Return the text."""
        return self.value

    def encode(self) -> bytes:
        """Return the DER encoding, using the remembered string type."""
        codec = "utf-8" if self.string_type == StringType.UTF8 else "ascii"
        return encode_tlv(self.string_type.value, self.value.encode(codec))

    @classmethod
    def decode(cls, decoder: DERDecoder) -> "X509String":
        """Decode the next string, selecting the string type by the observed tag.

        :raises UnsupportedValue: If the tag is not IA5String, PrintableString or UTF8String.
        :raises MalformedEncoding: If the content is invalid for the string type.
        """
        string_type = StringType.from_tag(decoder.peek_tag())
        content = decoder.decode(string_type.value)
        codec = "utf-8" if string_type == StringType.UTF8 else "ascii"

        try:
            return cls(content.decode(codec), string_type)
        except (UnicodeDecodeError, ValueError) as err:
            raise MalformedEncoding(f"Invalid {string_type.name} string content: {content.hex()}") from err


@dataclass(frozen=True)
class BitString(DERStructure):
    """A BIT STRING, stored as its bytes and the number of unused bits in the last byte."""

    data: bytes
    unused_bits: int = 0

    def __post_init__(self):
        """Validate the unused bits and the padding."""
        object.__setattr__(self, "data", bytes(self.data))
        if not 0 <= self.unused_bits <= 7:
            raise ValueError(f"The number of unused bits must be between 0 and 7, got: {self.unused_bits}")
        if not self.data and self.unused_bits:
            raise ValueError("An empty BIT STRING can not have unused bits.")
        if self.data and self.data[-1] & ((1 << self.unused_bits) - 1):
            raise ValueError("The padding bits of a BIT STRING must be zero.")

    @classmethod
    def from_bits(cls, bits: Iterable[bool]) -> "BitString":
        """Build a minimal BIT STRING from named bits, with bit 0 as most significant bit.

        Trailing zero bits are removed, as DER requires for named bit lists.

        :param bits: The bit values, bit 0 first.
        :return: The packed BIT STRING.
        """
        bits = list(bits)
        while bits and not bits[-1]:
            bits.pop()

        data = bytearray((len(bits) + 7) // 8)
        for position, bit in enumerate(bits):
            if bit:
                data[position // 8] |= 0x80 >> (position % 8)

        return cls(bytes(data), (8 - len(bits) % 8) % 8)

    def to_bits(self) -> List[bool]:
        """Return all used bits, bit 0 first."""
        return [self.bit(position) for position in range(len(self))]

    def bit(self, position: int) -> bool:
        """Return the bit at `position`; positions beyond the end are `False`."""
        if position >= len(self):
            return False
        return bool(self.data[position // 8] & (0x80 >> (position % 8)))

    def __len__(self) -> int:
        """Return the number of used bits."""
        return len(self.data) * 8 - self.unused_bits

    def encode(self) -> bytes:
        """Return the DER encoding."""
        return encode_tlv(TAG_BIT_STRING, bytes([self.unused_bits]) + self.data)

    @classmethod
    def decode(cls, decoder: DERDecoder) -> "BitString":
        """Decode the next BIT STRING.

        :raises MalformedEncoding: If the unused-bits byte is missing or invalid, or the padding is not zero.
        """
        content = decoder.decode_bit_string()
        if not content:
            raise MalformedEncoding("A BIT STRING must contain the unused-bits byte.")
        try:
            return cls(content[1:], content[0])
        except ValueError as err:
            raise MalformedEncoding(f"Invalid BIT STRING: {err}") from err


##########################
# Time
##########################


def to_utc(moment: datetime) -> datetime:
    """Return the moment as timezone-aware UTC `datetime` without microseconds.

    A naive `datetime` is interpreted as UTC.
    """
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).replace(microsecond=0)


def encode_time(moment: datetime) -> bytes:
    """Encode a time as UTCTime (years 1950 to 2049) or GeneralizedTime (all other years).

    :param moment: The time to encode.
    :return: The DER encoded time.
    """
    moment = to_utc(moment)
    clock = f"{moment.month:02d}{moment.day:02d}{moment.hour:02d}{moment.minute:02d}{moment.second:02d}Z"

    if 1950 <= moment.year < UTC_TIME_CUTOFF_YEAR:
        return encode_tlv(TAG_UTC_TIME, f"{moment.year % 100:02d}{clock}".encode("ascii"))
    return encode_tlv(TAG_GENERALIZED_TIME, f"{moment.year:04d}{clock}".encode("ascii"))


def _parse_time(content: bytes, pattern: re.Pattern, name: str) -> Sequence[int]:
    try:
        text = content.decode("ascii")
    except UnicodeDecodeError as err:
        raise MalformedEncoding(f"The {name} is not ASCII: {content.hex()}") from err

    match = pattern.match(text)
    if match is None:
        raise MalformedEncoding(f"Invalid {name} format: {text!r}")
    return [int(group) for group in match.groups()]


def decode_time(decoder: DERDecoder) -> datetime:
    """Decode the next UTCTime or GeneralizedTime.

    Two-digit UTCTime years from 50 to 99 are in the 20th century, 00 to 49 in the 21st.

    :param decoder: The decoder positioned at the time.
    :return: The timezone-aware UTC time.
    :raises MalformedEncoding: If the tag or the time format is invalid.
    """
    tag = decoder.peek_tag()
    if tag == TAG_UTC_TIME:
        year, month, day, hour, minute, second = _parse_time(decoder.decode(tag), _UTC_TIME_PATTERN, "UTCTime")
        year += 1900 if year >= 50 else 2000
    elif tag == TAG_GENERALIZED_TIME:
        year, month, day, hour, minute, second = _parse_time(
            decoder.decode(tag), _GENERALIZED_TIME_PATTERN, "GeneralizedTime"
        )
    else:
        raise MalformedEncoding(f"Expected a UTCTime or GeneralizedTime, but got tag: 0x{tag:02X}")

    try:
        return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc)
    except ValueError as err:
        raise MalformedEncoding(f"Invalid time value: {err}") from err


OIDLike = Union[ObjectIdentifier, str, Sequence[int]]


def to_oid(value: OIDLike) -> ObjectIdentifier:
    """Convert a dotted string or a sequence of arcs into an `ObjectIdentifier`."""
    if isinstance(value, ObjectIdentifier):
        return value
    if isinstance(value, str):
        return ObjectIdentifier.from_string(value)
    return ObjectIdentifier(tuple(value))
