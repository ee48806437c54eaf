# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

"""The certificate extensions: BasicConstraints, KeyUsage and ExtendedKeyUsage.

Extensions with another OID are ignored while decoding, unless they are marked critical,
in which case the certificate can not be processed and decoding fails.
"""

import logging
from dataclasses import dataclass, fields
from typing import ClassVar, Iterable, List, Optional, Tuple

from certkit.asn1types import BitString, DERStructure, ObjectIdentifier, OIDLike, to_oid
from certkit.dercoder import (
    TAG_BOOLEAN,
    TAG_INTEGER,
    DERDecoder,
    encode_boolean,
    encode_octet_string,
    encode_sequence,
    encode_unsigned_integer,
)
from certkit.exceptions import MalformedEncoding, UnknownOID
from certkit.oidutils import (
    EKU_NAME_2_OID,
    EKU_OID_2_NAME,
    EXTENSION_OID_2_NAME,
    KEY_USAGE_NAMES,
    id_ce_basicConstraints,
    id_ce_extKeyUsage,
    id_ce_keyUsage,
)


@dataclass(frozen=True)
class Extension(DERStructure):
    """A single extension: OID, criticality and the DER encoded value (the OCTET STRING content)."""

    extn_id: ObjectIdentifier
    critical: bool
    value: bytes

    def encode(self) -> bytes:
        """Return the DER encoding; `critical` is only encoded if `True` (DER default)."""
        critical = encode_boolean(True) if self.critical else b""
        return encode_sequence(self.extn_id.encode() + critical + encode_octet_string(self.value))

    @classmethod
    def decode(cls, decoder: DERDecoder) -> "Extension":
        """Decode an `Extension` SEQUENCE."""
        sub = decoder.decoder_from_sequence()
        extn_id = ObjectIdentifier.decode(sub)
        critical = sub.decode_boolean() if sub.next_tag_is(TAG_BOOLEAN) else False
        value = sub.decode_octet_string()
        sub.assert_at_end("Extension")
        return cls(extn_id, critical, value)


class _TypedExtension(DERStructure):
    """Base for the supported extensions, which know their OID and their criticality."""

    extn_id: ClassVar[ObjectIdentifier]
    critical: bool

    def to_extension(self) -> Extension:
        """Wrap the encoded value into an `Extension`."""
        return Extension(self.extn_id, self.critical, self.encode())

    @classmethod
    def from_extension(cls, extension: Extension):
        """Decode the value of an `Extension` into the typed extension.

        :raises MalformedEncoding: If the value is malformed.
        """
        decoder = DERDecoder(extension.value)
        decoded = cls.decode(decoder, critical=extension.critical)
        decoder.assert_at_end(EXTENSION_OID_2_NAME[cls.extn_id])
        return decoded


@dataclass(frozen=True)
class BasicConstraints(_TypedExtension):
    """The BasicConstraints extension (RFC 5280 4.2.1.9)."""

    extn_id: ClassVar[ObjectIdentifier] = id_ce_basicConstraints

    ca: bool = False
    path_length: Optional[int] = None
    critical: bool = True

    def encode(self) -> bytes:
        """Return the DER encoding of the value; `cA FALSE` is encoded by omission."""
        content = encode_boolean(True) if self.ca else b""
        if self.path_length is not None:
            content += encode_unsigned_integer(self.path_length)
        return encode_sequence(content)

    @classmethod
    def decode(cls, decoder: DERDecoder, critical: bool = True) -> "BasicConstraints":  # type: ignore[override]
        """Decode the `BasicConstraints` SEQUENCE."""
        sub = decoder.decoder_from_sequence()
        ca = sub.decode_boolean() if sub.next_tag_is(TAG_BOOLEAN) else False
        path_length = sub.decode_unsigned_integer() if sub.next_tag_is(TAG_INTEGER) else None
        sub.assert_at_end("BasicConstraints")
        return cls(ca=ca, path_length=path_length, critical=critical)


@dataclass(frozen=True)
class KeyUsage(_TypedExtension):
    """The KeyUsage extension (RFC 5280 4.2.1.3).

    The flags are packed most significant bit first: `digital_signature` is 0x80 of the first byte,
    `decipher_only` is 0x80 of the second byte.
    """

    extn_id: ClassVar[ObjectIdentifier] = id_ce_keyUsage

    digital_signature: bool = False
    non_repudiation: bool = False
    key_encipherment: bool = False
    data_encipherment: bool = False
    key_agreement: bool = False
    key_cert_sign: bool = False
    crl_sign: bool = False
    encipher_only: bool = False
    decipher_only: bool = False
    critical: bool = True

    def _flags(self) -> List[bool]:
        return [getattr(self, flag.name) for flag in fields(self)[:9]]

    @classmethod
    def from_names(cls, names: Iterable[str], critical: bool = True) -> "KeyUsage":
        """Build the extension from RFC names, e.g. `["digitalSignature", "keyCertSign"]`.

        :raises ValueError: If a name is unknown.
        """
        flag_names = [flag.name for flag in fields(cls)[:9]]
        values = {}
        for name in names:
            if name not in KEY_USAGE_NAMES:
                raise ValueError(f"Unknown key usage: {name!r}. Allowed are: {KEY_USAGE_NAMES}")
            values[flag_names[KEY_USAGE_NAMES.index(name)]] = True
        return cls(critical=critical, **values)

    def get_names(self) -> List[str]:
        """Return the RFC names of all set flags."""
        return [name for name, flag in zip(KEY_USAGE_NAMES, self._flags()) if flag]

    def encode(self) -> bytes:
        """Return the DER encoding of the value, with trailing zero bits removed."""
        return BitString.from_bits(self._flags()).encode()

    @classmethod
    def decode(cls, decoder: DERDecoder, critical: bool = True) -> "KeyUsage":  # type: ignore[override]
        """Decode the `KeyUsage` BIT STRING; at most nine bits may be used."""
        bits = BitString.decode(decoder)
        if len(bits) > len(KEY_USAGE_NAMES) and any(bits.to_bits()[len(KEY_USAGE_NAMES) :]):
            raise MalformedEncoding(f"The KeyUsage has more than {len(KEY_USAGE_NAMES)} named bits set.")
        flags = [bits.bit(position) for position in range(len(KEY_USAGE_NAMES))]
        return cls(*flags, critical=critical)


@dataclass(frozen=True)
class ExtendedKeyUsage(_TypedExtension):
    """The ExtendedKeyUsage extension (RFC 5280 4.2.1.12)."""

    extn_id: ClassVar[ObjectIdentifier] = id_ce_extKeyUsage

    purposes: Tuple[ObjectIdentifier, ...] = ()
    critical: bool = False

    def __post_init__(self):
        """Convert the purposes into a tuple of `ObjectIdentifier`."""
        object.__setattr__(self, "purposes", tuple(to_oid(purpose) for purpose in self.purposes))

    @classmethod
    def from_names(cls, names: Iterable[OIDLike], critical: bool = False) -> "ExtendedKeyUsage":
        """Build the extension from names like "serverAuth" or from OIDs."""
        return cls(tuple(EKU_NAME_2_OID.get(name, name) for name in names), critical)  # type: ignore[arg-type]

    def get_names(self) -> List[str]:
        """Return the names of the purposes; unknown purposes are returned as dotted string."""
        return [EKU_OID_2_NAME.get(purpose, purpose.dotted_string) for purpose in self.purposes]

    def encode(self) -> bytes:
        """Return the DER encoding of the value."""
        return encode_sequence(b"".join(purpose.encode() for purpose in self.purposes))

    @classmethod
    def decode(cls, decoder: DERDecoder, critical: bool = False) -> "ExtendedKeyUsage":  # type: ignore[override]
        """Decode the `ExtKeyUsageSyntax` SEQUENCE OF KeyPurposeId."""
        sub = decoder.decoder_from_sequence()
        purposes = []
        while sub.more:
            purposes.append(ObjectIdentifier.decode(sub))
        sub.expect(len(purposes) > 0, "The ExtendedKeyUsage must contain at least one purpose.")
        return cls(tuple(purposes), critical)


_SUPPORTED_EXTENSIONS = {
    id_ce_basicConstraints: ("basic_constraints", BasicConstraints),
    id_ce_keyUsage: ("key_usage", KeyUsage),
    id_ce_extKeyUsage: ("extended_key_usage", ExtendedKeyUsage),
}


@dataclass(frozen=True)
class Extensions(DERStructure):
    """The supported extensions of a certificate.

    Encoded as SEQUENCE OF Extension in the order BasicConstraints, KeyUsage, ExtendedKeyUsage.
    """

    basic_constraints: Optional[BasicConstraints] = None
    key_usage: Optional[KeyUsage] = None
    extended_key_usage: Optional[ExtendedKeyUsage] = None

    def to_list(self) -> List[Extension]:
        """Return the present extensions as generic `Extension` objects."""
        present = [self.basic_constraints, self.key_usage, self.extended_key_usage]
        return [extension.to_extension() for extension in present if extension is not None]

    def is_empty(self) -> bool:
        """Return `True` if no extension is present."""
        return not self.to_list()

    def encode(self) -> bytes:
        """Return the DER encoding."""
        return encode_sequence(b"".join(extension.encode() for extension in self.to_list()))

    @classmethod
    def decode(cls, decoder: DERDecoder) -> "Extensions":
        """Decode the `Extensions` SEQUENCE.

        :raises UnknownOID: If an unknown extension is marked critical.
        :raises MalformedEncoding: If an extension occurs twice or a value is malformed.
        """
        sub = decoder.decoder_from_sequence()
        values = {}
        seen = set()
        while sub.more:
            extension = Extension.decode(sub)
            if extension.extn_id in seen:
                raise MalformedEncoding(f"The extension {extension.extn_id} is present more than once.")
            seen.add(extension.extn_id)

            if extension.extn_id not in _SUPPORTED_EXTENSIONS:
                if extension.critical:
                    raise UnknownOID(extension.extn_id.arcs, "as critical extension")
                logging.debug("Ignoring the unknown non-critical extension: %s", extension.extn_id)
                continue

            field_name, extension_cls = _SUPPORTED_EXTENSIONS[extension.extn_id]
            values[field_name] = extension_cls.from_extension(extension)

        return cls(**values)
