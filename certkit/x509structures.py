# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

"""X.509 building blocks shared by certificates and certification requests.

Contains `AlgorithmIdentifier`, `Name`, `Validity`, `RSAPublicKey` and `SubjectPublicKeyInfo`.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional, Union

from certkit.asn1types import BitString, DERStructure, ObjectIdentifier, X509String, decode_time, encode_time, to_utc
from certkit.dercoder import (
    DERDecoder,
    encode_null,
    encode_sequence,
    encode_set,
    encode_unsigned_integer,
)
from certkit.exceptions import MalformedEncoding, UnknownOID
from certkit.oidutils import (
    ALGORITHMS_WITH_NULL_PARAMS,
    NAME_MAP,
    NAME_OID_2_FIELD,
    NAME_OID_2_SHORT_NAME,
    NAME_OID_2_STRING_TYPE,
    RSA_SHA_OID_2_NAME,
    rsaEncryption,
)
from certkit.suiteenums import StringType

NameValue = Optional[Union[X509String, str]]


@dataclass(frozen=True)
class AlgorithmIdentifier(DERStructure):
    """An algorithm OID with its optional parameters, kept as raw DER bytes."""

    algorithm: ObjectIdentifier
    parameters: Optional[bytes] = None

    @classmethod
    def for_oid(cls, algorithm: ObjectIdentifier) -> "AlgorithmIdentifier":
        """Build the identifier with the parameters the algorithm requires (NULL for PKCS#1)."""
        if algorithm in ALGORITHMS_WITH_NULL_PARAMS:
            return cls(algorithm, encode_null())
        return cls(algorithm)

    @property
    def hash_alg(self) -> str:
        """Return the name of the digest of this signature algorithm, e.g. "sha256".

        :raises UnknownOID: If the algorithm is not a supported RSA signature algorithm.
        """
        hash_alg = RSA_SHA_OID_2_NAME.get(self.algorithm)
        if hash_alg is None:
            raise UnknownOID(self.algorithm.arcs, "as signature algorithm")
        return hash_alg

    def encode(self) -> bytes:
        """Return the DER encoding."""
        return encode_sequence(self.algorithm.encode() + (self.parameters or b""))

    @classmethod
    def decode(cls, decoder: DERDecoder) -> "AlgorithmIdentifier":
        """Decode an `AlgorithmIdentifier` SEQUENCE."""
        sub = decoder.decoder_from_sequence()
        algorithm = ObjectIdentifier.decode(sub)
        parameters = sub.decode_raw() if sub.more else None
        sub.assert_at_end("AlgorithmIdentifier")
        return cls(algorithm, parameters)


def _to_x509_string(oid: ObjectIdentifier, value: NameValue) -> Optional[X509String]:
    """Wrap a plain string into a `X509String` with the default string type of the attribute."""
    if value is None or isinstance(value, X509String):
        return value
    return X509String(value, NAME_OID_2_STRING_TYPE.get(oid, StringType.UTF8))


@dataclass(frozen=True)
class Name(DERStructure):
    """A distinguished name with the seven supported attributes.

    A decoded `Name` keeps the bytes it was decoded from and `encode` returns exactly those bytes, so that
    a signature over a structure containing the `Name` can always be verified. A `Name` built by
    `dataclasses.replace` or the constructor does not have them and is encoded fresh, one attribute per
    RDN in the order: CN, C, L, ST, O, OU, emailAddress.
    """

    common_name: NameValue = None
    country_name: NameValue = None
    locality_name: NameValue = None
    state_or_province_name: NameValue = None
    organization_name: NameValue = None
    organizational_unit_name: NameValue = None
    email_address: NameValue = None
    _raw: Optional[bytes] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        """Convert plain strings to `X509String` objects."""
        for oid, field_name in NAME_OID_2_FIELD.items():
            object.__setattr__(self, field_name, _to_x509_string(oid, getattr(self, field_name)))

    def attributes(self) -> Dict[ObjectIdentifier, X509String]:
        """Return the present attributes in encoding order."""
        attributes = {}
        for oid, field_name in NAME_OID_2_FIELD.items():
            value = getattr(self, field_name)
            if value is not None:
                attributes[oid] = value
        return attributes

    @property
    def common_name_value(self) -> Optional[str]:
        """Return the text of the common name, if present."""
        return None if self.common_name is None else self.common_name.value

    def encode(self) -> bytes:
        """Return the DER encoding, preferring the bytes the name was decoded from."""
        if self._raw is not None:
            return self._raw

        rdns = b""
        for oid, value in self.attributes().items():
            rdns += encode_set(encode_sequence(oid.encode() + value.encode()))
        return encode_sequence(rdns)

    @classmethod
    def decode(cls, decoder: DERDecoder) -> "Name":
        """Decode a `Name` (RDNSequence).

        If an attribute type occurs more than once, the last occurrence wins.

        :raises UnknownOID: If the name contains an unsupported attribute type.
        """
        sub = decoder.decoder_from_sequence()
        values = {}
        while sub.more:
            rdn = sub.decoder_from_set()
            rdn.expect(rdn.more, "A RelativeDistinguishedName must not be empty.")
            while rdn.more:
                atv = rdn.decoder_from_sequence()
                oid = ObjectIdentifier.decode(atv)
                value = X509String.decode(atv)
                atv.assert_at_end("AttributeTypeAndValue")

                field_name = NAME_OID_2_FIELD.get(oid)
                if field_name is None:
                    raise UnknownOID(oid.arcs, "as name attribute type")
                values[field_name] = value

        name = cls(**values)
        object.__setattr__(name, "_raw", sub.raw)
        return name

    def __str__(self) -> str:
        """Return the name in OpenSSL notation, e.g. "CN=Hans the Tester,O=Siemens"."""
        parts = []
        for oid, value in self.attributes().items():
            escaped = value.value.replace("\\", "\\\\").replace(",", "\\,")
            parts.append(f"{NAME_OID_2_SHORT_NAME[oid]}={escaped}")
        return ",".join(parts)

    @classmethod
    def from_string(cls, data: str) -> "Name":
        """Parse a name in OpenSSL notation, e.g. "CN=Hans the Tester,C=DE".

        A comma inside a value is escaped as `\\,` and a backslash as `\\\\`.

        :param data: The string to parse.
        :return: The parsed name.
        :raises ValueError: If an attribute is malformed or unsupported.
        """
        values = {}
        for item in _split_name_string(data):
            item = item.strip()
            if not item:
                continue
            if "=" not in item:
                raise ValueError(f"Invalid name attribute: {item!r}, expected `type=value`.")

            short_name, value = item.split("=", 1)
            oid = NAME_MAP.get(short_name.strip())
            if oid is None:
                raise ValueError(f"Unsupported name attribute: {short_name!r}. Supported are: {list(NAME_MAP)}")
            values[NAME_OID_2_FIELD[oid]] = value

        return cls(**values)


def _split_name_string(data: str) -> List[str]:
    """Split a name in OpenSSL notation at the unescaped commas and resolve the backslash escapes."""
    items = []
    current = ""
    chars = iter(data)
    for char in chars:
        if char == "\\":
            escaped = next(chars, None)
            if escaped is None:
                raise ValueError(f"The name ends with a dangling escape character: {data!r}")
            current += escaped
        elif char == ",":
            items.append(current)
            current = ""
        else:
            current += char
    items.append(current)
    return items


@dataclass(frozen=True)
class Validity(DERStructure):
    """The validity period `[not_before, not_after]` of a certificate, both in UTC."""

    not_before: datetime
    not_after: datetime

    def __post_init__(self):
        """Normalize both times to UTC and check the order."""
        object.__setattr__(self, "not_before", to_utc(self.not_before))
        object.__setattr__(self, "not_after", to_utc(self.not_after))
        if self.not_before > self.not_after:
            raise ValueError(f"notBefore ({self.not_before}) is after notAfter ({self.not_after}).")

    @classmethod
    def from_days(cls, days: int = 365, not_before: Optional[datetime] = None) -> "Validity":
        """Build a validity period of `days` days starting at `not_before` (defaults to now)."""
        start = to_utc(not_before or datetime.now(timezone.utc))
        return cls(start, start + timedelta(days=days))

    def contains(self, moment: Optional[datetime] = None) -> bool:
        """Return `True` if `moment` (defaults to now) is inside the validity period."""
        moment = to_utc(moment or datetime.now(timezone.utc))
        return self.not_before <= moment <= self.not_after

    def encode(self) -> bytes:
        """Return the DER encoding."""
        return encode_sequence(encode_time(self.not_before) + encode_time(self.not_after))

    @classmethod
    def decode(cls, decoder: DERDecoder) -> "Validity":
        """Decode a `Validity` SEQUENCE.

        :raises MalformedEncoding: If notBefore is after notAfter.
        """
        sub = decoder.decoder_from_sequence()
        not_before = decode_time(sub)
        not_after = decode_time(sub)
        sub.assert_at_end("Validity")
        try:
            return cls(not_before, not_after)
        except ValueError as err:
            raise MalformedEncoding(f"Invalid validity period: {err}") from err


@dataclass(frozen=True)
class RSAPublicKey(DERStructure):
    """The PKCS#1 `RSAPublicKey` structure."""

    modulus: int
    public_exponent: int

    def encode(self) -> bytes:
        """Return the DER encoding."""
        return encode_sequence(encode_unsigned_integer(self.modulus) + encode_unsigned_integer(self.public_exponent))

    @classmethod
    def decode(cls, decoder: DERDecoder) -> "RSAPublicKey":
        """Decode an `RSAPublicKey` SEQUENCE."""
        sub = decoder.decoder_from_sequence()
        modulus = sub.decode_unsigned_integer()
        public_exponent = sub.decode_unsigned_integer()
        sub.assert_at_end("RSAPublicKey")
        return cls(modulus, public_exponent)


@dataclass(frozen=True)
class SubjectPublicKeyInfo(DERStructure):
    """The public key algorithm together with the raw public key bits."""

    algorithm: AlgorithmIdentifier
    subject_public_key: BitString

    @classmethod
    def from_rsa_public_key(cls, public_key: RSAPublicKey) -> "SubjectPublicKeyInfo":
        """Wrap an `RSAPublicKey` into a `SubjectPublicKeyInfo`."""
        return cls(AlgorithmIdentifier.for_oid(rsaEncryption), BitString(public_key.encode()))

    def rsa_public_key(self) -> RSAPublicKey:
        """Decode the bit string content as `RSAPublicKey`.

        :raises UnknownOID: If the algorithm is not `rsaEncryption`.
        """
        if self.algorithm.algorithm != rsaEncryption:
            raise UnknownOID(self.algorithm.algorithm.arcs, "as public key algorithm, only RSA is supported")
        return RSAPublicKey.from_der(self.subject_public_key.data)

    def encode(self) -> bytes:
        """Return the DER encoding."""
        return encode_sequence(self.algorithm.encode() + self.subject_public_key.encode())

    @classmethod
    def decode(cls, decoder: DERDecoder) -> "SubjectPublicKeyInfo":
        """Decode a `SubjectPublicKeyInfo` SEQUENCE.

        :raises MalformedEncoding: If the key bit string has unused bits.
        """
        sub = decoder.decoder_from_sequence()
        algorithm = AlgorithmIdentifier.decode(sub)
        public_key = BitString.decode(sub)
        sub.assert_at_end("SubjectPublicKeyInfo")
        if public_key.unused_bits:
            raise MalformedEncoding("The subject public key must not have unused bits.")
        return cls(algorithm, public_key)

