# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

"""The X.509 v3 certificate: `TBSCertificate` and `Certificate`.

A decoded `TBSCertificate` keeps the bytes it was decoded from. Signatures are always verified over those
bytes, never over a re-encoding of the decoded fields.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from cryptography.exceptions import InvalidSignature

from certkit import cryptoutils, keyutils
from certkit.asn1types import BitString, DERStructure
from certkit.dercoder import (
    DERDecoder,
    encode_bit_string,
    encode_context,
    encode_integer,
    encode_sequence,
    encode_tlv,
    encode_unsigned_integer,
    make_context_tag,
)
from certkit.exceptions import DecodeError, MalformedEncoding, UnsupportedValue
from certkit.typingutils import PublicKey
from certkit.x509extensions import BasicConstraints, ExtendedKeyUsage, Extensions, KeyUsage
from certkit.x509structures import AlgorithmIdentifier, Name, SubjectPublicKeyInfo, Validity

# The version field holds 0 for v1, 1 for v2 and 2 for v3.
VERSION_V1 = 0
VERSION_V2 = 1
VERSION_V3 = 2

TAG_VERSION = make_context_tag(0)
TAG_ISSUER_UNIQUE_ID = make_context_tag(1, constructed=False)
TAG_SUBJECT_UNIQUE_ID = make_context_tag(2, constructed=False)
TAG_EXTENSIONS = make_context_tag(3)


def _encode_unique_id(tag: int, unique_id: Optional[BitString]) -> bytes:
    if unique_id is None:
        return b""
    return encode_tlv(tag, bytes([unique_id.unused_bits]) + unique_id.data)


def _decode_unique_id(decoder: DERDecoder, tag: int) -> Optional[BitString]:
    """Decode an optional `[n] IMPLICIT BIT STRING` unique identifier."""
    if not decoder.next_tag_is(tag):
        return None

    content = decoder.decode(tag)
    decoder.expect(len(content) > 0, "A unique identifier must contain the unused-bits byte.")
    try:
        return BitString(content[1:], content[0])
    except ValueError as err:
        raise MalformedEncoding(f"Invalid unique identifier: {err}") from err


@dataclass(frozen=True)
class TBSCertificate(DERStructure):
    """The "to be signed" part of a certificate."""

    serial_number: int
    signature: AlgorithmIdentifier
    issuer: Name
    validity: Validity
    subject: Name
    subject_public_key_info: SubjectPublicKeyInfo
    version: int = VERSION_V3
    issuer_unique_id: Optional[BitString] = None
    subject_unique_id: Optional[BitString] = None
    extensions: Optional[Extensions] = None
    _raw: Optional[bytes] = field(default=None, init=False, repr=False, compare=False)

    def encode(self) -> bytes:
        """Return the DER encoding, preferring the bytes the structure was decoded from."""
        if self._raw is not None:
            return self._raw

        content = b""
        if self.version != VERSION_V1:
            content += encode_context(0, encode_integer(self.version))

        content += encode_unsigned_integer(self.serial_number)
        content += self.signature.encode()
        content += self.issuer.encode()
        content += self.validity.encode()
        content += self.subject.encode()
        content += self.subject_public_key_info.encode()
        content += _encode_unique_id(TAG_ISSUER_UNIQUE_ID, self.issuer_unique_id)
        content += _encode_unique_id(TAG_SUBJECT_UNIQUE_ID, self.subject_unique_id)

        if self.extensions is not None and not self.extensions.is_empty():
            content += encode_context(3, self.extensions.encode())

        return encode_sequence(content)

    @classmethod
    def decode(cls, decoder: DERDecoder) -> "TBSCertificate":
        """Decode a `TBSCertificate` SEQUENCE.

        :raises MalformedEncoding: If the structure is malformed.
        :raises UnsupportedValue: If the version or the serial number is not supported.
        :raises UnknownOID: If a name attribute or a critical extension is unknown.
        """
        sub = decoder.decoder_from_sequence()

        version = VERSION_V1
        if sub.next_tag_is(TAG_VERSION):
            version_decoder = sub.decoder_from_tag(TAG_VERSION)
            version = version_decoder.decode_integer()
            version_decoder.assert_at_end("version")
            if version not in (VERSION_V1, VERSION_V2, VERSION_V3):
                raise UnsupportedValue(f"Unsupported certificate version: {version}")

        serial_number = sub.decode_unsigned_integer()
        signature = AlgorithmIdentifier.decode(sub)
        issuer = Name.decode(sub)
        validity = Validity.decode(sub)
        subject = Name.decode(sub)
        subject_public_key_info = SubjectPublicKeyInfo.decode(sub)
        issuer_unique_id = _decode_unique_id(sub, TAG_ISSUER_UNIQUE_ID)
        subject_unique_id = _decode_unique_id(sub, TAG_SUBJECT_UNIQUE_ID)

        extensions = None
        if sub.next_tag_is(TAG_EXTENSIONS):
            sub.expect(version == VERSION_V3, "Extensions are only allowed in version 3 certificates.")
            extensions_decoder = sub.decoder_from_tag(TAG_EXTENSIONS)
            extensions = Extensions.decode(extensions_decoder)
            extensions_decoder.assert_at_end("extensions")

        sub.assert_at_end("TBSCertificate")

        tbs_certificate = cls(
            serial_number=serial_number,
            signature=signature,
            issuer=issuer,
            validity=validity,
            subject=subject,
            subject_public_key_info=subject_public_key_info,
            version=version,
            issuer_unique_id=issuer_unique_id,
            subject_unique_id=subject_unique_id,
            extensions=extensions,
        )
        object.__setattr__(tbs_certificate, "_raw", sub.raw)
        return tbs_certificate


@dataclass(frozen=True)
class Certificate(DERStructure):
    """An X.509 certificate: the `TBSCertificate`, the signature algorithm and the signature."""

    tbs_certificate: TBSCertificate
    signature_algorithm: AlgorithmIdentifier
    signature: bytes

    @property
    def issuer(self) -> Name:
        """Return the issuer name."""
        return self.tbs_certificate.issuer

    @property
    def subject(self) -> Name:
        """Return the subject name."""
        return self.tbs_certificate.subject

    @property
    def serial_number(self) -> int:
        """Return the serial number."""
        return self.tbs_certificate.serial_number

    @property
    def validity(self) -> Validity:
        """Return the validity period."""
        return self.tbs_certificate.validity

    @property
    def extensions(self) -> Extensions:
        """Return the extensions; an empty `Extensions` object if the certificate has none."""
        return self.tbs_certificate.extensions or Extensions()

    @property
    def basic_constraints(self) -> Optional[BasicConstraints]:
        """Return the BasicConstraints extension, if present."""
        return self.extensions.basic_constraints

    @property
    def key_usage(self) -> Optional[KeyUsage]:
        """Return the KeyUsage extension, if present."""
        return self.extensions.key_usage

    @property
    def extended_key_usage(self) -> Optional[ExtendedKeyUsage]:
        """Return the ExtendedKeyUsage extension, if present."""
        return self.extensions.extended_key_usage

    @property
    def is_ca(self) -> bool:
        """Return `True` if the BasicConstraints extension marks the certificate as CA."""
        return self.basic_constraints is not None and self.basic_constraints.ca

    def public_key(self) -> PublicKey:
        """Return the subject public key as `cryptography` object."""
        return keyutils.load_public_key_from_spki(self.tbs_certificate.subject_public_key_info)

    def fingerprint(self, hash_alg: str = "sha256") -> bytes:
        """Return the digest of the DER encoded certificate."""
        return cryptoutils.compute_hash(hash_alg, self.encode())

    def certified_by(self, authority: "Certificate") -> bool:
        """Check whether `authority` issued this certificate.

        The subject of the authority must equal the issuer of this certificate and the signature must
        verify over the original bytes of the `TBSCertificate` under the authority's public key.

        :param authority: The possible issuer.
        :return: `True` if the authority issued this certificate, otherwise `False`.
        """
        if authority.subject != self.issuer:
            logging.debug("The issuer `%s` does not match the subject `%s`.", self.issuer, authority.subject)
            return False

        try:
            cryptoutils.verify_signature(
                public_key=authority.public_key(),
                signature=self.signature,
                data=self.tbs_certificate.encode(),
                hash_alg=self.signature_algorithm.hash_alg,
            )
        except InvalidSignature:
            logging.info(
                "The signature of `%s` does not verify under the key of `%s`.", self.subject, authority.subject
            )
            return False
        except DecodeError as err:
            logging.info("Can not verify the signature of `%s`: %s", self.subject, err.message)
            return False

        return True

    def self_signed(self) -> bool:
        """Return `True` if the certificate verifies under its own public key."""
        return self.certified_by(self)

    def encode(self) -> bytes:
        """Return the DER encoding."""
        return encode_sequence(
            self.tbs_certificate.encode() + self.signature_algorithm.encode() + encode_bit_string(self.signature)
        )

    @classmethod
    def decode(cls, decoder: DERDecoder) -> "Certificate":
        """Decode a `Certificate` SEQUENCE.

        The signature length is taken from the BIT STRING; the unused-bits byte must be zero.

        :raises MalformedEncoding: If the structure is malformed or the algorithm identifiers mismatch.
        :raises UnsupportedValue: If the certificate contains unsupported values.
        """
        sub = decoder.decoder_from_sequence()
        tbs_certificate = TBSCertificate.decode(sub)
        signature_algorithm = AlgorithmIdentifier.decode(sub)
        signature = BitString.decode(sub)
        sub.assert_at_end("Certificate")

        if signature.unused_bits:
            raise MalformedEncoding("The signature BIT STRING must not have unused bits.")
        if tbs_certificate.signature.algorithm != signature_algorithm.algorithm:
            raise MalformedEncoding(
                "The signature algorithm of the `TBSCertificate` and the `Certificate` mismatch: "
                f"{tbs_certificate.signature.algorithm} != {signature_algorithm.algorithm}"
            )

        return cls(tbs_certificate, signature_algorithm, signature.data)
