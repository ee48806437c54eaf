# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

"""PKCS#10 certification requests (RFC 2986).

A `CertificationRequest` carries the subject name and public key of the requester and is signed with the
matching private key, so it can be verified with the key it contains.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from cryptography.exceptions import InvalidSignature
from robot.api.deco import keyword

from certkit import cryptoutils, keyutils
from certkit.asn1types import BitString, DERStructure
from certkit.dercoder import (
    DERDecoder,
    encode_bit_string,
    encode_context,
    encode_integer,
    encode_sequence,
    make_context_tag,
)
from certkit.exceptions import DecodeError, MalformedEncoding, SignatureMismatch, UnsupportedValue
from certkit.typingutils import PublicKey
from certkit.x509structures import AlgorithmIdentifier, Name, SubjectPublicKeyInfo

TAG_ATTRIBUTES = make_context_tag(0)


@dataclass(frozen=True)
class CertificationRequestInfo(DERStructure):
    """The signed part of a certification request.

    `attributes` holds the DER encoded content of the `[0]` attributes SET; an empty byte string encodes
    the empty set (`A0 00`) and `None` omits the field.
    """

    subject: Name
    subject_public_key_info: SubjectPublicKeyInfo
    attributes: Optional[bytes] = b""
    version: int = 0
    _raw: Optional[bytes] = field(default=None, init=False, repr=False, compare=False)

    def encode(self) -> bytes:
        """Return the DER encoding, preferring the bytes the structure was decoded from."""
        if self._raw is not None:
            return self._raw

        content = encode_integer(self.version) + self.subject.encode() + self.subject_public_key_info.encode()
        if self.attributes is not None:
            content += encode_context(0, self.attributes)
        return encode_sequence(content)

    @classmethod
    def decode(cls, decoder: DERDecoder) -> "CertificationRequestInfo":
        """Decode a `CertificationRequestInfo` SEQUENCE.

        :raises UnsupportedValue: If the version is not 0.
        """
        sub = decoder.decoder_from_sequence()
        version = sub.decode_integer()
        if version != 0:
            raise UnsupportedValue(f"Unsupported certification request version: {version}")

        subject = Name.decode(sub)
        subject_public_key_info = SubjectPublicKeyInfo.decode(sub)
        attributes = sub.decode(TAG_ATTRIBUTES) if sub.next_tag_is(TAG_ATTRIBUTES) else None
        sub.assert_at_end("CertificationRequestInfo")

        info = cls(subject, subject_public_key_info, attributes, version)
        object.__setattr__(info, "_raw", sub.raw)
        return info


@dataclass(frozen=True)
class CertificationRequest(DERStructure):
    """A signed PKCS#10 certification request."""

    certification_request_info: CertificationRequestInfo
    signature_algorithm: AlgorithmIdentifier
    signature: bytes

    @property
    def subject(self) -> Name:
        """Return the requested subject name."""
        return self.certification_request_info.subject

    def public_key(self) -> PublicKey:
        """Return the embedded public key as `cryptography` object."""
        return keyutils.load_public_key_from_spki(self.certification_request_info.subject_public_key_info)

    def verify_signature(self) -> bool:
        """Verify the signature over the request info with the embedded public key.

        :return: `True` if the signature is valid, otherwise `False`.
        """
        try:
            cryptoutils.verify_signature(
                public_key=self.public_key(),
                signature=self.signature,
                data=self.certification_request_info.encode(),
                hash_alg=self.signature_algorithm.hash_alg,
            )
        except InvalidSignature:
            logging.info("The signature of the certification request for `%s` is invalid.", self.subject)
            return False
        except DecodeError as err:
            logging.info("Can not verify the certification request for `%s`: %s", self.subject, err.message)
            return False
        return True

    def encode(self) -> bytes:
        """Return the DER encoding."""
        return encode_sequence(
            self.certification_request_info.encode()
            + self.signature_algorithm.encode()
            + encode_bit_string(self.signature)
        )

    @classmethod
    def decode(cls, decoder: DERDecoder) -> "CertificationRequest":
        """Decode a `CertificationRequest` SEQUENCE.

        :raises MalformedEncoding: If the structure is malformed or the signature has unused bits.
        """
        sub = decoder.decoder_from_sequence()
        info = CertificationRequestInfo.decode(sub)
        signature_algorithm = AlgorithmIdentifier.decode(sub)
        signature = BitString.decode(sub)
        sub.assert_at_end("CertificationRequest")

        if signature.unused_bits:
            raise MalformedEncoding("The signature BIT STRING must not have unused bits.")
        return cls(info, signature_algorithm, signature.data)


@keyword(name="Parse CSR")
def parse_csr(data: bytes) -> CertificationRequest:  # noqa D417 undocumented-param
    """Decode a DER encoded PKCS#10 certification request.

    Arguments:
    ---------
        - `data`: The DER encoded request.

    Returns:
    -------
        - The decoded `CertificationRequest`.

    Raises:
    ------
        - `DecodeError`: If the data is not a valid certification request or has trailing data.

    Examples:
    --------
    | ${csr}= | Parse CSR | ${der_data} |

    """
    return CertificationRequest.from_der(data)


@keyword(name="Verify CSR Signature")
def verify_csr_signature(csr: Union[CertificationRequest, bytes]) -> None:  # noqa D417 undocumented-param
    """Verify the signature of a certification request with its embedded public key.

    Arguments:
    ---------
        - `csr`: The request, decoded or DER encoded.

    Raises:
    ------
        - `SignatureMismatch`: If the signature is invalid.

    Examples:
    --------
    | Verify CSR Signature | ${csr} |

    """
    if isinstance(csr, bytes):
        csr = parse_csr(csr)

    if not csr.verify_signature():
        raise SignatureMismatch(f"The signature of the certification request for `{csr.subject}` is invalid.")
