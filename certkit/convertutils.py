# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

"""Conversion between the DER model and the `pyasn1` and `cryptography` representations.

All conversions go through the DER encoding, so a converted structure is byte-identical to the original.
"""

from typing import Any, Union

import pyasn1.error
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from pyasn1.codec.der import decoder, encoder
from pyasn1_alt_modules import rfc2986, rfc5280
from robot.api.deco import keyword, not_keyword

from certkit.csrutils import CertificationRequest
from certkit.exceptions import MalformedEncoding
from certkit.typingutils import PrivateKey, Strint
from certkit.x509certificate import Certificate


@not_keyword
def ensure_is_rsa_private_key(key: Any) -> PrivateKey:
    """Ensure provided key is an RSA private key, which is allowed to sign."""
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ValueError(f"the provided key is not allowed to be used for signing: {type(key)}")
    return key


@not_keyword
def str_to_int(value: Strint) -> int:
    """Convert a string to an integer, with support for hex values starting with "0x".

    :param value: The value to convert.
    :return: The integer.
    """
    if isinstance(value, int):
        return value
    value = value.strip()
    if value.lower().startswith("0x"):
        return int(value, 16)
    return int(value)


def _decode_pyasn1(data: bytes, asn1_spec: Any, name: str):
    try:
        decoded, rest = decoder.decode(data, asn1Spec=asn1_spec)
    except pyasn1.error.PyAsn1Error as err:
        raise MalformedEncoding(f"The `{name}` structure could not be decoded with pyasn1.") from err
    if rest != b"":
        raise MalformedEncoding(f"Decoding the `{name}` structure with pyasn1 had a remainder.", error_details=name)
    return decoded


@keyword(name="Certificate To Pyasn1")
def certificate_to_pyasn1(cert: Certificate) -> rfc5280.Certificate:  # noqa D417 undocumented-param
    """Convert a `Certificate` into a `pyasn1` `rfc5280.Certificate`.

    Arguments:
    ---------
        - `cert`: The certificate to convert.

    Returns:
    -------
        - The decoded `pyasn1` certificate.

    Raises:
    ------
        - `MalformedEncoding`: If `pyasn1` can not decode the encoding.

    Examples:
    --------
    | ${asn1_cert}= | Certificate To Pyasn1 | ${cert} |

    """
    return _decode_pyasn1(cert.encode(), rfc5280.Certificate(), "Certificate")


@not_keyword
def certificate_from_pyasn1(cert: rfc5280.Certificate) -> Certificate:
    """Convert a `pyasn1` certificate into a `Certificate`.

    :param cert: The `pyasn1` certificate.
    :return: The decoded certificate.
    :raises DecodeError: If the certificate can not be decoded.
    """
    return Certificate.from_der(encoder.encode(cert))


@not_keyword
def csr_to_pyasn1(csr: CertificationRequest) -> rfc2986.CertificationRequest:
    """Convert a `CertificationRequest` into a `pyasn1` `rfc2986.CertificationRequest`.

    :param csr: The request to convert.
    :return: The decoded `pyasn1` request.
    """
    return _decode_pyasn1(csr.encode(), rfc2986.CertificationRequest(), "CertificationRequest")


@not_keyword
def csr_from_pyasn1(csr: rfc2986.CertificationRequest) -> CertificationRequest:
    """Convert a `pyasn1` certification request into a `CertificationRequest`."""
    return CertificationRequest.from_der(encoder.encode(csr))


@keyword(name="Certificate To Cryptography")
def certificate_to_cryptography(cert: Certificate) -> x509.Certificate:  # noqa D417 undocumented-param
    """Convert a `Certificate` into a `cryptography` `x509.Certificate`.

    Arguments:
    ---------
        - `cert`: The certificate to convert.

    Returns:
    -------
        - The `cryptography` certificate.

    Examples:
    --------
    | ${crypto_cert}= | Certificate To Cryptography | ${cert} |

    """
    return x509.load_der_x509_certificate(cert.encode())


@not_keyword
def certificate_from_cryptography(cert: x509.Certificate) -> Certificate:
    """Convert a `cryptography` certificate into a `Certificate`."""
    return Certificate.from_der(cert.public_bytes(serialization.Encoding.DER))


@not_keyword
def csr_to_cryptography(csr: CertificationRequest) -> x509.CertificateSigningRequest:
    """Convert a `CertificationRequest` into a `cryptography` `x509.CertificateSigningRequest`."""
    return x509.load_der_x509_csr(csr.encode())


@not_keyword
def csr_from_cryptography(csr: x509.CertificateSigningRequest) -> CertificationRequest:
    """Convert a `cryptography` certification request into a `CertificationRequest`."""
    return CertificationRequest.from_der(csr.public_bytes(serialization.Encoding.DER))


@not_keyword
def ensure_certificate(cert: Union[Certificate, x509.Certificate, rfc5280.Certificate, bytes]) -> Certificate:
    """Return `cert` as `Certificate`, converting it from DER, `cryptography` or `pyasn1`."""
    if isinstance(cert, Certificate):
        return cert
    if isinstance(cert, (bytes, bytearray)):
        return Certificate.from_der(bytes(cert))
    if isinstance(cert, x509.Certificate):
        return certificate_from_cryptography(cert)
    if isinstance(cert, rfc5280.Certificate):
        return certificate_from_pyasn1(cert)
    raise ValueError(f"Unsupported certificate type: {type(cert)}")
