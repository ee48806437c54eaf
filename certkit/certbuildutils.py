# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

"""Utility for building and signing certificates and PKCS#10 certification requests."""

import logging
from datetime import datetime
from typing import Optional, Tuple, Union

from cryptography import x509
from robot.api.deco import keyword, not_keyword

from certkit import convertutils, cryptoutils, keyutils
from certkit.csrutils import CertificationRequest, CertificationRequestInfo, verify_csr_signature
from certkit.oidutils import RSA_SHA_NAME_2_OID
from certkit.typingutils import PrivateKey, Strint
from certkit.x509certificate import Certificate, TBSCertificate
from certkit.x509extensions import BasicConstraints, ExtendedKeyUsage, Extensions, KeyUsage
from certkit.x509structures import AlgorithmIdentifier, Name, SubjectPublicKeyInfo, Validity

DEFAULT_VALIDITY_DAYS = 365

# The key usages of a CA certificate built by `generate_self_signed_certificate`.
CA_KEY_USAGE = "digitalSignature,keyCertSign,cRLSign"


@not_keyword
def prepare_sig_alg_id(hash_alg: str = cryptoutils.DEFAULT_HASH_ALG) -> AlgorithmIdentifier:
    """Prepare the `AlgorithmIdentifier` of a `sha*WithRSAEncryption` signature.

    :param hash_alg: The name of the hash algorithm, e.g. "sha256".
    :return: The populated `AlgorithmIdentifier` with NULL parameters.
    :raises ValueError: If the hash algorithm is not supported.
    """
    oid = RSA_SHA_NAME_2_OID.get(hash_alg.lower())
    if oid is None:
        raise ValueError(f"Unsupported hash algorithm for RSA signatures: {hash_alg}")
    return AlgorithmIdentifier.for_oid(oid)


@not_keyword
def prepare_name(common_name: Union[str, Name]) -> Name:
    """Parse a name in OpenSSL notation, e.g. "CN=Hans the Tester,O=Siemens"; a `Name` is returned unchanged."""
    if isinstance(common_name, Name):
        return common_name
    return Name.from_string(common_name)


@keyword(name="Prepare Validity")
def prepare_validity(  # noqa D417 undocumented-param
    not_before: Optional[datetime] = None,
    not_after: Optional[datetime] = None,
    days: Strint = DEFAULT_VALIDITY_DAYS,
) -> Validity:
    """Prepare a `Validity` object for use in a certificate.

    Times before 2050 are encoded as UTCTime, later times as GeneralizedTime.

    Arguments:
    ---------
        - `not_before`: A `datetime` object indicating when the certificate's validity begins. Defaults to now.
        - `not_after`: A `datetime` object indicating when the certificate's validity ends.
                       Defaults to `not_before` plus `days`.
        - `days`: The number of days the certificate is valid, if `not_after` is not given. Defaults to 365.

    Returns:
    -------
        - The populated `Validity` object.

    Raises:
    ------
        - `ValueError`: If `not_before` is after `not_after`.

    Examples:
    --------
    | ${validity}= | Prepare Validity | not_before=${start_date} | not_after=${end_date} |
    | ${validity}= | Prepare Validity | days=730 |

    """
    validity = Validity.from_days(convertutils.str_to_int(days), not_before)
    if not_after is None:
        return validity
    return Validity(validity.not_before, not_after)


@keyword(name="Prepare BasicConstraints Extension")
def prepare_basic_constraints_extension(  # noqa D417 undocumented-param
    ca: bool = False, path_length: Optional[Strint] = None, critical: bool = True
) -> BasicConstraints:
    """Prepare a `BasicConstraints` extension.

    Arguments:
    ---------
        - `ca`: Whether the certificate is a CA certificate. Defaults to `False`.
        - `path_length`: The maximum number of intermediate CA certificates. Defaults to `None`.
        - `critical`: Whether the extension is critical. Defaults to `True`.

    Returns:
    -------
        - The `BasicConstraints` extension.

    Examples:
    --------
    | ${extn}= | Prepare BasicConstraints Extension | ca=True | path_length=1 |

    """
    if path_length is not None:
        path_length = convertutils.str_to_int(path_length)
    return BasicConstraints(ca=ca, path_length=path_length, critical=critical)  # type: ignore[arg-type]


@keyword(name="Prepare KeyUsage Extension")
def prepare_key_usage_extension(key_usage: str, critical: bool = True) -> KeyUsage:  # noqa D417 undocumented-param
    """Prepare a `KeyUsage` extension.

    Arguments:
    ---------
        - `key_usage`: Comma-separated names of the key usages, e.g. "digitalSignature,keyCertSign".
        - `critical`: Whether the extension is critical. Defaults to `True`.

    Returns:
    -------
        - The `KeyUsage` extension.

    Raises:
    ------
        - `ValueError`: If a key usage name is unknown.

    Examples:
    --------
    | ${extn}= | Prepare KeyUsage Extension | digitalSignature,keyEncipherment |

    """
    names = [name.strip() for name in key_usage.split(",") if name.strip()]
    return KeyUsage.from_names(names, critical=critical)


@keyword(name="Prepare ExtendedKeyUsage Extension")
def prepare_extended_key_usage_extension(  # noqa D417 undocumented-param
    eku: str, critical: bool = False
) -> ExtendedKeyUsage:
    """Prepare an `ExtendedKeyUsage` extension.

    Arguments:
    ---------
        - `eku`: Comma-separated purpose names or dotted OIDs, e.g. "serverAuth,clientAuth".
        - `critical`: Whether the extension is critical. Defaults to `False`.

    Returns:
    -------
        - The `ExtendedKeyUsage` extension.

    Examples:
    --------
    | ${extn}= | Prepare ExtendedKeyUsage Extension | serverAuth,clientAuth |

    """
    names = [name.strip() for name in eku.split(",") if name.strip()]
    return ExtendedKeyUsage.from_names(names, critical=critical)


@not_keyword
def prepare_extensions(
    key_usage: Optional[str] = None,
    eku: Optional[str] = None,
    is_ca: Optional[bool] = None,
    path_length: Optional[Strint] = None,
    critical: bool = True,
) -> Extensions:
    """Prepare the extensions of a certificate.

    :param key_usage: Comma-separated key usage names. Defaults to `None` (not included).
    :param eku: Comma-separated extended key usage names. Defaults to `None` (not included).
    :param is_ca: Whether the certificate is a CA certificate. If `None` and no `path_length` is given,
    the BasicConstraints extension is not included.
    :param path_length: The path length of a CA certificate.
    :param critical: Whether the BasicConstraints and KeyUsage extensions are critical. Defaults to `True`.
    :return: The `Extensions` object.
    """
    basic_constraints = None
    if is_ca is not None or path_length is not None:
        basic_constraints = prepare_basic_constraints_extension(bool(is_ca), path_length, critical)

    return Extensions(
        basic_constraints=basic_constraints,
        key_usage=prepare_key_usage_extension(key_usage, critical) if key_usage else None,
        extended_key_usage=prepare_extended_key_usage_extension(eku) if eku else None,
    )


def _extensions_from_params(params: dict) -> Extensions:
    if params.get("extensions") is not None:
        return params["extensions"]
    return prepare_extensions(
        key_usage=params.get("key_usage"),
        eku=params.get("eku"),
        is_ca=params.get("is_ca"),
        path_length=params.get("path_length"),
        critical=params.get("critical", True),
    )


def _validity_from_params(params: dict) -> Validity:
    if params.get("validity") is not None:
        return params["validity"]
    return prepare_validity(not_before=params.get("not_before"), days=params.get("days", DEFAULT_VALIDITY_DAYS))


@not_keyword
def sign_cert(
    tbs_cert: TBSCertificate, signing_key: PrivateKey, hash_alg: str = cryptoutils.DEFAULT_HASH_ALG
) -> Certificate:
    """Sign a `TBSCertificate` and return the complete certificate.

    :param tbs_cert: The `TBSCertificate`; its signature algorithm must match `hash_alg`.
    :param signing_key: The private key of the issuer.
    :param hash_alg: The hash algorithm used for signing. Defaults to "sha256".
    :return: The signed `Certificate`.
    """
    signing_key = convertutils.ensure_is_rsa_private_key(signing_key)
    sig_alg_id = prepare_sig_alg_id(hash_alg)
    if tbs_cert.signature != sig_alg_id:
        raise ValueError(f"The `TBSCertificate` is prepared for another signature algorithm than {hash_alg}.")

    # Decode the signed bytes again, so the certificate keeps exactly those bytes.
    tbs_cert = TBSCertificate.from_der(tbs_cert.encode())
    signature = cryptoutils.sign_data(data=tbs_cert.encode(), key=signing_key, hash_alg=hash_alg)
    return Certificate(tbs_cert, sig_alg_id, signature)


@not_keyword
def prepare_tbs_certificate(
    subject: Union[str, Name],
    spki: SubjectPublicKeyInfo,
    issuer: Union[str, Name],
    serial_number: Optional[Strint] = None,
    validity: Optional[Validity] = None,
    hash_alg: str = cryptoutils.DEFAULT_HASH_ALG,
    extensions: Optional[Extensions] = None,
) -> TBSCertificate:
    """Prepare a version 3 `TBSCertificate`.

    :param subject: The subject name, in OpenSSL notation or as `Name`.
    :param spki: The subject public key info.
    :param issuer: The issuer name, in OpenSSL notation or as `Name`.
    :param serial_number: The serial number. Defaults to a random 159-bit number.
    :param validity: The validity period. Defaults to 365 days starting now.
    :param hash_alg: The hash algorithm of the signature. Defaults to "sha256".
    :param extensions: Optional extensions.
    :return: The populated `TBSCertificate`.
    """
    if serial_number is None:
        serial_number = x509.random_serial_number()

    return TBSCertificate(
        serial_number=convertutils.str_to_int(serial_number),
        signature=prepare_sig_alg_id(hash_alg),
        issuer=prepare_name(issuer),
        validity=validity or prepare_validity(),
        subject=prepare_name(subject),
        subject_public_key_info=spki,
        extensions=extensions,
    )


@keyword(name="Build Certificate")
def build_certificate(  # noqa D417 undocumented-param
    private_key: Optional[Union[str, PrivateKey]] = None,
    common_name: str = "CN=Hans",
    hash_alg: str = "sha256",
    ca_key: Optional[PrivateKey] = None,
    ca_cert: Optional[Certificate] = None,
    **params,
) -> Tuple[Certificate, PrivateKey]:
    """Build a `Certificate` that can be customized based on provided parameters.

    Arguments:
    ---------
        - `private_key`: An optional private key object or the name of the algorithm to generate a key for.
          If not provided, an RSA key is generated.
        - `common_name`: The name of the certificate subject, in OpenSSL notation. Defaults to `CN=Hans`.
        - `hash_alg`: The hash algorithm for signing. Defaults to `sha256`.
        - `ca_key`: An optional private key used to sign the certificate. Defaults to `private_key`.
        - `ca_cert`: The issuer's certificate. If not provided, the certificate is self-signed.

    **params (Additional optional parameters for customization):
    -----------------------------------------------------------
        - `serial_number` (int, str): The serial number for the certificate. If omitted, a random number is generated.
        - `days` (int, str): Number of days for certificate validity, starting from `not_before`. Defaults to 365.
        - `not_before` (datetime): Start of the certificate's validity. Defaults to now.
        - `validity` (Validity): The complete validity period; overrides `days` and `not_before`.
        - `is_ca` (bool): Indicates if the certificate is for a CA (Certificate Authority).
        - `path_length` (int): The maximum path length for CA certificates.
        - `key_usage` (str): Specific key usage (e.g., "digitalSignature") to set on the certificate.
        - `eku` (str): Extended key usage to set for the certificate.
        - `extensions` (Extensions): The extensions to use, instead of building them from the other parameters.
        - `critical` (bool): Whether the BasicConstraints and KeyUsage extensions are critical. Defaults to `True`.

    Returns:
    -------
        - A tuple containing the generated certificate and the private key.

    Raises:
    ------
        - `ValueError`: If the provided key is not allowed to sign a certificate.

    Examples:
    --------
    | ${certificate} ${private_key}= | Build Certificate |
    | ${certificate} ${private_key}= | Build Certificate | private_key=${key} \
    | serial_number=12345 | days=730 |
    | ${certificate} ${private_key}= | Build Certificate | private_key=${key} \
    | ca_key=${ca_key} | ca_cert=${ca_cert} |

    """
    if isinstance(private_key, str):
        cert_key = keyutils.generate_key(algorithm=private_key, **params)
    elif private_key is None:
        cert_key = keyutils.generate_key(algorithm="rsa", **params)
    else:
        cert_key = private_key

    subject = prepare_name(common_name)
    tbs_cert = prepare_tbs_certificate(
        subject=subject,
        spki=keyutils.prepare_subject_public_key_info(cert_key),
        issuer=ca_cert.subject if ca_cert is not None else subject,
        serial_number=params.get("serial_number"),
        validity=_validity_from_params(params),
        hash_alg=hash_alg,
        extensions=_extensions_from_params(params),
    )
    certificate = sign_cert(tbs_cert, signing_key=ca_key or cert_key, hash_alg=hash_alg)
    logging.debug("Built the certificate `%s`, issued by `%s`.", certificate.subject, certificate.issuer)
    return certificate, cert_key


@keyword(name="Generate Self Signed Certificate")
def generate_self_signed_certificate(  # noqa D417 undocumented-param
    common_name: str = "CN=Test Root CA",
    key_size: Strint = keyutils.DEFAULT_KEY_SIZE,
    hash_alg: str = "sha256",
    days: Strint = DEFAULT_VALIDITY_DAYS,
) -> Tuple[Certificate, PrivateKey]:
    """Generate a fresh RSA key pair and a self-signed CA certificate for it.

    Arguments:
    ---------
        - `common_name`: The subject (and issuer) name in OpenSSL notation. Defaults to "CN=Test Root CA".
        - `key_size`: The RSA key size in bits. Defaults to 2048.
        - `hash_alg`: The hash algorithm for signing. Defaults to `sha256`.
        - `days`: The number of days the certificate is valid. Defaults to 365.

    Returns:
    -------
        - A tuple containing the root certificate and its private key.

    Examples:
    --------
    | ${root_cert} ${root_key}= | Generate Self Signed Certificate | CN=My Root CA |

    """
    private_key = keyutils.generate_key("rsa", key_size=convertutils.str_to_int(key_size))
    return build_certificate(
        private_key=private_key,
        common_name=common_name,
        hash_alg=hash_alg,
        days=days,
        is_ca=True,
        key_usage=CA_KEY_USAGE,
    )


@keyword(name="Sign CSR")
def sign_csr(  # noqa D417 undocumented-param
    csr_info: CertificationRequestInfo, signing_key: PrivateKey, hash_alg: str = "sha256"
) -> CertificationRequest:
    """Sign a `CertificationRequestInfo` and return the complete certification request.

    Arguments:
    ---------
        - `csr_info`: The request info to sign.
        - `signing_key`: The private key used for signing. Normally, the key of the embedded public key.
        - `hash_alg`: The hash algorithm for signing. Defaults to `sha256`.

    Returns:
    -------
        - The signed `CertificationRequest`.

    Examples:
    --------
    | ${csr}= | Sign CSR | ${csr_info} | ${private_key} |

    """
    signing_key = convertutils.ensure_is_rsa_private_key(signing_key)
    signature = cryptoutils.sign_data(data=csr_info.encode(), key=signing_key, hash_alg=hash_alg)
    return CertificationRequest(csr_info, prepare_sig_alg_id(hash_alg), signature)


@keyword(name="Build CSR")
def build_csr(  # noqa D417 undocumented-param
    signing_key: PrivateKey,
    common_name: Union[str, Name] = "CN=Hans Mustermann",
    hash_alg: str = "sha256",
    spki: Optional[SubjectPublicKeyInfo] = None,
) -> CertificationRequest:
    """Build a PKCS#10 Certification Request (CSR) with the given parameters.

    The attributes are encoded as empty set.

    Arguments:
    ---------
        - `signing_key`: The private key used to sign the CSR.
        - `common_name`: The subject of the CSR in OpenSSL notation. Defaults to "CN=Hans Mustermann".
        - `hash_alg`: The hash algorithm used for signing the CSR. Defaults to `"sha256"`.
        - `spki`: Optional `SubjectPublicKeyInfo` to populate the CSR with. Defaults to the public key
          of the `signing_key`.

    Returns:
    -------
       - The constructed `CertificationRequest` object.

    Examples:
    --------
    | ${csr}= | Build CSR | signing_key=${private_key} | common_name=CN=Hans |
    | ${csr}= | Build CSR | signing_key=${private_key} | hash_alg=sha512 |

    """
    csr_info = CertificationRequestInfo(
        subject=prepare_name(common_name),
        subject_public_key_info=spki or keyutils.prepare_subject_public_key_info(signing_key),
    )
    return sign_csr(csr_info, signing_key=signing_key, hash_alg=hash_alg)


@keyword(name="Issue Certificate From CSR")
def issue_certificate_from_csr(  # noqa D417 undocumented-param
    csr: CertificationRequest,
    ca_cert: Certificate,
    ca_key: PrivateKey,
    hash_alg: str = "sha256",
    **params,
) -> Certificate:
    """Issue a certificate for the subject and public key of a certification request.

    The signature of the request is verified first.

    Arguments:
    ---------
        - `csr`: The certification request.
        - `ca_cert`: The certificate of the issuing CA.
        - `ca_key`: The private key of the issuing CA.
        - `hash_alg`: The hash algorithm for signing. Defaults to `sha256`.

    **params (Additional optional parameters for customization):
    -----------------------------------------------------------
        - `serial_number`, `days`, `not_before`, `is_ca`, `path_length`, `key_usage`, `eku`, `critical`:
          as for `Build Certificate`.

    Returns:
    -------
        - The issued certificate.

    Raises:
    ------
        - `SignatureMismatch`: If the signature of the request is invalid.

    Examples:
    --------
    | ${cert}= | Issue Certificate From CSR | ${csr} | ${ca_cert} | ${ca_key} |
    | ${cert}= | Issue Certificate From CSR | ${csr} | ${ca_cert} | ${ca_key} | key_usage=digitalSignature |

    """
    verify_csr_signature(csr)

    tbs_cert = prepare_tbs_certificate(
        subject=csr.subject,
        spki=csr.certification_request_info.subject_public_key_info,
        issuer=ca_cert.subject,
        serial_number=params.get("serial_number"),
        validity=_validity_from_params(params),
        hash_alg=hash_alg,
        extensions=_extensions_from_params(params),
    )
    return sign_cert(tbs_cert, signing_key=ca_key, hash_alg=hash_alg)
