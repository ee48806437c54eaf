# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

"""Utility for parsing certificates, building certificate chains and verifying the chain of trust.

The chain is built against a certificate repository, which is any object with a
`find_by_subject_common_name(name) -> List[Certificate]` method (e.g., `certstore.CertificateStore`).
A chain never contains the certificate it was built for and starts with the nearest issuer.
"""

import logging
from datetime import datetime
from typing import FrozenSet, Iterable, List, Optional, Sequence, Union

from robot.api.deco import keyword, not_keyword

from certkit import cryptoutils
from certkit.certstore import TrustStore
from certkit.exceptions import ChainNotFound, SignatureMismatch, UntrustedRoot
from certkit.oidutils import EKU_NAME_2_OID, EKU_OID_2_NAME, KEY_USAGE_NAMES
from certkit.suiteenums import KeyUsageStrictness
from certkit.typingutils import PublicKey
from certkit.x509certificate import Certificate

TrustedRoots = Union[TrustStore, Iterable[Certificate]]


@keyword(name="Parse Certificate")
def parse_certificate(data: bytes) -> Certificate:  # noqa D417 undocumented-param
    """Parse a DER-encoded X509 certificate.

    Arguments:
    ---------
        - `data`: DER-encoded X509 certificate.

    Returns:
    -------
        - The decoded certificate object.

    Raises:
    ------
        - `DecodeError`: If the data is not a valid certificate, contains an unknown critical extension
        or has trailing data.

    Examples:
    --------
    | ${cert}= | Parse Certificate | ${der_data} |

    """
    return Certificate.from_der(data)


@not_keyword
def verify_cert_signature(cert: Certificate, issuer_pub_key: Optional[PublicKey] = None):
    """Verify the signature of an X.509 certificate.

    Uses the issuer's public key, or the certificate's own public key if it is self-signed.
    The signature is verified over the original bytes of the `TBSCertificate`.

    :param cert: The certificate object, which is verified.
    :param issuer_pub_key: Optional public key used for verification.
    :raises InvalidSignature: If the certificate's signature is not valid.
    """
    cryptoutils.verify_signature(
        public_key=issuer_pub_key or cert.public_key(),
        signature=cert.signature,
        data=cert.tbs_certificate.encode(),
        hash_alg=cert.signature_algorithm.hash_alg,
    )


def _build_chain(cert: Certificate, repository, visited: FrozenSet[bytes]) -> List[Certificate]:
    """Recursively build the chain for `cert`, keeping the longest verified path.

    :param cert: The certificate to build the chain for.
    :param repository: The certificate repository.
    :param visited: Fingerprints of the certificates on the current path.
    :return: The chain, nearest issuer first.
    :raises ChainNotFound: If no verified path to a self-signed certificate exists.
    """
    if cert.self_signed():
        return []

    issuer_name = cert.issuer.common_name_value
    try:
        candidates = repository.find_by_subject_common_name(issuer_name)
    except Exception as err:
        raise ChainNotFound(f"The lookup for the issuer `{issuer_name}` failed: {err}") from err

    if candidates is None:
        raise ChainNotFound(f"The lookup for the issuer `{issuer_name}` returned no result.")

    chain = None
    for candidate in candidates:
        fingerprint = candidate.fingerprint()
        if fingerprint in visited:
            logging.info("Skipping `%s`, which is already part of the chain.", candidate.subject)
            continue

        if not cert.certified_by(candidate):
            logging.info("The candidate `%s` did not issue `%s`.", candidate.subject, cert.subject)
            continue

        try:
            tail = _build_chain(candidate, repository, visited | {fingerprint})
        except ChainNotFound as err:
            logging.info("No chain for the candidate `%s`: %s", candidate.subject, err.message)
            continue

        # Equal length keeps the first found path.
        if chain is None or len(tail) + 1 > len(chain):
            chain = [candidate] + tail

    if chain is None:
        raise ChainNotFound(f"Could not find a verified issuer for `{cert.subject}` (issuer: `{cert.issuer}`).")

    return chain


@keyword(name="Build Cert Chain")
def build_cert_chain(cert: Certificate, repository) -> List[Certificate]:  # noqa D417 undocumented-param
    """Build the issuer chain of a certificate with the certificates of a repository.

    A self-signed certificate has an empty chain. Otherwise, every certificate of the repository whose
    subject common name equals the issuer common name and which verifies the signature is a candidate;
    the candidate with the longest chain is chosen, for equal lengths the first one found.

    Arguments:
    ---------
        - `cert`: The certificate to build the chain for.
        - `repository`: The repository, which provides `find_by_subject_common_name(name)`.

    Returns:
    -------
        - The chain without `cert`, starting with its issuer and ending with a self-signed certificate.

    Raises:
    ------
        - `ChainNotFound`: If no issuer verifies the certificate or the repository lookup fails.

    Examples:
    --------
    | ${chain}= | Build Cert Chain | ${ee_cert} | ${cert_store} |

    """
    return _build_chain(cert, repository, frozenset({cert.fingerprint()}))


@keyword(name="Verify Trust")
def verify_trust(  # noqa D417 undocumented-param
    cert: Certificate, chain: Sequence[Certificate], trusted_roots: TrustedRoots
) -> None:
    """Verify the chain of trust of a certificate.

    Walks the certificate and its chain, leaf first, and verifies that each certificate was issued by the
    next one. The last certificate must then be issued by at least one trusted root.

    Arguments:
    ---------
        - `cert`: The certificate to verify.
        - `chain`: The chain of the certificate, nearest issuer first (e.g., from `Build Cert Chain`).
        - `trusted_roots`: The trusted root certificates, as `TrustStore` or list.

    Raises:
    ------
        - `SignatureMismatch`: If a certificate was not issued by the next certificate of the chain.
        - `UntrustedRoot`: If no trusted root issued the last certificate.

    Examples:
    --------
    | Verify Trust | ${ee_cert} | ${chain} | ${trust_store} |

    """
    path = [cert] + list(chain)

    for child, parent in zip(path, path[1:]):
        if not child.certified_by(parent):
            logging.info("The chain is broken between `%s` and `%s`.", child.subject, parent.subject)
            raise SignatureMismatch(f"The certificate `{child.subject}` was not issued by `{parent.subject}`.")

    last = path[-1]
    for root in trusted_roots:
        if last.certified_by(root):
            logging.debug("The chain ends at the trusted root `%s`.", root.subject)
            return

    raise UntrustedRoot(f"The certificate `{last.subject}` was not issued by any trusted root.")


@keyword(name="Build And Verify Chain")
def build_and_verify_chain(  # noqa D417 undocumented-param
    cert: Certificate, repository, trusted_roots: TrustedRoots
) -> List[Certificate]:
    """Build the chain of a certificate and verify the chain of trust.

    Arguments:
    ---------
        - `cert`: The certificate to verify.
        - `repository`: The repository, which provides `find_by_subject_common_name(name)`.
        - `trusted_roots`: The trusted root certificates.

    Returns:
    -------
        - The verified chain.

    Raises:
    ------
        - `ChainNotFound`: If the chain could not be built.
        - `BadCredentials`: If the chain is not trusted.

    Examples:
    --------
    | ${chain}= | Build And Verify Chain | ${ee_cert} | ${cert_store} | ${trust_store} |

    """
    chain = build_cert_chain(cert, repository)
    verify_trust(cert, chain, trusted_roots)
    return chain


@keyword(name="Check Validity Period")
def check_validity_period(cert: Certificate, moment: Optional[datetime] = None) -> None:  # noqa D417
    """Check that a certificate is valid at a given time.

    Arguments:
    ---------
        - `cert`: The certificate to check.
        - `moment`: The time to check. Defaults to now.

    Raises:
    ------
        - `ValueError`: If the time is outside the validity period.

    Examples:
    --------
    | Check Validity Period | ${cert} |

    """
    if not cert.validity.contains(moment):
        raise ValueError(
            f"The certificate `{cert.subject}` is only valid from {cert.validity.not_before} "
            f"to {cert.validity.not_after}."
        )


def _parse_names(value: str) -> List[str]:
    return [name.strip() for name in value.split(",") if name.strip()]


@keyword(name="Validate KeyUsage")
def validate_key_usage(  # noqa D417 undocumented-param
    cert: Certificate, key_usages: str, strictness: Union[str, int]
) -> None:
    """Validate the `KeyUsage` extension of a provided certificate object.

    Arguments:
    ---------
        - `cert`: The certificate to validate the `KeyUsage` extension.
        - `key_usages`: Comma-separated string representation of the expected `KeyUsages` attributes for a certificate.\
         (e.g., "`digitalSignature`")
        - `strictness`: A string representation or integer which determines the level of validation strictness.

    Validation Strictness Levels:
    -----------------------------
        - NONE `0`: Validation is disabled.
        - LAX `1`: The `KeyUsage` extension may be present, but if present must contain the provided `key_usages`
        - STRICT `2`: The `KeyUsage` extension must be present `key_usages`. And contains the provided `key_usages`.
        - ABS_STRICT `3`: The `KeyUsage` extension must exactly match the provided `key_usages`.

    Raises:
    ------
        - `ValueError`: If the `KeyUsage` extension is not present in the certificate when \
         `strictness` is set to `STRICT` or `ABS_STRICT`, or if the actual `KeyUsage` does not match the \
         expected `key_usages`.

    Examples:
    --------
    | Validate KeyUsage | cert=${cert} | key_usages=digitalSignature, keyEncipherment | strictness=2 |
    | Validate KeyUsage | cert=${cert} | key_usages=digitalSignature | strictness=LAX |

    """
    val_strict = KeyUsageStrictness.get(strictness)

    if val_strict == KeyUsageStrictness.NONE:
        logging.info("KeyUsage Check is disabled!")
        return

    usage = cert.key_usage
    if usage is None:
        if val_strict in [KeyUsageStrictness.ABS_STRICT, KeyUsageStrictness.STRICT]:
            raise ValueError(f"KeyUsage extension was not present in: {cert.subject}")
        logging.info("KeyUsage extension was not present")
        return

    expected = _parse_names(key_usages)
    unknown = set(expected) - set(KEY_USAGE_NAMES)
    if unknown:
        raise ValueError(f"Unknown key usages: {sorted(unknown)}. Allowed are: {KEY_USAGE_NAMES}")

    names = usage.get_names()
    if val_strict == KeyUsageStrictness.ABS_STRICT:
        valid = set(names) == set(expected)
    else:
        valid = set(expected).issubset(names)

    if not valid:
        raise ValueError(f"KeyUsage Extension was expected to be: {key_usages}, but is {names}")


@keyword(name="Validate ExtendedKeyUsage")
def validate_extended_key_usage(  # noqa D417 undocumented-param
    cert: Certificate, ext_key_usages: str, strictness: Union[str, int]
) -> None:
    """Validate the `ExtendedKeyUsage` extension of a provided certificate object.

    Arguments:
    ---------
        - `cert`: The certificate to validate the `ExtendedKeyUsage` extension.
        - `ext_key_usages`: Comma-separated names or dotted OIDs of the expected purposes \
        (e.g., "serverAuth, clientAuth").
        - `strictness`: A string representation or integer which determines the level of validation strictness.

    Validation Strictness Levels:
    -----------------------------
        - NONE `0`: Validation is disabled.
        - LAX `1`: The `ExtendedKeyUsage` extension may be present, but if present must \
        contain the provided `ext_key_usages`
        - STRICT `2`: The `ExtendedKeyUsage` extension must be present. And contains the provided `ext_key_usages`.
        - ABS_STRICT `3`: The `ExtendedKeyUsage` extension must exactly match the provided `ext_key_usages`.

    Raises:
    ------
        - `ValueError`: If the `ExtendedKeyUsage` extension is not present in the certificate when \
         `strictness` is set to `STRICT` or `ABS_STRICT`, or if the actual `ExtendedKeyUsage` does not match the \
         expected `ext_key_usages`.

    Examples:
    --------
    | Validate ExtendedKeyUsage | cert=${cert} | ext_key_usages=serverAuth, clientAuth | strictness=2 |
    | Validate ExtendedKeyUsage | cert=${cert} | ext_key_usages=codeSigning | strictness=NONE |

    """
    val_strict = KeyUsageStrictness.get(strictness)
    if val_strict == KeyUsageStrictness.NONE:
        logging.info("ExtendedKeyUsage Check is disabled!")
        return

    eku = cert.extended_key_usage
    if eku is None:
        if val_strict in [KeyUsageStrictness.ABS_STRICT, KeyUsageStrictness.STRICT]:
            raise ValueError(f"ExtendedKeyUsage extension was not present in: {cert.subject}")
        logging.info("ExtendedKeyUsage extension was not present")
        return

    expected = set()
    for name in _parse_names(ext_key_usages):
        oid = EKU_NAME_2_OID.get(name)
        expected.add(oid.dotted_string if oid is not None else name)

    found = {purpose.dotted_string for purpose in eku.purposes}
    if val_strict == KeyUsageStrictness.ABS_STRICT:
        valid = found == expected
    else:
        valid = expected.issubset(found)

    if not valid:
        found_names = [EKU_OID_2_NAME.get(purpose, purpose.dotted_string) for purpose in eku.purposes]
        raise ValueError(f"The ExtendedKeyUsage was expected to be: {ext_key_usages}, but is {found_names}")
