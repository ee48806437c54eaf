# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

"""Certificate repositories used for chain building and the set of trusted roots.

The chain builder only needs an object with a `find_by_subject_common_name(name)` method, so any
repository (a database, a directory service, ...) can be used instead of the in-memory `CertificateStore`.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional

import certifi
from robot.api.deco import keyword, not_keyword

from certkit import utils
from certkit.exceptions import DecodeError
from certkit.x509certificate import Certificate


class CertificateStore:
    """In-memory certificate repository, indexed by the subject common name."""

    def __init__(self, certificates: Optional[Iterable[Certificate]] = None):
        """Initialize the store.

        :param certificates: Optional certificates to add.
        """
        self._by_common_name: Dict[Optional[str], List[Certificate]] = {}
        self._fingerprints = set()
        self.add_certificates(certificates or [])

    def add_certificate(self, cert: Certificate) -> bool:
        """Add a certificate; a certificate already inside the store is ignored.

        :param cert: The certificate to add.
        :return: `True` if the certificate was added, `False` if it was already present.
        """
        fingerprint = cert.fingerprint()
        if fingerprint in self._fingerprints:
            return False

        self._fingerprints.add(fingerprint)
        self._by_common_name.setdefault(cert.subject.common_name_value, []).append(cert)
        return True

    def add_certificates(self, certs: Iterable[Certificate]) -> None:
        """Add multiple certificates."""
        for cert in certs:
            self.add_certificate(cert)

    def find_by_subject_common_name(self, name: Optional[str]) -> List[Certificate]:
        """Return all certificates whose subject common name equals `name`, in insertion order."""
        return list(self._by_common_name.get(name, []))

    def find_root_certificates(self) -> List[Certificate]:
        """Return all self-signed certificates of the store."""
        return [cert for cert in self if cert.self_signed()]

    def load_certificates_from_dir(self, path: str) -> int:
        """Add all certificates (PEM or DER) of a directory to the store.

        :param path: The directory path containing the certificate files.
        :return: The number of added certificates.
        """
        certs = load_certificates_from_dir(path)
        return sum(self.add_certificate(cert) for cert in certs)

    def __iter__(self) -> Iterator[Certificate]:
        """Iterate over all certificates."""
        for certs in self._by_common_name.values():
            yield from certs

    def __len__(self) -> int:
        """Return the number of certificates."""
        return len(self._fingerprints)

    def __contains__(self, cert: Certificate) -> bool:
        """Check whether a certificate is inside the store, compared by its DER encoding."""
        return cert.fingerprint() in self._fingerprints


class TrustStore:
    """An immutable set of trusted root certificates.

    With `require_ca`, only certificates whose BasicConstraints extension marks them as CA are kept.
    """

    def __init__(self, certificates: Iterable[Certificate], require_ca: bool = True):
        """Initialize the trust store.

        :param certificates: The candidate root certificates.
        :param require_ca: Whether to keep only CA certificates. Defaults to `True`.
        """
        trusted = []
        for cert in certificates:
            if require_ca and not cert.is_ca:
                logging.info("The certificate `%s` is not a CA certificate and is not trusted.", cert.subject)
                continue
            trusted.append(cert)
        self._certificates = tuple(trusted)

    @property
    def certificates(self) -> List[Certificate]:
        """Return the trusted certificates."""
        return list(self._certificates)

    def __iter__(self) -> Iterator[Certificate]:
        """Iterate over the trusted certificates."""
        return iter(self._certificates)

    def __len__(self) -> int:
        """Return the number of trusted certificates."""
        return len(self._certificates)


@not_keyword
def load_certificates_from_dir(path: str) -> List[Certificate]:
    """Load all certificates from the specified directory.

    :param path: The directory path containing the certificate files.
    :return: A list of `Certificate` objects loaded from the specified directory.
    :raises FileNotFoundError: If the specified directory does not exist.
    :raises DecodeError: If any file in the directory cannot be loaded as a valid certificate.
    """
    if not Path(path).is_dir():
        raise FileNotFoundError(f"The directory does not exist: {path}")

    certs = []
    for filepath in sorted(Path(path).glob("./*")):
        if filepath.suffix in (".crl", ".key") or not filepath.is_file():
            continue
        certs.append(utils.load_certificate_from_file(str(filepath)))

    return certs


@not_keyword
def load_os_truststore() -> List[Certificate]:
    """Load the OS truststore with the certifi package.

    Certificates which can not be decoded (e.g., because of unsupported name attributes) are skipped.

    :return: The list of the trust anchor certificate objects.
    """
    with open(certifi.where(), "rb") as truststore_file:
        truststore_data = truststore_file.read()

    certificates = []
    for der_data in utils.split_pem_blocks(truststore_data):
        try:
            certificates.append(Certificate.from_der(der_data))
        except DecodeError as err:
            logging.debug("Skipping an OS trust anchor: %s", err.message)
    logging.info("Loaded %d certificates from the OS truststore.", len(certificates))
    return certificates


@keyword(name="Load Truststore")
def load_truststore(  # noqa D417 undocumented-param
    path: Optional[str] = "./data/trustanchors", allow_os_store: bool = False, require_ca: bool = True
) -> TrustStore:
    """Load the truststore with a given path and with or without of OS Truststore.

    Arguments:
    ---------
         - `path`: directory to load the certificates from. Default is "./data/trustanchors".
         - `allow_os_store`: whether to allow the truststore of the Operating System or not.
            Default is False.
         - `require_ca`: whether only CA certificates are trusted. Default is True.

    Returns:
    -------
        - The `TrustStore` with the trust anchors.

    Examples:
    --------
    | ${trust_store}= | Load Truststore | ./data/trustanchors |
    | ${trust_store}= | Load Truststore | path=${None} | allow_os_store=True |

    """
    certificates = []
    if path is not None:
        certificates = load_certificates_from_dir(path=path)

    if allow_os_store:
        certificates.extend(load_os_truststore())

    return TrustStore(certificates, require_ca=require_ca)
