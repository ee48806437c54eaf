# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

"""Utility functions for PEM armour, loading certificates from files and logging certificates."""

import logging
import os
import re
import textwrap
from base64 import b64decode, b64encode
from typing import Iterable, List, Optional, Sequence, Union

from pyasn1.type import univ
from robot.api.deco import keyword, not_keyword

from certkit import convertutils
from certkit.exceptions import MalformedEncoding
from certkit.x509certificate import Certificate

_PEM_BLOCK_PATTERN = re.compile(r"-----BEGIN ([A-Z0-9 ]+)-----(.*?)-----END \1-----", re.DOTALL)


def _filter_pem_lines(lines: Iterable[str]) -> List[str]:
    """Remove comment lines (starting with "#") and blank lines."""
    filtered_lines = []
    for line in lines:
        if line.startswith("#"):  # remove comments
            continue
        if line.strip() == "":  # remove blank lines
            continue
        filtered_lines.append(line.strip())
    return filtered_lines


def decode_pem_string(data: Union[bytes, str]) -> bytes:
    """Decode a PEM-encoded string or byte sequence to its raw DER-encoded bytes.

    :param data: (str, bytes) the data to decode.
    :return: bytes The decoded DER-encoded bytes extracted from the PEM input
    """
    if isinstance(data, bytes):
        data = data.decode("ascii")

    filtered_lines = _filter_pem_lines(data.splitlines())
    if not filtered_lines:
        raise ValueError("The PEM data is empty.")

    if "-----BEGIN" in filtered_lines[0]:
        result = "".join(filtered_lines[1:-1])
    else:
        result = "".join(filtered_lines)

    return b64decode(result)


@keyword("Load And Decode PEM File")
def load_and_decode_pem_file(path: str) -> bytes:
    """Load a base64-encoded PEM file, with or without a header, ignore comments, and return the decoded data.

    This is an augmented version of the PEM format, which allows one to add comments to the file, by starting the
    line with a # character. This is purely a convenience for the user, and is not part of the standard.

    :param path: str, path to the file you want to load
    :returns: bytes, the data loaded from the file.
    """
    # normally it should always have a header/trailer (aka "armour"), but we'll be tolerant to that.
    with open(path, "r", encoding="ascii") as f:
        return decode_pem_string(f.read())


@keyword(name="DER To PEM")
def der_to_pem(data: bytes, label: str = "CERTIFICATE") -> str:  # noqa D417 undocumented-param
    """Add the PEM armour to DER encoded data.

    Arguments:
    ---------
        - `data`: The DER encoded data.
        - `label`: The label of the armour. Defaults to "CERTIFICATE".

    Returns:
    -------
        - The PEM string, with lines of 64 characters.

    Examples:
    --------
    | ${pem}= | DER To PEM | ${der_data} |
    | ${pem}= | DER To PEM | ${der_data} | label=CERTIFICATE REQUEST |

    """
    body = "\n".join(textwrap.wrap(b64encode(data).decode("ascii"), 64))
    return f"-----BEGIN {label}-----\n{body}\n-----END {label}-----\n"


@not_keyword
def split_pem_blocks(data: Union[bytes, str], label: str = "CERTIFICATE") -> List[bytes]:
    """Return the DER content of all PEM blocks with `label` inside `data`.

    :param data: The PEM data, possibly containing multiple blocks.
    :param label: The label of the blocks to return.
    :return: The decoded blocks, in the order they appear.
    """
    if isinstance(data, bytes):
        data = data.decode("ascii")

    blocks = []
    for found_label, body in _PEM_BLOCK_PATTERN.findall(data):
        if found_label == label:
            blocks.append(b64decode("".join(_filter_pem_lines(body.splitlines()))))
    return blocks


@keyword(name="Load Certificate Chain")
def load_certificate_chain(filepath: str) -> List[Certificate]:  # noqa D417 undocumented-param
    """Load all certificates of a PEM file, e.g. a chain file.

    Arguments:
    ---------
        - `filepath`: The path to the PEM file.

    Returns:
    -------
        - The certificates in file order.

    Raises:
    ------
        - `DecodeError`: If a certificate can not be decoded.
        - `MalformedEncoding`: If the file contains no certificate.

    Examples:
    --------
    | ${certs}= | Load Certificate Chain | data/chain.pem |

    """
    with open(filepath, "r", encoding="ascii") as f:
        blocks = split_pem_blocks(f.read())

    if not blocks:
        raise MalformedEncoding(f"The file {filepath} does not contain a PEM certificate.")
    return [Certificate.from_der(block) for block in blocks]


@keyword(name="Load Certificate From File")
def load_certificate_from_file(filepath: str) -> Certificate:  # noqa D417 undocumented-param
    """Load a single certificate, PEM (with or without armour) or DER encoded.

    Arguments:
    ---------
        - `filepath`: The path to the certificate file.

    Returns:
    -------
        - The decoded certificate.

    Examples:
    --------
    | ${cert}= | Load Certificate From File | data/root.pem |

    """
    with open(filepath, "rb") as f:
        data = f.read()

    if data[:1] != b"\x30":
        data = decode_pem_string(data)
    return Certificate.from_der(data)


@keyword(name="Write Certs To Dir")
def write_certs_to_dir(  # noqa D417 undocumented-param
    cert_chain: Iterable[Certificate], name_prefix: Optional[str] = None, directory="data/cert_logs"
) -> None:
    """Write a list of certificates (cert chain) to a specified directory as PEM files.

    Arguments:
    ---------
        - `cert_chain`: A list of certificates to be written to files.
        - `name_prefix`: A prefix for naming each certificate file, followed by the certificate's index
          in the chain. If not provided, the subject common name of each certificate is used as the filename.
        - `directory`: The directory where the certificate files will be written. Defaults to "data/cert_logs".

    Examples:
    --------
    | Write Certs To Dir | ${cert_chain} |
    | Write Certs To Dir | ${cert_chain} | name_prefix=cert_ | directory=./certs |

    """
    os.makedirs(directory, exist_ok=True)
    for index, cert in enumerate(cert_chain):
        if name_prefix is not None:
            name = f"{name_prefix}{index}"
        else:
            name = (cert.subject.common_name_value or f"cert_{index}").replace(" ", "_")
        with open(os.path.join(directory, f"{name}.pem"), "w", encoding="ascii") as f:
            f.write(der_to_pem(cert.encode()))


@keyword(name="Log Certificates")
def log_certificates(certs: Sequence[Certificate], msg_suffix: Optional[str] = None):  # noqa D417 undocumented-param
    """Log a list of certificates in `pyasn1` format for better readability and user experience.

    Arguments:
    ---------
        - `certs`: A list of certificates to be logged.
        - `msg_suffix`: A custom message suffix to append to the log. Defaults to `None`.

    Examples:
    --------
    | Log Certificates | ${cert_list} |
    | Log Certificates | ${cert_list} | msg_suffix="Certificate Details: " |

    """
    if msg_suffix is None:
        msg_suffix = "%s"
    else:
        msg_suffix += "%s"

    asn1certs = univ.SequenceOf()
    asn1certs.extend([convertutils.certificate_to_pyasn1(cert) for cert in certs])
    logging.info(msg_suffix, asn1certs.prettyPrint())


@not_keyword
def log_cert_chain_subject_and_issuer(certs: Sequence[Certificate]) -> None:
    """Log the subject and issuer of each certificate of a chain, leaf first."""
    for index, cert in enumerate(certs):
        logging.info("Certificate %d: subject=`%s`, issuer=`%s`", index, cert.subject, cert.issuer)
