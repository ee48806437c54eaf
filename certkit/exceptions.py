# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

"""Contains the Custom Exceptions for decoding, verifying and chaining certificates."""

from typing import List, Optional, Sequence, Union


class CertKitError(Exception):
    """Base class for all certkit errors."""

    error_details: List[str]

    def __init__(self, message: str, error_details: Optional[Union[List[str], str]] = None):
        """Initialize the exception with the message.

        :param message: The message to display.
        :param error_details: Additional details about the error.
        """
        self.message = message
        self.error_details = []
        if isinstance(error_details, str):
            self.error_details = [error_details]
        elif error_details is not None:
            self.error_details = list(error_details)
        super().__init__(message)

    def get_error_details(self) -> List[str]:
        """Return the error details."""
        return self.error_details


#########################
# Decoding Errors
##########################


class DecodeError(CertKitError):
    """Raised when a DER structure cannot be decoded.

    Decoding is all-or-nothing: no partially populated structure is returned.
    """


class MalformedEncoding(DecodeError):
    """Raised for a bad tag, truncated input, an unsupported length or trailing bytes."""


class UnsupportedValue(DecodeError):
    """Raised when a value is well-formed, but not supported (e.g., an unknown string type or digest)."""


class UnknownOID(UnsupportedValue):
    """Raised when an OID is unknown."""

    def __init__(self, oid: Sequence[int], extra_info: str = ""):
        """Initialize the exception with the OID and extra information.

        :param oid: The OID that is unknown.
        :param extra_info: Additional information about the unknown OID.
        """
        self.oid = oid
        dotted = ".".join(str(arc) for arc in oid)
        super().__init__(f"Unknown OID: {dotted} {extra_info}".strip())


#########################
# Trust Errors
##########################


class BadCredentials(CertKitError):
    """Raised when a certificate or its chain is not trusted."""


class SignatureMismatch(BadCredentials):
    """Raised when a signature does not verify under the expected public key."""


class UntrustedRoot(BadCredentials):
    """Raised when the end of a certificate chain is not certified by any trusted root."""


class ChainNotFound(CertKitError):
    """Raised when no issuer chain could be constructed for a certificate."""
