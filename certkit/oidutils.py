# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

"""Object identifiers and the mappings between OIDs and human-readable names.

The dotted strings are taken from `cryptography.x509.oid`, so both libraries agree on the values.
"""

from typing import Dict

from cryptography.x509.oid import (
    ExtendedKeyUsageOID,
    ExtensionOID,
    NameOID,
    PublicKeyAlgorithmOID,
    SignatureAlgorithmOID,
)

from certkit.asn1types import ObjectIdentifier
from certkit.suiteenums import StringType


def _oid(cryptography_oid) -> ObjectIdentifier:
    """Convert a `cryptography` OID into an `ObjectIdentifier`."""
    return ObjectIdentifier.from_string(cryptography_oid.dotted_string)


###########################
# Name attributes
###########################

id_at_commonName = _oid(NameOID.COMMON_NAME)
id_at_countryName = _oid(NameOID.COUNTRY_NAME)
id_at_localityName = _oid(NameOID.LOCALITY_NAME)
id_at_stateOrProvinceName = _oid(NameOID.STATE_OR_PROVINCE_NAME)
id_at_organizationName = _oid(NameOID.ORGANIZATION_NAME)
id_at_organizationalUnitName = _oid(NameOID.ORGANIZATIONAL_UNIT_NAME)
id_emailAddress = _oid(NameOID.EMAIL_ADDRESS)

# map strings used in OpenSSL-like common name notation to the attribute OIDs.
# The order is the order in which the attributes of a `Name` are encoded.
NAME_MAP: Dict[str, ObjectIdentifier] = {
    "CN": id_at_commonName,
    "C": id_at_countryName,
    "L": id_at_localityName,
    "ST": id_at_stateOrProvinceName,
    "O": id_at_organizationName,
    "OU": id_at_organizationalUnitName,
    "emailAddress": id_emailAddress,
}
NAME_OID_2_SHORT_NAME = {y: x for x, y in NAME_MAP.items()}

# The attribute names of the `Name` dataclass.
NAME_OID_2_FIELD = {
    id_at_commonName: "common_name",
    id_at_countryName: "country_name",
    id_at_localityName: "locality_name",
    id_at_stateOrProvinceName: "state_or_province_name",
    id_at_organizationName: "organization_name",
    id_at_organizationalUnitName: "organizational_unit_name",
    id_emailAddress: "email_address",
}

# RFC 5280 Appendix A: countryName is a PrintableString, emailAddress an IA5String.
# Everything else is encoded as UTF8String, as recommended for new certificates.
NAME_OID_2_STRING_TYPE = {
    id_at_countryName: StringType.PRINTABLE,
    id_emailAddress: StringType.IA5,
}

###########################
# Algorithms
###########################

rsaEncryption = _oid(PublicKeyAlgorithmOID.RSAES_PKCS1_v1_5)

sha1WithRSAEncryption = _oid(SignatureAlgorithmOID.RSA_WITH_SHA1)
sha224WithRSAEncryption = _oid(SignatureAlgorithmOID.RSA_WITH_SHA224)
sha256WithRSAEncryption = _oid(SignatureAlgorithmOID.RSA_WITH_SHA256)
sha384WithRSAEncryption = _oid(SignatureAlgorithmOID.RSA_WITH_SHA384)
sha512WithRSAEncryption = _oid(SignatureAlgorithmOID.RSA_WITH_SHA512)

# map OIDs of signature algorithms to the names of the hash functions
# used in the signature.
RSA_SHA_OID_2_NAME = {
    sha1WithRSAEncryption: "sha1",
    sha224WithRSAEncryption: "sha224",
    sha256WithRSAEncryption: "sha256",
    sha384WithRSAEncryption: "sha384",
    sha512WithRSAEncryption: "sha512",
}
RSA_SHA_NAME_2_OID = {y: x for x, y in RSA_SHA_OID_2_NAME.items()}

# RFC 4055 2.1: the parameters of the PKCS#1 v1.5 algorithms must be NULL.
ALGORITHMS_WITH_NULL_PARAMS = {rsaEncryption, *RSA_SHA_OID_2_NAME}

###########################
# Extensions
###########################

id_ce_basicConstraints = _oid(ExtensionOID.BASIC_CONSTRAINTS)
id_ce_keyUsage = _oid(ExtensionOID.KEY_USAGE)
id_ce_extKeyUsage = _oid(ExtensionOID.EXTENDED_KEY_USAGE)

EXTENSION_OID_2_NAME = {
    id_ce_basicConstraints: "basicConstraints",
    id_ce_keyUsage: "keyUsage",
    id_ce_extKeyUsage: "extendedKeyUsage",
}

id_kp_serverAuth = _oid(ExtendedKeyUsageOID.SERVER_AUTH)
id_kp_clientAuth = _oid(ExtendedKeyUsageOID.CLIENT_AUTH)
id_kp_codeSigning = _oid(ExtendedKeyUsageOID.CODE_SIGNING)
id_kp_emailProtection = _oid(ExtendedKeyUsageOID.EMAIL_PROTECTION)
id_kp_timeStamping = _oid(ExtendedKeyUsageOID.TIME_STAMPING)
id_kp_OCSPSigning = _oid(ExtendedKeyUsageOID.OCSP_SIGNING)

# These mappings make it easier to parse human-readable names to the function,
# which prepares and checks the extended key usages.
EKU_NAME_2_OID = {
    "serverAuth": id_kp_serverAuth,
    "clientAuth": id_kp_clientAuth,
    "codeSigning": id_kp_codeSigning,
    "emailProtection": id_kp_emailProtection,
    "timeStamping": id_kp_timeStamping,
    "ocspSigning": id_kp_OCSPSigning,
}
EKU_OID_2_NAME = {y: x for x, y in EKU_NAME_2_OID.items()}

# The named bits of the KeyUsage extension, in bit order (RFC 5280 4.2.1.3).
KEY_USAGE_NAMES = [
    "digitalSignature",
    "nonRepudiation",
    "keyEncipherment",
    "dataEncipherment",
    "keyAgreement",
    "keyCertSign",
    "cRLSign",
    "encipherOnly",
    "decipherOnly",
]
