# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

"""Provides the signing, verification and digest primitives used by certificates and requests.

Signatures are RSASSA-PKCS1-v1_5, as used by the `sha*WithRSAEncryption` algorithms.
"""

import logging
from typing import Optional, Union

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from robot.api.deco import keyword, not_keyword

from certkit.typingutils import PrivateKey, PublicKey

DEFAULT_HASH_ALG = "sha256"

# Used to get the hash instances with their respective names.
# This is used to make it easier for users to parse and select hash algorithms by name.
ALLOWED_HASH_TYPES = {
    "sha1": hashes.SHA1(),
    "sha224": hashes.SHA224(),
    "sha256": hashes.SHA256(),
    "sha384": hashes.SHA384(),
    "sha512": hashes.SHA512(),
}


@not_keyword
def hash_name_to_instance(alg: str) -> hashes.HashAlgorithm:
    """Return an instance of a hash algorithm object based on its name.

    :param alg: The name of hashing algorithm, e.g., 'sha256'
    :return: `cryptography.hazmat.primitives.hashes`
    :raises ValueError: If the specified hash algorithm is not supported.
    """
    try:
        # to also get the hash function with rsa-sha1 and so on.
        if "-" in alg:
            return ALLOWED_HASH_TYPES[alg.split("-")[1]]

        return ALLOWED_HASH_TYPES[alg]
    except KeyError as err:
        raise ValueError(f"Unsupported hash algorithm: {alg}") from err


def compute_hash(alg_name: str, data: bytes) -> bytes:
    """Calculate the hash of data using an algorithm given by its name.

    :param alg_name: The Name of algorithm, e.g., 'sha256', see `ALLOWED_HASH_TYPES`.
    :param data: The buffer we want to hash.
    :return: The resulting hash.
    :raises ValueError: If the specified hash algorithm is not supported.
    """
    digest = hashes.Hash(hash_name_to_instance(alg_name))
    digest.update(data)
    return digest.finalize()


@keyword(name="Sign Data")
def sign_data(  # noqa D417 undocumented-param
    data: bytes,
    key: PrivateKey,
    hash_alg: Union[str, None, hashes.HashAlgorithm] = None,
) -> bytes:
    """Sign `data` with an RSA private key, using RSASSA-PKCS1-v1_5 and the specified hashing algorithm.

    Arguments:
    ---------
        - `data`: The data to be signed.
        - `key`: The RSA private key object used to sign the data.
        - `hash_alg`: Hash algorithm for signing (e.g., "sha256"). Defaults to "sha256".

    Returns:
    -------
        - The computed signature as bytes.

    Raises:
    ------
        - `ValueError` if an unsupported key type or hash algorithm is provided.

    Examples:
    --------
    | ${sig}= | Sign Data | ${data} | ${private_key} |
    | ${sig}= | Sign Data | ${data} | ${private_key} | sha512 |

    """
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ValueError(f"Unsupported private key type: {type(key).__name__}. Only RSA keys can sign.")

    if not isinstance(hash_alg, hashes.HashAlgorithm):
        hash_alg = hash_name_to_instance(hash_alg or DEFAULT_HASH_ALG)

    return key.sign(data, padding.PKCS1v15(), hash_alg)


@keyword(name="Verify Signature")
def verify_signature(  # noqa D417 undocumented-param
    public_key: PublicKey,
    signature: bytes,
    data: bytes,
    hash_alg: Optional[Union[str, hashes.HashAlgorithm]] = None,
) -> None:
    """Verify a RSASSA-PKCS1-v1_5 signature using the provided public key and hash algorithm.

    Arguments:
    ---------
        - `public_key`: The RSA public key object used to verify the signature.
        - `signature`: The signature to verify.
        - `data`: The original data that was signed.
        - `hash_alg`: Name of the hash algorithm used for the signature. Defaults to "sha256".

    Raises:
    ------
        - `InvalidSignature`: If the signature is invalid.
        - `ValueError`: If an unsupported key type or hash algorithm is provided.

    Examples:
    --------
    | Verify Signature | ${public_key} | ${signature} | ${data} |
    | Verify Signature | ${public_key} | ${signature} | ${data} | sha1 |

    """
    if not isinstance(public_key, rsa.RSAPublicKey):
        raise ValueError(f"Unsupported public key type: {type(public_key).__name__}. Only RSA keys can verify.")

    if not isinstance(hash_alg, hashes.HashAlgorithm):
        hash_alg = hash_name_to_instance(hash_alg or DEFAULT_HASH_ALG)

    logging.debug("Verify signature with %s and a %d bit RSA key.", hash_alg.name, public_key.key_size)
    public_key.verify(signature, data, padding.PKCS1v15(), hash_alg)
