# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

"""Utility for generating, loading and converting RSA keys.

Keys are `cryptography` objects; this module converts them from and to the `SubjectPublicKeyInfo`
structure of the DER model.
"""

from typing import Optional, Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from robot.api.deco import keyword, not_keyword

from certkit.exceptions import UnsupportedValue
from certkit.typingutils import PrivateKey, PublicKey
from certkit.x509structures import RSAPublicKey, SubjectPublicKeyInfo

DEFAULT_KEY_SIZE = 2048


@keyword(name="Generate Key")
def generate_key(algorithm: str = "rsa", **params) -> PrivateKey:  # noqa: D417 for RF docs
    """Generate a `cryptography` key based on the specified algorithm.

    Only RSA keys can be used as subject keys of certificates and certification requests.

    Arguments:
    ---------
        - `algorithm`: The cryptographic algorithm to use for key generation. Defaults to "rsa".
        - `**params`: Additional parameters specific to the algorithm.

    Additional Parameters:
    ----------------------
        - `length` or `key_size`: The size of the RSA key in bits. Defaults to 2048.
        - `public_exponent`: The public exponent. Defaults to 65537.

    Returns:
    -------
        - The generated private key.

    Raises:
    ------
        - `ValueError` if the algorithm is not supported.

    Examples:
    --------
    | ${private_key}= | Generate Key | algorithm=rsa | length=2048 |
    | ${private_key}= | Generate Key | rsa | key_size=3072 |

    """
    algorithm = algorithm.lower()
    if algorithm != "rsa":
        raise ValueError(f"Unsupported key algorithm: {algorithm}. Only `rsa` is supported.")

    key_size = int(params.get("length") or params.get("key_size") or DEFAULT_KEY_SIZE)
    public_exponent = int(params.get("public_exponent", 65537))
    return rsa.generate_private_key(public_exponent=public_exponent, key_size=key_size)


@keyword(name="Save Key")
def save_key(  # noqa: D417 undocumented-params
    key: PrivateKey,
    path: str,
    password: Optional[str] = "11111",
):
    """Save a private key to a file as PKCS#8 PEM, optionally encrypting it with a passphrase.

    Arguments:
    ---------
        - `key`: The private key object to save.
        - `path`: The file path where the key will be saved.
        - `password`: Optional passphrase to encrypt the key. If None, save without encryption. Defaults to "11111".

    Examples:
    --------
    | Save Key | ${key} | /path/to/save/key.pem | password123 |

    """
    encrypt_algo = serialization.NoEncryption()
    if password:
        encrypt_algo = serialization.BestAvailableEncryption(password.encode("utf-8"))

    data = key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=encrypt_algo,  # type: ignore
    )
    with open(path, "wb") as f:
        f.write(data)


@keyword(name="Load Private Key From File")
def load_private_key_from_file(  # noqa: D417 for RF docs
    filepath: str,
    password: Optional[str] = "11111",
) -> PrivateKey:
    """Load an RSA private key from a PEM file.

    Arguments:
    ---------
        - `filepath`: The path to the file containing the PEM-encoded key.
        - `password`: The password to decrypt the key file, if it is encrypted. Defaults to "11111".

    Returns:
    -------
        - The loaded `RSAPrivateKey`.

    Raises:
    ------
        - `FileNotFoundError` if the file does not exist.
        - `ValueError` if the file does not contain an RSA private key.

    Examples:
    --------
    | ${key}= | Load Private Key From File | /path/to/key.pem | password123 |
    | ${key}= | Load Private Key From File | /path/to/key.pem | password=${None} |

    """
    with open(filepath, "rb") as key_file:
        data = key_file.read()

    passphrase = password.encode("utf-8") if password else None
    if b"ENCRYPTED" not in data:
        passphrase = None

    key = serialization.load_pem_private_key(data, password=passphrase)
    if not isinstance(key, rsa.RSAPrivateKey):
        raise ValueError(f"Expected an RSA private key, but got: {type(key).__name__}")
    return key


@keyword(name="Load Public Key From SPKI")
def load_public_key_from_spki(data: Union[bytes, SubjectPublicKeyInfo]) -> PublicKey:  # noqa: D417 for RF docs
    """Load a public key from a DER-encoded SubjectPublicKeyInfo structure.

    Arguments:
    ---------
         - `data`: DER-encoded SubjectPublicKeyInfo structure or a decoded `SubjectPublicKeyInfo` object.

    Returns:
    -------
        - The loaded `RSAPublicKey`.

    Raises:
    ------
          - `DecodeError`: If the provided data is not a valid DER-encoded SubjectPublicKeyInfo structure.
          - `UnknownOID`: If the public key algorithm is not `rsaEncryption`.
          - `UnsupportedValue`: If the modulus or exponent do not form a valid RSA key.

    Examples:
    --------
    | ${public_key}= | Load Public Key From SPKI | ${data} |

    """
    if isinstance(data, (bytes, bytearray)):
        data = SubjectPublicKeyInfo.from_der(data)

    rsa_key = data.rsa_public_key()
    try:
        return rsa.RSAPublicNumbers(rsa_key.public_exponent, rsa_key.modulus).public_key()
    except ValueError as err:
        raise UnsupportedValue(f"The RSA public key is invalid: {err}") from err


@keyword(name="Prepare SubjectPublicKeyInfo")
def prepare_subject_public_key_info(key: Union[PrivateKey, PublicKey]) -> SubjectPublicKeyInfo:  # noqa D417
    """Prepare a `SubjectPublicKeyInfo` structure for an RSA key.

    Arguments:
    ---------
        - `key`: The RSA private or public key. For a private key, the public key is used.

    Returns:
    -------
        - The populated `SubjectPublicKeyInfo` structure.

    Raises:
    ------
        - `ValueError` if the key is not an RSA key.

    Examples:
    --------
    | ${spki}= | Prepare SubjectPublicKeyInfo | ${private_key} |

    """
    if isinstance(key, rsa.RSAPrivateKey):
        key = key.public_key()

    if not isinstance(key, rsa.RSAPublicKey):
        raise ValueError(f"Unsupported key type: {type(key).__name__}. Only RSA keys are supported.")

    numbers = key.public_numbers()
    return SubjectPublicKeyInfo.from_rsa_public_key(RSAPublicKey(numbers.n, numbers.e))


@not_keyword
def public_key_to_der(key: PublicKey) -> bytes:
    """Return the DER encoded `SubjectPublicKeyInfo` of a public key, as `cryptography` serializes it."""
    return key.public_bytes(serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo)
