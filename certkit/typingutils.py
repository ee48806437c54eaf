# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

"""Type aliases to enhance code readability, maintainability, and type safety.

Type aliases are used to create descriptive names for commonly used types, making the codebase
easier to understand and work with.
"""

from typing import Union

from cryptography.hazmat.primitives.asymmetric.rsa import RSAPrivateKey, RSAPublicKey

# Only RSA is modelled as subject public key algorithm.
PublicKey = RSAPublicKey
PrivateKey = RSAPrivateKey

# A string or an integer, as passed by Robot Framework to keywords.
Strint = Union[str, int]

# Anything `bytes()` accepts as DER input.
DerInput = Union[bytes, bytearray, memoryview]
