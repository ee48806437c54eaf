# SPDX-FileCopyrightText: Copyright 2024 Siemens AG
#
# SPDX-License-Identifier: Apache-2.0

"""Enums for use with the certificate toolkit.

These Enums make the test cases more readable for users of the toolkit and facilitate
comparisons and switches in the encoding and validation code.
"""

import enum
from typing import List, Union

from certkit.dercoder import TAG_IA5_STRING, TAG_PRINTABLE_STRING, TAG_UTF8_STRING
from certkit.exceptions import UnsupportedValue


class StringType(enum.Enum):
    """The DER string encodings a directory string can have. The value is the DER tag."""

    IA5 = TAG_IA5_STRING
    PRINTABLE = TAG_PRINTABLE_STRING
    UTF8 = TAG_UTF8_STRING

    @classmethod
    def get_names_lowercase(cls) -> List[str]:
        """Return the names of all enum members in lowercase."""
        return [member.name.lower() for member in cls]

    @staticmethod
    def from_tag(tag: int) -> "StringType":
        """Return the StringType enum member for a DER tag.

        :param tag: The observed DER tag.
        :return: The corresponding enum member.
        :raises UnsupportedValue: If the tag is not a supported string tag.
        """
        try:
            return StringType(tag)
        except ValueError as err:
            raise UnsupportedValue(f"Unsupported string tag: 0x{tag:02X}") from err

    @staticmethod
    def get(value: str) -> "StringType":
        """Return the StringType enum member that matches the provided value (case-insensitive).

        :param value: The name of the enum member to get, e.g. "utf8" or "printable".
        :return: The corresponding enum member.
        :raises ValueError: If the value does not match any enum member.
        """
        try:
            return StringType[value.replace("-", "_").upper()]
        except KeyError as err:
            raise ValueError(
                f"'{value}' is not a valid StringType. Available values are:"
                f" {', '.join(StringType.get_names_lowercase())}."
            ) from err


class KeyUsageStrictness(enum.Enum):
    """Strictness for the validation of the (extended) key usage of a certificate."""

    NONE = 0  # no checks.
    LAX = 1  # if present is checked
    STRICT = 2  # has to be present and has to include the provided value.
    ABS_STRICT = 3  # must be equal.

    @staticmethod
    def get(value: Union[str, int]) -> "KeyUsageStrictness":
        """Retrieve the corresponding `KeyUsageStrictness` enum member based on an integer or string input.

        :param value: The strictness level as integer or string (0-3) or matching names ("NONE","LAX",
        "STRICT", "ABS_STRICT").
        :return: The corresponding `KeyUsageStrictness` enum object.
        :raises ValueError: If `value` is not a valid strictness level, an error is raised with
                        the list of allowed values.
        """
        if isinstance(value, KeyUsageStrictness):
            return value

        if isinstance(value, str):
            if value.isdigit():
                value = int(value)
            elif value.upper() in KeyUsageStrictness.__members__:
                return KeyUsageStrictness[value.upper()]

        if isinstance(value, int) and value in [item.value for item in KeyUsageStrictness]:
            return KeyUsageStrictness(value)

        allowed_values = ", ".join([f"{item.name} ({item.value})" for item in KeyUsageStrictness])
        raise ValueError(
            f"The provided value: {value} is not a valid value for `KeyUsageStrictness`. "
            f"Allowed values are: {allowed_values}."
        )
