"""
Argument validation shared by the membership and role providers.

All checks run before any store access and raise MissingArgumentError
(None) or InvalidArgumentError (empty, too long, comma, out of range).
"""

import re
from typing import List, Optional, Sequence

from membership_authkit.errors import InvalidArgumentError, MissingArgumentError

MAX_NAME_LENGTH = 256
MAX_PASSWORD_LENGTH = 128
MAX_INT32 = 2 ** 31 - 1


def check_parameter(
    value: Optional[str],
    name: str,
    check_for_null: bool = True,
    check_if_empty: bool = True,
    check_for_commas: bool = False,
    max_size: int = 0,
    trim: bool = True,
) -> Optional[str]:
    """
    Validate a single string argument.

    Args:
        value: Argument value
        name: Parameter name used in error messages
        check_for_null: Reject None
        check_if_empty: Reject empty (after trimming)
        check_for_commas: Reject values containing ','
        max_size: Maximum length after trimming (0 = unlimited)
        trim: Return the trimmed value; passwords keep their original form

    Returns:
        The (trimmed) value, or None when None is allowed
    """
    if value is None:
        if check_for_null:
            raise MissingArgumentError(name)
        return None

    trimmed = value.strip()

    if check_if_empty and trimmed == "":
        raise InvalidArgumentError(f"The parameter '{name}' must not be empty.", name)

    if max_size > 0 and len(trimmed) > max_size:
        raise InvalidArgumentError(
            f"The parameter '{name}' is too long: it must not exceed {max_size} chars in length.",
            name,
        )

    if check_for_commas and "," in trimmed:
        raise InvalidArgumentError(f"The parameter '{name}' must not contain commas.", name)

    return trimmed if trim else value


def check_array_parameter(
    values: Optional[Sequence[str]],
    name: str,
    check_for_null: bool = True,
    check_if_empty: bool = True,
    check_for_commas: bool = False,
    max_size: int = 0,
) -> List[str]:
    """
    Validate a list of names: the list itself, every element, and uniqueness.

    Elements are reported as ``name[ i ]``. Elements are examined from the
    last to the first; the returned list keeps the caller's order.
    """
    if values is None:
        raise MissingArgumentError(name)

    if len(values) < 1:
        raise InvalidArgumentError(f"The array parameter '{name}' should not be empty.", name)

    checked: List[Optional[str]] = [None] * len(values)
    seen = set()

    for i in range(len(values) - 1, -1, -1):
        element = check_parameter(
            values[i],
            f"{name}[ {i} ]",
            check_for_null=check_for_null,
            check_if_empty=check_if_empty,
            check_for_commas=check_for_commas,
            max_size=max_size,
        )
        key = element.lower() if element is not None else None
        if key in seen:
            raise InvalidArgumentError(f"The array '{name}' contains duplicate values.", name)
        seen.add(key)
        checked[i] = element

    return checked


def check_paging(page_index: int, page_size: int) -> None:
    if page_index < 0:
        raise InvalidArgumentError(
            "The pageIndex must be greater than or equal to zero.", "page_index"
        )
    if page_size < 1:
        raise InvalidArgumentError("The pageSize must be greater than zero.", "page_size")

    upper_bound = (page_index * page_size) + page_size - 1
    if upper_bound > MAX_INT32:
        raise InvalidArgumentError(
            "The combination of pageIndex and pageSize cannot exceed the maximum value of a 32-bit signed integer.",
            "page_index",
        )


def check_password_strength(
    password: str,
    name: str,
    min_length: int,
    min_non_alphanumeric: int,
    pattern: Optional[str] = None,
) -> None:
    """
    Enforce the configured password policy.

    Non-alphanumeric means any character for which ``str.isalnum()`` is False.
    """
    if len(password) < min_length:
        raise InvalidArgumentError(
            f"The length of parameter '{name}' needs to be greater or equal to {min_length}.",
            name,
        )

    non_alphanumeric = sum(1 for ch in password if not ch.isalnum())
    if non_alphanumeric < min_non_alphanumeric:
        raise InvalidArgumentError(
            f"Non alpha numeric characters in '{name}' needs to be greater than or equal to "
            f"{min_non_alphanumeric}.",
            name,
        )

    if pattern and not re.search(pattern, password):
        raise InvalidArgumentError(
            f"The parameter '{name}' does not match the regular expression specified in config file.",
            name,
        )
