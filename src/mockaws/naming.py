"""Table name validation.

Names follow the DynamoDB rules:
- Letters, digits, underscores, hyphens and periods only
- Between 3 and 255 characters
"""

import re

from .exceptions import ClientInputError

NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")
MIN_LENGTH = 3
MAX_LENGTH = 255


def validate_table_name(name: str) -> None:
    """
    Validate a table name.

    Args:
        name: The table name from the request

    Raises:
        ClientInputError: If the name is empty, too short or too long, or
            contains invalid characters
    """
    if not name:
        raise ClientInputError("TableName cannot be empty", field="TableName")

    if " " in name:
        raise ClientInputError(
            f"Invalid table name {name!r}: contains spaces", field="TableName"
        )

    if not NAME_PATTERN.match(name):
        raise ClientInputError(
            f"Invalid table name {name!r}: only letters, digits, '_', '-' and '.' "
            "are allowed",
            field="TableName",
        )

    if not MIN_LENGTH <= len(name) <= MAX_LENGTH:
        raise ClientInputError(
            f"Invalid table name {name!r}: length must be between {MIN_LENGTH} "
            f"and {MAX_LENGTH} characters",
            field="TableName",
        )
