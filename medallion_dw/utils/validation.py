"""
Input validation utilities.

Guards the values that end up in dynamically built SQL (schema, view and
column names) and the input directory handed to the raw file reader.
"""

import re
from pathlib import Path


class ValidationError(ValueError):
    """Raised when input validation fails."""
    pass


# Identifiers we generate views and columns from must not collide with these.
RESERVED_KEYWORDS = {
    "select", "insert", "update", "delete", "drop", "create", "alter",
    "table", "database", "index", "view", "user", "grant", "revoke",
}


def sanitize_sql_identifier(identifier: str, field_name: str = "identifier") -> str:
    """
    Sanitize an SQL identifier (schema, view or column name).

    Args:
        identifier: The identifier to sanitize
        field_name: Name of the field (for error messages)

    Returns:
        The validated identifier

    Raises:
        ValidationError: If validation fails

    Examples:
        >>> sanitize_sql_identifier("dim_customers")
        'dim_customers'
        >>> sanitize_sql_identifier("fact_sales; DROP TABLE x;")  # doctest: +SKIP
        ValidationError: identifier contains invalid characters
    """
    if not identifier or not isinstance(identifier, str):
        raise ValidationError(f"{field_name} must be a non-empty string")

    identifier = identifier.strip()

    if not re.match(r'^[a-zA-Z_][a-zA-Z0-9_]*$', identifier):
        raise ValidationError(
            f"{field_name} contains invalid characters. "
            "SQL identifiers must start with a letter or underscore and contain only "
            "alphanumeric characters and underscores."
        )

    if len(identifier) > 63:  # PostgreSQL limit
        raise ValidationError(f"{field_name} exceeds PostgreSQL maximum length of 63 characters")

    if identifier.lower() in RESERVED_KEYWORDS:
        raise ValidationError(
            f"{field_name} '{identifier}' is a reserved SQL keyword. "
            "Please use a different name."
        )

    return identifier


def validate_directory(path: str | Path, field_name: str = "input_dir") -> Path:
    """
    Validate that a path names an existing directory.

    Args:
        path: Directory path
        field_name: Name of the field (for error messages)

    Returns:
        The resolved directory path

    Raises:
        ValidationError: If the path is empty, contains null bytes, or is not
            an existing directory
    """
    if path is None or str(path).strip() == "":
        raise ValidationError(f"{field_name} must be a non-empty path")

    text = str(path).strip()
    if "\x00" in text:
        raise ValidationError(f"{field_name} contains null bytes")

    directory = Path(text).expanduser().resolve()
    if not directory.is_dir():
        raise ValidationError(f"{field_name} is not an existing directory: {directory}")

    return directory
