"""
Closed categorical domains for conformed attributes.

Each domain is an Enum whose members are the canonical labels, with an
explicit NOT_AVAILABLE member for values that are absent or unrecognized.
Source codes map to members through an explicit table; anything outside the
table resolves to NOT_AVAILABLE instead of failing.
"""

from enum import Enum
from typing import Any

from pyspark.sql import Column
from pyspark.sql import functions as F

NOT_AVAILABLE = "N/A"


class CategoricalDomain(str, Enum):
    """Base class for a closed label domain with a code lookup table."""

    @classmethod
    def codes(cls) -> dict[str, "CategoricalDomain"]:
        """Return the mapping of upper-cased source codes to members."""
        raise NotImplementedError

    @classmethod
    def from_code(cls, code: Any) -> "CategoricalDomain":
        """
        Resolve a raw source code to a domain member.

        Args:
            code: Raw value as received (any case, may be padded or None)

        Returns:
            The matching member, or NOT_AVAILABLE
        """
        if code is None:
            return cls.NOT_AVAILABLE
        return cls.codes().get(str(code).strip().upper(), cls.NOT_AVAILABLE)

    @classmethod
    def labels(cls) -> list[str]:
        """All canonical labels, NOT_AVAILABLE included."""
        return [member.value for member in cls]

    @classmethod
    def column(cls, source: Column | str) -> Column:
        """
        Build a Spark expression that maps a code column onto this domain.

        Args:
            source: Column (or column name) holding raw codes

        Returns:
            Column expression yielding the canonical label
        """
        if isinstance(source, str):
            source = F.col(source)
        normalized = F.upper(F.trim(source))
        expr = None
        for code, member in cls.codes().items():
            if expr is None:
                expr = F.when(normalized == code, F.lit(member.value))
            else:
                expr = expr.when(normalized == code, F.lit(member.value))
        return expr.otherwise(F.lit(cls.NOT_AVAILABLE.value))


class MaritalStatus(CategoricalDomain):
    SINGLE = "Single"
    MARRIED = "Married"
    NOT_AVAILABLE = NOT_AVAILABLE

    @classmethod
    def codes(cls) -> dict[str, "MaritalStatus"]:
        return {"S": cls.SINGLE, "M": cls.MARRIED}


class Gender(CategoricalDomain):
    FEMALE = "Female"
    MALE = "Male"
    NOT_AVAILABLE = NOT_AVAILABLE

    @classmethod
    def codes(cls) -> dict[str, "Gender"]:
        return {
            "F": cls.FEMALE,
            "FEMALE": cls.FEMALE,
            "M": cls.MALE,
            "MALE": cls.MALE,
        }


class ProductLine(CategoricalDomain):
    MOUNTAIN = "Mountain"
    ROAD = "Road"
    OTHER_SALES = "Other Sales"
    TOURING = "Touring"
    NOT_AVAILABLE = NOT_AVAILABLE

    @classmethod
    def codes(cls) -> dict[str, "ProductLine"]:
        return {
            "M": cls.MOUNTAIN,
            "R": cls.ROAD,
            "S": cls.OTHER_SALES,
            "T": cls.TOURING,
        }


# Country is an open domain: known codes are expanded, blanks become N/A,
# anything else passes through trimmed.
COUNTRY_CODES = {
    "DE": "Germany",
    "US": "United States",
    "USA": "United States",
}


def normalize_country(code: Any) -> str:
    """
    Normalize a raw country value.

    Args:
        code: Raw country code or name

    Returns:
        Canonical country label
    """
    if code is None or str(code).strip() == "":
        return NOT_AVAILABLE
    trimmed = str(code).strip()
    return COUNTRY_CODES.get(trimmed.upper(), trimmed)


def country_column(source: Column | str) -> Column:
    """Spark expression equivalent of normalize_country."""
    if isinstance(source, str):
        source = F.col(source)
    trimmed = F.trim(source)
    expr = F.when(source.isNull() | (trimmed == ""), F.lit(NOT_AVAILABLE))
    for code, label in COUNTRY_CODES.items():
        expr = expr.when(F.upper(trimmed) == code, F.lit(label))
    return expr.otherwise(trimmed)
