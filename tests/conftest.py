"""Pytest configuration and fixtures for hive_to_trino tests."""

import pytest

from builders import TABLE_FOUR, TABLE_ONE, TABLE_THREE, TABLE_TWO
from hive_to_trino.catalog import get_operator_catalog
from hive_to_trino.config import RenderOptions
from hive_to_trino.functions import FunctionResolver, StaticFunctionRegistry, TableFunctionMetadata
from hive_to_trino.rewrite import RelToTrinoConverter


# =============================================================================
# TABLE FIXTURES
# =============================================================================

@pytest.fixture
def table_one():
    """icol INT, dcol DOUBLE, scol VARCHAR, tcol TIMESTAMP, acol ARRAY<VARCHAR>."""
    return TABLE_ONE


@pytest.fixture
def table_two():
    """ifield INT, dfield DOUBLE, sfield VARCHAR."""
    return TABLE_TWO


@pytest.fixture
def table_three():
    """binaryfield BINARY, varbinaryfield VARBINARY."""
    return TABLE_THREE


@pytest.fixture
def table_four():
    """icol INT, scol VARCHAR, mcol MAP<VARCHAR, ROW<IFIELD INT, SFIELD VARCHAR>>."""
    return TABLE_FOUR


# =============================================================================
# RESOLUTION FIXTURES
# =============================================================================

@pytest.fixture
def operators():
    """Packaged operator catalog."""
    return get_operator_catalog()


@pytest.fixture
def registry():
    """A fresh registry per test; dynamic resolution mutates it."""
    return StaticFunctionRegistry.default()


@pytest.fixture
def resolver(registry, operators):
    return FunctionResolver(registry, operators)


@pytest.fixture
def dali_table():
    """Table metadata exposing catalog-driven functions."""
    return TableFunctionMetadata.from_table_properties(
        "foo",
        "bar",
        {
            "functions": (
                "dateToEpoch:com.linkedin.dali.udf.date.hive.DateFormatToEpoch "
                "isGuest:com.linkedin.dali.udf.isguestmemberid.hive.IsGuestMemberId "
                "missing:com.example.udf.DoesNotExist"
            ),
            "dependencies": "ivy://com.linkedin.dali:date-udfs:1.0 ivy://com.linkedin.dali:guest-udfs:2.1",
        },
    )


# =============================================================================
# CONVERTER FIXTURES
# =============================================================================

@pytest.fixture
def converter():
    """Converter with the default newline-separated layout."""
    return RelToTrinoConverter()


@pytest.fixture
def one_line_converter():
    """Converter printing every clause on one line."""
    return RelToTrinoConverter(RenderOptions(clause_separator=" "))
