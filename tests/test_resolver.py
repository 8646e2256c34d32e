"""Tests for Hive function and operator name resolution."""

import pytest

from hive_to_trino.errors import AmbiguousOperatorError, BrokenCatalogMappingError, UnknownFunctionError
from hive_to_trino.functions import (
    FunctionDescriptor,
    FunctionResolver,
    TableFunctionMetadata,
    UnresolvedOperator,
    UserDefinedOperator,
)
from hive_to_trino.functions import operators as ops

DATE_TO_EPOCH = "com.linkedin.dali.udf.date.hive.DateFormatToEpoch"


class TestOperatorResolution:
    """Unary and binary operator names."""

    def test_unary_minus(self, resolver):
        """Prefix '-' is unary minus."""
        assert resolver.resolve_unary_operator("-") == ops.UNARY_MINUS

    def test_unary_not_is_case_insensitive(self, resolver):
        """Operator names ignore case."""
        assert resolver.resolve_unary_operator("not") == ops.NOT

    @pytest.mark.parametrize(
        "name,expected",
        [("+", ops.PLUS), ("-", ops.MINUS), ("=", ops.EQUALS), ("AND", ops.AND), ("like", ops.LIKE)],
    )
    def test_binary_operators(self, resolver, name, expected):
        """'+' and '-' bind to numeric arithmetic by default."""
        assert resolver.resolve_binary_operator(name) == expected

    def test_hive_operator(self, resolver, operators):
        """Dialect operators from the catalog resolve by name."""
        assert resolver.resolve_binary_operator("rlike") == operators.by_kind("RLIKE")

    def test_datetime_arithmetic_makes_plus_ambiguous(self, registry, operators):
        """Without the override both '+' operators match."""
        resolver = FunctionResolver(registry, operators, datetime_arithmetic=True)

        with pytest.raises(AmbiguousOperatorError) as exc_info:
            resolver.resolve_binary_operator("+")

        assert set(exc_info.value.candidates) == {ops.PLUS, ops.DATETIME_PLUS}

    def test_binary_falls_back_to_functions(self, resolver):
        """Binary names that are not operators are looked up as functions."""
        operator = resolver.resolve_binary_operator("pmod")

        assert isinstance(operator, UserDefinedOperator)
        assert operator.name == "pmod"

    def test_unknown_unary_operator(self, resolver):
        """Unknown operators are reported."""
        with pytest.raises(UnknownFunctionError, match="Unknown operator"):
            resolver.resolve_unary_operator("~~")

    def test_unknown_binary_operator(self, resolver):
        """A binary name unknown to both operators and functions fails."""
        with pytest.raises(UnknownFunctionError, match="Unknown function name: ~~"):
            resolver.resolve_binary_operator("~~")


class TestFunctionResolution:
    """Static lookup and overload placeholders."""

    def test_single_match(self, resolver):
        """A name with one descriptor resolves to it."""
        assert resolver.try_resolve("UPPER").operator == ops.UPPER

    def test_unknown_function(self, resolver):
        """The error message names the function."""
        with pytest.raises(UnknownFunctionError) as exc_info:
            resolver.try_resolve("no_such_function")

        assert str(exc_info.value) == "Unknown function name: no_such_function"
        assert exc_info.value.function_name == "no_such_function"

    def test_empty_name(self, resolver):
        """Empty names are a caller error."""
        with pytest.raises(ValueError):
            resolver.try_resolve("")

    def test_overloaded_name_yields_placeholder(self, resolver):
        """Overloads resolve to an unresolved operator named after the first candidate."""
        descriptor = resolver.try_resolve("substr")

        assert descriptor.operator == UnresolvedOperator("SUBSTRING")
        assert descriptor.name == "SUBSTRING"

    def test_placeholder_under_table_is_qualified(self, resolver, dali_table):
        """A placeholder resolved for a table carries the table's identifier."""
        descriptor = resolver.try_resolve("substr", table=dali_table)

        assert descriptor.operator.identifier == ("foo", "bar", "SUBSTRING")

    def test_case_sensitive_lookup(self, resolver):
        """Case-sensitive resolution matches class names exactly."""
        assert resolver.try_resolve(DATE_TO_EPOCH, case_sensitive=True).operator.name == "date_format_to_epoch"

        with pytest.raises(UnknownFunctionError):
            resolver.try_resolve(DATE_TO_EPOCH.upper(), case_sensitive=True)

    def test_resolve_returns_raw_descriptors(self, resolver):
        """resolve never raises."""
        assert len(resolver.resolve("substr")) == 2
        assert resolver.resolve("missing") == ()


class TestCatalogFunctions:
    """Functions exposed through table metadata as <db>_<table>_<base name>."""

    def test_resolves_through_table(self, resolver, dali_table):
        """The prefixed name maps to the registered implementation class."""
        descriptor = resolver.try_resolve("foo_bar_dateToEpoch", table=dali_table)

        assert descriptor.operator.implementation_class == DATE_TO_EPOCH
        assert descriptor.operator.dynamic_origin == "foo_bar_dateToEpoch"
        assert descriptor.operator.dependencies == (
            "ivy://com.linkedin.dali:date-udfs:1.0",
            "ivy://com.linkedin.dali:guest-udfs:2.1",
        )

    def test_enrichment_is_visible_to_later_lookups(self, resolver, registry, dali_table):
        """The registry entry is replaced by the enriched descriptor."""
        resolver.try_resolve("foo_bar_dateToEpoch", table=dali_table)

        (stored,) = registry.lookup(DATE_TO_EPOCH, case_sensitive=True)
        assert stored.operator.dynamic_origin == "foo_bar_dateToEpoch"
        assert stored.operator.dependencies == dali_table.dependencies

    def test_repeated_resolution_keeps_one_entry(self, resolver, registry, dali_table):
        """Resolving twice does not duplicate the registry entry."""
        resolver.try_resolve("foo_bar_dateToEpoch", table=dali_table)
        resolver.try_resolve("foo_bar_dateToEpoch", table=dali_table)

        assert len(registry.lookup(DATE_TO_EPOCH, case_sensitive=True)) == 1

    def test_prefix_is_case_insensitive(self, resolver, dali_table):
        """The database and table prefix ignores case."""
        descriptor = resolver.try_resolve("FOO_BAR_isGuest", table=dali_table)

        assert descriptor.operator.name == "is_guest_member_id"

    def test_wrong_prefix(self, resolver, dali_table):
        """Names without the table prefix are not catalog functions."""
        assert resolver.try_resolve_as_catalog_function("other_bar_isGuest", dali_table) == ()

    def test_unmapped_base_name(self, resolver, dali_table):
        """Base names the table does not list are not catalog functions."""
        assert resolver.try_resolve_as_catalog_function("foo_bar_unknown", dali_table) == ()

        with pytest.raises(UnknownFunctionError):
            resolver.try_resolve("foo_bar_unknown", table=dali_table)

    def test_base_name_is_case_sensitive(self, resolver, dali_table):
        """The base name must match the table property exactly."""
        assert resolver.try_resolve_as_catalog_function("foo_bar_ISGUEST", dali_table) == ()

    def test_broken_mapping(self, resolver, dali_table):
        """A mapping to an unregistered class names the class."""
        with pytest.raises(BrokenCatalogMappingError) as exc_info:
            resolver.try_resolve("foo_bar_missing", table=dali_table)

        error = exc_info.value
        assert error.function_name == "com.example.udf.DoesNotExist"
        assert error.requested_name == "foo_bar_missing"
        assert str(error).startswith("Unknown function name: com.example.udf.DoesNotExist")

    def test_mapping_to_builtin_is_broken(self, resolver, registry):
        """A class name bound to a builtin operator cannot back a catalog function."""
        registry.register("com.example.Upper", FunctionDescriptor("com.example.Upper", ops.UPPER), case_sensitive=True)
        table = TableFunctionMetadata("foo", "bar", {"up": "com.example.Upper"})

        with pytest.raises(BrokenCatalogMappingError, match="rather than a user defined function"):
            resolver.try_resolve("foo_bar_up", table=table)

    def test_registry_name_wins_over_catalog(self, resolver, dali_table):
        """Names already in the registry never consult the table."""
        assert resolver.try_resolve("upper", table=dali_table).operator == ops.UPPER


class TestTableFunctionMetadata:
    """Parsing of metastore table properties."""

    def test_parse_properties(self, dali_table):
        """Functions and dependencies are whitespace separated."""
        assert dali_table.implementation_class("isGuest") == "com.linkedin.dali.udf.isguestmemberid.hive.IsGuestMemberId"
        assert dali_table.function_prefix == "foo_bar_"
        assert len(dali_table.dependencies) == 2

    def test_malformed_entries_are_skipped(self, caplog):
        """Entries without a colon are logged and ignored."""
        metadata = TableFunctionMetadata.from_table_properties("db", "t", {"functions": "broken ok:com.example.Ok"})

        assert dict(metadata.function_classes) == {"ok": "com.example.Ok"}
        assert "Ignoring malformed function entry 'broken'" in caplog.text

    def test_missing_properties(self):
        """Tables without function properties expose nothing."""
        metadata = TableFunctionMetadata.from_table_properties("db", "t", {})

        assert metadata.implementation_class("anything") is None
        assert metadata.dependencies == ()
