"""Tests for the operator catalog and the function registry."""

import threading

import pytest

from hive_to_trino.functions import (
    BuiltinOperator,
    FunctionDescriptor,
    FunctionRegistry,
    OperatorSyntax,
    StaticFunctionRegistry,
    UserDefinedOperator,
)
from hive_to_trino.functions import operators as ops


def udf_descriptor(name="is_guest", class_name="com.example.IsGuest", dependencies=()):
    operator = UserDefinedOperator(name, class_name, tuple(dependencies))
    return FunctionDescriptor(class_name, operator, tuple(dependencies))


# =============================================================================
# OPERATOR CATALOG
# =============================================================================


class TestOperatorCatalog:
    """Standard operators plus the Hive extensions."""

    def test_hive_extensions_are_loaded(self, operators):
        """RLIKE, REGEXP and <=> come from operators.yaml."""
        assert operators.by_kind("RLIKE").syntax == OperatorSyntax.SPECIAL
        assert operators.by_kind("NULL_SAFE_EQUALS").name == "<=>"
        assert ops.AND in operators

    def test_find_is_case_insensitive(self, operators):
        """Operator names match regardless of case."""
        assert operators.find("and", [OperatorSyntax.BINARY]) == [ops.AND]

    def test_find_filters_by_syntax(self, operators):
        """The two '-' operators are told apart by syntax."""
        assert operators.find("-", [OperatorSyntax.PREFIX]) == [ops.UNARY_MINUS]
        assert set(operators.find("-", [OperatorSyntax.BINARY, OperatorSyntax.SPECIAL])) == {
            ops.MINUS,
            ops.DATETIME_MINUS,
        }

    def test_unknown_kind(self, operators):
        """by_kind raises KeyError for kinds it does not know."""
        with pytest.raises(KeyError):
            operators.by_kind("NO_SUCH_KIND")

    def test_aggregate_flag(self):
        """Aggregate operators are recognised by kind."""
        assert ops.SUM.is_aggregate
        assert not ops.PLUS.is_aggregate


# =============================================================================
# REGISTRY
# =============================================================================


class TestFunctionRegistry:
    """Multimap semantics of the registry."""

    def test_lookup_is_case_insensitive_by_default(self):
        """Hive function names ignore case."""
        registry = FunctionRegistry()
        descriptor = FunctionDescriptor("upper", ops.UPPER)
        registry.register("UPPER", descriptor)

        assert registry.lookup("upper") == (descriptor,)
        assert registry.lookup("Upper") == (descriptor,)

    def test_case_sensitive_entries(self):
        """Implementation class names are matched exactly."""
        registry = FunctionRegistry()
        descriptor = udf_descriptor()
        registry.register("com.example.IsGuest", descriptor, case_sensitive=True)

        assert registry.lookup("com.example.IsGuest", case_sensitive=True) == (descriptor,)
        assert registry.lookup("com.example.isguest", case_sensitive=True) == ()

    def test_overloads_accumulate(self):
        """Registering a second descriptor under a name adds an overload."""
        registry = FunctionRegistry()
        registry.register("substr", FunctionDescriptor("substr", ops.SUBSTRING))
        registry.register("substr", udf_descriptor("substr", "org.apache.hadoop.hive.ql.udf.UDFSubstr"))

        assert len(registry.lookup("substr")) == 2

    def test_register_is_idempotent(self):
        """An equal descriptor is stored once."""
        registry = FunctionRegistry()
        registry.register("upper", FunctionDescriptor("upper", ops.UPPER))
        registry.register("upper", FunctionDescriptor("upper", ops.UPPER))

        assert len(registry.lookup("upper")) == 1

    def test_missing_name(self):
        """Unknown names yield an empty tuple."""
        assert FunctionRegistry().lookup("nothing") == ()

    def test_replace(self):
        """replace swaps one descriptor and returns the displaced one."""
        registry = FunctionRegistry()
        old = udf_descriptor()
        new = udf_descriptor(dependencies=["ivy://com.example:udfs:1.0"])
        registry.register(old.name, old, case_sensitive=True)

        assert registry.replace(old.name, old, new) == old
        assert registry.lookup(old.name, case_sensitive=True) == (new,)

    def test_replace_after_concurrent_enrichment(self):
        """A stale ``old`` overwrites the entry sharing its implementation."""
        registry = FunctionRegistry()
        old = udf_descriptor()
        first = udf_descriptor(dependencies=["ivy://a:b:1"])
        second = udf_descriptor(dependencies=["ivy://a:b:2"])
        registry.register(old.name, old, case_sensitive=True)

        registry.replace(old.name, old, first)
        displaced = registry.replace(old.name, old, second)

        assert displaced == first
        assert registry.lookup(old.name, case_sensitive=True) == (second,)

    def test_replace_without_match_appends(self):
        """Replacing something absent appends the new descriptor."""
        registry = FunctionRegistry()
        new = udf_descriptor()

        assert registry.replace(new.name, udf_descriptor("other", "com.example.Other"), new) is None
        assert registry.lookup(new.name, case_sensitive=True) == (new,)

    def test_concurrent_replacements(self):
        """Concurrent enrichment of one entry leaves exactly one descriptor."""
        registry = FunctionRegistry()
        old = udf_descriptor()
        registry.register(old.name, old, case_sensitive=True)
        barrier = threading.Barrier(8)

        def enrich(index):
            barrier.wait()
            registry.replace(old.name, old, udf_descriptor(dependencies=[f"ivy://a:b:{index}"]))

        threads = [threading.Thread(target=enrich, args=(i,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        entries = registry.lookup(old.name, case_sensitive=True)
        assert len(entries) == 1
        assert entries[0].operator.dependencies[0].startswith("ivy://a:b:")


class TestStaticFunctionRegistry:
    """Registry bootstrapped from the packaged catalog."""

    def test_builtins_bind_to_operators(self, registry):
        """Names mapped to an operator kind resolve to builtin operators."""
        (descriptor,) = registry.lookup("ucase")

        assert descriptor.operator == ops.UPPER

    def test_udfs_bind_to_implementation_classes(self, registry):
        """Names mapped to a class resolve to user defined operators."""
        (descriptor,) = registry.lookup("datediff")

        assert isinstance(descriptor.operator, UserDefinedOperator)
        assert descriptor.operator.implementation_class.endswith("GenericUDFDateDiff")

    def test_catalog_udfs_are_case_sensitive(self, registry):
        """Catalog-driven UDFs are keyed by exact class name."""
        class_name = "com.linkedin.dali.udf.date.hive.DateFormatToEpoch"

        (descriptor,) = registry.lookup(class_name, case_sensitive=True)
        assert descriptor.operator.name == "date_format_to_epoch"
        assert registry.lookup(class_name.lower()) == ()

    def test_names_are_sorted(self, registry):
        """names() lists every key in order."""
        names = registry.names()

        assert names == sorted(names)
        assert "substr" in names

    def test_niladic_operators_are_reachable(self, registry):
        """Every standard operator spelled without parentheses has a function name."""
        niladic = {op for op in ops.STANDARD_OPERATORS if op.syntax == OperatorSyntax.FUNCTION_ID}
        bound = {d.operator for name in registry.names() for d in registry.lookup(name, case_sensitive=True)}

        assert niladic
        assert niladic <= bound

    def test_default_returns_fresh_registries(self):
        """Each default() call builds an independent registry."""
        assert StaticFunctionRegistry.default() is not StaticFunctionRegistry.default()

    def test_extra_catalog(self, tmp_path):
        """Additional catalogs register more functions."""
        catalog = tmp_path / "extra.yaml"
        catalog.write_text(
            "functions:\n"
            "  - {name: my_upper, operator: UPPER}\n"
            "udfs:\n"
            "  - class: com.example.udf.Custom\n",
            encoding="utf-8",
        )

        registry = StaticFunctionRegistry.default(extra_catalogs=[str(catalog)])

        assert registry.lookup("my_upper")[0].operator == ops.UPPER
        assert registry.lookup("com.example.udf.Custom", case_sensitive=True)[0].operator.name == "Custom"

    def test_builtin_operator_str(self):
        """Operators describe themselves with name and kind."""
        assert str(BuiltinOperator("+", "PLUS", OperatorSyntax.BINARY)) == "+ [PLUS]"
