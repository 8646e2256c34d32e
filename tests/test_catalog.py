"""Tests for the packaged function catalogs."""

import pytest

from hive_to_trino.catalog import (
    get_function_definitions,
    get_trino_function_catalog,
    load_function_definitions,
)
from hive_to_trino.catalog.trino_loader import FunctionRule
from hive_to_trino.errors import CatalogLoadError
from hive_to_trino.rewrite.function_translator import find_function_rule, translate_hive_function
from hive_to_trino.rewrite.sql_text import Emitted


class TestFunctionDefinitions:
    """functions.yaml and user supplied catalogs."""

    def test_packaged_definitions(self):
        """Builtins and UDFs are both present."""
        by_name = {}
        for definition in get_function_definitions():
            by_name.setdefault(definition.name, []).append(definition)

        assert by_name["upper"][0].operator_kind == "UPPER"
        assert by_name["datediff"][0].implementation_class.endswith("GenericUDFDateDiff")
        assert len(by_name["substr"]) == 2

    def test_catalog_udfs_are_case_sensitive(self):
        """Entries under udfs are keyed by class name."""
        definition = next(d for d in get_function_definitions() if d.name.endswith("IsGuestMemberId"))

        assert definition.case_sensitive
        assert definition.operator_name == "is_guest_member_id"

    def test_missing_catalog(self, tmp_path):
        """A missing extra catalog is a load error."""
        with pytest.raises(CatalogLoadError, match="not found"):
            load_function_definitions(tmp_path / "absent.yaml")

    def test_entry_needs_one_binding(self, tmp_path):
        """A function must bind to an operator or a UDF, not both."""
        path = tmp_path / "bad.yaml"
        path.write_text("functions:\n  - {name: f, operator: UPPER, udf: com.example.F}\n", encoding="utf-8")

        with pytest.raises(CatalogLoadError, match="exactly one"):
            load_function_definitions(path)

    def test_invalid_yaml(self, tmp_path):
        """Unparseable YAML is reported with its source."""
        path = tmp_path / "broken.yaml"
        path.write_text("functions: [\n", encoding="utf-8")

        with pytest.raises(CatalogLoadError, match="not valid YAML"):
            load_function_definitions(path)


class TestTrinoFunctionCatalog:
    """trino_functions.yaml rewrite rules."""

    def test_rules_are_keyed_by_upper_case_name(self):
        """Lookup keys are upper-cased."""
        catalog = get_trino_function_catalog()

        assert "DATEDIFF" in catalog
        assert catalog["NVL"][0].target == "COALESCE"

    def test_rule_selection_by_arity(self):
        """find_function_rule honours arity restrictions."""
        catalog = get_trino_function_catalog()

        assert "yyyy-MM-dd" in find_function_rule(catalog, "from_unixtime", 1).template
        assert find_function_rule(catalog, "from_unixtime", 2).template == "format_datetime(from_unixtime({0}), {1})"
        assert find_function_rule(catalog, "unix_timestamp", 1) is None

    def test_template_with_too_few_arguments(self):
        """A template referencing a missing argument fails clearly."""
        rule = FunctionRule(name="F", handler="template", template="f({0}, {1})")

        with pytest.raises(ValueError, match="expects more than 1 arguments"):
            translate_hive_function(rule, [Emitted("x")])

    def test_unknown_handler(self):
        """Only rename and template handlers exist."""
        rule = FunctionRule(name="F", handler="macro")

        with pytest.raises(ValueError, match="unsupported handler"):
            translate_hive_function(rule, [])

    def test_quoted_rename(self):
        """quote prints the target as a quoted identifier."""
        rule = FunctionRule(name="F", handler="rename", target="SUBSTR", quote=True)

        assert translate_hive_function(rule, [Emitted("a"), Emitted("1")]).text == '"SUBSTR"(a, 1)'
