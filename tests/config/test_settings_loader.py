"""Tests for payroll settings loading (payroll_config)."""

from decimal import Decimal

import pytest
import yaml

from payroll_config import get_active_settings, reset_active_settings
from payroll_config.loader import (
    DATABASE_URL_ENV,
    load_settings,
    parse_formula,
    parse_settings,
    validate_formulas,
)
from payroll_config.schema import DEFAULT_DATABASE_URL
from payroll_kernel.domain.formula import FormulaType, PayrollFormula
from payroll_kernel.exceptions import FormulaValidationError

SETTINGS_YAML = """
database_url: postgresql://payroll@localhost/payroll
default_currency: eur
reporting_currency: USD
standard_monthly_hours: 168
overtime_rate: "2"
custom_formulas_enabled: true
exchange_rate_timeout_seconds: 2.5
exchange_rate_fallback: fail
formulas:
  - name: housing
    type: allowance
    expression: basic_salary * 0.1
    priority: 10
  - name: pension
    type: deduction
    expression: housing / 2
    priority: 20
    branch_id: 3
"""


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    reset_active_settings()
    yield
    reset_active_settings()


@pytest.fixture
def settings_file(tmp_path):
    path = tmp_path / "payroll.yaml"
    path.write_text(SETTINGS_YAML)
    return path


class TestLoadSettings:

    def test_full_file(self, settings_file):
        settings = load_settings(settings_file, environ={})

        assert settings.database_url == "postgresql://payroll@localhost/payroll"
        assert settings.default_currency == "EUR"
        assert settings.standard_monthly_hours == Decimal("168")
        assert settings.overtime_rate == Decimal("2")
        assert settings.exchange_rate_timeout_seconds == 2.5
        assert settings.exchange_rate_fallback == "fail"
        assert [f.name for f in settings.formulas] == ["housing", "pension"]
        assert settings.formulas[1].formula_type is FormulaType.DEDUCTION
        assert settings.formulas[1].branch_id == 3

    def test_defaults(self):
        settings = parse_settings({}, environ={})

        assert settings.database_url == DEFAULT_DATABASE_URL
        assert settings.reporting_currency == "USD"
        assert settings.standard_monthly_hours == Decimal("160")
        assert settings.overtime_rate == Decimal("1.5")
        assert settings.exchange_rate_fallback == "omit"
        assert settings.formulas == ()

    def test_database_url_from_environment(self, settings_file):
        settings = load_settings(settings_file, environ={DATABASE_URL_ENV: "sqlite://"})
        assert settings.database_url == "sqlite://"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "absent.yaml", environ={})

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("formulas: [unclosed")
        with pytest.raises(yaml.YAMLError):
            load_settings(path, environ={})


class TestValidation:

    @pytest.mark.parametrize("data", [
        {"unknown_key": 1},
        {"default_currency": "DOLLARS"},
        {"standard_monthly_hours": 0},
        {"overtime_rate": "fast"},
        {"custom_formulas_enabled": "yes"},
        {"exchange_rate_fallback": "guess"},
        {"exchange_rate_timeout_seconds": -1},
        {"formulas": {"name": "housing"}},
    ])
    def test_invalid_values(self, data):
        with pytest.raises(ValueError):
            parse_settings(data, environ={})

    def test_duplicate_formula_names(self):
        data = {"formulas": [
            {"name": "housing", "expression": "1"},
            {"name": "housing", "expression": "2"},
        ]}
        with pytest.raises(ValueError, match="duplicate"):
            parse_settings(data, environ={})

    def test_formula_tuple_shadowing_context_variable(self):
        formulas = (
            PayrollFormula("working_days", FormulaType.CUSTOM, "20"),
            PayrollFormula("bonus", FormulaType.ALLOWANCE, "working_days * 10"),
        )
        with pytest.raises(ValueError, match="shadow context variables: working_days"):
            validate_formulas(formulas)

    def test_unsafe_expression_rejected(self):
        data = {"formulas": [{"name": "evil", "expression": "__import__('os').system('x')"}]}
        with pytest.raises(FormulaValidationError):
            parse_settings(data, environ={})


class TestParseFormula:

    def test_defaults(self):
        formula = parse_formula({"name": "score", "expression": "working_days"})

        assert formula.formula_type is FormulaType.CUSTOM
        assert formula.priority == 100
        assert formula.is_active

    @pytest.mark.parametrize("data", [
        {"expression": "1"},
        {"name": "not an identifier", "expression": "1"},
        {"name": "basic_salary", "expression": "1"},
        {"name": "bonus", "expression": "1", "type": "gift"},
        {"name": "bonus", "expression": "1", "priority": "high"},
    ])
    def test_invalid_formula(self, data):
        with pytest.raises(ValueError):
            parse_formula(data)


class TestActiveSettings:

    def test_cached_until_reset(self, settings_file, monkeypatch):
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)
        first = get_active_settings(settings_file)
        assert get_active_settings() is first

        reset_active_settings()
        monkeypatch.delenv("PAYROLL_CONFIG", raising=False)
        assert get_active_settings().formulas == ()

    def test_path_from_environment(self, settings_file, monkeypatch, captured_logs):
        monkeypatch.setenv("PAYROLL_CONFIG", str(settings_file))
        monkeypatch.delenv(DATABASE_URL_ENV, raising=False)

        settings = get_active_settings()

        assert len(settings.formulas) == 2
        traces = [r for r in captured_logs() if r["message"] == "PAYROLL_CONFIG_TRACE"]
        assert traces[0]["formula_count"] == 2
