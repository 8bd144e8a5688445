"""Tests for the two-stage validator."""

import pytest

from finquest.ledger.errors import DuplicateGoalNameError, LedgerValidationError
from finquest.models.ledger import SAVINGS_CONTRIBUTION, PendingTransaction
from finquest.validation import LedgerValidator


@pytest.fixture
def validator() -> LedgerValidator:
    return LedgerValidator()


class TestTransactionValidation:
    """Transaction form validation."""

    def test_valid_expense(self, validator):
        result = validator.validate_transaction({
            "type": "expense",
            "category": "Food",
            "amount": 12.5,
        })
        assert result.is_valid is True
        assert result.issues == []
        assert validator.get_user_friendly_summary(result) == "✅ All checks passed!"

    def test_schema_errors_skip_semantic_stage(self, validator):
        result = validator.validate_transaction({"type": "expense", "category": "Food", "amount": 0})
        assert result.schema_valid is False
        assert result.semantic_valid is False
        assert result.first_error.field == "amount"

    def test_missing_field(self, validator):
        result = validator.validate_transaction({"type": "income", "amount": 10})
        assert result.first_error.field == "category"
        assert result.first_error.issue_type == "missing"

    def test_category_of_other_type_is_an_error(self, validator):
        result = validator.validate_transaction({
            "type": "expense",
            "category": "Salary",
            "amount": 100,
        })
        assert result.schema_valid is True
        assert result.semantic_valid is False
        assert result.first_error.issue_type == "inconsistent"

    def test_unknown_category_is_a_warning(self, validator):
        result = validator.validate_transaction({
            "type": "expense",
            "category": "Pets",
            "amount": 30,
        })
        assert result.is_valid is True
        assert result.issues[0].severity == "warning"
        assert "⚠️" in validator.get_user_friendly_summary(result)

    def test_absurd_amount_is_rejected(self, validator):
        result = validator.validate_transaction({
            "type": "income",
            "category": "Salary",
            "amount": 5e12,
        })
        assert result.is_valid is False
        assert result.first_error.issue_type == "suspicious_value"

    def test_savings_categories_belong_to_their_types(self, validator):
        contribution = PendingTransaction.contribution(10)
        assert validator.validate_transaction(contribution.model_dump()).is_valid is True

    def test_parse_transaction(self, validator):
        pending = validator.parse_transaction({
            "type": "expense",
            "category": SAVINGS_CONTRIBUTION,
            "amount": "25.50",
        })
        assert pending.amount == 25.5
        with pytest.raises(LedgerValidationError):
            validator.parse_transaction({"type": "expense", "category": "Food", "amount": -1})


class TestGoalValidation:
    """Goal form validation."""

    def test_valid_new_goal(self, validator, general_savings):
        result = validator.validate_goal("Laptop", 1200, [general_savings])
        assert result.is_valid is True

    def test_name_and_target_required(self, validator):
        result = validator.validate_goal("   ", None, [])
        fields = {i.field for i in result.issues}
        assert fields == {"name", "target_amount"}
        assert result.schema_valid is False

    def test_target_must_be_positive(self, validator):
        result = validator.validate_goal("Laptop", 0, [])
        assert result.first_error.field == "target_amount"

    def test_duplicate_name(self, validator, vacation_goal):
        result = validator.validate_goal("vacation", 50, [vacation_goal])
        assert result.first_error.issue_type == "duplicate"
        with pytest.raises(DuplicateGoalNameError) as excinfo:
            validator.require_valid(result)
        assert excinfo.value.issues == result.issues

    def test_edit_keeps_own_name(self, validator, vacation_goal):
        result = validator.validate_goal("Vacation", 150, [vacation_goal], existing=vacation_goal)
        assert result.is_valid is True

    def test_edit_target_below_saved_amount(self, validator, vacation_goal):
        goal = vacation_goal.model_copy(update={"current_amount": 80})
        result = validator.validate_goal("Vacation", 50, [goal], existing=goal)
        assert result.first_error.issue_type == "below_balance"
        with pytest.raises(LedgerValidationError):
            validator.require_valid(result)

    def test_general_savings_has_no_target(self, validator, general_savings):
        assert validator.validate_goal(
            "Rainy Day", None, [general_savings], existing=general_savings
        ).is_valid is True
        assert validator.validate_goal(
            "Rainy Day", 500, [general_savings], existing=general_savings
        ).is_valid is False

    def test_summary_lists_errors_and_fixes(self, validator, vacation_goal):
        result = validator.validate_goal("Vacation", 50, [vacation_goal])
        summary = validator.get_user_friendly_summary(result)
        assert summary.startswith("❌ Please fix the following:")
        assert "An active quest with this name already exists." in summary
        assert "💡 Choose a different name" in summary
