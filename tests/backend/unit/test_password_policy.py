"""
Unit tests for core.password_policy.
"""
import pytest

from opti_api.core.password_policy import (
    MIN_LENGTH,
    SPECIAL_CHARS,
    generate_temp_password,
    is_strong,
    password_errors,
)


class TestPasswordErrors:

    def test_strong_password_has_no_errors(self):
        assert password_errors("Str0ng!Pass") == []
        assert is_strong("Str0ng!Pass") is True

    @pytest.mark.parametrize(
        "password, expected",
        [
            ("Sh0rt!", "Password must be at least 8 characters long"),
            ("lower0nly!", "Password must contain at least one uppercase letter"),
            ("UPPER0NLY!", "Password must contain at least one lowercase letter"),
            ("NoDigits!!", "Password must contain at least one number"),
            ("NoSpecial123", "Password must contain at least one special character"),
        ],
    )
    def test_each_rule_reports_its_message(self, password, expected):
        assert password_errors(password) == [expected]
        assert is_strong(password) is False

    def test_every_violation_is_listed(self):
        """An empty password breaks all five rules at once."""
        assert len(password_errors("")) == 5

    def test_none_is_treated_as_empty(self):
        assert password_errors(None) == password_errors("")

    def test_exactly_min_length_is_accepted(self):
        password = "Aa1!" + "a" * (MIN_LENGTH - 4)
        assert len(password) == MIN_LENGTH
        assert is_strong(password)


class TestTempPassword:

    def test_generated_passwords_satisfy_the_policy(self):
        for _ in range(50):
            assert password_errors(generate_temp_password()) == []

    def test_default_length_is_twelve(self):
        assert len(generate_temp_password()) == 12

    def test_short_request_is_raised_to_minimum(self):
        assert len(generate_temp_password(4)) == MIN_LENGTH

    def test_contains_a_special_character(self):
        assert any(c in SPECIAL_CHARS for c in generate_temp_password())

    def test_not_repeated(self):
        assert len({generate_temp_password() for _ in range(20)}) == 20
