"""
Tests for argument validation messages.
"""

import pytest

from membership_authkit.auth.validation import (
    check_array_parameter,
    check_paging,
    check_parameter,
    check_password_strength,
)
from membership_authkit.errors import InvalidArgumentError, MissingArgumentError


class TestCheckParameter:
    def test_none_is_missing(self):
        with pytest.raises(MissingArgumentError) as exc:
            check_parameter(None, "username")
        assert str(exc.value) == "Value cannot be null. Parameter name: username"
        assert exc.value.param_name == "username"

    def test_none_allowed_when_not_required(self):
        assert check_parameter(None, "email", check_for_null=False) is None

    def test_blank_is_empty(self):
        with pytest.raises(InvalidArgumentError, match="The parameter 'username' must not be empty."):
            check_parameter("   ", "username")

    def test_too_long(self):
        with pytest.raises(InvalidArgumentError) as exc:
            check_parameter("x" * 257, "username", max_size=256)
        assert str(exc.value) == (
            "The parameter 'username' is too long: it must not exceed 256 chars in length."
        )

    def test_length_is_measured_after_trimming(self):
        assert check_parameter("  " + "x" * 256 + "  ", "username", max_size=256) == "x" * 256

    def test_commas(self):
        with pytest.raises(InvalidArgumentError, match="must not contain commas"):
            check_parameter("a,b", "role_name", check_for_commas=True)

    def test_untrimmed_when_requested(self):
        assert check_parameter(" secret ", "password", trim=False) == " secret "


class TestCheckArrayParameter:
    def test_none_array(self):
        with pytest.raises(MissingArgumentError, match="Parameter name: usernames"):
            check_array_parameter(None, "usernames")

    def test_empty_array(self):
        with pytest.raises(
            InvalidArgumentError, match="The array parameter 'usernames' should not be empty."
        ):
            check_array_parameter([], "usernames")

    def test_duplicates(self):
        with pytest.raises(InvalidArgumentError, match="The array 'usernames' contains duplicate values."):
            check_array_parameter(["alice", "bob", "ALICE"], "usernames")

    def test_element_named_by_index(self):
        with pytest.raises(MissingArgumentError) as exc:
            check_array_parameter(["alice", None], "usernames")
        assert exc.value.param_name == "usernames[ 1 ]"

    def test_elements_trimmed_in_order(self):
        assert check_array_parameter([" a ", "b"], "names") == ["a", "b"]


class TestCheckPaging:
    def test_negative_index(self):
        with pytest.raises(
            InvalidArgumentError, match="The pageIndex must be greater than or equal to zero."
        ):
            check_paging(-1, 10)

    def test_zero_size(self):
        with pytest.raises(InvalidArgumentError, match="The pageSize must be greater than zero."):
            check_paging(0, 0)

    def test_overflowing_upper_bound(self):
        with pytest.raises(InvalidArgumentError, match="cannot exceed the maximum value"):
            check_paging(2, 2 ** 30)

    def test_unbounded_first_page_is_allowed(self):
        check_paging(0, 2 ** 31 - 1)


class TestPasswordStrength:
    def test_too_short(self):
        with pytest.raises(InvalidArgumentError, match="greater or equal to 7"):
            check_password_strength("P@ss1", "password", 7, 1)

    def test_missing_non_alphanumeric(self):
        with pytest.raises(InvalidArgumentError, match="Non alpha numeric"):
            check_password_strength("Password1", "password", 7, 1)

    def test_regex_is_searched(self):
        check_password_strength("xx!9yyyy", "password", 7, 1, r"\d")
        with pytest.raises(InvalidArgumentError, match="regular expression"):
            check_password_strength("xx!yyyyy", "password", 7, 1, r"\d")
