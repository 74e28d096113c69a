import pytest

from chatguard.datatypes.moderation_datatypes import RejectionReason, UsernameState
from chatguard.moderation.username_validator import UsernameValidator


@pytest.fixture()
def validator() -> UsernameValidator:
    return UsernameValidator(min_length=3, max_length=12)


@pytest.mark.parametrize("name", ["bob", "alice_01", "A_B_C", "x" * 12])
def test_validate_accepts_valid_names(validator: UsernameValidator, name: str) -> None:
    assert validator.validate(name).ok is True


@pytest.mark.parametrize("name", ["", "ab", "x" * 13])
def test_validate_rejects_bad_length(validator: UsernameValidator, name: str) -> None:
    result = validator.validate(name)
    assert result.ok is False
    assert result.reason is RejectionReason.BAD_USERNAME
    assert "between 3 and 12" in result.message


@pytest.mark.parametrize("name", ["bob smith", "al!ce", "jürgen", "bob-1"])
def test_validate_rejects_bad_characters(validator: UsernameValidator, name: str) -> None:
    result = validator.validate(name)
    assert result.ok is False
    assert "letters, digits and underscores" in result.message


def test_length_rule_wins_over_character_rule(validator: UsernameValidator) -> None:
    result = validator.validate("a!")
    assert "between" in result.message


def test_change_username_consumes_one_change(validator: UsernameValidator) -> None:
    state = UsernameState(name="alice", max_changes=2)

    result = validator.change_username(state, "alice_2")

    assert result.ok is True
    assert state.name == "alice_2"
    assert state.changes_used == 1
    assert state.changes_left == 1


def test_rejected_change_does_not_consume_quota(validator: UsernameValidator) -> None:
    state = UsernameState(name="alice", max_changes=2)

    result = validator.change_username(state, "no spaces allowed")

    assert result.ok is False
    assert state.name == "alice"
    assert state.changes_used == 0


def test_quota_exhausted_rejects_even_valid_names(validator: UsernameValidator) -> None:
    state = UsernameState(name="alice", max_changes=2)
    assert validator.change_username(state, "alice_2").ok
    assert validator.change_username(state, "alice_3").ok

    for attempt in ["alice_4", "bob", "bad name"]:
        result = validator.change_username(state, attempt)
        assert result.reason is RejectionReason.USERNAME_QUOTA_EXCEEDED
        assert state.changes_used == 2

    assert state.name == "alice_3"
    assert validator.can_change_username(state) is False


def test_reset_quota_allows_changes_again(validator: UsernameValidator) -> None:
    state = UsernameState(name="alice", changes_used=1, max_changes=1)
    assert validator.can_change_username(state) is False

    validator.reset_quota(state)

    assert state.changes_used == 0
    assert validator.change_username(state, "carol").ok is True
