import pytest

from sdnnet.errors import INVALID, REQUIRED, AggregateError, FieldError, aggregate


def test_aggregate_of_nothing_is_none():
    assert aggregate([]) is None
    assert aggregate([None, None]) is None


def test_single_error_keeps_its_message():
    err = aggregate([ValueError("boom")])
    assert isinstance(err, AggregateError)
    assert str(err) == "boom"
    assert len(err.errors) == 1


def test_multiple_errors_are_bracketed():
    err = aggregate([ValueError("first"), None, ValueError("second")])
    assert str(err) == "[first, second]"
    assert [str(e) for e in err.errors] == ["first", "second"]


def test_duplicate_messages_collapse_in_text_only():
    err = aggregate([ValueError("same"), ValueError("same")])
    assert str(err) == "same"
    assert len(err.errors) == 2


def test_aggregate_can_be_raised():
    err = aggregate([ValueError("k")])
    with pytest.raises(AggregateError) as info:
        raise err
    assert info.value is err
    assert str(info.value) == "k"
    assert [str(e) for e in info.value.errors] == ["k"]


def test_invalid_string_field():
    err = FieldError(INVALID, "serviceNetwork", "x", "bad")
    assert str(err) == 'serviceNetwork: Invalid value: "x": bad'


def test_required_field_has_no_value():
    err = FieldError(REQUIRED, "network", detail="must be set")
    assert str(err) == "network: Required value: must be set"


def test_invalid_integer_value_is_unquoted():
    err = FieldError(INVALID, "hostsubnetlength", 1, "too small")
    parts = str(err).split(": ")
    assert parts[0] == "hostsubnetlength"
    assert parts[2] == "1"
    assert parts[3] == "too small"