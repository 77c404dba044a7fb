from runiac.errors import (
    CommandError,
    EmptyOutput,
    OutputKeyNotFound,
    OutputValueNotList,
    OutputValueNotMap,
    UnexpectedOutputType,
)


def test_output_key_not_found_message_quotes_key():
    err = OutputKeyNotFound("vpc_id")
    assert str(err) == "output doesn't contain a value for the key \"vpc_id\""
    assert err.key == "vpc_id"
    assert isinstance(err, LookupError)


def test_output_value_not_map_message():
    err = OutputValueNotMap("abc")
    assert str(err) == 'Output value "abc" is not a map'
    assert err.value == "abc"


def test_output_value_not_list_message():
    err = OutputValueNotList("abc")
    assert str(err) == 'Output value "abc" is not a list'
    assert err.value == "abc"


def test_empty_output_message():
    err = EmptyOutput("subnets")
    assert str(err) == "Required output subnets was empty"
    assert err.name == "subnets"


def test_unexpected_output_type_message():
    err = UnexpectedOutputType("k", "map", "string")
    assert str(err) == "Expected output 'k' to be of type 'map' but got 'string'"
    assert (err.key, err.expected_type, err.actual_type) == ("k", "map", "string")


def test_command_error_keeps_output_and_exit_code():
    err = CommandError("terraform", "boom", 2)
    assert err.output == "boom"
    assert err.exit_code == 2
    assert "terraform" in str(err)
    assert isinstance(err, RuntimeError)