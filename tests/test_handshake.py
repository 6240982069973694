import pytest

from wsframe.handshake import generate_accept


def test_bytes_and_str_agree():
    key = "dGhlIHNhbXBsZSBub25jZQ=="
    assert generate_accept(key.encode("ascii")) == generate_accept(key)


def test_output_shape():
    result = generate_accept("AAAAAAAAAAAAAAAAAAAAAA==")
    assert len(result) == 28
    assert result.endswith("=")


def test_deterministic_and_key_sensitive():
    a = generate_accept("AAAAAAAAAAAAAAAAAAAAAA==")
    b = generate_accept("AAAAAAAAAAAAAAAAAAAAAQ==")
    assert a == generate_accept("AAAAAAAAAAAAAAAAAAAAAA==")
    assert a != b
    assert len(b) == 28


@pytest.mark.parametrize("key", ["", "short", "x" * 25])
def test_wrong_length_rejected(key):
    with pytest.raises(ValueError):
        generate_accept(key)