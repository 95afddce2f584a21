import base64

import pytest

from evquote.services.logo import decode_data_uri, logo_data_uri
from evquote.utils.validators import ValidationError


def test_data_uri():
    uri = logo_data_uri(b"\x89PNG fake", "image/png")
    assert uri.startswith("data:image/png;base64,")
    assert decode_data_uri(uri) == b"\x89PNG fake"


def test_over_cap_is_rejected():
    with pytest.raises(ValidationError) as e:
        logo_data_uri(b"x" * (2 * 1024 * 1024 + 1), "image/png")
    assert "2MB" in str(e.value)


def test_exactly_at_cap_is_accepted():
    raw = b"x" * 1024
    assert logo_data_uri(raw, "image/jpeg", max_bytes=1024) == (
        "data:image/jpeg;base64," + base64.b64encode(raw).decode("ascii")
    )


def test_not_an_image():
    with pytest.raises(ValidationError):
        logo_data_uri(b"hello", "text/plain")
    with pytest.raises(ValidationError):
        logo_data_uri(b"", "image/png")


def test_decode_rejects_garbage():
    with pytest.raises(ValueError):
        decode_data_uri("https://example.com/logo.png")
    with pytest.raises(ValueError):
        decode_data_uri("data:image/png;base64,@@@")
