import pytest
from pydantic import BaseModel, ValidationError

from workplace.schemas.common import ConcurrencyKey
from workplace.utils.concurrency import TOKEN_BYTES, check_token, decode_token, encode_token, new_concurrency_key


class _Payload(BaseModel):
    concurrency_key: ConcurrencyKey


def test_tokens_are_random_and_fixed_size():
    first, second = new_concurrency_key(), new_concurrency_key()
    assert len(first) == TOKEN_BYTES
    assert first != second


def test_check_token_is_byte_exact():
    token = new_concurrency_key()
    assert check_token(token, bytes(token))
    assert not check_token(token, new_concurrency_key())
    assert not check_token(token, None)
    assert not check_token(None, token)


def test_wire_encoding():
    token = new_concurrency_key()
    assert decode_token(encode_token(token)) == token
    with pytest.raises(ValueError):
        decode_token("not base64!")
    with pytest.raises(ValueError):
        decode_token(encode_token(b"short"))


def test_schema_accepts_base64_and_serializes_back():
    token = new_concurrency_key()
    payload = _Payload(concurrency_key=encode_token(token))
    assert payload.concurrency_key == token
    assert payload.model_dump(mode="json") == {"concurrency_key": encode_token(token)}


def test_schema_rejects_malformed_keys():
    with pytest.raises(ValidationError):
        _Payload(concurrency_key="AAAA")
    with pytest.raises(ValidationError):
        _Payload(concurrency_key=123)
