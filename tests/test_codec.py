import logging
import struct

import pytest
from hypothesis import given
from hypothesis import strategies as st
from pydantic import ValidationError

from envelope.codec import MAX_ENVELOPE_BYTES, Envelope, decode, encode, signed_message
from envelope.errors import MalformedEnvelope

envelopes = st.builds(
    Envelope,
    tenant_id=st.binary(max_size=16),
    policy_id=st.binary(max_size=16),
    path=st.binary(max_size=16),
    ts_epoch_ms=st.integers(min_value=0, max_value=2**64 - 1),
    nonce=st.binary(min_size=12, max_size=12),
    kem_ciphertext=st.binary(max_size=64),
    signature=st.binary(max_size=64),
    ciphertext=st.binary(max_size=64),
)


def sample_envelope(**overrides) -> Envelope:
    fields = dict(
        tenant_id=b"t1",
        policy_id=b"p1",
        path=b"/a",
        ts_epoch_ms=1000,
        nonce=bytes(range(12)),
        kem_ciphertext=b"K" * 8,
        signature=b"S" * 8,
        ciphertext=b"C" * 20,
    )
    fields.update(overrides)
    return Envelope(**fields)


def lp(value: bytes) -> bytes:
    return struct.pack(">I", len(value)) + value


def test_known_frame_layout():
    frame = encode(sample_envelope(kem_ciphertext=b"k", signature=b"s", ciphertext=b"c"))
    expected = (
        b"\x01" + lp(b"t1") + lp(b"p1") + lp(b"/a")
        + struct.pack(">Q", 1000) + bytes(range(12))
        + lp(b"k") + lp(b"s") + lp(b"c")
    )
    assert frame == expected
    assert len(frame) == sample_envelope(kem_ciphertext=b"k", signature=b"s", ciphertext=b"c").encoded_size()


@given(envelopes)
def test_decode_inverts_encode(envelope):
    assert decode(encode(envelope)) == envelope


@given(st.binary(max_size=256))
def test_decode_is_total(data):
    try:
        envelope = decode(data)
    except MalformedEnvelope:
        return
    assert encode(envelope) == data


def test_every_truncation_is_rejected():
    frame = encode(sample_envelope())
    for cut in range(len(frame)):
        with pytest.raises(MalformedEnvelope):
            decode(frame[:cut])


def test_trailing_bytes_are_rejected():
    with pytest.raises(MalformedEnvelope):
        decode(encode(sample_envelope()) + b"\x00")


@pytest.mark.parametrize("version", [0, 2, 255])
def test_unknown_version_is_rejected(version):
    frame = encode(sample_envelope())
    with pytest.raises(MalformedEnvelope):
        decode(bytes([version]) + frame[1:])


def test_oversized_length_prefix_is_rejected():
    frame = b"\x01" + struct.pack(">I", 0xFFFFFFFF) + b"t1"
    with pytest.raises(MalformedEnvelope):
        decode(frame)


def test_size_limit():
    frame = encode(sample_envelope())
    assert decode(frame, max_size=len(frame)) == sample_envelope()
    with pytest.raises(MalformedEnvelope):
        decode(frame, max_size=len(frame) - 1)
    with pytest.raises(MalformedEnvelope):
        decode(b"\x01" * (MAX_ENVELOPE_BYTES + 1), max_size=MAX_ENVELOPE_BYTES * 2)


def test_non_bytes_input_is_rejected():
    with pytest.raises(MalformedEnvelope):
        decode("not bytes")


def test_envelope_validation():
    with pytest.raises(ValidationError):
        sample_envelope(nonce=b"\x00" * 11)
    with pytest.raises(ValidationError):
        sample_envelope(version=2)
    with pytest.raises(ValidationError):
        sample_envelope(ts_epoch_ms=-1)
    with pytest.raises(ValidationError):
        sample_envelope(ciphertext=b"\x00" * MAX_ENVELOPE_BYTES)


def test_signed_message_covers_everything_but_the_signature():
    aad = b"aad-bytes"
    base = sample_envelope()
    message = signed_message(base, aad)

    assert signed_message(base.with_signature(b"other"), aad) == message
    assert signed_message(base, aad + b"x") != message
    for field, value in [
        ("nonce", b"\xff" * 12),
        ("kem_ciphertext", b"K" * 9),
        ("ciphertext", b"C" * 19 + b"D"),
    ]:
        assert signed_message(sample_envelope(**{field: value}), aad) != message


def test_signed_message_separates_kem_and_payload_ciphertexts():
    a = sample_envelope(kem_ciphertext=b"ab", ciphertext=b"c")
    b = sample_envelope(kem_ciphertext=b"a", ciphertext=b"bc")
    assert signed_message(a, b"aad") != signed_message(b, b"aad")


def test_rejected_frames_are_logged_at_debug(caplog):
    with caplog.at_level(logging.DEBUG, logger="envelope.codec"):
        with pytest.raises(MalformedEnvelope):
            decode(encode(sample_envelope())[:-1])
    assert "Rejected" in caplog.text
