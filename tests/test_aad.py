import pytest
from hypothesis import assume, given
from hypothesis import strategies as st

from envelope.aad import Aad, ContextFlags, aad_for_envelope, build_aad
from envelope.codec import Envelope
from envelope.errors import FramingError

aads = st.builds(
    Aad,
    ver=st.integers(min_value=0, max_value=255),
    tenant_id=st.binary(max_size=12),
    policy_id=st.binary(max_size=12),
    path=st.binary(max_size=12),
    ts_epoch_ms=st.integers(min_value=0, max_value=2**64 - 1),
    required_algs=st.binary(max_size=12),
    hybrid=st.booleans(),
    device_attest_hash=st.none() | st.binary(max_size=12),
)


def test_known_layout():
    aad = build_aad(1, b"t1", b"p1", b"/a", 1000, b"X", True)
    assert aad.to_bytes().hex() == (
        "01"
        "00000002" "7431"
        "00000002" "7031"
        "00000002" "2f61"
        "00000000000003e8"
        "00000001" "58"
        "01"
        "00"
    )


@given(aads)
def test_from_bytes_inverts_to_bytes(aad):
    assert Aad.from_bytes(aad.to_bytes()) == aad


@given(aads, aads)
def test_distinct_contexts_encode_differently(a, b):
    assume(a != b)
    assert a.to_bytes() != b.to_bytes()


@pytest.mark.parametrize("first, second", [
    ((b"ab", b"c", b"/x"), (b"a", b"bc", b"/x")),
    ((b"t", b"p/", b"x"), (b"t", b"p", b"/x")),
    ((b"", b"tp", b"/x"), (b"tp", b"", b"/x")),
])
def test_field_boundary_shifts_are_distinguished(first, second):
    a = build_aad(1, *first, 0, b"algs", True)
    b = build_aad(1, *second, 0, b"algs", True)
    assert a.to_bytes() != b.to_bytes()


def test_absent_and_empty_attestation_differ():
    absent = build_aad(1, b"t", b"p", b"/", 0, b"a", True, None)
    empty = build_aad(1, b"t", b"p", b"/", 0, b"a", True, b"")
    assert absent.to_bytes() != empty.to_bytes()
    assert Aad.from_bytes(empty.to_bytes()).device_attest_hash == b""
    assert Aad.from_bytes(absent.to_bytes()).device_attest_hash is None


def test_hybrid_flag_is_bound():
    on = build_aad(1, b"t", b"p", b"/", 0, b"a", True)
    off = build_aad(1, b"t", b"p", b"/", 0, b"a", False)
    assert on.to_bytes() != off.to_bytes()


def _raw(hybrid_tag: int, attest_tag: int, tail: bytes = b"") -> bytes:
    valid = build_aad(1, b"t", b"p", b"/", 0, b"a", True).to_bytes()
    return valid[:-2] + bytes([hybrid_tag, attest_tag]) + tail


def test_from_bytes_rejects_bad_tags_and_trailing_bytes():
    assert Aad.from_bytes(_raw(1, 0)).hybrid is True
    with pytest.raises(FramingError):
        Aad.from_bytes(_raw(2, 0))
    with pytest.raises(FramingError):
        Aad.from_bytes(_raw(1, 7))
    with pytest.raises(FramingError):
        Aad.from_bytes(_raw(1, 0, b"\x00"))
    with pytest.raises(FramingError):
        Aad.from_bytes(_raw(1, 1))  # present but no length follows


def test_aad_for_envelope_takes_context_from_envelope_and_flags():
    envelope = Envelope(
        tenant_id=b"t1", policy_id=b"p1", path=b"/a", ts_epoch_ms=1000, nonce=b"\x00" * 12,
    )
    flags = ContextFlags(required_algs=b"algs", hybrid=False, device_attest_hash=b"\x99" * 32)
    aad = aad_for_envelope(envelope, flags)
    assert (aad.ver, aad.tenant_id, aad.policy_id, aad.path, aad.ts_epoch_ms) == (1, b"t1", b"p1", b"/a", 1000)
    assert (aad.required_algs, aad.hybrid, aad.device_attest_hash) == (b"algs", False, b"\x99" * 32)
