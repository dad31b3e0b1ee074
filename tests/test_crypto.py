#!/usr/bin/env python3
"""Tests for the ChaCha20 building blocks: quarter round, state, block function.

Expected values are the RFC 8439 section 2 test vectors.
"""

import struct

import pytest

from chacha20core import (
    CONSTANTS,
    InvalidCounter,
    InvalidKeyLength,
    InvalidNonceLength,
    build_state,
    chacha20_block,
    chacha20_block_words,
    double_round,
    quarter_round,
    rotl32,
    serialize,
)

RFC_BLOCK_NONCE = bytes.fromhex('000000090000004a00000000')

RFC_BLOCK_INITIAL_STATE = [
    0x61707865, 0x3320646e, 0x79622d32, 0x6b206574,
    0x03020100, 0x07060504, 0x0b0a0908, 0x0f0e0d0c,
    0x13121110, 0x17161514, 0x1b1a1918, 0x1f1e1d1c,
    0x00000001, 0x09000000, 0x4a000000, 0x00000000,
]

RFC_BLOCK_FINAL_STATE = [
    0xe4e7f110, 0x15593bd1, 0x1fdd0f50, 0xc47120a3,
    0xc7f4d1c7, 0x0368c033, 0x9aaa2204, 0x4e6cd4c3,
    0x466482d2, 0x09aa9f07, 0x05d7c214, 0xa2028bd9,
    0xd19c12b5, 0xb94e16de, 0xe883d0cb, 0x4e3c50a2,
]

RFC_BLOCK_KEYSTREAM = bytes.fromhex(
    '10f1e7e4d13b5915500fdd1fa32071c4'
    'c7d1f4c733c068030422aa9ac3d46c4e'
    'd2826446079faa0914c2d705d98b02a2'
    'b5129cd1de164eb9cbd083e8a2503c4e'
)


class TestRotate:
    """Test 32-bit left rotation."""

    def test_rotate_moves_high_bits_to_low(self):
        assert rotl32(0x80000000, 1) == 0x00000001
        assert rotl32(0x12345678, 8) == 0x34567812

    def test_rotate_stays_within_32_bits(self):
        for c in (7, 8, 12, 16):
            assert rotl32(0xffffffff, c) == 0xffffffff


class TestQuarterRound:
    """Test the quarter round against RFC 8439 sections 2.1.1 and 2.2.1."""

    def test_rfc_2_1_1_vector(self):
        state = [0x11111111, 0x01020304, 0x9b8d6f43, 0x01234567]
        quarter_round(state, 0, 1, 2, 3)

        assert state == [0xea2a92f4, 0xcb1cf8ce, 0x4581472e, 0x5881c4bb]

    def test_rfc_2_2_1_vector_on_state(self):
        """Quarter round on indices (2, 7, 8, 13) only touches those words."""
        state = [
            0x879531e0, 0xc5ecf37d, 0x516461b1, 0xc9a62f8a,
            0x44c20ef3, 0x3390af7f, 0xd9fc690b, 0x2a5f714c,
            0x53372767, 0xb00a5631, 0x974c541a, 0x359e9963,
            0x5c971061, 0x3d631689, 0x2098d9d6, 0x91dbd320,
        ]
        quarter_round(state, 2, 7, 8, 13)

        assert state == [
            0x879531e0, 0xc5ecf37d, 0xbdb886dc, 0xc9a62f8a,
            0x44c20ef3, 0x3390af7f, 0xd9fc690b, 0xcfacafd2,
            0xe46bea80, 0xb00a5631, 0x974c541a, 0x359e9963,
            0x5c971061, 0xccc07c79, 0x2098d9d6, 0x91dbd320,
        ]

    def test_additions_wrap_silently(self):
        state = [0xffffffff, 0xffffffff, 0xffffffff, 0xffffffff]
        quarter_round(state, 0, 1, 2, 3)

        assert all(0 <= word <= 0xffffffff for word in state)

    def test_double_round_changes_every_word(self):
        state = list(RFC_BLOCK_INITIAL_STATE)
        double_round(state)

        assert all(a != b for a, b in zip(state, RFC_BLOCK_INITIAL_STATE))


class TestBuildState:
    """Test initial state layout."""

    def test_rfc_2_3_2_initial_state(self, rfc_key):
        state = build_state(rfc_key, 1, RFC_BLOCK_NONCE)

        assert state == RFC_BLOCK_INITIAL_STATE

    def test_constants_lead_the_state(self, key, nonce):
        state = build_state(key, 0, nonce)

        assert tuple(state[:4]) == CONSTANTS
        assert len(state) == 16

    def test_counter_is_word_12(self, key, nonce):
        state = build_state(key, 0xdeadbeef, nonce)

        assert state[12] == 0xdeadbeef

    def test_key_and_nonce_words_are_little_endian(self):
        key = bytes([1, 0, 0, 0]) + bytes(28)
        nonce = bytes(8) + bytes([0, 0, 0, 0x80])
        state = build_state(key, 0, nonce)

        assert state[4] == 1
        assert state[15] == 0x80000000

    @pytest.mark.parametrize('length', [0, 16, 31, 33, 64])
    def test_invalid_key_length_raises(self, nonce, length):
        with pytest.raises(InvalidKeyLength, match='Key must be 32 bytes'):
            build_state(bytes(length), 0, nonce)

    @pytest.mark.parametrize('length', [0, 8, 11, 13, 24])
    def test_invalid_nonce_length_raises(self, key, length):
        with pytest.raises(InvalidNonceLength, match='Nonce must be 12 bytes'):
            build_state(key, 0, bytes(length))

    @pytest.mark.parametrize('counter', [-1, 0x100000000, 1.5, '1', True])
    def test_counter_out_of_range_raises(self, key, nonce, counter):
        with pytest.raises(InvalidCounter, match='32-bit unsigned integer'):
            build_state(key, counter, nonce)

    def test_validation_errors_are_value_errors(self, nonce):
        """Callers catching ValueError also catch input errors."""
        with pytest.raises(ValueError):
            build_state(b'short', 0, nonce)


class TestBlockFunction:
    """Test the block function against RFC 8439 section 2.3.2."""

    def test_rfc_2_3_2_final_state(self, rfc_key):
        state = chacha20_block_words(rfc_key, 1, RFC_BLOCK_NONCE)

        assert state == RFC_BLOCK_FINAL_STATE

    def test_rfc_2_3_2_keystream(self, rfc_key):
        block = chacha20_block(rfc_key, 1, RFC_BLOCK_NONCE)

        assert block.hex() == RFC_BLOCK_KEYSTREAM.hex()

    def test_block_is_64_bytes(self, key, nonce):
        assert len(chacha20_block(key, 0, nonce)) == 64

    def test_different_counters_produce_different_blocks(self, key, nonce):
        assert chacha20_block(key, 0, nonce) != chacha20_block(key, 1, nonce)

    def test_inputs_are_not_mutated(self):
        key = bytearray(range(32))
        nonce = bytearray(12)
        chacha20_block(key, 1, nonce)

        assert key == bytearray(range(32))
        assert nonce == bytearray(12)


class TestSerialize:
    """Test little-endian serialization of the state."""

    def test_rfc_final_state_serializes_to_keystream(self):
        assert serialize(RFC_BLOCK_FINAL_STATE) == RFC_BLOCK_KEYSTREAM

    def test_least_significant_byte_first(self):
        state = [0x04030201] + [0] * 15
        block = serialize(state)

        assert block[:4] == b'\x01\x02\x03\x04'
        assert len(block) == 64

    def test_serialize_matches_word_unpacking(self, key, nonce):
        block = chacha20_block(key, 5, nonce)

        assert list(struct.unpack('<16I', block)) == chacha20_block_words(key, 5, nonce)

    def test_wrong_word_count_raises(self):
        with pytest.raises(ValueError, match='State must be 16 words'):
            serialize([0] * 15)
