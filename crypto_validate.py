#!/usr/bin/env python3
"""
ChaCha20 Validation

Checks the chacha20core implementation against the RFC 8439 test vectors
and against the ChaCha20 implementation in the cryptography library.

References:
- RFC 8439: ChaCha20 and Poly1305 for IETF Protocols, section 2
"""

import secrets
import sys

from chacha20core import (
    DEMO_CIPHERTEXT,
    DEMO_COUNTER,
    DEMO_KEY,
    DEMO_NONCE,
    DEMO_PLAINTEXT,
    chacha20_block,
    chacha20_decrypt,
    chacha20_encrypt,
    quarter_round,
)


# ============================================================================
# RFC 8439 Test Vectors
# ============================================================================

# Section 2.1.1
QUARTER_ROUND_INPUT = [0x11111111, 0x01020304, 0x9b8d6f43, 0x01234567]
QUARTER_ROUND_OUTPUT = [0xea2a92f4, 0xcb1cf8ce, 0x4581472e, 0x5881c4bb]

# Section 2.3.2
BLOCK_KEY = bytes(range(32))
BLOCK_NONCE = bytes.fromhex('000000090000004a00000000')
BLOCK_COUNTER = 1
BLOCK_OUTPUT = bytes.fromhex(
    '10f1e7e4d13b5915500fdd1fa32071c4'
    'c7d1f4c733c068030422aa9ac3d46c4e'
    'd2826446079faa0914c2d705d98b02a2'
    'b5129cd1de164eb9cbd083e8a2503c4e'
)


def report(passed, message, expected=None, got=None):
    if passed:
        print(f"  PASS - {message}")
    else:
        print(f"  FAIL - {message}")
        if expected is not None:
            print(f"     Expected: {expected}")
            print(f"     Got:      {got}")
    return passed


# ============================================================================
# Validation Against RFC 8439
# ============================================================================

def validate_rfc_vectors():
    """Validate ChaCha20 against RFC 8439 section 2 test vectors."""
    print("=" * 70)
    print("ChaCha20 Validation (RFC 8439 Test Vectors)")
    print("=" * 70)

    all_passed = True

    print("\nTest 1: RFC 8439 Section 2.1.1 - quarter round")
    state = list(QUARTER_ROUND_INPUT)
    quarter_round(state, 0, 1, 2, 3)
    all_passed &= report(
        state == QUARTER_ROUND_OUTPUT,
        "Quarter round matches",
        [hex(w) for w in QUARTER_ROUND_OUTPUT],
        [hex(w) for w in state],
    )

    print("\nTest 2: RFC 8439 Section 2.3.2 - block function")
    block = chacha20_block(BLOCK_KEY, BLOCK_COUNTER, BLOCK_NONCE)
    all_passed &= report(
        block == BLOCK_OUTPUT,
        "Keystream block matches",
        BLOCK_OUTPUT.hex(),
        block.hex(),
    )

    print("\nTest 3: RFC 8439 Section 2.4.2 - encryption")
    ciphertext = chacha20_encrypt(DEMO_KEY, DEMO_NONCE, DEMO_PLAINTEXT, DEMO_COUNTER)
    all_passed &= report(
        ciphertext == DEMO_CIPHERTEXT,
        "Ciphertext matches",
        DEMO_CIPHERTEXT.hex(),
        ciphertext.hex(),
    )

    print("\nTest 4: Encryption/Decryption Round-Trip")
    key = b'A' * 32
    nonce = b'B' * 12
    plaintext = b'The quick brown fox jumps over the lazy dog' * 5
    decrypted = chacha20_decrypt(key, nonce, chacha20_encrypt(key, nonce, plaintext, 7), 7)
    all_passed &= report(decrypted == plaintext, "Round-trip successful")

    return all_passed


# ============================================================================
# Validation Against cryptography Library
# ============================================================================

def reference_encrypt(key, nonce, data, counter):
    """Encrypt with the cryptography library's ChaCha20."""
    from cryptography.hazmat.primitives.ciphers import Cipher, algorithms

    # cryptography takes a 16-byte nonce: 32-bit LE counter + 96-bit nonce
    full_nonce = counter.to_bytes(4, 'little') + nonce
    encryptor = Cipher(algorithms.ChaCha20(key, full_nonce), mode=None).encryptor()
    return encryptor.update(data) + encryptor.finalize()


def validate_against_library():
    """Validate ChaCha20 against the cryptography library."""
    print("\n" + "=" * 70)
    print("ChaCha20 Validation (cryptography library)")
    print("=" * 70)

    try:
        import cryptography  # noqa: F401
    except ImportError:
        print("cryptography library not installed. Skipping validation.")
        return False

    test_cases = [
        {'name': 'Empty message', 'length': 0, 'counter': 0},
        {'name': 'Short message', 'length': 5, 'counter': 1},
        {'name': 'Exact 64-byte block', 'length': 64, 'counter': 0},
        {'name': 'Partial final block', 'length': 200, 'counter': 42},
        {'name': 'Many blocks', 'length': 4096, 'counter': 1},
    ]

    all_passed = True

    for i, test in enumerate(test_cases, 1):
        print(f"\nTest {i}: {test['name']}")

        key = secrets.token_bytes(32)
        nonce = secrets.token_bytes(12)
        data = secrets.token_bytes(test['length'])

        ours = chacha20_encrypt(key, nonce, data, test['counter'])
        theirs = reference_encrypt(key, nonce, data, test['counter'])

        all_passed &= report(
            ours == theirs,
            f"Outputs match ({len(ours)} bytes)",
            theirs.hex(),
            ours.hex(),
        )

    return all_passed


# ============================================================================
# Main Validation
# ============================================================================

def main():
    """Run all validation tests."""
    print("\n" + "=" * 70)
    print("ChaCha20 Implementation Validation")
    print("=" * 70)
    print()

    results = []

    results.append(('RFC 8439 vectors', validate_rfc_vectors()))
    results.append(('cryptography', validate_against_library()))

    print("\n" + "=" * 70)
    print("Validation Summary")
    print("=" * 70)

    all_passed = True
    for name, passed in results:
        status = "PASS" if passed else "FAIL"
        print(f"{name:20s} {status}")
        if not passed:
            all_passed = False

    print()

    if all_passed:
        print("All validations passed!")
        return 0
    else:
        print("Some validations failed. Review output above.")
        return 1


if __name__ == '__main__':
    sys.exit(main())
