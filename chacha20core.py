#!/usr/bin/env python3
"""
chacha20core - ChaCha20 stream cipher (RFC 8439, section 2)

Pure Python implementation of the ChaCha20 quarter round, block function
and stream construction. Encryption and decryption are the same operation.

Key: 32 bytes
Nonce: 12 bytes
Counter: 32-bit block counter, incremented once per 64-byte block

This module provides no authentication. A (key, nonce) pair must never be
used for two different messages.
"""

import configparser
import logging
import logging.handlers
import optparse
import os
import secrets
import struct
import sys
import traceback


# ============================================================================
# Constants
# ============================================================================

# "expand 32-byte k"
CONSTANTS = (0x61707865, 0x3320646e, 0x79622d32, 0x6b206574)

KEY_SIZE = 32
NONCE_SIZE = 12
BLOCK_SIZE = 64
STATE_WORDS = 16
MAX_COUNTER = 0xffffffff
DOUBLE_ROUNDS = 10

COLUMN_ROUNDS = (
    (0, 4, 8, 12),
    (1, 5, 9, 13),
    (2, 6, 10, 14),
    (3, 7, 11, 15),
)
DIAGONAL_ROUNDS = (
    (0, 5, 10, 15),
    (1, 6, 11, 12),
    (2, 7, 8, 13),
    (3, 4, 9, 14),
)


logger = logging.getLogger(__name__)


# ============================================================================
# Exceptions
# ============================================================================

class ChaChaError(ValueError):
    """Base class for ChaCha20 input errors."""


class InvalidKeyLength(ChaChaError):
    pass


class InvalidNonceLength(ChaChaError):
    pass


class InvalidCounter(ChaChaError):
    pass


class CounterExhausted(ChaChaError):
    """The 32-bit block counter would wrap within a single call."""


# ============================================================================
# Input Validation
# ============================================================================

def validate_key(key):
    if len(key) != KEY_SIZE:
        raise InvalidKeyLength(f'Key must be {KEY_SIZE} bytes, got {len(key)}')


def validate_nonce(nonce):
    if len(nonce) != NONCE_SIZE:
        raise InvalidNonceLength(f'Nonce must be {NONCE_SIZE} bytes, got {len(nonce)}')


def validate_counter(counter):
    if isinstance(counter, bool) or not isinstance(counter, int) or not 0 <= counter <= MAX_COUNTER:
        raise InvalidCounter(f'Counter must be a 32-bit unsigned integer, got {counter!r}')


def blocks_needed(length):
    """Number of 64-byte blocks covering `length` bytes."""
    return (length + BLOCK_SIZE - 1) // BLOCK_SIZE


def check_counter_range(counter, length):
    """Fail if processing `length` bytes from `counter` would wrap the counter."""
    validate_counter(counter)
    blocks = blocks_needed(length)
    if blocks and counter + blocks - 1 > MAX_COUNTER:
        raise CounterExhausted(
            f'Block counter exhausted: {blocks} blocks from counter {counter} '
            f'exceed {MAX_COUNTER}'
        )


# ============================================================================
# ChaCha20 Core (RFC 8439)
# ============================================================================

def rotl32(v, c):
    """Rotate left: 32-bit value v by c bits."""
    return ((v << c) & 0xffffffff) | (v >> (32 - c))


def quarter_round(state, a, b, c, d):
    """ChaCha20 quarter round on indices a, b, c, d."""
    state[a] = (state[a] + state[b]) & 0xffffffff
    state[d] ^= state[a]
    state[d] = rotl32(state[d], 16)

    state[c] = (state[c] + state[d]) & 0xffffffff
    state[b] ^= state[c]
    state[b] = rotl32(state[b], 12)

    state[a] = (state[a] + state[b]) & 0xffffffff
    state[d] ^= state[a]
    state[d] = rotl32(state[d], 8)

    state[c] = (state[c] + state[d]) & 0xffffffff
    state[b] ^= state[c]
    state[b] = rotl32(state[b], 7)


def double_round(state):
    """One column pass followed by one diagonal pass (8 quarter rounds)."""
    for a, b, c, d in COLUMN_ROUNDS:
        quarter_round(state, a, b, c, d)
    for a, b, c, d in DIAGONAL_ROUNDS:
        quarter_round(state, a, b, c, d)


def build_state(key, counter, nonce):
    """
    Build the 16-word initial state.

    Layout:
        0-3   constants
        4-11  key (little-endian words)
        12    block counter
        13-15 nonce (little-endian words)

    Args:
        key: 32-byte key
        counter: 32-bit block counter (int)
        nonce: 12-byte nonce

    Returns:
        list of 16 ints
    """
    validate_key(key)
    validate_nonce(nonce)
    validate_counter(counter)

    key_words = list(struct.unpack('<8I', key))
    nonce_words = list(struct.unpack('<3I', nonce))

    return list(CONSTANTS) + key_words + [counter] + nonce_words


def chacha20_block_words(key, counter, nonce):
    """Run the block function and return the 16 final state words."""
    state = build_state(key, counter, nonce)
    working_state = state[:]

    for _ in range(DOUBLE_ROUNDS):
        double_round(working_state)

    for i in range(STATE_WORDS):
        working_state[i] = (working_state[i] + state[i]) & 0xffffffff

    return working_state


def serialize(state):
    """Serialize 16 state words to a 64-byte little-endian block."""
    if len(state) != STATE_WORDS:
        raise ValueError(f'State must be {STATE_WORDS} words, got {len(state)}')
    return struct.pack('<16I', *state)


def chacha20_block(key, counter, nonce):
    """Generate a 64-byte ChaCha20 keystream block."""
    return serialize(chacha20_block_words(key, counter, nonce))


# ============================================================================
# Stream Cipher
# ============================================================================

def chacha20_encrypt(key, nonce, plaintext, counter=0):
    """
    Encrypt/decrypt with ChaCha20.

    Block i of the input is XORed with chacha20_block(key, counter + i, nonce).
    The final block may be shorter than 64 bytes; its keystream is truncated.

    Args:
        key: 32-byte key
        nonce: 12-byte nonce
        plaintext: data to encrypt (bytes, bytearray or memoryview)
        counter: starting block counter (default 0)

    Returns:
        bytes, same length as plaintext

    Raises:
        InvalidKeyLength, InvalidNonceLength, InvalidCounter, CounterExhausted
    """
    validate_key(key)
    validate_nonce(nonce)
    check_counter_range(counter, len(plaintext))

    data = memoryview(plaintext).cast('B')
    output = bytearray(len(data))
    total_blocks = blocks_needed(len(data))
    logger.debug(f'ChaCha20: {len(data)} bytes, {total_blocks} blocks from counter {counter}')

    for i in range(total_blocks):
        start = i * BLOCK_SIZE
        block = data[start:start + BLOCK_SIZE]
        keystream = chacha20_block(key, counter + i, nonce)
        output[start:start + len(block)] = bytes(p ^ k for p, k in zip(block, keystream))

    return bytes(output)


# ChaCha20 decrypt is same as encrypt (XOR is symmetric)
chacha20_decrypt = chacha20_encrypt


# ============================================================================
# Hex Adapter
# ============================================================================

def decode_hex(text, length=None, name='Key'):
    """
    Decode hex text to bytes.

    Args:
        text: hex string, optional 0x prefix, whitespace ignored
        length: expected byte length, or None for any length
        name: label used in error messages

    Returns:
        bytes
    """
    hex_str = ''.join(text.split())
    if hex_str[:2].lower() == '0x':
        hex_str = hex_str[2:]

    try:
        data = bytes.fromhex(hex_str)
    except ValueError as e:
        raise ValueError(f'Invalid hex string: {e}')

    if length is not None and len(data) != length:
        raise ValueError(f'{name} must be {length} bytes, got {len(data)}')

    return data


def encode_hex(data):
    return bytes(data).hex()


def generate_key():
    return secrets.token_bytes(KEY_SIZE)


def generate_nonce():
    return secrets.token_bytes(NONCE_SIZE)


# ============================================================================
# RFC 8439 Demonstration Vector (section 2.4.2)
# ============================================================================

DEMO_KEY = bytes(range(32))
DEMO_NONCE = bytes.fromhex('000000000000004a00000000')
DEMO_COUNTER = 1
DEMO_PLAINTEXT = (
    b"Ladies and Gentlemen of the class of '99: If I could offer you only "
    b"one tip for the future, sunscreen would be it."
)
DEMO_CIPHERTEXT = bytes.fromhex(
    '6e2e359a2568f98041ba0728dd0d6981'
    'e97e7aec1d4360c20a27afccfd9fae0b'
    'f91b65c5524733ab8f593dabcd62b357'
    '1639d624e65152ab8f530c359f0861d8'
    '07ca0dbf500d6a6156a38e088a22b65e'
    '52bc514d16ccf806818ce91ab7793736'
    '5af90bbf74a35be6b40b8eedf2785e42'
    '874d'
)


def run_demo(out=None):
    """Encrypt the RFC 8439 sunscreen vector and print the ciphertext as hex."""
    out = out or sys.stdout
    ciphertext = chacha20_encrypt(DEMO_KEY, DEMO_NONCE, DEMO_PLAINTEXT, DEMO_COUNTER)
    matched = ciphertext == DEMO_CIPHERTEXT

    print(f'key:        {encode_hex(DEMO_KEY)}', file=out)
    print(f'nonce:      {encode_hex(DEMO_NONCE)}', file=out)
    print(f'counter:    {DEMO_COUNTER}', file=out)
    print(f'ciphertext: {encode_hex(ciphertext)}', file=out)
    print('RFC 8439 2.4.2: ' + ('MATCH' if matched else 'MISMATCH'), file=out)
    return matched


# ============================================================================
# Configuration Template
# ============================================================================

DEFAULT_CONFIG_FILE = 'chacha20core.conf'

__config_skel__ = '''\
#
# !! remember to `chmod 0600` this file !!
#
# Key and nonce are hex. Never reuse a (key, nonce) pair for two messages.

[main]
# 32-byte key (64 hex chars)
key = {key}
# 12-byte nonce (24 hex chars)
nonce = {nonce}
# Initial block counter (RFC 8439 encryption starts at 1)
counter = {counter}

[logging]
# Optional rotating log file
# file = /var/log/chacha20core.log
'''


def load_config(path):
    """Read an INI config file. Returns an empty parser if the file is missing."""
    config = configparser.ConfigParser(allow_no_value=True)
    if path and os.path.exists(path):
        config.read(path)
        logger.info(f'Loaded config file: {path}')
    return config


def resolve_setting(opt_value, env_name, config, section, option, default=None):
    """
    Resolve one setting with precedence CLI > env > config file > default.

    Returns:
        tuple: (value, source) where source is 'cli', 'env', 'config' or 'default'
    """
    if opt_value is not None:
        return opt_value, 'cli'
    env_value = os.getenv(env_name)
    if env_value:
        return env_value, 'env'
    if config.has_option(section, option):
        return config.get(section, option), 'config'
    return default, 'default'


def parse_counter(value):
    try:
        counter = int(value, 0) if isinstance(value, str) else int(value)
    except ValueError:
        raise ValueError(f'Invalid counter: {value!r}')
    validate_counter(counter)
    return counter


# ============================================================================
# Logging
# ============================================================================

def setup_logging(verbose=False, logfile=None):
    """Configure logging."""
    global logger
    logger = logging.getLogger(__name__)
    logger.setLevel(logging.DEBUG)
    logger.handlers = []

    # File handler (always DEBUG)
    if logfile:
        file_handler = logging.handlers.RotatingFileHandler(
            logfile, maxBytes=10*1024*1024, backupCount=5
        )
        file_handler.setLevel(logging.DEBUG)
        file_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    # Stderr handler (only if verbose)
    if verbose:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setLevel(logging.DEBUG)
        stderr_formatter = logging.Formatter('%(levelname)s: %(message)s')
        stderr_handler.setFormatter(stderr_formatter)
        logger.addHandler(stderr_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    return logger


# ============================================================================
# Main
# ============================================================================

def option_parser():
    """Parse command-line options."""
    parser = optparse.OptionParser(
        usage='%prog [options] < input > output',
        description='Encrypt or decrypt stdin with ChaCha20 (RFC 8439). '
                    'The same command decrypts what it encrypted.'
    )

    # Config file
    parser.add_option('-c', '--config', dest='config', metavar='path',
                      help=f'Use this config file (default: {DEFAULT_CONFIG_FILE})')

    # Cipher parameters (override config/env)
    parser.add_option('--key', dest='key',
                      help='Key as 64 hex chars - overrides config/env')
    parser.add_option('--nonce', dest='nonce',
                      help='Nonce as 24 hex chars - overrides config/env')
    parser.add_option('--counter', dest='counter',
                      help='Initial block counter (default: 0) - overrides config/env')

    # Data format
    parser.add_option('--hex-input', dest='hex_input', action='store_true',
                      help='Treat stdin as hex text')
    parser.add_option('--hex-output', dest='hex_output', action='store_true',
                      help='Write output as hex text')

    # Generation
    parser.add_option('--gen-keys', dest='gen_keys', action='store_true',
                      help='Generate key and nonce and print environment variables')
    parser.add_option('--gen-conf', dest='gen_conf', action='store_true',
                      help=f'Generate config skeleton file ({DEFAULT_CONFIG_FILE})')

    # Demonstration
    parser.add_option('--demo', dest='demo', action='store_true',
                      help='Encrypt the RFC 8439 section 2.4.2 test vector and print it')

    # Logging
    parser.add_option('-v', '--verbose', dest='verbose', action='store_true',
                      help='Verbose output to stderr')
    parser.add_option('--log-file', dest='log_file', metavar='path',
                      help='Also log to this rotating log file')

    return parser


def main(argv=None, stdin=None, stdout=None):
    """Main entry point."""
    parser = option_parser()
    opts, args = parser.parse_args(argv)
    if args:
        parser.error(f'unexpected arguments: {" ".join(args)} (input is read from stdin)')

    config_file = opts.config or DEFAULT_CONFIG_FILE
    config = load_config(config_file)

    log_file = opts.log_file
    if not log_file and config.has_option('logging', 'file'):
        log_file = config.get('logging', 'file')
    setup_logging(verbose=opts.verbose, logfile=log_file)

    if opts.demo:
        return 0 if run_demo() else 1

    if opts.gen_keys:
        print('# chacha20core configuration')
        print(f'export CHACHA20_KEY={encode_hex(generate_key())}')
        print(f'export CHACHA20_NONCE={encode_hex(generate_nonce())}')
        return 0

    if opts.gen_conf:
        config_content = __config_skel__.format(
            key=encode_hex(generate_key()),
            nonce=encode_hex(generate_nonce()),
            counter=1
        )
        with open(config_file, 'w') as f:
            f.write(config_content)
        os.chmod(config_file, 0o600)

        print(f'Generated config file: {config_file}')
        return 0

    # ============================================================
    # Cipher parameters with precedence: CLI > env > config file
    # ============================================================

    key_str, key_source = resolve_setting(opts.key, 'CHACHA20_KEY', config, 'main', 'key')
    if key_str is None:
        logger.error('Missing key: must be provided via --key, CHACHA20_KEY, or config file')
        print('Error: Key not provided. Use --key, CHACHA20_KEY or --gen-conf.', file=sys.stderr)
        return 1
    if key_source == 'cli':
        logger.warning('Key provided via CLI - visible in process list!')
    else:
        logger.info(f'Using key from {key_source}')

    nonce_str, nonce_source = resolve_setting(opts.nonce, 'CHACHA20_NONCE', config, 'main', 'nonce')
    if nonce_str is None:
        logger.error('Missing nonce: must be provided via --nonce, CHACHA20_NONCE, or config file')
        print('Error: Nonce not provided. Use --nonce, CHACHA20_NONCE or --gen-conf.', file=sys.stderr)
        return 1
    logger.info(f'Using nonce from {nonce_source}')

    counter_str, counter_source = resolve_setting(opts.counter, 'CHACHA20_COUNTER', config, 'main', 'counter', '0')
    logger.info(f'Using counter from {counter_source}')

    try:
        key = decode_hex(key_str, KEY_SIZE, 'Key')
        nonce = decode_hex(nonce_str, NONCE_SIZE, 'Nonce')
        counter = parse_counter(counter_str)

        data = (stdin or sys.stdin.buffer).read()
        if opts.hex_input:
            data = decode_hex(data.decode('ascii'), name='Input')

        output = chacha20_encrypt(key, nonce, data, counter)
    except UnicodeDecodeError as e:
        logger.error(f'Hex input is not ASCII: {e}')
        print(f'Error: hex input is not ASCII: {e}', file=sys.stderr)
        return 1
    except ValueError as e:
        logger.error(f'{type(e).__name__}: {e}')
        print(f'Error: {e}', file=sys.stderr)
        return 1
    except Exception as e:
        logger.error(f'Fatal error: {type(e).__name__}: {e}')
        print(f'Error: {type(e).__name__}: {e}', file=sys.stderr)
        logger.debug(traceback.format_exc())
        return 1

    stdout = stdout or sys.stdout.buffer
    if opts.hex_output:
        stdout.write(encode_hex(output).encode('ascii') + b'\n')
    else:
        stdout.write(output)
    stdout.flush()

    logger.info(f'Processed {len(output)} bytes')
    return 0


if __name__ == '__main__':
    sys.exit(main())
