#!/usr/bin/env python3
"""pytest configuration and shared fixtures for chacha20core tests."""

import logging
import os
import secrets

import nacl.utils
import pytest

from chacha20core import KEY_SIZE, NONCE_SIZE

# Configure logging for tests
logging.basicConfig(level=logging.INFO)


# RFC 8439 section 2.3.2 / 2.4.2 key: 00 01 02 ... 1f
RFC_KEY = bytes(range(32))


@pytest.fixture
def key():
    """Generate a random 32-byte key."""
    return secrets.token_bytes(KEY_SIZE)


@pytest.fixture
def nonce():
    """Generate a random 12-byte nonce."""
    return secrets.token_bytes(NONCE_SIZE)


@pytest.fixture
def rfc_key():
    return RFC_KEY


@pytest.fixture
def random_data():
    """Generate random test data spanning several blocks (300 bytes)."""
    return nacl.utils.random(300)


@pytest.fixture
def isolated_env(tmp_path, monkeypatch):
    """Run in an empty directory with no CHACHA20_* environment variables."""
    for name in list(os.environ):
        if name.startswith('CHACHA20_'):
            monkeypatch.delenv(name)
    monkeypatch.chdir(tmp_path)
    return tmp_path
