"""
Token blacklist tests — revocation, header parsing and the expiry sweep.
"""

from datetime import timedelta

import pytest

from shopadmin.core.security import create_access_token
from shopadmin.core.token_blacklist import TokenBlacklist


def _token(minutes: int) -> str:
    return create_access_token("user-1", "u@example.com", "user", timedelta(minutes=minutes))


@pytest.mark.parametrize(
    "header, expected",
    [
        ("Bearer abc.def.ghi", "abc.def.ghi"),
        ("Bearer ", None),
        ("Basic abc", None),
        ("bearer abc", None),
        ("", None),
        (None, None),
    ],
)
def test_extract_token(header, expected):
    assert TokenBlacklist.extract_token(header) == expected


def test_blacklist_and_lookup():
    registry = TokenBlacklist()
    token = _token(10)
    assert registry.is_blacklisted(token) is False

    registry.blacklist(token)
    registry.blacklist(token)
    assert registry.is_blacklisted(token) is True
    assert registry.size() == 1

    registry.clear()
    assert registry.size() == 0


def test_sweep_drops_only_expired_tokens():
    registry = TokenBlacklist()
    live = _token(10)
    expired = _token(-5)
    registry.blacklist(live)
    registry.blacklist(expired)

    removed = registry.sweep()
    assert removed == 1
    assert registry.size() == 1
    assert registry.is_blacklisted(live) is True
    assert registry.is_blacklisted(expired) is False


def test_sweep_drops_undecodable_tokens():
    registry = TokenBlacklist()
    registry.blacklist("garbage")
    assert registry.sweep() == 1
    assert registry.size() == 0
