from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from eth_account import Account
from eth_account.messages import encode_typed_data

from masspay.errors import AuthorizationFailed
from masspay.permit import (
    PERMIT_DEADLINE_SECONDS,
    PermitAuthorizer,
    build_permit_typed_data,
    default_domain_version,
    split_signature,
)
from masspay.session import LocalWalletSession
from conftest import OWNER_KEY, SMART_ACCOUNT, TOKEN


def _web3h(name="Stable Coin", version=None, nonce=7):
    return SimpleNamespace(
        token_meta=MagicMock(return_value={"name": name, "version": version, "decimals": 18}),
        permit_nonce=MagicMock(return_value=nonce),
    )


def _authorizer(chain_config, web3h=None, now=1_700_000_000):
    session = LocalWalletSession(OWNER_KEY)
    return PermitAuthorizer(session, web3h or _web3h(), chain_config, clock=lambda: now), session


def test_signature_recovers_to_owner(chain_config):
    authorizer, session = _authorizer(chain_config)
    auth = authorizer.authorize(session.address, SMART_ACCOUNT, 123_000)

    typed = build_permit_typed_data(
        "Stable Coin", "1", 8453, TOKEN, session.address, SMART_ACCOUNT, 123_000, 7, auth.deadline,
    )
    sig = auth.signature
    raw = sig.r_bytes + sig.s_bytes + bytes([sig.v])
    assert Account.recover_message(encode_typed_data(full_message=typed), signature=raw) == session.address
    assert auth.value == 123_000
    assert auth.nonce == 7
    assert auth.spender == SMART_ACCOUNT


def test_deadline_is_thirty_minutes_from_now(chain_config):
    authorizer, session = _authorizer(chain_config, now=1_000_000)
    auth = authorizer.authorize(session.address, SMART_ACCOUNT, 1)
    assert PERMIT_DEADLINE_SECONDS == 1800
    assert auth.deadline == 1_001_800


def test_deadline_window_is_configurable(chain_config):
    session = LocalWalletSession(OWNER_KEY)
    authorizer = PermitAuthorizer(session, _web3h(), chain_config, clock=lambda: 100, deadline_seconds=60)
    assert authorizer.authorize(session.address, SMART_ACCOUNT, 1).deadline == 160


def test_explicit_deadline_kept(chain_config):
    authorizer, session = _authorizer(chain_config)
    assert authorizer.authorize(session.address, SMART_ACCOUNT, 1, deadline=42).deadline == 42


def test_onchain_version_used_when_present(chain_config):
    web3h = _web3h(name="USD Coin", version="9")
    authorizer, session = _authorizer(chain_config, web3h)
    auth = authorizer.authorize(session.address, SMART_ACCOUNT, 5)

    typed = build_permit_typed_data("USD Coin", "9", 8453, TOKEN, session.address, SMART_ACCOUNT, 5, 7, auth.deadline)
    sig = auth.signature
    raw = sig.r_bytes + sig.s_bytes + bytes([sig.v])
    assert Account.recover_message(encode_typed_data(full_message=typed), signature=raw) == session.address


def test_default_domain_version():
    assert default_domain_version("USD Coin") == "2"
    assert default_domain_version("Stable Coin") == "1"


def test_owner_must_match_session(chain_config):
    authorizer, _ = _authorizer(chain_config)
    with pytest.raises(AuthorizationFailed):
        authorizer.authorize(SMART_ACCOUNT, SMART_ACCOUNT, 1)


def test_zero_value_rejected(chain_config):
    authorizer, session = _authorizer(chain_config)
    with pytest.raises(AuthorizationFailed):
        authorizer.authorize(session.address, SMART_ACCOUNT, 0)


def test_rpc_failure_becomes_authorization_failed(chain_config):
    web3h = _web3h()
    web3h.permit_nonce.side_effect = ConnectionError("rpc down")
    authorizer, session = _authorizer(chain_config, web3h)
    with pytest.raises(AuthorizationFailed, match="rpc down"):
        authorizer.authorize(session.address, SMART_ACCOUNT, 1)


def test_signing_rejected_becomes_authorization_failed(chain_config):
    session = MagicMock()
    session.address = SMART_ACCOUNT
    session.sign_typed_data.side_effect = RuntimeError("user rejected")
    authorizer = PermitAuthorizer(session, _web3h(), chain_config)
    with pytest.raises(AuthorizationFailed):
        authorizer.authorize(SMART_ACCOUNT, SMART_ACCOUNT, 1)


def test_split_signature_normalizes_v():
    raw = b"\x01" * 32 + b"\x02" * 32 + b"\x01"
    sig = split_signature(raw)
    assert sig.v == 28
    assert sig.r == "0x" + "01" * 32
    assert sig.s == "0x" + "02" * 32
    with pytest.raises(ValueError):
        split_signature(b"\x00" * 64)
