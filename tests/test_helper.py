from unittest.mock import MagicMock

import pytest

from utils.helper import FileHelper, Web3Helper, explorer_tx_url
from conftest import DummyChainConfig, TOKEN


@pytest.fixture
def helper(monkeypatch):
    monkeypatch.delenv("EXTRA_RPC_URLS", raising=False)
    return Web3Helper(DummyChainConfig())


def test_rpc_urls_include_extras(monkeypatch):
    monkeypatch.setenv("EXTRA_RPC_URLS", "http://b, http://localhost:8545,http://c")
    h = Web3Helper(DummyChainConfig())
    assert h.rpc_urls == ["http://localhost:8545", "http://b", "http://c"]


def test_no_rpc_urls_is_an_error(monkeypatch):
    monkeypatch.delenv("EXTRA_RPC_URLS", raising=False)
    with pytest.raises(RuntimeError):
        Web3Helper(DummyChainConfig(RPC_URL=None))


def test_load_privatekeys_from_file(helper, tmp_path):
    wallet_path = tmp_path / "wallet.txt"
    valid_key = "1" * 64
    valid_prefixed = "0x" + "2" * 64
    wallet_path.write_text("\n".join(["# owner", valid_key, valid_prefixed, "xyz", valid_key]))

    keys, addrs = helper.load_privatekeys_file(str(wallet_path))

    assert keys == ["0x" + "1" * 64, "0x" + "2" * 64]
    assert len(addrs) == 2 and all(a.startswith("0x") for a in addrs)
    assert helper.pk_addresses == addrs


def test_missing_key_file_returns_empty(helper, tmp_path):
    assert helper.load_privatekeys_file(str(tmp_path / "missing.txt")) == ([], [])


def test_token_meta_falls_back_when_version_missing(helper):
    token = MagicMock()
    token.functions.name.return_value.call.return_value = "Stable Coin"
    token.functions.version.return_value.call.side_effect = ValueError("no version()")
    token.functions.decimals.return_value.call.return_value = 18
    helper._erc20 = MagicMock(return_value=token)

    meta = helper.token_meta(TOKEN)
    assert meta == {"name": "Stable Coin", "version": None, "decimals": 18}
    helper.token_meta(TOKEN)
    assert helper._erc20.call_count == 1


def test_permit_nonce_falls_back_to_global_nonces(helper):
    token = MagicMock()
    token.functions.nonces.return_value.call.side_effect = ValueError("no nonces(address)")
    legacy = MagicMock()
    legacy.functions.nonces.return_value.call.return_value = 4
    helper._erc20 = MagicMock(return_value=token)
    helper.contract = MagicMock(return_value=legacy)

    assert helper.permit_nonce(TOKEN, TOKEN) == 4


def test_base_fee_and_deployment(helper):
    helper.w3 = MagicMock()
    helper.w3.eth.get_block.return_value = {"baseFeePerGas": 1_234}
    helper.w3.eth.get_code.side_effect = [b"", b"\x60\x80"]

    assert helper.base_fee() == 1_234
    assert helper.is_deployed(TOKEN) is False
    assert helper.is_deployed(TOKEN) is True


def test_balance_read_failure_returns_none(helper):
    token = MagicMock()
    token.functions.balanceOf.return_value.call.side_effect = ConnectionError("down")
    helper._erc20 = MagicMock(return_value=token)
    assert helper.check_token_balance(TOKEN, TOKEN) is None


def test_explorer_tx_url():
    assert explorer_tx_url(DummyChainConfig(EXPLORER_URL="https://basescan.org/"), "0xabc") == \
        "https://basescan.org/tx/0xabc"


def test_file_helper_placeholder(tmp_path):
    path = tmp_path / "res" / "recipients.csv"
    assert FileHelper.ensure_placeholder(str(path), "recipients") is True
    assert path.read_text().startswith("address,amount")

    path.write_text("keep me")
    assert FileHelper.ensure_placeholder(str(path), "recipients") is False
    assert path.read_text() == "keep me"
