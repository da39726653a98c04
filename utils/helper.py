import os
import json
import logging
import re
from typing import Dict, List, Optional
from web3 import Web3
from eth_account import Account

from .rpc_provider import RotatingHTTPProvider


logger = logging.getLogger(__name__)

_PRIV_RE = re.compile(r"^(?:0x)?([0-9a-fA-F]{64})$")


def _mask(tok: str) -> str:
    return f"{tok[:6]}...{tok[-4:]}" if len(tok) > 12 else "****"


def explorer_tx_url(chain_config, tx_hash: str) -> str:
    base = str(getattr(chain_config, "EXPLORER_URL", "")).rstrip("/")
    return f"{base}/tx/{tx_hash}"


class Web3Helper:
    """
    Web3 utilities for the mass pay flow: RPC rotation, owner key loading,
    token metadata / permit nonce / balance reads and chain state (base fee,
    deployed code).

    This class owns a rotating provider and a Web3 instance.
    """

    def __init__(self, chain_config, console=None, request_timeout: float = 20):
        self.console = console
        self.cfg = chain_config

        # Build RPC URLs and provider
        self.rpc_urls: List[str] = self._build_rpc_urls(chain_config)
        self.provider = RotatingHTTPProvider(self.rpc_urls, request_kwargs={"timeout": request_timeout})
        self.w3 = Web3(self.provider)

        self.private_keys: list[str] = []
        self.pk_addresses: list[str] = []

        self.erc20_abi = json.loads(self.cfg.TOKEN_ABI)
        legacy = getattr(self.cfg, "LEGACY_NONCES_ABI", None)
        self.legacy_nonces_abi = json.loads(legacy) if legacy else None
        self._token_meta: Dict[str, dict] = {}

    # ---------- RPC ----------
    def _build_rpc_urls(self, chain_config) -> List[str]:
        primary = getattr(chain_config, 'RPC_URL', None)
        candidates = [str(primary)] if primary else []
        candidates += os.getenv('EXTRA_RPC_URLS', '').split(',')

        urls = list(dict.fromkeys(u.strip() for u in candidates if u.strip()))
        if not urls:
            raise RuntimeError('No RPC URLs configured. Set BASE_RPC_URL or EXTRA_RPC_URLS in .env')
        return urls

    def _log(self, msg: str) -> None:
        if self.console:
            self.console.log(msg)

    # ---------- keys ----------
    def _derive_addresses_from_private_keys(self, keys: list[str]) -> tuple[list[str], list[str]]:
        """
        Derive checksum addresses locally. Invalid keys are skipped; returns
        (filtered_keys, derived_addresses) in the same order.
        """
        filtered_keys: list[str] = []
        derived: list[str] = []
        for k in keys:
            try:
                addr = Account.from_key(k).address
                filtered_keys.append(k)
                derived.append(Web3.to_checksum_address(addr))
            except Exception as e:
                self._log(f"[yellow]Skipping invalid private key: {_mask(k)} ({e})[/yellow]")
        return filtered_keys, derived

    def _parse_privatekeys_blob(self, blob: str) -> list[str]:
        """
        Private keys: hex with/without 0x, 64 hex chars. Returns normalized '0x' + lowercase, unique.
        """
        if not blob:
            return []
        out, seen = [], set()
        for raw in blob.replace(",", "\n").splitlines():
            line = raw.split("#", 1)[0].strip()
            if not line:
                continue
            for tok in re.split(r"[\s,;]+", line):
                if not tok:
                    continue
                m = _PRIV_RE.match(tok.strip())
                if not m:
                    self._log(f"[yellow]private key: invalid, skipped: {_mask(tok)}[/yellow]")
                    continue
                key = "0x" + m.group(1).lower()
                if key not in seen:
                    seen.add(key)
                    out.append(key)
        return out

    def _store_keys(self, blob: str) -> tuple[list[str], list[str]]:
        keys, addrs = self._derive_addresses_from_private_keys(self._parse_privatekeys_blob(blob))
        self.private_keys = keys
        self.pk_addresses = addrs
        return (keys, addrs)

    def load_privatekeys_file(self, key_file: str) -> tuple[list[str], list[str]]:
        try:
            with open(key_file, "r", encoding="utf-8-sig") as f:
                blob = f.read()
        except OSError as e:
            self._log(f"[red]Failed to read private keys file {key_file}: {e}[/red]")
            self.private_keys = []
            self.pk_addresses = []
            return ([], [])
        return self._store_keys(blob)

    def load_privatekeys_cli(self) -> tuple[list[str], list[str]]:
        import questionary as q
        blob = q.password("Paste the owner private key (hex; with or without 0x):").ask()
        return self._store_keys(blob or "")

    # ---------- chain state ----------
    def contract(self, address: str, abi):
        if isinstance(abi, str):
            abi = json.loads(abi)
        return self.w3.eth.contract(address=Web3.to_checksum_address(address), abi=abi)

    def base_fee(self) -> int:
        block = self.w3.eth.get_block('latest')
        return int(block.get('baseFeePerGas', 0) or 0)

    def is_deployed(self, address: str) -> bool:
        code = self.w3.eth.get_code(Web3.to_checksum_address(address))
        return len(bytes(code)) > 0

    # ---------- ERC20 ----------
    def _erc20(self, token_address: str):
        return self.contract(token_address, self.erc20_abi)

    def token_meta(self, token_address: str) -> dict:
        """name / version / decimals; version is None when the token has no version()."""
        key = Web3.to_checksum_address(token_address)
        if key not in self._token_meta:
            c = self._erc20(key)
            try:
                name = c.functions.name().call()
            except Exception:
                name = getattr(self.cfg, "TOKEN_NAME", None)
            try:
                version = c.functions.version().call()
            except Exception:
                version = None
            try:
                decimals = int(c.functions.decimals().call())
            except Exception:
                decimals = int(getattr(self.cfg, "TOKEN_DECIMALS", 18))
            self._token_meta[key] = {"name": name, "version": version, "decimals": decimals}
        return self._token_meta[key]

    def permit_nonce(self, token_address: str, owner: str) -> int:
        c = self._erc20(token_address)
        try:
            return int(c.functions.nonces(Web3.to_checksum_address(owner)).call())
        except Exception as e:
            if not self.legacy_nonces_abi:
                raise
            logger.debug("nonces(address) failed (%s), trying nonces()", e)
            legacy = self.contract(token_address, self.legacy_nonces_abi)
            return int(legacy.functions.nonces().call())

    def check_token_balance(self, token_address: str, account_address: str) -> Optional[int]:
        if not token_address:
            return None
        try:
            c = self._erc20(token_address)
            return int(c.functions.balanceOf(Web3.to_checksum_address(account_address)).call())
        except Exception as e:
            self._log(f"[yellow]Could not read balance of {account_address}: {e}[/yellow]")
            return None


class FileHelper:
    """Creates the resource files a task reads, with a commented template, when missing."""

    TEMPLATES = {
        'wallets': "# Enter the owner private key here. Supports 0x-prefixed or raw hex.\n",
        'recipients': "address,amount\n# One recipient per line. Example:\n# 0xB5f6fECd59dAd3d5bA4Dfe8FcCA6617CE71B99f9, 0.01\n",
    }

    @staticmethod
    def ensure_placeholder(file_path: str, kind: str) -> bool:
        """Returns True when a new placeholder was written."""
        if os.path.exists(file_path):
            return False
        os.makedirs(os.path.dirname(file_path) or ".", exist_ok=True)
        with open(file_path, 'w', encoding='utf-8') as f:
            f.write(FileHelper.TEMPLATES.get(kind, ''))
        return True
