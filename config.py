# config.py
import os
from dotenv import load_dotenv
from pathlib import Path

load_dotenv()

BASE_PATH = Path(__file__).resolve().parent / "resources"
RESULT_PATH = Path(__file__).resolve().parent / "result"

PIMLICO_API_KEY = os.getenv('PIMLICO_API_KEY', '')
SPONSORSHIP_POLICY_ID = os.getenv('SPONSORSHIP_POLICY_ID', '')

BATCH_SIZE = 6
PERMIT_DEADLINE_SECONDS = 60 * 30
SPONSOR_MARKUP_PERCENT = 10   # paymaster fee on top of the raw gas cost
DISPLAY_DECIMALS = 6
RECEIPT_TIMEOUT = 180         # seconds to wait for a user operation to land

# ERC-4337 v0.7
ENTRY_POINT_ADDRESS = "0x0000000071727De22E5E9d8BAf0edAc6f37da032"
SIMPLE_ACCOUNT_FACTORY = "0x91E60e0613810449d098b0b5Ec8b51A0FE8c8985"

SBC_TOKEN_ADDRESS = "0xfdcC3dd6671eaB0709A4C0f3F53De9a333d80798"


def _pimlico_url(chain_slug: str) -> str:
    if not PIMLICO_API_KEY:
        return ""
    return f"https://api.pimlico.io/v2/{chain_slug}/rpc?apikey={PIMLICO_API_KEY}"


# permit + transferFrom + metadata used by the mass pay flow
TOKEN_ABI = '''[
  {
    "type": "function",
    "name": "permit",
    "stateMutability": "nonpayable",
    "inputs": [
      {"name": "owner", "type": "address"},
      {"name": "spender", "type": "address"},
      {"name": "value", "type": "uint256"},
      {"name": "deadline", "type": "uint256"},
      {"name": "v", "type": "uint8"},
      {"name": "r", "type": "bytes32"},
      {"name": "s", "type": "bytes32"}
    ],
    "outputs": []
  },
  {
    "type": "function",
    "name": "transferFrom",
    "stateMutability": "nonpayable",
    "inputs": [
      {"name": "from", "type": "address"},
      {"name": "to", "type": "address"},
      {"name": "value", "type": "uint256"}
    ],
    "outputs": [{"name": "", "type": "bool"}]
  },
  {
    "type": "function",
    "name": "nonces",
    "stateMutability": "view",
    "inputs": [{"name": "owner", "type": "address"}],
    "outputs": [{"name": "", "type": "uint256"}]
  },
  {
    "type":"function",
    "name":"name",
    "stateMutability":"view",
    "inputs":[],
    "outputs":[{"name":"","type":"string"}]
  },
  {
    "type":"function",
    "name":"version",
    "stateMutability":"view",
    "inputs":[],
    "outputs":[{"name":"","type":"string"}]
  },
  {
    "type":"function",
    "name":"symbol",
    "stateMutability":"view",
    "inputs":[],
    "outputs":[{"name":"","type":"string"}]
  },
  {
    "type": "function",
    "name": "decimals",
    "stateMutability": "view",
    "inputs": [],
    "outputs": [{"name": "", "type": "uint8"}]
  },
  {
    "type": "function",
    "name": "balanceOf",
    "stateMutability": "view",
    "inputs": [{"name": "_owner", "type": "address"}],
    "outputs": [{"name": "balance", "type": "uint256"}]
  },
  {
    "type": "function",
    "name": "allowance",
    "stateMutability": "view",
    "inputs": [
      {"name": "_owner", "type": "address"},
      {"name": "_spender", "type": "address"}
    ],
    "outputs": [{"name": "remaining", "type": "uint256"}]
  }
]'''

# some older permit tokens expose a global nonces()
LEGACY_NONCES_ABI = '''[
  {
    "type": "function",
    "name": "nonces",
    "stateMutability": "view",
    "inputs": [],
    "outputs": [{"name": "", "type": "uint256"}]
  }
]'''

ENTRY_POINT_ABI = '''[
  {
    "type": "function",
    "name": "getNonce",
    "stateMutability": "view",
    "inputs": [
      {"name": "sender", "type": "address"},
      {"name": "key", "type": "uint192"}
    ],
    "outputs": [{"name": "nonce", "type": "uint256"}]
  }
]'''

SIMPLE_ACCOUNT_FACTORY_ABI = '''[
  {
    "type": "function",
    "name": "getAddress",
    "stateMutability": "view",
    "inputs": [
      {"name": "owner", "type": "address"},
      {"name": "salt", "type": "uint256"}
    ],
    "outputs": [{"name": "", "type": "address"}]
  },
  {
    "type": "function",
    "name": "createAccount",
    "stateMutability": "nonpayable",
    "inputs": [
      {"name": "owner", "type": "address"},
      {"name": "salt", "type": "uint256"}
    ],
    "outputs": [{"name": "ret", "type": "address"}]
  }
]'''

SIMPLE_ACCOUNT_ABI = '''[
  {
    "type": "function",
    "name": "executeBatch",
    "stateMutability": "nonpayable",
    "inputs": [
      {"name": "dest", "type": "address[]"},
      {"name": "value", "type": "uint256[]"},
      {"name": "func", "type": "bytes[]"}
    ],
    "outputs": []
  }
]'''


class BASE :
    RPC_URL = os.getenv('BASE_RPC_URL', "https://base-rpc.publicnode.com")

    CHAIN_ID = 8453
    CHAIN_NAME = "base"
    EXPLORER_URL = "https://basescan.org"

    # Stable Coin (SBC)
    TOKEN_ADDRESS = os.getenv('TOKEN_ADDRESS', SBC_TOKEN_ADDRESS)
    TOKEN_NAME = "Stable Coin"
    TOKEN_SYMBOL = "SBC"
    TOKEN_DECIMALS = 18

    ENTRY_POINT_ADDRESS = ENTRY_POINT_ADDRESS
    SIMPLE_ACCOUNT_FACTORY = SIMPLE_ACCOUNT_FACTORY
    BUNDLER_URL = _pimlico_url("base")
    SPONSORSHIP_POLICY_ID = SPONSORSHIP_POLICY_ID
    RECEIPT_TIMEOUT = RECEIPT_TIMEOUT

    # Paths to your wallet and recipient files
    WALLET_FILE = os.path.join(BASE_PATH, "wallet.txt") #private key
    RECIPIENTS_FILE = os.path.join(BASE_PATH, "recipients.csv")
    RESULT_DIR = os.path.join(RESULT_PATH, CHAIN_NAME)

    TOKEN_ABI = TOKEN_ABI
    LEGACY_NONCES_ABI = LEGACY_NONCES_ABI
    ENTRY_POINT_ABI = ENTRY_POINT_ABI
    SIMPLE_ACCOUNT_FACTORY_ABI = SIMPLE_ACCOUNT_FACTORY_ABI
    SIMPLE_ACCOUNT_ABI = SIMPLE_ACCOUNT_ABI


class BASE_SEPOLIA :
    RPC_URL = os.getenv('BASE_SEPOLIA_RPC_URL', "https://base-sepolia-rpc.publicnode.com")

    CHAIN_ID = 84532
    CHAIN_NAME = "base-sepolia"
    EXPLORER_URL = "https://sepolia.basescan.org"

    # no canonical SBC deployment on the testnet; point TOKEN_ADDRESS at your own
    TOKEN_ADDRESS = os.getenv('TOKEN_ADDRESS', SBC_TOKEN_ADDRESS)
    TOKEN_NAME = os.getenv('TOKEN_NAME', "Stable Coin")
    TOKEN_SYMBOL = os.getenv('TOKEN_SYMBOL', "SBC")
    TOKEN_DECIMALS = int(os.getenv('TOKEN_DECIMALS', "18"))

    ENTRY_POINT_ADDRESS = ENTRY_POINT_ADDRESS
    SIMPLE_ACCOUNT_FACTORY = SIMPLE_ACCOUNT_FACTORY
    BUNDLER_URL = _pimlico_url("base-sepolia")
    SPONSORSHIP_POLICY_ID = SPONSORSHIP_POLICY_ID
    RECEIPT_TIMEOUT = RECEIPT_TIMEOUT

    WALLET_FILE = os.path.join(BASE_PATH, "wallet.txt") #private key
    RECIPIENTS_FILE = os.path.join(BASE_PATH, "recipients.csv")
    RESULT_DIR = os.path.join(RESULT_PATH, CHAIN_NAME)

    TOKEN_ABI = TOKEN_ABI
    LEGACY_NONCES_ABI = LEGACY_NONCES_ABI
    ENTRY_POINT_ABI = ENTRY_POINT_ABI
    SIMPLE_ACCOUNT_FACTORY_ABI = SIMPLE_ACCOUNT_FACTORY_ABI
    SIMPLE_ACCOUNT_ABI = SIMPLE_ACCOUNT_ABI


CHAINS = {"Base": BASE, "Base Sepolia": BASE_SEPOLIA}

MODULE_PATH = Path(__file__).resolve().parent / "modules"
