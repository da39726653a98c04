import itertools
import logging
import time
from typing import Any, Callable, Dict, List, Optional, Tuple

import requests

from .errors import BatchSubmissionFailed, GatewayUnavailable
from .user_operation import to_quantity

logger = logging.getLogger(__name__)


class BundlerRpcError(BatchSubmissionFailed):
    """The bundler or paymaster answered with a JSON-RPC error."""

    def __init__(self, method: str, code: Optional[int], message: str):
        super().__init__(f"{method} rejected ({code}): {message}")
        self.method = method
        self.code = code


class BundlerClient:
    """
    JSON-RPC client for an ERC-4337 bundler with paymaster extensions
    (Pimlico-compatible: pimlico_getUserOperationGasPrice,
    pm_sponsorUserOperation).
    """

    def __init__(self, url: str, timeout: float = 30, session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep, clock: Callable[[], float] = time.time):
        if not url:
            raise ValueError("Bundler URL is not configured. Set PIMLICO_API_KEY in .env")
        self.url = url
        self.timeout = timeout
        self.http = session or requests.Session()
        self._ids = itertools.count(1)
        self._sleep = sleep
        self._clock = clock

    def _rpc(self, method: str, params: List[Any]) -> Any:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params}
        try:
            response = self.http.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            body = response.json()
        except requests.exceptions.Timeout as e:
            raise GatewayUnavailable(f"{method}: bundler timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            raise GatewayUnavailable(f"{method}: bundler request failed: {e}") from e
        except ValueError as e:
            raise GatewayUnavailable(f"{method}: bundler returned invalid JSON") from e

        if body.get("error"):
            err = body["error"]
            raise BundlerRpcError(method, err.get("code"), str(err.get("message", err)))
        return body.get("result")

    # ---------- gas / sponsorship ----------
    def get_user_operation_gas_price(self, tier: str = "fast") -> Tuple[int, int]:
        result = self._rpc("pimlico_getUserOperationGasPrice", [])
        try:
            fees = result[tier]
            return to_quantity(fees["maxFeePerGas"]), to_quantity(fees["maxPriorityFeePerGas"])
        except (KeyError, TypeError) as e:
            raise GatewayUnavailable(f"Unexpected gas price response: {result}") from e

    def sponsor_user_operation(self, user_op: Dict[str, str], entry_point: str,
                               policy_id: Optional[str] = None) -> Dict[str, Any]:
        params: List[Any] = [user_op, entry_point]
        if policy_id:
            params.append({"sponsorshipPolicyId": policy_id})
        result = self._rpc("pm_sponsorUserOperation", params)
        if not isinstance(result, dict):
            raise BatchSubmissionFailed(f"Paymaster returned no sponsorship data: {result}")
        return result

    # ---------- lifecycle ----------
    def send_user_operation(self, user_op: Dict[str, str], entry_point: str) -> str:
        return self._rpc("eth_sendUserOperation", [user_op, entry_point])

    def get_user_operation_receipt(self, user_op_hash: str) -> Optional[Dict[str, Any]]:
        return self._rpc("eth_getUserOperationReceipt", [user_op_hash])

    def wait_for_receipt(self, user_op_hash: str, timeout: float = 180,
                         start_delay: float = 2, max_delay: float = 8) -> Dict[str, Any]:
        start = self._clock()
        delay = start_delay
        while True:
            receipt = self.get_user_operation_receipt(user_op_hash)
            if receipt:
                return receipt
            if self._clock() - start > timeout:
                raise GatewayUnavailable(
                    f"Timed out waiting for user operation {user_op_hash}",
                    user_op_hash=user_op_hash,
                )
            self._sleep(delay)
            delay = min(max_delay, delay * 1.5)
