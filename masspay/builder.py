import json
import logging
from typing import List, Optional, Union

from web3 import Web3

from .models import Call, PermitAuthorization, PreparedCallSet, TransferBatch

logger = logging.getLogger(__name__)


class UserOperationBuilder:
    """
    Turns a batch into the ordered call list executed by the smart account.

    Every call targets the token contract. When a permit is supplied it is
    encoded first so the allowance exists before any transferFrom runs in
    the same operation.
    """

    def __init__(self, w3: Web3, token_address: str, token_abi: Union[str, list],
                 decimals: int = 18, owner: Optional[str] = None):
        self.w3 = w3
        self.token_address = Web3.to_checksum_address(token_address)
        abi = json.loads(token_abi) if isinstance(token_abi, str) else token_abi
        self.token = w3.eth.contract(address=self.token_address, abi=abi)
        self.decimals = decimals
        self.owner = Web3.to_checksum_address(owner) if owner else None

    def permit_call(self, authorization: PermitAuthorization) -> Call:
        sig = authorization.signature
        data = self.token.encode_abi(
            "permit",
            args=[
                authorization.owner,
                authorization.spender,
                int(authorization.value),
                int(authorization.deadline),
                int(sig.v),
                sig.r_bytes,
                sig.s_bytes,
            ],
        )
        return Call(from_=authorization.owner, to=self.token_address, data=data)

    def transfer_call(self, owner: str, to: str, value: int) -> Call:
        data = self.token.encode_abi(
            "transferFrom",
            args=[owner, Web3.to_checksum_address(to), int(value)],
        )
        return Call(from_=owner, to=self.token_address, data=data)

    def build(self, batch: TransferBatch,
              authorization: Optional[PermitAuthorization] = None) -> PreparedCallSet:
        owner = authorization.owner if authorization else self.owner
        if not owner:
            raise ValueError("An owner is required to build transfer calls")

        calls: List[Call] = []
        if authorization is not None:
            calls.append(self.permit_call(authorization))
        for r in batch.recipients:
            calls.append(self.transfer_call(owner, r.address, r.amount_base_units(self.decimals)))

        logger.debug("Built %d call(s) for batch %s (permit=%s)",
                     len(calls), batch.id, authorization is not None)
        return PreparedCallSet(
            batch_id=batch.id,
            calls=tuple(calls),
            carries_permit=authorization is not None,
        )
