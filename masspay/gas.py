import logging
from typing import Iterable

from .errors import EstimationFailed
from .models import GasEstimate, PreparedCallSet

logger = logging.getLogger(__name__)

SPONSOR_MARKUP_PERCENT = 10


class GasEstimator:
    """
    Advisory cost of a sponsored operation. Never raises: any failure is
    reported as a zero-cost estimate carrying an EstimationFailed.
    """

    def __init__(self, gateway, sponsor_markup_percent: int = SPONSOR_MARKUP_PERCENT):
        self.gateway = gateway
        self.markup = int(sponsor_markup_percent)

    def estimate(self, call_set: PreparedCallSet) -> GasEstimate:
        try:
            op = self.gateway.prepare(call_set)
            base_fee = int(self.gateway.get_base_fee() or 0)
            gas_price = min(op.max_fee_per_gas, op.max_priority_fee_per_gas + base_fee)
            gas_used = op.total_gas
            cost = gas_used * gas_price * (100 + self.markup) // 100
        except Exception as e:
            logger.warning("Gas estimation failed for batch %s: %s", call_set.batch_id, e)
            return GasEstimate(error=EstimationFailed(str(e)))
        return GasEstimate(cost_wei=cost, gas_used=gas_used, gas_price=gas_price)

    def estimate_all(self, call_sets: Iterable[PreparedCallSet]) -> GasEstimate:
        cost = gas_used = 0
        gas_price = 0
        for call_set in call_sets:
            est = self.estimate(call_set)
            if est.failed:
                return est
            cost += est.cost_wei
            gas_used += est.gas_used
            gas_price = max(gas_price, est.gas_price)
        return GasEstimate(cost_wei=cost, gas_used=gas_used, gas_price=gas_price)
