from .builder import UserOperationBuilder
from .bundler import BundlerClient
from .controller import BatchExecutionController, transition
from .errors import (
    AuthorizationFailed,
    BatchSubmissionFailed,
    EstimationFailed,
    GatewayUnavailable,
    InvalidInput,
    InvalidTransition,
    MassPayError,
    SubmissionInProgress,
)
from .gas import GasEstimator
from .gateway import ExecutionGateway, SponsoredGateway
from .models import BatchStatus, ExecutionState, Recipient, RunPhase, TransferBatch
from .parser import load_recipients_file, parse_recipients, total_amount, total_base_units
from .permit import PermitAuthorizer
from .planner import BatchPlanner
from .receipt import ReceiptExporter
from .session import LocalWalletSession

__version__ = "0.1.0"
