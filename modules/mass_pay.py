import os
import time
import logging
from decimal import Decimal
from typing import List, Optional

import questionary
from rich.console import Console
from rich.logging import RichHandler
from rich.progress import Progress, BarColumn, TimeElapsedColumn, TimeRemainingColumn
from rich.table import Table

from masspay import (
    BatchExecutionController,
    BatchPlanner,
    BatchStatus,
    BundlerClient,
    GasEstimator,
    LocalWalletSession,
    MassPayError,
    PermitAuthorizer,
    ReceiptExporter,
    SponsoredGateway,
    UserOperationBuilder,
    load_recipients_file,
    parse_recipients,
    total_amount,
)
from masspay.errors import InvalidInput
from masspay.models import ExecutionState, Recipient, short_hash, to_base_units
from utils.helper import Web3Helper, FileHelper, explorer_tx_url

import config

console = Console()

STATUS_STYLE = {
    BatchStatus.NOT_STARTED: "dim",
    BatchStatus.PENDING: "yellow",
    BatchStatus.COMPLETE: "green",
    BatchStatus.FAILED: "red",
}


def _op_label(user_op_hash):
    return f"op {short_hash(user_op_hash)}" if user_op_hash else "-"


class MassPayManager:
    def __init__(self, chain_config):
        self.console = console
        self.chain_config = chain_config

        # --- paths / chain config
        self.wallet_file = chain_config.WALLET_FILE
        self.recipients_file = chain_config.RECIPIENTS_FILE
        self.result_dir = chain_config.RESULT_DIR
        self.chain_name = chain_config.CHAIN_NAME
        self.decimals = int(chain_config.TOKEN_DECIMALS)
        self.symbol = chain_config.TOKEN_SYMBOL

        # --- logging
        logging.basicConfig(level=logging.INFO, handlers=[RichHandler(console=self.console)])
        self.logger = logging.getLogger(__name__)

        # --- helper-backed web3 wiring
        self.web3h = Web3Helper(chain_config, console=self.console)
        self.w3 = self.web3h.w3

        # --- in-memory
        self.session: Optional[LocalWalletSession] = None
        self.recipients: List[Recipient] = []
        self.controller: Optional[BatchExecutionController] = None

        # --- files
        for path_item, kind in ((self.wallet_file, 'wallets'), (self.recipients_file, 'recipients')):
            try:
                FileHelper.ensure_placeholder(path_item, kind)
            except OSError as e:
                self.console.log(f"[yellow]Could not ensure placeholder {kind} file {path_item}: {e}[/yellow]")

    # ---- owner key ----
    def select_private_key_input_method(self):
        choice = questionary.select(
            "Choose private key input method:",
            choices=["Default Path (File)", "Manual Input (CLI)"]
        ).ask()
        if choice == "Default Path (File)":
            keys, addrs = self.web3h.load_privatekeys_file(self.wallet_file)
        else:
            keys, addrs = self.web3h.load_privatekeys_cli()
        if not keys:
            raise RuntimeError("No valid private key loaded.")
        if len(keys) > 1:
            self.console.log(f"[yellow]{len(keys)} keys found, using the first ({addrs[0]})[/yellow]")
        self.session = LocalWalletSession(keys[0])
        self.console.log(f"[green]Owner wallet: {self.session.address}")

    # ---- recipients ----
    def select_recipient_input_method(self):
        choice = questionary.select(
            "Choose recipient input method:",
            choices=["Default Path (File)", "Manual Input (CLI)"]
        ).ask()
        if choice == "Default Path (File)":
            self.recipients = load_recipients_file(self.recipients_file, decimals=self.decimals)
        else:
            text = questionary.text(
                "Enter recipients, one per line as 'address, amount' (Esc then Enter to finish):",
                multiline=True,
            ).ask()
            self.recipients = parse_recipients(text or "", decimals=self.decimals)
        self.console.log(f"[green]Loaded {len(self.recipients)} recipient(s).")

    # ---- wiring ----
    def build_controller(self) -> BatchExecutionController:
        planner = BatchPlanner(config.BATCH_SIZE)
        bundler = BundlerClient(self.chain_config.BUNDLER_URL)
        gateway = SponsoredGateway(self.chain_config, self.session, self.web3h, bundler)
        authorizer = PermitAuthorizer(
            self.session, self.web3h, self.chain_config,
            deadline_seconds=config.PERMIT_DEADLINE_SECONDS,
        )
        builder = UserOperationBuilder(
            self.w3,
            self.chain_config.TOKEN_ADDRESS,
            self.chain_config.TOKEN_ABI,
            decimals=self.decimals,
            owner=self.session.address,
        )
        self.controller = BatchExecutionController(
            gateway,
            authorizer,
            builder,
            planner,
            explorer_url_for=lambda tx_hash: explorer_tx_url(self.chain_config, tx_hash),
        )
        return self.controller

    # ---- preview ----
    def _format_amount(self, amount: Decimal) -> str:
        return f"{amount:,.{config.DISPLAY_DECIMALS}f} {self.symbol}"

    def show_preview(self) -> bool:
        total = total_amount(self.recipients)
        balance_raw = self.web3h.check_token_balance(self.chain_config.TOKEN_ADDRESS, self.session.address)
        balance = Decimal(balance_raw).scaleb(-self.decimals) if balance_raw is not None else None
        batches = -(-len(self.recipients) // config.BATCH_SIZE)

        self.console.rule("[bold]Mass Pay Preview[/bold]")
        self.console.print(f"[bold]Token:[/bold] {self.chain_config.TOKEN_ADDRESS} ({self.symbol})")
        if balance is not None:
            self.console.print(f"[bold]Beginning Balance:[/bold] {self._format_amount(balance)}")
        else:
            self.console.print("[bold]Beginning Balance:[/bold] [yellow]unavailable[/yellow]")
        self.console.print(f"[bold]Recipients:[/bold] {len(self.recipients)}")
        self.console.print(f"[bold]Total Amount:[/bold] {self._format_amount(total)}")
        self.console.print(f"[bold]Batches:[/bold] {batches} (up to {config.BATCH_SIZE} transfers each)")
        if balance is not None:
            ending = balance - total
            style = "red" if ending < 0 else "green"
            self.console.print(f"[bold]Ending Balance:[/bold] [{style}]{self._format_amount(ending)}[/{style}]")

        for i, r in enumerate(self.recipients[:10], 1):
            self.console.print(f"{i:>3}. {r.address} | {r.amount}")
        if len(self.recipients) > 10:
            self.console.print(f"... and {len(self.recipients) - 10} more")

        if balance_raw is not None:
            needed = sum(to_base_units(r.amount, self.decimals) for r in self.recipients)
            if needed > balance_raw:
                self.console.log("[red]Insufficient token balance for this payout.[/red]")
                return False
        return True

    def show_gas_estimate(self) -> None:
        estimator = GasEstimator(self.controller.gateway, config.SPONSOR_MARKUP_PERCENT)
        try:
            estimate = self.controller.estimate(self.recipients, estimator)
        except MassPayError as e:
            self.console.log(f"[yellow]Gas estimation skipped: {e}[/yellow]")
            return
        style = "yellow" if estimate.failed else "cyan"
        self.console.print(f"[{style}]{estimate.describe()}[/{style}]")

    # ---- results ----
    def render_batches(self, state: ExecutionState) -> None:
        table = Table(title="Batch Results")
        table.add_column("#", justify="right")
        table.add_column("Recipients", justify="right")
        table.add_column("Amount", justify="right")
        table.add_column("Status")
        table.add_column("Tx Hash")
        for i, batch in enumerate(state.batches, 1):
            style = STATUS_STYLE[batch.status]
            table.add_row(
                str(i),
                str(len(batch.recipients)),
                str(batch.total_amount),
                f"[{style}]{batch.status.value}[/{style}]",
                batch.explorer_url or batch.display_hash or _op_label(batch.user_op_hash),
            )
        self.console.print(table)

    def write_receipt(self, state: ExecutionState) -> str:
        out_path = os.path.join(self.result_dir, f"masspay_receipt_{int(time.time())}.csv")
        return ReceiptExporter.write(state.batches, out_path)

    # ---- flow ----
    def run(self):
        self.console.rule(f"[bold cyan]Mass Pay on {self.chain_name}[/bold cyan]")
        try:
            self.select_private_key_input_method()
            self.select_recipient_input_method()
        except InvalidInput as e:
            self.console.log(f"[red]{e}[/red]")
            for err in e.errors:
                self.console.print(f"  [red]- {err}[/red]")
            return
        except (RuntimeError, OSError) as e:
            self.console.log(f"[red]{e}[/red]")
            return

        try:
            self.build_controller()
        except (ValueError, RuntimeError) as e:
            self.console.log(f"[red]Setup failed: {e}[/red]")
            return

        if not self.show_preview():
            return
        if questionary.confirm("Estimate gas before sending? (signs a permit)", default=False).ask():
            self.show_gas_estimate()
        if not questionary.confirm("Proceed with this payout?").ask():
            self.console.log("[yellow]Cancelled by user[/yellow]")
            return

        progress = Progress(
            "[progress.description]{task.description}",
            BarColumn(),
            "[progress.percentage]{task.percentage:>3.0f}%",
            "•",
            TimeElapsedColumn(),
            "•",
            TimeRemainingColumn(),
            console=self.console,
        )
        with progress:
            task = progress.add_task("[cyan]Sending batches...", total=None)

            def on_change(state: ExecutionState) -> None:
                done = state.count(BatchStatus.COMPLETE) + state.count(BatchStatus.FAILED)
                progress.update(task, total=len(state.batches), completed=done)

            self.controller.on_change = on_change
            try:
                state = self.controller.submit(self.recipients)
            except MassPayError as e:
                self.console.log(f"[red]Submission aborted: {e}[/red]")
                return

        self.console.rule("[bold]Done[/bold]")
        self.render_batches(state)
        complete = state.count(BatchStatus.COMPLETE)
        failed = state.count(BatchStatus.FAILED)
        self.console.print(f"[bold green]Complete:[/bold green] {complete}/{len(state.batches)} batches")
        self.console.print(f"[bold red]Failed:[/bold red] {failed} batches")
        for i, batch in enumerate(state.batches, 1):
            if batch.status is BatchStatus.FAILED and batch.user_op_hash:
                self.console.print(
                    f"[yellow]Batch {i} was sent as user operation {batch.user_op_hash}; "
                    f"check it before re-submitting.[/yellow]"
                )

        path = self.write_receipt(state)
        self.console.log(f"[green]Receipt saved to {path}[/green]")


def main():
    chain_selection = questionary.select("Select chain:", choices=list(config.CHAINS)).ask()
    chain_config = config.CHAINS.get(chain_selection, config.BASE)

    app = MassPayManager(chain_config)
    app.run()


if __name__ == "__main__":
    main()
