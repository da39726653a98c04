import logging

import questionary
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from masspay import BatchPlanner, load_recipients_file, total_amount, total_base_units
from masspay.errors import InvalidInput

import config

console = Console()


def validate(path: str, decimals: int, batch_size: int = config.BATCH_SIZE) -> bool:
    """Offline check of a recipient file plus the batch split it would produce."""
    try:
        recipients = load_recipients_file(path, decimals=decimals)
    except InvalidInput as e:
        console.log(f"[red]{e}[/red]")
        for err in e.errors:
            console.print(f"  [red]- {err}[/red]")
        return False
    except OSError as e:
        console.log(f"[red]Could not read {path}: {e}[/red]")
        return False

    batches = BatchPlanner(batch_size).plan(recipients)

    console.rule("[bold]Recipient File OK[/bold]")
    console.print(f"[bold]Recipients:[/bold] {len(recipients)}")
    console.print(f"[bold]Total Amount:[/bold] {total_amount(recipients)}")
    console.print(f"[bold]Permit Value (base units):[/bold] {total_base_units(recipients, decimals)}")

    table = Table(title="Batch Plan")
    table.add_column("#", justify="right")
    table.add_column("Recipients", justify="right")
    table.add_column("Amount", justify="right")
    table.add_column("First Address")
    for i, batch in enumerate(batches, 1):
        table.add_row(str(i), str(len(batch.recipients)), str(batch.total_amount), batch.recipients[0].address)
    console.print(table)
    return True


def main():
    logging.basicConfig(level=logging.INFO, handlers=[RichHandler(console=console)])
    chain_selection = questionary.select("Select chain:", choices=list(config.CHAINS)).ask()
    chain_config = config.CHAINS.get(chain_selection, config.BASE)

    path = questionary.path("Recipient file:", default=str(chain_config.RECIPIENTS_FILE)).ask()
    if not path:
        console.log("[yellow]No file selected[/yellow]")
        return
    validate(path, int(chain_config.TOKEN_DECIMALS))


if __name__ == "__main__":
    main()
