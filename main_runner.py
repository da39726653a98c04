# main_runner.py
import os
import importlib.util
import questionary
from rich.console import Console
from config import MODULE_PATH

console = Console()


def list_tasks(module_path=MODULE_PATH):
    """Task modules are the .py files in module_path; private files are skipped."""
    if not os.path.isdir(module_path):
        return []
    return sorted(
        f for f in os.listdir(module_path)
        if f.endswith('.py') and not f.startswith('_')
    )


def load_and_run_module(module_path):
    """
    Load a task module from the given path and run its main function.
    """
    module_name = os.path.splitext(os.path.basename(module_path))[0]

    spec = importlib.util.spec_from_file_location(module_name, module_path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)

    if hasattr(module, 'main'):
        module.main()
    else:
        console.print(f"[yellow]No main() function found in {module_name}. Skipping...[/yellow]")


def run_selected_module():
    """
    Let the user pick one of the task modules and run it.
    """
    if not os.path.isdir(MODULE_PATH):
        console.print(f"[red]The path '{MODULE_PATH}' is not a valid directory.[/red]")
        return

    tasks = list_tasks(MODULE_PATH)
    if not tasks:
        console.print("[yellow]No task modules found.[/yellow]")
        return

    choices = [
        questionary.Choice(title=f"{idx + 1}. {os.path.splitext(fname)[0]}", value=fname)
        for idx, fname in enumerate(tasks)
    ]
    selected_file = questionary.select("Select the task you want to run:", choices=choices).ask()
    if not selected_file:
        console.print("No task selected.")
        return

    module_path = os.path.join(MODULE_PATH, selected_file)
    try:
        load_and_run_module(module_path)
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/yellow]")
    except Exception:
        console.print_exception()


if __name__ == "__main__":
    run_selected_module()
