"""
Console narration for deployment runs.

Components emit events to a ``Reporter``; they never print directly. The base
class discards everything, which keeps the engine silent when embedded.
"""

import click


class Reporter:
    def section(self, title: str) -> None:
        pass

    def step(self, contract_name: str, step, detail: str = "") -> None:
        pass

    def info(self, message: str) -> None:
        pass

    def success(self, message: str) -> None:
        pass

    def warning(self, message: str) -> None:
        pass

    def error(self, message: str) -> None:
        pass


class ConsoleReporter(Reporter):
    """Prints events to the terminal, coloured by outcome."""

    def section(self, title: str) -> None:
        click.secho(f"\n=== {title} ===", fg="green", bold=True)

    def step(self, contract_name: str, step, detail: str = "") -> None:
        step_name = getattr(step, "value", step)
        message = f"[{contract_name}] {step_name}"
        if detail:
            message = f"{message}: {detail}"
        click.secho(message, fg="cyan")

    def info(self, message: str) -> None:
        click.echo(message)

    def success(self, message: str) -> None:
        click.secho(message, fg="green")

    def warning(self, message: str) -> None:
        click.secho(f"WARNING: {message}", fg="yellow")

    def error(self, message: str) -> None:
        click.secho(message, fg="red", err=True)
