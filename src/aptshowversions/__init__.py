"""aptshowversions: lists available versions of packages and their upgrade state."""

import logging

import click
import typer
from rich.console import Console
from rich.logging import RichHandler

logging.basicConfig(
    level=logging.WARNING,
    format="%(message)s",
    datefmt="[%X]",
    handlers=[
        RichHandler(
            # stdout is reserved for the report
            console=Console(stderr=True),
            rich_tracebacks=True,
            tracebacks_suppress=[click, typer],
        )
    ],
)
