"""
Helpers shared by the trackdown command groups.
"""

import json
from contextlib import contextmanager
from typing import Iterator, Optional

import click
from pydantic import BaseModel

from trackdown.constants import EXIT_FATAL
from trackdown.core import TrackdownCore
from trackdown.exceptions import DocumentError, NotFoundError, TrackdownError
from trackdown.models.base import INDEXED_TYPES, ItemRecord

ITEM_TYPES = [t.value for t in INDEXED_TYPES]


class FatalError(click.ClickException):
    """Unrecoverable error: missing root, unreadable directory, failed write."""

    exit_code = EXIT_FATAL


@contextmanager
def cli_errors() -> Iterator[None]:
    """Turn trackdown errors into click errors with the right exit code."""
    try:
        yield
    except (NotFoundError, DocumentError) as e:
        raise click.ClickException(str(e))
    except TrackdownError as e:
        raise FatalError(str(e))


def load_core(ctx: click.Context) -> TrackdownCore:
    """Create a TrackdownCore for the root given to the top-level command."""
    project_root = ctx.obj.get("project_root") if ctx.obj else None
    return TrackdownCore(project_root)


def echo_json(data: BaseModel) -> None:
    click.echo(json.dumps(data.model_dump(mode="json"), indent=2))


def format_item(record: Optional[ItemRecord], indent: int = 0) -> str:
    """One-line summary of an item."""
    pad = "  " * indent
    if record is None:
        return f"{pad}(none)"
    line = f"{pad}{record.id}  [{record.effective_state}]  {record.title}"
    if record.assignee:
        line += f"  @{record.assignee}"
    return line
