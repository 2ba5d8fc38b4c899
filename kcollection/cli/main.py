import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click
import yaml

from kcollection import Collection, Model, Store, load_config, where
from kcollection.sources import load_payload


# -------------------------
# Helpers
# -------------------------


def _load_records(path: Path) -> List[Dict[str, Any]]:
    payload = load_payload(path)
    if payload is None:
        return []
    if isinstance(payload, dict):
        # A single record or a {"records": [...]} envelope
        payload = payload.get("records", [payload])
    if not isinstance(payload, list):
        raise click.ClickException(f"{path} must contain a list of records")
    return payload


def _model_for(key: str, merge_keys: Tuple[str, ...]) -> type:
    # Identity is declared on the model type, so build one per invocation
    return type(
        "CliRecord",
        (Model,),
        {"primary_key": key, "merge_keys": list(merge_keys) or None},
    )


def _parse_where(clauses: Tuple[str, ...]) -> Dict[str, Any]:
    criteria: Dict[str, Any] = {}
    for clause in clauses:
        field, sep, value = clause.partition("=")
        if not sep or not field:
            raise click.BadParameter(f"expected field=value, got {clause!r}", param_hint="--where")
        # "3" -> 3, "true" -> True, anything else stays a string
        criteria[field.strip()] = yaml.safe_load(value) if value else ""
    return criteria


def _emit(records: List[Dict[str, Any]], output: Optional[Path]) -> None:
    text = json.dumps(records, indent=2, default=str)
    if output:
        output.write_text(text + "\n")
        click.echo(f"Wrote {len(records)} records to {output}")
    else:
        click.echo(text)


# -------------------------
# CLI
# -------------------------


@click.group()
@click.option(
    "--config",
    "config_path",
    type=click.Path(path_type=Path),
    default=None,
    help="Path to kcollection.yaml",
)
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[Path]) -> None:
    """kcollection - inspect and reconcile record collections.

    Files may be JSON or YAML and hold a list of records.
    """
    ctx.ensure_object(dict)
    ctx.obj["store"] = Store(config=load_config(config_path))


@cli.command("merge")
@click.argument("base", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("incoming", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--key", default="id", show_default=True, help="Primary key field")
@click.option("--merge-key", "merge_keys", multiple=True, help="Composite identity field (repeatable)")
@click.option("--output", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Write result to file")
@click.pass_context
def merge_cmd(
    ctx: click.Context,
    base: Path,
    incoming: Path,
    key: str,
    merge_keys: Tuple[str, ...],
    output: Optional[Path],
) -> None:
    """Merge INCOMING records into BASE by key and print the result."""
    collection = Collection(
        _load_records(base),
        store=ctx.obj["store"],
        model=_model_for(key, merge_keys),
    )
    collection.merge(_load_records(incoming))
    _emit(collection.raw(), output)


@cli.command("show")
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--where", "clauses", multiple=True, help="Keep records where field=value (repeatable)")
@click.option("--key", default="id", show_default=True, help="Primary key field")
@click.option("--count", is_flag=True, help="Print only the number of matching records")
@click.pass_context
def show(ctx: click.Context, path: Path, clauses: Tuple[str, ...], key: str, count: bool) -> None:
    """Print the records of PATH, optionally filtered."""
    criteria = _parse_where(clauses)
    collection = Collection(
        _load_records(path),
        store=ctx.obj["store"],
        model=_model_for(key, ()),
        filters={"where": where(**criteria)},
    )
    if criteria:
        collection.set("active_filter", "where")

    if count:
        click.echo(str(len(collection)))
        return
    _emit(collection.raw(), None)


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
