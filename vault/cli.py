#!/usr/bin/env python3
"""
vault.cli
=========

Client and operator tooling for shielded vaults.

Usage
-----
# New note for 1 ether (amounts are integers in wei)
python -m vault note --amount 1000000000000000000 --out note.json

# Commitment / nullifier hash of a note
python -m vault inspect note.json

# Merkle path for a note from a deposit log (JSON lines)
python -m vault path --events deposits.jsonl --note note.json --root 0x...

# Full circuit input for a withdrawal
python -m vault inputs --events deposits.jsonl --note note.json \
    --recipient 0xdead...beef --fee 10000000000000000 --out input.json

# Static engine fingerprint for a registry
python -m vault fingerprint --config vault.toml --vk verification_key.json

Global options: --version, --log-level.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, NoReturn, Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from core import config as vault_config
from core.errors import VaultError
from core.logging import configure as configure_logging
from core.logging import configure_from_config
from core.version import __version__
from zk.verifiers import ZKError, reference
from zk.verifiers.field import parse_int
from zk.verifiers.poseidon import get_params, params_fingerprint, registered_names

from .boundary import N_PUBLIC, circuit_inputs
from .bootstrap import load_hash_params, write_vk
from .events import EventLog
from .fingerprint import engine_fingerprint, fingerprint_material
from .notes import Note
from .paths import MerklePath, PathBuilder
from .prover import prepare_withdrawal
from .tree import compute_zeros

app = typer.Typer(no_args_is_help=True, add_completion=False, help="shielded-vault tools")
console = Console()

# --log-level given on the command line; wins over the config file
_cli_log_level: Optional[str] = None


# ----------------- helpers -----------------


def _fail(err: VaultError) -> NoReturn:
    doc = err.to_dict()
    console.print(Panel(json.dumps(doc, indent=2), title=f"[red]{doc['code']}", expand=False))
    raise typer.Exit(1)


def _int_option(value: Optional[str], name: str) -> Optional[int]:
    if value is None:
        return None
    try:
        return parse_int(value)
    except ZKError as e:
        raise typer.BadParameter(f"{name}: {e}") from e


def _load_cfg(path: Optional[Path]) -> vault_config.VaultConfig:
    cfg = vault_config.load(path)
    if _cli_log_level is None:
        configure_from_config(cfg)
    load_hash_params(cfg)
    return cfg


def _emit_json(obj: Any, out: Optional[Path]) -> None:
    text = json.dumps(obj, indent=2)
    if out is None:
        typer.echo(text)
    else:
        out.write_text(text + "\n", encoding="utf-8")
        console.print(f"[green]wrote[/green] {out}")


def _build_path(events: Path, note: Note, depth: int, upto: Optional[int], root: Optional[int]) -> MerklePath:
    builder = PathBuilder.from_events(EventLog.load(events).deposits(), depth)
    path = builder.path_for_commitment(note.commitment, upto)
    if root is not None:
        path.require_root(root)
    return path


# ----------------- CLI -----------------


def _print_version(value: bool) -> None:
    if value:
        typer.echo(f"shielded-vault {__version__}")
        raise typer.Exit(0)


@app.callback()
def _meta(
    version: bool = typer.Option(
        False, "--version", "-V", help="Print version and exit", is_eager=True, callback=_print_version
    ),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="Logging level (default: from config)"),
) -> None:
    global _cli_log_level
    _cli_log_level = log_level.upper() if log_level else None
    configure_logging(level=_cli_log_level or "WARNING")


@app.command("note")
def new_note(
    amount: str = typer.Option(..., "--amount", "-a", help="Deposit amount (wei, decimal or 0x-hex)"),
    depositor: Optional[str] = typer.Option(None, "--depositor", help="Depositor address"),
    out: Optional[Path] = typer.Option(None, "--out", "-o", help="Write the note JSON here"),
) -> None:
    """
    Generate a fresh note (secret, nullifier) and print its commitment.
    """
    try:
        note = Note.new(_int_option(amount, "amount") or 0, _int_option(depositor, "depositor"))
    except VaultError as e:
        _fail(e)
    if out is not None:
        note.save(out)
        console.print(f"[green]note saved[/green] {out} [yellow](keep it secret)[/yellow]")
    else:
        typer.echo(json.dumps(note.to_json(), indent=2))
    console.print(f"commitment: 0x{note.commitment:064x}")


@app.command("inspect")
def inspect_note(note_path: Path = typer.Argument(..., exists=True, help="Note JSON file")) -> None:
    """
    Show the public values derived from a note.
    """
    try:
        note = Note.load(note_path)
    except VaultError as e:
        _fail(e)
    t = Table(title="Note", box=box.SIMPLE)
    t.add_column("Field")
    t.add_column("Value", overflow="fold")
    t.add_row("amount", str(note.amount))
    t.add_row("commitment", f"0x{note.commitment:064x}")
    t.add_row("nullifierHash", f"0x{note.nullifier_hash:064x}")
    if note.depositor is not None:
        t.add_row("depositor", hex(note.depositor))
    console.print(t)


@app.command("zeros")
def zeros(depth: int = typer.Option(20, "--depth", "-d", min=1, max=vault_config.MAX_DEPTH)) -> None:
    """
    Print the zero-subtree table zero[0..depth].
    """
    t = Table(title=f"zero values (depth {depth})", box=box.SIMPLE)
    t.add_column("level", justify="right")
    t.add_column("value", overflow="fold")
    for level, z in enumerate(compute_zeros(depth)):
        t.add_row(str(level), f"0x{z:064x}")
    console.print(t)


@app.command("path")
def path_cmd(
    events: Path = typer.Option(..., "--events", "-e", exists=True, help="Event log (JSON lines)"),
    note_path: Path = typer.Option(..., "--note", "-n", exists=True, help="Note JSON file"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Vault config file"),
    upto: Optional[int] = typer.Option(None, "--upto", help="Use only the first N deposits"),
    root: Optional[str] = typer.Option(None, "--root", help="Expected vault root"),
    out: Optional[Path] = typer.Option(None, "--out", "-o"),
) -> None:
    """
    Rebuild the Merkle path for a note from the deposit log.
    """
    try:
        cfg = _load_cfg(config)
        note = Note.load(note_path)
        path = _build_path(events, note, cfg.depth, upto, _int_option(root, "root"))
    except VaultError as e:
        _fail(e)
    _emit_json(path.to_json(), out)


@app.command("inputs")
def inputs_cmd(
    events: Path = typer.Option(..., "--events", "-e", exists=True, help="Event log (JSON lines)"),
    note_path: Path = typer.Option(..., "--note", "-n", exists=True, help="Note JSON file"),
    recipient: str = typer.Option(..., "--recipient", "-r", help="Recipient address"),
    fee: str = typer.Option("0", "--fee", help="Protocol fee (wei)"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Vault config file"),
    root: Optional[str] = typer.Option(None, "--root", help="Expected vault root"),
    out: Optional[Path] = typer.Option(None, "--out", "-o"),
) -> None:
    """
    Produce the withdrawal circuit input (public signals first, then witness).
    """
    try:
        cfg = _load_cfg(config)
        note = Note.load(note_path)
        path = _build_path(events, note, cfg.depth, None, _int_option(root, "root"))
        signals, witness = prepare_withdrawal(
            note, path, _int_option(recipient, "recipient") or 0, _int_option(fee, "fee") or 0
        )
    except VaultError as e:
        _fail(e)
    _emit_json(circuit_inputs(signals, witness), out)


@app.command("keygen")
def keygen(out: Path = typer.Option(..., "--out", "-o", help="Where to write the verifying key")) -> None:
    """
    Create a verifying key for the development `reference` proof backend.
    """
    write_vk(reference.keygen(N_PUBLIC), out)
    console.print(f"[green]reference vk written[/green] {out} [yellow](development only)[/yellow]")


@app.command("fingerprint")
def fingerprint_cmd(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Vault config file"),
    vk: Optional[Path] = typer.Option(None, "--vk", exists=True, help="Verifying key JSON"),
    hex_only: bool = typer.Option(False, "--hex", help="Print only the fingerprint"),
) -> None:
    """
    Compute the static engine fingerprint a registry uses to recognise builds.
    """
    try:
        cfg = _load_cfg(config)
    except VaultError as e:
        _fail(e)
    vk_path = vk or cfg.vk_path
    vk_obj = json.loads(Path(vk_path).read_text(encoding="utf-8")) if vk_path else None
    fp = engine_fingerprint(cfg, vk_obj)
    if hex_only:
        typer.echo(fp)
        return
    t = Table(title="Engine fingerprint", box=box.SIMPLE)
    t.add_column("Field")
    t.add_column("Value", overflow="fold")
    for k, v in fingerprint_material(cfg, vk_obj).items():
        t.add_row(k, str(v))
    t.add_row("fingerprint", fp)
    console.print(Panel(t, title="shielded-vault", expand=False))


@app.command("params")
def params_cmd(
    directory: Optional[Path] = typer.Option(None, "--dir", exists=True, file_okay=False, help="Parameter directory"),
) -> None:
    """
    List registered Poseidon parameter sets and their fingerprints.
    """
    try:
        cfg = vault_config.load(poseidon_params_dir=directory) if directory else vault_config.load()
        load_hash_params(cfg)
    except VaultError as e:
        _fail(e)
    t = Table(title="Poseidon parameters", box=box.SIMPLE)
    for col in ("name", "t", "R_F", "R_P", "fingerprint"):
        t.add_column(col, overflow="fold")
    for name in registered_names():
        p = get_params(name)
        t.add_row(name, str(p.t), str(p.R_F), str(p.R_P), params_fingerprint(p))
    console.print(t)


@app.command("config")
def config_cmd(config: Optional[Path] = typer.Argument(None, help="Vault config file")) -> None:
    """
    Print the effective configuration (file, env and defaults merged).
    """
    try:
        cfg = vault_config.load(config)
    except VaultError as e:
        _fail(e)
    typer.echo(json.dumps(cfg.to_dict(), indent=2, sort_keys=True))


def main() -> None:  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
