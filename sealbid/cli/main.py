"""
Sealbid CLI - Command Line Interface for the auction house

Main entry point for all CLI commands. State lives in a SQLite database
under --data-dir; wallets are Fernet-encrypted key files beside it.
"""

import base64
import hashlib
import json
import logging
from pathlib import Path
from typing import Optional

import click
from cryptography.fernet import Fernet, InvalidToken

from sealbid.core.auction import AuctionHouse, OperationSurface
from sealbid.core.config import HouseConfig, load_config
from sealbid.core.identity import Authenticator, create_signed_call
from sealbid.core.ledger import BalanceLedger, BlockClock
from sealbid.core.storage import StorageManager
from sealbid.crypto import KeyPair, bytes_to_hex, generate_keypair, private_key_to_public_key
from sealbid.utils.logger import get_logger, setup_logging

logger = get_logger("cli")


# =============================================================================
# Wallet Helpers
# =============================================================================


def _fernet(wallet_name: str, password: str) -> Fernet:
    # Wallet name doubles as the PBKDF2 salt
    key = base64.urlsafe_b64encode(
        hashlib.pbkdf2_hmac("sha256", password.encode(), wallet_name.encode(), 100000)
    )
    return Fernet(key)


def _wallet_path(ctx, name: str) -> Path:
    return ctx.obj["data_dir"] / "wallets" / f"{name}.json"


def decrypt_wallet_key(wallet_data: dict, wallet_name: str, password: str) -> Optional[bytes]:
    """
    Decrypt a wallet's private key.

    Returns:
        Decrypted private key bytes, or None on a wrong password
    """
    try:
        return _fernet(wallet_name, password).decrypt(wallet_data["encrypted_private_key"].encode())
    except InvalidToken:
        return None


def load_keypair(ctx, name: str, password: str) -> KeyPair:
    path = _wallet_path(ctx, name)
    if not path.exists():
        raise click.ClickException(f"Wallet '{name}' not found (create with: sealbid wallet create --name {name})")
    private_key = decrypt_wallet_key(json.loads(path.read_text()), name, password)
    if private_key is None:
        raise click.ClickException("Wrong wallet password")
    return KeyPair(private_key=private_key, public_key=private_key_to_public_key(private_key))


def resolve_account(ctx, name_or_address: str) -> str:
    """Wallet name -> address; anything else is taken as a raw identity."""
    path = _wallet_path(ctx, name_or_address)
    if path.exists():
        return json.loads(path.read_text())["address"]
    return name_or_address


# =============================================================================
# Deployment Helpers
# =============================================================================


class Deployment:
    """Storage-backed ledger, clock and house for one data directory."""

    def __init__(self, ctx):
        config = ctx.obj["config"]
        self.storage = StorageManager(ctx.obj["data_dir"], db_name=config.db_name)
        self.ledger = BalanceLedger(storage_manager=self.storage)
        self.clock = BlockClock(storage_manager=self.storage)
        self.house = AuctionHouse(self.ledger, self.clock, config=config, storage_manager=self.storage)
        self.surface = OperationSurface(self.house, Authenticator(storage_manager=self.storage))

    def close(self):
        self.storage.close()


def _run_signed(ctx, wallet_name: str, password: str, payload: dict):
    deployment = Deployment(ctx)
    try:
        keypair = load_keypair(ctx, wallet_name, password)
        nonce = deployment.surface.authenticator.next_nonce(keypair.address)
        logger.debug(f"Signing {payload['op']} as {keypair.address} with nonce {nonce}")
        result = deployment.surface.handle_signed(create_signed_call(payload, nonce, keypair))
    finally:
        deployment.close()

    if result.ok:
        suffix = f" (auction_id={result.value})" if result.value is not None else ""
        click.echo(f"✓ {payload['op']} succeeded{suffix}")
    else:
        click.echo(f"❌ {payload['op']} failed: {result.error} - {result.message}")
        ctx.exit(1)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--data-dir", default=None, help="Data directory (default: config data_dir or ~/.sealbid)")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, dir_okay=False),
              help="JSON or TOML config file")
@click.version_option(version="0.1.0")
@click.pass_context
def cli(ctx, debug, data_dir, config_path):
    """Sealbid - escrowed ledger auction house"""
    config = load_config(config_path)
    if data_dir is None and config_path is None:
        data_dir = "~/.sealbid"
    if data_dir is not None:
        config.data_dir = Path(data_dir).expanduser()

    level = logging.DEBUG if debug else config.logging_level
    setup_logging(level=level, log_dir=str(config.log_dir), log_to_file=config.log_to_file)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["data_dir"] = config.data_dir
    ctx.obj["data_dir"].mkdir(parents=True, exist_ok=True)


# =============================================================================
# Wallet Commands
# =============================================================================

@cli.group()
def wallet():
    """Wallet management commands"""
    pass


@wallet.command("create")
@click.option("--name", default="default", help="Wallet name")
@click.option("--password", prompt=True, hide_input=True, confirmation_prompt=True, help="Encryption password")
@click.pass_context
def wallet_create(ctx, name, password):
    """Create a new encrypted wallet"""
    wallet_path = _wallet_path(ctx, name)
    if wallet_path.exists():
        raise click.ClickException(f"Wallet '{name}' already exists")

    kp = generate_keypair()
    wallet_path.parent.mkdir(parents=True, exist_ok=True)
    wallet_path.write_text(json.dumps({
        "name": name,
        "address": kp.address,
        "encrypted_private_key": _fernet(name, password).encrypt(kp.private_key).decode("utf-8"),
        "public_key": bytes_to_hex(kp.public_key),
    }, indent=2))

    click.echo(f"✓ Wallet created: {name}")
    click.echo(f"  Address: {kp.address}")
    click.echo(f"  Saved to: {wallet_path}")


@wallet.command("list")
@click.pass_context
def wallet_list(ctx):
    """List all wallets"""
    wallet_dir = ctx.obj["data_dir"] / "wallets"
    if not wallet_dir.exists():
        click.echo("No wallets found.")
        return

    for wallet_file in sorted(wallet_dir.glob("*.json")):
        data = json.loads(wallet_file.read_text())
        click.echo(f"  {data['name']}: {data['address']}")


# =============================================================================
# Ledger / Clock Commands
# =============================================================================

@cli.command("fund")
@click.argument("account")
@click.argument("amount", type=click.IntRange(min=1))
@click.pass_context
def fund(ctx, account, amount):
    """Mint AMOUNT to a wallet name or raw identity (host funding)"""
    deployment = Deployment(ctx)
    try:
        address = resolve_account(ctx, account)
        deployment.ledger.mint(address, amount)
        click.echo(f"✓ {address} balance: {deployment.ledger.get_balance(address)}")
    finally:
        deployment.close()


@cli.command("balance")
@click.argument("account")
@click.pass_context
def balance(ctx, account):
    """Show the balance of a wallet name or raw identity"""
    deployment = Deployment(ctx)
    try:
        address = resolve_account(ctx, account)
        click.echo(f"{address}: {deployment.ledger.get_balance(address)}")
    finally:
        deployment.close()


@cli.group()
def clock():
    """Logical clock commands"""
    pass


@clock.command("show")
@click.pass_context
def clock_show(ctx):
    """Show the current height"""
    deployment = Deployment(ctx)
    try:
        click.echo(f"Height: {deployment.clock.current_height()}")
    finally:
        deployment.close()


@clock.command("advance")
@click.option("--blocks", default=1, type=click.IntRange(min=0), help="Blocks to advance")
@click.pass_context
def clock_advance(ctx, blocks):
    """Advance the clock"""
    deployment = Deployment(ctx)
    try:
        click.echo(f"Height: {deployment.clock.advance(blocks)}")
    finally:
        deployment.close()


# =============================================================================
# Auction Commands
# =============================================================================

@cli.group()
def auction():
    """Auction operations (signed with a wallet)"""
    pass


def _wallet_options(f):
    f = click.option("--password", prompt=True, hide_input=True, help="Wallet password")(f)
    f = click.option("--wallet", "wallet_name", required=True, help="Signing wallet name")(f)
    return f


@auction.command("create")
@_wallet_options
@click.option("--item", required=True, help="Item description")
@click.option("--start", required=True, type=int, help="First bidding height")
@click.option("--end", required=True, type=int, help="Closing height")
@click.pass_context
def auction_create(ctx, wallet_name, password, item, start, end):
    """List an item"""
    _run_signed(ctx, wallet_name, password, {"op": "create", "item": item, "start": start, "end": end})


@auction.command("bid")
@_wallet_options
@click.argument("auction_id", type=int)
@click.argument("amount", type=int)
@click.pass_context
def auction_bid(ctx, wallet_name, password, auction_id, amount):
    """Bid AMOUNT on AUCTION_ID"""
    _run_signed(ctx, wallet_name, password, {"op": "bid", "auction_id": auction_id, "amount": amount})


@auction.command("finalize")
@_wallet_options
@click.argument("auction_id", type=int)
@click.pass_context
def auction_finalize(ctx, wallet_name, password, auction_id):
    """Settle an ended auction"""
    _run_signed(ctx, wallet_name, password, {"op": "finalize", "auction_id": auction_id})


@auction.command("cancel")
@_wallet_options
@click.argument("auction_id", type=int)
@click.pass_context
def auction_cancel(ctx, wallet_name, password, auction_id):
    """Cancel an auction that has no bids"""
    _run_signed(ctx, wallet_name, password, {"op": "cancel_auction", "auction_id": auction_id})


@auction.command("refund")
@_wallet_options
@click.argument("auction_id", type=int)
@click.pass_context
def auction_refund(ctx, wallet_name, password, auction_id):
    """Claim remaining escrow from a closed auction"""
    _run_signed(ctx, wallet_name, password, {"op": "claim_refund", "auction_id": auction_id})


@auction.command("show")
@click.argument("auction_id", type=int)
@click.pass_context
def auction_show(ctx, auction_id):
    """Show one auction"""
    deployment = Deployment(ctx)
    try:
        data = deployment.surface.query("auction", auction_id=auction_id)
    finally:
        deployment.close()

    if data is None:
        click.echo(f"Auction {auction_id} not found")
        return
    for key, value in data.items():
        click.echo(f"  {key}: {value}")


@auction.command("list")
@click.pass_context
def auction_list(ctx):
    """List all auctions"""
    deployment = Deployment(ctx)
    try:
        for a in deployment.house.registry:
            if a.auction_id == 0:
                continue
            state = "active" if a.active else "closed"
            click.echo(f"  #{a.auction_id} {a.item!r} [{a.start}, {a.end}) {state} "
                       f"leader={a.highest_bidder} bid={a.highest_bid}")
    finally:
        deployment.close()


# =============================================================================
# Demo Command
# =============================================================================


@cli.command("demo")
def demo():
    """Run the reference auction scenarios in memory"""
    click.echo("=" * 60)
    click.echo("  SEALBID - DEMO")
    click.echo("=" * 60)

    ledger = BalanceLedger()
    chain_clock = BlockClock(height=5)
    house = AuctionHouse(ledger, chain_clock, config=HouseConfig(owner="owner"))
    for account in ("seller", "x", "y"):
        ledger.mint(account, 1000)

    def show(label, outcome):
        click.echo(f"  {label}: {outcome}")

    auction_id, _ = house.create("seller", "Art", 10, 20)
    show("create 'Art' [10, 20) at height 5", f"id={auction_id}")

    chain_clock.set_height(12)
    show("x bids 100 at 12", house.bid("x", auction_id, 100))
    chain_clock.set_height(13)
    show("y bids 50 at 13", house.bid("y", auction_id, 50))
    chain_clock.set_height(14)
    show("y bids 150 at 14", house.bid("y", auction_id, 150))
    show("x balance after refund", ledger.get_balance("x"))

    chain_clock.set_height(21)
    show("seller finalizes at 21", house.finalize("seller", auction_id))
    show("finalize again", house.finalize("seller", auction_id))
    show("seller balance", ledger.get_balance("seller"))
    show("x claims refund", house.claim_refund("x", auction_id))
    show("y claims refund", house.claim_refund("y", auction_id))

    second_id, _ = house.create("seller", "Vase", 30, 40)
    show("create + cancel 'Vase'", house.cancel_auction("seller", second_id))
    chain_clock.set_height(30)
    show("x bids on cancelled auction", house.bid("x", second_id, 10))

    click.echo()
    click.echo(f"📊 {house.stats()}")
    click.echo("✅ Demo complete!")


# =============================================================================
# Stats Command
# =============================================================================


@cli.command("stats")
@click.pass_context
def stats(ctx):
    """Show house statistics"""
    deployment = Deployment(ctx)
    try:
        click.echo("Sealbid Statistics")
        click.echo("-" * 40)
        click.echo(f"  Height: {deployment.clock.current_height()}")
        for key, value in deployment.house.stats().items():
            click.echo(f"  {key}: {value}")
        click.echo(f"  escrow_balance: {deployment.ledger.get_balance(deployment.house.escrow_account)}")
    finally:
        deployment.close()


if __name__ == "__main__":
    cli()
