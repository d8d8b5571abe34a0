"""
Auction house configuration parameters.

Defines the privileged owner, the escrow account, argument bounds and
operational paths. Values come from defaults, an optional JSON/TOML file and
SEALBID_* environment variables (a local .env file is honoured).
"""

import json
import logging
import os
import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from sealbid.utils.validation import DEFAULT_MAX_ITEM_LENGTH, MAX_UINT


ENV_PREFIX = "SEALBID_"


@dataclass
class HouseConfig:
    """Auction house configuration"""

    # Identities
    owner: str = "owner"  # May finalize any auction
    escrow_account: str = "sealbid-escrow"  # Holds bid escrow

    # Argument bounds
    max_item_length: int = DEFAULT_MAX_ITEM_LENGTH
    max_amount: int = MAX_UINT

    # Paths
    data_dir: Path = Path("data")
    log_dir: Path = Path("logs")
    db_name: str = "sealbid.db"

    # Logging
    log_level: str = "INFO"
    log_to_file: bool = False

    def __post_init__(self):
        self.data_dir = Path(self.data_dir)
        self.log_dir = Path(self.log_dir)
        if isinstance(self.log_to_file, str):
            self.log_to_file = self.log_to_file.strip().lower() in ("1", "true", "yes", "on")
        self.max_item_length = int(self.max_item_length)
        self.max_amount = int(self.max_amount)
        if self.owner == self.escrow_account:
            raise ValueError("owner and escrow_account must differ")

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    @property
    def logging_level(self) -> int:
        return logging.getLevelName(self.log_level.upper())


def _read_config_file(config_path: Path) -> dict:
    if config_path.suffix == ".toml":
        with open(config_path, "rb") as fh:
            data = tomllib.load(fh)
        # Allow either a flat file or a [sealbid] table
        return data.get("sealbid", data)
    if config_path.suffix == ".json":
        return json.loads(config_path.read_text())
    raise ValueError(f"Unsupported config format: {config_path.suffix}")


def load_config(config_path: Optional[str] = None, env_file: Optional[str] = None) -> HouseConfig:
    """
    Load configuration from file and environment.

    Precedence: environment > file > defaults.

    Args:
        config_path: Optional path to a .json or .toml file
        env_file: Optional .env file; the default search is used when None

    Returns:
        HouseConfig instance
    """
    known = {f.name for f in fields(HouseConfig)}
    values = {}

    if config_path:
        data = _read_config_file(Path(config_path))
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown config keys: {sorted(unknown)}")
        values.update(data)

    load_dotenv(dotenv_path=env_file, override=False)
    for name in known:
        env_value = os.environ.get(ENV_PREFIX + name.upper())
        if env_value is not None:
            values[name] = env_value

    return HouseConfig(**values)
