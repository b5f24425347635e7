"""Configuration for the budget planner.

Settings come from defaults, optionally overridden by a JSON file whose path
is given explicitly or through the ``BUDGET_PLANNER_CONFIG`` environment
variable.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

CONFIG_ENV_VAR = "BUDGET_PLANNER_CONFIG"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass
class AppConfig:
    database: Optional[str] = None  # None -> budget_planner.db at the project root
    secret_key: str = "dev"
    store_timeout: float = 15.0
    currency_symbol: str = "€"
    log_level: str = "INFO"

    @staticmethod
    def load(config_path: Optional[str | Path] = None) -> "AppConfig":
        """Load config from JSON if provided, else use defaults.

        JSON format:
        {
          "database": "data/budget.db",
          "secret_key": "change-me",
          "store_timeout": 20,
          "currency_symbol": "€",
          "log_level": "DEBUG"
        }
        """

        cfg = AppConfig()
        config_path = config_path or os.environ.get(CONFIG_ENV_VAR)
        if not config_path:
            return cfg
        p = Path(config_path)
        if not p.exists():
            raise ValueError(f"Config file not found: {p}")
        with p.open("r", encoding="utf-8") as f:
            raw = json.load(f)
        if not isinstance(raw, dict):
            raise ValueError(f"{p.name}: top-level JSON value must be an object")

        if raw.get("database"):
            cfg.database = str(raw["database"])
        if raw.get("secret_key"):
            cfg.secret_key = str(raw["secret_key"])
        if "store_timeout" in raw:
            try:
                cfg.store_timeout = float(raw["store_timeout"])
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Invalid store_timeout: {raw['store_timeout']!r}") from exc
            if cfg.store_timeout <= 0:
                raise ValueError("store_timeout must be greater than zero")
        if raw.get("currency_symbol"):
            cfg.currency_symbol = str(raw["currency_symbol"])
        if raw.get("log_level"):
            level = str(raw["log_level"]).upper()
            if not isinstance(logging.getLevelName(level), int):
                raise ValueError(f"Unknown log_level: {raw['log_level']!r}")
            cfg.log_level = level
        return cfg


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(format=LOG_FORMAT, level=level)
