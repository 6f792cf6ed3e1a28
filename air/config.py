"""AIR Configuration — session settings from .airrc.yml.

Loads configuration from .airrc.yml (or .airrc.yaml, .airrc.json) found by
walking up from a start directory. Controls:
  - the prover resource limit and tuning options
  - how check-valid discharges its labeled implications
  - where the three session logs are written

Example .airrc.yml:
    rlimit: 5000000
    recommended_options: true
    options:
      smt.random_seed: 7
    check_strategy: per_label     # or: combined
    block_assumptions: sequential # or: scoped
    report_model: true
    air_initial_log: logs/initial.air
    air_final_log: logs/final.air
    smt_log: logs/query.smt2
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

import yaml

from air.errors import UsageError, config_error
from air.smt_verify import CHECK_STRATEGIES, COMBINED

BLOCK_ASSUMPTIONS = ("sequential", "scoped")

OptionValue = Union[bool, int, float]


@dataclass
class AirConfig:
    """Settings for one verification session."""
    # Prover work budget, 0 = unlimited
    rlimit: int = 0
    # Apply the air_recommended_options bundle when the session opens
    recommended_options: bool = True
    # Extra prover options, applied after the bundle in file order
    options: Dict[str, OptionValue] = field(default_factory=dict)
    # "combined" or "per_label"
    check_strategy: str = COMBINED
    # "sequential" or "scoped"
    block_assumptions: str = "sequential"
    report_model: bool = False
    # Log destinations; empty disables the log
    air_initial_log: str = ""
    air_final_log: str = ""
    smt_log: str = ""


_CONFIG_FILES = [
    ".airrc.yml",
    ".airrc.yaml",
    ".airrc.json",
]


def find_config(start_dir: str = ".") -> Optional[str]:
    """Find the nearest config file by walking up from start_dir."""
    current = os.path.abspath(start_dir)
    while True:
        for name in _CONFIG_FILES:
            path = os.path.join(current, name)
            if os.path.isfile(path):
                return path
        parent = os.path.dirname(current)
        if parent == current:
            break
        current = parent
    return None


def load_config(path: Optional[str] = None, start_dir: str = ".") -> AirConfig:
    """Load configuration from a file.

    If no path is given, searches for a config file starting from start_dir.
    If no config file is found, returns defaults.
    """
    if path is None:
        path = find_config(start_dir)

    if path is None:
        return AirConfig()

    with open(path, "r", encoding="utf-8") as f:
        content = f.read()

    try:
        if path.endswith(".json"):
            data = json.loads(content)
        else:
            data = yaml.safe_load(content)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise UsageError(config_error(path, "", f"could not parse: {e}")) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise UsageError(config_error(path, data, "top level must be a mapping"))
    return dict_to_config(data)


def dict_to_config(data: Dict[str, Any]) -> AirConfig:
    """Convert a parsed dict to AirConfig."""
    config = AirConfig()

    if "rlimit" in data:
        rlimit = data["rlimit"]
        if isinstance(rlimit, bool) or not isinstance(rlimit, int) or rlimit < 0:
            raise UsageError(config_error("rlimit", rlimit, "expected a non-negative integer"))
        config.rlimit = rlimit
    if "recommended_options" in data:
        config.recommended_options = bool(data["recommended_options"])
    if "options" in data:
        options = data["options"] or {}
        if not isinstance(options, dict):
            raise UsageError(config_error("options", options, "expected a mapping"))
        for name, value in options.items():
            if not isinstance(value, (bool, int, float)):
                raise UsageError(config_error(
                    f"options.{name}", value, "expected a boolean, integer or float"))
        config.options = {str(k): v for k, v in options.items()}
    if "check_strategy" in data:
        strategy = str(data["check_strategy"])
        if strategy not in CHECK_STRATEGIES:
            raise UsageError(config_error(
                "check_strategy", strategy, f"expected one of {', '.join(CHECK_STRATEGIES)}"))
        config.check_strategy = strategy
    if "block_assumptions" in data:
        mode = str(data["block_assumptions"])
        if mode not in BLOCK_ASSUMPTIONS:
            raise UsageError(config_error(
                "block_assumptions", mode, f"expected one of {', '.join(BLOCK_ASSUMPTIONS)}"))
        config.block_assumptions = mode
    if "report_model" in data:
        config.report_model = bool(data["report_model"])
    for key in ("air_initial_log", "air_final_log", "smt_log"):
        if key in data and data[key]:
            setattr(config, key, str(data[key]))

    return config
