# heavythink/config.py
"""
Run config loader — builds a ready ChatSession from a YAML file.

Example ``heavy.yaml``::

    name: heavy
    model: gemini-2.5-pro        # provider inferred from the name
    provider: google             # optional explicit provider
    deep_think: false            # start in deep mode
    elaborate: false             # elaboration topology when not deep
    agents:
      standard: 4
      elaboration: 4
      deep: 6                    # must split into 2 equal groups
    max_tokens: 16384
    max_workers: 8
    max_attachment_mb: 4
    validation:
      python: true
      javascript: true

Every key is optional; a missing file means defaults.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from heavythink import log
from heavythink.attachments import MAX_ATTACHMENT_BYTES
from heavythink.llm_client import LLMClient
from heavythink.orchestration import Orchestrator
from heavythink.progress import ProgressTracker
from heavythink.session import ChatSession
from heavythink.topology import Topology
from heavythink.validator import SyntaxValidator


@dataclass
class HeavyConfig:
    name: str = "heavy"
    model: Optional[str] = None
    provider: Optional[str] = None
    deep_think: bool = False
    elaborate: bool = False
    agents: dict[Topology, int] = field(default_factory=dict)
    max_tokens: int = 16384
    max_workers: int = 8
    max_attachment_bytes: int = MAX_ATTACHMENT_BYTES
    validate_python: bool = True
    validate_javascript: bool = True


def parse_config(raw: dict[str, Any]) -> HeavyConfig:
    """Turn a loaded YAML mapping into a HeavyConfig, validating as it goes."""
    cfg = HeavyConfig()
    cfg.name = raw.get("name", cfg.name)
    cfg.model = raw.get("model")
    cfg.provider = raw.get("provider")
    cfg.deep_think = bool(raw.get("deep_think", False))
    cfg.elaborate = bool(raw.get("elaborate", False))
    cfg.max_tokens = int(raw.get("max_tokens", cfg.max_tokens))
    cfg.max_workers = int(raw.get("max_workers", cfg.max_workers))

    if "max_attachment_mb" in raw:
        cfg.max_attachment_bytes = int(float(raw["max_attachment_mb"]) * 1024 * 1024)

    for key, count in (raw.get("agents") or {}).items():
        try:
            topology = Topology(key)
        except ValueError:
            log.warn(f"Unknown topology '{key}' in agents config, ignoring")
            continue
        # Raises ValueError for counts the topology cannot run
        topology.stages(int(count))
        cfg.agents[topology] = int(count)

    validation = raw.get("validation") or {}
    cfg.validate_python = bool(validation.get("python", True))
    cfg.validate_javascript = bool(validation.get("javascript", True))

    if cfg.max_workers < 1:
        raise ValueError(f"max_workers must be >= 1, got {cfg.max_workers}")
    return cfg


def load_config(config_path: Optional[str] = None) -> HeavyConfig:
    """
    Load a YAML run config.

    Parameters
    ----------
    config_path : str, optional
        Path to the YAML file. ``None`` returns defaults.
    """
    if config_path is None:
        return HeavyConfig()

    path = Path(config_path).resolve()
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: top level must be a mapping")

    return parse_config(raw)


def build_session(cfg: HeavyConfig, client: Optional[LLMClient] = None) -> ChatSession:
    """Wire client, validator, tracker and orchestrator into a ChatSession."""
    if client is None:
        client = LLMClient(provider=cfg.provider, model=cfg.model, max_tokens=cfg.max_tokens)

    orchestrator = Orchestrator(
        client,
        validator=SyntaxValidator(
            python=cfg.validate_python, javascript=cfg.validate_javascript
        ),
        tracker=ProgressTracker(),
        max_workers=cfg.max_workers,
        agent_counts=cfg.agents,
    )
    return ChatSession(
        orchestrator,
        deep_think=cfg.deep_think,
        elaborate=cfg.elaborate,
        max_attachment_bytes=cfg.max_attachment_bytes,
        name=cfg.name,
    )
