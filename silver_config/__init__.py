"""
silver_config -- single public entrypoint for billing channel configuration.

Responsibility:
    ``get_channel_policies()`` is the only way the rest of the system obtains
    channel policies.  It reads ``sets/channels.yaml`` (or an override path),
    validates it, and returns a read-only ``code -> ChannelPolicy`` mapping.

Architecture position:
    Sits above ``silver_kernel`` and below ``silver_services``.  The kernel
    never imports from here; ``bridges.py`` translates parsed definitions
    into kernel types.

Failure modes:
    - ``FileNotFoundError`` if the file does not exist.
    - ``KeyError`` for a missing required key.
    - ``ValueError`` for unknown keys, bad values, or duplicate prefixes.
    - ``yaml.YAMLError`` for malformed YAML.
"""

import logging
from pathlib import Path
from typing import Mapping

from silver_config.bridges import build_channel_policies
from silver_config.loader import load_config_set
from silver_kernel.domain.channel import ChannelPolicy, policy_for

_logger = logging.getLogger("silver_kernel.config")

_DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "channels.yaml"


def get_channel_policies(config_path: Path | None = None) -> Mapping[str, ChannelPolicy]:
    """
    Load and validate channel policies.

    Every call re-reads the file; callers hold the returned mapping for as
    long as they need it.
    """
    path = Path(config_path) if config_path is not None else _DEFAULT_CONFIG_PATH
    config = load_config_set(path)
    policies = build_channel_policies(config)

    _logger.info(
        "channel_config_loaded",
        extra={
            "config_path": str(path),
            "version": config.version,
            "checksum": config.checksum,
            "channels": sorted(policies),
        },
    )
    return policies


def get_channel_policy(code: str, config_path: Path | None = None) -> ChannelPolicy:
    """Convenience lookup; raises ``UnknownChannelError`` for unknown codes."""
    return policy_for(get_channel_policies(config_path), code)


__all__ = ["get_channel_policies", "get_channel_policy"]
