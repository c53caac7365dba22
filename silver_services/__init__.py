"""
silver_services -- the public facade of the silver ledger.

Dependency direction:
    silver_services -> silver_config -> silver_kernel   (allowed)
    silver_kernel   -> silver_services                  (FORBIDDEN)
"""

from silver_services.ledger_engine import SYSTEM_ACTOR_ID, LedgerEngine

__all__ = ["LedgerEngine", "SYSTEM_ACTOR_ID"]
