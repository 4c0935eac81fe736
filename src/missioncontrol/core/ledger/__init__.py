"""Ledger 回写 -- INITIATIVES.json 镜像"""

from .resolver import (
    candidate_initiative_ids,
    map_kanban_status,
    resolve_initiative_id,
)
from .sync import LedgerSync

__all__ = [
    "LedgerSync",
    "candidate_initiative_ids",
    "map_kanban_status",
    "resolve_initiative_id",
]
