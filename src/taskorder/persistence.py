"""JSON file persistence for work items, blocking edges and engine config."""

from __future__ import annotations

import json
import os
import tempfile
from datetime import datetime
from pathlib import Path

from taskorder.config import EngineConfig
from taskorder.errors import InvalidReferenceError
from taskorder.logger import get_logger
from taskorder.models import BlockingEdge, WorkItem

DEFAULT_DB_FILE = "tasks.json"

logger = get_logger()


class Store:
    """Reads and writes the task database (a single JSON file).

    Every write replaces the whole file through a temporary sibling and
    ``os.replace``, so readers see either the old or the new state.
    """

    def __init__(self, db_path: str | Path = DEFAULT_DB_FILE):
        self.db_path = Path(db_path)

    def load(self) -> tuple[EngineConfig | None, dict[str, WorkItem], list[BlockingEdge]]:
        """Return (config_or_None, {item_id: WorkItem}, edges)."""
        if not self.db_path.exists():
            return None, {}, []

        raw = json.loads(self.db_path.read_text())
        config = EngineConfig.from_dict(raw["config"]) if "config" in raw else None
        items = {iid: WorkItem.from_dict(iid, d) for iid, d in raw.get("items", {}).items()}
        edges = [BlockingEdge.from_dict(e) for e in raw.get("edges", [])]
        return config, items, edges

    def save(
        self,
        config: EngineConfig | None,
        items: dict[str, WorkItem],
        edges: list[BlockingEdge],
    ) -> None:
        """Persist config, items and edges in one atomic file replace."""
        raw: dict = {}
        if config is not None:
            raw["config"] = config.to_dict()
        raw["items"] = {iid: item.to_dict() for iid, item in items.items()}
        raw["edges"] = [e.to_dict() for e in edges]

        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{self.db_path.name}.", dir=self.db_path.parent)
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(raw, f, indent=4)
            os.replace(tmp, self.db_path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def generate_id(self, items: dict[str, WorkItem]) -> str:
        """Generate the next T-N id."""
        existing = [int(k.split("-")[1]) for k in items if k.startswith("T-") and k[2:].isdigit()]
        next_num = max(existing, default=0) + 1
        return f"T-{next_num}"

    # -- collaborator interface used by PlanningService --------------------

    def load_snapshot(self) -> tuple[list[WorkItem], list[BlockingEdge]]:
        _, items, edges = self.load()
        return list(items.values()), edges

    def load_config(self) -> EngineConfig | None:
        config, _, _ = self.load()
        return config

    def commit_schedule(self, assignments: list[tuple[str, datetime, datetime]]) -> None:
        """Write every (id, start, end) at once or none of them."""
        config, items, edges = self.load()
        missing = [iid for iid, _, _ in assignments if iid not in items]
        if missing:
            error = InvalidReferenceError(
                missing[0], missing[0], f"Cannot commit schedule, unknown items: {', '.join(missing)}"
            )
            error.ids = missing
            raise error
        for iid, start, end in assignments:
            items[iid].scheduled_start = start
            items[iid].scheduled_end = end
        self.save(config, items, edges)
        logger.changes("Committed %d scheduled slots to %s", len(assignments), self.db_path)

    def add_edge(self, edge: BlockingEdge) -> None:
        config, items, edges = self.load()
        if edge not in edges:
            edges.append(edge)
            self.save(config, items, edges)

    def remove_edge(self, edge: BlockingEdge) -> bool:
        config, items, edges = self.load()
        if edge not in edges:
            return False
        edges.remove(edge)
        self.save(config, items, edges)
        return True
