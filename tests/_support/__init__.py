"""
Test support utilities for docgate tests.

Seeded generators for random documents and random query shapes, used by
the property-style tests that compare the data interface against the
store's own result set.
"""

from __future__ import annotations

import random
from typing import Any

COLORS = ["red", "green", "blue", "black", "white"]
WORDS = ["bolt", "nut", "washer", "gear", "spring", "axle", "cog", "pin"]
TAGS = ["new", "sale", "heavy", "light", "metal", "plastic"]


class DocumentFactory:
    """Deterministic random documents and queries.

    Every instance with the same seed yields the same sequence, so a
    failing case can be replayed.
    """

    def __init__(self, seed: int = 1234):
        self.seed = seed
        self.rng = random.Random(seed)

    def fields(self) -> dict[str, Any]:
        rng = self.rng
        doc: dict[str, Any] = {
            "name": f"{rng.choice(WORDS)}-{rng.randint(1, 999)}",
            "qty": rng.randint(0, 100),
            "price": round(rng.uniform(0.5, 50.0), 2),
            "active": rng.random() < 0.5,
            "tags": rng.sample(TAGS, rng.randint(0, 3)),
            "spec": {"color": rng.choice(COLORS), "weight": rng.randint(1, 20)},
        }
        # Some documents omit a field entirely
        if rng.random() < 0.2:
            del doc["price"]
        return doc

    def documents(self, n: int) -> list[dict[str, Any]]:
        return [self.fields() for _ in range(n)]

    def filter(self) -> dict[str, Any]:
        rng = self.rng
        shapes = [
            lambda: {},
            lambda: {"active": rng.random() < 0.5},
            lambda: {"qty": {"$gte": rng.randint(0, 100)}},
            lambda: {"qty": {"$lt": rng.randint(0, 100)}},
            lambda: {"spec.color": rng.choice(COLORS)},
            lambda: {"spec.color": {"$in": rng.sample(COLORS, 2)}},
            lambda: {"tags": rng.choice(TAGS)},
            lambda: {"price": {"$exists": rng.random() < 0.5}},
            lambda: {"$or": [{"active": True}, {"qty": {"$gt": rng.randint(0, 100)}}]},
        ]
        return rng.choice(shapes)()

    def query(self) -> dict[str, Any]:
        rng = self.rng
        q: dict[str, Any] = {"query": self.filter()}
        if rng.random() < 0.7:
            keys = rng.sample(["qty", "name", "price", "spec.weight"], rng.randint(1, 2))
            q["sort"] = {k: rng.choice([1, -1]) for k in keys}
        if rng.random() < 0.5:
            q["skip"] = rng.randint(0, 10)
        if rng.random() < 0.5:
            q["limit"] = rng.randint(1, 15)
        return q


def strip_alias(doc: dict[str, Any]) -> dict[str, Any]:
    """Drop the ``id`` alias that plain-data conversion adds."""
    return {k: v for k, v in doc.items() if k != "id"}
