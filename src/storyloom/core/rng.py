"""Deterministic RNG wrapper built on top of random.Random."""
from __future__ import annotations

from random import Random
from typing import Any, Dict, List

RNGStatePayload = Dict[str, Any]


class RNG:
    """Wrapper around random.Random that provides deterministic helpers."""

    def __init__(self, seed: int) -> None:
        self._random = Random(seed)

    def permutation(self, size: int) -> List[int]:
        """Return a shuffled list of the indices 0..size-1."""
        order = list(range(size))
        self._random.shuffle(order)
        return order

    def export_state(self) -> RNGStatePayload:
        """Return the generator state as a JSON-compatible mapping."""
        version, internal, gauss = self._random.getstate()
        return {"version": version, "internal": list(internal), "gauss": gauss}

    def restore_state(self, payload: RNGStatePayload) -> None:
        """Restore a state produced by export_state.

        Raises ValueError when the payload does not describe a generator state.
        """
        try:
            version = payload["version"]
            internal = tuple(int(value) for value in payload["internal"])
            gauss = payload.get("gauss")
        except (KeyError, TypeError) as exc:
            raise ValueError(f"malformed RNG state: {exc}") from exc
        try:
            self._random.setstate((version, internal, gauss))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"rejected RNG state: {exc}") from exc
