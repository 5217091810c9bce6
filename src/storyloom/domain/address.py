"""Story addresses: a knot plus one of its stitches."""
from __future__ import annotations

from dataclasses import dataclass

ROOT_KNOT_NAME = "$ROOT$"
ROOT_STITCH_NAME = "$ROOT$"
END_TARGETS = ("END", "DONE")


@dataclass(frozen=True, slots=True)
class Address:
    knot: str
    stitch: str = ROOT_STITCH_NAME

    @property
    def is_root_stitch(self) -> bool:
        return self.stitch == ROOT_STITCH_NAME

    def to_path(self) -> str:
        """Return the dotted form used in scripts and saves."""
        if self.is_root_stitch:
            return self.knot
        return f"{self.knot}.{self.stitch}"

    @classmethod
    def from_path(cls, path: str) -> "Address":
        knot, _, stitch = path.partition(".")
        return cls(knot, stitch or ROOT_STITCH_NAME)


def is_valid_name(name: str) -> bool:
    """Names are non-empty runs of unicode alphanumerics or underscores."""
    return bool(name) and all(ch.isalnum() or ch == "_" for ch in name)
