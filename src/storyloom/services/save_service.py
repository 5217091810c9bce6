"""Serialization helpers for saving and restoring story progress."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping

from storyloom.core.rng import RNG
from storyloom.core.types import StoryStatus, VariableKind
from storyloom.domain.address import Address
from storyloom.domain.defs import BranchNode, ContainerNode, StoryTree
from storyloom.domain.state import PresentedChoice, StoryState
from storyloom.domain.variable import Variable
from storyloom.services.errors import SaveLoadError
from storyloom.services.follow_engine import Story
from storyloom.services.issues import IssueLog

SavePayload = Dict[str, Any]
_VALID_STATUSES: tuple[StoryStatus, ...] = ("awaiting_resume", "presenting", "done")
_VALID_KINDS: tuple[VariableKind, ...] = ("int", "float", "bool", "string", "divert")


class SaveService:
    """Converts story state to/from a validated, versioned payload.

    The payload holds state only; restoring needs the tree parsed from the
    same script.
    """

    SAVE_VERSION = 1

    def __init__(self, tree: StoryTree, *, log: IssueLog | None = None) -> None:
        self._tree = tree
        self._log = log

    def serialize(self, story: Story) -> SavePayload:
        """Return a JSON-serializable payload for disk persistence."""
        state = story.state
        return {
            "save_version": self.SAVE_VERSION,
            "metadata": self._build_metadata(state),
            "rng": state.rng.export_state(),
            "state": self._serialize_state(state),
        }

    def deserialize(self, payload: Mapping[str, Any]) -> Story:
        """Rebuild a Story from a persisted payload."""
        if not isinstance(payload, Mapping):
            raise SaveLoadError("Save data must be a JSON object.")
        if payload.get("save_version") != self.SAVE_VERSION:
            raise SaveLoadError("Save format is not supported by this version.")
        rng_payload = payload.get("rng")
        state_payload = payload.get("state")
        if not isinstance(rng_payload, Mapping) or not isinstance(state_payload, Mapping):
            raise SaveLoadError("Save data is missing required sections.")

        seed = self._require_int(state_payload.get("seed"), "state.seed")
        rng = RNG(seed)
        try:
            rng.restore_state(dict(rng_payload))
        except ValueError as exc:
            raise SaveLoadError(f"Invalid RNG state: {exc}") from exc

        state = StoryState(
            seed=seed,
            rng=rng,
            location=self._require_address(state_payload.get("location"), "state.location"),
            variables=self._coerce_variables(state_payload.get("variables")),
            status=self._require_status(state_payload.get("status")),
            frames=self._coerce_frames(state_payload.get("frames")),
            visit_counts=self._coerce_visit_counts(state_payload.get("visit_counts")),
            choice_counts=self._coerce_id_counts(state_payload.get("choice_counts"), "state.choice_counts"),
            sequence_cursors=self._coerce_id_counts(
                state_payload.get("sequence_cursors"), "state.sequence_cursors"
            ),
            shuffle_orders=self._coerce_shuffle_orders(state_payload.get("shuffle_orders")),
            presented=self._coerce_presented(state_payload.get("presented")),
        )
        if state.status == "presenting" and not state.presented:
            raise SaveLoadError("state.presented is empty while presenting choices.")
        return Story(self._tree, state, log=self._log)

    def _build_metadata(self, state: StoryState) -> Dict[str, Any]:
        return {
            "location": state.location.to_path(),
            "status": state.status,
            "saved_at": datetime.now(timezone.utc).isoformat(),
        }

    def _serialize_state(self, state: StoryState) -> Dict[str, Any]:
        return {
            "seed": state.seed,
            "location": state.location.to_path(),
            "status": state.status,
            "variables": {
                name: {"kind": value.kind, "value": value.value}
                for name, value in state.variables.items()
            },
            "frames": [list(frame) for frame in state.frames],
            "visit_counts": {
                address.to_path(): count for address, count in state.visit_counts.items()
            },
            "choice_counts": {str(key): count for key, count in state.choice_counts.items()},
            "sequence_cursors": {str(key): count for key, count in state.sequence_cursors.items()},
            "shuffle_orders": {str(key): list(order) for key, order in state.shuffle_orders.items()},
            "presented": [
                {"branch_id": item.branch_id, "text": item.text, "tags": list(item.tags)}
                for item in state.presented
            ],
        }

    def _require_address(self, value: Any, context: str) -> Address:
        path = self._require_str(value, context)
        address = Address.from_path(path)
        if not self._tree.has_address(address):
            raise SaveLoadError(f"{context} references unknown location '{path}'.")
        return address

    def _require_status(self, value: Any) -> StoryStatus:
        if value not in _VALID_STATUSES:
            raise SaveLoadError(f"Invalid status value: {value}")
        return value

    def _coerce_variables(self, value: Any) -> Dict[str, Variable]:
        raw = self._require_dict(value, "state.variables")
        variables: Dict[str, Variable] = {}
        for name, decl in self._tree.variables.items():
            entry = self._require_dict(raw.get(name), f"state.variables.{name}")
            kind = entry.get("kind")
            if kind not in _VALID_KINDS or kind != decl.initial.kind:
                raise SaveLoadError(f"state.variables.{name} has kind {kind}, expected {decl.initial.kind}.")
            variables[name] = self._coerce_variable_value(kind, entry.get("value"), name)
        unknown = set(raw) - set(self._tree.variables)
        if unknown:
            raise SaveLoadError(f"state.variables has undeclared names: {', '.join(sorted(unknown))}")
        return variables

    def _coerce_variable_value(self, kind: VariableKind, value: Any, name: str) -> Variable:
        context = f"state.variables.{name}.value"
        if kind == "bool":
            if not isinstance(value, bool):
                raise SaveLoadError(f"{context} must be a boolean.")
            return Variable("bool", value)
        if kind == "int":
            if isinstance(value, bool):
                raise SaveLoadError(f"{context} must be an integer.")
            return Variable("int", self._require_int(value, context))
        if kind == "float":
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise SaveLoadError(f"{context} must be a number.")
            return Variable("float", float(value))
        if kind == "divert":
            return Variable.divert(self._require_address(value, context).to_path())
        return Variable("string", self._require_str(value, context))

    def _coerce_frames(self, value: Any) -> List[List[int]]:
        frames: List[List[int]] = []
        for index, raw in enumerate(self._require_list(value, "state.frames")):
            context = f"state.frames[{index}]"
            items = self._require_list(raw, context)
            if len(items) != 2:
                raise SaveLoadError(f"{context} must hold a container id and an index.")
            container_id = self._require_node_id(items[0], context)
            if not isinstance(self._tree.nodes.get(container_id), (ContainerNode, BranchNode)):
                raise SaveLoadError(f"{context} does not reference a container.")
            frames.append([container_id, self._require_int(items[1], context)])
        return frames

    def _coerce_visit_counts(self, value: Any) -> Dict[Address, int]:
        counts: Dict[Address, int] = {}
        for path, count in self._require_dict(value, "state.visit_counts").items():
            address = self._require_address(path, "state.visit_counts")
            counts[address] = self._require_int(count, f"state.visit_counts.{path}")
        return counts

    def _coerce_id_counts(self, value: Any, context: str) -> Dict[int, int]:
        counts: Dict[int, int] = {}
        for key, count in self._require_dict(value, context).items():
            counts[self._require_int_key(key, context)] = self._require_int(count, f"{context}.{key}")
        return counts

    def _coerce_shuffle_orders(self, value: Any) -> Dict[int, List[int]]:
        orders: Dict[int, List[int]] = {}
        for key, order in self._require_dict(value, "state.shuffle_orders").items():
            context = f"state.shuffle_orders.{key}"
            orders[self._require_int_key(key, context)] = [
                self._require_int(item, context) for item in self._require_list(order, context)
            ]
        return orders

    def _coerce_presented(self, value: Any) -> List[PresentedChoice]:
        presented: List[PresentedChoice] = []
        for index, raw in enumerate(self._require_list(value, "state.presented")):
            context = f"state.presented[{index}]"
            entry = self._require_dict(raw, context)
            branch_id = self._require_node_id(entry.get("branch_id"), f"{context}.branch_id")
            if not isinstance(self._tree.nodes.get(branch_id), BranchNode):
                raise SaveLoadError(f"{context}.branch_id must reference a choice branch.")
            tags = self._require_list(entry.get("tags", []), f"{context}.tags")
            presented.append(
                PresentedChoice(
                    branch_id=branch_id,
                    text=self._require_str(entry.get("text"), f"{context}.text"),
                    tags=[self._require_str(tag, f"{context}.tags") for tag in tags],
                )
            )
        return presented

    def _require_node_id(self, value: Any, context: str) -> int:
        node_id = self._require_int(value, context)
        if not 0 <= node_id < len(self._tree.nodes):
            raise SaveLoadError(f"{context} references unknown node {node_id}.")
        return node_id

    @staticmethod
    def _require_int_key(value: Any, context: str) -> int:
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise SaveLoadError(f"{context} keys must be integers.") from exc

    @staticmethod
    def _require_str(value: Any, context: str) -> str:
        if not isinstance(value, str):
            raise SaveLoadError(f"{context} must be a string.")
        return value

    @staticmethod
    def _require_int(value: Any, context: str) -> int:
        if not isinstance(value, int) or isinstance(value, bool):
            raise SaveLoadError(f"{context} must be an integer.")
        return value

    @staticmethod
    def _require_list(value: Any, context: str) -> List[Any]:
        if not isinstance(value, list):
            raise SaveLoadError(f"{context} must be a list.")
        return value

    @staticmethod
    def _require_dict(value: Any, context: str) -> Dict[str, Any]:
        if not isinstance(value, Mapping):
            raise SaveLoadError(f"{context} must be an object.")
        return dict(value)
