import json

import pytest

from storyloom.domain.defs import LineNode
from storyloom.services import SaveLoadError, SaveService, Story
from tests.helpers.story_helpers import choice_texts, make_story, step

MARKET = "\n".join(
    [
        "VAR coins = 3",
        "VAR last = -> market",
        "=== market ===",
        "{~Bells ring.|Dogs bark.|Carts rumble.}",
        "+ {coins > 0} [Spend] You spend a coin.",
        "  ~ coins = coins - 1",
        "  -> market",
        "* [Leave] You leave.",
        "  -> END",
    ]
)


def _story_at_second_visit() -> Story:
    story = make_story(MARKET, seed=4242)
    step(story)
    story.make_choice(0)
    step(story)
    return story


def _payload(story: Story) -> dict:
    return json.loads(json.dumps(SaveService(story.tree).serialize(story)))


def _play_out(story: Story) -> list[str]:
    texts: list[str] = []
    for _ in range(3):
        story.make_choice(0)
        new_texts, _ = step(story)
        texts.extend(new_texts)
    return texts


def test_round_trip_continues_identically() -> None:
    story = _story_at_second_visit()
    payload = _payload(story)
    restored = SaveService(story.tree).deserialize(payload)

    assert restored.status == "presenting"
    assert choice_texts(restored.current_prompt()) == choice_texts(story.current_prompt())
    assert _play_out(restored) == _play_out(story)
    assert restored.get_variable("coins") == story.get_variable("coins") == 0
    assert restored.get_num_visited("market") == story.get_num_visited("market")


def test_payload_is_versioned_with_metadata() -> None:
    payload = _payload(_story_at_second_visit())

    assert payload["save_version"] == SaveService.SAVE_VERSION
    assert payload["metadata"]["location"] == "market"
    assert payload["metadata"]["status"] == "presenting"
    assert payload["state"]["variables"]["coins"] == {"kind": "int", "value": 2}
    assert payload["state"]["variables"]["last"] == {"kind": "divert", "value": "market"}


def test_restoring_a_finished_story() -> None:
    story = make_story("Only line.")
    step(story)
    restored = SaveService(story.tree).deserialize(_payload(story))

    assert restored.current_prompt().is_done


def test_deserialize_rejects_non_mapping() -> None:
    story = make_story(MARKET)

    with pytest.raises(SaveLoadError):
        SaveService(story.tree).deserialize([])


def _line_node_id(story: Story) -> int:
    return next(index for index, node in enumerate(story.tree.nodes) if isinstance(node, LineNode))


@pytest.mark.parametrize(
    "corrupt",
    [
        lambda payload, story: payload.update(save_version=99),
        lambda payload, story: payload.pop("rng"),
        lambda payload, story: payload.update(rng={"version": 3}),
        lambda payload, story: payload["state"].update(location="nowhere"),
        lambda payload, story: payload["state"].update(status="paused"),
        lambda payload, story: payload["state"].update(seed="abc"),
        lambda payload, story: payload["state"]["variables"]["coins"].update(value=True),
        lambda payload, story: payload["state"]["variables"].update(
            coins={"kind": "string", "value": "x"}
        ),
        lambda payload, story: payload["state"]["variables"].update(ghost={"kind": "int", "value": 1}),
        lambda payload, story: payload["state"]["variables"].pop("last"),
        lambda payload, story: payload["state"]["variables"]["last"].update(value="nowhere"),
        lambda payload, story: payload["state"].update(frames=[[_line_node_id(story), 0]]),
        lambda payload, story: payload["state"].update(frames=[[0]]),
        lambda payload, story: payload["state"].update(visit_counts={"nowhere": 1}),
        lambda payload, story: payload["state"].update(choice_counts={"first": 1}),
        lambda payload, story: payload["state"].update(shuffle_orders={"0": "abc"}),
        lambda payload, story: payload["state"].update(presented=[]),
        lambda payload, story: payload["state"].update(
            presented=[{"branch_id": _line_node_id(story), "text": "x", "tags": []}]
        ),
        lambda payload, story: payload["state"].update(
            presented=[{"branch_id": 10_000, "text": "x", "tags": []}]
        ),
    ],
)
def test_invalid_payloads_are_rejected(corrupt) -> None:
    story = _story_at_second_visit()
    payload = _payload(story)
    corrupt(payload, story)

    with pytest.raises(SaveLoadError):
        SaveService(story.tree).deserialize(payload)
