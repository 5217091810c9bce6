from storyloom.data import get_stories_path, load_script
from storyloom.services import parse_story, read_story_from_string
from tests.helpers.story_helpers import choice_texts, step

LIGHTHOUSE = get_stories_path() / "lighthouse.ink"


def test_bundled_story_reads_cleanly() -> None:
    tree, log = parse_story(load_script(LIGHTHOUSE))

    assert tree.tags == ["title: The Lighthouse Keeper", "author: storyloom"]
    assert tree.knots["shore"].tags == ["location: shore"]
    assert [todo.line for todo in log.todos] == [8]
    assert log.warnings == []


def test_checking_oil_loops_back_to_the_shore() -> None:
    story = read_story_from_string(load_script(LIGHTHOUSE), seed=21)

    texts, prompt = step(story)
    assert texts[0].startswith("The wind drags salt across the rocks. ")
    assert texts[1] == "You stand at the foot of the lighthouse.\n"
    assert choice_texts(prompt) == [
        "Knock on the door",
        "Check the lamp oil",
        "Walk back along the beach",
    ]

    story.make_choice(1)
    texts, prompt = step(story)
    assert texts[0] == "You count 2 measures of oil.\n"
    assert story.get_variable("lamp_oil") == 1
    assert story.get_num_visited("shore") == 2

    story.make_choice(2)
    texts, prompt = step(story)
    assert texts == [
        "The tide is out.\n",
        "The lighthouse stands behind you, as patient as ever.\n",
    ]
    assert prompt.is_done


def test_keeper_path_reaches_the_lamp() -> None:
    story = read_story_from_string(load_script(LIGHTHOUSE), seed=21)
    step(story)

    story.make_choice(0)
    texts, prompt = step(story)
    assert texts == [
        "You knock, firmly.\n",
        "A weathered keeper opens the door.\n",
        '"Who goes there?" ',
        "she asks.\n",
    ]
    assert choice_texts(prompt) == ['"Just traveller."', "Say nothing"]

    story.make_choice(0)
    texts, prompt = step(story)
    assert texts == [
        '"Just traveller."\n',
        '"Then come in, traveller."\n',
        "She leads you up the spiral stairs.\n",
        "The great lamp sits dark. The gauge reads 2 of 5.\n",
    ]
    assert story.get_current_location() == ("lamp_room", "top")
    assert story.get_variable("met_keeper") is True

    story.make_choice(0)
    buffer = []
    prompt = story.resume(buffer)
    assert buffer[0].tags == ["ending: light"]
    assert prompt.is_done
