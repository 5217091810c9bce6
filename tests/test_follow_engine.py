import pytest

from storyloom.domain.address import ROOT_KNOT_NAME
from storyloom.services import (
    ChoicePendingError,
    ConstantViolationError,
    EvaluationError,
    InvalidAddressError,
    InvalidChoiceError,
    InvalidVariableError,
    MadeChoiceWithoutChoiceError,
    OutOfChoicesError,
    StoryFinishedError,
    TypeMismatchError,
    parse_story,
    start_story,
)
from tests.helpers.story_helpers import choice_texts, make_story, step, step_text


def test_two_choices_then_end() -> None:
    story = make_story("*  A\n*  B\n")

    texts, prompt = step(story)
    assert texts == []
    assert choice_texts(prompt) == ["A", "B"]

    story.make_choice(1)
    texts, prompt = step(story)
    assert texts == ["B\n"]
    assert prompt.is_done
    assert story.status == "done"


def test_stopping_sequence_sticks_on_last_item() -> None:
    story = make_story("=== seq ===\n{a1|a2|a3}\n-> END")
    outputs = []
    for _ in range(4):
        outputs.append(step_text(story))
        story.move_to("seq")

    assert outputs == ["a1\n", "a2\n", "a3\n", "a3\n"]


def test_cycle_and_once_only_alternatives() -> None:
    story = make_story("=== loop ===\n{&tick|tock}\n{!first|second}\n-> END")
    outputs = []
    for _ in range(3):
        outputs.append(step_text(story))
        story.move_to("loop")

    assert outputs == ["tick\nfirst\n", "tock\nsecond\n", "tick\n"]


def test_shuffle_is_deterministic_for_a_seed() -> None:
    source = "=== deck ===\n{~a|b|c|d}\n-> END"

    def draws(seed: int) -> list[str]:
        story = make_story(source, seed=seed)
        result = []
        for _ in range(8):
            result.append(step_text(story))
            story.move_to("deck")
        return result

    first = draws(7)
    assert first == draws(7)
    assert sorted(first[:4]) == ["a\n", "b\n", "c\n", "d\n"]
    assert sorted(first[4:]) == ["a\n", "b\n", "c\n", "d\n"]


def test_once_only_and_sticky_choices() -> None:
    source = "\n".join(
        [
            "=== hub ===",
            "* [Once] Once.",
            "  -> hub",
            "+ [Again] Again.",
            "  -> hub",
        ]
    )
    story = make_story(source)

    _, prompt = step(story)
    assert choice_texts(prompt) == ["Once", "Again"]
    story.make_choice(0)
    texts, prompt = step(story)
    assert texts == ["Once.\n"]
    assert choice_texts(prompt) == ["Again"]
    story.make_choice(0)
    texts, prompt = step(story)
    assert texts == ["Again.\n"]
    assert choice_texts(prompt) == ["Again"]


def test_fallback_is_taken_automatically() -> None:
    source = "\n".join(
        [
            "=== shop ===",
            "* [Buy] Bought.",
            "  -> shop",
            "* -> leave",
            "=== leave ===",
            "Bye.",
            "-> END",
        ]
    )
    story = make_story(source)

    step(story)
    story.make_choice(0)
    texts, prompt = step(story)

    assert texts == ["Bought.\n", "Bye.\n"]
    assert prompt.is_done

    story.move_to("shop")
    with pytest.raises(OutOfChoicesError):
        step(story)


def test_out_of_choices_without_fallback() -> None:
    story = make_story("=== loop ===\n* [Only] Once.\n  -> loop")

    step(story)
    story.make_choice(0)
    with pytest.raises(OutOfChoicesError) as excinfo:
        step(story)
    assert excinfo.value.location == "loop"
    assert excinfo.value.line_number == 2


def test_conditional_choices_follow_variables() -> None:
    source = "\n".join(
        [
            "VAR key = false",
            "=== room ===",
            "* {key} [Unlock] Unlocked.",
            "  -> END",
            "* [Wait] Waited.",
            "  -> END",
        ]
    )
    locked = make_story(source)
    _, prompt = step(locked)
    assert choice_texts(prompt) == ["Wait"]

    unlocked = make_story(source)
    unlocked.set_variable("key", True)
    _, prompt = step(unlocked)
    assert choice_texts(prompt) == ["Unlock", "Wait"]
    unlocked.make_choice(0)
    assert step_text(unlocked) == "Unlocked.\n"


def test_nested_choices_and_gathers() -> None:
    source = "\n".join(
        [
            "* [Left] You go left.",
            "  ** [Run] You run.",
            "  ** [Walk] You walk.",
            "  -- You reach a door.",
            "* [Right] You go right.",
            "- Both paths meet.",
            "-> END",
        ]
    )
    story = make_story(source)

    _, prompt = step(story)
    assert choice_texts(prompt) == ["Left", "Right"]
    story.make_choice(0)
    texts, prompt = step(story)
    assert texts == ["You go left.\n"]
    assert choice_texts(prompt) == ["Run", "Walk"]
    story.make_choice(1)
    texts, prompt = step(story)
    assert texts == ["You walk.\n", "You reach a door.\n", "Both paths meet.\n"]
    assert prompt.is_done


def test_conditional_text_tracks_set_variable() -> None:
    story = make_story("VAR x = 2\n{x > 1: big|small}")

    assert step_text(story) == "big\n"
    story.set_variable("x", 0)
    story.move_to(ROOT_KNOT_NAME)
    assert step_text(story) == "small\n"


def test_type_mismatch_leaves_value_unchanged() -> None:
    story = make_story("VAR x = 2\nText.")

    for bad_value in ("two", True, 2.5):
        with pytest.raises(TypeMismatchError):
            story.set_variable("x", bad_value)
    assert story.get_variable("x") == 2


def test_constants_and_unknown_variables_are_rejected() -> None:
    story = make_story("CONST limit = 3\nText.")

    with pytest.raises(ConstantViolationError):
        story.set_variable("limit", 4)
    with pytest.raises(InvalidVariableError):
        story.set_variable("missing", 1)
    with pytest.raises(InvalidVariableError):
        story.get_variable("missing")
    assert story.get_variable("limit") == 3


def test_assignments_and_arithmetic() -> None:
    source = "\n".join(
        [
            "VAR gold = 5",
            "~ gold -= 2",
            "~ gold = gold * 3",
            "You have {gold} gold.",
            "{7 / 2} {-7 / 2} {-7 % 3} {7.0 / 2} {2.0 * 2}",
        ]
    )
    story = make_story(source)

    assert step_text(story) == "You have 9 gold.\n3 -3 -1 3.5 4\n"
    assert story.get_variable("gold") == 9


def test_value_rendering() -> None:
    source = 'VAR flag = true\nVAR name = "Ann"\n{flag} {not flag} {name + "!"}'

    assert step_text(make_story(source)) == "true false Ann!\n"


def test_division_by_zero_raises() -> None:
    story = make_story("VAR zero = 0\n{1 / zero}")

    with pytest.raises(EvaluationError):
        step(story)


def test_divert_variables() -> None:
    source = "\n".join(
        [
            "VAR dest = -> a",
            "-> dest",
            "=== a ===",
            "In a.",
            "-> END",
            "=== b ===",
            "In b.",
            "-> END",
        ]
    )
    story = make_story(source)

    assert step_text(story) == "In a.\n"
    story.set_variable("dest", "-> b")
    assert story.get_variable_as_string("dest") == "b"
    story.move_to(ROOT_KNOT_NAME)
    assert step_text(story) == "In b.\n"

    with pytest.raises(InvalidAddressError):
        story.set_variable("dest", "-> nowhere")
    with pytest.raises(TypeMismatchError):
        story.set_variable("dest", 3)
    assert story.get_variable("dest") == "b"


def test_visit_counts_and_move_to() -> None:
    source = "=== a ===\nVisit {a}.\n-> b\n=== b ===\n= inner\nInner.\n-> END"
    story = make_story(source)

    assert story.get_num_visited("a") == 0
    assert step_text(story) == "Visit 1.\nInner.\n"
    assert story.get_current_location() == ("b", "inner")
    story.move_to("a")
    assert step_text(story) == "Visit 2.\nInner.\n"
    assert story.get_num_visited("a") == 2
    assert story.get_num_visited("b", "inner") == 2

    with pytest.raises(InvalidAddressError):
        story.move_to("nowhere")
    with pytest.raises(InvalidAddressError):
        story.move_to("b", "missing")


def test_glue_joins_lines_across_diverts() -> None:
    source = "\n".join(
        [
            "We hurried <>",
            "-> next",
            "=== next ===",
            "<> home.",
            "I went -> there",
            "= there",
            "there.",
            "-> END",
        ]
    )

    assert step_text(make_story(source)) == "We hurried home.\nI went there.\n"


def test_tags_are_exposed() -> None:
    source = "# author: me\n=== a ===\n# mood: calm\nHello # greeting\n-> END"
    story = make_story(source)

    texts, _ = step(story)
    assert story.get_story_tags() == ["author: me"]
    assert story.get_knot_tags("a") == ["mood: calm"]
    assert texts == ["Hello\n"]
    with pytest.raises(InvalidAddressError):
        story.get_knot_tags("missing")


def test_line_tags_reach_the_buffer() -> None:
    story = make_story("=== a ===\nIntro.\nHello # greeting # wave\n-> END")

    buffer = []
    story.resume(buffer)
    assert [line.tags for line in buffer] == [[], ["greeting", "wave"]]


def test_unicode_knot_names() -> None:
    story = make_story("-> café\n=== café ===\nUn café, s'il vous plaît.\n-> END")

    assert step_text(story) == "Un café, s'il vous plaît.\n"
    assert story.get_current_location() == ("café", None)


def test_lifecycle_errors() -> None:
    story = make_story("* [Go] Gone.\n  -> END")

    with pytest.raises(MadeChoiceWithoutChoiceError):
        story.make_choice(0)
    assert story.current_prompt() is None
    _, prompt = step(story)
    with pytest.raises(ChoicePendingError):
        step(story)
    with pytest.raises(InvalidChoiceError):
        story.make_choice(3)
    assert choice_texts(story.current_prompt()) == choice_texts(prompt)

    story.make_choice(0)
    step(story)
    assert story.current_prompt().is_done
    with pytest.raises(StoryFinishedError):
        step(story)


def test_todo_comments_are_logged() -> None:
    story = make_story("// TODO: write the ending\nHello.")

    assert [(todo.line, todo.message) for todo in story.log.todos] == [(1, "write the ending")]


def test_stitch_shadows_knot_of_the_same_name() -> None:
    source = "\n".join(
        [
            "-> a",
            "=== a ===",
            "-> intro",
            "= intro",
            "Stitch a.intro, visited {intro} time.",
            "-> END",
            "=== intro ===",
            "Knot intro.",
            "-> END",
        ]
    )
    story = make_story(source)

    assert step_text(story) == "Stitch a.intro, visited 1 time.\n"
    assert story.get_current_location() == ("a", "intro")
    assert story.get_num_visited("intro") == 0


def test_stories_started_from_one_tree_share_the_seeded_order() -> None:
    source = "=== deck ===\n{~a|b|c|d|e}\n-> END"
    tree, log = parse_story(source)

    stories = [start_story(tree, log, seed=31), make_story(source, seed=31)]
    outputs = []
    for story in stories:
        draws = []
        for _ in range(5):
            draws.append(step_text(story))
            story.move_to("deck")
        outputs.append(draws)

    assert outputs[0] == outputs[1]
    assert stories[0].state.seed == 31
    assert start_story(tree, log).state.seed >= 0
