from storyloom.services.line_buffer import Line, RenderedLine, process_buffer


def _texts(rendered: list[RenderedLine]) -> list[str]:
    return [line.text for line in process_buffer(rendered)]


def test_plain_lines_end_with_newlines() -> None:
    assert _texts([RenderedLine("Hello"), RenderedLine("  World  ")]) == ["Hello\n", "World\n"]


def test_blank_lines_are_dropped() -> None:
    assert _texts([RenderedLine("   "), RenderedLine("Text"), RenderedLine("")]) == ["Text\n"]


def test_glue_without_whitespace_joins_exactly() -> None:
    assert _texts([RenderedLine("Hel", glue_end=True), RenderedLine("lo")]) == ["Hel", "lo\n"]


def test_glue_collapses_whitespace_at_the_joint() -> None:
    rendered = [RenderedLine("Hello  ", glue_end=True), RenderedLine("  world")]

    assert _texts(rendered) == ["Hello ", "world\n"]


def test_glue_begin_on_the_next_line() -> None:
    assert _texts([RenderedLine("a "), RenderedLine("b", glue_begin=True)]) == ["a ", "b\n"]


def test_trailing_glue_on_last_line_is_ignored() -> None:
    assert _texts([RenderedLine("end", glue_end=True)]) == ["end\n"]


def test_tags_are_preserved() -> None:
    processed = process_buffer([RenderedLine("Hi", tags=["wave"])])

    assert processed == [Line("Hi\n", ["wave"])]
