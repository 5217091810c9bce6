from tests.helpers.story_helpers import classify, error_codes


def test_headers_are_classified_by_marker_count() -> None:
    lines, issues = classify("=== shore ===\n= top\n== plain")

    assert [(line.kind, line.text) for line in lines] == [
        ("knot", "shore"),
        ("stitch", "top"),
        ("knot", "plain"),
    ]
    assert not issues.has_errors()


def test_choice_depth_counts_markers_across_whitespace() -> None:
    lines, _ = classify("* once\n** [nested] text\n+ + sticky")

    assert [(line.depth, line.is_sticky, line.text) for line in lines] == [
        (1, False, "once"),
        (2, False, "[nested] text"),
        (2, True, "sticky"),
    ]


def test_mixed_choice_markers_are_rejected() -> None:
    _, issues = classify("*+ confused")

    assert error_codes(issues) == ["STICKY_AND_NON_STICKY"]


def test_gather_stops_before_divert_arrow() -> None:
    lines, _ = classify("- - gathered\n- -> END\n-> shore")

    assert [(line.kind, line.depth, line.text) for line in lines] == [
        ("gather", 2, "gathered"),
        ("gather", 1, "-> END"),
        ("divert", 0, "-> shore"),
    ]


def test_declarations_assignments_and_tags() -> None:
    lines, _ = classify("VAR gold = 3\nCONST MAX = 9\n~ gold += 1\n# mood: calm")

    assert [line.kind for line in lines] == ["variable", "variable", "assignment", "tag"]
    assert lines[0].text == "gold = 3"
    assert not lines[0].is_constant
    assert lines[1].is_constant
    assert lines[2].text == "gold += 1"


def test_unsupported_statements_are_reported_and_skipped() -> None:
    lines, issues = classify(
        "INCLUDE other.ink\nEXTERNAL roll()\n<- thread\n=== function roll ===\nStill here."
    )

    assert error_codes(issues) == ["UNSUPPORTED_FEATURE"] * 4
    assert [line.text for line in lines] == ["Still here."]


def test_invalid_names_are_rejected() -> None:
    _, issues = classify("=== not valid ===\n= also-bad")

    assert error_codes(issues) == ["INVALID_NAME", "INVALID_NAME"]


def test_unicode_names_are_valid() -> None:
    lines, issues = classify("=== café ===\n= größe")

    assert [line.text for line in lines] == ["café", "größe"]
    assert not issues.has_errors()


def test_comments_are_stripped_and_todos_logged() -> None:
    source = "Hello // greeting\n\n// TODO: write the ending\n{\"a // b\"}"
    lines, issues = classify(source)

    assert [(line.line_number, line.text) for line in lines] == [(1, "Hello"), (4, '{"a // b"}')]
    assert [(todo.line, todo.message) for todo in issues.log.todos] == [(3, "write the ending")]


def test_escaped_slashes_do_not_start_comments() -> None:
    lines, _ = classify(r"http:\//example")

    assert lines[0].text == r"http:\//example"
