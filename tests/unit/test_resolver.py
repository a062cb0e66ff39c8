import pytest
from unittest.mock import MagicMock

from selenium.common.exceptions import InvalidSessionIdException, NoSuchElementException, WebDriverException

from shellchrome.core.errors import NotFound
from shellchrome.layers.action.resolver import (
    Candidate,
    ElementResolver,
    ResolutionStrategy,
    effective_role,
    pick_best,
    score_candidate,
)
from shellchrome.layers.sense.records import BoundingBox, DirectHandleLocator, NodeRecord, StructuralLocator
from shellchrome.layers.sense.snapshot_index import SnapshotIndex


def submit_record(**overrides):
    fields = dict(uid="uid_1", role="button", name="Submit", bounding_box=BoundingBox(100, 200, 80, 30))
    fields.update(overrides)
    return NodeRecord(**fields)


def button(index=0, text="Submit", x=100, y=200, tag="button", **kwargs):
    return Candidate(index=index, tag=tag, text=text, x=x, y=y, **kwargs)


def test_full_match_scores_sixty():
    assert score_candidate(submit_record(), button(x=105, y=195)) == 60


def test_shifted_candidate_still_wins_alone():
    best = pick_best(submit_record(), [button(x=150, y=200)])

    assert best is not None
    assert best[1] == 30


def test_text_containment_scores():
    record = submit_record(bounding_box=None)

    assert score_candidate(record, button(text="Submit form")) == 10 + 15
    assert score_candidate(record, button(text="Sub")) == 10 + 10
    assert score_candidate(record, button(text="")) == 10


def test_empty_name_skips_text_term():
    record = submit_record(name=None, bounding_box=None)

    assert score_candidate(record, button(text="anything")) == 10


def test_tie_keeps_first_in_document_order():
    candidates = [button(index=3), button(index=7)]

    candidate, score = pick_best(submit_record(), candidates)
    assert candidate.index == 3
    assert pick_best(submit_record(), candidates)[0].index == 3


def test_no_positive_score_means_no_match():
    record = submit_record(bounding_box=BoundingBox(0, 0, 10, 10))

    assert pick_best(record, [button(tag="div", text="Cancel", x=500, y=500)]) is None
    assert pick_best(record, []) is None


@pytest.mark.parametrize("tag,role,input_type,expected", [
    ("a", None, None, "link"),
    ("button", None, None, "button"),
    ("input", None, "submit", "button"),
    ("input", None, "text", "textbox"),
    ("textarea", None, None, "textbox"),
    ("div", "button", None, "button"),
    ("span", None, None, "span"),
])
def test_effective_role(tag, role, input_type, expected):
    assert effective_role(tag, role, input_type) == expected


def make_resolver(records, driver=None):
    index = SnapshotIndex()
    for record in records:
        index.put(record.uid, record)
    return ElementResolver(driver or MagicMock(), index)


def test_heuristic_resolution_returns_scored_element():
    driver = MagicMock()
    element = MagicMock()

    def execute_script(script, *args):
        if "querySelectorAll('*').map" in script or "Array.from" in script:
            return [
                {"tag": "div", "text": "Submit", "x": 0, "y": 0},
                {"tag": "button", "text": "Submit", "x": 104, "y": 201},
            ]
        assert args == (1, "button")
        return element

    driver.execute_script.side_effect = execute_script
    resolver = make_resolver([submit_record()], driver)

    resolved = resolver.resolve("uid_1")

    assert resolved.element is element
    assert resolved.strategy == ResolutionStrategy.HEURISTIC
    assert resolved.score == 60


def test_unresolvable_uid_raises_not_found():
    driver = MagicMock()
    driver.execute_script.return_value = [{"tag": "p", "text": "Nothing here", "x": 900, "y": 900}]
    resolver = make_resolver([submit_record(bounding_box=BoundingBox(0, 0, 5, 5))], driver)

    with pytest.raises(NotFound):
        resolver.resolve("uid_1")


def test_unknown_uid_raises_not_found():
    with pytest.raises(NotFound):
        make_resolver([]).resolve("uid_4")


def test_direct_handle_is_tagged_found_and_released():
    driver = MagicMock()
    element = MagicMock()
    commands = []

    def cdp(cmd, params):
        commands.append(cmd)
        if cmd == "DOM.resolveNode":
            assert params == {"backendNodeId": 42}
            return {"object": {"objectId": "obj-1"}}
        if cmd == "Runtime.callFunctionOn":
            return {"result": {"value": True}}
        return {}

    driver.execute_cdp_cmd.side_effect = cdp
    driver.find_element.return_value = element
    resolver = make_resolver([submit_record(locator=DirectHandleLocator(42))], driver)

    with resolver.resolve("uid_1") as resolved:
        assert resolved.strategy == ResolutionStrategy.DIRECT
        assert resolved.element is element
        driver.execute_script.assert_not_called()

    assert resolved.released
    assert commands[-1] == "Runtime.releaseObject"
    # Releasing twice is harmless
    resolved.release()
    assert commands.count("Runtime.releaseObject") == 1


def test_direct_failure_falls_back_to_heuristic():
    driver = MagicMock()
    element = MagicMock()
    driver.execute_cdp_cmd.side_effect = WebDriverException("No node with given id found")

    def execute_script(script, *args):
        if args:
            return element
        return [{"tag": "button", "text": "Submit", "x": 100, "y": 200}]

    driver.execute_script.side_effect = execute_script
    resolver = make_resolver([submit_record(locator=DirectHandleLocator(42))], driver)

    assert resolver.resolve("uid_1").strategy == ResolutionStrategy.HEURISTIC


def test_structural_replay_for_visual_records():
    driver = MagicMock()
    element = MagicMock()
    driver.execute_script.return_value = []
    driver.find_element.return_value = element
    scanner = MagicMock()
    scanner.scan.return_value = [
        NodeRecord(uid="ocr_1", role="text", name="Docs", locator=StructuralLocator('//*[@id="docs"]')),
    ]
    resolver = ElementResolver(driver, SnapshotIndex(scanner=scanner))

    resolved = resolver.resolve("ocr_1")

    assert resolved.strategy == ResolutionStrategy.STRUCTURAL
    driver.find_element.assert_called_once_with("xpath", '//*[@id="docs"]')


def test_structural_miss_is_not_found():
    driver = MagicMock()
    driver.execute_script.return_value = []
    driver.find_element.side_effect = NoSuchElementException("gone")
    scanner = MagicMock()
    scanner.scan.return_value = [NodeRecord(uid="ocr_1", name="Docs", locator=StructuralLocator("/html/body/a"))]
    resolver = ElementResolver(driver, SnapshotIndex(scanner=scanner))

    with pytest.raises(NotFound):
        resolver.resolve("ocr_1")


def test_lost_session_is_not_recovered_by_other_strategies():
    driver = MagicMock()
    driver.execute_cdp_cmd.side_effect = InvalidSessionIdException("invalid session id")
    resolver = make_resolver([submit_record(locator=DirectHandleLocator(42))], driver)

    with pytest.raises(InvalidSessionIdException):
        resolver.resolve("uid_1")

    driver.execute_script.assert_not_called()


def test_candidate_text_collapses_whitespace():
    candidate = Candidate.from_dict(0, {"tag": "a", "text": "  Read\n\t   more  ", "x": 0, "y": 0})

    assert candidate.text == "Read more"
    assert score_candidate(NodeRecord(uid="uid_1", role="link", name="Read more"), candidate) == 10 + 20
