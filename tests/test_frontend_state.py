import json

from frontend.state import ConfigState, load_document, save_document
from frontend.validators import (
    format_denylist,
    parse_denylist,
    parse_intervals,
    parse_keyword,
    parse_lines,
    parse_user_id,
)


def test_load_document_reports_errors(tmp_path) -> None:
    state = ConfigState()
    load_document(state, tmp_path / "config.json", "config.json")
    assert state.data is None
    assert state.error == "config.json missing"

    path = tmp_path / "keywords.json"
    path.write_text("[1, 2]", encoding="utf-8")
    load_document(state, path, "keywords.json")
    assert state.error == "keywords.json root must be an object"

    path.write_text("{broken", encoding="utf-8")
    load_document(state, path, "keywords.json")
    assert state.error.startswith("keywords.json error:")


def test_save_document_clears_dirty_flag(tmp_path) -> None:
    path = tmp_path / "keywords.json"
    state = ConfigState(data={"global": ["dringend"]}, dirty=True)

    assert save_document(state, path)
    assert not state.dirty
    assert json.loads(path.read_text(encoding="utf-8")) == {"global": ["dringend"]}

    empty = ConfigState()
    assert not save_document(empty, path)
    assert empty.error == "Nothing to save"


def test_validators() -> None:
    assert parse_user_id(" 0042 ") == ("42", None)
    assert parse_user_id("-5") == (None, "user id must be a positive number")
    assert parse_keyword("  birthday   party ") == ("birthday party", None)
    assert parse_keyword("/ok") == (None, "keyword must not start with /")
    assert parse_lines("cake\n\n  cake \nbirthday  party\n") == ["cake", "birthday party"]
    assert parse_intervals("1, 2.5,60") == ([1, 2.5, 60], None)
    assert parse_intervals("1, 0") == (None, "intervals must be positive")
    assert parse_intervals("") == (None, "at least one interval is required")


def test_denylist_lines() -> None:
    denylist, error = parse_denylist("Cake: make, Take\n\nhelp: hell")
    assert error is None
    assert denylist == {"cake": ["make", "take"], "help": ["hell"]}
    assert format_denylist(denylist) == "cake: make, take\nhelp: hell"
    assert parse_denylist("cake make")[0] is None
    assert parse_denylist("cake:")[1] == "no words listed for cake"
