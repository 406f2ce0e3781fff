from __future__ import annotations

from core.detector import KeywordDetector
from core.matcher import MatchEngine
from core.models import KeywordScope


class FakeRegistry:
    def __init__(self) -> None:
        self.global_list = ["urgent"]
        self.personal = {"1": ["cake"], "2": ["birthday party"], "3": ["cake"]}
        self.subs = {"@family": ["1", "2"]}

    def global_keywords(self) -> list[str]:
        return list(self.global_list)

    def personal_keywords(self, user_id: str) -> list[str]:
        return list(self.personal.get(user_id, []))

    def subscribers(self, group: str) -> list[str]:
        return list(self.subs.get(group, []))

    def authorized_users(self) -> list[str]:
        return ["1", "2", "3"]


def _detector(registry: FakeRegistry | None = None) -> KeywordDetector:
    return KeywordDetector(MatchEngine(), registry or FakeRegistry())


def test_global_keywords_apply_everywhere() -> None:
    matches = _detector().detect_keywords("URGENT: cake in the kitchen", "@work")
    assert [(m.keyword, m.scope) for m in matches] == [("urgent", KeywordScope.GLOBAL)]


def test_personal_keywords_only_for_subscribers_of_the_group() -> None:
    matches = _detector().detect_keywords("cake for the birthday-party", "@family")
    assert [(m.keyword, m.scope, m.user_id) for m in matches] == [
        ("cake", KeywordScope.PERSONAL, "1"),
        ("birthday party", KeywordScope.PERSONAL, "2"),
    ]


def test_no_group_means_global_only() -> None:
    detector = _detector()
    assert detector.detect_keywords("cake", None) == []
    assert [k.scope for k in detector.active_keywords()] == [KeywordScope.GLOBAL]


def test_registry_changes_apply_to_the_next_call() -> None:
    registry = FakeRegistry()
    detector = _detector(registry)
    assert detector.detect_keywords("meeting at noon", "@work") == []
    registry.global_list.append("meeting")
    assert [m.keyword for m in detector.detect_keywords("meeting at noon", "@work")] == ["meeting"]


def test_blank_text_detects_nothing() -> None:
    assert _detector().detect_keywords("   ", "@family") == []
