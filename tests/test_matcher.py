from __future__ import annotations

from core.config import MatcherConfig
from core.matcher import MatchEngine
from core.models import KeywordScope, MatchType


def _match(text: str, *patterns: str, config: MatcherConfig | None = None):
    engine = MatchEngine(config)
    return engine.match(text, engine.compile_keywords(patterns))


def test_exact_match_ignores_case_and_punctuation() -> None:
    matches = _match("This is URGENT!!", "urgent")
    assert len(matches) == 1
    assert matches[0].keyword == "urgent"
    assert matches[0].match_type is MatchType.EXACT
    assert matches[0].matched_token == "urgent"
    assert matches[0].scope is KeywordScope.GLOBAL


def test_fuzzy_match_reports_the_message_token() -> None:
    matches = _match("urgentt pls help", "urgent")
    assert [(m.match_type, m.matched_token) for m in matches] == [(MatchType.FUZZY, "urgentt")]


def test_numeric_suffix_is_fuzzy() -> None:
    matches = _match("send urgent123 now", "urgent")
    assert [(m.match_type, m.matched_token) for m in matches] == [(MatchType.FUZZY, "urgent123")]


def test_exact_hit_wins_over_earlier_fuzzy_token() -> None:
    matches = _match("urgentt and also urgent", "urgent")
    assert matches[0].match_type is MatchType.EXACT


def test_phrase_matches_once_across_separators() -> None:
    matches = _match("it's her birthday-party today", "birthday party")
    assert len(matches) == 1
    assert matches[0].match_type is MatchType.PHRASE
    assert matches[0].matched_token == "birthday party"


def test_phrase_tolerates_typos_in_each_word() -> None:
    matches = _match("the birthdya partys starts at 5", "birthday party")
    assert [m.match_type for m in matches] == [MatchType.PHRASE]


def test_phrase_needs_adjacent_words() -> None:
    assert _match("birthday was great, the party was not", "birthday party") == []


def test_abbreviation_matches_phrase_keyword() -> None:
    matches = _match("ok btw call me", "by the way")
    assert [(m.match_type, m.matched_token) for m in matches] == [(MatchType.ABBREVIATION, "btw")]


def test_abbreviation_keyword_matches_spelled_out_phrase() -> None:
    matches = _match("reply as soon as possible please", "asap")
    assert [m.match_type for m in matches] == [MatchType.PHRASE]


def test_abbreviation_inside_a_word_is_ignored() -> None:
    config = MatcherConfig(expand_abbreviations=True)
    assert _match("bbtww", "by the way", config=config) == []


def test_denylisted_word_does_not_match() -> None:
    assert _match("I held the door", "help") == []


def test_stop_words_in_the_message_are_not_fuzzy_candidates() -> None:
    assert _match("this is the one", "thee") == []


def test_empty_and_non_string_input() -> None:
    engine = MatchEngine()
    keywords = engine.compile_keywords(["urgent"])
    assert engine.match("", keywords) == []
    assert engine.match("   ", keywords) == []
    assert engine.match(None, keywords) == []  # type: ignore[arg-type]
    assert engine.match("!!!", keywords) == []


def test_blank_keywords_are_skipped() -> None:
    engine = MatchEngine()
    keywords = engine.compile_keywords(["", "   ", "!!!", "urgent"])
    assert [k.pattern for k in keywords] == ["urgent"]


def test_same_keyword_matches_once_per_owner() -> None:
    engine = MatchEngine()
    keywords = engine.compile_keywords(["cake", "cake"], KeywordScope.PERSONAL, "1")
    keywords += engine.compile_keywords(["cake"], KeywordScope.PERSONAL, "2")
    matches = engine.match("cake cake cake", keywords)
    assert [(m.keyword, m.user_id) for m in matches] == [("cake", "1"), ("cake", "2")]


def test_multi_word_keywords_disabled_falls_back_to_word_matching() -> None:
    config = MatcherConfig(multi_word_keywords=False)
    assert _match("birthday party tonight", "birthday party", config=config) == []


def test_fuzzy_disabled_keeps_exact_matches() -> None:
    config = MatcherConfig(fuzzy_matching=False)
    assert _match("urgentt", "urgent", config=config) == []
    assert len(_match("urgent", "urgent", config=config)) == 1


def test_non_latin_keywords() -> None:
    matches = _match("Срочно нужна помощь", "срочно")
    assert [m.match_type for m in matches] == [MatchType.EXACT]


def test_compile_keyword_exposes_normalized_form() -> None:
    keyword = MatchEngine().compile_keyword("B-Day Party!", KeywordScope.PERSONAL, "42")
    assert keyword.normalized == "b day party"
    assert keyword.user_id == "42"


def test_stop_word_keyword_matches_exactly() -> None:
    matches = _match("you may go", "may")
    assert [(m.match_type, m.matched_token) for m in matches] == [(MatchType.EXACT, "may")]
    assert _match("you might go", "may") == []


def test_compiled_cache_drops_least_recently_used_patterns() -> None:
    engine = MatchEngine(cache_size=2)
    engine.compile_keywords(["urgent", "cake"])
    engine.compile_keyword("urgent")
    engine.compile_keyword("typo")
    assert engine.cached_patterns() == ["urgent", "typo"]
    assert [m.keyword for m in engine.match("cake now", engine.compile_keywords(["cake"]))] == ["cake"]
