"""Unit tests for topic grouping and duplicate merging."""

from types import SimpleNamespace

from product_factory.services.topic_clustering import (
    group_by_topic,
    normalize_source_url,
    similarity,
    topic_words,
)


def _signal(signal_id: str, title: str, *, url: str = "", stars: int = 0, comments: int = 0) -> SimpleNamespace:
    return SimpleNamespace(
        id=signal_id,
        title=title,
        source_url=url,
        stars=stars,
        comments_count=comments,
        description=f"About {title}",
    )


def test_topic_words_drops_stop_words_years_and_short_tokens() -> None:
    assert topic_words("The Best Seedance 2.0 Tutorial 2025") == {"seedance"}


def test_topic_words_keeps_cjk_text() -> None:
    assert "视频生成" in topic_words("Seedance 视频生成")


def test_topic_words_joins_hyphenated_and_dotted_tokens() -> None:
    assert topic_words("Open-source GPT-4o wrapper") == {"opensource", "gpt4o", "wrapper"}
    assert topic_words("Llama-3 finetuning") == topic_words("Llama3 finetuning") == {"llama3", "finetuning"}


def test_hyphenated_spelling_still_groups_together() -> None:
    signals = [
        _signal("s1", "Llama-3 finetuning"),
        _signal("s2", "Llama3 finetuning"),
    ]

    groups = group_by_topic(signals)

    assert [[member.id for member in group.members] for group in groups] == [["s1", "s2"]]


def test_similarity_is_zero_for_empty_sets() -> None:
    assert similarity(set(), {"seedance"}) == 0.0
    assert similarity({"a1b", "c2d"}, {"a1b", "c2d"}) == 1.0


def test_normalize_source_url_ignores_query_fragment_and_trailing_slash() -> None:
    assert normalize_source_url("https://GitHub.com/foo/bar/?utm=1#readme") == "https://github.com/foo/bar"
    assert normalize_source_url(None) == ""


def test_group_by_topic_joins_similar_titles() -> None:
    signals = [
        _signal("s1", "Seedance video generator released"),
        _signal("s2", "Seedance video generator open source"),
        _signal("s3", "Rust async runtime benchmark"),
    ]

    groups = group_by_topic(signals, threshold=0.4)

    assert [[member.id for member in group.members] for group in groups] == [["s1", "s2"], ["s3"]]


def test_group_by_topic_joins_matching_source_urls() -> None:
    signals = [
        _signal("s1", "Launch of something", url="https://github.com/foo/bar?ref=hn"),
        _signal("s2", "Completely different wording", url="https://github.com/foo/bar/"),
    ]

    groups = group_by_topic(signals)

    assert len(groups) == 1
    assert len(groups[0].members) == 2


def test_group_members_compare_only_with_the_opener() -> None:
    signals = [
        _signal("a", "alpha beta gamma delta"),
        _signal("b", "alpha beta gamma epsilon"),
        _signal("c", "beta gamma epsilon zeta"),
    ]

    groups = group_by_topic(signals, threshold=0.4)

    assert [[member.id for member in group.members] for group in groups] == [["a", "b"], ["c"]]


def test_topic_group_primary_is_highest_traction_member() -> None:
    signals = [
        _signal("s1", "Seedance video generator released", stars=10),
        _signal("s2", "Seedance video generator open source", stars=80, comments=20),
    ]

    group = group_by_topic(signals)[0]

    assert group.primary.id == "s2"
    assert group.merged_ids == ["s1"]
    assert group.signal_ids == ["s2", "s1"]
    assert group.merged_description == (
        "About Seedance video generator open source\n\n"
        "Related signals:\n- Seedance video generator released"
    )


def test_topic_group_primary_tie_keeps_earliest_member() -> None:
    signals = [
        _signal("s1", "Seedance video generator released", stars=5),
        _signal("s2", "Seedance video generator open source", comments=5),
    ]

    group = group_by_topic(signals)[0]

    assert group.primary.id == "s1"


def test_single_member_group_has_nothing_to_merge() -> None:
    group = group_by_topic([_signal("s1", "Seedance video generator")])[0]

    assert group.merged_ids == []
    assert group.merged_description == "About Seedance video generator"
