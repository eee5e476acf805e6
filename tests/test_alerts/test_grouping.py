"""Tests for keyword grouping."""

from __future__ import annotations

import pytest

from trendily.alerts.grouping import group_by_keyword


class TestGroupByKeyword:
    def test_partition_has_no_loss_and_no_duplicates(self, make_subscription):
        subs = [
            make_subscription(email="a@x.io", keyword="ai agents"),
            make_subscription(email="b@x.io", keyword="rust"),
            make_subscription(email="c@x.io", keyword="ai agents"),
            make_subscription(email="d@x.io", keyword="llm"),
        ]
        groups = group_by_keyword(subs)

        flattened = [s for members in groups.values() for s in members]
        assert sorted(s.id for s in flattened) == sorted(s.id for s in subs)
        assert len(flattened) == len(subs)

    def test_groups_follow_first_occurrence(self, make_subscription):
        subs = [
            make_subscription(email="a@x.io", keyword="rust"),
            make_subscription(email="b@x.io", keyword="ai agents"),
            make_subscription(email="c@x.io", keyword="rust"),
        ]
        groups = group_by_keyword(subs)
        assert list(groups) == ["rust", "ai agents"]
        assert [s.email for s in groups["rust"]] == ["a@x.io", "c@x.io"]

    def test_keywords_are_case_sensitive(self, make_subscription):
        subs = [make_subscription(keyword="AI"), make_subscription(keyword="ai")]
        assert set(group_by_keyword(subs)) == {"AI", "ai"}

    def test_empty_input(self):
        assert dict(group_by_keyword([])) == {}

    def test_result_is_read_only(self, make_subscription):
        groups = group_by_keyword([make_subscription()])
        with pytest.raises(TypeError):
            groups["other"] = ()  # type: ignore[index]
