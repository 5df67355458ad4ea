import unittest
from unittest.mock import MagicMock

import httplib2
from googleapiclient.errors import HttpError

import research_session
from errors import MalformedResponseError, UpstreamError
from key_store import ApiKeys
from models import AnalysisResult, OutlineSection, ScriptOutline, Video
from research_session import (
    InvalidTransitionError, Phase, ResearchSession,
    filter_by_min_ratio, rank_by_ratio, videos_to_dataframe
)

KEYS = ApiKeys(youtube="YT_KEY", gemini="GM_KEY")


def make_video(video_id, ratio, views=1000):
    return Video(
        video_id=video_id,
        title=f"Video {video_id}",
        description=f"About {video_id}",
        thumbnail=f"https://i.ytimg.com/{video_id}/hq.jpg",
        channel_title="Channel",
        channel_id="ch1",
        published_at="2025-01-01T00:00:00Z",
        view_count=views,
        subscriber_count=100,
        performance_ratio=ratio,
    )


def make_analysis(summary="Viewers want more"):
    return AnalysisResult(
        summary=summary,
        pros=["a", "b", "c"],
        cons=["d", "e", "f"],
        keywords=["k1", "k2", "k3", "k4", "k5"],
        ideas=[],
    )


def make_outline(keyword):
    return ScriptOutline(
        keyword=keyword,
        title=f"All about {keyword}",
        intro="Hook",
        sections=[OutlineSection("One", "1"), OutlineSection("Two", "2"), OutlineSection("Three", "3")],
        outro="Bye",
    )


def make_session(videos=None):
    session = ResearchSession(
        search_fn=MagicMock(return_value=videos if videos is not None else [
            make_video("low", 0.5), make_video("high", 5.0), make_video("mid", 1.5)
        ]),
        comments_fn=MagicMock(return_value=["nice"]),
        analyze_fn=MagicMock(return_value=make_analysis()),
        outline_fn=MagicMock(side_effect=lambda key, kw, ctx: make_outline(kw)),
    )
    return session


class TestRankingAndFiltering(unittest.TestCase):

    def test_rank_descending_by_ratio(self):
        ranked = rank_by_ratio([make_video("a", 0.5), make_video("b", 5.0), make_video("c", 1.5)])
        self.assertEqual([v.performance_ratio for v in ranked], [5.0, 1.5, 0.5])

    def test_filter_keeps_order(self):
        videos = [make_video(str(r), r) for r in (0.5, 1.5, 3.0, 5.0)]
        self.assertEqual([v.performance_ratio for v in filter_by_min_ratio(videos, 3)], [3.0, 5.0])

    def test_dataframe_columns(self):
        df = videos_to_dataframe([make_video("a", 2.0)])
        self.assertEqual(df.iloc[0]['Video_URL'], "https://www.youtube.com/watch?v=a")
        self.assertEqual(df.iloc[0]['Performance_Ratio'], 2.0)
        self.assertEqual(len(videos_to_dataframe([])), 0)


class TestSearch(unittest.TestCase):

    def test_search_sorts_and_shows_results(self):
        session = make_session()
        self.assertTrue(session.search(KEYS, " cooking ", "short"))

        session.search_fn.assert_called_once_with("YT_KEY", "cooking", "short")
        self.assertEqual(session.phase, Phase.RESULTS)
        self.assertEqual([v.performance_ratio for v in session.videos], [5.0, 1.5, 0.5])
        self.assertIsNone(session.error)

    def test_missing_youtube_key_never_searches(self):
        session = make_session()
        self.assertFalse(session.search(ApiKeys(gemini="GM_KEY"), "cooking"))
        session.search_fn.assert_not_called()
        self.assertEqual(session.error, research_session.MSG_NEED_YOUTUBE_KEY)
        self.assertEqual(session.phase, Phase.IDLE)

    def test_blank_keyword_is_ignored(self):
        session = make_session()
        self.assertFalse(session.search(KEYS, "   "))
        session.search_fn.assert_not_called()

    def test_empty_result_is_a_notice_not_an_error(self):
        session = make_session(videos=[])
        session.search(KEYS, "zzzz")
        self.assertIsNone(session.error)
        self.assertEqual(session.notice, research_session.MSG_NO_RESULTS)
        self.assertEqual(session.phase, Phase.IDLE)

    def test_empty_result_keeps_keyword_of_shown_list(self):
        session = make_session()
        session.search(KEYS, "cooking", "short")
        session.search_fn.return_value = []

        self.assertFalse(session.search(KEYS, "zzzz", "long"))
        self.assertEqual(session.keyword, "cooking")
        self.assertEqual(session.video_type.value, "short")
        self.assertEqual(len(session.videos), 3)

    def test_missing_key_replaces_no_results_notice(self):
        session = make_session(videos=[])
        session.search(KEYS, "zzzz")

        session.search(ApiKeys(gemini="GM_KEY"), "cooking")
        self.assertEqual(session.error, research_session.MSG_NEED_YOUTUBE_KEY)
        self.assertIsNone(session.notice)

    def test_dismiss_error_keeps_results(self):
        session = make_session()
        session.search(KEYS, "cooking")
        session.search_fn.side_effect = UpstreamError("quotaExceeded")
        session.search(KEYS, "baking")

        session.dismiss_error()
        self.assertIsNone(session.error)
        self.assertEqual(session.phase, Phase.RESULTS)
        self.assertEqual(len(session.videos), 3)

    def test_search_error_keeps_previous_results(self):
        session = make_session()
        session.search(KEYS, "cooking")
        session.search_fn.side_effect = UpstreamError("quotaExceeded")

        self.assertFalse(session.search(KEYS, "baking"))
        self.assertEqual(session.error, "quotaExceeded")
        self.assertEqual(session.phase, Phase.RESULTS)
        self.assertEqual(len(session.videos), 3)

    def test_later_http_error_uses_upstream_message(self):
        session = make_session()
        session.search_fn.side_effect = HttpError(
            httplib2.Response({'status': '400'}), b'{"error": {"message": "Bad id"}}'
        )
        session.search(KEYS, "cooking")
        self.assertEqual(session.error, "Bad id")
        self.assertEqual(session.phase, Phase.IDLE)

    def test_unexpected_error_uses_generic_message(self):
        session = make_session()
        session.search_fn.side_effect = KeyError("snippet")
        session.search(KEYS, "cooking")
        self.assertEqual(session.error, research_session.MSG_SEARCH_FAILED)

    def test_new_search_clears_analysis(self):
        session = make_session()
        session.search(KEYS, "cooking")
        session.select_video(KEYS, session.videos[0])
        session.search(KEYS, "baking")
        self.assertIsNone(session.selected)
        self.assertIsNone(session.analysis)
        self.assertEqual(session.phase, Phase.RESULTS)

    def test_min_ratio_filters_without_network(self):
        session = make_session(videos=[make_video(str(r), r) for r in (0.5, 1.5, 3.0, 5.0)])
        session.search(KEYS, "cooking")
        session.search_fn.reset_mock()

        session.set_min_ratio(3)
        self.assertEqual([v.performance_ratio for v in session.visible_videos], [5.0, 3.0])
        session.search_fn.assert_not_called()

        with self.assertRaises(ValueError):
            session.set_min_ratio(2)


class TestAnalysis(unittest.TestCase):

    def setUp(self):
        self.session = make_session()
        self.session.search(KEYS, "cooking")
        self.video = self.session.videos[0]

    def test_select_video_fetches_comments_then_analyzes(self):
        self.assertTrue(self.session.select_video(KEYS, self.video))

        self.session.comments_fn.assert_called_once_with("YT_KEY", "high")
        self.session.analyze_fn.assert_called_once_with("GM_KEY", "Video high", "About high", ["nice"])
        self.assertEqual(self.session.phase, Phase.ANALYSIS)
        self.assertEqual(self.session.selected, self.video)

    def test_missing_gemini_key_makes_no_calls(self):
        self.assertFalse(self.session.select_video(ApiKeys(youtube="YT_KEY"), self.video))
        self.session.comments_fn.assert_not_called()
        self.session.analyze_fn.assert_not_called()
        self.assertEqual(self.session.error, research_session.MSG_NEED_GEMINI_KEY)
        self.assertEqual(self.session.phase, Phase.RESULTS)

    def test_prior_analysis_cleared_while_loading(self):
        self.session.select_video(KEYS, self.video)
        self.session.select_keyword(KEYS, "k1")

        seen = {}

        def analyze(*args):
            seen['analysis'] = self.session.analysis
            seen['outline'] = self.session.outline
            seen['phase'] = self.session.phase
            return make_analysis("second")

        self.session.analyze_fn.side_effect = analyze
        self.session.select_video(KEYS, self.session.videos[1])

        self.assertIsNone(seen['analysis'])
        self.assertIsNone(seen['outline'])
        self.assertEqual(seen['phase'], Phase.ANALYZING)
        self.assertEqual(self.session.analysis.summary, "second")

    def test_select_video_clears_no_results_notice(self):
        self.session.search_fn.return_value = []
        self.session.search(KEYS, "zzzz")
        self.assertEqual(self.session.notice, research_session.MSG_NO_RESULTS)

        self.assertTrue(self.session.select_video(KEYS, self.video))
        self.assertIsNone(self.session.notice)
        self.assertEqual(self.session.phase, Phase.ANALYSIS)

    def test_malformed_analysis_shows_generic_error(self):
        self.session.analyze_fn.side_effect = MalformedResponseError("bad json")
        self.assertFalse(self.session.select_video(KEYS, self.video))
        self.assertEqual(self.session.error, research_session.MSG_ANALYSIS_FAILED)
        self.assertEqual(self.session.phase, Phase.RESULTS)
        self.assertIsNone(self.session.selected)
        self.assertEqual(len(self.session.videos), 3)

    def test_close_analysis_discards_state(self):
        self.session.select_video(KEYS, self.video)
        self.session.select_keyword(KEYS, "k2")
        self.session.close_analysis()

        self.assertEqual(self.session.phase, Phase.RESULTS)
        self.assertIsNone(self.session.selected)
        self.assertIsNone(self.session.analysis)
        self.assertIsNone(self.session.outline)


class TestOutline(unittest.TestCase):

    def setUp(self):
        self.session = make_session()
        self.session.search(KEYS, "cooking")
        self.session.select_video(KEYS, self.session.videos[0])

    def test_select_keyword_builds_outline_with_context(self):
        self.assertTrue(self.session.select_keyword(KEYS, "k1"))
        self.session.outline_fn.assert_called_once_with("GM_KEY", "k1", "Video high Viewers want more")
        self.assertEqual(self.session.phase, Phase.OUTLINE)
        self.assertEqual(self.session.outline.keyword, "k1")

    def test_new_keyword_replaces_outline(self):
        self.session.select_keyword(KEYS, "k1")
        self.session.select_keyword(KEYS, "k3")
        self.assertEqual(self.session.outline.keyword, "k3")
        self.assertEqual(self.session.selected_keyword, "k3")

    def test_missing_gemini_key(self):
        self.assertFalse(self.session.select_keyword(ApiKeys(youtube="YT_KEY"), "k1"))
        self.session.outline_fn.assert_not_called()
        self.assertEqual(self.session.error, research_session.MSG_NEED_GEMINI_KEY)

    def test_outline_failure_keeps_previous_outline(self):
        self.session.select_keyword(KEYS, "k1")
        self.session.outline_fn.side_effect = RuntimeError("boom")

        self.assertFalse(self.session.select_keyword(KEYS, "k2"))
        self.assertEqual(self.session.error, research_session.MSG_OUTLINE_FAILED)
        self.assertEqual(self.session.outline.keyword, "k1")
        self.assertEqual(self.session.phase, Phase.OUTLINE)

    def test_outline_failure_restores_selected_keyword(self):
        self.session.select_keyword(KEYS, "k1")
        self.session.outline_fn.side_effect = RuntimeError("boom")

        self.session.select_keyword(KEYS, "k2")
        self.assertEqual(self.session.selected_keyword, "k1")
        self.assertEqual(self.session.selected_keyword, self.session.outline.keyword)

    def test_first_outline_failure_leaves_no_keyword_selected(self):
        self.session.outline_fn.side_effect = RuntimeError("boom")
        self.session.select_keyword(KEYS, "k1")
        self.assertIsNone(self.session.selected_keyword)
        self.assertEqual(self.session.phase, Phase.ANALYSIS)

    def test_outline_upstream_error_shows_outline_message(self):
        self.session.outline_fn.side_effect = UpstreamError("quotaExceeded")
        self.session.select_keyword(KEYS, "k1")
        self.assertEqual(self.session.error, research_session.MSG_OUTLINE_FAILED)

    def test_keyword_without_analysis_is_rejected(self):
        session = make_session()
        with self.assertRaises(InvalidTransitionError):
            session.select_keyword(KEYS, "k1")


class TestStaleResponses(unittest.TestCase):

    def test_superseded_search_is_dropped(self):
        session = make_session()
        newer = [make_video("new", 9.0)]

        def slow_search(key, keyword, video_type):
            if keyword == "old":
                # A newer search starts and finishes before this one returns
                session.search_fn = MagicMock(return_value=newer)
                session.search(KEYS, "new")
                return [make_video("stale", 1.0)]
            return newer

        session.search_fn = slow_search
        self.assertFalse(session.search(KEYS, "old"))
        self.assertEqual([v.video_id for v in session.videos], ["new"])
        self.assertEqual(session.keyword, "new")
        self.assertEqual(session.phase, Phase.RESULTS)

    def test_analysis_after_close_is_dropped(self):
        session = make_session()
        session.search(KEYS, "cooking")

        def analyze(*args):
            session.close_analysis()
            return make_analysis()

        session.analyze_fn.side_effect = analyze
        self.assertFalse(session.select_video(KEYS, session.videos[0]))
        self.assertIsNone(session.analysis)
        self.assertEqual(session.phase, Phase.RESULTS)

    def test_outline_for_old_video_is_dropped(self):
        session = make_session()
        session.search(KEYS, "cooking")
        session.select_video(KEYS, session.videos[0])

        def outline(key, kw, ctx):
            session.select_video(KEYS, session.videos[1])
            return make_outline(kw)

        session.outline_fn = MagicMock(side_effect=outline)
        self.assertFalse(session.select_keyword(KEYS, "k1"))
        self.assertIsNone(session.outline)
        self.assertEqual(session.selected.video_id, "mid")
        self.assertEqual(session.phase, Phase.ANALYSIS)


class TestTransitions(unittest.TestCase):

    def test_every_phase_has_an_entry(self):
        for phase in Phase:
            self.assertIn(phase, research_session.TRANSITIONS)

    def test_cannot_analyze_before_search(self):
        session = make_session()
        with self.assertRaises(InvalidTransitionError):
            session.select_video(KEYS, make_video("x", 1.0))

    def test_loading_phases(self):
        self.assertTrue(Phase.SEARCHING.is_loading)
        self.assertFalse(Phase.RESULTS.is_loading)


if __name__ == '__main__':
    unittest.main()
