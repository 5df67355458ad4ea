"""
Research session: the app's state machine, kept free of Streamlit.

The session moves through explicit phases:

    IDLE -> SEARCHING -> RESULTS <-> ANALYZING -> ANALYSIS <-> OUTLINING -> OUTLINE

Errors are an overlay (`error`) on top of whatever phase the session is in,
so a failed action never loses the result list. Every action takes a request
token; a response that comes back after a newer action has started is
dropped.
"""

import logging
from enum import Enum
from typing import Callable, List, Optional

import pandas as pd
from googleapiclient.errors import HttpError

from errors import MalformedResponseError, TubeTrendError
from gemini_service import analyze_content, generate_script_outline
from key_store import ApiKeys
from models import RATIO_BREAKPOINTS, AnalysisResult, ScriptOutline, Video, VideoType
from youtube_service import get_video_comments, search_videos, upstream_message

logger = logging.getLogger(__name__)

# User-facing messages
MSG_NEED_YOUTUBE_KEY = "YouTube API 키를 먼저 입력해주세요 (상단 설정)."
MSG_NEED_GEMINI_KEY = "Gemini API 키를 먼저 입력해주세요 (상단 설정)."
MSG_NO_RESULTS = "검색 결과가 없습니다. 키워드나 필터를 변경해보세요."
MSG_SEARCH_FAILED = "검색 중 오류가 발생했습니다."
MSG_ANALYSIS_FAILED = "AI 분석 중 오류가 발생했습니다."
MSG_OUTLINE_FAILED = "대본 생성 중 오류가 발생했습니다."


class Phase(str, Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    RESULTS = "results"
    ANALYZING = "analyzing"
    ANALYSIS = "analysis"
    OUTLINING = "outlining"
    OUTLINE = "outline"

    @property
    def is_loading(self) -> bool:
        return self in (Phase.SEARCHING, Phase.ANALYZING, Phase.OUTLINING)


TRANSITIONS = {
    Phase.IDLE: {Phase.SEARCHING},
    Phase.SEARCHING: {Phase.SEARCHING, Phase.IDLE, Phase.RESULTS},
    Phase.RESULTS: {Phase.SEARCHING, Phase.ANALYZING},
    Phase.ANALYZING: {Phase.SEARCHING, Phase.ANALYZING, Phase.RESULTS, Phase.ANALYSIS},
    Phase.ANALYSIS: {Phase.SEARCHING, Phase.ANALYZING, Phase.OUTLINING, Phase.RESULTS},
    Phase.OUTLINING: {
        Phase.SEARCHING, Phase.ANALYZING, Phase.OUTLINING,
        Phase.RESULTS, Phase.ANALYSIS, Phase.OUTLINE,
    },
    Phase.OUTLINE: {Phase.SEARCHING, Phase.ANALYZING, Phase.OUTLINING, Phase.RESULTS},
}


class InvalidTransitionError(RuntimeError):
    """An action was attempted from a phase that does not allow it."""


def rank_by_ratio(videos: List[Video]) -> List[Video]:
    """Highest performance ratio first. Ties keep API order."""
    return sorted(videos, key=lambda v: v.performance_ratio, reverse=True)


def filter_by_min_ratio(videos: List[Video], min_ratio: float) -> List[Video]:
    return [v for v in videos if v.performance_ratio >= min_ratio]


def videos_to_dataframe(videos: List[Video]) -> pd.DataFrame:
    """Tabular view of a result list, for display and CSV export."""
    columns = [
        'Video_Title', 'Channel_Name', 'Performance_Ratio',
        'Views', 'Subscribers', 'Publish_Date', 'Video_URL',
    ]
    rows = [{
        'Video_Title': v.title,
        'Channel_Name': v.channel_title,
        'Performance_Ratio': v.performance_ratio,
        'Views': v.view_count,
        'Subscribers': v.subscriber_count,
        'Publish_Date': v.published_at,
        'Video_URL': v.url,
    } for v in videos]
    return pd.DataFrame(rows, columns=columns)


def describe_error(error: Exception, fallback: str) -> str:
    """Message to show for a failed action."""
    if isinstance(error, MalformedResponseError):
        return fallback
    if isinstance(error, TubeTrendError):
        return error.message or fallback
    if isinstance(error, HttpError):
        return upstream_message(error)
    return fallback


class ResearchSession:
    """
    Owns everything the page shows: results, selection, analysis, outline.

    The client functions are injectable so tests can drive the state machine
    without network access.
    """

    def __init__(
        self,
        search_fn: Callable = search_videos,
        comments_fn: Callable = get_video_comments,
        analyze_fn: Callable = analyze_content,
        outline_fn: Callable = generate_script_outline,
    ):
        self.search_fn = search_fn
        self.comments_fn = comments_fn
        self.analyze_fn = analyze_fn
        self.outline_fn = outline_fn

        self.phase = Phase.IDLE
        self.keyword = ""
        self.video_type = VideoType.ALL
        self.min_ratio = 0
        self.videos: List[Video] = []
        self.selected: Optional[Video] = None
        self.analysis: Optional[AnalysisResult] = None
        self.selected_keyword: Optional[str] = None
        self.outline: Optional[ScriptOutline] = None
        self.error: Optional[str] = None
        self.notice: Optional[str] = None
        self._token = 0

    # --- internals ---

    def _transition(self, to: Phase) -> None:
        if to not in TRANSITIONS[self.phase]:
            raise InvalidTransitionError(f"Cannot go from {self.phase.value} to {to.value}")
        logger.debug(f"Phase {self.phase.value} -> {to.value}")
        self.phase = to

    def _begin(self, to: Phase) -> int:
        self._transition(to)
        self._token += 1
        return self._token

    def _is_current(self, token: int) -> bool:
        if token != self._token:
            logger.info(f"Dropping stale response (token {token}, current {self._token})")
            return False
        return True

    def _fail(self, error: Exception, fallback: str, message: Optional[str] = None) -> None:
        """Show `message` if given, else whatever describe_error picks."""
        self.error = message or describe_error(error, fallback)
        if isinstance(error, (TubeTrendError, HttpError)):
            logger.warning(f"{fallback} {error}")
        else:
            logger.exception(fallback)

    @property
    def _settled_phase(self) -> Phase:
        return Phase.RESULTS if self.videos else Phase.IDLE

    # --- derived state ---

    @property
    def visible_videos(self) -> List[Video]:
        return filter_by_min_ratio(self.videos, self.min_ratio)

    # --- actions ---

    def search(self, keys: ApiKeys, keyword: str, video_type="all") -> bool:
        """
        Run a keyword search. Returns True if the result list was replaced.

        `keyword` and `video_type` always describe the list on screen, so they
        only change together with it.
        """
        if not keys.has_youtube:
            self.error = MSG_NEED_YOUTUBE_KEY
            self.notice = None
            return False
        if not keyword or not keyword.strip():
            return False

        term = keyword.strip()
        video_type = VideoType(video_type)
        token = self._begin(Phase.SEARCHING)
        self.error = None
        self.notice = None
        self.selected = None
        self.analysis = None
        self.selected_keyword = None
        self.outline = None

        try:
            results = self.search_fn(keys.youtube, term, video_type.value)
        except Exception as e:
            if self._is_current(token):
                self._fail(e, MSG_SEARCH_FAILED)
                self._transition(self._settled_phase)
            return False

        if not self._is_current(token):
            return False
        if not results:
            self.notice = MSG_NO_RESULTS
            self._transition(self._settled_phase)
            return False

        self.keyword = term
        self.video_type = video_type
        self.videos = rank_by_ratio(results)
        self._transition(Phase.RESULTS)
        return True

    def set_min_ratio(self, value) -> None:
        """Change the minimum-ratio filter. No network calls."""
        if value not in RATIO_BREAKPOINTS:
            raise ValueError(f"Minimum ratio must be one of {RATIO_BREAKPOINTS}")
        self.min_ratio = value

    def select_video(self, keys: ApiKeys, video: Video) -> bool:
        """Fetch comments, then analyze them. Returns True on a shown analysis."""
        if not keys.has_gemini:
            self.error = MSG_NEED_GEMINI_KEY
            self.notice = None
            return False

        token = self._begin(Phase.ANALYZING)
        self.selected = video
        self.analysis = None
        self.selected_keyword = None
        self.outline = None
        self.error = None
        self.notice = None

        try:
            comments = self.comments_fn(keys.youtube, video.video_id)
            if not self._is_current(token):
                return False
            result = self.analyze_fn(keys.gemini, video.title, video.description, comments)
        except Exception as e:
            if self._is_current(token):
                self._fail(e, MSG_ANALYSIS_FAILED)
                self.selected = None
                self._transition(Phase.RESULTS)
            return False

        if not self._is_current(token):
            return False
        self.analysis = result
        self._transition(Phase.ANALYSIS)
        return True

    def select_keyword(self, keys: ApiKeys, keyword: str) -> bool:
        """Draft a script outline for a keyword from the current analysis."""
        if self.analysis is None or self.selected is None:
            raise InvalidTransitionError("No analysis to pick a keyword from")
        if not keys.has_gemini:
            self.error = MSG_NEED_GEMINI_KEY
            return False

        had_outline = self.outline is not None
        previous_keyword = self.selected_keyword
        token = self._begin(Phase.OUTLINING)
        self.selected_keyword = keyword
        self.error = None
        context = f"{self.selected.title} {self.analysis.summary}"

        try:
            outline = self.outline_fn(keys.gemini, keyword, context)
        except Exception as e:
            if self._is_current(token):
                self._fail(e, MSG_OUTLINE_FAILED, message=MSG_OUTLINE_FAILED)
                # The highlighted keyword must match the outline still shown
                self.selected_keyword = previous_keyword
                self._transition(Phase.OUTLINE if had_outline else Phase.ANALYSIS)
            return False

        if not self._is_current(token):
            return False
        self.outline = outline
        self._transition(Phase.OUTLINE)
        return True

    def close_analysis(self) -> None:
        """Back to the result list; analysis and outline are discarded."""
        if self.phase not in (Phase.ANALYZING, Phase.ANALYSIS, Phase.OUTLINING, Phase.OUTLINE):
            return
        # Anything still in flight for the closed view is now stale
        self._token += 1
        self.selected = None
        self.analysis = None
        self.selected_keyword = None
        self.outline = None
        self._transition(Phase.RESULTS)

    def dismiss_error(self) -> None:
        self.error = None
