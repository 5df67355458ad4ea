"""Data models for search results and AI output."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional


# Minimum-ratio filter breakpoints shown in the search bar
RATIO_BREAKPOINTS = (0, 1.5, 3, 5)


class VideoType(str, Enum):
    """Duration bucket selected in the search bar."""

    ALL = "all"
    SHORT = "short"
    LONG = "long"

    @property
    def api_duration(self) -> Optional[str]:
        """Value for the search endpoint's videoDuration parameter."""
        if self is VideoType.SHORT:
            return "short"
        if self is VideoType.LONG:
            return "medium"  # 4~20 minutes
        return None


def ratio_tier(ratio: float) -> str:
    """Badge tier for a performance ratio."""
    if ratio >= 5:
        return "viral"
    if ratio >= 1.5:
        return "strong"
    return "normal"


@dataclass(frozen=True)
class Video:
    """A search result joined with its channel's subscriber count."""

    video_id: str
    title: str
    description: str
    thumbnail: str
    channel_title: str
    channel_id: str
    published_at: str
    view_count: int
    subscriber_count: int
    performance_ratio: float

    @property
    def url(self) -> str:
        return f"https://www.youtube.com/watch?v={self.video_id}"

    @property
    def ratio_tier(self) -> str:
        return ratio_tier(self.performance_ratio)


@dataclass
class ContentIdea:
    title: str
    angle: str
    reasoning: str
    target_audience: str

    @classmethod
    def from_dict(cls, data: Dict) -> "ContentIdea":
        return cls(
            title=data.get("title", ""),
            angle=data.get("angle", ""),
            reasoning=data.get("reasoning", ""),
            target_audience=data.get("targetAudience", ""),
        )


@dataclass
class AnalysisResult:
    """Audience-reaction analysis of one video."""

    summary: str
    pros: List[str]
    cons: List[str]
    keywords: List[str]
    ideas: List[ContentIdea] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict) -> "AnalysisResult":
        """Build from the response schema's JSON. All five fields are required."""
        return cls(
            summary=data["summary"],
            pros=list(data["pros"]),
            cons=list(data["cons"]),
            keywords=list(data["keywords"]),
            ideas=[ContentIdea.from_dict(i) for i in data["ideas"]],
        )


@dataclass
class OutlineSection:
    heading: str
    content: str


@dataclass
class ScriptOutline:
    """Script table of contents generated from a single keyword."""

    keyword: str
    title: str
    intro: str
    sections: List[OutlineSection]
    outro: str

    @classmethod
    def from_dict(cls, data: Dict) -> "ScriptOutline":
        # The outline schema marks nothing as required; pass through what came back
        return cls(
            keyword=data.get("keyword", ""),
            title=data.get("title", ""),
            intro=data.get("intro", ""),
            sections=[
                OutlineSection(heading=s.get("heading", ""), content=s.get("content", ""))
                for s in data.get("sections") or []
            ],
            outro=data.get("outro", ""),
        )
