"""
YouTube Data API client for TubeTrend Expert.

search_videos() runs the search -> video stats -> channel stats pipeline and
computes each video's performance ratio (views / subscribers).
get_video_comments() is best-effort: it never raises.
"""

import json
import logging
from typing import Dict, List

from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from errors import MissingCredentialError, UpstreamError
from models import Video, VideoType

logger = logging.getLogger(__name__)

SEARCH_MAX_RESULTS = 20
COMMENTS_MAX_RESULTS = 50

MISSING_KEY_MESSAGE = "YouTube API 키를 입력해주세요."
SEARCH_FAILED_MESSAGE = "YouTube API 호출에 실패했습니다."


def get_youtube_client(api_key: str):
    """Build a YouTube API client authenticated with a developer key."""
    return build('youtube', 'v3', developerKey=api_key, cache_discovery=False)


def normalize_subscriber_count(raw) -> int:
    """Subscriber count as a positive int. Missing, non-numeric or zero -> 1."""
    try:
        count = int(raw)
    except (TypeError, ValueError):
        return 1
    return count if count > 0 else 1


def compute_performance_ratio(views: int, subscribers: int) -> float:
    """views / subscribers rounded to 2 decimals, subscribers floored to 1."""
    return round(views / normalize_subscriber_count(subscribers), 2)


def _parse_view_count(raw) -> int:
    try:
        return max(int(raw), 0)
    except (TypeError, ValueError):
        return 0


def upstream_message(error: HttpError) -> str:
    """Pull error.message out of an API error body, if there is one."""
    try:
        content = error.content.decode('utf-8') if isinstance(error.content, bytes) else error.content
        data = json.loads(content)
        message = data.get('error', {}).get('message')
    except (AttributeError, TypeError, ValueError):
        message = None
    return message or SEARCH_FAILED_MESSAGE


def _pick_thumbnail(thumbnails: Dict) -> str:
    high = thumbnails.get('high') or {}
    if high.get('url'):
        return high['url']
    return (thumbnails.get('default') or {}).get('url', '')


def build_channel_map(channel_items: List[Dict]) -> Dict[str, int]:
    """Channel id -> subscriber count, normalized."""
    return {
        item['id']: normalize_subscriber_count(item.get('statistics', {}).get('subscriberCount'))
        for item in channel_items
    }


def build_video(item: Dict, channel_map: Dict[str, int]) -> Video:
    """Turn one videos().list item into a Video."""
    snippet = item['snippet']
    stats = item.get('statistics', {})
    subs = channel_map.get(snippet['channelId']) or 1
    views = _parse_view_count(stats.get('viewCount'))

    return Video(
        video_id=item['id'],
        title=snippet.get('title', ''),
        description=snippet.get('description', ''),
        thumbnail=_pick_thumbnail(snippet.get('thumbnails', {})),
        channel_title=snippet.get('channelTitle', ''),
        channel_id=snippet['channelId'],
        published_at=snippet.get('publishedAt', ''),
        view_count=views,
        subscriber_count=subs,
        performance_ratio=compute_performance_ratio(views, subs),
    )


def search_videos(api_key: str, keyword: str, video_type="all", youtube=None) -> List[Video]:
    """
    Search videos by keyword and attach each one's performance ratio.

    Args:
        api_key: YouTube Data API key
        keyword: Search query
        video_type: "all", "short" or "long" (a VideoType or its value)
        youtube: Optional pre-built client; built from api_key otherwise

    Returns:
        Videos in API order; an empty list if the search found nothing usable

    Raises:
        MissingCredentialError: api_key is empty (no request is made)
        UpstreamError: the search call itself failed
        HttpError: the stats or channel lookups failed
    """
    if not api_key:
        raise MissingCredentialError(MISSING_KEY_MESSAGE)

    video_type = VideoType(video_type)
    if youtube is None:
        youtube = get_youtube_client(api_key)

    # 1. Keyword search
    search_params = {
        'part': 'snippet',
        'q': keyword,
        'type': 'video',
        'maxResults': SEARCH_MAX_RESULTS,
        'videoDuration': video_type.api_duration,
    }
    search_params = {k: v for k, v in search_params.items() if v is not None}

    try:
        search_response = youtube.search().list(**search_params).execute()
    except HttpError as e:
        status = getattr(e.resp, 'status', None)
        message = upstream_message(e)
        logger.warning(f"Search for '{keyword}' failed ({status}): {message}")
        raise UpstreamError(message, status=status) from e

    # 2. Drop malformed items
    valid_items = [
        item for item in search_response.get('items', [])
        if (item.get('id') or {}).get('videoId')
    ]
    if not valid_items:
        logger.info(f"No usable results for '{keyword}' ({video_type.value})")
        return []

    # 3. Video statistics (batch)
    video_ids = [item['id']['videoId'] for item in valid_items]
    videos_response = youtube.videos().list(
        part='statistics,snippet',
        id=','.join(video_ids)
    ).execute()
    video_items = videos_response.get('items', [])

    # 4. Channel statistics (batch)
    channel_ids = list(dict.fromkeys(v['snippet']['channelId'] for v in video_items))
    channel_map = {}
    if channel_ids:
        channels_response = youtube.channels().list(
            part='statistics',
            id=','.join(channel_ids)
        ).execute()
        channel_map = build_channel_map(channels_response.get('items', []))

    videos = [build_video(item, channel_map) for item in video_items]
    logger.info(f"Search '{keyword}' ({video_type.value}): {len(videos)} videos")
    return videos


def get_video_comments(api_key: str, video_id: str, youtube=None) -> List[str]:
    """
    Fetch up to 50 top-level comments as plain strings.

    Comments only enrich the analysis, so every failure degrades to an empty
    list instead of raising.
    """
    if not api_key:
        return []

    try:
        if youtube is None:
            youtube = get_youtube_client(api_key)
        response = youtube.commentThreads().list(
            part='snippet',
            videoId=video_id,
            maxResults=COMMENTS_MAX_RESULTS
        ).execute()
        comments = [
            item['snippet']['topLevelComment']['snippet']['textDisplay']
            for item in response.get('items', [])
        ]
    except Exception as e:
        # Comments disabled, quota exhausted or network down
        logger.debug(f"Comments unavailable for {video_id}: {e}")
        return []

    logger.debug(f"Fetched {len(comments)} comments for {video_id}")
    return comments
