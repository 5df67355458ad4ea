"""Gemini structured-output calls: audience analysis and script outlines."""

import json
import logging
from typing import Dict, List, Optional

from google.genai import Client
from google.genai import types

from config import get_gemini_model
from errors import MalformedResponseError, MissingCredentialError
from models import AnalysisResult, ScriptOutline

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "Gemini API 키를 입력해주세요."
NO_COMMENTS_PLACEHOLDER = "시청자 댓글이 없습니다. 영상 제목과 설명만으로 분석해주세요."
COMMENT_SEPARATOR = "\n---\n"
MAX_COMMENT_CHARS = 3000


def _string():
    return types.Schema(type=types.Type.STRING)


def _string_list():
    return types.Schema(type=types.Type.ARRAY, items=_string())


ANALYSIS_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        'summary': _string(),
        'pros': _string_list(),
        'cons': _string_list(),
        'keywords': _string_list(),
        'ideas': types.Schema(
            type=types.Type.ARRAY,
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    'title': _string(),
                    'angle': _string(),
                    'reasoning': _string(),
                    'targetAudience': _string(),
                },
            ),
        ),
    },
    required=['summary', 'pros', 'cons', 'keywords', 'ideas'],
)

OUTLINE_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        'keyword': _string(),
        'title': _string(),
        'intro': _string(),
        'sections': types.Schema(
            type=types.Type.ARRAY,
            items=types.Schema(
                type=types.Type.OBJECT,
                properties={
                    'heading': _string(),
                    'content': _string(),
                },
            ),
        ),
        'outro': _string(),
    },
)


def prepare_comment_text(comments: List[str]) -> str:
    """Join comments for the prompt and cut at a fixed character offset."""
    text = COMMENT_SEPARATOR.join(comments) if comments else NO_COMMENTS_PLACEHOLDER
    return text[:MAX_COMMENT_CHARS]


def build_analysis_prompt(title: str, description: str, comments: List[str]) -> str:
    return f"""
당신은 유튜브 분석 전문가입니다. 아래 영상 데이터와 댓글을 분석하세요.
제목: {title}
설명: {description}
댓글 요약: {prepare_comment_text(comments)}

다음 JSON 형식으로 응답하세요:
1. summary: 전체적인 반응 요약 (한 문장)
2. pros: 흥행 포인트 3개 (배열)
3. cons: 아쉬운 점 또는 추가 질문 3개 (배열)
4. keywords: 시청자들이 열광하거나 자주 언급한 '다음 영상 주제용 핵심 키워드' 5개 (배열)
5. ideas: 추천 콘텐츠 기획안 3개 (title, angle, reasoning, targetAudience)
"""


def build_outline_prompt(keyword: str, context: str) -> str:
    return f"""
선택된 키워드: "{keyword}"
참고 문맥: {context}

위 키워드를 주제로 유튜브 영상 대본 목차를 작성해주세요. 시청자의 흥미를 끌 수 있는 구성을 제안하세요.
다음 JSON 형식으로 응답하세요:
- keyword: "{keyword}"
- title: 자극적이고 클릭하고 싶은 제목
- intro: 오프닝 멘트 및 후킹 포인트
- sections: 주요 내용 목차 (heading, content 속성을 가진 객체 배열 3~5개)
- outro: 마무리 및 구독 유도 멘트
"""


def _generate_json(api_key: str, prompt: str, schema: types.Schema, model: Optional[str]) -> Dict:
    """Run one structured generation call and parse its JSON body."""
    client = Client(api_key=api_key)
    model = model or get_gemini_model()

    response = client.models.generate_content(
        model=model,
        contents=prompt,
        config=types.GenerateContentConfig(
            response_mime_type='application/json',
            response_schema=schema,
        ),
    )

    if not response.text:
        raise MalformedResponseError("AI 응답이 비어 있습니다.")
    try:
        data = json.loads(response.text)
    except json.JSONDecodeError as e:
        logger.warning(f"Unparseable response from {model}: {e}")
        raise MalformedResponseError("AI 응답을 해석할 수 없습니다.") from e
    if not isinstance(data, dict):
        raise MalformedResponseError("AI 응답 형식이 올바르지 않습니다.")
    return data


def analyze_content(
    api_key: str,
    title: str,
    description: str,
    comments: List[str],
    model: Optional[str] = None
) -> AnalysisResult:
    """
    Summarize audience reaction to a video and propose follow-up content.

    Args:
        api_key: Gemini API key
        title: Video title
        description: Video description
        comments: Top-level comment texts (may be empty)
        model: Gemini model override

    Returns:
        AnalysisResult parsed from the model's JSON

    Raises:
        MissingCredentialError: api_key is empty
        MalformedResponseError: the body is not the expected JSON
    """
    if not api_key:
        raise MissingCredentialError(MISSING_KEY_MESSAGE)

    logger.info(f"Analyzing '{title[:40]}' with {len(comments)} comments")
    data = _generate_json(api_key, build_analysis_prompt(title, description, comments), ANALYSIS_SCHEMA, model)
    try:
        return AnalysisResult.from_dict(data)
    except (KeyError, TypeError, AttributeError) as e:
        raise MalformedResponseError("AI 응답에 필요한 항목이 없습니다.") from e


def generate_script_outline(
    api_key: str,
    keyword: str,
    context: str,
    model: Optional[str] = None
) -> ScriptOutline:
    """Draft a script outline around one keyword. Section count is not checked."""
    if not api_key:
        raise MissingCredentialError(MISSING_KEY_MESSAGE)

    logger.info(f"Generating outline for keyword '{keyword}'")
    data = _generate_json(api_key, build_outline_prompt(keyword, context), OUTLINE_SCHEMA, model)
    try:
        return ScriptOutline.from_dict(data)
    except (TypeError, AttributeError) as e:
        raise MalformedResponseError("AI 응답 형식이 올바르지 않습니다.") from e
