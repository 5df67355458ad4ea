import logging

import streamlit as st
from streamlit_local_storage import LocalStorage

from config import load_config, save_config, setup_logging
from key_store import GEMINI_KEY_NAME, YOUTUBE_KEY_NAME, ApiKeys, KeyStore, mask_key
from models import RATIO_BREAKPOINTS, VideoType
from research_session import Phase, ResearchSession, videos_to_dataframe

logger = logging.getLogger(__name__)

# --- Constants ---
VIDEO_TYPE_LABELS = {
    VideoType.ALL.value: "전체",
    VideoType.SHORT.value: "쇼츠",
    VideoType.LONG.value: "롱폼",
}

RATIO_TIER_COLORS = {
    "viral": "green",
    "strong": "blue",
    "normal": "gray",
}


def inject_custom_css():
    st.markdown("""
    <style>
        .block-container {
            padding-top: 1.5rem;
            padding-bottom: 2rem;
        }
        h1, h2, h3 {
            font-weight: 800 !important;
        }
        /* Video cards */
        div[data-testid="stVerticalBlockBorderWrapper"] img {
            border-radius: 8px;
        }
    </style>
    """, unsafe_allow_html=True)


# --- Formatting helpers ---
def format_count(num: int) -> str:
    return f"{num:,}"


def format_ratio_option(ratio) -> str:
    """Label for a minimum-ratio breakpoint."""
    return "전체" if ratio == 0 else f"{ratio}x+"


def ratio_badge(video) -> str:
    color = RATIO_TIER_COLORS[video.ratio_tier]
    return f":{color}-background[**지표: {video.performance_ratio}x**]"


# --- State ---
def get_session() -> ResearchSession:
    if 'research_session' not in st.session_state:
        st.session_state['research_session'] = ResearchSession()
    return st.session_state['research_session']


def get_keys(key_store: KeyStore) -> ApiKeys:
    """
    Keys are read from the browser once. localStorage answers asynchronously,
    so keep re-reading until both keys arrive or the user edits one.
    """
    keys = st.session_state.get('api_keys')
    settled = keys is not None and (
        st.session_state.get('keys_touched') or (keys.has_youtube and keys.has_gemini)
    )
    if not settled:
        keys = key_store.load()
        st.session_state['api_keys'] = keys
    return keys


def set_keys(keys: ApiKeys):
    st.session_state['api_keys'] = keys
    st.session_state['keys_touched'] = True


# --- UI sections ---
def render_key_bar(key_store: KeyStore, keys: ApiKeys) -> ApiKeys:
    """Two password inputs; every edit is written to localStorage right away."""
    with st.container(border=True):
        col_yt, col_gm = st.columns(2)
        with col_yt:
            yt_input = st.text_input(
                "YouTube Key",
                value=keys.youtube,
                type="password",
                placeholder="YouTube API Key",
            )
            if keys.has_youtube:
                st.caption(f"🔐 {mask_key(keys.youtube)}")
                if st.button("🗑️ Remove", key="clear_yt_key"):
                    set_keys(key_store.clear(keys, YOUTUBE_KEY_NAME))
                    st.rerun()
        with col_gm:
            gm_input = st.text_input(
                "Gemini Key",
                value=keys.gemini,
                type="password",
                placeholder="Gemini API Key",
            )
            if keys.has_gemini:
                st.caption(f"🔐 {mask_key(keys.gemini)}")
                if st.button("🗑️ Remove", key="clear_gm_key"):
                    set_keys(key_store.clear(keys, GEMINI_KEY_NAME))
                    st.rerun()

    updated = key_store.update(keys, youtube=yt_input, gemini=gm_input)
    if updated != keys:
        set_keys(updated)
    return updated


def render_search_bar(session: ResearchSession, keys: ApiKeys, prefs: dict):
    with st.form("search_form"):
        col_q, col_btn = st.columns([5, 1])
        with col_q:
            keyword = st.text_input(
                "Keyword",
                value=session.keyword or prefs.get('keyword', ''),
                placeholder="분석하고 싶은 주제 검색...",
                label_visibility="collapsed",
            )
        type_options = list(VIDEO_TYPE_LABELS.keys())
        saved_type = session.video_type.value if session.keyword else prefs.get('video_type', 'all')
        video_type = st.radio(
            "Video Type",
            type_options,
            index=type_options.index(saved_type) if saved_type in type_options else 0,
            format_func=lambda t: VIDEO_TYPE_LABELS[t],
            horizontal=True,
        )
        with col_btn:
            submitted = st.form_submit_button("영상 발굴", type="primary", use_container_width=True)

    saved_ratio = prefs.get('min_ratio', 0)
    min_ratio = st.radio(
        "바이럴 비율",
        list(RATIO_BREAKPOINTS),
        index=RATIO_BREAKPOINTS.index(saved_ratio) if saved_ratio in RATIO_BREAKPOINTS else 0,
        format_func=format_ratio_option,
        horizontal=True,
        key="min_ratio",
    )
    session.set_min_ratio(min_ratio)

    if submitted:
        with st.spinner("콘텐츠를 탐색하고 있습니다..."):
            session.search(keys, keyword, video_type)
        save_config({'keyword': keyword, 'video_type': video_type, 'min_ratio': min_ratio})
    elif min_ratio != prefs.get('min_ratio'):
        save_config({**prefs, 'min_ratio': min_ratio})


def render_video_card(session: ResearchSession, video) -> bool:
    """Draw one result. Returns True if its analyze button was clicked."""
    is_selected = session.selected is not None and session.selected.video_id == video.video_id
    with st.container(border=True):
        if video.thumbnail:
            st.image(video.thumbnail, use_container_width=True)
        st.markdown(ratio_badge(video))
        st.markdown(f"**{video.title}**")
        st.caption(
            f"채널: {video.channel_title}  \n"
            f"구독자: {format_count(video.subscriber_count)}명  \n"
            f"조회수: {format_count(video.view_count)}회"
        )
        return st.button(
            "✅ 분석 중" if is_selected else "🤖 AI 분석",
            key=f"analyze_{video.video_id}",
            type="primary" if is_selected else "secondary",
            use_container_width=True,
        )


def render_results(session: ResearchSession):
    """Returns the video whose analyze button was clicked, if any."""
    visible = session.visible_videos
    clicked = None

    if not session.videos:
        if session.error is None and session.notice is None:
            st.info("키워드를 입력해 바이럴 소재를 찾아보세요.")
        return None

    st.subheader(f"검색 결과 ({len(visible)})")
    per_row = 1 if session.selected else 4
    for start in range(0, len(visible), per_row):
        cols = st.columns(per_row)
        for col, video in zip(cols, visible[start:start + per_row]):
            with col:
                if render_video_card(session, video):
                    clicked = video

    if visible:
        with st.expander("📊 표로 보기"):
            df = videos_to_dataframe(visible)
            st.dataframe(df, use_container_width=True, hide_index=True)
            st.download_button(
                label="💾 CSV 다운로드",
                data=df.to_csv(index=False).encode('utf-8'),
                file_name=f"tubetrend_{session.keyword or 'results'}.csv",
                mime='text/csv',
            )
    return clicked


def render_outline(outline):
    with st.container(border=True):
        st.markdown(f"#### ✍️ 콘텐츠 가이드: {outline.keyword}")
        st.caption("추천 제목")
        st.markdown(f"### \"{outline.title}\"")
        st.caption("도입부 (Intro)")
        st.info(outline.intro)
        st.caption("주요 구성 (Outline)")
        for i, section in enumerate(outline.sections, 1):
            st.markdown(f"**{i}. {section.heading}**")
            st.write(section.content)
        st.divider()
        st.caption("마무리 (Outro)")
        st.write(outline.outro)


def render_analysis(session: ResearchSession, keys: ApiKeys):
    """Analysis panel. Handles keyword clicks and the close button itself."""
    video = session.selected
    result = session.analysis

    header_col, close_col = st.columns([6, 1])
    with header_col:
        st.subheader("🤖 AI 정밀 분석 & 기획")
        st.caption(f"\"{video.title}\" 분석 및 소재 추천")
    with close_col:
        if st.button("✖", key="close_analysis"):
            session.close_analysis()
            st.rerun()

    with st.container(border=True):
        st.caption("시청자 반응 요약")
        st.markdown(f"**\"{result.summary}\"**")

    pros_col, cons_col = st.columns(2)
    with pros_col:
        st.markdown("**👍 흥행 포인트**")
        for point in result.pros:
            st.write(f"• {point}")
    with cons_col:
        st.markdown("**🤔 아쉬운 점 / 추가 질문**")
        for point in result.cons:
            st.write(f"• {point}")

    st.markdown("#### 추천 핵심 키워드 `Click to Plan`")
    picked = None
    if result.keywords:
        kw_cols = st.columns(len(result.keywords))
        for i, (col, kw) in enumerate(zip(kw_cols, result.keywords)):
            with col:
                if st.button(
                    f"#{kw}",
                    key=f"kw_{i}",
                    type="primary" if session.selected_keyword == kw else "secondary",
                    use_container_width=True,
                ):
                    picked = kw

    if picked is not None:
        with st.spinner("선택하신 키워드로 대본 목차를 구성 중입니다..."):
            session.select_keyword(keys, picked)
        st.rerun()

    if session.outline is not None:
        render_outline(session.outline)

    if result.ideas:
        st.markdown("#### 💡 추천 콘텐츠 기획안")
        for idea in result.ideas:
            with st.expander(idea.title):
                st.write(f"**Angle:** {idea.angle}")
                st.write(f"**Why:** {idea.reasoning}")
                st.write(f"**Target:** {idea.target_audience}")


def main():
    st.set_page_config(page_title="TubeTrend Expert", page_icon="📈", layout="wide")
    setup_logging()
    inject_custom_css()

    key_store = KeyStore(LocalStorage())
    keys = get_keys(key_store)
    session = get_session()
    prefs = load_config()

    keys = render_key_bar(key_store, keys)

    st.title("📈 TubeTrend Expert")
    st.caption("Viral Script Planner")

    render_search_bar(session, keys, prefs)

    if session.error:
        error_col, dismiss_col = st.columns([12, 1])
        with error_col:
            st.error(session.error)
        with dismiss_col:
            if st.button("✖", key="dismiss_error", help="닫기"):
                session.dismiss_error()
                st.rerun()
    if session.notice:
        st.info(session.notice)

    if session.selected is not None:
        results_col, analysis_col = st.columns([5, 7])
    else:
        results_col, analysis_col = st.container(), None

    with results_col:
        clicked = render_results(session)

    if clicked is not None:
        with st.spinner("댓글과 시청 패턴을 분석하여 기획안을 도출하고 있습니다..."):
            session.select_video(keys, clicked)
        st.rerun()

    if analysis_col is not None and session.phase in (Phase.ANALYSIS, Phase.OUTLINING, Phase.OUTLINE):
        with analysis_col:
            render_analysis(session, keys)


if __name__ == "__main__":
    main()
