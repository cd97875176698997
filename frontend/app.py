import asyncio
import json

import pandas as pd
import streamlit as st
import streamlit.components.v1 as components

from backend.models import SECTION_TITLES, SectionKey
from frontend.api_client import api_get, post_saju
from frontend.session import SajuSession, SectionStatus

st.set_page_config(page_title="AI 사주팔자 분석", layout="centered")
st.title("🔮 AI 사주팔자 분석 🔮")


def show_error(e: Exception, context: str = ""):
    msg = f"{context}\n{str(e)}".strip()
    st.error(msg)
    with st.expander("Details"):
        st.exception(e)


def copy_to_clipboard(text: str, button_label: str = "복사", key: str = "copy_btn"):
    if st.button(button_label, key=key):
        safe = json.dumps(text)
        components.html(f"<script>navigator.clipboard.writeText({safe});</script>", height=0, width=0)
        st.success("복사했습니다")


def pillars_frame(pillars) -> pd.DataFrame:
    # Traditional right-to-left reading order: hour, day, month, year.
    return pd.DataFrame(
        [[pillars.hour or "?", pillars.day, pillars.month, pillars.year]],
        columns=["시주", "일주", "월주", "연주"],
    )


# ---- state ----
if "saju_session" not in st.session_state:
    st.session_state.saju_session = SajuSession(post_saju)
session: SajuSession = st.session_state.saju_session

# ---- sidebar ----
with st.sidebar:
    if st.button("Health Check"):
        try:
            with st.spinner("Checking backend..."):
                health = api_get("/health", timeout=8).json()
            st.success(f"Backend OK (llm_configured={health.get('llm_configured')}, model={health.get('model')})")
        except Exception as e:
            show_error(e, "Health error")

# ---- inputs ----
name = st.text_input("👤 이름", placeholder="이름을 입력하세요")
gender = st.selectbox("🚻 성별", ["male", "female"], format_func=lambda g: {"male": "남자", "female": "여자"}[g])
calendar_type = st.radio(
    "📅 구분", ["solar", "lunar"], format_func=lambda c: {"solar": "양력", "lunar": "음력"}[c], horizontal=True
)
is_leap_month = st.checkbox("윤달", value=False, disabled=calendar_type != "lunar")
c1, c2, c3 = st.columns(3)
year = c1.text_input("生 년", placeholder="태어난 년도 (4자리)")
month = c2.text_input("月 월", placeholder="태어난 월")
day = c3.text_input("日 일", placeholder="태어난 일")
hour = st.selectbox(
    "⏰ 태어난 시간 (선택)",
    ["unknown"] + list(range(24)),
    format_func=lambda h: "시간 모름" if h == "unknown" else f"{h}시",
)

form = {
    "name": name,
    "gender": gender,
    "calendarType": calendar_type,
    "year": year,
    "month": month,
    "day": day,
    "hour": hour,
    "isLeapMonth": is_leap_month and calendar_type == "lunar",
}

if st.button("📿 사주 분석하기 📿", type="primary", disabled=not session.can_submit(form)):
    with st.spinner("분석 중..."):
        asyncio.run(session.submit(form))
    st.session_state.active_section_choice = SectionKey.basic

if session.failure:
    st.error(session.failure)

# ---- results ----
if session.has_results:
    st.divider()
    st.table(pillars_frame(session.pillars))

    keys = list(SectionKey)
    selected = st.radio(
        "섹션",
        keys,
        key="active_section_choice",
        format_func=lambda k: SECTION_TITLES[k],
        horizontal=True,
        label_visibility="collapsed",
    )
    if session.status[selected] is SectionStatus.idle:
        with st.spinner(f"AI가 열심히 {SECTION_TITLES[selected]}을(를) 분석 중입니다..."):
            asyncio.run(session.select(selected))
    else:
        asyncio.run(session.select(selected))

    text = session.results.get(session.active_section, "")
    if session.status[session.active_section] is SectionStatus.errored:
        st.warning(text)
    elif text:
        st.markdown(text)
        copy_to_clipboard(text, key=f"copy_{session.active_section.value}")
