"""Prompt constants used by the pillar and section stages."""

SYSTEM_PROMPT = """당신은 사주 명리학 전문가입니다.
사용자 프롬프트의 지시를 그대로 따르고, 요청받지 않은 내용은 덧붙이지 마세요."""

CALENDAR_LABELS = {
    "solar": "양력",
    "lunar": "음력",
}

GENDER_LABELS = {
    "male": "남성",
    "female": "여성",
}

LEAP_MONTH_SUFFIX = " (윤달)"
UNKNOWN_HOUR_TEXT = "모름"

PILLAR_PROMPT_TEMPLATE = """너는 사주 명리학의 만세력 계산기다.
아래 생년월일시를 사주팔자(네 기둥)로 변환해서 JSON 객체 하나만 출력해라. 설명, 인사말, 마크다운은 절대 붙이지 마라.

계산 규칙:
1. 연주의 경계는 양력 1월 1일이 아니라 입춘(立春) 절입 시각이다.
2. 월주의 경계는 매월 1일이 아니라 각 달의 절기(경칩, 청명 등) 절입 시각이다.
3. 시주는 태어난 날의 일간(日干)을 기준으로 계산한다.

입력 정보:
- 기준 달력: {calendar_label}
- 생년월일: {year}년 {month}월 {day}일{leap_suffix}
- 태어난 시간: {hour_text}

출력 형식:
- 키는 정확히 "year", "month", "day", "hour" 네 개만 사용한다.
- 각 값은 천간과 지지 두 글자의 한자 문자열이다. 예: {{"year": "甲子", "month": "丙寅", "day": "丁卯", "hour": "戊辰"}}
- 태어난 시간을 모르면 "hour" 값은 null 로 둔다."""

PILLARS_WITH_HOUR_TEMPLATE = "이 사람의 사주팔자는 {year}년 {month}월 {day}일 {hour}시 입니다."
PILLARS_WITHOUT_HOUR_TEMPLATE = "이 사람의 사주는 {year}년 {month}월 {day}일 입니다. (태어난 시간 정보 없음, 시주 미상)"

SECTION_TOPIC_PROMPTS = {
    "basic": "**기본 성향**: 이 사주를 가진 사람의 타고난 기질과 성격, 장점과 단점을 깊이 있게 풀어 주세요.",
    "wealth": "**재물운**: 이 사주에 드러난 평생 재물의 흐름과, 돈을 모으고 불리기 위한 구체적인 조언을 해 주세요.",
    "health": "**건강운**: 이 사주에서 주의해야 할 건강 문제와, 건강을 지키기 위한 실용적인 습관을 알려 주세요.",
    "future": "**{current_year}년 운세**: 올해 이 사람의 전반적인 흐름과 조심할 점, 그리고 기회를 잡기 위한 조언을 들려 주세요.",
}

SECTION_PROMPT_TEMPLATE = """사용자의 이름은 {name}, 성별은 {gender_label}입니다.
{pillar_line}

당신은 한국에서 손꼽히는 명리학자입니다. 위 사주를 바탕으로 아래 주제에 대해서만 설명하세요.
명리학을 모르는 사람도 이해할 수 있도록 친절하고 자세하게 풀어 쓰고, 다른 주제는 절대 섞지 마세요.

- 오직 이 주제만 다루세요: {topic}

분량은 최소 5문장 이상으로 충분히 풍부하게 작성하세요.
결과는 마크다운으로 작성하고, 핵심 문장은 **굵게** 표시하세요.
이모지를 적당히 섞어 읽기 편하게 만들어 주세요."""
