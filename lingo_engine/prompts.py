"""Tutor system prompts and follow-up analysis prompts."""
from dataclasses import dataclass

GENERIC_SYSTEM_PROMPT = (
    "You are a helpful language learning assistant. Help users practice languages "
    "by having conversations, correcting mistakes, and providing explanations. "
    "Respond in a friendly and encouraging manner."
)

ANALYSIS_TYPES = ("grammar", "vocabulary", "both")


@dataclass(frozen=True)
class LanguagePair:
    main_language: str
    learning_language: str

    def to_dict(self) -> dict[str, str]:
        return {"mainLanguage": self.main_language, "learningLanguage": self.learning_language}


def build_system_prompt(pair: LanguagePair | None) -> str:
    """Generic tutor prompt, or a structured one conditioned on the learner's language pair."""
    if pair is None:
        return GENERIC_SYSTEM_PROMPT
    return (
        f"You are a friendly {pair.learning_language} tutor for a learner whose native "
        f"language is {pair.main_language}.\n"
        "Rules:\n"
        f"1. Always answer in {pair.main_language}. Quote {pair.learning_language} "
        "examples in the original language with a short explanation.\n"
        f"2. When the learner writes {pair.learning_language}, point out mistakes gently, "
        "show the corrected sentence, and explain the correction briefly.\n"
        f"3. If the learner asks about something unrelated, answer briefly and relate it "
        f"back to learning {pair.learning_language}.\n"
        "4. Keep answers short, encouraging and suited to the learner's level."
    )


def _header(kind: str, message: str, pair: LanguagePair) -> tuple[str, str]:
    return (
        f"다음 문장{kind}:\n\n"
        f"\"{message}\"\n\n"
    ), (
        f"응답 언어: {pair.main_language}\n"
        f"대상 언어: {pair.learning_language}\n\n"
        "다음과 같은 형식으로 답변해주세요:\n\n"
    )


_GRAMMAR_SECTION = (
    "## 📚 문법 분석\n\n"
    "### 1. [문법 구조 이름]\n"
    "**설명:** [문법 규칙 설명]\n"
    "**예문:**\n- [예문 1]\n- [예문 2]\n- [예문 3]\n\n"
)

_VOCABULARY_SECTION = (
    "## 📖 단어 및 표현 분석\n\n"
    "### 🔤 단어\n"
    "**[단어]** - [발음] (품사)\n- 의미: [단어의 뜻]\n- 예문:\n  - [예문 1]\n  - [예문 2]\n\n"
    "### 🎭 숙어/관용표현\n"
    "**[숙어]**\n- 의미: [숙어의 뜻]\n- 예문:\n  - [예문 1]\n  - [예문 2]\n\n"
    "### 📜 속담/격언\n"
    "**[속담]**\n- 의미: [속담의 뜻]\n- 유래: [속담의 유래나 배경]\n\n"
)


def build_analysis_prompt(analysis_type: str, assistant_message: str, pair: LanguagePair) -> str:
    """Prompt asking the model to analyse one of its own replies."""
    if analysis_type == "grammar":
        intro, outro = _header("에서 사용된 문법을 분석해주세요", assistant_message, pair)
        request = (
            "분석 요청:\n"
            "1. 위 문장에서 사용된 주요 문법 구조들을 식별하고 설명해주세요\n"
            "2. 각 문법에 대해 다른 예문도 2-3개씩 보여주세요\n"
            "3. 초보자도 이해할 수 있도록 쉽게 설명해주세요\n\n"
        )
        body = _GRAMMAR_SECTION + "## 💡 학습 팁\n[문법 학습에 도움이 되는 추가 팁]"
    elif analysis_type == "vocabulary":
        intro, outro = _header("에서 사용된 단어, 숙어, 속담을 분석해주세요", assistant_message, pair)
        request = (
            "분석 요청:\n"
            "1. 위 문장에 포함된 중요한 단어들의 의미를 설명해주세요\n"
            "2. 숙어나 관용표현이 있다면 그 의미를 설명해주세요\n"
            "3. 속담이나 격언이 있다면 그 뜻과 유래를 설명해주세요\n"
            "4. 각 단어/표현마다 다른 예문을 2-3개씩 제공해주세요\n\n"
        )
        body = _VOCABULARY_SECTION + "## 💡 어휘 학습 팁\n[어휘 학습에 도움이 되는 추가 팁]"
    elif analysis_type == "both":
        intro, outro = _header("의 문법과 어휘를 종합적으로 분석해주세요", assistant_message, pair)
        request = (
            "분석 요청:\n"
            "1. 문법 구조 분석 및 예문 제공\n"
            "2. 중요한 단어, 숙어, 속담의 의미 설명 및 예문 제공\n"
            "3. 문법과 어휘가 어떻게 연결되어 전체 의미를 만드는지 설명\n\n"
        )
        body = (
            _GRAMMAR_SECTION
            + _VOCABULARY_SECTION
            + "## 🔗 문법과 어휘의 연결\n[문법 구조와 어휘가 어떻게 결합되어 전체 의미를 형성하는지에 대한 설명]\n\n"
            + "## 💡 종합 학습 팁\n[문법과 어휘를 함께 학습할 때 도움이 되는 팁]"
        )
    else:
        raise ValueError(f"Unknown analysis type: {analysis_type}")
    return intro + request + outro + body
