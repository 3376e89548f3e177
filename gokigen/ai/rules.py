"""
Local rule-based text transforms.

Used whenever the AI service is unavailable, over budget or failing. Both
functions are deterministic: the same input always yields the same output.
"""

from __future__ import annotations

from gokigen.models.context import (
    ReformulationAudience,
    ReformulationContext,
    ReformulationPurpose,
    ReformulationTone,
)
from gokigen.models.entry import Mood

NEGATIVE_KEYWORDS: tuple[str, ...] = (
    "つかれ", "疲れ", "しんど", "ムカ", "不安", "かなしい", "悲し",
    "こわ", "怖", "きつ", "イライラ", "怒", "失敗",
)


def rewrite_empathy(original: str, mood: Mood) -> tuple[str, str]:
    """
    Return (empathy, next_step) for the text and mood.

    Text counts as negative if the mood is negative or it contains any of
    NEGATIVE_KEYWORDS; negative wins over a positive mood.
    """
    lowered = original.lower()
    is_negative = mood.is_negative or any(k in lowered for k in NEGATIVE_KEYWORDS)

    if is_negative:
        return (
            "しんどい中でも、ここまで来られたね。まずは深呼吸。あなたは悪くないよ。",
            "今日はゆっくり休もう。できれば温かい飲み物を一杯。",
        )
    if mood.is_positive:
        return (
            "うまくいったね。その感覚はあなたの力だよ。",
            "小さくてもOK。もう一つ『やってみたいこと』を書いてみよう。",
        )
    return (
        "淡々と過ごせたこと自体、十分えらい。",
        "体をほぐすストレッチを1分だけ。気分が少し軽くなるよ。",
    )


_FORMAL_OPENERS = {
    ReformulationPurpose.CONVEY: "お伝えしたいことがあります。",
    ReformulationPurpose.DECLINE: "せっかくのお話ですが、",
    ReformulationPurpose.APOLOGIZE: "ご迷惑をおかけして申し訳ありません。",
    ReformulationPurpose.CONSULT: "ご相談したいことがあります。",
    ReformulationPurpose.REQUEST: "お願いがあるのですが、",
    ReformulationPurpose.SHARE_FEELING: "正直な気持ちをお伝えすると、",
}

_CASUAL_OPENERS = {
    ReformulationPurpose.CONVEY: "ちょっと伝えたいことがあって。",
    ReformulationPurpose.DECLINE: "誘ってくれてありがとう。でも、",
    ReformulationPurpose.APOLOGIZE: "ごめんね。",
    ReformulationPurpose.CONSULT: "ちょっと相談してもいい？",
    ReformulationPurpose.REQUEST: "お願いがあるんだけど、",
    ReformulationPurpose.SHARE_FEELING: "正直に言うとね、",
}

_CLOSERS = {
    ReformulationTone.POLITE: ("よろしくお願いいたします。", "よろしくね。"),
    ReformulationTone.SOFT: ("お手すきの際にご確認いただけると嬉しいです。", "無理のない範囲で聞いてもらえると嬉しいな。"),
    ReformulationTone.CASUAL: ("よろしくお願いします。", "よろしく！"),
    ReformulationTone.CLEAR: ("以上です。", "以上！"),
    ReformulationTone.GENTLE: ("いつもありがとうございます。", "いつもありがとう。"),
}

_TRAILING = "。．.！!？?、, 　\n"


def reformulate_locally(original: str, context: ReformulationContext) -> str:
    """
    Template-based reformulation.

    Formal audiences (boss, stranger) get polite openers and closers; the
    purpose selects the opener and the tone selects the closing line.
    """
    body = original.strip().rstrip(_TRAILING)
    formal = context.audience.is_formal or context.tone == ReformulationTone.POLITE
    openers = _FORMAL_OPENERS if formal else _CASUAL_OPENERS
    opener = openers[context.purpose]
    closer_formal, closer_casual = _CLOSERS[context.tone]
    closer = closer_formal if formal else closer_casual
    if context.audience == ReformulationAudience.FAMILY and context.tone == ReformulationTone.GENTLE:
        closer = "いつも見守ってくれてありがとう。"
    return f"{opener}{body}。{closer}"
