"""Daily writing prompts and per-mood example sentences."""

from __future__ import annotations

import random

from gokigen.models.entry import Mood

DAILY_PROMPTS: tuple[str, ...] = (
    "今日は、何がいちばん楽しかった？",
    "今日は、何がいちばんつらかった？",
    "今日は、どんな気分だった？",
    "今の自分に一言かけるなら？",
    "小さな『できたこと』は？",
)

DEFAULT_PROMPT = "今日は、どんな気分だった？"

EXAMPLE_SENTENCES: dict[Mood, tuple[str, ...]] = {
    Mood.VERY_HAPPY: (
        "今日は嬉しいことが続いて笑顔で過ごせた。",
        "頑張ったぶん褒めてもらえて、心がふわっと温かくなった。",
    ),
    Mood.HAPPY: (
        "ちょっとした会話が楽しくて気持ちが軽くなった。",
        "好きな音楽を聴いたら自然と前向きになれた。",
    ),
    Mood.NEUTRAL: (
        "特別な出来事はなかったけれど穏やかだった。",
        "いつものペースで進められて少し安心した。",
    ),
    Mood.SAD: (
        "思っていたより疲れが残っていて少し落ち込んだ。",
        "自分の気持ちをうまく伝えられず、もどかしい。",
    ),
    Mood.VERY_SAD: (
        "ずっと心がざわついていて、深呼吸を忘れていたかも。",
        "エネルギーが出ず、誰かに頼りたい気持ちが強かった。",
    ),
}


def random_prompt(rng: random.Random | None = None) -> str:
    """Pick a daily prompt."""
    if not DAILY_PROMPTS:
        return DEFAULT_PROMPT
    return (rng or random).choice(DAILY_PROMPTS)


def example_sentence(mood: Mood, rng: random.Random | None = None) -> str | None:
    """Pick an example sentence for a mood, or None if there are none."""
    samples = EXAMPLE_SENTENCES.get(mood)
    if not samples:
        return None
    return (rng or random).choice(samples)
