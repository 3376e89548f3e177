"""Prompt construction and response parsing for the AI features."""

from __future__ import annotations

import json_repair
from loguru import logger

from gokigen.models.context import ReformulationContext

DEFAULT_NEXT_STEP = "今日はゆっくり休むだけで十分です。"


def build_empathy_prompt(text: str) -> str:
    return (
        "あなたは、しんどい人に寄り添う日本語のカウンセラーです。\n\n"
        "ユーザーの文章：\n"
        f"「{text}」\n\n"
        "以下の2つを日本語で返してください。\n\n"
        "1) 共感メッセージ：\n"
        "   ユーザーを否定せず、「がんばりを認める」やさしい言葉。\n\n"
        "2) 次の一歩：\n"
        "   今日できそうな、ハードルの低い一歩。\n"
        "   例：深呼吸を3回する／温かい飲み物を飲む など。\n\n"
        'JSON で {"empathy": "...", "next_step": "..."} の形で返してください。'
    )


def build_reformulation_prompt(text: str, context: ReformulationContext) -> str:
    return (
        "あなたは、気持ちを相手に伝わる言葉に整える日本語のコミュニケーションアシスタントです。\n\n"
        f"目的：{context.purpose.value}\n"
        f"相手：{context.audience.value}\n"
        f"トーン：{context.tone.value}\n\n"
        "ユーザーの文章：\n"
        f"「{text}」\n\n"
        "意味を変えずに、相手と目的に合った自然な文章に言い換えてください。\n"
        "言い換えた文章だけを返してください。前置きや説明は不要です。"
    )


def parse_empathy_response(raw: str) -> tuple[str, str]:
    """
    Extract (empathy, next_step) from a model response.

    Prefers the requested JSON object; otherwise splits the text on the
    "2)" marker, using a default next step when there is no second part.
    """
    start = raw.find("{")
    end = raw.rfind("}") + 1
    if start >= 0 and end > start:
        try:
            data = json_repair.loads(raw[start:end])
        except Exception as e:
            logger.debug("Empathy response JSON could not be repaired: {}", e)
            data = None
        if isinstance(data, dict):
            empathy = str(data.get("empathy") or "").strip()
            next_step = str(data.get("next_step") or data.get("nextStep") or "").strip()
            if empathy:
                return empathy, next_step or DEFAULT_NEXT_STEP

    parts = raw.split("2)", 1)
    empathy = parts[0].strip()
    next_step = parts[1].strip() if len(parts) > 1 else DEFAULT_NEXT_STEP
    return empathy or raw.strip(), next_step or DEFAULT_NEXT_STEP


def clean_reformulation(raw: str) -> str:
    """Strip wrapping quotes the model sometimes adds."""
    text = raw.strip()
    for left, right in (("「", "」"), ('"', '"'), ("『", "』")):
        if len(text) >= 2 and text.startswith(left) and text.endswith(right):
            text = text[1:-1].strip()
    return text
