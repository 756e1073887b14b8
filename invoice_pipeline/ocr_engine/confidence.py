"""
OCR Confidence Heuristic.

Tesseract's plain-text mode reports no confidence, so each page gets a
deterministic score from the shape of the recognized text: how much there is,
whether it mixes letters and digits, and how much punctuation noise it
carries.
"""

import re

from .ocr_result import clamp_confidence

BASE_SCORE = 0.5
WORD_BONUS = 0.1
CHARACTER_CLASS_BONUS = 0.1
NOISE_PENALTY = 0.2
NOISE_RATIO_LIMIT = 0.3

_LETTER = re.compile(r'[A-Za-z]')
_DIGIT = re.compile(r'[0-9]')


def score_text_confidence(text: str) -> float:
    """
    Estimate OCR quality from recognized text.

    Scoring: 0.5 base; +0.1 above 10 words; +0.1 above 50 words; +0.1 when
    any letter is present; +0.1 when any digit is present; -0.2 when more
    than 30% of characters are neither alphanumeric nor whitespace. Blank
    text scores exactly 0.0.

    Args:
        text: Recognized text of one page or image.

    Returns:
        Score in [0, 1].

    Example:
        >>> score_text_confidence("Invoice 1001")
        0.7
        >>> score_text_confidence("   ")
        0.0
    """
    if not text or not text.strip():
        return 0.0

    score = BASE_SCORE

    word_count = len(text.split())
    if word_count > 10:
        score += WORD_BONUS
    if word_count > 50:
        score += WORD_BONUS

    if _LETTER.search(text):
        score += CHARACTER_CLASS_BONUS
    if _DIGIT.search(text):
        score += CHARACTER_CLASS_BONUS

    noise = sum(1 for ch in text if not ch.isalnum() and not ch.isspace())
    if noise / len(text) > NOISE_RATIO_LIMIT:
        score -= NOISE_PENALTY

    return round(clamp_confidence(score), 4)


def mean_confidence(scores) -> float:
    """Arithmetic mean of per-page scores; 0.0 for no pages."""
    scores = list(scores)
    if not scores:
        return 0.0
    return round(clamp_confidence(sum(scores) / len(scores)), 4)
