"""
Bracketed ASR markers ([BLANK_AUDIO], [music], [laughs] ...).

Whisper sometimes splits a marker over several word tokens ("[BLANK" + "_AUDIO]");
join_split_bracketed_markers glues them back before anything else looks at the words.

Sound types:
- speech: ordinary words.
- human_voice: markers a person makes (laugh, cough ...); attributed to a speaker.
- environmental: any other bracketed marker (music, applause ...); never attributed.
- blank: [BLANK_AUDIO] in any spelling; dropped entirely.
"""
from __future__ import annotations

import re
from typing import Iterable, Sequence

from speakerstream.diarization.models import Word

SPEECH = "speech"
HUMAN_VOICE = "human_voice"
ENVIRONMENTAL = "environmental"
BLANK = "blank"

HUMAN_VOICE_PATTERNS = (
    "laugh", "chuckle", "giggle", "cough", "sigh", "sneeze", "cry", "sob",
    "scream", "groan", "moan", "yawn", "gasp", "breath", "hum", "whistle",
    "sing", "clear", "throat", "hiccup", "snore", "sniff", "whimper",
)

_BRACKETED = re.compile(r"^(\[.*\]|\(.*\))$", re.DOTALL)
_BLANK_SEPARATORS = re.compile(r"[\s_]+")


def join_split_bracketed_markers(words: Sequence[Word]) -> list[Word]:
    """Merge a run of words from an opening "[" up to the word ending in "]". Unclosed runs are left alone."""
    result: list[Word] = []
    i = 0
    while i < len(words):
        word = words[i]
        stripped = word.text.strip()
        if stripped.startswith("[") and not stripped.endswith("]"):
            combined = word.text
            for j in range(i + 1, len(words)):
                combined += words[j].text
                if words[j].text.strip().endswith("]"):
                    result.append(Word(text=combined, start=word.start, end=words[j].end))
                    i = j + 1
                    break
            else:
                result.append(word)
                i += 1
        else:
            result.append(word)
            i += 1
    return result


def is_bracketed_marker(text: str) -> bool:
    return bool(text) and bool(_BRACKETED.match(text.strip()))


def is_blank_audio_marker(text: str) -> bool:
    """[BLANK_AUDIO], [BLANK AUDIO], [blank _audio] ..."""
    normalized = _BLANK_SEPARATORS.sub("", (text or "").strip().upper())
    return normalized == "[BLANKAUDIO]"


def is_human_voice_sound(text: str) -> bool:
    lower = (text or "").lower()
    return any(pattern in lower for pattern in HUMAN_VOICE_PATTERNS)


def classify_text(text: str) -> str:
    """One of SPEECH, HUMAN_VOICE, ENVIRONMENTAL, BLANK."""
    if not text or not text.strip() or is_blank_audio_marker(text):
        return BLANK
    if not is_bracketed_marker(text):
        return SPEECH
    if is_human_voice_sound(text):
        return HUMAN_VOICE
    return ENVIRONMENTAL


def categorize_words(words: Iterable[Word]) -> str:
    """
    Category of a word group: BLANK if every word is blank, ENVIRONMENTAL if every
    non-blank word is an environmental marker, otherwise SPEECH.
    """
    kinds = [classify_text(w.text) for w in words]
    non_blank = [k for k in kinds if k != BLANK]
    if not non_blank:
        return BLANK
    if all(k == ENVIRONMENTAL for k in non_blank):
        return ENVIRONMENTAL
    return SPEECH


def drop_blank_markers(words: Iterable[Word]) -> list[Word]:
    return [w for w in words if not is_blank_audio_marker(w.text)]


def is_effectively_empty(words: Sequence[Word]) -> bool:
    """True when there are words and all of them are blank-audio markers."""
    return bool(words) and all(is_blank_audio_marker(w.text) for w in words)
