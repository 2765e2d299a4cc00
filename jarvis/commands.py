"""
Command vocabulary shared by the listener and the executor.

The listener only ever dispatches a token from COMMANDS; the executor maps
each token to the key it taps. "do_nothing" is what the interpreter answers
when the wake word or the command is missing, and it is never dispatched.
"""

import json
from typing import Iterable

COMMANDS = (
    "pause_video",
    "play_video",
)

COMMANDS_HUMAN_READABLE = {
    "pause_video": "pause the YouTube video",
    "play_video":  "play the YouTube video",
}

# YouTube toggles play/pause on "k", so both commands share the key.
COMMAND_KEYS = {
    "pause_video": "k",
    "play_video":  "k",
}

DO_NOTHING = "do_nothing"

WAKE_WORD_VARIANTS = ("Jarvis", "Jarmis", "Jarvez", "Germous")

PROMPT_TEMPLATE = """You are Jarvis, a voice assistant that listens to noisy voice transcripts.
Your job is to detect whether the user is calling you, and whether they are giving you a valid command.

The transcript may contain errors or mispronunciations.
Users might call you {variants}, or similar variations.

Only respond with a valid command if BOTH of the following are true:
1. The assistant (you) was clearly addressed, even with a mispronounced name.
2. One of the following commands was clearly intended:
{commands}

If both are true, respond with the correct command (exactly as written above).
If at least one is false, respond with:
\t- {do_nothing}

Respond with ONE WORD only.

Transcript: {transcript}

Command:"""


def normalize_transcript(text: str) -> str:
    """Trim, drop full stops and lowercase a raw STT transcript."""
    return text.strip().replace(".", "").lower()


def has_wake_word(transcript: str, wake_word: str) -> bool:
    return wake_word.lower() in transcript


def build_prompt(transcript: str, commands: Iterable[str] = COMMANDS) -> str:
    variants = ", ".join(f'"{v}"' for v in WAKE_WORD_VARIANTS)
    return PROMPT_TEMPLATE.format(
        variants=variants,
        commands="\n".join(f"\t- {c}" for c in commands),
        do_nothing=DO_NOTHING,
        # Double-quoted with escapes so the transcript cannot break out.
        transcript=json.dumps(transcript, ensure_ascii=False),
    )


def match_command(response: str, commands: Iterable[str] = COMMANDS) -> str:
    """Return the first vocabulary token contained in *response*, or ""."""
    for command in commands:
        if command in response:
            return command
    return ""
