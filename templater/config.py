"""Environment-driven settings and console diagnostics.

Settings are read from the process environment, optionally seeded from a
``.env`` file in the working directory:

    TEMPLATER_DEBUG          ← "1" prints [TEMPLATER-DEBUG] lines
    TEMPLATER_VOCABULARY     ← path to a vocabulary JSON (labels, constants, label rules)
    TEMPLATER_PROMPTS_DIR    ← directory holding prompt templates
    TEMPLATER_FRAMEWORK      ← http | openai  (suggestion oracle backend)
    OPENAI_MODEL             ← model name for the oracle
    TEMPLATER_LLM_URL        ← OpenAI-compatible chat-completions endpoint (http framework)
    TEMPLATER_LLM_API_KEY    ← bearer key for TEMPLATER_LLM_URL
    TEMPLATER_ORACLE_BATCH   ← texts per oracle request
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv(override=False)

DEBUG = os.getenv("TEMPLATER_DEBUG", "0") == "1"

PACKAGE_DIR = Path(__file__).resolve().parent
DEFAULT_VOCABULARY_PATH = PACKAGE_DIR / "data" / "vocabulary.json"

FRAMEWORK = os.getenv("TEMPLATER_FRAMEWORK", "http")
MODEL = os.getenv("OPENAI_MODEL", "google/gemini-2.5-pro")
ORACLE_BATCH_SIZE = int(os.getenv("TEMPLATER_ORACLE_BATCH", "200"))


def dbg(msg: str) -> None:
    if DEBUG:
        print(f"[TEMPLATER-DEBUG] {msg}")


def warn(msg: str) -> None:
    print(f"[TEMPLATER-WARN] {msg}", file=sys.stderr)


def vocabulary_path(override: Optional[str] = None) -> Path:
    """Resolve the vocabulary file: explicit path, then env, then packaged default."""
    if override:
        return Path(override).expanduser()
    env = os.getenv("TEMPLATER_VOCABULARY")
    if env:
        return Path(env).expanduser()
    return DEFAULT_VOCABULARY_PATH
