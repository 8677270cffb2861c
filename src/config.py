"""
Global settings for StudyBuddy.
Light, friendly study palette with an indigo accent.
"""

import os
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

# Storage
DATA_DIR = Path(os.getenv("STUDYBUDDY_DATA_DIR") or PROJECT_ROOT / "data")
DB_PATH = DATA_DIR / "app.db"
STORAGE_DIR = DATA_DIR / "storage"
BACKUPS_DIR = PROJECT_ROOT / "backups"

# Page
PAGE_TITLE = "StudyBuddy"
PAGE_ICON = "📚"
SIDEBAR_HEADER = "StudyBuddy — study smarter"

# Palette
SB_PRIMARY = "#4F46E5"          # Indigo
SB_PRIMARY_HOVER = "#4338CA"
SB_BG_PAGE = "#F8FAFC"
SB_CARD_BG = "#FFFFFF"
SB_CARD_SHADOW = "0 2px 8px rgba(15,23,42,0.06)"
SB_TEXT = "#0F172A"
SB_SUCCESS = "#16A34A"
SB_ERROR = "#DC2626"
SB_WARNING = "#F59E0B"

# Generation backend
GENERATION_API_URL = os.getenv(
    "STUDYBUDDY_GENERATION_URL",
    "http://127.0.0.1:8800/generate-learning-content",
)
# Unset means no client-side timeout: a hung request blocks only that feature.
_raw_timeout = os.getenv("STUDYBUDDY_GENERATION_TIMEOUT", "").strip()
GENERATION_TIMEOUT_S: float | None = float(_raw_timeout) if _raw_timeout else None
API_HOST = os.getenv("STUDYBUDDY_API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("STUDYBUDDY_API_PORT", "8800"))

# LLM (generation backend only)
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
LLM_MODEL = os.getenv("STUDYBUDDY_LLM_MODEL", "gpt-4o")

# Identity
REQUIRE_EMAIL_CONFIRMATION = os.getenv("STUDYBUDDY_REQUIRE_EMAIL_CONFIRMATION", "0") == "1"
BCRYPT_ROUNDS = 12

# Workspace defaults
ACTIONS = ("summary", "quiz", "flashcards")
DEFAULT_QUESTION_COUNT = 5
DEFAULT_DIFFICULTY = "medium"
DIFFICULTIES = ("easy", "medium", "hard")

# Subjects
UNTAGGED = "untagged"
PREDEFINED_SUBJECTS = ("math", "science", "history", "english")
SUBJECT_LABELS = {
    "math": "Mathematics",
    "science": "Science",
    "history": "History",
    "english": "English",
    "other": "Other",
    "untagged": "Untagged",
}

# Cosmetic delays (seconds)
QUIZ_ADVANCE_DELAY_S = 2.0
VIEWER_OPEN_DELAY_S = 1.0
BANNER_TTL_S = 5.0

# Downloaded-file cache
BLOB_CACHE_CAPACITY = int(os.getenv("STUDYBUDDY_BLOB_CACHE_CAPACITY", "32"))

# Onboarding choices
AVATARS = ["🦊", "🐼", "🦉", "🐢", "🐙", "🦄"]
EDUCATION_LEVELS = ["high-school", "undergraduate", "graduate", "self-learner"]
GOALS = ["exam-prep", "homework", "deep-understanding", "language", "career"]
