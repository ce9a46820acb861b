import os

from dotenv import load_dotenv

BASE_DIR = os.path.dirname(os.path.abspath(__file__))

# Variables already set in the environment win over .env entries
load_dotenv()


class Config:
    WORDS_PATH = os.environ.get('WORDS_PATH') or os.path.join(BASE_DIR, 'data', 'words.txt')
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')
    # Lobby defaults
    DEFAULT_ROUND_COUNT = int(os.environ.get('DEFAULT_ROUND_COUNT', '10'))
    DEFAULT_ROUND_DURATION_SEC = int(os.environ.get('DEFAULT_ROUND_DURATION_SEC', '75'))
    # Round clock (seconds)
    TICK_SECONDS = float(os.environ.get('TICK_SECONDS', '1'))
    START_DELAY_SEC = float(os.environ.get('START_DELAY_SEC', '3.5'))
    HALVING_FLOOR_SEC = int(os.environ.get('HALVING_FLOOR_SEC', '10'))
    # Reconnection grace periods (seconds)
    RECONNECTING_WINDOW_SEC = float(os.environ.get('RECONNECTING_WINDOW_SEC', '30'))
    HOST_MIGRATION_DELAY_SEC = float(os.environ.get('HOST_MIGRATION_DELAY_SEC', '30'))
    PLAYER_REMOVAL_DELAY_SEC = float(os.environ.get('PLAYER_REMOVAL_DELAY_SEC', '120'))
    SESSION_DELETION_DELAY_SEC = float(os.environ.get('SESSION_DELETION_DELAY_SEC', '300'))
    # Bots
    BOT_DEFAULT_RETRIES = int(os.environ.get('BOT_DEFAULT_RETRIES', '3'))
    BOT_MIN_DELAY_SEC = float(os.environ.get('BOT_MIN_DELAY_SEC', '3'))
    BOT_MAX_DELAY_SEC = float(os.environ.get('BOT_MAX_DELAY_SEC', '8'))
    # Language model / illustration services
    LLM_MODEL = os.environ.get('LLM_MODEL', 'openrouter/nvidia/nemotron-3-nano-30b-a3b:free')
    LLM_TIMEOUT_SEC = float(os.environ.get('LLM_TIMEOUT_SEC', '30'))
    OPENROUTER_API_KEY = os.environ.get('OPENROUTER_API_KEY')
    CLOUDFLARE_API_TOKEN = os.environ.get('CLOUDFLARE_API_TOKEN')
    CLOUDFLARE_ACCOUNT_ID = os.environ.get('CLOUDFLARE_ACCOUNT_ID')
