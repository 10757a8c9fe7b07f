# config.example.py

"""
Documentation-only module (safe to commit).

The real configuration is loaded from environment variables (optionally via a local .env file).
Do NOT commit real secrets. Use:
- .env (local, gitignored)
- CI/cron secrets for scheduled runs

Variables of the first deployment (PLATRUM_HOST, PLATRUM_API_KEY, PLATRUM_USERS_NOT_TO_TRACK,
TELEGRAM_BOT_TOKEN, TELEGRAM_CHAT_ID, TELEGRAM_THREAD_ID, OPENAI_API_KEY, DRY_RUN) are still
read when the TASKPULSE_* name is not set.
"""

ENV_VARS = {
    # App / logging
    "TASKPULSE_APP_NAME": "App display name (default: taskpulse).",
    "TASKPULSE_LOG_LEVEL": "Console logging level (default: INFO).",
    "TASKPULSE_DRY_RUN": "Print the report instead of sending it (true/false).",
    # Paths (gitignored)
    "TASKPULSE_DATA_DIR": "Local data directory (default: .local/taskpulse).",
    "TASKPULSE_SNAPSHOT_PATH": "Previous-run snapshot (default: <data_dir>/stats/latest.json).",
    # Tracker (Platrum)
    "TASKPULSE_PLATRUM_HOST": "Tenant subdomain; the API lives at https://<host>.platrum.ru.",
    "TASKPULSE_PLATRUM_BASE_URL": "Full API base URL, overrides the host shorthand.",
    "TASKPULSE_PLATRUM_API_KEY": "API key sent in the Api-key header.",
    "TASKPULSE_PLATRUM_TIMEOUT_SECONDS": "Per-request timeout (default: 30).",
    "TASKPULSE_USERS_NOT_TO_TRACK": "Comma/space separated user ids never shown in the report.",
    "TASKPULSE_USER_REQUEST_DELAY_SECONDS": "Pause after each per-user task request (default: 0.1).",
    "TASKPULSE_USER_LOOKUP_DELAY_SECONDS": "Pause before each user lookup in fallback mode (default: 0.05).",
    "TASKPULSE_BACKLOG_LIMIT": "Max backlog tasks fetched per user (default: 5000).",
    # Delivery
    "TASKPULSE_NOTIFIER": "telegram (default) or matrix.",
    "TASKPULSE_TELEGRAM_BOT_TOKEN": "Bot token from @BotFather.",
    "TASKPULSE_TELEGRAM_CHAT_ID": "Target chat id.",
    "TASKPULSE_TELEGRAM_THREAD_ID": "Optional forum topic id.",
    "TASKPULSE_MATRIX_HOMESERVER": "Matrix homeserver URL.",
    "TASKPULSE_MATRIX_USER_ID": "Matrix user ID (bot).",
    "TASKPULSE_MATRIX_ACCESS_TOKEN": "Access token (preferred over password).",
    "TASKPULSE_MATRIX_PASSWORD": "Password for first login (session stored locally).",
    "TASKPULSE_MATRIX_ROOM_ID": "Target room id.",
    "TASKPULSE_MATRIX_THREAD_EVENT_ID": "Optional thread root event id.",
    # LLM (OpenAI-compatible)
    "TASKPULSE_LLM_ENABLED": "Use the LLM to write the report (default: on when a key is set).",
    "TASKPULSE_LLM_API_KEY": "API key for the OpenAI-compatible endpoint.",
    "TASKPULSE_LLM_BASE_URL": "Endpoint base URL (default: https://api.openai.com/v1).",
    "TASKPULSE_LLM_MODELS": "Comma/space separated list of models to try in order.",
    "TASKPULSE_LLM_CONNECT_TIMEOUT_SECONDS": "Connect timeout (default: 5).",
    "TASKPULSE_LLM_READ_TIMEOUT_SECONDS": "Read timeout (default: 60).",
}
