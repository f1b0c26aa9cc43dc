import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

# Unparseable environment values; reported by Config.validate_config()
_env_errors = []


def _env_number(name, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        _env_errors.append(f"{name} must be a number, got {raw!r}")
        return default


def _env_float(name, default):
    return _env_number(name, float(default), float)


def _env_int(name, default):
    return _env_number(name, int(default), int)


class Config:
    # OpenAI Configuration
    OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
    OPENAI_MODEL = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_TIMEOUT = _env_float("OPENAI_TIMEOUT", 60)

    # Sampling temperatures per call: creative generation, near-deterministic simulation
    GENERATION_TEMPERATURE = _env_float("GENERATION_TEMPERATURE", 0.7)
    SIMULATION_TEMPERATURE = _env_float("SIMULATION_TEMPERATURE", 0.2)
    GRADING_TEMPERATURE = _env_float("GRADING_TEMPERATURE", 0.4)

    # Flask Configuration
    SECRET_KEY = os.getenv("SECRET_KEY", os.urandom(24).hex())
    DEBUG = os.getenv("DEBUG", "False").lower() == "true"
    HOST = os.getenv("HOST", "0.0.0.0")
    PORT = _env_int("PORT", 5000)
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # In-memory quiz sessions: idle lifetime and hard cap
    SESSION_TTL_SECONDS = _env_int("SESSION_TTL_SECONDS", 7200)
    MAX_SESSIONS = _env_int("MAX_SESSIONS", 1000)

    # Security Configuration
    SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "False").lower() == "true"
    SESSION_COOKIE_HTTPONLY = True
    SESSION_COOKIE_SAMESITE = "Lax"

    @staticmethod
    def validate_config():
        """Validate configuration values.

        Returns a list of warnings for settings that only degrade the app
        (a missing API key makes every AI call fail but the pages still load).
        Raises RuntimeError for values the app cannot run with.
        """
        errors = list(_env_errors)
        warnings = []

        if not Config.OPENAI_API_KEY:
            warnings.append("OPENAI_API_KEY is not set; AI calls will fail")

        if not 0 < Config.PORT < 65536:
            errors.append(f"PORT must be between 1 and 65535, got {Config.PORT}")

        if Config.OPENAI_TIMEOUT <= 0:
            errors.append("OPENAI_TIMEOUT must be positive")

        if Config.SESSION_TTL_SECONDS <= 0:
            errors.append("SESSION_TTL_SECONDS must be positive")

        if Config.MAX_SESSIONS <= 0:
            errors.append("MAX_SESSIONS must be positive")

        for name in ("GENERATION_TEMPERATURE", "SIMULATION_TEMPERATURE", "GRADING_TEMPERATURE"):
            value = getattr(Config, name)
            if not 0 <= value <= 2:
                errors.append(f"{name} must be between 0 and 2, got {value}")

        if errors:
            raise RuntimeError(f"Configuration errors: {', '.join(errors)}")

        return warnings
