import os


def get_settings_module() -> str:
    """Settings module for APP_ENV; anything unrecognised means development."""
    env = os.getenv("APP_ENV", "development").lower()

    if env in {"prod", "production"}:
        return "campus_attendance.config.production"

    if env in {"test", "testing"}:
        return "campus_attendance.config.testing"

    return "campus_attendance.config.development"
