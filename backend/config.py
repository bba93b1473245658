"""
Configuration module for Fleetline backend.

Centralizes all configuration settings including database URLs,
geofence/check-in thresholds and locking behaviour.
"""

import os


class Config:
    """Application configuration loaded from environment variables."""

    # Feature Flags
    USE_DATABASE: bool = os.getenv("USE_DATABASE", "true").lower() == "true"

    # Database Configuration
    DATABASE_URL: str = os.getenv(
        "DATABASE_URL",
        "sqlite:///./fleetline.db"
    )
    SQLALCHEMY_ECHO: bool = os.getenv("SQLALCHEMY_ECHO", "false").lower() == "true"

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

    # Check-in validation
    GEOFENCE_TOLERANCE_METERS: float = float(os.getenv("GEOFENCE_TOLERANCE_METERS", "100.0"))
    DUPLICATE_CHECKIN_WINDOW_MINUTES: int = int(
        os.getenv("DUPLICATE_CHECKIN_WINDOW_MINUTES", "5")
    )

    # Scheduling
    AVERAGE_SPEED_KMH: float = float(os.getenv("AVERAGE_SPEED_KMH", "30.0"))
    LOCK_TIMEOUT_SECONDS: float = float(os.getenv("LOCK_TIMEOUT_SECONDS", "10.0"))

    # Alerts
    ALERTS_DEFAULT_LIMIT: int = int(os.getenv("ALERTS_DEFAULT_LIMIT", "50"))

    # Fleet registry (vehicle/driver directory). Empty disables availability checks.
    FLEET_REGISTRY_PATH: str = os.getenv("FLEET_REGISTRY_PATH", "")

    @staticmethod
    def masked_database_url(url: str) -> str:
        """Hide the credentials part of a database URL."""
        if "@" not in url or "://" not in url:
            return url
        scheme, rest = url.split("://", 1)
        return f"{scheme}://***@{rest.rsplit('@', 1)[1]}"

    @classmethod
    def get_config_dict(cls) -> dict:
        """Return configuration as dictionary (for debugging)."""
        return {
            "USE_DATABASE": cls.USE_DATABASE,
            "DATABASE_URL": cls.masked_database_url(cls.DATABASE_URL),
            "LOG_LEVEL": cls.LOG_LEVEL,
            "GEOFENCE_TOLERANCE_METERS": cls.GEOFENCE_TOLERANCE_METERS,
            "DUPLICATE_CHECKIN_WINDOW_MINUTES": cls.DUPLICATE_CHECKIN_WINDOW_MINUTES,
            "AVERAGE_SPEED_KMH": cls.AVERAGE_SPEED_KMH,
            "LOCK_TIMEOUT_SECONDS": cls.LOCK_TIMEOUT_SECONDS,
            "ALERTS_DEFAULT_LIMIT": cls.ALERTS_DEFAULT_LIMIT,
            "FLEET_REGISTRY_PATH": cls.FLEET_REGISTRY_PATH,
        }


# Global configuration instance
config = Config()
