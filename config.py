"""Configuration module for the Reminder Scheduler service.

This module provides configuration settings using Pydantic Settings.
Environment variables can be used to override default values.
"""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings for the Reminder Scheduler service.

    All settings can be overridden via environment variables.
    Example: export REMINDER_BUFFER_MINUTES=15
    """

    # Database Configuration
    DATABASE_URL: str = "sqlite:///./reminders.db"
    """Entity store connection URL. Default: SQLite file in current directory"""

    # API Server Configuration
    API_HOST: str = "0.0.0.0"
    """API server host address"""

    API_PORT: int = 8005
    """API server port"""

    # Logging Configuration
    LOG_LEVEL: str = "INFO"
    """Level for all service loggers"""

    LOG_DIR: str = "logs"
    """Directory for rotating component log files"""

    LOG_TO_FILE: bool = True
    """Write component logs to LOG_DIR in addition to the console"""

    # General Configuration
    TIMEZONE: str = "UTC"
    """Timezone used to localize dates inside reminder messages"""

    PRODUCT_NAME: str = "KIMELIA Omnia"
    """Product name used as the prefix of every reminder message"""

    # Reminder Scheduler Configuration
    REMINDER_BUFFER_MINUTES: int = 10
    """How far ahead of now a reminder may be and still count as due"""

    SCHEDULER_TICK_SECONDS: float = 60
    """Interval in seconds between scan cycles (default: once per minute)"""

    SCHEDULER_ENABLED: bool = True
    """Start the scheduler together with the API server"""

    SCHEDULER_RUN_ON_START: bool = True
    """Fire the first scan cycle immediately instead of after one interval"""

    MARK_UNSENDABLE_AS_SENT: bool = True
    """Mark reminders whose owner lacks contact info for the channel as sent (skipped)"""

    # Notification Providers
    SENDGRID_API_KEY: Optional[str] = None
    """SendGrid API key for email reminders"""

    SENDER_EMAIL: Optional[str] = None
    """From address for email reminders"""

    TWILIO_ACCOUNT_SID: Optional[str] = None
    """Twilio account SID for SMS reminders"""

    TWILIO_AUTH_TOKEN: Optional[str] = None
    """Twilio auth token for SMS reminders"""

    TWILIO_PHONE_NUMBER: Optional[str] = None
    """Twilio sender phone number (E.164)"""

    HTTP_TIMEOUT_SECONDS: float = 30.0
    """Timeout for outgoing notification provider requests"""

    class Config:
        """Pydantic config"""
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()
