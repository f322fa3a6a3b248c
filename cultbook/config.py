"""Configuration management for the slot booking racer."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from .models import TokenPair


class ConfigurationError(ValueError):
    """Raised when required settings are missing or invalid."""
    pass


DEFAULTS = {
    'centerId': 988,             # BaddyZone HSR
    'workoutId': 350,            # Badminton
    'targetSlotId': '15',        # 7-8 PM
    'fallbackSlotIds': ['16', '15', '17', '14'],
    'maxRetries': 15,
    'retryDelayMs': 300,
    'bookingHorizonDays': 4,
    'timezone': 'Asia/Kolkata',
    'cityId': 'Bangalore',
    'baseUrl': 'https://www.cult.fit/api',
    'requestTimeout': 5.0,
}

# JSON key -> environment variable
ENV_NAMES = {
    'centerId': 'CENTER_ID',
    'workoutId': 'WORKOUT_ID',
    'targetSlotId': 'TARGET_SLOT_ID',
    'fallbackSlotIds': 'FALLBACK_SLOT_IDS',
    'maxRetries': 'MAX_RETRIES',
    'retryDelayMs': 'RETRY_DELAY_MS',
    'bookingHorizonDays': 'BOOKING_HORIZON_DAYS',
    'timezone': 'TIMEZONE',
    'cityId': 'CITY_ID',
    'baseUrl': 'BASE_URL',
    'requestTimeout': 'REQUEST_TIMEOUT',
}


@dataclass(frozen=True)
class Credentials:
    """Secrets sent on every platform call."""

    api_key: str
    tokens: TokenPair

    def __repr__(self) -> str:
        return f"Credentials(api_key='{self.api_key[:4]}...', tokens=<hidden>)"


@dataclass(frozen=True)
class RaceConfig:
    """Immutable settings for a single race against one resource."""

    center_id: int = DEFAULTS['centerId']
    workout_id: int = DEFAULTS['workoutId']
    target_slot_id: str = DEFAULTS['targetSlotId']
    fallback_slot_ids: Tuple[str, ...] = field(default=tuple(DEFAULTS['fallbackSlotIds']))
    max_retries: int = DEFAULTS['maxRetries']
    retry_delay_ms: int = DEFAULTS['retryDelayMs']
    booking_horizon_days: int = DEFAULTS['bookingHorizonDays']
    timezone: str = DEFAULTS['timezone']
    city_id: str = DEFAULTS['cityId']
    base_url: str = DEFAULTS['baseUrl']
    request_timeout: float = DEFAULTS['requestTimeout']

    def __post_init__(self):
        if not self.target_slot_id:
            raise ConfigurationError("Target slot ID must not be empty")
        if not self.fallback_slot_ids:
            raise ConfigurationError("At least one fallback slot ID is required")
        if self.max_retries < 1:
            raise ConfigurationError(f"maxRetries must be >= 1, got {self.max_retries}")
        if self.retry_delay_ms < 0:
            raise ConfigurationError(f"retryDelayMs must be >= 0, got {self.retry_delay_ms}")
        if self.booking_horizon_days < 0:
            raise ConfigurationError(f"bookingHorizonDays must be >= 0, got {self.booking_horizon_days}")
        if self.request_timeout <= 0:
            raise ConfigurationError(f"requestTimeout must be positive, got {self.request_timeout}")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError):
            raise ConfigurationError(f"Unknown timezone: {self.timezone}")

    @property
    def retry_delay(self) -> float:
        """Delay between retry iterations in seconds."""
        return self.retry_delay_ms / 1000


def _as_int(key: str, value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{key} must be an integer, got {value!r}")


def _as_float(key: str, value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{key} must be a number, got {value!r}")


def _as_id_list(key: str, value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        value = value.split(',')
    elif not isinstance(value, (list, tuple)):
        raise ConfigurationError(f"{key} must be a list or comma-separated string, got {value!r}")
    return tuple(str(v).strip() for v in value if str(v).strip())


def load_credentials() -> Credentials:
    """
    Read the API key and session tokens from the environment.

    Raises:
        ConfigurationError: If any of API_KEY, AT or ST is missing
    """
    missing = [name for name in ('API_KEY', 'AT', 'ST') if not os.getenv(name, '').strip()]
    if missing:
        raise ConfigurationError(
            f"Missing required environment variables: {', '.join(missing)} (set in .env or environment)"
        )

    return Credentials(
        api_key=os.environ['API_KEY'].strip(),
        tokens=TokenPair(at=os.environ['AT'].strip(), st=os.environ['ST'].strip())
    )


def load_race_config(config_path: Optional[str] = 'config.json') -> RaceConfig:
    """
    Load race settings from defaults, an optional JSON file and the environment.

    Environment variables override the JSON file, which overrides defaults.

    Args:
        config_path: Path to the configuration JSON file (skipped if missing)

    Returns:
        RaceConfig instance

    Raises:
        ConfigurationError: If a value is invalid
    """
    settings: Dict[str, Any] = dict(DEFAULTS)

    if config_path:
        config_file = Path(config_path)
        if config_file.exists():
            try:
                with open(config_file, 'r') as f:
                    file_settings = json.load(f)
            except json.JSONDecodeError as e:
                raise ConfigurationError(f"Invalid JSON in {config_file}: {e}")

            if not isinstance(file_settings, dict):
                raise ConfigurationError(f"{config_file} must contain a JSON object")
            settings.update(file_settings)

    for key, env_name in ENV_NAMES.items():
        env_value = os.getenv(env_name)
        if env_value not in (None, ''):
            settings[key] = env_value

    return RaceConfig(
        center_id=_as_int('centerId', settings['centerId']),
        workout_id=_as_int('workoutId', settings['workoutId']),
        target_slot_id=str(settings['targetSlotId']).strip(),
        fallback_slot_ids=_as_id_list('fallbackSlotIds', settings['fallbackSlotIds']),
        max_retries=_as_int('maxRetries', settings['maxRetries']),
        retry_delay_ms=_as_int('retryDelayMs', settings['retryDelayMs']),
        booking_horizon_days=_as_int('bookingHorizonDays', settings['bookingHorizonDays']),
        timezone=str(settings['timezone']),
        city_id=str(settings['cityId']),
        base_url=str(settings['baseUrl']).rstrip('/'),
        request_timeout=_as_float('requestTimeout', settings['requestTimeout'])
    )


def load_config(config_path: Optional[str] = 'config.json') -> Tuple[RaceConfig, Credentials]:
    """
    Load configuration from .env, JSON file and environment variables.

    Credentials are checked first so a run without them fails before
    any network call.
    """
    # Load environment variables from .env file
    load_dotenv()

    credentials = load_credentials()
    return load_race_config(config_path), credentials


def create_example_env(output_path: str = '.env.example'):
    """Create an example .env file."""
    example_env = """# Platform credentials (copy from browser devtools)
API_KEY=your_api_key
AT=your_at_cookie
ST=your_st_cookie

# Race settings (optional, defaults shown)
CENTER_ID=988
WORKOUT_ID=350
TARGET_SLOT_ID=15
FALLBACK_SLOT_IDS=16,15,17,14
MAX_RETRIES=15
RETRY_DELAY_MS=300
BOOKING_HORIZON_DAYS=4
TIMEZONE=Asia/Kolkata
CITY_ID=Bangalore
"""

    with open(output_path, 'w') as f:
        f.write(example_env)

    print(f"Example .env file created at {output_path}")
