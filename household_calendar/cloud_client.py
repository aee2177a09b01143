"""
Google Calendar API access for cloud calendar sources.

Builds the events request and looks up OAuth access tokens through an
external password program. Obtaining and refreshing the tokens themselves
is handled outside this engine.
"""

import subprocess
from datetime import datetime
from typing import Callable, Optional
from urllib.parse import quote
import pytz

from .errors import ConfigError


GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
MAX_RESULTS = 50

# Maps a token key to a current access token
TokenProvider = Callable[[str], str]


def events_url(calendar_id: str) -> str:
    """URL of the events collection of a Google calendar."""
    return f"{GOOGLE_CALENDAR_API}/calendars/{quote(calendar_id, safe='')}/events"


def events_params(now: Optional[datetime] = None) -> dict:
    """
    Query parameters for upcoming single-instance events.

    ``singleEvents`` makes the provider expand recurring events server-side,
    so no recurrence rules reach the normalizer.
    """
    if now is None:
        now = datetime.now(pytz.UTC)
    return {
        'timeMin': now.astimezone(pytz.UTC).isoformat(),
        'singleEvents': 'true',
        'orderBy': 'startTime',
        'maxResults': MAX_RESULTS,
    }


class PasswordProgramTokenProvider:
    """
    Token provider that runs ``password_program <token_key>`` and reads the
    access token from its stdout.
    """

    def __init__(self, password_program: str, timeout: float = 10):
        self.password_program = password_program
        self.timeout = timeout

    def __call__(self, token_key: str) -> str:
        try:
            result = subprocess.run(
                [self.password_program, token_key],
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            raise ConfigError(f"Password program timed out for key '{token_key}'")
        except FileNotFoundError:
            raise ConfigError(f"Password program not found: {self.password_program}")

        if result.returncode != 0:
            raise ConfigError(
                f"Password program failed for key '{token_key}': {result.stderr.strip()}"
            )
        token = result.stdout.strip()
        if not token:
            raise ConfigError(f"Password program returned no token for key '{token_key}'")
        return token
