"""
Secret resolution for the PRTG passhash.

The passhash is forwarded verbatim to the API, so it may be given inline or
as a reference to a mounted secret file or another environment variable:

    resolve_secret("file:/run/secrets/prtg_passhash")  -> file content
    resolve_secret("env:PRTG_PASSHASH")                -> env variable
    resolve_secret("1234567890")                       -> as-is
"""
import os
from pathlib import Path
from typing import Optional

from prtg_exporter.common.exceptions import ConfigurationError
from prtg_exporter.common.logging_config import get_logger

logger = get_logger(__name__)

FILE_SCHEME = "file:"
ENV_SCHEME = "env:"


def resolve_secret(value: Optional[str]) -> Optional[str]:
    """
    Resolve a secret value from its reference.

    Args:
        value: Secret reference string, or None

    Returns:
        Resolved secret value (trailing whitespace stripped for files),
        or None if input is None

    Raises:
        ConfigurationError: If the referenced file or variable does not exist
    """
    if value is None:
        return None

    if value.startswith(FILE_SCHEME):
        path = Path(value[len(FILE_SCHEME):])
        if not path.is_file():
            raise ConfigurationError(f"Secret file not found: {path}")
        logger.debug(f"Secret resolved from file: {path}")
        return path.read_text(encoding="utf-8").strip()

    if value.startswith(ENV_SCHEME):
        var_name = value[len(ENV_SCHEME):]
        env_value = os.environ.get(var_name)
        if env_value is None:
            raise ConfigurationError(f"Environment variable not set: {var_name}")
        logger.debug(f"Secret resolved from env: {var_name}")
        return env_value

    return value
