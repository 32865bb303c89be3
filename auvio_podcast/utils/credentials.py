import json
import os
import re
import logging
from typing import Dict, Any, Optional, Tuple

from auvio_podcast.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _lenient_parse(text: str, context: str) -> Optional[Dict[str, Any]]:
    """Attempt to parse non-strict JSON and log what was attempted."""
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(
            f"{context} - JSONDecodeError: {e.msg} at line {e.lineno} column {e.colno} (char {e.pos})"
        )

    # Single quotes instead of double quotes
    fixed = text.replace("'", '"')
    if fixed != text:
        logger.warning(f"{context} - Retrying after replacing single quotes with double quotes")
        try:
            return json.loads(fixed)
        except json.JSONDecodeError:
            pass

    # Unquoted property names (shallow heuristic)
    fixed = re.sub(r'([{,])\s*([A-Za-z_][A-Za-z0-9_]*)\s*:', r'\1"\2":', fixed)
    if fixed != text:
        logger.warning(f"{context} - Retrying after quoting unquoted property names")
        try:
            return json.loads(fixed)
        except json.JSONDecodeError:
            pass

    logger.error(f"{context} - Lenient parsing attempts failed")
    return None


def _load_from_env() -> Optional[Dict[str, Any]]:
    """Load credentials from CREDENTIALS_JSON environment variable if set."""
    raw = os.getenv('CREDENTIALS_JSON')
    if not raw:
        return None
    logger.info("credentials: Using CREDENTIALS_JSON environment variable")
    return _lenient_parse(raw, "credentials.env:CREDENTIALS_JSON")


def _load_from_file(path: str) -> Optional[Dict[str, Any]]:
    if not os.path.exists(path):
        logger.info(f"credentials: File not found: {path}")
        return None

    with open(path, 'r', encoding='utf-8') as f:
        content = f.read()
    logger.info(f"credentials: Loading credentials from {path} ({len(content)} bytes)")
    return _lenient_parse(content, f"credentials.file:{path}")


def load_credentials() -> Dict[str, Any]:
    """Load the credentials document from env or credentials.json at the repository root."""
    creds = _load_from_env()
    if creds is not None:
        return creds

    repo_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    creds = _load_from_file(os.path.join(repo_root, 'credentials.json'))
    if creds is not None:
        return creds

    logger.warning("credentials: No credentials document could be loaded")
    return {}


def get_auvio_credentials() -> Tuple[str, str]:
    """
    Return the (email, password) pair used for the identity provider login.

    AUVIO_EMAIL / AUVIO_PASSWORD take precedence over the 'auvio' section
    of the credentials document.
    """
    email = os.getenv('AUVIO_EMAIL')
    password = os.getenv('AUVIO_PASSWORD')

    if not email or not password:
        section = load_credentials().get('auvio', {})
        if not isinstance(section, dict):
            logger.error(f"credentials: 'auvio' section is not an object; got {type(section).__name__}")
            section = {}
        email = email or section.get('login')
        password = password or section.get('password')

    if not email:
        raise ConfigurationError("Auvio login is not configured (AUVIO_EMAIL or credentials.json 'auvio.login')")
    if not password:
        raise ConfigurationError("Auvio password is not configured (AUVIO_PASSWORD or credentials.json 'auvio.password')")
    return email, password


def has_auvio_credentials() -> bool:
    try:
        get_auvio_credentials()
    except ConfigurationError:
        return False
    return True
