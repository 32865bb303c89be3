"""
Programs Loader Utility

Loads the featured Auvio programs listed on the index page from programs.json.
"""

import json
import os
import logging
from typing import Dict, List

from auvio_podcast.utils.cache import InMemoryCache

logger = logging.getLogger(__name__)

_cache = InMemoryCache(max_size=4)


def _get_programs_file_path() -> str:
    """Get the path to programs.json file."""
    env_path = os.getenv('PROGRAMS_FILE')
    if env_path:
        return env_path
    project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    return os.path.join(project_root, 'programs.json')


def _load_programs() -> Dict:
    """Load programs from JSON file with caching."""
    cached_data = _cache.get("programs_data")
    if cached_data:
        return cached_data

    file_path = _get_programs_file_path()
    try:
        with open(file_path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except FileNotFoundError:
        logger.warning(f"[ProgramsLoader] programs.json not found at {file_path}")
        return {"version": "1.0", "programs": []}
    except json.JSONDecodeError as e:
        logger.error(f"[ProgramsLoader] Error parsing programs.json: {e}")
        return {"version": "1.0", "programs": []}

    # Cache for 1 hour
    _cache.set("programs_data", data, ttl=3600)
    logger.info(f"[ProgramsLoader] Loaded {len(data.get('programs', []))} programs from programs.json")
    return data


def get_featured_programs() -> List[Dict[str, str]]:
    """
    Get enabled programs for the index page.

    Returns:
        List of {"path", "name"} dicts, in file order
    """
    result = []
    for program in _load_programs().get('programs', []):
        if not program.get('enabled', True):
            continue
        path = program.get('path')
        if not path:
            continue
        result.append({'path': path, 'name': program.get('name', path)})
    return result


def reload_programs() -> None:
    """Force reload of programs.json (clears cache)."""
    _cache.delete("programs_data")
    logger.info("[ProgramsLoader] Programs cache cleared")
