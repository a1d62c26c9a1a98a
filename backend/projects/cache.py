"""
Per-project payload cache.

The client reloads its whole project list after every write; this keeps the
serialized project (team, milestones, ordered tasks) keyed by project id so a
reload only rebuilds projects that actually changed. Entries are dropped by the
receivers in `signals.py` whenever a project or one of its rows is saved or
deleted.
"""
from django.core.cache import cache
import logging

logger = logging.getLogger(__name__)

PROJECT_KEY_PREFIX = 'project:'

# Projects change often while a team is working; keep entries short-lived
PROJECT_CACHE_TTL = 300  # 5 minutes


def get_project_cache_key(project_id) -> str:
    """Get cache key for a project payload by ID"""
    return f"{PROJECT_KEY_PREFIX}{project_id}"


def get_cached_project(project_id):
    """Get cached project payload by ID"""
    cached_data = cache.get(get_project_cache_key(project_id))
    if cached_data is not None:
        logger.debug(f"Cache hit for project: {project_id}")
    return cached_data


def cache_project_data(project_id, data, ttl: int = None):
    """Cache a serialized project payload"""
    cache.set(get_project_cache_key(project_id), data, ttl or PROJECT_CACHE_TTL)
    logger.debug(f"Cached project payload (ID: {project_id})")


def invalidate_project_cache(project_id):
    """Drop the cached payload for a project"""
    if project_id is None:
        return
    cache.delete(get_project_cache_key(project_id))
    logger.debug(f"Invalidated cache for project: {project_id}")
