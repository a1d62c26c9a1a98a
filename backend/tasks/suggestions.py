"""
Generative task suggestions for new projects.

Calls the Gemini generateContent REST endpoint asking for a JSON array of
5-8 `{title, priority}` objects. Failed attempts are retried with
exponential backoff; when retries run out, or no API key is configured, a
fixed set of five generic tasks is returned instead.
"""
import json
import logging
import os
import time
from datetime import timedelta

import requests
from django.conf import settings
from django.utils import timezone

logger = logging.getLogger(__name__)

MIN_SUGGESTIONS = 5
MAX_SUGGESTIONS = 8
VALID_PRIORITIES = ('High', 'Medium', 'Low')
DEFAULT_PRIORITY = 'Medium'
DEFAULT_TITLE = 'Untitled Task'

RESPONSE_SCHEMA = {
    'type': 'ARRAY',
    'items': {
        'type': 'OBJECT',
        'properties': {
            'title': {'type': 'STRING'},
            'priority': {'type': 'STRING', 'enum': list(VALID_PRIORITIES)},
        },
        'required': ['title', 'priority'],
    },
}

FALLBACK_TASKS = [
    ('sim-1', 'Initial Project Setup', 'High'),
    ('sim-2', 'Research & Analysis', 'Medium'),
    ('sim-3', 'Draft Requirements', 'High'),
    ('sim-4', 'Team Kickoff Meeting', 'Medium'),
    ('sim-5', 'Review Milestone 1', 'Low'),
]


class SuggestionError(Exception):
    """A single generation attempt produced no usable tasks"""


def _setting(name, default):
    return getattr(settings, name, os.getenv(name, default))


def _build_prompt(description, project_type):
    return (
        f'I am creating a project of type "{project_type}".\n'
        f'The description is: "{description}".\n\n'
        f'Please generate {MIN_SUGGESTIONS} to {MAX_SUGGESTIONS} suggested tasks for this project.\n'
        'Return a JSON array of task objects.\n'
        'Each task must have a "title" (string) and "priority" (High, Medium, Low).'
    )


def fallback_tasks():
    """The fixed five-task template used when generation is unavailable"""
    today = timezone.localdate()
    return [
        {
            'id': task_id,
            'title': title,
            'status': 'Todo',
            'priority': priority,
            'due_date': today.isoformat() if index == 0 else None,
        }
        for index, (task_id, title, priority) in enumerate(FALLBACK_TASKS)
    ]


def _request_suggestions(api_key, description, project_type):
    """Perform one generation call and return the raw response text"""
    base_url = _setting('GEMINI_API_URL', 'https://generativelanguage.googleapis.com/v1beta/models').rstrip('/')
    model = _setting('GEMINI_MODEL', 'gemini-2.5-flash')
    timeout = float(_setting('TASK_SUGGESTION_TIMEOUT', 30))

    payload = {
        'contents': [{'parts': [{'text': _build_prompt(description, project_type)}]}],
        'generationConfig': {
            'responseMimeType': 'application/json',
            'responseSchema': RESPONSE_SCHEMA,
        },
    }
    try:
        response = requests.post(
            f"{base_url}/{model}:generateContent",
            json=payload,
            headers={'x-goog-api-key': api_key, 'Content-Type': 'application/json'},
            timeout=timeout,
        )
    except requests.exceptions.RequestException as e:
        raise SuggestionError(f"Request failed: {str(e)}")

    if response.status_code != 200:
        raise SuggestionError(f"Generator returned HTTP {response.status_code}: {response.text[:200]}")

    try:
        body = response.json()
        text = body['candidates'][0]['content']['parts'][0]['text']
    except (ValueError, KeyError, IndexError, TypeError):
        raise SuggestionError("Empty response from generator")
    if not text:
        raise SuggestionError("Empty response from generator")
    return text


def parse_suggestions(raw_text):
    """Decode the generator's text into a non-empty list, or raise SuggestionError"""
    try:
        raw_tasks = json.loads(raw_text)
    except (TypeError, ValueError):
        raise SuggestionError("Malformed JSON received")
    if not isinstance(raw_tasks, list) or not raw_tasks:
        raise SuggestionError("Empty or invalid task array received")
    return raw_tasks


def _to_suggestions(raw_tasks):
    """Stamp ids, Todo status and staggered due dates onto generated tasks"""
    stamp = int(time.time() * 1000)
    today = timezone.localdate()
    suggestions = []
    for index, raw in enumerate(raw_tasks[:MAX_SUGGESTIONS]):
        raw = raw if isinstance(raw, dict) else {}
        priority = raw.get('priority')
        suggestions.append({
            'id': f"generated-{stamp}-{index}",
            'title': str(raw.get('title') or DEFAULT_TITLE),
            'status': 'Todo',
            'priority': priority if priority in VALID_PRIORITIES else DEFAULT_PRIORITY,
            'due_date': (today + timedelta(days=index + 1)).isoformat(),
        })
    return suggestions


def generate_tasks(description, project_type):
    """
    Suggest starter tasks for a project.

    Returns a list of dicts with id, title, status, priority and due_date.
    Never raises for generator problems; those end in the fallback set.
    """
    api_key = _setting('GEMINI_API_KEY', '')
    if not api_key:
        logger.warning("No generator API key configured. Using fallback task suggestions.")
        return fallback_tasks()

    max_retries = int(_setting('TASK_SUGGESTION_MAX_RETRIES', 3))
    backoff = float(_setting('TASK_SUGGESTION_BACKOFF_SECONDS', 1))

    for attempt in range(1, max_retries + 1):
        try:
            raw_tasks = parse_suggestions(_request_suggestions(api_key, description, project_type))
            suggestions = _to_suggestions(raw_tasks)
            logger.info(f"Generated {len(suggestions)} task suggestions for '{project_type}' project on attempt {attempt}")
            return suggestions
        except SuggestionError as e:
            logger.error(f"Task suggestion error (Attempt {attempt}/{max_retries}): {str(e)}")
            if attempt < max_retries:
                time.sleep(backoff * (2 ** (attempt - 1)))

    logger.warning("Max retries reached. Falling back to template task suggestions.")
    return fallback_tasks()
