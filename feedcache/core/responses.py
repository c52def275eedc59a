"""
feedcache/core/responses.py
Response envelope shared by every data route:

  {response, description, timestamp, link: {action, href}}
"""

from typing import Any

from fastapi import Request

from feedcache.core.identity import date_generator


def envelope(request: Request, response: Any, description: str) -> dict:
    return {
        "response":    response,
        "description": description,
        "timestamp":   date_generator(None),
        "link": {
            "action": request.method,
            "href":   request.url.path,
        },
    }
