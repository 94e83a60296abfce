"""
Response helpers shared by routers
"""
from fastapi import Response

# Availability must never be served from an HTTP cache
NO_STORE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "Surrogate-Control": "no-store",
}


def no_store(response: Response) -> None:
    response.headers.update(NO_STORE_HEADERS)
