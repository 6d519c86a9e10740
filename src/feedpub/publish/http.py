"""Shared urllib plumbing for feed clients."""

from __future__ import annotations

import socket
from urllib import error, request

from ..errors import FeedRequestError, FeedUnavailableError


def send(req: request.Request, *, timeout_s: int, missing_ok: bool = False) -> bytes | None:
    """Send ``req`` and return the body.

    A 404 returns ``None`` when ``missing_ok``. Connection problems, timeouts
    and 5xx answers raise :class:`FeedUnavailableError`; other HTTP errors
    raise :class:`FeedRequestError`. Both carry the HTTP status when there is one.
    """

    try:
        with request.urlopen(req, timeout=timeout_s) as response:
            return response.read()
    except error.HTTPError as exc:
        if exc.code == 404 and missing_ok:
            return None
        if exc.code >= 500:
            raise FeedUnavailableError(
                f"{req.get_method()} {_strip_query(req.full_url)} 回傳 HTTP {exc.code}", status=exc.code
            ) from exc
        raise FeedRequestError(
            f"{req.get_method()} {_strip_query(req.full_url)} 回傳 HTTP {exc.code}", status=exc.code
        ) from exc
    except (socket.timeout, TimeoutError) as exc:
        raise FeedUnavailableError(f"{req.get_method()} {_strip_query(req.full_url)} 逾時") from exc
    except error.URLError as exc:
        raise FeedUnavailableError(f"無法連線 {_strip_query(req.full_url)}：{exc.reason}") from exc


def _strip_query(url: str) -> str:
    # Storage tokens travel in the query string; keep them out of messages.
    return url.split("?", 1)[0]
