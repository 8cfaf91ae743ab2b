# backend/passthrough/fetcher.py
import time

import requests
from typing import Dict, Optional
from requests.exceptions import RequestException

from proxycache.entry import UpstreamResponse
from .errors import UpstreamError

DEFAULT_USER_AGENT = "(WeatherStar 4000+, ws4000@netbymatt.com)"

HOP_BY_HOP = {
    "connection", "keep-alive", "proxy-authenticate", "proxy-authorization",
    "te", "trailers", "transfer-encoding", "upgrade"
}
# requests hands back a decoded body, so the upstream framing no longer applies
BODY_FRAMING = {"content-encoding", "content-length"}
CHUNK_SIZE = 64 * 1024


def filter_headers(headers) -> Dict[str, str]:
    out = {}
    for k, v in headers.items():
        name = k.lower()
        if name in HOP_BY_HOP or name in BODY_FRAMING:
            continue
        if name == "set-cookie":
            continue
        out[name] = v
    return out


def fetch_url(url: str, accept: Optional[str] = None, timeout: float = 10,
              user_agent: str = DEFAULT_USER_AGENT) -> UpstreamResponse:
    """
    GET `url` from the upstream API.
    Raises UpstreamError on network errors and timeouts; HTTP error statuses
    are returned like any other response. `timeout` bounds the whole
    download, not just each socket read.
    """
    headers = {"User-Agent": user_agent}
    if accept:
        headers["Accept"] = accept

    deadline = time.monotonic() + timeout
    try:
        r = requests.get(url, headers=headers, timeout=timeout, stream=True)
        try:
            chunks = []
            for chunk in r.iter_content(chunk_size=CHUNK_SIZE):
                chunks.append(chunk)
                if time.monotonic() > deadline:
                    raise UpstreamError(f"upstream body for {url} took longer than {timeout}s")
        finally:
            r.close()
    except UpstreamError:
        raise
    except RequestException as e:
        raise UpstreamError(f"requests error for {url}: {e}") from e

    return UpstreamResponse(
        status_code=r.status_code,
        headers=filter_headers(r.headers),
        body=b"".join(chunks),
    )
