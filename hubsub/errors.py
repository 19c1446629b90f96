from typing import Optional


class UpstreamFetchFailed(Exception):
    """An outbound call to the hub or the feed did not succeed."""

    def __init__(self, url: str, detail: str, status_code: Optional[int] = None):
        self.url = url
        self.detail = detail
        self.status_code = status_code
        super().__init__(f"{url}: {detail}")
