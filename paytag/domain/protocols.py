from typing import Any, Awaitable, Callable, Mapping, Optional, Protocol


class HttpResponse(Protocol):
    status_code: int
    headers: Mapping[str, str]
    text: str

    def json(self) -> Any:
        """Parse the response as JSON."""
        ...


class HttpClient(Protocol):
    async def request(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Mapping[str, str]] = None,
        json: Any = None,
        params: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> HttpResponse:
        """Make an HTTP request."""
        ...


class TokenProvider(Protocol):
    async def get_token(self) -> str:
        """Return a bearer token for upstream calls, raising AuthenticationError on failure."""
        ...


Sleeper = Callable[[float], Awaitable[None]]
