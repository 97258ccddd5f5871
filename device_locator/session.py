"""
Location session for one Find My iPhone account.

Responsible for:
- Performing the initial initClient call with the account password
- Performing refreshClient calls with the rotating session id / token pair
- Building the standard headers used by both calls

The session is a pure protocol adapter: it holds no timers and does not own
the aiohttp session it sends requests through.
"""
import json
import logging

import aiohttp

from .const import (
    DEFAULT_HEADERS,
    AUTH_SCHEME_HEADER,
    AUTH_SCHEME_INIT,
    AUTH_SCHEME_REFRESH,
    ACTION_INIT,
    ACTION_REFRESH,
    FMIP_BASE_URL,
    REQUEST_TIMEOUT,
    MAX_RETRIES,
)
from .errors import SessionStateError
from .models import ServerContext, SessionResponse
from .requests import make_request

_LOGGER = logging.getLogger(__name__)


class LocationSession:
    """Authenticated relationship with the service for one account."""

    def __init__(
        self,
        account: str,
        http: aiohttp.ClientSession,
        base_url: str = FMIP_BASE_URL,
        timeout: int = REQUEST_TIMEOUT,
        max_retries: int = MAX_RETRIES,
    ) -> None:
        self.account = account
        self._http = http
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._max_retries = max_retries
        # prs_id 0 means "no session yet"
        self.context = ServerContext()

    def action_url(self, login: str, action: str) -> str:
        return f"{self._base_url}/fmipservice/device/{login}/{action}"

    async def authenticate(self, username: str, password: str) -> SessionResponse:
        """
        Start a new session with the account password.

        Corresponding CURL command:
        curl -X 'POST' \\
          'https://fmipmobile.icloud.com/fmipservice/device/USERNAME/initClient' \\
          -u 'USERNAME:PASSWORD' \\
          -H 'X-Apple-AuthScheme: UserIDGuest' \\
          -d '{"accountName": "USERNAME"}'
        """
        _LOGGER.debug("Authenticating %s", self.account)
        return await self._call(
            login=username,
            secret=password,
            action=ACTION_INIT,
            scheme=AUTH_SCHEME_INIT,
            body={"accountName": username},
        )

    async def refresh(self, prs_id: int, auth_token: str) -> SessionResponse:
        """
        Refresh the session using the pair returned by the previous call.

        Raises SessionStateError when prs_id is not a live session id.
        """
        if prs_id <= 0:
            raise SessionStateError(f"Cannot refresh {self.account} without a session id")
        _LOGGER.debug("Refreshing %s (prsId %s)", self.account, prs_id)
        return await self._call(
            login=str(prs_id),
            secret=auth_token,
            action=ACTION_REFRESH,
            scheme=AUTH_SCHEME_REFRESH,
            body={},
        )

    async def _call(self, login: str, secret: str, action: str, scheme: str, body: dict) -> SessionResponse:
        raw = await make_request(
            self._http,
            "POST",
            self.action_url(login, action),
            get_standard_headers(scheme),
            data=json.dumps(body).encode(),
            auth=aiohttp.BasicAuth(login, secret),
            timeout=self._timeout,
            max_retries=self._max_retries,
        )
        response = SessionResponse.from_json(raw)
        self.context = response.context
        return response


def get_standard_headers(scheme: str) -> dict:
    """
    Build the HTTP headers sent with every request.

    :param scheme: Value of the X-Apple-AuthScheme header.
    :return: Dictionary of HTTP headers.
    """
    headers = dict(DEFAULT_HEADERS)
    headers[AUTH_SCHEME_HEADER] = scheme
    return headers
