from typing import Mapping, Optional

from ..config import InspectorConfig
from ..errors import MissingCredentialsError
from ..models import ClusterCredentials

TOKEN_HEADER = "R_token"
URL_HEADER = "R_url"


def _header(headers: Mapping[str, str], name: str) -> str:
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return ""


def credentials_from_headers(
    headers: Mapping[str, str], config: Optional[InspectorConfig] = None
) -> ClusterCredentials:
    """Build the Rancher credentials of one request.

    Headers win; the configured URL and token are only used when the request
    does not carry them (stdio transport).
    """
    url = _header(headers, URL_HEADER) or (config.rancher_url if config else "")
    token = _header(headers, TOKEN_HEADER) or (config.rancher_token if config else "")

    if not url:
        raise MissingCredentialsError(f"missing Rancher URL: send the {URL_HEADER} header")
    if not token:
        raise MissingCredentialsError(f"missing Rancher token: send the {TOKEN_HEADER} header")
    return ClusterCredentials(url=url, token=token)
