import json
from typing import Any

import httpx
from authlib.jose import jwt


def decode(token: str, secret: str = "1234") -> dict[str, Any]:
    return dict(jwt.decode(token, secret))


def json_body(request: httpx.Request) -> Any:
    return json.loads(request.content) if request.content else None
