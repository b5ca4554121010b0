import json

from unittest.mock import MagicMock


def make_upstream_response(status_code=200, body=None, text=None, reason="OK"):
    """Build a fake requests.Response for the proxy's session."""
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.reason = reason
    if text is None:
        text = json.dumps(body) if body is not None else ""
    response.text = text
    if body is not None:
        response.json.return_value = body
    else:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    return response
