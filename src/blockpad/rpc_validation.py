"""JSON-RPC 2.0 envelopes and parameter checks for the editor RPC surface.

Error codes follow JSON-RPC 2.0:
- -32700: Parse error
- -32600: Invalid Request
- -32601: Method not found
- -32602: Invalid params
- -32603: Internal error
- -32000 to -32099: domain errors (see ``blockpad.errors.ERROR_CODES``)
"""

from __future__ import annotations

from typing import Any

JSON = dict[str, Any]

MAX_ID_LENGTH = 200

ERROR_PARSE = -32700
ERROR_INVALID_REQUEST = -32600
ERROR_METHOD_NOT_FOUND = -32601
ERROR_INVALID_PARAMS = -32602
ERROR_INTERNAL = -32603


class RpcError(RuntimeError):
    """JSON-RPC 2.0 error with code and optional data."""

    def __init__(self, code: int, message: str, data: Any | None = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data


def validate_params_object(params: Any) -> dict[str, Any]:
    """Accept a params object; a missing params member means no params.

    Raises:
        RpcError: If params is present but not an object.
    """
    if params is None:
        return {}
    if not isinstance(params, dict):
        raise RpcError(code=ERROR_INVALID_PARAMS, message="params must be an object")
    return params


def validate_id(value: Any, field_name: str) -> str:
    """Check a block or document id parameter.

    Raises:
        RpcError: If the id is not a non-empty string of bounded length.
    """
    if not isinstance(value, str) or not value:
        raise RpcError(code=ERROR_INVALID_PARAMS, message=f"{field_name} is required")
    if len(value) > MAX_ID_LENGTH:
        raise RpcError(
            code=ERROR_INVALID_PARAMS,
            message=f"{field_name} exceeds maximum length of {MAX_ID_LENGTH} characters",
        )
    return value


def jsonrpc_error(*, req_id: Any, code: int, message: str, data: Any | None = None) -> JSON:
    err: JSON = {"code": code, "message": message}
    if data is not None:
        err["data"] = data
    return {"jsonrpc": "2.0", "id": req_id, "error": err}


def jsonrpc_result(*, req_id: Any, result: Any) -> JSON:
    return {"jsonrpc": "2.0", "id": req_id, "result": result}
