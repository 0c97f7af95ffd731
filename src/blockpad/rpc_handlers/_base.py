"""Base utilities for RPC handlers.

Provides decorators and helpers for standardized error handling across
all RPC handler modules.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import TYPE_CHECKING, Any, Callable

from blockpad.errors import BlockpadError, get_error_code
from blockpad.rpc_validation import ERROR_INTERNAL, ERROR_INVALID_PARAMS

from . import RpcError

if TYPE_CHECKING:
    from .sessions import EditorSessions

logger = logging.getLogger(__name__)


def rpc_handler(method_name: str) -> Callable:
    """Decorator that converts domain errors to RpcError.

    1. RpcError propagates unchanged
    2. BlockpadError becomes a structured RpcError (code from ERROR_CODES)
    3. ValueError and TypeError become invalid params (-32602)
    4. Anything else is logged and becomes internal error (-32603)

    Args:
        method_name: The RPC method name (e.g., "editor/convert")

    Usage:
        @rpc_handler("editor/indent")
        def handle_editor_indent(sessions: EditorSessions, *, document_id: str,
                                 block_id: str) -> dict:
            ...
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(sessions: "EditorSessions", **kwargs: Any) -> Any:
            try:
                return func(sessions, **kwargs)
            except RpcError:
                raise
            except BlockpadError as e:
                raise RpcError(
                    code=get_error_code(e),
                    message=e.message,
                    data=e.to_dict(),
                ) from e
            except ValueError as e:
                raise RpcError(code=ERROR_INVALID_PARAMS, message=str(e)) from e
            except TypeError as e:
                raise RpcError(
                    code=ERROR_INVALID_PARAMS,
                    message=f"Invalid parameter: {e}",
                ) from e
            except Exception as e:
                logger.error(
                    "Internal error in RPC handler %s: %s",
                    method_name,
                    e,
                    exc_info=True,
                )
                raise RpcError(
                    code=ERROR_INTERNAL,
                    message=f"Internal error in {method_name}",
                    data={"error_type": type(e).__name__},
                ) from e

        wrapper.rpc_method = method_name  # type: ignore[attr-defined]
        return wrapper

    return decorator


def require_params(*required: str) -> Callable:
    """Decorator that validates required parameters are present.

    Raises:
        RpcError: If any required parameter is missing
    """

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            missing = [p for p in required if p not in kwargs or kwargs[p] is None]
            if missing:
                raise RpcError(
                    code=ERROR_INVALID_PARAMS,
                    message=f"Missing required parameters: {', '.join(missing)}",
                    data={"missing": missing},
                )
            return func(*args, **kwargs)

        return wrapper

    return decorator
