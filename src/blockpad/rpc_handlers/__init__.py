"""RPC handler modules for the editor.

- sessions: registry of open documents (engine + writer per document)
- editor: editor/* intent handlers and the method dispatch table
"""

from __future__ import annotations

from blockpad.rpc_validation import RpcError

__all__ = ["RpcError"]
