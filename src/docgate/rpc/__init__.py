"""RPC protocol adapter and JSON-RPC transport."""

from docgate.rpc.interface import RPC_OPERATIONS, RPCInterface
from docgate.rpc.server import RPCServer

__all__ = ["RPC_OPERATIONS", "RPCInterface", "RPCServer"]
