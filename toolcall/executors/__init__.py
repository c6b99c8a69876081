"""Tool executors: the boundary the retry engine calls into."""

from toolcall.executors.base import ServerConfig, ToolExecutor
from toolcall.executors.http import HttpToolExecutor
from toolcall.executors.manager import ServerManager

__all__ = ["ServerConfig", "ToolExecutor", "HttpToolExecutor", "ServerManager"]
