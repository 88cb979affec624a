"""ACP (Agent Client Protocol) transport."""

from cursoracp.transport.acp.agent import CursorAcpAgent, create_agent

__all__ = ["CursorAcpAgent", "create_agent"]
