"""Tunnel proxy server."""

from tunnelgate.server.app import TunnelServer, create_server, start_server

__all__ = ["TunnelServer", "create_server", "start_server"]
