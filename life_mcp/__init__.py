"""
Life-dump MCP server package.

Exposes personal-data capabilities (log ingestion, mood tracking, projects
and tasks) over the Model Context Protocol, one server per domain.

Architecture:
    server.py      — config loading, per-domain registry builders, entrypoint
    session.py     — one client session: handshake gate + dispatcher
    registry.py    — tools, resources and automation rules of one server
    negotiation.py — one-time capability snapshot
    dispatcher.py  — resolve → validate → invoke → envelope, error taxonomy
    schemas.py     — resource URI constants, structured call-log record
    transport.py   — stdio bridge onto the MCP SDK + logging setup
"""
