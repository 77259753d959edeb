"""
HTTP / WebSocket adapter over the core managers
"""
