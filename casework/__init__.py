"""Disability case management chat (demo).

Mock case-management operations exposed as agent tools, plus the chat runtime,
HTTP API and client-side conversation state that drive them.
"""
