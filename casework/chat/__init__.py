"""Tool-using case-management chat.

Server side: the operation catalog and a streaming agent loop that emits UI
message chunks. Client side: the conversation reconciler, persisted chat
state, the workflow transport, and the tool-result presentation mapper.
"""
