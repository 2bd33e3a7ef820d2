"""Call protocol and session layer.

One WebSocket carries both binary audio frames (mono 24 kHz float32) and text
control tokens. `CallSession` owns the wire protocol for a single connection,
`ConversationOrchestrator` owns the turn-taking state machine that sits on top.
"""
