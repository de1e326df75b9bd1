"""
Thoughtful Chess live-session client.

Components:
- rules: python-chess backed rules oracle (legal destinations, SAN, check)
- events/stream: NDJSON event decoding and long-lived cancellable streams
- api: Lichess board API transport (account, seek, move submission, resign)
- reconstruct/selection/clock: position replay, move selection state machine, clock sync
- session: SessionController composing the above behind intents and a read-only snapshot
- runtime: background event loop bridge for threaded callers (Flask server)
"""
# Package exports are intentionally minimal; import modules directly as needed.
