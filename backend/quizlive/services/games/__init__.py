"""Live game engine: scoring, PINs, the session state machine, stores,
realtime fan-out, the coordinator facade and the timer driver.

The modules here hold the domain logic imported by HTTP routes and socket
handlers, keeping transport concerns separated from core game mechanics.
"""
