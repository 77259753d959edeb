"""
Core business logic

This package holds the game's state machine and its concurrency rules:
- State machines: every Room / Round status change goes through them
- Managers: lifecycle of Rooms (RoomManager) and Rounds (RoundManager)
- Concurrency: optimistic guards and insert-once helpers
- Change feed and live view: push the room state to every client
- Identity store: which player this client is, per room code
"""
