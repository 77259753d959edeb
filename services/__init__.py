"""
Service layer

Pure calculations and small helpers, no state transitions:
- NamingService: room codes and display names
- RoleService: impostor selection, secret word choice
- TurnService: clue turn order
- TallyService: vote counting and tie-break
- OutcomeService: win conditions
- ViewService: room view projection
- EventService: event log entries
"""
