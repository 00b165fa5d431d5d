"""
Services Layer

Scheduling logic that:
- Accepts domain inputs (ids, sessions, configurations)
- Returns domain outputs (models, dataclasses with to_dict())
- Does NOT depend on HTTP request/response objects
- Writes placements only through schedule_mutator
"""

# Register all SQLModel tables before any service builds a query
import league_scheduler.models  # noqa: F401
