"""Connection state management for the Larasocket client."""

from larasocket.state.machine import VALID_TRANSITIONS, can_transition, transition

__all__ = ["VALID_TRANSITIONS", "can_transition", "transition"]
