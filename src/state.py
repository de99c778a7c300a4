"""
Session State Machine
=====================
Minimal state machine for meditation session management.

This module tracks the session phase and reports each state change as a
returned StateTransition. There is no callback registry: the caller that
fires a trigger is the one that reacts to the transition.

Module: state
Version: 1.0.0
"""

from core.types import SessionState


class StateTrigger:
    """
    State machine transition triggers.

    These represent events that cause state transitions.
    """
    START_SESSION = "START_SESSION"
    PAUSE_SESSION = "PAUSE_SESSION"
    RESUME_SESSION = "RESUME_SESSION"
    STOP_SESSION = "STOP_SESSION"
    STOPPED = "STOPPED"


class StateTransition:
    """
    Represents a state transition event.

    Attributes:
        from_state: Previous state
        to_state: New state
        trigger: Event that caused the transition
        metadata: Optional transition metadata
    """

    def __init__(self, from_state, to_state, trigger, metadata=None):
        self.from_state = from_state
        self.to_state = to_state
        self.trigger = trigger
        self.metadata = metadata or {}

    def __repr__(self):
        return f"StateTransition({self.from_state.value} -> {self.to_state.value} on {self.trigger})"


class SessionStateMachine:
    """
    Session state machine.

    States (from core.types.SessionState):
        - IDLE: No active session
        - RUNNING: Session in progress
        - PAUSED: Session paused
        - STOPPING: Session being finalized

    Usage:
        >>> machine = SessionStateMachine()
        >>> transition = machine.transition(StateTrigger.START_SESSION)
        >>> transition.to_state
        <SessionState.RUNNING: 'running'>
        >>> machine.transition(StateTrigger.RESUME_SESSION) is None
        True
    """

    _TRANSITIONS = {
        (SessionState.IDLE, StateTrigger.START_SESSION): SessionState.RUNNING,
        (SessionState.RUNNING, StateTrigger.PAUSE_SESSION): SessionState.PAUSED,
        (SessionState.PAUSED, StateTrigger.RESUME_SESSION): SessionState.RUNNING,
        (SessionState.RUNNING, StateTrigger.STOP_SESSION): SessionState.STOPPING,
        (SessionState.PAUSED, StateTrigger.STOP_SESSION): SessionState.STOPPING,
        (SessionState.STOPPING, StateTrigger.STOPPED): SessionState.IDLE,
    }

    def __init__(self, initial_state=SessionState.IDLE):
        """
        Initialize state machine.

        Args:
            initial_state: Starting state (default: SessionState.IDLE)
        """
        self._state = initial_state

    def get_current_state(self):
        """
        Get current session state.

        Returns:
            Current SessionState
        """
        return self._state

    def transition(self, trigger, metadata=None):
        """
        Trigger a state transition.

        Args:
            trigger: StateTrigger that causes the transition
            metadata: Optional metadata dict for the transition

        Returns:
            StateTransition if the state changed, None if the trigger is
            not valid in the current state
        """
        new_state = self._TRANSITIONS.get((self._state, trigger))
        if new_state is None:
            return None

        transition = StateTransition(
            from_state=self._state,
            to_state=new_state,
            trigger=trigger,
            metadata=metadata,
        )
        self._state = new_state
        return transition
