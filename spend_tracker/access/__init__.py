"""Access requests, approvals and onboarding."""

from spend_tracker.access.state_machine import AccessStateMachine, extract_ledger_id

__all__ = ["AccessStateMachine", "extract_ledger_id"]
