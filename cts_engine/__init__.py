"""
CTS Engine

Ticket lifecycle and department routing with:
- Role-gated state machine (compliance review -> resolution -> closure)
- Parallel department assignments that converge to closure
- Reopen lineages with repeat-failure warning flag
- Append-only audit trail of every transition
"""

__version__ = "0.1.0"
