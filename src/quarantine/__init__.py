"""
Budget Quarantine - AWS Organizations budget guardrail

Quarantines the OU of a member account that exceeded its monthly budget by
forwarding an event to a central bus, where a deny-all SCP is attached to the OU.
"""

__version__ = "0.1.0"
__author__ = "Budget Quarantine Team"
