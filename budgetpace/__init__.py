"""
BudgetPace - Budget Allocation and Pacing Engine for Advertising Agencies.

Unifies campaign spend from search and social ad platforms with per-campaign
budget configurations, resolves the budget that applies to any reporting
window, and raises pacing alerts when live spend drifts from plan.

Version: 0.1.0
"""

__version__ = "0.1.0"
__author__ = "BudgetPace Team"
