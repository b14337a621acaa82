"""
BudgetPace - Main Entry Point.

Budget accounting and pacing tool for advertising agencies.

Usage:
    python main.py <command> [options]

Example:
    python main.py budget set-fixed cmp_1 --start 2025-12-01 --end 2025-12-31 --amount 300000
    python main.py report --agency agency_1 --client act_1 --campaigns campaigns.json
"""

import sys

from budgetpace.cli import main

if __name__ == "__main__":
    sys.exit(main())
