"""
PM2 Pilot

A natural-language assistant for PM2 process management. Destructive
actions wait for confirmation, and raw error logs are turned into a
diagnosis.
"""

# Logging is configured at app entry point via pm2_pilot/logging_utils.py
# No need to configure logging here.

__version__ = "0.1.0"
__author__ = "PM2 Pilot"
__description__ = "Natural-language assistant for PM2 process management"
