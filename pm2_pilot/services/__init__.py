"""Services layered over the router and the PM2 client.

Modules are imported directly (``from pm2_pilot.services.executor import
CommandExecutor``); the models package is imported by the PM2 client itself.
"""
