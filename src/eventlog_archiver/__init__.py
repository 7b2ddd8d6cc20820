"""
Windows event log archiving for server fleets.

Archives and clears an event log on each target host over WinRM, optionally
resets CrashOnAuditFail and reboots, and reports the results.
"""

__version__ = "0.1.0"
