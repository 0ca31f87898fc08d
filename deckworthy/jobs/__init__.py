"""
Jobs package - sync entrypoints, the cron scheduler and the command line
"""
