"""Core domain package for tidings.

Core holds the notification lifecycle (queues, timeouts, pause and the
scheduler tick) without any rendering, IPC or clock-specific code.
"""
