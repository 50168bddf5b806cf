"""Adapters that satisfy the core ports: clock, timers, idle detection,
rendering, scripts and the control socket."""
