"""Log Cache metadata tooling: resolve, rate and tabulate cached telemetry sources."""

__version__ = "0.1.0"
