"""Run-time counters and timings."""
