"""
JAX Configuration - MUST be imported before any JAX imports.

This module sets environment variables for JAX configuration including:
- Platform selection (the sweep loop is host-driven, so CPU is the default)
- Persistent compilation cache directory for compiled JAX operations
"""
import os
from pathlib import Path

# --- PLATFORM ---
# Many small per-update kernels: dispatch latency dominates, keep them on CPU
# unless the user explicitly asks for another backend
os.environ.setdefault("JAX_PLATFORMS", "cpu")

# --- PERSISTENT COMPILATION CACHE ---
_JAX_CACHE_DIR = Path.home() / ".cache" / "jax" / "prmcmc_cache"
try:
    _JAX_CACHE_DIR.mkdir(parents=True, exist_ok=True)
except OSError:
    # Read-only home: run without the persistent cache
    _JAX_CACHE_DIR = None

if _JAX_CACHE_DIR is not None:
    os.environ.setdefault("JAX_COMPILATION_CACHE_DIR", str(_JAX_CACHE_DIR))
    os.environ.setdefault("JAX_PERSISTENT_CACHE_MIN_COMPILE_TIME_SECS", "1.0")
