"""Core synchronization logic for forksync."""
