"""Dispatcher runtime: worker orchestration, hook handling and HTTP routes."""
