"""Periodic jobs invoked by an external scheduler."""
