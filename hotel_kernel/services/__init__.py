"""Kernel services: infrastructure shared by the outer service layer."""
