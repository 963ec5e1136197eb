"""Simultaneous user management for Slurm, LDAP and user directories."""

__version__ = "0.6.0"
