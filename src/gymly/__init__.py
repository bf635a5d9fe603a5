"""gymly: check-in, invitations and workout planning core."""

__version__ = "0.1.0"
