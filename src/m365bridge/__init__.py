"""m365bridge: discover and run CLI for Microsoft 365 commands from an agent."""

__version__ = "0.1.0"
