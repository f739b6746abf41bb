"""Cookie attribution, conversion postbacks, and funnel reporting for casino campaigns."""

__version__ = "0.1.0"
