"""examgrade: exam delivery backend with AI-assisted answer evaluation."""

__version__ = "0.1.0"
