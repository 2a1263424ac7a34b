"""LearnPath: progress, assessment, aggregation and certification engine."""

__version__ = "0.1.0"
