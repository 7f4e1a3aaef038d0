"""Tip amount regression on the joined NYC taxi trip/fare dataset with Spark ML"""

__version__ = "0.1.0"
