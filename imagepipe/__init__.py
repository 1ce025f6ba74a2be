"""imagepipe - batch image pipeline with step validation"""

__version__ = "0.1.0"
