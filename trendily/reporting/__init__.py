"""
trendily.reporting: run report serialization for the HTTP trigger and the CLI.
"""
