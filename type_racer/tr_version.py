"""Single version source for the server, web API and bot."""

VERSION = "1.0.0"
