"""HTTP server for the converter.

The app module is not imported here so that importing a submodule such as
server.api.errors does not pull in the whole application.
"""
